"""
SMTLIB backend: the per-session node arena, and the bridge to the solver process.

Nodes are hash-consed, so a structurally identical expression built twice
resolves to the same handle. Handles are plain integers indexing `Backend.nodes`.
"""
from dataclasses import dataclass
from contextlib import contextmanager
from typing import Any, List, Dict, Optional, Set, Tuple
import logging
import os
import re
import subprocess
import tempfile
import sexpdata
from .concrete import nat_to_str

logger = logging.getLogger(__name__)

BOOL = 'Bool'
INT = 'Int'
CHAR = 'Char'
STRING = 'String'

sorts = {
    BOOL: 'Bool',
    INT: 'Int',
    CHAR: '(_ BitVec 8)',
    STRING: 'String',
}


class KindMismatch(TypeError):
    """An operand's kind disagrees with what the operation requires."""


class SolverError(RuntimeError):
    """The solver could not be run, or reported an error on our script."""


def to_smtlib_string(s):
    return '"' + ''.join(
        '""' if ch == '"' else
        ch if 32 <= ord(ch) < 127 and ch != '\\' else f"\\u{{{ord(ch):x}}}"
        for ch in s
    ) + '"'

def to_smtlib_value(kind, value):
    if kind == BOOL:
        return 'true' if value else 'false'
    if kind == INT:
        return nat_to_str(value) if value >= 0 else f"(- {nat_to_str(-value)})"
    if kind == CHAR:
        return f"(_ bv{ord(value)} 8)"
    if kind == STRING:
        return to_smtlib_string(value)
    raise KindMismatch(f"Unsupported kind {kind}")


cmd_prefixes = {
    'z3': ['z3', '-T:5'],
    'cvc5': ['cvc5', '--tlimit=5000', '--lang=smt2', '--strings-exp'],
}
def smtlib_cmd(smt2_file, cmd=None):
    cmd = cmd or next(iter(cmd_prefixes.keys()))
    logger.debug("running backend %s", cmd)
    return cmd_prefixes[cmd] + [smt2_file]

def run_smt(smt2, cmds=None):
    logger.debug("### smt2\n%s", smt2)

    with tempfile.NamedTemporaryFile(mode='w', suffix='.smt2', delete=False) as f:
        f.write(smt2)
        smt2_file = f.name

    ps = []
    try:
        for cmd in cmds or [None]:
            try:
                p = subprocess.Popen(smtlib_cmd(smt2_file, cmd),
                                     stdout=subprocess.PIPE,
                                     stderr=subprocess.PIPE,
                                     text=True)
            except FileNotFoundError as e:
                raise SolverError(f"Solver not found: {e.filename}") from e
            ps.append((cmd, p))

        first_flag = None
        for (cmd, p) in ps:
            output, error = p.communicate()
            output = (output + error).strip().replace(smt2_file, "tmp.smt2")
            logger.debug("### output for %s\n%s", cmd, output)

            flag = parse_output(output)
            if flag in ('sat', 'unsat'):
                return flag
            elif first_flag is None:
                first_flag = flag
        return first_flag
    finally:
        # solvers still running once an answer is in (or a launch failed)
        for (cmd, p) in ps:
            if p.poll() is None:
                logger.debug("killing backend %s", cmd)
                p.kill()
                p.communicate()
        os.unlink(smt2_file)

def parse_output(output):
    for line in output.split('\n'):
        if line.startswith('(error'):
            sexp = sexpdata.loads(line)
            message = sexp[1] if len(sexp) > 1 else line
            raise SolverError(f"Solver error: {message}")
    first = output.split('\n', 1)[0].strip()
    if first in ('sat', 'unsat'):
        return first
    return 'unknown'


@dataclass(frozen=True)
class Expr:
    """One node of the arena.

    Leaves are `const` (args holds the value) and `var` (args holds the name);
    every other op holds operand handles.
    """
    op: str
    args: Tuple[Any, ...]
    kind: str

    @property
    def is_leaf(self) -> bool:
        return self.op in ('const', 'var')


class Backend():
    def __init__(self, cmds=None):
        self.cmds = cmds
        self.nodes: List[Expr] = []
        self.names: Dict[int, str] = {}
        self.internals: Set[int] = set()
        self.assertions: List[Tuple[int, bool]] = []
        self._cache: Dict[Tuple[str, Tuple[Any, ...], str], int] = {}

    def _new(self, expr: Expr) -> int:
        self.nodes.append(expr)
        return len(self.nodes) - 1

    def _memo(self, expr: Expr) -> int:
        key = (expr.op, expr.args, expr.kind)
        handle = self._cache.get(key)
        if handle is None:
            handle = self._new(expr)
            self._cache[key] = handle
        return handle

    def kind_of(self, handle: int) -> str:
        return self.nodes[handle].kind

    def fresh_variable(self, kind: str, name: Optional[str] = None, internal: bool = False) -> int:
        """Declare a new solver variable.

        Internal variables are introduced by emulated operators; they are
        declared like any other but left out of `variables`.
        """
        if kind not in sorts:
            raise KindMismatch(f"Unsupported kind {kind}")
        if name is not None:
            if re.fullmatch(r's\d+', name):
                raise ValueError(f"Reserved variable name {name}")
            if name in self.names.values():
                raise ValueError(f"Duplicate variable name {name}")
        handle = self._new(Expr('var', (name,), kind))
        self.names[handle] = name if name is not None else f"s{handle}"
        if internal:
            self.internals.add(handle)
        return handle

    def literal_handle(self, kind: str, value: Any) -> int:
        return self._memo(Expr('const', (value,), kind))

    def concrete_value_of(self, handle: int) -> Optional[Any]:
        node = self.nodes[handle]
        if node.op == 'const':
            return node.args[0]
        return None

    def build_node(self, op: str, handles, kind: str) -> int:
        handles = tuple(handles)
        assert all(0 <= h < len(self.nodes) for h in handles), "unknown handle in " + str(handles)
        return self._memo(Expr(op, handles, kind))

    def add(self, handle: int, internal: bool = False):
        if self.kind_of(handle) != BOOL:
            raise KindMismatch(f"Cannot assert a {self.kind_of(handle)} expression")
        self.assertions.append((handle, internal))

    @property
    def variables(self) -> List[int]:
        """Variables declared by the user, in declaration order."""
        return [h for h in self.names if h not in self.internals]

    @property
    def constraints(self) -> List[int]:
        """Assertions made by the user; internal ones are left out."""
        return [h for (h, internal) in self.assertions if not internal]

    @contextmanager
    def transaction(self):
        """Register everything built inside as one unit, or nothing at all."""
        mark = len(self.nodes)
        n_assertions = len(self.assertions)
        try:
            yield self
        except BaseException:
            del self.nodes[mark:]
            del self.assertions[n_assertions:]
            self._cache = {k: h for k, h in self._cache.items() if h < mark}
            self.names = {h: n for h, n in self.names.items() if h < mark}
            self.internals = {h for h in self.internals if h < mark}
            raise

    def render(self, handle: int) -> str:
        node = self.nodes[handle]
        if node.op == 'const':
            return to_smtlib_value(node.kind, node.args[0])
        return self.names.get(handle, f"s{handle}")

    def to_smt2_expr(self, handle: int) -> str:
        """Render a single interior node over the names of its operands."""
        node = self.nodes[handle]
        args = [self.render(h) for h in node.args]
        if node.op == 'str.unit':
            return f"(str.from_code (bv2nat {args[0]}))"
        return f"({node.op} {' '.join(args)})"

    def to_smt2(self) -> str:
        smt2 = "(set-logic ALL)\n"
        for handle, node in enumerate(self.nodes):
            if node.op == 'var':
                smt2 += f"(declare-fun {self.names[handle]} () {sorts[node.kind]})\n"
            elif not node.is_leaf:
                smt2 += f"(define-fun s{handle} () {sorts[node.kind]} {self.to_smt2_expr(handle)})\n"
        for handle, _ in self.assertions:
            smt2 += f"(assert {self.render(handle)})\n"
        smt2 += "(check-sat)\n"
        return smt2

    def check(self, cmds=None) -> str:
        flag = run_smt(self.to_smt2(), cmds or self.cmds)
        logger.info("solver answered %s on %d assertions", flag, len(self.assertions))
        return flag

    def is_sat(self, result) -> bool:
        return result == 'sat'

default_backend = Backend
