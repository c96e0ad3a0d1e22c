from typing import Any, Optional, List, Callable
import operator
from .backend import default_backend, Backend, KindMismatch, BOOL, INT, CHAR, STRING, sorts

_tracers: List['SymbolicTracer'] = []

def current_tracer(op: Optional[str] = None) -> 'SymbolicTracer':
    """The innermost active session.

    `op` names the operation asking for it, for the error raised outside one.
    """
    if not _tracers:
        if op is not None:
            raise RuntimeError(f"{op} has to build a solver node but there is no active SymbolicTracer; "
                               "use `with SymbolicTracer():`")
        raise RuntimeError("No active SymbolicTracer; use `with SymbolicTracer():`")
    return _tracers[-1]

class SymbolicTracer:
    """One solving session: owns the backend arena every node is built in.

    Entering the tracer makes it the ambient session, used whenever an
    operation has to build a node but none of its operands is symbolic.
    """
    def __init__(self, backend: Optional[Backend] = None):
        self.backend = backend or default_backend()

    def __enter__(self):
        _tracers.append(self)
        return self

    def __exit__(self, *exc):
        _tracers.pop()
        return False

    def fresh(self, kind: str, name: Optional[str] = None, internal: bool = False) -> 'SymbolicValue':
        handle = self.backend.fresh_variable(kind, name, internal=internal)
        return SymbolicValue(kind, handle=handle, tracer=self)

    def handle_of(self, value: 'SymbolicValue') -> int:
        if value.handle is not None:
            assert value.tracer is self, "mixing values from different sessions"
            return value.handle
        return self.backend.literal_handle(value.kind, value.concrete)

    def add_constraint(self, constraint, internal: bool = False):
        constraint = ensure_symbolic(constraint, BOOL)
        if constraint.concrete is True:
            return
        self.backend.add(self.handle_of(constraint), internal=internal)

    def add_internal_constraint(self, constraint):
        """Assert something the caller of an operation never sees."""
        self.add_constraint(constraint, internal=True)

    def check(self, cmds=None):
        return self.backend.check(cmds)

    def is_sat(self, result) -> bool:
        return self.backend.is_sat(result)


def _coerce(value: Any, kind: str) -> Any:
    if kind == BOOL and isinstance(value, bool):
        return value
    if kind == INT and isinstance(value, int) and not isinstance(value, bool):
        return value
    if kind == CHAR:
        if isinstance(value, int) and not isinstance(value, bool) and 0 <= value < 256:
            return chr(value)
        if isinstance(value, str) and len(value) == 1 and ord(value) < 256:
            return value
    if kind == STRING and isinstance(value, str) and all(ord(c) < 256 for c in value):
        return value
    raise KindMismatch(f"Cannot use {value!r} as {kind}")

class SymbolicValue:
    """A value of some kind: either concretely known, or a node handle in a session."""
    def __init__(self, kind: str, concrete: Any = None, handle: Optional[int] = None,
                 tracer: Optional[SymbolicTracer] = None):
        assert (concrete is None) != (handle is None), "exactly one of concrete/handle"
        if kind not in sorts:
            raise KindMismatch(f"Unsupported kind {kind}")
        self.kind = kind
        self.concrete = None if concrete is None else _coerce(concrete, kind)
        self.handle = handle
        self.tracer = tracer

    def __repr__(self):
        if self.concrete is not None:
            return f"SymbolicValue({self.kind}, {self.concrete!r})"
        return f"SymbolicValue({self.kind}, s{self.handle})"

    # `==` builds a Bool instead of comparing, so keys go by identity
    __hash__ = object.__hash__

    def __bool__(self):
        if self.kind == BOOL:
            v = unliteral(self)
            if v is not None:
                return v
        raise ValueError(f"{self!r} cannot be concretized.")

    def __int__(self):
        if self.kind == INT:
            v = unliteral(self)
            if v is not None:
                return v
        raise ValueError(f"{self!r} cannot be concretized.")

    def _require(self, kind):
        if self.kind != kind:
            raise KindMismatch(f"Expected {kind}, got {self.kind}")

    def __eq__(self, other):
        other = ensure_symbolic(other, self.kind)
        return lift2('=', operator.eq, BOOL, self, other)

    def __ne__(self, other):
        return ~(self == other)

    def __add__(self, other):
        if self.kind == STRING:
            from .strings import concat
            return concat(self, other)
        self._require(INT)
        return lift2('+', operator.add, INT, self, ensure_symbolic(other, INT))

    def __radd__(self, other):
        if self.kind == STRING:
            from .strings import concat
            return concat(other, self)
        return ensure_symbolic(other, self.kind) + self

    def __sub__(self, other):
        self._require(INT)
        return lift2('-', operator.sub, INT, self, ensure_symbolic(other, INT))

    def __rsub__(self, other):
        return ensure_symbolic(other, self.kind) - self

    def __neg__(self):
        self._require(INT)
        return lift1('-', operator.neg, INT, self)

    def __lt__(self, other):
        self._require(INT)
        return lift2('<', operator.lt, BOOL, self, ensure_symbolic(other, INT))

    def __le__(self, other):
        self._require(INT)
        return lift2('<=', operator.le, BOOL, self, ensure_symbolic(other, INT))

    def __gt__(self, other):
        self._require(INT)
        return lift2('>', operator.gt, BOOL, self, ensure_symbolic(other, INT))

    def __ge__(self, other):
        self._require(INT)
        return lift2('>=', operator.ge, BOOL, self, ensure_symbolic(other, INT))

    def __and__(self, other):
        self._require(BOOL)
        other = ensure_symbolic(other, BOOL)
        for a, b in [(self, other), (other, self)]:
            if a.concrete is not None:
                return b if a.concrete else a
        return lift2('and', None, BOOL, self, other)

    def __rand__(self, other):
        return self & other

    def __or__(self, other):
        self._require(BOOL)
        other = ensure_symbolic(other, BOOL)
        for a, b in [(self, other), (other, self)]:
            if a.concrete is not None:
                return a if a.concrete else b
        return lift2('or', None, BOOL, self, other)

    def __ror__(self, other):
        return self | other

    def __invert__(self):
        self._require(BOOL)
        return lift1('not', operator.not_, BOOL, self)

    def __getitem__(self, i):
        from .strings import str_to_char_at
        return str_to_char_at(self, i)


def literal(value: Any, kind: Optional[str] = None) -> SymbolicValue:
    """Wrap a host value; the kind is inferred from its Python type unless given."""
    if kind is None:
        if isinstance(value, bool):
            kind = BOOL
        elif isinstance(value, int):
            kind = INT
        elif isinstance(value, str):
            kind = STRING
        else:
            raise KindMismatch(f"No kind for {type(value).__name__}")
    return SymbolicValue(kind, concrete=value)

def ensure_symbolic(value: Any, kind: str) -> SymbolicValue:
    if isinstance(value, SymbolicValue):
        value._require(kind)
        return value
    return literal(value, kind)

def unliteral(value: SymbolicValue) -> Optional[Any]:
    """The concrete value denoted by `value`, if it is known."""
    if value.concrete is not None:
        return value.concrete
    return value.tracer.backend.concrete_value_of(value.handle)

def session_of(*values: SymbolicValue, op: Optional[str] = None) -> SymbolicTracer:
    tracers = [v.tracer for v in values if v.tracer is not None]
    assert all(t is tracers[0] for t in tracers), "mixing values from different sessions"
    return tracers[0] if tracers else current_tracer(op)

def make_symbolic(kind: str, name: Optional[str] = None, tracer: Optional[SymbolicTracer] = None) -> SymbolicValue:
    """Create a new symbolic variable of given kind in `tracer` (default: the ambient one)."""
    return (tracer or current_tracer()).fresh(kind, name)


def _lift(op: str, fn: Optional[Callable], kind: str, *operands: SymbolicValue) -> SymbolicValue:
    if fn is not None:
        values = [unliteral(x) for x in operands]
        if all(v is not None for v in values):
            return SymbolicValue(kind, concrete=fn(*values))
    tracer = session_of(*operands, op=op)
    handles = [tracer.handle_of(x) for x in operands]
    return SymbolicValue(kind, handle=tracer.backend.build_node(op, handles, kind), tracer=tracer)

def lift1(op: str, fn: Optional[Callable], kind: str, a: SymbolicValue) -> SymbolicValue:
    """Fold `fn(a)` if `a` is known and `fn` given, else build an `op` node of `kind`."""
    return _lift(op, fn, kind, a)

def lift2(op: str, fn: Optional[Callable], kind: str, a: SymbolicValue, b: SymbolicValue) -> SymbolicValue:
    return _lift(op, fn, kind, a, b)

def lift3(op: str, fn: Optional[Callable], kind: str, a: SymbolicValue, b: SymbolicValue, c: SymbolicValue) -> SymbolicValue:
    return _lift(op, fn, kind, a, b, c)


def _force(x):
    return x() if callable(x) else x

def ite(c, t, e) -> SymbolicValue:
    """If-then-else.

    `t` and `e` may be given as thunks; a branch ruled out by a concrete
    condition is then never built.
    """
    c = ensure_symbolic(c, BOOL)
    cv = unliteral(c)
    if cv is not None:
        branch = _force(t if cv else e)
        return branch if isinstance(branch, SymbolicValue) else literal(branch)
    t, e = _force(t), _force(e)
    kind = next((x.kind for x in (t, e) if isinstance(x, SymbolicValue)), None)
    if kind is None:
        kind = literal(t).kind
    t, e = ensure_symbolic(t, kind), ensure_symbolic(e, kind)
    tv, ev = unliteral(t), unliteral(e)
    if (tv is not None and tv == ev) or (t.handle is not None and t.handle == e.handle):
        return t
    return lift3('ite', None, kind, c, t, e)

def implies(a, b) -> SymbolicValue:
    return ~ensure_symbolic(a, BOOL) | b


def emulate(kind: str, witness: Callable[..., Any], *operands: SymbolicValue,
            op: Optional[str] = None) -> SymbolicValue:
    """Stand in for an operator the solver lacks.

    Introduces a fresh internal variable of `kind` and asserts
    `witness(var, *operands)` about it. The variable, the nodes built by the
    witness, and the assertion are registered together or not at all.
    """
    tracer = session_of(*operands, op=op or witness.__name__)
    with tracer.backend.transaction():
        var = tracer.fresh(kind, internal=True)
        tracer.add_internal_constraint(witness(var, *operands))
    return var


def _solve(predicate: Callable[..., Any], kinds, negate: bool, cmds) -> str:
    with SymbolicTracer(default_backend(cmds)) as tracer:
        args = [tracer.fresh(kind) for kind in kinds]
        result = ensure_symbolic(predicate(*args), BOOL)
        if negate:
            result = ~result
        known = unliteral(result)
        if known is not None and not tracer.backend.assertions:
            return 'sat' if known else 'unsat'
        tracer.add_constraint(result)
        return tracer.check()

def sat(predicate: Callable[..., Any], *kinds: str, cmds=None) -> str:
    """Is there an assignment of fresh `kinds` variables making `predicate` true?

    Returns the solver flag: 'sat', 'unsat' or 'unknown'.
    """
    return _solve(predicate, kinds, False, cmds)

def prove(predicate: Callable[..., Any], *kinds: str, cmds=None) -> bool:
    """Does `predicate` hold for every assignment of fresh `kinds` variables?"""
    return _solve(predicate, kinds, True, cmds) == 'unsat'
