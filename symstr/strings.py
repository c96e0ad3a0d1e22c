"""
String and character operations over symbolic strings.

Each operation folds to a concrete answer when its operands are known and
builds a solver node otherwise. Names follow Haskell's Data.List, so
importing the module qualified (`from symstr import strings as S`) reads
best. Where an operation is documented as unspecified (an index out of
bounds, say) no error is raised: the result is whatever the solver picks.
"""
from typing import Iterable
from . import concrete
from .core import (SymbolicValue, ensure_symbolic, literal, unliteral, lift1, lift2, lift3,
                   ite, emulate, BOOL, INT, CHAR, STRING)

def is_concretely_empty(s: SymbolicValue) -> bool:
    return unliteral(s) == ""

def length(s) -> SymbolicValue:
    """Length of a string."""
    s = ensure_symbolic(s, STRING)
    return lift1('str.len', concrete.str_len, INT, s)

def null(s) -> SymbolicValue:
    """True iff the string is empty."""
    s = ensure_symbolic(s, STRING)
    cs = unliteral(s)
    if cs is not None:
        return literal(cs == "", BOOL)
    return s == ""

def head(s) -> SymbolicValue:
    """First character. Unspecified if the string is empty."""
    return str_to_char_at(s, 0)

def tail(s) -> SymbolicValue:
    """All but the first character. Unspecified if the string is empty."""
    s = ensure_symbolic(s, STRING)
    cs = unliteral(s)
    if cs:
        return literal(cs[1:], STRING)
    return sub_str(s, 1, length(s) - 1)

def char_to_str(c) -> SymbolicValue:
    """The string of length 1 holding character `c`."""
    c = ensure_symbolic(c, CHAR)
    return lift1('str.unit', concrete.str_unit, STRING, c)

def str_to_str_at(s, offset) -> SymbolicValue:
    """Substring of length 1 at `offset`. Unspecified if out of bounds."""
    return sub_str(s, offset, 1)

def _char_at_witness(c, s, i):
    return char_to_str(c) == str_to_str_at(s, i)

def str_to_char_at(s, i) -> SymbolicValue:
    """The character at `i`. Unspecified if out of bounds.

    SMT-LIB has no character extraction on strings, so the symbolic case
    introduces a fresh character `c` and asserts that the singleton string
    of `c` equals the length-1 substring at `i`.
    """
    s = ensure_symbolic(s, STRING)
    i = ensure_symbolic(i, INT)
    cs, ci = unliteral(s), unliteral(i)
    if cs is not None and ci is not None and 0 <= ci < len(cs):
        return literal(concrete.str_at(cs, ci), CHAR)
    return emulate(CHAR, _char_at_witness, s, i, op='str_to_char_at')

def implode(cs: Iterable) -> SymbolicValue:
    """The string made of exactly the characters `cs`."""
    result = literal("", STRING)
    for c in reversed(list(cs)):
        result = concat(char_to_str(c), result)
    return result

def concat(x, y) -> SymbolicValue:
    x = ensure_symbolic(x, STRING)
    y = ensure_symbolic(y, STRING)
    if is_concretely_empty(x):
        return y
    if is_concretely_empty(y):
        return x
    return lift2('str.++', concrete.str_concat, STRING, x, y)

def is_infix_of(sub, s) -> SymbolicValue:
    """Does `s` contain the substring `sub`?"""
    sub = ensure_symbolic(sub, STRING)
    s = ensure_symbolic(s, STRING)
    if is_concretely_empty(sub):
        return literal(True)
    # str.contains takes the haystack first
    return lift2('str.contains', concrete.str_contains, BOOL, s, sub)

def is_prefix_of(pre, s) -> SymbolicValue:
    pre = ensure_symbolic(pre, STRING)
    s = ensure_symbolic(s, STRING)
    if is_concretely_empty(pre):
        return literal(True)
    return lift2('str.prefixof', concrete.str_prefix_of, BOOL, pre, s)

def is_suffix_of(suf, s) -> SymbolicValue:
    suf = ensure_symbolic(suf, STRING)
    s = ensure_symbolic(s, STRING)
    if is_concretely_empty(suf):
        return literal(True)
    return lift2('str.suffixof', concrete.str_suffix_of, BOOL, suf, s)

def take(i, s) -> SymbolicValue:
    """The first `i` characters of `s`, like Haskell's `take`."""
    i = ensure_symbolic(i, INT)
    s = ensure_symbolic(s, STRING)
    return ite(i <= 0, "",
               lambda: ite(i >= length(s), s,
                           lambda: sub_str(s, 0, i)))

def drop(i, s) -> SymbolicValue:
    """`s` without its first `i` characters, like Haskell's `drop`."""
    i = ensure_symbolic(i, INT)
    s = ensure_symbolic(s, STRING)
    ls = length(s)
    return ite(i >= ls, "",
               lambda: ite(i <= 0, s,
                           lambda: sub_str(s, i, ls - i)))

def sub_str(s, offset, n) -> SymbolicValue:
    """The substring of `s` at `offset` with `n` characters.

    Unspecified when `offset` is outside `[0, len(s)]`, `n` is
    negative, or `offset + n` overruns `s`; such calls build a node
    even if every operand is known.
    """
    s = ensure_symbolic(s, STRING)
    offset = ensure_symbolic(offset, INT)
    n = ensure_symbolic(n, INT)
    c, o, l = unliteral(s), unliteral(offset), unliteral(n)
    if c is not None and o is not None and l is not None and concrete.substr_in_bounds(c, o, l):
        return literal(concrete.str_substr(c, o, l), STRING)
    return lift3('str.substr', None, STRING, s, offset, n)

def replace(s, src, dst) -> SymbolicValue:
    """Replace the first occurrence of `src` in `s` by `dst`."""
    s = ensure_symbolic(s, STRING)
    src = ensure_symbolic(src, STRING)
    dst = ensure_symbolic(dst, STRING)
    if is_concretely_empty(src):
        return concat(dst, s)
    return lift3('str.replace', concrete.str_replace, STRING, s, src, dst)

def index_of(s, sub) -> SymbolicValue:
    """First position of `sub` in `s`, -1 if there is none."""
    return offset_index_of(s, sub, 0)

def offset_index_of(s, sub, offset) -> SymbolicValue:
    """First position of `sub` in `s` at or after `offset`, -1 if there is none.

    An offset outside `[0, len(s)]` gives -1 without searching.
    """
    s = ensure_symbolic(s, STRING)
    sub = ensure_symbolic(sub, STRING)
    offset = ensure_symbolic(offset, INT)
    return lift3('str.indexof', concrete.str_index_of, INT, s, sub, offset)

def str_to_nat(s) -> SymbolicValue:
    """The natural number spelled by the decimal digits of `s`, or -1."""
    s = ensure_symbolic(s, STRING)
    return lift1('str.to_int', concrete.str_to_nat, INT, s)

def nat_to_str(i) -> SymbolicValue:
    """Decimal rendering of `i`; the empty string when `i` is negative."""
    i = ensure_symbolic(i, INT)
    return lift1('str.from_int', concrete.nat_to_str, STRING, i)
