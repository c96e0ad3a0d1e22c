"""
Host-level semantics of the string operations.

These are the ground truth the symbolic operations fold to when every operand
is known. Functions here only see plain Python values; guards for the
underspecified cases (out of range offsets and the like) live with the
symbolic operations, which decline to fold in those cases.
"""


def str_len(s: str) -> int:
    return len(s)

def str_unit(c: str) -> str:
    return c

def str_concat(x: str, y: str) -> str:
    return x + y

def str_contains(s: str, sub: str) -> bool:
    # argument order of str.contains: haystack first
    return sub in s

def str_prefix_of(pre: str, s: str) -> bool:
    return s.startswith(pre)

def str_suffix_of(suf: str, s: str) -> bool:
    return s.endswith(suf)

def str_at(s: str, i: int) -> str:
    return s[i]

def substr_in_bounds(s: str, offset: int, length: int) -> bool:
    """Is `substr(s, offset, length)` fully specified?"""
    def valid(x):
        return 0 <= x <= len(s)
    return valid(offset) and length >= 0 and valid(offset + length)

def str_substr(s: str, offset: int, length: int) -> str:
    return s[offset:offset + length]

def str_replace(haystack: str, needle: str, new_needle: str) -> str:
    """Replace the first occurrence of a non-empty `needle`.

    Leaves `haystack` unchanged when there is no occurrence.
    """
    for i in range(len(haystack)):
        if haystack.startswith(needle, i):
            return haystack[:i] + new_needle + haystack[i + len(needle):]
    return haystack

def str_index_of(s: str, sub: str, offset: int) -> int:
    """First match position at or after `offset`, or -1."""
    if offset < 0 or offset > len(s):
        return -1
    for i in range(offset, len(s) + 1):
        if s.startswith(sub, i):
            return i
    return -1

# int()/str() refuse more than sys.get_int_max_str_digits() digits on newer
# interpreters, so long numerals are converted in chunks below that limit
_CHUNK = 4000

def str_to_nat(s: str) -> int:
    if not s or not all('0' <= c <= '9' for c in s):
        return -1
    n = 0
    for i in range(0, len(s), _CHUNK):
        chunk = s[i:i + _CHUNK]
        n = n * 10 ** len(chunk) + int(chunk)
    return n

def nat_to_str(i: int) -> str:
    if i < 0:
        return ""
    base = 10 ** _CHUNK
    chunks = []
    while i >= base:
        i, r = divmod(i, base)
        chunks.append(str(r).zfill(_CHUNK))
    chunks.append(str(i))
    return "".join(reversed(chunks))
