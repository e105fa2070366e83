"""Stable 32-bit string hashes.

Python's built-in ``hash()`` is salted per process, so bucket assignments
that must survive restarts use these instead. Both emulate signed 32-bit
integer overflow and return the absolute value.
"""

_UINT32 = 0xFFFFFFFF


def _to_int32(value: int) -> int:
    value &= _UINT32
    return value - 0x100000000 if value & 0x80000000 else value


def djb2_hash(text: str) -> int:
    """DJB2 (xor variant) hash used for lexical bucket assignment."""
    h = 5381
    for ch in text:
        h = _to_int32((h << 5) + h) ^ ord(ch)
    return abs(h)


def java_string_hash(text: str) -> int:
    """``s[0]*31^(n-1) + ... + s[n-1]`` with int32 wraparound, as in Java."""
    h = 0
    for ch in text:
        h = _to_int32((h << 5) - h + ord(ch))
    return abs(h)
