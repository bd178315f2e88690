"""
Safe numeric coercion for loosely typed character data.

Character records come from the host as JSON written by sheets, old plugin
versions and hand-edited compendiums, so any numeric field may turn up as an
int, a float, a numeric string, an empty string, None, or something stranger.
Everything in the wound engine goes through to_int() so that malformed input
degrades to 0 instead of raising.
"""

from __future__ import annotations

import math
from typing import Any


def to_int(value: Any, fallback: int = 0) -> int:
    """Convert *value* to an int, truncating toward zero.

    Ints pass through, bools count as 0/1, finite floats and numeric
    strings (surrounding whitespace allowed) are truncated. Anything else,
    including empty or non-numeric strings, NaN, infinities and None, returns
    *fallback*.

    >>> to_int("42")
    42
    >>> to_int(" -3.7 ")
    -3
    >>> to_int("abc")
    0
    """
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return fallback
        try:
            value = float(value)
        except ValueError:
            return fallback
    if isinstance(value, float):
        if not math.isfinite(value):
            return fallback
        return math.trunc(value)
    return fallback


def clamp(n: int, lo: int, hi: int) -> int:
    """Return n limited to the closed range [lo, hi]."""
    return max(lo, min(hi, n))
