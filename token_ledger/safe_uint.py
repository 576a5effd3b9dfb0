"""
token_ledger.safe_uint
======================

Checked U256 arithmetic for ledger amounts.

- Integer-only; floats and bools are rejected.
- Checked variants raise instead of wrapping: `AmountOutOfRange` for inputs
  outside [0, U256_MAX], `ArithmeticOverflow` when a result leaves the range.
"""

from __future__ import annotations

from typing import Final

from .errors import AmountOutOfRange, ArithmeticOverflow

U256_MAX: Final[int] = 2**256 - 1


def require_u256(*values: object) -> None:
    """Raise AmountOutOfRange unless every value is an int in [0, U256_MAX]."""
    for v in values:
        if isinstance(v, bool) or not isinstance(v, int) or v < 0 or v > U256_MAX:
            raise AmountOutOfRange(v)


def u256_add(x: int, y: int) -> int:
    """Checked add: raise on overflow."""
    require_u256(x, y)
    s = x + y
    if s > U256_MAX:
        raise ArithmeticOverflow("add", x, y)
    return s


def u256_sub(x: int, y: int) -> int:
    """Checked sub: raise on underflow (y > x)."""
    require_u256(x, y)
    if y > x:
        raise ArithmeticOverflow("sub", x, y)
    return x - y


__all__ = ["U256_MAX", "require_u256", "u256_add", "u256_sub"]
