"""Checked integers for pool arithmetic.

Token amounts are unsigned 64-bit values, but the invariant math multiplies
several of them together. SafeInt keeps intermediates exact (Python ints never
wrap) and checks the operations that can leave the representable range:

    from equilibrium.safe_int import S

    def share(reserve: int, ratio: int) -> int:
        return (S(reserve) * S(ratio) // S(BASIS_POINTS)).to_u64()

Every failure here is a MathOverflow.
"""

from __future__ import annotations

import math
from functools import total_ordering

from equilibrium.constants import U64_MAX
from equilibrium.errors import MathOverflow


class SafeIntError(MathOverflow):
    """Base class for checked arithmetic failures."""


class DivisionByZero(SafeIntError):
    """Divisor was zero."""


class Underflow(SafeIntError):
    """Result would be negative."""


class U64Overflow(SafeIntError):
    """Value is outside [0, 2^64 - 1]."""


def _unwrap(other: SafeInt | int) -> int:
    return other.value if isinstance(other, SafeInt) else other


@total_ordering
class SafeInt:
    """Non-wrapping integer whose subtraction and division are checked.

    Subtraction may not go below zero. The u64 bound is only enforced by
    to_u64(), where a value is about to become a reserve or a balance.
    """

    __slots__ = ("value",)
    value: int

    def __init__(self, value: int | SafeInt) -> None:
        if isinstance(value, SafeInt):
            value = value.value
        if isinstance(value, bool) or not isinstance(value, int):
            raise TypeError(f"SafeInt requires int, got {type(value).__name__}")
        self.value = value

    def __repr__(self) -> str:
        return f"S({self.value})"

    def __hash__(self) -> int:
        return hash(self.value)

    def __int__(self) -> int:
        return self.value

    def __bool__(self) -> bool:
        return self.value != 0

    def __eq__(self, other: object) -> bool:
        if isinstance(other, (SafeInt, int)):
            return self.value == _unwrap(other)
        return NotImplemented

    def __lt__(self, other: SafeInt | int) -> bool:
        return self.value < _unwrap(other)

    def __add__(self, other: SafeInt | int) -> SafeInt:
        return SafeInt(self.value + _unwrap(other))

    __radd__ = __add__

    def __mul__(self, other: SafeInt | int) -> SafeInt:
        return SafeInt(self.value * _unwrap(other))

    __rmul__ = __mul__

    def __sub__(self, other: SafeInt | int) -> SafeInt:
        rhs = _unwrap(other)
        if rhs > self.value:
            raise Underflow(f"{self.value} - {rhs} is negative")
        return SafeInt(self.value - rhs)

    def __floordiv__(self, other: SafeInt | int) -> SafeInt:
        return SafeInt(self.value // self._divisor(other))

    def ceiling_div(self, other: SafeInt | int) -> SafeInt:
        """Divide, rounding toward positive infinity."""
        return SafeInt(-(-self.value // self._divisor(other)))

    def _divisor(self, other: SafeInt | int) -> int:
        rhs = _unwrap(other)
        if rhs == 0:
            raise DivisionByZero(f"{self.value} divided by zero")
        return rhs

    def saturating_sub(self, other: SafeInt | int) -> SafeInt:
        """Subtract, flooring at zero."""
        return SafeInt(max(0, self.value - _unwrap(other)))

    def clamp(self, low: int, high: int) -> SafeInt:
        return SafeInt(min(max(self.value, low), high))

    def sqrt(self) -> SafeInt:
        """Floor square root.

        Raises:
            Underflow: If the value is negative
        """
        if self.value < 0:
            raise Underflow(f"square root of {self.value}")
        return SafeInt(math.isqrt(self.value))

    def sqrt_up(self) -> SafeInt:
        """Ceiling square root."""
        root = self.sqrt()
        return root if root * root == self else root + 1

    def to_u64(self) -> int:
        """Return the value as a token amount.

        Raises:
            U64Overflow: If the value is negative or above 2^64 - 1
        """
        if not 0 <= self.value <= U64_MAX:
            raise U64Overflow(f"{self.value} does not fit in u64")
        return self.value


def to_u64(value: int) -> int:
    """Check that a plain int is a valid token amount."""
    return SafeInt(value).to_u64()


S = SafeInt
