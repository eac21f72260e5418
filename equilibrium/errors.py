"""Equilibrium error classes.

Every error is terminal: the failing operation is aborted before any state
is committed, and the caller resubmits with corrected parameters.
"""

from __future__ import annotations

from enum import Enum
from typing import ClassVar


class ErrorCode(str, Enum):
    """Stable error identifiers reported to callers."""

    INVALID_INSTRUCTION_DATA = "InvalidInstructionData"
    MATH_OVERFLOW = "MathOverflow"
    SLIPPAGE_EXCEEDED = "SlippageExceeded"
    INVALID_TOKEN_MINT = "InvalidTokenMint"
    INVALID_WEIGHTS = "InvalidWeights"
    INVALID_INPUT_LENGTH = "InvalidInputLength"
    INVALID_POOL_TYPE = "InvalidPoolType"
    INVALID_SWAP = "InvalidSwap"
    INVALID_POSITION_BOUNDS = "InvalidPositionBounds"
    INSUFFICIENT_LIQUIDITY = "InsufficientLiquidity"
    INVALID_AMPLIFICATION = "InvalidAmplification"
    POSITION_NOT_ACTIVE = "PositionNotActive"
    UNAUTHORIZED = "Unauthorized"


class EquilibriumError(Exception):
    """Base error for pool engine operations.

    Attributes:
        code: Stable identifier of the error kind
        detail: Context-specific message, or None for the default message
    """

    code: ClassVar[ErrorCode]
    default_message: ClassVar[str] = "Equilibrium error"

    def __init__(self, detail: str | None = None) -> None:
        self.detail = detail
        super().__init__(detail or self.default_message)

    @property
    def message(self) -> str:
        return self.detail or self.default_message


class InvalidInstructionData(EquilibriumError):
    """Instruction payload is malformed."""

    code = ErrorCode.INVALID_INSTRUCTION_DATA
    default_message = "Invalid instruction data"


class MathOverflow(EquilibriumError, ArithmeticError):
    """Arithmetic domain or overflow failure."""

    code = ErrorCode.MATH_OVERFLOW
    default_message = "Math overflow"


class ZeroReserveError(MathOverflow):
    """A reserve is zero, so the pool cannot be priced."""

    pass


class InvariantDidNotConverge(MathOverflow):
    """Newton-Raphson iteration for the invariant D did not converge."""

    pass


class SlippageExceeded(EquilibriumError):
    """Computed amount violates the caller's bound."""

    code = ErrorCode.SLIPPAGE_EXCEEDED
    default_message = "Slippage tolerance exceeded"


class InvalidTokenMint(EquilibriumError):
    """Asset identifier does not match the pool configuration."""

    code = ErrorCode.INVALID_TOKEN_MINT
    default_message = "Invalid token mint"


class InvalidWeights(EquilibriumError):
    """Target weights are absent or do not sum to 10000."""

    code = ErrorCode.INVALID_WEIGHTS
    default_message = "Invalid weights, must sum to 10000"


class InvalidInputLength(EquilibriumError):
    """Amount vector arity does not match the pool kind."""

    code = ErrorCode.INVALID_INPUT_LENGTH
    default_message = "Invalid input length"


class InvalidPoolType(EquilibriumError):
    """Pool kind mismatch."""

    code = ErrorCode.INVALID_POOL_TYPE
    default_message = "Invalid pool type"


class InvalidSwap(EquilibriumError):
    """Swap output computation failed."""

    code = ErrorCode.INVALID_SWAP
    default_message = "Invalid swap"


class InvalidPositionBounds(EquilibriumError):
    """Position price range is empty or inverted."""

    code = ErrorCode.INVALID_POSITION_BOUNDS
    default_message = "Invalid position bounds"


class InsufficientLiquidity(EquilibriumError):
    """Withdrawal exceeds the LP balance held."""

    code = ErrorCode.INSUFFICIENT_LIQUIDITY
    default_message = "Insufficient liquidity"


class InvalidAmplification(EquilibriumError):
    """Amplification coefficient must be at least 1."""

    code = ErrorCode.INVALID_AMPLIFICATION
    default_message = "Invalid amplification coefficient"


class PositionNotActive(EquilibriumError):
    """Position does not exist or holds no liquidity."""

    code = ErrorCode.POSITION_NOT_ACTIVE
    default_message = "Position not active"


class Unauthorized(EquilibriumError):
    """Caller is not allowed to perform the operation."""

    code = ErrorCode.UNAUTHORIZED
    default_message = "Unauthorized"
