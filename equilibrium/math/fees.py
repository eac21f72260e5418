"""Dynamic swap fee model.

The fee grows with how far the pool has drifted from its target weights:

    fee = BASE_FEE + (total_deviation_bps / 100) * FEE_MULTIPLIER / 10

clamped to [BASE_FEE, MAX_FEE] parts per thousand (0.1% to 0.5%). A pool
sitting exactly on target charges the base fee; every 10 percentage points
of summed absolute deviation adds 0.1%.
"""

from collections.abc import Sequence
from decimal import Decimal

from equilibrium.constants import BASE_FEE, FEE_DENOMINATOR, FEE_MULTIPLIER, MAX_FEE
from equilibrium.errors import InvalidInputLength
from equilibrium.safe_int import S


def total_weight_deviation(
    current_weights: Sequence[int], target_weights: Sequence[int]
) -> int:
    """Sum of absolute per-asset deviations, in basis points.

    Raises:
        InvalidInputLength: If the weight vectors differ in length
    """
    if len(current_weights) != len(target_weights):
        raise InvalidInputLength(
            f"Weight vectors differ in length: {len(current_weights)} != {len(target_weights)}"
        )
    return sum(abs(current - target) for current, target in zip(current_weights, target_weights))


def calculate_dynamic_fee(current_weights: Sequence[int], target_weights: Sequence[int]) -> int:
    """Calculate the swap fee from the pool's weight deviation.

    Args:
        current_weights: Current weights in basis points
        target_weights: Target weights in basis points

    Returns:
        Fee in parts per thousand, within [BASE_FEE, MAX_FEE]
    """
    deviation_percentage = total_weight_deviation(current_weights, target_weights) // 100
    fee = S(BASE_FEE) + S(deviation_percentage) * FEE_MULTIPLIER // 10
    return fee.clamp(BASE_FEE, MAX_FEE).value


def swap_fee_amount(amount_in: int, fee: int) -> int:
    """Portion of amount_in retained as fee (rounded down)."""
    return (S(amount_in) * S(fee) // FEE_DENOMINATOR).value


def format_basis_points(basis_points: int) -> str:
    """Format basis points as a percentage string, e.g. 4500 -> "45.00%"."""
    whole, fraction = divmod(basis_points, 100)
    return f"{whole}.{fraction:02d}%"


def format_fee_percentage(fee: int) -> str:
    """Format a per-thousand fee as a percentage string, e.g. 1 -> "0.1%"."""
    return f"{Decimal(fee) * 100 / FEE_DENOMINATOR}%"
