"""Current weight distribution of a pool."""

from collections.abc import Sequence

from equilibrium.constants import BASIS_POINTS
from equilibrium.safe_int import S


def calculate_weights(reserves: Sequence[int]) -> tuple[int, ...]:
    """Calculate each reserve's share of the pool in basis points.

    Shares are truncated, so the weights may sum to less than 10000 by at
    most len(reserves) - 1. An empty pool (all reserves zero) has all-zero
    weights.

    Args:
        reserves: Current reserves, in asset order

    Returns:
        Weights in basis points, in the same order
    """
    total = S(sum(reserves))
    if total == 0:
        return tuple(0 for _ in reserves)

    return tuple((S(reserve) * BASIS_POINTS // total).value for reserve in reserves)
