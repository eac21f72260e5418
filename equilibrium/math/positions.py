"""Concentrated liquidity position bounds.

Positions declare a price window around parity. Prices are in thousandths
(1000 == 1.000) and each unit of concentration widens the window by 0.005 on
each side.
"""

from decimal import Decimal

from equilibrium.constants import MAX_PRICE, MIN_PRICE, PRICE_INCREMENT
from equilibrium.errors import InvalidPositionBounds
from equilibrium.safe_int import S


def calculate_position_bounds(center_price: int, concentration: int) -> tuple[int, int]:
    """Calculate the (min_price, max_price) window for a position.

    The lower bound saturates at zero.

    Args:
        center_price: Center of the window, in PRICE_DENOMINATOR units
        concentration: Number of 0.005 increments on each side

    Returns:
        (min_price, max_price) in PRICE_DENOMINATOR units
    """
    half_range = S(concentration) * PRICE_INCREMENT
    min_price = S(center_price).saturating_sub(half_range)
    max_price = S(center_price) + half_range
    return min_price.to_u64(), max_price.to_u64()


def calculate_capital_efficiency(min_price: int, max_price: int) -> Decimal:
    """Capital efficiency of a price window, as a percentage.

    Measured against the protocol's reference window [MIN_PRICE, MAX_PRICE]:
    a window of the same width scores 100, narrower windows score higher.

    Raises:
        InvalidPositionBounds: If the window is empty or inverted
    """
    if max_price <= min_price:
        raise InvalidPositionBounds(
            f"Price window [{min_price}, {max_price}] has no width"
        )
    theoretical_max_range = Decimal(MAX_PRICE - MIN_PRICE)
    return theoretical_max_range / Decimal(max_price - min_price) * 100
