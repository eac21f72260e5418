"""LP token issuance and proportional redemption."""

from collections.abc import Sequence

from equilibrium.constants import BASIS_POINTS
from equilibrium.errors import InvalidInputLength, SlippageExceeded
from equilibrium.math.stable_math import calculate_invariant
from equilibrium.models.state import PoolKind
from equilibrium.safe_int import S


def calculate_initial_lp_amount(kind: PoolKind, initial_amounts: Sequence[int]) -> int:
    """LP minted to the creator of a new pool.

    Seed pools mint the sum of the seeded amounts. Growth pools mint twice the
    smaller side, so an unbalanced seed does not earn credit for its excess.
    """
    if kind is PoolKind.GROWTH:
        return (S(min(initial_amounts)) * 2).to_u64()
    return S(sum(initial_amounts)).to_u64()


def calculate_lp_to_mint(
    old_reserves: Sequence[int],
    new_reserves: Sequence[int],
    deposit_amounts: Sequence[int],
    lp_supply: int,
    amplification: int,
) -> int:
    """Calculate LP tokens minted for a deposit.

    An empty pool (bootstrap) mints the plain sum of the deposit. Otherwise LP
    is issued in proportion to invariant growth:

        lp = lp_supply * (D_new - D_old) / D_old

    rounded down. Invariant growth below zero (rounding noise on dust
    deposits) mints nothing.

    Args:
        old_reserves: Reserves before the deposit is credited
        new_reserves: Reserves after the deposit is credited
        deposit_amounts: Amounts deposited, in asset order
        lp_supply: Current LP supply
        amplification: Amplification coefficient A

    Returns:
        LP amount to mint

    Raises:
        MathOverflow: If either invariant cannot be computed
    """
    if sum(old_reserves) == 0:
        return S(sum(deposit_amounts)).to_u64()

    d_old = S(calculate_invariant(old_reserves, amplification))
    d_new = S(calculate_invariant(new_reserves, amplification))

    growth = d_new.saturating_sub(d_old)
    return (S(lp_supply) * growth // d_old).to_u64()


def calculate_withdrawal_ratio(lp_amount: int, lp_supply: int) -> int:
    """Share of the pool redeemed by lp_amount, in basis points (rounded down).

    Raises:
        DivisionByZero: If lp_supply is zero
    """
    return (S(lp_amount) * BASIS_POINTS // S(lp_supply)).value


def calculate_withdrawal_amounts(
    reserves: Sequence[int],
    lp_amount: int,
    lp_supply: int,
    min_amounts: Sequence[int],
) -> tuple[int, ...]:
    """Calculate the per-asset amounts paid out for burning lp_amount.

    The ratio is truncated to basis points before it is applied to each
    reserve, so a partial withdrawal may leave up to 1 bp of its share in the
    pool. A full withdrawal (lp_amount == lp_supply) has ratio 10000 and pays
    out every reserve exactly.

    Args:
        reserves: Current reserves, in asset order
        lp_amount: LP tokens being burned
        lp_supply: Current LP supply
        min_amounts: Caller's minimum acceptable amount per asset

    Returns:
        Amounts to transfer out, in asset order

    Raises:
        InvalidInputLength: If min_amounts doesn't match the reserves
        SlippageExceeded: If any amount falls below its minimum
    """
    if len(min_amounts) != len(reserves):
        raise InvalidInputLength(
            f"Expected {len(reserves)} minimum amounts, got {len(min_amounts)}"
        )

    ratio = calculate_withdrawal_ratio(lp_amount, lp_supply)

    amounts = []
    for i, (reserve, minimum) in enumerate(zip(reserves, min_amounts)):
        amount = (S(reserve) * ratio // BASIS_POINTS).to_u64()
        if amount < minimum:
            raise SlippageExceeded(f"Asset {i}: amount {amount} below minimum {minimum}")
        amounts.append(amount)

    return tuple(amounts)
