"""StableSwap invariant and swap math.

Core pricing functions for the stable-value pools, in integer fixed point.
The invariant is the Curve StableSwap form with Ann = A * n^n:

    Ann * sum(x_i) + D = Ann * D + D^(n+1) / (n^n * prod(x_i))

D is found by Newton-Raphson iteration. Swap pricing holds D constant over
the two traded reserves and solves the resulting quadratic in closed form
with an integer square root, so results are identical on every platform.

IMPORTANT: Unsigned arithmetic goes through SafeInt; only the signed invariant
residual uses plain ints. Any domain failure (zero reserve, division by zero,
negative intermediate, non-convergence) raises a MathOverflow subclass;
nothing here returns a sentinel.
"""

import math
from collections.abc import Sequence

from equilibrium.constants import MAX_ITERATIONS
from equilibrium.errors import (
    InvalidAmplification,
    InvalidSwap,
    InvariantDidNotConverge,
    ZeroReserveError,
)
from equilibrium.math.fees import swap_fee_amount
from equilibrium.safe_int import S, SafeInt


def _check_amplification(amplification: int) -> None:
    if amplification < 1:
        raise InvalidAmplification(f"Amplification must be >= 1, got {amplification}")


def calculate_invariant(reserves: Sequence[int], amplification: int) -> int:
    """Calculate StableSwap invariant D using Newton-Raphson iteration.

    Algorithm:
        1. Initial guess: D = sum(reserves)
        2. D_P = D^(n+1) / (n^n * prod(reserves)), built one reserve at a time
        3. D' = (Ann * sum + D_P * n) * D / ((Ann - 1) * D + (n + 1) * D_P)
        4. Stop once |D' - D| <= 1; at most 255 iterations

    For n equal reserves r the first step lands exactly on D = n * r.

    Args:
        reserves: Pool reserves, all strictly positive
        amplification: Amplification coefficient A (>= 1)

    Returns:
        The converged invariant D

    Raises:
        ZeroReserveError: If reserves is empty or any reserve is zero
        InvalidAmplification: If amplification < 1
        InvariantDidNotConverge: If iteration doesn't converge
    """
    n_coins = len(reserves)
    if n_coins == 0:
        raise ZeroReserveError("Cannot compute the invariant of an empty pool")
    _check_amplification(amplification)

    for i, reserve in enumerate(reserves):
        if reserve <= 0:
            raise ZeroReserveError(f"Reserve at index {i} must be positive")

    n = S(n_coins)
    sum_reserves = S(sum(reserves))
    ann = S(amplification) * S(n_coins**n_coins)

    d = sum_reserves
    for _ in range(MAX_ITERATIONS):
        d_p = d
        for reserve in reserves:
            d_p = (d_p * d) // (S(reserve) * n)

        numerator = (ann * sum_reserves + d_p * n) * d
        denominator = (ann - 1) * d + S(n_coins + 1) * d_p
        d_next = numerator // denominator

        if abs(d_next.value - d.value) <= 1:
            return d_next.value

        d = d_next

    raise InvariantDidNotConverge(
        f"Invariant did not converge after {MAX_ITERATIONS} iterations"
    )


def invariant_residual(reserves: Sequence[int], amplification: int, invariant: int) -> int:
    """Evaluate the invariant equation at a candidate D, cleared of fractions.

        (Ann * sum(x_i) - (Ann - 1) * D) * n^n * prod(x_i) - D^(n+1)

    The residual falls as D grows and is zero at the exact invariant, so it is
    non-negative exactly when D does not exceed the pool's true invariant.
    Signed, so it works on plain ints rather than SafeInt.
    """
    n_coins = len(reserves)
    ann = amplification * n_coins**n_coins
    weighted_sum = ann * sum(reserves) - (ann - 1) * invariant
    return weighted_sum * n_coins**n_coins * math.prod(reserves) - invariant ** (n_coins + 1)


def calculate_invariant_bound(reserves: Sequence[int], amplification: int) -> int:
    """Smallest integer strictly greater than the exact invariant.

    calculate_invariant() stops within one unit of the true D, on either side.
    Pricing a swap against this bound instead guarantees the traded reserves
    end up on a strictly higher curve than they started on.

    Raises:
        Same as calculate_invariant()
    """
    d = calculate_invariant(reserves, amplification)
    while invariant_residual(reserves, amplification, d) >= 0:
        d += 1
    while invariant_residual(reserves, amplification, d - 1) < 0:
        d -= 1
    return d


def get_output_reserve(new_reserve_in: int, invariant: int, amplification: int) -> int:
    """Solve the two-asset invariant for the output reserve.

    With x the input reserve and Ann = 4A, holding D fixed gives

        y^2 - b*y - c = 0,  b = D - x - D/Ann,  c = D^3 / (4 * Ann * x)

    whose positive root is y = (b + sqrt(b^2 + 4c)) / 2. c, the square root
    and the halving all round up and D/Ann rounds down, which puts the
    estimate at or just above the root. It is then stepped to the smallest y
    whose exact invariant with x is still at least D.

    Args:
        new_reserve_in: Input reserve after the trade is credited
        invariant: Invariant D the output reserve must preserve
        amplification: Amplification coefficient A

    Returns:
        The smallest output reserve (at least 1) that preserves D

    Raises:
        ZeroReserveError: If new_reserve_in is zero
    """
    if new_reserve_in <= 0:
        raise ZeroReserveError("Input reserve must be positive")
    _check_amplification(amplification)

    d = S(invariant)
    x = S(new_reserve_in)
    ann = S(amplification) * S(4)

    c = (d * d * d).ceiling_div(S(4) * ann * x)
    # b turns negative once the input side outweighs the invariant
    b = d.value - x.value - (d // ann).value

    discriminant = SafeInt(b * b) + S(4) * c
    root = discriminant.sqrt_up()
    y = max((root + b).ceiling_div(2).value, 1)

    while invariant_residual([new_reserve_in, y], amplification, invariant) < 0:
        y += 1
    while y > 1 and invariant_residual([new_reserve_in, y - 1], amplification, invariant) >= 0:
        y -= 1
    return y


def calculate_output_amount(
    amount_in: int,
    reserve_in: int,
    reserve_out: int,
    fee: int,
    amplification: int,
) -> int:
    """Calculate output amount for a swap between two reserves.

    Only the two traded reserves take part in the invariant; any other pool
    reserves are held fixed.

    Algorithm:
        1. D = smallest integer above invariant([reserve_in, reserve_out])
        2. amount_in_after_fee = amount_in - amount_in * fee / 1000
        3. Find the smallest output reserve that keeps D at reserve_in + amount_in_after_fee
        4. Return reserve_out - new_reserve_out

    Pricing against a bound strictly above the current invariant means every
    swap leaves the two reserves on a higher curve. A trade followed by its
    reverse therefore never returns the full input, whatever the fee.

    Args:
        amount_in: Input amount, before fee
        reserve_in: Reserve of the input asset
        reserve_out: Reserve of the output asset
        fee: Swap fee in parts per thousand
        amplification: Amplification coefficient A

    Returns:
        Output amount

    Raises:
        ZeroReserveError: If either reserve is zero
        InvalidSwap: If the result is negative or would drain reserve_out
        MathOverflow: On any other arithmetic failure
    """
    if reserve_in == 0 or reserve_out == 0:
        raise ZeroReserveError("Both swap reserves must be positive")

    invariant = calculate_invariant_bound([reserve_in, reserve_out], amplification)

    amount_in_after_fee = S(amount_in) - swap_fee_amount(amount_in, fee)
    new_reserve_in = S(reserve_in) + amount_in_after_fee

    new_reserve_out = get_output_reserve(new_reserve_in.value, invariant, amplification)

    amount_out = reserve_out - new_reserve_out
    if amount_out < 0:
        raise InvalidSwap(
            f"Negative output: reserve_out={reserve_out}, new_reserve_out={new_reserve_out}"
        )
    if amount_out >= reserve_out:
        raise InvalidSwap(f"Output {amount_out} would drain reserve {reserve_out}")

    return amount_out
