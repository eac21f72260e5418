"""Fixed-point pricing and accounting math.

All functions are pure: they take integers, return integers (or Decimal for
reporting metrics) and raise an EquilibriumError on any domain failure.
"""

from equilibrium.math.fees import (
    calculate_dynamic_fee,
    format_basis_points,
    format_fee_percentage,
    swap_fee_amount,
    total_weight_deviation,
)
from equilibrium.math.liquidity import (
    calculate_initial_lp_amount,
    calculate_lp_to_mint,
    calculate_withdrawal_amounts,
    calculate_withdrawal_ratio,
)
from equilibrium.math.positions import calculate_capital_efficiency, calculate_position_bounds
from equilibrium.math.stable_math import (
    calculate_invariant,
    calculate_invariant_bound,
    calculate_output_amount,
    get_output_reserve,
    invariant_residual,
)
from equilibrium.math.weights import calculate_weights

__all__ = [
    # Weights and fees
    "calculate_weights",
    "total_weight_deviation",
    "calculate_dynamic_fee",
    "swap_fee_amount",
    "format_basis_points",
    "format_fee_percentage",
    # StableSwap
    "calculate_invariant",
    "calculate_invariant_bound",
    "invariant_residual",
    "get_output_reserve",
    "calculate_output_amount",
    # Liquidity
    "calculate_initial_lp_amount",
    "calculate_lp_to_mint",
    "calculate_withdrawal_ratio",
    "calculate_withdrawal_amounts",
    # Positions
    "calculate_position_bounds",
    "calculate_capital_efficiency",
]
