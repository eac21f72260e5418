"""Pool state and instruction models."""

from equilibrium.models.instructions import (
    CreateGrowthPool,
    CreateSeedPool,
    Deposit,
    Instruction,
    QuoteSwap,
    Swap,
    Withdraw,
    parse_instruction,
)
from equilibrium.models.state import (
    GrowthPool,
    PoolKey,
    PoolKind,
    PoolState,
    PositionKey,
    SeedPool,
    UserPosition,
)

__all__ = [
    # State
    "PoolKind",
    "PoolKey",
    "PositionKey",
    "PoolState",
    "SeedPool",
    "GrowthPool",
    "UserPosition",
    # Instructions
    "Instruction",
    "CreateSeedPool",
    "CreateGrowthPool",
    "Deposit",
    "Withdraw",
    "QuoteSwap",
    "Swap",
    "parse_instruction",
]
