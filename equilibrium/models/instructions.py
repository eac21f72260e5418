"""Pydantic models for engine instruction payloads.

Payloads are validated at the boundary: amounts must be non-negative and fit
in u64, and unknown fields are rejected. Arity against the target pool kind is
checked by the engine, which knows the pool.
"""

from typing import Annotated, Any, TypeVar

from pydantic import BaseModel, Field, ValidationError

from equilibrium.constants import U64_MAX
from equilibrium.errors import InvalidInstructionData

# Unsigned 64-bit token amount
U64 = Annotated[int, Field(ge=0, le=U64_MAX, description="Unsigned 64-bit amount")]

# Asset identifier; "/" is reserved for addressing
AssetId = Annotated[str, Field(min_length=1, max_length=64, pattern=r"^[A-Za-z0-9_.:-]+$")]

# Pool address, e.g. "pool/seed/USDC/USDT/DAI"
PoolAddress = Annotated[str, Field(pattern=r"^pool/[a-z]+(/[A-Za-z0-9_.:-]+)+$")]


class Instruction(BaseModel):
    """Base for all instruction payloads."""

    model_config = {"frozen": True, "extra": "forbid", "populate_by_name": True}


class CreateSeedPool(Instruction):
    """Create a three-asset Seed pool and seed its reserves."""

    assets: list[AssetId] = Field(description="Asset identifiers, in reserve order")
    initial_amounts: list[U64] = Field(
        alias="initialAmounts", description="Initial reserve per asset"
    )
    amplification: int | None = Field(
        default=None, description="Amplification coefficient (config default if omitted)"
    )
    target_weights: list[int] | None = Field(
        default=None,
        alias="targetWeights",
        description="Target weights in basis points (config default if omitted)",
    )


class CreateGrowthPool(Instruction):
    """Create a two-asset Growth pool pegged against an existing Seed pool."""

    seed_pool: PoolAddress = Field(alias="seedPool", description="Address of the Seed pool")
    derived_asset: AssetId = Field(
        alias="derivedAsset", description="Asset derived from the Seed pool"
    )
    partner_asset: AssetId = Field(alias="partnerAsset", description="Paired asset")
    initial_amount_0: U64 = Field(alias="initialAmount0", description="Initial derived reserve")
    initial_amount_1: U64 = Field(alias="initialAmount1", description="Initial partner reserve")
    amplification: int | None = Field(
        default=None, description="Amplification coefficient (config default if omitted)"
    )


class Deposit(Instruction):
    """Add liquidity to a pool and open or extend a concentrated position."""

    amounts: list[U64] = Field(description="Amount per asset, in pool asset order")
    min_lp_amount: U64 = Field(
        default=0, alias="minLpAmount", description="Minimum LP tokens to receive"
    )
    concentration: U64 = Field(description="Price window half-width, in 0.005 increments")


class Withdraw(Instruction):
    """Burn LP tokens for a proportional share of every reserve."""

    lp_amount: U64 = Field(alias="lpAmount", description="LP tokens to burn")
    min_amounts: list[U64] = Field(
        alias="minAmounts", description="Minimum amount per asset, in pool asset order"
    )


class QuoteSwap(Instruction):
    """Price a swap without executing it."""

    asset_in: AssetId = Field(alias="assetIn")
    asset_out: AssetId = Field(alias="assetOut")
    amount_in: U64 = Field(alias="amountIn")


class Swap(QuoteSwap):
    """Trade amount_in of asset_in for at least min_amount_out of asset_out."""

    min_amount_out: U64 = Field(
        default=0, alias="minAmountOut", description="Minimum output accepted"
    )


T = TypeVar("T", bound=Instruction)


def parse_instruction(model: type[T], payload: dict[str, Any]) -> T:
    """Validate a raw payload into an instruction model.

    Raises:
        InvalidInstructionData: If the payload does not validate
    """
    try:
        return model.model_validate(payload)
    except ValidationError as err:
        raise InvalidInstructionData(
            f"{model.__name__}: {err.error_count()} validation error(s)"
        ) from err
