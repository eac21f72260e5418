"""Response models for the pool API."""

from __future__ import annotations

from pydantic import BaseModel, Field

from equilibrium.engine import DepositResult, PoolCreated, PoolStats, SwapQuote, WithdrawResult
from equilibrium.models.state import GrowthPool, PoolState, UserPosition


class PoolResponse(BaseModel):
    """A pool's persisted state."""

    address: str
    kind: str
    assets: list[str]
    reserves: list[int]
    target_weights: list[int] = Field(alias="targetWeights")
    amplification: int
    total_fees: int = Field(alias="totalFees")
    lp_token: str = Field(alias="lpToken")
    last_update: int = Field(alias="lastUpdate")
    seed_pool: str | None = Field(default=None, alias="seedPool")

    model_config = {"populate_by_name": True}

    @classmethod
    def from_state(cls, pool: PoolState) -> PoolResponse:
        return cls(
            address=pool.address,
            kind=pool.kind.value,
            assets=list(pool.assets),
            reserves=list(pool.reserves),
            target_weights=list(pool.target_weights),
            amplification=pool.amplification,
            total_fees=pool.total_fees,
            lp_token=pool.lp_token,
            last_update=pool.last_update,
            seed_pool=pool.seed_pool.address if isinstance(pool, GrowthPool) else None,
        )


class PoolStatsResponse(BaseModel):
    """A pool's current weights, fee and invariant."""

    address: str
    kind: str
    assets: list[str]
    reserves: list[int]
    current_weights: list[int] = Field(alias="currentWeights")
    target_weights: list[int] = Field(alias="targetWeights")
    fee: int = Field(description="Dynamic fee in parts per thousand")
    fee_percentage: str = Field(alias="feePercentage")
    amplification: int
    lp_supply: int = Field(alias="lpSupply")
    invariant: int | None
    total_fees: int = Field(alias="totalFees")
    seed_pool: str | None = Field(default=None, alias="seedPool")

    model_config = {"populate_by_name": True}

    @classmethod
    def from_stats(cls, stats: PoolStats) -> PoolStatsResponse:
        return cls(
            address=stats.address,
            kind=stats.kind.value,
            assets=list(stats.assets),
            reserves=list(stats.reserves),
            current_weights=list(stats.current_weights),
            target_weights=list(stats.target_weights),
            fee=stats.fee,
            fee_percentage=stats.fee_percentage,
            amplification=stats.amplification,
            lp_supply=stats.lp_supply,
            invariant=stats.invariant,
            total_fees=stats.total_fees,
            seed_pool=stats.seed_pool,
        )


class PositionResponse(BaseModel):
    """A user's position in one pool."""

    owner: str
    pool: str
    lp_amount: int = Field(alias="lpAmount")
    min_price: int = Field(alias="minPrice")
    max_price: int = Field(alias="maxPrice")
    is_active: bool = Field(alias="isActive")
    capital_efficiency: str | None = Field(alias="capitalEfficiency")
    created_at: int = Field(alias="createdAt")
    last_update: int = Field(alias="lastUpdate")

    model_config = {"populate_by_name": True}

    @classmethod
    def from_state(cls, position: UserPosition) -> PositionResponse:
        efficiency = None
        if position.max_price > position.min_price:
            efficiency = str(position.capital_efficiency)
        return cls(
            owner=position.owner,
            pool=position.pool.address,
            lp_amount=position.lp_amount,
            min_price=position.min_price,
            max_price=position.max_price,
            is_active=position.is_active,
            capital_efficiency=efficiency,
            created_at=position.created_at,
            last_update=position.last_update,
        )


class PoolCreatedResponse(BaseModel):
    pool: PoolResponse
    lp_minted: int = Field(alias="lpMinted")

    model_config = {"populate_by_name": True}

    @classmethod
    def from_result(cls, result: PoolCreated) -> PoolCreatedResponse:
        return cls(pool=PoolResponse.from_state(result.pool), lp_minted=result.lp_minted)


class DepositResponse(BaseModel):
    pool: PoolResponse
    position: PositionResponse
    lp_minted: int = Field(alias="lpMinted")

    model_config = {"populate_by_name": True}

    @classmethod
    def from_result(cls, result: DepositResult) -> DepositResponse:
        return cls(
            pool=PoolResponse.from_state(result.pool),
            position=PositionResponse.from_state(result.position),
            lp_minted=result.lp_minted,
        )


class WithdrawResponse(BaseModel):
    pool: PoolResponse
    position: PositionResponse
    amounts: list[int]

    model_config = {"populate_by_name": True}

    @classmethod
    def from_result(cls, result: WithdrawResult) -> WithdrawResponse:
        return cls(
            pool=PoolResponse.from_state(result.pool),
            position=PositionResponse.from_state(result.position),
            amounts=list(result.amounts),
        )


class QuoteResponse(BaseModel):
    """A priced swap."""

    asset_in: str = Field(alias="assetIn")
    asset_out: str = Field(alias="assetOut")
    amount_in: int = Field(alias="amountIn")
    amount_out: int = Field(alias="amountOut")
    fee: int
    fee_amount: int = Field(alias="feeAmount")

    model_config = {"populate_by_name": True}

    @classmethod
    def from_quote(cls, quote: SwapQuote) -> QuoteResponse:
        return cls(
            asset_in=quote.asset_in,
            asset_out=quote.asset_out,
            amount_in=quote.amount_in,
            amount_out=quote.amount_out,
            fee=quote.fee,
            fee_amount=quote.fee_amount,
        )


class SwapResponse(BaseModel):
    pool: PoolResponse
    quote: QuoteResponse
