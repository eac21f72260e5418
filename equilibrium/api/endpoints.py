"""API endpoints for the pool engine.

Pools are addressed by kind and a comma separated asset list, e.g.
/pools/seed/USDC,USDT,DAI. The caller's identity is taken from the X-Caller
header.
"""

from typing import Annotated

import structlog
from fastapi import APIRouter, Depends, Header, HTTPException

from equilibrium.api.schemas import (
    DepositResponse,
    PoolCreatedResponse,
    PoolResponse,
    PoolStatsResponse,
    PositionResponse,
    QuoteResponse,
    SwapResponse,
    WithdrawResponse,
)
from equilibrium.engine import PoolEngine, get_default_engine
from equilibrium.models.instructions import (
    CreateGrowthPool,
    CreateSeedPool,
    Deposit,
    QuoteSwap,
    Swap,
    Withdraw,
)
from equilibrium.models.state import PoolKey, PoolKind

logger = structlog.get_logger()

router = APIRouter()

Caller = Annotated[str, Header(alias="X-Caller", min_length=1)]


def get_engine() -> PoolEngine:
    """Dependency provider for the engine instance.

    Override this in tests to inject an engine over test collaborators:
        app.dependency_overrides[get_engine] = lambda: engine

    Returns:
        The engine that handles pool instructions.
    """
    return get_default_engine()


def pool_key(kind: PoolKind, assets: str) -> PoolKey:
    """Build a pool key from the {kind}/{assets} path segments."""
    return PoolKey(kind=kind, assets=tuple(asset.strip() for asset in assets.split(",")))


Engine = Annotated[PoolEngine, Depends(get_engine)]
Key = Annotated[PoolKey, Depends(pool_key)]


@router.post("/pools/seed", status_code=201)
async def create_seed_pool(
    instruction: CreateSeedPool, caller: Caller, engine: Engine
) -> PoolCreatedResponse:
    """Create a three-asset Seed pool. Only the configured authority may call this."""
    result = engine.create_seed_pool(caller, instruction)
    return PoolCreatedResponse.from_result(result)


@router.post("/pools/growth", status_code=201)
async def create_growth_pool(
    instruction: CreateGrowthPool, caller: Caller, engine: Engine
) -> PoolCreatedResponse:
    """Create a two-asset Growth pool against an existing Seed pool."""
    result = engine.create_growth_pool(caller, instruction)
    return PoolCreatedResponse.from_result(result)


@router.get("/pools/{kind}/{assets}")
async def get_pool(key: Key, engine: Engine) -> PoolResponse:
    return PoolResponse.from_state(engine.get_pool(key))


@router.get("/pools/{kind}/{assets}/stats")
async def get_pool_stats(key: Key, engine: Engine) -> PoolStatsResponse:
    """Current weights, dynamic fee and invariant of a pool."""
    return PoolStatsResponse.from_stats(engine.pool_stats(key))


@router.post("/pools/{kind}/{assets}/deposit")
async def deposit(
    key: Key, instruction: Deposit, caller: Caller, engine: Engine
) -> DepositResponse:
    return DepositResponse.from_result(engine.deposit(caller, key, instruction))


@router.post("/pools/{kind}/{assets}/withdraw")
async def withdraw(
    key: Key, instruction: Withdraw, caller: Caller, engine: Engine
) -> WithdrawResponse:
    return WithdrawResponse.from_result(engine.withdraw(caller, key, instruction))


@router.post("/pools/{kind}/{assets}/quote")
async def quote_swap(key: Key, instruction: QuoteSwap, engine: Engine) -> QuoteResponse:
    """Price a swap without executing it."""
    return QuoteResponse.from_quote(engine.quote_swap(key, instruction))


@router.post("/pools/{kind}/{assets}/swap")
async def swap(key: Key, instruction: Swap, caller: Caller, engine: Engine) -> SwapResponse:
    result = engine.swap(caller, key, instruction)
    return SwapResponse(
        pool=PoolResponse.from_state(result.pool),
        quote=QuoteResponse.from_quote(result.quote),
    )


@router.get("/pools/{kind}/{assets}/positions/{owner}")
async def get_position(key: Key, owner: str, engine: Engine) -> PositionResponse:
    """A user's position in a pool, active or not."""
    position = engine.get_position(owner, key)
    if position is None:
        logger.warning("position_not_found", pool=key.address, owner=owner)
        raise HTTPException(status_code=404, detail="Position not found")
    return PositionResponse.from_state(position)
