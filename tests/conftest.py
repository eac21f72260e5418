"""Pytest configuration and fixtures."""

from collections.abc import Iterator

import pytest
from fastapi.testclient import TestClient

from equilibrium.api.endpoints import get_engine
from equilibrium.api.main import app
from equilibrium.custody import InMemoryLedger
from equilibrium.engine import PoolEngine
from equilibrium.models.instructions import CreateGrowthPool, CreateSeedPool
from equilibrium.models.state import PoolKey, PoolKind
from tests.helpers import (
    AUTHORITY,
    GROWTH_ASSETS,
    SEED_ASSETS,
    FixedClock,
    make_engine,
    make_ledger,
)


@pytest.fixture
def clock() -> FixedClock:
    """Settable test clock."""
    return FixedClock()


@pytest.fixture
def ledger() -> InMemoryLedger:
    """Ledger with every test identity funded in every asset."""
    return make_ledger()


@pytest.fixture
def engine(ledger: InMemoryLedger, clock: FixedClock) -> PoolEngine:
    """Engine with no pools."""
    return make_engine(ledger=ledger, clock=clock)


@pytest.fixture
def seed_key(engine: PoolEngine) -> PoolKey:
    """Seed pool created by the authority with 1000 of each asset, A=100."""
    engine.create_seed_pool(
        AUTHORITY,
        CreateSeedPool(
            assets=list(SEED_ASSETS),
            initial_amounts=[1000, 1000, 1000],
            amplification=100,
            target_weights=[4500, 3500, 2000],
        ),
    )
    return PoolKey(kind=PoolKind.SEED, assets=SEED_ASSETS)


@pytest.fixture
def growth_key(engine: PoolEngine, seed_key: PoolKey) -> PoolKey:
    """Growth pool pegged to seed_key with 1000 of each asset, A=100."""
    engine.create_growth_pool(
        AUTHORITY,
        CreateGrowthPool(
            seed_pool=seed_key.address,
            derived_asset=GROWTH_ASSETS[0],
            partner_asset=GROWTH_ASSETS[1],
            initial_amount_0=1000,
            initial_amount_1=1000,
            amplification=100,
        ),
    )
    return PoolKey(kind=PoolKind.GROWTH, assets=GROWTH_ASSETS)


@pytest.fixture
def client(engine: PoolEngine) -> Iterator[TestClient]:
    """API client bound to the test engine."""
    app.dependency_overrides[get_engine] = lambda: engine
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
