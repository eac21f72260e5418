"""Test helpers module for shared test utilities.

- constants: Asset identifiers, identities and common amounts
- factories: Pool, ledger and engine factory functions
"""

from tests.helpers.constants import (
    ALICE,
    AUTHORITY,
    BOB,
    DAI,
    EQ,
    FUNDING,
    GENESIS,
    GROWTH_ASSETS,
    PARTNER,
    SEED_ASSETS,
    USDC,
    USDT,
)
from tests.helpers.factories import (
    FixedClock,
    make_engine,
    make_growth_pool,
    make_ledger,
    make_seed_pool,
)

__all__ = [
    # Constants
    "USDC",
    "USDT",
    "DAI",
    "EQ",
    "PARTNER",
    "SEED_ASSETS",
    "GROWTH_ASSETS",
    "AUTHORITY",
    "ALICE",
    "BOB",
    "FUNDING",
    "GENESIS",
    # Factories
    "FixedClock",
    "make_seed_pool",
    "make_growth_pool",
    "make_ledger",
    "make_engine",
]
