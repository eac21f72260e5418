"""Tests for PoolEngine instruction handlers."""

from decimal import Decimal

import pytest
from structlog.testing import capture_logs

from equilibrium.custody import LedgerError
from equilibrium.errors import (
    InsufficientLiquidity,
    InvalidInputLength,
    InvalidInstructionData,
    InvalidPoolType,
    InvalidPositionBounds,
    InvalidSwap,
    InvalidTokenMint,
    MathOverflow,
    PositionNotActive,
    SlippageExceeded,
    Unauthorized,
    ZeroReserveError,
)
from equilibrium.models.instructions import (
    CreateGrowthPool,
    CreateSeedPool,
    Deposit,
    QuoteSwap,
    Swap,
    Withdraw,
)
from equilibrium.models.state import GrowthPool, PoolKey, PoolKind, PositionKey, SeedPool
from tests.helpers import (
    ALICE,
    AUTHORITY,
    BOB,
    DAI,
    EQ,
    FUNDING,
    GENESIS,
    PARTNER,
    SEED_ASSETS,
    USDC,
    USDT,
    make_engine,
    make_ledger,
)


def deposit(amounts, concentration=2, min_lp_amount=0):
    return Deposit(amounts=amounts, concentration=concentration, min_lp_amount=min_lp_amount)


class TestCreateSeedPool:
    """Tests for Seed pool creation."""

    def test_creates_pool_and_mints_sum(self, engine, ledger, seed_key):
        """Creation moves the seed amounts into custody and mints their sum."""
        pool = engine.get_pool(seed_key)
        assert isinstance(pool, SeedPool)
        assert pool.reserves == (1000, 1000, 1000)
        assert pool.last_update == GENESIS
        assert ledger.supply(pool.lp_token) == 3000
        assert ledger.balance_of(AUTHORITY, pool.lp_token) == 3000
        for asset in SEED_ASSETS:
            assert ledger.balance_of(seed_key.reserve_account(asset), asset) == 1000
            assert ledger.balance_of(AUTHORITY, asset) == FUNDING - 1000

    def test_creator_holds_position(self, engine, seed_key):
        """The creator's LP is held in a position over the reference window."""
        position = engine.get_position(AUTHORITY, seed_key)
        assert position is not None
        assert position.lp_amount == 3000
        assert (position.min_price, position.max_price) == (995, 1005)

    def test_unauthorized(self, engine):
        """Only the configured authority can create pools."""
        with pytest.raises(Unauthorized):
            engine.create_seed_pool(
                ALICE, CreateSeedPool(assets=list(SEED_ASSETS), initial_amounts=[1, 1, 1])
            )
        assert engine.repository.load(PoolKey(kind=PoolKind.SEED, assets=SEED_ASSETS)) is None

    def test_config_defaults(self, engine):
        """Omitted amplification and weights come from the configuration."""
        result = engine.create_seed_pool(
            AUTHORITY, CreateSeedPool(assets=list(SEED_ASSETS), initial_amounts=[10, 20, 30])
        )
        assert result.pool.amplification == engine.config.default_amplification
        assert result.pool.target_weights == engine.config.default_target_weights
        assert result.lp_minted == 60

    def test_duplicate_rejected(self, engine, seed_key):
        """A pool can only be created once per (kind, assets)."""
        with pytest.raises(InvalidInstructionData):
            engine.create_seed_pool(
                AUTHORITY, CreateSeedPool(assets=list(SEED_ASSETS), initial_amounts=[1, 1, 1])
            )

    def test_wrong_amount_count(self, engine):
        """Seed pools take exactly three initial amounts."""
        with pytest.raises(InvalidInputLength):
            engine.create_seed_pool(
                AUTHORITY, CreateSeedPool(assets=list(SEED_ASSETS), initial_amounts=[1, 1])
            )

    def test_rejection_is_logged(self, engine):
        """Rejected instructions are logged with their error code."""
        with capture_logs() as logs:
            with pytest.raises(Unauthorized):
                engine.create_seed_pool(
                    BOB, CreateSeedPool(assets=list(SEED_ASSETS), initial_amounts=[1, 1, 1])
                )
        assert logs[-1]["event"] == "create_seed_pool_rejected"
        assert logs[-1]["error"] == "Unauthorized"
        assert logs[-1]["log_level"] == "warning"


class TestCreateGrowthPool:
    """Tests for Growth pool creation."""

    def test_creates_pegged_pool(self, engine, seed_key, growth_key):
        """Growth pools are 50/50 and reference their Seed pool."""
        pool = engine.get_pool(growth_key)
        assert isinstance(pool, GrowthPool)
        assert pool.target_weights == (5000, 5000)
        assert pool.seed_pool == seed_key
        assert engine.custody.supply(pool.lp_token) == 2000

    def test_mints_twice_smaller_side(self, engine, seed_key):
        """Unbalanced seeding is credited at twice the smaller amount."""
        result = engine.create_growth_pool(
            AUTHORITY,
            CreateGrowthPool(
                seed_pool=seed_key.address,
                derived_asset=EQ,
                partner_asset=PARTNER,
                initial_amount_0=1000,
                initial_amount_1=600,
            ),
        )
        assert result.lp_minted == 1200
        assert result.pool.amplification == engine.config.default_amplification

    def test_missing_seed_pool(self, engine):
        """The referenced Seed pool must exist."""
        with pytest.raises(InvalidPoolType):
            engine.create_growth_pool(
                AUTHORITY,
                CreateGrowthPool(
                    seed_pool="pool/seed/A/B/C",
                    derived_asset=EQ,
                    partner_asset=PARTNER,
                    initial_amount_0=1,
                    initial_amount_1=1,
                ),
            )

    def test_reference_must_be_seed_kind(self, engine, growth_key):
        """A Growth pool cannot be pegged to another Growth pool."""
        with pytest.raises(InvalidPoolType):
            engine.create_growth_pool(
                AUTHORITY,
                CreateGrowthPool(
                    seed_pool=growth_key.address,
                    derived_asset=USDC,
                    partner_asset=DAI,
                    initial_amount_0=1,
                    initial_amount_1=1,
                ),
            )

    def test_unauthorized(self, engine, seed_key):
        """Only the configured authority can create Growth pools."""
        with pytest.raises(Unauthorized):
            engine.create_growth_pool(
                ALICE,
                CreateGrowthPool(
                    seed_pool=seed_key.address,
                    derived_asset=EQ,
                    partner_asset=PARTNER,
                    initial_amount_0=1,
                    initial_amount_1=1,
                ),
            )


class TestDeposit:
    """Tests for deposits."""

    def test_balanced_deposit(self, engine, ledger, seed_key):
        """Doubling a balanced pool doubles the LP supply."""
        result = engine.deposit(ALICE, seed_key, deposit([1000, 1000, 1000]))
        assert result.lp_minted == 3000
        assert result.pool.reserves == (2000, 2000, 2000)
        assert result.position.is_active
        assert (result.position.min_price, result.position.max_price) == (990, 1010)
        assert ledger.balance_of(ALICE, result.pool.lp_token) == 3000
        assert ledger.balance_of(ALICE, USDC) == FUNDING - 1000
        assert engine.get_pool(seed_key) == result.pool

    def test_second_deposit_extends_position(self, engine, seed_key, clock):
        """Repeat deposits add to the same position and reset its window."""
        engine.deposit(ALICE, seed_key, deposit([1000, 1000, 1000]))
        clock.advance(60)
        result = engine.deposit(ALICE, seed_key, deposit([1000, 1000, 1000], concentration=4))
        assert result.position.lp_amount == 6000
        assert (result.position.min_price, result.position.max_price) == (980, 1020)
        assert result.position.created_at == GENESIS
        assert result.position.last_update == GENESIS + 60
        assert result.pool.last_update == GENESIS + 60

    def test_arity_mismatch(self, engine, growth_key):
        """Amounts must match the pool's asset count."""
        with pytest.raises(InvalidInputLength):
            engine.deposit(ALICE, growth_key, deposit([1, 1, 1]))

    def test_zero_concentration(self, engine, seed_key):
        """A zero-width price window is rejected."""
        with pytest.raises(InvalidPositionBounds):
            engine.deposit(ALICE, seed_key, deposit([1, 1, 1], concentration=0))

    def test_slippage_leaves_no_trace(self, engine, ledger, seed_key):
        """A deposit minting below min_lp_amount changes nothing."""
        before = engine.get_pool(seed_key)
        with pytest.raises(SlippageExceeded):
            engine.deposit(ALICE, seed_key, deposit([1000, 1000, 1000], min_lp_amount=3001))
        assert engine.get_pool(seed_key) == before
        assert engine.get_position(ALICE, seed_key) is None
        assert ledger.balance_of(ALICE, USDC) == FUNDING

    def test_unknown_pool(self, engine):
        """Depositing into a missing pool fails."""
        with pytest.raises(InvalidPoolType):
            engine.deposit(
                ALICE, PoolKey(kind=PoolKind.SEED, assets=SEED_ASSETS), deposit([1, 1, 1])
            )

    def test_partially_empty_pool_cannot_price(self, engine):
        """A pool with a zero reserve rejects non-bootstrap deposits."""
        engine.create_seed_pool(
            AUTHORITY,
            CreateSeedPool(assets=list(SEED_ASSETS), initial_amounts=[3000, 0, 0]),
        )
        key = PoolKey(kind=PoolKind.SEED, assets=SEED_ASSETS)
        with pytest.raises(ZeroReserveError):
            engine.deposit(ALICE, key, deposit([100, 0, 0]))

    def test_custody_failure_rolls_back(self, clock):
        """If a transfer fails, earlier transfers and mints are undone."""
        ledger = make_ledger(accounts=(AUTHORITY,))
        ledger.credit(ALICE, USDC, 1000)
        engine = make_engine(ledger=ledger, clock=clock)
        engine.create_seed_pool(
            AUTHORITY,
            CreateSeedPool(assets=list(SEED_ASSETS), initial_amounts=[1000, 1000, 1000]),
        )
        key = PoolKey(kind=PoolKind.SEED, assets=SEED_ASSETS)

        with pytest.raises(LedgerError):
            engine.deposit(ALICE, key, deposit([500, 500, 500]))

        assert ledger.balance_of(ALICE, USDC) == 1000
        assert ledger.supply(key.lp_token) == 3000
        assert engine.get_pool(key).reserves == (1000, 1000, 1000)
        assert engine.get_position(ALICE, key) is None

    def test_repository_failure_rolls_back(self, engine, ledger, seed_key, monkeypatch):
        """If the position cannot be stored, the pool and ledger are left untouched."""
        store = engine.repository.store

        def store_pools_only(key, value):
            if isinstance(key, PositionKey):
                raise OSError("position store unavailable")
            store(key, value)

        monkeypatch.setattr(engine.repository, "store", store_pools_only)
        before = engine.get_pool(seed_key)

        with pytest.raises(OSError):
            engine.deposit(ALICE, seed_key, deposit([1000, 1000, 1000]))

        assert engine.get_pool(seed_key) == before
        assert engine.get_position(ALICE, seed_key) is None
        assert ledger.balance_of(ALICE, USDC) == FUNDING
        assert ledger.supply(seed_key.lp_token) == 3000

    def test_deposit_logs_capital_efficiency(self, engine, seed_key):
        """The deposit event reports the position window's capital efficiency."""
        with capture_logs() as logs:
            engine.deposit(ALICE, seed_key, deposit([1000, 1000, 1000], concentration=2))
        deposit_logs = [entry for entry in logs if entry["event"] == "deposit"]
        assert len(deposit_logs) == 1
        assert deposit_logs[0]["capital_efficiency"] == Decimal(50)
        assert (deposit_logs[0]["min_price"], deposit_logs[0]["max_price"]) == (990, 1010)



class TestWithdraw:
    """Tests for withdrawals."""

    def test_proportional_withdrawal(self, engine, ledger, seed_key):
        """Withdrawing half the supply pays half of every reserve."""
        engine.deposit(ALICE, seed_key, deposit([1000, 1000, 1000]))
        result = engine.withdraw(ALICE, seed_key, Withdraw(lp_amount=3000, min_amounts=[0, 0, 0]))
        assert result.amounts == (1000, 1000, 1000)
        assert result.pool.reserves == (1000, 1000, 1000)
        assert not result.position.is_active
        assert ledger.balance_of(ALICE, USDC) == FUNDING
        assert ledger.supply(result.pool.lp_token) == 3000

    def test_insufficient_liquidity_no_mutation(self, engine, ledger, seed_key):
        """Withdrawing more than the position holds fails and changes nothing."""
        engine.deposit(ALICE, seed_key, deposit([1000, 1000, 1000]))
        pool_before = engine.get_pool(seed_key)
        position_before = engine.get_position(ALICE, seed_key)

        with pytest.raises(InsufficientLiquidity):
            engine.withdraw(ALICE, seed_key, Withdraw(lp_amount=3001, min_amounts=[0, 0, 0]))

        assert engine.get_pool(seed_key) == pool_before
        assert engine.get_position(ALICE, seed_key) == position_before
        assert ledger.balance_of(ALICE, pool_before.lp_token) == 3000
        assert ledger.balance_of(ALICE, USDC) == FUNDING - 1000

    def test_no_position(self, engine, seed_key):
        """A caller without a position cannot withdraw."""
        with pytest.raises(PositionNotActive):
            engine.withdraw(BOB, seed_key, Withdraw(lp_amount=1, min_amounts=[0, 0, 0]))

    def test_inactive_position(self, engine, seed_key):
        """A fully withdrawn position cannot withdraw again."""
        engine.deposit(ALICE, seed_key, deposit([1000, 1000, 1000]))
        engine.withdraw(ALICE, seed_key, Withdraw(lp_amount=3000, min_amounts=[0, 0, 0]))
        with pytest.raises(PositionNotActive):
            engine.withdraw(ALICE, seed_key, Withdraw(lp_amount=1, min_amounts=[0, 0, 0]))

    def test_slippage(self, engine, seed_key):
        """Minimum amounts are enforced per asset."""
        engine.deposit(ALICE, seed_key, deposit([1000, 1000, 1000]))
        with pytest.raises(SlippageExceeded):
            engine.withdraw(
                ALICE, seed_key, Withdraw(lp_amount=3000, min_amounts=[1000, 1000, 1001])
            )

    def test_min_amounts_arity(self, engine, seed_key):
        """Minimum amounts must match the pool's asset count."""
        with pytest.raises(InvalidInputLength):
            engine.withdraw(AUTHORITY, seed_key, Withdraw(lp_amount=1, min_amounts=[0, 0]))

    def test_zero_amount(self, engine, seed_key):
        """Zero withdrawals are rejected."""
        with pytest.raises(InvalidInstructionData):
            engine.withdraw(AUTHORITY, seed_key, Withdraw(lp_amount=0, min_amounts=[0, 0, 0]))

    def test_full_exit_then_bootstrap(self, engine, ledger, seed_key):
        """The sole holder drains the pool, and the next deposit bootstraps it."""
        result = engine.withdraw(
            AUTHORITY, seed_key, Withdraw(lp_amount=3000, min_amounts=[1000, 1000, 1000])
        )
        assert result.amounts == (1000, 1000, 1000)
        assert result.pool.reserves == (0, 0, 0)
        assert ledger.supply(result.pool.lp_token) == 0

        bootstrap = engine.deposit(ALICE, seed_key, deposit([100, 200, 300]))
        assert bootstrap.lp_minted == 600


class TestSwap:
    """Tests for swaps and quotes."""

    def test_reference_swap(self, engine, ledger, growth_key):
        """100 EQ against a balanced [1000, 1000] pool returns 98 PYUSD."""
        result = engine.swap(
            ALICE, growth_key, Swap(asset_in=EQ, asset_out=PARTNER, amount_in=100)
        )
        assert result.quote.fee == 1
        assert result.quote.amount_out == 98
        assert result.pool.reserves == (1100, 902)
        assert ledger.balance_of(ALICE, EQ) == FUNDING - 100
        assert ledger.balance_of(ALICE, PARTNER) == FUNDING + 98
        assert ledger.balance_of(growth_key.reserve_account(PARTNER), PARTNER) == 902

    def test_fees_accumulate(self, engine, growth_key):
        """The retained fee is added to the pool's fee counter."""
        result = engine.swap(
            ALICE, growth_key, Swap(asset_in=EQ, asset_out=PARTNER, amount_in=1000)
        )
        assert result.quote.fee_amount == 1
        assert result.pool.total_fees == 1
        assert result.pool.reserves[0] == 2000

    def test_seed_pool_dynamic_fee(self, engine, seed_key):
        """A Seed pool off its target weights charges a higher fee."""
        quote = engine.quote_swap(seed_key, QuoteSwap(asset_in=USDC, asset_out=DAI, amount_in=100))
        # weights (3333, 3333, 3333) vs (4500, 3500, 2000): 26 points of deviation
        assert quote.fee == 3

    def test_quote_matches_swap_without_mutation(self, engine, ledger, growth_key):
        """Quoting prices the swap but moves nothing."""
        before = engine.get_pool(growth_key)
        quote = engine.quote_swap(
            growth_key, QuoteSwap(asset_in=PARTNER, asset_out=EQ, amount_in=250)
        )
        assert engine.get_pool(growth_key) == before
        assert ledger.balance_of(ALICE, PARTNER) == FUNDING

        result = engine.swap(
            ALICE, growth_key, Swap(asset_in=PARTNER, asset_out=EQ, amount_in=250)
        )
        assert result.quote == quote

    def test_slippage_no_mutation(self, engine, ledger, growth_key):
        """Output below min_amount_out fails and changes nothing."""
        before = engine.get_pool(growth_key)
        with pytest.raises(SlippageExceeded):
            engine.swap(
                ALICE,
                growth_key,
                Swap(asset_in=EQ, asset_out=PARTNER, amount_in=100, min_amount_out=100),
            )
        assert engine.get_pool(growth_key) == before
        assert ledger.balance_of(ALICE, EQ) == FUNDING

    def test_unknown_asset(self, engine, growth_key):
        """Assets outside the pool are rejected."""
        with pytest.raises(InvalidTokenMint):
            engine.swap(ALICE, growth_key, Swap(asset_in=USDT, asset_out=EQ, amount_in=1))

    def test_same_asset(self, engine, growth_key):
        """An asset cannot be swapped for itself."""
        with pytest.raises(InvalidSwap):
            engine.swap(ALICE, growth_key, Swap(asset_in=EQ, asset_out=EQ, amount_in=1))

    def test_zero_amount(self, engine, growth_key):
        """Zero-amount swaps are rejected."""
        with pytest.raises(InvalidSwap):
            engine.swap(ALICE, growth_key, Swap(asset_in=EQ, asset_out=PARTNER, amount_in=0))

    def test_zero_reserve_reported_as_invalid_swap(self, engine):
        """A failed output computation surfaces as InvalidSwap."""
        engine.create_seed_pool(
            AUTHORITY,
            CreateSeedPool(assets=list(SEED_ASSETS), initial_amounts=[3000, 0, 0]),
        )
        key = PoolKey(kind=PoolKind.SEED, assets=SEED_ASSETS)
        with pytest.raises(InvalidSwap) as exc_info:
            engine.swap(ALICE, key, Swap(asset_in=USDC, asset_out=USDT, amount_in=100))
        assert isinstance(exc_info.value.__cause__, MathOverflow)

    def test_swap_is_logged(self, engine, growth_key):
        """Committed swaps are logged at info level."""
        with capture_logs() as logs:
            engine.swap(ALICE, growth_key, Swap(asset_in=EQ, asset_out=PARTNER, amount_in=100))
        swap_logs = [entry for entry in logs if entry["event"] == "swap"]
        assert len(swap_logs) == 1
        assert swap_logs[0]["amount_out"] == 98
        assert swap_logs[0]["log_level"] == "info"


class TestPoolStats:
    """Tests for pool_stats."""

    def test_seed_stats(self, engine, seed_key):
        """Stats report weights, fee, invariant and LP supply."""
        stats = engine.pool_stats(seed_key)
        assert stats.kind is PoolKind.SEED
        assert stats.current_weights == (3333, 3333, 3333)
        assert stats.fee == 3
        assert stats.fee_percentage == "0.3%"
        assert stats.invariant == 3000
        assert stats.lp_supply == 3000
        assert stats.seed_pool is None

    def test_growth_stats(self, engine, seed_key, growth_key):
        """Growth pool stats include the Seed pool reference."""
        stats = engine.pool_stats(growth_key)
        assert stats.seed_pool == seed_key.address
        assert stats.fee_percentage == "0.1%"
        assert stats.invariant == 2000

    def test_zero_reserve_has_no_invariant(self, engine):
        """A partially empty pool reports no invariant instead of failing."""
        engine.create_seed_pool(
            AUTHORITY,
            CreateSeedPool(assets=list(SEED_ASSETS), initial_amounts=[3000, 0, 0]),
        )
        stats = engine.pool_stats(PoolKey(kind=PoolKind.SEED, assets=SEED_ASSETS))
        assert stats.invariant is None
        assert stats.current_weights == (10_000, 0, 0)
