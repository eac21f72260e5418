"""Integration tests: full pool lifecycles against the in-memory ledger.

After every committed instruction the ledger and the stored state must agree:
each reserve equals the balance of its custody account, and the LP supply
equals the LP held across all positions.
"""

from equilibrium.engine import PoolEngine
from equilibrium.models.instructions import CreateGrowthPool, Deposit, Swap, Withdraw
from equilibrium.models.state import PoolKey
from tests.helpers import ALICE, AUTHORITY, BOB, DAI, EQ, PARTNER, USDC, USDT


def assert_consistent(engine: PoolEngine, key: PoolKey) -> None:
    pool = engine.get_pool(key)
    for asset, reserve in zip(pool.assets, pool.reserves):
        assert engine.custody.balance_of(key.reserve_account(asset), asset) == reserve

    held = sum(
        position.lp_amount
        for owner in (AUTHORITY, ALICE, BOB)
        if (position := engine.get_position(owner, key)) is not None
    )
    assert engine.custody.supply(pool.lp_token) == held


class TestSeedPoolLifecycle:
    """Deposit, trade and exit on a Seed pool."""

    def test_deposit_swap_withdraw(self, engine, seed_key, clock):
        """Liquidity providers exit with their share, including swap fees."""
        assert_consistent(engine, seed_key)

        engine.deposit(ALICE, seed_key, Deposit(amounts=[9000, 9000, 9000], concentration=1))
        assert_consistent(engine, seed_key)

        clock.advance(10)
        for asset_in, asset_out in ((USDC, DAI), (DAI, USDT), (USDT, USDC)):
            engine.swap(BOB, seed_key, Swap(asset_in=asset_in, asset_out=asset_out, amount_in=2000))
            assert_consistent(engine, seed_key)

        pool = engine.get_pool(seed_key)
        assert pool.total_fees > 0
        assert pool.last_update == clock.now()

        invariant_before = engine.pool_stats(seed_key).invariant
        alice = engine.get_position(ALICE, seed_key)
        result = engine.withdraw(
            ALICE, seed_key, Withdraw(lp_amount=alice.lp_amount, min_amounts=[0, 0, 0])
        )
        assert_consistent(engine, seed_key)
        assert not result.position.is_active
        # Alice held 90% of supply and leaves with at least 89.9% of the value
        assert sum(result.amounts) * 1000 >= invariant_before * 899

        engine.withdraw(AUTHORITY, seed_key, Withdraw(lp_amount=3000, min_amounts=[0, 0, 0]))
        assert_consistent(engine, seed_key)
        assert engine.get_pool(seed_key).reserves == (0, 0, 0)


class TestGrowthPoolLifecycle:
    """Growth pools alongside their Seed pool."""

    def test_growth_pool_trades_independently(self, engine, seed_key, growth_key):
        """Trading a Growth pool never touches its Seed pool."""
        seed_before = engine.get_pool(seed_key)

        engine.deposit(BOB, growth_key, Deposit(amounts=[500, 500], concentration=3))
        engine.swap(ALICE, growth_key, Swap(asset_in=EQ, asset_out=PARTNER, amount_in=300))
        engine.swap(ALICE, growth_key, Swap(asset_in=PARTNER, asset_out=EQ, amount_in=300))
        assert_consistent(engine, growth_key)

        assert engine.get_pool(seed_key) == seed_before
        assert engine.get_pool(growth_key).seed_pool == seed_key

    def test_second_growth_pool_on_same_seed(self, engine, seed_key, growth_key):
        """Several Growth pools can peg against one Seed pool."""
        result = engine.create_growth_pool(
            AUTHORITY,
            CreateGrowthPool(
                seed_pool=seed_key.address,
                derived_asset=EQ,
                partner_asset=USDC,
                initial_amount_0=400,
                initial_amount_1=400,
            ),
        )
        assert result.pool.key != growth_key
        assert result.pool.seed_pool == seed_key
        assert_consistent(engine, result.pool.key)


class TestHttpLifecycle:
    """The same lifecycle driven over HTTP."""

    def test_create_deposit_swap_withdraw(self, client, engine):
        """Every step of a pool's life is reachable through the API."""
        headers = {"X-Caller": AUTHORITY}
        created = client.post(
            "/pools/seed",
            json={"assets": [USDC, USDT, DAI], "initialAmounts": [5000, 5000, 5000]},
            headers=headers,
        )
        assert created.status_code == 201
        path = "/pools/seed/" + ",".join((USDC, USDT, DAI))

        deposited = client.post(
            f"{path}/deposit",
            json={"amounts": [1000, 1000, 1000], "concentration": 5, "minLpAmount": 3000},
            headers={"X-Caller": ALICE},
        )
        assert deposited.status_code == 200

        swapped = client.post(
            f"{path}/swap",
            json={"assetIn": USDC, "assetOut": USDT, "amountIn": 500, "minAmountOut": 450},
            headers={"X-Caller": BOB},
        )
        assert swapped.status_code == 200

        withdrawn = client.post(
            f"{path}/withdraw",
            json={"lpAmount": 3000, "minAmounts": [0, 0, 0]},
            headers={"X-Caller": ALICE},
        )
        assert withdrawn.status_code == 200
        assert withdrawn.json()["position"]["isActive"] is False

        key = PoolKey.from_address(created.json()["pool"]["address"])
        assert_consistent(engine, key)
