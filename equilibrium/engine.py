"""Pool engine: instruction handlers over pool and position state.

Each handler follows the same sequence:
1. Load the pool and validate the instruction against its kind
2. Compute the economic result with the math layer
3. Check the caller's slippage bounds
4. Inside one commit block, move balances and store the new state

Everything that can fail on the caller's input fails in steps 1-3, before
any balance moves. A custody or repository failure in step 4 rolls back both
the ledger and the stored state.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from functools import cache

import structlog

from equilibrium.config import AmmConfig, validate_amplification
from equilibrium.constants import MAX_PRICE, MIN_PRICE, PRICE_DENOMINATOR
from equilibrium.custody import Clock, CustodyService, InMemoryLedger, LedgerError, SystemClock
from equilibrium.errors import (
    EquilibriumError,
    InsufficientLiquidity,
    InvalidInputLength,
    InvalidInstructionData,
    InvalidPoolType,
    InvalidSwap,
    MathOverflow,
    PositionNotActive,
    SlippageExceeded,
    Unauthorized,
    ZeroReserveError,
)
from equilibrium.math import (
    calculate_capital_efficiency,
    calculate_dynamic_fee,
    calculate_initial_lp_amount,
    calculate_invariant,
    calculate_lp_to_mint,
    calculate_output_amount,
    calculate_position_bounds,
    calculate_weights,
    calculate_withdrawal_amounts,
    format_fee_percentage,
    swap_fee_amount,
)
from equilibrium.models.instructions import (
    CreateGrowthPool,
    CreateSeedPool,
    Deposit,
    QuoteSwap,
    Swap,
    Withdraw,
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
from equilibrium.repository import InMemoryRepository, StateRepository
from equilibrium.safe_int import S

logger = structlog.get_logger()


@dataclass(frozen=True)
class PoolCreated:
    """Result of creating a pool."""

    pool: PoolState
    lp_minted: int


@dataclass(frozen=True)
class DepositResult:
    """Result of a deposit."""

    pool: PoolState
    position: UserPosition
    lp_minted: int


@dataclass(frozen=True)
class WithdrawResult:
    """Result of a withdrawal. amounts is in pool asset order."""

    pool: PoolState
    position: UserPosition
    amounts: tuple[int, ...]


@dataclass(frozen=True)
class SwapQuote:
    """Priced swap.

    Attributes:
        asset_in: Asset paid in
        asset_out: Asset paid out
        amount_in: Input amount, fee included
        amount_out: Output amount
        fee: Dynamic fee applied, in parts per thousand
        fee_amount: Portion of amount_in retained as fee
    """

    asset_in: str
    asset_out: str
    amount_in: int
    amount_out: int
    fee: int
    fee_amount: int


@dataclass(frozen=True)
class SwapResult:
    """Result of an executed swap."""

    pool: PoolState
    quote: SwapQuote


@dataclass(frozen=True)
class PoolStats:
    """Snapshot of a pool's pricing state.

    invariant is None while any reserve is zero.
    """

    address: str
    kind: PoolKind
    assets: tuple[str, ...]
    reserves: tuple[int, ...]
    current_weights: tuple[int, ...]
    target_weights: tuple[int, ...]
    fee: int
    fee_percentage: str
    amplification: int
    lp_supply: int
    invariant: int | None
    total_fees: int
    seed_pool: str | None = None


@contextmanager
def _rejections_logged(operation: str, **context: object) -> Iterator[None]:
    try:
        yield
    except EquilibriumError as err:
        logger.warning(
            f"{operation}_rejected", error=err.code.value, detail=err.message, **context
        )
        raise
    except LedgerError as err:
        logger.warning(f"{operation}_custody_failed", detail=str(err), **context)
        raise


class PoolEngine:
    """Instruction handlers for Seed and Growth pools.

    Attributes:
        config: Protocol configuration
        repository: Pool and position storage
        custody: Ledger that moves assets and LP tokens
        clock: Timestamp source
    """

    def __init__(
        self,
        config: AmmConfig,
        repository: StateRepository,
        custody: CustodyService,
        clock: Clock,
    ) -> None:
        self.config = config
        self.repository = repository
        self.custody = custody
        self.clock = clock

    @contextmanager
    def _committing(self) -> Iterator[None]:
        """Move balances and store state as one unit across custody and repository."""
        with self.custody.atomic(), self.repository.atomic():
            yield


    # --- Queries ---

    def get_pool(self, key: PoolKey) -> PoolState:
        """Load a pool.

        Raises:
            InvalidPoolType: If no pool of that kind exists for the asset set
        """
        pool = self.repository.load(key)
        if pool is None:
            raise InvalidPoolType(f"No pool at {key.address}")
        return pool

    def get_position(self, owner: str, key: PoolKey) -> UserPosition | None:
        return self.repository.load(PositionKey(owner=owner, pool=key))

    def pool_stats(self, key: PoolKey) -> PoolStats:
        """Compute the current weights, fee and invariant of a pool."""
        pool = self.get_pool(key)
        weights = calculate_weights(pool.reserves)
        fee = calculate_dynamic_fee(weights, pool.target_weights)

        try:
            invariant: int | None = calculate_invariant(pool.reserves, pool.amplification)
        except ZeroReserveError:
            invariant = None

        stats = PoolStats(
            address=pool.address,
            kind=pool.kind,
            assets=pool.assets,
            reserves=pool.reserves,
            current_weights=weights,
            target_weights=pool.target_weights,
            fee=fee,
            fee_percentage=format_fee_percentage(fee),
            amplification=pool.amplification,
            lp_supply=self.custody.supply(pool.lp_token),
            invariant=invariant,
            total_fees=pool.total_fees,
            seed_pool=pool.seed_pool.address if isinstance(pool, GrowthPool) else None,
        )
        logger.debug(
            "pool_stats",
            pool=stats.address,
            kind=stats.kind.value,
            reserves=stats.reserves,
            current_weights=stats.current_weights,
            target_weights=stats.target_weights,
            fee=stats.fee_percentage,
            amplification=stats.amplification,
        )
        return stats

    # --- Pool creation ---

    def create_seed_pool(self, caller: str, instruction: CreateSeedPool) -> PoolCreated:
        """Create a Seed pool and seed its reserves from the caller.

        Amplification and target weights fall back to the configuration
        defaults when the instruction omits them.

        Raises:
            Unauthorized: If caller is not the configured authority
            InvalidInputLength: If assets or amounts are not 3 long
            InvalidWeights: If the target weights don't sum to 10000
            InvalidAmplification: If amplification < 1
            InvalidInstructionData: If the pool already exists
        """
        with _rejections_logged("create_seed_pool", caller=caller, assets=instruction.assets):
            self._check_authority(caller)

            amplification = instruction.amplification
            if amplification is None:
                amplification = self.config.default_amplification
            weights = instruction.target_weights
            if weights is None:
                weights = list(self.config.default_target_weights)

            pool = SeedPool(
                assets=tuple(instruction.assets),
                reserves=tuple(instruction.initial_amounts),
                target_weights=tuple(weights),
                amplification=amplification,
                last_update=self.clock.now(),
            )
            return self._create_pool(caller, pool)

    def create_growth_pool(self, caller: str, instruction: CreateGrowthPool) -> PoolCreated:
        """Create a Growth pool pegged against an existing Seed pool.

        Raises:
            Unauthorized: If caller is not the configured authority
            InvalidPoolType: If the referenced pool is not an existing Seed pool
            InvalidAmplification: If amplification < 1
            InvalidInstructionData: If the pool already exists
        """
        with _rejections_logged("create_growth_pool", caller=caller, seed_pool=instruction.seed_pool):
            self._check_authority(caller)

            seed_key = PoolKey.from_address(instruction.seed_pool)
            if seed_key.kind is not PoolKind.SEED:
                raise InvalidPoolType(f"{seed_key.address} is not a seed pool")
            seed = self.get_pool(seed_key)
            if not isinstance(seed, SeedPool):
                raise InvalidPoolType(f"{seed_key.address} is not a seed pool")

            amplification = instruction.amplification
            if amplification is None:
                amplification = self.config.default_amplification
            validate_amplification(amplification)

            pool = GrowthPool(
                assets=(instruction.derived_asset, instruction.partner_asset),
                reserves=(instruction.initial_amount_0, instruction.initial_amount_1),
                amplification=amplification,
                seed_pool=seed.key,
                last_update=self.clock.now(),
            )
            return self._create_pool(caller, pool)

    def _check_authority(self, caller: str) -> None:
        if not self.config.is_authority(caller):
            raise Unauthorized(f"{caller} is not the pool creation authority")

    def _create_pool(self, caller: str, pool: PoolState) -> PoolCreated:
        key = pool.key
        if self.repository.load(key) is not None:
            raise InvalidInstructionData(f"Pool {key.address} already exists")

        lp_minted = calculate_initial_lp_amount(pool.kind, pool.reserves)

        position = None
        if lp_minted > 0:
            position = UserPosition.open(caller, key, pool.last_update).deposited(
                lp_minted, (MIN_PRICE, MAX_PRICE), pool.last_update
            )

        with self._committing():
            for asset, amount in zip(pool.assets, pool.reserves):
                if amount > 0:
                    self.custody.transfer(asset, caller, key.reserve_account(asset), amount)
            if lp_minted > 0:
                self.custody.mint(pool.lp_token, caller, lp_minted)
            self.repository.store(key, pool)
            if position is not None:
                self.repository.store(position.key, position)

        logger.info(
            "pool_created",
            pool=key.address,
            kind=pool.kind.value,
            reserves=pool.reserves,
            target_weights=pool.target_weights,
            amplification=pool.amplification,
            lp_minted=lp_minted,
        )
        return PoolCreated(pool=pool, lp_minted=lp_minted)

    # --- Liquidity ---

    def deposit(self, caller: str, key: PoolKey, instruction: Deposit) -> DepositResult:
        """Deposit into a pool and open or extend the caller's position.

        The position's price window is recomputed around parity from the
        deposit's concentration.

        Raises:
            InvalidPoolType: If the pool does not exist
            InvalidInputLength: If the amounts don't match the pool's arity
            InvalidPositionBounds: If the concentration gives an empty window
            MathOverflow: If the invariant cannot be computed
            SlippageExceeded: If fewer than min_lp_amount LP would be minted
        """
        with _rejections_logged("deposit", caller=caller, pool=key.address):
            pool = self.get_pool(key)
            amounts = tuple(instruction.amounts)
            if len(amounts) != pool.arity:
                raise InvalidInputLength(
                    f"{pool.kind.value} pool takes {pool.arity} amounts, got {len(amounts)}"
                )

            bounds = calculate_position_bounds(PRICE_DENOMINATOR, instruction.concentration)
            efficiency = calculate_capital_efficiency(*bounds)

            new_reserves = tuple(
                (S(reserve) + amount).to_u64() for reserve, amount in zip(pool.reserves, amounts)
            )
            lp_minted = calculate_lp_to_mint(
                pool.reserves,
                new_reserves,
                amounts,
                self.custody.supply(pool.lp_token),
                pool.amplification,
            )
            if lp_minted < instruction.min_lp_amount:
                raise SlippageExceeded(
                    f"LP minted {lp_minted} below minimum {instruction.min_lp_amount}"
                )

            now = self.clock.now()
            position = self.get_position(caller, key) or UserPosition.open(caller, key, now)
            position = position.deposited(lp_minted, bounds, now)
            new_pool = pool.with_reserves(new_reserves, timestamp=now)

            with self._committing():
                for asset, amount in zip(pool.assets, amounts):
                    if amount > 0:
                        self.custody.transfer(asset, caller, key.reserve_account(asset), amount)
                if lp_minted > 0:
                    self.custody.mint(pool.lp_token, caller, lp_minted)
                self.repository.store(key, new_pool)
                self.repository.store(position.key, position)

        logger.info(
            "deposit",
            pool=key.address,
            owner=caller,
            amounts=amounts,
            lp_minted=lp_minted,
            min_price=position.min_price,
            max_price=position.max_price,
            capital_efficiency=efficiency,
        )
        return DepositResult(pool=new_pool, position=position, lp_minted=lp_minted)

    def withdraw(self, caller: str, key: PoolKey, instruction: Withdraw) -> WithdrawResult:
        """Burn LP from the caller's position for a share of every reserve.

        Raises:
            InvalidPoolType: If the pool does not exist
            InvalidInputLength: If min_amounts doesn't match the pool's arity
            InvalidInstructionData: If lp_amount is zero
            PositionNotActive: If the caller holds no active position
            InsufficientLiquidity: If lp_amount exceeds the position's LP
            SlippageExceeded: If any amount falls below its minimum
        """
        with _rejections_logged("withdraw", caller=caller, pool=key.address):
            pool = self.get_pool(key)
            if len(instruction.min_amounts) != pool.arity:
                raise InvalidInputLength(
                    f"{pool.kind.value} pool takes {pool.arity} minimum amounts, "
                    f"got {len(instruction.min_amounts)}"
                )
            if instruction.lp_amount == 0:
                raise InvalidInstructionData("lp_amount must be positive")

            position = self.get_position(caller, key)
            if position is None or not position.is_active:
                raise PositionNotActive(f"{caller} has no active position in {key.address}")
            if instruction.lp_amount > position.lp_amount:
                raise InsufficientLiquidity(
                    f"Position holds {position.lp_amount} LP, withdrawal needs {instruction.lp_amount}"
                )

            amounts = calculate_withdrawal_amounts(
                pool.reserves,
                instruction.lp_amount,
                self.custody.supply(pool.lp_token),
                instruction.min_amounts,
            )

            now = self.clock.now()
            new_reserves = tuple(
                S(reserve).saturating_sub(amount).value
                for reserve, amount in zip(pool.reserves, amounts)
            )
            new_pool = pool.with_reserves(new_reserves, timestamp=now)
            position = position.withdrawn(instruction.lp_amount, now)

            with self._committing():
                self.custody.burn(pool.lp_token, caller, instruction.lp_amount)
                for asset, amount in zip(pool.assets, amounts):
                    if amount > 0:
                        self.custody.transfer(asset, key.reserve_account(asset), caller, amount)
                self.repository.store(key, new_pool)
                self.repository.store(position.key, position)

        logger.info(
            "withdraw",
            pool=key.address,
            owner=caller,
            lp_burned=instruction.lp_amount,
            amounts=amounts,
            position_active=position.is_active,
        )
        return WithdrawResult(pool=new_pool, position=position, amounts=amounts)

    # --- Swaps ---

    def quote_swap(self, key: PoolKey, instruction: QuoteSwap) -> SwapQuote:
        """Price a swap against the pool's current reserves without executing it.

        Raises:
            InvalidPoolType: If the pool does not exist
            InvalidTokenMint: If either asset is not in the pool
            InvalidSwap: If the assets are the same, the amount is zero, or
                the output cannot be computed
        """
        pool = self.get_pool(key)
        index_in = pool.index_of(instruction.asset_in)
        index_out = pool.index_of(instruction.asset_out)
        if index_in == index_out:
            raise InvalidSwap(f"Cannot swap {instruction.asset_in} for itself")
        if instruction.amount_in == 0:
            raise InvalidSwap("Swap amount must be positive")

        fee = calculate_dynamic_fee(calculate_weights(pool.reserves), pool.target_weights)
        try:
            amount_out = calculate_output_amount(
                instruction.amount_in,
                pool.reserves[index_in],
                pool.reserves[index_out],
                fee,
                pool.amplification,
            )
        except MathOverflow as err:
            raise InvalidSwap(f"Output computation failed: {err.message}") from err

        return SwapQuote(
            asset_in=instruction.asset_in,
            asset_out=instruction.asset_out,
            amount_in=instruction.amount_in,
            amount_out=amount_out,
            fee=fee,
            fee_amount=swap_fee_amount(instruction.amount_in, fee),
        )

    def swap(self, caller: str, key: PoolKey, instruction: Swap) -> SwapResult:
        """Swap against a pool. The whole amount_in, fee included, stays in the pool.

        Raises:
            InvalidPoolType: If the pool does not exist
            InvalidTokenMint: If either asset is not in the pool
            InvalidSwap: If the output cannot be computed
            SlippageExceeded: If the output is below min_amount_out
        """
        with _rejections_logged(
            "swap", caller=caller, pool=key.address, amount_in=instruction.amount_in
        ):
            pool = self.get_pool(key)
            quote = self.quote_swap(key, instruction)
            if quote.amount_out < instruction.min_amount_out:
                raise SlippageExceeded(
                    f"Output {quote.amount_out} below minimum {instruction.min_amount_out}"
                )

            index_in = pool.index_of(quote.asset_in)
            index_out = pool.index_of(quote.asset_out)
            reserves = list(pool.reserves)
            reserves[index_in] = (S(reserves[index_in]) + quote.amount_in).to_u64()
            reserves[index_out] = S(reserves[index_out]).saturating_sub(quote.amount_out).value
            new_pool = pool.with_reserves(
                tuple(reserves), timestamp=self.clock.now(), fees_collected=quote.fee_amount
            )

            with self._committing():
                self.custody.transfer(
                    quote.asset_in, caller, key.reserve_account(quote.asset_in), quote.amount_in
                )
                self.custody.transfer(
                    quote.asset_out, key.reserve_account(quote.asset_out), caller, quote.amount_out
                )
                self.repository.store(key, new_pool)

        logger.info(
            "swap",
            pool=key.address,
            trader=caller,
            asset_in=quote.asset_in,
            asset_out=quote.asset_out,
            amount_in=quote.amount_in,
            amount_out=quote.amount_out,
            fee=quote.fee,
            fee_amount=quote.fee_amount,
        )
        return SwapResult(pool=new_pool, quote=quote)


def _create_default_engine() -> PoolEngine:
    """Create an engine over in-memory state and custody.

    Configuration is read from the EQUILIBRIUM_* environment variables.
    """
    config = AmmConfig.from_env()
    logger.info(
        "engine_configured",
        authority=config.authority,
        default_amplification=config.default_amplification,
        default_target_weights=config.default_target_weights,
    )
    return PoolEngine(
        config=config,
        repository=InMemoryRepository(),
        custody=InMemoryLedger(),
        clock=SystemClock(),
    )


@cache
def get_default_engine() -> PoolEngine:
    """Process-wide engine, created on first use."""
    return _create_default_engine()
