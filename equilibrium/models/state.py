"""Pool and position state.

Pools are a tagged union over PoolKind: a SeedPool always holds exactly three
assets and a GrowthPool exactly two, with the arity checked when the state is
built. State objects are frozen; every update produces a new value, which the
engine stores only once the whole operation has succeeded.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from decimal import Decimal
from enum import Enum
from typing import ClassVar

from equilibrium.constants import (
    BASIS_POINTS,
    GROWTH_POOL_ARITY,
    GROWTH_TARGET_WEIGHTS,
    PRICE_DENOMINATOR,
    SEED_POOL_ARITY,
)
from equilibrium.errors import (
    InvalidAmplification,
    InvalidInputLength,
    InvalidInstructionData,
    InvalidPoolType,
    InvalidPositionBounds,
    InvalidTokenMint,
    InvalidWeights,
)
from equilibrium.safe_int import S, to_u64


class PoolKind(str, Enum):
    """Pool variant. Fixed for the life of a pool."""

    SEED = "seed"
    GROWTH = "growth"

    @property
    def arity(self) -> int:
        """Number of assets held by pools of this kind."""
        if self is PoolKind.SEED:
            return SEED_POOL_ARITY
        return GROWTH_POOL_ARITY


@dataclass(frozen=True)
class PoolKey:
    """Deterministic address of a pool: its kind plus its ordered asset set.

    Attributes:
        kind: Pool variant
        assets: Asset identifiers, in reserve order
    """

    kind: PoolKind
    assets: tuple[str, ...]

    def __post_init__(self) -> None:
        object.__setattr__(self, "kind", PoolKind(self.kind))
        object.__setattr__(self, "assets", tuple(self.assets))

    @property
    def address(self) -> str:
        return "/".join(("pool", self.kind.value, *self.assets))

    @property
    def lp_token(self) -> str:
        """Identifier of the pool's LP token."""
        return f"lp/{self.address}"

    def reserve_account(self, asset: str) -> str:
        """Custody account holding the pool's reserve of asset."""
        return f"{self.address}/reserve/{asset}"

    @classmethod
    def from_address(cls, address: str) -> PoolKey:
        """Parse a pool address of the form pool/<kind>/<asset>/...

        Raises:
            InvalidInstructionData: If the address is malformed
            InvalidPoolType: If the kind is unknown
        """
        parts = address.strip("/").split("/")
        if len(parts) < 2 or parts[0] != "pool":
            raise InvalidInstructionData(f"Malformed pool address: {address!r}")
        try:
            kind = PoolKind(parts[1])
        except ValueError as err:
            raise InvalidPoolType(f"Unknown pool kind: {parts[1]!r}") from err
        return cls(kind=kind, assets=tuple(parts[2:]))


@dataclass(frozen=True)
class PositionKey:
    """Deterministic address of a user position: owner plus pool."""

    owner: str
    pool: PoolKey

    @property
    def address(self) -> str:
        return f"position/{self.owner}/{self.pool.address}"


@dataclass(frozen=True, kw_only=True)
class PoolState:
    """Fields shared by both pool kinds.

    Index i of reserves and target_weights always refers to assets[i].

    Attributes:
        assets: Asset identifiers, in reserve order
        reserves: Current reserves (u64)
        target_weights: Target weights in basis points, summing to 10000
        amplification: Amplification coefficient A (>= 1)
        total_fees: Accumulated swap fees, in input-asset units
        last_update: Timestamp of the last mutation
    """

    kind: ClassVar[PoolKind]

    assets: tuple[str, ...]
    reserves: tuple[int, ...]
    target_weights: tuple[int, ...]
    amplification: int
    total_fees: int = 0
    last_update: int = 0

    def __post_init__(self) -> None:
        object.__setattr__(self, "assets", tuple(self.assets))
        object.__setattr__(self, "reserves", tuple(self.reserves))
        object.__setattr__(self, "target_weights", tuple(self.target_weights))

        arity = self.kind.arity
        if len(self.assets) != arity:
            raise InvalidInputLength(
                f"{self.kind.value} pool needs {arity} assets, got {len(self.assets)}"
            )
        if len(set(self.assets)) != arity:
            raise InvalidTokenMint(f"Duplicate assets: {self.assets}")
        if len(self.reserves) != arity:
            raise InvalidInputLength(
                f"{self.kind.value} pool needs {arity} reserves, got {len(self.reserves)}"
            )
        if len(self.target_weights) != arity:
            raise InvalidInputLength(
                f"{self.kind.value} pool needs {arity} target weights, got {len(self.target_weights)}"
            )
        if any(weight < 0 for weight in self.target_weights) or (
            sum(self.target_weights) != BASIS_POINTS
        ):
            raise InvalidWeights(f"Target weights {self.target_weights} must sum to {BASIS_POINTS}")
        if self.amplification < 1:
            raise InvalidAmplification(f"Amplification must be >= 1, got {self.amplification}")

        for reserve in self.reserves:
            to_u64(reserve)
        to_u64(self.total_fees)

    @property
    def arity(self) -> int:
        return self.kind.arity

    @property
    def key(self) -> PoolKey:
        return PoolKey(kind=self.kind, assets=self.assets)

    @property
    def address(self) -> str:
        return self.key.address

    @property
    def lp_token(self) -> str:
        return self.key.lp_token

    def index_of(self, asset: str) -> int:
        """Reserve index of asset.

        Raises:
            InvalidTokenMint: If the pool does not hold asset
        """
        try:
            return self.assets.index(asset)
        except ValueError as err:
            raise InvalidTokenMint(f"Asset {asset!r} is not in pool {self.address}") from err

    def with_reserves(
        self, reserves: tuple[int, ...], *, timestamp: int, fees_collected: int = 0
    ) -> PoolState:
        """Copy of this pool with new reserves, fee counter and timestamp."""
        return replace(
            self,
            reserves=reserves,
            total_fees=(S(self.total_fees) + fees_collected).to_u64(),
            last_update=timestamp,
        )


@dataclass(frozen=True, kw_only=True)
class SeedPool(PoolState):
    """Three-asset foundational pool with arbitrary target weights."""

    kind: ClassVar[PoolKind] = PoolKind.SEED


@dataclass(frozen=True, kw_only=True)
class GrowthPool(PoolState):
    """Two-asset 50/50 pool pegged against a Seed pool.

    Attributes:
        seed_pool: Key of the Seed pool this pool references (never mutated)
    """

    kind: ClassVar[PoolKind] = PoolKind.GROWTH

    target_weights: tuple[int, ...] = GROWTH_TARGET_WEIGHTS
    seed_pool: PoolKey

    def __post_init__(self) -> None:
        super().__post_init__()
        if self.target_weights != GROWTH_TARGET_WEIGHTS:
            raise InvalidWeights(f"Growth pools are always weighted {GROWTH_TARGET_WEIGHTS}")
        if self.seed_pool.kind is not PoolKind.SEED:
            raise InvalidPoolType(f"{self.seed_pool.address} is not a seed pool")


@dataclass(frozen=True, kw_only=True)
class UserPosition:
    """A user's LP stake in one pool, restricted to a price window.

    A position is never deleted; it is active exactly while it holds LP.

    Attributes:
        owner: Owner identity
        pool: Key of the owning pool
        lp_amount: LP tokens held (u64)
        min_price: Lower bound of the price window, in PRICE_DENOMINATOR units
        max_price: Upper bound of the price window
        created_at: Timestamp of the first deposit
        last_update: Timestamp of the last change
    """

    owner: str
    pool: PoolKey
    lp_amount: int = 0
    min_price: int = PRICE_DENOMINATOR
    max_price: int = PRICE_DENOMINATOR
    created_at: int = 0
    last_update: int = 0

    def __post_init__(self) -> None:
        to_u64(self.lp_amount)
        if self.min_price > self.max_price:
            raise InvalidPositionBounds(
                f"min_price {self.min_price} exceeds max_price {self.max_price}"
            )

    @property
    def key(self) -> PositionKey:
        return PositionKey(owner=self.owner, pool=self.pool)

    @property
    def is_active(self) -> bool:
        return self.lp_amount > 0

    @property
    def capital_efficiency(self) -> Decimal:
        """Capital efficiency of the position's price window, as a percentage."""
        from equilibrium.math.positions import calculate_capital_efficiency

        return calculate_capital_efficiency(self.min_price, self.max_price)

    @classmethod
    def open(cls, owner: str, pool: PoolKey, timestamp: int) -> UserPosition:
        """New empty position, created on an owner's first deposit into pool."""
        return cls(owner=owner, pool=pool, created_at=timestamp, last_update=timestamp)

    def deposited(self, lp_minted: int, bounds: tuple[int, int], timestamp: int) -> UserPosition:
        """Position after minting lp_minted into it with a new price window."""
        min_price, max_price = bounds
        return replace(
            self,
            lp_amount=(S(self.lp_amount) + lp_minted).to_u64(),
            min_price=min_price,
            max_price=max_price,
            last_update=timestamp,
        )

    def withdrawn(self, lp_burned: int, timestamp: int) -> UserPosition:
        """Position after burning lp_burned from it."""
        return replace(
            self,
            lp_amount=S(self.lp_amount).saturating_sub(lp_burned).value,
            last_update=timestamp,
        )
