"""Keyed state storage.

Pools are stored under their PoolKey and positions under their PositionKey.
Both keys are derived from the state itself, so lookups are deterministic per
(kind, asset set) and per (owner, pool).
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import AbstractContextManager, contextmanager
from typing import Protocol, overload

from equilibrium.models.state import PoolKey, PoolState, PositionKey, UserPosition


class StateRepository(Protocol):
    """Protocol for persisted pool and position state."""

    @overload
    def load(self, key: PoolKey) -> PoolState | None: ...

    @overload
    def load(self, key: PositionKey) -> UserPosition | None: ...

    def load(self, key: PoolKey | PositionKey) -> PoolState | UserPosition | None:
        """Return the state stored under key, or None if absent."""
        ...

    def store(self, key: PoolKey | PositionKey, value: PoolState | UserPosition) -> None:
        """Persist value under key, replacing any previous value."""
        ...

    def atomic(self) -> AbstractContextManager[None]:
        """Group the enclosed stores into one all-or-nothing unit."""
        ...


class InMemoryRepository:
    """Dictionary-backed state repository."""

    def __init__(self) -> None:
        self._pools: dict[PoolKey, PoolState] = {}
        self._positions: dict[PositionKey, UserPosition] = {}

    @overload
    def load(self, key: PoolKey) -> PoolState | None: ...

    @overload
    def load(self, key: PositionKey) -> UserPosition | None: ...

    def load(self, key: PoolKey | PositionKey) -> PoolState | UserPosition | None:
        if isinstance(key, PoolKey):
            return self._pools.get(key)
        return self._positions.get(key)

    def store(self, key: PoolKey | PositionKey, value: PoolState | UserPosition) -> None:
        if isinstance(key, PoolKey):
            if not isinstance(value, PoolState) or value.key != key:
                raise ValueError(f"Value stored under {key.address} must be that pool")
            self._pools[key] = value
        else:
            if not isinstance(value, UserPosition) or value.key != key:
                raise ValueError(f"Value stored under {key.address} must be that position")
            self._positions[key] = value

    @contextmanager
    def atomic(self) -> Iterator[None]:
        pools = dict(self._pools)
        positions = dict(self._positions)
        try:
            yield
        except BaseException:
            self._pools = pools
            self._positions = positions
            raise

    def pools(self) -> list[PoolState]:
        """All stored pools, in creation order."""
        return list(self._pools.values())

    def positions_of(self, owner: str) -> list[UserPosition]:
        """All positions held by owner."""
        return [position for key, position in self._positions.items() if key.owner == owner]
