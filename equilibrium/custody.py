"""Custody and clock collaborators.

The engine never moves balances itself. It asks a CustodyService to transfer
assets between accounts and to mint or burn LP tokens, and reads timestamps
from a Clock. InMemoryLedger is the reference custody implementation used by
the HTTP service and the tests.
"""

from __future__ import annotations

import time
from collections import defaultdict
from collections.abc import Iterator
from contextlib import AbstractContextManager, contextmanager
from typing import Protocol

import structlog

from equilibrium.safe_int import S

logger = structlog.get_logger()


class LedgerError(Exception):
    """Custody refused a balance movement."""

    pass


class CustodyService(Protocol):
    """Protocol for the ledger that holds assets and LP tokens.

    Every movement is all-or-nothing. Calls made inside atomic() are rolled
    back together if any of them, or the code between them, raises.
    """

    def transfer(self, asset: str, source: str, destination: str, amount: int) -> None:
        """Move amount of asset from source to destination.

        Raises:
            LedgerError: If source holds less than amount
        """
        ...

    def mint(self, token: str, recipient: str, amount: int) -> None:
        """Create amount of token and credit it to recipient."""
        ...

    def burn(self, token: str, holder: str, amount: int) -> None:
        """Destroy amount of token held by holder.

        Raises:
            LedgerError: If holder holds less than amount
        """
        ...

    def balance_of(self, account: str, asset: str) -> int:
        """Balance of asset held by account."""
        ...

    def supply(self, token: str) -> int:
        """Total minted and not yet burned supply of token."""
        ...

    def atomic(self) -> AbstractContextManager[None]:
        """Group the enclosed movements into one all-or-nothing unit."""
        ...


class Clock(Protocol):
    """Protocol for the wall-clock collaborator."""

    def now(self) -> int:
        """Current unix timestamp in seconds."""
        ...


class SystemClock:
    """Clock backed by the system time."""

    def now(self) -> int:
        return int(time.time())


class InMemoryLedger:
    """Dictionary-backed custody service.

    Balances are keyed by (account, asset). LP tokens are ordinary assets
    whose supply is tracked separately.
    """

    def __init__(self) -> None:
        self._balances: defaultdict[tuple[str, str], int] = defaultdict(int)
        self._supplies: defaultdict[str, int] = defaultdict(int)

    def credit(self, account: str, asset: str, amount: int) -> None:
        """Fund account with amount of asset from outside the system."""
        self._balances[(account, asset)] = (S(self._balances[(account, asset)]) + amount).to_u64()

    def balance_of(self, account: str, asset: str) -> int:
        return self._balances.get((account, asset), 0)

    def supply(self, token: str) -> int:
        return self._supplies.get(token, 0)

    def transfer(self, asset: str, source: str, destination: str, amount: int) -> None:
        self._debit(source, asset, amount)
        self._balances[(destination, asset)] = (
            S(self._balances[(destination, asset)]) + amount
        ).to_u64()
        logger.debug(
            "ledger_transfer", asset=asset, source=source, destination=destination, amount=amount
        )

    def mint(self, token: str, recipient: str, amount: int) -> None:
        self._supplies[token] = (S(self._supplies[token]) + amount).to_u64()
        self._balances[(recipient, token)] = (S(self._balances[(recipient, token)]) + amount).to_u64()
        logger.debug("ledger_mint", token=token, recipient=recipient, amount=amount)

    def burn(self, token: str, holder: str, amount: int) -> None:
        self._debit(holder, token, amount)
        self._supplies[token] = S(self._supplies[token]).saturating_sub(amount).value
        logger.debug("ledger_burn", token=token, holder=holder, amount=amount)

    @contextmanager
    def atomic(self) -> Iterator[None]:
        balances = dict(self._balances)
        supplies = dict(self._supplies)
        try:
            yield
        except BaseException:
            self._balances = defaultdict(int, balances)
            self._supplies = defaultdict(int, supplies)
            raise

    def _debit(self, account: str, asset: str, amount: int) -> None:
        held = self._balances.get((account, asset), 0)
        if held < amount:
            raise LedgerError(f"{account} holds {held} {asset}, needs {amount}")
        self._balances[(account, asset)] = held - amount
