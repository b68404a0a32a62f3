"""
rakepool/ledger.py - Custody ledger and clock collaborators.

The escrow core only ever talks to these two things:

    Ledger.transfer(source, destination, amount, authority)
    Clock.now()

InMemoryLedger is the default substrate. Accounts are either wallet-owned
(the address itself must authorize debits) or program-owned (only the owning
program's authority may debit). snapshot()/restore() let the escrow program
commit or discard an operation as a unit.
"""

import logging
import threading
import time
from typing import Protocol

from .errors import InsufficientFunds, LedgerAuthorityError
from .rake import check_u64, checked_add

logger = logging.getLogger(__name__)


# ============================================================================
# Protocols
# ============================================================================


class Ledger(Protocol):
    def transfer(self, source: str, destination: str, amount: int, authority: str) -> None: ...

    def balance_of(self, address: str) -> int: ...

    def open_account(self, address: str, owner: str | None = None) -> None: ...

    def snapshot(self) -> object: ...

    def restore(self, snapshot: object) -> None: ...


class Clock(Protocol):
    def now(self) -> int: ...


# ============================================================================
# In-memory ledger
# ============================================================================


class InMemoryLedger:
    """Balances and account owners held in dicts.

    Unknown addresses read as zero-balance, self-owned wallet accounts.
    """

    def __init__(self) -> None:
        self._balances: dict[str, int] = {}
        self._owners: dict[str, str] = {}

    def open_account(self, address: str, owner: str | None = None) -> None:
        """Register an account. owner=None means the address owns itself."""
        self._balances.setdefault(address, 0)
        if owner is not None:
            self._owners[address] = owner

    def owner_of(self, address: str) -> str:
        return self._owners.get(address, address)

    def balance_of(self, address: str) -> int:
        return self._balances.get(address, 0)

    def credit(self, address: str, amount: int) -> int:
        """Mint funds into an account (faucet / test funding). Returns new balance."""
        check_u64(amount, "amount")
        new_balance = checked_add(self.balance_of(address), amount)
        self._balances[address] = new_balance
        return new_balance

    def transfer(self, source: str, destination: str, amount: int, authority: str) -> None:
        """Move amount from source to destination, all or nothing."""
        check_u64(amount, "amount")
        if authority != self.owner_of(source):
            raise LedgerAuthorityError(f"{authority} cannot debit {source}")

        available = self.balance_of(source)
        if available < amount:
            raise InsufficientFunds(f"{source} has {available}, needs {amount}")

        credited = checked_add(self.balance_of(destination), amount)
        self._balances[source] = available - amount
        self._balances[destination] = credited
        logger.debug(f"Transfer {amount}: {source} -> {destination}")

    def snapshot(self) -> tuple[dict[str, int], dict[str, str]]:
        return dict(self._balances), dict(self._owners)

    def restore(self, snapshot: tuple[dict[str, int], dict[str, str]]) -> None:
        balances, owners = snapshot
        self._balances = dict(balances)
        self._owners = dict(owners)


# ============================================================================
# Clocks
# ============================================================================


class SystemClock:
    """Wall-clock unix seconds, never stepping backwards."""

    def __init__(self) -> None:
        self._last = 0
        self._lock = threading.Lock()

    def now(self) -> int:
        with self._lock:
            self._last = max(self._last, int(time.time()))
            return self._last


class ManualClock:
    """Clock driven by the caller. Used by tests."""

    def __init__(self, start: int = 1_700_000_000) -> None:
        self._now = start

    def now(self) -> int:
        return self._now

    def advance(self, seconds: int = 1) -> int:
        if seconds < 0:
            raise ValueError("ManualClock cannot move backwards")
        self._now += seconds
        return self._now
