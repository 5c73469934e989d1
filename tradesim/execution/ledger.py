"""
Account ledger.

The ledger owns the cash balance of each account and the fund
reservation protocol used by the order executor.  Storage is injected
through the `AccountStore` interface so the core never depends on a
particular persistence layer; `InMemoryAccountStore` backs backtests.

Every mutation runs under the account's lock from an `AccountLocks`
registry.  The same registry is shared with the position book and the
order executor, which holds the lock for a whole order so that a
reservation and the position it pays for appear together or not at
all.
"""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from collections import defaultdict
from contextlib import contextmanager
from dataclasses import replace
from typing import Dict, Iterator, Optional

from .errors import InsufficientFundsError, NotFoundError
from .models import Account

logger = logging.getLogger(__name__)


class AccountLocks:
    """Registry of re-entrant locks keyed by account id."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: Dict[int, threading.RLock] = defaultdict(threading.RLock)

    @contextmanager
    def hold(self, account_id: int) -> Iterator[None]:
        with self._guard:
            lock = self._locks[account_id]
        with lock:
            yield


class AccountStore(ABC):
    """Persistence contract for account records."""

    @abstractmethod
    def load(self, account_id: int) -> Optional[Account]:
        """Return a copy of the stored account, or `None` if unknown."""

    @abstractmethod
    def save(self, account: Account) -> None:
        """Insert or replace an account record."""


class InMemoryAccountStore(AccountStore):
    """Dictionary-backed store used for backtests and tests."""

    def __init__(self) -> None:
        self._accounts: Dict[int, Account] = {}
        # Account locks only serialize one id; the dict is shared by all.
        self._lock = threading.Lock()

    def load(self, account_id: int) -> Optional[Account]:
        with self._lock:
            account = self._accounts.get(account_id)
            return replace(account) if account is not None else None

    def save(self, account: Account) -> None:
        with self._lock:
            self._accounts[account.id] = replace(account)


class AccountLedger:
    """Cash operations on accounts, serialized per account."""

    def __init__(self, store: AccountStore, locks: Optional[AccountLocks] = None) -> None:
        self.store = store
        self.locks = locks or AccountLocks()

    def get(self, account_id: int) -> Account:
        """Return the account or raise `NotFoundError`.  Accounts are never created here."""
        account = self.store.load(account_id)
        if account is None:
            raise NotFoundError(f"Account {account_id} not found")
        return account

    @staticmethod
    def available_balance(account: Account) -> float:
        return account.current_cash

    def reserve(self, account_id: int, amount: float) -> Account:
        """Deduct `amount` from cash, or raise `InsufficientFundsError` leaving cash unchanged."""
        with self.locks.hold(account_id):
            account = self.get(account_id)
            if amount > self.available_balance(account):
                logger.warning(
                    "Insufficient funds for account %s: Required $%.2f, Available $%.2f",
                    account_id, amount, account.current_cash,
                )
                raise InsufficientFundsError(account_id, amount, account.current_cash)
            account.current_cash -= amount
            self.store.save(account)
            logger.debug(
                "Reserved $%.2f from account %s. New balance: $%.2f",
                amount, account_id, account.current_cash,
            )
            return account

    def release(self, account_id: int, amount: float) -> Account:
        """Return previously reserved funds to the account."""
        with self.locks.hold(account_id):
            account = self.get(account_id)
            account.current_cash += amount
            self.store.save(account)
            logger.debug(
                "Released $%.2f to account %s. New balance: $%.2f",
                amount, account_id, account.current_cash,
            )
            return account

    def apply_pnl(self, account_id: int, delta: float) -> Account:
        """Post a cash movement (positive or negative) after a trade."""
        with self.locks.hold(account_id):
            account = self.get(account_id)
            account.current_cash += delta
            self.store.save(account)
            logger.info(
                "Updated account %s balance: P&L $%.2f, New balance: $%.2f",
                account_id, delta, account.current_cash,
            )
            return account
