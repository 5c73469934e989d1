"""
Position book.

Tracks the open and closed positions of every account.  Ids are
assigned by the book, are unique and never reused.  A position moves
from Open to Closed exactly once; closing replaces the stored record
with a new frozen `Position` that carries the exit fields.

Storage is injected through `PositionStore`.  Mutations take the
account lock from the shared `AccountLocks` registry.
"""

from __future__ import annotations

import itertools
import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import replace
from typing import Dict, List, Optional
import pandas as pd

from .errors import InsufficientQuantityError, NotFoundError
from .ledger import AccountLocks
from .models import NO_STOP_LOSS, Position, PositionStatus, StopLoss

logger = logging.getLogger(__name__)


class PositionStore(ABC):
    """Persistence contract for position records."""

    @abstractmethod
    def add(self, position: Position) -> None:
        """Store a new position."""

    @abstractmethod
    def get(self, position_id: int) -> Optional[Position]:
        """Return the stored position or `None`."""

    @abstractmethod
    def replace(self, position: Position) -> None:
        """Overwrite the record that has the same id."""

    @abstractmethod
    def by_account(self, account_id: int) -> List[Position]:
        """Return every position of the account in insertion order."""


class InMemoryPositionStore(PositionStore):
    """Insertion-ordered dictionary store used for backtests and tests."""

    def __init__(self) -> None:
        self._positions: Dict[int, Position] = {}
        # Shared across accounts, so it needs its own lock.
        self._lock = threading.Lock()

    def add(self, position: Position) -> None:
        with self._lock:
            if position.id in self._positions:
                raise ValueError(f"Position {position.id} already exists")
            self._positions[position.id] = position

    def get(self, position_id: int) -> Optional[Position]:
        with self._lock:
            return self._positions.get(position_id)

    def replace(self, position: Position) -> None:
        with self._lock:
            if position.id not in self._positions:
                raise NotFoundError(f"Position {position.id} not found")
            self._positions[position.id] = position

    def by_account(self, account_id: int) -> List[Position]:
        with self._lock:
            return [p for p in self._positions.values() if p.account_id == account_id]


class PositionBook:
    """Open and close positions while keeping ids and status transitions sound."""

    def __init__(self, store: PositionStore, locks: Optional[AccountLocks] = None) -> None:
        self.store = store
        self.locks = locks or AccountLocks()
        self._ids = itertools.count(1)

    def open(
        self,
        account_id: int,
        symbol: str,
        entry_price: float,
        quantity: int,
        entry_time: pd.Timestamp,
        stop_loss: StopLoss = NO_STOP_LOSS,
    ) -> Position:
        if quantity <= 0:
            raise ValueError(f"Position quantity must be positive, got {quantity}")
        with self.locks.hold(account_id):
            position = Position(
                id=next(self._ids),
                account_id=account_id,
                symbol=symbol,
                entry_time=entry_time,
                entry_price=entry_price,
                quantity=quantity,
                stop_loss=stop_loss,
            )
            self.store.add(position)
        logger.info(
            "Opened position %s for %s: %s shares @ $%.2f",
            position.id, symbol, quantity, entry_price,
        )
        return position

    def get(self, position_id: int) -> Position:
        position = self.store.get(position_id)
        if position is None:
            raise NotFoundError(f"Position {position_id} not found")
        return position

    def close(
        self,
        position_id: int,
        exit_price: float,
        exit_time: pd.Timestamp,
        reason: str,
        quantity: Optional[int] = None,
    ) -> Position:
        """Close an open position and return the closed record.

        With `quantity` smaller than the held amount only that many
        shares are closed: they become a new closed lot with a fresh id,
        and the original lot stays open under its own id holding the
        remainder.
        """
        position = self.get(position_id)
        with self.locks.hold(position.account_id):
            position = self.get(position_id)
            if not position.is_open:
                raise NotFoundError(f"Position {position_id} is already closed")
            if quantity is None:
                quantity = position.quantity
            if quantity <= 0:
                raise ValueError(f"Close quantity must be positive, got {quantity}")
            if quantity > position.quantity:
                raise InsufficientQuantityError(position.quantity, quantity)

            closed = replace(
                position,
                quantity=quantity,
                status=PositionStatus.CLOSED,
                exit_time=exit_time,
                exit_price=exit_price,
                exit_reason=reason,
                realized_pl=(exit_price - position.entry_price) * quantity,
            )
            if quantity == position.quantity:
                self.store.replace(closed)
            else:
                closed = replace(closed, id=next(self._ids))
                self.store.add(closed)
                self.store.replace(replace(position, quantity=position.quantity - quantity))

        logger.info(
            "Closed position %s for %s: P&L $%.2f, Reason: %s",
            closed.id, closed.symbol, closed.realized_pl, reason,
        )
        return closed

    def open_positions(self, account_id: int) -> List[Position]:
        return [p for p in self.store.by_account(account_id) if p.is_open]

    def closed_positions(self, account_id: int) -> List[Position]:
        return [p for p in self.store.by_account(account_id) if not p.is_open]

    @staticmethod
    def unrealized_pl(position: Position, current_price: float) -> float:
        if not position.is_open:
            return 0.0
        return (current_price - position.entry_price) * position.quantity
