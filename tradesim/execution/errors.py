"""
Error taxonomy for the trading core.

Leaf components (market data, ledger, position book, risk validator)
raise these exceptions.  The order executor converts every one of them
except `TemporalViolationError` into a failed `OrderResult`, so a single
bad order never stops a backtest.  A temporal violation means a caller
tried to read data from the future; that invalidates the whole run and
is allowed to propagate.
"""

from __future__ import annotations


class TradingError(Exception):
    """Base class for all errors raised by the trading core."""


class NotFoundError(TradingError):
    """Unknown account, position or symbol."""


class InsufficientFundsError(TradingError):
    """A fund reservation asked for more cash than is available."""

    def __init__(self, account_id: int, required: float, available: float) -> None:
        super().__init__(
            f"Insufficient funds. Required: ${required:,.2f}, Available: ${available:,.2f}"
        )
        self.account_id = account_id
        self.required = required
        self.available = available


class InsufficientQuantityError(TradingError):
    """A sell asked for more shares than the selected position holds."""

    def __init__(self, held: int, requested: int) -> None:
        super().__init__(f"Insufficient shares. Have {held}, requested {requested}")
        self.held = held
        self.requested = requested


class NoOpenPositionError(TradingError):
    """A sell found no open position for the symbol."""


class ValidationFailedError(TradingError):
    """A pre-trade risk rule rejected the order."""


class InvalidStopPriceError(TradingError, ValueError):
    """The stop price used for position sizing is not below the entry price."""


class TemporalViolationError(TradingError):
    """A single-point data query reached past the simulation clock."""
