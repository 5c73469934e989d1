"""
Account, order, position and trade models.

These dataclasses represent the objects passed between the market data
oracle, the strategy and the execution components.  Keeping them in a
separate module improves readability and makes unit testing easier.

Records that must not change once created (positions, trades, daily
snapshots, bars) are frozen; a position is "closed" by replacing it
with a new frozen record that carries the exit fields.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Union
import pandas as pd


class OrderSide(str, Enum):
    BUY = "Buy"
    SELL = "Sell"


class PositionStatus(str, Enum):
    OPEN = "Open"
    CLOSED = "Closed"


class OrderError(str, Enum):
    """Failure kinds reported in an `OrderResult`."""
    NOT_FOUND = "NotFound"
    VALIDATION_FAILED = "ValidationFailed"
    INSUFFICIENT_FUNDS = "InsufficientFunds"
    INSUFFICIENT_QUANTITY = "InsufficientQuantity"
    NO_OPEN_POSITION = "NoOpenPosition"
    INTERNAL = "Internal"


@dataclass(frozen=True)
class Bar:
    """One daily OHLCV bar with optional pre-computed indicators."""
    symbol: str
    timestamp: pd.Timestamp
    open: float
    high: float
    low: float
    close: float
    volume: int = 0
    adjusted_close: Optional[float] = None
    macd: Optional[float] = None
    macd_signal: Optional[float] = None
    macd_histogram: Optional[float] = None
    sma50: Optional[float] = None
    sma200: Optional[float] = None
    vol_ma20: Optional[float] = None
    rsi14: Optional[float] = None


# ---------------------------------------------------------------------------
# Stop-loss variants
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class NoStopLoss:
    pass


@dataclass(frozen=True)
class PriceStopLoss:
    """Exit when the price drops to or below `threshold`."""
    threshold: float


@dataclass(frozen=True)
class DaysStopLoss:
    """Exit once the position has been held for `days` whole days."""
    days: int


@dataclass(frozen=True)
class TrailingStopLoss:
    """Reserved.  Accepted everywhere but never triggers."""
    percent: float


StopLoss = Union[NoStopLoss, PriceStopLoss, DaysStopLoss, TrailingStopLoss]

NO_STOP_LOSS = NoStopLoss()


def stop_loss_from_dict(raw: Optional[Dict[str, Any]]) -> StopLoss:
    """Build a stop-loss variant from its wire representation.

    Accepts either camelCase (``priceThreshold``/``daysToHold``) or
    snake_case keys.  At most one of the two may be set; an empty or
    missing mapping means no stop loss.
    """
    if not raw:
        return NO_STOP_LOSS
    price = raw.get('priceThreshold', raw.get('price_threshold'))
    days = raw.get('daysToHold', raw.get('days_to_hold'))
    if price is not None and days is not None:
        raise ValueError("Stop loss takes either priceThreshold or daysToHold, not both")
    if price is not None:
        return PriceStopLoss(threshold=float(price))
    if days is not None:
        return DaysStopLoss(days=int(days))
    return NO_STOP_LOSS


# ---------------------------------------------------------------------------
# Accounts and positions
# ---------------------------------------------------------------------------

@dataclass
class Account:
    """Cash account.  Mutated only through the `AccountLedger`."""
    id: int
    initial_capital: float
    current_cash: float
    name: str = ""
    is_active: bool = True


@dataclass(frozen=True)
class Position:
    """An open or closed holding of a symbol."""
    id: int
    account_id: int
    symbol: str
    entry_time: pd.Timestamp
    entry_price: float
    quantity: int
    stop_loss: StopLoss = NO_STOP_LOSS
    status: PositionStatus = PositionStatus.OPEN
    exit_time: Optional[pd.Timestamp] = None
    exit_price: Optional[float] = None
    exit_reason: Optional[str] = None
    realized_pl: Optional[float] = None

    @property
    def is_open(self) -> bool:
        return self.status is PositionStatus.OPEN


# ---------------------------------------------------------------------------
# Orders and trades
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class OrderIntent:
    """What a strategy wants to trade.  Carries no account information."""
    symbol: str
    side: OrderSide
    quantity: int
    stop_loss: StopLoss = NO_STOP_LOSS
    reference_price: Optional[float] = None
    reason: str = ""


@dataclass(frozen=True)
class OrderRequest:
    """An order routed to the `OrderExecutor`.

    `position_id` pins a sell to one specific lot; when it is omitted the
    first open position for the symbol is used.  `reference_price` is the
    quote used for pre-trade risk checks.
    """
    account_id: int
    symbol: str
    side: OrderSide
    quantity: int
    timestamp: pd.Timestamp
    stop_loss: StopLoss = NO_STOP_LOSS
    position_id: Optional[int] = None
    reference_price: Optional[float] = None
    exit_reason: Optional[str] = None


@dataclass(frozen=True)
class OrderResult:
    is_success: bool
    execution_time: pd.Timestamp
    position_id: Optional[int] = None
    execution_price: float = 0.0
    commission: float = 0.0
    realized_pl: Optional[float] = None
    error: Optional[OrderError] = None
    error_message: Optional[str] = None


@dataclass(frozen=True)
class TradeRecord:
    """A filled order as it appears in the backtest trade log."""
    timestamp: pd.Timestamp
    symbol: str
    side: OrderSide
    quantity: int
    price: float
    commission: float
    position_id: int
    exit_reason: Optional[str] = None
    realized_pl: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'date': self.timestamp.isoformat(),
            'symbol': self.symbol,
            'orderType': self.side.value,
            'quantity': self.quantity,
            'price': self.price,
            'commission': self.commission,
            'positionId': self.position_id,
            'exitReason': self.exit_reason,
            'realizedPL': self.realized_pl,
        }


@dataclass(frozen=True)
class DailySnapshot:
    """Account state at the close of one simulated day."""
    date: pd.Timestamp
    cash: float
    positions_value: float
    total_equity: float
    open_positions: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            'date': self.date.isoformat(),
            'cash': self.cash,
            'positionsValue': self.positions_value,
            'totalEquity': self.total_equity,
            'openPositions': self.open_positions,
        }


@dataclass(frozen=True)
class StopDecision:
    """Outcome of a stop-loss evaluation."""
    should_trigger: bool
    reason: str
    trigger_price: Optional[float] = None


@dataclass(frozen=True)
class ValidationResult:
    is_valid: bool
    error_message: Optional[str] = None


OK = ValidationResult(is_valid=True)
