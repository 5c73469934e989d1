"""
Backtest execution engine.

This module contains the `BacktestEngine` class which drives the
simulation clock one calendar day at a time.  For every day it

1. advances the market data clock,
2. checks stop losses on every open position and sells the ones that
   trigger (stops run before the strategy sees the day),
3. asks the strategy for intents and executes them in order,
4. marks open positions to market and records a `DailySnapshot`.

The loop is single threaded and strictly sequential.  Failed orders are
logged and counted but never stop the run; a `TemporalViolationError`
does, because it means a result built on future data.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import pandas as pd

from ..data.market_data import BacktestMarketData
from ..reporting.metrics import compute_metrics
from ..strategy.base import Strategy
from ..utils.timeutils import DateLike, to_date, trading_dates
from .ledger import AccountLedger, AccountLocks, InMemoryAccountStore
from .models import (
    Account,
    DailySnapshot,
    OrderIntent,
    OrderRequest,
    OrderResult,
    OrderSide,
    Position,
    TradeRecord,
)
from .orders import OrderExecutor
from .positions import InMemoryPositionStore, PositionBook
from .risk import RiskValidator

logger = logging.getLogger(__name__)


@dataclass
class BacktestConfig:
    account_id: int
    start_date: pd.Timestamp
    end_date: pd.Timestamp
    initial_capital: float
    strategy: Strategy

    def __post_init__(self) -> None:
        self.start_date = to_date(self.start_date)
        self.end_date = to_date(self.end_date)
        if self.end_date < self.start_date:
            raise ValueError(
                f"end_date {self.end_date:%Y-%m-%d} is before start_date {self.start_date:%Y-%m-%d}"
            )
        if self.initial_capital <= 0:
            raise ValueError(f"initial_capital must be positive, got {self.initial_capital}")


@dataclass
class BacktestResult:
    account_id: int
    start_date: pd.Timestamp
    end_date: pd.Timestamp
    initial_capital: float
    final_equity: float = 0.0
    total_return: float = 0.0
    max_drawdown: float = 0.0
    sharpe_ratio: float = 0.0
    win_rate: float = 0.0
    total_trades: int = 0
    trades: List[TradeRecord] = field(default_factory=list)
    daily_snapshots: List[DailySnapshot] = field(default_factory=list)
    failed_orders: int = 0
    cancelled: bool = False

    def to_dict(self) -> Dict[str, Any]:
        """Wire representation with the API's camelCase field names."""
        return {
            'accountId': self.account_id,
            'startDate': self.start_date.isoformat(),
            'endDate': self.end_date.isoformat(),
            'initialCapital': self.initial_capital,
            'finalEquity': self.final_equity,
            'totalReturn': self.total_return,
            'maxDrawdown': self.max_drawdown,
            'sharpeRatio': self.sharpe_ratio,
            'winRate': self.win_rate,
            'totalTrades': self.total_trades,
            'trades': [t.to_dict() for t in self.trades],
            'dailySnapshots': [s.to_dict() for s in self.daily_snapshots],
        }


class BacktestEngine:
    """Run a strategy over historical data for one account.

    Parameters
    ----------
    executor : OrderExecutor
        Fills orders against the ledger and position book it was built
        with.
    market : BacktestMarketData
        Preloaded bars behind the simulation clock.  The clock must not
        be past the first simulated day.
    """

    def __init__(self, executor: OrderExecutor, market: BacktestMarketData) -> None:
        self.executor = executor
        self.market = market
        self.ledger = executor.ledger
        self.positions = executor.positions
        self.risk = executor.risk

    def run(self, config: BacktestConfig, cancel_event: Optional[threading.Event] = None) -> BacktestResult:
        """Execute the backtest.

        `cancel_event` is checked only between days, so a cancelled run
        returns every fully processed day and nothing partial.
        """
        logger.info(
            "Starting backtest from %s to %s with $%.2f",
            f"{config.start_date:%Y-%m-%d}", f"{config.end_date:%Y-%m-%d}", config.initial_capital,
        )
        # Fail fast on an unknown account.
        self.ledger.get(config.account_id)

        result = BacktestResult(
            account_id=config.account_id,
            start_date=config.start_date,
            end_date=config.end_date,
            initial_capital=config.initial_capital,
        )

        for current_date in trading_dates(config.start_date, config.end_date):
            if cancel_event is not None and cancel_event.is_set():
                logger.warning("Backtest cancelled before %s", f"{current_date:%Y-%m-%d}")
                result.cancelled = True
                break
            try:
                self._run_day(config, current_date, result)
            except Exception:
                logger.error("Error processing date %s", f"{current_date:%Y-%m-%d}")
                raise

        metrics = compute_metrics(config.initial_capital, result.daily_snapshots, result.trades)
        result.final_equity = metrics.final_equity
        result.total_return = metrics.total_return
        result.max_drawdown = metrics.max_drawdown
        result.sharpe_ratio = metrics.sharpe_ratio
        result.win_rate = metrics.win_rate
        result.total_trades = metrics.total_trades

        logger.info(
            "Backtest completed: Final equity $%.2f, Total return %.2f%%, Total trades %d",
            result.final_equity, result.total_return * 100, len(result.trades),
        )
        return result

    def _run_day(self, config: BacktestConfig, current_date: pd.Timestamp, result: BacktestResult) -> None:
        self.market.advance_time(current_date)

        self._process_stop_losses(config, current_date, result)

        open_positions = self.positions.open_positions(config.account_id)
        for intent in config.strategy.signals(self.market, open_positions):
            self._execute_intent(config, current_date, intent, result)

        result.daily_snapshots.append(self._snapshot(config.account_id, current_date))

    def _process_stop_losses(self, config: BacktestConfig, current_date: pd.Timestamp, result: BacktestResult) -> None:
        # Snapshot the list first: selling mutates the book.
        for position in list(self.positions.open_positions(config.account_id)):
            bar = self.market.price_at(position.symbol, current_date)
            decision = self.risk.evaluate_stop_loss(position, bar.close, current_date)
            if not decision.should_trigger:
                continue

            order = OrderRequest(
                account_id=config.account_id,
                symbol=position.symbol,
                side=OrderSide.SELL,
                quantity=position.quantity,
                timestamp=current_date,
                position_id=position.id,
                reference_price=decision.trigger_price,
                exit_reason=decision.reason,
            )
            order_result = self.executor.execute(order, self.market)
            if self._record(order, order_result, result):
                logger.info(
                    "%s: Stop loss triggered - %s @ $%.2f, Reason: %s",
                    f"{current_date:%Y-%m-%d}", position.symbol, order_result.execution_price, decision.reason,
                )

    def _execute_intent(
        self,
        config: BacktestConfig,
        current_date: pd.Timestamp,
        intent: OrderIntent,
        result: BacktestResult,
    ) -> None:
        order = OrderRequest(
            account_id=config.account_id,
            symbol=intent.symbol,
            side=intent.side,
            quantity=intent.quantity,
            timestamp=current_date,
            stop_loss=intent.stop_loss,
            reference_price=intent.reference_price,
            exit_reason=(intent.reason or None) if intent.side is OrderSide.SELL else None,
        )
        order_result = self.executor.execute(order, self.market)
        if self._record(order, order_result, result):
            logger.info(
                "%s: %s %s %s @ $%.2f",
                f"{current_date:%Y-%m-%d}", intent.side.value, intent.quantity, intent.symbol,
                order_result.execution_price,
            )

    def _record(self, order: OrderRequest, order_result: OrderResult, result: BacktestResult) -> bool:
        """Append a filled order to the trade log, or count the failure."""
        if not order_result.is_success:
            result.failed_orders += 1
            logger.warning(
                "%s: Order failed - %s",
                f"{order.timestamp:%Y-%m-%d}", order_result.error_message,
            )
            return False
        result.trades.append(TradeRecord(
            timestamp=order.timestamp,
            symbol=order.symbol,
            side=order.side,
            quantity=order.quantity,
            price=order_result.execution_price,
            commission=order_result.commission,
            position_id=order_result.position_id,
            exit_reason=order.exit_reason,
            realized_pl=order_result.realized_pl,
        ))
        return True

    def _snapshot(self, account_id: int, current_date: pd.Timestamp) -> DailySnapshot:
        account = self.ledger.get(account_id)
        open_positions: List[Position] = self.positions.open_positions(account_id)
        positions_value = 0.0
        for position in open_positions:
            bar = self.market.price_at(position.symbol, current_date)
            positions_value += bar.close * position.quantity
        return DailySnapshot(
            date=current_date,
            cash=account.current_cash,
            positions_value=positions_value,
            total_equity=account.current_cash + positions_value,
            open_positions=len(open_positions),
        )


def run_backtest(
    config: BacktestConfig,
    market: BacktestMarketData,
    *,
    ledger: Optional[AccountLedger] = None,
    positions: Optional[PositionBook] = None,
    risk: Optional[RiskValidator] = None,
    commission=None,
    credit_net_proceeds: bool = True,
    account_name: str = "",
    cancel_event: Optional[threading.Event] = None,
) -> BacktestResult:
    """Run a backtest with in-memory storage unless stores are supplied.

    When no ledger is given a fresh in-memory one is created and seeded
    with an active account holding `config.initial_capital`.  A supplied
    ledger must already know `config.account_id`, and a supplied ledger and
    position book must share one `AccountLocks` registry.
    """
    if ledger is None:
        locks = positions.locks if positions is not None else AccountLocks()
        store = InMemoryAccountStore()
        store.save(Account(
            id=config.account_id,
            name=account_name or f"Account {config.account_id}",
            initial_capital=config.initial_capital,
            current_cash=config.initial_capital,
        ))
        ledger = AccountLedger(store, locks)
    if positions is None:
        positions = PositionBook(InMemoryPositionStore(), ledger.locks)

    executor = OrderExecutor(
        ledger,
        positions,
        risk or RiskValidator(),
        commission=commission,
        credit_net_proceeds=credit_net_proceeds,
    )
    return BacktestEngine(executor, market).run(config, cancel_event=cancel_event)
