"""
Performance metrics calculations.

This module reduces the daily equity curve and the trade log of a
backtest into summary statistics.  Every function is pure so the same
inputs always give the same numbers.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Sequence
import math

from ..execution.models import DailySnapshot, OrderSide, TradeRecord

TRADING_DAYS_PER_YEAR = 252


@dataclass(frozen=True)
class Metrics:
    final_equity: float
    total_return: float
    max_drawdown: float
    sharpe_ratio: float
    win_rate: float
    total_trades: int


def total_return(initial_capital: float, final_equity: float) -> float:
    if not initial_capital:
        return 0.0
    return (final_equity - initial_capital) / initial_capital


def max_drawdown(initial_capital: float, equity: Sequence[float]) -> float:
    """Largest peak-to-trough decline as a fraction of the peak.

    The running peak starts at the initial capital, so a loss on the
    first day already counts as a drawdown.
    """
    peak = initial_capital
    worst = 0.0
    for value in equity:
        if value > peak:
            peak = value
        if peak > 0:
            worst = max(worst, (peak - value) / peak)
    return min(worst, 1.0)


def daily_returns(equity: Sequence[float]) -> List[float]:
    returns: List[float] = []
    for prev, curr in zip(equity, equity[1:]):
        returns.append((curr - prev) / prev if prev else 0.0)
    return returns


def sharpe_ratio(equity: Sequence[float], periods_per_year: int = TRADING_DAYS_PER_YEAR) -> float:
    """Annualised mean over population standard deviation of daily returns."""
    returns = daily_returns(equity)
    if not returns:
        return 0.0
    mean_ret = sum(returns) / len(returns)
    variance = sum((r - mean_ret) ** 2 for r in returns) / len(returns)
    std_dev = math.sqrt(variance)
    if std_dev == 0:
        return 0.0
    return (mean_ret / std_dev) * math.sqrt(periods_per_year)


def closed_trades(trades: Sequence[TradeRecord]) -> List[TradeRecord]:
    return [t for t in trades if t.side is OrderSide.SELL and t.realized_pl is not None]


def win_rate(trades: Sequence[TradeRecord]) -> float:
    closed = closed_trades(trades)
    if not closed:
        return 0.0
    wins = sum(1 for t in closed if t.realized_pl > 0)
    return wins / len(closed)


def compute_metrics(
    initial_capital: float,
    snapshots: Sequence[DailySnapshot],
    trades: Sequence[TradeRecord],
) -> Metrics:
    """Compute the summary statistics for a backtest.

    Parameters
    ----------
    initial_capital : float
        Starting cash of the account.
    snapshots : sequence of DailySnapshot
        One snapshot per simulated day, oldest first.
    trades : sequence of TradeRecord
        Filled orders in execution order.

    Returns
    -------
    Metrics
        With no snapshots the final equity equals the initial capital
        and every ratio is zero.
    """
    equity = [s.total_equity for s in snapshots]
    final_equity = equity[-1] if equity else initial_capital
    return Metrics(
        final_equity=final_equity,
        total_return=total_return(initial_capital, final_equity),
        max_drawdown=max_drawdown(initial_capital, equity),
        sharpe_ratio=sharpe_ratio(equity),
        win_rate=win_rate(trades),
        total_trades=len(closed_trades(trades)),
    )
