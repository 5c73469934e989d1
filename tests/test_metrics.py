import os
import sys
import math
import pandas as pd

CURRENT_DIR = os.path.dirname(__file__)
PROJECT_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, os.pardir))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from tradesim.execution.models import DailySnapshot, OrderSide, TradeRecord
from tradesim.reporting.metrics import (
    compute_metrics,
    max_drawdown,
    sharpe_ratio,
    total_return,
    win_rate,
)

import unittest

DAY = pd.Timestamp("2024-01-01")


def _sell(pl: float) -> TradeRecord:
    return TradeRecord(DAY, "ABC", OrderSide.SELL, 1, 10.0, 0.0, 1, realized_pl=pl)


def _buy() -> TradeRecord:
    return TradeRecord(DAY, "ABC", OrderSide.BUY, 1, 10.0, 0.0, 1)


class TestMetrics(unittest.TestCase):
    def test_total_return(self) -> None:
        self.assertAlmostEqual(total_return(100_000.0, 110_000.0), 0.1)

    def test_max_drawdown_starts_from_initial_capital(self) -> None:
        self.assertAlmostEqual(max_drawdown(100.0, [90.0, 120.0, 60.0, 130.0]), 0.5)
        self.assertAlmostEqual(max_drawdown(100.0, [80.0]), 0.2)
        self.assertEqual(max_drawdown(100.0, [100.0, 110.0, 120.0]), 0.0)
        self.assertEqual(max_drawdown(100.0, []), 0.0)

    def test_sharpe_ratio(self) -> None:
        equity = [100.0, 110.0, 99.0]
        returns = [0.1, -0.1]
        mean = sum(returns) / 2
        std = math.sqrt(sum((r - mean) ** 2 for r in returns) / 2)
        self.assertAlmostEqual(sharpe_ratio(equity), mean / std * math.sqrt(252))

    def test_sharpe_is_zero_without_variance(self) -> None:
        self.assertEqual(sharpe_ratio([100.0, 100.0, 100.0]), 0.0)
        self.assertEqual(sharpe_ratio([100.0]), 0.0)

    def test_win_rate_counts_closed_trades_only(self) -> None:
        trades = [_buy(), _sell(50.0), _buy(), _sell(-10.0), _buy(), _sell(0.0), _buy(), _sell(5.0)]
        self.assertEqual(win_rate(trades), 0.5)
        self.assertEqual(win_rate([_buy()]), 0.0)

    def test_compute_metrics_without_snapshots(self) -> None:
        m = compute_metrics(100_000.0, [], [])
        self.assertEqual(m.final_equity, 100_000.0)
        self.assertEqual((m.total_return, m.max_drawdown, m.sharpe_ratio, m.win_rate, m.total_trades),
                         (0.0, 0.0, 0.0, 0.0, 0))

    def test_compute_metrics(self) -> None:
        snaps = [
            DailySnapshot(DAY + pd.Timedelta(days=i), eq, 0.0, eq, 0)
            for i, eq in enumerate([100_000.0, 95_000.0, 105_000.0])
        ]
        m = compute_metrics(100_000.0, snaps, [_buy(), _sell(5_000.0)])
        self.assertEqual(m.final_equity, 105_000.0)
        self.assertAlmostEqual(m.total_return, 0.05)
        self.assertAlmostEqual(m.max_drawdown, 0.05)
        self.assertEqual((m.win_rate, m.total_trades), (1.0, 1))


if __name__ == '__main__':
    unittest.main()
