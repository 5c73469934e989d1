import os
import sys
import pandas as pd

CURRENT_DIR = os.path.dirname(__file__)
PROJECT_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, os.pardir))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from tradesim.data.market_data import BacktestMarketData
from tradesim.execution.models import (
    DaysStopLoss,
    NO_STOP_LOSS,
    OrderSide,
    Position,
    PriceStopLoss,
)
from tradesim.strategy.factory import available_strategies, build_strategy
from tradesim.strategy.ma_crossover import MovingAverageCrossoverStrategy

import unittest

# short=2/long=3 SMAs cross up on Jan 5 and down on Jan 7.
CLOSES = [10.0, 10.0, 10.0, 10.0, 13.0, 7.0, 6.0]


def _market(now: str) -> BacktestMarketData:
    frame = pd.DataFrame(
        {"open": CLOSES, "high": CLOSES, "low": CLOSES, "close": CLOSES},
        index=pd.date_range("2024-01-01", periods=len(CLOSES), freq="D"),
    )
    return BacktestMarketData({"ABC": frame}, now)


def _held() -> Position:
    return Position(
        id=1, account_id=1, symbol="ABC", entry_time=pd.Timestamp("2024-01-05"),
        entry_price=13.0, quantity=100,
    )


class TestMovingAverageCrossover(unittest.TestCase):
    def setUp(self) -> None:
        self.strategy = MovingAverageCrossoverStrategy(
            ["ABC"], short_period=2, long_period=3, position_size=100, stop_loss=PriceStopLoss(9.0),
        )

    def test_no_signal_without_enough_history(self) -> None:
        self.assertEqual(self.strategy.signals(_market("2024-01-03"), []), [])

    def test_bullish_crossover_emits_buy(self) -> None:
        [intent] = self.strategy.signals(_market("2024-01-05"), [])
        self.assertEqual(intent.side, OrderSide.BUY)
        self.assertEqual(intent.quantity, 100)
        self.assertEqual(intent.stop_loss, PriceStopLoss(9.0))
        self.assertEqual(intent.reference_price, 13.0)
        self.assertEqual(intent.reason, "MA2 crossed above MA3")

    def test_no_buy_when_already_holding(self) -> None:
        self.assertEqual(self.strategy.signals(_market("2024-01-05"), [_held()]), [])

    def test_bearish_crossover_emits_sell_only_when_holding(self) -> None:
        self.assertEqual(self.strategy.signals(_market("2024-01-07"), []), [])
        [intent] = self.strategy.signals(_market("2024-01-07"), [_held()])
        self.assertEqual(intent.side, OrderSide.SELL)
        self.assertEqual(intent.stop_loss, NO_STOP_LOSS)

    def test_no_signal_between_crossovers(self) -> None:
        self.assertEqual(self.strategy.signals(_market("2024-01-06"), [_held()]), [])

    def test_unknown_symbol_is_skipped(self) -> None:
        strategy = MovingAverageCrossoverStrategy(["XYZ", "ABC"], short_period=2, long_period=3)
        intents = strategy.signals(_market("2024-01-05"), [])
        self.assertEqual([i.symbol for i in intents], ["ABC"])

    def test_invalid_periods(self) -> None:
        with self.assertRaises(ValueError):
            MovingAverageCrossoverStrategy(["ABC"], short_period=50, long_period=20)


class TestStrategyFactory(unittest.TestCase):
    def test_defaults(self) -> None:
        strategy = build_strategy({"type": "ma_crossover", "symbols": ["ABC"]})
        self.assertIsInstance(strategy, MovingAverageCrossoverStrategy)
        self.assertEqual((strategy.short_period, strategy.long_period, strategy.position_size), (20, 50, 100))
        self.assertEqual(strategy.stop_loss, NO_STOP_LOSS)

    def test_wire_keys(self) -> None:
        strategy = build_strategy({
            "type": "MA_Crossover",
            "symbols": ["ABC"],
            "shortPeriod": 5,
            "longPeriod": 15,
            "positionSize": 10,
            "stopLoss": {"daysToHold": 7},
        })
        self.assertEqual((strategy.short_period, strategy.long_period, strategy.position_size), (5, 15, 10))
        self.assertEqual(strategy.stop_loss, DaysStopLoss(7))

    def test_stop_loss_fields_are_exclusive(self) -> None:
        with self.assertRaises(ValueError):
            build_strategy({"symbols": ["ABC"], "stopLoss": {"priceThreshold": 1.0, "daysToHold": 2}})

    def test_unknown_type(self) -> None:
        with self.assertRaises(ValueError):
            build_strategy({"type": "rsi_reversal"})
        self.assertEqual(available_strategies(), ["ma_crossover"])


if __name__ == '__main__':
    unittest.main()
