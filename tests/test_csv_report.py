import os
import sys
import json
import tempfile
import pandas as pd

CURRENT_DIR = os.path.dirname(__file__)
PROJECT_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, os.pardir))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from tradesim.app import run_from_config
from tradesim.config.schema import config_from_dict
from tradesim.data.csv_data import CSVDataLoader
from tradesim.reporting.report import generate_backtest_report

import unittest

CLOSES = [100.0, 100.0, 100.0, 100.0, 130.0, 140.0, 150.0, 120.0, 100.0, 90.0]


def _write_csv(directory: str, symbol: str = "ABC", date_col: str = "Date") -> None:
    frame = pd.DataFrame({
        date_col: [d.strftime("%Y-%m-%d") for d in pd.date_range("2024-01-01", periods=len(CLOSES), freq="D")],
        "Open": CLOSES, "High": CLOSES, "Low": CLOSES, "Close": CLOSES,
        "Volume": [1_000] * len(CLOSES),
        "RSI14": [50.0] * len(CLOSES),
        "Notes": ["x"] * len(CLOSES),
    })
    # Newest first, as many vendors export.
    frame.iloc[::-1].to_csv(os.path.join(directory, f"{symbol}.csv"), index=False)


class TestCSVDataLoader(unittest.TestCase):
    def test_load_sorts_and_keeps_known_columns(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            _write_csv(tmp)
            df = CSVDataLoader(tmp).load("ABC")
        self.assertTrue(df.index.is_monotonic_increasing)
        self.assertEqual(list(df.columns), ["open", "high", "low", "close", "volume", "rsi14"])
        self.assertEqual(df["close"].iloc[0], 100.0)

    def test_lookback_extends_before_start(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            _write_csv(tmp, date_col="timestamp")
            df = CSVDataLoader(tmp, lookback_days=2).load("ABC", "2024-01-05", "2024-01-08")
        self.assertEqual(df.index[0], pd.Timestamp("2024-01-03"))
        self.assertEqual(df.index[-1], pd.Timestamp("2024-01-08"))

    def test_missing_columns(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            pd.DataFrame({"date": ["2024-01-01"], "close": [1.0]}).to_csv(
                os.path.join(tmp, "ABC.csv"), index=False,
            )
            with self.assertRaises(ValueError):
                CSVDataLoader(tmp).load("ABC")

    def test_load_many_skips_missing_files(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            _write_csv(tmp)
            with self.assertRaises(FileNotFoundError):
                CSVDataLoader(tmp).load("XYZ")
            frames = CSVDataLoader(tmp).load_many(["XYZ", "ABC"])
        self.assertEqual(list(frames), ["ABC"])


class TestRunAndReport(unittest.TestCase):
    def test_run_from_config_and_write_report(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            _write_csv(tmp)
            cfg = config_from_dict({
                "start_date": "2024-01-04",
                "end_date": "2024-01-10",
                "strategy": {"symbols": ["ABC"], "short_period": 2, "long_period": 3},
                "data": {"csv_dir": tmp},
            })
            result = run_from_config(cfg)
            self.assertEqual(result.final_equity, 98_990.0)
            self.assertEqual(result.total_trades, 1)

            out_dir = os.path.join(tmp, "results")
            generate_backtest_report(result, out_dir=out_dir)
            for name in ("trades.csv", "daily_snapshots.csv", "summary.json", "equity_curve.png"):
                self.assertTrue(os.path.exists(os.path.join(out_dir, name)), name)

            trades = pd.read_csv(os.path.join(out_dir, "trades.csv"))
            self.assertEqual(list(trades["orderType"]), ["Buy", "Sell"])
            with open(os.path.join(out_dir, "summary.json"), encoding="utf-8") as fh:
                summary = json.load(fh)
            self.assertEqual(summary["finalEquity"], 98_990.0)
            self.assertEqual(len(summary["dailySnapshots"]), 7)

    def test_no_data_for_any_symbol(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            cfg = config_from_dict({
                "start_date": "2024-01-04",
                "end_date": "2024-01-10",
                "strategy": {"symbols": ["ABC"]},
                "data": {"csv_dir": tmp},
            })
            with self.assertRaises(ValueError):
                run_from_config(cfg)


if __name__ == '__main__':
    unittest.main()
