"""
Application entry point.

This module defines a simple command-line interface for running a
backtest from a YAML configuration.  It loads the configuration and
the CSV price history, builds the strategy, runs the simulation and
writes the report files.
"""

from __future__ import annotations

import argparse
import logging
from typing import List, Optional

from .config.schema import Config, load_config
from .data.csv_data import CSVDataLoader
from .data.market_data import BacktestMarketData
from .execution.backtest_exec import BacktestConfig, BacktestResult, run_backtest
from .execution.orders import FlatCommission, PerShareCommission
from .execution.risk import RiskValidator
from .reporting.report import generate_backtest_report
from .strategy.factory import build_strategy


def _setup_logging(verbose: bool) -> None:
    """Configure logging for the application."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format='%(asctime)s [%(levelname)s] %(name)s: %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S',
    )


def run_from_config(config: Config) -> BacktestResult:
    """Load data for `config`, run the backtest and return the result."""
    strategy = build_strategy(config.strategy.to_dict())
    if not strategy.symbols:
        raise ValueError("strategy.symbols must list at least one symbol")

    loader = CSVDataLoader(config.data.csv_dir, config.data.lookback_days)
    frames = loader.load_many(strategy.symbols, config.start_date, config.end_date)
    if not frames:
        raise ValueError("No stock data available for the specified symbols and date range")

    if config.costs.commission_per_share > 0:
        commission = PerShareCommission(config.costs.commission_per_share, minimum=config.costs.commission)
    else:
        commission = FlatCommission(config.costs.commission)

    backtest_cfg = BacktestConfig(
        account_id=config.account_id,
        start_date=config.start_date,
        end_date=config.end_date,
        initial_capital=config.initial_capital,
        strategy=strategy,
    )
    market = BacktestMarketData(frames, backtest_cfg.start_date)
    return run_backtest(
        backtest_cfg,
        market,
        risk=RiskValidator(
            config.risk.max_position_fraction,
            config.costs.commission,
            cap_sells=config.risk.cap_sells,
        ),
        commission=commission,
        credit_net_proceeds=config.costs.credit_net_proceeds,
        account_name=config.account_name,
    )


def main(argv: Optional[List[str]] = None) -> None:
    """Parse command-line arguments and dispatch to the appropriate mode."""
    parser = argparse.ArgumentParser(description="Equity strategy backtester")
    parser.add_argument('mode', choices=['backtest'], help="Operating mode")
    parser.add_argument('--config', default='config.yaml', help="Path to configuration YAML file")
    parser.add_argument('--out', default=None, help="Override the report output directory")
    parser.add_argument('-v', '--verbose', action='store_true', help="Enable debug logging")
    args = parser.parse_args(argv)

    _setup_logging(args.verbose)

    config = load_config(args.config)
    out_dir = args.out or config.output_dir

    logging.info("Running backtest...")
    result = run_from_config(config)
    generate_backtest_report(result, out_dir=out_dir)
    logging.info("Backtest complete. Results saved to the '%s' directory.", out_dir)


if __name__ == '__main__':
    main()
