"""
Report generation utilities.

This module turns a `BacktestResult` into human-readable artefacts:
CSV files of the trade log and daily snapshots, a JSON summary using
the wire field names and a PNG chart of the equity curve.  Having a
central place for report generation makes it easy to extend the output
formats in future (e.g. HTML reports).
"""

from __future__ import annotations

import os
import json
import pandas as pd
import matplotlib

# Use non-interactive backend for environments without display
matplotlib.use("Agg")
import matplotlib.pyplot as plt

from ..execution.backtest_exec import BacktestResult

TRADE_COLUMNS = [
    'date', 'symbol', 'orderType', 'quantity', 'price',
    'commission', 'positionId', 'exitReason', 'realizedPL',
]
SNAPSHOT_COLUMNS = ['date', 'cash', 'positionsValue', 'totalEquity', 'openPositions']


def generate_backtest_report(result: BacktestResult, out_dir: str = "results") -> None:
    """Generate report files for a backtest run.

    Creates the output directory if it does not exist and writes the
    following files:

    - `trades.csv` – the trade log
    - `daily_snapshots.csv` – cash, positions value and equity per day
    - `summary.json` – the full result with its wire field names
    - `equity_curve.png` – line chart of total equity
    """
    os.makedirs(out_dir, exist_ok=True)
    payload = result.to_dict()

    df_trades = pd.DataFrame(payload['trades'], columns=TRADE_COLUMNS)
    df_trades.to_csv(os.path.join(out_dir, 'trades.csv'), index=False)

    df_eq = pd.DataFrame(payload['dailySnapshots'], columns=SNAPSHOT_COLUMNS)
    df_eq.to_csv(os.path.join(out_dir, 'daily_snapshots.csv'), index=False)

    summary_path = os.path.join(out_dir, 'summary.json')
    with open(summary_path, 'w', encoding='utf-8') as fh:
        json.dump(payload, fh, indent=2, ensure_ascii=False)

    fig, ax = plt.subplots(figsize=(10, 4))
    if not df_eq.empty:
        ax.plot(pd.to_datetime(df_eq['date']), df_eq['totalEquity'], linewidth=1.5)
        ax.axhline(result.initial_capital, color='grey', linestyle='--', linewidth=0.8)
        ax.set_title('Equity Curve')
        ax.set_xlabel('Date')
        ax.set_ylabel('Equity')
        fig.autofmt_xdate()
    fig.tight_layout()
    fig.savefig(os.path.join(out_dir, 'equity_curve.png'))
    plt.close(fig)
