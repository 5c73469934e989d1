"""
CSV data loader.

This module provides a class to load daily OHLCV data from CSV files.
The expected schema for each CSV is:

```
date,open,high,low,close,volume[,adjusted_close,macd,macd_signal,...]
```

Only the `date`, `open`, `high`, `low` and `close` columns are
required.  Indicator columns listed in
`market_data.INDICATOR_COLUMNS` are kept when present; anything else
is dropped.  Column names are matched case-insensitively, and `time`
or `timestamp` are accepted in place of `date`.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, Iterable, Optional
import pandas as pd

from .market_data import INDICATOR_COLUMNS, PRICE_COLUMNS
from ..utils.timeutils import DateLike, to_date, to_timestamp

logger = logging.getLogger(__name__)

_DATE_ALIASES = ('date', 'time', 'timestamp')


class CSVDataLoader:
    """Load daily bars from CSV files for backtesting.

    Parameters
    ----------
    csv_dir : str
        Directory where the CSV files are located.  Each symbol's file
        must be named `{SYMBOL}.csv`.
    lookback_days : int
        Calendar days loaded before the requested start so that
        indicators and moving averages are seeded on day one.
    """

    def __init__(self, csv_dir: str, lookback_days: int = 100) -> None:
        self.csv_dir = Path(csv_dir)
        self.lookback_days = lookback_days

    def load(
        self,
        symbol: str,
        start: Optional[DateLike] = None,
        end: Optional[DateLike] = None,
    ) -> pd.DataFrame:
        """Read one symbol, optionally restricted to `[start - lookback, end]`."""
        file_path = self.csv_dir / f"{symbol}.csv"
        if not file_path.exists():
            raise FileNotFoundError(f"CSV file not found for symbol {symbol}: {file_path}")

        df = pd.read_csv(file_path)
        df.columns = [str(c).strip().lower() for c in df.columns]

        date_col = next((c for c in _DATE_ALIASES if c in df.columns), None)
        missing = [c for c in PRICE_COLUMNS if c not in df.columns]
        if date_col is None or missing:
            raise ValueError(
                f"Unrecognized CSV format for {symbol}. Missing columns: "
                f"{missing if date_col else ['date'] + missing}. Found columns: {list(df.columns)}"
            )

        keep = [c for c in PRICE_COLUMNS + ('volume',) + INDICATOR_COLUMNS if c in df.columns]
        out = df[keep].astype(float)
        out.index = pd.DatetimeIndex([to_timestamp(ts) for ts in pd.to_datetime(df[date_col], errors="raise")])
        out = out.sort_index()
        out = out[~out.index.duplicated(keep="last")]

        if start is not None:
            out = out.loc[to_date(start) - pd.Timedelta(days=self.lookback_days):]
        if end is not None:
            out = out.loc[:to_date(end)]
        logger.debug("Loaded %d bars for %s from %s", len(out), symbol, file_path)
        return out

    def load_many(
        self,
        symbols: Iterable[str],
        start: Optional[DateLike] = None,
        end: Optional[DateLike] = None,
    ) -> Dict[str, pd.DataFrame]:
        """Load several symbols, skipping (with a warning) those without a file or rows."""
        frames: Dict[str, pd.DataFrame] = {}
        for symbol in symbols:
            try:
                df = self.load(symbol, start, end)
            except FileNotFoundError as exc:
                logger.warning("%s", exc)
                continue
            if df.empty:
                logger.warning("No rows for %s in the requested range", symbol)
                continue
            frames[symbol] = df
        return frames
