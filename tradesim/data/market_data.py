"""
Temporal-aware market data.

`MarketDataSource` is the contract every price provider implements.  In
a backtest the "current time" is a simulation clock owned by
`BacktestMarketData`; a live provider would return wall-clock time
instead, which is the only difference between the two modes.

The backtest provider is the single guard against lookahead bias:

* `price_at` refuses to answer for a moment after the clock and raises
  `TemporalViolationError`.  Such a call is a caller bug.
* `history` silently clamps its `end` to the clock, since range queries
  routinely ask for more than is available.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Dict, List, Optional
import math
import pandas as pd

from ..execution.errors import NotFoundError, TemporalViolationError
from ..execution.models import Bar
from ..utils.timeutils import DateLike, to_timestamp

logger = logging.getLogger(__name__)

PRICE_COLUMNS = ('open', 'high', 'low', 'close')

# Optional per-bar indicator columns, already computed upstream.
INDICATOR_COLUMNS = (
    'adjusted_close',
    'macd',
    'macd_signal',
    'macd_histogram',
    'sma50',
    'sma200',
    'vol_ma20',
    'rsi14',
)


class MarketDataSource(ABC):
    """Abstract provider of bars with a notion of "now"."""

    @abstractmethod
    def current_time(self) -> pd.Timestamp:
        """Return the current time of the trading environment."""

    @abstractmethod
    def price_at(self, symbol: str, as_of: DateLike) -> Bar:
        """Return the latest bar dated at or before `as_of`."""

    @abstractmethod
    def history(self, symbol: str, start: DateLike, end: DateLike) -> List[Bar]:
        """Return bars in `[start, end]`, oldest first."""

    def is_available(self, symbol: str, as_of: DateLike) -> bool:
        """Return `True` if `price_at(symbol, as_of)` would succeed."""
        try:
            self.price_at(symbol, as_of)
        except (NotFoundError, TemporalViolationError):
            return False
        return True


def _optional_float(value) -> Optional[float]:
    if value is None:
        return None
    value = float(value)
    return None if math.isnan(value) else value


def row_to_bar(symbol: str, ts: pd.Timestamp, row: pd.Series) -> Bar:
    """Convert one DataFrame row to a `Bar`."""
    volume = row.get('volume', 0)
    if volume is None or (isinstance(volume, float) and math.isnan(volume)):
        volume = 0
    return Bar(
        symbol=symbol,
        timestamp=ts,
        open=float(row['open']),
        high=float(row['high']),
        low=float(row['low']),
        close=float(row['close']),
        volume=int(volume),
        **{col: _optional_float(row.get(col)) for col in INDICATOR_COLUMNS},
    )


class BacktestMarketData(MarketDataSource):
    """Serve preloaded daily bars behind a simulation clock.

    Parameters
    ----------
    frames : dict of str to pandas.DataFrame
        One frame per symbol, indexed by date, with at least the
        ``open``, ``high``, ``low`` and ``close`` columns.  Any of the
        indicator columns listed in `INDICATOR_COLUMNS` are passed
        through on the returned bars.
    start_time : date-like
        Initial value of the simulation clock.
    """

    def __init__(self, frames: Dict[str, pd.DataFrame], start_time: DateLike) -> None:
        self._frames: Dict[str, pd.DataFrame] = {}
        for symbol, df in frames.items():
            missing = [c for c in PRICE_COLUMNS if c not in df.columns]
            if missing:
                raise ValueError(f"Price data for {symbol} is missing columns: {missing}")
            frame = df.copy()
            frame.index = pd.DatetimeIndex([to_timestamp(ts) for ts in frame.index])
            self._frames[symbol] = frame.sort_index()
        self._simulation_time = to_timestamp(start_time)

    def advance_time(self, new_time: DateLike) -> None:
        """Move the simulation clock forward.  Moving backward is refused."""
        new_time = to_timestamp(new_time)
        if new_time < self._simulation_time:
            raise TemporalViolationError(
                f"Cannot move backward in time: current={self._simulation_time:%Y-%m-%d}, "
                f"requested={new_time:%Y-%m-%d}"
            )
        self._simulation_time = new_time
        logger.debug("Simulation clock advanced to %s", f"{new_time:%Y-%m-%d}")

    def current_time(self) -> pd.Timestamp:
        return self._simulation_time

    def _visible(self, symbol: str) -> pd.DataFrame:
        """Return the rows of `symbol` dated at or before the clock."""
        if symbol not in self._frames:
            raise NotFoundError(f"Symbol {symbol} not found in loaded data")
        df = self._frames[symbol]
        return df.loc[:self._simulation_time]

    def price_at(self, symbol: str, as_of: DateLike) -> Bar:
        as_of = to_timestamp(as_of)
        if as_of > self._simulation_time:
            raise TemporalViolationError(
                f"Cannot access data from {as_of:%Y-%m-%d} when simulation time is "
                f"{self._simulation_time:%Y-%m-%d}"
            )
        df = self._visible(symbol).loc[:as_of]
        if df.empty:
            raise NotFoundError(f"No data for {symbol} at or before {as_of:%Y-%m-%d}")
        return row_to_bar(symbol, df.index[-1], df.iloc[-1])

    def history(self, symbol: str, start: DateLike, end: DateLike) -> List[Bar]:
        start = to_timestamp(start)
        end = min(to_timestamp(end), self._simulation_time)
        if end < start:
            return []
        df = self._visible(symbol).loc[start:end]
        return [row_to_bar(symbol, ts, row) for ts, row in df.iterrows()]
