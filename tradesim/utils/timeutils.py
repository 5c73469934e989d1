"""
Date and simulation clock utilities.

This module centralises all timestamp handling.  The backtest works on
daily bars, so every timestamp is normalised to a timezone-naive
`pandas.Timestamp` at midnight before it reaches the oracle, the
ledger or the position book.
"""

from __future__ import annotations

from typing import Iterator, Union
from datetime import date, datetime
import pandas as pd

DateLike = Union[str, date, datetime, pd.Timestamp]


def to_timestamp(value: DateLike) -> pd.Timestamp:
    """Convert a date-like value to a naive `pandas.Timestamp`.

    Timezone-aware values are converted to UTC before the timezone is
    dropped, so two representations of the same instant compare equal.
    """
    ts = pd.Timestamp(value)
    if ts.tzinfo is not None:
        ts = ts.tz_convert("UTC").tz_localize(None)
    return ts


def to_date(value: DateLike) -> pd.Timestamp:
    """Like `to_timestamp` but truncated to midnight."""
    return to_timestamp(value).normalize()


def trading_dates(start: DateLike, end: DateLike) -> Iterator[pd.Timestamp]:
    """Yield every calendar date from `start` to `end` inclusive.

    Dates are strictly increasing with no gaps.  An `end` before `start`
    yields nothing.
    """
    for ts in pd.date_range(to_date(start), to_date(end), freq="D"):
        yield ts


def whole_days_between(earlier: DateLike, later: DateLike) -> int:
    """Return the number of whole days elapsed, truncated rather than rounded."""
    return (to_timestamp(later) - to_timestamp(earlier)).days
