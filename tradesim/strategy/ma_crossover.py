"""
Moving average crossover strategy.

Buys when the short simple moving average of closes crosses above the
long one and sells when it crosses back below.  Only one position per
symbol is held: a buy is emitted only when the symbol has no open
position, a sell only when it has one.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Sequence
import pandas as pd

from ..data.market_data import MarketDataSource
from ..execution.errors import NotFoundError
from ..execution.models import NO_STOP_LOSS, OrderIntent, OrderSide, Position, StopLoss
from .base import Strategy

logger = logging.getLogger(__name__)


class MovingAverageCrossoverStrategy(Strategy):
    """Trade SMA crossovers with a fixed position size.

    Parameters
    ----------
    symbols : sequence of str
        Symbols to watch.
    short_period, long_period : int
        SMA windows in bars.  `short_period` must be smaller.
    position_size : int
        Shares per order.
    stop_loss : StopLoss
        Template attached to every buy.
    """

    name = "ma_crossover"

    def __init__(
        self,
        symbols: Sequence[str],
        short_period: int = 20,
        long_period: int = 50,
        position_size: int = 100,
        stop_loss: Optional[StopLoss] = None,
    ) -> None:
        super().__init__(symbols)
        if short_period <= 0 or long_period <= 0:
            raise ValueError("Moving average periods must be positive")
        if short_period >= long_period:
            raise ValueError(
                f"short_period ({short_period}) must be smaller than long_period ({long_period})"
            )
        if position_size <= 0:
            raise ValueError(f"position_size must be positive, got {position_size}")
        self.short_period = short_period
        self.long_period = long_period
        self.position_size = position_size
        self.stop_loss = stop_loss or NO_STOP_LOSS
        # Calendar-day lookback, wide enough to cover weekends and holidays.
        self.lookback = pd.Timedelta(days=long_period * 2)

    def _closes(self, market: MarketDataSource, symbol: str) -> pd.Series:
        now = market.current_time()
        bars = market.history(symbol, now - self.lookback, now)
        return pd.Series([b.close for b in bars], index=[b.timestamp for b in bars], dtype=float)

    def signals(self, market: MarketDataSource, open_positions: Sequence[Position]) -> List[OrderIntent]:
        held = {p.symbol for p in open_positions}
        intents: List[OrderIntent] = []

        for symbol in self.symbols:
            try:
                closes = self._closes(market, symbol)
            except NotFoundError:
                logger.debug("No data for %s, skipping", symbol)
                continue

            # Need today's and yesterday's long SMA.
            if len(closes) < self.long_period + 1:
                continue

            short_ma = closes.rolling(self.short_period).mean()
            long_ma = closes.rolling(self.long_period).mean()
            prev_short, curr_short = short_ma.iloc[-2], short_ma.iloc[-1]
            prev_long, curr_long = long_ma.iloc[-2], long_ma.iloc[-1]
            last_close = float(closes.iloc[-1])

            bullish = prev_short <= prev_long and curr_short > curr_long
            bearish = prev_short >= prev_long and curr_short < curr_long

            if bullish and symbol not in held:
                intents.append(OrderIntent(
                    symbol=symbol,
                    side=OrderSide.BUY,
                    quantity=self.position_size,
                    stop_loss=self.stop_loss,
                    reference_price=last_close,
                    reason=f"MA{self.short_period} crossed above MA{self.long_period}",
                ))
            elif bearish and symbol in held:
                intents.append(OrderIntent(
                    symbol=symbol,
                    side=OrderSide.SELL,
                    quantity=self.position_size,
                    reference_price=last_close,
                    reason=f"MA{self.short_period} crossed below MA{self.long_period}",
                ))
        return intents
