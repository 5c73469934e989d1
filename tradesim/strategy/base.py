"""
Strategy interface.

A strategy looks at the market as of the simulation clock and at the
account's open positions, and returns the orders it wants placed
today.  It never touches the ledger or the position book directly;
every intent goes through the order executor.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import List, Sequence

from ..data.market_data import MarketDataSource
from ..execution.models import OrderIntent, Position


class Strategy(ABC):
    """Base class for all strategies.

    Subclasses are configured purely through constructor parameters and
    registered under a type tag in `strategy.factory`.
    """

    name: str = "strategy"

    def __init__(self, symbols: Sequence[str]) -> None:
        self.symbols: List[str] = list(symbols)

    @abstractmethod
    def signals(self, market: MarketDataSource, open_positions: Sequence[Position]) -> List[OrderIntent]:
        """Return the intents for the current simulated day, in execution order."""
