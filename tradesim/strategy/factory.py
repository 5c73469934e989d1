"""
Strategy construction from configuration.

Every strategy is registered under a type tag in `_REGISTRY`.  Adding a
strategy means adding one entry here; nothing in the execution code
changes.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, Mapping

from ..execution.models import stop_loss_from_dict
from .base import Strategy
from .ma_crossover import MovingAverageCrossoverStrategy


def _build_ma_crossover(cfg: Mapping[str, Any]) -> Strategy:
    def pick(camel: str, snake: str, default):
        value = cfg.get(camel, cfg.get(snake))
        return default if value is None else value

    return MovingAverageCrossoverStrategy(
        symbols=list(cfg.get('symbols') or []),
        short_period=int(pick('shortPeriod', 'short_period', 20)),
        long_period=int(pick('longPeriod', 'long_period', 50)),
        position_size=int(pick('positionSize', 'position_size', 100)),
        stop_loss=stop_loss_from_dict(cfg.get('stopLoss', cfg.get('stop_loss'))),
    )


_REGISTRY: Dict[str, Callable[[Mapping[str, Any]], Strategy]] = {
    'ma_crossover': _build_ma_crossover,
}


def available_strategies():
    return sorted(_REGISTRY)


def build_strategy(cfg: Mapping[str, Any]) -> Strategy:
    """Create a strategy from a config mapping with a ``type`` tag.

    Keys may be camelCase (``shortPeriod``) as on the wire or snake_case
    as in the YAML file.  Unknown types raise `ValueError`.
    """
    strategy_type = str(cfg.get('type', 'ma_crossover')).lower()
    if strategy_type not in _REGISTRY:
        raise ValueError(f"Unknown strategy type: {cfg.get('type')}")
    return _REGISTRY[strategy_type](cfg)
