"""
Backtest configuration.

The YAML file (`config.yaml` by default) is parsed into the nested
dataclasses below.  Omitted keys take the dataclass defaults, so a
minimal file only needs the date range and the strategy symbols.
`config_from_dict()` does the merging and validation and
`load_config()` wraps it for files on disk.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import List, Optional, Dict, Any
import yaml


@dataclass
class StopLossSpec:
    """Stop loss attached to every buy.

    Attributes
    ----------
    price_threshold : float, optional
        Exit when the close is at or below this price.
    days_to_hold : int, optional
        Exit after holding for this many whole days.

    At most one of the two may be set.
    """

    price_threshold: Optional[float] = None
    days_to_hold: Optional[int] = None


@dataclass
class StrategyConfig:
    """Strategy selection and parameters.

    Attributes
    ----------
    type : str
        Registered strategy tag.  Only ``ma_crossover`` ships today.
    symbols : List[str]
        Symbols the strategy trades.
    short_period : int
        Short moving average window in bars.
    long_period : int
        Long moving average window in bars.
    position_size : int
        Fixed number of shares per order.
    stop_loss : StopLossSpec
        Stop loss template for new positions.
    """

    type: str = "ma_crossover"
    symbols: List[str] = field(default_factory=list)
    short_period: int = 20
    long_period: int = 50
    position_size: int = 100
    stop_loss: StopLossSpec = field(default_factory=StopLossSpec)

    def to_dict(self) -> Dict[str, Any]:
        """Mapping accepted by `strategy.factory.build_strategy`."""
        return asdict(self)


@dataclass
class CostsConfig:
    """Models trading costs.

    Attributes
    ----------
    commission : float
        Flat fee charged on every order.
    commission_per_share : float
        When greater than zero, charge this per share instead of the flat
        fee, with `commission` acting as the minimum ticket.
    credit_net_proceeds : bool
        Deduct the commission from the cash credited on a sale.  When
        false the gross proceeds are credited and the commission only
        reduces the reported P&L.
    """

    commission: float = 5.0
    commission_per_share: float = 0.0
    credit_net_proceeds: bool = True


@dataclass
class RiskConfig:
    """Pre-trade risk limits.

    Attributes
    ----------
    max_position_fraction : float
        Largest share of initial capital a single order may move.
    cap_sells : bool
        Apply the cap to sells too.  Set false to never refuse an exit
        for its size.
    """

    max_position_fraction: float = 0.25
    cap_sells: bool = True


@dataclass
class DataConfig:
    """Data source configuration.

    Attributes
    ----------
    csv_dir : str
        Directory containing one `{SYMBOL}.csv` file per symbol.
    lookback_days : int
        Calendar days of history loaded before `start_date` so that
        indicators have data on the first simulated day.
    """

    csv_dir: str = "data"
    lookback_days: int = 100


@dataclass
class Config:
    """Root configuration for a backtest run.

    Attributes
    ----------
    account_id : int
        Account the backtest trades.
    account_name : str
        Display name for the simulated account.
    start_date : str
        First simulated day, ``YYYY-MM-DD``.
    end_date : str
        Last simulated day, ``YYYY-MM-DD``.
    initial_capital : float
        Starting cash.
    strategy : StrategyConfig
        Strategy type and parameters.
    costs : CostsConfig
        Commission model.
    risk : RiskConfig
        Risk limits.
    data : DataConfig
        Data source configuration.
    output_dir : str
        Directory for the report files.
    """

    account_id: int = 1
    account_name: str = ""
    start_date: str = ""
    end_date: str = ""
    initial_capital: float = 100_000.0
    strategy: StrategyConfig = field(default_factory=StrategyConfig)
    costs: CostsConfig = field(default_factory=CostsConfig)
    risk: RiskConfig = field(default_factory=RiskConfig)
    data: DataConfig = field(default_factory=DataConfig)
    output_dir: str = "results"


def _merge_dict(defaults: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge two dictionaries.

    The values in `override` take precedence over those in `defaults`.
    This helper is used when loading YAML into nested dataclasses.
    """
    result: Dict[str, Any] = defaults.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _merge_dict(result[key], value)
        else:
            result[key] = value
    return result


def config_from_dict(raw: Dict[str, Any]) -> Config:
    """Build a `Config` from a plain dictionary, filling in defaults."""
    defaults: Dict[str, Any] = asdict(Config())
    merged = _merge_dict(defaults, raw or {})

    strategy_raw = dict(merged['strategy'])
    stop_loss_cfg = StopLossSpec(**(strategy_raw.pop('stop_loss') or {}))
    if stop_loss_cfg.price_threshold is not None and stop_loss_cfg.days_to_hold is not None:
        raise ValueError("strategy.stop_loss takes either price_threshold or days_to_hold, not both")
    strategy_cfg = StrategyConfig(stop_loss=stop_loss_cfg, **strategy_raw)
    strategy_cfg.symbols = [str(s) for s in strategy_cfg.symbols]

    cfg = Config(
        account_id=int(merged['account_id']),
        account_name=str(merged['account_name']),
        start_date=str(merged['start_date']),
        end_date=str(merged['end_date']),
        initial_capital=float(merged['initial_capital']),
        strategy=strategy_cfg,
        costs=CostsConfig(**merged['costs']),
        risk=RiskConfig(**merged['risk']),
        data=DataConfig(**merged['data']),
        output_dir=str(merged['output_dir']),
    )
    if not cfg.start_date or not cfg.end_date:
        raise ValueError("start_date and end_date are required")
    return cfg


def load_config(path: str) -> Config:
    """Load a configuration file from the given YAML path.

    Parameters
    ----------
    path : str
        Path to the YAML file.

    Returns
    -------
    Config
        A populated configuration object.  Missing fields are filled with
        sensible defaults defined in the dataclasses.
    """
    with open(path, "r", encoding="utf-8") as fh:
        raw: Dict[str, Any] = yaml.safe_load(fh) or {}
    return config_from_dict(raw)
