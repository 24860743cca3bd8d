"""
Simulation configuration management.

This module provides the configuration of a full run: the symbol
universe, the strategies and timeframe pairs to test, the date range,
data source and output locations, plus the nested engine, risk and
pipeline settings.
"""

from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Any, Dict, List, Optional, Sequence, Tuple

import pandas as pd

from backtesting.config import BacktestParameters
from connectors.base import DataInterval
from connectors.pipeline import PipelineConfig
from core.errors import ConfigurationError
from core.risk import RiskLimits
from utils.constants import Constants

constants = Constants()

TimeframePair = Tuple[str, str]


@dataclass
class SimulationConfig:
    """
    Complete simulation configuration.

    Example:
        config = SimulationConfig(
            symbols=['NVDA', 'AAPL'],
            strategies=['momentum_pullback', 'breakout_range'],
            timeframe_pairs=[('15m', '1h'), ('1h', '1d')],
            source='yfinance'
        )
    """

    symbols: List[str] = field(default_factory=list)
    strategies: Optional[List[str]] = None  # None -> every registered strategy
    timeframe_pairs: List[TimeframePair] = field(default_factory=lambda: list(constants.timeframe_pairs))
    names: Dict[str, str] = field(default_factory=dict)  # symbol -> company name

    # Date range
    end_date: Optional[str] = None  # YYYY-MM-DD, default today
    start_date: Optional[str] = None  # YYYY-MM-DD, default end - lookback_days
    lookback_days: int = constants.lookback_days
    retry_lookback_days: int = constants.retry_lookback_days
    retry_zero_win_rate: bool = True

    # Data
    source: Optional[str] = None  # None -> auto-detect
    cache_bars: bool = False

    # Output locations
    results_path: str = constants.results_path
    checkpoint_path: str = constants.checkpoint_path
    data_dir: str = constants.data_dir

    # Optional global override of every strategy's multipliers
    stop_multiplier: Optional[float] = None
    target_multiplier: Optional[float] = None

    backtest: BacktestParameters = field(default_factory=BacktestParameters)
    risk: RiskLimits = field(default_factory=RiskLimits)
    pipeline: PipelineConfig = field(default_factory=PipelineConfig)

    def __post_init__(self):
        self.symbols = [s.strip().upper() for s in self.symbols if s and s.strip()]
        self.timeframe_pairs = [
            (DataInterval.parse(lower).value, DataInterval.parse(higher).value)
            for lower, higher in self.timeframe_pairs
        ]
        self.validate()

    def validate(self) -> None:
        """
        Raises:
            ConfigurationError: On unknown intervals or an invalid date range
        """
        if not self.timeframe_pairs:
            raise ConfigurationError("At least one timeframe pair is required")
        for lower, higher in self.timeframe_pairs:
            lower_iv, higher_iv = DataInterval.parse(lower), DataInterval.parse(higher)
            if higher_iv.minutes <= lower_iv.minutes:
                raise ConfigurationError(
                    f"Higher timeframe {higher} must be coarser than {lower}"
                )
        if self.lookback_days < 1 or self.retry_lookback_days < 1:
            raise ConfigurationError("lookback_days and retry_lookback_days must be positive")

        start, end = self.date_range()
        if start >= end:
            raise ConfigurationError(f"start_date {start} must be before end_date {end}")

    @property
    def timeframes(self) -> List[str]:
        """Distinct timeframes across all pairs, in first-seen order."""
        seen: List[str] = []
        for pair in self.timeframe_pairs:
            for tf in pair:
                if tf not in seen:
                    seen.append(tf)
        return seen

    def date_range(self, lookback_days: Optional[int] = None) -> Tuple[str, str]:
        """
        Resolve the (start, end) date strings.

        Args:
            lookback_days: Override of the configured lookback (used for retries)

        Returns:
            Tuple of YYYY-MM-DD strings
        """
        end = pd.Timestamp(self.end_date).date() if self.end_date else date.today()
        if self.start_date and lookback_days is None:
            start = pd.Timestamp(self.start_date).date()
        else:
            start = end - timedelta(days=lookback_days or self.lookback_days)
        return start.isoformat(), end.isoformat()

    def retry_range(self) -> Tuple[str, str]:
        return self.date_range(self.retry_lookback_days)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            'symbols': list(self.symbols),
            'strategies': list(self.strategies) if self.strategies is not None else None,
            'timeframe_pairs': [list(p) for p in self.timeframe_pairs],
            'names': dict(self.names),
            'start_date': self.start_date,
            'end_date': self.end_date,
            'lookback_days': self.lookback_days,
            'retry_lookback_days': self.retry_lookback_days,
            'retry_zero_win_rate': self.retry_zero_win_rate,
            'source': self.source,
            'cache_bars': self.cache_bars,
            'results_path': self.results_path,
            'checkpoint_path': self.checkpoint_path,
            'data_dir': self.data_dir,
            'stop_multiplier': self.stop_multiplier,
            'target_multiplier': self.target_multiplier,
            'backtest': self.backtest.to_dict(),
            'risk': self.risk.to_dict(),
            'pipeline': self.pipeline.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'SimulationConfig':
        """
        Build a configuration from a plain dictionary.

        Unknown keys are ignored; nested sections may be dictionaries.
        """
        data = dict(data)
        nested = {
            'backtest': BacktestParameters.from_dict(data.pop('backtest', None) or {}),
            'risk': RiskLimits.from_dict(data.pop('risk', None) or {}),
            'pipeline': PipelineConfig.from_dict(data.pop('pipeline', None) or {}),
        }
        known = {k: v for k, v in data.items() if k in cls.__dataclass_fields__}
        return cls(**known, **nested)


def load_symbols(path: str, column: str = 'Symbol') -> Tuple[List[str], Dict[str, str]]:
    """
    Read a symbol universe from a CSV file.

    Args:
        path: CSV file with a `column` column and an optional 'Name' column
        column: Symbol column name

    Returns:
        (symbols in file order, symbol -> name)

    Raises:
        ConfigurationError: If the file lacks the symbol column
    """
    df = pd.read_csv(path)
    if column not in df.columns:
        raise ConfigurationError(f"{path} has no '{column}' column")

    df = df.dropna(subset=[column])
    symbols = [str(s).strip().upper() for s in df[column]]
    names: Dict[str, str] = {}
    if 'Name' in df.columns:
        names = {
            str(s).strip().upper(): str(n)
            for s, n in zip(df[column], df['Name'])
            if isinstance(n, str)
        }
    return list(dict.fromkeys(symbols)), names


def parse_timeframe_pairs(values: Sequence[str]) -> List[TimeframePair]:
    """Parse 'lower:higher' strings such as '15m:1h'."""
    pairs = []
    for value in values:
        lower, sep, higher = value.partition(':')
        if not sep or not lower or not higher:
            raise ConfigurationError(f"Timeframe pair must look like '15m:1h', got {value!r}")
        pairs.append((lower.strip(), higher.strip()))
    return pairs
