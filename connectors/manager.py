"""
Bar cache for fetched market data.

This module provides:
    - DataManager: saves and loads bar frames as CSV files

Directory Structure:
    outputs/data/
    └── {SYMBOL}/
        ├── {SYMBOL}_15m.csv
        ├── {SYMBOL}_1h.csv
        └── {SYMBOL}_1d.csv

Example:
    from connectors import DataManager

    manager = DataManager()
    manager.save_bars('NVDA', '15m', df)

    if manager.has_bars('NVDA', '15m'):
        df = manager.load_bars('NVDA', '15m')
"""

import logging
from pathlib import Path
from typing import List, Optional, Union

import pandas as pd

from core.models import BAR_COLUMNS

from .base import DataInterval

logger = logging.getLogger(__name__)


class DataManager:
    """
    CSV persistence for standardized bar frames.

    One file per (symbol, timeframe); saving overwrites the previous file.

    Attributes:
        base_dir: Root directory for saved bars
    """

    def __init__(self, base_dir: Union[str, Path] = 'outputs/data'):
        """
        Initialize the DataManager.

        Args:
            base_dir: Root directory for all saved data
        """
        self.base_dir = Path(base_dir)


    def _get_ticker_dir(self, symbol: str, create: bool = False) -> Path:
        ticker_dir = self.base_dir / symbol.upper()
        if create:
            ticker_dir.mkdir(parents=True, exist_ok=True)
        return ticker_dir


    def get_path(self, symbol: str, timeframe: Union[str, DataInterval]) -> Path:
        """
        Path of the cache file for a symbol and timeframe.

        Args:
            symbol: Stock ticker symbol
            timeframe: Bar interval (enum or label)

        Returns:
            Path like 'outputs/data/NVDA/NVDA_15m.csv'
        """
        interval = DataInterval.parse(timeframe)
        return self._get_ticker_dir(symbol) / f"{symbol.upper()}_{interval.value}.csv"


    def has_bars(self, symbol: str, timeframe: Union[str, DataInterval]) -> bool:
        """Whether a cache file exists for the symbol and timeframe."""
        return self.get_path(symbol, timeframe).exists()


    def save_bars(
        self,
        symbol: str,
        timeframe: Union[str, DataInterval],
        df: pd.DataFrame
    ) -> Path:
        """
        Save a bar frame.

        Args:
            symbol: Stock ticker symbol
            timeframe: Bar interval
            df: Frame with the standard bar columns

        Returns:
            Path to the saved file

        Raises:
            ValueError: If required columns are missing
        """
        missing = set(BAR_COLUMNS) - set(df.columns)
        if missing:
            raise ValueError(f"Cannot save bars for {symbol}: missing columns {sorted(missing)}")

        self._get_ticker_dir(symbol, create=True)
        filepath = self.get_path(symbol, timeframe)
        df[BAR_COLUMNS].to_csv(filepath, index=False)

        logger.info(f"Saved {len(df)} bars to {filepath}")
        return filepath


    def load_bars(
        self,
        symbol: str,
        timeframe: Union[str, DataInterval]
    ) -> Optional[pd.DataFrame]:
        """
        Load a cached bar frame.

        Args:
            symbol: Stock ticker symbol
            timeframe: Bar interval

        Returns:
            DataFrame with a tz-aware 'time' column, or None if not cached
        """
        filepath = self.get_path(symbol, timeframe)
        if not filepath.exists():
            logger.debug(f"No cached bars at {filepath}")
            return None

        df = pd.read_csv(filepath)
        df['time'] = pd.to_datetime(df['time'], utc=True)
        logger.debug(f"Loaded {len(df)} bars from {filepath}")
        return df


    def list_tickers(self) -> List[str]:
        """Symbols with at least one cached file."""
        if not self.base_dir.exists():
            return []
        return sorted(
            d.name for d in self.base_dir.iterdir()
            if d.is_dir() and any(d.glob('*.csv'))
        )
