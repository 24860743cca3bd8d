"""
Base connector interface and standard bar schema.

This module defines:
    - DataInterval / DataSource enumerations
    - The standard OHLCV bar schema every connector produces
    - Abstract base class for all market-data connectors

Connector contract:
    fetch_bars(symbol, interval, start, end) -> DataFrame of bars,
    chronological, columns time/open/high/low/close/volume.
    Raises RateLimited, NotFound or TransientError (core.errors).
"""

import logging
from abc import ABC, abstractmethod
from datetime import date, datetime
from enum import Enum
from typing import List, Optional, Union

import pandas as pd

from core.errors import ConfigurationError, NotFound
from core.models import BAR_COLUMNS

logger = logging.getLogger(__name__)

DateLike = Union[str, date, datetime, pd.Timestamp]


class DataInterval(Enum):
    """
    Supported OHLCV bar intervals.
    """
    MINUTE_1 = "1m"
    MINUTE_5 = "5m"
    MINUTE_15 = "15m"
    MINUTE_30 = "30m"
    HOUR_1 = "1h"
    DAY_1 = "1d"

    @classmethod
    def parse(cls, value: Union[str, 'DataInterval']) -> 'DataInterval':
        """
        Parse an interval label.

        Accepts enum values ('15m', '1h', '1d') and the timeframe labels
        used in configuration files ('15Min', '1Hour', '1Day').

        Raises:
            ConfigurationError: If the label is unknown
        """
        if isinstance(value, cls):
            return value
        key = str(value).strip().lower()
        aliases = {
            '1min': cls.MINUTE_1,
            '5min': cls.MINUTE_5,
            '15min': cls.MINUTE_15,
            '30min': cls.MINUTE_30,
            '1hour': cls.HOUR_1,
            '60m': cls.HOUR_1,
            '1day': cls.DAY_1,
        }
        if key in aliases:
            return aliases[key]
        for interval in cls:
            if interval.value == key:
                return interval
        raise ConfigurationError(f"Unknown interval: {value}")

    @property
    def minutes(self) -> int:
        return {
            DataInterval.MINUTE_1: 1,
            DataInterval.MINUTE_5: 5,
            DataInterval.MINUTE_15: 15,
            DataInterval.MINUTE_30: 30,
            DataInterval.HOUR_1: 60,
            DataInterval.DAY_1: 1440,
        }[self]

    @property
    def is_intraday(self) -> bool:
        return self is not DataInterval.DAY_1


class DataSource(Enum):
    """
    Supported data sources.
    """
    POLYGON = "polygon"
    YFINANCE = "yfinance"


def to_date_string(value: DateLike) -> str:
    """Format a date-like value as YYYY-MM-DD."""
    return pd.Timestamp(value).strftime('%Y-%m-%d')


class BaseConnector(ABC):
    """
    Abstract base class for all market-data connectors.

    All data source connectors must inherit from this class and implement
    fetch_bars() so the pipeline gets a consistent bar frame.

    Example:
        class MyConnector(BaseConnector):
            SOURCE = DataSource.POLYGON
            SUPPORTED_INTERVALS = [DataInterval.HOUR_1]

            def _fetch(self, symbol, interval, start, end) -> pd.DataFrame:
                # Implementation
                pass
    """

    # Class-level attributes
    SOURCE: DataSource = None  # Must be set by subclass
    SUPPORTED_INTERVALS: List[DataInterval] = []  # Must be set by subclass

    def __init__(self):
        """Initialize the connector."""
        self._validate_implementation()

    def _validate_implementation(self) -> None:
        """Validate that subclass has set required attributes."""
        if self.SOURCE is None:
            raise NotImplementedError(
                f"{self.__class__.__name__} must define SOURCE attribute"
            )
        if not self.SUPPORTED_INTERVALS:
            raise NotImplementedError(
                f"{self.__class__.__name__} must define SUPPORTED_INTERVALS"
            )

    @abstractmethod
    def _fetch(
        self,
        symbol: str,
        interval: DataInterval,
        start_date: str,
        end_date: str
    ) -> pd.DataFrame:
        """
        Fetch raw bars from the provider.

        Args:
            symbol: Ticker symbol
            interval: Bar interval
            start_date: Start date (YYYY-MM-DD)
            end_date: End date (YYYY-MM-DD)

        Returns:
            DataFrame with at least the standard bar columns
        """
        pass

    def fetch_bars(
        self,
        symbol: str,
        interval: Union[str, DataInterval],
        start: DateLike,
        end: DateLike
    ) -> pd.DataFrame:
        """
        Fetch bars for a symbol and interval over a date range.

        Args:
            symbol: Ticker symbol
            interval: Bar interval (enum or label)
            start: Start of the range
            end: End of the range

        Returns:
            Standardized bar frame

        Raises:
            NotFound: If the provider returns no bars
            RateLimited: If the provider throttles the account
            TransientError: On network errors and server failures
        """
        interval = DataInterval.parse(interval)
        self.validate_interval(interval)
        start_date, end_date = to_date_string(start), to_date_string(end)

        df = self._fetch(symbol.upper(), interval, start_date, end_date)
        df = self.standardize(df)
        if df.empty:
            raise NotFound(
                f"No {interval.value} bars for {symbol} between {start_date} and {end_date}",
                symbol=symbol,
                timeframe=interval.value,
            )
        logger.debug(f"Fetched {len(df)} {interval.value} bars for {symbol} from {self.SOURCE.value}")
        return df

    def validate_interval(self, interval: DataInterval) -> None:
        """
        Validate that the interval is supported.

        Args:
            interval: Data interval to validate

        Raises:
            ConfigurationError: If interval is not supported
        """
        if interval not in self.SUPPORTED_INTERVALS:
            supported = [i.value for i in self.SUPPORTED_INTERVALS]
            raise ConfigurationError(
                f"Interval {interval.value} not supported by {self.SOURCE.value}. "
                f"Supported intervals: {supported}"
            )

    @staticmethod
    def standardize(df: Optional[pd.DataFrame]) -> pd.DataFrame:
        """
        Conform a raw frame to the standard bar schema.

        Keeps only the bar columns, drops incomplete rows and duplicate
        timestamps, and sorts chronologically.

        Raises:
            ValueError: If required columns are missing
        """
        if df is None or df.empty:
            return pd.DataFrame(columns=BAR_COLUMNS)

        missing = set(BAR_COLUMNS) - set(df.columns)
        if missing:
            raise ValueError(f"DataFrame missing required columns: {sorted(missing)}")

        df = df[BAR_COLUMNS].dropna(subset=['time', 'open', 'high', 'low', 'close'])
        df = df.drop_duplicates(subset='time', keep='last')
        df = df.sort_values('time', kind='stable').reset_index(drop=True)
        df['volume'] = df['volume'].fillna(0.0)
        return df


def filter_market_hours(
    df: pd.DataFrame,
    market_open: str = '09:30',
    market_close: str = '15:59'
) -> pd.DataFrame:
    """
    Filter a bar frame to regular market hours.

    Args:
        df: Bar frame with an exchange-local 'time' column
        market_open: Market open time (HH:MM)
        market_close: Market close time (HH:MM)

    Returns:
        Filtered DataFrame
    """
    if df.empty:
        return df

    open_time = datetime.strptime(market_open, '%H:%M').time()
    close_time = datetime.strptime(market_close, '%H:%M').time()

    times = pd.to_datetime(df['time']).dt.time
    mask = (times >= open_time) & (times <= close_time)
    return df[mask.to_numpy()]
