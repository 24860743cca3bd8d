"""
Yahoo Finance data connector via yfinance.

No API key required - uses the free yfinance library.

Note:
    Yahoo Finance has limitations on intraday data:
    - 1m data: last 7 days only
    - 5m-30m data: last 60 days only
    - 1h data: last ~730 days
    - Daily: full history
"""

import logging
from datetime import datetime, timedelta
from typing import Tuple

import pandas as pd
import yfinance as yf
from yfinance.exceptions import YFRateLimitError

from core.errors import RateLimited, TransientError

from .base import (
    BaseConnector,
    DataInterval,
    DataSource,
    filter_market_hours,
)

logger = logging.getLogger(__name__)


class YFinanceConnector(BaseConnector):
    """
    Yahoo Finance data connector using yfinance library.

    Example:
        connector = YFinanceConnector()
        df = connector.fetch_bars('NVDA', '1h', '2024-01-01', '2024-06-30')

    Limitations:
        - Intraday history is capped per interval (see INTRADAY_LIMITS);
          the start date is moved forward when it exceeds the cap
    """

    SOURCE = DataSource.YFINANCE
    SUPPORTED_INTERVALS = [
        DataInterval.MINUTE_1,
        DataInterval.MINUTE_5,
        DataInterval.MINUTE_15,
        DataInterval.MINUTE_30,
        DataInterval.HOUR_1,
        DataInterval.DAY_1,
    ]

    # yfinance interval string mapping
    INTERVAL_MAP = {
        DataInterval.MINUTE_1: '1m',
        DataInterval.MINUTE_5: '5m',
        DataInterval.MINUTE_15: '15m',
        DataInterval.MINUTE_30: '30m',
        DataInterval.HOUR_1: '1h',
        DataInterval.DAY_1: '1d',
    }

    # Maximum lookback for intraday data (days)
    INTRADAY_LIMITS = {
        DataInterval.MINUTE_1: 7,
        DataInterval.MINUTE_5: 60,
        DataInterval.MINUTE_15: 60,
        DataInterval.MINUTE_30: 60,
        DataInterval.HOUR_1: 730,
    }

    def __init__(self, market_hours_only: bool = True):
        """
        Initialize the YFinanceConnector.

        Args:
            market_hours_only: Drop pre/post market bars for intraday intervals
        """
        super().__init__()
        self.market_hours_only = market_hours_only

    def _adjust_date_range_for_interval(
        self,
        start_date: str,
        end_date: str,
        interval: DataInterval
    ) -> Tuple[str, str]:
        """
        Adjust date range based on yfinance limitations.

        Args:
            start_date: Requested start date
            end_date: Requested end date
            interval: Data interval

        Returns:
            Adjusted (start_date, end_date) tuple
        """
        end_dt = datetime.strptime(end_date, '%Y-%m-%d')
        start_dt = datetime.strptime(start_date, '%Y-%m-%d')

        max_days = self.INTRADAY_LIMITS.get(interval)

        if max_days:
            earliest_allowed = end_dt - timedelta(days=max_days)
            if start_dt < earliest_allowed:
                logger.warning(
                    f"Adjusting start date from {start_date} to "
                    f"{earliest_allowed.strftime('%Y-%m-%d')} due to "
                    f"yfinance {interval.value} data limitation ({max_days} days max)"
                )
                start_dt = earliest_allowed

        return start_dt.strftime('%Y-%m-%d'), end_dt.strftime('%Y-%m-%d')

    def _fetch(
        self,
        symbol: str,
        interval: DataInterval,
        start_date: str,
        end_date: str
    ) -> pd.DataFrame:
        """
        Fetch bars through yfinance.

        Returns:
            DataFrame with standard bar columns
        """
        start_date, end_date = self._adjust_date_range_for_interval(start_date, end_date, interval)

        try:
            df = yf.Ticker(symbol).history(
                start=start_date,
                end=end_date,
                interval=self.INTERVAL_MAP[interval],
                prepost=False,
                actions=False,
                auto_adjust=True,
            )
        except YFRateLimitError as e:
            raise RateLimited(f"Rate limited by Yahoo Finance: {e}", symbol=symbol, timeframe=interval.value) from e
        except OSError as e:
            raise TransientError(f"yfinance request failed for {symbol}: {e}", symbol=symbol, timeframe=interval.value) from e

        if df is None or df.empty:
            return pd.DataFrame()

        df = df.rename_axis('time').reset_index()
        df = df.rename(columns={
            'Open': 'open',
            'High': 'high',
            'Low': 'low',
            'Close': 'close',
            'Volume': 'volume',
        })

        if self.market_hours_only and interval.is_intraday and interval is not DataInterval.HOUR_1:
            df = filter_market_hours(df)

        return df
