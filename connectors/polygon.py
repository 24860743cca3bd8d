"""
Polygon.io data connector.

This module provides bar fetching from the Polygon.io aggregates API and
maps provider failures onto the pipeline's error taxonomy:
    - HTTP 429 / "exceeded the maximum requests" -> RateLimited
    - HTTP 404 -> NotFound
    - HTTP 5xx, network errors, undecodable bodies -> TransientError

Requires POLYGON_API_KEY environment variable or explicit API key.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

import pandas as pd
import pytz
import requests

from core.errors import ConfigurationError, DataSourceError, NotFound, RateLimited, TransientError
from utils.constants import Constants

from .base import (
    BaseConnector,
    DataInterval,
    DataSource,
    filter_market_hours,
)

logger = logging.getLogger(__name__)


class PolygonConnector(BaseConnector):
    """
    Polygon.io data connector.

    Fetches aggregate bars from the Polygon.io REST API, following
    `next_url` pagination.

    Example:
        connector = PolygonConnector(api_key='your_key')
        df = connector.fetch_bars('NVDA', '15m', '2024-01-01', '2024-06-30')

    Note:
        The connector does not throttle itself. Request pacing and retries
        belong to the data pipeline's shared rate limiter.
    """

    SOURCE = DataSource.POLYGON
    SUPPORTED_INTERVALS = [
        DataInterval.MINUTE_1,
        DataInterval.MINUTE_5,
        DataInterval.MINUTE_15,
        DataInterval.MINUTE_30,
        DataInterval.HOUR_1,
        DataInterval.DAY_1,
    ]

    # API configuration
    BASE_URL = 'https://api.polygon.io'
    DEFAULT_LIMIT = 50000
    DEFAULT_TIMEZONE = 'America/New_York'
    REQUEST_TIMEOUT = 30

    # Interval mapping to Polygon API format
    INTERVAL_MAP = {
        DataInterval.MINUTE_1: ('1', 'minute'),
        DataInterval.MINUTE_5: ('5', 'minute'),
        DataInterval.MINUTE_15: ('15', 'minute'),
        DataInterval.MINUTE_30: ('30', 'minute'),
        DataInterval.HOUR_1: ('1', 'hour'),
        DataInterval.DAY_1: ('1', 'day'),
    }

    def __init__(
        self,
        api_key: Optional[str] = None,
        market_hours_only: bool = True,
        session: Optional[requests.Session] = None
    ):
        """
        Initialize the PolygonConnector.

        Args:
            api_key: Polygon API key (default: from POLYGON_API_KEY env var)
            market_hours_only: Drop pre/post market bars for minute intervals
            session: Optional requests session. Without one every call goes
                through requests.get, which is safe across fetch threads

        Raises:
            ConfigurationError: If no API key is available
        """
        super().__init__()

        self.api_key = api_key or Constants.polygon_api_key()
        if not self.api_key:
            raise ConfigurationError(
                "Polygon API key required. Set POLYGON_API_KEY environment variable "
                "or pass api_key parameter."
            )

        self.market_hours_only = market_hours_only
        self.session = session
        self.eastern = pytz.timezone(self.DEFAULT_TIMEZONE)

    def _request(self, url: str, params: Dict[str, Any], symbol: str, timeframe: str) -> Dict[str, Any]:
        """
        Perform one API request and classify failures.

        Returns:
            Decoded JSON payload
        """
        get = self.session.get if self.session is not None else requests.get
        try:
            response = get(url, params=params, timeout=self.REQUEST_TIMEOUT)
            if response.status_code == 200:
                return response.json()
        except (requests.RequestException, ValueError) as e:
            # Broken streams and truncated JSON bodies count as transient
            raise TransientError(f"Network error for {symbol}: {e}", symbol=symbol, timeframe=timeframe) from e

        try:
            error_message = response.json().get('error') or response.json().get('message', '')
        except ValueError:
            error_message = response.text

        if response.status_code == 429 or 'exceeded the maximum requests' in str(error_message).lower():
            raise RateLimited(f"Rate limited by Polygon: {error_message}", symbol=symbol, timeframe=timeframe)
        if response.status_code == 404:
            raise NotFound(f"Polygon has no data for {symbol}: {error_message}", symbol=symbol, timeframe=timeframe)
        if response.status_code >= 500:
            raise TransientError(
                f"Polygon server error {response.status_code}: {error_message}",
                symbol=symbol,
                timeframe=timeframe,
            )
        raise DataSourceError(
            f"Polygon API error {response.status_code}: {error_message}",
            symbol=symbol,
            timeframe=timeframe,
        )

    def _fetch(
        self,
        symbol: str,
        interval: DataInterval,
        start_date: str,
        end_date: str
    ) -> pd.DataFrame:
        """
        Fetch aggregate bars with pagination.

        Args:
            symbol: Stock ticker
            interval: Bar interval
            start_date: Start date (YYYY-MM-DD)
            end_date: End date (YYYY-MM-DD)

        Returns:
            DataFrame with OHLCV data and exchange-local timestamps
        """
        multiplier, timespan = self.INTERVAL_MAP[interval]
        url = (
            f'{self.BASE_URL}'
            f'/v2/aggs/ticker/{symbol}'
            f'/range/{multiplier}'
            f'/{timespan}'
            f'/{start_date}'
            f'/{end_date}'
        )
        params: Dict[str, Any] = {
            'adjusted': 'true',
            'sort': 'asc',
            'limit': self.DEFAULT_LIMIT,
            'apiKey': self.api_key,
        }

        data_list: List[Dict[str, Any]] = []
        page_count = 0

        while True:
            data = self._request(url, params, symbol, interval.value)
            page_count += 1

            for entry in data.get('results', []) or []:
                utc_time = datetime.fromtimestamp(entry['t'] / 1000, pytz.utc)
                data_list.append({
                    'time': utc_time.astimezone(self.eastern),
                    'open': entry['o'],
                    'high': entry['h'],
                    'low': entry['l'],
                    'close': entry['c'],
                    'volume': entry.get('v', 0.0),
                })

            next_url = data.get('next_url')
            if not next_url:
                break
            url = next_url
            params = {'apiKey': self.api_key}

        logger.debug(f"Polygon {symbol} {interval.value}: {len(data_list)} bars in {page_count} pages")

        df = pd.DataFrame(data_list)
        if not df.empty and self.market_hours_only and timespan == 'minute':
            df = filter_market_hours(df)
        return df
