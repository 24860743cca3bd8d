"""
Connector registry.

Routes a data source name to its connector class. When no source is
given, Polygon is used if POLYGON_API_KEY is set, otherwise yfinance.

Example:
    from connectors import get_connector

    connector = get_connector('yfinance')
    df = connector.fetch_bars('NVDA', '1h', '2024-01-01', '2024-06-30')
"""

import logging
from typing import Dict, Optional, Union

from dotenv import load_dotenv

from core.errors import ConfigurationError
from utils.constants import Constants

from .base import BaseConnector, DataSource
from .polygon import PolygonConnector
from .yfinance import YFinanceConnector

logger = logging.getLogger(__name__)

load_dotenv()

# Registry of available connectors
CONNECTORS: Dict[DataSource, type] = {
    DataSource.POLYGON: PolygonConnector,
    DataSource.YFINANCE: YFinanceConnector,
}


def resolve_source(source: Union[str, DataSource, None] = None) -> DataSource:
    """
    Determine which data source to use.

    Priority:
    1. Explicitly specified source
    2. If POLYGON_API_KEY is set, use Polygon
    3. Fall back to yfinance (free, no key needed)

    Raises:
        ConfigurationError: If the source name is unknown
    """
    if isinstance(source, DataSource):
        return source
    if source:
        try:
            return DataSource(source.lower())
        except ValueError as e:
            available = [s.value for s in CONNECTORS]
            raise ConfigurationError(
                f"Unknown data source: {source}. Available sources: {available}"
            ) from e

    if Constants.polygon_api_key():
        return DataSource.POLYGON
    logger.info("No POLYGON_API_KEY found, using yfinance (free, no key required)")
    return DataSource.YFINANCE


def get_connector(
    source: Union[str, DataSource, None] = None,
    **kwargs
) -> BaseConnector:
    """
    Get a connector instance for the specified data source.

    Args:
        source: Data source ('polygon', 'yfinance', DataSource, or None to auto-detect)
        **kwargs: Additional arguments passed to connector constructor

    Returns:
        Connector instance

    Raises:
        ConfigurationError: If source is unknown or its credentials are missing
    """
    source = resolve_source(source)
    connector_class: Optional[type] = CONNECTORS.get(source)

    if connector_class is None:
        available = [s.value for s in CONNECTORS.keys()]
        raise ConfigurationError(
            f"Unknown data source: {source}. Available sources: {available}"
        )

    logger.info(f"Using {source.value} connector")
    return connector_class(**kwargs)
