"""
Data connectors module.

This module provides market data for the simulations:
    - Polygon.io (requires API key)
    - Yahoo Finance via yfinance (free, no key required)

Main Entry Points:
    - get_connector(): Build a connector for a source (auto-detected by default)
    - DataPipeline: Rate-limited, retrying worker pool over a symbol universe
    - DataManager: CSV cache for fetched bars

Example:
    from connectors import DataPipeline, PipelineConfig, get_connector

    pipeline = DataPipeline(get_connector('yfinance'), PipelineConfig(workers=2))
    df = asyncio.run(pipeline.fetch('NVDA', '1h', '2024-01-01', '2024-06-30'))

Schema:
    Every connector returns a chronological frame with columns
    time/open/high/low/close/volume.
"""

# Base classes and types
from .base import (
    BaseConnector,
    DataSource,
    DataInterval,
    filter_market_hours,
)

# Connectors
from .polygon import PolygonConnector
from .yfinance import YFinanceConnector

# Unified interface
from .data import (
    CONNECTORS,
    get_connector,
    resolve_source,
)

from .manager import DataManager
from .pipeline import DataPipeline, PipelineConfig, PipelineReport
from .throttle import RateLimiter

__all__ = [
    # Base
    'BaseConnector',
    'DataSource',
    'DataInterval',
    'filter_market_hours',

    # Connectors
    'PolygonConnector',
    'YFinanceConnector',
    'CONNECTORS',
    'get_connector',
    'resolve_source',

    # Pipeline
    'DataPipeline',
    'PipelineConfig',
    'PipelineReport',
    'RateLimiter',
    'DataManager',
]
