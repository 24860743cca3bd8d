"""
Core module for the data model, indicators and risk management.

This module provides the fundamental building blocks for backtesting:
    - Data model (candles, signals, trades, account state, checkpoints)
    - Numba-accelerated technical indicators
    - Risk sizing and forward exit simulation
    - Exception taxonomy

Example:
    from core import Candles, RiskManager
    from core.indicators import rsi, atr
"""

from .errors import (
    BacktestError,
    DataUnavailable,
    DataSourceError,
    RateLimited,
    NotFound,
    TransientError,
    FetchFailed,
    ConfigurationError,
)

from .models import (
    Direction,
    Trend,
    ExitReason,
    Outcome,
    Bar,
    Candles,
    Signal,
    Position,
    TradeRecord,
    AccountState,
    ProgressCheckpoint,
    ResultRecord,
)

from .indicators import (
    BollingerBands,
    sma,
    ema,
    rsi,
    atr,
    adx,
    bollinger_bands,
    sma_slope,
    trend_direction,
)

from .risk import (
    RiskLimits,
    PositionPlan,
    ExitScan,
    RiskManager,
    scan_position_exit_numba,
)

__all__ = [
    # Errors
    'BacktestError',
    'DataUnavailable',
    'DataSourceError',
    'RateLimited',
    'NotFound',
    'TransientError',
    'FetchFailed',
    'ConfigurationError',

    # Data model
    'Direction',
    'Trend',
    'ExitReason',
    'Outcome',
    'Bar',
    'Candles',
    'Signal',
    'Position',
    'TradeRecord',
    'AccountState',
    'ProgressCheckpoint',
    'ResultRecord',

    # Indicators
    'BollingerBands',
    'sma',
    'ema',
    'rsi',
    'atr',
    'adx',
    'bollinger_bands',
    'sma_slope',
    'trend_direction',

    # Risk management
    'RiskLimits',
    'PositionPlan',
    'ExitScan',
    'RiskManager',
    'scan_position_exit_numba',
]
