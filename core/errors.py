"""
Exception taxonomy for the backtest engine.

Classes:
    - BacktestError: Root of every error raised by this package
    - DataUnavailable: Window too short for an indicator (recovered as "no signal")
    - DataSourceError: Base for market-data failures, carries symbol/timeframe
    - RateLimited: Account-wide throttling response from the data provider
    - NotFound: Unknown symbol or empty range on the provider side
    - TransientError: Network failures and 5xx responses
    - FetchFailed: Retry budget exhausted for one fetch
    - ConfigurationError: Fatal setup problem, aborts before any simulation
"""

from typing import Optional


class BacktestError(Exception):
    """Base class for all backtest errors."""


class DataUnavailable(BacktestError):
    """Raised when a window is too short to compute a required reading."""


class DataSourceError(BacktestError):
    """
    Base class for market-data collaborator failures.

    Args:
        message: Human readable description
        symbol: Symbol being fetched, if known
        timeframe: Timeframe being fetched, if known
    """

    def __init__(
        self,
        message: str,
        symbol: Optional[str] = None,
        timeframe: Optional[str] = None
    ):
        super().__init__(message)
        self.symbol = symbol
        self.timeframe = timeframe


class RateLimited(DataSourceError):
    """Provider throttled the account (HTTP 429 or equivalent)."""


class NotFound(DataSourceError):
    """Provider does not know the symbol or has no data for it."""


class TransientError(DataSourceError):
    """Network error or server-side failure worth retrying."""


class FetchFailed(DataSourceError):
    """A fetch kept failing until the retry budget ran out."""

    def __init__(
        self,
        message: str,
        symbol: Optional[str] = None,
        timeframe: Optional[str] = None,
        attempts: int = 0
    ):
        super().__init__(message, symbol=symbol, timeframe=timeframe)
        self.attempts = attempts


class ConfigurationError(BacktestError):
    """Missing strategy plug-in, missing credentials or invalid settings."""
