from __future__ import annotations

import asyncio
from typing import Callable, Dict, List, Optional

import numpy as np
import pandas as pd
import pytest

from connectors.base import BaseConnector, DataInterval, DataSource
from core.models import Candles


def build_frame(
    closes,
    start: str = '2024-01-02 09:30',
    freq: str = '15min',
    spread: float = 0.5,
    volumes=None,
    opens=None,
) -> pd.DataFrame:
    closes = np.asarray(closes, dtype=float)
    n = len(closes)
    if opens is None:
        opens = np.concatenate([[closes[0]], closes[:-1]])
    if volumes is None:
        volumes = np.full(n, 1000.0)
    return pd.DataFrame({
        'time': pd.date_range(start, periods=n, freq=freq),
        'open': np.asarray(opens, dtype=float),
        'high': closes + spread,
        'low': closes - spread,
        'close': closes,
        'volume': np.asarray(volumes, dtype=float),
    })


def sawtooth_closes(n: int = 40) -> List[float]:
    """Rising series that steps +2 on even bars and -1 on odd bars."""
    return [100 + k / 2 if k % 2 == 0 else 100 + k / 2 - 1.5 for k in range(n)]


class FakeConnector(BaseConnector):
    """Connector serving prepared frames per interval, with scripted failures."""

    SOURCE = DataSource.YFINANCE
    SUPPORTED_INTERVALS = list(DataInterval)

    def __init__(self, frames: Dict[str, pd.DataFrame], errors: Optional[List[Exception]] = None):
        super().__init__()
        self.frames = frames
        self.errors = list(errors or [])
        self.calls: List[tuple] = []

    def _fetch(self, symbol, interval, start_date, end_date):
        self.calls.append((symbol, interval.value, start_date, end_date))
        if self.errors:
            raise self.errors.pop(0)
        return self.frames.get(interval.value, pd.DataFrame()).copy()


class RecordingSleep:
    """Async sleep stand-in that records delays and only yields once."""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)
        await asyncio.sleep(0)


@pytest.fixture
def make_frame() -> Callable[..., pd.DataFrame]:
    return build_frame


@pytest.fixture
def make_candles() -> Callable[..., Candles]:
    def factory(closes, **kwargs) -> Candles:
        return Candles.from_frame(build_frame(closes, **kwargs))
    return factory


@pytest.fixture
def sawtooth_frames() -> Dict[str, pd.DataFrame]:
    """
    15m series with one volume spike at bar 30 plus a rising hourly context.

    momentum_pullback takes exactly one long at bar 30 (entry 115, ATR 2)
    which locks its profit at bar 32 (close 116).
    """
    volumes = np.full(40, 1000.0)
    volumes[30] = 5000.0
    lower = build_frame(sawtooth_closes(40), volumes=volumes)
    higher = build_frame([50.0 + k for k in range(30)], start='2024-01-01 00:00', freq='1h')
    return {'15m': lower, '1h': higher}


@pytest.fixture
def fake_connector_class():
    return FakeConnector


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()
