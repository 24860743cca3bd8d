"""
Data model shared by the indicators, strategies, simulator and pipeline.

This module defines:
    - Bar / Candles: OHLCV samples and a read-only columnar window over them
    - Signal: Directional entry suggestion produced by a strategy
    - Position / TradeRecord: Open and closed trades
    - AccountState: Running balance owned by a single simulation run
    - ProgressCheckpoint: Resumability state for the data pipeline
    - ResultRecord: Best strategy summary persisted per symbol
"""

from dataclasses import dataclass, field, asdict
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from .errors import BacktestError

BAR_COLUMNS = ['time', 'open', 'high', 'low', 'close', 'volume']
PRICE_COLUMNS = ['open', 'high', 'low', 'close', 'volume']


class Direction(Enum):
    """Side of a signal or position."""
    LONG = "long"
    SHORT = "short"


class Trend(Enum):
    """Trend reading from fast/slow moving averages."""
    UP = "up"
    DOWN = "down"


class ExitReason(Enum):
    """Why a position was closed, in trigger priority order."""
    STOP = "stop"
    PROFIT_LOCK = "profit_lock"
    TARGET = "target"
    TIMEOUT = "timeout"


class Outcome(Enum):
    """Trade outcome. Breakeven counts as a win."""
    WIN = "win"
    LOSS = "loss"


@dataclass(frozen=True)
class Bar:
    """One OHLCV sample."""
    time: pd.Timestamp
    open: float
    high: float
    low: float
    close: float
    volume: float


def _to_datetime64(value: Any) -> np.datetime64:
    """Normalize any timestamp-like value to naive UTC datetime64[ns]."""
    ts = pd.Timestamp(value)
    if ts.tzinfo is not None:
        ts = ts.tz_convert('UTC').tz_localize(None)
    return ts.to_datetime64()


def _readonly(values: Any, dtype: Any) -> np.ndarray:
    arr = np.array(values, dtype=dtype)
    arr.flags.writeable = False
    return arr


@dataclass(frozen=True)
class Candles:
    """
    Read-only columnar view over a chronological bar sequence.

    Slicing returns new Candles objects backed by views of the same
    read-only arrays, so windows are cheap to derive and cannot be
    mutated by the strategies that receive them.

    Attributes:
        time: datetime64[ns] timestamps (naive UTC)
        open, high, low, close, volume: float64 arrays
    """
    time: np.ndarray
    open: np.ndarray
    high: np.ndarray
    low: np.ndarray
    close: np.ndarray
    volume: np.ndarray

    def __post_init__(self):
        n = len(self.close)
        for name in ('time', 'open', 'high', 'low', 'volume'):
            if len(getattr(self, name)) != n:
                raise ValueError(
                    f"Column '{name}' has {len(getattr(self, name))} rows, expected {n}"
                )

    def __len__(self) -> int:
        return len(self.close)

    @classmethod
    def empty(cls) -> 'Candles':
        return cls.from_bars([])

    @classmethod
    def from_frame(cls, df: pd.DataFrame) -> 'Candles':
        """
        Build candles from a DataFrame in the standard bar schema.

        The timestamp is read from a 'time' column or, failing that, from a
        DatetimeIndex. Rows are sorted chronologically.

        Args:
            df: DataFrame with time/open/high/low/close/volume

        Returns:
            Candles instance

        Raises:
            ValueError: If required columns are missing
        """
        if df is None or df.empty:
            return cls.empty()

        frame = df
        if 'time' not in frame.columns:
            if not isinstance(frame.index, pd.DatetimeIndex):
                raise ValueError("Bar frame needs a 'time' column or a DatetimeIndex")
            frame = frame.rename_axis('time').reset_index()

        missing = set(PRICE_COLUMNS) - set(frame.columns)
        if missing:
            raise ValueError(f"Bar frame missing required columns: {sorted(missing)}")

        times = pd.to_datetime(frame['time'], utc=True).dt.tz_convert(None)
        order = np.argsort(times.to_numpy(dtype='datetime64[ns]'), kind='stable')

        return cls(
            time=_readonly(times.to_numpy(dtype='datetime64[ns]')[order], 'datetime64[ns]'),
            open=_readonly(frame['open'].to_numpy(dtype=np.float64)[order], np.float64),
            high=_readonly(frame['high'].to_numpy(dtype=np.float64)[order], np.float64),
            low=_readonly(frame['low'].to_numpy(dtype=np.float64)[order], np.float64),
            close=_readonly(frame['close'].to_numpy(dtype=np.float64)[order], np.float64),
            volume=_readonly(frame['volume'].to_numpy(dtype=np.float64)[order], np.float64),
        )

    @classmethod
    def from_bars(cls, bars: Sequence[Bar]) -> 'Candles':
        return cls(
            time=_readonly([_to_datetime64(b.time) for b in bars], 'datetime64[ns]'),
            open=_readonly([b.open for b in bars], np.float64),
            high=_readonly([b.high for b in bars], np.float64),
            low=_readonly([b.low for b in bars], np.float64),
            close=_readonly([b.close for b in bars], np.float64),
            volume=_readonly([b.volume for b in bars], np.float64),
        )

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame({
            'time': self.time,
            'open': self.open,
            'high': self.high,
            'low': self.low,
            'close': self.close,
            'volume': self.volume,
        })

    def slice(self, start: int, stop: int) -> 'Candles':
        return Candles(
            time=self.time[start:stop],
            open=self.open[start:stop],
            high=self.high[start:stop],
            low=self.low[start:stop],
            close=self.close[start:stop],
            volume=self.volume[start:stop],
        )

    def window(self, end_index: int, length: int) -> 'Candles':
        """Most recent `length` bars ending at (and including) `end_index`."""
        start = max(0, end_index - length + 1)
        return self.slice(start, end_index + 1)

    def tail(self, n: int) -> 'Candles':
        return self.slice(max(0, len(self) - n), len(self))

    def upto(self, timestamp: Any) -> 'Candles':
        """Bars whose timestamp is at or before `timestamp`."""
        end = int(np.searchsorted(self.time, _to_datetime64(timestamp), side='right'))
        return self.slice(0, end)

    @property
    def bar_length(self) -> np.timedelta64:
        """Smallest spacing between consecutive bars; zero when it cannot be measured."""
        gaps = np.diff(self.time)
        gaps = gaps[gaps > np.timedelta64(0, 'ns')]
        if len(gaps) == 0:
            return np.timedelta64(0, 'ns')
        return gaps.min()

    def closed_by(self, timestamp: Any, bar_length: Optional[np.timedelta64] = None) -> 'Candles':
        """
        Bars that have fully closed by `timestamp`.

        A bar stamped with its open time closes at time + bar_length, so a
        bar still forming at `timestamp` is left out.

        Args:
            timestamp: Point in time the caller stands at
            bar_length: Length of one bar (default: measured from the spacing)
        """
        length = self.bar_length if bar_length is None else bar_length
        return self.upto(_to_datetime64(timestamp) - length)

    def bar(self, index: int) -> Bar:
        return Bar(
            time=pd.Timestamp(self.time[index]),
            open=float(self.open[index]),
            high=float(self.high[index]),
            low=float(self.low[index]),
            close=float(self.close[index]),
            volume=float(self.volume[index]),
        )

    @property
    def last(self) -> Bar:
        return self.bar(-1)


@dataclass(frozen=True)
class Signal:
    """
    Directional entry suggestion.

    Produced once per evaluation step and consumed immediately by the
    simulator; never persisted on its own.
    """
    direction: Direction
    entry_price: float
    indicators: Dict[str, float] = field(default_factory=dict)
    reasons: Tuple[str, ...] = ()
    strategy: str = ''


@dataclass(frozen=True)
class Position:
    """An open position. Stop and target are fixed at creation."""
    direction: Direction
    entry_price: float
    stop_price: float
    target_price: float
    size: float
    open_index: int
    atr: float
    entry_time: Optional[pd.Timestamp] = None

    @property
    def cost(self) -> float:
        return self.size * self.entry_price


@dataclass(frozen=True)
class TradeRecord:
    """A closed trade. Immutable, appended to the run ledger."""
    direction: Direction
    entry_price: float
    exit_price: float
    stop_price: float
    target_price: float
    size: float
    pnl: float
    duration_bars: int
    outcome: Outcome
    exit_reason: ExitReason
    entry_index: int
    exit_index: int
    risk_reward: float = 0.0
    entry_time: Optional[pd.Timestamp] = None
    exit_time: Optional[pd.Timestamp] = None
    strategy: str = ''
    reasons: Tuple[str, ...] = ()

    @property
    def is_win(self) -> bool:
        return self.outcome is Outcome.WIN

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['direction'] = self.direction.value
        data['outcome'] = self.outcome.value
        data['exit_reason'] = self.exit_reason.value
        data['reasons'] = '; '.join(self.reasons)
        return data


@dataclass
class AccountState:
    """
    Running balance of one (symbol, strategy, run) simulation.

    Single writer: only the simulator owning the run mutates it. Once the
    balance clamps to zero the account is exhausted for good.
    """
    balance: float
    last_trade_index: Optional[int] = None
    exhausted: bool = False

    def is_cooled(self, index: int, cooldown_bars: int) -> bool:
        return (
            self.last_trade_index is None
            or index - self.last_trade_index >= cooldown_bars
        )

    def can_open(self, index: int, cooldown_bars: int) -> bool:
        return not self.exhausted and self.is_cooled(index, cooldown_bars)

    def open_position(self, cost: float) -> None:
        if self.exhausted:
            raise BacktestError("Account is exhausted, no new positions allowed")
        self.balance -= cost

    def close_position(self, cost: float, pnl: float, index: int) -> None:
        self.balance += cost + pnl
        self.last_trade_index = index
        if self.balance <= 0:
            self.balance = 0.0
            self.exhausted = True


@dataclass
class ProgressCheckpoint:
    """
    Pipeline resumability state.

    `last_symbol` is a watermark: it and every symbol before it in the
    configured order are complete. `completed_symbols` also covers symbols
    finished out of order by concurrent workers.
    """
    last_symbol: Optional[str] = None
    last_timeframe: Optional[str] = None
    last_timestamp: Optional[str] = None
    completed_symbols: List[str] = field(default_factory=list)

    def is_complete(self, symbol: str, universe: Sequence[str]) -> bool:
        return symbol not in self.pending(universe)

    def pending(self, universe: Sequence[str]) -> List[str]:
        """Symbols of `universe` that still need fetching, in order."""
        universe = list(universe)
        skip = set(self.completed_symbols)
        if self.last_symbol in universe:
            skip.update(universe[:universe.index(self.last_symbol) + 1])
        return [s for s in universe if s not in skip]

    def record(
        self,
        symbol: str,
        universe: Sequence[str],
        timeframe: Optional[str] = None,
        timestamp: Optional[Any] = None
    ) -> None:
        """Mark `symbol` complete and advance the watermark."""
        if symbol not in self.completed_symbols:
            self.completed_symbols.append(symbol)
        if timeframe is not None:
            self.last_timeframe = timeframe
        if timestamp is not None:
            self.last_timestamp = pd.Timestamp(timestamp).isoformat()

        universe = list(universe)
        done = set(self.completed_symbols)
        start = universe.index(self.last_symbol) + 1 if self.last_symbol in universe else 0
        for candidate in universe[start:]:
            if candidate not in done:
                break
            self.last_symbol = candidate

    def to_dict(self) -> Dict[str, Any]:
        return {
            'last_symbol': self.last_symbol,
            'last_timeframe': self.last_timeframe,
            'last_timestamp': self.last_timestamp,
            'completed_symbols': list(self.completed_symbols),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ProgressCheckpoint':
        return cls(
            last_symbol=data.get('last_symbol'),
            last_timeframe=data.get('last_timeframe'),
            last_timestamp=data.get('last_timestamp'),
            completed_symbols=list(data.get('completed_symbols', [])),
        )


@dataclass(frozen=True)
class ResultRecord:
    """Best-by-win-rate summary for one symbol."""
    symbol: str
    strategy: str
    win_rate: float  # percent, 0-100
    trades: int
    wins: int
    losses: int
    avg_duration: float
    avg_risk_reward: float
    name: str = ''
    updated_at: str = field(default_factory=lambda: datetime.now().isoformat(timespec='seconds'))

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ResultRecord':
        return cls(
            symbol=data['symbol'],
            strategy=data.get('strategy', ''),
            win_rate=float(data.get('win_rate', 0.0)),
            trades=int(data.get('trades', 0)),
            wins=int(data.get('wins', 0)),
            losses=int(data.get('losses', 0)),
            avg_duration=float(data.get('avg_duration', 0.0)),
            avg_risk_reward=float(data.get('avg_risk_reward', 0.0)),
            name=data.get('name', ''),
            updated_at=data.get('updated_at', ''),
        )
