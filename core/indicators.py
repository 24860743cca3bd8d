"""
Technical indicator library.

Pure functions over trailing windows. Every indicator returns None when
the window is shorter than it needs, never a numeric default.

Functions:
    - sma: Simple moving average of the last `period` values
    - ema: Exponential moving average seeded with the SMA of the first `period`
    - rsi: Relative Strength Index with Wilder smoothing
    - atr: Average True Range over the last `period` true ranges
    - adx: Simplified single-pass directional index
    - bollinger_bands: SMA +/- mult x population standard deviation
    - sma_slope: Sum of the last `period` one-bar deltas
    - trend_direction: UP when SMA9 > SMA21 of the closes, else DOWN

Numba kernels:
    - true_range_numba
    - directional_movement_numba
    - wilder_rsi_numba
"""

from dataclasses import dataclass
from typing import Optional, Sequence, Tuple, Union

import numpy as np
from numba import njit

from .models import Candles, Trend

ArrayLike = Union[Sequence[float], np.ndarray]

FAST_TREND_PERIOD = 9
SLOW_TREND_PERIOD = 21


@dataclass(frozen=True)
class BollingerBands:
    """Upper/middle/lower band triple."""
    upper: float
    middle: float
    lower: float

    @property
    def width(self) -> float:
        return self.upper - self.lower


@njit(cache=True)
def true_range_numba(
    high_prices: np.ndarray,
    low_prices: np.ndarray,
    close_prices: np.ndarray
) -> np.ndarray:
    """
    JIT-compiled True Range for every bar that has a previous close.

    True Range = max(
        high - low,
        abs(high - prev_close),
        abs(low - prev_close)
    )

    Args:
        high_prices: Array of high prices
        low_prices: Array of low prices
        close_prices: Array of close prices

    Returns:
        Array of length n - 1, element k is the TR of bar k + 1
    """
    n = len(high_prices)
    if n < 2:
        return np.zeros(0, dtype=np.float64)

    tr = np.zeros(n - 1, dtype=np.float64)
    for i in range(1, n):
        prev_close = close_prices[i - 1]
        high_low = high_prices[i] - low_prices[i]
        high_prev_close = abs(high_prices[i] - prev_close)
        low_prev_close = abs(low_prices[i] - prev_close)
        tr[i - 1] = max(high_low, high_prev_close, low_prev_close)

    return tr


@njit(cache=True)
def directional_movement_numba(
    high_prices: np.ndarray,
    low_prices: np.ndarray
) -> Tuple[np.ndarray, np.ndarray]:
    """
    JIT-compiled +DM / -DM series.

    +DM = up_move if up_move > down_move and up_move > 0 else 0
    -DM = down_move if down_move > up_move and down_move > 0 else 0

    Args:
        high_prices: Array of high prices
        low_prices: Array of low prices

    Returns:
        Tuple of (plus_dm, minus_dm), each of length n - 1
    """
    n = len(high_prices)
    size = n - 1 if n > 1 else 0
    plus_dm = np.zeros(size, dtype=np.float64)
    minus_dm = np.zeros(size, dtype=np.float64)

    for i in range(1, n):
        up_move = high_prices[i] - high_prices[i - 1]
        down_move = low_prices[i - 1] - low_prices[i]
        if up_move > down_move and up_move > 0:
            plus_dm[i - 1] = up_move
        if down_move > up_move and down_move > 0:
            minus_dm[i - 1] = down_move

    return plus_dm, minus_dm


@njit(cache=True)
def wilder_rsi_numba(prices: np.ndarray, period: int) -> float:
    """
    JIT-compiled RSI of the whole array.

    The first `period` deltas seed the average gain/loss; every later delta
    is folded in with Wilder smoothing.

    Args:
        prices: Array of prices, at least period + 1 long
        period: RSI period

    Returns:
        RSI value, NaN when the array is too short
    """
    n = len(prices)
    if n <= period:
        return np.nan

    gains = 0.0
    losses = 0.0
    for i in range(1, period + 1):
        diff = prices[i] - prices[i - 1]
        if diff >= 0:
            gains += diff
        else:
            losses -= diff

    avg_gain = gains / period
    avg_loss = losses / period

    for i in range(period + 1, n):
        diff = prices[i] - prices[i - 1]
        avg_gain = (avg_gain * (period - 1) + max(diff, 0.0)) / period
        avg_loss = (avg_loss * (period - 1) + max(-diff, 0.0)) / period

    if avg_loss == 0:
        return 100.0

    rs = avg_gain / avg_loss
    return 100.0 - 100.0 / (1.0 + rs)


def _as_array(series: ArrayLike) -> np.ndarray:
    return np.asarray(series, dtype=np.float64)


def _check_period(period: int) -> None:
    if period < 1:
        raise ValueError(f"Period must be >= 1, got {period}")


def sma(series: ArrayLike, period: int) -> Optional[float]:
    """
    Arithmetic mean of the last `period` elements.

    Args:
        series: Values, oldest first
        period: Number of trailing elements

    Returns:
        SMA value or None if fewer than `period` elements
    """
    _check_period(period)
    values = _as_array(series)
    if len(values) < period:
        return None
    return float(values[-period:].sum() / period)


def ema(series: ArrayLike, period: int) -> Optional[float]:
    """
    Exponential moving average with k = 2 / (period + 1).

    Seeded with the SMA of the first `period` elements, then rolled forward
    over the remaining elements.
    """
    _check_period(period)
    values = _as_array(series)
    if len(values) < period:
        return None

    k = 2.0 / (period + 1)
    value = float(values[:period].sum() / period)
    for price in values[period:]:
        value = float(price) * k + value * (1 - k)
    return value


def rsi(series: ArrayLike, period: int = 14) -> Optional[float]:
    """
    Relative Strength Index.

    Args:
        series: Prices, oldest first
        period: RSI period (default 14)

    Returns:
        RSI in [0, 100], 100 when there were no losses, None with fewer
        than period + 1 prices
    """
    _check_period(period)
    values = _as_array(series)
    if len(values) <= period:
        return None
    return float(wilder_rsi_numba(values, period))


def atr(candles: Candles, period: int = 14) -> Optional[float]:
    """
    Average True Range: mean of the last `period` true ranges.

    Needs period + 1 candles since every true range uses a previous close.
    """
    _check_period(period)
    if len(candles) < period + 1:
        return None
    tr = true_range_numba(candles.high, candles.low, candles.close)
    return float(tr[-period:].sum() / period)


def adx(candles: Candles, period: int = 14) -> Optional[float]:
    """
    Simplified directional index.

    +DM, -DM and TR are averaged (plain SMA) over the last `period` bars,
    +DI / -DI are their ratios to TR, and the result is the single DX value
    |+DI - -DI| / (+DI + -DI) x 100. This is not the double-smoothed
    canonical ADX; strategy thresholds are tuned against this form.

    Returns:
        DX value in [0, 100], 0.0 when the window has no range or no
        directional movement, None with fewer than period + 1 candles
    """
    _check_period(period)
    if len(candles) < period + 1:
        return None

    tr = true_range_numba(candles.high, candles.low, candles.close)
    plus_dm, minus_dm = directional_movement_numba(candles.high, candles.low)

    smooth_tr = tr[-period:].sum() / period
    if smooth_tr <= 0:
        return 0.0

    plus_di = plus_dm[-period:].sum() / period / smooth_tr * 100
    minus_di = minus_dm[-period:].sum() / period / smooth_tr * 100
    di_sum = plus_di + minus_di
    if di_sum <= 0:
        return 0.0

    return float(abs(plus_di - minus_di) / di_sum * 100)


def bollinger_bands(
    series: ArrayLike,
    period: int = 20,
    mult: float = 2.0
) -> Optional[BollingerBands]:
    """
    Bollinger Bands over the last `period` values.

    Args:
        series: Prices, oldest first
        period: Window length (default 20)
        mult: Standard deviation multiplier (default 2)

    Returns:
        BollingerBands or None if the window is too short
    """
    _check_period(period)
    values = _as_array(series)
    if len(values) < period:
        return None

    window = values[-period:]
    middle = float(window.sum() / period)
    std = float(np.sqrt(((window - middle) ** 2).sum() / period))
    return BollingerBands(
        upper=middle + mult * std,
        middle=middle,
        lower=middle - mult * std,
    )


def sma_slope(series: ArrayLike, period: int = 3) -> Optional[float]:
    """Sum of the last `period` one-bar deltas (needs period + 1 values)."""
    _check_period(period)
    values = _as_array(series)
    if len(values) < period + 1:
        return None
    return float(values[-1] - values[-period - 1])


def trend_direction(candles: Candles) -> Optional[Trend]:
    """UP when SMA9 of the closes is above SMA21, DOWN otherwise."""
    if len(candles) < SLOW_TREND_PERIOD:
        return None
    fast = sma(candles.close, FAST_TREND_PERIOD)
    slow = sma(candles.close, SLOW_TREND_PERIOD)
    return Trend.UP if fast > slow else Trend.DOWN
