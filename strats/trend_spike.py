# strats/trend_spike.py

import numpy as np
from typing import Any, Dict, List, Optional

from core.indicators import adx, atr, bollinger_bands, rsi, sma, sma_slope, trend_direction
from core.models import Candles, Direction, Signal, Trend
from .base import BaseStrategy


class TrendSpike(BaseStrategy):
    """
    High-momentum breakout in an established trend.

    Strategy Logic:
    - Lower and higher trends agree with the fast/slow SMA ordering
    - Fast SMA slope beyond slope_atr_mult x ATR in the trend direction
    - Close breaks the previous bar's high (low)
    - RSI beyond the momentum threshold, ADX above the strength threshold
    - Close outside the upper (lower) Bollinger band
    - Volume above prev volume x volume_mult and above its SMA
    """

    NAME = 'trend_spike'
    STOP_MULTIPLIER = 1.5
    TARGET_MULTIPLIER = 3.5

    def __init__(
        self,
        fast_period: int = 9,
        slow_period: int = 21,
        slope_period: int = 3,
        slope_atr_mult: float = 0.05,
        rsi_long: float = 66.0,
        rsi_short: float = 34.0,
        adx_threshold: float = 30.0,
        volume_period: int = 20,
        volume_mult: float = 1.25,
        stop_multiplier: Optional[float] = None,
        target_multiplier: Optional[float] = None
    ):
        super().__init__(stop_multiplier, target_multiplier)
        self.fast_period = fast_period
        self.slow_period = slow_period
        self.slope_period = slope_period
        self.slope_atr_mult = slope_atr_mult
        self.rsi_long = rsi_long
        self.rsi_short = rsi_short
        self.adx_threshold = adx_threshold
        self.volume_period = volume_period
        self.volume_mult = volume_mult

    def get_parameters(self) -> Dict[str, Any]:
        params = super().get_parameters()
        params.update({
            'fast_period': self.fast_period,
            'slow_period': self.slow_period,
            'slope_period': self.slope_period,
            'slope_atr_mult': self.slope_atr_mult,
            'rsi_long': self.rsi_long,
            'rsi_short': self.rsi_short,
            'adx_threshold': self.adx_threshold,
            'volume_period': self.volume_period,
            'volume_mult': self.volume_mult,
        })
        return params

    def generate_signal(
        self,
        prices: np.ndarray,
        candles: Candles,
        volumes: np.ndarray,
        higher_candles: Candles,
        index: int
    ) -> Optional[Signal]:
        self.require_bars(candles, 2)
        fast = self.require(sma(prices, self.fast_period), 'fast SMA')
        slow = self.require(sma(prices, self.slow_period), 'slow SMA')
        slope = self.require(sma_slope(prices, self.slope_period), 'SMA slope')
        rsi_value = self.require(rsi(prices), 'RSI')
        atr_value = self.require(atr(candles), 'ATR')
        bands = self.require(bollinger_bands(prices), 'Bollinger bands')
        adx_value = self.require(adx(candles), 'ADX')
        avg_volume = self.require(sma(volumes, self.volume_period), 'volume SMA')
        lower_trend = self.require(trend_direction(candles), 'lower trend')
        higher_trend = self.require(trend_direction(higher_candles), 'higher trend')

        min_slope = atr_value * self.slope_atr_mult
        if lower_trend is Trend.UP and slope <= min_slope:
            return None
        if lower_trend is Trend.DOWN and slope >= -min_slope:
            return None

        close = candles.close[-1]
        prev_high = candles.high[-2]
        prev_low = candles.low[-2]
        volume = volumes[-1]
        prev_volume = volumes[-2]
        volume_spike = volume > prev_volume * self.volume_mult and volume > avg_volume

        reasons: List[str] = [
            f'Lower trend {lower_trend.value}',
            f'Higher trend {higher_trend.value}',
        ]
        if fast > slow:
            reasons.append('Fast SMA > Slow SMA')
        elif fast < slow:
            reasons.append('Fast SMA < Slow SMA')
        if rsi_value > self.rsi_long:
            reasons.append(f'RSI > {self.rsi_long:g}')
        elif rsi_value < self.rsi_short:
            reasons.append(f'RSI < {self.rsi_short:g}')
        if adx_value > self.adx_threshold:
            reasons.append(f'ADX > {self.adx_threshold:g}')
        if close > bands.upper:
            reasons.append('Price > BB upper')
        elif close < bands.lower:
            reasons.append('Price < BB lower')
        if volume_spike:
            reasons.append('Volume spike')

        indicators = {
            'fast_sma': fast,
            'slow_sma': slow,
            'slope': slope,
            'rsi': rsi_value,
            'atr': atr_value,
            'adx': adx_value,
            'bb_upper': bands.upper,
            'bb_lower': bands.lower,
        }

        if (lower_trend is Trend.UP and higher_trend is Trend.UP
                and fast > slow
                and close > prev_high
                and rsi_value > self.rsi_long
                and adx_value > self.adx_threshold
                and close > bands.upper
                and volume_spike):
            return self._signal(Direction.LONG, candles, indicators, reasons)

        if (lower_trend is Trend.DOWN and higher_trend is Trend.DOWN
                and fast < slow
                and close < prev_low
                and rsi_value < self.rsi_short
                and adx_value > self.adx_threshold
                and close < bands.lower
                and volume_spike):
            return self._signal(Direction.SHORT, candles, indicators, reasons)

        return None
