# strats/momentum_pullback.py

import numpy as np
from typing import Any, Dict, Optional, Tuple

from core.indicators import atr, rsi, sma, trend_direction
from core.models import Candles, Direction, Signal, Trend
from .base import BaseStrategy


class MomentumPullback(BaseStrategy):
    """
    Trend-continuation entry after a pullback.

    Strategy Logic:
    - Lower and higher timeframe trends (SMA9 vs SMA21) must agree
    - Uptrend: close above the slow SMA and above the previous close,
      RSI inside the neutral-bullish band, volume spike -> long
    - Downtrend: mirrored with the neutral-bearish RSI band -> short
    """

    NAME = 'momentum_pullback'
    STOP_MULTIPLIER = 1.0
    TARGET_MULTIPLIER = 2.5

    def __init__(
        self,
        fast_period: int = 9,
        slow_period: int = 21,
        rsi_period: int = 14,
        volume_period: int = 20,
        volume_mult: float = 1.2,
        long_rsi_band: Tuple[float, float] = (45.0, 70.0),
        short_rsi_band: Tuple[float, float] = (30.0, 55.0),
        stop_multiplier: Optional[float] = None,
        target_multiplier: Optional[float] = None
    ):
        """
        Initialize the momentum pullback strategy.

        Args:
            fast_period: Fast SMA period
            slow_period: Slow SMA period, also the trend filter for the close
            rsi_period: RSI period
            volume_period: Volume SMA period for the spike check
            volume_mult: Volume must exceed avg volume x this
            long_rsi_band: Exclusive RSI bounds for longs
            short_rsi_band: Exclusive RSI bounds for shorts
            stop_multiplier: ATR multiple for the stop
            target_multiplier: ATR multiple for the target
        """
        super().__init__(stop_multiplier, target_multiplier)
        self.fast_period = fast_period
        self.slow_period = slow_period
        self.rsi_period = rsi_period
        self.volume_period = volume_period
        self.volume_mult = volume_mult
        self.long_rsi_band = tuple(long_rsi_band)
        self.short_rsi_band = tuple(short_rsi_band)

    def get_parameters(self) -> Dict[str, Any]:
        params = super().get_parameters()
        params.update({
            'fast_period': self.fast_period,
            'slow_period': self.slow_period,
            'rsi_period': self.rsi_period,
            'volume_period': self.volume_period,
            'volume_mult': self.volume_mult,
            'long_rsi_band': self.long_rsi_band,
            'short_rsi_band': self.short_rsi_band,
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
        lower_trend = self.require(trend_direction(candles), 'lower trend')
        higher_trend = self.require(trend_direction(higher_candles), 'higher trend')
        if lower_trend is not higher_trend:
            return None

        self.require_bars(candles, 2)
        fast = self.require(sma(prices, self.fast_period), 'fast SMA')
        slow = self.require(sma(prices, self.slow_period), 'slow SMA')
        rsi_value = self.require(rsi(prices, self.rsi_period), 'RSI')
        atr_value = self.require(atr(candles), 'ATR')
        avg_volume = self.require(sma(volumes, self.volume_period), 'volume SMA')

        close = candles.close[-1]
        prev_close = candles.close[-2]
        volume_spike = volumes[-1] > avg_volume * self.volume_mult

        indicators = {
            'fast_sma': fast,
            'slow_sma': slow,
            'rsi': rsi_value,
            'atr': atr_value,
            'avg_volume': avg_volume,
        }

        low_band, high_band = self.long_rsi_band
        if (lower_trend is Trend.UP
                and close > slow
                and close > prev_close
                and low_band < rsi_value < high_band
                and volume_spike):
            return self._signal(Direction.LONG, candles, indicators, [
                'Lower and higher trend up',
                'Close above slow SMA',
                'Pullback recovered',
                f'RSI {rsi_value:.2f} in trend zone',
                'Volume spike',
            ])

        low_band, high_band = self.short_rsi_band
        if (lower_trend is Trend.DOWN
                and close < slow
                and close < prev_close
                and low_band < rsi_value < high_band
                and volume_spike):
            return self._signal(Direction.SHORT, candles, indicators, [
                'Lower and higher trend down',
                'Close below slow SMA',
                'Pullback recovered',
                f'RSI {rsi_value:.2f} in trend zone',
                'Volume spike',
            ])

        return None
