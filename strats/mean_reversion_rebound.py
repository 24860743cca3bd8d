# strats/mean_reversion_rebound.py

import numpy as np
from typing import Any, Dict, Optional

from core.indicators import atr, rsi, sma
from core.models import Candles, Direction, Signal
from .base import BaseStrategy


class MeanReversionRebound(BaseStrategy):
    """
    Counter-trend entry from RSI extremes.

    Strategy Logic:
    - RSI oversold, bearish candle, close below SMA -> long (rebound)
    - RSI overbought, bullish candle, close above SMA -> short (reversal)
    """

    NAME = 'mean_reversion_rebound'
    STOP_MULTIPLIER = 0.8
    TARGET_MULTIPLIER = 1.5

    def __init__(
        self,
        rsi_period: int = 14,
        rsi_oversold: float = 30.0,
        rsi_overbought: float = 70.0,
        sma_period: int = 20,
        stop_multiplier: Optional[float] = None,
        target_multiplier: Optional[float] = None
    ):
        super().__init__(stop_multiplier, target_multiplier)
        self.rsi_period = rsi_period
        self.rsi_oversold = rsi_oversold
        self.rsi_overbought = rsi_overbought
        self.sma_period = sma_period

    def get_parameters(self) -> Dict[str, Any]:
        params = super().get_parameters()
        params.update({
            'rsi_period': self.rsi_period,
            'rsi_oversold': self.rsi_oversold,
            'rsi_overbought': self.rsi_overbought,
            'sma_period': self.sma_period,
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
        rsi_value = self.require(rsi(prices, self.rsi_period), 'RSI')
        atr_value = self.require(atr(candles), 'ATR')
        mean = self.require(sma(prices, self.sma_period), 'SMA')

        close = candles.close[-1]
        open_ = candles.open[-1]
        indicators = {'rsi': rsi_value, 'atr': atr_value, 'sma': mean}

        if rsi_value < self.rsi_oversold and close < open_ and close < mean:
            return self._signal(Direction.LONG, candles, indicators, [
                f'RSI {rsi_value:.2f} oversold',
                'Potential rebound',
            ])
        if rsi_value > self.rsi_overbought and close > open_ and close > mean:
            return self._signal(Direction.SHORT, candles, indicators, [
                f'RSI {rsi_value:.2f} overbought',
                'Potential reversal',
            ])
        return None
