# strats/micro_reversion.py

import numpy as np
from typing import Any, Dict, Optional

from core.indicators import rsi, sma
from core.models import Candles, Direction, Signal
from .base import BaseStrategy


class MicroReversion(BaseStrategy):
    """
    Small bounce / pullback scalp on short-period RSI extremes.

    Strategy Logic:
    - RSI5 < 35 and close below SMA5 -> long
    - RSI5 > 65 and close above SMA5 -> short
    """

    NAME = 'micro_reversion'
    STOP_MULTIPLIER = 0.6
    TARGET_MULTIPLIER = 1.0

    def __init__(
        self,
        period: int = 5,
        rsi_oversold: float = 35.0,
        rsi_overbought: float = 65.0,
        stop_multiplier: Optional[float] = None,
        target_multiplier: Optional[float] = None
    ):
        super().__init__(stop_multiplier, target_multiplier)
        self.period = period
        self.rsi_oversold = rsi_oversold
        self.rsi_overbought = rsi_overbought

    def get_parameters(self) -> Dict[str, Any]:
        params = super().get_parameters()
        params.update({
            'period': self.period,
            'rsi_oversold': self.rsi_oversold,
            'rsi_overbought': self.rsi_overbought,
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
        rsi_value = self.require(rsi(prices, self.period), 'RSI')
        mean = self.require(sma(prices, self.period), 'SMA')
        close = candles.close[-1]
        indicators = {'rsi': rsi_value, 'sma': mean}

        if rsi_value < self.rsi_oversold and close < mean:
            return self._signal(Direction.LONG, candles, indicators, [
                f'RSI {rsi_value:.2f} oversold',
                'Potential micro-bounce',
            ])
        if rsi_value > self.rsi_overbought and close > mean:
            return self._signal(Direction.SHORT, candles, indicators, [
                f'RSI {rsi_value:.2f} overbought',
                'Potential micro-pullback',
            ])
        return None
