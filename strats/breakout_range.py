# strats/breakout_range.py

import numpy as np
from typing import Any, Dict, Optional

from core.indicators import sma
from core.models import Candles, Direction, Signal
from .base import BaseStrategy


class BreakoutRange(BaseStrategy):
    """
    Breakout from recent consolidation.

    Strategy Logic:
    - Range = highest high / lowest low of the `range_lookback` candles
      preceding the current one
    - Close above the range high -> long, below the range low -> short
    - Volume must exceed its SMA x volume_mult
    """

    NAME = 'breakout_range'
    STOP_MULTIPLIER = 1.2
    TARGET_MULTIPLIER = 3.0

    RANGE_LOOKBACK = 20
    VOLUME_MULT = 1.3

    def __init__(
        self,
        range_lookback: Optional[int] = None,
        volume_mult: Optional[float] = None,
        stop_multiplier: Optional[float] = None,
        target_multiplier: Optional[float] = None
    ):
        super().__init__(stop_multiplier, target_multiplier)
        self.range_lookback = range_lookback if range_lookback is not None else self.RANGE_LOOKBACK
        self.volume_mult = volume_mult if volume_mult is not None else self.VOLUME_MULT

    def get_parameters(self) -> Dict[str, Any]:
        params = super().get_parameters()
        params.update({
            'range_lookback': self.range_lookback,
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
        self.require_bars(candles, self.range_lookback + 1)
        avg_volume = self.require(sma(volumes, self.range_lookback), 'volume SMA')
        if not volumes[-1] > avg_volume * self.volume_mult:
            return None

        n = len(candles)
        preceding = candles.slice(n - 1 - self.range_lookback, n - 1)
        range_high = float(preceding.high.max())
        range_low = float(preceding.low.min())
        close = candles.close[-1]

        indicators = {
            'range_high': range_high,
            'range_low': range_low,
            'avg_volume': avg_volume,
        }

        if close > range_high:
            return self._signal(Direction.LONG, candles, indicators, [
                f'Breakout above {range_high:.2f}',
                'Volume spike',
            ])
        if close < range_low:
            return self._signal(Direction.SHORT, candles, indicators, [
                f'Breakdown below {range_low:.2f}',
                'Volume spike',
            ])
        return None
