# strats/low_volume_breakout.py

from .breakout_range import BreakoutRange


class LowVolumeBreakout(BreakoutRange):
    """
    Range breakout tuned for thinly traded symbols.

    Short 10-bar range and only a small relative volume uptick
    (volume > 1.05 x SMA10 of volume).
    """

    NAME = 'low_volume_breakout'
    STOP_MULTIPLIER = 1.0
    TARGET_MULTIPLIER = 2.2

    RANGE_LOOKBACK = 10
    VOLUME_MULT = 1.05
