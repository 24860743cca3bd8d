from .base import BaseStrategy, FunctionStrategy, is_cooled
from .momentum_pullback import MomentumPullback
from .trend_spike import TrendSpike
from .breakout_range import BreakoutRange
from .low_volume_breakout import LowVolumeBreakout
from .mean_reversion_rebound import MeanReversionRebound
from .micro_reversion import MicroReversion
from .factory import StrategyFactory, StrategyType

__all__ = [
    'BaseStrategy',
    'FunctionStrategy',
    'is_cooled',
    'MomentumPullback',
    'TrendSpike',
    'BreakoutRange',
    'LowVolumeBreakout',
    'MeanReversionRebound',
    'MicroReversion',
    'StrategyFactory',
    'StrategyType',
]
