"""
Abstract Base Strategy Class.

All signal strategies inherit from this base class so the simulator can
evaluate any variant through the same contract:

    evaluate(prices, candles, volumes, higher_candles,
             index, last_trade_index, cooldown_bars) -> Optional[Signal]

Plain functions with that signature can be registered as well; they are
wrapped in FunctionStrategy.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import replace
from typing import Any, Callable, Dict, Iterable, Optional, TypeVar

import numpy as np

from core.errors import DataUnavailable
from core.models import Candles, Direction, Signal

logger = logging.getLogger(__name__)

T = TypeVar('T')

StrategyFunc = Callable[
    [np.ndarray, Candles, np.ndarray, Candles, int, Optional[int], int],
    Optional[Signal]
]


def is_cooled(index: int, last_trade_index: Optional[int], cooldown_bars: int) -> bool:
    """
    Cooldown gate: index - last_trade_index >= cooldown_bars.

    A run that has not traded yet (last_trade_index is None) is always cooled.
    """
    if last_trade_index is None:
        return True
    return index - last_trade_index >= cooldown_bars


class BaseStrategy(ABC):
    """
    Abstract base class for all signal strategies.

    Subclasses implement generate_signal() on windows that already passed
    the cooldown gate. Missing indicator readings are reported with
    require(), which raises DataUnavailable; evaluate() turns that into
    "no signal".

    Each variant owns its ATR stop/target multipliers through the
    STOP_MULTIPLIER / TARGET_MULTIPLIER class constants, overridable per
    instance.

    Example Implementation:
        class MyStrategy(BaseStrategy):
            NAME = 'my_strategy'
            STOP_MULTIPLIER = 1.0
            TARGET_MULTIPLIER = 2.0

            def generate_signal(self, prices, candles, volumes, higher_candles, index):
                value = self.require(rsi(prices), 'rsi')
                if value < 30:
                    return self._signal(Direction.LONG, candles, {'rsi': value}, ['RSI < 30'])
                return None
    """

    NAME: str = ''
    STOP_MULTIPLIER: float = 1.0
    TARGET_MULTIPLIER: float = 2.0

    def __init__(
        self,
        stop_multiplier: Optional[float] = None,
        target_multiplier: Optional[float] = None
    ):
        """
        Initialize the strategy.

        Args:
            stop_multiplier: ATR multiple for the stop (class default if None)
            target_multiplier: ATR multiple for the target (class default if None)
        """
        self.stop_multiplier = stop_multiplier if stop_multiplier is not None else self.STOP_MULTIPLIER
        self.target_multiplier = target_multiplier if target_multiplier is not None else self.TARGET_MULTIPLIER

    @property
    def name(self) -> str:
        return self.NAME or self.__class__.__name__

    def evaluate(
        self,
        prices: np.ndarray,
        candles: Candles,
        volumes: np.ndarray,
        higher_candles: Candles,
        index: int,
        last_trade_index: Optional[int],
        cooldown_bars: int
    ) -> Optional[Signal]:
        """
        Evaluate one simulation step.

        Args:
            prices: Close prices of the window, oldest first
            candles: Candle window ending at the current bar
            volumes: Volumes of the window
            higher_candles: Higher-timeframe candles up to the current bar
            index: Index of the current bar in the full series
            last_trade_index: Index of the last entry, None if no trade yet
            cooldown_bars: Minimum gap between two entries

        Returns:
            Signal or None
        """
        if not is_cooled(index, last_trade_index, cooldown_bars):
            return None
        try:
            return self.generate_signal(prices, candles, volumes, higher_candles, index)
        except DataUnavailable as e:
            logger.debug(f"{self.name}: no signal at bar {index} ({e})")
            return None

    @abstractmethod
    def generate_signal(
        self,
        prices: np.ndarray,
        candles: Candles,
        volumes: np.ndarray,
        higher_candles: Candles,
        index: int
    ) -> Optional[Signal]:
        """
        Apply the variant's entry rules to a cooled window.

        Must be side-effect free: identical inputs give identical output.

        Raises:
            DataUnavailable: If a required reading cannot be computed
        """
        pass

    @staticmethod
    def require(value: Optional[T], name: str) -> T:
        """Return `value`, raising DataUnavailable if it is None."""
        if value is None:
            raise DataUnavailable(f"{name} unavailable")
        return value

    @staticmethod
    def require_bars(candles: Candles, count: int) -> None:
        if len(candles) < count:
            raise DataUnavailable(f"need {count} bars, got {len(candles)}")

    def _signal(
        self,
        direction: Direction,
        candles: Candles,
        indicators: Dict[str, Any],
        reasons: Iterable[str]
    ) -> Signal:
        return Signal(
            direction=direction,
            entry_price=float(candles.close[-1]),
            indicators={k: float(v) if isinstance(v, (int, float, np.floating)) else v
                        for k, v in indicators.items()},
            reasons=tuple(reasons),
            strategy=self.name,
        )

    def get_parameters(self) -> Dict[str, Any]:
        """Current parameter values, used for logging and from_config()."""
        return {
            'stop_multiplier': self.stop_multiplier,
            'target_multiplier': self.target_multiplier,
        }

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> 'BaseStrategy':
        """
        Factory method to create a strategy instance from configuration.

        Unknown keys are ignored.
        """
        params = cls().get_parameters()
        return cls(**{k: v for k, v in config.items() if k in params})

    def get_strategy_info(self) -> Dict[str, Any]:
        """
        Get information about the strategy for logging/debugging.

        Returns:
            Dictionary with strategy metadata
        """
        return {
            'name': self.name,
            'class': self.__class__.__name__,
            'parameters': self.get_parameters(),
        }

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name={self.name!r})"


class FunctionStrategy(BaseStrategy):
    """
    Adapter that lets a plain function act as a strategy.

    The function receives the full evaluate() argument list and is called
    only once the cooldown gate has passed.
    """

    def __init__(
        self,
        name: str,
        func: StrategyFunc,
        stop_multiplier: Optional[float] = None,
        target_multiplier: Optional[float] = None
    ):
        super().__init__(stop_multiplier, target_multiplier)
        self.NAME = name
        self.func = func

    def evaluate(
        self,
        prices: np.ndarray,
        candles: Candles,
        volumes: np.ndarray,
        higher_candles: Candles,
        index: int,
        last_trade_index: Optional[int],
        cooldown_bars: int
    ) -> Optional[Signal]:
        if not is_cooled(index, last_trade_index, cooldown_bars):
            return None
        try:
            signal = self.func(
                prices, candles, volumes, higher_candles,
                index, last_trade_index, cooldown_bars
            )
        except DataUnavailable as e:
            logger.debug(f"{self.name}: no signal at bar {index} ({e})")
            return None

        if signal is not None and not signal.strategy:
            signal = replace(signal, strategy=self.name)
        return signal

    def generate_signal(self, prices, candles, volumes, higher_candles, index):
        return self.func(prices, candles, volumes, higher_candles, index, None, 0)

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> 'FunctionStrategy':
        return cls(
            name=config['name'],
            func=config['func'],
            stop_multiplier=config.get('stop_multiplier'),
            target_multiplier=config.get('target_multiplier'),
        )
