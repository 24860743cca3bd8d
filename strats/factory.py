"""
Strategy factory and registry.

This module provides:
    - StrategyType: Enumeration of the built-in strategy variants
    - StrategyFactory: Name -> strategy registry used by the orchestrator
"""

import logging
from enum import Enum
from typing import Callable, Dict, List, Optional, Sequence, Type, Union

from core.errors import ConfigurationError
from .base import BaseStrategy, FunctionStrategy
from .breakout_range import BreakoutRange
from .low_volume_breakout import LowVolumeBreakout
from .mean_reversion_rebound import MeanReversionRebound
from .micro_reversion import MicroReversion
from .momentum_pullback import MomentumPullback
from .trend_spike import TrendSpike

logger = logging.getLogger(__name__)


class StrategyType(Enum):
    """
    Enumeration of built-in strategy variants.

    Values:
        MOMENTUM_PULLBACK: Trend continuation after a pullback
        TREND_SPIKE: Momentum breakout with ADX/Bollinger confirmation
        BREAKOUT_RANGE: Breakout from a 20-bar range
        LOW_VOLUME_BREAKOUT: Breakout from a 10-bar range, thin volume
        MEAN_REVERSION_REBOUND: RSI-extreme counter-trend entry
        MICRO_REVERSION: Short-period RSI scalp
    """
    MOMENTUM_PULLBACK = "momentum_pullback"
    TREND_SPIKE = "trend_spike"
    BREAKOUT_RANGE = "breakout_range"
    LOW_VOLUME_BREAKOUT = "low_volume_breakout"
    MEAN_REVERSION_REBOUND = "mean_reversion_rebound"
    MICRO_REVERSION = "micro_reversion"


StrategyLike = Union[BaseStrategy, Type[BaseStrategy], Callable]


class StrategyFactory:
    """
    Registry of named strategy variants.

    Built-in variants are registered at import time. Extra strategies can
    be registered as BaseStrategy instances, BaseStrategy subclasses, or
    plain functions with the evaluate() signature.

    Example:
        # Resolve configured names (None means every registered strategy)
        strategies = StrategyFactory.resolve(['momentum_pullback', 'trend_spike'])

        # Register a plain function
        StrategyFactory.register_strategy('my_rule', my_rule_function)

        # Available names, in registration order
        names = StrategyFactory.list_strategies()
    """

    _strategy_classes: Dict[StrategyType, Type[BaseStrategy]] = {
        StrategyType.MOMENTUM_PULLBACK: MomentumPullback,
        StrategyType.TREND_SPIKE: TrendSpike,
        StrategyType.BREAKOUT_RANGE: BreakoutRange,
        StrategyType.LOW_VOLUME_BREAKOUT: LowVolumeBreakout,
        StrategyType.MEAN_REVERSION_REBOUND: MeanReversionRebound,
        StrategyType.MICRO_REVERSION: MicroReversion,
    }

    _strategies: Dict[str, BaseStrategy] = {}

    @classmethod
    def register_strategy(
        cls,
        name: str,
        strategy: StrategyLike,
        stop_multiplier: Optional[float] = None,
        target_multiplier: Optional[float] = None
    ) -> BaseStrategy:
        """
        Register a new strategy or override an existing one.

        Args:
            name: Registry key
            strategy: Strategy instance, strategy class or plain function
            stop_multiplier: Stop multiplier for function strategies
            target_multiplier: Target multiplier for function strategies

        Returns:
            The registered strategy instance

        Raises:
            ConfigurationError: If `strategy` is none of the accepted kinds
        """
        if isinstance(strategy, BaseStrategy):
            instance = strategy
        elif isinstance(strategy, type) and issubclass(strategy, BaseStrategy):
            instance = strategy()
        elif callable(strategy):
            instance = FunctionStrategy(name, strategy, stop_multiplier, target_multiplier)
        else:
            raise ConfigurationError(f"Cannot register {strategy!r} as strategy '{name}'")

        if name in cls._strategies:
            logger.info(f"Overriding registered strategy '{name}'")
        cls._strategies[name] = instance
        return instance

    @classmethod
    def unregister_strategy(cls, name: str) -> None:
        cls._strategies.pop(name, None)

    @classmethod
    def get_strategy(cls, name: Union[str, StrategyType]) -> BaseStrategy:
        """
        Get a registered strategy by name.

        Raises:
            ConfigurationError: If no strategy is registered under `name`
        """
        key = name.value if isinstance(name, StrategyType) else name
        if key not in cls._strategies:
            raise ConfigurationError(
                f"Unknown strategy '{key}'. Available: {', '.join(cls.list_strategies()) or 'none'}"
            )
        return cls._strategies[key]

    @classmethod
    def list_strategies(cls) -> List[str]:
        """
        List registered strategy names.

        Returns:
            Names in registration order (possibly empty)
        """
        return list(cls._strategies)

    @classmethod
    def resolve(cls, names: Optional[Sequence[str]] = None) -> List[BaseStrategy]:
        """
        Resolve configured strategy names to instances.

        Args:
            names: Strategy names, None for every registered strategy

        Returns:
            Strategy instances in the requested order

        Raises:
            ConfigurationError: If any name is unknown
        """
        if names is None:
            return list(cls._strategies.values())

        unknown = [n for n in names if n not in cls._strategies]
        if unknown:
            raise ConfigurationError(
                f"Unknown strategies: {', '.join(unknown)}. "
                f"Available: {', '.join(cls.list_strategies()) or 'none'}"
            )
        return [cls._strategies[n] for n in names]

    @classmethod
    def register_defaults(cls) -> None:
        """(Re)register every built-in variant with default parameters."""
        for strategy_type, strategy_class in cls._strategy_classes.items():
            cls._strategies[strategy_type.value] = strategy_class()


StrategyFactory.register_defaults()
