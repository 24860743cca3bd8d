"""
Backtest run parameters.
"""

from dataclasses import dataclass
from typing import Any, Dict

from core.errors import ConfigurationError


@dataclass
class BacktestParameters:
    """
    Parameters of a single bar-by-bar simulation.

    Attributes:
        lookback: Window length handed to the strategy (bars)
        start_index: First bar index evaluated
        cooldown_bars: Minimum gap between two entries
        max_holding_bars: Maximum bars an open position is scanned
        initial_balance: Starting account balance
        atr_period: ATR period used for sizing
    """
    lookback: int = 30
    start_index: int = 25
    cooldown_bars: int = 8
    max_holding_bars: int = 11
    initial_balance: float = 100.0
    atr_period: int = 14

    def __post_init__(self):
        self.validate()

    def validate(self) -> None:
        """
        Raises:
            ConfigurationError: If any parameter is out of range
        """
        if self.lookback < 2:
            raise ConfigurationError(f"lookback must be >= 2, got {self.lookback}")
        if self.start_index < 0:
            raise ConfigurationError(f"start_index must be >= 0, got {self.start_index}")
        if self.cooldown_bars < 0:
            raise ConfigurationError(f"cooldown_bars must be >= 0, got {self.cooldown_bars}")
        if self.max_holding_bars < 1:
            raise ConfigurationError(f"max_holding_bars must be >= 1, got {self.max_holding_bars}")
        if self.initial_balance <= 0:
            raise ConfigurationError(f"initial_balance must be positive, got {self.initial_balance}")
        if self.atr_period < 1:
            raise ConfigurationError(f"atr_period must be >= 1, got {self.atr_period}")

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            'lookback': self.lookback,
            'start_index': self.start_index,
            'cooldown_bars': self.cooldown_bars,
            'max_holding_bars': self.max_holding_bars,
            'initial_balance': self.initial_balance,
            'atr_period': self.atr_period,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'BacktestParameters':
        """Create from dictionary, ignoring unknown keys."""
        return cls(**{k: v for k, v in data.items() if k in cls.__dataclass_fields__})
