# signal-backtests/backtesting/__init__.py
"""
Backtesting module for strategy evaluation.

This module provides the core backtesting infrastructure:
    - BacktestEngine: Bar-by-bar simulation loop
    - BacktestResults: Trade ledger with statistics
    - BacktestParameters: Window, cooldown and balance settings

Example:
    from backtesting import BacktestEngine, BacktestParameters
    from strats import StrategyFactory

    engine = BacktestEngine(
        strategy=StrategyFactory.get_strategy('momentum_pullback'),
        parameters=BacktestParameters(cooldown_bars=8)
    )
    results = engine.run(lower_bars, higher_bars, symbol='NVDA')

    # Analyze results
    stats = results.calculate_statistics()
    ledger = results.to_frame()
"""

from .config import BacktestParameters
from .engine import BacktestEngine
from .results import BacktestResults, BacktestStatistics

__all__ = [
    'BacktestParameters',
    'BacktestEngine',
    'BacktestResults',
    'BacktestStatistics',
]
