"""
Simulation module for multi-symbol strategy backtesting.

This module provides infrastructure for running every configured
strategy over every symbol of a universe:
    - SimulationRunner: Fetch, simulate and store the best strategy per symbol
    - TaskGenerator: (symbol, strategy, timeframe pair) task generation
    - SimulationConfig: Configuration management

Example:
    from simulation import SimulationRunner, SimulationConfig

    config = SimulationConfig(
        symbols=['NVDA', 'AAPL'],
        strategies=['momentum_pullback', 'trend_spike'],
        source='yfinance'
    )

    runner = SimulationRunner(config)
    records = runner.run()
"""

from .config import SimulationConfig, load_symbols, parse_timeframe_pairs
from .runner import SimulationRunner, run_simulation
from .tasks import (
    BacktestTask,
    TaskGenerator,
    VariantSummary,
    select_best,
    summarize_variant,
    to_result_record,
)

__all__ = [
    'SimulationRunner',
    'run_simulation',
    'TaskGenerator',
    'BacktestTask',
    'VariantSummary',
    'select_best',
    'summarize_variant',
    'to_result_record',
    'SimulationConfig',
    'load_symbols',
    'parse_timeframe_pairs',
]
