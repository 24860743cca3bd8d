"""
Task generation and result aggregation for simulation runs.

A task is one (symbol, strategy, lower timeframe, higher timeframe)
backtest. Per strategy, the results across timeframe pairs are averaged
into a VariantSummary; the best summary becomes the symbol's ResultRecord.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

from backtesting.engine import BacktestEngine
from backtesting.results import BacktestResults
from core.models import Candles, ResultRecord
from core.risk import RiskManager
from strats.base import BaseStrategy

from .config import SimulationConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BacktestTask:
    """One backtest to run."""
    symbol: str
    strategy: BaseStrategy
    timeframe: str
    higher_timeframe: str


@dataclass
class VariantSummary:
    """
    A strategy's results averaged over the timeframe pairs.

    win_rate, avg_duration and avg_risk_reward are means over the pairs;
    trades, wins and losses are sums.
    """
    strategy: str
    win_rate: float = 0.0  # percent
    trades: int = 0
    wins: int = 0
    losses: int = 0
    avg_duration: float = 0.0
    avg_risk_reward: float = 0.0
    runs: int = 0


class TaskGenerator:
    """
    Generates backtest tasks for a symbol.

    Tasks are ordered strategy first, then timeframe pair, so results of
    one strategy are contiguous.
    """

    def __init__(self, config: SimulationConfig):
        """
        Initialize the TaskGenerator.

        Args:
            config: Simulation configuration
        """
        self.config = config
        self.risk_manager = RiskManager(config.risk)

    def generate_tasks(self, symbol: str, strategies: Sequence[BaseStrategy]) -> List[BacktestTask]:
        """
        Args:
            symbol: Symbol to test
            strategies: Resolved strategies, in registry order

        Returns:
            List of BacktestTask
        """
        return [
            BacktestTask(symbol, strategy, lower, higher)
            for strategy in strategies
            for lower, higher in self.config.timeframe_pairs
        ]

    def build_engine(self, strategy: BaseStrategy) -> BacktestEngine:
        return BacktestEngine(
            strategy=strategy,
            parameters=self.config.backtest,
            risk_manager=self.risk_manager,
            stop_multiplier=self.config.stop_multiplier,
            target_multiplier=self.config.target_multiplier,
        )

    def run_task(self, task: BacktestTask, bars: Dict[str, Candles]) -> BacktestResults:
        """
        Run one task.

        Args:
            task: Task to run
            bars: Candles per timeframe label for task.symbol

        Returns:
            BacktestResults
        """
        engine = self.build_engine(task.strategy)
        return engine.run(
            candles=bars[task.timeframe],
            higher_candles=bars[task.higher_timeframe],
            symbol=task.symbol,
            timeframe=task.timeframe,
            higher_timeframe=task.higher_timeframe,
        )


def summarize_variant(strategy: str, results: Sequence[BacktestResults]) -> VariantSummary:
    """
    Average one strategy's results across timeframe pairs.

    Args:
        strategy: Strategy name
        results: One BacktestResults per timeframe pair

    Returns:
        VariantSummary
    """
    summary = VariantSummary(strategy=strategy, runs=len(results))
    if not results:
        return summary

    stats = [r.calculate_statistics() for r in results]
    n = len(stats)
    summary.win_rate = sum(s.win_rate * 100 for s in stats) / n
    summary.avg_duration = sum(s.avg_duration for s in stats) / n
    summary.avg_risk_reward = sum(s.avg_risk_reward for s in stats) / n
    summary.trades = sum(s.total_trades for s in stats)
    summary.wins = sum(s.wins for s in stats)
    summary.losses = sum(s.losses for s in stats)
    return summary


def select_best(summaries: Sequence[VariantSummary]) -> Optional[VariantSummary]:
    """
    Pick the summary with the highest averaged win rate.

    Only a strictly greater win rate replaces the current best, so ties go
    to the strategy that comes first.
    """
    best: Optional[VariantSummary] = None
    for summary in summaries:
        if best is None or summary.win_rate > best.win_rate:
            best = summary
    return best


def to_result_record(symbol: str, summary: VariantSummary, name: str = '') -> ResultRecord:
    return ResultRecord(
        symbol=symbol,
        strategy=summary.strategy,
        win_rate=round(summary.win_rate, 2),
        trades=summary.trades,
        wins=summary.wins,
        losses=summary.losses,
        avg_duration=round(summary.avg_duration, 2),
        avg_risk_reward=round(summary.avg_risk_reward, 2),
        name=name,
    )
