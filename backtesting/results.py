# signal-backtests/backtesting/results.py
"""
Backtest results container and analysis.

This module provides:
    - BacktestStatistics: Calculated trade statistics for one run
    - BacktestResults: Trade ledger and final account state of one run
"""

import numpy as np
import pandas as pd
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from core.models import Direction, ExitReason, TradeRecord


@dataclass
class BacktestStatistics:
    """Container for calculated backtest statistics."""

    # Trade counts
    total_trades: int = 0
    wins: int = 0
    losses: int = 0
    long_trades: int = 0
    short_trades: int = 0

    # Quality metrics
    win_rate: float = 0.0  # fraction of trades with P/L >= 0
    avg_duration: float = 0.0
    avg_risk_reward: float = 0.0

    # Account metrics
    total_pnl: float = 0.0
    initial_balance: float = 0.0
    final_balance: float = 0.0
    exhausted: bool = False

    exit_reasons: Dict[str, int] = field(default_factory=dict)

    @property
    def total_return(self) -> float:
        if self.initial_balance <= 0:
            return 0.0
        return (self.final_balance - self.initial_balance) / self.initial_balance

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        result = {
            'Total Trades': str(self.total_trades),
            'Wins': str(self.wins),
            'Losses': str(self.losses),
            'Long Trades': str(self.long_trades),
            'Short Trades': str(self.short_trades),
            'Win Rate (%)': f"{self.win_rate * 100:.2f}%",
            'Avg Duration (bars)': f"{self.avg_duration:.2f}",
            'Avg Reward/Risk': f"{self.avg_risk_reward:.2f}",
            'Total P/L': f"{self.total_pnl:.2f}",
            'Final Balance': "0.00 (investment gone)" if self.exhausted else f"{self.final_balance:.2f}",
            'Total Return (%)': f"{self.total_return * 100:.2f}%",
        }
        for reason in ExitReason:
            result[f"Exits: {reason.value}"] = str(self.exit_reasons.get(reason.value, 0))
        return result

    def __str__(self) -> str:
        """Pretty print statistics."""
        lines = []
        for key, value in self.to_dict().items():
            lines.append(f"{key}: {value}")
        return "\n".join(lines)


@dataclass
class BacktestResults:
    """
    Container for one (symbol, strategy, timeframe) run.

    Attributes:
        symbol: Symbol simulated
        strategy: Strategy name
        timeframe: Lower (trading) timeframe
        higher_timeframe: Context timeframe
        trades: Append-only trade ledger in entry order
        initial_balance: Starting balance
        final_balance: Balance after the last trade
        exhausted: True if the balance clamped to zero
        bars_processed: Number of bars the engine stepped through
    """

    symbol: str
    strategy: str
    timeframe: str = ''
    higher_timeframe: str = ''
    trades: List[TradeRecord] = field(default_factory=list)
    initial_balance: float = 100.0
    final_balance: float = 100.0
    exhausted: bool = False
    bars_processed: int = 0

    def __post_init__(self):
        self._statistics: Optional[BacktestStatistics] = None

    @property
    def trade_count(self) -> int:
        return len(self.trades)

    def calculate_statistics(self) -> BacktestStatistics:
        """
        Calculate trade statistics.

        Returns:
            BacktestStatistics object
        """
        if self._statistics is not None:
            return self._statistics

        stats = BacktestStatistics(
            initial_balance=self.initial_balance,
            final_balance=self.final_balance,
            exhausted=self.exhausted,
        )

        if self.trades:
            pnl = np.array([t.pnl for t in self.trades], dtype=np.float64)
            durations = np.array([t.duration_bars for t in self.trades], dtype=np.float64)
            rr = np.array([t.risk_reward for t in self.trades], dtype=np.float64)

            stats.total_trades = len(self.trades)
            stats.wins = int(sum(1 for t in self.trades if t.is_win))
            stats.losses = stats.total_trades - stats.wins
            stats.long_trades = int(sum(1 for t in self.trades if t.direction is Direction.LONG))
            stats.short_trades = stats.total_trades - stats.long_trades
            stats.win_rate = stats.wins / stats.total_trades
            stats.avg_duration = float(durations.mean())
            stats.avg_risk_reward = float(rr.mean())
            stats.total_pnl = float(pnl.sum())

            for trade in self.trades:
                key = trade.exit_reason.value
                stats.exit_reasons[key] = stats.exit_reasons.get(key, 0) + 1

        self._statistics = stats
        return stats

    def to_frame(self) -> pd.DataFrame:
        """
        Trade ledger as a DataFrame, one row per trade.

        Returns:
            DataFrame (empty with the ledger columns if there were no trades)
        """
        columns = list(TradeRecord.__dataclass_fields__)
        if not self.trades:
            return pd.DataFrame(columns=columns)
        return pd.DataFrame([t.to_dict() for t in self.trades], columns=columns)

    def to_csv(self, path: str) -> None:
        """
        Save the trade ledger to a CSV file.

        Args:
            path: File path for CSV output
        """
        self.to_frame().to_csv(path, index=False)

    def summary(self) -> str:
        """
        Get a summary string of the backtest results.

        Returns:
            Formatted summary string
        """
        stats = self.calculate_statistics()
        timeframes = f"{self.timeframe}/{self.higher_timeframe}" if self.timeframe else ''

        lines = [
            "=" * 60,
            f"BACKTEST RESULTS - {self.symbol} ({self.strategy.upper()}) {timeframes}".rstrip(),
            "=" * 60,
            "",
            str(stats),
            "",
            "=" * 60,
        ]

        return "\n".join(lines)
