"""
Backtest execution engine.

This module provides the bar-by-bar simulation loop that:
    - Slides a fixed-length window over the lower-timeframe series
    - Hands the window and the already-closed higher-timeframe bars to a strategy
    - Sizes accepted signals and drives each position to its exit
    - Tracks the running account balance and the trade ledger
"""

import logging
from typing import Optional, Union

import pandas as pd

from core.errors import DataUnavailable
from core.indicators import atr
from core.models import (
    AccountState,
    Candles,
    Outcome,
    Position,
    Signal,
    TradeRecord,
)
from core.risk import RiskManager
from strats.base import BaseStrategy

from .config import BacktestParameters
from .results import BacktestResults

logger = logging.getLogger(__name__)

CandleInput = Union[Candles, pd.DataFrame]


class BacktestEngine:
    """
    Core backtest execution engine for one strategy.

    State machine per run: Idle -> Evaluating -> Open -> Exiting -> Idle,
    with Exhausted as the terminal state once the balance clamps to zero.
    A position is always driven to its exit before the next bar is
    evaluated, so at most one position is open at a time.

    Example:
        engine = BacktestEngine(
            strategy=StrategyFactory.get_strategy('momentum_pullback'),
            parameters=BacktestParameters(cooldown_bars=8)
        )

        results = engine.run(
            candles=lower_bars,
            higher_candles=higher_bars,
            symbol='NVDA',
            timeframe='15Min',
            higher_timeframe='1Hour'
        )
        print(results.summary())
    """

    def __init__(
        self,
        strategy: BaseStrategy,
        parameters: Optional[BacktestParameters] = None,
        risk_manager: Optional[RiskManager] = None,
        stop_multiplier: Optional[float] = None,
        target_multiplier: Optional[float] = None
    ):
        """
        Initialize the BacktestEngine.

        Args:
            strategy: Strategy evaluated on every bar
            parameters: Window, cooldown, horizon and balance settings
            risk_manager: Sizer and exit simulator
            stop_multiplier: Overrides the strategy's stop multiplier
            target_multiplier: Overrides the strategy's target multiplier
        """
        self.strategy = strategy
        self.parameters = parameters or BacktestParameters()
        self.risk_manager = risk_manager or RiskManager()
        self.stop_multiplier = stop_multiplier if stop_multiplier is not None else strategy.stop_multiplier
        self.target_multiplier = target_multiplier if target_multiplier is not None else strategy.target_multiplier

    def run(
        self,
        candles: CandleInput,
        higher_candles: CandleInput,
        symbol: str = '',
        timeframe: str = '',
        higher_timeframe: str = ''
    ) -> BacktestResults:
        """
        Simulate the strategy over a lower-timeframe series.

        Args:
            candles: Lower-timeframe bars, chronological
            higher_candles: Higher-timeframe bars, chronological
            symbol: Symbol label for the results
            timeframe: Lower timeframe label
            higher_timeframe: Higher timeframe label

        Returns:
            BacktestResults with the trade ledger and final balance
        """
        if isinstance(candles, pd.DataFrame):
            candles = Candles.from_frame(candles)
        if isinstance(higher_candles, pd.DataFrame):
            higher_candles = Candles.from_frame(higher_candles)

        params = self.parameters
        account = AccountState(balance=params.initial_balance)
        results = BacktestResults(
            symbol=symbol,
            strategy=self.strategy.name,
            timeframe=timeframe,
            higher_timeframe=higher_timeframe,
            initial_balance=params.initial_balance,
        )

        n = len(candles)
        bars_processed = 0
        lower_length = candles.bar_length
        higher_length = higher_candles.bar_length

        for i in range(params.start_index, n):
            if account.exhausted:
                logger.debug(f"{symbol} {self.strategy.name}: account exhausted at bar {i}")
                break
            bars_processed += 1

            if not account.is_cooled(i, params.cooldown_bars):
                continue

            window = candles.window(i, params.lookback)
            # Only higher bars that have closed by the end of the current bar
            context = higher_candles.closed_by(candles.time[i] + lower_length, higher_length)

            try:
                signal = self.strategy.evaluate(
                    window.close,
                    window,
                    window.volume,
                    context,
                    i,
                    account.last_trade_index,
                    params.cooldown_bars
                )
            except DataUnavailable as e:
                logger.debug(f"{symbol} {self.strategy.name}: no signal at bar {i} ({e})")
                signal = None

            if signal is None:
                continue

            trade = self._execute(candles, window, i, signal, account)
            if trade is not None:
                results.trades.append(trade)

        results.final_balance = account.balance
        results.exhausted = account.exhausted
        results.bars_processed = bars_processed

        logger.debug(
            f"{symbol} {self.strategy.name} {timeframe}: {results.trade_count} trades, "
            f"balance {account.balance:.2f}"
        )
        return results

    def _execute(
        self,
        candles: Candles,
        window: Candles,
        index: int,
        signal: Signal,
        account: AccountState
    ) -> Optional[TradeRecord]:
        """
        Open a position for `signal`, drive it to its exit and settle it.

        Returns:
            TradeRecord, or None if the signal could not be sized
        """
        atr_value = atr(window, self.parameters.atr_period)
        if atr_value is None or atr_value <= 0:
            logger.debug(f"{signal.strategy}: skipped signal at bar {index}, ATR unavailable")
            return None

        entry = signal.entry_price
        plan = self.risk_manager.size(
            entry=entry,
            direction=signal.direction,
            atr=atr_value,
            balance=account.balance,
            stop_multiplier=self.stop_multiplier,
            target_multiplier=self.target_multiplier
        )
        if plan.size <= 0:
            logger.debug(f"{signal.strategy}: skipped signal at bar {index}, zero size")
            return None

        position = Position(
            direction=signal.direction,
            entry_price=entry,
            stop_price=plan.stop_price,
            target_price=plan.target_price,
            size=plan.size,
            open_index=index,
            atr=atr_value,
            entry_time=pd.Timestamp(candles.time[index]),
        )
        account.open_position(position.cost)

        scan = self.risk_manager.scan_exit(
            closes=candles.close,
            entry_index=index,
            horizon=self.parameters.max_holding_bars,
            direction=position.direction,
            entry=position.entry_price,
            plan=plan,
            atr=position.atr
        )
        account.close_position(position.cost, scan.pnl, index)

        trade = TradeRecord(
            direction=position.direction,
            entry_price=position.entry_price,
            exit_price=scan.exit_price,
            stop_price=position.stop_price,
            target_price=position.target_price,
            size=position.size,
            pnl=scan.pnl,
            duration_bars=scan.exit_index - index,
            outcome=Outcome.WIN if scan.pnl >= 0 else Outcome.LOSS,
            exit_reason=scan.reason,
            entry_index=index,
            exit_index=scan.exit_index,
            risk_reward=self.risk_manager.reward_risk(
                position.direction, entry, scan.exit_price, scan.adverse_price
            ),
            entry_time=position.entry_time,
            exit_time=pd.Timestamp(candles.time[scan.exit_index]),
            strategy=signal.strategy or self.strategy.name,
            reasons=signal.reasons,
        )

        logger.debug(
            f"{trade.strategy} {trade.direction.value} @ {entry:.4f} -> {trade.exit_price:.4f} "
            f"({trade.exit_reason.value}), P/L {trade.pnl:.2f}, balance {account.balance:.2f}"
        )
        return trade
