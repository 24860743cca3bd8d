"""
Risk management module.

This module turns a directional signal into concrete price levels and a
position size, and drives an open position to its exit:
    - ATR-based stop and target levels
    - Position sizing capped by risk budget and available balance
    - Forward exit scan (stop, profit lock, target, timeout)

Classes:
    - RiskLimits: Account-level risk parameters
    - PositionPlan: Output of the sizer for one signal
    - ExitScan: Output of the forward exit scan
    - RiskManager: High-level sizing and exit interface

Functions:
    - calculate_price_levels_numba: Stop and target from entry and ATR
    - scan_position_exit_numba: Forward scan of an open position
"""

import logging
from dataclasses import dataclass
from typing import Tuple

import numpy as np
from numba import njit

from .models import Direction, ExitReason

logger = logging.getLogger(__name__)

# Reason codes returned by scan_position_exit_numba
EXIT_TIMEOUT = 0
EXIT_STOP = 1
EXIT_PROFIT_LOCK = 2
EXIT_TARGET = 3

EXIT_REASONS = {
    EXIT_TIMEOUT: ExitReason.TIMEOUT,
    EXIT_STOP: ExitReason.STOP,
    EXIT_PROFIT_LOCK: ExitReason.PROFIT_LOCK,
    EXIT_TARGET: ExitReason.TARGET,
}


@njit(cache=True)
def calculate_price_levels_numba(
    entry_price: float,
    atr: float,
    is_long: bool,
    stop_multiplier: float,
    target_multiplier: float
) -> Tuple[float, float]:
    """
    JIT-compiled stop/target calculation.

    Long:  stop = entry - atr x stop_mult,  target = entry + atr x target_mult
    Short: stop = entry + atr x stop_mult,  target = entry - atr x target_mult

    Args:
        entry_price: Entry price
        atr: ATR at entry
        is_long: True for long positions
        stop_multiplier: ATR multiple for the stop
        target_multiplier: ATR multiple for the target

    Returns:
        Tuple of (stop_price, target_price)
    """
    if is_long:
        return entry_price - atr * stop_multiplier, entry_price + atr * target_multiplier
    return entry_price + atr * stop_multiplier, entry_price - atr * target_multiplier


@njit(cache=True)
def scan_position_exit_numba(
    closes: np.ndarray,
    start: int,
    end: int,
    is_long: bool,
    entry_price: float,
    stop_price: float,
    target_price: float,
    size: float,
    lock_threshold: float
) -> Tuple[int, int, float, float, float]:
    """
    JIT-compiled forward scan of an open position over closes[start:end].

    Exit triggers are checked on every close in this priority:
        1. stop breached
        2. unrealized P/L >= lock_threshold (partial-profit lock)
        3. target reached
    If nothing triggers, the position exits at the last scanned close.
    With an empty scan range the position exits flat at the entry price.

    Args:
        closes: Array of close prices for the whole series
        start: First bar index to scan (bar after entry)
        end: Exclusive upper bound of the scan
        is_long: True for long positions
        entry_price: Entry price
        stop_price: Stop level
        target_price: Target level
        size: Position size in units
        lock_threshold: P/L at which profit is locked

    Returns:
        Tuple of:
            - exit_index: Bar index of the exit (start - 1 if nothing scanned)
            - reason: 0=timeout, 1=stop, 2=profit_lock, 3=target
            - exit_price: Close at exit
            - pnl: Realized P/L
            - adverse_price: Lowest close (long) / highest close (short)
              seen during the trade, starting from the entry price
    """
    exit_index = start - 1
    exit_price = entry_price
    pnl = 0.0
    adverse = entry_price

    for j in range(start, end):
        price = closes[j]
        exit_index = j
        exit_price = price

        if is_long:
            if price < adverse:
                adverse = price
            pnl = size * (price - entry_price)
            if price <= stop_price:
                return j, EXIT_STOP, price, pnl, adverse
            if pnl >= lock_threshold:
                return j, EXIT_PROFIT_LOCK, price, pnl, adverse
            if price >= target_price:
                return j, EXIT_TARGET, price, pnl, adverse
        else:
            if price > adverse:
                adverse = price
            pnl = size * (entry_price - price)
            if price >= stop_price:
                return j, EXIT_STOP, price, pnl, adverse
            if pnl >= lock_threshold:
                return j, EXIT_PROFIT_LOCK, price, pnl, adverse
            if price <= target_price:
                return j, EXIT_TARGET, price, pnl, adverse

    return exit_index, EXIT_TIMEOUT, exit_price, pnl, adverse


@dataclass
class RiskLimits:
    """Container for risk limit parameters."""
    risk_fraction: float = 0.15
    min_risk_amount: float = 30.0
    min_stop_distance: float = 0.0001
    lock_fraction: float = 0.35
    min_risk_pct: float = 0.0001

    @classmethod
    def from_dict(cls, data: dict) -> 'RiskLimits':
        return cls(**{k: v for k, v in data.items() if k in cls.__dataclass_fields__})

    def to_dict(self) -> dict:
        return {
            'risk_fraction': self.risk_fraction,
            'min_risk_amount': self.min_risk_amount,
            'min_stop_distance': self.min_stop_distance,
            'lock_fraction': self.lock_fraction,
            'min_risk_pct': self.min_risk_pct,
        }


@dataclass(frozen=True)
class PositionPlan:
    """Sizer output: concrete levels and size for one entry."""
    stop_price: float
    target_price: float
    size: float
    risk_amount: float
    stop_distance: float


@dataclass(frozen=True)
class ExitScan:
    """Outcome of driving one position to its exit."""
    exit_index: int
    exit_price: float
    pnl: float
    reason: ExitReason
    adverse_price: float


class RiskManager:
    """
    High-level risk management interface.

    Converts signals into position plans and simulates their exit:
        - Stop/target from ATR and per-strategy multipliers
        - Size = min(risk_budget / stop_distance, balance / entry)
          where risk_budget = max(balance x risk_fraction, min_risk_amount)
        - Profit lock threshold = size x atr x lock_fraction

    Example:
        risk_manager = RiskManager(RiskLimits(risk_fraction=0.15))

        plan = risk_manager.size(
            entry=100.0,
            direction=Direction.LONG,
            atr=2.0,
            balance=100.0,
            stop_multiplier=1.0,
            target_multiplier=2.5
        )
    """

    def __init__(self, limits: RiskLimits = None):
        """
        Initialize the RiskManager.

        Args:
            limits: Risk limits (defaults to RiskLimits())
        """
        self.limits = limits or RiskLimits()

    def price_levels(
        self,
        entry: float,
        direction: Direction,
        atr: float,
        stop_multiplier: float,
        target_multiplier: float
    ) -> Tuple[float, float]:
        """
        Calculate stop and target levels.

        Args:
            entry: Entry price
            direction: Position direction
            atr: ATR at entry
            stop_multiplier: ATR multiple for the stop
            target_multiplier: ATR multiple for the target

        Returns:
            Tuple of (stop_price, target_price)
        """
        stop, target = calculate_price_levels_numba(
            float(entry),
            float(atr),
            direction is Direction.LONG,
            float(stop_multiplier),
            float(target_multiplier)
        )
        return float(stop), float(target)

    def size(
        self,
        entry: float,
        direction: Direction,
        atr: float,
        balance: float,
        stop_multiplier: float,
        target_multiplier: float
    ) -> PositionPlan:
        """
        Size a position for a signal.

        Both caps are enforced: the risk budget over the stop distance, and
        the balance over the entry price (no leverage).

        Args:
            entry: Entry price
            direction: Position direction
            atr: ATR at entry
            balance: Current account balance
            stop_multiplier: ATR multiple for the stop
            target_multiplier: ATR multiple for the target

        Returns:
            PositionPlan with levels and size (size is 0 with no balance)

        Raises:
            ValueError: If entry price is not positive
        """
        if entry <= 0:
            raise ValueError(f"Entry price must be positive, got {entry}")

        stop, target = self.price_levels(entry, direction, atr, stop_multiplier, target_multiplier)

        risk_amount = max(balance * self.limits.risk_fraction, self.limits.min_risk_amount)
        stop_distance = max(abs(entry - stop), self.limits.min_stop_distance)
        size = min(risk_amount / stop_distance, balance / entry) if balance > 0 else 0.0

        return PositionPlan(
            stop_price=stop,
            target_price=target,
            size=float(size),
            risk_amount=float(risk_amount),
            stop_distance=float(stop_distance),
        )

    def lock_threshold(self, size: float, atr: float) -> float:
        """P/L at which an open position locks in its profit."""
        return size * atr * self.limits.lock_fraction

    def scan_exit(
        self,
        closes: np.ndarray,
        entry_index: int,
        horizon: int,
        direction: Direction,
        entry: float,
        plan: PositionPlan,
        atr: float
    ) -> ExitScan:
        """
        Drive an open position to its exit.

        Scans closes[entry_index + 1 : min(entry_index + 1 + horizon, n)].

        Args:
            closes: Close prices of the full series
            entry_index: Bar index the position was opened on
            horizon: Maximum holding period in bars
            direction: Position direction
            entry: Entry price
            plan: Position plan from size()
            atr: ATR at entry

        Returns:
            ExitScan
        """
        closes = np.asarray(closes, dtype=np.float64)
        start = entry_index + 1
        end = min(start + horizon, len(closes))

        exit_index, code, exit_price, pnl, adverse = scan_position_exit_numba(
            closes,
            start,
            end,
            direction is Direction.LONG,
            float(entry),
            plan.stop_price,
            plan.target_price,
            plan.size,
            self.lock_threshold(plan.size, atr)
        )

        return ExitScan(
            exit_index=int(exit_index),
            exit_price=float(exit_price),
            pnl=float(pnl),
            reason=EXIT_REASONS[int(code)],
            adverse_price=float(adverse),
        )

    def reward_risk(self, direction: Direction, entry: float, exit_price: float, adverse_price: float) -> float:
        """
        Realized reward over adverse excursion, both as fractions of entry.
        The risk leg is floored at limits.min_risk_pct.
        """
        if direction is Direction.LONG:
            risk_pct = abs(entry - adverse_price) / entry
            reward_pct = abs(exit_price - entry) / entry
        else:
            risk_pct = abs(adverse_price - entry) / entry
            reward_pct = abs(entry - exit_price) / entry
        return reward_pct / max(risk_pct, self.limits.min_risk_pct)
