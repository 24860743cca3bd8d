from __future__ import annotations

import numpy as np
import pytest

from core.models import Direction, ExitReason
from core.risk import PositionPlan, RiskLimits, RiskManager


def test_price_levels_long_and_short():
    manager = RiskManager()
    assert manager.price_levels(100.0, Direction.LONG, 2.0, 1.0, 2.5) == pytest.approx((98.0, 105.0))
    assert manager.price_levels(100.0, Direction.SHORT, 2.0, 1.2, 3.0) == pytest.approx((102.4, 94.0))


def test_size_is_capped_by_balance():
    plan = RiskManager().size(100.0, Direction.LONG, 2.0, 100.0, 1.0, 2.5)
    # risk budget 30 / distance 2 = 15 units, but 100 balance only buys 1
    assert plan.risk_amount == pytest.approx(30.0)
    assert plan.stop_distance == pytest.approx(2.0)
    assert plan.size == pytest.approx(1.0)


def test_size_is_capped_by_risk_budget():
    plan = RiskManager().size(10.0, Direction.LONG, 2.0, 1000.0, 1.0, 2.0)
    # risk budget 150 / distance 2 = 75 units, balance allows 100
    assert plan.risk_amount == pytest.approx(150.0)
    assert plan.size == pytest.approx(75.0)


def test_zero_atr_uses_minimum_stop_distance():
    plan = RiskManager().size(100.0, Direction.LONG, 0.0, 100.0, 1.0, 2.0)
    assert plan.stop_distance == pytest.approx(0.0001)
    assert plan.size == pytest.approx(1.0)


def test_size_edge_cases():
    manager = RiskManager()
    assert manager.size(100.0, Direction.LONG, 2.0, 0.0, 1.0, 2.0).size == 0.0
    with pytest.raises(ValueError):
        manager.size(0.0, Direction.LONG, 2.0, 100.0, 1.0, 2.0)


def _long_plan(size=1.0):
    return PositionPlan(stop_price=98.0, target_price=105.0, size=size, risk_amount=30.0, stop_distance=2.0)


def test_scan_stop_first():
    closes = np.array([100.0, 99.5, 97.9, 110.0])
    scan = RiskManager().scan_exit(closes, 0, 11, Direction.LONG, 100.0, _long_plan(), 2.0)
    assert scan.reason is ExitReason.STOP
    assert scan.exit_index == 2
    assert scan.pnl == pytest.approx(-2.1)
    assert scan.adverse_price == pytest.approx(97.9)


def test_scan_profit_lock_before_target():
    closes = np.array([100.0, 100.8, 106.0])
    # lock threshold = 1 x 2 x 0.35 = 0.7
    scan = RiskManager().scan_exit(closes, 0, 11, Direction.LONG, 100.0, _long_plan(), 2.0)
    assert scan.reason is ExitReason.PROFIT_LOCK
    assert scan.exit_index == 1
    assert scan.pnl == pytest.approx(0.8)


def test_scan_target_when_lock_is_out_of_reach():
    manager = RiskManager(RiskLimits(lock_fraction=10.0))
    closes = np.array([100.0, 103.0, 105.5])
    scan = manager.scan_exit(closes, 0, 11, Direction.LONG, 100.0, _long_plan(), 2.0)
    assert scan.reason is ExitReason.TARGET
    assert scan.exit_index == 2
    assert scan.exit_price == pytest.approx(105.5)


def test_scan_timeout_exits_at_last_close_in_horizon():
    closes = np.array([100.0, 100.1, 100.2, 99.9, 120.0])
    scan = RiskManager().scan_exit(closes, 0, 3, Direction.LONG, 100.0, _long_plan(), 2.0)
    assert scan.reason is ExitReason.TIMEOUT
    assert scan.exit_index == 3
    assert scan.exit_price == pytest.approx(99.9)
    assert scan.pnl == pytest.approx(-0.1)


def test_scan_short_position():
    plan = PositionPlan(stop_price=102.0, target_price=95.0, size=1.0, risk_amount=30.0, stop_distance=2.0)
    closes = np.array([100.0, 100.5, 102.5])
    scan = RiskManager().scan_exit(closes, 0, 11, Direction.SHORT, 100.0, plan, 2.0)
    assert scan.reason is ExitReason.STOP
    assert scan.pnl == pytest.approx(-2.5)
    assert scan.adverse_price == pytest.approx(102.5)


def test_scan_with_nothing_left_exits_flat():
    closes = np.array([100.0, 101.0])
    scan = RiskManager().scan_exit(closes, 1, 11, Direction.LONG, 101.0, _long_plan(), 2.0)
    assert scan.reason is ExitReason.TIMEOUT
    assert scan.exit_index == 1
    assert scan.exit_price == pytest.approx(101.0)
    assert scan.pnl == 0.0


def test_reward_risk():
    manager = RiskManager()
    assert manager.reward_risk(Direction.LONG, 100.0, 102.0, 99.0) == pytest.approx(2.0)
    assert manager.reward_risk(Direction.SHORT, 100.0, 97.0, 101.5) == pytest.approx(2.0)
    # no adverse excursion: risk leg floored at 0.0001
    assert manager.reward_risk(Direction.LONG, 100.0, 102.0, 100.0) == pytest.approx(200.0)


def test_tight_multipliers_give_exact_levels():
    stop, target = RiskManager().price_levels(100.0, Direction.LONG, 2.0, 0.7, 1.1)
    assert stop == pytest.approx(98.6)
    assert target == pytest.approx(102.2)
