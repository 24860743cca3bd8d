from __future__ import annotations

import numpy as np
import pytest

from core.indicators import adx, atr, bollinger_bands, ema, rsi, sma, sma_slope, trend_direction
from core.models import Trend


def test_sma_uses_trailing_window():
    assert sma([1, 2, 3, 4, 5], 3) == pytest.approx(4.0)
    assert sma([1, 2], 3) is None


def test_period_below_one_is_rejected():
    with pytest.raises(ValueError):
        sma([1, 2, 3], 0)
    with pytest.raises(ValueError):
        rsi([1, 2, 3], 0)


def test_ema_is_seeded_with_sma():
    # seed = mean(1, 2, 3) = 2, k = 0.5 -> 3 -> 4
    assert ema([1, 2, 3, 4, 5], 3) == pytest.approx(4.0)
    assert ema([1, 2], 3) is None


def test_rsi_extremes_and_short_window():
    rising = np.arange(1.0, 16.0)
    assert rsi(rising) == pytest.approx(100.0)
    assert rsi(rising[::-1]) == pytest.approx(0.0)
    assert rsi(rising[:14]) is None


def test_rsi_balanced_moves_is_fifty():
    prices = [10.0, 11.0] * 8
    # seven gains and seven losses of equal size in the seed window
    value = rsi(prices[:15])
    assert value == pytest.approx(50.0)


def test_atr_of_constant_range(make_candles):
    candles = make_candles([10.0] * 15, spread=1.0)
    assert atr(candles) == pytest.approx(2.0)
    assert atr(candles.tail(14)) is None


def test_adx_without_directional_movement_is_zero(make_candles):
    candles = make_candles([10.0] * 20)
    assert adx(candles) == 0.0


def test_adx_of_one_sided_trend(make_candles):
    candles = make_candles([10.0 + k for k in range(20)])
    assert adx(candles) == pytest.approx(100.0)
    assert adx(candles.tail(14)) is None


def test_bollinger_bands():
    flat = bollinger_bands([5.0] * 20)
    assert flat.upper == flat.middle == flat.lower == pytest.approx(5.0)

    bands = bollinger_bands(np.arange(1.0, 21.0))
    std = np.sqrt(33.25)
    assert bands.middle == pytest.approx(10.5)
    assert bands.upper == pytest.approx(10.5 + 2 * std)
    assert bands.lower == pytest.approx(10.5 - 2 * std)
    assert bands.width == pytest.approx(4 * std)
    assert bollinger_bands(np.arange(19.0)) is None


def test_sma_slope():
    assert sma_slope([1.0, 2.0, 4.0, 7.0], 3) == pytest.approx(6.0)
    assert sma_slope([1.0, 2.0, 4.0], 3) is None


def test_trend_direction(make_candles):
    assert trend_direction(make_candles([float(k) for k in range(21)])) is Trend.UP
    assert trend_direction(make_candles([float(30 - k) for k in range(21)])) is Trend.DOWN
    assert trend_direction(make_candles([float(k) for k in range(20)])) is None


def test_sma_is_pure():
    window = np.array([3.0, 1.0, 4.0, 1.0, 5.0])
    before = window.copy()
    assert sma(window, 4) == sma(window, 4)
    assert np.array_equal(window, before)


def test_adx_is_single_pass_directional_index(make_candles):
    # ten one-point up moves then four one-point down moves: DX = 6 / 14
    closes = [10.0 + k for k in range(11)] + [19.0, 18.0, 17.0, 16.0]
    candles = make_candles(closes)
    assert len(candles) == 15
    assert adx(candles) == pytest.approx(600.0 / 14.0)
