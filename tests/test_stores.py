from __future__ import annotations

import json

import pandas as pd
import pytest

from connectors.manager import DataManager
from core.errors import ConfigurationError
from core.models import ProgressCheckpoint, ResultRecord
from outputs import JsonCheckpointStore, JsonResultStore


def _record(symbol, win_rate, strategy='breakout_range'):
    return ResultRecord(symbol=symbol, strategy=strategy, win_rate=win_rate, trades=4, wins=2,
                        losses=2, avg_duration=3.0, avg_risk_reward=1.5)


def test_upsert_keeps_one_record_per_symbol_sorted(tmp_path):
    store = JsonResultStore(tmp_path / 'results' / 'backtest_results.json')

    store.upsert(_record('AAA', 40.0))
    store.upsert(_record('BBB', 75.0))
    store.upsert(_record('AAA', 90.0, strategy='trend_spike'))

    records = store.load()
    assert [r.symbol for r in records] == ['AAA', 'BBB']
    assert records[0].strategy == 'trend_spike'
    assert store.get('BBB').win_rate == 75.0
    assert store.get('CCC') is None

    data = json.loads(store.path.read_text())
    assert [item['win_rate'] for item in data] == [90.0, 75.0]
    assert list(store.path.parent.iterdir()) == [store.path]


def test_missing_result_file_is_empty(tmp_path):
    store = JsonResultStore(tmp_path / 'none.json')
    assert store.load() == []
    assert store.symbols() == []


def test_unreadable_result_file_is_a_configuration_error(tmp_path):
    path = tmp_path / 'results.json'
    path.write_text('{not json')
    with pytest.raises(ConfigurationError):
        JsonResultStore(path).load()


def test_checkpoint_store_round_trip_and_clear(tmp_path):
    store = JsonCheckpointStore(tmp_path / 'progress.json')
    assert store.load() == ProgressCheckpoint()

    checkpoint = ProgressCheckpoint(last_symbol='MSFT', last_timeframe='1h', completed_symbols=['AAPL', 'MSFT'])
    store.save(checkpoint)
    assert store.load() == checkpoint

    store.clear()
    assert not store.path.exists()
    store.clear()


def test_corrupt_checkpoint_starts_fresh(tmp_path):
    path = tmp_path / 'progress.json'
    path.write_text('[1, 2')
    assert JsonCheckpointStore(path).load() == ProgressCheckpoint()


def test_data_manager_round_trip(tmp_path, make_frame):
    manager = DataManager(tmp_path / 'data')
    df = make_frame([10.0, 11.0, 12.0])

    path = manager.save_bars('nvda', '15Min', df)
    assert path == tmp_path / 'data' / 'NVDA' / 'NVDA_15m.csv'
    assert manager.has_bars('NVDA', '15m')
    assert not manager.has_bars('NVDA', '1h')
    assert manager.list_tickers() == ['NVDA']

    loaded = manager.load_bars('NVDA', '15m')
    assert list(loaded['close']) == [10.0, 11.0, 12.0]
    assert loaded['time'].iloc[0] == pd.Timestamp('2024-01-02 09:30', tz='UTC')
    assert manager.load_bars('NVDA', '1d') is None


def test_data_manager_rejects_incomplete_frames(tmp_path, make_frame):
    with pytest.raises(ValueError):
        DataManager(tmp_path).save_bars('NVDA', '1h', make_frame([1.0]).drop(columns=['close']))
