from __future__ import annotations

import pytest

from connectors.pipeline import DataPipeline, PipelineConfig
from core.errors import ConfigurationError, NotFound
from outputs import JsonCheckpointStore, JsonResultStore
from simulation import SimulationConfig, SimulationRunner
from strats import StrategyFactory


def _config(tmp_path, **kwargs):
    params = dict(
        symbols=['aaa'],
        strategies=['momentum_pullback'],
        timeframe_pairs=[('15Min', '1Hour')],
        end_date='2024-02-01',
        results_path=str(tmp_path / 'results.json'),
        checkpoint_path=str(tmp_path / 'progress.json'),
        data_dir=str(tmp_path / 'data'),
    )
    params.update(kwargs)
    return SimulationConfig(**params)


def _runner(config, connector, sleep, workers=2):
    checkpoint_store = JsonCheckpointStore(config.checkpoint_path)
    pipeline = DataPipeline(connector, PipelineConfig(workers=workers, requests_per_minute=0),
                            checkpoint_store=checkpoint_store, sleep=sleep)
    return SimulationRunner(config, checkpoint_store=checkpoint_store, pipeline=pipeline)


def test_best_strategy_is_stored(tmp_path, fake_connector_class, sawtooth_frames, recording_sleep):
    config = _config(tmp_path, strategies=['momentum_pullback', 'micro_reversion'], cache_bars=True)
    connector = fake_connector_class(sawtooth_frames)

    records = _runner(config, connector, recording_sleep).run()

    assert len(records) == 1
    record = records[0]
    assert record.symbol == 'AAA'
    assert record.strategy == 'momentum_pullback'
    assert record.win_rate == 100.0
    assert (record.trades, record.wins, record.losses) == (1, 1, 0)
    assert record.avg_duration == 2.0
    assert record.avg_risk_reward == 1.0

    start, end = config.date_range()
    assert sorted(connector.calls) == [('AAA', '15m', start, end), ('AAA', '1h', start, end)]
    assert JsonResultStore(config.results_path).get('AAA') == record
    assert JsonCheckpointStore(config.checkpoint_path).load().last_symbol == 'AAA'
    assert (tmp_path / 'data' / 'AAA' / 'AAA_15m.csv').exists()


def test_zero_win_rate_is_rerun_over_longer_lookback(tmp_path, fake_connector_class, sawtooth_frames,
                                                       recording_sleep):
    StrategyFactory.register_strategy('never', lambda *args: None)
    try:
        config = _config(tmp_path, strategies=['never'])
        connector = fake_connector_class(sawtooth_frames)
        records = _runner(config, connector, recording_sleep).run()
    finally:
        StrategyFactory.unregister_strategy('never')

    assert [r.win_rate for r in records] == [0.0]
    assert records[0].strategy == 'never'

    retry_start, retry_end = config.retry_range()
    assert retry_start == '2023-02-01'
    assert len(connector.calls) == 4
    assert connector.calls[-1][2:] == (retry_start, retry_end)
    assert len(JsonResultStore(config.results_path).load()) == 1


def test_failed_symbol_does_not_stop_the_run(tmp_path, fake_connector_class, sawtooth_frames, recording_sleep):
    config = _config(tmp_path, symbols=['AAA', 'BBB'])
    connector = fake_connector_class(sawtooth_frames, errors=[NotFound('unknown symbol')])
    runner = _runner(config, connector, recording_sleep, workers=1)

    records = runner.run()

    assert [r.symbol for r in records] == ['BBB']
    assert list(runner.report.failed) == ['AAA']
    checkpoint = JsonCheckpointStore(config.checkpoint_path).load()
    assert checkpoint.last_symbol is None
    assert checkpoint.completed_symbols == ['BBB']


def test_unknown_strategy_fails_before_fetching(tmp_path, fake_connector_class, sawtooth_frames,
                                                recording_sleep):
    connector = fake_connector_class(sawtooth_frames)
    with pytest.raises(ConfigurationError):
        _runner(_config(tmp_path, strategies=['momentum_pullback', 'nope']), connector, recording_sleep)
    assert connector.calls == []


def test_empty_strategy_list_is_a_no_op(tmp_path, fake_connector_class, sawtooth_frames, recording_sleep):
    connector = fake_connector_class(sawtooth_frames)
    assert _runner(_config(tmp_path, strategies=[]), connector, recording_sleep).run() == []
    assert connector.calls == []


def test_symbols_with_results_are_skipped(tmp_path, fake_connector_class, sawtooth_frames, recording_sleep):
    config = _config(tmp_path)
    connector = fake_connector_class(sawtooth_frames)
    _runner(config, connector, recording_sleep).run()
    calls = len(connector.calls)

    assert _runner(config, connector, recording_sleep).run() == []
    assert len(connector.calls) == calls


def test_unexpected_rerun_error_keeps_first_result(tmp_path, fake_connector_class, sawtooth_frames,
                                                   recording_sleep):
    class BreaksOnRerun(fake_connector_class):
        def _fetch(self, symbol, interval, start_date, end_date):
            if len(self.calls) >= 2:
                self.calls.append((symbol, interval.value, start_date, end_date))
                raise ValueError('malformed payload')
            return super()._fetch(symbol, interval, start_date, end_date)

    StrategyFactory.register_strategy('never', lambda *args: None)
    try:
        config = _config(tmp_path, strategies=['never'])
        connector = BreaksOnRerun(sawtooth_frames)
        records = _runner(config, connector, recording_sleep).run()
    finally:
        StrategyFactory.unregister_strategy('never')

    assert [(r.symbol, r.win_rate) for r in records] == [('AAA', 0.0)]
    assert len(connector.calls) == 3
    assert JsonResultStore(config.results_path).get('AAA').strategy == 'never'
