from __future__ import annotations

import asyncio

import pytest

from connectors.pipeline import DataPipeline, PipelineConfig
from connectors.throttle import RateLimiter
from core.errors import ConfigurationError, FetchFailed, NotFound, RateLimited, TransientError
from core.models import ProgressCheckpoint
from outputs import JsonCheckpointStore


def _pipeline(connector, sleep, **kwargs):
    config = PipelineConfig(requests_per_minute=0, **kwargs)
    return DataPipeline(connector, config, sleep=sleep)


def test_transient_errors_back_off_linearly(fake_connector_class, sawtooth_frames, recording_sleep):
    connector = fake_connector_class(sawtooth_frames, errors=[TransientError('boom'), TransientError('boom')])
    pipeline = _pipeline(connector, recording_sleep)

    df = asyncio.run(pipeline.fetch('aapl', '15m', '2024-01-01', '2024-02-01'))

    assert len(df) == 40
    assert len(connector.calls) == 3
    assert connector.calls[0] == ('AAPL', '15m', '2024-01-01', '2024-02-01')
    assert recording_sleep.delays == pytest.approx([1.2, 2.4])


def test_retry_budget_counts_every_attempt(fake_connector_class, sawtooth_frames, recording_sleep):
    connector = fake_connector_class(sawtooth_frames, errors=[TransientError('down')] * 5)
    pipeline = _pipeline(connector, recording_sleep)

    with pytest.raises(FetchFailed) as excinfo:
        asyncio.run(pipeline.fetch('AAPL', '1h', '2024-01-01', '2024-02-01'))

    assert excinfo.value.attempts == 5
    assert excinfo.value.timeframe == '1h'
    assert isinstance(excinfo.value.__cause__, TransientError)
    assert len(connector.calls) == 5
    assert recording_sleep.delays == pytest.approx([1.2, 2.4, 3.6, 4.8])


def test_rate_limit_engages_global_pause(fake_connector_class, sawtooth_frames, recording_sleep):
    connector = fake_connector_class(sawtooth_frames, errors=[RateLimited('429')])
    pipeline = _pipeline(connector, recording_sleep)

    df = asyncio.run(pipeline.fetch('AAPL', '15m', '2024-01-01', '2024-02-01'))

    assert not df.empty
    assert pipeline.limiter.pause_count == 1
    assert recording_sleep.delays == [25.0]
    assert not pipeline.limiter.paused


def test_not_found_is_not_retried(fake_connector_class, recording_sleep):
    connector = fake_connector_class({})
    pipeline = _pipeline(connector, recording_sleep)

    with pytest.raises(NotFound):
        asyncio.run(pipeline.fetch('ZZZZ', '15m', '2024-01-01', '2024-02-01'))

    assert len(connector.calls) == 1
    assert recording_sleep.delays == []


def test_limiter_spaces_requests():
    now = [0.0]
    delays = []

    async def sleep(delay):
        delays.append(delay)
        now[0] += delay

    limiter = RateLimiter(requests_per_minute=60, clock=lambda: now[0], sleep=sleep)

    async def runner():
        for _ in range(3):
            await limiter.acquire()

    asyncio.run(runner())
    assert limiter.interval == pytest.approx(1.0)
    assert delays == pytest.approx([1.0, 1.0])


def test_concurrent_pauses_share_one_window(recording_sleep):
    limiter = RateLimiter(requests_per_minute=0, pause_seconds=25.0, sleep=recording_sleep)

    async def runner():
        await asyncio.gather(limiter.pause('first'), limiter.pause('second'))
        await limiter.acquire()

    asyncio.run(runner())
    assert limiter.pause_count == 1
    assert recording_sleep.delays == [25.0]


def test_run_resumes_after_checkpoint(tmp_path, fake_connector_class, sawtooth_frames, recording_sleep):
    store = JsonCheckpointStore(tmp_path / 'progress.json')
    store.save(ProgressCheckpoint(last_symbol='B', completed_symbols=['A', 'B']))

    connector = fake_connector_class(sawtooth_frames)
    pipeline = DataPipeline(connector, PipelineConfig(requests_per_minute=0), checkpoint_store=store,
                            sleep=recording_sleep)
    handled = []

    async def handler(symbol):
        await pipeline.fetch(symbol, '15m', '2024-01-01', '2024-02-01')
        handled.append(symbol)

    report = asyncio.run(pipeline.run(['A', 'B', 'C', 'D'], handler))

    assert sorted(handled) == ['C', 'D']
    assert report.skipped == ['A', 'B']
    assert sorted(report.completed) == ['C', 'D']
    assert report.fetch_calls == 2
    assert report.total == 4

    checkpoint = store.load()
    assert checkpoint.last_symbol == 'D'
    assert checkpoint.last_timeframe == '15m'
    assert checkpoint.last_timestamp is not None


def test_failed_symbols_are_not_checkpointed(tmp_path, recording_sleep, fake_connector_class):
    store = JsonCheckpointStore(tmp_path / 'progress.json')
    pipeline = DataPipeline(fake_connector_class({}), PipelineConfig(requests_per_minute=0, workers=1),
                            checkpoint_store=store, sleep=recording_sleep)

    def handler(symbol):
        if symbol == 'B':
            raise NotFound(f'no data for {symbol}', symbol=symbol)

    report = asyncio.run(pipeline.run(['A', 'B', 'C'], handler))

    assert report.completed == ['A', 'C']
    assert list(report.failed) == ['B']
    checkpoint = store.load()
    assert checkpoint.last_symbol == 'A'
    assert checkpoint.pending(['A', 'B', 'C']) == ['B']


def test_configuration_error_aborts_run(recording_sleep, fake_connector_class):
    pipeline = DataPipeline(fake_connector_class({}), PipelineConfig(requests_per_minute=0),
                            sleep=recording_sleep)

    def handler(symbol):
        raise ConfigurationError('bad setup')

    with pytest.raises(ConfigurationError):
        asyncio.run(pipeline.run(['A', 'B', 'C'], handler))


def test_pipeline_config_validation():
    with pytest.raises(ConfigurationError):
        PipelineConfig(workers=0)
    config = PipelineConfig.from_dict({'workers': 4, 'unknown': True})
    assert config.workers == 4
    assert config.to_dict()['max_retries'] == 5


def test_other_fetches_wait_out_the_global_pause(fake_connector_class, sawtooth_frames):
    connector = fake_connector_class(sawtooth_frames)
    delays = []
    gate = {}

    async def sleep(delay):
        delays.append(delay)
        await gate['release'].wait()

    pipeline = _pipeline(connector, sleep)

    async def runner():
        gate['release'] = asyncio.Event()
        await pipeline.limiter.pause('429 from another worker', wait=False)
        fetch = asyncio.create_task(pipeline.fetch('B', '15m', '2024-01-01', '2024-02-01'))
        for _ in range(10):
            await asyncio.sleep(0)

        assert pipeline.limiter.paused
        assert connector.calls == []
        assert not fetch.done()

        gate['release'].set()
        return await fetch

    df = asyncio.run(runner())
    assert len(df) == 40
    assert connector.calls == [('B', '15m', '2024-01-01', '2024-02-01')]
    assert delays == [25.0]


def test_last_throttled_attempt_does_not_sit_out_the_pause(fake_connector_class, sawtooth_frames,
                                                           recording_sleep):
    connector = fake_connector_class(sawtooth_frames, errors=[RateLimited('429')] * 5)
    pipeline = _pipeline(connector, recording_sleep)

    async def runner():
        with pytest.raises(FetchFailed):
            await pipeline.fetch('AAPL', '15m', '2024-01-01', '2024-02-01')
        return pipeline.limiter.paused, list(recording_sleep.delays)

    still_paused, delays = asyncio.run(runner())
    assert still_paused
    assert delays == [25.0] * 4
    assert pipeline.limiter.pause_count == 5
    assert len(connector.calls) == 5


def test_persistently_throttled_symbol_fails_alone(tmp_path, fake_connector_class, sawtooth_frames,
                                                   recording_sleep):
    class ThrottledSymbol(fake_connector_class):
        def _fetch(self, symbol, interval, start_date, end_date):
            if symbol == 'B':
                self.calls.append((symbol, interval.value, start_date, end_date))
                raise RateLimited('429', symbol=symbol, timeframe=interval.value)
            return super()._fetch(symbol, interval, start_date, end_date)

    connector = ThrottledSymbol(sawtooth_frames)
    store = JsonCheckpointStore(tmp_path / 'progress.json')
    pipeline = DataPipeline(connector, PipelineConfig(requests_per_minute=0, workers=1),
                            checkpoint_store=store, sleep=recording_sleep)

    async def handler(symbol):
        await pipeline.fetch(symbol, '15m', '2024-01-01', '2024-02-01')

    report = asyncio.run(pipeline.run(['A', 'B', 'C'], handler))

    assert report.completed == ['A', 'C']
    assert list(report.failed) == ['B']
    assert 'after 5 attempts' in report.failed['B']
    assert [call[0] for call in connector.calls].count('B') == 5
    assert pipeline.limiter.pause_count == 5
    assert store.load().pending(['A', 'B', 'C']) == ['B']


def test_unexpected_handler_error_does_not_stop_the_run(recording_sleep, fake_connector_class):
    pipeline = DataPipeline(fake_connector_class({}), PipelineConfig(requests_per_minute=0, workers=1),
                            sleep=recording_sleep)
    handled = []

    def handler(symbol):
        if symbol == 'B':
            raise KeyError('close')
        handled.append(symbol)

    report = asyncio.run(pipeline.run(['A', 'B', 'C'], handler))

    assert handled == ['A', 'C']
    assert report.completed == ['A', 'C']
    assert report.failed['B'].startswith('KeyError')


def test_abort_waits_for_cancelled_workers(recording_sleep, fake_connector_class):
    pipeline = DataPipeline(fake_connector_class({}), PipelineConfig(requests_per_minute=0, workers=2),
                            sleep=recording_sleep)

    async def handler(symbol):
        if symbol == 'A':
            await asyncio.sleep(0)
            raise ConfigurationError('bad setup')
        await asyncio.Event().wait()

    async def runner():
        with pytest.raises(ConfigurationError):
            await pipeline.run(['A', 'B'], handler)
        return [task for task in asyncio.all_tasks() if task is not asyncio.current_task()]

    assert asyncio.run(runner()) == []
