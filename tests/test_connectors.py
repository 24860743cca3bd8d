from __future__ import annotations

import asyncio

import pandas as pd
import pytest
import requests

from connectors import (
    DataInterval,
    DataSource,
    PolygonConnector,
    YFinanceConnector,
    filter_market_hours,
    get_connector,
    resolve_source,
)
from connectors.base import BaseConnector
from connectors.pipeline import DataPipeline, PipelineConfig
from core.errors import ConfigurationError, DataSourceError, NotFound, RateLimited, TransientError

# 2024-01-02 09:30 America/New_York
MARKET_OPEN_MS = 1704205800000


class FakeResponse:
    def __init__(self, status_code, payload=None):
        self.status_code = status_code
        self._payload = payload if payload is not None else {}
        self.text = str(self._payload)

    def json(self):
        return self._payload


class TruncatedResponse(FakeResponse):
    def __init__(self):
        super().__init__(200)
        self.text = '{"results": ['

    def json(self):
        raise ValueError('Expecting value: line 1 column 13 (char 12)')


class FakeSession:
    def __init__(self, responses):
        self.responses = list(responses)
        self.requests = []

    def get(self, url, params=None, timeout=None):
        self.requests.append((url, params))
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


def _agg(offset_minutes, close):
    return {'t': MARKET_OPEN_MS + offset_minutes * 60_000, 'o': close, 'h': close + 1, 'l': close - 1,
            'c': close, 'v': 100}


def test_interval_labels():
    assert DataInterval.parse('15Min') is DataInterval.MINUTE_15
    assert DataInterval.parse('1Hour') is DataInterval.HOUR_1
    assert DataInterval.parse('1d') is DataInterval.DAY_1
    assert DataInterval.HOUR_1.minutes == 60
    with pytest.raises(ConfigurationError):
        DataInterval.parse('2h')


def test_polygon_follows_pagination_and_filters_market_hours():
    session = FakeSession([
        FakeResponse(200, {'results': [_agg(-15, 9.0), _agg(0, 10.0)], 'next_url': 'https://next'}),
        FakeResponse(200, {'results': [_agg(15, 11.0), _agg(30, 12.0)]}),
    ])
    connector = PolygonConnector(api_key='test', session=session)

    df = connector.fetch_bars('aapl', '15m', '2024-01-02', '2024-01-03')

    assert list(df['close']) == [10.0, 11.0, 12.0]
    assert list(df.columns) == ['time', 'open', 'high', 'low', 'close', 'volume']
    assert '/v2/aggs/ticker/AAPL/range/15/minute/2024-01-02/2024-01-03' in session.requests[0][0]
    assert session.requests[1] == ('https://next', {'apiKey': 'test'})


@pytest.mark.parametrize('response, error', [
    (FakeResponse(429, {'error': 'slow down'}), RateLimited),
    (FakeResponse(403, {'error': 'You have exceeded the maximum requests per minute'}), RateLimited),
    (FakeResponse(404, {'message': 'unknown ticker'}), NotFound),
    (FakeResponse(503, {'error': 'unavailable'}), TransientError),
    (requests.ConnectionError('reset'), TransientError),
    (requests.exceptions.ChunkedEncodingError('Connection broken: IncompleteRead'), TransientError),
    (requests.exceptions.ContentDecodingError('bad gzip'), TransientError),
    (TruncatedResponse(), TransientError),
    (FakeResponse(401, {'error': 'bad key'}), DataSourceError),
])
def test_polygon_error_classification(response, error):
    connector = PolygonConnector(api_key='test', session=FakeSession([response]))
    with pytest.raises(error) as excinfo:
        connector.fetch_bars('AAPL', '1h', '2024-01-02', '2024-01-03')
    assert excinfo.value.symbol == 'AAPL'


def test_polygon_empty_result_is_not_found():
    connector = PolygonConnector(api_key='test', session=FakeSession([FakeResponse(200, {'resultsCount': 0})]))
    with pytest.raises(NotFound):
        connector.fetch_bars('AAPL', '1d', '2024-01-02', '2024-01-03')


def test_polygon_requires_api_key(monkeypatch):
    monkeypatch.delenv('POLYGON_API_KEY', raising=False)
    with pytest.raises(ConfigurationError):
        PolygonConnector()


def test_source_resolution(monkeypatch):
    monkeypatch.delenv('POLYGON_API_KEY', raising=False)
    assert resolve_source() is DataSource.YFINANCE
    assert isinstance(get_connector(), YFinanceConnector)

    monkeypatch.setenv('POLYGON_API_KEY', 'test')
    assert resolve_source() is DataSource.POLYGON
    assert resolve_source('YFinance') is DataSource.YFINANCE
    with pytest.raises(ConfigurationError):
        get_connector('bloomberg')


def test_standardize_drops_duplicates_and_sorts():
    df = pd.DataFrame({
        'time': pd.to_datetime(['2024-01-02 10:00', '2024-01-02 09:30', '2024-01-02 10:00']),
        'open': [2.0, 1.0, 3.0],
        'high': [2.0, 1.0, 3.0],
        'low': [2.0, 1.0, 3.0],
        'close': [2.0, 1.0, 3.0],
        'volume': [None, 5.0, 7.0],
        'vwap': [0.0, 0.0, 0.0],
    })
    out = BaseConnector.standardize(df)
    assert list(out['close']) == [1.0, 3.0]
    assert 'vwap' not in out.columns

    with pytest.raises(ValueError):
        BaseConnector.standardize(df.drop(columns=['close']))


def test_filter_market_hours():
    df = pd.DataFrame({'time': pd.to_datetime(['2024-01-02 09:00', '2024-01-02 09:30', '2024-01-02 16:00'])})
    assert len(filter_market_hours(df)) == 1


def test_polygon_without_session_uses_requests_get(monkeypatch):
    calls = []

    def fake_get(url, params=None, timeout=None):
        calls.append(url)
        return FakeResponse(200, {'results': [_agg(0, 10.0)]})

    monkeypatch.setattr(requests, 'get', fake_get)
    connector = PolygonConnector(api_key='test')

    df = connector.fetch_bars('AAPL', '15m', '2024-01-02', '2024-01-03')

    assert connector.session is None
    assert list(df['close']) == [10.0]
    assert len(calls) == 1


def test_broken_stream_is_retried_and_other_symbols_run(recording_sleep):
    page = {'results': [_agg(0, 10.0), _agg(15, 11.0)]}
    session = FakeSession([
        FakeResponse(200, page),
        requests.exceptions.ChunkedEncodingError('Connection broken: IncompleteRead'),
        FakeResponse(200, page),
        FakeResponse(200, page),
    ])
    connector = PolygonConnector(api_key='test', session=session)
    pipeline = DataPipeline(connector, PipelineConfig(workers=1, requests_per_minute=0), sleep=recording_sleep)
    fetched = {}

    async def handler(symbol):
        fetched[symbol] = await pipeline.fetch(symbol, '15m', '2024-01-02', '2024-01-03')

    report = asyncio.run(pipeline.run(['A', 'B', 'C'], handler))

    assert report.completed == ['A', 'B', 'C']
    assert report.failed == {}
    assert recording_sleep.delays == pytest.approx([1.2])
    assert list(fetched['B']['close']) == [10.0, 11.0]
    assert len(session.requests) == 4
