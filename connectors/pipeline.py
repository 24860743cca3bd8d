"""
Data acquisition pipeline.

Fetches bars per (symbol, timeframe, date range) under a shared
calls-per-minute budget, retries transient failures with linearly
increasing backoff, and drives a small worker pool over the symbol
universe. Completed symbols are written to the progress checkpoint as
soon as they finish so an interrupted run resumes where it stopped.

Example:
    connector = get_connector('polygon')
    pipeline = DataPipeline(connector, PipelineConfig(workers=2))

    async def handle(symbol):
        bars = await pipeline.fetch(symbol, '15m', '2024-01-01', '2024-06-30')
        ...

    report = asyncio.run(pipeline.run(['AAPL', 'MSFT'], handle))
"""

import asyncio
import inspect
import logging
import time
from dataclasses import asdict, dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence

import pandas as pd

from core.errors import (
    BacktestError,
    ConfigurationError,
    DataSourceError,
    FetchFailed,
    RateLimited,
    TransientError,
)
from core.models import ProgressCheckpoint

from .base import BaseConnector, DataInterval, DateLike
from .throttle import RateLimiter

logger = logging.getLogger(__name__)

SymbolHandler = Callable[[str], Any]


@dataclass
class PipelineConfig:
    """
    Acquisition pipeline settings.

    Attributes:
        workers: Concurrent symbol workers
        max_retries: Attempts per fetch call (every attempt counts)
        backoff_seconds: Backoff step; attempt n waits n * backoff_seconds
        requests_per_minute: Account-wide request budget
        pause_seconds: Global pause after a throttling response
    """
    workers: int = 2
    max_retries: int = 5
    backoff_seconds: float = 1.2
    requests_per_minute: float = 55
    pause_seconds: float = 25.0

    def __post_init__(self):
        self.validate()

    def validate(self) -> None:
        if self.workers < 1:
            raise ConfigurationError(f"workers must be >= 1, got {self.workers}")
        if self.max_retries < 1:
            raise ConfigurationError(f"max_retries must be >= 1, got {self.max_retries}")
        if self.backoff_seconds < 0 or self.pause_seconds < 0:
            raise ConfigurationError("backoff_seconds and pause_seconds must be non-negative")

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'PipelineConfig':
        known = {k: v for k, v in data.items() if k in cls.__dataclass_fields__}
        return cls(**known)


@dataclass
class PipelineReport:
    """Outcome of one pipeline run."""
    completed: List[str] = field(default_factory=list)
    failed: Dict[str, str] = field(default_factory=dict)
    skipped: List[str] = field(default_factory=list)
    fetch_calls: int = 0
    elapsed_seconds: float = 0.0

    @property
    def total(self) -> int:
        return len(self.completed) + len(self.failed) + len(self.skipped)

    def summary(self) -> str:
        return (
            f"{len(self.completed)} completed, {len(self.failed)} failed, "
            f"{len(self.skipped)} skipped in {self.elapsed_seconds:.1f}s "
            f"({self.fetch_calls} fetch calls)"
        )


class DataPipeline:
    """
    Rate-limited, retrying fetch front-end and worker pool.

    The connector is synchronous; each call runs in a worker thread via
    asyncio.to_thread so the event loop keeps scheduling other workers.

    Attributes:
        connector: Market-data connector
        config: Pipeline settings
        limiter: Shared RateLimiter
        checkpoint_store: Optional store with load() / save(checkpoint)
    """

    def __init__(
        self,
        connector: BaseConnector,
        config: Optional[PipelineConfig] = None,
        limiter: Optional[RateLimiter] = None,
        checkpoint_store: Optional[Any] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep
    ):
        self.connector = connector
        self.config = config or PipelineConfig()
        self.limiter = limiter or RateLimiter(
            requests_per_minute=self.config.requests_per_minute,
            pause_seconds=self.config.pause_seconds,
            sleep=sleep,
        )
        self.checkpoint_store = checkpoint_store
        self._sleep = sleep
        self._fetch_calls = 0
        self._last_fetch: Dict[str, tuple] = {}

    async def fetch(
        self,
        symbol: str,
        timeframe: str,
        start: DateLike,
        end: DateLike
    ) -> pd.DataFrame:
        """
        Fetch bars with throttling and retries.

        Args:
            symbol: Ticker symbol
            timeframe: Bar interval label
            start: Start of the range
            end: End of the range

        Returns:
            Standardized bar frame

        Raises:
            NotFound: Provider has no data (not retried)
            FetchFailed: Retry budget exhausted
        """
        interval = DataInterval.parse(timeframe)
        last_error: Optional[DataSourceError] = None

        for attempt in range(1, self.config.max_retries + 1):
            await self.limiter.acquire()
            self._fetch_calls += 1
            try:
                df = await asyncio.to_thread(self.connector.fetch_bars, symbol, interval, start, end)
            except RateLimited as e:
                last_error = e
                logger.warning(f"{symbol} {interval.value}: rate limited (attempt {attempt}/{self.config.max_retries})")
                # The last attempt engages the pause for everyone but does not sit it out
                await self.limiter.pause(str(e), wait=attempt < self.config.max_retries)
                continue
            except TransientError as e:
                last_error = e
                if attempt < self.config.max_retries:
                    delay = self.config.backoff_seconds * attempt
                    logger.warning(
                        f"{symbol} {interval.value}: {e} "
                        f"(attempt {attempt}/{self.config.max_retries}), retrying in {delay:.1f}s"
                    )
                    await self._sleep(delay)
                continue

            if not df.empty:
                self._last_fetch[symbol] = (interval.value, df['time'].iloc[-1])
            return df

        raise FetchFailed(
            f"Failed fetching {interval.value} bars for {symbol} after {self.config.max_retries} attempts: {last_error}",
            symbol=symbol,
            timeframe=interval.value,
            attempts=self.config.max_retries,
        ) from last_error

    def load_checkpoint(self) -> ProgressCheckpoint:
        if self.checkpoint_store is None:
            return ProgressCheckpoint()
        return self.checkpoint_store.load()

    async def run(
        self,
        symbols: Sequence[str],
        handler: SymbolHandler
    ) -> PipelineReport:
        """
        Process every pending symbol with the worker pool.

        Symbols named by the checkpoint are skipped. A symbol whose
        handler raises is logged and left out of the checkpoint;
        only ConfigurationError aborts the run.

        Args:
            symbols: Symbol universe in configured order
            handler: Callable (sync or async) processing one symbol

        Returns:
            PipelineReport
        """
        start_time = time.time()
        universe = list(dict.fromkeys(symbols))
        checkpoint = self.load_checkpoint()
        pending = checkpoint.pending(universe)

        report = PipelineReport(skipped=[s for s in universe if s not in pending])
        if report.skipped:
            logger.info(f"Resuming: skipping {len(report.skipped)} symbols already processed")

        queue: asyncio.Queue = asyncio.Queue()
        for symbol in pending:
            queue.put_nowait(symbol)

        checkpoint_lock = asyncio.Lock()
        calls_before = self._fetch_calls

        async def worker(worker_id: int) -> None:
            while True:
                try:
                    symbol = queue.get_nowait()
                except asyncio.QueueEmpty:
                    return

                try:
                    result = handler(symbol)
                    if inspect.isawaitable(result):
                        await result
                except ConfigurationError:
                    raise
                except BacktestError as e:
                    report.failed[symbol] = str(e)
                    logger.error(f"[worker {worker_id}] {symbol} failed: {e}")
                    continue
                except Exception as e:
                    report.failed[symbol] = f"{type(e).__name__}: {e}"
                    logger.exception(f"[worker {worker_id}] {symbol} failed unexpectedly")
                    continue

                async with checkpoint_lock:
                    timeframe, timestamp = self._last_fetch.get(symbol, (None, None))
                    checkpoint.record(symbol, universe, timeframe=timeframe, timestamp=timestamp)
                    if self.checkpoint_store is not None:
                        self.checkpoint_store.save(checkpoint)
                    report.completed.append(symbol)
                    done = len(report.completed) + len(report.failed)
                    logger.info(
                        f"[{done}/{len(pending)}] {symbol} done "
                        f"({time.time() - start_time:.1f}s elapsed)"
                    )

        n_workers = min(self.config.workers, len(pending))
        tasks = [asyncio.create_task(worker(n)) for n in range(n_workers)]
        try:
            await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

        report.fetch_calls = self._fetch_calls - calls_before
        report.elapsed_seconds = time.time() - start_time
        logger.info(f"Pipeline finished: {report.summary()}")
        return report
