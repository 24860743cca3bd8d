"""
Simulation runner for multi-symbol, multi-strategy backtests.

This module provides the main simulation runner that:
    - Resolves the configured strategies before any data is fetched
    - Fetches every distinct timeframe once per symbol through the
      rate-limited data pipeline
    - Runs each strategy over each timeframe pair and keeps the best
      strategy per symbol
    - Upserts the symbol's result record as soon as it is known
    - Re-runs symbols whose best win rate is zero over a longer lookback
"""

import asyncio
import logging
import time
from typing import Dict, List, Optional, Tuple

import numpy as np

from connectors.base import BaseConnector
from connectors.data import get_connector
from connectors.manager import DataManager
from connectors.pipeline import DataPipeline, PipelineReport
from core.errors import BacktestError, ConfigurationError
from core.models import Candles, ResultRecord
from outputs.manager import CheckpointStore, JsonCheckpointStore, JsonResultStore, ResultStore
from strats.factory import StrategyFactory

from .config import SimulationConfig
from .tasks import TaskGenerator, select_best, summarize_variant, to_result_record

logger = logging.getLogger(__name__)


def _prewarm_numba_jit_cache() -> None:
    """
    Compile the numba kernels once before the workers start.

    The first call of each @njit function pays the compilation cost; doing
    it up front keeps it out of the per-symbol timings.
    """
    from core.indicators import directional_movement_numba, true_range_numba, wilder_rsi_numba
    from core.risk import calculate_price_levels_numba, scan_position_exit_numba

    logger.info("Pre-warming Numba JIT cache...")
    prices = np.linspace(100.0, 110.0, 32)
    highs = prices + 0.5
    lows = prices - 0.5

    true_range_numba(highs, lows, prices)
    directional_movement_numba(highs, lows)
    wilder_rsi_numba(prices, 14)
    calculate_price_levels_numba(100.0, 1.0, True, 1.0, 2.0)
    scan_position_exit_numba(prices, 1, 12, True, 100.0, 99.0, 102.0, 1.0, 0.35)
    logger.info("Numba JIT cache pre-warming complete")


class SimulationRunner:
    """
    Orchestrates a full simulation run.

    Example:
        config = SimulationConfig(symbols=['NVDA', 'AAPL'], source='yfinance')
        runner = SimulationRunner(config)
        records = runner.run()

    Attributes:
        config: Simulation configuration
        strategies: Resolved strategy instances, in registry order
        result_store: Where result records are upserted
        checkpoint_store: Pipeline progress checkpoint
    """

    def __init__(
        self,
        config: SimulationConfig,
        connector: Optional[BaseConnector] = None,
        result_store: Optional[ResultStore] = None,
        checkpoint_store: Optional[CheckpointStore] = None,
        data_manager: Optional[DataManager] = None,
        pipeline: Optional[DataPipeline] = None
    ):
        """
        Initialize the SimulationRunner.

        Args:
            config: Simulation configuration
            connector: Market-data connector (default: built from config.source)
            result_store: Result persistence (default: JSON at config.results_path)
            checkpoint_store: Checkpoint persistence (default: JSON at config.checkpoint_path)
            data_manager: Bar cache, used when config.cache_bars is set
            pipeline: Pre-built pipeline (tests inject one with a fake sleep)

        Raises:
            ConfigurationError: If a configured strategy is unknown
        """
        self.config = config
        self.strategies = StrategyFactory.resolve(config.strategies)
        self.result_store = result_store or JsonResultStore(config.results_path)
        self.checkpoint_store = checkpoint_store or JsonCheckpointStore(config.checkpoint_path)
        self.data_manager = data_manager or DataManager(config.data_dir)
        self.task_generator = TaskGenerator(config)

        self._connector = connector
        self._pipeline = pipeline
        self._retry_queue: List[str] = []
        self.records: Dict[str, ResultRecord] = {}
        self.report: Optional[PipelineReport] = None

    @property
    def pipeline(self) -> DataPipeline:
        if self._pipeline is None:
            connector = self._connector or get_connector(self.config.source)
            self._pipeline = DataPipeline(
                connector,
                self.config.pipeline,
                checkpoint_store=self.checkpoint_store,
            )
        return self._pipeline

    def run(self) -> List[ResultRecord]:
        """
        Run the simulation to completion.

        Returns:
            Result records produced by this run, best win rate first
        """
        return asyncio.run(self.run_async())

    async def run_async(self) -> List[ResultRecord]:
        start_time = time.time()

        if not self.strategies:
            logger.warning("No strategies configured, nothing to simulate")
            return []

        stored = set(self.result_store.symbols())
        universe = [s for s in self.config.symbols if s not in stored]
        if len(universe) < len(self.config.symbols):
            logger.info(f"Skipping {len(self.config.symbols) - len(universe)} symbols already in results")
        if not universe:
            logger.info("All symbols already have results")
            return []

        pipeline = self.pipeline
        start, end = self.config.date_range()

        logger.info("=" * 60)
        logger.info(f"Starting simulation: {len(universe)} symbols, {len(self.strategies)} strategies")
        logger.info(f"Timeframe pairs: {self.config.timeframe_pairs}")
        logger.info(f"Date range: {start} to {end}")
        logger.info("=" * 60)

        _prewarm_numba_jit_cache()

        async def handle(symbol: str) -> None:
            await self.process_symbol(symbol, start, end, allow_retry=True)

        self.report = await pipeline.run(universe, handle)

        if self._retry_queue:
            await self._run_retries()

        elapsed = time.time() - start_time
        logger.info(f"Completed {len(self.records)} symbols in {elapsed:.1f}s")
        return sorted(self.records.values(), key=lambda r: r.win_rate, reverse=True)

    async def _run_retries(self) -> None:
        retry_start, retry_end = self.config.retry_range()
        logger.info(
            f"Rerunning {len(self._retry_queue)} zero win-rate symbols "
            f"over {retry_start} to {retry_end}"
        )
        queue, self._retry_queue = self._retry_queue, []
        for symbol in queue:
            try:
                await self.process_symbol(symbol, retry_start, retry_end, allow_retry=False)
            except ConfigurationError:
                raise
            except BacktestError as e:
                logger.error(f"Rerun of {symbol} failed: {e}")
            except Exception:
                logger.exception(f"Rerun of {symbol} failed unexpectedly")

    async def fetch_symbol_bars(self, symbol: str, start: str, end: str) -> Dict[str, Candles]:
        """
        Fetch each distinct timeframe once.

        Returns:
            Candles keyed by timeframe label
        """
        bars: Dict[str, Candles] = {}
        for timeframe in self.config.timeframes:
            df = await self.pipeline.fetch(symbol, timeframe, start, end)
            if self.config.cache_bars:
                self.data_manager.save_bars(symbol, timeframe, df)
            bars[timeframe] = Candles.from_frame(df)
            logger.debug(f"{symbol} {timeframe}: {len(df)} bars")
        return bars

    async def process_symbol(
        self,
        symbol: str,
        start: str,
        end: str,
        allow_retry: bool = True
    ) -> ResultRecord:
        """
        Fetch, simulate and store the best result for one symbol.

        Args:
            symbol: Symbol to process
            start: Start date (YYYY-MM-DD)
            end: End date (YYYY-MM-DD)
            allow_retry: Queue a longer-lookback rerun on a zero win rate

        Returns:
            The stored ResultRecord
        """
        bars = await self.fetch_symbol_bars(symbol, start, end)
        record = self.evaluate_symbol(symbol, bars)

        self.result_store.upsert(record)
        self.records[symbol] = record
        logger.info(
            f"{symbol} | Strategy: {record.strategy} | Win Rate: {record.win_rate:.2f}% | "
            f"Trades: {record.trades} | Wins: {record.wins}"
        )

        if allow_retry and self.config.retry_zero_win_rate and record.win_rate == 0:
            self._retry_queue.append(symbol)
        return record

    def evaluate_symbol(self, symbol: str, bars: Dict[str, Candles]) -> ResultRecord:
        """
        Run every strategy over every timeframe pair and pick the best.

        Args:
            symbol: Symbol label
            bars: Candles keyed by timeframe label

        Returns:
            ResultRecord of the best strategy
        """
        summaries = []
        for strategy in self.strategies:
            tasks = self.task_generator.generate_tasks(symbol, [strategy])
            results = [self.task_generator.run_task(task, bars) for task in tasks]
            summary = summarize_variant(strategy.name, results)
            logger.debug(
                f"{symbol} {strategy.name}: win rate {summary.win_rate:.2f}% "
                f"over {summary.trades} trades"
            )
            summaries.append(summary)

        best = select_best(summaries)
        return to_result_record(symbol, best, self.config.names.get(symbol, ''))


def run_simulation(config: SimulationConfig, **kwargs) -> Tuple[List[ResultRecord], Optional[PipelineReport]]:
    """
    Convenience wrapper: build a runner and run it.

    Returns:
        (result records, pipeline report)
    """
    runner = SimulationRunner(config, **kwargs)
    records = runner.run()
    return records, runner.report
