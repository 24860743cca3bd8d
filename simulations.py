import os
import sys
import time
import logging
import argparse
from typing import List, Optional

import dotenv

from core.errors import ConfigurationError
from backtesting.config import BacktestParameters
from connectors.pipeline import PipelineConfig
from outputs import JsonCheckpointStore
from simulation import SimulationConfig, SimulationRunner, load_symbols, parse_timeframe_pairs
from strats import StrategyFactory
from utils.constants import Constants

# Load environment variables
dotenv.load_dotenv()

logger = logging.getLogger(__name__)

constants = Constants()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='Run signal strategy backtests over a symbol universe')
    parser.add_argument(
        '--symbols',
        nargs='+',
        default=None,
        help='Symbols to test (e.g. NVDA AAPL SPY)'
    )
    parser.add_argument(
        '--symbols-file',
        type=str,
        default=None,
        help=f"CSV file with a 'Symbol' column (default: {constants.symbols_file} when --symbols is omitted)"
    )
    parser.add_argument(
        '--strategies',
        nargs='+',
        default=None,
        help='Strategy names to test (default: all registered strategies)'
    )
    parser.add_argument(
        '--timeframes',
        nargs='+',
        default=None,
        help="Timeframe pairs as lower:higher (default: 15m:1h 1h:1d)"
    )
    parser.add_argument(
        '--source',
        type=str,
        choices=['polygon', 'yfinance'],
        default=None,
        help='Data source (default: polygon if POLYGON_API_KEY is set, else yfinance)'
    )
    parser.add_argument('--start', type=str, default=None, help='Start date YYYY-MM-DD')
    parser.add_argument('--end', type=str, default=None, help='End date YYYY-MM-DD (default: today)')
    parser.add_argument(
        '--lookback-days',
        type=int,
        default=constants.lookback_days,
        help=f'Calendar days to test when --start is omitted (default: {constants.lookback_days})'
    )
    parser.add_argument(
        '--workers',
        type=int,
        default=PipelineConfig.workers,
        help=f'Concurrent symbol workers (default: {PipelineConfig.workers})'
    )
    parser.add_argument(
        '--cooldown',
        type=int,
        default=BacktestParameters.cooldown_bars,
        help=f'Bars between two entries (default: {BacktestParameters.cooldown_bars})'
    )
    parser.add_argument('--results', type=str, default=constants.results_path, help='Result JSON path')
    parser.add_argument('--checkpoint', type=str, default=constants.checkpoint_path, help='Checkpoint JSON path')
    parser.add_argument(
        '--fresh',
        action='store_true',
        default=False,
        help='Delete the checkpoint before starting'
    )
    parser.add_argument(
        '--cache-bars',
        action='store_true',
        default=False,
        help=f'Save fetched bars under {constants.data_dir}'
    )
    parser.add_argument(
        '--log-level',
        type=str,
        default='INFO',
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
        help='Logging level (default: INFO)'
    )
    parser.add_argument(
        '--list-strategies',
        action='store_true',
        default=False,
        help='List registered strategies and exit'
    )
    return parser


def print_best_results(records) -> None:
    """Print the result table, best win rate first."""
    if not records:
        print("No results to display")
        return

    print("\n" + "=" * 80)
    print("BEST STRATEGY PER SYMBOL")
    print("=" * 80)
    print(f"{'Symbol':<8} {'Strategy':<24} {'Win Rate':>9} {'Trades':>7} {'Wins':>6} {'Avg Dur':>8} {'Avg R/R':>8}")
    print("-" * 80)
    for r in records:
        print(
            f"{r.symbol:<8} {r.strategy:<24} {r.win_rate:>8.2f}% {r.trades:>7} {r.wins:>6} "
            f"{r.avg_duration:>8.2f} {r.avg_risk_reward:>8.2f}"
        )


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main entry point for the simulation.
    """
    args = build_parser().parse_args(argv)

    # Configure logging
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format='%(asctime)s - %(levelname)s - %(message)s'
    )

    if args.list_strategies:
        for name in StrategyFactory.list_strategies():
            strategy = StrategyFactory.get_strategy(name)
            print(f"{name:<24} stop x{strategy.stop_multiplier:<4} target x{strategy.target_multiplier}")
        return 0

    start_time = time.time()

    try:
        names = {}
        if args.symbols:
            symbols = args.symbols
        else:
            symbols_file = args.symbols_file or constants.symbols_file
            if not os.path.exists(symbols_file):
                raise ConfigurationError(f"No --symbols given and symbols file {symbols_file} not found")
            symbols, names = load_symbols(symbols_file)

        config = SimulationConfig(
            symbols=symbols,
            names=names,
            strategies=args.strategies,
            timeframe_pairs=(
                parse_timeframe_pairs(args.timeframes) if args.timeframes else list(constants.timeframe_pairs)
            ),
            start_date=args.start,
            end_date=args.end,
            lookback_days=args.lookback_days,
            source=args.source,
            cache_bars=args.cache_bars,
            results_path=args.results,
            checkpoint_path=args.checkpoint,
            backtest=BacktestParameters(cooldown_bars=args.cooldown),
            pipeline=PipelineConfig(workers=args.workers),
        )

        if args.fresh:
            JsonCheckpointStore(config.checkpoint_path).clear()

        runner = SimulationRunner(config)
        records = runner.run()
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        return 2

    print_best_results(records)
    if runner.report is not None and runner.report.failed:
        logger.warning(f"{len(runner.report.failed)} symbols failed: {', '.join(sorted(runner.report.failed))}")

    logger.info(f"Total time taken: {time.time() - start_time:.2f} seconds")
    return 0


if __name__ == '__main__':
    sys.exit(main())
