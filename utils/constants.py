# signal-backtests/utils/constants.py
import os
import dotenv

# Load environment variables
dotenv.load_dotenv()


class Constants:
    """
    Constants for the backtest runs.
    """
    def __init__(self):
        """
        Initialize the Constants class.
        """

        # Lookback windows (calendar days)
        self.lookback_days = 180
        self.retry_lookback_days = 365

        # Timeframe pairs (lower, higher)
        self.timeframe_pairs = [('15m', '1h'), ('1h', '1d')]

        # Output locations
        self.results_path = os.getenv("BACKTEST_RESULTS_PATH", 'outputs/results/backtest_results.json')
        self.checkpoint_path = os.getenv("BACKTEST_CHECKPOINT_PATH", 'outputs/results/progress.json')
        self.data_dir = os.getenv("BACKTEST_DATA_DIR", 'outputs/data')
        self.symbols_file = 'data/symbols.csv'

    @staticmethod
    def polygon_api_key():
        """Polygon API key from the environment (None if unset)."""
        return os.getenv("POLYGON_API_KEY")
