"""
Core constants and limits.

Defines system-wide defaults and resource limits used by the engine,
the optimizer and the service layer.
"""

# Cost model defaults
DEFAULT_COMMISSION_RATE = 0.001  # 0.1% of notional
DEFAULT_SLIPPAGE_RATE = 0.001  # 0.1% adverse price move

# Optimization limits
DEFAULT_MAX_COMBINATIONS = 10000  # Refuse parameter grids larger than this
DEFAULT_CACHE_TTL_MS = 24 * 60 * 60 * 1000  # 24 hours
DEFAULT_CACHE_MAX_ENTRIES = 4096
DEFAULT_TOP_RESULTS = 10
DEFAULT_RANKING_METRIC = "sharpe_ratio"

# Service limits
DEFAULT_MAX_HISTORY_SIZE = 100  # Completed results kept in history

# Calendar basis for annualisation (crypto markets trade every day)
DAYS_PER_YEAR = 365
SECONDS_PER_DAY = 86400

# Float tolerance used when expanding numeric parameter ranges
RANGE_EPSILON = 1e-9

# Environment variable prefix for settings
SETTINGS_ENV_PREFIX = "BACKTEST_"
