"""
Analytics constants and defaults.

This module defines all constants used throughout the analytics engine:
- Calendar conventions (days per year, trading days per year)
- Default risk/return parameters
- Monte Carlo defaults
- Kelly sizing defaults
- Trade record defaults

Every configurable default in src/lib/config.py is sourced from here so
the CLI scripts, the config loader and the tests agree on one value.
"""

from typing import Tuple


# =============================================================================
# Calendar Conventions
# =============================================================================

DAYS_PER_YEAR = 365.25  # Calendar days used to annualize CAGR
TRADING_DAYS_PER_YEAR = 252  # Default annualization factor for Sharpe/Sortino
SECONDS_PER_DAY = 86400.0


# =============================================================================
# Trade Record Defaults
# =============================================================================

UNKNOWN_STRATEGY = "Unknown"  # Label applied when a trade has no strategy


# =============================================================================
# Portfolio Statistics Defaults
# =============================================================================

DEFAULT_RISK_FREE_RATE = 2.0  # Annual risk-free rate in percent
DEFAULT_ANNUALIZATION_FACTOR = TRADING_DAYS_PER_YEAR
DEFAULT_CONFIDENCE_LEVEL = 0.95
DEFAULT_DRAWDOWN_THRESHOLD = 0.10  # 10% drawdown alert threshold

# Variance below this is treated as zero (flat series)
ZERO_VARIANCE_EPSILON = 1e-12


# =============================================================================
# Correlation Defaults
# =============================================================================

CORRELATION_METHODS: Tuple[str, ...] = ("pearson", "spearman", "kendall")
CORRELATION_ALIGNMENTS: Tuple[str, ...] = ("union", "shared")
DEFAULT_CORRELATION_METHOD = "pearson"
DEFAULT_CORRELATION_ALIGNMENT = "union"
DEFAULT_MIN_CORRELATION_OBSERVATIONS = 2


# =============================================================================
# Monte Carlo Defaults
# =============================================================================

DEFAULT_NUM_SIMULATIONS = 1000
DEFAULT_SIMULATION_LENGTH = 252  # Trades per simulated path
DEFAULT_TRADES_PER_YEAR = 252
DEFAULT_MC_INITIAL_CAPITAL = 100_000.0
DEFAULT_PROGRESS_INTERVAL = 100  # Report progress every N runs
SAMPLE_BASES: Tuple[str, ...] = ("return", "pl")
DEFAULT_SAMPLE_BASIS = "return"

# Percentile bands reported per simulated step
PERCENTILE_BANDS: Tuple[int, ...] = (5, 25, 50, 75, 95)

# Percentile of per-run max drawdowns reported as the "max drawdown" statistic
MAX_DRAWDOWN_PERCENTILE = 95.0


# =============================================================================
# Kelly Sizing Defaults
# =============================================================================

DEFAULT_KELLY_MULTIPLIER_PCT = 100.0  # 100% = full Kelly
PORTFOLIO_LABEL = "Portfolio"


# =============================================================================
# Output Defaults
# =============================================================================

DEFAULT_OUTPUT_DIR = "./results"
DEFAULT_LOG_LEVEL = "INFO"
ENV_PREFIX = "TRADEBLOCKS_"
