"""
Shared utilities library for the analytics engine.

This module provides common utilities used across the codebase:
- constants: Calendar conventions and default parameters
- time_utils: Timestamp coercion and calendar bucketing
- config: Unified configuration loading from YAML and environment variables
- logging: Structured logging with rotation and formatting
"""

from src.lib.constants import (
    DAYS_PER_YEAR,
    TRADING_DAYS_PER_YEAR,
    UNKNOWN_STRATEGY,
    CORRELATION_METHODS,
    PERCENTILE_BANDS,
)

from src.lib.time_utils import (
    to_datetime,
    to_date,
    month_key,
    iso_week_key,
    day_span,
)

from src.lib.config import (
    AnalyticsConfig,
    StatsConfig,
    CorrelationConfig,
    MonteCarloConfig,
    KellyConfig,
    OutputConfig,
    ConfigValidationError,
    load_config,
    load_config_from_env,
    validate_config,
)

from src.lib.logging_utils import (
    setup_logging,
    get_logger,
    AnalyticsLogger,
    AnalyticsFormatter,
    LogLevel,
    log_duration,
)

__all__ = [
    # Constants
    "DAYS_PER_YEAR",
    "TRADING_DAYS_PER_YEAR",
    "UNKNOWN_STRATEGY",
    "CORRELATION_METHODS",
    "PERCENTILE_BANDS",
    # Time utilities
    "to_datetime",
    "to_date",
    "month_key",
    "iso_week_key",
    "day_span",
    # Config
    "AnalyticsConfig",
    "StatsConfig",
    "CorrelationConfig",
    "MonteCarloConfig",
    "KellyConfig",
    "OutputConfig",
    "ConfigValidationError",
    "load_config",
    "load_config_from_env",
    "validate_config",
    # Logging
    "setup_logging",
    "get_logger",
    "AnalyticsLogger",
    "AnalyticsFormatter",
    "LogLevel",
    "log_duration",
]
