"""
Structured logging utilities for analytics runs.

This module provides:
- Configured logging with rotation and formatting
- An analytics-specific log formatter
- Structured calculation / data-quality / simulation logging
- Duration logging for long-running calculations

Log Format:
    YYYY-MM-DD HH:MM:SS.mmm [LEVEL] module - message [key=value ...]

Example usage:
    from src.lib.logging_utils import setup_logging, get_logger

    # Setup logging at application start
    setup_logging(level="INFO", log_dir="./logs")

    # Get logger in modules
    logger = get_logger(__name__)
    logger.info("Stats calculated", extra={"trades": 120})
"""

import logging
import sys
from datetime import datetime, timezone
from enum import Enum
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Optional


class LogLevel(Enum):
    """Log level enumeration for type-safe level selection."""
    DEBUG = logging.DEBUG
    INFO = logging.INFO
    WARNING = logging.WARNING
    ERROR = logging.ERROR
    CRITICAL = logging.CRITICAL


# Attributes present on every LogRecord; anything else came in via `extra`
_RESERVED_RECORD_ATTRS = frozenset((
    "message", "asctime", "args", "exc_info", "exc_text", "stack_info",
    "lineno", "funcName", "created", "msecs", "relativeCreated", "levelno",
    "levelname", "pathname", "filename", "module", "name", "msg",
    "processName", "process", "threadName", "thread", "taskName",
))


# =============================================================================
# Log Formatting
# =============================================================================

class AnalyticsFormatter(logging.Formatter):
    """
    Custom formatter for analytics logs.

    Features:
    - Millisecond precision timestamps
    - UTC or local time
    - Colored output for terminal (optional)
    - Structured extras appended as key=value pairs
    """

    # ANSI color codes
    COLORS = {
        logging.DEBUG: "\033[36m",     # Cyan
        logging.INFO: "\033[32m",      # Green
        logging.WARNING: "\033[33m",   # Yellow
        logging.ERROR: "\033[31m",     # Red
        logging.CRITICAL: "\033[35m",  # Magenta
    }
    RESET = "\033[0m"

    def __init__(
        self,
        use_colors: bool = False,
        use_utc: bool = False,
        include_extras: bool = True
    ):
        """
        Initialize formatter.

        Args:
            use_colors: Enable ANSI colors for terminal output
            use_utc: Stamp records in UTC instead of local time
            include_extras: Include extra fields in output
        """
        self.use_colors = use_colors
        self.use_utc = use_utc
        self.include_extras = include_extras

        fmt = "[%(levelname)-8s] %(name)s - %(message)s"
        super().__init__(fmt)

    def format(self, record: logging.LogRecord) -> str:
        """Format log record with timestamp and optional colors."""
        tz = timezone.utc if self.use_utc else None
        timestamp = datetime.fromtimestamp(record.created, tz).strftime(
            "%Y-%m-%d %H:%M:%S.%f"
        )[:-3]

        message = super().format(record)

        if self.include_extras:
            extras = {
                k: v for k, v in record.__dict__.items()
                if k not in _RESERVED_RECORD_ATTRS and not k.startswith("_")
            }
            if extras:
                extras_str = " ".join(f"{k}={v}" for k, v in extras.items())
                message = f"{message} [{extras_str}]"

        full_message = f"{timestamp} {message}"

        if self.use_colors and sys.stderr.isatty():
            color = self.COLORS.get(record.levelno, "")
            return f"{color}{full_message}{self.RESET}"

        return full_message


# =============================================================================
# Logging Setup
# =============================================================================

def setup_logging(
    level: str = "INFO",
    log_dir: Optional[str] = None,
    log_file: Optional[str] = None,
    use_colors: bool = True,
    max_bytes: int = 10 * 1024 * 1024,  # 10 MB
    backup_count: int = 5
) -> logging.Logger:
    """
    Setup application-wide logging configuration.

    Creates handlers for:
    - Console output (with colors if terminal)
    - File output with rotation (if log_dir provided)

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_dir: Directory for log files (optional)
        log_file: Specific log file name (default: analytics_YYYY-MM-DD.log)
        use_colors: Enable colored console output
        max_bytes: Max size per log file before rotation
        backup_count: Number of backup files to keep

    Returns:
        Root logger
    """
    root_logger = logging.getLogger()

    log_level = getattr(logging, level.upper(), logging.INFO)
    root_logger.setLevel(log_level)

    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(AnalyticsFormatter(use_colors=use_colors))
    root_logger.addHandler(console_handler)

    if log_dir:
        log_path = Path(log_dir)
        log_path.mkdir(parents=True, exist_ok=True)

        if not log_file:
            today = datetime.now().strftime("%Y-%m-%d")
            log_file = f"analytics_{today}.log"

        file_handler = RotatingFileHandler(
            log_path / log_file,
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8"
        )
        file_handler.setLevel(log_level)
        file_handler.setFormatter(AnalyticsFormatter(use_colors=False))
        root_logger.addHandler(file_handler)

    return root_logger


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger for the given module name.

    Args:
        name: Logger name (usually __name__)

    Returns:
        Logger instance
    """
    return logging.getLogger(name)


# =============================================================================
# Analytics Logger
# =============================================================================

class AnalyticsLogger:
    """
    Specialized logger for analytics runs.

    Provides methods for logging:
    - Completed calculations
    - Data-quality problems in input records
    - Monte Carlo progress

    All methods accept extra fields as kwargs for structured logging.
    """

    def __init__(self, name: str = "analytics"):
        self._logger = logging.getLogger(name)

    def calculation(
        self,
        name: str,
        records: int,
        elapsed_ms: Optional[float] = None,
        **kwargs: Any
    ) -> None:
        """
        Log a completed calculation.

        Args:
            name: Calculation name (portfolio_stats, correlation, kelly, ...)
            records: Number of input records consumed
            elapsed_ms: Wall time in milliseconds (optional)
            **kwargs: Additional fields
        """
        timing = f" in {elapsed_ms:.1f}ms" if elapsed_ms is not None else ""
        self._logger.info(
            f"CALC: {name} over {records} records{timing}",
            extra={"calculation": name, "records": records, **kwargs}
        )

    def data_quality(
        self,
        skipped: int,
        reason: str,
        **kwargs: Any
    ) -> None:
        """
        Log records skipped because they were malformed.

        Args:
            skipped: Number of records skipped
            reason: Why they were skipped
            **kwargs: Additional fields
        """
        self._logger.warning(
            f"DATA QUALITY: skipped {skipped} record(s) - {reason}",
            extra={"skipped": skipped, **kwargs}
        )

    def simulation_progress(
        self,
        completed: int,
        total: int,
        **kwargs: Any
    ) -> None:
        """
        Log Monte Carlo progress.

        Args:
            completed: Runs completed so far
            total: Runs requested
            **kwargs: Additional fields
        """
        pct = completed / total if total > 0 else 0.0
        self._logger.debug(
            f"SIM: {completed}/{total} runs ({pct:.0%})",
            extra={"completed": completed, "total": total, **kwargs}
        )

    def warning(self, message: str, **kwargs: Any) -> None:
        """Log a warning."""
        self._logger.warning(message, extra=kwargs)

    def info(self, message: str, **kwargs: Any) -> None:
        """Log an info message."""
        self._logger.info(message, extra=kwargs)

    def debug(self, message: str, **kwargs: Any) -> None:
        """Log a debug message."""
        self._logger.debug(message, extra=kwargs)


# =============================================================================
# Convenience Functions
# =============================================================================

def log_duration(
    logger: logging.Logger,
    operation: str,
    start_time: datetime,
    end_time: Optional[datetime] = None
) -> float:
    """
    Log operation duration.

    Args:
        logger: Logger instance
        operation: Operation name
        start_time: Operation start time
        end_time: Operation end time (default: now)

    Returns:
        Duration in milliseconds
    """
    if end_time is None:
        end_time = datetime.now(start_time.tzinfo)

    duration_ms = (end_time - start_time).total_seconds() * 1000

    logger.debug(f"{operation}: {duration_ms:.2f}ms")

    return duration_ms
