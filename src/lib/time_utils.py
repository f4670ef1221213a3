"""
Time utilities for trade analytics.

This module provides helpers for:
- Coercing trade/daily-log timestamps (datetime, date, ISO strings) to datetime
- Calendar bucketing (calendar day, calendar month, ISO week)
- Day spans between timestamps

Trade exports arrive with mixed representations (a date column plus an
optional time column, ISO strings, pandas Timestamps). Everything is
normalized to naive ``datetime`` before any ordering or bucketing so that
comparisons never mix aware and naive values.
"""

from datetime import datetime, date, time
from typing import Any, Tuple

import pandas as pd

from src.lib.constants import SECONDS_PER_DAY


def to_datetime(value: Any) -> datetime:
    """
    Convert a timestamp-like value to a naive datetime.

    Handles:
    - datetime (aware values are converted to UTC, then made naive)
    - date (midnight of that day)
    - pandas Timestamp / numpy datetime64
    - ISO-8601 strings

    Args:
        value: Timestamp-like value

    Returns:
        Naive datetime

    Raises:
        ValueError: If the value cannot be parsed
    """
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, date):
        return datetime.combine(value, time.min)
    else:
        try:
            ts = pd.Timestamp(value)
        except (TypeError, ValueError) as e:
            raise ValueError(f"Cannot interpret {value!r} as a timestamp") from e
        if ts is pd.NaT:
            raise ValueError(f"Cannot interpret {value!r} as a timestamp")
        dt = ts.to_pydatetime()

    if dt.tzinfo is not None:
        dt = pd.Timestamp(dt).tz_convert("UTC").tz_localize(None).to_pydatetime()
    return dt


def to_date(value: Any) -> date:
    """Calendar date of a timestamp-like value."""
    return to_datetime(value).date()


def month_key(value: Any) -> Tuple[int, int]:
    """
    Calendar month bucket for a timestamp.

    Args:
        value: Timestamp-like value

    Returns:
        Tuple of (year, month)
    """
    dt = to_datetime(value)
    return dt.year, dt.month


def iso_week_key(value: Any) -> Tuple[int, int]:
    """
    ISO week bucket for a timestamp.

    Uses the ISO calendar year, so the last days of December can fall in
    week 1 of the following year.

    Args:
        value: Timestamp-like value

    Returns:
        Tuple of (iso_year, iso_week)
    """
    iso = to_datetime(value).isocalendar()
    return iso[0], iso[1]


def day_span(start: Any, end: Any) -> float:
    """
    Fractional number of days between two timestamps.

    Args:
        start: Start timestamp
        end: End timestamp

    Returns:
        Days from start to end (negative if end precedes start)
    """
    delta = to_datetime(end) - to_datetime(start)
    return delta.total_seconds() / SECONDS_PER_DAY
