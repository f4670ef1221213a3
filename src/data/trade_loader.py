"""
Trade Log and Daily Log CSV Loading

Reads broker trade-log and daily-log exports into Trade and DailyLogEntry
records.

Trade log columns:
    Date Opened, Time Opened (optional), Date Closed, Time Closed (optional),
    Strategy (optional), P/L, Margin Req. (optional), Funds at Close (optional)

Daily log columns:
    Date, Net Liquidity (optional)

Rows with unreadable dates are skipped with a warning. Rows with a
non-numeric P/L are kept with a NaN P/L so the statistics calculator can
count them in its data-quality report.
"""

from pathlib import Path
from typing import List, Optional, Tuple
import logging

import numpy as np
import pandas as pd

from src.analytics.models import DailyLogEntry, Trade, apply_strategy_override
from src.lib.constants import UNKNOWN_STRATEGY

logger = logging.getLogger(__name__)

TRADE_COLUMNS = {
    "date_opened": "Date Opened",
    "time_opened": "Time Opened",
    "date_closed": "Date Closed",
    "time_closed": "Time Closed",
    "strategy": "Strategy",
    "pl": "P/L",
    "margin_req": "Margin Req.",
    "funds_at_close": "Funds at Close",
}
REQUIRED_TRADE_COLUMNS = ("Date Opened", "P/L")

DAILY_LOG_COLUMNS = {
    "date": "Date",
    "net_liquidity": "Net Liquidity",
}
REQUIRED_DAILY_LOG_COLUMNS = ("Date",)


def _to_number(series: pd.Series) -> pd.Series:
    """Parse currency-formatted numbers ("$1,234.50", "(12.00)")."""
    if series.dtype.kind in "if":
        return series.astype(float)
    cleaned = (
        series.astype(str)
        .str.strip()
        .str.replace(r"^\((.*)\)$", r"-\1", regex=True)
        .str.replace(r"[$,%\s]", "", regex=True)
    )
    return pd.to_numeric(cleaned, errors="coerce")


def _combine_timestamp(
    df: pd.DataFrame,
    date_column: str,
    time_column: Optional[str],
) -> pd.Series:
    """Combine a date column and optional time column into timestamps."""
    text = df[date_column].astype(str).str.strip()
    if time_column and time_column in df.columns:
        times = df[time_column].fillna("").astype(str).str.strip()
        text = (text + " " + times).str.strip()
    return pd.to_datetime(text, errors="coerce", format="mixed")


def _optional(value: float) -> Optional[float]:
    return None if pd.isna(value) else float(value)


class TradeLogLoader:
    """
    Load trade-log and daily-log CSV exports.

    Usage:
        loader = TradeLogLoader("exports/trades.csv", "exports/daily.csv")
        trades = loader.load_trades()
        daily_logs = loader.load_daily_log()
    """

    def __init__(self, trades_path: str, daily_log_path: Optional[str] = None):
        """
        Initialize the loader.

        Args:
            trades_path: Path to the trade-log CSV
            daily_log_path: Path to the daily-log CSV (optional)
        """
        self.trades_path = Path(trades_path)
        self.daily_log_path = Path(daily_log_path) if daily_log_path else None

    def _read(self, path: Path, required: Tuple[str, ...]) -> pd.DataFrame:
        if not path.exists():
            raise FileNotFoundError(f"CSV file not found: {path}")

        df = pd.read_csv(path, skipinitialspace=True)
        df.columns = [str(c).strip() for c in df.columns]

        missing = [c for c in required if c not in df.columns]
        if missing:
            raise ValueError(f"{path.name} is missing required columns: {missing}")
        return df

    def load_trades(self, strategy_override: Optional[str] = None) -> List[Trade]:
        """
        Load trades from the trade-log CSV.

        Args:
            strategy_override: Label for trades exported without a strategy

        Returns:
            List of Trade in file order

        Raises:
            FileNotFoundError: If the file does not exist
            ValueError: If required columns are missing
        """
        logger.info(f"Loading trades from {self.trades_path}")
        df = self._read(self.trades_path, REQUIRED_TRADE_COLUMNS)

        opened = _combine_timestamp(df, TRADE_COLUMNS["date_opened"], TRADE_COLUMNS["time_opened"])
        if TRADE_COLUMNS["date_closed"] in df.columns:
            closed = _combine_timestamp(
                df, TRADE_COLUMNS["date_closed"], TRADE_COLUMNS["time_closed"]
            )
        else:
            closed = pd.Series(pd.NaT, index=df.index)

        pl = _to_number(df[TRADE_COLUMNS["pl"]])
        margin = (
            _to_number(df[TRADE_COLUMNS["margin_req"]])
            if TRADE_COLUMNS["margin_req"] in df.columns
            else pd.Series(np.nan, index=df.index)
        )
        funds = (
            _to_number(df[TRADE_COLUMNS["funds_at_close"]])
            if TRADE_COLUMNS["funds_at_close"] in df.columns
            else pd.Series(np.nan, index=df.index)
        )
        strategy = (
            df[TRADE_COLUMNS["strategy"]].fillna("").astype(str).str.strip()
            if TRADE_COLUMNS["strategy"] in df.columns
            else pd.Series(UNKNOWN_STRATEGY, index=df.index)
        )

        bad_dates = opened.isna()
        if bad_dates.any():
            logger.warning(f"Skipping {int(bad_dates.sum())} rows with unreadable open dates")

        trades = [
            Trade(
                date_opened=opened[i].to_pydatetime(),
                date_closed=None if pd.isna(closed[i]) else closed[i].to_pydatetime(),
                strategy=strategy[i],
                pl=float(pl[i]),
                margin_req=_optional(margin[i]),
                funds_at_close=_optional(funds[i]),
            )
            for i in df.index[~bad_dates]
        ]

        if strategy_override:
            trades = apply_strategy_override(trades, strategy_override)

        logger.info(f"Loaded {len(trades):,} trades")
        return trades

    def load_daily_log(self) -> List[DailyLogEntry]:
        """
        Load daily account snapshots.

        Returns:
            List of DailyLogEntry (empty when no daily log path was given)
        """
        if self.daily_log_path is None:
            return []

        logger.info(f"Loading daily log from {self.daily_log_path}")
        df = self._read(self.daily_log_path, REQUIRED_DAILY_LOG_COLUMNS)

        dates = pd.to_datetime(df[DAILY_LOG_COLUMNS["date"]], errors="coerce", format="mixed")
        net_liq = (
            _to_number(df[DAILY_LOG_COLUMNS["net_liquidity"]])
            if DAILY_LOG_COLUMNS["net_liquidity"] in df.columns
            else pd.Series(np.nan, index=df.index)
        )

        bad_dates = dates.isna()
        if bad_dates.any():
            logger.warning(f"Skipping {int(bad_dates.sum())} daily log rows with unreadable dates")

        entries = [
            DailyLogEntry(date=dates[i].to_pydatetime(), net_liquidity=_optional(net_liq[i]))
            for i in df.index[~bad_dates]
        ]
        logger.info(f"Loaded {len(entries):,} daily log entries")
        return entries


def load_trades(path: str, strategy_override: Optional[str] = None) -> List[Trade]:
    """Load trades from a trade-log CSV."""
    return TradeLogLoader(path).load_trades(strategy_override)


def load_daily_log(path: str) -> List[DailyLogEntry]:
    """Load daily account snapshots from a daily-log CSV."""
    return TradeLogLoader(path, daily_log_path=path).load_daily_log()
