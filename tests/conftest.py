"""
Pytest fixtures for analytics tests.

This module provides:
- Trade builders for hand-crafted scenarios
- A multi-strategy sample block with margin and account values
- Daily log fixtures
- CSV export fixtures written to tmp_path
"""

from datetime import datetime, timedelta

import numpy as np
import pytest

from src.analytics.models import DailyLogEntry, Trade


def make_trade(
    pl,
    opened=None,
    closed=None,
    strategy="Alpha",
    margin_req=None,
    funds_at_close=None,
):
    """Build a Trade with sensible defaults (closes one hour after opening)."""
    opened = opened or datetime(2024, 1, 2, 10, 0)
    closed = closed or opened + timedelta(hours=1)
    return Trade(
        date_opened=opened,
        date_closed=closed,
        strategy=strategy,
        pl=pl,
        margin_req=margin_req,
        funds_at_close=funds_at_close,
    )


def trades_from_pnls(pnls, start=None, strategy="Alpha", step_days=1):
    """One trade per P&L, opened on consecutive days."""
    start = start or datetime(2024, 1, 2, 10, 0)
    return [
        make_trade(pl, opened=start + timedelta(days=i * step_days), strategy=strategy)
        for i, pl in enumerate(pnls)
    ]


@pytest.fixture
def trade_factory():
    """Expose make_trade to tests."""
    return make_trade


@pytest.fixture
def trades_from():
    """Expose trades_from_pnls to tests."""
    return trades_from_pnls


@pytest.fixture
def sample_block():
    """
    Two-strategy block of 40 trades on a $100,000 account.

    Alpha: steady small winners with occasional losses, margin 5,000.
    Beta: larger, noisier trades, margin 8,000.
    """
    rng = np.random.default_rng(7)
    trades = []
    equity = 100_000.0
    start = datetime(2024, 1, 2, 9, 45)

    for day in range(20):
        opened = start + timedelta(days=day)
        for strategy, scale, margin in (("Alpha", 300.0, 5_000.0), ("Beta", 900.0, 8_000.0)):
            pl = float(np.round(rng.normal(0.15, 1.0) * scale, 2))
            equity += pl
            trades.append(Trade(
                date_opened=opened,
                date_closed=opened + timedelta(hours=5),
                strategy=strategy,
                pl=pl,
                margin_req=margin,
                funds_at_close=equity,
            ))
    return trades


@pytest.fixture
def rising_daily_logs():
    """Ten days of net liquidity with one dip."""
    values = [10_000, 10_100, 10_250, 10_150, 10_000, 10_300, 10_400, 10_500, 10_450, 10_600]
    start = datetime(2024, 3, 1)
    return [
        DailyLogEntry(date=start + timedelta(days=i), net_liquidity=float(v))
        for i, v in enumerate(values)
    ]


@pytest.fixture
def trade_log_csv(tmp_path):
    """Trade-log CSV export with currency formatting and a missing strategy."""
    path = tmp_path / "trades.csv"
    path.write_text(
        "Date Opened,Time Opened,Date Closed,Time Closed,Strategy,P/L,Margin Req.,Funds at Close\n"
        "2024-01-02,09:45:00,2024-01-02,15:30:00,Iron Condor,\"$1,250.00\",5000,101250\n"
        "2024-01-03,09:45:00,2024-01-03,15:30:00,Put Spread,(300.00),2500,100950\n"
        "2024-01-04,10:00:00,2024-01-04,14:00:00,,200,,101150\n"
        "not a date,10:00:00,2024-01-05,14:00:00,Iron Condor,50,5000,101200\n"
    )
    return path


@pytest.fixture
def daily_log_csv(tmp_path):
    """Daily-log CSV export."""
    path = tmp_path / "daily.csv"
    path.write_text(
        "Date,Net Liquidity\n"
        "2024-01-02,\"$101,250.00\"\n"
        "2024-01-03,100950\n"
        "2024-01-04,\n"
    )
    return path
