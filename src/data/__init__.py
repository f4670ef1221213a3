"""
Trade Log Data Module.

Loads broker trade-log and daily-log CSV exports into analytics records.

Example:
    from src.data import TradeLogLoader

    loader = TradeLogLoader("exports/trades.csv", "exports/daily.csv")
    trades = loader.load_trades(strategy_override="Iron Condor")
    daily_logs = loader.load_daily_log()
"""

from .trade_loader import (
    TradeLogLoader,
    load_trades,
    load_daily_log,
)

__all__ = [
    'TradeLogLoader',
    'load_trades',
    'load_daily_log',
]
