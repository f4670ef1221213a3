"""
Performance Snapshots

Request-level helpers that combine the calculators for a caller:
- filter a block's trades by strategy and date range
- compute the portfolio/strategy statistics and equity curve in one call
- summarize a block for a block list (P/L, win rate, average win/loss)

Everything here is a pure function of its arguments; callers decide when
inputs changed and recompute.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Tuple

import numpy as np

from src.analytics.equity_curve import EquityCurve
from src.analytics.models import DailyLogEntry, PortfolioStats, StrategyStats, Trade
from src.analytics.portfolio_stats import PortfolioStatsCalculator, sanitize_trades
from src.lib.config import StatsConfig
from src.lib.time_utils import to_datetime


@dataclass(frozen=True)
class TradeFilters:
    """
    Trade selection for a snapshot.

    Attributes:
        strategies: Strategy labels to keep (empty = all)
        start_date: Keep trades opened on or after this time (optional)
        end_date: Keep trades opened on or before this time (optional)
    """
    strategies: Tuple[str, ...] = ()
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None

    @property
    def has_strategy_filter(self) -> bool:
        return len(self.strategies) > 0


def filter_trades(trades: Sequence[Trade], filters: Optional[TradeFilters]) -> List[Trade]:
    """Trades matching the filters, in input order."""
    if filters is None:
        return list(trades)

    selected = set(filters.strategies)
    start = to_datetime(filters.start_date) if filters.start_date is not None else None
    end = to_datetime(filters.end_date) if filters.end_date is not None else None

    result = []
    for trade in trades:
        if selected and trade.strategy not in selected:
            continue
        opened = to_datetime(trade.date_opened)
        if start is not None and opened < start:
            continue
        if end is not None and opened > end:
            continue
        result.append(trade)
    return result


@dataclass(frozen=True)
class PerformanceSnapshot:
    """Statistics and equity curve for one filtered view of a block."""
    filtered_trades: Tuple[Trade, ...]
    portfolio_stats: PortfolioStats
    strategy_stats: Dict[str, StrategyStats]
    equity_curve: EquityCurve

    def to_dict(self) -> Dict[str, Any]:
        return {
            "trade_count": len(self.filtered_trades),
            "portfolio_stats": self.portfolio_stats.to_dict(),
            "strategy_stats": {k: v.to_dict() for k, v in self.strategy_stats.items()},
            "equity_curve": self.equity_curve.to_dict(),
        }


def build_performance_snapshot(
    trades: Sequence[Trade],
    daily_logs: Optional[Sequence[DailyLogEntry]] = None,
    filters: Optional[TradeFilters] = None,
    config: Optional[StatsConfig] = None,
) -> PerformanceSnapshot:
    """
    Compute a full performance snapshot.

    Daily logs describe the whole account, so they are ignored when a
    strategy filter is active.

    Args:
        trades: All trades of the block
        daily_logs: Daily account snapshots (optional)
        filters: Trade selection (optional)
        config: Statistics configuration

    Returns:
        PerformanceSnapshot
    """
    calculator = PortfolioStatsCalculator(config)
    selected = filter_trades(trades, filters)

    logs = daily_logs or []
    if filters is not None and filters.has_strategy_filter:
        logs = []

    valid, _ = sanitize_trades(selected)
    return PerformanceSnapshot(
        filtered_trades=tuple(selected),
        portfolio_stats=calculator.calculate(selected, logs),
        strategy_stats=calculator.calculate_strategy_stats(selected),
        equity_curve=calculator.build_equity_curve(valid, logs),
    )


@dataclass(frozen=True)
class BlockSummary:
    """
    Headline numbers for a block list entry.

    avg_loss keeps its sign (negative), as displayed.
    """
    total_pl: float = 0.0
    win_rate_pct: float = 0.0
    total_trades: int = 0
    avg_win: float = 0.0
    avg_loss: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_pl": round(self.total_pl, 2),
            "win_rate_pct": round(self.win_rate_pct, 2),
            "total_trades": self.total_trades,
            "avg_win": round(self.avg_win, 2),
            "avg_loss": round(self.avg_loss, 2),
        }


def summarize_block(trades: Sequence[Trade]) -> BlockSummary:
    """Summary numbers for a block of trades; zeros for an empty block."""
    valid, _ = sanitize_trades(trades)
    if not valid:
        return BlockSummary()

    pnls = np.array([t.pl for t in valid], dtype=float)
    wins = pnls[pnls > 0]
    losses = pnls[pnls < 0]

    return BlockSummary(
        total_pl=float(pnls.sum()),
        win_rate_pct=len(wins) / len(pnls) * 100,
        total_trades=len(pnls),
        avg_win=float(wins.mean()) if len(wins) > 0 else 0.0,
        avg_loss=float(losses.mean()) if len(losses) > 0 else 0.0,
    )
