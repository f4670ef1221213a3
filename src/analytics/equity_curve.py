"""
Equity Curve Construction

Turns a set of trades (and optionally daily account snapshots) into a
cumulative equity time series with a running peak and drawdown at every
point.

Two series are produced:
- Trade points: one point per trade close, equity = starting capital plus
  cumulative realized P&L. The final point always equals starting capital
  plus the sum of all trade P&L.
- Daily points: one point per daily log entry that carries a net
  liquidity value, deduplicated by calendar day (last entry wins).
- Reconciled points: the trade points with equity replaced by the daily
  net liquidity on days that have one. Empty without daily logs.

When daily points exist they describe the account more faithfully than
realized P&L alone, so drawdown, time in drawdown and periodic returns are
taken from them; otherwise the trade points are used.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Tuple
import logging

import numpy as np
import pandas as pd

from src.analytics.metrics import (
    calculate_drawdown_series,
    calculate_time_in_drawdown,
    periodic_returns,
)
from src.analytics.models import DailyLogEntry, Trade
from src.lib.time_utils import to_datetime

logger = logging.getLogger(__name__)


def sort_trades(trades: Sequence[Trade]) -> List[Trade]:
    """Trades ordered by open time, ties kept in input order."""
    return sorted(trades, key=lambda t: to_datetime(t.date_opened))


def infer_starting_capital(trades: Sequence[Trade]) -> float:
    """
    Infer the account value before the first trade.

    Uses `funds_at_close - pl` of the chronologically first trade, falling
    back to 0 when the first trade carries no account value.

    Args:
        trades: Trades (any order)

    Returns:
        Inferred starting capital
    """
    if not trades:
        return 0.0

    first = sort_trades(trades)[0]
    if first.funds_at_close is None or not np.isfinite(first.funds_at_close):
        return 0.0
    return float(first.funds_at_close - first.pl)


@dataclass(frozen=True)
class EquityPoint:
    """
    A single point on the equity curve.

    Attributes:
        timestamp: When the equity value was observed
        equity: Account value
        peak: Highest equity seen so far (high water mark)
        drawdown_pct: (peak - equity) / peak, 0 when peak <= 0
    """
    timestamp: datetime
    equity: float
    peak: float
    drawdown_pct: float

    @property
    def drawdown_dollars(self) -> float:
        return max(self.peak - self.equity, 0.0)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp.isoformat(),
            "equity": round(self.equity, 2),
            "peak": round(self.peak, 2),
            "drawdown_pct": round(self.drawdown_pct, 6),
        }


@dataclass(frozen=True)
class EquityCurve:
    """
    Equity curve built from trades and optional daily logs.

    Attributes:
        starting_capital: Account value before the first trade
        points: One point per trade close, in close order
        daily_points: One point per daily log day with net liquidity
        reconciled_points: Trade points overridden by daily net liquidity
    """
    starting_capital: float
    points: Tuple[EquityPoint, ...] = ()
    daily_points: Tuple[EquityPoint, ...] = ()
    reconciled_points: Tuple[EquityPoint, ...] = ()

    @property
    def has_daily_logs(self) -> bool:
        return len(self.daily_points) > 0

    @property
    def risk_points(self) -> Tuple[EquityPoint, ...]:
        """Series used for drawdown and return statistics."""
        return self.daily_points if self.has_daily_logs else self.points

    @property
    def final_equity(self) -> float:
        return self.points[-1].equity if self.points else self.starting_capital

    @property
    def max_drawdown(self) -> float:
        points = self.risk_points
        return max((p.drawdown_pct for p in points), default=0.0)

    @property
    def max_drawdown_dollars(self) -> float:
        points = self.risk_points
        return max((p.drawdown_dollars for p in points), default=0.0)

    @property
    def time_in_drawdown(self) -> float:
        return calculate_time_in_drawdown([p.drawdown_pct for p in self.risk_points])

    def period_returns(self) -> np.ndarray:
        """
        Periodic returns for risk ratios.

        Daily returns between consecutive net liquidity values when daily
        logs exist, else per-trade returns (P&L over equity before the trade).
        """
        if self.has_daily_logs:
            return periodic_returns([p.equity for p in self.daily_points])
        equity = [self.starting_capital] + [p.equity for p in self.points]
        return periodic_returns(equity)

    def to_dataframe(self, daily: bool = False) -> pd.DataFrame:
        """Curve as a DataFrame with timestamp/equity/peak/drawdown_pct columns."""
        points = self.daily_points if daily else self.points
        return pd.DataFrame(
            [(p.timestamp, p.equity, p.peak, p.drawdown_pct) for p in points],
            columns=["timestamp", "equity", "peak", "drawdown_pct"],
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "starting_capital": round(self.starting_capital, 2),
            "final_equity": round(self.final_equity, 2),
            "points": [p.to_dict() for p in self.points],
            "daily_points": [p.to_dict() for p in self.daily_points],
            "reconciled_points": [p.to_dict() for p in self.reconciled_points],
        }


def _build_points(
    timestamps: Sequence[datetime],
    equity: Sequence[float],
    peak_floor: Optional[float],
) -> Tuple[EquityPoint, ...]:
    peaks, drawdowns = calculate_drawdown_series(equity, peak_floor)
    return tuple(
        EquityPoint(
            timestamp=ts,
            equity=float(value),
            peak=float(peak),
            drawdown_pct=float(dd),
        )
        for ts, value, peak, dd in zip(timestamps, equity, peaks, drawdowns)
    )


class EquityCurveBuilder:
    """
    Builds EquityCurve objects.

    Stateless; one builder can serve any number of calls.

    Usage:
        curve = EquityCurveBuilder().build(trades, daily_logs)
        print(curve.final_equity, curve.max_drawdown)
    """

    def build(
        self,
        trades: Sequence[Trade],
        daily_logs: Optional[Sequence[DailyLogEntry]] = None,
        starting_capital: Optional[float] = None,
    ) -> EquityCurve:
        """
        Build the equity curve.

        Args:
            trades: Trades in any order
            daily_logs: Optional daily account snapshots
            starting_capital: Explicit starting capital (None = infer)

        Returns:
            EquityCurve
        """
        if starting_capital is None:
            starting_capital = infer_starting_capital(trades)

        # Close order; sorted() is stable so open order breaks ties
        closed = sorted(sort_trades(trades), key=lambda t: to_datetime(t.closed_at))
        timestamps = [to_datetime(t.closed_at) for t in closed]
        equity = list(starting_capital + np.cumsum([t.pl for t in closed]))
        points = _build_points(timestamps, equity, starting_capital)

        daily_points = self._build_daily_points(daily_logs or [])
        reconciled_points = self._reconcile(timestamps, equity, daily_points, starting_capital)

        logger.debug(
            f"Equity curve: {len(points)} trade points, "
            f"{len(daily_points)} daily points, start={starting_capital:.2f}"
        )

        return EquityCurve(
            starting_capital=float(starting_capital),
            points=points,
            daily_points=daily_points,
            reconciled_points=reconciled_points,
        )

    def _build_daily_points(
        self,
        daily_logs: Sequence[DailyLogEntry],
    ) -> Tuple[EquityPoint, ...]:
        """Daily net liquidity series, one value per calendar day."""
        by_day: Dict[datetime, float] = {}
        for entry in daily_logs:
            if entry.net_liquidity is None or not np.isfinite(entry.net_liquidity):
                continue
            day = to_datetime(to_datetime(entry.date).date())
            by_day[day] = float(entry.net_liquidity)

        if not by_day:
            return ()

        days = sorted(by_day)
        return _build_points(days, [by_day[d] for d in days], None)

    @staticmethod
    def _reconcile(
        timestamps: Sequence[datetime],
        equity: Sequence[float],
        daily_points: Sequence[EquityPoint],
        starting_capital: float,
    ) -> Tuple[EquityPoint, ...]:
        """Trade points with equity taken from net liquidity on logged days."""
        if not daily_points:
            return ()

        by_day = {p.timestamp.date(): p.equity for p in daily_points}
        values = [by_day.get(ts.date(), value) for ts, value in zip(timestamps, equity)]
        return _build_points(timestamps, values, starting_capital)
