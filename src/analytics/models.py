"""
Trade, Daily Log and Statistics Records

This module defines the plain data records exchanged with the record store
and the UI layer:

- Trade: one closed position from a trade-log export
- DailyLogEntry: one calendar day's account snapshot
- PortfolioStats / StrategyStats: computed, read-only statistics snapshots
- DataQualityReport: records skipped because they were malformed

Input records are frozen so the engine can never mutate what the caller
handed in. Statistics snapshots are frozen as well: a recomputation always
builds a new snapshot, and `compare_stats` diffs two of them.
"""

from dataclasses import dataclass, field, replace, fields
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Tuple
import math

from src.lib.constants import UNKNOWN_STRATEGY
from src.lib.time_utils import to_datetime


def _first_present(data: Dict[str, Any], *keys: str) -> Any:
    """Value of the first key present (and not None) in data."""
    for key in keys:
        if data.get(key) is not None:
            return data[key]
    return None


def _to_native(val: Any) -> Any:
    """Convert numpy scalars to native Python types."""
    if hasattr(val, "item"):
        return val.item()
    return val


def _rounded(val: Any, digits: int) -> float:
    return float(round(_to_native(val), digits))


def _optional_float(value: Any) -> Optional[float]:
    if value is None or value == "":
        return None
    return float(value)


@dataclass(frozen=True)
class Trade:
    """
    One closed position.

    Attributes:
        date_opened: Timestamp the position was opened
        date_closed: Timestamp the position was closed (None = same as opened)
        strategy: Strategy label ("Unknown" when absent or blank)
        pl: Realized profit/loss in account currency
        margin_req: Capital committed to the position (optional)
        funds_at_close: Account value after the trade closed (optional)
    """
    date_opened: datetime
    date_closed: Optional[datetime]
    strategy: str
    pl: float
    margin_req: Optional[float] = None
    funds_at_close: Optional[float] = None

    def __post_init__(self):
        if self.strategy is None or not str(self.strategy).strip():
            object.__setattr__(self, "strategy", UNKNOWN_STRATEGY)

    @property
    def closed_at(self) -> datetime:
        """Close timestamp, falling back to the open timestamp."""
        return self.date_closed if self.date_closed is not None else self.date_opened

    @property
    def is_winner(self) -> bool:
        """Was this a winning trade?"""
        return self.pl > 0

    @property
    def return_on_margin(self) -> Optional[float]:
        """P/L as a percent of margin committed (None without margin)."""
        if self.margin_req is None or not math.isfinite(self.margin_req) or self.margin_req <= 0:
            return None
        return (self.pl / self.margin_req) * 100

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "date_opened": to_datetime(self.date_opened).isoformat(),
            "date_closed": (
                to_datetime(self.date_closed).isoformat()
                if self.date_closed is not None else None
            ),
            "strategy": self.strategy,
            "pl": self.pl,
            "margin_req": self.margin_req,
            "funds_at_close": self.funds_at_close,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Trade':
        """
        Create a Trade from a record-store dictionary.

        Accepts both snake_case keys and the camelCase keys used by the
        record store (dateOpened, marginReq, fundsAtClose, ...).
        """
        date_closed = _first_present(data, "date_closed", "dateClosed")
        return cls(
            date_opened=to_datetime(_first_present(data, "date_opened", "dateOpened")),
            date_closed=to_datetime(date_closed) if date_closed is not None else None,
            strategy=_first_present(data, "strategy") or UNKNOWN_STRATEGY,
            pl=float(_first_present(data, "pl", "pnl") or 0.0),
            margin_req=_optional_float(_first_present(data, "margin_req", "marginReq")),
            funds_at_close=_optional_float(
                _first_present(data, "funds_at_close", "fundsAtClose")
            ),
        )


@dataclass(frozen=True)
class DailyLogEntry:
    """
    One calendar day's account snapshot.

    Attributes:
        date: Snapshot date
        net_liquidity: Total account value that day (optional)
    """
    date: datetime
    net_liquidity: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "date": to_datetime(self.date).isoformat(),
            "net_liquidity": self.net_liquidity,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'DailyLogEntry':
        """Create a DailyLogEntry from a record-store dictionary."""
        return cls(
            date=to_datetime(data["date"]),
            net_liquidity=_optional_float(
                _first_present(data, "net_liquidity", "netLiquidity")
            ),
        )


@dataclass(frozen=True)
class DataQualityReport:
    """
    Records the engine skipped or repaired because they were malformed.

    Attributes:
        skipped_trades: Trades dropped (non-finite P/L, unreadable dates)
        skipped_daily_logs: Daily log entries dropped
        warnings: Human-readable description per skipped or cleared record
        cleared_fields: Non-finite optional trade fields cleared to None
    """
    skipped_trades: int = 0
    skipped_daily_logs: int = 0
    warnings: Tuple[str, ...] = ()
    cleared_fields: int = 0

    @property
    def is_clean(self) -> bool:
        return (
            self.skipped_trades == 0
            and self.skipped_daily_logs == 0
            and self.cleared_fields == 0
        )

    def merge(self, other: 'DataQualityReport') -> 'DataQualityReport':
        """Combine two reports into a new one."""
        return DataQualityReport(
            skipped_trades=self.skipped_trades + other.skipped_trades,
            skipped_daily_logs=self.skipped_daily_logs + other.skipped_daily_logs,
            cleared_fields=self.cleared_fields + other.cleared_fields,
            warnings=self.warnings + other.warnings,
        )


@dataclass(frozen=True)
class PortfolioStats:
    """
    Computed statistics for a set of trades.

    Ratios (win_rate, cagr, max_drawdown, time_in_drawdown, monthly/weekly
    win rate) are fractions; kelly_percentage is a percent; return-on-margin
    fields are percents. Degenerate inputs yield zeros, never exceptions.
    """

    # Headline metrics
    total_trades: int = 0
    total_pl: float = 0.0
    cagr: float = 0.0
    win_rate: float = 0.0
    max_drawdown: float = 0.0
    time_in_drawdown: float = 0.0
    sharpe_ratio: float = 0.0
    sortino_ratio: float = 0.0
    calmar_ratio: float = 0.0
    max_win_streak: int = 0
    max_loss_streak: int = 0
    monthly_win_rate: float = 0.0
    weekly_win_rate: float = 0.0
    kelly_percentage: float = 0.0

    # Trade breakdown
    winning_trades: int = 0
    losing_trades: int = 0
    breakeven_trades: int = 0
    avg_win: float = 0.0
    avg_loss: float = 0.0
    largest_win: float = 0.0
    largest_loss: float = 0.0
    profit_factor: float = 0.0

    # Capital
    initial_capital: float = 0.0
    final_equity: float = 0.0
    max_drawdown_dollars: float = 0.0

    # Return on margin
    avg_return_on_margin: float = 0.0
    std_return_on_margin: float = 0.0
    best_trade_rom: float = 0.0
    worst_trade_rom: float = 0.0

    # Period info
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None

    # "daily_log" when Sharpe/Sortino/drawdown came from daily snapshots,
    # "trades" when reconstructed from per-trade equity
    returns_source: str = "trades"

    data_quality: DataQualityReport = field(default_factory=DataQualityReport)

    @property
    def loss_rate(self) -> float:
        return 1.0 - self.win_rate if self.total_trades > 0 else 0.0

    def to_dict(self) -> Dict[str, Any]:
        """Convert statistics to dictionary for JSON serialization."""
        def _iso(value: Optional[datetime]) -> Optional[str]:
            return value.isoformat() if value is not None else None

        return {
            "period": {
                "start_date": _iso(self.start_date),
                "end_date": _iso(self.end_date),
            },
            "returns": {
                "total_trades": int(_to_native(self.total_trades)),
                "total_pl": _rounded(self.total_pl, 2),
                "cagr": _rounded(self.cagr, 6),
                "win_rate": _rounded(self.win_rate, 6),
                "initial_capital": _rounded(self.initial_capital, 2),
                "final_equity": _rounded(self.final_equity, 2),
            },
            "risk": {
                "max_drawdown": _rounded(self.max_drawdown, 6),
                "max_drawdown_dollars": _rounded(self.max_drawdown_dollars, 2),
                "time_in_drawdown": _rounded(self.time_in_drawdown, 6),
                "sharpe_ratio": _rounded(self.sharpe_ratio, 4),
                "sortino_ratio": _rounded(self.sortino_ratio, 4),
                "calmar_ratio": _rounded(self.calmar_ratio, 4),
                "returns_source": self.returns_source,
            },
            "consistency": {
                "max_win_streak": self.max_win_streak,
                "max_loss_streak": self.max_loss_streak,
                "monthly_win_rate": _rounded(self.monthly_win_rate, 6),
                "weekly_win_rate": _rounded(self.weekly_win_rate, 6),
                "kelly_percentage": _rounded(self.kelly_percentage, 4),
            },
            "trades": {
                "winning_trades": self.winning_trades,
                "losing_trades": self.losing_trades,
                "breakeven_trades": self.breakeven_trades,
                "avg_win": _rounded(self.avg_win, 2),
                "avg_loss": _rounded(self.avg_loss, 2),
                "largest_win": _rounded(self.largest_win, 2),
                "largest_loss": _rounded(self.largest_loss, 2),
                "profit_factor": _rounded(self.profit_factor, 4),
            },
            "margin": {
                "avg_return_on_margin": _rounded(self.avg_return_on_margin, 4),
                "std_return_on_margin": _rounded(self.std_return_on_margin, 4),
                "best_trade_rom": _rounded(self.best_trade_rom, 4),
                "worst_trade_rom": _rounded(self.worst_trade_rom, 4),
            },
            "data_quality": {
                "skipped_trades": self.data_quality.skipped_trades,
                "skipped_daily_logs": self.data_quality.skipped_daily_logs,
                "cleared_fields": self.data_quality.cleared_fields,
                "warnings": list(self.data_quality.warnings),
            },
        }


@dataclass(frozen=True)
class StrategyStats(PortfolioStats):
    """PortfolioStats scoped to the trades of one strategy label."""
    strategy: str = ""

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["strategy"] = self.strategy
        return data


def compare_stats(
    baseline: PortfolioStats,
    comparison: PortfolioStats,
) -> Dict[str, float]:
    """
    Compare two statistics snapshots and return deltas.

    Args:
        baseline: Earlier snapshot
        comparison: Later snapshot

    Returns:
        Dictionary of metric deltas (comparison - baseline)
    """
    return {
        "total_pl_delta": comparison.total_pl - baseline.total_pl,
        "cagr_delta": comparison.cagr - baseline.cagr,
        "win_rate_delta": comparison.win_rate - baseline.win_rate,
        "max_dd_delta": comparison.max_drawdown - baseline.max_drawdown,
        "sharpe_delta": comparison.sharpe_ratio - baseline.sharpe_ratio,
        "sortino_delta": comparison.sortino_ratio - baseline.sortino_ratio,
        "calmar_delta": comparison.calmar_ratio - baseline.calmar_ratio,
        "kelly_delta": comparison.kelly_percentage - baseline.kelly_percentage,
    }


def strategy_stats_from(stats: PortfolioStats, strategy: str) -> StrategyStats:
    """Re-label a PortfolioStats snapshot as StrategyStats."""
    values = {f.name: getattr(stats, f.name) for f in fields(PortfolioStats)}
    return StrategyStats(strategy=strategy, **values)


# =============================================================================
# Strategy Label Helpers
# =============================================================================

def strategy_names(trades: Iterable[Trade]) -> List[str]:
    """Distinct strategy labels in first-seen order."""
    seen: Dict[str, None] = {}
    for trade in trades:
        seen.setdefault(trade.strategy, None)
    return list(seen)


def apply_strategy_override(trades: Iterable[Trade], override: str) -> List[Trade]:
    """
    Back-fill a strategy label on trades that have none.

    Trades labelled "Unknown" get the override; everything else is returned
    unchanged. The input trades are not modified; new records are created
    for the relabelled ones. A blank override is a no-op.

    Args:
        trades: Trades from an import
        override: Strategy name to apply

    Returns:
        New list of trades
    """
    name = (override or "").strip()
    if not name:
        return list(trades)
    return [
        replace(trade, strategy=name) if trade.strategy == UNKNOWN_STRATEGY else trade
        for trade in trades
    ]
