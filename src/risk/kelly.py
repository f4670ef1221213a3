"""
Kelly Position Sizing

Derives position-sizing guidance from trade history:
- Full Kelly percentage per strategy and for the pooled portfolio
- Applied percentage after the user's Kelly multiplier (e.g. 50% = half Kelly)
- Historical peak margin utilization and its projection under the multiplier
- Capital-weighted portfolio blend across strategies

Kelly % = W - (1 - W) / R, with W the win rate and R = avg win / |avg loss|.

Flags:
- negative expectancy: full Kelly <= 0, the history argues for no position
- needs more data: no winners or no losers, so no payoff ratio exists and
  Kelly is reported as 0

Usage:
    calculator = KellyCalculator(KellyConfig(default_multiplier_pct=50))
    result = calculator.calculate(trades, starting_capital=100_000)
    for name, allocation in result.allocations.items():
        print(name, allocation.applied_pct, allocation.allocation_dollars)
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence
import logging

import numpy as np

from src.analytics.equity_curve import infer_starting_capital
from src.analytics.metrics import calculate_kelly_fraction
from src.analytics.models import Trade, strategy_names
from src.lib.config import KellyConfig
from src.lib.constants import PORTFOLIO_LABEL
from src.lib.time_utils import to_datetime

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class KellyMetrics:
    """
    Win/loss profile behind a Kelly figure.

    Attributes:
        total_trades: Trades considered
        win_rate: Winning trades / total trades (0-1)
        avg_win: Mean P&L of winning trades
        avg_loss: Mean absolute P&L of losing trades
        payoff_ratio: avg_win / avg_loss (0 when undefined)
        full_kelly_pct: Full Kelly in percent (40.0 = 40%)
    """
    total_trades: int = 0
    win_rate: float = 0.0
    avg_win: float = 0.0
    avg_loss: float = 0.0
    payoff_ratio: float = 0.0
    full_kelly_pct: float = 0.0

    @property
    def needs_more_data(self) -> bool:
        return self.avg_win == 0 or self.avg_loss == 0

    @property
    def negative_expectancy(self) -> bool:
        return self.full_kelly_pct <= 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_trades": self.total_trades,
            "win_rate": round(self.win_rate, 6),
            "avg_win": round(self.avg_win, 2),
            "avg_loss": round(self.avg_loss, 2),
            "payoff_ratio": round(self.payoff_ratio, 4),
            "full_kelly_pct": round(self.full_kelly_pct, 4),
            "needs_more_data": self.needs_more_data,
            "negative_expectancy": self.negative_expectancy,
        }


@dataclass(frozen=True)
class KellyAllocation:
    """
    Sizing guidance for one strategy.

    Attributes:
        strategy: Strategy label
        metrics: Win/loss profile
        multiplier_pct: User Kelly multiplier in percent (100 = full Kelly)
        applied_pct: full_kelly_pct x multiplier / 100
        max_margin_pct: Historical peak margin as percent of starting capital
        projected_margin_pct: max_margin_pct x multiplier / 100
        allocation_dollars: starting_capital x applied_pct / 100
        reference_allocation_dollars: starting_capital x projected_margin_pct / 100
    """
    strategy: str
    metrics: KellyMetrics
    multiplier_pct: float
    applied_pct: float
    max_margin_pct: float
    projected_margin_pct: float
    allocation_dollars: float
    reference_allocation_dollars: float

    @property
    def full_kelly_pct(self) -> float:
        return self.metrics.full_kelly_pct

    @property
    def needs_more_data(self) -> bool:
        return self.metrics.needs_more_data

    @property
    def negative_expectancy(self) -> bool:
        return self.metrics.negative_expectancy

    def to_dict(self) -> Dict[str, Any]:
        return {
            "strategy": self.strategy,
            **self.metrics.to_dict(),
            "multiplier_pct": self.multiplier_pct,
            "applied_pct": round(self.applied_pct, 4),
            "max_margin_pct": round(self.max_margin_pct, 4),
            "projected_margin_pct": round(self.projected_margin_pct, 4),
            "allocation_dollars": round(self.allocation_dollars, 2),
            "reference_allocation_dollars": round(self.reference_allocation_dollars, 2),
        }


@dataclass(frozen=True)
class PortfolioKelly:
    """
    Portfolio-level Kelly figures.

    The pooled figures treat every trade as one strategy; the blended
    figures weight each strategy by max(applied_pct, 0).
    """
    metrics: KellyMetrics
    multiplier_pct: float
    applied_pct: float
    max_margin_pct: float
    projected_margin_pct: float
    blended_full_kelly_pct: float
    weighted_applied_pct: float
    weighted_projected_margin_pct: float
    allocation_dollars: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            **self.metrics.to_dict(),
            "multiplier_pct": self.multiplier_pct,
            "applied_pct": round(self.applied_pct, 4),
            "max_margin_pct": round(self.max_margin_pct, 4),
            "projected_margin_pct": round(self.projected_margin_pct, 4),
            "blended_full_kelly_pct": round(self.blended_full_kelly_pct, 4),
            "weighted_applied_pct": round(self.weighted_applied_pct, 4),
            "weighted_projected_margin_pct": round(self.weighted_projected_margin_pct, 4),
            "allocation_dollars": round(self.allocation_dollars, 2),
        }


@dataclass(frozen=True)
class KellyResult:
    """Per-strategy allocations plus the portfolio blend."""
    starting_capital: float
    allocations: Dict[str, KellyAllocation] = field(default_factory=dict)
    portfolio: Optional[PortfolioKelly] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "starting_capital": round(self.starting_capital, 2),
            "portfolio": self.portfolio.to_dict() if self.portfolio else None,
            "strategies": {name: a.to_dict() for name, a in self.allocations.items()},
        }


@dataclass(frozen=True)
class MarginStatisticRow:
    """One row of the margin utilization table."""
    name: str
    max_margin_pct: float
    multiplier_pct: float
    projected_margin_pct: float
    is_portfolio: bool = False


def calculate_max_margin_pct(trades: Sequence[Trade], starting_capital: float) -> float:
    """
    Peak concurrent margin as a percent of starting capital.

    Sweeps open/close events in time order. At equal timestamps closes are
    processed before opens, so a position closed at 10:00 does not overlap
    one opened at 10:00. A trade closing when it opens counts on its own.

    Args:
        trades: Trades with optional margin_req
        starting_capital: Account value the margin is measured against

    Returns:
        Peak margin percent, 0 when capital or margin data is missing
    """
    if starting_capital <= 0:
        return 0.0

    events = []
    for trade in trades:
        margin = trade.margin_req
        if margin is None or not np.isfinite(margin) or margin <= 0:
            continue
        opened = to_datetime(trade.date_opened)
        closed = to_datetime(trade.closed_at)
        close_order = 0 if closed > opened else 2
        events.append((opened, 1, margin))
        events.append((max(closed, opened), close_order, -margin))

    if not events:
        return 0.0

    events.sort(key=lambda e: (e[0], e[1]))
    open_margin = 0.0
    peak = 0.0
    for _, _, delta in events:
        open_margin += delta
        peak = max(peak, open_margin)

    return peak / starting_capital * 100


class KellyCalculator:
    """
    Kelly-criterion position sizing per strategy and for the portfolio.

    Usage:
        calculator = KellyCalculator()
        result = calculator.calculate(trades, starting_capital=50_000,
                                      multipliers={"Iron Condor": 50})
    """

    def __init__(self, config: Optional[KellyConfig] = None):
        """
        Initialize Kelly calculator.

        Args:
            config: Kelly configuration (uses defaults if None)
        """
        self.config = config or KellyConfig()

    def calculate_kelly_metrics(self, trades: Sequence[Trade]) -> KellyMetrics:
        """
        Win/loss profile and full Kelly for a set of trades.

        Args:
            trades: Trades (order irrelevant)

        Returns:
            KellyMetrics
        """
        pnls = np.array([t.pl for t in trades], dtype=float)
        pnls = pnls[np.isfinite(pnls)]
        if len(pnls) == 0:
            return KellyMetrics()

        wins = pnls[pnls > 0]
        losses = pnls[pnls < 0]
        win_rate = len(wins) / len(pnls)
        avg_win = float(np.mean(wins)) if len(wins) > 0 else 0.0
        avg_loss = float(np.abs(np.mean(losses))) if len(losses) > 0 else 0.0

        return KellyMetrics(
            total_trades=len(pnls),
            win_rate=win_rate,
            avg_win=avg_win,
            avg_loss=avg_loss,
            payoff_ratio=avg_win / avg_loss if avg_win > 0 and avg_loss > 0 else 0.0,
            full_kelly_pct=calculate_kelly_fraction(win_rate, avg_win, avg_loss) * 100,
        )

    def _multiplier(self, strategy: str, overrides: Optional[Dict[str, float]]) -> float:
        if overrides and strategy in overrides:
            return float(overrides[strategy])
        return self.config.multiplier_for(strategy)

    def calculate(
        self,
        trades: Sequence[Trade],
        starting_capital: Optional[float] = None,
        multipliers: Optional[Dict[str, float]] = None,
        portfolio_multiplier_pct: Optional[float] = None,
    ) -> KellyResult:
        """
        Calculate Kelly allocations.

        Args:
            trades: Trades in any order
            starting_capital: Account value to size against (None = infer)
            multipliers: Per-strategy Kelly multipliers in percent, overriding config
            portfolio_multiplier_pct: Multiplier for the pooled portfolio row
                (default: config default multiplier)

        Returns:
            KellyResult
        """
        if starting_capital is None:
            starting_capital = infer_starting_capital(trades)
        capital = max(float(starting_capital), 0.0)

        allocations: Dict[str, KellyAllocation] = {}
        for name in strategy_names(trades):
            subset = [t for t in trades if t.strategy == name]
            allocations[name] = self._allocate(
                name, subset, capital, self._multiplier(name, multipliers)
            )

        if portfolio_multiplier_pct is None:
            portfolio_multiplier_pct = self.config.default_multiplier_pct
        portfolio = self._blend(trades, allocations, capital, portfolio_multiplier_pct)

        flagged = [n for n, a in allocations.items() if a.negative_expectancy]
        if flagged:
            logger.info(f"Negative or undefined Kelly for {len(flagged)} strategies: {flagged}")

        return KellyResult(
            starting_capital=capital,
            allocations=allocations,
            portfolio=portfolio,
        )

    def _allocate(
        self,
        name: str,
        trades: Sequence[Trade],
        capital: float,
        multiplier_pct: float,
    ) -> KellyAllocation:
        metrics = self.calculate_kelly_metrics(trades)
        scale = multiplier_pct / 100
        applied_pct = metrics.full_kelly_pct * scale
        max_margin_pct = calculate_max_margin_pct(trades, capital)
        projected_margin_pct = max_margin_pct * scale

        return KellyAllocation(
            strategy=name,
            metrics=metrics,
            multiplier_pct=multiplier_pct,
            applied_pct=applied_pct,
            max_margin_pct=max_margin_pct,
            projected_margin_pct=projected_margin_pct,
            allocation_dollars=capital * applied_pct / 100,
            reference_allocation_dollars=capital * projected_margin_pct / 100,
        )

    def _blend(
        self,
        trades: Sequence[Trade],
        allocations: Dict[str, KellyAllocation],
        capital: float,
        multiplier_pct: float,
    ) -> PortfolioKelly:
        """Pooled portfolio figures plus the applied-pct weighted blend."""
        pooled = self._allocate(PORTFOLIO_LABEL, trades, capital, multiplier_pct)

        weights = np.array([max(a.applied_pct, 0.0) for a in allocations.values()])
        total_weight = float(weights.sum()) if len(weights) else 0.0

        def _weighted(values: List[float]) -> float:
            if total_weight <= 0:
                return 0.0
            return float(np.dot(weights, values) / total_weight)

        weighted_applied = _weighted([a.applied_pct for a in allocations.values()])

        return PortfolioKelly(
            metrics=pooled.metrics,
            multiplier_pct=multiplier_pct,
            applied_pct=pooled.applied_pct,
            max_margin_pct=pooled.max_margin_pct,
            projected_margin_pct=pooled.projected_margin_pct,
            blended_full_kelly_pct=_weighted([a.full_kelly_pct for a in allocations.values()]),
            weighted_applied_pct=weighted_applied,
            weighted_projected_margin_pct=_weighted(
                [a.projected_margin_pct for a in allocations.values()]
            ),
            allocation_dollars=capital * weighted_applied / 100,
        )


def build_margin_statistics(result: KellyResult) -> List[MarginStatisticRow]:
    """
    Rows for the margin utilization table.

    The portfolio row comes first when it has margin and a positive
    multiplier; strategy rows without margin or with a zero multiplier are
    omitted, and the rest are sorted by projected margin, largest first.

    Args:
        result: KellyResult from KellyCalculator.calculate

    Returns:
        List of MarginStatisticRow
    """
    rows: List[MarginStatisticRow] = []

    portfolio = result.portfolio
    if portfolio is not None and portfolio.max_margin_pct > 0 and portfolio.multiplier_pct > 0:
        rows.append(MarginStatisticRow(
            name=PORTFOLIO_LABEL,
            max_margin_pct=portfolio.max_margin_pct,
            multiplier_pct=portfolio.multiplier_pct,
            projected_margin_pct=portfolio.projected_margin_pct,
            is_portfolio=True,
        ))

    strategy_rows = [
        MarginStatisticRow(
            name=a.strategy,
            max_margin_pct=a.max_margin_pct,
            multiplier_pct=a.multiplier_pct,
            projected_margin_pct=a.projected_margin_pct,
        )
        for a in result.allocations.values()
        if a.max_margin_pct > 0 and a.multiplier_pct > 0
    ]
    strategy_rows.sort(key=lambda r: r.projected_margin_pct, reverse=True)

    return rows + strategy_rows
