"""
Portfolio Statistics Calculator

Computes the aggregate performance snapshot for a set of trades, and the
same snapshot per strategy label.

Metrics:
- Returns: total P&L, CAGR, win rate, average/largest win and loss
- Risk: max drawdown, time in drawdown, Sharpe, Sortino, Calmar
- Consistency: win/loss streaks, monthly and weekly win rates
- Sizing: Kelly percentage
- Margin: return-on-margin average, deviation, best and worst trade

Trades with a non-finite P&L are skipped and reported in the snapshot's
data-quality report. A non-finite margin or account value is cleared to
None and reported the same way. Every other degenerate input produces zeros.

Usage:
    calculator = PortfolioStatsCalculator(StatsConfig(risk_free_rate=2.0))
    stats = calculator.calculate(trades, daily_logs)
    per_strategy = calculator.calculate_strategy_stats(trades)
"""

from dataclasses import dataclass, replace
from typing import Dict, List, Optional, Sequence, Tuple
import logging
import time

import numpy as np

from src.analytics.equity_curve import (
    EquityCurve,
    EquityCurveBuilder,
    infer_starting_capital,
    sort_trades,
)
from src.analytics.metrics import (
    calculate_bucket_win_rate,
    calculate_cagr,
    calculate_calmar_ratio,
    calculate_consecutive_streaks,
    calculate_kelly_fraction,
    calculate_profit_factor,
    calculate_sharpe_ratio,
    calculate_sortino_ratio,
    population_std,
)
from src.analytics.models import (
    DailyLogEntry,
    DataQualityReport,
    PortfolioStats,
    StrategyStats,
    Trade,
    strategy_names,
    strategy_stats_from,
)
from src.lib.config import StatsConfig
from src.lib.logging_utils import AnalyticsLogger
from src.lib.time_utils import day_span, iso_week_key, month_key, to_datetime

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReturnOnMarginStats:
    """Return-on-margin summary, all values in percent."""
    average: float = 0.0
    std: float = 0.0
    best: float = 0.0
    worst: float = 0.0


def calculate_return_on_margin(trades: Sequence[Trade]) -> ReturnOnMarginStats:
    """
    Return-on-margin statistics.

    Average and population deviation use only trades with margin; best and
    worst count a trade without margin as 0%.
    """
    if not trades:
        return ReturnOnMarginStats()

    with_margin = [t.return_on_margin for t in trades if t.return_on_margin is not None]
    all_trades = [t.return_on_margin or 0.0 for t in trades]

    return ReturnOnMarginStats(
        average=float(np.mean(with_margin)) if with_margin else 0.0,
        std=population_std(with_margin),
        best=float(max(all_trades)),
        worst=float(min(all_trades)),
    )


def sanitize_trades(trades: Sequence[Trade]) -> Tuple[List[Trade], DataQualityReport]:
    """
    Drop trades whose P&L is not a finite number.

    A non-finite margin requirement or account value does not discard the
    trade; the field is cleared to None and a warning recorded.

    Returns:
        Tuple of (valid trades, data-quality report)
    """
    valid = []
    warnings = []
    for index, trade in enumerate(trades):
        try:
            pl = float(trade.pl)
        except (TypeError, ValueError):
            pl = float("nan")
        if not np.isfinite(pl):
            warnings.append(
                f"trade #{index} ({trade.strategy}, opened {trade.date_opened}) "
                f"has non-finite P/L {trade.pl!r}"
            )
            continue

        for name in ("margin_req", "funds_at_close"):
            value = getattr(trade, name)
            if value is not None and not np.isfinite(value):
                warnings.append(
                    f"trade #{index} ({trade.strategy}, opened {trade.date_opened}) "
                    f"has non-finite {name} {value!r}, treated as missing"
                )
                trade = replace(trade, **{name: None})

        valid.append(trade)

    return valid, DataQualityReport(
        skipped_trades=len(trades) - len(valid),
        cleared_fields=len(warnings) - (len(trades) - len(valid)),
        warnings=tuple(warnings),
    )


def sanitize_daily_logs(
    daily_logs: Sequence[DailyLogEntry],
) -> Tuple[List[DailyLogEntry], DataQualityReport]:
    """Drop daily log entries whose net liquidity is set but not finite."""
    valid = []
    warnings = []
    for entry in daily_logs:
        value = entry.net_liquidity
        if value is not None and not np.isfinite(value):
            warnings.append(f"daily log {entry.date} has non-finite net liquidity {value!r}")
            continue
        valid.append(entry)

    return valid, DataQualityReport(
        skipped_daily_logs=len(daily_logs) - len(valid),
        warnings=tuple(warnings),
    )


class PortfolioStatsCalculator:
    """
    Calculates PortfolioStats and per-strategy StrategyStats.

    The calculator holds only configuration; each call builds a fresh
    snapshot from its inputs and never modifies them.
    """

    def __init__(self, config: Optional[StatsConfig] = None):
        """
        Initialize calculator.

        Args:
            config: Statistics configuration (defaults used if None)
        """
        self.config = config or StatsConfig()
        self.equity_builder = EquityCurveBuilder()
        self._analytics_logger = AnalyticsLogger(__name__)

    @staticmethod
    def calculate_initial_capital(trades: Sequence[Trade]) -> float:
        """Starting capital inferred from the first trade's account value."""
        return infer_starting_capital(trades)

    def calculate(
        self,
        trades: Sequence[Trade],
        daily_logs: Optional[Sequence[DailyLogEntry]] = None,
    ) -> PortfolioStats:
        """
        Calculate portfolio statistics.

        Args:
            trades: Trades in any order
            daily_logs: Optional daily account snapshots

        Returns:
            PortfolioStats snapshot
        """
        start = time.perf_counter()

        valid_trades, report = sanitize_trades(trades)
        valid_logs, log_report = sanitize_daily_logs(daily_logs or [])
        report = report.merge(log_report)

        if report.skipped_trades:
            self._analytics_logger.data_quality(report.skipped_trades, "non-finite trade P/L")
        if report.skipped_daily_logs:
            self._analytics_logger.data_quality(
                report.skipped_daily_logs, "non-finite daily net liquidity"
            )
        if report.cleared_fields:
            logger.warning(
                f"Cleared {report.cleared_fields} non-finite margin or account value(s)"
            )

        stats = self._aggregate(valid_trades, valid_logs, report)

        self._analytics_logger.calculation(
            "portfolio_stats",
            len(valid_trades),
            elapsed_ms=(time.perf_counter() - start) * 1000,
        )
        return stats

    def calculate_strategy_stats(
        self,
        trades: Sequence[Trade],
    ) -> Dict[str, StrategyStats]:
        """
        Calculate statistics per strategy label.

        Each partition is run through the same aggregate routine as the
        portfolio, without daily logs (account-level snapshots do not
        describe a single strategy).

        Args:
            trades: Trades in any order

        Returns:
            Mapping of strategy name to StrategyStats
        """
        valid_trades, report = sanitize_trades(trades)
        if report.skipped_trades:
            self._analytics_logger.data_quality(report.skipped_trades, "non-finite trade P/L")

        results: Dict[str, StrategyStats] = {}
        for name in strategy_names(valid_trades):
            subset = [t for t in valid_trades if t.strategy == name]
            stats = self._aggregate(subset, [], DataQualityReport())
            results[name] = strategy_stats_from(stats, name)

        logger.debug(f"Strategy stats computed for {len(results)} strategies")
        return results

    def build_equity_curve(
        self,
        trades: Sequence[Trade],
        daily_logs: Optional[Sequence[DailyLogEntry]] = None,
    ) -> EquityCurve:
        """Equity curve using the configured (or inferred) starting capital."""
        return self.equity_builder.build(
            trades, daily_logs, starting_capital=self.config.starting_capital
        )

    # =========================================================================
    # Aggregation
    # =========================================================================

    def _aggregate(
        self,
        trades: List[Trade],
        daily_logs: List[DailyLogEntry],
        report: DataQualityReport,
    ) -> PortfolioStats:
        """Compute every metric over already-validated trades."""
        if not trades:
            capital = self.config.starting_capital or 0.0
            return PortfolioStats(
                initial_capital=capital,
                final_equity=capital,
                data_quality=report,
            )

        ordered = sort_trades(trades)
        curve = self.build_equity_curve(ordered, daily_logs)

        pnls = np.array([t.pl for t in ordered], dtype=float)
        winning_pnls = pnls[pnls > 0]
        losing_pnls = pnls[pnls < 0]

        total_trades = len(pnls)
        win_rate = len(winning_pnls) / total_trades
        avg_win = float(np.mean(winning_pnls)) if len(winning_pnls) > 0 else 0.0
        avg_loss = float(np.abs(np.mean(losing_pnls))) if len(losing_pnls) > 0 else 0.0
        gross_profit = float(np.sum(winning_pnls))
        gross_loss = float(np.abs(np.sum(losing_pnls)))

        # CAGR over the daily log span when present, else over the trades
        start_date = to_datetime(ordered[0].date_opened)
        end_date = max(to_datetime(t.closed_at) for t in ordered)
        if curve.has_daily_logs:
            first, last = curve.daily_points[0], curve.daily_points[-1]
            cagr = calculate_cagr(
                first.equity, last.equity, day_span(first.timestamp, last.timestamp)
            )
        else:
            cagr = calculate_cagr(
                curve.starting_capital, curve.final_equity, day_span(start_date, end_date)
            )

        # Risk-free rate is an annual percent
        af = self.config.annualization_factor
        rf_per_period = self.config.risk_free_rate / 100 / af
        returns = curve.period_returns()
        sharpe = calculate_sharpe_ratio(returns, rf_per_period, af)
        sortino = calculate_sortino_ratio(returns, rf_per_period, af)

        max_drawdown = curve.max_drawdown
        max_wins, max_losses = calculate_consecutive_streaks(pnls)

        closes = [t.closed_at for t in ordered]
        monthly_win_rate = calculate_bucket_win_rate(pnls, [month_key(c) for c in closes])
        weekly_win_rate = calculate_bucket_win_rate(pnls, [iso_week_key(c) for c in closes])

        rom = calculate_return_on_margin(ordered)

        return PortfolioStats(
            total_trades=total_trades,
            total_pl=float(np.sum(pnls)),
            cagr=cagr,
            win_rate=win_rate,
            max_drawdown=max_drawdown,
            time_in_drawdown=curve.time_in_drawdown,
            sharpe_ratio=sharpe,
            sortino_ratio=sortino,
            calmar_ratio=calculate_calmar_ratio(cagr, max_drawdown),
            max_win_streak=max_wins,
            max_loss_streak=max_losses,
            monthly_win_rate=monthly_win_rate,
            weekly_win_rate=weekly_win_rate,
            kelly_percentage=calculate_kelly_fraction(win_rate, avg_win, avg_loss) * 100,
            winning_trades=len(winning_pnls),
            losing_trades=len(losing_pnls),
            breakeven_trades=int(np.sum(pnls == 0)),
            avg_win=avg_win,
            avg_loss=avg_loss,
            largest_win=float(np.max(winning_pnls)) if len(winning_pnls) > 0 else 0.0,
            largest_loss=float(np.abs(np.min(losing_pnls))) if len(losing_pnls) > 0 else 0.0,
            profit_factor=calculate_profit_factor(gross_profit, gross_loss),
            initial_capital=curve.starting_capital,
            final_equity=curve.final_equity,
            max_drawdown_dollars=curve.max_drawdown_dollars,
            avg_return_on_margin=rom.average,
            std_return_on_margin=rom.std,
            best_trade_rom=rom.best,
            worst_trade_rom=rom.worst,
            start_date=start_date,
            end_date=end_date,
            returns_source="daily_log" if curve.has_daily_logs else "trades",
            data_quality=report,
        )


def calculate_portfolio_stats(
    trades: Sequence[Trade],
    daily_logs: Optional[Sequence[DailyLogEntry]] = None,
    config: Optional[StatsConfig] = None,
) -> PortfolioStats:
    """Convenience wrapper: PortfolioStatsCalculator(config).calculate(...)."""
    return PortfolioStatsCalculator(config).calculate(trades, daily_logs)
