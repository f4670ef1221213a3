"""
Tests for the portfolio statistics calculator.

Tests cover:
- Empty input
- Trade breakdown (win rate, averages, profit factor, Kelly)
- Skipping non-finite P/L and clearing non-finite margin with a data-quality report
- CAGR, Sharpe, Sortino and Calmar from trades and from daily logs
- Monthly and weekly win rates
- Return on margin
- Per-strategy statistics

Run with: pytest tests/test_portfolio_stats.py -v
"""

from datetime import datetime
import json
import math

import pytest

from src.analytics.metrics import calculate_cagr
from src.analytics.models import DailyLogEntry, StrategyStats, Trade
from src.analytics.portfolio_stats import (
    PortfolioStatsCalculator,
    calculate_portfolio_stats,
    calculate_return_on_margin,
    sanitize_daily_logs,
    sanitize_trades,
)
from src.lib.config import StatsConfig
from src.lib.time_utils import day_span


@pytest.fixture
def calculator():
    """Calculator with a fixed $10,000 starting capital."""
    return PortfolioStatsCalculator(StatsConfig(starting_capital=10_000.0))


class TestEmptyInput:
    """Degenerate inputs produce zeros."""

    def test_no_trades(self):
        stats = PortfolioStatsCalculator().calculate([])

        assert stats.total_trades == 0
        assert stats.total_pl == 0.0
        assert stats.win_rate == 0.0
        assert stats.cagr == 0.0
        assert stats.max_drawdown == 0.0
        assert stats.sharpe_ratio == 0.0
        assert stats.sortino_ratio == 0.0
        assert stats.kelly_percentage == 0.0
        assert stats.loss_rate == 0.0
        assert stats.start_date is None

    def test_no_trades_keeps_configured_capital(self, calculator):
        stats = calculator.calculate([])
        assert stats.initial_capital == 10_000.0
        assert stats.final_equity == 10_000.0

    def test_single_trade(self, calculator, trades_from):
        """One trade has no variance and no loss, so ratios are 0."""
        stats = calculator.calculate(trades_from([250.0]))

        assert stats.total_trades == 1
        assert stats.win_rate == 1.0
        assert stats.sharpe_ratio == 0.0
        assert stats.profit_factor == 0.0
        assert stats.kelly_percentage == 0.0


class TestTradeBreakdown:
    """Tests for trade-level aggregates."""

    def test_breakdown(self, calculator, trades_from):
        stats = calculator.calculate(trades_from([100.0, -50.0, 200.0, -25.0]))

        assert stats.total_trades == 4
        assert stats.total_pl == pytest.approx(225.0)
        assert stats.winning_trades == 2
        assert stats.losing_trades == 2
        assert stats.win_rate == pytest.approx(0.5)
        assert stats.loss_rate == pytest.approx(0.5)
        assert stats.avg_win == pytest.approx(150.0)
        assert stats.avg_loss == pytest.approx(37.5)
        assert stats.largest_win == pytest.approx(200.0)
        assert stats.largest_loss == pytest.approx(50.0)
        assert stats.profit_factor == pytest.approx(4.0)
        assert stats.max_win_streak == 1
        assert stats.max_loss_streak == 1
        assert stats.final_equity == pytest.approx(10_225.0)

    def test_kelly_percentage(self, calculator, trades_from):
        """Kelly is reported in percent."""
        stats = calculator.calculate(trades_from([100.0, -50.0, 200.0, -25.0]))
        # W=0.5, R=150/37.5=4 -> 0.5 - 0.5/4 = 0.375
        assert stats.kelly_percentage == pytest.approx(37.5)

    def test_breakeven_trades(self, calculator, trades_from):
        stats = calculator.calculate(trades_from([100.0, 0.0, -50.0]))

        assert stats.breakeven_trades == 1
        assert stats.win_rate == pytest.approx(1 / 3)

    def test_order_independent(self, calculator, trades_from):
        """Input order does not change the result."""
        trades = trades_from([100.0, -50.0, 200.0, -25.0, 75.0])
        forward = calculator.calculate(trades)
        backward = calculator.calculate(list(reversed(trades)))

        assert forward == backward

    def test_period(self, calculator, trades_from):
        trades = trades_from([10.0, 20.0, 30.0])
        stats = calculator.calculate(trades)

        assert stats.start_date == trades[0].date_opened
        assert stats.end_date == trades[-1].date_closed


class TestDataQuality:
    """Tests for non-finite input handling."""

    def test_non_finite_pl_skipped(self, calculator, trades_from, trade_factory):
        trades = trades_from([100.0, -50.0]) + [
            trade_factory(float("nan"), opened=datetime(2024, 2, 1)),
            trade_factory(float("inf"), opened=datetime(2024, 2, 2)),
        ]
        stats = calculator.calculate(trades)

        assert stats.total_trades == 2
        assert stats.total_pl == pytest.approx(50.0)
        assert stats.data_quality.skipped_trades == 2
        assert len(stats.data_quality.warnings) == 2
        assert not stats.data_quality.is_clean

    def test_sanitize_trades(self, trades_from, trade_factory):
        valid, report = sanitize_trades(trades_from([1.0]) + [trade_factory(float("nan"))])

        assert len(valid) == 1
        assert report.skipped_trades == 1

    def test_sanitize_daily_logs(self):
        logs = [
            DailyLogEntry(datetime(2024, 3, 1), 10_000.0),
            DailyLogEntry(datetime(2024, 3, 2), float("nan")),
            DailyLogEntry(datetime(2024, 3, 3), None),
        ]
        valid, report = sanitize_daily_logs(logs)

        assert len(valid) == 2
        assert report.skipped_daily_logs == 1

    def test_non_finite_margin_treated_as_missing(self, calculator, trade_factory):
        """A NaN margin keeps the trade but drops it from margin statistics."""
        trades = [
            trade_factory(100.0, opened=datetime(2024, 1, 2), margin_req=1_000.0),
            trade_factory(-50.0, opened=datetime(2024, 1, 3), margin_req=float("nan")),
            trade_factory(30.0, opened=datetime(2024, 1, 4), margin_req=500.0),
        ]
        stats = calculator.calculate(trades)

        assert stats.total_trades == 3
        assert stats.total_pl == pytest.approx(80.0)
        assert math.isfinite(stats.avg_return_on_margin)
        assert stats.avg_return_on_margin == pytest.approx(8.0)
        assert stats.std_return_on_margin == pytest.approx(2.0)
        assert stats.best_trade_rom == pytest.approx(10.0)
        assert stats.worst_trade_rom == pytest.approx(0.0)
        assert stats.data_quality.skipped_trades == 0
        assert stats.data_quality.cleared_fields == 1
        assert len(stats.data_quality.warnings) == 1
        assert not stats.data_quality.is_clean
        json.dumps(stats.to_dict(), allow_nan=False)

    def test_sanitize_clears_non_finite_optional_fields(self, trade_factory):
        trade = trade_factory(10.0, margin_req=float("inf"), funds_at_close=float("nan"))
        valid, report = sanitize_trades([trade])

        assert valid[0].margin_req is None
        assert valid[0].funds_at_close is None
        assert valid[0].pl == 10.0
        assert report.skipped_trades == 0
        assert report.cleared_fields == 2

    def test_clean_input(self, calculator, trades_from):
        stats = calculator.calculate(trades_from([1.0, 2.0]))
        assert stats.data_quality.is_clean


class TestReturnsAndRisk:
    """Tests for CAGR and risk ratios."""

    def test_cagr_from_trades(self, calculator, trades_from):
        """CAGR spans first open to last close."""
        trades = trades_from([100.0, -50.0, 200.0])
        stats = calculator.calculate(trades)

        span = day_span(trades[0].date_opened, trades[-1].date_closed)
        assert stats.cagr == pytest.approx(calculate_cagr(10_000.0, 10_250.0, span))
        assert stats.returns_source == "trades"

    def test_calmar(self, calculator, trades_from):
        stats = calculator.calculate(trades_from([100.0, -300.0, 200.0, 150.0]))

        assert stats.max_drawdown > 0
        assert stats.calmar_ratio == pytest.approx(stats.cagr / stats.max_drawdown)

    def test_risk_free_rate_is_annual_percent(self, trades_from):
        """A higher annual rate lowers the Sharpe ratio."""
        trades = trades_from([100.0, -50.0, 200.0, -25.0, 75.0])
        low = PortfolioStatsCalculator(StatsConfig(risk_free_rate=0.0, starting_capital=10_000.0))
        high = PortfolioStatsCalculator(StatsConfig(risk_free_rate=5.0, starting_capital=10_000.0))

        assert high.calculate(trades).sharpe_ratio < low.calculate(trades).sharpe_ratio

    def test_daily_logs_drive_risk(self, calculator, trades_from, rising_daily_logs):
        trades = trades_from([100.0, 200.0], start=datetime(2024, 3, 1, 10))
        stats = calculator.calculate(trades, rising_daily_logs)

        assert stats.returns_source == "daily_log"
        assert stats.max_drawdown == pytest.approx(250.0 / 10_250.0)
        assert stats.time_in_drawdown == pytest.approx(0.3)
        assert stats.cagr == pytest.approx(calculate_cagr(10_000.0, 10_600.0, 9.0))
        assert stats.sharpe_ratio != 0.0
        assert stats.sortino_ratio != 0.0

    def test_drawdown_bounds(self, sample_block):
        stats = calculate_portfolio_stats(sample_block)

        assert 0.0 <= stats.max_drawdown <= 1.0
        assert 0.0 <= stats.time_in_drawdown <= 1.0
        assert stats.initial_capital == pytest.approx(100_000.0)


class TestConsistency:
    """Tests for bucketed win rates."""

    def test_monthly_win_rate(self, calculator, trade_factory):
        trades = [
            trade_factory(100.0, opened=datetime(2024, 1, 10)),
            trade_factory(-300.0, opened=datetime(2024, 1, 20)),
            trade_factory(-50.0, opened=datetime(2024, 2, 5)),
            trade_factory(80.0, opened=datetime(2024, 3, 5)),
        ]
        stats = calculator.calculate(trades)
        assert stats.monthly_win_rate == pytest.approx(1 / 3)

    def test_weekly_win_rate(self, calculator, trade_factory):
        # Mon 2024-01-01 and Wed 2024-01-03 share ISO week 1
        trades = [
            trade_factory(100.0, opened=datetime(2024, 1, 1)),
            trade_factory(-20.0, opened=datetime(2024, 1, 3)),
            trade_factory(-10.0, opened=datetime(2024, 1, 9)),
        ]
        stats = calculator.calculate(trades)
        assert stats.weekly_win_rate == pytest.approx(0.5)


class TestReturnOnMargin:
    """Tests for return-on-margin statistics."""

    def test_rom(self, trade_factory):
        trades = [
            trade_factory(100.0, margin_req=1_000.0),
            trade_factory(-50.0, margin_req=500.0),
            trade_factory(20.0),
        ]
        rom = calculate_return_on_margin(trades)

        assert rom.average == pytest.approx(0.0)
        assert rom.std == pytest.approx(10.0)
        assert rom.best == pytest.approx(10.0)
        assert rom.worst == pytest.approx(-10.0)

    def test_rom_without_margin(self, trade_factory):
        """Trades without margin count as 0% for best/worst only."""
        rom = calculate_return_on_margin([trade_factory(20.0), trade_factory(-5.0)])

        assert rom.average == 0.0
        assert rom.best == 0.0
        assert rom.worst == 0.0

    def test_rom_on_stats(self, calculator, trade_factory):
        stats = calculator.calculate([trade_factory(100.0, margin_req=2_000.0)])
        assert stats.avg_return_on_margin == pytest.approx(5.0)


class TestStrategyStats:
    """Tests for per-strategy statistics."""

    def test_partition(self, sample_block):
        calculator = PortfolioStatsCalculator()
        by_strategy = calculator.calculate_strategy_stats(sample_block)
        portfolio = calculator.calculate(sample_block)

        assert list(by_strategy) == ["Alpha", "Beta"]
        assert all(isinstance(s, StrategyStats) for s in by_strategy.values())
        assert by_strategy["Alpha"].strategy == "Alpha"
        assert sum(s.total_trades for s in by_strategy.values()) == portfolio.total_trades
        assert sum(s.total_pl for s in by_strategy.values()) == pytest.approx(portfolio.total_pl)

    def test_strategy_stats_ignore_account_logs(self, trades_from):
        calculator = PortfolioStatsCalculator(StatsConfig(starting_capital=1_000.0))
        by_strategy = calculator.calculate_strategy_stats(trades_from([10.0, -5.0]))

        assert by_strategy["Alpha"].returns_source == "trades"

    def test_unknown_label(self):
        trade = Trade(datetime(2024, 1, 2), None, "", 10.0)
        by_strategy = PortfolioStatsCalculator().calculate_strategy_stats([trade])
        assert list(by_strategy) == ["Unknown"]

    def test_empty(self):
        assert PortfolioStatsCalculator().calculate_strategy_stats([]) == {}

    def test_initial_capital(self, sample_block):
        capital = PortfolioStatsCalculator.calculate_initial_capital(sample_block)
        assert capital == pytest.approx(100_000.0)
