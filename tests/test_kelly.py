"""
Tests for Kelly position sizing.

Tests cover:
- Win/loss profile and full Kelly percentage
- Needs-more-data and negative-expectancy flags
- Kelly multipliers (config default, per-strategy, call overrides)
- Peak concurrent margin sweep
- Portfolio pooled figures and applied-pct weighted blend
- Margin utilization table

Run with: pytest tests/test_kelly.py -v
"""

from datetime import datetime, timedelta

import pytest

from src.lib.config import KellyConfig
from src.risk.kelly import (
    KellyCalculator,
    build_margin_statistics,
    calculate_max_margin_pct,
)


@pytest.fixture
def block(trade_factory):
    """
    Two strategies on a $100,000 account.

    A: 60% winners paying 2:1, margin 5,000 (full Kelly 40%)
    B: 25% winners paying 1:1, margin 8,000 (full Kelly -50%)
    """
    start = datetime(2024, 1, 2, 10, 0)
    trades = []
    for i, pl in enumerate([200.0, 200.0, 200.0, -100.0, -100.0]):
        trades.append(trade_factory(
            pl, opened=start + timedelta(days=i), strategy="A", margin_req=5_000.0,
        ))
    for i, pl in enumerate([100.0, -100.0, -100.0, -100.0]):
        trades.append(trade_factory(
            pl, opened=start + timedelta(days=i, hours=2), strategy="B", margin_req=8_000.0,
        ))
    return trades


class TestKellyMetrics:
    """Tests for KellyCalculator.calculate_kelly_metrics."""

    def test_full_kelly(self, trades_from):
        metrics = KellyCalculator().calculate_kelly_metrics(
            trades_from([200.0, 200.0, 200.0, -100.0, -100.0])
        )

        assert metrics.total_trades == 5
        assert metrics.win_rate == pytest.approx(0.6)
        assert metrics.avg_win == pytest.approx(200.0)
        assert metrics.avg_loss == pytest.approx(100.0)
        assert metrics.payoff_ratio == pytest.approx(2.0)
        assert metrics.full_kelly_pct == pytest.approx(40.0)
        assert not metrics.needs_more_data
        assert not metrics.negative_expectancy

    def test_no_losses_needs_more_data(self, trades_from):
        metrics = KellyCalculator().calculate_kelly_metrics(trades_from([50.0, 75.0]))

        assert metrics.needs_more_data
        assert metrics.full_kelly_pct == 0.0
        assert metrics.payoff_ratio == 0.0

    def test_negative_expectancy(self, trades_from):
        metrics = KellyCalculator().calculate_kelly_metrics(
            trades_from([100.0, -100.0, -100.0, -100.0])
        )

        assert metrics.full_kelly_pct == pytest.approx(-50.0)
        assert metrics.negative_expectancy

    def test_empty_and_non_finite(self, trades_from):
        calculator = KellyCalculator()

        assert calculator.calculate_kelly_metrics([]).total_trades == 0
        metrics = calculator.calculate_kelly_metrics(trades_from([float("nan"), 10.0]))
        assert metrics.total_trades == 1


class TestMaxMargin:
    """Tests for the concurrent margin sweep."""

    def test_overlapping_positions(self, trade_factory):
        trades = [
            trade_factory(1.0, opened=datetime(2024, 1, 2, 10), closed=datetime(2024, 1, 2, 12),
                          margin_req=5_000.0),
            trade_factory(1.0, opened=datetime(2024, 1, 2, 11), closed=datetime(2024, 1, 2, 13),
                          margin_req=3_000.0),
        ]
        assert calculate_max_margin_pct(trades, 100_000.0) == pytest.approx(8.0)

    def test_close_before_open_at_same_time(self, trade_factory):
        """A position closed at 11:00 does not overlap one opened at 11:00."""
        trades = [
            trade_factory(1.0, opened=datetime(2024, 1, 2, 10), closed=datetime(2024, 1, 2, 11),
                          margin_req=5_000.0),
            trade_factory(1.0, opened=datetime(2024, 1, 2, 11), closed=datetime(2024, 1, 2, 12),
                          margin_req=3_000.0),
        ]
        assert calculate_max_margin_pct(trades, 100_000.0) == pytest.approx(5.0)

    def test_zero_duration_trade_counts(self, trade_factory):
        """A trade opened and closed at once still adds to open margin."""
        instant = datetime(2024, 1, 2, 11)
        trades = [
            trade_factory(1.0, opened=datetime(2024, 1, 2, 10), closed=datetime(2024, 1, 2, 12),
                          margin_req=5_000.0),
            trade_factory(1.0, opened=instant, closed=instant, margin_req=2_000.0),
        ]
        assert calculate_max_margin_pct(trades, 100_000.0) == pytest.approx(7.0)

    def test_missing_margin_and_capital(self, trade_factory):
        trades = [trade_factory(1.0), trade_factory(1.0, margin_req=1_000.0)]

        assert calculate_max_margin_pct(trades, 10_000.0) == pytest.approx(10.0)
        assert calculate_max_margin_pct(trades, 0.0) == 0.0
        assert calculate_max_margin_pct([trade_factory(1.0)], 10_000.0) == 0.0


class TestKellyCalculator:
    """Tests for KellyCalculator.calculate."""

    def test_allocations(self, block):
        result = KellyCalculator(KellyConfig(default_multiplier_pct=50.0)).calculate(
            block, starting_capital=100_000.0
        )
        a = result.allocations["A"]

        assert list(result.allocations) == ["A", "B"]
        assert a.full_kelly_pct == pytest.approx(40.0)
        assert a.applied_pct == pytest.approx(20.0)
        assert a.allocation_dollars == pytest.approx(20_000.0)
        assert a.max_margin_pct == pytest.approx(5.0)
        assert a.projected_margin_pct == pytest.approx(2.5)
        assert a.reference_allocation_dollars == pytest.approx(2_500.0)

    def test_negative_strategy_flagged(self, block):
        result = KellyCalculator().calculate(block, starting_capital=100_000.0)
        b = result.allocations["B"]

        assert b.negative_expectancy
        assert b.applied_pct == pytest.approx(-50.0)

    def test_multiplier_precedence(self, block):
        """Call overrides beat config per-strategy values, which beat the default."""
        config = KellyConfig(default_multiplier_pct=100.0, strategy_multipliers={"A": 25.0, "B": 10.0})
        result = KellyCalculator(config).calculate(
            block, starting_capital=100_000.0, multipliers={"B": 75.0}
        )

        assert result.allocations["A"].multiplier_pct == 25.0
        assert result.allocations["B"].multiplier_pct == 75.0

    def test_portfolio_blend(self, block):
        """Negative-Kelly strategies get no weight in the blend."""
        result = KellyCalculator().calculate(block, starting_capital=100_000.0)
        portfolio = result.portfolio

        assert portfolio.blended_full_kelly_pct == pytest.approx(40.0)
        assert portfolio.weighted_applied_pct == pytest.approx(40.0)
        assert portfolio.weighted_projected_margin_pct == pytest.approx(5.0)
        assert portfolio.allocation_dollars == pytest.approx(40_000.0)
        assert portfolio.metrics.total_trades == 9

    def test_portfolio_pooled(self, block):
        result = KellyCalculator().calculate(
            block, starting_capital=100_000.0, portfolio_multiplier_pct=50.0
        )
        portfolio = result.portfolio
        # 4 winners of 9: avg win 175, avg loss 100
        expected_full = (4 / 9 - (5 / 9) / 1.75) * 100

        assert portfolio.metrics.full_kelly_pct == pytest.approx(expected_full)
        assert portfolio.applied_pct == pytest.approx(expected_full / 2)
        assert portfolio.max_margin_pct == pytest.approx(8.0)

    def test_all_negative_blend_is_zero(self, trades_from):
        result = KellyCalculator().calculate(
            trades_from([-10.0, -20.0, 5.0, -15.0]), starting_capital=10_000.0
        )
        assert result.portfolio.weighted_applied_pct == 0.0
        assert result.portfolio.allocation_dollars == 0.0

    def test_inferred_capital(self, trade_factory):
        trades = [
            trade_factory(100.0, funds_at_close=50_100.0),
            trade_factory(-50.0, opened=datetime(2024, 1, 3, 10), funds_at_close=50_050.0),
        ]
        result = KellyCalculator().calculate(trades)
        assert result.starting_capital == pytest.approx(50_000.0)

    def test_empty(self):
        result = KellyCalculator().calculate([], starting_capital=10_000.0)

        assert result.allocations == {}
        assert result.portfolio.weighted_applied_pct == 0.0

    def test_to_dict(self, block):
        data = KellyCalculator().calculate(block, starting_capital=100_000.0).to_dict()

        assert data["starting_capital"] == 100_000.0
        assert set(data["strategies"]) == {"A", "B"}
        assert data["strategies"]["B"]["negative_expectancy"] is True
        assert data["portfolio"]["weighted_applied_pct"] == pytest.approx(40.0)


class TestMarginStatistics:
    """Tests for build_margin_statistics."""

    def test_rows(self, block):
        result = KellyCalculator().calculate(block, starting_capital=100_000.0)
        rows = build_margin_statistics(result)

        assert rows[0].is_portfolio
        assert rows[0].name == "Portfolio"
        # B (8%) before A (5%)
        assert [r.name for r in rows[1:]] == ["B", "A"]

    def test_zero_multiplier_omitted(self, block):
        result = KellyCalculator().calculate(
            block, starting_capital=100_000.0, multipliers={"A": 0.0}
        )
        names = [r.name for r in build_margin_statistics(result)]

        assert "A" not in names
        assert "B" in names

    def test_no_margin(self, trades_from):
        result = KellyCalculator().calculate(trades_from([10.0, -5.0]), starting_capital=1_000.0)
        assert build_margin_statistics(result) == []
