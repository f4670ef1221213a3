"""
Tests for trade, daily log and statistics records.

Tests cover:
- Trade defaults, derived properties and dictionary conversion
- DailyLogEntry conversion
- DataQualityReport merging
- PortfolioStats serialization and snapshot comparison
- Strategy label helpers

Run with: pytest tests/test_models.py -v
"""

from dataclasses import FrozenInstanceError
from datetime import datetime

import pytest

from src.analytics.models import (
    DailyLogEntry,
    DataQualityReport,
    PortfolioStats,
    StrategyStats,
    Trade,
    apply_strategy_override,
    compare_stats,
    strategy_names,
    strategy_stats_from,
)


class TestTrade:
    """Tests for the Trade record."""

    def test_blank_strategy_is_unknown(self):
        assert Trade(datetime(2024, 1, 2), None, "  ", 1.0).strategy == "Unknown"
        assert Trade(datetime(2024, 1, 2), None, None, 1.0).strategy == "Unknown"

    def test_closed_at_fallback(self):
        opened = datetime(2024, 1, 2, 10)
        closed = datetime(2024, 1, 2, 15)

        assert Trade(opened, None, "A", 1.0).closed_at == opened
        assert Trade(opened, closed, "A", 1.0).closed_at == closed

    def test_return_on_margin(self, trade_factory):
        assert trade_factory(50.0, margin_req=1_000.0).return_on_margin == pytest.approx(5.0)
        assert trade_factory(50.0).return_on_margin is None
        assert trade_factory(50.0, margin_req=0.0).return_on_margin is None

    def test_is_winner(self, trade_factory):
        assert trade_factory(0.01).is_winner
        assert not trade_factory(0.0).is_winner

    def test_frozen(self, trade_factory):
        trade = trade_factory(10.0)
        with pytest.raises(FrozenInstanceError):
            trade.pl = 20.0

    def test_from_camel_case_dict(self):
        trade = Trade.from_dict({
            "dateOpened": "2024-01-02T09:45:00",
            "dateClosed": "2024-01-02T15:30:00",
            "strategy": "Iron Condor",
            "pl": "125.5",
            "marginReq": 5000,
            "fundsAtClose": None,
        })

        assert trade.date_opened == datetime(2024, 1, 2, 9, 45)
        assert trade.date_closed == datetime(2024, 1, 2, 15, 30)
        assert trade.pl == 125.5
        assert trade.margin_req == 5000.0
        assert trade.funds_at_close is None

    def test_dict_round_trip(self, trade_factory):
        trade = trade_factory(42.0, strategy="Put Spread", margin_req=900.0, funds_at_close=10_042.0)
        assert Trade.from_dict(trade.to_dict()) == trade


class TestDailyLogEntry:
    """Tests for DailyLogEntry."""

    def test_from_dict(self):
        entry = DailyLogEntry.from_dict({"date": "2024-03-01", "netLiquidity": "10500"})

        assert entry.date == datetime(2024, 3, 1)
        assert entry.net_liquidity == 10_500.0

    def test_missing_net_liquidity(self):
        entry = DailyLogEntry.from_dict({"date": "2024-03-01", "net_liquidity": ""})
        assert entry.net_liquidity is None

    def test_to_dict(self):
        data = DailyLogEntry(datetime(2024, 3, 1), 10_000.0).to_dict()
        assert data == {"date": "2024-03-01T00:00:00", "net_liquidity": 10_000.0}


class TestDataQualityReport:
    """Tests for DataQualityReport."""

    def test_clean_by_default(self):
        assert DataQualityReport().is_clean

    def test_merge(self):
        merged = DataQualityReport(1, 0, ("a",)).merge(DataQualityReport(0, 2, ("b", "c")))

        assert merged.skipped_trades == 1
        assert merged.skipped_daily_logs == 2
        assert merged.warnings == ("a", "b", "c")
        assert not merged.is_clean


class TestPortfolioStats:
    """Tests for statistics snapshots."""

    def test_to_dict_sections(self):
        data = PortfolioStats(total_trades=3, total_pl=12.3456, sharpe_ratio=1.234567).to_dict()

        assert set(data) == {
            "period", "returns", "risk", "consistency", "trades", "margin", "data_quality",
        }
        assert data["returns"]["total_pl"] == 12.35
        assert data["risk"]["sharpe_ratio"] == 1.2346
        assert data["period"]["start_date"] is None

    def test_compare_stats(self):
        baseline = PortfolioStats(total_pl=100.0, sharpe_ratio=1.0, kelly_percentage=10.0)
        comparison = PortfolioStats(total_pl=150.0, sharpe_ratio=0.5, kelly_percentage=12.5)
        deltas = compare_stats(baseline, comparison)

        assert deltas["total_pl_delta"] == pytest.approx(50.0)
        assert deltas["sharpe_delta"] == pytest.approx(-0.5)
        assert deltas["kelly_delta"] == pytest.approx(2.5)

    def test_strategy_stats_from(self):
        stats = PortfolioStats(total_trades=5, win_rate=0.6)
        labelled = strategy_stats_from(stats, "Iron Condor")

        assert isinstance(labelled, StrategyStats)
        assert labelled.strategy == "Iron Condor"
        assert labelled.total_trades == 5
        assert labelled.to_dict()["strategy"] == "Iron Condor"


class TestStrategyHelpers:
    """Tests for strategy label helpers."""

    def test_strategy_names_first_seen(self, trade_factory):
        trades = [
            trade_factory(1.0, strategy="B"),
            trade_factory(1.0, strategy="A"),
            trade_factory(1.0, strategy="B"),
        ]
        assert strategy_names(trades) == ["B", "A"]

    def test_override_fills_unknown_only(self, trade_factory):
        trades = [trade_factory(1.0, strategy=""), trade_factory(2.0, strategy="Kept")]
        result = apply_strategy_override(trades, "Manual")

        assert [t.strategy for t in result] == ["Manual", "Kept"]
        assert trades[0].strategy == "Unknown"

    def test_blank_override_is_noop(self, trade_factory):
        trades = [trade_factory(1.0, strategy="")]
        assert apply_strategy_override(trades, "   ") == trades
