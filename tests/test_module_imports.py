"""
Tests for package-level imports.

Verifies each subpackage exposes its public API through __init__ and that
__all__ lists only names that exist.
"""

import importlib

import pytest


class TestAnalyticsModuleImports:
    """Tests for src.analytics imports."""

    def test_analytics_module_imports_successfully(self):
        """Core components import from the package root."""
        from src.analytics import (
            Trade,
            DailyLogEntry,
            PortfolioStatsCalculator,
            EquityCurveBuilder,
            CorrelationEngine,
            MonteCarloSimulator,
            build_performance_snapshot,
            summarize_block,
        )

        assert Trade is not None
        assert DailyLogEntry is not None
        assert PortfolioStatsCalculator is not None
        assert EquityCurveBuilder is not None
        assert CorrelationEngine is not None
        assert MonteCarloSimulator is not None
        assert callable(build_performance_snapshot)
        assert callable(summarize_block)


class TestRiskModuleImports:
    """Tests for src.risk imports."""

    def test_kelly_exports(self):
        from src.risk import KellyCalculator, build_margin_statistics

        assert KellyCalculator is not None
        assert callable(build_margin_statistics)


class TestDataModuleImports:
    """Tests for src.data imports."""

    def test_loader_exports(self):
        from src.data import TradeLogLoader, load_trades, load_daily_log

        assert TradeLogLoader is not None
        assert callable(load_trades)
        assert callable(load_daily_log)


class TestLibModuleImports:
    """Tests for src.lib imports."""

    def test_lib_exports(self):
        from src.lib import load_config, setup_logging, AnalyticsLogger, to_datetime

        assert callable(load_config)
        assert callable(setup_logging)
        assert AnalyticsLogger is not None
        assert callable(to_datetime)


@pytest.mark.parametrize("package", ["src.analytics", "src.risk", "src.data", "src.lib"])
def test_all_names_resolve(package):
    """Every name in __all__ is importable."""
    module = importlib.import_module(package)

    for name in module.__all__:
        assert hasattr(module, name), f"{package}.{name} missing"
