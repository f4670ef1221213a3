"""
Trade Analytics Module.

Turns trade records and daily account snapshots into performance, risk,
correlation and simulation results.

Components:
    - EquityCurveBuilder: cumulative equity, running peak and drawdown
    - PortfolioStatsCalculator: CAGR, Sharpe, Sortino, Calmar, streaks, win rates
    - CorrelationEngine: strategy correlation matrix and summary
    - MonteCarloSimulator: bootstrap resampling of future equity paths

Example:
    from src.analytics import PortfolioStatsCalculator, Trade

    stats = PortfolioStatsCalculator().calculate(trades, daily_logs)
    print(f"CAGR: {stats.cagr:.2%}  Sharpe: {stats.sharpe_ratio:.2f}")
"""

from .models import (
    Trade,
    DailyLogEntry,
    DataQualityReport,
    PortfolioStats,
    StrategyStats,
    compare_stats,
    strategy_names,
    apply_strategy_override,
)
from .equity_curve import EquityCurve, EquityCurveBuilder, EquityPoint
from .portfolio_stats import PortfolioStatsCalculator, calculate_portfolio_stats
from .correlation import (
    CorrelationEngine,
    CorrelationMatrix,
    CorrelationAnalytics,
    CorrelationPair,
    calculate_correlation_matrix,
)
from .monte_carlo import (
    MonteCarloSimulator,
    MonteCarloResult,
    MonteCarloStatistics,
    MonteCarloPercentiles,
    SimulationProgress,
    run_monte_carlo,
)
from .snapshot import (
    TradeFilters,
    PerformanceSnapshot,
    BlockSummary,
    filter_trades,
    build_performance_snapshot,
    summarize_block,
)

__all__ = [
    # Records
    'Trade',
    'DailyLogEntry',
    'DataQualityReport',
    'PortfolioStats',
    'StrategyStats',
    'compare_stats',
    'strategy_names',
    'apply_strategy_override',
    # Equity curve
    'EquityCurve',
    'EquityCurveBuilder',
    'EquityPoint',
    # Statistics
    'PortfolioStatsCalculator',
    'calculate_portfolio_stats',
    # Correlation
    'CorrelationEngine',
    'CorrelationMatrix',
    'CorrelationAnalytics',
    'CorrelationPair',
    'calculate_correlation_matrix',
    # Monte Carlo
    'MonteCarloSimulator',
    'MonteCarloResult',
    'MonteCarloStatistics',
    'MonteCarloPercentiles',
    'SimulationProgress',
    'run_monte_carlo',
    # Snapshots
    'TradeFilters',
    'PerformanceSnapshot',
    'BlockSummary',
    'filter_trades',
    'build_performance_snapshot',
    'summarize_block',
]
