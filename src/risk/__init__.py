"""
Position Sizing Module.

Kelly-criterion sizing guidance derived from trade history:
- Full and multiplier-scaled Kelly percentages per strategy
- Capital-weighted portfolio blend
- Historical and projected margin utilization
"""

from .kelly import (
    KellyCalculator,
    KellyMetrics,
    KellyAllocation,
    PortfolioKelly,
    KellyResult,
    MarginStatisticRow,
    calculate_max_margin_pct,
    build_margin_statistics,
)

__all__ = [
    'KellyCalculator',
    'KellyMetrics',
    'KellyAllocation',
    'PortfolioKelly',
    'KellyResult',
    'MarginStatisticRow',
    'calculate_max_margin_pct',
    'build_margin_statistics',
]
