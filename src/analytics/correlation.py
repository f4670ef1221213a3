"""
Strategy Correlation Engine

Builds one daily P&L series per strategy and computes the pairwise
correlation matrix between strategies, plus a summary of the matrix.

Alignment:
- "union": every date any strategy traded; a strategy that did not trade on
  a date contributes 0 P&L for it
- "shared": each pair is compared only on dates both strategies traded

Methods:
- pearson: product-moment correlation of raw daily P&L (pandas Series.corr)
- spearman: Pearson correlation of average-tie ranks
- kendall: tau-b with tie corrections

Guarantees: the diagonal is exactly 1, the matrix is symmetric, and every
entry lies in [-1, 1]. Zero-variance series correlate as 0.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple
import logging

import numpy as np
import pandas as pd

from src.analytics.models import Trade, strategy_names
from src.lib.config import ConfigValidationError, CorrelationConfig
from src.lib.constants import CORRELATION_ALIGNMENTS, CORRELATION_METHODS, ZERO_VARIANCE_EPSILON
from src.lib.time_utils import to_date

logger = logging.getLogger(__name__)


# =============================================================================
# Correlation Coefficients
# =============================================================================

def pearson_correlation(x: Sequence[float], y: Sequence[float]) -> float:
    """Pearson correlation, 0 when either series has no variance."""
    if len(x) < 2 or len(x) != len(y):
        return 0.0

    xs = pd.Series(x, dtype=float).reset_index(drop=True)
    ys = pd.Series(y, dtype=float).reset_index(drop=True)
    if xs.std(ddof=0) <= ZERO_VARIANCE_EPSILON or ys.std(ddof=0) <= ZERO_VARIANCE_EPSILON:
        return 0.0

    value = xs.corr(ys, method="pearson")
    if not np.isfinite(value):
        return 0.0

    return float(np.clip(value, -1.0, 1.0))


def spearman_correlation(x: Sequence[float], y: Sequence[float]) -> float:
    """Spearman rank correlation; ties receive their average rank."""
    if len(x) < 2 or len(x) != len(y):
        return 0.0
    x_ranks = pd.Series(x, dtype=float).rank(method="average").to_numpy()
    y_ranks = pd.Series(y, dtype=float).rank(method="average").to_numpy()
    return pearson_correlation(x_ranks, y_ranks)


def kendall_tau_b(x: Sequence[float], y: Sequence[float]) -> float:
    """
    Kendall tau-b.

    tau_b = (concordant - discordant) / sqrt((n0 - n1) * (n0 - n2))

    where n0 = n(n-1)/2 and n1, n2 count the pairs tied in x and in y.

    Args:
        x: First series
        y: Second series (same length)

    Returns:
        tau-b in [-1, 1], 0 when the denominator vanishes
    """
    x = np.asarray(x, dtype=float)
    y = np.asarray(y, dtype=float)
    n = len(x)
    if n < 2 or n != len(y):
        return 0.0

    # Pairwise sign matrices, upper triangle = each unordered pair once
    upper = np.triu_indices(n, k=1)
    sign_x = np.sign(x[:, None] - x[None, :])[upper]
    sign_y = np.sign(y[:, None] - y[None, :])[upper]

    score = float(np.sum(sign_x * sign_y))
    n0 = n * (n - 1) / 2
    n1 = float(np.sum(sign_x == 0))
    n2 = float(np.sum(sign_y == 0))

    denominator = np.sqrt((n0 - n1) * (n0 - n2))
    if denominator <= 0:
        return 0.0

    return float(np.clip(score / denominator, -1.0, 1.0))


_METHODS = {
    "pearson": pearson_correlation,
    "spearman": spearman_correlation,
    "kendall": kendall_tau_b,
}


# =============================================================================
# Result Types
# =============================================================================

@dataclass(frozen=True)
class CorrelationMatrix:
    """
    Pairwise correlation between strategies.

    Attributes:
        strategies: Strategy names, in first-seen trade order
        correlation_data: Square matrix, row/column order matches strategies
        method: Correlation method used
    """
    strategies: Tuple[str, ...]
    correlation_data: Tuple[Tuple[float, ...], ...]
    method: str = "pearson"

    def get(self, strategy_a: str, strategy_b: str) -> float:
        """Correlation between two strategies by name."""
        i = self.strategies.index(strategy_a)
        j = self.strategies.index(strategy_b)
        return self.correlation_data[i][j]

    def to_dataframe(self) -> pd.DataFrame:
        return pd.DataFrame(
            [list(row) for row in self.correlation_data],
            index=list(self.strategies),
            columns=list(self.strategies),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "method": self.method,
            "strategies": list(self.strategies),
            "correlation_data": [
                [round(value, 4) for value in row] for row in self.correlation_data
            ],
        }


@dataclass(frozen=True)
class CorrelationPair:
    strategy_a: str
    strategy_b: str
    value: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "strategies": [self.strategy_a, self.strategy_b],
            "value": round(self.value, 4),
        }


@dataclass(frozen=True)
class CorrelationAnalytics:
    """
    Summary of a correlation matrix.

    Strongest is the algebraically largest off-diagonal value and weakest
    the algebraically smallest (most negative), not absolute magnitude.
    """
    strongest: Optional[CorrelationPair]
    weakest: Optional[CorrelationPair]
    average_correlation: float
    strategy_count: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "strongest": self.strongest.to_dict() if self.strongest else None,
            "weakest": self.weakest.to_dict() if self.weakest else None,
            "average_correlation": round(self.average_correlation, 4),
            "strategy_count": self.strategy_count,
        }


# =============================================================================
# Engine
# =============================================================================

class CorrelationEngine:
    """
    Computes strategy correlation matrices.

    Usage:
        engine = CorrelationEngine(CorrelationConfig(method="spearman"))
        matrix = engine.calculate_correlation_matrix(trades)
        summary = engine.calculate_correlation_analytics(matrix)
    """

    def __init__(self, config: Optional[CorrelationConfig] = None):
        self.config = config or CorrelationConfig()

    def daily_returns_by_strategy(self, trades: Sequence[Trade]) -> pd.DataFrame:
        """
        Daily P&L per strategy keyed by the calendar day each trade opened.

        Returns:
            DataFrame indexed by date, one column per strategy in first-seen
            order; NaN where a strategy did not trade that day
        """
        names = strategy_names(trades)
        if not trades:
            return pd.DataFrame(columns=names, dtype=float)

        frame = pd.DataFrame({
            "date": [to_date(t.date_opened) for t in trades],
            "strategy": [t.strategy for t in trades],
            "pl": [float(t.pl) for t in trades],
        })
        pivot = frame.pivot_table(index="date", columns="strategy", values="pl", aggfunc="sum")
        return pivot.reindex(columns=names).sort_index()

    def calculate_correlation_matrix(
        self,
        trades: Sequence[Trade],
        method: Optional[str] = None,
    ) -> CorrelationMatrix:
        """
        Calculate the strategy correlation matrix.

        Strategies with fewer than `min_observations` trading days are
        excluded rather than failing the whole matrix.

        Args:
            trades: Trades in any order
            method: 'pearson', 'spearman' or 'kendall' (default from config)

        Returns:
            CorrelationMatrix

        Raises:
            ConfigValidationError: For an unknown method or alignment
        """
        method = (method or self.config.method).lower()
        if method not in CORRELATION_METHODS:
            raise ConfigValidationError(
                f"Unknown correlation method {method!r}; expected one of {list(CORRELATION_METHODS)}"
            )
        alignment = self.config.alignment
        if alignment not in CORRELATION_ALIGNMENTS:
            raise ConfigValidationError(
                f"Unknown correlation alignment {alignment!r}; "
                f"expected one of {list(CORRELATION_ALIGNMENTS)}"
            )

        valid_trades = [t for t in trades if np.isfinite(t.pl)]
        daily = self.daily_returns_by_strategy(valid_trades)

        observations = daily.notna().sum()
        kept = [name for name in daily.columns if observations[name] >= self.config.min_observations]
        excluded = [name for name in daily.columns if name not in kept]
        if excluded:
            logger.info(
                f"Excluded {len(excluded)} strategies with fewer than "
                f"{self.config.min_observations} trading days: {excluded}"
            )

        data = self._pairwise(daily[kept], method, alignment)

        logger.debug(f"Correlation matrix: {len(kept)} strategies, method={method}")
        return CorrelationMatrix(
            strategies=tuple(kept),
            correlation_data=tuple(tuple(row) for row in data),
            method=method,
        )

    def _pairwise(
        self,
        daily: pd.DataFrame,
        method: str,
        alignment: str,
    ) -> List[List[float]]:
        """Fill the upper triangle and mirror it."""
        correlate = _METHODS[method]
        names = list(daily.columns)
        size = len(names)
        filled = daily.fillna(0.0)
        data = [[0.0] * size for _ in range(size)]

        for i in range(size):
            data[i][i] = 1.0
            for j in range(i + 1, size):
                if alignment == "shared":
                    pair = daily[[names[i], names[j]]].dropna()
                    if len(pair) < self.config.min_observations:
                        value = 0.0
                    else:
                        value = correlate(pair.iloc[:, 0].to_numpy(), pair.iloc[:, 1].to_numpy())
                else:
                    value = correlate(filled[names[i]].to_numpy(), filled[names[j]].to_numpy())
                data[i][j] = value
                data[j][i] = value

        return data

    @staticmethod
    def calculate_correlation_analytics(matrix: CorrelationMatrix) -> CorrelationAnalytics:
        """
        Summarize a correlation matrix.

        Each unordered pair is visited once.

        Args:
            matrix: CorrelationMatrix

        Returns:
            CorrelationAnalytics (strongest/weakest None with fewer than 2 strategies)
        """
        strongest: Optional[CorrelationPair] = None
        weakest: Optional[CorrelationPair] = None
        values = []

        names = matrix.strategies
        for i in range(len(names)):
            for j in range(i + 1, len(names)):
                value = matrix.correlation_data[i][j]
                values.append(value)
                if strongest is None or value > strongest.value:
                    strongest = CorrelationPair(names[i], names[j], value)
                if weakest is None or value < weakest.value:
                    weakest = CorrelationPair(names[i], names[j], value)

        return CorrelationAnalytics(
            strongest=strongest,
            weakest=weakest,
            average_correlation=float(np.mean(values)) if values else 0.0,
            strategy_count=len(names),
        )


def calculate_correlation_matrix(
    trades: Sequence[Trade],
    method: str = "pearson",
    config: Optional[CorrelationConfig] = None,
) -> CorrelationMatrix:
    """Convenience wrapper: CorrelationEngine(config).calculate_correlation_matrix(...)."""
    return CorrelationEngine(config).calculate_correlation_matrix(trades, method)
