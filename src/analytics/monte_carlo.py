"""
Monte Carlo Risk Simulation

Bootstrap-resamples historical trade outcomes to estimate the range of
possible future equity paths.

Why Monte Carlo Matters:
- A profitable history may be due to lucky trade sequencing
- Resampling reveals the range of plausible outcomes
- Percentile bands set realistic expectations over time
- Tail statistics (VaR, near-worst drawdown) inform position sizing

Each simulated path draws `simulation_length` trades with replacement from
the historical population and accumulates them from a normalized base of
1.0. Paths are expressed as cumulative returns (0.10 = +10%).

Sample basis:
- "return": per-trade return = P&L / account value before the trade,
  compounded along the path
- "pl": dollar P&L added to `initial_capital`, then expressed as a return
  on `initial_capital`

Usage:
    from src.analytics.monte_carlo import MonteCarloSimulator

    simulator = MonteCarloSimulator(MonteCarloConfig(num_simulations=1000, seed=42))
    result = simulator.simulate(trades)

    print(f"Probability of profit: {result.statistics.probability_of_profit:.1%}")
    print(f"5% VaR: {result.statistics.value_at_risk['p5']:.2%}")

Progress can be consumed incrementally:
    for progress in simulator.run_iter(trades):
        print(progress.completed, progress.total)
"""

from dataclasses import dataclass, replace
from typing import Any, Callable, Dict, Iterator, List, Optional, Sequence, Tuple
from datetime import datetime
import json
import logging
from pathlib import Path

import numpy as np

from src.analytics.equity_curve import infer_starting_capital, sort_trades
from src.analytics.metrics import calculate_max_drawdown
from src.analytics.models import Trade
from src.lib.config import MonteCarloConfig
from src.lib.constants import MAX_DRAWDOWN_PERCENTILE, PERCENTILE_BANDS
from src.lib.logging_utils import AnalyticsLogger, log_duration

logger = logging.getLogger(__name__)

VAR_PERCENTILES = (1, 5, 10)


@dataclass(frozen=True)
class MonteCarloStatistics:
    """
    Aggregate statistics over all completed runs.

    All returns are cumulative over the simulated horizon (0.10 = +10%).

    Attributes:
        mean_total_return: Mean final return
        median_total_return: Median final return
        probability_of_profit: Fraction of runs ending above the start
        value_at_risk: Final-return percentiles keyed 'p1', 'p5', 'p10'
        confidence_var: Final-return percentile at 1 - confidence_level
        median_max_drawdown: 95th percentile of per-run max drawdown
            (near-worst case, not the typical run)
        mean_max_drawdown: Mean of per-run max drawdown
        annualized_return: Mean final return annualized by trades_per_year
        best_case_return: Final value of the p95 band
        worst_case_return: Lowest final return of any run
    """
    mean_total_return: float
    median_total_return: float
    probability_of_profit: float
    value_at_risk: Dict[str, float]
    confidence_var: float
    median_max_drawdown: float
    mean_max_drawdown: float
    annualized_return: float
    best_case_return: float
    worst_case_return: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "mean_total_return": round(self.mean_total_return, 6),
            "median_total_return": round(self.median_total_return, 6),
            "probability_of_profit": round(self.probability_of_profit, 4),
            "value_at_risk": {k: round(v, 6) for k, v in self.value_at_risk.items()},
            "confidence_var": round(self.confidence_var, 6),
            "median_max_drawdown": round(self.median_max_drawdown, 6),
            "mean_max_drawdown": round(self.mean_max_drawdown, 6),
            "annualized_return": round(self.annualized_return, 6),
            "best_case_return": round(self.best_case_return, 6),
            "worst_case_return": round(self.worst_case_return, 6),
        }


@dataclass(frozen=True)
class MonteCarloPercentiles:
    """Per-step percentile bands of cumulative return, one value per step."""
    p5: Tuple[float, ...]
    p25: Tuple[float, ...]
    p50: Tuple[float, ...]
    p75: Tuple[float, ...]
    p95: Tuple[float, ...]

    def band(self, percentile: int) -> Tuple[float, ...]:
        return getattr(self, f"p{percentile}")

    def to_dict(self) -> Dict[str, List[float]]:
        return {
            f"p{p}": [round(v, 6) for v in self.band(p)] for p in PERCENTILE_BANDS
        }


@dataclass(frozen=True)
class MonteCarloResult:
    """
    Complete results from a Monte Carlo simulation.

    Attributes:
        parameters: Configuration the simulation ran with
        statistics: Aggregate statistics
        percentiles: Percentile bands over time
        simulations_completed: Runs finished (less than requested if cancelled)
        cancelled: True when the run was stopped early
        max_drawdowns: Per-run max drawdown
        trajectories: Every simulated path (only with store_trajectories)
    """
    parameters: MonteCarloConfig
    statistics: MonteCarloStatistics
    percentiles: MonteCarloPercentiles
    simulations_completed: int
    cancelled: bool = False
    max_drawdowns: Tuple[float, ...] = ()
    trajectories: Optional[Tuple[Tuple[float, ...], ...]] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "parameters": {
                "num_simulations": self.parameters.num_simulations,
                "simulation_length": self.parameters.simulation_length,
                "trades_per_year": self.parameters.trades_per_year,
                "seed": self.parameters.seed,
                "sample_basis": self.parameters.sample_basis,
                "initial_capital": self.parameters.initial_capital,
                "confidence_level": self.parameters.confidence_level,
            },
            "simulations_completed": self.simulations_completed,
            "cancelled": self.cancelled,
            "statistics": self.statistics.to_dict(),
            "percentiles": self.percentiles.to_dict(),
        }

    def export_json(self, filepath: str) -> None:
        """Export results to JSON file."""
        path = Path(filepath)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, 'w') as f:
            json.dump(self.to_dict(), f, indent=2)

    def print_summary(self) -> None:
        """Print a formatted summary of results."""
        stats = self.statistics
        print("\n" + "=" * 60)
        print("MONTE CARLO RISK SIMULATION")
        print("=" * 60)
        print(f"\nSimulations: {self.simulations_completed}"
              f"{' (cancelled)' if self.cancelled else ''}")
        print(f"Trades per path: {self.parameters.simulation_length}")
        print(f"Sample basis: {self.parameters.sample_basis}")

        print("\n" + "-" * 60)
        print("RETURNS")
        print("-" * 60)
        print(f"{'Mean Total Return':<28} {stats.mean_total_return:>12.2%}")
        print(f"{'Median Total Return':<28} {stats.median_total_return:>12.2%}")
        print(f"{'Annualized Return':<28} {stats.annualized_return:>12.2%}")
        print(f"{'Best Case (p95)':<28} {stats.best_case_return:>12.2%}")
        print(f"{'Probability of Profit':<28} {stats.probability_of_profit:>12.2%}")

        print("\n" + "-" * 60)
        print("RISK")
        print("-" * 60)
        for key, value in stats.value_at_risk.items():
            print(f"{'Value at Risk (' + key + ')':<28} {value:>12.2%}")
        label = f"VaR ({self.parameters.confidence_level:.0%} confidence)"
        print(f"{label:<28} {stats.confidence_var:>12.2%}")
        print(f"{'Max Drawdown (p95)':<28} {stats.median_max_drawdown:>12.2%}")
        print(f"{'Mean Max Drawdown':<28} {stats.mean_max_drawdown:>12.2%}")
        print(f"{'Worst Case Return':<28} {stats.worst_case_return:>12.2%}")

        print("\n" + "=" * 60)


@dataclass(frozen=True)
class SimulationProgress:
    """
    Progress record yielded by MonteCarloSimulator.run_iter.

    Only the final record carries the result.
    """
    completed: int
    total: int
    result: Optional[MonteCarloResult] = None

    @property
    def fraction(self) -> float:
        return self.completed / self.total if self.total > 0 else 0.0


class MonteCarloSimulator:
    """
    Bootstrap Monte Carlo simulator over historical trades.

    The simulator holds only configuration. Each call creates its own random
    generator (seeded from the config when a seed is set), so two calls with
    the same seed, config and trades produce identical results.

    Limitations:
    - Assumes trades are independent (no serial correlation)
    - Does not account for changing market conditions
    """

    def __init__(self, config: Optional[MonteCarloConfig] = None):
        """
        Initialize Monte Carlo simulator.

        Args:
            config: Simulation configuration (defaults used if None)

        Raises:
            ConfigValidationError: If the configuration is invalid
        """
        self.config = config or MonteCarloConfig()
        self.config.validate()
        self._analytics_logger = AnalyticsLogger(__name__)

    def historical_samples(self, trades: Sequence[Trade]) -> np.ndarray:
        """
        Resampling population drawn from the trade history.

        Args:
            trades: Trades in any order

        Returns:
            Per-trade returns ("return" basis) or dollar P&L ("pl" basis)
        """
        ordered = [t for t in sort_trades(trades) if np.isfinite(t.pl)]
        pnls = np.array([t.pl for t in ordered], dtype=float)

        if self.config.sample_basis == "pl" or len(pnls) == 0:
            return pnls

        capital = infer_starting_capital(ordered)
        if capital <= 0:
            capital = self.config.initial_capital

        equity_before = capital + np.concatenate(([0.0], np.cumsum(pnls)[:-1]))
        valid = equity_before > 0
        if not valid.all():
            logger.warning(
                f"Dropped {int((~valid).sum())} trades taken with non-positive account value"
            )
        return pnls[valid] / equity_before[valid]

    def _simulate_path(self, rng: np.random.Generator, samples: np.ndarray) -> np.ndarray:
        """One bootstrap path as cumulative return per step."""
        draws = rng.choice(samples, size=self.config.simulation_length, replace=True)
        if self.config.sample_basis == "pl":
            capital = self.config.initial_capital
            return (capital + np.cumsum(draws)) / capital - 1.0
        return np.cumprod(1.0 + draws) - 1.0

    def run_iter(
        self,
        trades: Sequence[Trade],
        should_cancel: Optional[Callable[[], bool]] = None,
    ) -> Iterator[SimulationProgress]:
        """
        Run the simulation, yielding progress records.

        A record is yielded every `progress_interval` completed runs, and a
        final record carrying the result. The cancellation check runs between
        simulation runs; a cancelled simulation's final record carries the
        partial result (None if no run completed). Nothing is yielded when
        there are no usable trades.

        Args:
            trades: Historical trades
            should_cancel: Optional callable returning True to stop

        Yields:
            SimulationProgress records
        """
        samples = self.historical_samples(trades)
        if len(samples) == 0:
            logger.warning("No trades to simulate")
            return

        total = self.config.num_simulations
        length = self.config.simulation_length
        rng = np.random.default_rng(self.config.seed)

        logger.info(
            f"Starting Monte Carlo simulation: {total} simulations, "
            f"{length} trades per path, {len(samples)} historical trades"
        )

        started = datetime.now()
        trajectories = np.empty((total, length))
        max_drawdowns = np.empty(total)
        completed = 0
        cancelled = False

        for run in range(total):
            if should_cancel is not None and should_cancel():
                cancelled = True
                logger.info(f"Monte Carlo cancelled after {completed}/{total} runs")
                break

            path = self._simulate_path(rng, samples)
            trajectories[run] = path
            max_drawdowns[run], _ = calculate_max_drawdown(1.0 + path, peak_floor=1.0)
            completed += 1

            if completed % self.config.progress_interval == 0 and completed < total:
                self._analytics_logger.simulation_progress(completed, total)
                yield SimulationProgress(completed, total)

        result = None
        if completed > 0:
            result = self._build_result(
                trajectories[:completed], max_drawdowns[:completed], cancelled
            )
            log_duration(logger, "Monte Carlo simulation", started)
            logger.info(
                f"Monte Carlo complete: mean return {result.statistics.mean_total_return:.2%}, "
                f"P(profit) {result.statistics.probability_of_profit:.1%}"
            )

        yield SimulationProgress(completed, total, result)

    def simulate(
        self,
        trades: Sequence[Trade],
        progress_callback: Optional[Callable[[int, int], None]] = None,
        should_cancel: Optional[Callable[[], bool]] = None,
    ) -> Optional[MonteCarloResult]:
        """
        Run the simulation to completion.

        Args:
            trades: Historical trades
            progress_callback: Optional callback(completed, total) for progress
            should_cancel: Optional callable returning True to stop early

        Returns:
            MonteCarloResult, or None when there is nothing to simulate
        """
        result = None
        for progress in self.run_iter(trades, should_cancel=should_cancel):
            if progress_callback:
                progress_callback(progress.completed, progress.total)
            result = progress.result
        return result

    def _build_result(
        self,
        trajectories: np.ndarray,
        max_drawdowns: np.ndarray,
        cancelled: bool,
    ) -> MonteCarloResult:
        """Aggregate completed runs into a MonteCarloResult."""
        bands = np.percentile(trajectories, PERCENTILE_BANDS, axis=0)
        percentiles = MonteCarloPercentiles(
            **{f"p{p}": tuple(float(v) for v in row) for p, row in zip(PERCENTILE_BANDS, bands)}
        )

        final_returns = trajectories[:, -1]
        mean_total_return = float(np.mean(final_returns))

        years = self.config.simulation_length / self.config.trades_per_year
        if 1.0 + mean_total_return > 0:
            annualized_return = float((1.0 + mean_total_return) ** (1.0 / years) - 1.0)
        else:
            annualized_return = -1.0

        statistics = MonteCarloStatistics(
            mean_total_return=mean_total_return,
            median_total_return=float(np.median(final_returns)),
            probability_of_profit=float(np.mean(final_returns > 0)),
            value_at_risk={
                f"p{p}": float(np.percentile(final_returns, p)) for p in VAR_PERCENTILES
            },
            confidence_var=float(
                np.percentile(final_returns, (1.0 - self.config.confidence_level) * 100)
            ),
            median_max_drawdown=float(np.percentile(max_drawdowns, MAX_DRAWDOWN_PERCENTILE)),
            mean_max_drawdown=float(np.mean(max_drawdowns)),
            annualized_return=annualized_return,
            best_case_return=percentiles.p95[-1],
            worst_case_return=float(np.min(final_returns)),
        )

        stored = None
        if self.config.store_trajectories:
            stored = tuple(tuple(float(v) for v in row) for row in trajectories)

        return MonteCarloResult(
            parameters=replace(self.config),
            statistics=statistics,
            percentiles=percentiles,
            simulations_completed=len(trajectories),
            cancelled=cancelled,
            max_drawdowns=tuple(float(v) for v in max_drawdowns),
            trajectories=stored,
        )


def run_monte_carlo(
    trades: Sequence[Trade],
    config: Optional[MonteCarloConfig] = None,
    output_json: Optional[str] = None,
) -> Optional[MonteCarloResult]:
    """
    Run a Monte Carlo simulation and optionally save the results.

    Args:
        trades: Historical trades
        config: Simulation configuration
        output_json: Optional path to save results

    Returns:
        MonteCarloResult, or None when there is nothing to simulate
    """
    result = MonteCarloSimulator(config).simulate(trades)

    if result is not None and output_json:
        result.export_json(output_json)
        logger.info(f"Results saved to {output_json}")

    return result
