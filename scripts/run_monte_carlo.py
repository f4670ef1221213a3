#!/usr/bin/env python3
"""
Monte Carlo Risk Simulation CLI

Bootstrap-resample a trade log to estimate the range of future outcomes:
percentile bands, probability of profit, value at risk and near-worst-case
drawdown.

Usage:
    # From a trade-log CSV export
    python scripts/run_monte_carlo.py --trades trades.csv

    # With custom parameters
    python scripts/run_monte_carlo.py --trades trades.csv --simulations 5000 --length 500

    # Save results to JSON
    python scripts/run_monte_carlo.py --trades trades.csv --output results/monte_carlo.json
"""

import argparse
import logging
import sys
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from src.analytics.monte_carlo import MonteCarloSimulator
from src.data.trade_loader import load_trades
from src.lib.config import ConfigValidationError, load_config
from src.lib.logging_utils import setup_logging


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Run a Monte Carlo risk simulation over a trade log",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # Basic usage with a trade-log CSV
    python scripts/run_monte_carlo.py --trades exports/trades.csv

    # 5000 paths of 500 trades each, resampling dollar P/L
    python scripts/run_monte_carlo.py --trades trades.csv -n 5000 --length 500 --basis pl

    # Set random seed for reproducibility
    python scripts/run_monte_carlo.py --trades trades.csv --seed 42
        """,
    )

    parser.add_argument(
        "--trades",
        type=str,
        required=True,
        help="Path to trade-log CSV file (needs 'Date Opened' and 'P/L' columns)",
    )
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="YAML configuration file (optional)",
    )
    parser.add_argument(
        "--strategy",
        type=str,
        default=None,
        help="Only simulate trades of this strategy (optional)",
    )
    parser.add_argument(
        "--simulations", "-n",
        type=int,
        default=None,
        help="Number of simulated paths (default: from config, 1000)",
    )
    parser.add_argument(
        "--length",
        type=int,
        default=None,
        help="Trades drawn per path (default: from config, 252)",
    )
    parser.add_argument(
        "--trades-per-year",
        type=float,
        default=None,
        help="Trade frequency used to annualize returns (default: from config, 252)",
    )
    parser.add_argument(
        "--basis",
        choices=["return", "pl"],
        default=None,
        help="Resample per-trade returns or dollar P/L (default: return)",
    )
    parser.add_argument(
        "--capital",
        type=float,
        default=None,
        help="Initial capital for the 'pl' basis (default: from config, 100000)",
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=None,
        help="Random seed for reproducibility (optional)",
    )
    parser.add_argument(
        "--max-drawdown",
        type=float,
        default=None,
        help="Fail when the p95 max drawdown exceeds this fraction "
             "(default: stats.drawdown_threshold, 0.10 = 10%%)",
    )
    parser.add_argument(
        "--output", "-o",
        type=str,
        default=None,
        help="Output JSON file for results (optional)",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose logging",
    )
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    config = load_config(args.config)
    setup_logging("DEBUG" if args.verbose else config.output.log_level)
    logger = logging.getLogger(__name__)

    mc = config.monte_carlo
    if args.simulations is not None:
        mc.num_simulations = args.simulations
    if args.length is not None:
        mc.simulation_length = args.length
    if args.trades_per_year is not None:
        mc.trades_per_year = args.trades_per_year
    if args.basis is not None:
        mc.sample_basis = args.basis
    if args.capital is not None:
        mc.initial_capital = args.capital
    if args.seed is not None:
        mc.seed = args.seed

    max_drawdown = (
        args.max_drawdown if args.max_drawdown is not None
        else config.stats.drawdown_threshold
    )

    try:
        simulator = MonteCarloSimulator(mc)
        trades = load_trades(args.trades)
    except ConfigValidationError as e:
        logger.error(str(e))
        return 2
    except (FileNotFoundError, ValueError) as e:
        logger.error(f"Could not load trades: {e}")
        return 1

    if args.strategy:
        trades = [t for t in trades if t.strategy == args.strategy]

    logger.info(f"Running {mc.num_simulations} Monte Carlo simulations...")

    def report(completed: int, total: int) -> None:
        logger.info(f"Progress: {completed}/{total}")

    result = simulator.simulate(trades, progress_callback=report)
    if result is None:
        logger.error("No trades to simulate")
        return 1

    result.print_summary()

    if args.output:
        result.export_json(args.output)
        logger.info(f"Results saved to {args.output}")

    if result.statistics.median_max_drawdown > max_drawdown:
        logger.warning(
            f"p95 max drawdown {result.statistics.median_max_drawdown:.2%} exceeds "
            f"threshold {max_drawdown:.2%}"
        )
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
