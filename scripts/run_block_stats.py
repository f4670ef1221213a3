#!/usr/bin/env python3
"""
Block Statistics CLI

Compute portfolio statistics, per-strategy breakdown, strategy correlation
and Kelly sizing for a trade-log export.

Usage:
    # Portfolio and strategy statistics
    python scripts/run_block_stats.py --trades trades.csv

    # Use daily account snapshots for drawdown and Sharpe
    python scripts/run_block_stats.py --trades trades.csv --daily-log daily.csv

    # Restrict to two strategies, rank correlation, JSON output
    python scripts/run_block_stats.py --trades trades.csv \\
        --strategies "Iron Condor" "Put Spread" --method spearman --output stats.json
"""

import argparse
import json
import logging
import sys
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from src.analytics.correlation import CorrelationEngine
from src.analytics.snapshot import TradeFilters, build_performance_snapshot
from src.data.trade_loader import TradeLogLoader
from src.lib.config import ConfigValidationError, load_config, validate_config
from src.lib.constants import CORRELATION_METHODS
from src.lib.logging_utils import setup_logging
from src.risk.kelly import KellyCalculator, build_margin_statistics


def print_report(snapshot, matrix, analytics, kelly, margin_rows) -> None:
    """Print a formatted statistics report."""
    stats = snapshot.portfolio_stats

    print("\n" + "=" * 60)
    print("BLOCK STATISTICS")
    print("=" * 60)
    print(f"\nTrades: {stats.total_trades}")
    if stats.start_date and stats.end_date:
        print(f"Period: {stats.start_date:%Y-%m-%d} to {stats.end_date:%Y-%m-%d}")
    print(f"Initial Capital: ${stats.initial_capital:,.2f}")

    print("\n" + "-" * 60)
    print("PERFORMANCE")
    print("-" * 60)
    print(f"{'Total P/L':<24} ${stats.total_pl:>14,.2f}")
    print(f"{'CAGR':<24} {stats.cagr:>15.2%}")
    print(f"{'Win Rate':<24} {stats.win_rate:>15.2%}")
    print(f"{'Max Drawdown':<24} {stats.max_drawdown:>15.2%}")
    print(f"{'Time in Drawdown':<24} {stats.time_in_drawdown:>15.2%}")
    print(f"{'Sharpe Ratio':<24} {stats.sharpe_ratio:>15.3f}")
    print(f"{'Sortino Ratio':<24} {stats.sortino_ratio:>15.3f}")
    print(f"{'Calmar Ratio':<24} {stats.calmar_ratio:>15.3f}")
    print(f"{'Win / Loss Streak':<24} {stats.max_win_streak:>7} / {stats.max_loss_streak:<6}")
    print(f"{'Monthly Win Rate':<24} {stats.monthly_win_rate:>15.2%}")
    print(f"{'Weekly Win Rate':<24} {stats.weekly_win_rate:>15.2%}")
    print(f"{'Kelly %':<24} {stats.kelly_percentage:>14.2f}%")
    print(f"{'Avg Return on Margin':<24} {stats.avg_return_on_margin:>14.2f}%")

    if snapshot.strategy_stats:
        print("\n" + "-" * 60)
        print("STRATEGIES")
        print("-" * 60)
        print(f"{'Strategy':<24} {'Trades':>7} {'P/L':>14} {'Win %':>8} {'Kelly %':>8}")
        for name, s in snapshot.strategy_stats.items():
            print(f"{name[:24]:<24} {s.total_trades:>7} {s.total_pl:>14,.2f} "
                  f"{s.win_rate * 100:>8.1f} {s.kelly_percentage:>8.1f}")

    print("\n" + "-" * 60)
    print(f"CORRELATION ({matrix.method})")
    print("-" * 60)
    if analytics.strongest is not None:
        print(f"Strongest: {analytics.strongest.strategy_a} / {analytics.strongest.strategy_b} "
              f"{analytics.strongest.value:.3f}")
        print(f"Weakest:   {analytics.weakest.strategy_a} / {analytics.weakest.strategy_b} "
              f"{analytics.weakest.value:.3f}")
        print(f"Average:   {analytics.average_correlation:.3f}")
    else:
        print("Not enough strategies to correlate")

    print("\n" + "-" * 60)
    print("KELLY SIZING")
    print("-" * 60)
    for name, allocation in kelly.allocations.items():
        flag = ""
        if allocation.needs_more_data:
            flag = " (needs more data)"
        elif allocation.negative_expectancy:
            flag = " (negative expectancy)"
        print(f"{name[:24]:<24} full {allocation.full_kelly_pct:>7.2f}%  "
              f"applied {allocation.applied_pct:>7.2f}%  "
              f"${allocation.allocation_dollars:>12,.2f}{flag}")
    if kelly.portfolio is not None:
        print(f"{'Portfolio (weighted)':<24} applied {kelly.portfolio.weighted_applied_pct:>7.2f}%")

    if margin_rows:
        print("\nMargin utilization:")
        for row in margin_rows:
            print(f"  {row.name[:22]:<22} max {row.max_margin_pct:>7.2f}%  "
                  f"x{row.multiplier_pct:.0f}%  projected {row.projected_margin_pct:>7.2f}%")

    print("\n" + "=" * 60)


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(
        description="Compute statistics, correlation and Kelly sizing for a trade log",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--trades", type=str, required=True,
                        help="Path to trade-log CSV file")
    parser.add_argument("--daily-log", type=str, default=None,
                        help="Path to daily-log CSV file (optional)")
    parser.add_argument("--strategies", nargs="*", default=None,
                        help="Only include these strategies")
    parser.add_argument("--strategy-override", type=str, default=None,
                        help="Label for trades exported without a strategy")
    parser.add_argument("--method", choices=list(CORRELATION_METHODS), default=None,
                        help="Correlation method (default: from config, pearson)")
    parser.add_argument("--capital", type=float, default=None,
                        help="Starting capital (default: inferred from first trade)")
    parser.add_argument("--config", type=str, default=None,
                        help="YAML configuration file (optional)")
    parser.add_argument("--output", "-o", type=str, default=None,
                        help="Output JSON file for results (optional)")
    parser.add_argument("--verbose", "-v", action="store_true",
                        help="Enable verbose logging")
    args = parser.parse_args(argv)

    config = load_config(args.config)
    setup_logging("DEBUG" if args.verbose else config.output.log_level)
    logger = logging.getLogger(__name__)

    if args.capital is not None:
        config.stats.starting_capital = args.capital
    if args.method is not None:
        config.correlation.method = args.method

    try:
        for warning in validate_config(config):
            logger.warning(f"Config: {warning}")
    except ConfigValidationError as e:
        logger.error(str(e))
        return 2

    try:
        loader = TradeLogLoader(args.trades, args.daily_log)
        trades = loader.load_trades(args.strategy_override)
        daily_logs = loader.load_daily_log()
    except (FileNotFoundError, ValueError) as e:
        logger.error(f"Could not load input: {e}")
        return 1

    filters = TradeFilters(strategies=tuple(args.strategies or ()))
    snapshot = build_performance_snapshot(trades, daily_logs, filters, config.stats)

    engine = CorrelationEngine(config.correlation)
    matrix = engine.calculate_correlation_matrix(snapshot.filtered_trades)
    analytics = engine.calculate_correlation_analytics(matrix)

    kelly = KellyCalculator(config.kelly).calculate(
        snapshot.filtered_trades, starting_capital=config.stats.starting_capital
    )
    margin_rows = build_margin_statistics(kelly)

    print_report(snapshot, matrix, analytics, kelly, margin_rows)

    if args.output:
        path = Path(args.output)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            json.dump({
                "portfolio_stats": snapshot.portfolio_stats.to_dict(),
                "strategy_stats": {
                    k: v.to_dict() for k, v in snapshot.strategy_stats.items()
                },
                "correlation": {**matrix.to_dict(), "analytics": analytics.to_dict()},
                "kelly": kelly.to_dict(),
            }, f, indent=2)
        logger.info(f"Results saved to {args.output}")

    return 0


if __name__ == "__main__":
    sys.exit(main())
