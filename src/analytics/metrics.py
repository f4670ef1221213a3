"""
Performance Metric Functions

Pure numeric building blocks used by the statistics calculator, the
correlation engine and the Monte Carlo simulator. Every function takes plain
sequences or numpy arrays and returns plain floats/ints.

Key Metrics:
- Return metrics: CAGR, periodic returns
- Risk metrics: Sharpe, Sortino, Calmar ratios
- Drawdown analysis: drawdown series, max drawdown, time in drawdown
- Trade metrics: profit factor, Kelly fraction
- Consistency: win/loss streaks, bucketed win rates

Degenerate inputs (empty series, zero variance, no losses) return 0 rather
than raising or producing inf/NaN.
"""

from typing import Hashable, List, Optional, Sequence, Tuple
import numpy as np

from src.lib.constants import DAYS_PER_YEAR, ZERO_VARIANCE_EPSILON


def periodic_returns(equity_curve: Sequence[float]) -> np.ndarray:
    """
    Simple returns between consecutive equity values.

    Periods whose starting equity is not positive have no meaningful return
    and are dropped, as are non-finite results.

    Args:
        equity_curve: Equity values in chronological order

    Returns:
        Array of period returns (length <= len(equity_curve) - 1)
    """
    equity = np.asarray(equity_curve, dtype=float)
    if len(equity) < 2:
        return np.array([])

    previous = equity[:-1]
    current = equity[1:]
    valid = previous > 0
    returns = (current[valid] - previous[valid]) / previous[valid]
    return returns[np.isfinite(returns)]


def calculate_sharpe_ratio(
    returns: Sequence[float],
    risk_free_rate: float = 0.0,
    annualization_factor: float = 252,
) -> float:
    """
    Calculate annualized Sharpe ratio.

    Sharpe Ratio = mean(returns - rf) / std(returns) * sqrt(annualization_factor)

    The standard deviation is the population deviation (ddof=0).

    Args:
        returns: Period returns
        risk_free_rate: Risk-free rate per period (decimal)
        annualization_factor: Periods per year (252 for daily)

    Returns:
        Annualized Sharpe ratio, 0 for flat or empty series
    """
    if len(returns) == 0:
        return 0.0

    returns = np.asarray(returns, dtype=float)
    excess_returns = returns - risk_free_rate

    std_return = np.std(returns)
    if std_return <= ZERO_VARIANCE_EPSILON or np.isnan(std_return):
        return 0.0

    return float(np.mean(excess_returns) / std_return * np.sqrt(annualization_factor))


def calculate_sortino_ratio(
    returns: Sequence[float],
    risk_free_rate: float = 0.0,
    annualization_factor: float = 252,
) -> float:
    """
    Calculate annualized Sortino ratio.

    Sortino Ratio = mean(returns - rf) / std(negative excess returns) * sqrt(af)

    Unlike Sharpe, only downside volatility is penalized.

    Args:
        returns: Period returns
        risk_free_rate: Risk-free rate per period (decimal)
        annualization_factor: Periods per year

    Returns:
        Annualized Sortino ratio, 0 when there are no negative periods
    """
    if len(returns) == 0:
        return 0.0

    returns = np.asarray(returns, dtype=float)
    excess_returns = returns - risk_free_rate

    downside_returns = excess_returns[excess_returns < 0]
    if len(downside_returns) == 0:
        return 0.0

    downside_std = np.std(downside_returns)
    if downside_std <= ZERO_VARIANCE_EPSILON or np.isnan(downside_std):
        return 0.0

    return float(np.mean(excess_returns) / downside_std * np.sqrt(annualization_factor))


def calculate_cagr(
    starting_equity: float,
    ending_equity: float,
    day_span: float,
) -> float:
    """
    Calculate compound annual growth rate.

    CAGR = (ending / starting) ^ (365.25 / days) - 1

    Args:
        starting_equity: Equity at the start of the period
        ending_equity: Equity at the end of the period
        day_span: Length of the period in days

    Returns:
        CAGR as decimal (1.0 = 100%); 0 when undefined, -1 when wiped out
    """
    if day_span <= 0 or starting_equity <= 0:
        return 0.0

    if ending_equity <= 0:
        return -1.0  # Lost everything

    return float((ending_equity / starting_equity) ** (DAYS_PER_YEAR / day_span) - 1)


def calculate_calmar_ratio(cagr: float, max_drawdown: float) -> float:
    """
    Calculate Calmar ratio.

    Calmar Ratio = CAGR / Max Drawdown

    Args:
        cagr: CAGR as decimal
        max_drawdown: Maximum drawdown as decimal (positive)

    Returns:
        Calmar ratio, 0 when there was no drawdown
    """
    if max_drawdown == 0:
        return 0.0
    return float(cagr / abs(max_drawdown))


def calculate_drawdown_series(
    equity_curve: Sequence[float],
    peak_floor: Optional[float] = None,
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Running peak and drawdown percentage at every point.

    Drawdown = (Peak - Equity) / Peak, and 0 wherever the peak is not
    positive.

    Args:
        equity_curve: Equity values in chronological order
        peak_floor: Value the running peak starts from (e.g. starting capital)

    Returns:
        Tuple of (peak_series, drawdown_pct_series)
    """
    if len(equity_curve) == 0:
        return np.array([]), np.array([])

    equity = np.asarray(equity_curve, dtype=float)
    running_max = np.maximum.accumulate(equity)
    if peak_floor is not None:
        running_max = np.maximum(running_max, peak_floor)

    drawdown_pct = np.zeros_like(equity)
    positive = running_max > 0
    drawdown_pct[positive] = (running_max[positive] - equity[positive]) / running_max[positive]

    return running_max, drawdown_pct


def calculate_max_drawdown(
    equity_curve: Sequence[float],
    peak_floor: Optional[float] = None,
) -> Tuple[float, float]:
    """
    Calculate maximum drawdown.

    Args:
        equity_curve: Array of equity values over time
        peak_floor: Value the running peak starts from (optional)

    Returns:
        Tuple of (max_dd_pct, max_dd_dollars)
    """
    if len(equity_curve) == 0:
        return 0.0, 0.0

    peaks, drawdowns = calculate_drawdown_series(equity_curve, peak_floor)
    drawdown_dollars = peaks - np.asarray(equity_curve, dtype=float)

    return float(np.max(drawdowns)), float(max(np.max(drawdown_dollars), 0.0))


def calculate_time_in_drawdown(drawdowns: Sequence[float]) -> float:
    """Fraction of periods spent below the running peak."""
    if len(drawdowns) == 0:
        return 0.0
    return float(np.mean(np.asarray(drawdowns, dtype=float) > 0))


def calculate_profit_factor(gross_profit: float, gross_loss: float) -> float:
    """
    Calculate profit factor.

    Profit Factor = Gross Profit / Gross Loss

    Args:
        gross_profit: Sum of all winning trades (positive)
        gross_loss: Sum of all losing trades (absolute value)

    Returns:
        Profit factor (> 1 is profitable); 0 when there are no losses
    """
    if gross_loss == 0:
        return 0.0
    return float(gross_profit / abs(gross_loss))


def calculate_kelly_fraction(
    win_rate: float,
    avg_win: float,
    avg_loss: float,
) -> float:
    """
    Calculate the full Kelly fraction.

    Kelly = W - (1 - W) / R where R = avg_win / |avg_loss|

    Kelly without any winners or without any losers has no usable payoff
    ratio and is reported as 0 ("needs more data").

    Args:
        win_rate: Win rate as decimal (0-1)
        avg_win: Average winning trade (positive)
        avg_loss: Average losing trade (sign ignored)

    Returns:
        Kelly fraction as decimal (0.4 = 40%), may be negative
    """
    if avg_win == 0 or avg_loss == 0:
        return 0.0

    payoff_ratio = avg_win / abs(avg_loss)
    return float(win_rate - (1 - win_rate) / payoff_ratio)


def calculate_consecutive_streaks(
    trade_results: Sequence[float],
) -> Tuple[int, int]:
    """
    Calculate maximum consecutive wins and losses.

    Args:
        trade_results: Trade P&Ls in chronological order

    Returns:
        Tuple of (max_consecutive_wins, max_consecutive_losses)
    """
    if len(trade_results) == 0:
        return 0, 0

    max_wins = 0
    max_losses = 0
    current_wins = 0
    current_losses = 0

    for pnl in trade_results:
        if pnl > 0:
            current_wins += 1
            current_losses = 0
            max_wins = max(max_wins, current_wins)
        elif pnl < 0:
            current_losses += 1
            current_wins = 0
            max_losses = max(max_losses, current_losses)
        # pnl == 0: breakeven, reset both
        else:
            current_wins = 0
            current_losses = 0

    return max_wins, max_losses


def calculate_bucket_win_rate(
    pnls: Sequence[float],
    buckets: Sequence[Hashable],
) -> float:
    """
    Fraction of buckets whose summed P&L is positive.

    Args:
        pnls: Trade P&Ls
        buckets: Bucket key per trade (calendar month, ISO week, ...)

    Returns:
        Fraction of winning buckets (0-1)
    """
    if len(pnls) == 0:
        return 0.0

    totals: dict = {}
    for key, pnl in zip(buckets, pnls):
        totals[key] = totals.get(key, 0.0) + pnl

    winning = sum(1 for total in totals.values() if total > 0)
    return winning / len(totals)


def population_std(values: Sequence[float]) -> float:
    """Population standard deviation, 0 for fewer than two values."""
    if len(values) < 2:
        return 0.0
    return float(np.std(np.asarray(values, dtype=float)))
