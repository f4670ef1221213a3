"""
Entry point scripts for trade analytics.

Scripts:
- run_block_stats.py: Portfolio/strategy statistics, correlation and Kelly sizing
- run_monte_carlo.py: Monte Carlo risk simulation over a trade log
"""
