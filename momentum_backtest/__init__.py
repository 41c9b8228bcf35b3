"""
momentum_backtest – risk-reduced EMA/SMA momentum backtest.

Evaluates a long-only, quarterly-rebalanced equity momentum strategy against an
equal-weighted benchmark and reports annualized risk/return metrics.
"""

__version__ = "0.1.0"
