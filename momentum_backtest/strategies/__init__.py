"""
Momentum signal generation and portfolio construction.

Computes EMA/SMA momentum scores from month-end prices and turns them into
inverse-volatility, position-capped portfolio weights on each rebalance date.
"""
