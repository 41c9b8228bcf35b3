"""
Performance evaluation: daily interpolation, benchmark and risk metrics.

Includes the daily proxy of the strategy returns, the equal-weight benchmark,
annualized return/volatility, Sharpe, Sortino, drawdown and Calmar metrics.
"""
