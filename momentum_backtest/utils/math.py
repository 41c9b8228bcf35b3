"""
Mathematical and statistical utilities for momentum analytics.

This module provides the return and volatility primitives shared by the
signal engine, the portfolio constructor and the benchmark: log returns over
price panels with gaps, and annualized sample volatility.

All functions expect data in ascending date order (oldest first), which is how
every price panel in this package is built.
"""

import numpy as np
import pandas as pd

TRADING_DAYS_PER_YEAR = 252


def compute_log_returns(prices: "pd.Series | pd.DataFrame") -> "pd.Series | pd.DataFrame":
    """
    Convert prices into logarithmic (continuously compounded) returns.

    **Conceptual**: Log returns add up across periods, which makes them the
    natural unit for volatility estimation and for averaging across tickers.
    For a panel with gaps, a return only exists where the ticker was observed
    on both consecutive rows.

    **Mathematical**: For each row t (and each column):
        r_t = ln(P_t / P_{t-1})
    defined only when P_t and P_{t-1} are both present and P_{t-1} > 0.

    **Functionally**:
    - Input: Series or wide DataFrame of prices in ascending date order.
    - Output: same shape, NaN where the return is undefined (first row, gaps,
      non-positive prior prices). Rows are consecutive positions, so for a
      monthly panel these are month-to-month returns and for a daily panel
      observed-day-to-observed-day returns.

    Args:
        prices: Prices in ascending order (Series or DataFrame).

    Returns:
        Log returns with the same index (and columns) as the input.
    """
    prior = prices.shift(1)
    valid = prices.notna() & prior.notna() & (prior > 0) & (prices > 0)
    # Mask invalid pairs before the log so no -inf / warnings leak out
    ratio = (prices / prior).where(valid)
    return np.log(ratio)


def compute_annualized_volatility(
    returns: pd.Series,
    periods_per_year: int = TRADING_DAYS_PER_YEAR,
) -> float:
    """
    Scale the sample standard deviation of returns to an annual figure.

    **Mathematical**:
        σ_annualized = std(returns, ddof=1) * sqrt(periods_per_year)

    NaNs are dropped first. Fewer than two observations give NaN; callers
    decide what a missing estimate means (the portfolio constructor falls back
    to a default volatility, the metrics report reports 0).

    Args:
        returns: Periodic returns.
        periods_per_year: 252 for daily returns, 12 for monthly.

    Returns:
        Annualized volatility as a float (NaN when undefined).
    """
    clean = returns.dropna()
    if len(clean) < 2:
        return float('nan')
    return float(clean.std(ddof=1) * np.sqrt(periods_per_year))
