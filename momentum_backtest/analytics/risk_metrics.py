"""
Risk and performance metrics over a daily return stream.

This module implements the six headline metrics reported for the momentum
strategy and for its equal-weight benchmark:
  - Core performance: annualized return, annualized volatility, Sharpe
  - Drawdown/pain: maximum drawdown, Calmar
  - Downside risk: Sortino

Every metric is computed from *daily returns* with F = 252 periods per year.
Undefined ratios (zero volatility, no drawdown, no losing days) are reported
as 0.0 rather than NaN or inf, so a report always prints six finite numbers.
"""

import numpy as np
import pandas as pd

PERIODS_PER_YEAR = 252


def _clean(returns: pd.Series) -> pd.Series:
    return pd.Series(returns, dtype=float).dropna()


def _sample_std(values: pd.Series) -> float:
    """Sample standard deviation (ddof=1); 0.0 for fewer than two values."""
    if len(values) < 2:
        return 0.0
    # Constant series: exact zero instead of float residue from the mean
    if values.max() == values.min():
        return 0.0
    return float(values.std(ddof=1))


def compute_annualized_return(
    returns: pd.Series,
    periods_per_year: int = PERIODS_PER_YEAR,
) -> float:
    """
    Arithmetic annualized return: mean periodic return scaled by F.

    **Conceptual**: This is the simple "average day times 252" figure, not a
    compounded CAGR. With log returns the two are close for small daily moves,
    and the arithmetic form keeps Sharpe and Calmar on the same footing.

    **Mathematical**:
        ann_return = mean(r_t) * F

    Args:
        returns: Daily returns.
        periods_per_year: F (252 for daily).

    Returns:
        Annualized return (0.0 for an empty series).
    """
    clean = _clean(returns)
    if clean.empty:
        return 0.0
    return float(clean.mean() * periods_per_year)


def compute_annualized_volatility(
    returns: pd.Series,
    periods_per_year: int = PERIODS_PER_YEAR,
) -> float:
    """
    Annualized volatility: sample standard deviation scaled by sqrt(F).

    **Mathematical**:
        ann_vol = std(r_t, ddof=1) * sqrt(F)

    Fewer than two observations give 0.0.
    """
    return _sample_std(_clean(returns)) * float(np.sqrt(periods_per_year))


def compute_sharpe_ratio(
    returns: pd.Series,
    risk_free_rate: float = 0.0,
    periods_per_year: int = PERIODS_PER_YEAR,
) -> float:
    """
    Sharpe ratio: annualized excess return per unit of annualized volatility.

    **Mathematical**:
        Sharpe = (ann_return - r_f) / ann_vol

    **Interpretation**:
    - Sharpe > 1.0: strong risk-adjusted return.
    - Sharpe < 0: the strategy earned less than the risk-free rate.

    Args:
        returns: Daily returns.
        risk_free_rate: Annualized risk-free rate (e.g., 0.02 for 2%).
        periods_per_year: F.

    Returns:
        Sharpe ratio (0.0 when volatility is zero).
    """
    ann_vol = compute_annualized_volatility(returns, periods_per_year)
    if ann_vol == 0:
        return 0.0
    ann_return = compute_annualized_return(returns, periods_per_year)
    return (ann_return - risk_free_rate) / ann_vol


def compute_sortino_ratio(
    returns: pd.Series,
    risk_free_rate: float = 0.0,
    periods_per_year: int = PERIODS_PER_YEAR,
) -> float:
    """
    Sortino ratio: like Sharpe, but only losing days count as risk.

    **Conceptual**: Upside volatility is not risk for a long-only investor.
    Sortino divides by the dispersion of the negative returns alone, so a
    strategy with big up days and small down days scores better than its
    Sharpe suggests.

    **Mathematical**:
        downside = { r_t : r_t < 0 }
        Sortino  = (ann_return - r_f) / (std(downside, ddof=1) * sqrt(F))

    Returns:
        Sortino ratio (0.0 when there are no negative returns or their
        standard deviation is zero).
    """
    clean = _clean(returns)
    downside = clean[clean < 0]
    downside_vol = _sample_std(downside) * float(np.sqrt(periods_per_year))
    if downside_vol == 0:
        return 0.0
    ann_return = compute_annualized_return(clean, periods_per_year)
    return (ann_return - risk_free_rate) / downside_vol


def compute_drawdown_series(returns: pd.Series) -> pd.Series:
    """
    Drawdown at each date of the compounded growth of 1 unit.

    **Mathematical**:
        growth_t = Π_{s<=t} (1 + r_s)
        peak_t   = max(1, growth_0, ..., growth_t)
        dd_t     = growth_t / peak_t - 1

    The running peak starts at the initial capital of 1, so a loss on the very
    first day already counts as a drawdown.

    Returns:
        Series of drawdowns (values <= 0), same index as the cleaned returns.
    """
    clean = _clean(returns)
    growth = (1.0 + clean).cumprod()
    peak = growth.cummax().clip(lower=1.0)
    return growth / peak - 1.0


def compute_max_drawdown(returns: pd.Series) -> float:
    """
    Maximum drawdown: worst peak-to-trough loss of compounded growth.

    **Interpretation**:
    - -0.30 means at worst the strategy was 30% below its previous peak.
    - Used in the Calmar ratio.

    Returns:
        Maximum drawdown (<= 0; 0.0 for an empty or never-losing series).
    """
    drawdown = compute_drawdown_series(returns)
    if drawdown.empty:
        return 0.0
    return float(min(drawdown.min(), 0.0))


def compute_calmar_ratio(
    returns: pd.Series,
    periods_per_year: int = PERIODS_PER_YEAR,
) -> float:
    """
    Calmar ratio: annualized return per unit of maximum drawdown.

    **Mathematical**:
        Calmar = ann_return / |max_drawdown|

    Returns:
        Calmar ratio (0.0 when there was no drawdown).
    """
    max_dd = compute_max_drawdown(returns)
    if max_dd == 0:
        return 0.0
    return compute_annualized_return(returns, periods_per_year) / abs(max_dd)
