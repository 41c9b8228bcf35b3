"""
EMA/SMA momentum signals on a monthly price panel.

**Conceptual**: The strategy ranks stocks by how far their fast trend (a
12-month exponential moving average) sits above their slow trend (a 50-month
simple moving average). A ratio above 1 means recent prices are running ahead
of the long-run level, i.e. the stock is in an uptrend.

    signal_t = EMA_t / SMA_t

**Gap handling**: Monthly panels have holes (a ticker listed late, a missing
month). Both averages tolerate them:
  - EMA: a missing month yields a missing EMA, and the next observed price
    restarts the average from that price (no decay across the hole).
  - SMA: the mean of whatever prices are present in the trailing window.

**Burn-in**: No signal exists for the first `sma_span` months of the panel,
even where both averages happen to be defined. The first month with a signal
is therefore month index `sma_span` (0-based), which is also the first
rebalance date of the backtest.

**Teaching note**: EMA and SMA are computed on *prices*, not returns. The
ratio is scale-free, so tickers with very different price levels compare
directly.
"""

import logging

import numpy as np
import pandas as pd

from momentum_backtest.utils.math import compute_log_returns

logger = logging.getLogger(__name__)

__all__ = [
    'compute_log_returns',
    'compute_ema',
    'compute_sma',
    'compute_momentum_signals',
]


def compute_ema(series: pd.Series, span: int) -> pd.Series:
    """
    Exponential moving average with restart-after-gap semantics.

    **Mathematical**: α = 2 / (span + 1) and, for each position i:
      - x_i missing → ema_i missing.
      - previous ema missing (start of series, or right after a gap) → ema_i = x_i.
      - otherwise → ema_i = α * x_i + (1 - α) * ema_{i-1}.

    **Why not `Series.ewm`?** pandas' `ewm(adjust=False)` carries the average
    across NaNs (it skips them), whereas a gap here must reset the average.

    Args:
        series: Values in ascending date order.
        span: EMA span (>= 1).

    Returns:
        EMA series with the same index as the input.

    Raises:
        ValueError: If span < 1.
    """
    if span < 1:
        raise ValueError(f"span must be >= 1, got: {span}")

    values = series.to_numpy(dtype=float)
    out = np.full(len(values), np.nan)
    alpha = 2.0 / (span + 1.0)
    prev = np.nan

    for i, x in enumerate(values):
        if np.isnan(x):
            prev = np.nan
        elif np.isnan(prev):
            prev = x
        else:
            prev = alpha * x + (1.0 - alpha) * prev
        out[i] = prev

    return pd.Series(out, index=series.index, name=series.name)


def compute_sma(series: pd.Series, span: int) -> pd.Series:
    """
    Simple moving average over the available values of a trailing window.

    The first `span - 1` positions are always NaN. From position `span - 1`
    on, the value is the mean of the non-missing entries among the last
    `span` positions, or NaN if all of them are missing.

    Raises:
        ValueError: If span < 1.
    """
    if span < 1:
        raise ValueError(f"span must be >= 1, got: {span}")

    sma = series.astype(float).rolling(window=span, min_periods=1).mean()
    # Warm-up positions carry no average even if some values are present
    sma.iloc[:span - 1] = np.nan
    return sma


def compute_momentum_signals(
    monthly_prices: pd.DataFrame,
    ema_span: int = 12,
    sma_span: int = 50,
) -> pd.DataFrame:
    """
    Compute EMA/SMA momentum signals for every ticker of a monthly panel.

    **Functionally**:
      - For each ticker column: EMA(ema_span) and SMA(sma_span) of its prices.
      - signal = EMA / SMA where both are defined and SMA > 0, NaN otherwise.
      - Rows with position < sma_span are NaN (burn-in).

    Args:
        monthly_prices: Wide month-end panel (ascending dates x tickers).
        ema_span: Fast EMA span in months.
        sma_span: Slow SMA window in months.

    Returns:
        DataFrame with the same index and columns as `monthly_prices`, holding
        signals (NaN where no signal exists). A panel shorter than `sma_span`
        months yields an all-NaN frame.

    Example:
        >>> prices = pd.DataFrame({"FLAT": [10.0] * 60}, index=pd.date_range("2000-01-31", periods=60, freq="ME"))
        >>> compute_momentum_signals(prices).iloc[50]["FLAT"]
        1.0
    """
    signals = pd.DataFrame(np.nan, index=monthly_prices.index, columns=monthly_prices.columns)
    if len(monthly_prices) <= sma_span:
        logger.debug(
            "Panel has %d months, need more than %d for any signal",
            len(monthly_prices), sma_span,
        )
        return signals

    for ticker in monthly_prices.columns:
        prices = monthly_prices[ticker]
        ema = compute_ema(prices, ema_span)
        sma = compute_sma(prices, sma_span)
        valid = ema.notna() & sma.notna() & (sma > 0)
        signals[ticker] = (ema / sma.where(sma > 0)).where(valid)

    signals.iloc[:sma_span] = np.nan
    return signals
