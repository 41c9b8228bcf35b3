"""
Equal-weight market benchmark from a daily price panel.

The benchmark return between two consecutive observed dates is the average
log return of every ticker priced (and positive) on both dates:

    b_t = mean_i ln(p_{i,t} / p_{i,t-1})

Tickers listed late or delisted simply drop in and out of the average, and a
date where no ticker qualifies is omitted from the series.
"""

import logging

import pandas as pd

from momentum_backtest.utils.math import compute_log_returns

logger = logging.getLogger(__name__)


def compute_equal_weight_benchmark(daily_prices: pd.DataFrame) -> pd.Series:
    """
    Daily equal-weight benchmark returns.

    Args:
        daily_prices: Wide daily panel (ascending dates x tickers). Rows are
                      the observed dates; a row with no prices at all is
                      ignored so it does not break the consecutive pairing.

    Returns:
        Series of mean log returns indexed by date (ascending, name 'date').
    """
    observed = daily_prices.dropna(how='all').sort_index()
    returns = compute_log_returns(observed)
    benchmark = returns.mean(axis=1, skipna=True).dropna()
    benchmark.index.name = 'date'
    benchmark.name = 'benchmark_return'
    logger.info("Benchmark daily returns: %d dates", len(benchmark))
    return benchmark
