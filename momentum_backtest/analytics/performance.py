"""
Performance evaluation: strategy vs equal-weight benchmark.

**Conceptual**: The evaluator turns the sparse strategy return series into a
daily proxy, builds the equal-weight benchmark from daily prices, aligns the
two on their common dates and computes the same six metrics for each:

    annualized_return, annualized_volatility, sharpe_ratio,
    max_drawdown, sortino_ratio, calmar_ratio

**Why align on the intersection?** The proxy exists on every calendar day
while the benchmark only exists on trading days. Comparing on the common
dates means weekends and holidays never count as flat days for one side only.
"""

import datetime as dt
import logging
from dataclasses import asdict, dataclass

import pandas as pd

from momentum_backtest.analytics.benchmark import compute_equal_weight_benchmark
from momentum_backtest.analytics.interpolation import interpolate_to_daily
from momentum_backtest.analytics.risk_metrics import (
    PERIODS_PER_YEAR,
    compute_annualized_return,
    compute_annualized_volatility,
    compute_calmar_ratio,
    compute_max_drawdown,
    compute_sharpe_ratio,
    compute_sortino_ratio,
)
from momentum_backtest.data.schemas import InsufficientDataError

logger = logging.getLogger(__name__)

METRIC_NAMES = (
    'annualized_return',
    'annualized_volatility',
    'sharpe_ratio',
    'max_drawdown',
    'sortino_ratio',
    'calmar_ratio',
)


@dataclass(frozen=True)
class PerformanceMetrics:
    """The six headline metrics of one daily return stream."""
    annualized_return: float
    annualized_volatility: float
    sharpe_ratio: float
    max_drawdown: float
    sortino_ratio: float
    calmar_ratio: float

    def to_dict(self) -> dict[str, float]:
        return {k: float(v) for k, v in asdict(self).items()}


@dataclass(frozen=True)
class MetricsReport:
    """
    Strategy and benchmark metrics side by side.

    Attributes:
        strategy: Metrics of the interpolated strategy returns.
        benchmark: Metrics of the equal-weight benchmark.
        n_aligned_days: Number of common dates the metrics were computed on.
        start_date: First aligned date.
        end_date: Last aligned date.
    """
    strategy: PerformanceMetrics
    benchmark: PerformanceMetrics
    n_aligned_days: int
    start_date: pd.Timestamp
    end_date: pd.Timestamp

    def to_dict(self) -> dict:
        return {
            'strategy': self.strategy.to_dict(),
            'benchmark': self.benchmark.to_dict(),
            'n_aligned_days': self.n_aligned_days,
            'start_date': self.start_date.strftime('%Y-%m-%d'),
            'end_date': self.end_date.strftime('%Y-%m-%d'),
        }


def compute_performance_metrics(
    returns: pd.Series,
    risk_free_rate: float = 0.02,
    periods_per_year: int = PERIODS_PER_YEAR,
) -> PerformanceMetrics:
    """Compute the six metrics for one daily return series."""
    return PerformanceMetrics(
        annualized_return=compute_annualized_return(returns, periods_per_year),
        annualized_volatility=compute_annualized_volatility(returns, periods_per_year),
        sharpe_ratio=compute_sharpe_ratio(returns, risk_free_rate, periods_per_year),
        max_drawdown=compute_max_drawdown(returns),
        sortino_ratio=compute_sortino_ratio(returns, risk_free_rate, periods_per_year),
        calmar_ratio=compute_calmar_ratio(returns, periods_per_year),
    )


def align_daily_returns(
    strategy_daily: pd.Series,
    benchmark_daily: pd.Series,
) -> pd.DataFrame:
    """
    Align two daily series on the intersection of their dates.

    Returns:
        DataFrame indexed by the common dates (ascending) with columns
        'strategy' and 'benchmark'; missing values are filled with 0.0.
    """
    common = strategy_daily.index.intersection(benchmark_daily.index).sort_values()
    aligned = pd.DataFrame(
        {
            'strategy': strategy_daily.reindex(common),
            'benchmark': benchmark_daily.reindex(common),
        },
        index=common,
    ).fillna(0.0)
    aligned.index.name = 'date'
    return aligned


def evaluate_performance(
    strategy_returns: pd.Series,
    daily_prices: pd.DataFrame,
    start: "str | dt.date | pd.Timestamp",
    end: "str | dt.date | pd.Timestamp",
    risk_free_rate: float = 0.02,
) -> MetricsReport:
    """
    Evaluate the strategy against the equal-weight benchmark.

    **Functionally**:
      1. Interpolate the sparse strategy returns to calendar days over
         [start, end] (forward-fill, one-day lag).
      2. Compute equal-weight benchmark returns from `daily_prices`.
      3. Align both on their common dates (missing → 0).
      4. Compute the six metrics for each side.

    Args:
        strategy_returns: Net return per recorded rebalance date.
        daily_prices: Wide daily price panel for the benchmark.
        start: First day of the evaluation window.
        end: Last day of the evaluation window.
        risk_free_rate: Annualized risk-free rate for Sharpe and Sortino.

    Returns:
        MetricsReport for strategy and benchmark.

    Raises:
        InsufficientDataError: If the two series share no dates.
    """
    strategy_daily = interpolate_to_daily(strategy_returns, start, end)
    benchmark_daily = compute_equal_weight_benchmark(daily_prices)
    aligned = align_daily_returns(strategy_daily, benchmark_daily)

    if aligned.empty:
        raise InsufficientDataError(
            "No aligned daily returns for metrics: the strategy proxy and the "
            "benchmark share no dates."
        )

    logger.info("Computing performance metrics over %d aligned days", len(aligned))
    return MetricsReport(
        strategy=compute_performance_metrics(aligned['strategy'], risk_free_rate),
        benchmark=compute_performance_metrics(aligned['benchmark'], risk_free_rate),
        n_aligned_days=len(aligned),
        start_date=aligned.index[0],
        end_date=aligned.index[-1],
    )
