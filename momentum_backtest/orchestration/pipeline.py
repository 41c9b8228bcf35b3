"""
End-to-end momentum backtest pipeline.

**Conceptual**: One function wires the collaborators together:

    provider → daily panel → monthly panel → signals
             → backtest (quarterly rebalances) → metrics vs benchmark

The pipeline owns no logic of its own beyond translating settings into the
parameter objects of the core modules, and failing loudly when there is
nothing to evaluate.
"""

import datetime as dt
import logging
from dataclasses import dataclass

import pandas as pd

from momentum_backtest.analytics.performance import MetricsReport, evaluate_performance
from momentum_backtest.backtesting.engine import (
    BacktestResult,
    MomentumBacktestParams,
    run_momentum_backtest,
)
from momentum_backtest.config.settings import StrategySettings
from momentum_backtest.data.panel import build_monthly_price_panel, pivot_price_panel
from momentum_backtest.data.schemas import InsufficientDataError
from momentum_backtest.strategies.momentum_signals import (
    compute_log_returns,
    compute_momentum_signals,
)
from momentum_backtest.strategies.portfolio import (
    PortfolioParams,
    estimate_annualized_volatility,
)
from momentum_backtest.utils.time import to_timestamp
from momentum_backtest.venues.base import PricePanelProvider

logger = logging.getLogger(__name__)

# Calendar days of daily history requested per volatility estimate
VOLATILITY_LOOKBACK_DAYS = 400


@dataclass
class PipelineResult:
    """
    Everything one pipeline run produced.

    Attributes:
        daily_prices: Wide daily panel used for the benchmark.
        monthly_prices: Month-end panel after the coverage purge.
        signals: EMA/SMA momentum signals on the month-end dates.
        backtest: Strategy returns and rebalance log.
        metrics: Strategy vs benchmark metrics.
    """
    daily_prices: pd.DataFrame
    monthly_prices: pd.DataFrame
    signals: pd.DataFrame
    backtest: BacktestResult
    metrics: MetricsReport


class ProviderVolatilityEstimator:
    """
    Volatility estimator that asks the provider for each rebalance's history.

    Requests daily prices for the selected tickers over
    (as_of - lookback_days, as_of] and estimates annualized volatility from
    the trailing daily log returns.
    """

    def __init__(self, provider: PricePanelProvider, settings: StrategySettings,
                 lookback_days: int = VOLATILITY_LOOKBACK_DAYS):
        self.provider = provider
        self.settings = settings
        self.lookback_days = lookback_days

    def __call__(self, tickers: list[str], as_of: pd.Timestamp) -> pd.Series:
        start = as_of - pd.Timedelta(days=self.lookback_days - 1)
        history = self.provider.fetch_volatility_history(tickers, start, as_of)
        return estimate_annualized_volatility(
            history,
            tickers,
            window=self.settings.volatility_window,
            min_observations=self.settings.min_volatility_observations,
            default=self.settings.default_volatility,
        )


def build_backtest_params(settings: StrategySettings) -> MomentumBacktestParams:
    """Translate strategy settings into the engine's parameter objects."""
    return MomentumBacktestParams(
        portfolio=PortfolioParams(
            uptrend_threshold=settings.uptrend_threshold,
            quintile=settings.quintile,
            min_stocks=settings.min_stocks,
            min_universe_size=settings.min_universe_size,
            position_cap=settings.position_cap,
        ),
        sma_span=settings.sma_span,
        rebalance_interval=settings.rebalance_interval,
        stop_loss_floor=settings.stop_loss_floor,
        tx_cost_rate=settings.tx_cost_rate,
        assumed_turnover=settings.assumed_turnover,
    )


def run_momentum_pipeline(
    provider: PricePanelProvider,
    settings: StrategySettings,
    start: "str | dt.date | pd.Timestamp",
    end: "str | dt.date | pd.Timestamp",
) -> PipelineResult:
    """
    Run the full momentum backtest for [start, end].

    **Functionally**:
      1. Load observations from the provider and pivot to a daily panel.
      2. Resample to month-end and drop low-coverage tickers.
      3. Compute monthly log returns and EMA/SMA signals.
      4. Run the quarterly rebalance loop (volatility via the provider).
      5. Evaluate the strategy against the equal-weight benchmark.

    Args:
        provider: Any PricePanelProvider (CSV, SQLite, yfinance, in-memory).
        settings: Strategy parameters.
        start: First day of the backtest window.
        end: Last day of the backtest window.

    Returns:
        PipelineResult.

    Raises:
        InsufficientDataError: If no prices are available, the monthly panel
                               is empty after cleaning, no rebalance produced
                               a return, or no aligned daily returns exist.
        ValueError: If start is after end.
    """
    start_ts = to_timestamp(start)
    end_ts = to_timestamp(end)
    if start_ts > end_ts:
        raise ValueError(f"start ({start_ts.date()}) must be <= end ({end_ts.date()})")

    logger.info("Running momentum backtest from %s to %s", start_ts.date(), end_ts.date())
    observations = provider.fetch_price_observations(start_ts, end_ts)
    if observations.empty:
        raise InsufficientDataError(
            f"No price observations between {start_ts.date()} and {end_ts.date()}."
        )

    daily_prices = pivot_price_panel(observations)
    monthly_prices = build_monthly_price_panel(daily_prices, settings.coverage_threshold)

    monthly_returns = compute_log_returns(monthly_prices)
    signals = compute_momentum_signals(monthly_prices, settings.ema_span, settings.sma_span)

    backtest = run_momentum_backtest(
        monthly_returns,
        signals,
        ProviderVolatilityEstimator(provider, settings),
        build_backtest_params(settings),
    )
    if backtest.strategy_returns.empty:
        raise InsufficientDataError(
            f"No strategy returns computed: {len(backtest.rebalance_log)} rebalances were due "
            f"and all were skipped (panel has {len(monthly_prices)} months, "
            f"burn-in is {settings.sma_span})."
        )

    metrics = evaluate_performance(
        backtest.strategy_returns,
        daily_prices,
        start_ts,
        end_ts,
        risk_free_rate=settings.risk_free_rate,
    )
    return PipelineResult(
        daily_prices=daily_prices,
        monthly_prices=monthly_prices,
        signals=signals,
        backtest=backtest,
        metrics=metrics,
    )
