"""
Portfolio construction: filter, rank, select and inverse-volatility weight.

**Conceptual**: On each rebalance date the constructor turns one row of
momentum signals into a long-only portfolio:

  1. Scored universe: tickers with a signal. Too few → skip the rebalance.
  2. Candidates: signal above the uptrend threshold. Too few → skip.
  3. Selection: rank candidates by signal (descending) and take the top
     quintile, but never fewer than `min_stocks`.
  4. Weights: proportional to 1 / annualized volatility, capped per name and
     renormalized to sum to 1.

**Risk reduction**: Inverse-volatility weighting gives calmer stocks more
capital, and the per-name cap stops one low-volatility name from dominating.
After the cap the weights are renormalized, so in a small selection a capped
weight can drift back above the cap (soft cap). With the default 0.05 cap and
at least 20 names the cap binds as written.

**Teaching note**: A skipped rebalance is an *outcome*, not an error. The
decision object carries the reason so the backtest can log it and move on.
"""

import logging
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Iterable

import pandas as pd

from momentum_backtest.utils.math import (
    TRADING_DAYS_PER_YEAR,
    compute_annualized_volatility,
    compute_log_returns,
)

logger = logging.getLogger(__name__)

MIN_VOLATILITY = 0.01


class SkipReason(Enum):
    """Why a due rebalance produced no return."""
    INSUFFICIENT_UNIVERSE = "insufficient_universe"
    INSUFFICIENT_CANDIDATES = "insufficient_candidates"
    NO_RETURN_DATA = "no_return_data"


@dataclass(frozen=True)
class PortfolioParams:
    """
    Selection and weighting parameters.

    Attributes:
        uptrend_threshold: Minimum signal for a ticker to be a candidate.
        quintile: Fraction of ranked candidates to select.
        min_stocks: Minimum candidates required, and minimum names selected.
        min_universe_size: Minimum scored tickers required.
        position_cap: Per-name weight cap applied before renormalization.
    """
    uptrend_threshold: float = 0.95
    quintile: float = 0.2
    min_stocks: int = 10
    min_universe_size: int = 20
    position_cap: float = 0.05

    def __post_init__(self):
        if not 0.0 < self.quintile <= 1.0:
            raise ValueError(f"quintile must be in (0, 1], got: {self.quintile}")
        if self.min_stocks < 1:
            raise ValueError(f"min_stocks must be >= 1, got: {self.min_stocks}")
        if not 0.0 < self.position_cap <= 1.0:
            raise ValueError(f"position_cap must be in (0, 1], got: {self.position_cap}")


@dataclass
class PortfolioDecision:
    """
    Outcome of portfolio construction on one date.

    Exactly one of `weights` (non-empty) or `skip_reason` is set.

    Attributes:
        weights: Ticker -> weight, summing to 1 (empty when skipped).
        skip_reason: Why the rebalance was skipped, or None.
        n_scored: Tickers with a signal on the date.
        n_candidates: Tickers above the uptrend threshold.
    """
    weights: pd.Series = field(default_factory=lambda: pd.Series(dtype=float))
    skip_reason: SkipReason | None = None
    n_scored: int = 0
    n_candidates: int = 0

    @property
    def skipped(self) -> bool:
        return self.skip_reason is not None


def estimate_annualized_volatility(
    daily_prices: pd.DataFrame,
    tickers: Iterable[str],
    window: int = TRADING_DAYS_PER_YEAR,
    min_observations: int = 30,
    default: float = 0.20,
) -> pd.Series:
    """
    Annualized volatility per ticker from trailing daily log returns.

    **Functionally**: For each ticker, take its own observed daily prices
    (gaps removed), compute consecutive log returns, keep the last `window`
    of them and annualize the sample standard deviation with sqrt(252).
    The estimate falls back to `default` when the ticker is missing from the
    panel, has fewer than `min_observations` returns, or the result is not a
    finite positive number.

    Args:
        daily_prices: Wide daily panel ending at (or before) the rebalance date.
        tickers: Tickers to estimate.
        window: Number of trailing daily returns to use.
        min_observations: Returns required for an estimate.
        default: Fallback annualized volatility.

    Returns:
        Series ticker -> annualized volatility (always finite and > 0).
    """
    vols = {}
    for ticker in tickers:
        if ticker not in daily_prices.columns:
            vols[ticker] = default
            continue

        observed = daily_prices[ticker].dropna()
        returns = compute_log_returns(observed).dropna().iloc[-window:]
        if len(returns) < min_observations:
            vols[ticker] = default
            continue

        vol = compute_annualized_volatility(returns)
        vols[ticker] = vol if math.isfinite(vol) and vol > 0 else default

    return pd.Series(vols, dtype=float)


def select_candidates(
    signals: pd.Series,
    params: PortfolioParams,
) -> PortfolioDecision | list[str]:
    """
    Filter and rank one date's signals.

    Returns:
        The selected tickers (best signal first), or a skipped
        PortfolioDecision when the universe or candidate set is too small.
    """
    scored = signals.dropna()
    if len(scored) < params.min_universe_size:
        return PortfolioDecision(
            skip_reason=SkipReason.INSUFFICIENT_UNIVERSE, n_scored=len(scored)
        )

    candidates = scored[scored > params.uptrend_threshold]
    if len(candidates) < params.min_stocks:
        return PortfolioDecision(
            skip_reason=SkipReason.INSUFFICIENT_CANDIDATES,
            n_scored=len(scored),
            n_candidates=len(candidates),
        )

    # Stable sort keeps ties in column order
    ranked = candidates.sort_values(ascending=False, kind='mergesort')
    # round() strips float residue, e.g. 0.2 * 35 == 7.000000000000001
    n_select = max(params.min_stocks, math.ceil(round(params.quintile * len(ranked), 9)))
    return ranked.index[:n_select].tolist()


def compute_inverse_volatility_weights(
    volatilities: pd.Series,
    position_cap: float = 0.05,
) -> pd.Series:
    """
    Capped inverse-volatility weights.

    **Mathematical**:
        v_i = max(vol_i, 0.01)
        w_i = (1 / v_i) / Σ_j (1 / v_j)
        w_i = min(w_i, cap)
        w_i = w_i / Σ_j w_j

    Args:
        volatilities: Ticker -> annualized volatility.
        position_cap: Per-name cap applied before the final renormalization.

    Returns:
        Ticker -> weight, summing to 1. Empty input gives an empty Series.
    """
    if volatilities.empty:
        return pd.Series(dtype=float)

    inverse = 1.0 / volatilities.astype(float).clip(lower=MIN_VOLATILITY)
    weights = inverse / inverse.sum()
    weights = weights.clip(upper=position_cap)
    return weights / weights.sum()


def construct_portfolio(
    signals: pd.Series,
    estimate_volatility: Callable[[list[str]], pd.Series],
    params: PortfolioParams,
) -> PortfolioDecision:
    """
    Build the portfolio for one rebalance date.

    Args:
        signals: Ticker -> momentum signal on the date (NaN = unscored).
        estimate_volatility: Callable returning annualized volatility for a
                             list of tickers as of the date.
        params: Selection and weighting parameters.

    Returns:
        PortfolioDecision with weights, or with a skip reason.
    """
    selection = select_candidates(signals, params)
    if isinstance(selection, PortfolioDecision):
        return selection

    scored = signals.dropna()
    n_candidates = int((scored > params.uptrend_threshold).sum())

    vols = estimate_volatility(selection).reindex(selection)
    weights = compute_inverse_volatility_weights(vols, params.position_cap)
    return PortfolioDecision(
        weights=weights, n_scored=len(scored), n_candidates=n_candidates
    )
