"""
Quarterly-rebalance backtest engine for the momentum strategy.

**Conceptual**: The engine walks the ordered month-end dates of the signal
panel and, every `rebalance_interval` months after the burn-in, asks the
portfolio constructor for weights and books one period return:

    gross = Σ_i w_i * r_i          (r_i = that month's log return, 0 if missing)
    gross = max(gross, stop_loss_floor)
    net   = gross * (1 - tx_cost_rate * assumed_turnover)

**States of a month-end date**:
  - BURN_IN: position < sma_span, no signal exists yet.
  - REBALANCE_DUE: position is sma_span, sma_span + interval, ...
  - SKIPPED: a due date where no return row exists, the scored universe is
    too small, or there are too few candidates. No return is recorded. A row
    that exists but is entirely missing is not a skip: every held name
    contributes 0.
  - RECORDED: a due date that produced a net return.

Dates between due dates are simply not visited. Nothing carries over between
rebalances: each due date builds its portfolio from scratch, and a skipped
date leaves a gap in the return series (it is not filled with 0).

**Teaching note**: The stop-loss floor is applied to the *period* return, not
intra-period. It is a crude model of "we would have been stopped out at -10%",
which is why it only ever raises returns.
"""

import logging
from functools import partial
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Protocol

import numpy as np
import pandas as pd

from momentum_backtest.strategies.portfolio import (
    PortfolioParams,
    SkipReason,
    construct_portfolio,
)

logger = logging.getLogger(__name__)


class RebalanceState(Enum):
    """Lifecycle state of a month-end date in the rebalance loop."""
    BURN_IN = "burn_in"
    REBALANCE_DUE = "rebalance_due"
    SKIPPED = "skipped"
    RECORDED = "recorded"


class VolatilityEstimator(Protocol):
    """
    Supplies annualized volatility for tickers as of a rebalance date.

    Any callable with this signature works, typically one that queries a
    price store for the trailing window ending on each rebalance date.
    """

    def __call__(self, tickers: list[str], as_of: pd.Timestamp) -> pd.Series:
        ...


@dataclass(frozen=True)
class MomentumBacktestParams:
    """
    Parameters of the rebalance loop.

    Attributes:
        portfolio: Selection and weighting parameters.
        sma_span: Burn-in length in months (the slow SMA window).
        rebalance_interval: Months between rebalances (3 = quarterly).
        stop_loss_floor: Floor on the gross period return.
        tx_cost_rate: Transaction cost per unit of turnover.
        assumed_turnover: Turnover assumed at every rebalance.
    """
    portfolio: PortfolioParams = field(default_factory=PortfolioParams)
    sma_span: int = 50
    rebalance_interval: int = 3
    stop_loss_floor: float = -0.10
    tx_cost_rate: float = 0.001
    assumed_turnover: float = 0.25

    def __post_init__(self):
        if self.sma_span < 1:
            raise ValueError(f"sma_span must be >= 1, got: {self.sma_span}")
        if self.rebalance_interval < 1:
            raise ValueError(
                f"rebalance_interval must be >= 1, got: {self.rebalance_interval}"
            )

    @property
    def cost_haircut(self) -> float:
        return 1.0 - self.tx_cost_rate * self.assumed_turnover


@dataclass
class RebalanceRecord:
    """
    One due rebalance date and what happened on it.

    Attributes:
        date: Month-end date.
        state: SKIPPED or RECORDED.
        skip_reason: Set when skipped.
        weights: Ticker -> weight held for the period (empty when skipped).
        gross_return: Weighted return after the stop-loss floor (NaN when skipped).
        net_return: Gross return after the cost haircut (NaN when skipped).
        n_scored: Tickers with a signal on the date.
        n_candidates: Tickers above the uptrend threshold.
    """
    date: pd.Timestamp
    state: RebalanceState
    skip_reason: SkipReason | None = None
    weights: pd.Series = field(default_factory=lambda: pd.Series(dtype=float))
    gross_return: float = np.nan
    net_return: float = np.nan
    n_scored: int = 0
    n_candidates: int = 0


@dataclass
class BacktestResult:
    """
    Results from a momentum backtest run.

    Attributes:
        strategy_returns: Net return per recorded rebalance date (sparse,
                          ascending, gaps where rebalances were skipped).
        rebalance_log: One record per due rebalance date, recorded or skipped.
        params: Parameters that produced the result.
    """
    strategy_returns: pd.Series
    rebalance_log: List[RebalanceRecord] = field(default_factory=list)
    params: MomentumBacktestParams | None = None

    @property
    def skipped(self) -> List[RebalanceRecord]:
        return [r for r in self.rebalance_log if r.state is RebalanceState.SKIPPED]

    def rebalance_log_frame(self) -> pd.DataFrame:
        """Rebalance log as a DataFrame (one row per due date)."""
        rows = [
            {
                'date': r.date,
                'state': r.state.value,
                'skip_reason': r.skip_reason.value if r.skip_reason else None,
                'n_scored': r.n_scored,
                'n_candidates': r.n_candidates,
                'n_holdings': len(r.weights),
                'gross_return': r.gross_return,
                'net_return': r.net_return,
            }
            for r in self.rebalance_log
        ]
        return pd.DataFrame(rows, columns=[
            'date', 'state', 'skip_reason', 'n_scored', 'n_candidates',
            'n_holdings', 'gross_return', 'net_return',
        ])


def rebalance_state(position: int, sma_span: int, rebalance_interval: int) -> RebalanceState | None:
    """
    Classify a month-end position before any data is looked at.

    Returns:
        BURN_IN, REBALANCE_DUE, or None for an off-cycle month after burn-in.
    """
    if position < sma_span:
        return RebalanceState.BURN_IN
    if (position - sma_span) % rebalance_interval == 0:
        return RebalanceState.REBALANCE_DUE
    return None


def run_momentum_backtest(
    monthly_returns: pd.DataFrame,
    signals: pd.DataFrame,
    volatility_estimator: VolatilityEstimator,
    params: MomentumBacktestParams,
) -> BacktestResult:
    """
    Run the quarterly-rebalance momentum backtest.

    **Functionally**:
      1. Iterate the ordered month-end dates of `signals`.
      2. Skip burn-in and off-cycle positions.
      3. On a due date: if `monthly_returns` has no row for it, skip.
         Otherwise build the portfolio from that date's signals; a skip
         outcome is logged and the loop moves on.
      4. Book gross = Σ w_i r_i (missing r_i → 0), floor it, haircut it,
         and append (date, net).

    Args:
        monthly_returns: Wide monthly log returns (dates x tickers).
        signals: Wide momentum signals on the same month-end dates.
        volatility_estimator: Callable (tickers, as_of) -> annualized vols.
        params: Loop and portfolio parameters.

    Returns:
        BacktestResult with the sparse net return series and the rebalance log.
    """
    dates = signals.index.sort_values()
    records: List[RebalanceRecord] = []
    recorded_dates: List[pd.Timestamp] = []
    recorded_returns: List[float] = []

    for position, date in enumerate(dates):
        state = rebalance_state(position, params.sma_span, params.rebalance_interval)
        if state is not RebalanceState.REBALANCE_DUE:
            continue

        if date not in monthly_returns.index:
            logger.info("Skipping rebalance on %s: no monthly returns", date.date())
            records.append(RebalanceRecord(
                date=date, state=RebalanceState.SKIPPED, skip_reason=SkipReason.NO_RETURN_DATA
            ))
            continue

        decision = construct_portfolio(
            signals.loc[date],
            partial(volatility_estimator, as_of=date),
            params.portfolio,
        )
        if decision.skipped:
            logger.info(
                "Skipping rebalance on %s: %s (%d scored, %d candidates)",
                date.date(), decision.skip_reason.value,
                decision.n_scored, decision.n_candidates,
            )
            records.append(RebalanceRecord(
                date=date,
                state=RebalanceState.SKIPPED,
                skip_reason=decision.skip_reason,
                n_scored=decision.n_scored,
                n_candidates=decision.n_candidates,
            ))
            continue

        period_returns = monthly_returns.loc[date].reindex(decision.weights.index).fillna(0.0)
        gross = float((decision.weights * period_returns).sum())
        gross = max(gross, params.stop_loss_floor)
        net = gross * params.cost_haircut

        records.append(RebalanceRecord(
            date=date,
            state=RebalanceState.RECORDED,
            weights=decision.weights,
            gross_return=gross,
            net_return=net,
            n_scored=decision.n_scored,
            n_candidates=decision.n_candidates,
        ))
        recorded_dates.append(date)
        recorded_returns.append(net)

    strategy_returns = pd.Series(
        recorded_returns,
        index=pd.DatetimeIndex(recorded_dates, name='date'),
        name='net_return',
        dtype=float,
    )
    logger.info(
        "Backtest complete: %d rebalances recorded, %d skipped",
        len(recorded_returns), len(records) - len(recorded_returns),
    )
    return BacktestResult(strategy_returns=strategy_returns, rebalance_log=records, params=params)
