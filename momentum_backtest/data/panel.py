"""
Price panel construction: long observations → wide daily and month-end panels.

**Conceptual**: The core works on a *price panel*: a DataFrame indexed by date
(ascending) with one column per ticker and NaN where a ticker was not
observed. This module builds that panel from the long observation table,
resamples it to month-end, and removes tickers with poor coverage.

**Coverage rule**: A ticker survives only if it has a price on at least
`int(threshold * n_dates)` of the dates in the loaded window (80% by default).
Coverage is measured over the whole window and applied uniformly to every
date, so a ticker is either fully in the universe or fully out of it.
"""

import logging
from dataclasses import dataclass

import pandas as pd

from momentum_backtest.data.schemas import InsufficientDataError
from momentum_backtest.utils.time import month_end_index, to_timestamp

logger = logging.getLogger(__name__)

DEFAULT_COVERAGE_THRESHOLD = 0.8


def pivot_price_panel(observations: pd.DataFrame) -> pd.DataFrame:
    """
    Reshape long observations (date, ticker, adj_close) into a wide panel.

    Returns:
        DataFrame indexed by ascending DatetimeIndex named 'date', one float
        column per ticker (sorted), NaN where a ticker has no observation.
        Dates on which no ticker has a price are not present.
    """
    if observations.empty:
        return pd.DataFrame(index=pd.DatetimeIndex([], name='date'), dtype=float)

    panel = observations.pivot_table(
        index='date', columns='ticker', values='adj_close', aggfunc='last'
    )
    panel = panel.sort_index().sort_index(axis=1)
    panel.index = pd.DatetimeIndex(panel.index, name='date')
    panel.columns.name = None
    return panel.astype(float)


def drop_low_coverage_tickers(
    panel: pd.DataFrame,
    threshold: float = DEFAULT_COVERAGE_THRESHOLD,
) -> tuple[pd.DataFrame, list[str]]:
    """
    Remove tickers observed on fewer than `int(threshold * len(panel))` dates.

    Args:
        panel: Wide price panel (dates x tickers).
        threshold: Required fraction of dates with a valid price.

    Returns:
        (filtered panel, sorted list of dropped tickers).

    Raises:
        ValueError: If threshold is outside [0, 1].
    """
    if not 0.0 <= threshold <= 1.0:
        raise ValueError(f"threshold must be in [0, 1], got: {threshold}")

    min_valid = int(len(panel) * threshold)
    counts = panel.notna().sum(axis=0)
    dropped = sorted(counts.index[counts < min_valid].tolist())
    for ticker in dropped:
        logger.debug(
            "Dropped ticker %s (<%.0f%% coverage: %d/%d)",
            ticker, threshold * 100, counts[ticker], len(panel),
        )
    return panel.drop(columns=dropped), dropped


def build_monthly_price_panel(
    daily_panel: pd.DataFrame,
    coverage_threshold: float = DEFAULT_COVERAGE_THRESHOLD,
) -> pd.DataFrame:
    """
    Resample a daily price panel to month-end and purge low-coverage tickers.

    **Functionally**:
      - Each trading day is mapped to its calendar month-end.
      - For every month and ticker, the last available price in that month
        is kept (a ticker missing on the final trading day keeps its last
        earlier price from the same month).
      - Months with no prices at all do not appear.
      - Tickers present on fewer than `int(coverage_threshold * n_months)`
        month-ends are removed from every month.

    Args:
        daily_panel: Wide daily panel with ascending DatetimeIndex.
        coverage_threshold: Fraction of month-ends a ticker must cover.

    Returns:
        Wide month-end panel indexed by month-end dates (ascending).

    Raises:
        InsufficientDataError: If the panel is empty before or after cleaning.
    """
    if daily_panel.empty or daily_panel.notna().sum().sum() == 0:
        raise InsufficientDataError("No daily prices available to build a monthly panel.")

    month_keys = month_end_index(daily_panel.index)
    monthly = daily_panel.groupby(month_keys).last()
    monthly.index = pd.DatetimeIndex(monthly.index, name='date')
    monthly = monthly.dropna(how='all')

    monthly, dropped = drop_low_coverage_tickers(monthly, threshold=coverage_threshold)
    if dropped:
        logger.info("Dropped %d tickers with insufficient monthly coverage", len(dropped))

    if monthly.empty or monthly.shape[1] == 0:
        raise InsufficientDataError(
            "Monthly price panel is empty after coverage cleaning. "
            "Load a longer window or a universe with more complete history."
        )

    logger.info(
        "Loaded monthly prices for %d dates across %d tickers",
        len(monthly), monthly.shape[1],
    )
    return monthly


@dataclass(frozen=True)
class PanelCoverage:
    """
    Summary of how well stored observations cover a requested backtest window.

    Attributes:
        total_rows: Number of stored observations.
        rows_after_start: Observations dated on or after the window start.
        first_date: Earliest observation date (None if empty).
        last_date: Latest observation date (None if empty).
        sufficient: True when rows_after_start >= min_rows and the stored
                    dates span the whole window.
        reason: Human-readable explanation when not sufficient.
    """
    total_rows: int
    rows_after_start: int
    first_date: pd.Timestamp | None
    last_date: pd.Timestamp | None
    sufficient: bool
    reason: str = ""


def check_panel_coverage(
    observations: pd.DataFrame,
    start: "str | pd.Timestamp",
    end: "str | pd.Timestamp",
    min_rows: int = 1000,
) -> PanelCoverage:
    """
    Decide whether stored observations are sufficient to run a backtest.

    The store is sufficient when it holds at least `min_rows` observations on
    or after `start`, its first date is on or before `start` and its last date
    is on or after `end`. Used by the actions to decide whether to refetch.
    """
    start_ts = to_timestamp(start)
    end_ts = to_timestamp(end)

    if observations.empty:
        return PanelCoverage(0, 0, None, None, False, "no observations stored")

    dates = observations['date']
    first_date = dates.min()
    last_date = dates.max()
    rows_after_start = int((dates >= start_ts).sum())

    if rows_after_start < min_rows:
        reason = (
            f"only {rows_after_start} rows on or after {start_ts.date()} "
            f"(threshold: {min_rows})"
        )
        return PanelCoverage(len(observations), rows_after_start, first_date, last_date, False, reason)

    if first_date > start_ts or last_date < end_ts:
        reason = (
            f"stored dates ({first_date.date()} to {last_date.date()}) don't fully cover "
            f"[{start_ts.date()}, {end_ts.date()}]"
        )
        return PanelCoverage(len(observations), rows_after_start, first_date, last_date, False, reason)

    return PanelCoverage(len(observations), rows_after_start, first_date, last_date, True)
