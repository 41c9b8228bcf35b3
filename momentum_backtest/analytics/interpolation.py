"""
Monthly-to-daily interpolation of the strategy return series.

**Conceptual**: The backtest books one return per rebalance date, but the
benchmark is a daily series. To compare them, each recorded value is spread
over the calendar days that follow it:

  1. Build the calendar-day grid [start, end].
  2. Forward-fill the most recent recorded value onto every day (0.0 before
     the first record).
  3. Shift the whole series forward by one calendar day, so a value recorded
     on a rebalance date is first visible the next day. Shifted dates beyond
     `end` are dropped; the first day of the range has no value.

**Teaching note**: This is a *proxy*, not a compounding-faithful daily return
series. A quarterly return is repeated on every day of the following months,
which inflates annualized figures. The metrics are defined on this proxy, so
the proxy is reproduced as-is.
"""

import datetime as dt

import pandas as pd

from momentum_backtest.utils.time import daily_calendar, to_timestamp


def interpolate_to_daily(
    returns: pd.Series,
    start: "str | dt.date | pd.Timestamp",
    end: "str | dt.date | pd.Timestamp",
) -> pd.Series:
    """
    Forward-fill a sparse date->value series onto calendar days, lagged one day.

    Args:
        returns: Sparse series indexed by date (e.g., net return per rebalance).
        start: First calendar day of the grid (inclusive).
        end: Last calendar day of the grid (inclusive).

    Returns:
        Series indexed by calendar days start+1 .. end (ascending, name 'date').
        Empty when start == end.

    Raises:
        ValueError: If start is after end.

    Example:
        >>> s = pd.Series([0.05], index=[pd.Timestamp("2021-03-31")])
        >>> daily = interpolate_to_daily(s, "2021-03-01", "2021-04-05")
        >>> daily.loc["2021-03-31"], daily.loc["2021-04-01"]
        (0.0, 0.05)
    """
    calendar = daily_calendar(start, end)
    end_ts = to_timestamp(end)

    sparse = pd.Series(returns, dtype=float).dropna()
    sparse.index = pd.DatetimeIndex(sparse.index).normalize()
    sparse = sparse[~sparse.index.duplicated(keep='last')].sort_index()

    filled = sparse.reindex(calendar.union(sparse.index)).ffill().reindex(calendar).fillna(0.0)

    shifted = pd.Series(
        filled.to_numpy(),
        index=calendar + pd.Timedelta(days=1),
        dtype=float,
    )
    shifted = shifted[shifted.index <= end_ts]
    shifted.index.name = 'date'
    return shifted
