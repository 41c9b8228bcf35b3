"""
Calendar helpers for month-end resampling and daily interpolation.

These are stateless free functions: they take dates in and hand dates back,
with no hidden global state, so the monthly panel builder and the daily
interpolation can share one definition of "month end" and "calendar day".

All dates are handled as normalized (midnight, timezone-naive) pandas
Timestamps, matching the adjusted-close panels used everywhere else.
"""

import datetime as dt

import pandas as pd


def to_timestamp(value: "str | dt.date | pd.Timestamp") -> pd.Timestamp:
    """
    Coerce a date-like value into a normalized, timezone-naive Timestamp.

    Args:
        value: ISO date string, datetime.date/datetime, or pandas Timestamp.

    Returns:
        pd.Timestamp at midnight with no timezone.

    Raises:
        ValueError: If the value cannot be parsed as a date.
    """
    try:
        ts = pd.Timestamp(value)
    except (TypeError, ValueError) as e:
        raise ValueError(f"Cannot interpret {value!r} as a date: {e}")
    if ts is pd.NaT:
        raise ValueError(f"Cannot interpret {value!r} as a date.")
    if ts.tzinfo is not None:
        ts = ts.tz_convert(None)
    return ts.normalize()


def month_end(value: "str | dt.date | pd.Timestamp") -> pd.Timestamp:
    """
    Resolve the last calendar day of the month containing `value`.

    **Conceptual**: Month-end is the key used by the monthly price panel. Every
    trading day in a calendar month maps to the same month-end date, so the
    last observation of the month can be stored under one stable label.

    Example:
        >>> month_end("2021-02-10")
        Timestamp('2021-02-28 00:00:00')
        >>> month_end("2020-02-10")
        Timestamp('2020-02-29 00:00:00')
    """
    ts = to_timestamp(value)
    return ts + pd.offsets.MonthEnd(0)


def month_end_index(dates: pd.DatetimeIndex) -> pd.DatetimeIndex:
    """Vectorized `month_end` for a DatetimeIndex."""
    return pd.DatetimeIndex(dates).normalize() + pd.offsets.MonthEnd(0)


def daily_calendar(
    start: "str | dt.date | pd.Timestamp",
    end: "str | dt.date | pd.Timestamp",
) -> pd.DatetimeIndex:
    """
    Every calendar day in [start, end], inclusive.

    Calendar days (not trading days) are used for the strategy's daily proxy;
    the benchmark only exists on trading days, and the alignment step keeps
    the intersection of the two.

    Raises:
        ValueError: If start is after end.
    """
    start_ts = to_timestamp(start)
    end_ts = to_timestamp(end)
    if start_ts > end_ts:
        raise ValueError(f"start ({start_ts.date()}) must be <= end ({end_ts.date()})")
    return pd.date_range(start_ts, end_ts, freq="D")
