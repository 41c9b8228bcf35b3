"""
Tests for momentum_backtest/data/panel.py

Covers the long → wide pivot, month-end resampling (last price of the month),
the 80% coverage purge and the data sufficiency check.
"""

import numpy as np
import pandas as pd
import pytest

from momentum_backtest.data.panel import (
    build_monthly_price_panel,
    check_panel_coverage,
    drop_low_coverage_tickers,
    pivot_price_panel,
)
from momentum_backtest.data.schemas import InsufficientDataError


def make_observations(rows) -> pd.DataFrame:
    return pd.DataFrame({
        'date': pd.to_datetime([d for d, _, _ in rows]),
        'ticker': [t for _, t, _ in rows],
        'adj_close': [float(p) for _, _, p in rows],
    })


def test_pivot_price_panel_shape_and_gaps():
    """Long observations become a date x ticker panel with NaN gaps."""
    obs = make_observations([
        ("2021-01-05", "BBB", 21), ("2021-01-04", "AAA", 10),
        ("2021-01-04", "BBB", 20), ("2021-01-06", "AAA", 12),
    ])
    panel = pivot_price_panel(obs)

    assert panel.columns.tolist() == ["AAA", "BBB"]
    assert panel.index.name == 'date'
    assert panel.index.is_monotonic_increasing
    assert len(panel) == 3
    assert np.isnan(panel.loc["2021-01-05", "AAA"])
    assert panel.loc["2021-01-06", "AAA"] == 12.0


def test_pivot_price_panel_empty():
    """No observations → empty panel (not an error)."""
    obs = make_observations([])
    assert pivot_price_panel(obs).empty


def test_build_monthly_panel_keeps_last_price_in_month():
    """Each month-end holds the last available price of that calendar month."""
    daily = pd.DataFrame(
        {
            'AAA': [10.0, 11.0, 12.0, 13.0],
            'BBB': [20.0, 21.0, 22.0, np.nan],
        },
        index=pd.DatetimeIndex(["2021-01-04", "2021-01-29", "2021-02-01", "2021-02-26"], name='date'),
    )
    monthly = build_monthly_price_panel(daily, coverage_threshold=0.8)

    assert monthly.index.tolist() == [pd.Timestamp("2021-01-31"), pd.Timestamp("2021-02-28")]
    assert monthly.loc["2021-01-31", "AAA"] == 11.0
    assert monthly.loc["2021-02-28", "AAA"] == 13.0
    # BBB missing on the last trading day keeps its earlier February price
    assert monthly.loc["2021-02-28", "BBB"] == 22.0


def test_build_monthly_panel_drops_low_coverage_tickers():
    """A ticker on fewer than int(0.8 * n_months) month-ends is removed everywhere."""
    days = pd.DatetimeIndex([f"2021-{m:02d}-15" for m in range(1, 11)], name='date')
    daily = pd.DataFrame(
        {
            'FULL': np.linspace(10, 20, 10),
            # 8 of 10 months: exactly at the threshold, kept
            'EDGE': [np.nan, np.nan] + list(np.linspace(10, 20, 8)),
            # 7 of 10 months: below the threshold, dropped
            'LATE': [np.nan] * 3 + list(np.linspace(10, 20, 7)),
        },
        index=days,
    )
    monthly = build_monthly_price_panel(daily, coverage_threshold=0.8)

    assert monthly.columns.tolist() == ["FULL", "EDGE"]
    assert len(monthly) == 10


def test_build_monthly_panel_empty_raises():
    """An empty daily panel is insufficient data, not an empty result."""
    empty = pd.DataFrame(index=pd.DatetimeIndex([], name='date'), dtype=float)
    with pytest.raises(InsufficientDataError):
        build_monthly_price_panel(empty)


def test_build_monthly_panel_everything_purged_raises():
    """If the coverage purge removes every ticker, raise."""
    days = pd.DatetimeIndex([f"2021-{m:02d}-15" for m in range(1, 11)], name='date')
    daily = pd.DataFrame({
        'A': [1.0] * 5 + [np.nan] * 5,
        'B': [np.nan] * 5 + [1.0] * 5,
    }, index=days)
    with pytest.raises(InsufficientDataError, match="empty after coverage"):
        build_monthly_price_panel(daily, coverage_threshold=0.8)


def test_drop_low_coverage_tickers_reports_dropped():
    """The dropped tickers are returned sorted."""
    panel = pd.DataFrame({'Z': [1.0, np.nan, np.nan], 'A': [np.nan, np.nan, 1.0], 'K': [1.0, 1.0, 1.0]})
    kept, dropped = drop_low_coverage_tickers(panel, threshold=0.8)

    assert kept.columns.tolist() == ['K']
    assert dropped == ['A', 'Z']


def test_drop_low_coverage_tickers_rejects_bad_threshold():
    with pytest.raises(ValueError):
        drop_low_coverage_tickers(pd.DataFrame({'A': [1.0]}), threshold=1.5)


def test_check_panel_coverage_sufficient():
    """Enough rows after start and dates spanning the window → sufficient."""
    dates = pd.bdate_range("2020-12-01", "2021-02-26")
    obs = pd.DataFrame({'date': dates, 'ticker': "AAA", 'adj_close': 10.0})
    coverage = check_panel_coverage(obs, "2021-01-04", "2021-02-26", min_rows=10)

    assert coverage.sufficient
    assert coverage.rows_after_start == len(dates[dates >= "2021-01-04"])
    assert coverage.reason == ""


def test_check_panel_coverage_too_few_rows():
    """Fewer than min_rows on or after start → insufficient."""
    dates = pd.bdate_range("2021-01-04", "2021-01-08")
    obs = pd.DataFrame({'date': dates, 'ticker': "AAA", 'adj_close': 10.0})
    coverage = check_panel_coverage(obs, "2021-01-04", "2021-01-08", min_rows=1000)

    assert not coverage.sufficient
    assert "threshold: 1000" in coverage.reason


def test_check_panel_coverage_window_not_covered():
    """Stored dates ending before the window end → insufficient."""
    dates = pd.bdate_range("2021-01-04", "2021-03-31")
    obs = pd.DataFrame({'date': dates, 'ticker': "AAA", 'adj_close': 10.0})
    coverage = check_panel_coverage(obs, "2021-01-04", "2021-12-31", min_rows=10)

    assert not coverage.sufficient
    assert "don't fully cover" in coverage.reason


def test_check_panel_coverage_empty():
    coverage = check_panel_coverage(
        pd.DataFrame(columns=['date', 'ticker', 'adj_close']), "2021-01-04", "2021-12-31"
    )
    assert not coverage.sufficient
    assert coverage.total_rows == 0
