"""
Tests for momentum_backtest/analytics/performance.py and report.py
"""

import numpy as np
import pandas as pd
import pytest

from momentum_backtest.analytics.performance import (
    METRIC_NAMES,
    align_daily_returns,
    compute_performance_metrics,
    evaluate_performance,
)
from momentum_backtest.analytics.report import format_metrics_table
from momentum_backtest.data.schemas import InsufficientDataError


# ============================================================================
# Helper functions for test data generation
# ============================================================================

def make_rising_panel(start="2021-03-01", end="2021-07-30", daily_growth=0.01):
    """Two tickers growing at a constant daily rate on business days."""
    dates = pd.bdate_range(start, end, name='date')
    path = 100.0 * (1.0 + daily_growth) ** np.arange(len(dates))
    return pd.DataFrame({'A': path, 'B': path * 2}, index=dates)


# ============================================================================
# Alignment
# ============================================================================

def test_align_daily_returns_uses_intersection():
    """Only dates present in both series survive."""
    strategy = pd.Series(0.01, index=pd.date_range("2021-01-01", "2021-01-10"))
    benchmark = pd.Series(0.02, index=pd.bdate_range("2021-01-05", "2021-01-15"))
    aligned = align_daily_returns(strategy, benchmark)

    assert aligned.columns.tolist() == ['strategy', 'benchmark']
    assert aligned.index.tolist() == pd.bdate_range("2021-01-05", "2021-01-08").tolist()
    assert (aligned['strategy'] == 0.01).all()


def test_align_daily_returns_fills_missing_with_zero():
    dates = pd.bdate_range("2021-01-04", periods=3)
    strategy = pd.Series([0.01, np.nan, 0.02], index=dates)
    benchmark = pd.Series([0.0, 0.01, 0.0], index=dates)
    aligned = align_daily_returns(strategy, benchmark)

    assert aligned.loc[dates[1], 'strategy'] == 0.0


# ============================================================================
# Metrics
# ============================================================================

def test_compute_performance_metrics_has_six_fields():
    metrics = compute_performance_metrics(pd.Series([0.01, -0.02, 0.015]))
    assert tuple(metrics.to_dict()) == METRIC_NAMES


def test_constant_returns_have_zero_risk_ratios():
    """Constant 0.1% daily: return 0.252, zero vol, no drawdown."""
    metrics = compute_performance_metrics(pd.Series([0.001] * 100), risk_free_rate=0.02)

    assert metrics.annualized_return == pytest.approx(0.252)
    assert metrics.annualized_volatility == 0.0
    assert metrics.sharpe_ratio == 0.0
    assert metrics.max_drawdown == 0.0
    assert metrics.sortino_ratio == 0.0
    assert metrics.calmar_ratio == 0.0


def test_evaluate_performance_end_to_end():
    """Interpolated strategy vs a constant-growth benchmark on trading days."""
    panel = make_rising_panel()
    strategy = pd.Series([0.05], index=pd.DatetimeIndex(["2021-03-31"]))
    report = evaluate_performance(strategy, panel, "2021-03-01", "2021-07-31")

    expected_days = pd.bdate_range("2021-03-02", "2021-07-30")
    assert report.n_aligned_days == len(expected_days)
    assert report.start_date == expected_days[0]
    assert report.end_date == expected_days[-1]

    assert report.benchmark.annualized_return == pytest.approx(np.log(1.01) * 252)
    assert report.benchmark.annualized_volatility == pytest.approx(0.0, abs=1e-9)

    n_zero = len(pd.bdate_range("2021-03-02", "2021-03-31"))
    expected_strategy = 0.05 * (len(expected_days) - n_zero) / len(expected_days) * 252
    assert report.strategy.annualized_return == pytest.approx(expected_strategy)


def test_evaluate_performance_no_common_dates_raises():
    """A window outside the price history has nothing to compare."""
    panel = make_rising_panel()
    strategy = pd.Series([0.05], index=pd.DatetimeIndex(["2022-03-31"]))
    with pytest.raises(InsufficientDataError, match="share no dates"):
        evaluate_performance(strategy, panel, "2022-03-01", "2022-07-31")


def test_metrics_report_to_dict():
    panel = make_rising_panel()
    strategy = pd.Series([0.05], index=pd.DatetimeIndex(["2021-03-31"]))
    payload = evaluate_performance(strategy, panel, "2021-03-01", "2021-07-31").to_dict()

    assert set(payload) == {'strategy', 'benchmark', 'n_aligned_days', 'start_date', 'end_date'}
    assert payload['start_date'] == "2021-03-02"
    assert set(payload['strategy']) == set(METRIC_NAMES)


# ============================================================================
# Report
# ============================================================================

def test_format_metrics_table_labels():
    """The table names both sides and every metric."""
    panel = make_rising_panel()
    strategy = pd.Series([0.05], index=pd.DatetimeIndex(["2021-03-31"]))
    report = evaluate_performance(strategy, panel, "2021-03-01", "2021-07-31")
    table = format_metrics_table(report)
    lines = table.splitlines()

    assert "Risk-Reduced Momentum" in lines[0]
    assert "Market Benchmark" in lines[0]
    for label in ("Ann Return", "Ann Vol", "Sharpe", "Max DD", "Sortino", "Calmar"):
        assert any(line.startswith(label) for line in lines)
    assert "aligned days" in lines[-1]
