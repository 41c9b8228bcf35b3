"""
Tests for the price observation schema and CSV I/O.

This module tests:
  - Schema validation (missing columns, dtypes, non-positive prices, duplicates).
  - Row cleaning (malformed rows dropped, duplicates keep the last write).
  - CSV readers/writers for long and wide layouts.
  - Result writers (strategy returns CSV, metrics JSON).

All tests use temporary directories (via tmp_path fixture) to avoid polluting
the real data/ directory.
"""

import json

import numpy as np
import pandas as pd
import pytest

from momentum_backtest.data.io import (
    read_price_observations_csv,
    write_metrics_json,
    write_price_observations_csv,
    write_strategy_returns_csv,
)
from momentum_backtest.data.schemas import (
    PRICE_OBSERVATION_COLUMNS,
    InsufficientDataError,
    SchemaValidationError,
    clean_price_observations,
    validate_price_observations,
)


# ============================================================================
# Helper functions for test data generation
# ============================================================================

def make_observations(rows) -> pd.DataFrame:
    """Build long observations from (date_str, ticker, price) tuples."""
    return pd.DataFrame({
        'date': pd.to_datetime([d for d, _, _ in rows]),
        'ticker': [t for _, t, _ in rows],
        'adj_close': [float(p) for _, _, p in rows],
    })


# ============================================================================
# Schema
# ============================================================================

def test_validate_price_observations_valid():
    """A clean long frame passes validation."""
    df = make_observations([("2021-01-04", "AAA", 10), ("2021-01-04", "BBB", 20)])
    validate_price_observations(df)


def test_validate_price_observations_missing_column():
    """A missing adj_close column is a structural error."""
    df = pd.DataFrame({'date': pd.to_datetime(["2021-01-04"]), 'ticker': ["AAA"]})
    with pytest.raises(SchemaValidationError, match="Missing required columns"):
        validate_price_observations(df, context="prices.csv")


def test_validate_price_observations_rejects_string_dates():
    """Dates must be parsed before validation."""
    df = pd.DataFrame({'date': ["2021-01-04"], 'ticker': ["AAA"], 'adj_close': [10.0]})
    with pytest.raises(SchemaValidationError, match="datetime64"):
        validate_price_observations(df)


def test_validate_price_observations_rejects_non_positive_prices():
    """Zero or negative prices violate the schema."""
    df = make_observations([("2021-01-04", "AAA", 10), ("2021-01-05", "AAA", 0)])
    with pytest.raises(SchemaValidationError, match="positive"):
        validate_price_observations(df)


def test_validate_price_observations_rejects_duplicates():
    """Two prices for the same (date, ticker) are ambiguous."""
    df = make_observations([("2021-01-04", "AAA", 10), ("2021-01-04", "AAA", 11)])
    with pytest.raises(SchemaValidationError, match="Duplicate"):
        validate_price_observations(df)


def test_insufficient_data_error_is_a_value_error():
    """Callers catching ValueError also catch insufficient data."""
    assert issubclass(InsufficientDataError, ValueError)


def test_clean_price_observations_drops_malformed_rows():
    """Bad dates, bad prices and empty tickers are dropped, not fatal."""
    raw = pd.DataFrame({
        'date': ["2021-01-04", "not-a-date", "2021-01-05", "2021-01-06", "2021-01-06"],
        'ticker': ["AAA", "AAA", "AAA", None, "BBB"],
        'adj_close': ["10.0", "11.0", "abc", "5.0", "-3"],
    })
    clean = clean_price_observations(raw)

    assert list(clean.columns) == PRICE_OBSERVATION_COLUMNS
    assert len(clean) == 1
    assert clean.iloc[0]['ticker'] == "AAA"
    assert clean.iloc[0]['adj_close'] == 10.0


def test_clean_price_observations_duplicates_keep_last():
    """A later row for the same (date, ticker) overwrites the earlier one."""
    raw = make_observations([("2021-01-04", "AAA", 10), ("2021-01-04", "AAA", 12)])
    clean = clean_price_observations(raw)

    assert len(clean) == 1
    assert clean.iloc[0]['adj_close'] == 12.0


def test_clean_price_observations_sorted_by_date_then_ticker():
    """Output order is date ascending, then ticker."""
    raw = make_observations([
        ("2021-01-05", "BBB", 2), ("2021-01-04", "BBB", 1), ("2021-01-04", "AAA", 3),
    ])
    clean = clean_price_observations(raw)

    assert clean['ticker'].tolist() == ["AAA", "BBB", "BBB"]
    assert clean['date'].is_monotonic_increasing


# ============================================================================
# CSV readers / writers
# ============================================================================

def test_write_and_read_price_observations_csv(tmp_path):
    """Observations written to CSV read back identically."""
    df = make_observations([
        ("2021-01-04", "AAA", 10.5), ("2021-01-04", "BBB", 20.25), ("2021-01-05", "AAA", 11.0),
    ])
    path = tmp_path / "raw" / "stock_prices.csv"
    write_price_observations_csv(df, path)

    assert path.exists()
    assert path.read_text().splitlines()[0] == "date,ticker,adj_close"

    loaded = read_price_observations_csv(path)
    assert loaded.columns.tolist() == PRICE_OBSERVATION_COLUMNS
    assert loaded['date'].tolist() == [
        pd.Timestamp("2021-01-04"), pd.Timestamp("2021-01-04"), pd.Timestamp("2021-01-05"),
    ]
    assert loaded['ticker'].tolist() == ["AAA", "BBB", "AAA"]
    assert loaded['adj_close'].tolist() == [10.5, 20.25, 11.0]


def test_read_price_observations_csv_skips_malformed_rows(tmp_path):
    """Malformed rows in the file are skipped and the rest is loaded."""
    path = tmp_path / "prices.csv"
    path.write_text(
        "date,ticker,adj_close\n"
        "2021-01-04,AAA,10.0\n"
        "2021-01-05,AAA,abc\n"
        "not-a-date,AAA,11.0\n"
        "2021-01-06,AAA,-1\n"
        "2021-01-06,BBB,20.0\n"
    )
    loaded = read_price_observations_csv(path)

    assert len(loaded) == 2
    assert loaded['ticker'].tolist() == ["AAA", "BBB"]
    assert loaded['adj_close'].tolist() == [10.0, 20.0]


def test_read_price_observations_csv_wide_layout(tmp_path):
    """A wide Date,T1,T2 file is melted into long observations."""
    path = tmp_path / "wide.csv"
    path.write_text(
        "Date,AAA,BBB\n"
        "2021-01-04,10.0,20.0\n"
        "2021-01-05,,21.0\n"
    )
    loaded = read_price_observations_csv(path)

    assert len(loaded) == 3
    assert set(loaded['ticker']) == {"AAA", "BBB"}
    bbb = loaded[loaded['ticker'] == "BBB"]
    assert bbb['adj_close'].tolist() == [20.0, 21.0]


def test_read_price_observations_csv_filters_window(tmp_path):
    """start/end bounds are inclusive."""
    df = make_observations([
        ("2021-01-04", "AAA", 10), ("2021-01-05", "AAA", 11),
        ("2021-01-06", "AAA", 12), ("2021-01-07", "AAA", 13),
    ])
    path = tmp_path / "prices.csv"
    write_price_observations_csv(df, path)

    loaded = read_price_observations_csv(path, start="2021-01-05", end="2021-01-06")
    assert loaded['adj_close'].tolist() == [11.0, 12.0]


def test_read_price_observations_csv_missing_file(tmp_path):
    """A missing file raises FileNotFoundError with a hint."""
    with pytest.raises(FileNotFoundError, match="Price CSV not found"):
        read_price_observations_csv(tmp_path / "nope.csv")


def test_read_price_observations_csv_unrecognized_layout(tmp_path):
    """A file that is neither long nor wide is a schema error."""
    path = tmp_path / "weird.csv"
    path.write_text("symbol,close\nAAA,10\n")
    with pytest.raises(SchemaValidationError, match="Unrecognized price layout"):
        read_price_observations_csv(path)


def test_write_strategy_returns_csv(tmp_path):
    """Strategy returns are written as date,net_return."""
    returns = pd.Series(
        [0.01, -0.02],
        index=pd.DatetimeIndex(["2021-03-31", "2021-06-30"], name='date'),
    )
    path = tmp_path / "results" / "returns.csv"
    write_strategy_returns_csv(returns, path)

    loaded = pd.read_csv(path)
    assert loaded.columns.tolist() == ['date', 'net_return']
    assert loaded['date'].tolist() == ["2021-03-31", "2021-06-30"]
    assert np.allclose(loaded['net_return'], [0.01, -0.02])


def test_write_metrics_json(tmp_path):
    """Metrics dictionaries are written as JSON."""
    path = tmp_path / "metrics.json"
    write_metrics_json({'strategy': {'sharpe_ratio': 1.5}}, path)

    assert json.loads(path.read_text()) == {'strategy': {'sharpe_ratio': 1.5}}
