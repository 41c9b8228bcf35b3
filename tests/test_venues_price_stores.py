"""
Tests for the CSV and SQLite price stores.

Both stores implement the PricePanelProvider protocol, so most tests run
against each of them through a parametrized fixture. All files live in
tmp_path.
"""

import sqlite3

import numpy as np
import pandas as pd
import pytest

from momentum_backtest.data.io import write_price_observations_csv
from momentum_backtest.data.schemas import SchemaValidationError
from momentum_backtest.venues.csv_price_store import CsvPricePanelProvider
from momentum_backtest.venues.sqlite_price_store import SqlitePricePanelProvider


# ============================================================================
# Helper functions for test data generation
# ============================================================================

def make_observations() -> pd.DataFrame:
    """Three tickers over five business days; CCC starts late."""
    dates = pd.bdate_range("2021-01-04", periods=5)
    rows = []
    for i, date in enumerate(dates):
        rows.append((date, 'AAA', 10.0 + i))
        rows.append((date, 'BBB', 20.0 + i))
        if i >= 2:
            rows.append((date, 'CCC', 30.0 + i))
    return pd.DataFrame(rows, columns=['date', 'ticker', 'adj_close'])


@pytest.fixture(params=['csv', 'sqlite'])
def provider(request, tmp_path):
    """A populated store of each kind."""
    obs = make_observations()
    if request.param == 'csv':
        path = tmp_path / "stock_prices.csv"
        write_price_observations_csv(obs, path)
        return CsvPricePanelProvider(path)
    store = SqlitePricePanelProvider(tmp_path / "prices.db")
    store.write_observations(obs)
    return store


# ============================================================================
# Shared provider behaviour
# ============================================================================

def test_fetch_price_observations_window(provider):
    """Only observations inside [start, end] come back, long format."""
    obs = provider.fetch_price_observations("2021-01-05", "2021-01-07")

    assert obs.columns.tolist() == ['date', 'ticker', 'adj_close']
    assert obs['date'].min() == pd.Timestamp("2021-01-05")
    assert obs['date'].max() == pd.Timestamp("2021-01-07")
    assert len(obs) == 3 + 3 + 2


def test_fetch_volatility_history_subset(provider):
    """Volatility history is a wide panel restricted to the requested tickers."""
    panel = provider.fetch_volatility_history(['AAA', 'CCC'], "2021-01-04", "2021-01-08")

    assert panel.columns.tolist() == ['AAA', 'CCC']
    assert len(panel) == 5
    assert np.isnan(panel.iloc[0]['CCC'])
    assert panel.iloc[-1]['AAA'] == 14.0


def test_fetch_empty_window(provider):
    """A window with no data gives an empty frame, not an error."""
    obs = provider.fetch_price_observations("2030-01-01", "2030-12-31")
    assert obs.empty


# ============================================================================
# CSV store
# ============================================================================

def test_csv_provider_reads_file_once(tmp_path):
    """The file is cached after the first fetch."""
    path = tmp_path / "stock_prices.csv"
    write_price_observations_csv(make_observations(), path)
    provider = CsvPricePanelProvider(path)

    provider.fetch_price_observations("2021-01-04", "2021-01-08")
    path.unlink()
    again = provider.fetch_volatility_history(['BBB'], "2021-01-04", "2021-01-08")

    assert again['BBB'].tolist() == [20.0, 21.0, 22.0, 23.0, 24.0]


def test_csv_provider_missing_file(tmp_path):
    provider = CsvPricePanelProvider(tmp_path / "nope.csv")
    with pytest.raises(FileNotFoundError):
        provider.fetch_price_observations("2021-01-04", "2021-01-08")


# ============================================================================
# SQLite store
# ============================================================================

def test_sqlite_write_and_count(tmp_path):
    store = SqlitePricePanelProvider(tmp_path / "db" / "prices.db")
    assert store.count_observations() == 0

    written = store.write_observations(make_observations())
    assert written == 13
    assert store.count_observations() == 13


def test_sqlite_upsert_replaces_existing_rows(tmp_path):
    """Writing the same (date, ticker) again overwrites the price."""
    store = SqlitePricePanelProvider(tmp_path / "prices.db")
    store.write_observations(make_observations())
    update = pd.DataFrame({
        'date': [pd.Timestamp("2021-01-04")],
        'ticker': ['AAA'],
        'adj_close': [99.0],
    })
    store.write_observations(update)

    obs = store.fetch_price_observations("2021-01-04", "2021-01-04")
    assert store.count_observations() == 13
    assert obs.loc[obs['ticker'] == 'AAA', 'adj_close'].iloc[0] == 99.0


def test_sqlite_rejects_invalid_observations(tmp_path):
    store = SqlitePricePanelProvider(tmp_path / "prices.db")
    bad = pd.DataFrame({
        'date': [pd.Timestamp("2021-01-04")],
        'ticker': ['AAA'],
        'adj_close': [-1.0],
    })
    with pytest.raises(SchemaValidationError):
        store.write_observations(bad)


def test_sqlite_skips_malformed_rows(tmp_path):
    """Rows written by another tool with bad values are dropped on read."""
    db = tmp_path / "prices.db"
    store = SqlitePricePanelProvider(db)
    store.write_observations(make_observations())
    con = sqlite3.connect(db)
    with con:
        con.execute("INSERT INTO prices VALUES ('2021-01-06', 'ZZZ', 0.0)")
    con.close()

    obs = store.fetch_price_observations("2021-01-04", "2021-01-08")
    assert 'ZZZ' not in set(obs['ticker'])


def test_sqlite_missing_database(tmp_path):
    store = SqlitePricePanelProvider(tmp_path / "missing.db")
    with pytest.raises(FileNotFoundError, match="Price database not found"):
        store.fetch_price_observations("2021-01-04", "2021-01-08")


def test_sqlite_volatility_history_no_tickers(tmp_path):
    store = SqlitePricePanelProvider(tmp_path / "prices.db")
    store.write_observations(make_observations())
    assert store.fetch_volatility_history([], "2021-01-04", "2021-01-08").empty
