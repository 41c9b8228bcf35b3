"""
Tabular price store: a SQLite database with one `prices` table.

    CREATE TABLE prices (
        date      TEXT NOT NULL,   -- YYYY-MM-DD
        ticker    TEXT NOT NULL,
        adj_close REAL NOT NULL,
        PRIMARY KEY (date, ticker)
    )

Reads go through `pandas.read_sql_query` with bound parameters and are then
cleaned like any other source, so a bad row written by another tool is
skipped rather than crashing a backtest. Writes upsert on (date, ticker).
"""

import datetime as dt
import logging
import sqlite3
from contextlib import closing
from pathlib import Path

import pandas as pd

from momentum_backtest.data.panel import pivot_price_panel
from momentum_backtest.data.schemas import (
    PRICE_OBSERVATION_COLUMNS,
    clean_price_observations,
    validate_price_observations,
)
from momentum_backtest.utils.time import to_timestamp

logger = logging.getLogger(__name__)

PRICES_TABLE_DDL = """
CREATE TABLE IF NOT EXISTS prices (
    date      TEXT NOT NULL,
    ticker    TEXT NOT NULL,
    adj_close REAL NOT NULL,
    PRIMARY KEY (date, ticker)
)
"""


class SqlitePricePanelProvider:
    """
    PricePanelProvider backed by a SQLite database.

    A connection is opened per call, so the provider holds no open handle
    between rebalances and can be shared freely within one process.

    Args:
        db_path: Path of the SQLite file (created on first write).
    """

    def __init__(self, db_path: Path | str):
        self.db_path = Path(db_path)

    def _connect(self) -> sqlite3.Connection:
        return sqlite3.connect(self.db_path)

    def initialize(self) -> None:
        """Create the `prices` table if it doesn't exist."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        with closing(self._connect()) as con:
            with con:
                con.execute(PRICES_TABLE_DDL)

    def write_observations(self, observations: pd.DataFrame) -> int:
        """
        Upsert long observations into the `prices` table.

        Args:
            observations: DataFrame with date, ticker, adj_close columns.

        Returns:
            Number of rows written.

        Raises:
            SchemaValidationError: If the observations violate the schema.
        """
        validate_price_observations(observations, context=str(self.db_path))
        self.initialize()
        if observations.empty:
            return 0

        rows = list(zip(
            observations['date'].dt.strftime('%Y-%m-%d'),
            observations['ticker'].astype(str),
            observations['adj_close'].astype(float),
        ))
        with closing(self._connect()) as con:
            with con:
                con.executemany(
                    "INSERT OR REPLACE INTO prices (date, ticker, adj_close) VALUES (?, ?, ?)",
                    rows,
                )
        logger.info("Wrote %d price observations to %s", len(rows), self.db_path)
        return len(rows)

    def _query(self, sql: str, params: list) -> pd.DataFrame:
        if not self.db_path.exists():
            raise FileNotFoundError(
                f"Price database not found: {self.db_path}. "
                f"Fetch prices first or point MOMENTUM_PRICES_DB at an existing file."
            )
        with closing(self._connect()) as con:
            raw = pd.read_sql_query(sql, con, params=params)
        if raw.empty:
            return pd.DataFrame({
                'date': pd.Series(dtype='datetime64[ns]'),
                'ticker': pd.Series(dtype=str),
                'adj_close': pd.Series(dtype=float),
            })
        return clean_price_observations(raw)

    def fetch_price_observations(
        self,
        start: "str | dt.date | pd.Timestamp",
        end: "str | dt.date | pd.Timestamp",
    ) -> pd.DataFrame:
        q = (
            "SELECT date, ticker, adj_close FROM prices "
            "WHERE date >= ? AND date <= ? ORDER BY date, ticker"
        )
        params = [
            to_timestamp(start).strftime('%Y-%m-%d'),
            to_timestamp(end).strftime('%Y-%m-%d'),
        ]
        return self._query(q, params)[PRICE_OBSERVATION_COLUMNS]

    def fetch_volatility_history(
        self,
        tickers: list[str],
        start: "str | dt.date | pd.Timestamp",
        end: "str | dt.date | pd.Timestamp",
    ) -> pd.DataFrame:
        tickers = list(tickers)
        if not tickers:
            return pd.DataFrame(index=pd.DatetimeIndex([], name='date'), dtype=float)

        placeholders = ", ".join("?" for _ in tickers)
        q = (
            "SELECT date, ticker, adj_close FROM prices "
            f"WHERE ticker IN ({placeholders}) AND date >= ? AND date <= ? "
            "ORDER BY date, ticker"
        )
        params = tickers + [
            to_timestamp(start).strftime('%Y-%m-%d'),
            to_timestamp(end).strftime('%Y-%m-%d'),
        ]
        return pivot_price_panel(self._query(q, params))

    def count_observations(self) -> int:
        """Number of rows stored (0 if the database doesn't exist yet)."""
        if not self.db_path.exists():
            return 0
        with closing(self._connect()) as con:
            con.execute(PRICES_TABLE_DDL)
            (count,) = con.execute("SELECT COUNT(*) FROM prices").fetchone()
        return int(count)
