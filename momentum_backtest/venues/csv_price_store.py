"""
Flat-file price store: a long-format CSV (`date,ticker,adj_close`).

The whole file is read once and kept in memory; volatility lookups on every
rebalance date then slice that cached table instead of re-reading the disk.
"""

import datetime as dt
import logging
from pathlib import Path

import pandas as pd

from momentum_backtest.data.io import read_price_observations_csv
from momentum_backtest.data.panel import pivot_price_panel
from momentum_backtest.data.schemas import PRICE_OBSERVATION_COLUMNS
from momentum_backtest.utils.time import to_timestamp

logger = logging.getLogger(__name__)


class CsvPricePanelProvider:
    """
    PricePanelProvider backed by a CSV file.

    Args:
        path: CSV path (long format, or wide with a leading Date column).

    Raises (on first fetch):
        FileNotFoundError: If the file doesn't exist.
        SchemaValidationError: If the file has no usable layout.
    """

    def __init__(self, path: Path | str):
        self.path = Path(path)
        self._observations: pd.DataFrame | None = None

    def _load(self) -> pd.DataFrame:
        if self._observations is None:
            self._observations = read_price_observations_csv(self.path)
            logger.info(
                "Loaded %d price observations from %s", len(self._observations), self.path
            )
        return self._observations

    def fetch_price_observations(
        self,
        start: "str | dt.date | pd.Timestamp",
        end: "str | dt.date | pd.Timestamp",
    ) -> pd.DataFrame:
        observations = self._load()
        dates = observations['date']
        mask = (dates >= to_timestamp(start)) & (dates <= to_timestamp(end))
        return observations.loc[mask, PRICE_OBSERVATION_COLUMNS].reset_index(drop=True)

    def fetch_volatility_history(
        self,
        tickers: list[str],
        start: "str | dt.date | pd.Timestamp",
        end: "str | dt.date | pd.Timestamp",
    ) -> pd.DataFrame:
        window = self.fetch_price_observations(start, end)
        return pivot_price_panel(window[window['ticker'].isin(list(tickers))])
