"""
Base abstraction for price stores (venues).

**Conceptual**: This module defines the PricePanelProvider protocol, the one
interface through which the backtest reads prices. A flat CSV file, a SQLite
table and Yahoo Finance all implement it, so the signal engine, the
backtest and the benchmark never know which store the prices came from.

**Why protocols over inheritance?**
  - Protocols are structural typing: any class with the right methods is a
    provider, no base class required.
  - Tests can pass a tiny in-memory provider without touching disk or network.

**Data consistency guarantees**:
All PricePanelProvider implementations MUST ensure:
  1. Long observations use exactly the columns `date, ticker, adj_close`
     (see `momentum_backtest.data.schemas`).
  2. Dates are tz-naive, normalized datetime64 values.
  3. Prices are strictly positive; malformed rows are dropped, not returned.
  4. No duplicate (date, ticker) pairs.
  5. The requested window [start, end] is inclusive on both ends.
"""

import datetime as dt
from typing import Protocol

import pandas as pd


class PricePanelProvider(Protocol):
    """
    Protocol for reading adjusted-close history from any store.

    **Example usage**:
        >>> from momentum_backtest.venues.csv_price_store import CsvPricePanelProvider
        >>> provider = CsvPricePanelProvider("data/raw/stock_prices.csv")
        >>> obs = provider.fetch_price_observations("2020-01-01", "2020-12-31")
        >>> obs.columns.tolist()
        ['date', 'ticker', 'adj_close']

    **Testing strategy**:
    When testing code that uses a provider, create a simple in-memory one:
        >>> class InMemoryProvider:
        ...     def __init__(self, observations):
        ...         self.observations = observations
        ...     def fetch_price_observations(self, start, end):
        ...         d = self.observations['date']
        ...         return self.observations[(d >= start) & (d <= end)]
        ...     def fetch_volatility_history(self, tickers, start, end):
        ...         ...
    """

    def fetch_price_observations(
        self,
        start: "str | dt.date | pd.Timestamp",
        end: "str | dt.date | pd.Timestamp",
    ) -> pd.DataFrame:
        """
        Fetch every stored observation dated within [start, end].

        Returns:
            Long DataFrame with columns date, ticker, adj_close, sorted by
            date then ticker. Empty (with those columns) if nothing is stored.
        """
        ...

    def fetch_volatility_history(
        self,
        tickers: list[str],
        start: "str | dt.date | pd.Timestamp",
        end: "str | dt.date | pd.Timestamp",
    ) -> pd.DataFrame:
        """
        Fetch daily prices for a few tickers, as a wide panel.

        Used on each rebalance date to estimate trailing volatility of the
        selected names.

        Returns:
            Wide DataFrame indexed by date (ascending), one column per
            requested ticker that has any data in the window.
        """
        ...
