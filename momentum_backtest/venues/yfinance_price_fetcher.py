"""
YFinance price fetcher: adjusted closes for a ticker universe.

**Conceptual**: This module fetches daily adjusted closes from Yahoo Finance
via the yfinance library and hands them back as long observations
(`date, ticker, adj_close`), ready to be written to the CSV or SQLite store.

**Why adjusted closes?** Momentum and volatility are measured on total
return paths. Raw closes jump on splits and dividends, which would show up
as fake crashes in the signal and the benchmark.

**Rate limiting**: Yahoo throttles bulk scrapers (HTTP 429). The fetcher:
  - walks the universe in batches (progress is logged per batch),
  - pauses `sleep_seconds` after every ticker,
  - retries a failed ticker up to `max_retries` times, waiting
    `retry_backoff_seconds * 2**(attempt - 1)` plus up to one second of
    random jitter between attempts.
An empty response is not retried: it means the ticker is unknown or has no
history in the window, and asking again won't change that.

**Teaching note**: yfinance is excellent for learning and prototyping, but it
scrapes a website with no SLA. The fetcher therefore never lets one bad
ticker abort a universe fetch; failures are collected and reported.
"""

import datetime as dt
import logging
import random
import time
from dataclasses import dataclass, field
from typing import Callable

import pandas as pd
import yfinance as yf

from momentum_backtest.config.settings import YFinanceSettings
from momentum_backtest.data.panel import pivot_price_panel
from momentum_backtest.data.schemas import PRICE_OBSERVATION_COLUMNS, clean_price_observations
from momentum_backtest.utils.time import to_timestamp

logger = logging.getLogger(__name__)


class YFinanceError(RuntimeError):
    """
    Generic error when fetching data from yfinance.

    **Recovery**:
      - Check ticker symbol spelling
      - Check internet connection
      - Try again later (Yahoo Finance may be rate limiting or down)
    """
    pass


class YFinanceEmptyDataError(YFinanceError):
    """
    Raised when yfinance returns no usable prices for a ticker/date range.

    Usually an invalid or delisted ticker, or a window before its listing.
    """
    pass


@dataclass
class UniverseFetchResult:
    """
    Outcome of fetching a whole universe.

    Attributes:
        observations: Long observations for every ticker that succeeded.
        succeeded: Tickers with data.
        failed: Ticker -> error message for tickers that failed.
    """
    observations: pd.DataFrame
    succeeded: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)


def _empty_observations() -> pd.DataFrame:
    return pd.DataFrame({
        'date': pd.Series(dtype='datetime64[ns]'),
        'ticker': pd.Series(dtype=str),
        'adj_close': pd.Series(dtype=float),
    })


class YFinancePriceFetcher:
    """
    Fetch adjusted closes from Yahoo Finance for a configured universe.

    Also usable as a PricePanelProvider (remote source): every call goes to
    the network, so prefer fetching into a local store once and backtesting
    from that.

    Args:
        settings: Batch size, retry and pacing configuration.
        universe: Tickers served by `fetch_price_observations`.
        sleep: Sleep function (injectable so tests don't wait).

    Example:
        >>> from momentum_backtest.config.settings import YFinanceSettings
        >>> fetcher = YFinancePriceFetcher(YFinanceSettings(), universe=["AAPL", "MSFT"])
        >>> result = fetcher.fetch_universe(["AAPL", "MSFT"], "2024-01-01", "2024-01-31")
        >>> result.observations.columns.tolist()
        ['date', 'ticker', 'adj_close']
    """

    def __init__(
        self,
        settings: YFinanceSettings,
        universe: list[str] | tuple[str, ...] = (),
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.settings = settings
        self.universe = list(universe)
        self._sleep = sleep

    def fetch_ticker(
        self,
        ticker: str,
        start: "str | dt.date | pd.Timestamp",
        end: "str | dt.date | pd.Timestamp",
    ) -> pd.DataFrame:
        """
        Fetch adjusted closes for one ticker over [start, end] (single attempt).

        **Implementation steps**:
          1. Validate inputs (ticker not empty, start <= end).
          2. Call yf.download() (its end date is exclusive, so end + 1 day).
          3. Flatten MultiIndex columns and pick 'Adj Close'.
          4. Convert to long observations and drop malformed rows.

        Returns:
            Long DataFrame with date, ticker, adj_close.

        Raises:
            ValueError: Invalid inputs.
            YFinanceEmptyDataError: No usable prices returned.
            YFinanceError: Download or parsing failure.
        """
        if not ticker or not ticker.strip():
            raise ValueError("Ticker cannot be empty")
        symbol = ticker.strip().upper()
        start_ts = to_timestamp(start)
        end_ts = to_timestamp(end)
        if start_ts > end_ts:
            raise ValueError(f"start ({start_ts.date()}) must be <= end ({end_ts.date()})")

        try:
            df = yf.download(
                symbol,
                start=start_ts.strftime("%Y-%m-%d"),
                end=(end_ts + pd.Timedelta(days=1)).strftime("%Y-%m-%d"),
                interval="1d",
                auto_adjust=False,
                progress=False,
                threads=False,
                timeout=self.settings.timeout_seconds,
            )
        except Exception as e:
            raise YFinanceError(f"Error fetching data from yfinance for ticker '{symbol}': {e}")

        if df is None or df.empty:
            raise YFinanceEmptyDataError(
                f"No data returned from yfinance for ticker '{symbol}' "
                f"in date range [{start_ts.date()}, {end_ts.date()}]."
            )

        if isinstance(df.columns, pd.MultiIndex):
            df.columns = df.columns.get_level_values(0)

        price_col = "Adj Close" if "Adj Close" in df.columns else "Close"
        if price_col not in df.columns:
            raise YFinanceError(
                f"No 'Adj Close' or 'Close' column in yfinance response for '{symbol}'. "
                f"Available columns: {list(df.columns)}"
            )

        index = pd.DatetimeIndex(df.index)
        if index.tz is not None:
            index = index.tz_convert('UTC').tz_localize(None)

        observations = clean_price_observations(pd.DataFrame({
            'date': index,
            'ticker': symbol,
            'adj_close': pd.to_numeric(df[price_col], errors='coerce').to_numpy(),
        }))
        observations = observations[
            (observations['date'] >= start_ts) & (observations['date'] <= end_ts)
        ].reset_index(drop=True)

        if observations.empty:
            raise YFinanceEmptyDataError(
                f"No valid prices for ticker '{symbol}' in date range "
                f"[{start_ts.date()}, {end_ts.date()}] after cleaning."
            )
        return observations

    def fetch_ticker_with_retry(
        self,
        ticker: str,
        start: "str | dt.date | pd.Timestamp",
        end: "str | dt.date | pd.Timestamp",
    ) -> pd.DataFrame:
        """
        `fetch_ticker` with exponential backoff plus jitter on failure.

        Raises:
            YFinanceEmptyDataError: Immediately, without retrying.
            YFinanceError: After the last attempt fails.
        """
        attempts = self.settings.max_retries
        for attempt in range(1, attempts + 1):
            try:
                return self.fetch_ticker(ticker, start, end)
            except YFinanceEmptyDataError:
                raise
            except YFinanceError as e:
                if attempt == attempts:
                    raise
                wait = self.settings.retry_backoff_seconds * 2 ** (attempt - 1) + random.uniform(0, 1)
                logger.warning(
                    "Retry %d/%d for %s after error: %s (waiting %.1fs)",
                    attempt, attempts, ticker, e, wait,
                )
                self._sleep(wait)
        raise YFinanceError(f"No attempts made for ticker '{ticker}'")

    def fetch_universe(
        self,
        tickers: list[str],
        start: "str | dt.date | pd.Timestamp",
        end: "str | dt.date | pd.Timestamp",
    ) -> UniverseFetchResult:
        """
        Fetch every ticker in batches; failures are collected, not raised.

        Returns:
            UniverseFetchResult with combined observations (sorted by date,
            ticker), the tickers that succeeded and the failures by ticker.
        """
        result = UniverseFetchResult(observations=_empty_observations())
        frames = []
        batch_size = self.settings.batch_size
        n_batches = (len(tickers) + batch_size - 1) // batch_size

        for batch_no, offset in enumerate(range(0, len(tickers), batch_size), start=1):
            batch = tickers[offset:offset + batch_size]
            logger.info("Fetching batch %d/%d (%d tickers)", batch_no, n_batches, len(batch))
            for ticker in batch:
                try:
                    frames.append(self.fetch_ticker_with_retry(ticker, start, end))
                    result.succeeded.append(ticker)
                except (YFinanceError, ValueError) as e:
                    logger.warning("Failed to fetch %s: %s", ticker, e)
                    result.failed[ticker] = str(e)
                self._sleep(self.settings.sleep_seconds)

        if frames:
            combined = pd.concat(frames, ignore_index=True)
            result.observations = clean_price_observations(combined)
        logger.info(
            "Fetched %d observations for %d tickers (%d failed)",
            len(result.observations), len(result.succeeded), len(result.failed),
        )
        return result

    def fetch_price_observations(
        self,
        start: "str | dt.date | pd.Timestamp",
        end: "str | dt.date | pd.Timestamp",
    ) -> pd.DataFrame:
        return self.fetch_universe(self.universe, start, end).observations[PRICE_OBSERVATION_COLUMNS]

    def fetch_volatility_history(
        self,
        tickers: list[str],
        start: "str | dt.date | pd.Timestamp",
        end: "str | dt.date | pd.Timestamp",
    ) -> pd.DataFrame:
        return pivot_price_panel(self.fetch_universe(list(tickers), start, end).observations)
