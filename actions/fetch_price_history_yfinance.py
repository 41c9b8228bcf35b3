#!/usr/bin/env python3
"""
Fetch adjusted-close history from Yahoo Finance into the local price store.

**Conceptual**: This script fetches daily adjusted closes for the configured
ticker universe via yfinance and writes them in the long format
`date,ticker,adj_close` to the CSV store (and optionally a SQLite store).
Existing rows are kept; freshly fetched rows overwrite them on (date, ticker).

After the fetch, tickers present on fewer than 80% of the stored dates are
removed, so names with patchy histories never reach the backtest.

**Usage**:
    # Fetch the universe from .env (MOMENTUM_UNIVERSE or MOMENTUM_UNIVERSE_FILE)
    python actions/fetch_price_history_yfinance.py

    # Fetch specific tickers
    python actions/fetch_price_history_yfinance.py --tickers AAPL,MSFT,NVDA

    # Also write to SQLite
    python actions/fetch_price_history_yfinance.py --db data/raw/prices.sqlite

**Rate limiting**:
    Tickers are fetched in batches of YFINANCE_BATCH_SIZE (50) with a
    YFINANCE_SLEEP_SECONDS (2s) pause per ticker and up to
    YFINANCE_MAX_RETRIES (3) attempts with exponential backoff.

**Exit codes**:
  - 0: Success (all tickers fetched)
  - 1: Partial failure (some tickers failed)
  - 2: Total failure (no tickers fetched, or bad arguments)
"""

import argparse
import datetime as dt
import logging
import sys
from pathlib import Path

import pandas as pd

# Add project root to Python path so we can import momentum_backtest
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from momentum_backtest.config.settings import get_settings, parse_universe
from momentum_backtest.data.io import read_price_observations_csv, write_price_observations_csv
from momentum_backtest.data.panel import (
    DEFAULT_COVERAGE_THRESHOLD,
    drop_low_coverage_tickers,
    pivot_price_panel,
)
from momentum_backtest.data.schemas import SchemaValidationError, clean_price_observations
from momentum_backtest.venues.sqlite_price_store import SqlitePricePanelProvider
from momentum_backtest.venues.yfinance_price_fetcher import YFinancePriceFetcher


def merge_observations(existing: pd.DataFrame, new: pd.DataFrame) -> pd.DataFrame:
    """
    Merge stored and freshly fetched observations.

    Rows for the same (date, ticker) are taken from `new`; everything else
    from both sides is kept.
    """
    if existing.empty:
        return new.copy()
    if new.empty:
        return existing.copy()
    return clean_price_observations(pd.concat([existing, new], ignore_index=True))


def purge_low_coverage(
    observations: pd.DataFrame,
    threshold: float = DEFAULT_COVERAGE_THRESHOLD,
) -> tuple[pd.DataFrame, list[str]]:
    """Drop every observation of tickers stored on < threshold of the dates."""
    if observations.empty:
        return observations, []
    _, dropped = drop_low_coverage_tickers(pivot_price_panel(observations), threshold)
    kept = observations[~observations['ticker'].isin(dropped)].reset_index(drop=True)
    return kept, dropped


def main():
    """
    Main entry point for the Yahoo Finance fetch script.

    **Workflow**:
      1. Parse arguments and load settings.
      2. Fetch the universe in batches (failures collected, not fatal).
      3. Merge with the existing CSV, purge low-coverage tickers.
      4. Write the CSV (and SQLite, if requested).
    """
    parser = argparse.ArgumentParser(
        description="Fetch adjusted closes from Yahoo Finance into the price store.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("--start", type=str, default=None,
                        help="Start date (YYYY-MM-DD). Default: YFINANCE_HISTORY_START (2000-01-03).")
    parser.add_argument("--end", type=str, default=None,
                        help="End date (YYYY-MM-DD). Default: MOMENTUM_END_DATE.")
    parser.add_argument("--tickers", type=str, default=None,
                        help="Comma-separated tickers. Default: the configured universe.")
    parser.add_argument("--csv", type=str, default=None,
                        help="Output CSV. Default: MOMENTUM_PRICES_CSV.")
    parser.add_argument("--db", type=str, default=None,
                        help="Also upsert into this SQLite store.")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    try:
        settings = get_settings(require_universe=args.tickers is None)
        start_date = (
            dt.date.fromisoformat(args.start) if args.start else settings.yfinance.history_start
        )
        end_date = dt.date.fromisoformat(args.end) if args.end else settings.data.end_date
    except ValueError as e:
        print(f"ERROR: {e}")
        sys.exit(2)

    if start_date > end_date:
        print(f"ERROR: start_date ({start_date}) must be <= end_date ({end_date}).")
        sys.exit(2)

    tickers = list(parse_universe(args.tickers)) if args.tickers else list(settings.data.universe)
    if not tickers:
        print("ERROR: No tickers specified.")
        sys.exit(2)

    csv_path = Path(args.csv) if args.csv else settings.data.prices_csv
    db_path = args.db or settings.data.prices_db

    print("=" * 60)
    print("Yahoo Finance Price Fetch")
    print("=" * 60)
    print(f"Date range: {start_date} to {end_date}")
    print(f"Tickers: {len(tickers)} ({', '.join(tickers[:10])}{', ...' if len(tickers) > 10 else ''})")
    print(f"Output CSV: {csv_path}")
    if db_path:
        print(f"Output SQLite: {db_path}")
    print("=" * 60)

    fetcher = YFinancePriceFetcher(settings.yfinance, universe=tickers)
    result = fetcher.fetch_universe(tickers, start_date, end_date)

    if result.observations.empty:
        print("\nERROR: No data fetched for any ticker.")
        for ticker, reason in result.failed.items():
            print(f"  {ticker}: {reason}")
        sys.exit(2)

    existing = pd.DataFrame(columns=['date', 'ticker', 'adj_close'])
    if csv_path.exists():
        try:
            existing = read_price_observations_csv(csv_path)
            print(f"\nLoaded {len(existing)} existing rows from {csv_path}")
        except SchemaValidationError as e:
            print(f"\nWARNING: Existing CSV unreadable ({e}); it will be overwritten.")

    merged = merge_observations(existing, result.observations)
    merged, dropped = purge_low_coverage(merged)
    if dropped:
        print(f"Dropped {len(dropped)} tickers below {DEFAULT_COVERAGE_THRESHOLD:.0%} coverage: "
              f"{', '.join(dropped)}")

    write_price_observations_csv(merged, csv_path)
    print(f"✓ Wrote {len(merged)} rows to {csv_path}")

    if db_path:
        written = SqlitePricePanelProvider(db_path).write_observations(merged)
        print(f"✓ Upserted {written} rows into {db_path}")

    print()
    print("=" * 60)
    print(f"Succeeded: {len(result.succeeded)}  Failed: {len(result.failed)}")
    for ticker, reason in result.failed.items():
        print(f"  ✗ {ticker}: {reason}")
    print("=" * 60)

    sys.exit(1 if result.failed else 0)


if __name__ == "__main__":
    main()
