"""
CSV readers and writers for price observations and backtest results.

**Conceptual**: This module is the only CSV boundary of the system. Price
observations are stored in the long format `date,ticker,adj_close` (one row
per ticker per trading day). Results (strategy returns, metrics) are written
here too, so the actions never call pd.read_csv / df.to_csv directly.

**Rule**: Malformed price rows are skipped on read (see
`clean_price_observations`); structural problems such as a missing column
raise SchemaValidationError. Wide files (`Date,AAPL,MSFT,...`) are accepted on
read and melted into the long format.
"""

import json
import logging
from pathlib import Path

import pandas as pd

from momentum_backtest.data.schemas import (
    PRICE_OBSERVATION_COLUMNS,
    SchemaValidationError,
    clean_price_observations,
    validate_price_observations,
)
from momentum_backtest.utils.time import to_timestamp

logger = logging.getLogger(__name__)


def _melt_wide_prices(df: pd.DataFrame) -> pd.DataFrame:
    """Convert a wide `Date,T1,T2,...` frame into long observations."""
    date_col = df.columns[0]
    long_df = df.melt(id_vars=[date_col], var_name='ticker', value_name='adj_close')
    return long_df.rename(columns={date_col: 'date'})


def read_price_observations_csv(
    path: Path | str,
    start: "str | pd.Timestamp | None" = None,
    end: "str | pd.Timestamp | None" = None,
) -> pd.DataFrame:
    """
    Read price observations from a CSV file, optionally filtered to [start, end].

    **Functionally**:
      - Accepts the long format (`date,ticker,adj_close`) or a wide format
        whose first column is the date and remaining columns are tickers.
      - Drops malformed rows (bad dates, non-numeric or non-positive prices).
      - Filters to the inclusive date window when bounds are given.
      - Returns observations sorted by date then ticker.

    Args:
        path: Path to the CSV file.
        start: Optional inclusive lower date bound.
        end: Optional inclusive upper date bound.

    Returns:
        DataFrame with columns date (datetime64), ticker (str), adj_close (float).

    Raises:
        FileNotFoundError: If the file doesn't exist.
        SchemaValidationError: If the file can't be parsed or lacks a usable layout.
    """
    path = Path(path)
    context = str(path)

    if not path.exists():
        raise FileNotFoundError(
            f"Price CSV not found: {path}. "
            f"Fetch prices first (actions/fetch_price_history_yfinance.py) "
            f"or point MOMENTUM_PRICES_CSV at an existing file."
        )

    try:
        raw = pd.read_csv(path)
    except Exception as e:
        raise SchemaValidationError(f"{context}: Failed to read CSV. Error: {e}")

    columns = [str(c).strip() for c in raw.columns]
    raw.columns = columns
    lowered = {c.lower(): c for c in columns}

    if {'date', 'ticker', 'adj_close'} <= set(lowered):
        raw = raw.rename(columns={lowered[k]: k for k in PRICE_OBSERVATION_COLUMNS})
    elif len(columns) >= 2 and columns[0].lower() == 'date':
        raw = _melt_wide_prices(raw)
    else:
        raise SchemaValidationError(
            f"{context}: Unrecognized price layout. Expected long columns "
            f"{PRICE_OBSERVATION_COLUMNS} or a wide layout starting with a 'Date' column. "
            f"Found columns: {columns}."
        )

    n_raw = len(raw)
    observations = clean_price_observations(raw)
    if len(observations) < n_raw:
        logger.debug("%s: skipped %d malformed rows", context, n_raw - len(observations))

    if start is not None:
        observations = observations[observations['date'] >= to_timestamp(start)]
    if end is not None:
        observations = observations[observations['date'] <= to_timestamp(end)]

    observations = observations.reset_index(drop=True)
    validate_price_observations(observations, context=context)
    return observations


def write_price_observations_csv(
    df: pd.DataFrame,
    path: Path | str,
) -> None:
    """
    Write price observations to CSV in the canonical long format.

    Rows are validated, sorted by date then ticker and written with dates as
    `YYYY-MM-DD`. The parent directory is created if needed.

    Raises:
        SchemaValidationError: If the DataFrame violates the schema.
        OSError: If the file can't be written.
    """
    path = Path(path)
    validate_price_observations(df, context=str(path))

    path.parent.mkdir(parents=True, exist_ok=True)
    df_to_write = df[PRICE_OBSERVATION_COLUMNS].sort_values(['date', 'ticker']).copy()
    df_to_write['date'] = df_to_write['date'].dt.strftime('%Y-%m-%d')

    try:
        df_to_write.to_csv(path, index=False)
    except Exception as e:
        raise OSError(f"Failed to write CSV to {path}. Error: {e}")


def write_strategy_returns_csv(
    strategy_returns: pd.Series,
    path: Path | str,
) -> None:
    """
    Write the sparse strategy return series as `date,net_return`.

    Raises:
        OSError: If the file can't be written.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    df = pd.DataFrame({
        'date': pd.DatetimeIndex(strategy_returns.index).strftime('%Y-%m-%d'),
        'net_return': strategy_returns.to_numpy(dtype=float),
    })
    try:
        df.to_csv(path, index=False)
    except Exception as e:
        raise OSError(f"Failed to write CSV to {path}. Error: {e}")


def write_metrics_json(
    metrics: dict,
    path: Path | str,
) -> None:
    """
    Write a metrics dictionary (e.g. MetricsReport.to_dict()) as indented JSON.

    Raises:
        OSError: If the file can't be written.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    try:
        path.write_text(json.dumps(metrics, indent=2, sort_keys=True), encoding='utf-8')
    except Exception as e:
        raise OSError(f"Failed to write JSON to {path}. Error: {e}")
