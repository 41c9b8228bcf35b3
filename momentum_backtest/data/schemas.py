"""
Price observation schema and validation.

**Conceptual**: This module defines the "data contract" for price data in the
system. Every adapter (CSV file, SQLite table, Yahoo Finance) hands the core
the same long-format observation table:

    date, ticker, adj_close

one row per (date, ticker), with a strictly positive adjusted close. Keeping
one contract means the signal engine and the benchmark never need to know
which store the prices came from.

**Schema philosophy**:
  - `date` is a calendar date (parsed to datetime64, no time component).
  - `ticker` is a non-empty string.
  - `adj_close` is a positive float.
  - (date, ticker) pairs are unique.
  - Structural problems (missing columns) raise SchemaValidationError.
    Individual malformed rows are not structural: adapters drop them with
    `clean_price_observations` before the data reaches the core.
"""

import pandas as pd


class SchemaValidationError(Exception):
    """
    Raised when a DataFrame does not conform to the price observation schema.

    Messages include the source context (file path, table name) so the
    offending input is easy to locate.
    """
    pass


class InsufficientDataError(ValueError):
    """
    Raised when there is not enough price data to run or evaluate a backtest.

    **Conceptual**: An empty panel after loading and cleaning is a hard
    failure, not an empty-but-valid result. Callers (the pipeline and the
    actions) let this propagate so the user sees why nothing was computed.
    """
    pass


PRICE_OBSERVATION_COLUMNS = ['date', 'ticker', 'adj_close']


def validate_price_observations(
    df: pd.DataFrame,
    context: str | None = None,
) -> None:
    """
    Validate that a DataFrame conforms to the long price observation schema.

    **Functionally**:
      - Checks that `date`, `ticker` and `adj_close` columns are present.
      - Verifies `date` is datetime64 and `adj_close` is numeric.
      - Rejects non-positive or missing prices.
      - Rejects duplicate (date, ticker) pairs.

    Args:
        df: DataFrame to validate.
        context: Optional description of the source for error messages.

    Raises:
        SchemaValidationError: On any violation.
    """
    ctx = f"{context}: " if context else ""

    missing_cols = set(PRICE_OBSERVATION_COLUMNS) - set(df.columns)
    if missing_cols:
        raise SchemaValidationError(
            f"{ctx}Missing required columns: {sorted(missing_cols)}. "
            f"Expected columns: {PRICE_OBSERVATION_COLUMNS}. "
            f"Found columns: {list(df.columns)}."
        )

    if df.empty:
        return

    if not pd.api.types.is_datetime64_any_dtype(df['date']):
        raise SchemaValidationError(
            f"{ctx}'date' column must be datetime64, got {df['date'].dtype}. "
            f"Parse it with pd.to_datetime before validating."
        )

    if not pd.api.types.is_numeric_dtype(df['adj_close']):
        raise SchemaValidationError(
            f"{ctx}'adj_close' column must be numeric, got {df['adj_close'].dtype}."
        )

    bad_prices = df['adj_close'].isna() | (df['adj_close'] <= 0)
    if bad_prices.any():
        bad_rows = df.index[bad_prices].tolist()
        raise SchemaValidationError(
            f"{ctx}'adj_close' must be positive and present. "
            f"Violations at row indices: {bad_rows[:5]} (showing first 5)."
        )

    duplicated = df.duplicated(subset=['date', 'ticker'])
    if duplicated.any():
        dup_rows = df.index[duplicated].tolist()
        raise SchemaValidationError(
            f"{ctx}Duplicate (date, ticker) observations at row indices: "
            f"{dup_rows[:5]} (showing first 5)."
        )


def clean_price_observations(df: pd.DataFrame) -> pd.DataFrame:
    """
    Drop malformed observation rows and coerce dtypes to the schema.

    **Conceptual**: Raw stores are not trusted. A row with an unparseable date,
    a non-numeric or non-positive price, or an empty ticker is skipped rather
    than failing the whole load. Duplicate (date, ticker) rows keep the last
    occurrence (later writes overwrite earlier ones).

    Args:
        df: DataFrame with at least date, ticker, adj_close columns (any dtypes).

    Returns:
        New DataFrame with exactly the schema columns, sorted by date then ticker.

    Raises:
        SchemaValidationError: If a required column is missing.
    """
    missing_cols = set(PRICE_OBSERVATION_COLUMNS) - set(df.columns)
    if missing_cols:
        raise SchemaValidationError(
            f"Missing required columns: {sorted(missing_cols)}. "
            f"Found columns: {list(df.columns)}."
        )

    out = df[PRICE_OBSERVATION_COLUMNS].copy()
    out['date'] = pd.to_datetime(out['date'], errors='coerce').dt.normalize()
    out['adj_close'] = pd.to_numeric(out['adj_close'], errors='coerce')
    out['ticker'] = out['ticker'].where(out['ticker'].notna(), '').astype(str).str.strip()

    valid = (
        out['date'].notna()
        & (out['ticker'] != '')
        & out['adj_close'].notna()
        & (out['adj_close'] > 0)
    )
    out = out[valid]
    out = out.drop_duplicates(subset=['date', 'ticker'], keep='last')
    return out.sort_values(['date', 'ticker']).reset_index(drop=True)
