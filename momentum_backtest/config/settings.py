"""
Configuration settings for the momentum backtest.

**Conceptual**: This module provides strongly-typed configuration objects that
load from environment variables (via .env files). All settings are validated
at construction, so a bad span or an inverted date range fails at startup
instead of halfway through a backtest.

**Why centralized config?**
  - Single source of truth for strategy parameters, data locations and the
    ticker universe.
  - Easy to test (construct settings directly instead of reading the environment).
  - The ticker universe is configuration, never a constant inside the engine.

This module uses python-dotenv to load .env files and dataclasses for type safety.
"""

import datetime as dt
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

# Load .env from project root (no-op if the file doesn't exist)
PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
load_dotenv(dotenv_path=PROJECT_ROOT / ".env")


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name, str(default))
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got: {raw}")


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name, str(default))
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got: {raw}")


def _env_date(name: str, default: str) -> dt.date:
    raw = os.getenv(name, default)
    try:
        return dt.date.fromisoformat(raw)
    except ValueError:
        raise ValueError(f"{name} must be an ISO date (YYYY-MM-DD), got: {raw}")


@dataclass(frozen=True)
class StrategySettings:
    """
    Parameters of the risk-reduced momentum strategy.

    **Conceptual**: Every number that shapes a backtest lives here: indicator
    spans, selection policy, risk limits and cost assumptions. Keeping them in
    one frozen dataclass makes parameter sweeps and reproducibility trivial
    (the settings object fully describes the run).

    Attributes:
        ema_span: Span of the fast exponential moving average (months).
        sma_span: Window of the slow simple moving average (months). Also the
                  burn-in length: no signal exists before this many months.
        uptrend_threshold: Minimum EMA/SMA ratio for a ticker to be a candidate.
        quintile: Fraction of ranked candidates selected (0.2 = top quintile).
        min_stocks: Minimum number of candidates (and of selected names).
        min_universe_size: Minimum number of scored tickers on a rebalance date.
        position_cap: Per-name weight cap applied before renormalization.
        stop_loss_floor: Floor on the gross quarterly return (e.g. -0.10).
        tx_cost_rate: Transaction cost rate per unit of turnover.
        assumed_turnover: Assumed turnover per rebalance.
        risk_free_rate: Annualized risk-free rate for Sharpe and Sortino.
        default_volatility: Annualized volatility used when an estimate is unavailable.
        min_volatility_observations: Daily returns required for a volatility estimate.
        volatility_window: Trailing daily returns used for a volatility estimate.
        coverage_threshold: Fraction of month-ends a ticker must cover to stay in the panel.
        rebalance_interval: Months between rebalances.
    """
    ema_span: int = 12
    sma_span: int = 50
    uptrend_threshold: float = 0.95
    quintile: float = 0.2
    min_stocks: int = 10
    min_universe_size: int = 20
    position_cap: float = 0.05
    stop_loss_floor: float = -0.10
    tx_cost_rate: float = 0.001
    assumed_turnover: float = 0.25
    risk_free_rate: float = 0.02
    default_volatility: float = 0.20
    min_volatility_observations: int = 30
    volatility_window: int = 252
    coverage_threshold: float = 0.8
    rebalance_interval: int = 3

    def __post_init__(self):
        """Validate settings after initialization."""
        if self.ema_span < 1:
            raise ValueError(f"ema_span must be >= 1, got: {self.ema_span}")
        if self.sma_span < 1:
            raise ValueError(f"sma_span must be >= 1, got: {self.sma_span}")
        if not 0.0 < self.quintile <= 1.0:
            raise ValueError(f"quintile must be in (0, 1], got: {self.quintile}")
        if self.min_stocks < 1:
            raise ValueError(f"min_stocks must be >= 1, got: {self.min_stocks}")
        if self.min_universe_size < 0:
            raise ValueError(
                f"min_universe_size must be non-negative, got: {self.min_universe_size}"
            )
        if not 0.0 < self.position_cap <= 1.0:
            raise ValueError(f"position_cap must be in (0, 1], got: {self.position_cap}")
        if self.stop_loss_floor > 0:
            raise ValueError(
                f"stop_loss_floor must be <= 0 (a loss floor), got: {self.stop_loss_floor}"
            )
        if self.tx_cost_rate < 0 or self.assumed_turnover < 0:
            raise ValueError(
                "tx_cost_rate and assumed_turnover must be non-negative, got: "
                f"{self.tx_cost_rate}, {self.assumed_turnover}"
            )
        if self.default_volatility <= 0:
            raise ValueError(
                f"default_volatility must be positive, got: {self.default_volatility}"
            )
        if self.min_volatility_observations < 2:
            raise ValueError(
                "min_volatility_observations must be >= 2 for a sample standard deviation, "
                f"got: {self.min_volatility_observations}"
            )
        if self.volatility_window < self.min_volatility_observations:
            raise ValueError(
                f"volatility_window ({self.volatility_window}) must be >= "
                f"min_volatility_observations ({self.min_volatility_observations})"
            )
        if not 0.0 <= self.coverage_threshold <= 1.0:
            raise ValueError(
                f"coverage_threshold must be in [0, 1], got: {self.coverage_threshold}"
            )
        if self.rebalance_interval < 1:
            raise ValueError(
                f"rebalance_interval must be >= 1, got: {self.rebalance_interval}"
            )

    @property
    def cost_haircut(self) -> float:
        """Multiplier applied to gross returns: 1 - tx_cost_rate * assumed_turnover."""
        return 1.0 - self.tx_cost_rate * self.assumed_turnover

    @classmethod
    def from_env(cls) -> "StrategySettings":
        """
        Load strategy settings from environment variables.

        **Environment variables** (all optional, defaults shown on the class):
          - MOMENTUM_EMA_SPAN, MOMENTUM_SMA_SPAN
          - MOMENTUM_UPTREND_THRESHOLD, MOMENTUM_QUINTILE
          - MOMENTUM_MIN_STOCKS, MOMENTUM_MIN_UNIVERSE_SIZE
          - MOMENTUM_POSITION_CAP, MOMENTUM_STOP_LOSS_FLOOR
          - MOMENTUM_TX_COST_RATE, MOMENTUM_ASSUMED_TURNOVER
          - MOMENTUM_RISK_FREE_RATE, MOMENTUM_DEFAULT_VOLATILITY
          - MOMENTUM_MIN_VOLATILITY_OBSERVATIONS, MOMENTUM_VOLATILITY_WINDOW
          - MOMENTUM_COVERAGE_THRESHOLD, MOMENTUM_REBALANCE_INTERVAL

        Raises:
            ValueError: If a variable can't be parsed or a value is out of range.
        """
        defaults = cls()
        return cls(
            ema_span=_env_int("MOMENTUM_EMA_SPAN", defaults.ema_span),
            sma_span=_env_int("MOMENTUM_SMA_SPAN", defaults.sma_span),
            uptrend_threshold=_env_float("MOMENTUM_UPTREND_THRESHOLD", defaults.uptrend_threshold),
            quintile=_env_float("MOMENTUM_QUINTILE", defaults.quintile),
            min_stocks=_env_int("MOMENTUM_MIN_STOCKS", defaults.min_stocks),
            min_universe_size=_env_int("MOMENTUM_MIN_UNIVERSE_SIZE", defaults.min_universe_size),
            position_cap=_env_float("MOMENTUM_POSITION_CAP", defaults.position_cap),
            stop_loss_floor=_env_float("MOMENTUM_STOP_LOSS_FLOOR", defaults.stop_loss_floor),
            tx_cost_rate=_env_float("MOMENTUM_TX_COST_RATE", defaults.tx_cost_rate),
            assumed_turnover=_env_float("MOMENTUM_ASSUMED_TURNOVER", defaults.assumed_turnover),
            risk_free_rate=_env_float("MOMENTUM_RISK_FREE_RATE", defaults.risk_free_rate),
            default_volatility=_env_float("MOMENTUM_DEFAULT_VOLATILITY", defaults.default_volatility),
            min_volatility_observations=_env_int(
                "MOMENTUM_MIN_VOLATILITY_OBSERVATIONS", defaults.min_volatility_observations
            ),
            volatility_window=_env_int("MOMENTUM_VOLATILITY_WINDOW", defaults.volatility_window),
            coverage_threshold=_env_float("MOMENTUM_COVERAGE_THRESHOLD", defaults.coverage_threshold),
            rebalance_interval=_env_int("MOMENTUM_REBALANCE_INTERVAL", defaults.rebalance_interval),
        )


def parse_universe(raw: str) -> tuple[str, ...]:
    """
    Parse a ticker universe from comma- or newline-separated text.

    Blank entries and `#` comments are ignored, tickers are upper-cased and
    de-duplicated preserving first occurrence.
    """
    tickers: list[str] = []
    for line in raw.replace(",", "\n").splitlines():
        ticker = line.split("#", 1)[0].strip().upper()
        if ticker and ticker not in tickers:
            tickers.append(ticker)
    return tuple(tickers)


@dataclass(frozen=True)
class DataSettings:
    """
    Where prices live and which window / universe to backtest.

    Attributes:
        start_date: First date of the backtest window (inclusive).
        end_date: Last date of the backtest window (inclusive).
        prices_csv: Path of the long-format price CSV (date,ticker,adj_close).
        prices_db: Optional path of a SQLite store with a `prices` table.
                   When set, it takes precedence over the CSV.
        universe: Ticker universe to fetch. Empty means "whatever the store holds".
        min_rows: Minimum stored observations after start_date for the store
                  to count as sufficient (otherwise the fetch action refetches).
    """
    start_date: dt.date = dt.date(2005, 1, 3)
    end_date: dt.date = dt.date(2025, 10, 17)
    prices_csv: Path = PROJECT_ROOT / "data" / "raw" / "stock_prices.csv"
    prices_db: Optional[Path] = None
    universe: tuple[str, ...] = field(default_factory=tuple)
    min_rows: int = 1000

    def __post_init__(self):
        """Validate settings after initialization."""
        if self.start_date > self.end_date:
            raise ValueError(
                f"start_date ({self.start_date}) must be <= end_date ({self.end_date})"
            )
        if self.min_rows < 0:
            raise ValueError(f"min_rows must be non-negative, got: {self.min_rows}")

    @classmethod
    def from_env(cls) -> "DataSettings":
        """
        Load data settings from environment variables.

        **Environment variables**:
          - MOMENTUM_START_DATE / MOMENTUM_END_DATE (ISO dates).
          - MOMENTUM_PRICES_CSV: price CSV path (default data/raw/stock_prices.csv).
          - MOMENTUM_PRICES_DB: optional SQLite path.
          - MOMENTUM_UNIVERSE: comma-separated tickers, or
            MOMENTUM_UNIVERSE_FILE: file with one ticker per line.
          - MOMENTUM_MIN_ROWS: sufficiency threshold (default 1000).

        Raises:
            ValueError: If a variable can't be parsed, or the universe file is missing.
        """
        defaults = cls()
        universe_raw = os.getenv("MOMENTUM_UNIVERSE", "")
        universe_file = os.getenv("MOMENTUM_UNIVERSE_FILE", "")
        if not universe_raw and universe_file:
            path = Path(universe_file)
            if not path.exists():
                raise ValueError(f"MOMENTUM_UNIVERSE_FILE not found: {path}")
            universe_raw = path.read_text(encoding="utf-8")

        prices_db = os.getenv("MOMENTUM_PRICES_DB", "")
        return cls(
            start_date=_env_date("MOMENTUM_START_DATE", defaults.start_date.isoformat()),
            end_date=_env_date("MOMENTUM_END_DATE", defaults.end_date.isoformat()),
            prices_csv=Path(os.getenv("MOMENTUM_PRICES_CSV", str(defaults.prices_csv))),
            prices_db=Path(prices_db) if prices_db else None,
            universe=parse_universe(universe_raw),
            min_rows=_env_int("MOMENTUM_MIN_ROWS", defaults.min_rows),
        )


@dataclass(frozen=True)
class YFinanceSettings:
    """
    Configuration for fetching adjusted closes from Yahoo Finance.

    **Rate limiting**: Yahoo throttles aggressive clients (HTTP 429). Tickers
    are fetched in batches with a polite pause after each ticker, and failed
    requests are retried with exponential backoff plus jitter.

    Attributes:
        history_start: First date to request (earlier than the backtest start
                       so the SMA burn-in has data).
        batch_size: Tickers per batch (progress is reported per batch).
        max_retries: Attempts per ticker before giving up on it.
        retry_backoff_seconds: Base backoff; attempt n waits base * 2**(n-1) + jitter.
        sleep_seconds: Pause after each ticker.
        timeout_seconds: Request timeout passed to yfinance.
    """
    history_start: dt.date = dt.date(2000, 1, 3)
    batch_size: int = 50
    max_retries: int = 3
    retry_backoff_seconds: float = 5.0
    sleep_seconds: float = 2.0
    timeout_seconds: int = 10

    def __post_init__(self):
        """Validate settings after initialization."""
        if self.batch_size < 1:
            raise ValueError(f"batch_size must be >= 1, got: {self.batch_size}")
        if self.max_retries < 1:
            raise ValueError(f"max_retries must be >= 1, got: {self.max_retries}")
        if self.retry_backoff_seconds < 0 or self.sleep_seconds < 0:
            raise ValueError(
                "retry_backoff_seconds and sleep_seconds must be non-negative, got: "
                f"{self.retry_backoff_seconds}, {self.sleep_seconds}"
            )

    @classmethod
    def from_env(cls) -> "YFinanceSettings":
        """
        Load YFinance settings from environment variables.

        **Environment variables** (all optional):
          - YFINANCE_HISTORY_START, YFINANCE_BATCH_SIZE, YFINANCE_MAX_RETRIES,
            YFINANCE_RETRY_BACKOFF_SECONDS, YFINANCE_SLEEP_SECONDS,
            YFINANCE_TIMEOUT_SECONDS
        """
        defaults = cls()
        return cls(
            history_start=_env_date("YFINANCE_HISTORY_START", defaults.history_start.isoformat()),
            batch_size=_env_int("YFINANCE_BATCH_SIZE", defaults.batch_size),
            max_retries=_env_int("YFINANCE_MAX_RETRIES", defaults.max_retries),
            retry_backoff_seconds=_env_float(
                "YFINANCE_RETRY_BACKOFF_SECONDS", defaults.retry_backoff_seconds
            ),
            sleep_seconds=_env_float("YFINANCE_SLEEP_SECONDS", defaults.sleep_seconds),
            timeout_seconds=_env_int("YFINANCE_TIMEOUT_SECONDS", defaults.timeout_seconds),
        )


@dataclass(frozen=True)
class Settings:
    """
    Global settings for the backtest system.

    **Usage pattern**:
      ```python
      from momentum_backtest.config.settings import get_settings

      settings = get_settings()
      settings.strategy.sma_span   # 50
      settings.data.universe       # ("AAPL", "MSFT", ...)
      ```

    Attributes:
        strategy: Strategy parameters.
        data: Data window, storage locations and universe.
        yfinance: Yahoo Finance fetch settings.
    """
    strategy: StrategySettings = field(default_factory=StrategySettings)
    data: DataSettings = field(default_factory=DataSettings)
    yfinance: YFinanceSettings = field(default_factory=YFinanceSettings)

    @classmethod
    def from_env(cls, require_universe: bool = False) -> "Settings":
        """
        Load all settings from environment variables.

        Args:
            require_universe: If True, raise when no ticker universe is
                              configured (fetching needs one; backtesting a
                              stored panel does not).

        Raises:
            ValueError: On invalid values, or a missing universe when required.
        """
        data = DataSettings.from_env()
        if require_universe and not data.universe:
            raise ValueError(
                "A ticker universe is required but not set. "
                "Set MOMENTUM_UNIVERSE (comma-separated) or MOMENTUM_UNIVERSE_FILE "
                "in your .env file or environment variables."
            )
        return cls(
            strategy=StrategySettings.from_env(),
            data=data,
            yfinance=YFinanceSettings.from_env(),
        )


def get_settings(require_universe: bool = False) -> Settings:
    """Convenience wrapper around Settings.from_env()."""
    return Settings.from_env(require_universe=require_universe)
