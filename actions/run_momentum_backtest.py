#!/usr/bin/env python3
"""
Run the risk-reduced momentum backtest and save results.

**Purpose**: This script demonstrates how to:
  1. Load settings (.env / environment variables).
  2. Check that the price store covers the backtest window.
  3. Run the pipeline (monthly panel, signals, quarterly rebalances, metrics).
  4. Print the strategy vs benchmark metrics table.
  5. Save results to data/results/.

**Usage**:
    From project root:
    ```bash
    python actions/run_momentum_backtest.py
    python actions/run_momentum_backtest.py --start 2010-01-01 --end 2020-12-31
    python actions/run_momentum_backtest.py --db data/raw/prices.sqlite
    ```

**Outputs** (saved to data/results/):
  - momentum_strategy_returns.csv: Net return per recorded rebalance.
  - momentum_rebalance_log.csv: Every due rebalance, recorded or skipped (with reason).
  - momentum_metrics.json: Strategy and benchmark metrics.
  - momentum_growth.png: Cumulative growth of the daily proxy vs the benchmark.

**Exit codes**:
  - 0: Success
  - 1: Price store insufficient for the window (fetch first)
  - 2: Backtest failed (bad settings, insufficient data)
"""

import argparse
import logging
import sys
from pathlib import Path

import matplotlib

matplotlib.use('Agg')  # Non-interactive backend
import matplotlib.pyplot as plt

# Ensure project root is on path for imports
repo_root = Path(__file__).parent.parent
if str(repo_root) not in sys.path:
    sys.path.insert(0, str(repo_root))

from momentum_backtest.analytics.benchmark import compute_equal_weight_benchmark
from momentum_backtest.analytics.interpolation import interpolate_to_daily
from momentum_backtest.analytics.performance import align_daily_returns
from momentum_backtest.analytics.report import format_metrics_table
from momentum_backtest.config.settings import get_settings
from momentum_backtest.data.io import write_metrics_json, write_strategy_returns_csv
from momentum_backtest.data.panel import check_panel_coverage
from momentum_backtest.data.schemas import InsufficientDataError, SchemaValidationError
from momentum_backtest.orchestration.pipeline import PipelineResult, run_momentum_pipeline
from momentum_backtest.utils.time import to_timestamp
from momentum_backtest.venues.csv_price_store import CsvPricePanelProvider
from momentum_backtest.venues.sqlite_price_store import SqlitePricePanelProvider


def save_growth_plot(result: PipelineResult, start, end, path: Path) -> None:
    """Plot cumulative growth of the strategy proxy and the benchmark."""
    aligned = align_daily_returns(
        interpolate_to_daily(result.backtest.strategy_returns, start, end),
        compute_equal_weight_benchmark(result.daily_prices),
    )
    growth = (1.0 + aligned).cumprod()

    fig, ax = plt.subplots(figsize=(12, 6))
    growth['strategy'].plot(ax=ax, label='Risk-Reduced Momentum (daily proxy)', linewidth=2)
    growth['benchmark'].plot(ax=ax, label='Equal-Weight Benchmark', linewidth=2, alpha=0.7)
    ax.set_xlabel('Date')
    ax.set_ylabel('Growth of 1')
    ax.set_title('Risk-Reduced Momentum vs Equal-Weight Benchmark')
    ax.legend()
    ax.grid(True, alpha=0.3)
    plt.tight_layout()
    plt.savefig(path, dpi=150)
    plt.close(fig)


def main():
    """
    Main entrypoint for the momentum backtest.

    Steps:
      1. Parse arguments and load settings.
      2. Check the price store covers the window.
      3. Run the pipeline.
      4. Print and save results.
    """
    parser = argparse.ArgumentParser(
        description="Run the risk-reduced momentum backtest.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("--start", type=str, default=None,
                        help="Start date (YYYY-MM-DD). Default: MOMENTUM_START_DATE or 2005-01-03.")
    parser.add_argument("--end", type=str, default=None,
                        help="End date (YYYY-MM-DD). Default: MOMENTUM_END_DATE or 2025-10-17.")
    parser.add_argument("--csv", type=str, default=None,
                        help="Price CSV path. Default: MOMENTUM_PRICES_CSV.")
    parser.add_argument("--db", type=str, default=None,
                        help="SQLite price store path (takes precedence over the CSV).")
    parser.add_argument("--results-dir", type=str, default="data/results",
                        help="Output directory. Default: data/results.")
    parser.add_argument("--no-plot", action="store_true", help="Skip the growth plot.")
    parser.add_argument("--verbose", action="store_true", help="Debug logging.")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    print("=" * 80)
    print("Risk-Reduced Momentum Backtest")
    print("=" * 80)
    print()

    # ========================================================================
    # Step 1: Settings
    # ========================================================================
    try:
        settings = get_settings()
        start = to_timestamp(args.start) if args.start else to_timestamp(settings.data.start_date)
        end = to_timestamp(args.end) if args.end else to_timestamp(settings.data.end_date)
    except ValueError as e:
        print(f"  ✗ Invalid configuration: {e}")
        sys.exit(2)

    db_path = args.db or settings.data.prices_db
    if db_path:
        provider = SqlitePricePanelProvider(db_path)
        source = f"SQLite {db_path}"
    else:
        csv_path = args.csv or settings.data.prices_csv
        provider = CsvPricePanelProvider(csv_path)
        source = f"CSV {csv_path}"

    print(f"Window: {start.date()} to {end.date()}")
    print(f"Prices: {source}")
    print()

    # ========================================================================
    # Step 2: Data sufficiency
    # ========================================================================
    print("Step 1: Checking price store coverage...")
    try:
        stored = provider.fetch_price_observations("1900-01-01", end)
    except (FileNotFoundError, SchemaValidationError) as e:
        print(f"  ✗ {e}")
        print("    Fetch prices first: python actions/fetch_price_history_yfinance.py")
        sys.exit(1)

    coverage = check_panel_coverage(stored, start, end, min_rows=settings.data.min_rows)
    if not coverage.sufficient:
        print(f"  ✗ Price store insufficient: {coverage.reason}")
        print("    Fetch prices first: python actions/fetch_price_history_yfinance.py")
        sys.exit(1)
    print(f"  ✓ {coverage.total_rows} rows ({coverage.rows_after_start} post-start), "
          f"dates {coverage.first_date.date()} to {coverage.last_date.date()}")
    print()

    # ========================================================================
    # Step 3: Run pipeline
    # ========================================================================
    print("Step 2: Running backtest...")
    try:
        result = run_momentum_pipeline(provider, settings.strategy, start, end)
    except (InsufficientDataError, ValueError) as e:
        print(f"  ✗ Backtest failed: {e}")
        sys.exit(2)

    n_recorded = len(result.backtest.strategy_returns)
    n_skipped = len(result.backtest.skipped)
    print(f"  ✓ Monthly panel: {len(result.monthly_prices)} months x "
          f"{result.monthly_prices.shape[1]} tickers")
    print(f"  ✓ Rebalances: {n_recorded} recorded, {n_skipped} skipped")
    print()

    print(format_metrics_table(result.metrics))
    print()

    # ========================================================================
    # Step 4: Save results
    # ========================================================================
    print("Step 3: Saving results...")
    results_dir = Path(args.results_dir)
    results_dir.mkdir(parents=True, exist_ok=True)

    returns_path = results_dir / "momentum_strategy_returns.csv"
    write_strategy_returns_csv(result.backtest.strategy_returns, returns_path)
    print(f"  ✓ Saved strategy returns: {returns_path}")

    log_path = results_dir / "momentum_rebalance_log.csv"
    log_df = result.backtest.rebalance_log_frame()
    log_df['date'] = log_df['date'].dt.strftime('%Y-%m-%d')
    log_df.to_csv(log_path, index=False)
    print(f"  ✓ Saved rebalance log: {log_path}")

    metrics_path = results_dir / "momentum_metrics.json"
    write_metrics_json(result.metrics.to_dict(), metrics_path)
    print(f"  ✓ Saved metrics: {metrics_path}")

    if not args.no_plot:
        plot_path = results_dir / "momentum_growth.png"
        save_growth_plot(result, start, end, plot_path)
        print(f"  ✓ Saved growth plot: {plot_path}")

    print()
    print("=" * 80)
    print("Backtest complete.")
    print("=" * 80)


if __name__ == "__main__":
    main()
