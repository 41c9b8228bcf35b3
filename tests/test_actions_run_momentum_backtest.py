"""
Tests for the backtest action script.

Runs the script's main() against a synthetic CSV store and checks the exit
codes and the files written to the results directory.
"""

import json
import sys
from pathlib import Path

import pandas as pd
import pytest

# Add project root to path so we can import actions module
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from actions.run_momentum_backtest import main
from momentum_backtest.analytics.synthetic_data import generate_price_panel, panel_to_observations
from momentum_backtest.data.io import write_price_observations_csv


@pytest.fixture
def synthetic_csv(tmp_path):
    panel = generate_price_panel(
        [f"S{i:02d}" for i in range(25)], "2000-01-03", "2005-12-30",
        drifts=0.12, volatilities=0.08, seed=21,
    )
    path = tmp_path / "stock_prices.csv"
    write_price_observations_csv(panel_to_observations(panel), path)
    return path


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("MOMENTUM_PRICES_DB", "MOMENTUM_MIN_ROWS", "MOMENTUM_SMA_SPAN"):
        monkeypatch.delenv(name, raising=False)


def test_backtest_action_writes_results(tmp_path, synthetic_csv, monkeypatch):
    results_dir = tmp_path / "results"
    monkeypatch.setattr(sys, "argv", [
        "run_momentum_backtest.py", "--csv", str(synthetic_csv),
        "--start", "2000-01-03", "--end", "2005-12-30",
        "--results-dir", str(results_dir),
    ])
    main()

    returns = pd.read_csv(results_dir / "momentum_strategy_returns.csv")
    assert returns.columns.tolist() == ['date', 'net_return']
    assert len(returns) == 8

    log = pd.read_csv(results_dir / "momentum_rebalance_log.csv")
    assert len(log) == 8

    metrics = json.loads((results_dir / "momentum_metrics.json").read_text())
    assert set(metrics['strategy']) == set(metrics['benchmark'])
    assert (results_dir / "momentum_growth.png").exists()


def test_backtest_action_insufficient_store_exits_one(tmp_path, synthetic_csv, monkeypatch):
    """A window extending past the stored dates needs a refetch first."""
    monkeypatch.setattr(sys, "argv", [
        "run_momentum_backtest.py", "--csv", str(synthetic_csv),
        "--start", "2000-01-03", "--end", "2010-12-31",
        "--results-dir", str(tmp_path / "results"), "--no-plot",
    ])
    with pytest.raises(SystemExit) as exc:
        main()
    assert exc.value.code == 1


def test_backtest_action_missing_store_exits_one(tmp_path, monkeypatch):
    monkeypatch.setattr(sys, "argv", [
        "run_momentum_backtest.py", "--csv", str(tmp_path / "missing.csv"), "--no-plot",
    ])
    with pytest.raises(SystemExit) as exc:
        main()
    assert exc.value.code == 1
