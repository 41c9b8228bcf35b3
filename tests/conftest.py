"""
Pytest configuration file.

Ensures the repo root is on sys.path so that 'import momentum_backtest...'
and 'import actions...' work without installing the package, and provides
small helpers for building month-end panels.
"""
import sys
from pathlib import Path

import pandas as pd
import pytest

# Add the repo root to sys.path
repo_root = Path(__file__).parent.parent
if str(repo_root) not in sys.path:
    sys.path.insert(0, str(repo_root))

from momentum_backtest.utils.time import month_end_index  # noqa: E402


def make_month_ends(n: int, start: str = "2000-01-01") -> pd.DatetimeIndex:
    """n consecutive calendar month-ends starting with the month of `start`."""
    return month_end_index(pd.date_range(start, periods=n, freq="MS")).rename("date")


@pytest.fixture
def month_ends():
    """Factory fixture: month_ends(n, start=...) -> DatetimeIndex of month-ends."""
    return make_month_ends
