"""
Plain-text rendering of a MetricsReport.

Kept separate from the evaluator so the core never prints: actions call
`format_metrics_table` and decide where the text goes.
"""

from momentum_backtest.analytics.performance import METRIC_NAMES, MetricsReport

METRIC_LABELS = {
    'annualized_return': 'Ann Return',
    'annualized_volatility': 'Ann Vol',
    'sharpe_ratio': 'Sharpe',
    'max_drawdown': 'Max DD',
    'sortino_ratio': 'Sortino',
    'calmar_ratio': 'Calmar',
}


def format_metrics_table(
    report: MetricsReport,
    strategy_label: str = 'Risk-Reduced Momentum',
    benchmark_label: str = 'Market Benchmark',
) -> str:
    """
    Format strategy and benchmark metrics as a two-column console table.

    Example output:
        Metric          | Risk-Reduced Momentum | Market Benchmark
        ----------------|-----------------------|-----------------
        Ann Return      |     0.1234            |     0.0876
        ...
    """
    strategy = report.strategy.to_dict()
    benchmark = report.benchmark.to_dict()
    left = max(len(strategy_label), 10)
    right = max(len(benchmark_label), 10)

    lines = [
        f"{'Metric':<15} | {strategy_label:<{left}} | {benchmark_label}",
        f"{'-' * 16}|{'-' * (left + 2)}|{'-' * (right + 1)}",
    ]
    for name in METRIC_NAMES:
        lines.append(
            f"{METRIC_LABELS[name]:<15} | {strategy[name]:>10.4f}{'':<{left - 10}} | "
            f"{benchmark[name]:>10.4f}"
        )
    lines.append(
        f"({report.n_aligned_days} aligned days, "
        f"{report.start_date:%Y-%m-%d} to {report.end_date:%Y-%m-%d})"
    )
    return "\n".join(lines)
