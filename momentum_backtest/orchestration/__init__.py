"""
End-to-end pipeline wiring providers, strategy and evaluation.

Coordinates loading a price panel, building signals, running the backtest and
computing the metrics report in one reproducible, sequential run.
"""
