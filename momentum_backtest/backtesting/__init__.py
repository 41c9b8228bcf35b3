"""
Quarterly rebalance backtest engine.

Drives the rebalance state machine and produces the sparse series of net
strategy returns together with a per-rebalance log.
"""
