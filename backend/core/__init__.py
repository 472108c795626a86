"""Core decision-engine logic: indicators, ledger, rules and models.

This package contains pure business logic with no I/O dependencies
(no database, venue, or network access). It is shared between the
live trading loop (app/) and the backtest simulator (backtest/).
"""
