"""Backtesting for buy rules.

Independent of app/: only depends on core/ for rule evaluation.

Storage:
- Spot prices: read from PostgreSQL via asyncpg (no SQLAlchemy)

Usage:
    python -m backtest BTC-USD 2025-01-01T00:00:00Z 2025-01-02T00:00:00Z
"""

from backtest.simulator import BacktestReport, BacktestSimulator, BuyFiring

__all__ = ["BacktestReport", "BacktestSimulator", "BuyFiring"]
