"""Backtest storage layer, independent of app/storage."""

from backtest.storage.database import BacktestDatabase
from backtest.storage.price_source import PostgresPriceSource

__all__ = [
    "BacktestDatabase",
    "PostgresPriceSource",
]
