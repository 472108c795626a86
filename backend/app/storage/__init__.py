"""Data storage layer."""

from app.storage.database import Database, get_database, init_database
from app.storage.price_repo import PriceRepository
from app.storage.trade_event_repo import TradeEventRepository

__all__ = [
    "Database",
    "get_database",
    "init_database",
    "PriceRepository",
    "TradeEventRepository",
]
