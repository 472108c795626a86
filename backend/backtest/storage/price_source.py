"""Price data source for backtesting.

Reads spot prices from PostgreSQL via the shared asyncpg pool.
No app/ dependency.
"""

import logging
from datetime import datetime

import asyncpg

from core.models import PriceSample

logger = logging.getLogger(__name__)


class PostgresPriceSource:
    """MarketDataSource over the spot_prices table.

    asyncpg returns NUMERIC columns as Decimal; prices are converted to
    float at the boundary.
    """

    def __init__(self, pool: asyncpg.Pool, source: str = "coinbase"):
        self._pool = pool
        self._source = source

    async def latest_price(self, ticker: str) -> float | None:
        """Most recent price with no age limit."""
        async with self._pool.acquire() as conn:
            price = await conn.fetchval(
                """SELECT price FROM spot_prices
                   WHERE ticker=$1 AND source=$2
                   ORDER BY timestamp DESC LIMIT 1""",
                ticker,
                self._source,
            )
        return float(price) if price is not None else None

    async def historical_prices(
        self,
        ticker: str,
        start: datetime,
        end: datetime | None = None,
    ) -> list[PriceSample]:
        """Fetch prices in ascending time order."""
        async with self._pool.acquire() as conn:
            if end is None:
                rows = await conn.fetch(
                    """SELECT timestamp, price FROM spot_prices
                       WHERE ticker=$1 AND source=$2 AND timestamp >= $3
                       ORDER BY timestamp ASC""",
                    ticker,
                    self._source,
                    start,
                )
            else:
                rows = await conn.fetch(
                    """SELECT timestamp, price FROM spot_prices
                       WHERE ticker=$1 AND source=$2
                         AND timestamp >= $3 AND timestamp <= $4
                       ORDER BY timestamp ASC""",
                    ticker,
                    self._source,
                    start,
                    end,
                )

        return [PriceSample(timestamp=row["timestamp"], price=float(row["price"])) for row in rows]
