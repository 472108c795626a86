"""PostgreSQL connection pool for backtests.

Read-only: the backtest never writes to the price store.
"""

import logging

import asyncpg

logger = logging.getLogger(__name__)


class BacktestDatabase:
    """Asyncpg connection pool shared by backtest price reads."""

    def __init__(self, database_url: str):
        self._database_url = database_url
        self._pool: asyncpg.Pool | None = None

    @property
    def pool(self) -> asyncpg.Pool:
        if self._pool is None:
            raise RuntimeError("Database not initialized. Call init() first.")
        return self._pool

    async def init(self) -> None:
        """Create connection pool."""
        self._pool = await asyncpg.create_pool(
            self._database_url,
            min_size=1,
            max_size=4,
            command_timeout=120,
        )
        logger.info("Backtest database initialized")

    async def close(self) -> None:
        """Close connection pool."""
        if self._pool:
            await self._pool.close()
            self._pool = None
