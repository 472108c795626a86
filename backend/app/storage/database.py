"""Database connection and table definitions."""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy import (
    BigInteger,
    Column,
    DateTime,
    Index,
    Numeric,
    String,
    text,
)
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.orm import declarative_base

from app.config import get_settings
from core.errors import FatalConfigError

logger = logging.getLogger(__name__)

Base = declarative_base()


class SpotPriceTable(Base):
    """Spot price samples (TimescaleDB hypertable), written by the price collector."""

    __tablename__ = "spot_prices"

    ticker = Column(String(20), primary_key=True)
    source = Column(String(20), primary_key=True)
    timestamp = Column(DateTime(timezone=True), primary_key=True)
    price = Column(Numeric(20, 8), nullable=False)

    __table_args__ = (
        Index("idx_spot_prices_ticker_time", "ticker", "timestamp"),
    )


class TradeEventTable(Base):
    """Append-only trade event log.

    The autoincrement id preserves insertion order for events that share
    a timestamp.
    """

    __tablename__ = "trade_events"

    id = Column(BigInteger, primary_key=True, autoincrement=True)
    ticker = Column(String(20), nullable=False)
    event_type = Column(String(40), nullable=False)
    price = Column(Numeric(20, 8), nullable=False)
    quantity = Column(Numeric(30, 12), nullable=False)
    usd_amount = Column(Numeric(20, 8), nullable=False)
    timestamp = Column(DateTime(timezone=True), nullable=False)
    rule_id = Column(String(100), nullable=False, default="")
    rule_type = Column(String(50), nullable=False, default="")

    __table_args__ = (
        Index("idx_trade_events_ticker_time", "ticker", "timestamp"),
    )


class Database:
    """Database connection manager."""

    def __init__(self, database_url: str | None = None):
        settings = get_settings()
        url = database_url or settings.database_url
        if not url:
            raise FatalConfigError("DATABASE_URL is not set")

        # Convert postgresql:// to postgresql+asyncpg://
        if url.startswith("postgresql://"):
            url = url.replace("postgresql://", "postgresql+asyncpg://", 1)

        # One cycle at a time, so a small pool is enough. Query timeouts are
        # the only timeouts on price/event lookups.
        self.engine = create_async_engine(
            url,
            echo=settings.debug,
            pool_size=5,
            max_overflow=5,
            pool_pre_ping=True,    # Validate before use
            pool_recycle=3600,     # Recycle every hour
            pool_timeout=30,       # Wait max 30s for connection
            connect_args={
                "timeout": 10,                 # Connection timeout
                "command_timeout": 60,         # Query timeout
            },
        )
        self.session_factory = async_sessionmaker(
            self.engine, class_=AsyncSession, expire_on_commit=False
        )

    async def create_tables(self) -> None:
        """Create all tables and configure the TimescaleDB hypertable."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

        # Separate transaction: a failure here must not roll back the tables
        try:
            async with self.engine.begin() as conn:
                await conn.execute(
                    text(
                        "SELECT create_hypertable('spot_prices', 'timestamp', "
                        "if_not_exists => TRUE, migrate_data => TRUE)"
                    )
                )
        except SQLAlchemyError as e:
            # Plain PostgreSQL without the TimescaleDB extension
            logger.warning(f"spot_prices left as a regular table: {e}")

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """Get a database session."""
        async with self.session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def close(self) -> None:
        """Close database connection."""
        await self.engine.dispose()


# Global database instance
_db: Database | None = None


def get_database() -> Database:
    """Get the global database instance."""
    global _db
    if _db is None:
        _db = Database()
    return _db


async def init_database() -> Database:
    """Initialize the database and create tables."""
    db = get_database()
    await db.create_tables()
    return db
