"""Spot price repository (MarketDataSource backed by TimescaleDB)."""

import logging
from datetime import datetime, timedelta, timezone

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from core.errors import DataUnavailable
from core.models import PriceSample
from app.storage.database import Database, SpotPriceTable, get_database

logger = logging.getLogger(__name__)


class PriceRepository:
    """Read spot prices for the decision engine and the backtest.

    Query failures are raised as DataUnavailable so the caller can skip
    the ticker for the current pass.
    """

    def __init__(
        self,
        source: str = "coinbase",
        max_age: timedelta = timedelta(minutes=5),
        database: Database | None = None,
    ):
        self.source = source
        self.max_age = max_age
        self._database = database

    @property
    def database(self) -> Database:
        return self._database or get_database()

    async def latest_price(self, ticker: str) -> float | None:
        """Most recent price within ``max_age``, or None if there is none."""
        cutoff = datetime.now(timezone.utc) - self.max_age
        try:
            async with self.database.session() as session:
                stmt = (
                    select(SpotPriceTable.price)
                    .where(
                        SpotPriceTable.ticker == ticker,
                        SpotPriceTable.source == self.source,
                        SpotPriceTable.timestamp >= cutoff,
                    )
                    .order_by(SpotPriceTable.timestamp.desc())
                    .limit(1)
                )
                result = await session.execute(stmt)
                price = result.scalar_one_or_none()
        except SQLAlchemyError as e:
            raise DataUnavailable(f"Latest price query failed for {ticker}: {e}") from e

        return float(price) if price is not None else None

    async def historical_prices(
        self,
        ticker: str,
        start: datetime,
        end: datetime | None = None,
    ) -> list[PriceSample]:
        """Prices in ``[start, end]`` in ascending time order."""
        try:
            async with self.database.session() as session:
                stmt = select(SpotPriceTable.timestamp, SpotPriceTable.price).where(
                    SpotPriceTable.ticker == ticker,
                    SpotPriceTable.source == self.source,
                    SpotPriceTable.timestamp >= start,
                )
                if end is not None:
                    stmt = stmt.where(SpotPriceTable.timestamp <= end)
                stmt = stmt.order_by(SpotPriceTable.timestamp.asc())

                result = await session.execute(stmt)
                rows = result.all()
        except SQLAlchemyError as e:
            raise DataUnavailable(f"History query failed for {ticker}: {e}") from e

        return [PriceSample(timestamp=row.timestamp, price=float(row.price)) for row in rows]
