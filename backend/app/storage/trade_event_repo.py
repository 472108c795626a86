"""Trade event repository (EventLogStore backed by PostgreSQL)."""

import logging

from sqlalchemy import insert, select
from sqlalchemy.exc import SQLAlchemyError

from core.errors import DataUnavailable
from core.models import TradeEvent
from app.storage.database import Database, TradeEventTable, get_database

logger = logging.getLogger(__name__)


class TradeEventRepository:
    """Append and read trade events. Rows are never updated or deleted.

    Database failures are raised as DataUnavailable.
    """

    def __init__(self, database: Database | None = None):
        self._database = database

    @property
    def database(self) -> Database:
        return self._database or get_database()

    async def append_trade_event(self, event: TradeEvent) -> None:
        """Record an executed trade."""
        try:
            async with self.database.session() as session:
                stmt = insert(TradeEventTable).values(
                    ticker=event.ticker,
                    event_type=event.event_type,
                    price=event.price,
                    quantity=event.quantity,
                    usd_amount=event.usd_amount,
                    timestamp=event.timestamp,
                    rule_id=event.rule_id,
                    rule_type=event.rule_type,
                )
                await session.execute(stmt)
        except SQLAlchemyError as e:
            raise DataUnavailable(f"Cannot record {event.event_type} for {event.ticker}: {e}") from e

        logger.info(
            f"Logged {event.event_type} {event.ticker}: qty={event.quantity} "
            f"price={event.price} usd={event.usd_amount:.2f} rule={event.rule_id}"
        )

    async def trade_events_for_ticker(self, ticker: str) -> list[TradeEvent]:
        """All events for a ticker ordered by time, then insertion order."""
        try:
            async with self.database.session() as session:
                stmt = (
                    select(TradeEventTable)
                    .where(TradeEventTable.ticker == ticker)
                    .order_by(TradeEventTable.timestamp.asc(), TradeEventTable.id.asc())
                )
                result = await session.execute(stmt)
                rows = result.scalars().all()
        except SQLAlchemyError as e:
            raise DataUnavailable(f"Trade event query failed for {ticker}: {e}") from e

        return [self._row_to_event(row) for row in rows]

    @staticmethod
    def _row_to_event(row: TradeEventTable) -> TradeEvent:
        return TradeEvent(
            ticker=row.ticker,
            event_type=row.event_type,
            price=float(row.price),
            quantity=float(row.quantity),
            usd_amount=float(row.usd_amount),
            timestamp=row.timestamp,
            rule_id=row.rule_id or "",
            rule_type=row.rule_type or "",
        )
