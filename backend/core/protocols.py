"""Collaborator protocols consumed by the decision engine.

Any backend (PostgreSQL/TimescaleDB, ccxt, in-memory mocks) can
implement these protocols to be used by the orchestrator and the
backtest simulator.
"""

from __future__ import annotations

from datetime import datetime
from typing import Protocol, runtime_checkable

from core.models.market import PriceSample
from core.models.trade import OrderResult, Portfolio, TradeEvent


@runtime_checkable
class MarketDataSource(Protocol):
    """Time-series price store."""

    async def latest_price(self, ticker: str) -> float | None:
        """Latest price for a ticker, or None if there is no recent data."""
        ...

    async def historical_prices(
        self,
        ticker: str,
        start: datetime,
        end: datetime | None = None,
    ) -> list[PriceSample]:
        """Prices in ``[start, end]`` ordered by ascending time."""
        ...


@runtime_checkable
class TradeVenue(Protocol):
    """Brokerage capability used to read balances and submit orders.

    Implementations raise core.errors.VenueError on auth or transport
    failures.
    """

    async def list_portfolios(self) -> list[Portfolio]:
        """List the account's portfolios."""
        ...

    async def get_portfolio(self, portfolio_id: str) -> dict[str, float]:
        """Per-asset quantities held in a portfolio (e.g. {"USD": 10, "BTC": 0.1})."""
        ...

    async def submit_buy(
        self,
        ticker: str,
        quantity: float,
        price: float | None = None,
    ) -> OrderResult:
        """Submit a buy of ``quantity`` base units at reference ``price``."""
        ...

    async def submit_sell(
        self,
        ticker: str,
        quantity: float,
        price: float | None = None,
    ) -> OrderResult:
        """Submit a sell of ``quantity`` base units at reference ``price``."""
        ...

    async def historical_orders(self, ticker: str) -> list[TradeEvent]:
        """Filled orders for a ticker as trade events, oldest first."""
        ...


@runtime_checkable
class EventLogStore(Protocol):
    """Append-only trade-event log."""

    async def append_trade_event(self, event: TradeEvent) -> None:
        """Record an executed trade."""
        ...

    async def trade_events_for_ticker(self, ticker: str) -> list[TradeEvent]:
        """All events for a ticker in recorded order."""
        ...
