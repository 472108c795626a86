"""In-memory trade venue for simulation mode and tests."""

import logging
from datetime import datetime, timezone
from typing import Callable

from core.models import (
    BUY_EXECUTION,
    SELL_EXECUTION,
    OrderResult,
    Portfolio,
    TradeEvent,
)

logger = logging.getLogger(__name__)

MOCK_PORTFOLIO_UUID = "mock-default"

# Tolerance for float cost comparisons
_EPSILON = 1e-9


class MockVenue:
    """
    Deterministic venue that fills every affordable limit order at once.

    Balances move exactly by ``quantity * price``; orders are never
    partially filled. Orders without a price are rejected since there is
    no market to fill them against.
    """

    def __init__(
        self,
        balances: dict[str, float] | None = None,
        portfolio_name: str = "Default",
        quote_currency: str = "USD",
        clock: Callable[[], datetime] | None = None,
    ):
        self.balances: dict[str, float] = dict(balances or {})
        self.portfolio = Portfolio(uuid=MOCK_PORTFOLIO_UUID, name=portfolio_name)
        self.quote_currency = quote_currency
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._fills: list[TradeEvent] = []
        self._next_id = 1

    @property
    def fills(self) -> list[TradeEvent]:
        return list(self._fills)

    async def list_portfolios(self) -> list[Portfolio]:
        return [self.portfolio]

    async def get_portfolio(self, portfolio_id: str) -> dict[str, float]:
        if portfolio_id != self.portfolio.uuid:
            return {}
        return dict(self.balances)

    async def submit_buy(
        self,
        ticker: str,
        quantity: float,
        price: float | None = None,
    ) -> OrderResult:
        rejection = self._validate(quantity, price)
        if rejection:
            return rejection

        base, quote = ticker.split("-", 1)
        cost = quantity * price
        available = self.balances.get(quote, 0.0)
        if cost > available + _EPSILON:
            return self._reject(f"insufficient {quote}: need {cost:.2f}, have {available:.2f}")

        self.balances[quote] = available - cost
        self.balances[base] = self.balances.get(base, 0.0) + quantity
        return self._fill(ticker, BUY_EXECUTION, quantity, price)

    async def submit_sell(
        self,
        ticker: str,
        quantity: float,
        price: float | None = None,
    ) -> OrderResult:
        rejection = self._validate(quantity, price)
        if rejection:
            return rejection

        base, quote = ticker.split("-", 1)
        held = self.balances.get(base, 0.0)
        if quantity > held + _EPSILON:
            return self._reject(f"insufficient {base}: need {quantity}, have {held}")

        self.balances[base] = max(held - quantity, 0.0)
        self.balances[quote] = self.balances.get(quote, 0.0) + quantity * price
        return self._fill(ticker, SELL_EXECUTION, quantity, price)

    async def historical_orders(self, ticker: str) -> list[TradeEvent]:
        return [fill for fill in self._fills if fill.ticker == ticker]

    def _validate(self, quantity: float, price: float | None) -> OrderResult | None:
        if price is None or price <= 0:
            return self._reject("mock venue only fills priced limit orders")
        if quantity <= 0:
            return self._reject(f"invalid quantity {quantity}")
        return None

    @staticmethod
    def _reject(message: str) -> OrderResult:
        logger.warning(f"[mock] order rejected: {message}")
        return OrderResult(accepted=False, message=message)

    def _fill(self, ticker: str, event_type: str, quantity: float, price: float) -> OrderResult:
        order_id = f"mock-{self._next_id}"
        self._next_id += 1
        self._fills.append(
            TradeEvent(
                ticker=ticker,
                event_type=event_type,
                price=price,
                quantity=quantity,
                usd_amount=quantity * price,
                timestamp=self._clock(),
                rule_id=order_id,
                rule_type="Venue",
            )
        )
        logger.info(f"[mock] {event_type} {ticker} qty={quantity} @ {price} ({order_id})")
        return OrderResult(accepted=True, order_id=order_id, message="filled")
