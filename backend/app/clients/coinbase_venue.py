"""Coinbase Advanced Trade venue using ccxt."""

import logging
from datetime import datetime, timezone

import ccxt.async_support as ccxt

from core.errors import VenueError
from core.models import (
    BUY_EXECUTION,
    SELL_EXECUTION,
    OrderResult,
    Portfolio,
    TradeEvent,
)

logger = logging.getLogger(__name__)


def to_symbol(ticker: str) -> str:
    """Convert a dash ticker to a ccxt symbol ("BTC-USD" -> "BTC/USD")."""
    return ticker.replace("-", "/", 1)


class CoinbaseVenue:
    """
    Live trade venue for Coinbase Advanced Trade.

    Portfolios are read through the v3 brokerage endpoints, orders go
    through ccxt's unified create_order. Orders are market orders unless
    the venue is built with ``order_type="limit"``, in which case the
    reference price is the limit price. A market buy spends quantity times
    the reference price in quote currency; a market sell sells quantity in
    base units. Rejections reported by the
    exchange (insufficient funds, invalid order) come back as a
    non-accepted OrderResult; auth and transport failures raise VenueError.
    """

    def __init__(self, api_key: str, api_secret: str, order_type: str = "market"):
        if order_type not in ("market", "limit"):
            raise ValueError(f"Unsupported order type: {order_type}")
        self._api_key = api_key
        self._api_secret = api_secret
        self.order_type = order_type
        self._exchange: ccxt.coinbase | None = None

    async def connect(self) -> None:
        """Initialize connection to exchange."""
        if self._exchange:
            return

        self._exchange = ccxt.coinbase({
            "apiKey": self._api_key,
            "secret": self._api_secret,
            "enableRateLimit": True,
        })
        logger.warning("Connected to Coinbase PRODUCTION - orders are real")

        try:
            await self._exchange.load_markets()
        except ccxt.BaseError as e:
            raise VenueError(f"Cannot load Coinbase markets: {e}") from e
        logger.info(f"Loaded {len(self._exchange.markets)} markets")

    async def close(self) -> None:
        """Close exchange connection."""
        if self._exchange:
            await self._exchange.close()
            self._exchange = None

    async def _ensure_connected(self) -> ccxt.coinbase:
        if not self._exchange:
            await self.connect()
        return self._exchange

    async def list_portfolios(self) -> list[Portfolio]:
        exchange = await self._ensure_connected()
        try:
            response = await exchange.v3PrivateGetBrokeragePortfolios()
        except ccxt.BaseError as e:
            raise VenueError(f"Listing portfolios failed: {e}") from e

        return [
            Portfolio(uuid=p["uuid"], name=p.get("name", ""))
            for p in response.get("portfolios", [])
            if not p.get("deleted", False)
        ]

    async def get_portfolio(self, portfolio_id: str) -> dict[str, float]:
        """Per-asset totals from the portfolio breakdown."""
        exchange = await self._ensure_connected()
        try:
            response = await exchange.v3PrivateGetBrokeragePortfoliosPortfolioUuid(
                {"portfolio_uuid": portfolio_id}
            )
        except ccxt.BaseError as e:
            raise VenueError(f"Portfolio {portfolio_id} lookup failed: {e}") from e

        balances: dict[str, float] = {}
        positions = response.get("breakdown", {}).get("spot_positions", [])
        for position in positions:
            asset = position.get("asset")
            if not asset:
                continue
            balances[asset] = balances.get(asset, 0.0) + float(
                position.get("total_balance_crypto", 0) or 0
            )
        return balances

    async def submit_buy(
        self,
        ticker: str,
        quantity: float,
        price: float | None = None,
    ) -> OrderResult:
        return await self._submit(ticker, "buy", quantity, price)

    async def submit_sell(
        self,
        ticker: str,
        quantity: float,
        price: float | None = None,
    ) -> OrderResult:
        return await self._submit(ticker, "sell", quantity, price)

    async def _submit(
        self,
        ticker: str,
        side: str,
        quantity: float,
        price: float | None,
    ) -> OrderResult:
        exchange = await self._ensure_connected()
        symbol = to_symbol(ticker)
        order_type = "limit" if self.order_type == "limit" and price is not None else "market"

        # Coinbase market buys are sized in quote currency: ccxt sends
        # amount * price as quote_size, so the reference price is required.
        # Market sells are sized in base units and ignore the price.
        if order_type == "market" and side == "buy" and price is None:
            return OrderResult(accepted=False, message="market buy needs a reference price")
        order_price = price if order_type == "limit" or side == "buy" else None

        logger.info(
            f"Placing {side} {order_type} order: {symbol} qty={quantity}"
            + (f" @ {price}" if price is not None else "")
        )
        try:
            order = await exchange.create_order(
                symbol=symbol,
                type=order_type,
                side=side,
                amount=quantity,
                price=order_price,
                params={},
            )
        except (ccxt.InsufficientFunds, ccxt.InvalidOrder) as e:
            logger.warning(f"Order rejected by Coinbase: {symbol} {side}: {e}")
            return OrderResult(accepted=False, message=str(e))
        except ccxt.BaseError as e:
            raise VenueError(f"{side} order for {symbol} failed: {e}") from e

        order_id = order.get("id")
        logger.info(f"Order placed: {order_id} status={order.get('status')}")
        return OrderResult(
            accepted=order_id is not None,
            order_id=order_id,
            message=str(order.get("status") or ""),
            raw=order,
        )

    async def historical_orders(self, ticker: str) -> list[TradeEvent]:
        """Filled orders for a ticker, converted to trade events."""
        exchange = await self._ensure_connected()
        try:
            orders = await exchange.fetch_closed_orders(
                to_symbol(ticker), params={"paginate": True}
            )
        except ccxt.BaseError as e:
            raise VenueError(f"Order history for {ticker} failed: {e}") from e

        events = [
            event
            for event in (self._order_to_event(ticker, order) for order in orders)
            if event is not None
        ]
        events.sort(key=lambda e: e.timestamp)
        return events

    @staticmethod
    def _order_to_event(ticker: str, order: dict) -> TradeEvent | None:
        filled = float(order.get("filled") or 0)
        if filled <= 0 or order.get("timestamp") is None:
            return None

        price = float(order.get("average") or order.get("price") or 0)
        cost = float(order.get("cost") or filled * price)
        event_type = BUY_EXECUTION if order.get("side") == "buy" else SELL_EXECUTION
        return TradeEvent(
            ticker=ticker,
            event_type=event_type,
            price=price,
            quantity=filled,
            usd_amount=cost,
            timestamp=datetime.fromtimestamp(order["timestamp"] / 1000, tz=timezone.utc),
            rule_id=str(order.get("id") or ""),
            rule_type="Venue",
        )
