"""Decision orchestrator: the trading loop.

Each cycle refreshes balances, holdings and prices, then runs a buy pass
and a sell pass over the watchlist. Any confirmed order arms a global
cooldown; while it is active the rest of the cycle is skipped, sell pass
included.
"""

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from decimal import ROUND_DOWN, Decimal
from typing import Callable

from core.errors import DataUnavailable, InsufficientHistory, TradingBotError, VenueError
from core.ledger import rebuild_holding
from core.models import (
    BUY_EXECUTION,
    SELL_EXECUTION,
    CooldownState,
    CycleReport,
    EngineState,
    Holding,
    RuleSpec,
    TradeAction,
    TradeEvent,
    TradeKind,
    closes,
)
from core.protocols import EventLogStore, MarketDataSource, TradeVenue
from core.rules import select_rule
from app.trading_config import TradingConfig

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def floor_quantity(allocation: float, price: float, decimals: int) -> float:
    """Largest quantity with ``decimals`` places whose cost stays within allocation."""
    exact = Decimal(str(allocation)) / Decimal(str(price))
    return float(exact.quantize(Decimal(1).scaleb(-decimals), rounding=ROUND_DOWN))


class _CooldownActive(Exception):
    """Internal signal that ends the cycle early."""


class DecisionOrchestrator:
    """
    Runs trading cycles one at a time against injected collaborators.

    The same class drives live trading and simulation; only the venue
    differs.
    """

    def __init__(
        self,
        config: TradingConfig,
        market: MarketDataSource,
        venue: TradeVenue,
        event_log: EventLogStore,
        clock: Callable[[], datetime] | None = None,
    ):
        self.config = config
        self.market = market
        self.venue = venue
        self.event_log = event_log
        self._clock = clock or _utcnow
        self.state = EngineState(cooldown=CooldownState(duration=config.cooldown))

    def now(self) -> datetime:
        return self._clock()

    # ------------------------------------------------------------------
    # Cycle
    # ------------------------------------------------------------------

    async def run_cycle(self) -> CycleReport:
        """Run one refresh + buy pass + sell pass."""
        report = CycleReport(started_at=self._clock())

        try:
            await self._refresh()
        except TradingBotError as e:
            logger.error(f"Refresh failed, skipping cycle: {e}")
            report.aborted = True
            report.abort_reason = str(e)
        else:
            try:
                await self._buy_pass(report)
                await self._sell_pass(report)
            except _CooldownActive:
                report.cooldown_blocked = True
                remaining = self.state.cooldown.remaining(self._clock())
                logger.info(
                    f"Cooldown active ({remaining.total_seconds() / 60:.1f}m left), "
                    f"ending cycle"
                )

        report.finished_at = self._clock()
        self.state.last_report = report
        self.state.cycles_run += 1
        return report

    async def run_forever(
        self,
        stop_event: asyncio.Event,
        max_cycles: int | None = None,
    ) -> None:
        """Run cycles until ``stop_event`` is set.

        The stop event is only checked between cycles; a running cycle is
        never interrupted.
        """
        interval = self.config.poll_interval.total_seconds()
        logger.info(
            f"Engine loop started: {len(self.config.watchlist)} tickers, "
            f"poll every {interval:.0f}s"
        )

        cycles = 0
        while not stop_event.is_set():
            try:
                report = await self.run_cycle()
                if report.actions:
                    logger.info(f"Cycle {self.state.cycles_run}: {len(report.actions)} action(s)")
            except Exception as e:
                logger.error(f"Cycle error: {e}", exc_info=True)

            cycles += 1
            if max_cycles is not None and cycles >= max_cycles:
                break

            try:
                await asyncio.wait_for(stop_event.wait(), timeout=interval)
            except asyncio.TimeoutError:
                pass

        logger.info(f"Engine loop stopped after {cycles} cycle(s)")

    # ------------------------------------------------------------------
    # Refresh
    # ------------------------------------------------------------------

    async def _refresh(self) -> None:
        """Reload balances, holdings and the market snapshot.

        Raises TradingBotError (VenueError, DataUnavailable) when balances
        or holdings cannot be loaded. Price lookups never fail the refresh.
        """
        portfolio_name = self.config.account.portfolio_name
        portfolios = await self.venue.list_portfolios()
        portfolio = next((p for p in portfolios if p.name == portfolio_name), None)
        if portfolio is None:
            raise VenueError(f"Portfolio '{portfolio_name}' not found")

        self.state.balances = await self.venue.get_portfolio(portfolio.uuid)

        holdings = {}
        for ticker in self.config.watchlist:
            if self.config.holding_source == "venue_orders":
                events = await self.venue.historical_orders(ticker)
            else:
                events = await self.event_log.trade_events_for_ticker(ticker)
            holding = rebuild_holding(ticker, events)
            if holding is not None:
                holdings[ticker] = holding
        self.state.holdings = holdings

        prices = {}
        for ticker in self.config.watchlist:
            try:
                prices[ticker] = await self.market.latest_price(ticker)
            except DataUnavailable as e:
                logger.warning(f"{ticker}: latest price unavailable: {e}")
                prices[ticker] = None
        self.state.prices = prices

        logger.debug(
            f"Refreshed: balances={self.state.balances} "
            f"holdings={list(holdings)} prices={prices}"
        )

    # ------------------------------------------------------------------
    # Passes
    # ------------------------------------------------------------------

    def _check_cooldown(self) -> None:
        if self.state.cooldown.is_active(self._clock()):
            raise _CooldownActive()

    async def _buy_pass(self, report: CycleReport) -> None:
        allocation = self.config.account.trade_allocation_usd
        quote = self.config.account.quote_currency

        for ticker in self.config.watchlist:
            self._check_cooldown()

            cash = self.state.balances.get(quote, 0.0)
            if cash < allocation:
                logger.info(f"{ticker}: {quote} {cash:.2f} below allocation {allocation:.2f}")
                report.skip(ticker, "insufficient cash")
                continue

            price = self.state.prices.get(ticker)
            if price is None:
                report.skip(ticker, "no current price")
                continue

            rule = await self._select(
                ticker, self.config.buy_rules, price, self.config.buy_window, report
            )
            if rule is None:
                continue

            quantity = floor_quantity(allocation, price, self.config.precision_for(ticker))
            if quantity <= 0:
                logger.warning(f"{ticker}: buy quantity rounds to zero at {price}")
                report.skip(ticker, "quantity rounds to zero")
                continue

            logger.info(f"{ticker}: BUY signal from '{rule.id}' at {price}, qty={quantity}")
            action = await self._execute(ticker, TradeKind.BUY, quantity, price, rule, report)
            if action is not None:
                self.state.balances[quote] = cash - quantity * price

    async def _sell_pass(self, report: CycleReport) -> None:
        for ticker in self.config.watchlist:
            self._check_cooldown()

            holding = self.state.holdings.get(ticker)
            if holding is None:
                continue

            base = ticker.split("-")[0]
            quantity = self.state.balances.get(base, 0.0)
            if quantity <= 0:
                logger.info(f"{ticker}: holding recorded but no {base} balance at venue")
                report.skip(ticker, "no venue balance")
                continue

            price = self.state.prices.get(ticker)
            if price is None:
                report.skip(ticker, "no current price")
                continue

            rule = await self._select(
                ticker, self.config.sell_rules, price, self.config.sell_window, report,
                holding=holding,
            )
            if rule is None:
                continue

            logger.info(
                f"{ticker}: SELL signal from '{rule.id}' at {price} "
                f"(avg cost {holding.average_cost:.2f}), qty={quantity}"
            )
            action = await self._execute(ticker, TradeKind.SELL, quantity, price, rule, report)
            if action is not None:
                self.state.balances[base] = 0.0

    async def _select(
        self,
        ticker: str,
        rules: list[RuleSpec],
        price: float,
        window: timedelta,
        report: CycleReport,
        holding: Holding | None = None,
    ) -> RuleSpec | None:
        """Fetch the trailing window and pick the first firing rule."""
        if not rules:
            return None

        now = self._clock()
        try:
            history = await self.market.historical_prices(ticker, now - window, now)
        except DataUnavailable as e:
            logger.warning(f"{ticker}: history unavailable: {e}")
            report.skip(ticker, "history unavailable")
            return None

        try:
            return select_rule(rules, price, closes(history), holding, ticker=ticker)
        except InsufficientHistory as e:
            logger.info(f"Insufficient history: {e}")
            report.skip(ticker, "insufficient history")
            return None

    async def _execute(
        self,
        ticker: str,
        kind: TradeKind,
        quantity: float,
        price: float,
        rule: RuleSpec,
        report: CycleReport,
    ) -> TradeAction | None:
        """Submit an order; arm the cooldown and log the event once accepted."""
        submit = self.venue.submit_buy if kind is TradeKind.BUY else self.venue.submit_sell
        try:
            result = await submit(ticker, quantity, price)
        except VenueError as e:
            logger.error(f"{ticker}: {kind.value} order failed: {e}")
            report.skip(ticker, "order failed")
            return None

        if not result.accepted:
            logger.warning(f"{ticker}: {kind.value} order rejected: {result.message}")
            report.skip(ticker, "order rejected")
            return None

        now = self._clock()
        self.state.cooldown.arm(now)

        action = TradeAction(
            ticker=ticker,
            kind=kind,
            quantity=quantity,
            price=price,
            rule_id=rule.id,
            rule_type=rule.type,
            timestamp=now,
            order_id=result.order_id,
        )
        report.actions.append(action)

        event = TradeEvent(
            ticker=ticker,
            event_type=BUY_EXECUTION if kind is TradeKind.BUY else SELL_EXECUTION,
            price=price,
            quantity=quantity,
            usd_amount=quantity * price,
            timestamp=now,
            rule_id=rule.id,
            rule_type=rule.type,
        )
        try:
            await self.event_log.append_trade_event(event)
        except TradingBotError as e:
            # The order is live at the venue; only the local record is missing
            logger.error(f"{ticker}: order {result.order_id} accepted but not logged: {e}")

        logger.info(f"{ticker}: {kind.value} accepted (order {result.order_id}), cooldown armed")
        return action
