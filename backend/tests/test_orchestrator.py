"""Tests for the decision orchestrator cycle."""

import asyncio
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest

from app.clients import MockVenue
from app.services import DecisionOrchestrator
from app.trading_config import TradingConfig
from core.errors import DataUnavailable, VenueError
from core.models import (
    BUY_EXECUTION,
    SELL_EXECUTION,
    OrderResult,
    Portfolio,
    PriceSample,
    TradeEvent,
    TradeKind,
)

T0 = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)

SMA_DIP = {
    "id": "sma_dip_1d",
    "type": "sma_dip_percentage",
    "params": {"period": 1440, "percent_below": 5},
}
TAKE_PROFIT = {
    "id": "tp_5",
    "type": "profit_percentage_target",
    "params": {"percent_above": 5},
}


class Clock:
    def __init__(self, now: datetime = T0):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class FakeMarket:
    """Market data with fixed latest prices and histories."""

    def __init__(self, prices: dict, history: dict | None = None):
        self.prices = prices
        self.history = history or {}
        self.history_calls = []

    async def latest_price(self, ticker):
        value = self.prices.get(ticker)
        if isinstance(value, Exception):
            raise value
        return value

    async def historical_prices(self, ticker, start, end=None):
        self.history_calls.append((ticker, start, end))
        return list(self.history.get(ticker, []))


class FakeEventLog:
    def __init__(self, events=None, fail_append=False):
        self.events = list(events or [])
        self.fail_append = fail_append

    async def append_trade_event(self, event):
        if self.fail_append:
            raise DataUnavailable("event store down")
        self.events.append(event)

    async def trade_events_for_ticker(self, ticker):
        return [e for e in self.events if e.ticker == ticker]


def flat_history(price: float, count: int = 1440) -> list[PriceSample]:
    return [PriceSample(timestamp=T0 - timedelta(minutes=count - i), price=price) for i in range(count)]


def make_config(**overrides) -> TradingConfig:
    data = {
        "watchlist": ["BTC-USD"],
        "account": {"trade_allocation_usd": 10},
        "trade_cooldown_minutes": 60,
        "buy_rules": [SMA_DIP],
        "sell_rules": [TAKE_PROFIT],
    }
    data.update(overrides)
    return TradingConfig(**data)


def buy_event(ticker="BTC-USD", quantity=0.5, usd_amount=50.0):
    return TradeEvent(
        ticker=ticker,
        event_type=BUY_EXECUTION,
        price=usd_amount / quantity,
        quantity=quantity,
        usd_amount=usd_amount,
        timestamp=T0 - timedelta(days=1),
        rule_id="sma_dip_1d",
        rule_type="sma_dip_percentage",
    )


def make_orchestrator(config, market, venue, event_log=None, clock=None):
    return DecisionOrchestrator(
        config=config,
        market=market,
        venue=venue,
        event_log=event_log or FakeEventLog(),
        clock=clock or Clock(),
    )


def mock_venue_api(balances: dict) -> AsyncMock:
    venue = AsyncMock()
    venue.list_portfolios.return_value = [Portfolio(uuid="p1", name="Default")]
    venue.get_portfolio.return_value = balances
    venue.historical_orders.return_value = []
    venue.submit_buy.return_value = OrderResult(accepted=True, order_id="o1")
    venue.submit_sell.return_value = OrderResult(accepted=True, order_id="o2")
    return venue


# ── End-to-end ────────────────────────────────────────────────────────────


class TestEndToEnd:
    """Buy on an SMA dip, then stay quiet while the cooldown runs."""

    @pytest.mark.asyncio
    async def test_buy_then_cooldown_blocks_next_cycle(self):
        clock = Clock()
        venue = MockVenue(balances={"USD": 10.0}, clock=clock)
        market = FakeMarket({"BTC-USD": 90.0}, {"BTC-USD": flat_history(100.0)})
        event_log = FakeEventLog()
        orchestrator = make_orchestrator(make_config(), market, venue, event_log, clock)

        report = await orchestrator.run_cycle()

        assert len(report.actions) == 1
        action = report.actions[0]
        assert action.kind is TradeKind.BUY
        assert action.quantity == pytest.approx(0.11111111)
        assert action.rule_id == "sma_dip_1d"

        assert len(event_log.events) == 1
        logged = event_log.events[0]
        assert logged.event_type == BUY_EXECUTION
        assert logged.quantity == pytest.approx(10 / 90, abs=1e-8)
        assert logged.usd_amount == pytest.approx(10.0, abs=1e-6)
        assert orchestrator.state.cooldown.is_active(clock())

        # Second cycle before the cooldown elapses
        clock.advance(minutes=5)
        market.prices["BTC-USD"] = 50.0
        report = await orchestrator.run_cycle()

        assert report.cooldown_blocked
        assert report.actions == []
        assert len(venue.fills) == 1
        assert len(event_log.events) == 1
        assert orchestrator.state.cycles_run == 2

    @pytest.mark.asyncio
    async def test_buy_allowed_after_cooldown(self):
        clock = Clock()
        venue = MockVenue(balances={"USD": 100.0}, clock=clock)
        market = FakeMarket({"BTC-USD": 90.0}, {"BTC-USD": flat_history(100.0)})
        orchestrator = make_orchestrator(make_config(), market, venue, clock=clock)

        await orchestrator.run_cycle()
        clock.advance(minutes=61)
        report = await orchestrator.run_cycle()

        assert len(report.actions) == 1
        assert len(venue.fills) == 2


# ── Buy pass ──────────────────────────────────────────────────────────────


class TestBuyPass:
    @pytest.mark.asyncio
    async def test_insufficient_cash(self):
        venue = MockVenue(balances={"USD": 9.99})
        market = FakeMarket({"BTC-USD": 90.0}, {"BTC-USD": flat_history(100.0)})
        orchestrator = make_orchestrator(make_config(), market, venue)

        report = await orchestrator.run_cycle()

        assert report.actions == []
        assert report.skipped["BTC-USD"] == "insufficient cash"
        assert market.history_calls == []

    @pytest.mark.asyncio
    async def test_no_current_price(self):
        venue = MockVenue(balances={"USD": 100.0})
        market = FakeMarket({}, {"BTC-USD": flat_history(100.0)})
        orchestrator = make_orchestrator(make_config(), market, venue)

        report = await orchestrator.run_cycle()

        assert report.actions == []
        assert report.skipped["BTC-USD"] == "no current price"

    @pytest.mark.asyncio
    async def test_price_lookup_failure_only_skips_ticker(self):
        venue = MockVenue(balances={"USD": 100.0})
        market = FakeMarket(
            {"BTC-USD": DataUnavailable("timeout"), "ETH-USD": 90.0},
            {"ETH-USD": flat_history(100.0)},
        )
        config = make_config(watchlist=["BTC-USD", "ETH-USD"])
        orchestrator = make_orchestrator(config, market, venue)

        report = await orchestrator.run_cycle()

        assert not report.aborted
        assert orchestrator.state.prices["BTC-USD"] is None
        assert [a.ticker for a in report.actions] == ["ETH-USD"]

    @pytest.mark.asyncio
    async def test_insufficient_history(self):
        venue = MockVenue(balances={"USD": 100.0})
        market = FakeMarket({"BTC-USD": 90.0}, {"BTC-USD": flat_history(100.0, count=20)})
        orchestrator = make_orchestrator(make_config(), market, venue)

        report = await orchestrator.run_cycle()

        assert report.actions == []
        assert report.skipped["BTC-USD"] == "insufficient history"

    @pytest.mark.asyncio
    async def test_history_window_requested(self):
        clock = Clock()
        venue = MockVenue(balances={"USD": 100.0})
        market = FakeMarket({"BTC-USD": 99.0}, {"BTC-USD": flat_history(100.0)})
        orchestrator = make_orchestrator(make_config(), market, venue, clock=clock)

        await orchestrator.run_cycle()

        ticker, start, end = market.history_calls[0]
        assert ticker == "BTC-USD"
        assert end == T0
        assert end - start == timedelta(hours=73)

    @pytest.mark.asyncio
    async def test_quantity_precision(self):
        venue = MockVenue(balances={"USD": 100.0})
        market = FakeMarket({"XRP-USD": 0.3}, {"XRP-USD": flat_history(0.5)})
        config = make_config(watchlist=["XRP-USD"], quantity_precision={"XRP-USD": 6})
        orchestrator = make_orchestrator(config, market, venue)

        report = await orchestrator.run_cycle()

        assert report.actions[0].quantity == 33.333333

    @pytest.mark.asyncio
    async def test_whole_cash_allocation_is_not_exceeded(self):
        # 10 / 70000 = 0.000142857..., which rounds up to 0.00014286
        venue = MockVenue(balances={"USD": 10.0})
        market = FakeMarket({"BTC-USD": 70000.0}, {"BTC-USD": flat_history(100000.0)})
        orchestrator = make_orchestrator(make_config(), market, venue)

        report = await orchestrator.run_cycle()

        assert report.skipped == {}
        assert len(report.actions) == 1
        action = report.actions[0]
        assert action.quantity == 0.00014285
        assert action.quantity * action.price <= 10.0
        assert venue.balances["USD"] >= 0.0

    @pytest.mark.asyncio
    async def test_rejected_order_does_not_arm_cooldown(self):
        venue = mock_venue_api({"USD": 100.0})
        venue.submit_buy.return_value = OrderResult(accepted=False, message="nope")
        market = FakeMarket({"BTC-USD": 90.0}, {"BTC-USD": flat_history(100.0)})
        event_log = FakeEventLog()
        orchestrator = make_orchestrator(make_config(), market, venue, event_log)

        report = await orchestrator.run_cycle()

        assert report.actions == []
        assert report.skipped["BTC-USD"] == "order rejected"
        assert orchestrator.state.cooldown.last_action_at is None
        assert event_log.events == []

    @pytest.mark.asyncio
    async def test_venue_error_on_submit_continues_with_next_ticker(self):
        venue = mock_venue_api({"USD": 100.0})
        venue.submit_buy.side_effect = [
            VenueError("502 Bad Gateway"),
            OrderResult(accepted=True, order_id="o2"),
        ]
        market = FakeMarket(
            {"BTC-USD": 90.0, "ETH-USD": 90.0},
            {"BTC-USD": flat_history(100.0), "ETH-USD": flat_history(100.0)},
        )
        config = make_config(watchlist=["BTC-USD", "ETH-USD"])
        orchestrator = make_orchestrator(config, market, venue)

        report = await orchestrator.run_cycle()

        assert report.skipped["BTC-USD"] == "order failed"
        assert [a.ticker for a in report.actions] == ["ETH-USD"]
        assert venue.submit_buy.await_args_list[0].args[0] == "BTC-USD"

    @pytest.mark.asyncio
    async def test_event_log_failure_still_arms_cooldown(self):
        venue = MockVenue(balances={"USD": 100.0})
        market = FakeMarket({"BTC-USD": 90.0}, {"BTC-USD": flat_history(100.0)})
        orchestrator = make_orchestrator(
            make_config(), market, venue, FakeEventLog(fail_append=True)
        )

        report = await orchestrator.run_cycle()

        assert len(report.actions) == 1
        assert orchestrator.state.cooldown.last_action_at == T0


# ── Sell pass ─────────────────────────────────────────────────────────────


class TestSellPass:
    @pytest.mark.asyncio
    async def test_sells_full_venue_balance(self):
        venue = MockVenue(balances={"USD": 0.0, "BTC": 0.6})
        market = FakeMarket({"BTC-USD": 110.0}, {"BTC-USD": flat_history(100.0)})
        event_log = FakeEventLog([buy_event(quantity=0.5, usd_amount=50.0)])
        orchestrator = make_orchestrator(make_config(), market, venue, event_log)

        report = await orchestrator.run_cycle()

        assert len(report.actions) == 1
        action = report.actions[0]
        assert action.kind is TradeKind.SELL
        assert action.quantity == pytest.approx(0.6)
        assert action.rule_id == "tp_5"
        assert event_log.events[-1].event_type == SELL_EXECUTION
        assert venue.balances["BTC"] == 0.0

    @pytest.mark.asyncio
    async def test_holding_needs_venue_balance(self):
        venue = MockVenue(balances={"USD": 0.0})
        market = FakeMarket({"BTC-USD": 200.0}, {"BTC-USD": flat_history(100.0)})
        event_log = FakeEventLog([buy_event()])
        orchestrator = make_orchestrator(make_config(), market, venue, event_log)

        report = await orchestrator.run_cycle()

        assert report.actions == []
        assert "BTC-USD" in orchestrator.state.holdings

    @pytest.mark.asyncio
    async def test_venue_balance_without_holding_not_sold(self):
        venue = MockVenue(balances={"USD": 0.0, "BTC": 1.0})
        market = FakeMarket({"BTC-USD": 200.0}, {"BTC-USD": flat_history(100.0)})
        orchestrator = make_orchestrator(make_config(), market, venue)

        report = await orchestrator.run_cycle()

        assert report.actions == []

    @pytest.mark.asyncio
    async def test_holdings_from_venue_orders(self):
        venue = mock_venue_api({"USD": 0.0, "BTC": 0.5})
        venue.historical_orders.return_value = [buy_event()]
        market = FakeMarket({"BTC-USD": 110.0}, {"BTC-USD": flat_history(100.0)})
        event_log = FakeEventLog()
        config = make_config(holding_source="venue_orders")
        orchestrator = make_orchestrator(config, market, venue, event_log)

        report = await orchestrator.run_cycle()

        venue.historical_orders.assert_awaited_once_with("BTC-USD")
        assert [a.kind for a in report.actions] == [TradeKind.SELL]
        venue.submit_sell.assert_awaited_once_with("BTC-USD", 0.5, 110.0)


# ── Cooldown and refresh ──────────────────────────────────────────────────


class TestCycleGating:
    @pytest.mark.asyncio
    async def test_cooldown_is_global_across_tickers(self):
        venue = MockVenue(balances={"USD": 100.0})
        market = FakeMarket(
            {"BTC-USD": 90.0, "ETH-USD": 90.0},
            {"BTC-USD": flat_history(100.0), "ETH-USD": flat_history(100.0)},
        )
        config = make_config(watchlist=["BTC-USD", "ETH-USD"])
        orchestrator = make_orchestrator(config, market, venue)

        report = await orchestrator.run_cycle()

        assert [a.ticker for a in report.actions] == ["BTC-USD"]
        assert report.cooldown_blocked

    @pytest.mark.asyncio
    async def test_zero_cooldown_allows_every_ticker(self):
        venue = MockVenue(balances={"USD": 100.0})
        market = FakeMarket(
            {"BTC-USD": 90.0, "ETH-USD": 90.0},
            {"BTC-USD": flat_history(100.0), "ETH-USD": flat_history(100.0)},
        )
        config = make_config(watchlist=["BTC-USD", "ETH-USD"], trade_cooldown_minutes=0)
        orchestrator = make_orchestrator(config, market, venue)

        report = await orchestrator.run_cycle()

        assert [a.ticker for a in report.actions] == ["BTC-USD", "ETH-USD"]
        assert orchestrator.state.balances["USD"] == pytest.approx(80.0, abs=1e-6)

    @pytest.mark.asyncio
    async def test_buy_arms_cooldown_before_sell_pass(self):
        venue = MockVenue(balances={"USD": 100.0, "ETH": 1.0})
        market = FakeMarket(
            {"BTC-USD": 90.0, "ETH-USD": 200.0},
            {"BTC-USD": flat_history(100.0), "ETH-USD": flat_history(100.0)},
        )
        event_log = FakeEventLog([buy_event(ticker="ETH-USD", quantity=1.0, usd_amount=100.0)])
        config = make_config(watchlist=["BTC-USD", "ETH-USD"])
        orchestrator = make_orchestrator(config, market, venue, event_log)

        report = await orchestrator.run_cycle()

        assert [a.kind for a in report.actions] == [TradeKind.BUY]
        assert venue.balances["ETH"] == 1.0

    @pytest.mark.asyncio
    async def test_venue_failure_aborts_cycle(self):
        venue = mock_venue_api({"USD": 100.0})
        venue.list_portfolios.side_effect = VenueError("401 Unauthorized")
        market = FakeMarket({"BTC-USD": 90.0}, {"BTC-USD": flat_history(100.0)})
        orchestrator = make_orchestrator(make_config(), market, venue)

        report = await orchestrator.run_cycle()

        assert report.aborted
        assert "401" in report.abort_reason
        venue.submit_buy.assert_not_awaited()
        assert orchestrator.state.last_report is report

    @pytest.mark.asyncio
    async def test_missing_portfolio_aborts_cycle(self):
        venue = mock_venue_api({"USD": 100.0})
        venue.list_portfolios.return_value = [Portfolio(uuid="p9", name="Savings")]
        orchestrator = make_orchestrator(make_config(), FakeMarket({}), venue)

        report = await orchestrator.run_cycle()

        assert report.aborted
        assert "Default" in report.abort_reason

    @pytest.mark.asyncio
    async def test_event_log_failure_aborts_cycle(self):
        venue = MockVenue(balances={"USD": 100.0})
        event_log = FakeEventLog()
        event_log.trade_events_for_ticker = AsyncMock(side_effect=DataUnavailable("db down"))
        market = FakeMarket({"BTC-USD": 90.0}, {"BTC-USD": flat_history(100.0)})
        orchestrator = make_orchestrator(make_config(), market, venue, event_log)

        report = await orchestrator.run_cycle()

        assert report.aborted
        assert venue.fills == []


# ── Loop ──────────────────────────────────────────────────────────────────


class TestRunForever:
    @pytest.mark.asyncio
    async def test_stops_before_first_cycle(self):
        stop = asyncio.Event()
        stop.set()
        orchestrator = make_orchestrator(make_config(), FakeMarket({}), MockVenue({"USD": 0.0}))

        await orchestrator.run_forever(stop)

        assert orchestrator.state.cycles_run == 0

    @pytest.mark.asyncio
    async def test_max_cycles(self):
        orchestrator = make_orchestrator(make_config(), FakeMarket({}), MockVenue({"USD": 0.0}))

        await orchestrator.run_forever(asyncio.Event(), max_cycles=1)

        assert orchestrator.state.cycles_run == 1

    @pytest.mark.asyncio
    async def test_stop_during_cycle_finishes_cycle(self):
        stop = asyncio.Event()
        venue = mock_venue_api({"USD": 0.0})

        async def list_portfolios():
            stop.set()
            return [Portfolio(uuid="p1", name="Default")]

        venue.list_portfolios.side_effect = list_portfolios
        orchestrator = make_orchestrator(make_config(), FakeMarket({}), venue)

        await asyncio.wait_for(orchestrator.run_forever(stop), timeout=5)

        assert orchestrator.state.cycles_run == 1
        assert not orchestrator.state.last_report.aborted

    @pytest.mark.asyncio
    async def test_unexpected_error_does_not_stop_loop(self):
        venue = mock_venue_api({"USD": 100.0})
        venue.list_portfolios.side_effect = RuntimeError("boom")
        orchestrator = make_orchestrator(make_config(), FakeMarket({}), venue)

        await orchestrator.run_forever(asyncio.Event(), max_cycles=1)

        venue.list_portfolios.assert_awaited_once()
