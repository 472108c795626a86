"""Buy-rule replay over historical prices.

At every step the simulator fetches the trailing lookback window ending
at the simulated time, takes the last sample as the current price and
runs the buy rules through ``select_rule``, the same path the live
orchestrator uses. Nothing is bought, held or cooled down.
"""

import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Sequence

from core.errors import DataUnavailable, InsufficientHistory
from core.models import RuleSpec, closes
from core.protocols import MarketDataSource
from core.rules import select_rule

logger = logging.getLogger(__name__)

DEFAULT_STEP = timedelta(minutes=5)
DEFAULT_LOOKBACK = timedelta(hours=73)


@dataclass(slots=True, frozen=True)
class BuyFiring:
    """A simulated time at which a buy rule fired."""

    timestamp: datetime
    price: float
    rule_id: str


@dataclass
class BacktestReport:
    """Result of one replay."""

    ticker: str
    start: datetime
    end: datetime
    step: timedelta
    lookback: timedelta
    firings: list[BuyFiring] = field(default_factory=list)
    steps_evaluated: int = 0
    steps_without_data: int = 0
    steps_insufficient: int = 0

    @property
    def total_firings(self) -> int:
        return len(self.firings)

    @property
    def by_rule(self) -> dict[str, int]:
        """Firing count per rule id, in order of first firing."""
        return dict(Counter(f.rule_id for f in self.firings))


class BacktestSimulator:
    """Replays buy rules for one ticker over ``[start, end]``."""

    def __init__(
        self,
        rules: Sequence[RuleSpec],
        source: MarketDataSource,
        step: timedelta = DEFAULT_STEP,
        lookback: timedelta = DEFAULT_LOOKBACK,
    ):
        if step <= timedelta(0):
            raise ValueError("step must be positive")
        self.rules = list(rules)
        self.source = source
        self.step = step
        self.lookback = lookback

    async def run(self, ticker: str, start: datetime, end: datetime) -> BacktestReport:
        """
        Step from ``start`` to ``end`` inclusive.

        Args:
            ticker: Ticker to replay (e.g. "BTC-USD")
            start: First simulated time
            end: Last simulated time (must be after start)

        Returns:
            BacktestReport with one firing per step at most
        """
        if start >= end:
            raise ValueError("start must be before end")

        report = BacktestReport(
            ticker=ticker,
            start=start,
            end=end,
            step=self.step,
            lookback=self.lookback,
        )
        logger.info(f"Backtest {ticker}: {start.isoformat()} -> {end.isoformat()}")

        now = start
        while now <= end:
            await self._step(ticker, now, report)
            now += self.step

        logger.info(
            f"Backtest {ticker} complete: {report.total_firings} buy signals "
            f"over {report.steps_evaluated} steps"
        )
        return report

    async def _step(self, ticker: str, now: datetime, report: BacktestReport) -> None:
        try:
            history = await self.source.historical_prices(ticker, now - self.lookback, now)
        except DataUnavailable as e:
            logger.warning(f"[{now.isoformat()}] {ticker}: history unavailable: {e}")
            history = []

        if not history:
            logger.debug(f"[{now.isoformat()}] No historical data for {ticker}, skipping")
            report.steps_without_data += 1
            return

        report.steps_evaluated += 1
        price = history[-1].price

        try:
            rule = select_rule(self.rules, price, closes(history), None, ticker=ticker)
        except InsufficientHistory as e:
            logger.debug(f"[{now.isoformat()}] {e}")
            report.steps_insufficient += 1
            return

        if rule is not None:
            logger.info(
                f"[{now.isoformat()}] BUY signal for {ticker} by rule '{rule.id}' at {price:.2f}"
            )
            report.firings.append(BuyFiring(timestamp=now, price=price, rule_id=rule.id))
