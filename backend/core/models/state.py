"""Mutable engine state owned by the decision orchestrator.

Nothing here is shared between tasks: the orchestrator is the only
writer and reader, and it runs one cycle at a time.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta

from core.models.market import MarketSnapshot
from core.models.trade import Holding, TradeKind


@dataclass
class CooldownState:
    """Global gate between consecutive trading actions."""

    duration: timedelta
    last_action_at: datetime | None = None

    def is_active(self, now: datetime) -> bool:
        """True while ``now - last_action_at < duration``."""
        if self.last_action_at is None:
            return False
        return now - self.last_action_at < self.duration

    def remaining(self, now: datetime) -> timedelta:
        """Time left before a new action is allowed (zero when inactive)."""
        if not self.is_active(now):
            return timedelta(0)
        return self.duration - (now - self.last_action_at)

    def arm(self, now: datetime) -> None:
        """Start the cooldown from ``now``. Call only after a confirmed action."""
        self.last_action_at = now


@dataclass(slots=True, frozen=True)
class TradeAction:
    """An order the orchestrator submitted and the venue accepted."""

    ticker: str
    kind: TradeKind
    quantity: float
    price: float
    rule_id: str
    rule_type: str
    timestamp: datetime
    order_id: str | None = None


@dataclass
class CycleReport:
    """Summary of one orchestration cycle."""

    started_at: datetime
    finished_at: datetime | None = None
    aborted: bool = False
    abort_reason: str = ""
    cooldown_blocked: bool = False
    actions: list[TradeAction] = field(default_factory=list)
    skipped: dict[str, str] = field(default_factory=dict)

    def skip(self, ticker: str, reason: str) -> None:
        # Keep the first reason recorded for a ticker in this cycle
        self.skipped.setdefault(ticker, reason)


@dataclass
class EngineState:
    """Holdings, balances, prices and cooldown for the running engine."""

    cooldown: CooldownState
    holdings: dict[str, Holding] = field(default_factory=dict)
    balances: dict[str, float] = field(default_factory=dict)
    prices: MarketSnapshot = field(default_factory=dict)
    last_report: CycleReport | None = None
    cycles_run: int = 0
