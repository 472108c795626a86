"""Trade event, holding and order models."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class TradeKind(str, Enum):
    """Direction of a recorded trade."""

    BUY = "BUY"
    SELL = "SELL"


# Event-type tags written by the engine and the manual logging script
BUY_EXECUTION = "BUY_EXECUTION"
SELL_EXECUTION = "SELL_EXECUTION"
MANUAL_BUY_EXECUTION = "MANUAL_BUY_EXECUTION"


def kind_from_tag(event_type: str) -> TradeKind | None:
    """Derive the trade kind from an event-type tag.

    Any tag containing "BUY" is a buy (manual and automated alike), any
    tag containing "SELL" is a sell. Other tags carry no position change.
    """
    tag = event_type.upper()
    if "BUY" in tag:
        return TradeKind.BUY
    if "SELL" in tag:
        return TradeKind.SELL
    return None


class TradeEvent(BaseModel):
    """An executed trade, immutable once recorded."""

    model_config = ConfigDict(frozen=True)

    ticker: str
    event_type: str
    price: float
    quantity: float = Field(ge=0)
    usd_amount: float = Field(ge=0)
    timestamp: datetime
    rule_id: str = ""
    rule_type: str = ""

    @property
    def kind(self) -> TradeKind | None:
        return kind_from_tag(self.event_type)

    @property
    def base_asset(self) -> str:
        """Base currency of the ticker ("BTC" for "BTC-USD")."""
        return self.ticker.split("-")[0]


@dataclass(slots=True, frozen=True)
class Holding:
    """Position derived from the trade-event history. Never persisted."""

    ticker: str
    quantity: float
    average_cost: float
    as_of: datetime | None = None


@dataclass(slots=True, frozen=True)
class Portfolio:
    """A venue portfolio reference."""

    uuid: str
    name: str


@dataclass(slots=True)
class OrderResult:
    """Outcome of an order submission at the venue."""

    accepted: bool
    order_id: str | None = None
    message: str = ""
    raw: dict[str, Any] = field(default_factory=dict)


MANUAL_RULE_ID = "Manual_Entry"
MANUAL_RULE_TYPE = "Manual"


def manual_buy_event(
    ticker: str,
    quantity: float,
    price: float,
    timestamp: datetime,
) -> TradeEvent:
    """Buy event for a trade made outside the engine.

    The ledger treats it like any other buy, so it is folded into the
    holding's average cost.
    """
    if quantity <= 0 or price <= 0:
        raise ValueError("quantity and price must be positive")
    return TradeEvent(
        ticker=ticker,
        event_type=MANUAL_BUY_EXECUTION,
        price=price,
        quantity=quantity,
        usd_amount=quantity * price,
        timestamp=timestamp,
        rule_id=MANUAL_RULE_ID,
        rule_type=MANUAL_RULE_TYPE,
    )
