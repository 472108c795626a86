"""Market data models.

PriceSample is a hot path model: a backtest replays thousands of samples
per step, so it is a slotted dataclass with float prices rather than a
Pydantic model.
"""

from dataclasses import dataclass
from datetime import datetime


@dataclass(slots=True, frozen=True)
class PriceSample:
    """A single price observation for one asset."""

    timestamp: datetime
    price: float


# Ordered oldest -> newest. May be sparse.
PriceSeries = list[PriceSample]

# ticker -> latest price, None meaning "no recent data"
MarketSnapshot = dict[str, float | None]


def closes(series: PriceSeries) -> list[float]:
    """Extract the price column of a series for indicator input."""
    return [sample.price for sample in series]
