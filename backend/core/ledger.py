"""Position ledger: rebuild a holding from the trade-event history.

Uses moving-average cost basis. A buy adds its quantity and USD amount;
a sell removes quantity at the current average unit cost, so a partial
sell never changes the unit cost of what remains.

The result is a pure function of the event sequence. Holdings are
recomputed from the full history every cycle and never stored, so a
restart recovers the exact same positions from the log.
"""

import logging
from datetime import datetime
from typing import Iterable

from core.models.trade import Holding, TradeEvent, TradeKind

logger = logging.getLogger(__name__)

# Smallest quantity still treated as held, well below any venue increment
DUST_QUANTITY = 1e-12


def rebuild_holding(ticker: str, events: Iterable[TradeEvent]) -> Holding | None:
    """
    Reconstruct quantity and average cost for one ticker.

    Events are stably sorted by timestamp, so events with equal timestamps
    keep their original insertion order. Events for other tickers and
    events whose type is neither buy nor sell are ignored.

    Args:
        ticker: Ticker to rebuild (e.g. "BTC-USD")
        events: Trade events, typically the full log for the ticker

    Returns:
        Holding with quantity > 0, or None when nothing is held
    """
    ordered = sorted(
        (e for e in events if e.ticker == ticker),
        key=lambda e: e.timestamp,
    )

    quantity = 0.0
    cost = 0.0
    last_timestamp: datetime | None = None

    for event in ordered:
        kind = event.kind
        if kind is TradeKind.BUY:
            quantity += event.quantity
            cost += event.usd_amount
        elif kind is TradeKind.SELL:
            if quantity > 0:
                avg_cost = cost / quantity
                quantity -= event.quantity
                cost -= event.quantity * avg_cost
                # Oversell is absorbed, never carried as a negative position
                if quantity < 0 or cost < 0:
                    logger.debug(
                        f"{ticker}: sell of {event.quantity} exceeds position, clamping to zero"
                    )
                quantity = max(quantity, 0.0)
                cost = max(cost, 0.0)
                # Float residue of a full exit (0.1 + 0.2 - 0.3) is no position
                if quantity <= DUST_QUANTITY:
                    quantity = 0.0
                    cost = 0.0
        else:
            continue
        last_timestamp = event.timestamp

    if quantity <= 0:
        return None

    return Holding(
        ticker=ticker,
        quantity=quantity,
        average_cost=cost / quantity,
        as_of=last_timestamp,
    )


def rebuild_holdings(
    tickers: Iterable[str],
    events: Iterable[TradeEvent],
) -> dict[str, Holding]:
    """Rebuild holdings for several tickers from one event sequence.

    Tickers with no position are left out of the result.
    """
    events = list(events)
    holdings = {}
    for ticker in tickers:
        holding = rebuild_holding(ticker, events)
        if holding is not None:
            holdings[ticker] = holding
    return holdings
