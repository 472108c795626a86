#!/usr/bin/env python3
"""
Record a buy made outside the engine in the trade-event log.

The engine rebuilds holdings from the log every cycle, so the manual buy
is folded into the ticker's average cost from the next cycle on.

Usage:
    python scripts/log_manual_trade.py ETH-USD 0.03898803 2549.50
    python scripts/log_manual_trade.py XRP-USD 100 0.50 --timestamp 2024-01-15T10:30:00Z
"""

import argparse
import asyncio
import logging
import os
import sys
from datetime import datetime, timezone

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from app.storage import TradeEventRepository, get_database
from core.errors import DataUnavailable
from core.models import manual_buy_event

logger = logging.getLogger(__name__)


def parse_timestamp(value: str) -> datetime:
    try:
        dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        raise argparse.ArgumentTypeError(f"Invalid timestamp: {value}")
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Log a manual purchase")
    parser.add_argument("ticker", help="Trading pair (e.g. ETH-USD)")
    parser.add_argument("quantity", type=float, help="Units of base currency bought")
    parser.add_argument("price", type=float, help="Price per unit in quote currency")
    parser.add_argument(
        "--timestamp",
        type=parse_timestamp,
        default=None,
        help="ISO-8601 time of the purchase (default: now)",
    )
    return parser.parse_args()


async def main():
    args = parse_args()
    logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s")

    try:
        event = manual_buy_event(
            args.ticker,
            args.quantity,
            args.price,
            args.timestamp or datetime.now(timezone.utc),
        )
    except ValueError as e:
        print(f"Error: {e}")
        sys.exit(1)

    repo = TradeEventRepository()
    try:
        await repo.append_trade_event(event)
    except DataUnavailable as e:
        print(f"Error writing manual trade event: {e}")
        sys.exit(1)
    finally:
        await get_database().close()

    print(
        f"Logged manual purchase for {event.ticker}: {event.quantity:.8f} units "
        f"at ${event.price:.2f} (${event.usd_amount:.2f} total)"
    )


if __name__ == "__main__":
    asyncio.run(main())
