"""CLI entry point for buy-rule backtests.

Usage:
    python -m backtest BTC-USD 2025-01-01T00:00:00Z 2025-01-02T00:00:00Z
    python -m backtest ETH-USD 2025-06-01 2025-06-30 --step-minutes 15 -o eth.json
"""

import argparse
import asyncio
import logging
import os
import sys
from datetime import datetime, timedelta, timezone

# Add backend to Python path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from core.errors import FatalConfigError

from backtest.config import get_backtest_settings, load_buy_rules
from backtest.report import ReportFormatter
from backtest.simulator import BacktestSimulator
from backtest.storage.database import BacktestDatabase
from backtest.storage.price_source import PostgresPriceSource


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO-8601 timestamp or YYYY-MM-DD date as UTC."""
    try:
        dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        raise argparse.ArgumentTypeError(
            f"Invalid timestamp: {value} (expected YYYY-MM-DDTHH:MM:SSZ or YYYY-MM-DD)"
        )
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Replay buy rules over historical spot prices",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m backtest BTC-USD 2025-01-01T00:00:00Z 2025-01-02T00:00:00Z
  python -m backtest XRP-USD 2025-06-01 2025-06-30 --config trading.yaml -o xrp.json
        """,
    )
    parser.add_argument("ticker", help="Ticker to replay (e.g. BTC-USD)")
    parser.add_argument("start", type=parse_timestamp, help="Start time (ISO-8601)")
    parser.add_argument("end", type=parse_timestamp, help="End time (ISO-8601)")
    parser.add_argument(
        "--step-minutes",
        type=float,
        default=5.0,
        help="Simulation step in minutes (default: 5)",
    )
    parser.add_argument(
        "--lookback-hours",
        type=float,
        default=73.0,
        help="Trailing history window in hours (default: 73)",
    )
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="Path to trading.yaml (default: BACKTEST_TRADING_CONFIG_PATH or trading.yaml)",
    )
    parser.add_argument(
        "--output", "-o",
        type=str,
        default=None,
        help="Output file path for JSON results",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Verbose logging",
    )

    args = parser.parse_args(argv)
    if args.start >= args.end:
        parser.error("start must be before end")
    if args.step_minutes <= 0:
        parser.error("--step-minutes must be positive")
    return args


async def main(argv: list[str] | None = None) -> None:
    args = parse_args(argv)

    # Configure logging
    level = logging.DEBUG if args.verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )
    logging.getLogger("asyncio").setLevel(logging.WARNING)

    settings = get_backtest_settings()

    try:
        rules = load_buy_rules(args.config or settings.trading_config_path)
    except FatalConfigError as e:
        print(f"Error: {e}")
        sys.exit(1)

    print(f"\nBacktest: {args.ticker}")
    print(f"Period: {args.start.isoformat()} -> {args.end.isoformat()}")
    print(f"Rules: {', '.join(rule.id for rule in rules) or '(none)'}")

    db = BacktestDatabase(settings.database_url)
    await db.init()

    try:
        simulator = BacktestSimulator(
            rules=rules,
            source=PostgresPriceSource(db.pool, source=settings.price_source),
            step=timedelta(minutes=args.step_minutes),
            lookback=timedelta(hours=args.lookback_hours),
        )
        print("\nRunning backtest...")
        report = await simulator.run(args.ticker, args.start, args.end)
    finally:
        await db.close()

    ReportFormatter.print_console(report)

    if args.output:
        ReportFormatter.save_json(report, args.output)


if __name__ == "__main__":
    asyncio.run(main())
