#!/usr/bin/env python3
"""
Trading bot launcher.

Runs preflight checks and then starts the API server with the engine.

Usage:
    python scripts/start.py              # check, then start
    python scripts/start.py --check      # check only
    python scripts/start.py --port 8080  # custom port
"""

import argparse
import asyncio
import os
import sys

# Ensure app/ and core/ are importable
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from app.clients import create_venue
from app.config import get_settings
from app.storage import Database, PriceRepository
from app.trading_config import TradingConfig, load_trading_config
from core.errors import FatalConfigError, TradingBotError


def print_banner():
    print()
    print("=" * 60)
    print("   ITTT Trading Bot")
    print("=" * 60)
    print()


def check_python_version() -> bool:
    print("[check] Python version...", end=" ")
    version = sys.version_info
    if version >= (3, 10):
        print(f"OK {version.major}.{version.minor}.{version.micro}")
        return True
    print(f"FAIL {version.major}.{version.minor} (need >= 3.10)")
    return False


def check_trading_config() -> TradingConfig | None:
    settings = get_settings()
    print(f"[check] Trading config {settings.trading_config_path}...", end=" ")
    try:
        config = load_trading_config(settings.trading_config_path)
    except FatalConfigError as e:
        print(f"FAIL {e}")
        return None

    print(
        f"OK {len(config.watchlist)} tickers, "
        f"{len(config.buy_rules)} buy / {len(config.sell_rules)} sell rules"
    )
    for rule in config.inert_rules():
        print(f"  ! rule '{rule.id}' ({rule.type}) is inert: {rule.reason}")
    return config


async def check_database(config: TradingConfig) -> bool:
    """Connect and look up the latest price of each watched ticker."""
    settings = get_settings()
    print("[check] Database...")
    db = Database(settings.database_url)
    try:
        repo = PriceRepository(
            source=settings.price_source,
            max_age=settings.latest_price_max_age,
            database=db,
        )
        for ticker in config.watchlist:
            price = await repo.latest_price(ticker)
            if price is None:
                print(f"  ! {ticker}: no price in the last {settings.latest_price_max_age}")
            else:
                print(f"  OK {ticker}: {price}")
        return True
    except (TradingBotError, OSError) as e:
        print(f"  FAIL {e}")
        return False
    finally:
        await db.close()


async def check_venue(config: TradingConfig) -> bool:
    """Resolve the configured portfolio and print its balances."""
    settings = get_settings()
    print(f"[check] Venue ({settings.trading_mode})...", end=" ")
    try:
        venue = create_venue(settings, config)
    except FatalConfigError as e:
        print(f"FAIL {e}")
        return False

    try:
        portfolios = await venue.list_portfolios()
        name = config.account.portfolio_name
        portfolio = next((p for p in portfolios if p.name == name), None)
        if portfolio is None:
            print(f"FAIL portfolio '{name}' not found")
            return False
        balances = await venue.get_portfolio(portfolio.uuid)
    except TradingBotError as e:
        print(f"FAIL {e}")
        return False
    finally:
        close = getattr(venue, "close", None)
        if close is not None:
            await close()

    print("OK")
    for asset, amount in sorted(balances.items()):
        print(f"  {asset}: {amount}")
    return True


async def run_checks() -> bool:
    print("-" * 60)
    print("Preflight")
    print("-" * 60)

    if not check_python_version():
        return False
    config = check_trading_config()
    if config is None:
        return False

    results = [
        await check_database(config),
        await check_venue(config),
    ]

    print()
    print("-" * 60)
    if all(results):
        print("All checks passed")
        return True
    print("Some checks failed")
    return False


def start_server(host: str, port: int):
    settings = get_settings()

    print()
    print("-" * 60)
    print(f"  Mode:   {settings.trading_mode}")
    print(f"  Server: http://{host}:{port}")
    print(f"  API:    http://{host}:{port}/docs")
    print("-" * 60)
    print()

    import uvicorn

    uvicorn.run(
        "app.main:app",
        host=host,
        port=port,
        log_level="warning",
        reload=False,
    )


def main():
    settings = get_settings()
    parser = argparse.ArgumentParser(
        description="Run preflight checks and start the trading bot",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python scripts/start.py
  python scripts/start.py --check
  python scripts/start.py --port 8080
        """,
    )
    parser.add_argument("--check", action="store_true", help="Run checks only")
    parser.add_argument("--host", type=str, default=settings.host, help="Bind address")
    parser.add_argument("--port", type=int, default=settings.port, help="Bind port")
    args = parser.parse_args()

    print_banner()

    if not asyncio.run(run_checks()):
        sys.exit(1)

    if args.check:
        return

    start_server(args.host, args.port)


if __name__ == "__main__":
    try:
        main()
    except KeyboardInterrupt:
        print("\nStopped.")
        sys.exit(0)
