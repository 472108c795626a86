"""Venue selection by trading mode."""

import logging

from core.errors import FatalConfigError
from core.protocols import TradeVenue
from app.config import Settings
from app.trading_config import TradingConfig
from app.clients.coinbase_venue import CoinbaseVenue
from app.clients.mock_venue import MockVenue

logger = logging.getLogger(__name__)


def create_venue(settings: Settings, config: TradingConfig) -> TradeVenue:
    """Build the venue for ``settings.trading_mode``.

    Raises:
        FatalConfigError: live_trading without Coinbase credentials.
    """
    if settings.trading_mode == "live_trading":
        if not settings.coinbase_api_key or not settings.coinbase_api_secret:
            raise FatalConfigError(
                "live_trading requires COINBASE_API_KEY and COINBASE_API_SECRET"
            )
        logger.warning("LIVE TRADING enabled: orders will be sent to Coinbase")
        return CoinbaseVenue(
            settings.coinbase_api_key,
            settings.coinbase_api_secret,
            order_type=settings.order_type,
        )

    logger.info(f"Simulation mode: mock venue with balances {config.mock_balances}")
    return MockVenue(
        balances=config.mock_balances,
        portfolio_name=config.account.portfolio_name,
        quote_currency=config.account.quote_currency,
    )
