"""Trade venue clients."""

from app.clients.coinbase_venue import CoinbaseVenue, to_symbol
from app.clients.mock_venue import MOCK_PORTFOLIO_UUID, MockVenue
from app.clients.factory import create_venue

__all__ = [
    "CoinbaseVenue",
    "to_symbol",
    "MOCK_PORTFOLIO_UUID",
    "MockVenue",
    "create_venue",
]
