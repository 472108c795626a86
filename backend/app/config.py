"""Application configuration."""

from datetime import timedelta
from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Database (TimescaleDB: spot prices + trade events)
    # Required, e.g. postgresql://localhost/market_data
    database_url: str = ""

    # Price store filters
    price_source: str = "coinbase"
    latest_price_max_age_minutes: int = 5

    # Coinbase Advanced Trade API (CDP key name + EC private key)
    coinbase_api_key: str = ""
    coinbase_api_secret: str = ""

    # "simulation" uses the in-memory venue, "live_trading" places real orders
    trading_mode: Literal["simulation", "live_trading"] = "simulation"
    # Live orders: "market" (IOC) or "limit" at the evaluated price
    order_type: Literal["market", "limit"] = "market"

    # Rules, watchlist and timing (YAML)
    trading_config_path: str = "trading.yaml"

    # Server
    host: str = "0.0.0.0"
    port: int = 8000
    log_level: str = "INFO"
    debug: bool = False

    @property
    def latest_price_max_age(self) -> timedelta:
        return timedelta(minutes=self.latest_price_max_age_minutes)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
