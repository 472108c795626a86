"""Backtest-specific configuration.

Independent of app/config.py: only needs a database URL, the price
source tag and the buy rules from trading.yaml.
"""

import logging
import os
from pathlib import Path

import yaml
from pydantic_settings import BaseSettings, SettingsConfigDict

from core.errors import ConfigError, FatalConfigError
from core.models.rules import RuleSpec, parse_rules

logger = logging.getLogger(__name__)


class BacktestSettings(BaseSettings):
    """Backtest configuration loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="BACKTEST_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Same TimescaleDB the live engine reads prices from
    database_url: str = os.environ.get(
        "DATABASE_URL", "postgresql://localhost/market_data"
    )
    price_source: str = "coinbase"
    trading_config_path: str = os.environ.get("TRADING_CONFIG_PATH", "trading.yaml")


_settings: BacktestSettings | None = None


def get_backtest_settings() -> BacktestSettings:
    """Get cached backtest settings instance."""
    global _settings
    if _settings is None:
        _settings = BacktestSettings()
    return _settings


def load_buy_rules(path: Path | str) -> list[RuleSpec]:
    """Read the ordered buy rules from a trading.yaml file.

    Honors ``strict_rules`` the same way the live engine does.

    Raises:
        FatalConfigError: If the file is missing, unreadable or invalid.
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FatalConfigError(f"Trading config not found at {config_path}")

    try:
        with open(config_path) as f:
            raw = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        raise FatalConfigError(f"Cannot read trading config {config_path}: {e}") from e

    if not isinstance(raw, dict):
        raise FatalConfigError(f"Trading config {config_path} must be a mapping")

    raw_rules = raw.get("buy_rules") or []
    if not isinstance(raw_rules, list):
        raise FatalConfigError("buy_rules must be a list of rules")

    try:
        rules = parse_rules(raw_rules, strict=bool(raw.get("strict_rules", False)))
    except ConfigError as e:
        raise FatalConfigError(str(e)) from e

    logger.info(f"Loaded {len(rules)} buy rules from {config_path}")
    return rules
