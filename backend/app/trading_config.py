"""Trading configuration loaded from trading.yaml.

Holds the immutable snapshot the engine runs with for its whole lifetime:
- Watchlist, per-trade allocation and quote currency
- Ordered buy and sell rule lists (typed, validated once here)
- Cooldown, poll interval and history windows
- Order quantity precision per ticker

The file is never re-read while the process runs.
"""

import logging
from datetime import timedelta
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    ValidationInfo,
    field_validator,
    model_validator,
)

from core.errors import ConfigError, FatalConfigError
from core.models.rules import InertRule, RuleSpec, parse_rules

logger = logging.getLogger(__name__)


class AccountSettings(BaseModel):
    """Cash side of the account."""

    model_config = ConfigDict(frozen=True)

    trade_allocation_usd: float = Field(gt=0)
    quote_currency: str = "USD"
    portfolio_name: str = "Default"


class PollingSettings(BaseModel):
    model_config = ConfigDict(frozen=True)

    main_loop_minutes: float = Field(default=1.0, gt=0)


class HistorySettings(BaseModel):
    """Trailing windows fetched before evaluating rules."""

    model_config = ConfigDict(frozen=True)

    buy_window_hours: float = Field(default=73.0, gt=0)
    sell_window_hours: float = Field(default=25.0, gt=0)


class TradingConfig(BaseModel):
    """Top-level trading.yaml configuration."""

    model_config = ConfigDict(frozen=True)

    watchlist: list[str] = Field(
        validation_alias=AliasChoices("watchlist", "tickers_to_watch"),
    )
    account: AccountSettings
    trade_cooldown_minutes: float = Field(default=0.0, ge=0)
    polling: PollingSettings = Field(
        default_factory=PollingSettings,
        validation_alias=AliasChoices("polling", "polling_intervals"),
    )
    history: HistorySettings = HistorySettings()

    # Ticker -> decimals for order quantities (e.g. XRP-USD: 6)
    quantity_precision: dict[str, int] = {}
    default_quantity_precision: int = Field(default=8, ge=0)

    # Where holdings are rebuilt from each cycle
    holding_source: Literal["event_log", "venue_orders"] = "event_log"

    # Reject invalid rules at load time instead of keeping them inert
    strict_rules: bool = False

    # Starting balances for the in-memory venue (simulation mode)
    mock_balances: dict[str, float] = {"USD": 1000.0}

    # Must come after strict_rules so the validators can read it
    buy_rules: list[RuleSpec] = []
    sell_rules: list[RuleSpec] = []

    @field_validator("buy_rules", "sell_rules", mode="before")
    @classmethod
    def _parse_rules(cls, value: Any, info: ValidationInfo) -> Any:
        if value is None:
            return []
        if not isinstance(value, list):
            raise ValueError(f"{info.field_name} must be a list of rules")

        strict = bool(info.data.get("strict_rules", False))
        raw = [item for item in value if not isinstance(item, BaseModel)]
        if not raw:
            return value
        try:
            parsed = iter(parse_rules(raw, strict=strict))
        except ConfigError as e:
            raise ValueError(str(e)) from e
        return [item if isinstance(item, BaseModel) else next(parsed) for item in value]

    @model_validator(mode="after")
    def _validate(self):
        if not self.watchlist:
            raise ValueError("watchlist must contain at least one ticker")
        for ticker in self.watchlist:
            if "-" not in ticker:
                raise ValueError(
                    f"ticker '{ticker}' must be BASE-QUOTE (e.g. BTC-USD)"
                )
        return self

    @property
    def cooldown(self) -> timedelta:
        return timedelta(minutes=self.trade_cooldown_minutes)

    @property
    def poll_interval(self) -> timedelta:
        return timedelta(minutes=self.polling.main_loop_minutes)

    @property
    def buy_window(self) -> timedelta:
        return timedelta(hours=self.history.buy_window_hours)

    @property
    def sell_window(self) -> timedelta:
        return timedelta(hours=self.history.sell_window_hours)

    def precision_for(self, ticker: str) -> int:
        """Number of decimals allowed in order quantities for a ticker."""
        return self.quantity_precision.get(ticker, self.default_quantity_precision)

    def inert_rules(self) -> list[InertRule]:
        """Rules that failed validation and will never fire."""
        return [
            rule
            for rule in [*self.buy_rules, *self.sell_rules]
            if isinstance(rule, InertRule)
        ]


def load_trading_config(path: Path | str) -> TradingConfig:
    """Load trading config from a YAML file.

    Raises:
        FatalConfigError: If the file is missing, unreadable or invalid.
            The engine must not start with a partial configuration.
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

    try:
        config = TradingConfig(**raw)
    except ValidationError as e:
        raise FatalConfigError(f"Invalid trading config {config_path}: {e}") from e

    inert = config.inert_rules()
    logger.info(
        "Loaded trading config: %d tickers, %d buy rules, %d sell rules (%d inert), "
        "cooldown=%.0fm, poll=%.1fm",
        len(config.watchlist),
        len(config.buy_rules),
        len(config.sell_rules),
        len(inert),
        config.trade_cooldown_minutes,
        config.polling.main_loop_minutes,
    )
    return config
