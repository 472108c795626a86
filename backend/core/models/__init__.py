"""Data models shared by the live engine and the backtest simulator."""

from core.models.market import MarketSnapshot, PriceSample, PriceSeries, closes
from core.models.trade import (
    BUY_EXECUTION,
    MANUAL_BUY_EXECUTION,
    MANUAL_RULE_ID,
    MANUAL_RULE_TYPE,
    SELL_EXECUTION,
    Holding,
    OrderResult,
    Portfolio,
    TradeEvent,
    TradeKind,
    kind_from_tag,
    manual_buy_event,
)
from core.models.rules import (
    MINUTES_PER_DAY,
    BollingerLowerBandRule,
    BollingerMiddleBandRule,
    BollingerParams,
    BollingerUpperBandRule,
    InertRule,
    ProfitTargetParams,
    ProfitTargetRule,
    RocDipParams,
    RocDipRule,
    RocSpikeParams,
    RocSpikeRule,
    RuleSpec,
    SmaDipParams,
    SmaDipRule,
    StopLossParams,
    StopLossRule,
    parse_rule,
    parse_rules,
)
from core.models.state import CooldownState, CycleReport, EngineState, TradeAction

__all__ = [
    # Market data (hot path dataclasses)
    "MarketSnapshot",
    "PriceSample",
    "PriceSeries",
    "closes",
    # Trades
    "BUY_EXECUTION",
    "MANUAL_BUY_EXECUTION",
    "MANUAL_RULE_ID",
    "MANUAL_RULE_TYPE",
    "SELL_EXECUTION",
    "Holding",
    "OrderResult",
    "Portfolio",
    "TradeEvent",
    "TradeKind",
    "kind_from_tag",
    "manual_buy_event",
    # Rules (Pydantic)
    "MINUTES_PER_DAY",
    "BollingerLowerBandRule",
    "BollingerMiddleBandRule",
    "BollingerParams",
    "BollingerUpperBandRule",
    "InertRule",
    "ProfitTargetParams",
    "ProfitTargetRule",
    "RocDipParams",
    "RocDipRule",
    "RocSpikeParams",
    "RocSpikeRule",
    "RuleSpec",
    "SmaDipParams",
    "SmaDipRule",
    "StopLossParams",
    "StopLossRule",
    "parse_rule",
    "parse_rules",
    # Engine state
    "CooldownState",
    "CycleReport",
    "EngineState",
    "TradeAction",
]
