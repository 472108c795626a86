"""Rule models.

Each rule kind is its own model with a ``Literal`` type tag and a typed
params model, combined into a discriminated union that is validated once
when the trading config is loaded. Parameter names from older config
files (``sma_days``, ``percentage_below_sma``, ``dip_percentage_trigger``,
...) are accepted as aliases.

A rule whose tag is unknown or whose params are malformed is loaded as an
InertRule: it never fires and never raises.
"""

import logging
from typing import Annotated, Any, ClassVar, Literal, Union

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    TypeAdapter,
    ValidationError,
    model_validator,
)

from core.errors import ConfigError

logger = logging.getLogger(__name__)

# Prices are sampled once per minute, so one day of history is 1440 points
MINUTES_PER_DAY = 1440


def _alias(*names: str) -> AliasChoices:
    return AliasChoices(*names)


# =============================================================================
# Params
# =============================================================================

class _Params(BaseModel):
    model_config = ConfigDict(frozen=True)


class SmaDipParams(_Params):
    period: int = Field(gt=0)
    percent_below: float = Field(
        validation_alias=_alias("percent_below", "percentBelow", "percentage_below_sma"),
    )

    @model_validator(mode="before")
    @classmethod
    def _days_to_period(cls, data: Any) -> Any:
        # sma_days is expressed in days of 1m samples
        if isinstance(data, dict) and "period" not in data and "sma_days" in data:
            data = dict(data)
            data["period"] = int(float(data.pop("sma_days")) * MINUTES_PER_DAY)
        return data


class BollingerParams(_Params):
    period: int = Field(gt=0)
    std_dev_multiplier: float = Field(
        default=2.0,
        validation_alias=_alias("std_dev_multiplier", "stdDevMultiplier"),
    )


class RocDipParams(_Params):
    roc_period: int = Field(gt=0, validation_alias=_alias("roc_period", "rocPeriod"))
    dip_trigger: float = Field(
        validation_alias=_alias("dip_trigger", "dipTrigger", "dip_percentage_trigger"),
    )


class RocSpikeParams(_Params):
    roc_period: int = Field(gt=0, validation_alias=_alias("roc_period", "rocPeriod"))
    spike_trigger: float = Field(
        validation_alias=_alias("spike_trigger", "spikeTrigger", "spike_percentage_trigger"),
    )


class ProfitTargetParams(_Params):
    percent_above: float = Field(
        validation_alias=_alias("percent_above", "percentAbove", "percentage_above_purchase"),
    )


class StopLossParams(_Params):
    percent_below: float = Field(
        validation_alias=_alias("percent_below", "percentBelow", "percentage_below_purchase"),
    )


# =============================================================================
# Rules
# =============================================================================

class _Rule(BaseModel):
    model_config = ConfigDict(frozen=True)

    # Sell-side rules that compare against the position's average cost
    requires_holding: ClassVar[bool] = False

    id: str
    description: str = ""

    @property
    def history_window(self) -> int:
        """Number of price samples this rule needs before it can fire."""
        return 0


class SmaDipRule(_Rule):
    type: Literal["sma_dip_percentage"] = "sma_dip_percentage"
    params: SmaDipParams

    @property
    def history_window(self) -> int:
        return self.params.period


class BollingerLowerBandRule(_Rule):
    type: Literal["bollinger_lower_band_cross"] = "bollinger_lower_band_cross"
    params: BollingerParams

    @property
    def history_window(self) -> int:
        return self.params.period


class BollingerUpperBandRule(_Rule):
    type: Literal["bollinger_upper_band_cross"] = "bollinger_upper_band_cross"
    params: BollingerParams

    @property
    def history_window(self) -> int:
        return self.params.period


class BollingerMiddleBandRule(_Rule):
    type: Literal["bollinger_middle_band_cross"] = "bollinger_middle_band_cross"
    params: BollingerParams

    @property
    def history_window(self) -> int:
        return self.params.period


class RocDipRule(_Rule):
    type: Literal["roc_dip"] = "roc_dip"
    params: RocDipParams

    @property
    def history_window(self) -> int:
        return self.params.roc_period


class RocSpikeRule(_Rule):
    requires_holding: ClassVar[bool] = True

    type: Literal["roc_spike"] = "roc_spike"
    params: RocSpikeParams

    @property
    def history_window(self) -> int:
        return self.params.roc_period


class ProfitTargetRule(_Rule):
    requires_holding: ClassVar[bool] = True

    type: Literal["profit_percentage_target"] = "profit_percentage_target"
    params: ProfitTargetParams


class StopLossRule(_Rule):
    requires_holding: ClassVar[bool] = True

    type: Literal["stop_loss_percentage"] = "stop_loss_percentage"
    params: StopLossParams


class InertRule(_Rule):
    """A rule that could not be validated. Never fires."""

    type: str = ""
    params: dict[str, Any] = Field(default_factory=dict)
    reason: str = ""


KnownRule = Annotated[
    Union[
        SmaDipRule,
        BollingerLowerBandRule,
        BollingerUpperBandRule,
        BollingerMiddleBandRule,
        RocDipRule,
        RocSpikeRule,
        ProfitTargetRule,
        StopLossRule,
    ],
    Field(discriminator="type"),
]

RuleSpec = Union[
    SmaDipRule,
    BollingerLowerBandRule,
    BollingerUpperBandRule,
    BollingerMiddleBandRule,
    RocDipRule,
    RocSpikeRule,
    ProfitTargetRule,
    StopLossRule,
    InertRule,
]

_KNOWN_RULE_ADAPTER: TypeAdapter = TypeAdapter(KnownRule)


def _format_errors(exc: ValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err["loc"])
        parts.append(f"{loc}: {err['msg']}" if loc else err["msg"])
    return "; ".join(parts)


def parse_rule(raw: Any, strict: bool = False) -> RuleSpec:
    """Validate a raw rule mapping into a typed rule.

    Args:
        raw: Mapping with ``id``, ``type``, ``params`` and optional ``description``
        strict: Raise instead of returning an InertRule

    Returns:
        The typed rule, or an InertRule when validation fails

    Raises:
        ConfigError: If validation fails and ``strict`` is set
    """
    try:
        return _KNOWN_RULE_ADAPTER.validate_python(raw)
    except ValidationError as e:
        data = raw if isinstance(raw, dict) else {}
        rule_id = str(data.get("id", "?"))
        rule_type = str(data.get("type", ""))
        reason = _format_errors(e)

        if strict:
            raise ConfigError(f"Rule '{rule_id}' ({rule_type}) is invalid: {reason}") from e

        logger.warning(
            "Rule '%s' (%s) is invalid and will never fire: %s",
            rule_id,
            rule_type,
            reason,
        )
        params = data.get("params")
        return InertRule(
            id=rule_id,
            description=str(data.get("description", "")),
            type=rule_type,
            params=params if isinstance(params, dict) else {},
            reason=reason,
        )


def parse_rules(raw_rules: list[Any], strict: bool = False) -> list[RuleSpec]:
    """Validate an ordered list of raw rules, keeping their order."""
    return [parse_rule(raw, strict=strict) for raw in raw_rules]
