"""Built-in rule evaluators.

Each evaluator is a pure function of the rule, the current price, the
price history (oldest first, not including the current price) and the
holding. Preconditions shared by all rules (holding present, history long
enough) are checked by ``evaluate_rule`` before these are called.
"""

import logging
from typing import Sequence

from core.indicators import bollinger_bands, roc, sma
from core.models.rules import (
    BollingerLowerBandRule,
    BollingerMiddleBandRule,
    BollingerUpperBandRule,
    ProfitTargetRule,
    RocDipRule,
    RocSpikeRule,
    SmaDipRule,
    StopLossRule,
)
from core.models.trade import Holding
from core.rules.registry import register_rule

logger = logging.getLogger(__name__)


def _roc_with_current(history: Sequence[float], current_price: float, period: int) -> float | None:
    """ROC over the trailing ``period`` samples followed by the current price."""
    window = list(history[-period:]) + [current_price]
    return roc(window, period)


# =============================================================================
# Buy rules
# =============================================================================

@register_rule("sma_dip_percentage")
def _sma_dip(
    rule: SmaDipRule,
    current_price: float,
    history: Sequence[float],
    holding: Holding | None,
) -> bool:
    """Price has dipped ``percent_below`` % under the SMA."""
    average = sma(history, rule.params.period)
    if average is None:
        return False
    target = average * (1 - rule.params.percent_below / 100)
    logger.debug(f"{rule.id}: sma={average:.6f} target={target:.6f} price={current_price}")
    return current_price <= target


@register_rule("bollinger_lower_band_cross")
def _bollinger_lower(
    rule: BollingerLowerBandRule,
    current_price: float,
    history: Sequence[float],
    holding: Holding | None,
) -> bool:
    bands = bollinger_bands(history, rule.params.period, rule.params.std_dev_multiplier)
    if bands.lower is None:
        return False
    logger.debug(f"{rule.id}: lower={bands.lower:.6f} price={current_price}")
    return current_price <= bands.lower


@register_rule("roc_dip")
def _roc_dip(
    rule: RocDipRule,
    current_price: float,
    history: Sequence[float],
    holding: Holding | None,
) -> bool:
    change = _roc_with_current(history, current_price, rule.params.roc_period)
    return change is not None and change <= rule.params.dip_trigger


# =============================================================================
# Sell rules
# =============================================================================

@register_rule("bollinger_upper_band_cross")
def _bollinger_upper(
    rule: BollingerUpperBandRule,
    current_price: float,
    history: Sequence[float],
    holding: Holding | None,
) -> bool:
    bands = bollinger_bands(history, rule.params.period, rule.params.std_dev_multiplier)
    if bands.upper is None:
        return False
    return current_price >= bands.upper


@register_rule("bollinger_middle_band_cross")
def _bollinger_middle(
    rule: BollingerMiddleBandRule,
    current_price: float,
    history: Sequence[float],
    holding: Holding | None,
) -> bool:
    bands = bollinger_bands(history, rule.params.period, rule.params.std_dev_multiplier)
    if bands.middle is None:
        return False
    return current_price >= bands.middle


@register_rule("roc_spike")
def _roc_spike(
    rule: RocSpikeRule,
    current_price: float,
    history: Sequence[float],
    holding: Holding | None,
) -> bool:
    """ROC spike, only when selling above the average cost."""
    change = _roc_with_current(history, current_price, rule.params.roc_period)
    if change is None or change < rule.params.spike_trigger:
        return False
    return current_price > holding.average_cost


@register_rule("profit_percentage_target")
def _profit_target(
    rule: ProfitTargetRule,
    current_price: float,
    history: Sequence[float],
    holding: Holding | None,
) -> bool:
    target = holding.average_cost * (1 + rule.params.percent_above / 100)
    logger.debug(
        f"{rule.id}: avg_cost={holding.average_cost:.6f} target={target:.6f} price={current_price}"
    )
    return current_price >= target


@register_rule("stop_loss_percentage")
def _stop_loss(
    rule: StopLossRule,
    current_price: float,
    history: Sequence[float],
    holding: Holding | None,
) -> bool:
    floor = holding.average_cost * (1 - rule.params.percent_below / 100)
    return current_price <= floor
