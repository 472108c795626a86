"""Rule evaluation: single rules and first-match selection over a rule list.

``select_rule`` is the one evaluation path shared by the live
orchestrator and the backtest simulator.
"""

import logging
from typing import Sequence

from core.errors import InsufficientHistory
from core.models.rules import InertRule, RuleSpec
from core.models.trade import Holding
from core.rules.registry import get_evaluator

logger = logging.getLogger(__name__)


def evaluate_rule(
    rule: RuleSpec,
    current_price: float,
    history: Sequence[float],
    holding: Holding | None = None,
    ticker: str = "",
) -> bool:
    """
    Evaluate one rule against the current market/holding snapshot.

    Never raises: inert or unknown rules, holding-based rules evaluated
    without a holding, and rules whose own window exceeds the available
    history all return False with a warning.

    Args:
        rule: Typed rule
        current_price: Latest price for the ticker
        history: Trailing prices, oldest first
        holding: Current position, required by sell rules that use cost basis
        ticker: Ticker name, used for logging only

    Returns:
        True if the rule fires
    """
    rule_type = getattr(rule, "type", None)
    rule_id = getattr(rule, "id", "?")

    if isinstance(rule, InertRule):
        logger.warning(f"{ticker}: rule '{rule_id}' ({rule_type}) is inert: {rule.reason}")
        return False

    evaluator = get_evaluator(rule_type) if isinstance(rule_type, str) else None
    if evaluator is None:
        logger.warning(f"{ticker}: unknown rule type '{rule_type}' for rule '{rule_id}'")
        return False

    if rule.requires_holding and holding is None:
        logger.warning(f"{ticker}: rule '{rule_id}' ({rule_type}) needs a holding, none found")
        return False

    if len(history) < rule.history_window:
        logger.warning(
            f"{ticker}: rule '{rule_id}' needs {rule.history_window} price points, "
            f"have {len(history)}"
        )
        return False

    return evaluator(rule, current_price, history, holding)


def required_history(rules: Sequence[RuleSpec]) -> int:
    """Longest history window needed by any rule in the list."""
    return max((rule.history_window for rule in rules), default=0)


def select_rule(
    rules: Sequence[RuleSpec],
    current_price: float,
    history: Sequence[float],
    holding: Holding | None = None,
    ticker: str = "",
) -> RuleSpec | None:
    """
    Evaluate rules in configured order and return the first that fires.

    Remaining rules are not evaluated once one fires.

    Args:
        rules: Ordered rule list for one direction (buy or sell)
        current_price: Latest price for the ticker
        history: Trailing prices, oldest first
        holding: Current position (sell rules)
        ticker: Ticker name, used for logging only

    Returns:
        The firing rule, or None when no rule fires

    Raises:
        InsufficientHistory: If history is shorter than the longest rule window
    """
    required = required_history(rules)
    if len(history) < required:
        raise InsufficientHistory(ticker, len(history), required)

    for rule in rules:
        if evaluate_rule(rule, current_price, history, holding, ticker=ticker):
            return rule
    return None
