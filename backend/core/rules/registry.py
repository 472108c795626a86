"""Rule evaluator registry, keyed by rule type tag.

Usage:
    @register_rule("my_rule")
    def _my_rule(rule, current_price, history, holding) -> bool:
        ...

    evaluator = get_evaluator("my_rule")
    types = list_rule_types()
"""

from __future__ import annotations

import logging
from typing import Callable, Optional, Sequence

from core.models.trade import Holding

logger = logging.getLogger(__name__)

# (rule, current_price, history, holding) -> fires?
RuleEvaluator = Callable[[object, float, Sequence[float], Optional[Holding]], bool]

# Global registry: rule type tag -> evaluator function
_REGISTRY: dict[str, RuleEvaluator] = {}


def register_rule(name: str):
    """Decorator to register an evaluator function under a rule type tag.

    Args:
        name: Rule type tag (e.g., 'sma_dip_percentage').

    Returns:
        Decorator that registers the function and returns it unchanged.

    Raises:
        ValueError: If an evaluator with the same tag is already registered.
    """

    def decorator(func: RuleEvaluator) -> RuleEvaluator:
        if name in _REGISTRY:
            raise ValueError(
                f"Rule type '{name}' is already registered by {_REGISTRY[name].__name__}"
            )
        _REGISTRY[name] = func
        logger.debug("Registered rule type: %s -> %s", name, func.__name__)
        return func

    return decorator


def get_evaluator(name: str) -> RuleEvaluator | None:
    """Return the evaluator for a rule type tag, or None if unknown."""
    return _REGISTRY.get(name)


def list_rule_types() -> list[str]:
    """Return a sorted list of registered rule type tags."""
    return sorted(_REGISTRY.keys())
