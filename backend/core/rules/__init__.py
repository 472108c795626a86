"""Rule evaluation.

Public API:
- evaluate_rule: Evaluate a single rule, never raises
- select_rule: First-match evaluation over an ordered rule list
- required_history: Longest history window a rule list needs
- register_rule / get_evaluator / list_rule_types: Evaluator registry

Importing this package registers all built-in rule evaluators.
"""

from core.rules.registry import (
    RuleEvaluator,
    get_evaluator,
    list_rule_types,
    register_rule,
)
from core.rules.evaluator import evaluate_rule, required_history, select_rule

# Import built-in evaluators to trigger registration
import core.rules.evaluators  # noqa: F401

__all__ = [
    "RuleEvaluator",
    "evaluate_rule",
    "get_evaluator",
    "list_rule_types",
    "register_rule",
    "required_history",
    "select_rule",
]
