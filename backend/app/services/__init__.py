"""Business services."""

from app.services.orchestrator import DecisionOrchestrator

__all__ = [
    "DecisionOrchestrator",
]
