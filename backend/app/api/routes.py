"""REST API routes (read-only engine status)."""

import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel

from app.config import get_settings
from app.services import DecisionOrchestrator
from core.models import InertRule

logger = logging.getLogger(__name__)

router = APIRouter()


# Response models
class SystemStatus(BaseModel):
    """System status response."""

    status: str
    trading_mode: str
    watchlist: list[str]
    cycles_run: int
    cooldown_active: bool
    cooldown_remaining_seconds: float
    last_action_at: Optional[datetime] = None


class HoldingResponse(BaseModel):
    """Position rebuilt from the trade-event log."""

    ticker: str
    quantity: float
    average_cost: float
    current_price: Optional[float] = None
    as_of: Optional[datetime] = None


class RuleResponse(BaseModel):
    """Configured rule."""

    side: str
    id: str
    type: str
    description: str
    params: dict
    inert: bool
    reason: str = ""


class ActionResponse(BaseModel):
    ticker: str
    side: str
    quantity: float
    price: float
    rule_id: str
    rule_type: str
    timestamp: datetime
    order_id: Optional[str] = None


class CycleResponse(BaseModel):
    """Summary of the most recent cycle."""

    started_at: datetime
    finished_at: Optional[datetime] = None
    aborted: bool
    abort_reason: str
    cooldown_blocked: bool
    actions: list[ActionResponse]
    skipped: dict[str, str]


def get_orchestrator(request: Request) -> DecisionOrchestrator:
    orchestrator = getattr(request.app.state, "orchestrator", None)
    if orchestrator is None:
        raise HTTPException(status_code=503, detail="Engine not running")
    return orchestrator


@router.get("/status", response_model=SystemStatus)
async def get_status(request: Request):
    """Get engine status."""
    orchestrator = get_orchestrator(request)
    state = orchestrator.state
    now = orchestrator.now()

    return SystemStatus(
        status="running",
        trading_mode=get_settings().trading_mode,
        watchlist=orchestrator.config.watchlist,
        cycles_run=state.cycles_run,
        cooldown_active=state.cooldown.is_active(now),
        cooldown_remaining_seconds=state.cooldown.remaining(now).total_seconds(),
        last_action_at=state.cooldown.last_action_at,
    )


@router.get("/holdings", response_model=list[HoldingResponse])
async def get_holdings(request: Request):
    """Get holdings as of the last refresh."""
    state = get_orchestrator(request).state
    return [
        HoldingResponse(
            ticker=h.ticker,
            quantity=h.quantity,
            average_cost=h.average_cost,
            current_price=state.prices.get(h.ticker),
            as_of=h.as_of,
        )
        for h in state.holdings.values()
    ]


@router.get("/balances")
async def get_balances(request: Request) -> dict[str, float]:
    """Get venue balances as of the last refresh."""
    return dict(get_orchestrator(request).state.balances)


@router.get("/rules", response_model=list[RuleResponse])
async def get_rules(request: Request):
    """Get configured buy and sell rules."""
    config = get_orchestrator(request).config
    rules = []
    for side, rule_list in (("buy", config.buy_rules), ("sell", config.sell_rules)):
        for rule in rule_list:
            inert = isinstance(rule, InertRule)
            params = rule.params if inert else rule.params.model_dump()
            rules.append(
                RuleResponse(
                    side=side,
                    id=rule.id,
                    type=rule.type,
                    description=rule.description,
                    params=params,
                    inert=inert,
                    reason=rule.reason if inert else "",
                )
            )
    return rules


@router.get("/cycles/last", response_model=CycleResponse)
async def get_last_cycle(request: Request):
    """Get the most recent cycle report."""
    report = get_orchestrator(request).state.last_report
    if report is None:
        raise HTTPException(status_code=404, detail="No cycle has run yet")

    return CycleResponse(
        started_at=report.started_at,
        finished_at=report.finished_at,
        aborted=report.aborted,
        abort_reason=report.abort_reason,
        cooldown_blocked=report.cooldown_blocked,
        actions=[
            ActionResponse(
                ticker=a.ticker,
                side=a.kind.value,
                quantity=a.quantity,
                price=a.price,
                rule_id=a.rule_id,
                rule_type=a.rule_type,
                timestamp=a.timestamp,
                order_id=a.order_id,
            )
            for a in report.actions
        ],
        skipped=report.skipped,
    )
