"""
Deals API

Create, read and save deals; admin transitions; commission requests and
overrides; read-side projections (evaluation, progress, financials,
history).
"""

from decimal import Decimal
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, ConfigDict, Field

from ....crm.auth import Actor, Permission
from ....crm.deals.milestones import PHASE_LABELS, Phase, milestones_in_phase
from ....crm.deals.models import DealCreate, DealStatus, DealUpdate, Role
from ....crm.deals.steps import WORKFLOW_STEPS, rep_visible_steps
from ....crm.deals.workflow import DealWorkflowEngine
from ...shared.exceptions import ValidationError
from ...shared.responses import ListResponse
from ..dependencies import get_actor, get_engine, require_permission

router = APIRouter(prefix="/api/deals", tags=["deals"])


class CreateDealRequest(DealCreate):
    """New deal body; admins may name the owning rep."""
    rep_id: Optional[str] = None


class SaveRequest(BaseModel):
    """Fields to save, plus optional step acknowledgement and revision guard."""

    model_config = ConfigDict(extra="forbid")

    fields: DealUpdate = Field(default_factory=DealUpdate)
    acknowledge_step: bool = False
    expected_revision: Optional[int] = Field(None, ge=1)


class AdminTransitionRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    target: DealStatus
    fields: DealUpdate = Field(default_factory=DealUpdate)
    expected_revision: Optional[int] = Field(None, ge=1)


class CommissionOverrideRequest(BaseModel):
    amount: Decimal = Field(..., ge=0)
    reason: str = Field(..., min_length=1, max_length=500)


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_deal(
    body: CreateDealRequest,
    actor: Actor = Depends(get_actor),
    engine: DealWorkflowEngine = Depends(get_engine),
) -> Dict[str, Any]:
    """Open a new lead."""
    payload = DealCreate.model_validate(body.model_dump(exclude={"rep_id"}, exclude_unset=True))
    deal = await engine.create_deal(payload, actor, rep_id=body.rep_id)
    return deal.to_json()


@router.get("")
async def list_deals(
    status_filter: Optional[DealStatus] = Query(None, alias="status", description="Filter by status"),
    rep_id: Optional[str] = Query(None, description="Filter by owning rep"),
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    actor: Actor = Depends(require_permission(Permission.DEALS_READ)),
    engine: DealWorkflowEngine = Depends(get_engine),
):
    deals = await engine.list_deals(
        status=status_filter.value if status_filter else None,
        rep_id=rep_id,
        limit=limit,
        offset=offset,
        actor=actor,
    )
    return ListResponse.create(data=[d.to_json() for d in deals], limit=limit, offset=offset)


@router.get("/workflow")
async def get_workflow(
    actor: Actor = Depends(require_permission(Permission.DEALS_READ)),
) -> Dict[str, Any]:
    """
    The pipeline layout: milestones grouped by phase, and the steps this
    actor works through. Reps do not see admin-only steps.
    """
    steps = rep_visible_steps() if actor.role == Role.REP else WORKFLOW_STEPS
    return {
        "phases": [
            {
                "phase": phase.value,
                "label": PHASE_LABELS[phase],
                "milestones": [
                    {"status": m.status.value, "label": m.label, "icon": m.icon}
                    for m in milestones_in_phase(phase)
                ],
            }
            for phase in Phase
        ],
        "steps": [s.to_dict() for s in steps],
    }


@router.get("/{deal_id}")
async def get_deal(
    deal_id: str,
    actor: Actor = Depends(require_permission(Permission.DEALS_READ)),
    engine: DealWorkflowEngine = Depends(get_engine),
) -> Dict[str, Any]:
    deal = await engine.get_deal(deal_id, actor)
    return deal.to_json()


@router.patch("/{deal_id}")
async def save_deal(
    deal_id: str,
    body: SaveRequest,
    actor: Actor = Depends(get_actor),
    engine: DealWorkflowEngine = Depends(get_engine),
) -> Dict[str, Any]:
    """
    Save fields and advance the deal if its current step is now complete.

    A save that does not advance still returns 200; `result.reason` says
    what is blocking.
    """
    try:
        outcome = await engine.save(
            deal_id,
            body.fields.changes(),
            actor,
            acknowledge_step=body.acknowledge_step,
            expected_revision=body.expected_revision,
        )
    except ValueError as e:
        raise ValidationError(str(e))
    return outcome.to_dict()


@router.post("/{deal_id}/admin-transition")
async def admin_transition(
    deal_id: str,
    body: AdminTransitionRequest,
    actor: Actor = Depends(get_actor),
    engine: DealWorkflowEngine = Depends(get_engine),
) -> Dict[str, Any]:
    """Move a deal forward to any later status (admins only)."""
    try:
        outcome = await engine.admin_transition(
            deal_id,
            body.target,
            actor,
            body.fields.changes(),
            expected_revision=body.expected_revision,
        )
    except ValueError as e:
        raise ValidationError(str(e))
    return outcome.to_dict()


@router.post("/{deal_id}/request-payment")
async def request_payment(
    deal_id: str,
    actor: Actor = Depends(get_actor),
    engine: DealWorkflowEngine = Depends(get_engine),
) -> Dict[str, Any]:
    deal = await engine.request_payment(deal_id, actor)
    return deal.to_json()


@router.post("/{deal_id}/commission-override")
async def commission_override(
    deal_id: str,
    body: CommissionOverrideRequest,
    actor: Actor = Depends(get_actor),
    engine: DealWorkflowEngine = Depends(get_engine),
) -> Dict[str, Any]:
    try:
        deal = await engine.set_commission_override(deal_id, body.amount, body.reason, actor)
    except ValueError as e:
        raise ValidationError(str(e))
    return deal.to_json()


@router.get("/{deal_id}/evaluation")
async def get_evaluation(
    deal_id: str,
    actor: Actor = Depends(require_permission(Permission.DEALS_READ)),
    engine: DealWorkflowEngine = Depends(get_engine),
) -> Dict[str, Any]:
    """Current step, its blockers, and the status it leads to."""
    return await engine.evaluation(deal_id, actor)


@router.get("/{deal_id}/progress")
async def get_progress(
    deal_id: str,
    actor: Actor = Depends(require_permission(Permission.DEALS_READ)),
    engine: DealWorkflowEngine = Depends(get_engine),
) -> Dict[str, Any]:
    view = await engine.progress(deal_id, actor)
    return view.to_dict()


@router.get("/{deal_id}/financials")
async def get_financials(
    deal_id: str,
    actor: Actor = Depends(require_permission(Permission.DEALS_READ)),
    engine: DealWorkflowEngine = Depends(get_engine),
) -> Dict[str, Any]:
    summary = await engine.financials(deal_id, actor)
    return summary.to_dict()


@router.get("/{deal_id}/history")
async def get_history(
    deal_id: str,
    actor: Actor = Depends(require_permission(Permission.DEALS_READ)),
    engine: DealWorkflowEngine = Depends(get_engine),
) -> Dict[str, Any]:
    events = await engine.history(deal_id, actor)
    return {"deal_id": deal_id, "history": [e.to_dict() for e in events]}
