"""
Reps API

Commission configuration per sales rep.
"""

from decimal import Decimal
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field

from ....crm.auth import Actor, Permission
from ....crm.deals.models import CommissionLevel, Rep
from ....crm.deals.workflow import DealWorkflowEngine
from ..dependencies import get_actor, get_engine, require_permission

router = APIRouter(prefix="/api/reps", tags=["reps"])


class RepRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: Optional[str] = None
    commission_level: CommissionLevel = CommissionLevel.JUNIOR
    default_commission_percent: Optional[Decimal] = Field(None, ge=0, le=100)


@router.put("/{rep_id}")
async def put_rep(
    rep_id: str,
    body: RepRequest,
    actor: Actor = Depends(get_actor),
    engine: DealWorkflowEngine = Depends(get_engine),
) -> Dict[str, Any]:
    rep = await engine.put_rep(Rep(id=rep_id, **body.model_dump()), actor)
    return rep.model_dump(mode="json")


@router.get("/{rep_id}")
async def get_rep(
    rep_id: str,
    actor: Actor = Depends(require_permission(Permission.REPS_READ)),
    engine: DealWorkflowEngine = Depends(get_engine),
) -> Dict[str, Any]:
    rep = await engine.get_rep(rep_id)
    return rep.model_dump(mode="json")
