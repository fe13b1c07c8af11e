"""
Uploads API

Multipart uploads into deal fields, and signed URLs for stored keys.
"""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile, status

from ....crm.auth import Actor, Permission
from ....crm.deals.workflow import DealWorkflowEngine
from ...shared.exceptions import ValidationError
from ..dependencies import get_actor, get_engine, require_permission

router = APIRouter(tags=["uploads"])


@router.post("/api/deals/{deal_id}/uploads", status_code=status.HTTP_201_CREATED)
async def upload_to_deal(
    deal_id: str,
    file: UploadFile = File(...),
    field: Optional[str] = Form(None, description="Deal field to attach the upload to"),
    category: Optional[str] = Form(None, pattern=r"^[a-z_]+$"),
    actor: Actor = Depends(get_actor),
    engine: DealWorkflowEngine = Depends(get_engine),
) -> Dict[str, Any]:
    """
    Store a file and optionally attach it to a deal field.

    Attaching runs a normal save, so the first inspection photo on a lead
    advances it.
    """
    content = await file.read()
    try:
        result = await engine.upload_file(
            deal_id,
            content,
            file.filename or "upload",
            file.content_type or "application/octet-stream",
            actor,
            category=category,
            field=field,
        )
    except ValueError as e:
        raise ValidationError(str(e))
    return result.to_dict()


@router.get("/api/uploads/signed-url")
async def get_signed_url(
    key: str = Query(..., min_length=1),
    actor: Actor = Depends(require_permission(Permission.UPLOADS_READ)),
    engine: DealWorkflowEngine = Depends(get_engine),
) -> Dict[str, Any]:
    """URL for a stored key; null when the key does not exist."""
    return {"key": key, "url": engine.get_signed_url(key)}
