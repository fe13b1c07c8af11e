"""
Request dependencies for the deals API.
"""

from typing import Callable

from fastapi import Depends, Request

from ...crm.auth import Actor, Permission, ensure_permission
from ...crm.deals.workflow import DealWorkflowEngine, get_workflow_engine
from ..shared.middleware import require_actor


async def get_engine(request: Request) -> DealWorkflowEngine:
    """Engine installed on the app, or the process-wide one."""
    engine = getattr(request.app.state, "engine", None)
    if engine is None:
        engine = await get_workflow_engine()
        request.app.state.engine = engine
    return engine


def get_actor(request: Request) -> Actor:
    return require_actor(request)


def require_permission(permission: Permission) -> Callable[..., Actor]:
    """
    Dependency that resolves the actor and checks one permission.

    Usage:
        @router.get("/{deal_id}")
        async def get_deal(deal_id: str, actor: Actor = Depends(require_permission(Permission.DEALS_READ))):
            ...
    """
    def dependency(actor: Actor = Depends(get_actor)) -> Actor:
        ensure_permission(actor, permission)
        return actor

    return dependency
