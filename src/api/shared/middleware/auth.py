"""
Authentication Middleware

Resolves the acting rep, admin or crew member from gateway identity
headers and stores it on request.state.actor.
"""

import os
from typing import Callable, Optional

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from ....crm.auth import DEV_ACTOR, Actor
from ....crm.deals.models import Role
from ..exceptions import UnauthorizedError

ACTOR_ID_HEADER = "X-Actor-Id"
ACTOR_ROLE_HEADER = "X-Actor-Role"
ACTOR_NAME_HEADER = "X-Actor-Name"


def is_auth_required() -> bool:
    return os.getenv("AUTH_REQUIRED", "true").lower() == "true"


# Paths that never need an actor
PUBLIC_PATHS = {
    "/health",
    "/health/live",
    "/health/ready",
    "/openapi.json",
}

PUBLIC_PREFIXES = [
    "/docs",
    "/redoc",
]


def is_public_path(path: str) -> bool:
    if path in PUBLIC_PATHS:
        return True
    return any(path.startswith(prefix) for prefix in PUBLIC_PREFIXES)


def actor_from_headers(request: Request) -> Optional[Actor]:
    """
    Actor named by the identity headers, or None when they are absent.

    Raises:
        UnauthorizedError: Headers present but the role is unknown
    """
    actor_id = request.headers.get(ACTOR_ID_HEADER)
    if not actor_id:
        return None

    role = request.headers.get(ACTOR_ROLE_HEADER, Role.REP.value).lower()
    try:
        parsed_role = Role(role)
    except ValueError:
        raise UnauthorizedError(f"Unknown actor role '{role}'")

    return Actor(id=actor_id, role=parsed_role, name=request.headers.get(ACTOR_NAME_HEADER))


class AuthMiddleware(BaseHTTPMiddleware):
    """
    Middleware that:
    1. Leaves public paths alone
    2. Reads the actor from identity headers
    3. Falls back to a development admin when AUTH_REQUIRED=false
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request.state.actor = None
        request.state.auth_error = None

        if is_public_path(request.url.path):
            return await call_next(request)

        try:
            actor = actor_from_headers(request)
        except UnauthorizedError as e:
            request.state.auth_error = e.message
            return await call_next(request)

        if actor is None and not is_auth_required():
            actor = DEV_ACTOR

        request.state.actor = actor
        return await call_next(request)


def get_current_actor(request: Request) -> Optional[Actor]:
    return getattr(request.state, "actor", None)


def require_actor(request: Request) -> Actor:
    """
    Require an actor and return it.

    Raises:
        UnauthorizedError: If the request carries no usable identity
    """
    actor = get_current_actor(request)
    if actor is None:
        raise UnauthorizedError(getattr(request.state, "auth_error", None) or "Authentication required")
    return actor
