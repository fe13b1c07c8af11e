"""
Authentication Module

Identity arrives from the gateway as request headers; this package holds
the resolved Actor and the role permission table.

Configuration:
    AUTH_REQUIRED=true/false - Require identity headers (default: true)
"""

from .actor import DEV_ACTOR, Actor
from .permissions import (
    ROLE_PERMISSIONS,
    Permission,
    ensure_permission,
    get_permissions_for_role,
    has_permission,
)

__all__ = [
    "Actor",
    "DEV_ACTOR",
    "Permission",
    "ROLE_PERMISSIONS",
    "ensure_permission",
    "get_permissions_for_role",
    "has_permission",
]
