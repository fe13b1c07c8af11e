"""
Permissions System

Role-based access control for deal operations.
"""

from enum import Enum
from typing import Set

from ..deals.errors import PermissionDeniedError
from ..deals.models import Role
from .actor import Actor


class Permission(str, Enum):
    """Available permissions."""

    # Deals
    DEALS_READ = "deals:read"
    DEALS_WRITE = "deals:write"
    DEALS_TRANSITION = "deals:transition"

    # Commission
    COMMISSION_REQUEST = "commission:request"
    COMMISSION_OVERRIDE = "commission:override"

    # Uploads
    UPLOADS_READ = "uploads:read"
    UPLOADS_WRITE = "uploads:write"

    # Reps
    REPS_READ = "reps:read"
    REPS_MANAGE = "reps:manage"


# Role to permissions mapping
ROLE_PERMISSIONS: dict[Role, Set[Permission]] = {
    Role.ADMIN: set(Permission),
    Role.REP: {
        Permission.DEALS_READ, Permission.DEALS_WRITE,
        Permission.COMMISSION_REQUEST,
        Permission.UPLOADS_READ, Permission.UPLOADS_WRITE,
        Permission.REPS_READ,
    },
    Role.CREW: {
        Permission.DEALS_READ,
        Permission.UPLOADS_READ, Permission.UPLOADS_WRITE,
    },
}


def get_permissions_for_role(role) -> Set[Permission]:
    try:
        return ROLE_PERMISSIONS.get(Role(role), set())
    except ValueError:
        return set()


def has_permission(role, permission: Permission) -> bool:
    """
    Check if a role has a specific permission.

    Args:
        role: Role or role name
        permission: Permission to check
    """
    return permission in get_permissions_for_role(role)


def ensure_permission(actor: Actor, permission: Permission) -> None:
    """
    Raises:
        PermissionDeniedError: If the actor's role lacks the permission
    """
    if not has_permission(actor.role, permission):
        raise PermissionDeniedError(
            f"Permission denied: {permission.value} required (role is {actor.role.value})"
        )
