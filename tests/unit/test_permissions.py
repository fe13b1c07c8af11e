"""
Tests for role permissions.
"""

import pytest

from src.crm.auth import DEV_ACTOR, Actor, Permission, ensure_permission, get_permissions_for_role, has_permission
from src.crm.deals.errors import PermissionDeniedError
from src.crm.deals.models import Role


class TestRolePermissions:

    def test_admin_has_everything(self):
        assert get_permissions_for_role(Role.ADMIN) == set(Permission)

    @pytest.mark.parametrize("permission", [
        Permission.DEALS_TRANSITION,
        Permission.COMMISSION_OVERRIDE,
        Permission.REPS_MANAGE,
    ])
    def test_rep_lacks_admin_actions(self, permission):
        assert not has_permission(Role.REP, permission)

    def test_crew_is_read_and_upload_only(self):
        assert get_permissions_for_role("crew") == {
            Permission.DEALS_READ, Permission.UPLOADS_READ, Permission.UPLOADS_WRITE,
        }

    def test_unknown_role_has_nothing(self):
        assert get_permissions_for_role("homeowner") == set()


class TestEnsurePermission:

    def test_allowed(self):
        ensure_permission(Actor("rep-1", Role.REP), Permission.COMMISSION_REQUEST)

    def test_denied(self):
        with pytest.raises(PermissionDeniedError) as exc:
            ensure_permission(Actor("crew-1", Role.CREW), Permission.DEALS_WRITE)
        assert "deals:write" in str(exc.value)

    def test_dev_actor_is_admin(self):
        assert DEV_ACTOR.is_admin
        assert DEV_ACTOR.to_dict()["role"] == "admin"
