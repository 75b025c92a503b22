"""
Role permission tests.

Verifies the role -> permission mapping and the actor checks used by the
route decorators.
"""

import pytest

from branchstock.errors import NotFoundError, PermissionDeniedError
from branchstock.permissions import (
    DEFAULT_ROLE_PERMISSIONS,
    PermissionCategory,
    get_all_permission_codes,
    get_permissions_by_category,
    validate_permission_code,
)
from branchstock.services import permission_service


class TestPermissionDefinitions:

    def test_codes_are_unique(self):
        codes = get_all_permission_codes()
        assert len(codes) == len(set(codes))

    def test_role_mappings_only_use_known_codes(self):
        for role, codes in DEFAULT_ROLE_PERMISSIONS.items():
            for code in codes:
                assert validate_permission_code(code), f"{role} references unknown {code}"

    def test_super_admin_has_everything(self):
        assert set(DEFAULT_ROLE_PERMISSIONS["super_admin"]) == set(get_all_permission_codes())

    def test_transfer_category(self):
        codes = {p[0] for p in get_permissions_by_category(PermissionCategory.TRANSFERS)}
        assert {"APPROVE_TRANSFER", "SEND_TRANSFER", "RECEIVE_TRANSFER"} <= codes


class TestActorChecks:

    def test_cashier_can_sell_but_not_move_stock(self, db_session, cashier):
        assert permission_service.actor_can(cashier, "CREATE_SALE")
        assert not permission_service.actor_can(cashier, "ADJUST_STOCK")
        assert not permission_service.actor_can(cashier, "APPROVE_TRANSFER")

    def test_branch_admin_cannot_manage_branches(self, db_session, branch_admin):
        assert permission_service.actor_can(branch_admin, "APPROVE_TRANSFER")
        assert not permission_service.actor_can(branch_admin, "MANAGE_BRANCHES")

    def test_inactive_user_has_no_permissions(self, db_session, admin):
        admin.is_active = False
        db_session.commit()

        assert not permission_service.actor_can(admin, "VIEW_STOCK")
        with pytest.raises(NotFoundError):
            permission_service.get_actor(admin.id)

    def test_unknown_code_is_an_error(self, db_session, admin):
        with pytest.raises(ValueError):
            permission_service.actor_can(admin, "LAUNCH_ROCKETS")

    def test_require_permission_raises(self, db_session, cashier):
        with pytest.raises(PermissionDeniedError) as exc_info:
            permission_service.require_permission(cashier, "CANCEL_SALE")

        assert exc_info.value.permission_code == "CANCEL_SALE"
        assert exc_info.value.to_dict()["code"] == "permission_denied"
