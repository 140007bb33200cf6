"""
Tests for the permission system.

Tests cover:
- Permission enum values and descriptions
- FastAPI dependencies for route protection (permission, policy, role)
- Definition-time rejection of empty requirements
"""

import pytest
from fastapi import HTTPException

from app.core.permission_deps import (
    require_authorization,
    require_permission,
    require_policy,
    require_role,
)
from app.core.permissions import Permission, permission_name
from app.schemas.auth import UserAuthorizationData


@pytest.fixture
def manager() -> UserAuthorizationData:
    return UserAuthorizationData(
        user_id=7,
        user_name="manager",
        email="manager@example.com",
        roles=["Manager"],
        permissions=[Permission.TODO_LISTS_VIEW.value, Permission.TODO_ITEMS_CREATE.value],
        policies=["ReadOnly"],
    )


@pytest.mark.unit
class TestPermissionDependencies:
    """Test FastAPI permission dependencies."""

    async def test_require_permission_allowed(self, manager):
        dep = require_permission(Permission.TODO_LISTS_VIEW)
        assert await dep(manager) is None

    async def test_require_permission_denied(self, manager):
        dep = require_permission(Permission.TODO_LISTS_DELETE)

        with pytest.raises(HTTPException) as exc_info:
            await dep(manager)

        assert exc_info.value.status_code == 403
        assert exc_info.value.detail == "Insufficient permissions"

    async def test_require_permission_by_name(self, manager):
        dep = require_permission("todo.items.create")
        assert await dep(manager) is None

    async def test_require_role(self, manager):
        assert await require_role("Manager")(manager) is None
        with pytest.raises(HTTPException):
            await require_role("Administrator")(manager)

    async def test_require_all_listed(self, manager):
        dep = require_authorization(
            permissions=[Permission.TODO_LISTS_VIEW], policies=["ReadOnly"], roles=["Manager"]
        )
        assert await dep(manager) is None

        dep = require_authorization(
            permissions=[Permission.TODO_LISTS_VIEW, Permission.TODO_LISTS_UPDATE]
        )
        with pytest.raises(HTTPException) as exc_info:
            await dep(manager)
        assert exc_info.value.status_code == 403

    async def test_require_policy_string(self, manager):
        allowed = require_policy("permission:todo.lists.view;role:Manager")
        denied = require_policy("permission:todo.lists.view;role:Administrator")

        assert await allowed(manager) is None
        with pytest.raises(HTTPException):
            await denied(manager)

    def test_empty_requirement_rejected(self):
        with pytest.raises(ValueError):
            require_authorization()

    def test_policy_without_requirement_rejected(self):
        with pytest.raises(ValueError):
            require_policy("nothing;here")


@pytest.mark.unit
class TestPermissionEnum:
    """Test Permission enum values."""

    def test_values_are_unique(self):
        values = [p.value for p in Permission]
        assert len(values) == len(set(values))

    def test_values_are_dotted_names(self):
        for permission in Permission:
            assert permission.value.startswith("todo.")
            assert permission.value.count(".") == 2

    def test_every_permission_has_description(self):
        for permission in Permission:
            assert permission.description != permission.value

    def test_permission_name(self):
        assert permission_name(Permission.TODO_ITEMS_TRACK) == "todo.items.track"
        assert permission_name("custom.claim") == "custom.claim"
