"""Tests for policy string parsing, building and evaluation."""

import pytest

from app.core.policy import AuthorizationRequirement, build_policy, parse_policy
from app.schemas.auth import UserAuthorizationData


def make_user(**overrides) -> UserAuthorizationData:
    values = {
        "user_id": 1,
        "user_name": "admin",
        "email": "admin@example.com",
        "permissions": ["todo.items.create", "todo.lists.view"],
        "roles": ["Admin"],
        "policies": ["ReadOnly"],
    }
    values.update(overrides)
    return UserAuthorizationData(**values)


@pytest.mark.unit
class TestParsePolicy:
    def test_permission_and_role(self):
        requirement = parse_policy("permission:todo.items.create;role:Admin")

        assert requirement is not None
        assert requirement.permissions == {"todo.items.create"}
        assert requirement.roles == {"Admin"}
        assert requirement.policies == frozenset()

    def test_prefix_is_case_insensitive(self):
        requirement = parse_policy("PERMISSION:a;Role:Admin;POLICY:ReadOnly")

        assert requirement is not None
        assert requirement.permissions == {"a"}
        assert requirement.roles == {"Admin"}
        assert requirement.policies == {"ReadOnly"}

    def test_comma_separated_values(self):
        requirement = parse_policy("permission:a, b ,c")
        assert requirement is not None
        assert requirement.permissions == {"a", "b", "c"}

    def test_unprefixed_segment_continues_previous(self):
        requirement = parse_policy("permission:a;b;role:Admin;Manager")

        assert requirement is not None
        assert requirement.permissions == {"a", "b"}
        assert requirement.roles == {"Admin", "Manager"}

    def test_unknown_and_leading_segments_ignored(self):
        requirement = parse_policy("orphan;scope:x;y;permission:a")

        assert requirement is not None
        assert requirement.permissions == {"a"}
        assert requirement.roles == frozenset()

    @pytest.mark.parametrize("value", [None, "", ";;", "permission:", "unknown:x"])
    def test_empty_policy_is_none(self, value):
        assert parse_policy(value) is None

    def test_build_then_parse(self):
        policy = build_policy(["todo.lists.view", "todo.lists.list"], roles=["Admin"])

        assert policy == "permission:todo.lists.list,todo.lists.view;role:Admin"
        requirement = parse_policy(policy)
        assert requirement == AuthorizationRequirement(
            permissions=frozenset({"todo.lists.view", "todo.lists.list"}),
            roles=frozenset({"Admin"}),
        )

    def test_build_skips_blank_values(self):
        assert build_policy(["", " "], policies=["ReadOnly"]) == "policy:ReadOnly"


@pytest.mark.unit
class TestEvaluate:
    def test_satisfied(self):
        requirement = parse_policy("permission:todo.items.create;role:Admin;policy:ReadOnly")
        assert requirement is not None
        assert requirement.evaluate(make_user()) is None

    def test_missing_permission(self):
        requirement = parse_policy("permission:todo.items.delete;role:Admin")
        assert requirement is not None
        assert requirement.evaluate(make_user()) == "Missing permission: todo.items.delete"

    def test_all_permissions_required(self):
        requirement = parse_policy("permission:todo.items.create,todo.items.delete")
        assert requirement is not None
        assert requirement.evaluate(make_user()) is not None

    def test_missing_role(self):
        requirement = parse_policy("role:Manager")
        assert requirement is not None
        assert requirement.evaluate(make_user()) == "Missing role: Manager"

    def test_missing_policy(self):
        requirement = parse_policy("policy:CanExport")
        assert requirement is not None
        assert requirement.evaluate(make_user(policies=[])) == "Missing policy: CanExport"

    def test_unauthenticated(self):
        requirement = parse_policy("role:Admin")
        assert requirement is not None
        assert requirement.evaluate(make_user(), authenticated=False) == "User not authenticated"

    def test_no_user_data(self):
        requirement = parse_policy("role:Admin")
        assert requirement is not None
        assert requirement.evaluate(None) == "User data not found"
