"""
Composite policy strings.

A policy string names what a route requires, for example::

    permission:todo.items.create;role:Admin

Segments are separated by ``;`` and classified by a case-insensitive prefix
(``permission:``, ``policy:``, ``role:``). A prefixed segment may carry several
comma-separated values, and a segment without a prefix continues the most
recent one, so ``permission:a;b`` requires both ``a`` and ``b``. Segments before
any prefix, with an unknown prefix, or empty are ignored.

A requirement passes only when the user holds every requested permission,
policy and role.
"""

from collections.abc import Iterable
from dataclasses import dataclass

from app.schemas.auth import UserAuthorizationData

PERMISSION_PREFIX = "permission:"
POLICY_PREFIX = "policy:"
ROLE_PREFIX = "role:"

_PREFIXES = {
    PERMISSION_PREFIX: "permissions",
    POLICY_PREFIX: "policies",
    ROLE_PREFIX: "roles",
}


@dataclass(frozen=True)
class AuthorizationRequirement:
    permissions: frozenset[str] = frozenset()
    policies: frozenset[str] = frozenset()
    roles: frozenset[str] = frozenset()

    @property
    def is_empty(self) -> bool:
        return not (self.permissions or self.policies or self.roles)

    @property
    def policy_name(self) -> str:
        return build_policy(self.permissions, self.policies, self.roles)

    def evaluate(
        self, data: UserAuthorizationData | None, authenticated: bool = True
    ) -> str | None:
        """
        Check the requirement against a user's authorization data.

        Permissions are checked first, then policies, then roles; the first
        missing item decides.

        Returns:
            None when satisfied, otherwise the failure reason (for logs only)
        """
        if not authenticated:
            return "User not authenticated"
        if data is None:
            return "User data not found"

        held = set(data.permissions)
        for permission in sorted(self.permissions):
            if permission not in held:
                return f"Missing permission: {permission}"

        held = set(data.policies)
        for policy in sorted(self.policies):
            if policy not in held:
                return f"Missing policy: {policy}"

        held = set(data.roles)
        for role in sorted(self.roles):
            if role not in held:
                return f"Missing role: {role}"

        return None


def _split_values(raw: str) -> list[str]:
    return [value.strip() for value in raw.split(",") if value.strip()]


def parse_policy(policy_name: str | None) -> AuthorizationRequirement | None:
    """
    Parse a policy string into a requirement.

    Returns:
        The requirement, or None when the string names nothing
    """
    if not policy_name:
        return None

    collected: dict[str, list[str]] = {"permissions": [], "policies": [], "roles": []}
    current: str | None = None

    for segment in policy_name.split(";"):
        segment = segment.strip()
        if not segment:
            continue

        lowered = segment.lower()
        prefix = next((p for p in _PREFIXES if lowered.startswith(p)), None)
        if prefix is not None:
            current = _PREFIXES[prefix]
            collected[current].extend(_split_values(segment[len(prefix) :]))
        elif ":" in segment:
            # Unknown prefix: ignore it and whatever continues it
            current = None
        elif current is not None:
            collected[current].extend(_split_values(segment))

    requirement = AuthorizationRequirement(
        permissions=frozenset(collected["permissions"]),
        policies=frozenset(collected["policies"]),
        roles=frozenset(collected["roles"]),
    )
    return None if requirement.is_empty else requirement


def build_policy(
    permissions: Iterable[str] = (),
    policies: Iterable[str] = (),
    roles: Iterable[str] = (),
) -> str:
    """
    Compose a policy string, the reverse of ``parse_policy``.

    Example:
        build_policy(["todo.lists.view"], roles=["Admin"])
        # "permission:todo.lists.view;role:Admin"
    """
    segments = []
    for prefix, values in (
        (PERMISSION_PREFIX, permissions),
        (POLICY_PREFIX, policies),
        (ROLE_PREFIX, roles),
    ):
        cleaned = sorted({value.strip() for value in values if value and value.strip()})
        if cleaned:
            segments.append(prefix + ",".join(cleaned))
    return ";".join(segments)
