"""
FastAPI dependencies for permission-based route protection.

Each factory builds a requirement once, at route definition time, and returns
a dependency that checks it against the caller's cached authorization data.
Unauthenticated callers get 401; callers missing part of the requirement get
403. The precise failure reason is logged, not returned.

Usage:
    from app.core.permission_deps import require_permission
    from app.core.permissions import Permission

    @router.delete("/lists/{list_id}")
    async def delete_list(
        list_id: int,
        _: Annotated[None, Depends(require_permission(Permission.TODO_LISTS_DELETE))],
    ):
        ...
"""

from collections.abc import Callable, Coroutine, Iterable
from typing import Annotated, Any

from fastapi import Depends, HTTPException, status

from app.core.auth import get_current_authorization
from app.core.logging import get_logger
from app.core.permissions import Permission, permission_name
from app.core.policy import AuthorizationRequirement, parse_policy
from app.schemas.auth import UserAuthorizationData

logger = get_logger(__name__)

AuthorizationChecker = Callable[[UserAuthorizationData], Coroutine[Any, Any, None]]


def _checker(requirement: AuthorizationRequirement) -> AuthorizationChecker:
    async def authorization_checker(
        data: Annotated[UserAuthorizationData, Depends(get_current_authorization)],
    ) -> None:
        reason = requirement.evaluate(data)
        if reason is not None:
            logger.warning(
                "authorization_denied",
                user_id=data.user_id,
                policy=requirement.policy_name,
                reason=reason,
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions",
            )

    return authorization_checker


def require_authorization(
    permissions: Iterable[str | Permission] = (),
    policies: Iterable[str] = (),
    roles: Iterable[str] = (),
) -> AuthorizationChecker:
    """
    Require every listed permission, policy and role.

    Raises:
        ValueError: If nothing is required (at definition time)
    """
    requirement = AuthorizationRequirement(
        permissions=frozenset(permission_name(p) for p in permissions),
        policies=frozenset(policies),
        roles=frozenset(roles),
    )
    if requirement.is_empty:
        raise ValueError("At least one permission, policy or role must be specified")
    return _checker(requirement)


def require_permission(permission: str | Permission) -> AuthorizationChecker:
    return require_authorization(permissions=[permission])


def require_policy(policy_name: str) -> AuthorizationChecker:
    """
    Require a composite policy string such as ``permission:todo.lists.view;role:Admin``.

    Raises:
        ValueError: If the string names no requirement
    """
    requirement = parse_policy(policy_name)
    if requirement is None:
        raise ValueError(f"Policy '{policy_name}' does not name any requirement")
    return _checker(requirement)


def require_role(role: str) -> AuthorizationChecker:
    return require_authorization(roles=[role])
