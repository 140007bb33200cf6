"""
Cached resolution of a user's effective permissions, roles and policies.

Cache-aside with a stampede guard: on a miss, the caller takes a per-user
asyncio lock and re-reads the cache before recomputing, so concurrent
requests for the same cold user trigger exactly one recomputation while
other users proceed independently.

The full role -> claims map is cached separately under ``AllRoleClaims``
with its own TTL. Cache failures never fail a request: they are logged and
the data is recomputed from the database.
"""

import asyncio
import json
from collections.abc import AsyncIterator, Hashable
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any

from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import CacheKeys, CustomClaim, settings
from app.core.cache import CacheBackend
from app.core.logging import get_logger
from app.models.role import RoleClaims, Roles, UserRoles
from app.models.user import Users
from app.schemas.auth import UserAuthorizationData

logger = get_logger(__name__)

RoleClaimMap = dict[str, list[dict[str, str]]]


@dataclass
class _LockEntry:
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    users: int = 0


class KeyedLock:
    """
    One asyncio.Lock per key, created on demand.

    Entries are reference counted and dropped once no coroutine holds or
    waits on them, so the registry does not grow with every user seen.
    """

    def __init__(self) -> None:
        self._entries: dict[Hashable, _LockEntry] = {}

    @asynccontextmanager
    async def acquire(self, key: Hashable) -> AsyncIterator[None]:
        entry = self._entries.get(key)
        if entry is None:
            entry = self._entries[key] = _LockEntry()
        entry.users += 1
        try:
            async with entry.lock:
                yield
        finally:
            entry.users -= 1
            if entry.users == 0:
                self._entries.pop(key, None)

    def __len__(self) -> int:
        return len(self._entries)


# Shared by every provider instance in the process
user_authorization_locks = KeyedLock()


class UserAuthorizationProvider:
    """
    Resolve ``UserAuthorizationData`` for a user id.

    Args:
        db: Session used for recomputation
        cache: Cache backend holding ``UserAuth_{user_id}`` and ``AllRoleClaims``
        locks: Per-user lock registry (process-wide by default)
    """

    def __init__(
        self,
        db: AsyncSession,
        cache: CacheBackend,
        locks: KeyedLock | None = None,
    ) -> None:
        self.db = db
        self.cache = cache
        self.locks = locks if locks is not None else user_authorization_locks

    @staticmethod
    def _user_key(user_id: int) -> str:
        return CacheKeys.USER_AUTHORIZATION.format(user_id=user_id)

    async def get_user_authorization(self, user_id: int) -> UserAuthorizationData | None:
        """
        Cached authorization data, recomputed under the user's lock on a miss.

        Returns:
            The data, or None when the user does not exist
        """
        key = self._user_key(user_id)

        cached = await self._read_cached(key)
        if cached is not None:
            return cached

        async with self.locks.acquire(user_id):
            # Another request may have filled the cache while we waited
            cached = await self._read_cached(key)
            if cached is not None:
                return cached

            data = await self._compute_authorization(user_id)
            if data is None:
                logger.info("authorization_user_not_found", user_id=user_id)
                return None

            await self._write_cached(
                key,
                data.model_dump_json(),
                absolute_expiry=settings.AUTH_CACHE_USER_EXPIRY_MINUTES * 60,
                sliding_expiry=settings.AUTH_CACHE_USER_SLIDING_MINUTES * 60,
            )
            return data

    async def invalidate_user_authorization(self, user_id: int) -> None:
        """Evict the cached data for a user. Failures are logged, never raised."""
        try:
            await self.cache.remove(self._user_key(user_id))
            logger.info("authorization_cache_invalidated", user_id=user_id)
        except Exception as e:
            logger.warning(
                "authorization_cache_invalidate_failed",
                user_id=user_id,
                error=str(e),
            )

    async def _read_cached(self, key: str) -> UserAuthorizationData | None:
        try:
            raw = await self.cache.get(key)
        except Exception as e:
            logger.warning("authorization_cache_read_failed", key=key, error=str(e))
            return None
        if raw is None:
            return None
        try:
            return UserAuthorizationData.model_validate_json(raw)
        except ValidationError as e:
            logger.warning("authorization_cache_corrupt", key=key, error=str(e))
            await self._remove_quietly(key)
            return None

    async def _write_cached(
        self,
        key: str,
        value: str,
        absolute_expiry: int,
        sliding_expiry: int | None = None,
    ) -> None:
        try:
            await self.cache.set(key, value, absolute_expiry, sliding_expiry)
        except Exception as e:
            logger.warning("authorization_cache_write_failed", key=key, error=str(e))

    async def _remove_quietly(self, key: str) -> None:
        try:
            await self.cache.remove(key)
        except Exception as e:
            logger.warning("authorization_cache_remove_failed", key=key, error=str(e))

    async def _compute_authorization(self, user_id: int) -> UserAuthorizationData | None:
        """Build the authorization data from the database."""
        user = await self._load_user(user_id)
        if user is None:
            return None

        role_names = await self._load_role_names(user_id)
        role_claims = await self._get_all_role_claims()

        permissions: list[str] = []
        policies: list[str] = []
        for role_name in role_names:
            for claim in role_claims.get(role_name, []):
                value = claim.get("value", "").strip()
                if not value:
                    continue
                if claim.get("type") == CustomClaim.PERMISSION and value not in permissions:
                    permissions.append(value)
                elif claim.get("type") == CustomClaim.POLICY and value not in policies:
                    policies.append(value)

        logger.debug(
            "authorization_computed",
            user_id=user_id,
            roles=len(role_names),
            permissions=len(permissions),
            policies=len(policies),
        )
        return UserAuthorizationData(
            user_id=user_id,
            user_name=user.user_name,
            email=user.email,
            permissions=permissions,
            roles=role_names,
            policies=policies,
        )

    async def _load_user(self, user_id: int) -> Users | None:
        result = await self.db.execute(select(Users).where(Users.id == user_id))  # type: ignore[arg-type]
        return result.scalar_one_or_none()

    async def _load_role_names(self, user_id: int) -> list[str]:
        result = await self.db.execute(
            select(Roles.name)  # type: ignore[call-overload]
            .join(UserRoles, UserRoles.role_id == Roles.id)
            .where(UserRoles.user_id == user_id)
            .order_by(Roles.name)
        )
        return [row[0] for row in result.fetchall()]

    async def _get_all_role_claims(self) -> RoleClaimMap:
        """Role name -> claims, cached with its own TTL and sliding = TTL / 2."""
        key = CacheKeys.ALL_ROLE_CLAIMS
        try:
            raw = await self.cache.get(key)
        except Exception as e:
            logger.warning("authorization_cache_read_failed", key=key, error=str(e))
            raw = None

        if raw is not None:
            try:
                decoded: Any = json.loads(raw)
                if isinstance(decoded, dict):
                    return decoded
            except json.JSONDecodeError:
                pass
            logger.warning("authorization_cache_corrupt", key=key)
            await self._remove_quietly(key)

        role_claims = await self._load_all_role_claims()
        ttl = settings.AUTH_CACHE_ROLE_CLAIMS_EXPIRY_MINUTES * 60
        await self._write_cached(key, json.dumps(role_claims), ttl, max(ttl // 2, 1))
        return role_claims

    async def _load_all_role_claims(self) -> RoleClaimMap:
        result = await self.db.execute(
            select(Roles.name, RoleClaims.claim_type, RoleClaims.claim_value)  # type: ignore[call-overload]
            .join(RoleClaims, RoleClaims.role_id == Roles.id)
            .order_by(Roles.name, RoleClaims.id)
        )
        role_claims: RoleClaimMap = {}
        for role_name, claim_type, claim_value in result.fetchall():
            role_claims.setdefault(role_name, []).append({"type": claim_type, "value": claim_value})
        return role_claims
