"""Tests for password login, lockout and token management."""

import pytest
from sqlalchemy import select

from app.config import settings
from app.core.authorization import KeyedLock, UserAuthorizationProvider
from app.core.cache import MemoryCache
from app.core.jwt_tokens import get_user_id, validate_token
from app.core.unit_of_work import UnitOfWork
from app.models.refresh_token import RefreshTokenErrors, RefreshTokens
from app.models.user import Users
from app.services.auth import AuthErrors, login_with_password
from app.services.token_management import AuthTokens, TokenManagementService


IP = "127.0.0.1"
TEST_PASSWORD = "TestPassword123!"


@pytest.fixture
def uow(db_session) -> UnitOfWork:
    return UnitOfWork(db_session)


@pytest.fixture
def tokens(db_session, uow) -> TokenManagementService:
    provider = UserAuthorizationProvider(db_session, MemoryCache(), KeyedLock())
    return TokenManagementService(uow, provider)


async def login(uow, tokens, email: str, password: str = TEST_PASSWORD, remember_me=False):
    return await login_with_password(uow, tokens, email, password, remember_me, IP)


async def load_user(db, email: str) -> Users:
    result = await db.execute(select(Users).where(Users.email == email))
    return result.scalar_one()


@pytest.mark.unit
class TestLogin:
    async def test_success(self, uow, tokens, db_session, seeded):
        result = await login(uow, tokens, "Admin@Example.com")

        assert isinstance(result, AuthTokens)
        claims = validate_token(result.access_token)
        assert isinstance(claims, dict)
        assert claims["role"] == ["Administrator"]
        assert len(result.refresh_token) == 64
        assert not uow.has_active_transaction

        user = await load_user(db_session, "admin@example.com")
        assert get_user_id(claims) == user.id
        assert user.sign_in_count == 1
        assert user.current_sign_in_ip == IP

    async def test_system_user_second_login_refused(self, uow, tokens, db_session, seeded):
        assert isinstance(await login(uow, tokens, "admin@example.com"), AuthTokens)

        result = await login(uow, tokens, "admin@example.com")

        assert result == [RefreshTokenErrors.TOO_MANY_ACTIVE_TOKENS]
        assert not uow.has_active_transaction
        user = await load_user(db_session, "admin@example.com")
        assert user.sign_in_count == 1

    async def test_unknown_email(self, uow, tokens, seeded):
        assert await login(uow, tokens, "ghost@example.com") == [AuthErrors.USER_NOT_FOUND]
        assert not uow.has_active_transaction

    async def test_wrong_password(self, uow, tokens, db_session, seeded):
        result = await login(uow, tokens, "viewer@example.com", "wrong-password")

        assert result == [AuthErrors.INVALID_CREDENTIALS]
        user = await load_user(db_session, "viewer@example.com")
        assert user.access_failed_count == 1

    async def test_lockout_after_max_attempts(self, uow, tokens, seeded):
        attempts = [
            await login(uow, tokens, "viewer@example.com", "wrong-password")
            for _ in range(settings.LOCKOUT_MAX_FAILED_ATTEMPTS)
        ]

        assert attempts[:-1] == [[AuthErrors.INVALID_CREDENTIALS]] * (
            settings.LOCKOUT_MAX_FAILED_ATTEMPTS - 1
        )
        assert attempts[-1] == [AuthErrors.LOCKED_OUT]
        # Even the right password is refused while locked
        assert await login(uow, tokens, "viewer@example.com") == [AuthErrors.LOCKED_OUT]

    async def test_success_resets_failed_count(self, uow, tokens, db_session, seeded):
        await login(uow, tokens, "viewer@example.com", "wrong-password")
        result = await login(uow, tokens, "viewer@example.com")

        assert isinstance(result, AuthTokens)
        user = await load_user(db_session, "viewer@example.com")
        assert user.access_failed_count == 0

    async def test_unconfirmed_email(self, uow, tokens, db_session, seeded):
        user = await load_user(db_session, "customer@example.com")
        user.email_confirmed = False
        await db_session.commit()

        assert await login(uow, tokens, "customer@example.com") == [
            AuthErrors.EMAIL_NOT_CONFIRMED
        ]


@pytest.mark.unit
class TestTokenManagement:
    async def test_refresh_rotates(self, uow, tokens, seeded):
        issued = await login(uow, tokens, "customer@example.com")
        assert isinstance(issued, AuthTokens)

        refreshed = await tokens.refresh(issued.refresh_token, IP)

        assert isinstance(refreshed, AuthTokens)
        assert refreshed.refresh_token != issued.refresh_token
        assert await tokens.refresh(issued.refresh_token, IP) == [RefreshTokenErrors.REVOKED]

    async def test_logout(self, uow, tokens, db_session, seeded):
        issued = await login(uow, tokens, "customer@example.com")
        assert isinstance(issued, AuthTokens)
        user = await load_user(db_session, "customer@example.com")

        assert await tokens.logout(user.id, issued.refresh_token, IP) == user.id
        assert await tokens.refresh(issued.refresh_token, IP) == [RefreshTokenErrors.REVOKED]

    async def test_logout_with_foreign_token(self, uow, tokens, db_session, seeded):
        issued = await login(uow, tokens, "customer@example.com")
        assert isinstance(issued, AuthTokens)
        admin = await load_user(db_session, "admin@example.com")

        result = await tokens.logout(admin.id, issued.refresh_token, IP)

        assert result == [RefreshTokenErrors.NOT_FOUND]
        assert isinstance(await tokens.refresh(issued.refresh_token, IP), AuthTokens)

    async def test_logout_all(self, uow, tokens, db_session, seeded):
        for _ in range(3):
            assert isinstance(await login(uow, tokens, "customer@example.com"), AuthTokens)
        user = await load_user(db_session, "customer@example.com")

        assert await tokens.logout_all(user.id, IP) == 3

        result = await db_session.execute(
            select(RefreshTokens).where(RefreshTokens.is_revoked == False)  # noqa: E712
        )
        assert result.scalars().all() == []
