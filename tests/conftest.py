"""
Pytest configuration and shared fixtures.

Tests run against an in-memory SQLite database (aiosqlite) created fresh
for every test, and the in-process cache backend.
"""

import os

# Settings are read at import time; these must exist before app is imported
os.environ.setdefault("JWT_SECRET", "test-secret-key-with-at-least-32-characters!")
os.environ.setdefault("JWT_ISSUER", "backoffice-tests")
os.environ.setdefault("JWT_AUDIENCE", "backoffice-clients")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("CACHE_TYPE", "memory")
os.environ.setdefault("ENVIRONMENT", "development")

from collections.abc import AsyncGenerator  # noqa: E402
from dataclasses import dataclass  # noqa: E402

import pytest  # noqa: E402
from fastapi import FastAPI  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402
from sqlmodel import SQLModel  # noqa: E402

from app import models  # noqa: E402, F401  registers every table
from app.config import CustomClaim  # noqa: E402
from app.core.cache import MemoryCache, set_cache  # noqa: E402
from app.core.database import get_db  # noqa: E402
from app.core.jwt_tokens import generate_access_token  # noqa: E402
from app.core.permissions import Permission  # noqa: E402
from app.core.security import get_password_hash  # noqa: E402
from app.main import app as main_app  # noqa: E402
from app.models.role import RoleClaims, Roles, UserRoles  # noqa: E402
from app.models.user import Users  # noqa: E402
from app.schemas.auth import UserAuthorizationData  # noqa: E402

TEST_PASSWORD = "TestPassword123!"

# bcrypt is deliberately slow; hash the shared password once per session
_PASSWORD_HASH: str | None = None


def password_hash() -> str:
    global _PASSWORD_HASH
    if _PASSWORD_HASH is None:
        _PASSWORD_HASH = get_password_hash(TEST_PASSWORD)
    return _PASSWORD_HASH


@pytest.fixture(scope="function")
async def engine():
    """
    Fresh in-memory database per test.

    StaticPool keeps the single connection alive so every session sees the
    same database.
    """
    test_engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with test_engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)

    yield test_engine

    await test_engine.dispose()


@pytest.fixture(scope="function")
async def db_session(engine) -> AsyncGenerator[AsyncSession, None]:
    async_session_maker = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )
    async with async_session_maker() as session:
        yield session
        await session.rollback()


@pytest.fixture(scope="function")
async def cache() -> AsyncGenerator[MemoryCache, None]:
    """Process-wide cache replaced by a fresh in-memory instance."""
    memory_cache = MemoryCache()
    set_cache(memory_cache)
    yield memory_cache
    set_cache(None)


@dataclass
class SeededUsers:
    admin: Users
    viewer: Users
    customer: Users


async def _add_user(db: AsyncSession, user_name: str, **overrides) -> Users:
    user = Users(
        user_name=user_name,
        email=f"{user_name}@example.com",
        first_name=user_name.capitalize(),
        password_hash=password_hash(),
        email_confirmed=True,
        **overrides,
    )
    db.add(user)
    await db.flush()
    return user


@pytest.fixture
async def seeded(db_session: AsyncSession) -> SeededUsers:
    """
    Three users:

    - admin: Administrator (system role) with every permission
    - viewer: Viewer role, may list and view todo lists only
    - customer: no roles
    """
    admin_role = Roles(name="Administrator", is_system_role=True)
    viewer_role = Roles(name="Viewer")
    db_session.add_all([admin_role, viewer_role])
    await db_session.flush()

    for permission in Permission:
        db_session.add(
            RoleClaims(
                role_id=admin_role.id,
                claim_type=CustomClaim.PERMISSION,
                claim_value=permission.value,
            )
        )
    for permission in (Permission.TODO_LISTS_LIST, Permission.TODO_LISTS_VIEW):
        db_session.add(
            RoleClaims(
                role_id=viewer_role.id,
                claim_type=CustomClaim.PERMISSION,
                claim_value=permission.value,
            )
        )
    db_session.add(
        RoleClaims(role_id=viewer_role.id, claim_type=CustomClaim.POLICY, claim_value="ReadOnly")
    )

    admin = await _add_user(db_session, "admin", phone_number="+15551234567")
    viewer = await _add_user(db_session, "viewer")
    customer = await _add_user(db_session, "customer", phone_number="+15557654321")

    db_session.add_all(
        [
            UserRoles(user_id=admin.id, role_id=admin_role.id),
            UserRoles(user_id=viewer.id, role_id=viewer_role.id),
        ]
    )
    await db_session.commit()
    return SeededUsers(admin=admin, viewer=viewer, customer=customer)


@pytest.fixture(scope="function")
def app(db_session: AsyncSession, cache: MemoryCache) -> FastAPI:
    """
    FastAPI app with the test database session.

    This overrides the database dependency to use the test session.
    """

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    main_app.dependency_overrides[get_db] = override_get_db

    yield main_app

    main_app.dependency_overrides.clear()


@pytest.fixture(scope="function")
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    """
    Async HTTP client for API tests.

    Usage:
        async def test_endpoint(client):
            response = await client.get("/api/todos/lists")
            assert response.status_code == 401
    """
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


def bearer_for(user: Users) -> dict[str, str]:
    """Authorization header with a valid access token for ``user``."""
    assert user.id is not None
    issued = generate_access_token(
        UserAuthorizationData(user_id=user.id, user_name=user.user_name, email=user.email)
    )
    return {"Authorization": f"Bearer {issued.token}"}


@pytest.fixture
def admin_headers(seeded: SeededUsers) -> dict[str, str]:
    return bearer_for(seeded.admin)


@pytest.fixture
def viewer_headers(seeded: SeededUsers) -> dict[str, str]:
    return bearer_for(seeded.viewer)


@pytest.fixture
def customer_headers(seeded: SeededUsers) -> dict[str, str]:
    return bearer_for(seeded.customer)
