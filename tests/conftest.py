"""
Test fixtures for the Impart API test suite.

This module provides shared fixtures used across all test files:

  - db_engine / session_factory / db_session: a fresh SQLite database per
    test, with the default roles already seeded
  - client: Async HTTP test client (no credentials)
  - make_user: factory that registers a user through the real endpoint,
    optionally activates it and gives it a role, then logs it in
  - admin / teacher_user: ready-made logged-in users

Key design decisions:
  - Each test gets its own SQLite file under tmp_path, so sessions opened by
    the app and by the test see the same committed data and nothing leaks
    between tests.
  - We override FastAPI's get_db dependency to inject our test session,
    so the application code works exactly as it does in production.
  - The app lifespan does not run under ASGITransport, so db_engine creates
    the tables and seeds the roles itself.
  - The rate limiter is switched off through the environment before the app
    is imported; test_rate_limit.py exercises it on its own.
  - Users are registered through POST /v1/users so every test exercises the
    real sign-up flow. Role changes and activation are written straight to
    the database, the way an operator would provision staff accounts.
"""

import itertools
import os
from typing import NamedTuple

os.environ["LIMITER_ENABLED"] = "false"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ.pop("SMTP_HOST", None)

import pytest_asyncio  # noqa: E402
from httpx import AsyncClient, ASGITransport  # noqa: E402
from sqlalchemy import update  # noqa: E402
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker  # noqa: E402

from impart.database import Base, get_db  # noqa: E402
from impart.main import app  # noqa: E402
from impart.models.role import ROLE_ADMIN, ROLE_TEACHER  # noqa: E402
from impart.models.user import User  # noqa: E402
from impart.services import role_service  # noqa: E402

TEST_PASSWORD = "correct-horse-battery"
CLIENT_ADDRESS = ("203.0.113.10", 50000)


class LoggedInUser(NamedTuple):
    id: int
    email: str
    token: str

    @property
    def headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.token}"}


@pytest_asyncio.fixture
async def db_engine(tmp_path):
    """Create a fresh database with all tables and the default roles."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'impart-test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async_session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with async_session() as session:
        await role_service.seed_roles(session)
        await session.commit()

    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(db_engine):
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory):
    """Provide an async session bound to the test engine."""
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def client(session_factory):
    """
    Async HTTP test client with the test database injected.

    This overrides the get_db dependency so all requests hit the
    per-test database instead of the real one.
    """

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(
        transport=ASGITransport(app=app, client=CLIENT_ADDRESS),
        base_url="http://test",
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def make_user(client, session_factory):
    """
    Factory fixture: register, provision and log in a user.

    Usage:
        user = await make_user(role=ROLE_CEO)
        await client.get("/v1/users", headers=user.headers)
    """
    counter = itertools.count(1)

    async def _make_user(
        role: str = ROLE_TEACHER,
        active: bool = True,
        email: str | None = None,
    ) -> LoggedInUser:
        email = email or f"user{next(counter)}@example.com"
        response = await client.post(
            "/v1/users",
            json={"username": email.split("@")[0], "email": email, "password": TEST_PASSWORD},
        )
        assert response.status_code == 201, f"Registration failed: {response.text}"
        user_id = response.json()["user"]["id"]

        async with session_factory() as session:
            role_row = await role_service.get_role_by_name(session, role)
            await session.execute(
                update(User)
                .where(User.id == user_id)
                .values(role_id=role_row.id, is_active=active)
            )
            await session.commit()

        login = await client.post(
            "/v1/tokens/authentication",
            json={"email": email, "password": TEST_PASSWORD},
        )
        assert login.status_code == 201, f"Login failed: {login.text}"
        return LoggedInUser(id=user_id, email=email, token=login.json()["token"])

    return _make_user


@pytest_asyncio.fixture
async def admin(make_user):
    return await make_user(role=ROLE_ADMIN, email="admin@example.com")


@pytest_asyncio.fixture
async def teacher_user(make_user):
    return await make_user(role=ROLE_TEACHER, email="teacher@example.com")
