"""Shared test fixtures — async SQLite in-memory DB, test client, fake Redis."""

import os

# Cheap hashes; must be set before app settings are first read
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("REDIS_ENABLED", "false")

import math  # noqa: E402
import time  # noqa: E402
from collections.abc import AsyncGenerator  # noqa: E402

import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlmodel import SQLModel  # noqa: E402

# Import all models so metadata is populated
import app.models  # noqa: E402, F401
from app.core.database import get_session  # noqa: E402
from app.core.security import hash_password  # noqa: E402
from app.core.session_store import SessionStore  # noqa: E402
from app.main import app  # noqa: E402
from app.models.organization import Organization, OrganizationMember, OrganizationRole  # noqa: E402
from app.models.project import EnergySource, Project, ProjectStatus, ProjectType  # noqa: E402
from app.models.user import User, UserRole  # noqa: E402

DEFAULT_PASSWORD = "testpass123"  # noqa: S105


class InMemoryRedis:
    """Just enough of the redis.asyncio client API for SessionStore."""

    def __init__(self) -> None:
        self.data: dict[str, str] = {}
        self.expiry: dict[str, float] = {}
        self.offset = 0.0

    def _now(self) -> float:
        return time.monotonic() + self.offset

    def advance(self, seconds: float) -> None:
        self.offset += seconds

    def _purge(self, key: str) -> None:
        deadline = self.expiry.get(key)
        if deadline is not None and deadline <= self._now():
            self.data.pop(key, None)
            self.expiry.pop(key, None)

    async def get(self, key: str) -> str | None:
        self._purge(key)
        return self.data.get(key)

    async def set(self, key: str, value: str, ex: int | None = None) -> bool:
        self.data[key] = str(value)
        if ex is not None:
            self.expiry[key] = self._now() + ex
        else:
            self.expiry.pop(key, None)
        return True

    async def incr(self, key: str) -> int:
        self._purge(key)
        value = int(self.data.get(key, 0)) + 1
        self.data[key] = str(value)
        return value

    async def expire(self, key: str, seconds: int) -> bool:
        if key not in self.data:
            return False
        self.expiry[key] = self._now() + seconds
        return True

    async def ttl(self, key: str) -> int:
        self._purge(key)
        if key not in self.data:
            return -2
        deadline = self.expiry.get(key)
        if deadline is None:
            return -1
        return max(math.ceil(deadline - self._now()), 0)

    async def delete(self, key: str) -> int:
        self.expiry.pop(key, None)
        return 1 if self.data.pop(key, None) is not None else 0

    async def ping(self) -> bool:
        return True

    async def aclose(self) -> None:
        return None


@pytest.fixture
async def engine():
    eng = create_async_engine("sqlite+aiosqlite://", echo=False)
    async with eng.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture
def test_session_factory(engine):
    """Session factory bound to the test SQLite engine."""
    return sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def session(test_session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with test_session_factory() as sess:
        yield sess
        await sess.rollback()


@pytest.fixture
def services(test_session_factory):
    """The app's service container, pointed at the test database."""
    svc = app.state.services
    original_factory = svc.realtime.session_factory
    svc.realtime.session_factory = test_session_factory
    svc.use_session_store(None)
    yield svc
    svc.use_session_store(None)
    svc.realtime.session_factory = original_factory
    svc.realtime.manager.connections.clear()
    svc.realtime.manager.rooms.clear()
    svc.realtime.recent_notifications.clear()
    svc.realtime.recent_metrics.clear()


@pytest.fixture
def fake_redis() -> InMemoryRedis:
    return InMemoryRedis()


@pytest.fixture
def session_store(services, fake_redis) -> SessionStore:
    """Enable the session store for one test."""
    store = SessionStore(
        fake_redis,
        max_login_attempts=services.settings.max_login_attempts,
        lock_seconds=services.settings.account_lock_seconds,
    )
    services.use_session_store(store)
    return store


@pytest.fixture
async def client(session, services) -> AsyncGenerator[AsyncClient, None]:
    """HTTPX async test client with DB session override."""

    async def _override_session():
        yield session

    app.dependency_overrides[get_session] = _override_session

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


# ── Data helpers ─────────────────────────────────────────────

class Factory:
    """Inserts rows directly, bypassing the HTTP layer."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def user(
        self,
        username: str,
        *,
        role: UserRole = UserRole.USER,
        verified: bool = True,
        password: str = DEFAULT_PASSWORD,
    ) -> User:
        user = User(
            email=f"{username}@example.com",
            username=username,
            first_name=username.title(),
            last_name="Tester",
            password_hash=hash_password(password),
            role=role,
            email_verified=verified,
        )
        self.session.add(user)
        await self.session.commit()
        await self.session.refresh(user)
        return user

    async def organization(self, slug: str) -> Organization:
        org = Organization(name=f"{slug.title()} Energy", slug=slug)
        self.session.add(org)
        await self.session.commit()
        await self.session.refresh(org)
        return org

    async def membership(
        self,
        user: User,
        org: Organization,
        role: OrganizationRole = OrganizationRole.MEMBER,
        *,
        active: bool = True,
    ) -> OrganizationMember:
        member = OrganizationMember(
            user_id=user.id, organization_id=org.id, role=role, is_active=active
        )
        self.session.add(member)
        await self.session.commit()
        await self.session.refresh(member)
        return member

    async def project(
        self,
        org: Organization,
        owner: User,
        *,
        name: str = "Sunfield",
        status: ProjectStatus = ProjectStatus.PLANNING,
        capacity: float | None = 250.0,
    ) -> Project:
        project = Project(
            organization_id=org.id,
            owner_id=owner.id,
            name=name,
            project_type=ProjectType.UTILITY_SCALE,
            energy_source=EnergySource.SOLAR_PV,
            status=status,
            system_capacity=capacity,
        )
        self.session.add(project)
        await self.session.commit()
        await self.session.refresh(project)
        return project


@pytest.fixture
def factory(session) -> Factory:
    return Factory(session)


async def login(client: AsyncClient, username: str, password: str = DEFAULT_PASSWORD) -> dict:
    """Log in a factory-made user and return the token pair."""
    resp = await client.post("/v1/auth/login", json={
        "email": f"{username}@example.com",
        "password": password,
    })
    assert resp.status_code == 200, resp.text
    return resp.json()["tokens"]


def bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}
