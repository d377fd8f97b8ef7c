"""Test fixtures — a fresh SQLite database per test, real auth pipeline.

Testing pattern for async SQLAlchemy + FastAPI:

1. Environment is pinned BEFORE eventhub is imported: SQLite instead of
   Postgres, no Redis, no demo seed, cheap bcrypt rounds.
2. Each test gets its own database file (tmp_path) and session factory.
   get_db is overridden to hand out one session per request from it, so
   concurrent requests behave like they do in production.
3. app.state (connection registry, publisher, admission locks) is replaced
   per test so nothing leaks between tests.

Auth is NOT mocked: clients register/login and carry the session cookie,
one AsyncClient per user.
"""

import os
import tempfile
import uuid

_TEST_DIR = tempfile.mkdtemp(prefix="eventhub-tests-")
os.environ["EVENTHUB_DATABASE_URL"] = f"sqlite+aiosqlite:///{_TEST_DIR}/app.db"
os.environ["EVENTHUB_REDIS_URL"] = ""
os.environ["EVENTHUB_SEED_DEMO_DATA"] = "false"
os.environ["EVENTHUB_BCRYPT_ROUNDS"] = "4"
os.environ["EVENTHUB_ENVIRONMENT"] = "development"

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker  # noqa: E402

from eventhub.db.engine import build_engine, create_schema, get_db  # noqa: E402
from eventhub.db.models import Event, User  # noqa: E402
from eventhub.main import app  # noqa: E402
from eventhub.realtime.pubsub import ChangePublisher  # noqa: E402
from eventhub.realtime.registry import ConnectionRegistry  # noqa: E402
from eventhub.services.admission import AdmissionLocks  # noqa: E402

PASSWORD = "password123"


class RecordingPublisher:
    """Stands in for ChangePublisher; remembers what was published."""

    def __init__(self, fail: bool = False):
        self.messages: list[dict] = []
        self.fail = fail

    async def publish(self, message: dict) -> None:
        if self.fail:
            raise RuntimeError("publisher down")
        self.messages.append(message)


def unique(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:8]}"


# ─── Database ────────────────────────────────────────────


@pytest_asyncio.fixture()
async def engine(tmp_path):
    """A fresh SQLite database with the full schema."""
    test_engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    await create_schema(test_engine)
    try:
        yield test_engine
    finally:
        await test_engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture()
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture()
async def make_user(session_factory):
    """Insert a user directly (no HTTP). Returns the User."""

    async def _make(role: str = "user", username: str | None = None) -> User:
        async with session_factory() as session:
            user = User(
                username=username or unique(role),
                password_hash="not-a-real-hash",
                role=role,
            )
            session.add(user)
            await session.commit()
            return user

    return _make


@pytest_asyncio.fixture()
async def make_event(session_factory, make_user):
    """Insert an event directly (no HTTP). Returns the Event."""
    from datetime import datetime, timezone

    async def _make(max_participants: int = 10, organizer: User | None = None, **fields) -> Event:
        organizer = organizer or await make_user("organizer")
        async with session_factory() as session:
            event = Event(
                organizer_id=organizer.id,
                title=fields.get("title", "Tech Talk"),
                description=fields.get("description", "Talks about tech"),
                date=fields.get("date", datetime(2030, 1, 15, 18, 0, tzinfo=timezone.utc)),
                location=fields.get("location", "Room 101"),
                max_participants=max_participants,
            )
            session.add(event)
            await session.commit()
            return event

    return _make


# ─── HTTP ────────────────────────────────────────────────


@pytest.fixture()
def app_state():
    """Fresh real-time state on the app for the duration of a test."""
    registry = ConnectionRegistry(send_timeout=0.5)
    app.state.connections = registry
    app.state.publisher = ChangePublisher(registry)
    app.state.admission_locks = AdmissionLocks()
    return app.state


@pytest_asyncio.fixture()
async def client_factory(session_factory, app_state):
    """Create AsyncClients against the app; each keeps its own cookies."""

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    clients: list[AsyncClient] = []

    def _new(raise_app_exceptions: bool = True) -> AsyncClient:
        transport = ASGITransport(app=app, raise_app_exceptions=raise_app_exceptions)
        c = AsyncClient(transport=transport, base_url="http://testserver")
        clients.append(c)
        return c

    try:
        yield _new
    finally:
        for c in clients:
            await c.aclose()
        app.dependency_overrides.clear()


@pytest.fixture()
def client(client_factory):
    """An anonymous client."""
    return client_factory()


@pytest_asyncio.fixture()
async def signup(client_factory):
    """Register an account over HTTP; returns (logged-in client, user json)."""

    async def _signup(role: str = "user", username: str | None = None):
        c = client_factory()
        r = await c.post(
            "/api/auth/register",
            json={"username": username or unique(role), "password": PASSWORD, "role": role},
        )
        assert r.status_code == 201, r.text
        return c, r.json()

    return _signup


@pytest.fixture()
def event_body():
    return {
        "title": "Tech Talk",
        "description": "Talks about tech",
        "date": "2030-01-15T18:00:00Z",
        "location": "Room 101",
        "maxParticipants": 1,
    }
