"""Service test fixtures — async DB, FastAPI test client, bearer tokens, seed rows.

Invariants:
    - Every test gets a fresh in-memory SQLite database
    - get_db dependency overridden to use test DB session
    - db_manager patched so the readiness check sees the test engine
    - The compat reflection cache is cleared around every test

Design Decisions:
    - SQLite in-memory: fast, no external dependency, sufficient for route tests
      (PostgreSQL-specific behavior is covered by the pure classifier tests)
    - Assertions read through a fresh session (`fresh`) so the identity map of
      the seeding session never hides what a request wrote
"""

from datetime import date, timedelta
from uuid import UUID, uuid4

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import (
    AsyncSession, async_sessionmaker, create_async_engine,
)

import conxion.infrastructure.database as db_module
from conxion.db.base import Base
from conxion.infrastructure.compat_table import clear_column_cache
from conxion.infrastructure.database import DatabaseSessionManager, get_db
from conxion.main import app
from conxion.models import (
    Admin, Connection, ConnectionSync, Event, EventMember, LegacySync,
    Profile, Reference, Report, Trip, TripRequest,
)
from tests.services.tokens import utcnow


@pytest.fixture(autouse=True)
def _reset_compat_cache():
    clear_column_cache()
    yield
    clear_column_cache()


@pytest.fixture
async def test_engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:", echo=False,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
async def test_session_factory(test_engine):
    return async_sessionmaker(
        test_engine, class_=AsyncSession, expire_on_commit=False,
    )


@pytest.fixture
async def test_db(test_session_factory):
    async with test_session_factory() as session:
        yield session


@pytest.fixture
def fresh(test_session_factory):
    """Load one row through a new session: fresh(Model, id)."""
    async def _load(model, ident):
        async with test_session_factory() as session:
            return await session.get(model, ident)
    return _load


@pytest.fixture
async def client(test_engine, test_session_factory):
    """FastAPI test client with DB dependency overridden."""
    async def override_get_db():
        async with test_session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db

    original_manager = db_module.db_manager
    fake_manager = DatabaseSessionManager.__new__(DatabaseSessionManager)
    fake_manager.engine = test_engine
    fake_manager._session_factory = test_session_factory
    db_module.db_manager = fake_manager

    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test",
    ) as c:
        yield c

    app.dependency_overrides.clear()
    db_module.db_manager = original_manager


# ─── Seed rows ──────────────────────────────────────────────────

class Seeder:
    """Inserts committed rows with sensible defaults."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _save(self, row):
        self.db.add(row)
        await self.db.commit()
        return row

    async def profile(
        self, user_id: UUID | None = None, confirmed: bool = True,
        age: timedelta = timedelta(days=30), organizer: bool = False,
    ) -> Profile:
        return await self._save(Profile(
            id=user_id or uuid4(),
            email_confirmed_at=utcnow() - age if confirmed else None,
            is_verified_organizer=organizer,
            created_at=utcnow() - age,
        ))

    async def admin(self, user_id: UUID) -> Admin:
        return await self._save(Admin(user_id=user_id))

    async def report(
        self, reporter: UUID, target: UUID, status: str = "open",
    ) -> Report:
        return await self._save(Report(
            reporter_id=reporter, target_user_id=target, reason="Harassment",
            status=status,
        ))

    async def connection(
        self, requester: UUID, target: UUID, status: str = "accepted",
        blocked_by: UUID | None = None, age: timedelta = timedelta(0),
    ) -> Connection:
        created = utcnow() - age
        return await self._save(Connection(
            requester_id=requester,
            target_id=target,
            status=status,
            blocked_by=blocked_by,
            connect_reason="Practice partner",
            created_at=created,
            updated_at=created,
        ))

    async def legacy_sync(self, connection: Connection, by: UUID) -> LegacySync:
        return await self._save(LegacySync(connection_id=connection.id, completed_by=by))

    async def sync(
        self, connection: Connection, requester: UUID, recipient: UUID,
        status: str = "pending", completed_ago: timedelta | None = None,
    ) -> ConnectionSync:
        return await self._save(ConnectionSync(
            connection_id=connection.id,
            requester_id=requester,
            recipient_id=recipient,
            sync_type="training",
            status=status,
            completed_at=utcnow() - completed_ago if completed_ago is not None else None,
        ))

    async def event(self, host: UUID, **fields) -> Event:
        starts = fields.pop("starts_at", utcnow() + timedelta(days=7))
        ends = fields.pop("ends_at", starts + timedelta(hours=4))
        event = Event(
            host_user_id=host,
            title=fields.pop("title", "Friday social"),
            city=fields.pop("city", "Lisbon"),
            country=fields.pop("country", "Portugal"),
            starts_at=starts,
            ends_at=ends,
            visibility=fields.pop("visibility", "public"),
            status=fields.pop("status", "published"),
            cover_status=fields.pop("cover_status", "approved"),
            styles=fields.pop("styles", []),
            links=fields.pop("links", []),
            **fields,
        )
        await self._save(event)
        await self.member(event, host, "host")
        return event

    async def member(self, event: Event, user_id: UUID, status: str) -> EventMember:
        return await self._save(EventMember(
            event_id=event.id,
            user_id=user_id,
            member_role="host" if status == "host" else "guest",
            status=status,
        ))

    async def trip(
        self, owner: UUID, start: date | None = None, end: date | None = None,
        status: str | None = "active",
    ) -> Trip:
        start = start or date.today() + timedelta(days=10)
        return await self._save(Trip(
            user_id=owner,
            destination_city="Buenos Aires",
            destination_country="Argentina",
            start_date=start,
            end_date=end or start + timedelta(days=5),
            status=status,
        ))

    async def trip_request(
        self, trip: Trip, requester: UUID, status: str = "pending",
    ) -> TripRequest:
        return await self._save(TripRequest(
            trip_id=trip.id, requester_id=requester, status=status,
        ))

    async def reference(
        self, connection: Connection, author: UUID, recipient: UUID,
        age: timedelta = timedelta(0), **fields,
    ) -> Reference:
        return await self._save(Reference(
            connection_id=connection.id,
            author_id=author,
            recipient_id=recipient,
            entity_type=fields.pop("entity_type", "connection"),
            entity_id=fields.pop("entity_id", connection.id),
            context=fields.pop("context", "connection"),
            sentiment=fields.pop("sentiment", "positive"),
            body=fields.pop("body", "Great partner, very patient."),
            created_at=utcnow() - age,
            **fields,
        ))


@pytest.fixture
def seed(test_db):
    return Seeder(test_db)


@pytest.fixture
def alice():
    return uuid4()


@pytest.fixture
def bob():
    return uuid4()
