import os

# config refuses to import without a database URL
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel

import notifications
from database import get_session
from main import app
from models import Room

VENUE_ID = 1
OTHER_VENUE_ID = 2


@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(engine):
    return sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def client(session_factory):
    async def override_get_session():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_session] = override_get_session
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()


class RecordingDispatcher:
    def __init__(self):
        self.events = []

    async def send(self, event, **payload):
        self.events.append((event, payload))


@pytest.fixture
def sent(monkeypatch):
    """Captured notification events, in dispatch order."""
    dispatcher = RecordingDispatcher()
    monkeypatch.setattr(notifications, "dispatcher", dispatcher)
    return dispatcher.events


async def make_room(session, **overrides) -> Room:
    values = dict(
        company_id=VENUE_ID,
        title="The Vault",
        base_price=35,
        price_per_group=[{"players": 2, "price": 60}, {"players": 4, "price": 100}],
        default_time_slots=[{"time": "10:00", "price": 35}, {"time": "19:00", "price": 42}],
        players_min=2,
        players_max=6,
    )
    values.update(overrides)
    room = Room(**values)
    session.add(room)
    await session.commit()
    await session.refresh(room)
    return room


@pytest_asyncio.fixture
async def room(session) -> Room:
    return await make_room(session)
