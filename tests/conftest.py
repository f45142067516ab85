import os
import typing
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker
from testcontainers.postgres import PostgresContainer

from ticket_bot.app import app, get_messenger
from ticket_bot.database import build_engine, build_sessionmaker, get_session
from ticket_bot.models import Base, Event, TelegramUser
from ticket_bot.store import TicketStore

from tests.fakes import FakeMessenger


@pytest.fixture(scope='session')
def anyio_backend() -> str:
    return 'asyncio'


@pytest.fixture(scope='session')
def database_url(
    anyio_backend: typing.Literal['asyncio'],
    tmp_path_factory: pytest.TempPathFactory,
) -> typing.Generator[str, None, None]:
    if os.environ.get('TEST_WITH_POSTGRES'):
        with PostgresContainer('postgres:16', driver='asyncpg') as postgres:
            yield postgres.get_connection_url()
    else:
        db_file = tmp_path_factory.mktemp('db') / 'test.sqlite3'
        yield f'sqlite+aiosqlite:///{db_file}'


@pytest.fixture
async def async_engine(database_url: str) -> typing.AsyncGenerator[AsyncEngine, None]:
    engine = build_engine(database_url)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_maker(async_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return build_sessionmaker(async_engine)


@pytest.fixture
async def async_session(
    session_maker: async_sessionmaker[AsyncSession],
) -> typing.AsyncGenerator[AsyncSession, None]:
    async with session_maker() as session:
        yield session


@pytest.fixture
def store(async_session: AsyncSession) -> TicketStore:
    return TicketStore(async_session)


@pytest.fixture
def messenger() -> FakeMessenger:
    return FakeMessenger()


@pytest.fixture
async def async_client(
    async_session: AsyncSession, messenger: FakeMessenger
) -> typing.AsyncGenerator[AsyncClient, None]:
    app.dependency_overrides[get_session] = lambda: async_session
    app.dependency_overrides[get_messenger] = lambda: messenger
    _transport = ASGITransport(app=app)

    async with AsyncClient(
        transport=_transport, base_url='http://test', follow_redirects=True
    ) as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture
def make_event(async_session: AsyncSession):
    async def _make_event(**overrides) -> Event:
        data = {
            'title': 'Jazz Night',
            'description': 'Live jazz',
            'date': datetime.now(timezone.utc) + timedelta(days=7),
            'location': 'Blue Note',
            'price': Decimal('25.00'),
            'available_tickets': 10,
        }
        data.update(overrides)
        event = Event(**data)

        async with async_session.begin():
            async_session.add(event)

        return event

    return _make_event


@pytest.fixture
def make_user(async_session: AsyncSession):
    async def _make_user(telegram_user_id: int = 1001, **overrides) -> TelegramUser:
        user = TelegramUser(
            telegram_user_id=telegram_user_id,
            first_name=overrides.get('first_name', 'Ada'),
            last_name=overrides.get('last_name'),
            username=overrides.get('username', 'ada'),
        )

        async with async_session.begin():
            async_session.add(user)

        return user

    return _make_user

