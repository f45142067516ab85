from collections.abc import AsyncGenerator

from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from ticket_bot.settings import settings


def _enable_sqlite_transactions(engine: AsyncEngine) -> None:
    # pysqlite emits its own BEGIN lazily, which breaks SAVEPOINT and lets two
    # writers race on lock upgrade. Take over transaction control instead.
    @event.listens_for(engine.sync_engine, 'connect')
    def do_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute('PRAGMA foreign_keys=ON')
        cursor.close()

    @event.listens_for(engine.sync_engine, 'begin')
    def do_begin(conn):
        conn.exec_driver_sql('BEGIN IMMEDIATE')


def build_engine(database_url: str, echo: bool = False) -> AsyncEngine:
    timeout = settings.DB_TIMEOUT_SECONDS

    if database_url.startswith('sqlite'):
        engine = create_async_engine(
            database_url, echo=echo, connect_args={'timeout': timeout}
        )
        _enable_sqlite_transactions(engine)
        return engine

    return create_async_engine(
        database_url,
        echo=echo,
        pool_pre_ping=True,
        pool_timeout=timeout,
        connect_args={'timeout': timeout, 'command_timeout': timeout},
    )


def build_sessionmaker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=engine,
        autoflush=False,
        expire_on_commit=False,
        class_=AsyncSession,
    )


engine = build_engine(settings.DATABASE_URL, echo=settings.ECHO_SQL)

AsyncSessionLocal = build_sessionmaker(engine)


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    async with AsyncSessionLocal() as session:
        yield session
