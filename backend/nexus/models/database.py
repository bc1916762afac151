"""Database engine, request sessions and schema bootstrap"""
import structlog
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import StaticPool
from typing import AsyncGenerator

from nexus.config import get_settings

logger = structlog.get_logger()
settings = get_settings()


def build_engine(url: str, echo: bool = False) -> AsyncEngine:
    """
    Create the async engine for ``url``.

    Postgres gets a sized, pre-pinged pool. SQLite (local runs and tests)
    has SQLAlchemy emit BEGIN itself, otherwise the savepoints used for
    vote inserts and audit rows do not nest. Transactions start with
    BEGIN IMMEDIATE so concurrent writers on a file database queue on the
    busy timeout instead of failing on lock upgrade. An in-memory database
    shares one connection.
    """
    if not url.startswith("sqlite"):
        return create_async_engine(
            url,
            pool_size=settings.database_pool_size,
            pool_pre_ping=True,
            echo=echo,
        )

    if ":memory:" in url or url.endswith(":///"):
        sqlite_engine = create_async_engine(
            url,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
            echo=echo,
        )
    else:
        sqlite_engine = create_async_engine(
            url,
            connect_args={"check_same_thread": False, "timeout": 30},
            echo=echo,
        )

    @event.listens_for(sqlite_engine.sync_engine, "connect")
    def _disable_driver_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(sqlite_engine.sync_engine, "begin")
    def _begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    return sqlite_engine


engine = build_engine(settings.database_url, echo=settings.debug)

async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class Base(DeclarativeBase):
    """Base class for all models"""
    pass


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    One session and one transaction per request.

    Committed when the handler returns, so a vote, its tally increment and
    any resulting transition land together; rolled back on any exception.
    """
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception as e:
            await session.rollback()
            logger.debug("Request transaction rolled back", error=str(e))
            raise


async def init_db(bind: AsyncEngine = None):
    """Create any missing tables"""
    async with (bind or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.debug("Schema ensured", tables=sorted(Base.metadata.tables))


async def close_db():
    """Close database connections"""
    await engine.dispose()
