"""
catalog/database.py
Database configuration for the course catalog store
"""
import logging

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from catalog.config.settings import settings
from catalog.orm.base import Base
import catalog.orm  # ensures all models are registered

logger = logging.getLogger(__name__)


def _enable_sqlite_immediate_transactions(engine: AsyncEngine) -> None:
    """
    Start every SQLite transaction with BEGIN IMMEDIATE.

    pysqlite/aiosqlite defer BEGIN until the first write, so two writers that
    both read first deadlock on lock upgrade and one gets "database is locked"
    without waiting. Taking the write lock up front lets the busy timeout
    serialize them instead.
    """
    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def create_engine_for(database_url: str, echo: bool = False) -> AsyncEngine:
    """Create an async engine configured for the given backend."""
    if "sqlite" in database_url.lower():
        engine = create_async_engine(
            database_url,
            echo=echo,
            future=True,
            pool_pre_ping=True,
            connect_args={
                "timeout": 30.0,   # SQLite busy timeout in seconds
            }
        )
        _enable_sqlite_immediate_transactions(engine)
    else:
        # PostgreSQL: conditional UPDATEs take row locks, no extra setup
        engine = create_async_engine(
            database_url,
            echo=echo,
            future=True,
            pool_pre_ping=True,
            pool_size=20,
            max_overflow=30,
            pool_timeout=30,
            pool_recycle=3600,
        )
    return engine


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker:
    """Session factory handed to CourseCatalog instances at process start."""
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


engine = create_engine_for(settings.DATABASE_URL, echo=settings.SQL_ECHO)
AsyncSessionLocal = create_session_factory(engine)


async def init_db(target: AsyncEngine = None):
    """
    Initialize database:
    Create all catalog tables and indexes if they don't exist.
    """
    target = target or engine
    logger.info("Initializing database...")

    try:
        logger.info(f"Database dialect: {target.url.get_backend_name()}")
        async with target.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("✓ Database initialization complete")
    except Exception as e:
        logger.error(f"Database initialization failed: {str(e)}")
        raise


async def close_db(target: AsyncEngine = None):
    """Close database connection"""
    target = target or engine
    await target.dispose()
    logger.info("Database connection closed")
