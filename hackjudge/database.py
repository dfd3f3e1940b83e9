"""
hackjudge/database.py
Database configuration for the judging core
"""
import logging

from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker

# Import Base from orm.base to avoid circular imports
from hackjudge.orm.base import Base
import hackjudge.orm  # ensures all models are registered
from hackjudge.config.settings import settings

logger = logging.getLogger(__name__)

DATABASE_URL = settings.DATABASE_URL

if not DATABASE_URL:
    raise ValueError("DATABASE_URL environment variable is not set")


def build_engine(url: str = DATABASE_URL):
    """
    Create an async engine with pool settings suited to the dialect.

    SQLite gets a busy timeout so concurrent score writes wait on the
    file lock instead of failing straight away.
    """
    if "sqlite" in url.lower():
        return create_async_engine(
            url,
            echo=settings.SQL_ECHO,
            future=True,
            connect_args={
                "timeout": 30.0,   # SQLite busy timeout in seconds
            }
        )
    return create_async_engine(
        url,
        echo=settings.SQL_ECHO,
        future=True,
        pool_pre_ping=True,
        pool_size=20,
        max_overflow=30,
        pool_timeout=30,
        pool_recycle=3600,
    )


def build_sessionmaker(bind) -> async_sessionmaker:
    return async_sessionmaker(
        bind,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


engine = build_engine()
AsyncSessionLocal = build_sessionmaker(engine)


async def init_db(bind=None):
    """
    Initialize database: create all tables that don't exist yet.
    """
    bind = bind or engine
    logger.info("Initializing database...")
    logger.info(f"Database dialect: {bind.url.get_backend_name()}")

    try:
        async with bind.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database initialization complete")
    except Exception as e:
        logger.error(f"Database initialization failed: {str(e)}")
        raise


async def close_db():
    """Close database connection"""
    await engine.dispose()
    logger.info("Database connection closed")
