"""
Async SQLAlchemy engine and sessions for the Lazy Trading onboarding API

One engine per process, created on first use and disposed by the API lifespan.
"""

import logging
from typing import AsyncGenerator

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    create_async_engine,
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
)

from config.config import DATABASE_URL, ENVIRONMENT

logger = logging.getLogger(__name__)


engine: AsyncEngine | None = None
AsyncSessionLocal: async_sessionmaker[AsyncSession] | None = None


def _engine_options(url: str) -> dict:
    """Pool sizing and driver arguments; asyncpg gets pgbouncer-safe settings"""
    if not url.startswith("postgresql+asyncpg"):
        return {}

    is_production = ENVIRONMENT == "production"
    return {
        # Status reads are short; a small pool is enough
        "pool_size": 10 if is_production else 3,
        "max_overflow": 10 if is_production else 5,
        "pool_pre_ping": True,
        "pool_recycle": 1800,
        "connect_args": {
            "statement_cache_size": 0,
            "server_settings": {"application_name": "lazy_trading_api"},
        },
    }


def get_engine() -> AsyncEngine:
    global engine

    if engine is None:
        engine = create_async_engine(DATABASE_URL, echo=False, **_engine_options(DATABASE_URL))
        logger.info(f"Database engine created ({engine.dialect.name}, environment={ENVIRONMENT})")

    return engine


def get_session_maker() -> async_sessionmaker[AsyncSession]:
    global AsyncSessionLocal

    if AsyncSessionLocal is None:
        AsyncSessionLocal = async_sessionmaker(
            get_engine(),
            class_=AsyncSession,
            expire_on_commit=False,  # Snapshots are built after commit
            autoflush=False,
        )

    return AsyncSessionLocal


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency: one session per request

    Usage:
        async def handler(session: AsyncSession = Depends(get_session)):
            ...
    """
    async with get_session_maker()() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise


async def dispose_engine() -> None:
    """Close all pooled connections (API shutdown)"""
    global engine, AsyncSessionLocal

    if engine is not None:
        await engine.dispose()
        logger.info("Database engine disposed")
    engine = None
    AsyncSessionLocal = None


async def check_connection() -> bool:
    """
    SELECT 1 against the database

    Returns:
        True if the database answered
    """
    try:
        async with get_engine().connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception as e:
        logger.error(f"Database connection check failed: {e}")
        return False

    return True
