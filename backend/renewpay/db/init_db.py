"""
Database Initialization

Creates the RenewPay tables and provides the async session factory used by
FastAPI dependencies and the expiry scheduler.
Tables: subscriptions, profiles, sessions
"""
import logging
from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from ..config import settings
from .models import Base

logger = logging.getLogger(__name__)


# ============================================================================
# SQLAlchemy Async Engine Setup for FastAPI
# ============================================================================

def build_engine(database_url: str) -> AsyncEngine:
    """Create the async engine, with SQLite lock timeouts when applicable."""
    connect_args = {}
    if database_url.startswith("sqlite"):
        connect_args = {
            "timeout": 30,  # 30 second timeout for lock acquisition
            "check_same_thread": False
        }

    return create_async_engine(
        database_url,
        echo=False,
        connect_args=connect_args,
        pool_pre_ping=True,  # Verify connections before using
        pool_recycle=3600  # Recycle connections after 1 hour
    )


engine = build_engine(settings.database_url)

# Create async session factory
AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False
)


async def create_tables(bind: AsyncEngine) -> None:
    """Create all tables that do not exist yet."""
    async with bind.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def initialize_database() -> None:
    """
    Initialize the database with all required tables.

    This function is called during FastAPI startup.
    """
    logger.info(f"Initializing database at: {settings.database_url}")
    await create_tables(engine)
    logger.info("All tables created successfully")


async def get_async_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency for getting async database sessions in FastAPI.

    Usage:
        @app.get("/endpoint")
        async def endpoint(db: AsyncSession = Depends(get_async_session)):
            ...
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
        finally:
            await session.close()


# Alias for FastAPI Depends
get_db = get_async_session
