"""Database engine and session factory setup."""

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool
from sqlmodel import SQLModel


def create_engine_for_url(db_url: str, pool_size: int = 200) -> AsyncEngine:
    """Create an async engine suitable for the given database URL.

    PostgreSQL (postgresql+psycopg://...) gets a bounded connection pool.
    SQLite (sqlite+aiosqlite://...) is used by the test suite and local tooling;
    it does not support pool sizing, so every session opens its own connection.
    """
    if db_url.startswith("sqlite"):
        return create_async_engine(db_url, poolclass=NullPool, echo=False)

    return create_async_engine(
        db_url,
        pool_size=pool_size,
        max_overflow=0,  # No overflow beyond pool_size
        pool_pre_ping=True,  # Verify connections before using
        echo=False,  # SQL is not logged; structlog covers application events
    )


def setup_db_session(db_url: str, pool_size: int = 200) -> async_sessionmaker[AsyncSession]:
    """Create async database session factory.

    Args:
        db_url: Database connection URL
        pool_size: Maximum number of connections in the pool (default: 200)

    Returns:
        Async session factory for creating database sessions
    """
    engine = create_engine_for_url(db_url, pool_size)

    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,  # Prevent lazy loading issues after commit
    )


async def create_all_tables(session_factory: async_sessionmaker[AsyncSession]) -> None:
    """Create every table registered on SQLModel metadata.

    Production schemas are managed by Alembic; this is used for SQLite test
    databases and local experiments.
    """
    import tryon.models  # noqa: F401  # register tables on metadata

    engine = session_factory.kw["bind"]
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
