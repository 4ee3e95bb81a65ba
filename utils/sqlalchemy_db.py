"""SQLAlchemy database connection and session management."""

from collections.abc import Awaitable, Callable

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from models.base import Base

SessionFactory = Callable[[], Awaitable[AsyncSession]]


def create_engine(database_url: str, pool_size: int = 10, echo: bool = False) -> AsyncEngine:
    """Create the process-wide async engine.

    Args:
        database_url: SQLAlchemy URL, e.g. ``postgresql+asyncpg://user:pw@host/db``.
        pool_size: Maximum number of pooled connections.
        echo: Log every statement.

    Returns:
        The configured engine.
    """
    url = make_url(database_url)
    if url.get_backend_name() == "sqlite":
        # SQLite runs in-process and does not accept pool sizing arguments
        return create_async_engine(url, echo=echo)

    return create_async_engine(
        url,
        echo=echo,
        pool_size=pool_size,  # Maximum number of connections
        max_overflow=0,
        pool_timeout=30,  # Seconds to wait before giving up on getting a connection
        pool_recycle=300,  # Recycle connections after 5 minutes
        pool_pre_ping=True,  # Check connection validity before using it
    )


def create_session_maker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create a session factory bound to ``engine``."""
    return async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)


def make_session_factory(
    session_maker: async_sessionmaker[AsyncSession],
) -> SessionFactory:
    """Wrap a sessionmaker in the awaitable factory the repositories expect."""

    async def get_db_session() -> AsyncSession:
        return session_maker()

    return get_db_session


async def create_tables(engine: AsyncEngine) -> None:
    """Create any missing tables for the registered models."""
    import models.tables  # noqa: F401  (registers the models on Base.metadata)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
