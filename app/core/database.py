"""
Database Configuration

Async SQLAlchemy 2.0 setup with asyncpg driver for PostgreSQL.
"""

from typing import AsyncGenerator, Optional

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """
    Base class for all SQLAlchemy models.

    All models should inherit from this class.
    """
    pass


# Lazily initialized so importing models never opens a connection
_engine: Optional[AsyncEngine] = None
_async_session_maker: Optional[async_sessionmaker[AsyncSession]] = None


def _engine_url_and_args(database_url: str, use_ssl: bool) -> tuple[str, dict]:
    """
    Split the configured URL into what asyncpg accepts.

    asyncpg rejects libpq query parameters such as sslmode, so they are
    dropped and SSL is passed through connect_args instead.
    """
    connect_args: dict = {}
    if "?" in database_url:
        database_url = database_url.split("?")[0]

    if use_ssl:
        import ssl

        ssl_context = ssl.create_default_context()
        connect_args["ssl"] = ssl_context

    return database_url, connect_args


def get_engine() -> AsyncEngine:
    """Get or create the async engine."""
    global _engine
    if _engine is None:
        from app.core.config import settings

        db_url, connect_args = _engine_url_and_args(
            settings.DATABASE_URL, settings.DATABASE_SSL
        )
        _engine = create_async_engine(
            db_url,
            echo=settings.DATABASE_ECHO,
            pool_pre_ping=True,
            pool_size=5,
            max_overflow=10,
            connect_args=connect_args,
        )
    return _engine


def get_session_maker() -> async_sessionmaker[AsyncSession]:
    """Get or create the session maker."""
    global _async_session_maker
    if _async_session_maker is None:
        _async_session_maker = async_sessionmaker(
            bind=get_engine(),
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )
    return _async_session_maker


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency that provides a database session.

    The session is the unit of work for one request: it is committed when
    the handler returns and rolled back if anything raises.

    Yields:
        AsyncSession: An async database session.
    """
    session_maker = get_session_maker()
    async with session_maker() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


async def close_db() -> None:
    """Close database connections."""
    global _engine, _async_session_maker
    if _engine is not None:
        await _engine.dispose()
        _engine = None
        _async_session_maker = None
