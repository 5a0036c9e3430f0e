"""Engine and session factory for the marketplace store (PostgreSQL or SQLite)."""

from pathlib import Path
from typing import Optional

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import NullPool

_engine: Optional[AsyncEngine] = None
_async_session_factory: Optional[async_sessionmaker[AsyncSession]] = None

ASYNC_DRIVER_PREFIXES = {
    "postgres://": "postgresql+asyncpg://",
    "postgresql://": "postgresql+asyncpg://",
}


class Base(DeclarativeBase):
    """Declarative base shared by users, requests, offers and the payment tables."""


def to_async_url(url: str) -> str:
    """Rewrite a plain PostgreSQL URL so it uses the asyncpg driver."""
    for prefix, replacement in ASYNC_DRIVER_PREFIXES.items():
        if url.startswith(prefix):
            return replacement + url[len(prefix):]
    return url


def get_database_url(db_path: Optional[Path] = None) -> str:
    """Resolve the configured store.

    ``DATABASE_URL`` wins when set; otherwise a SQLite file is created at
    ``db_path`` (or ``settings.database_path``).
    """
    from marketplace.config.settings import settings

    if settings.is_postgres:
        return to_async_url(settings.database_url)

    path = db_path or settings.database_path
    path.parent.mkdir(parents=True, exist_ok=True)
    return f"sqlite+aiosqlite:///{path}"


def get_engine(db_path: Optional[Path] = None) -> AsyncEngine:
    global _engine

    if _engine is None:
        # aiosqlite connections are bound to the loop that opened them
        _engine = create_async_engine(
            get_database_url(db_path),
            echo=False,
            future=True,
            poolclass=NullPool,
        )
    return _engine


def get_async_session_factory() -> async_sessionmaker[AsyncSession]:
    global _async_session_factory

    if _async_session_factory is None:
        _async_session_factory = async_sessionmaker(
            get_engine(),
            class_=AsyncSession,
            expire_on_commit=False,
        )
    return _async_session_factory


async def init_db(db_path: Optional[Path] = None) -> None:
    """Create all tables, including the unique indexes on offers and payments."""
    engine = get_engine(db_path)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


def reset_engine() -> None:
    """Forget the engine so the next call picks up changed settings."""
    global _engine, _async_session_factory
    _engine = None
    _async_session_factory = None
