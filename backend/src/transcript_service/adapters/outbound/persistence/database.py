"""SQLAlchemy async database session factory."""

from __future__ import annotations

from typing import Any

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from transcript_service.adapters.outbound.persistence.models import Base
from transcript_service.config import Settings


def create_engine(settings: Settings) -> AsyncEngine:
    url = settings.database_url
    kwargs: dict[str, Any] = {"echo": settings.app_debug}

    if url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
        if ":memory:" in url:
            # one shared connection, otherwise every checkout sees an empty database
            kwargs["poolclass"] = StaticPool
    else:
        kwargs.update(
            pool_size=settings.database_pool_size,
            max_overflow=settings.database_max_overflow,
            pool_pre_ping=True,
        )
        # asyncpg doesn't like 'sslmode' in the query string, it wants 'ssl' in connect_args
        if "sslmode=" in url:
            from sqlalchemy.engine.url import make_url

            parsed_url = make_url(url)
            query = dict(parsed_url.query)
            ssl_mode = query.pop("sslmode", "require")
            url = str(parsed_url.set(query=query))
            if ssl_mode in ("require", "verify-full", "verify-ca"):
                kwargs["connect_args"] = {"ssl": True}

    return create_async_engine(url, **kwargs)


def create_session_factory(
    settings: Settings | None = None, *, engine: AsyncEngine | None = None
) -> async_sessionmaker[AsyncSession]:
    if engine is None:
        if settings is None:
            raise ValueError("settings or engine is required")
        engine = create_engine(settings)
    return async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)


async def create_tables(engine: AsyncEngine) -> None:
    """Create missing tables.  Production schemas are managed by Alembic."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

