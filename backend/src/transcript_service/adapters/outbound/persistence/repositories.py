"""Concrete transcript-cache repository using SQLAlchemy.

Implements the ``TranscriptCacheRepository`` port, translating between
``CacheEntry`` and ``TranscriptCacheModel``.  Each call runs in its own
short transaction; the cache needs only single-row upsert and increment.
Driver and SQL errors surface as ``CacheError``.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone

from sqlalchemy import delete, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from transcript_service.domain.entities import CacheEntry
from transcript_service.domain.exceptions import CacheError
from transcript_service.ports.outbound import TranscriptCacheRepository

from .models import TranscriptCacheModel


@contextmanager
def _translate_errors(operation: str) -> Iterator[None]:
    try:
        yield
    except (SQLAlchemyError, OSError) as exc:
        raise CacheError(f"Transcript cache {operation} failed: {exc}") from exc


# ── Converters ───────────────────────────────────────────────
def _as_utc(value: datetime | None) -> datetime | None:
    # SQLite hands back naive datetimes even for timezone-aware columns
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _entry_to_values(e: CacheEntry) -> dict[str, object]:
    return {
        "key": e.key,
        "payload": e.payload,
        "has_content": e.has_content,
        "cached_at": e.cached_at,
        "expires_at": e.expires_at,
        "access_count": e.access_count,
        "last_accessed_at": e.last_accessed_at,
        "version": e.version,
    }


def _model_to_entry(m: TranscriptCacheModel) -> CacheEntry:
    return CacheEntry(
        key=m.key,
        payload=dict(m.payload or {}),
        has_content=bool(m.has_content),
        cached_at=_as_utc(m.cached_at),  # type: ignore[arg-type]
        expires_at=_as_utc(m.expires_at),  # type: ignore[arg-type]
        version=m.version,
        access_count=m.access_count or 0,
        last_accessed_at=_as_utc(m.last_accessed_at),
    )


# ═══════════════════════════════════════════════════════════════
#  SQLAlchemy Transcript Cache Repository
# ═══════════════════════════════════════════════════════════════
class SQLAlchemyTranscriptCacheRepository(TranscriptCacheRepository):
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def get(self, key: str) -> CacheEntry | None:
        with _translate_errors("get"):
            async with self._session_factory() as session:
                result = await session.get(TranscriptCacheModel, key)
                return _model_to_entry(result) if result else None

    async def upsert(self, entry: CacheEntry) -> None:
        values = _entry_to_values(entry)
        with _translate_errors("upsert"):
            async with self._session_factory() as session, session.begin():
                dialect = session.get_bind().dialect.name
                if dialect == "postgresql":
                    stmt = postgresql.insert(TranscriptCacheModel).values(**values)
                elif dialect == "sqlite":
                    stmt = sqlite.insert(TranscriptCacheModel).values(**values)
                else:
                    await session.merge(TranscriptCacheModel(**values))
                    return
                updates = {k: stmt.excluded[k] for k in values if k != "key"}
                await session.execute(
                    stmt.on_conflict_do_update(index_elements=["key"], set_=updates)
                )

    async def increment_access(self, key: str, *, accessed_at: datetime) -> int | None:
        with _translate_errors("increment_access"):
            async with self._session_factory() as session, session.begin():
                result = await session.execute(
                    update(TranscriptCacheModel)
                    .where(TranscriptCacheModel.key == key)
                    .values(
                        access_count=TranscriptCacheModel.access_count + 1,
                        last_accessed_at=accessed_at,
                    )
                )
                if result.rowcount == 0:
                    return None
                count = await session.execute(
                    select(TranscriptCacheModel.access_count).where(
                        TranscriptCacheModel.key == key
                    )
                )
                return count.scalar_one()

    async def delete(self, key: str) -> bool:
        with _translate_errors("delete"):
            async with self._session_factory() as session, session.begin():
                result = await session.execute(
                    delete(TranscriptCacheModel).where(TranscriptCacheModel.key == key)
                )
                return result.rowcount > 0

    async def purge_expired(self, now: datetime) -> int:
        with _translate_errors("purge_expired"):
            async with self._session_factory() as session, session.begin():
                result = await session.execute(
                    delete(TranscriptCacheModel).where(TranscriptCacheModel.expires_at <= now)
                )
                return result.rowcount or 0
