"""Summary response caches.

Two backends implement CacheProtocol:

* ``MemoryCache`` keeps results per video namespace for the lifetime of the
  session. It is the default.
* ``SqliteCache`` persists results through ``aiosqlite`` so a restart can
  reuse them. Read failures are treated as misses and write failures are
  logged and ignored; infrastructure errors never cross the class boundary,
  because a broken cache must not stop a generated summary from reaching
  the caller. Errors are still logged with ``exc_info=True``.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

import aiosqlite
import pydantic
import structlog

from tubedigest.models.summary import SummaryResult

if TYPE_CHECKING:
    from tubedigest.models.summary import RequestKey

log = structlog.get_logger()


class MemoryCache:
    """In-process cache namespaced by video id."""

    def __init__(self) -> None:
        self._videos: dict[str, dict[RequestKey, SummaryResult]] = {}

    async def get(self, key: RequestKey) -> SummaryResult | None:
        return self._videos.get(key.video_id, {}).get(key)

    async def put(self, key: RequestKey, result: SummaryResult) -> None:
        self._videos.setdefault(key.video_id, {})[key] = result

    async def clear(self, video_id: str | None = None) -> None:
        if video_id is None:
            removed = sum(len(entries) for entries in self._videos.values())
            self._videos.clear()
        else:
            removed = len(self._videos.pop(video_id, {}))
        log.info("cache_cleared", video_id=video_id, removed=removed)

    async def retain_only(self, video_id: str) -> None:
        for other in [vid for vid in self._videos if vid != video_id]:
            await self.clear(other)

    def __len__(self) -> int:
        return sum(len(entries) for entries in self._videos.values())


_CREATE_SUMMARY_TABLE = """
CREATE TABLE IF NOT EXISTS summary_cache (
    request_key  TEXT PRIMARY KEY,
    video_id     TEXT NOT NULL,
    payload      TEXT NOT NULL,
    generated_at TEXT NOT NULL
)
"""

_CREATE_VIDEO_INDEX = "CREATE INDEX IF NOT EXISTS idx_summary_video ON summary_cache(video_id)"


class SqliteCache:
    """SQLite-backed summary cache implementing CacheProtocol."""

    def __init__(self, db: aiosqlite.Connection, max_age_hours: int = 24) -> None:
        self._db = db
        self._max_age = timedelta(hours=max_age_hours)

    async def init_db(self) -> None:
        """Create tables and set WAL mode. Called once at startup."""
        await self._db.execute("PRAGMA journal_mode = WAL")
        await self._db.execute(_CREATE_SUMMARY_TABLE)
        await self._db.execute(_CREATE_VIDEO_INDEX)
        await self._db.commit()

    async def get(self, key: RequestKey) -> SummaryResult | None:
        """Read an entry. Returns ``None`` on miss, expiry or read failure."""
        try:
            cursor = await self._db.execute(
                "SELECT payload, generated_at FROM summary_cache WHERE request_key = ?",
                (str(key),),
            )
            row = await cursor.fetchone()
            if row is None:
                return None
            if datetime.now(UTC) - datetime.fromisoformat(row[1]) > self._max_age:
                log.debug("cache_entry_expired", key=str(key))
                return None
            return SummaryResult.model_validate_json(row[0])
        except aiosqlite.Error:
            log.warning("cache_read_error", key=str(key), exc_info=True)
            return None
        except pydantic.ValidationError:
            log.warning("cache_payload_invalid", key=str(key), exc_info=True)
            return None

    async def put(self, key: RequestKey, result: SummaryResult) -> None:
        """Write an entry, replacing any previous one. Non-fatal on failure."""
        try:
            await self._db.execute(
                "INSERT OR REPLACE INTO summary_cache "
                "(request_key, video_id, payload, generated_at) VALUES (?, ?, ?, ?)",
                (
                    str(key),
                    key.video_id,
                    result.model_dump_json(),
                    result.generated_at.astimezone(UTC).isoformat(),
                ),
            )
            await self._db.commit()
        except aiosqlite.Error:
            log.warning("cache_write_error", key=str(key), exc_info=True)

    async def clear(self, video_id: str | None = None) -> None:
        try:
            if video_id is None:
                cursor = await self._db.execute("DELETE FROM summary_cache")
            else:
                cursor = await self._db.execute(
                    "DELETE FROM summary_cache WHERE video_id = ?", (video_id,)
                )
            await self._db.commit()
            log.info("cache_cleared", video_id=video_id, removed=cursor.rowcount)
        except aiosqlite.Error:
            log.warning("cache_clear_error", video_id=video_id, exc_info=True)

    async def retain_only(self, video_id: str) -> None:
        try:
            cursor = await self._db.execute(
                "DELETE FROM summary_cache WHERE video_id != ?", (video_id,)
            )
            await self._db.commit()
            log.info("cache_retained_video", video_id=video_id, removed=cursor.rowcount)
        except aiosqlite.Error:
            log.warning("cache_clear_error", video_id=video_id, exc_info=True)

    async def cleanup_expired(self) -> None:
        """Delete entries older than the configured age. Non-fatal on failure."""
        try:
            cutoff = (datetime.now(UTC) - self._max_age).isoformat()
            cursor = await self._db.execute(
                "DELETE FROM summary_cache WHERE generated_at < ?", (cutoff,)
            )
            await self._db.commit()
            log.info("cache_cleanup_complete", deleted=cursor.rowcount)
        except aiosqlite.Error:
            log.warning("cache_cleanup_error", exc_info=True)
