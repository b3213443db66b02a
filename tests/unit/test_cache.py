"""Unit tests for tubedigest.cache."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

import aiosqlite
import pytest

from tubedigest.cache import MemoryCache, SqliteCache
from tubedigest.models.summary import (
    Point,
    RenderBlock,
    RequestKey,
    Section,
    SummaryFormat,
    SummaryLength,
    SummaryResult,
    SummaryType,
)

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator


def _key(video_id: str = "abc123", length: SummaryLength = SummaryLength.AUTO) -> RequestKey:
    return RequestKey(video_id, SummaryType.INSIGHTFUL, length, SummaryFormat.LIST)


def _result(key: RequestKey, generated_at: datetime | None = None) -> SummaryResult:
    section = Section(headline="Sleep", points=(Point(text="💡 Eight hours a night"),))
    return SummaryResult(
        request_key=str(key),
        video_id=key.video_id,
        sections=(section,),
        blocks=(RenderBlock(header="Sleep", body=("💡 Eight hours a night",)),),
        raw_text="Sleep\n💡 Eight hours a night",
        generated_at=generated_at or datetime.now(UTC),
        model="fake-model",
    )


@pytest.fixture()
async def sqlite_cache() -> AsyncGenerator[SqliteCache, None]:
    async with aiosqlite.connect(":memory:") as db:
        cache = SqliteCache(db, max_age_hours=24)
        await cache.init_db()
        yield cache


async def _failing_execute(*args, **kwargs):
    raise aiosqlite.OperationalError("disk I/O error")


# ---------------------------------------------------------------------------
# RequestKey
# ---------------------------------------------------------------------------


class TestRequestKey:
    def test_string_form(self) -> None:
        assert str(_key()) == "advanced_abc123_insightful_auto_list"

    def test_lengths_are_distinct_keys(self) -> None:
        assert _key(length=SummaryLength.SHORT) != _key(length=SummaryLength.DETAILED)


# ---------------------------------------------------------------------------
# MemoryCache
# ---------------------------------------------------------------------------


class TestMemoryCache:
    async def test_put_and_get(self) -> None:
        cache = MemoryCache()
        key = _key()
        result = _result(key)
        await cache.put(key, result)
        assert await cache.get(key) == result
        assert len(cache) == 1

    async def test_miss(self) -> None:
        assert await MemoryCache().get(_key()) is None

    async def test_clear_one_video(self) -> None:
        cache = MemoryCache()
        await cache.put(_key("aaa"), _result(_key("aaa")))
        await cache.put(_key("bbb"), _result(_key("bbb")))
        await cache.clear("aaa")
        assert await cache.get(_key("aaa")) is None
        assert await cache.get(_key("bbb")) is not None

    async def test_clear_all(self) -> None:
        cache = MemoryCache()
        await cache.put(_key("aaa"), _result(_key("aaa")))
        await cache.put(_key("bbb"), _result(_key("bbb")))
        await cache.clear()
        assert len(cache) == 0

    async def test_clear_unknown_video_is_noop(self) -> None:
        cache = MemoryCache()
        await cache.put(_key("aaa"), _result(_key("aaa")))
        await cache.clear("zzz")
        assert len(cache) == 1

    async def test_retain_only(self) -> None:
        cache = MemoryCache()
        for video_id in ("aaa", "bbb", "ccc"):
            await cache.put(_key(video_id), _result(_key(video_id)))
        await cache.retain_only("bbb")
        assert len(cache) == 1
        assert await cache.get(_key("bbb")) is not None


# ---------------------------------------------------------------------------
# SqliteCache
# ---------------------------------------------------------------------------


class TestSqliteCache:
    async def test_put_and_get(self, sqlite_cache: SqliteCache) -> None:
        key = _key()
        result = _result(key)
        await sqlite_cache.put(key, result)
        assert await sqlite_cache.get(key) == result

    async def test_miss(self, sqlite_cache: SqliteCache) -> None:
        assert await sqlite_cache.get(_key("nothing")) is None

    async def test_put_replaces(self, sqlite_cache: SqliteCache) -> None:
        key = _key()
        await sqlite_cache.put(key, _result(key))
        newer = _result(key).model_copy(update={"raw_text": "replacement"})
        await sqlite_cache.put(key, newer)
        cached = await sqlite_cache.get(key)
        assert cached is not None
        assert cached.raw_text == "replacement"

    async def test_expired_entry_is_miss(self, sqlite_cache: SqliteCache) -> None:
        key = _key()
        await sqlite_cache.put(key, _result(key, datetime.now(UTC) - timedelta(hours=25)))
        assert await sqlite_cache.get(key) is None

    async def test_clear_one_video(self, sqlite_cache: SqliteCache) -> None:
        await sqlite_cache.put(_key("aaa"), _result(_key("aaa")))
        await sqlite_cache.put(_key("bbb"), _result(_key("bbb")))
        await sqlite_cache.clear("aaa")
        assert await sqlite_cache.get(_key("aaa")) is None
        assert await sqlite_cache.get(_key("bbb")) is not None

    async def test_clear_all(self, sqlite_cache: SqliteCache) -> None:
        await sqlite_cache.put(_key("aaa"), _result(_key("aaa")))
        await sqlite_cache.put(_key("bbb"), _result(_key("bbb")))
        await sqlite_cache.clear()
        assert await sqlite_cache.get(_key("aaa")) is None
        assert await sqlite_cache.get(_key("bbb")) is None

    async def test_retain_only(self, sqlite_cache: SqliteCache) -> None:
        await sqlite_cache.put(_key("aaa"), _result(_key("aaa")))
        await sqlite_cache.put(_key("bbb"), _result(_key("bbb")))
        await sqlite_cache.retain_only("bbb")
        assert await sqlite_cache.get(_key("aaa")) is None
        assert await sqlite_cache.get(_key("bbb")) is not None

    async def test_cleanup_deletes_old_entries(self, sqlite_cache: SqliteCache) -> None:
        old, fresh = _key("old"), _key("fresh")
        await sqlite_cache.put(old, _result(old, datetime.now(UTC) - timedelta(hours=48)))
        await sqlite_cache.put(fresh, _result(fresh))
        await sqlite_cache.cleanup_expired()

        cursor = await sqlite_cache._db.execute("SELECT video_id FROM summary_cache")
        rows = await cursor.fetchall()
        assert [row[0] for row in rows] == ["fresh"]

    async def test_corrupt_payload_is_miss(self, sqlite_cache: SqliteCache) -> None:
        key = _key()
        await sqlite_cache._db.execute(
            "INSERT INTO summary_cache VALUES (?, ?, ?, ?)",
            (str(key), key.video_id, "{not json", datetime.now(UTC).isoformat()),
        )
        await sqlite_cache._db.commit()
        assert await sqlite_cache.get(key) is None

    async def test_read_failure_returns_none(self, sqlite_cache: SqliteCache) -> None:
        """Simulate a database read error: should return None, not raise."""
        sqlite_cache._db.execute = _failing_execute  # type: ignore[assignment]
        assert await sqlite_cache.get(_key()) is None

    async def test_write_failure_does_not_raise(self, sqlite_cache: SqliteCache) -> None:
        original_execute = sqlite_cache._db.execute
        sqlite_cache._db.execute = _failing_execute  # type: ignore[assignment]
        await sqlite_cache.put(_key(), _result(_key()))
        await sqlite_cache.clear()
        await sqlite_cache.retain_only("abc123")
        await sqlite_cache.cleanup_expired()
        sqlite_cache._db.execute = original_execute  # type: ignore[assignment]
        assert await sqlite_cache.get(_key()) is None
