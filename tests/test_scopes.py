"""Tests for store/scopes.py: scope registration, listing and cascading delete."""

from __future__ import annotations

from datetime import UTC, datetime

import pytest
from sqlalchemy import func, text
from sqlmodel import select

from tagscope.models import FileRecord, FileTagLink
from tagscope.store.exceptions import ConflictError, ValidationError
from tagscope.store.types import FileStats

STATS = FileStats(size=10, mtime=datetime(2024, 1, 1, tzinfo=UTC))


class TestCreate:
    async def test_defaults_name_to_basename(self, async_session, services):
        scope = await services.scopes.create(async_session, 1, "/data/docs/")
        assert scope.id is not None
        assert scope.path == "/data/docs"
        assert scope.name == "docs"

    async def test_explicit_name(self, async_session, services):
        scope = await services.scopes.create(async_session, 1, "/data/docs", "Work")
        assert scope.name == "Work"

    async def test_empty_path(self, async_session, services):
        with pytest.raises(ValidationError):
            await services.scopes.create(async_session, 1, "  ")

    async def test_duplicate_for_same_user(self, async_session, services):
        await services.scopes.create(async_session, 1, "/data/docs")
        with pytest.raises(ConflictError):
            await services.scopes.create(async_session, 1, "/data/docs/")

    async def test_same_path_for_other_user(self, async_session, services):
        a = await services.scopes.create(async_session, 1, "/data/docs")
        b = await services.scopes.create(async_session, 2, "/data/docs")
        assert a.id != b.id


class TestQueries:
    async def test_get_all_filters_by_user(self, async_session, services):
        await services.scopes.create(async_session, 1, "/a")
        await services.scopes.create(async_session, 2, "/b")
        await services.scopes.create(async_session, 1, "/c")
        mine = await services.scopes.get_all(async_session, 1)
        assert [s.path for s in mine] == ["/a", "/c"]
        assert len(await services.scopes.get_all(async_session)) == 3

    async def test_get_by_id_missing(self, async_session, services):
        assert await services.scopes.get_by_id(async_session, 999) is None

    async def test_touch_bumps_updated_at(self, async_session, services):
        scope = await services.scopes.create(async_session, 1, "/a")
        before = scope.updated_at
        await services.scopes.touch(async_session, scope.id)
        assert scope.updated_at >= before


class TestDelete:
    async def test_other_user_cannot_delete(self, async_session, services):
        scope = await services.scopes.create(async_session, 1, "/a")
        assert await services.scopes.delete(async_session, 2, scope.id) is False
        assert await services.scopes.get_by_id(async_session, scope.id) is not None

    async def test_missing_scope(self, async_session, services):
        assert await services.scopes.delete(async_session, 1, 999) is False

    async def test_cascades_to_records_links_and_content(self, async_session, services):
        scope = await services.scopes.create(async_session, 1, "/data")
        other = await services.scopes.create(async_session, 1, "/other")
        ids = [
            await services.files.upsert_file(async_session, scope.id, f"/data/{n}.txt", STATS)
            for n in range(3)
        ]
        kept = await services.files.upsert_file(async_session, other.id, "/other/k.txt", STATS)
        for fid in [*ids, kept]:
            await services.indexer.index_content(async_session, fid, "hello world")
            await services.tags.add_tag_to_file(async_session, 1, fid, "Important")
        two_each = await async_session.execute(
            select(func.count()).select_from(FileTagLink).where(FileTagLink.file_id.in_(ids))
        )
        assert two_each.scalar_one() == 6

        assert await services.scopes.delete(async_session, 1, scope.id) is True

        files = await async_session.execute(select(func.count()).select_from(FileRecord))
        assert files.scalar_one() == 1
        links = await async_session.execute(
            select(func.count()).select_from(FileTagLink).where(FileTagLink.file_id.in_(ids))
        )
        assert links.scalar_one() == 0
        content = await async_session.execute(
            text("SELECT rowid FROM tagscope_file_content ORDER BY rowid")
        )
        assert [row[0] for row in content] == [kept]
