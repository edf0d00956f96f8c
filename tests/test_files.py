"""Tests for store/files.py: record upsert, category linking, prune and listing."""

from __future__ import annotations

from datetime import UTC, datetime

import pytest
from sqlalchemy import text

from tagscope.store.exceptions import AccessDeniedError, NotFoundError
from tagscope.store.types import FileStats


def _stats(size: int = 10, day: int = 1) -> FileStats:
    return FileStats(size=size, mtime=datetime(2024, 1, day, tzinfo=UTC))


async def _scope(session, services, user_id: int = 1, path: str = "/data"):
    return await services.scopes.create(session, user_id, path)


class TestUpsertFile:
    async def test_insert_derives_metadata(self, async_session, services):
        scope = await _scope(async_session, services)
        fid = await services.files.upsert_file(async_session, scope.id, "/data/Report.PDF", _stats(42))
        info = await services.files.get_file(async_session, fid)
        assert info.name == "Report.PDF"
        assert info.extension == ".pdf"
        assert info.mime_type == "application/pdf"
        assert info.size == 42
        assert info.scope_id == scope.id

    async def test_idempotent_on_scope_and_path(self, async_session, services):
        scope = await _scope(async_session, services)
        first = await services.files.upsert_file(async_session, scope.id, "/data/a.txt", _stats(1, 1))
        second = await services.files.upsert_file(async_session, scope.id, "/data/a.txt", _stats(2, 5))
        assert first == second
        async_session.expire_all()
        info = await services.files.get_file(async_session, first)
        assert info.size == 2
        assert info.updated_at == datetime(2024, 1, 5, tzinfo=UTC)

    async def test_timestamps_read_back_as_utc(self, async_session, services):
        scope = await _scope(async_session, services)
        fid = await services.files.upsert_file(async_session, scope.id, "/data/a.txt", _stats(1, 3))
        async_session.expire_all()
        listed = await services.files.get_all(async_session, 1)
        single = await services.files.get_file(async_session, fid)
        for info in (listed[0], single):
            assert info.created_at.tzinfo is UTC
            assert info.updated_at == datetime(2024, 1, 3, tzinfo=UTC)

    async def test_links_category_tag(self, async_session, services):
        scope = await _scope(async_session, services)
        fid = await services.files.upsert_file(async_session, scope.id, "/data/photo.jpg", _stats())
        info = await services.files.get_file(async_session, fid)
        assert info.tag_names == ["Bilder"]
        assert info.tags[0].is_editable is False

    async def test_unknown_extension_goes_to_rest(self, async_session, services):
        scope = await _scope(async_session, services)
        fid = await services.files.upsert_file(async_session, scope.id, "/data/tool.exe", _stats())
        info = await services.files.get_file(async_session, fid)
        assert info.tag_names == ["Rest"]

    async def test_category_not_propagated_to_other_instances(self, async_session, services):
        a = await _scope(async_session, services, 1, "/data")
        b = await _scope(async_session, services, 1, "/data/sub")
        first = await services.files.upsert_file(async_session, a.id, "/data/sub/x.txt", _stats())
        second = await services.files.upsert_file(async_session, b.id, "/data/sub/x.txt", _stats())
        assert first != second
        await async_session.execute(
            text("DELETE FROM tagscope_file_tags WHERE file_id = :fid"), {"fid": first}
        )
        await services.files.upsert_file(async_session, b.id, "/data/sub/x.txt", _stats())
        assert (await services.files.get_file(async_session, first)).tag_names == []
        assert (await services.files.get_file(async_session, second)).tag_names == ["Text"]


class TestRemoveAndPrune:
    async def test_remove_file(self, async_session, services):
        scope = await _scope(async_session, services)
        fid = await services.files.upsert_file(async_session, scope.id, "/data/a.txt", _stats())
        assert await services.files.remove_file(async_session, scope.id, "/data/a.txt") is True
        assert await services.files.get_file(async_session, fid) is None
        assert await services.files.remove_file(async_session, scope.id, "/data/a.txt") is False

    async def test_prune_keeps_valid_ids(self, async_session, services):
        scope = await _scope(async_session, services)
        keep = await services.files.upsert_file(async_session, scope.id, "/data/keep.txt", _stats())
        gone = await services.files.upsert_file(async_session, scope.id, "/data/gone.txt", _stats())
        await services.indexer.index_content(async_session, gone, "stale text")

        assert await services.files.prune_files(async_session, scope.id, [keep]) == 1
        assert await services.files.get_file(async_session, gone) is None
        assert await services.files.get_file(async_session, keep) is not None
        assert await services.indexer.has_content(async_session, gone) is False

    async def test_prune_is_per_scope(self, async_session, services):
        a = await _scope(async_session, services, 1, "/a")
        b = await _scope(async_session, services, 1, "/b")
        in_b = await services.files.upsert_file(async_session, b.id, "/b/x.txt", _stats())
        await services.files.upsert_file(async_session, a.id, "/a/x.txt", _stats())
        assert await services.files.prune_files(async_session, a.id, []) == 1
        assert await services.files.get_file(async_session, in_b) is not None

    async def test_prune_nothing(self, async_session, services):
        scope = await _scope(async_session, services)
        fid = await services.files.upsert_file(async_session, scope.id, "/data/a.txt", _stats())
        assert await services.files.prune_files(async_session, scope.id, {fid}) == 0


class TestQueries:
    async def test_get_all_newest_first_and_isolated(self, async_session, services):
        mine = await _scope(async_session, services, 1, "/mine")
        theirs = await _scope(async_session, services, 2, "/theirs")
        await services.files.upsert_file(async_session, mine.id, "/mine/old.txt", _stats(day=1))
        await services.files.upsert_file(async_session, mine.id, "/mine/new.txt", _stats(day=9))
        await services.files.upsert_file(async_session, theirs.id, "/theirs/x.txt", _stats())

        files = await services.files.get_all(async_session, 1)
        assert [f.name for f in files] == ["new.txt", "old.txt"]
        assert await services.files.get_all(async_session, 3) == []

    async def test_get_all_filters_by_tag(self, async_session, services):
        scope = await _scope(async_session, services)
        await services.files.upsert_file(async_session, scope.id, "/data/a.txt", _stats())
        await services.files.upsert_file(async_session, scope.id, "/data/b.jpg", _stats())
        tags = {t.name: t.id for t in await services.tags.list_tags(async_session, 1)}

        images = await services.files.get_all(async_session, 1, [tags["Bilder"]])
        assert [f.name for f in images] == ["b.jpg"]
        both = await services.files.get_all(async_session, 1, [tags["Bilder"], tags["Text"]])
        assert {f.name for f in both} == {"a.txt", "b.jpg"}
        assert len(await services.files.get_all(async_session, 1, [])) == 2

    async def test_get_owned_file(self, async_session, services):
        scope = await _scope(async_session, services, 1)
        fid = await services.files.upsert_file(async_session, scope.id, "/data/a.txt", _stats())
        assert (await services.files.get_owned_file(async_session, 1, fid)).id == fid
        with pytest.raises(AccessDeniedError):
            await services.files.get_owned_file(async_session, 2, fid)
        with pytest.raises(NotFoundError):
            await services.files.get_owned_file(async_session, 1, 999)

    async def test_instances_of_spans_scopes_of_one_user(self, async_session, services):
        a = await _scope(async_session, services, 1, "/shared")
        b = await _scope(async_session, services, 1, "/")
        c = await _scope(async_session, services, 2, "/shared")
        ids = [
            await services.files.upsert_file(async_session, s.id, "/shared/report.pdf", _stats())
            for s in (a, b, c)
        ]
        assert await services.files.instances_of(async_session, 1, "/shared/report.pdf") == ids[:2]

    async def test_owner_ids(self, async_session, services):
        await _scope(async_session, services, 3, "/x")
        await _scope(async_session, services, 1, "/y")
        await _scope(async_session, services, 3, "/z")
        assert await services.files.owner_ids(async_session) == [1, 3]
