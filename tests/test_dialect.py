"""Tests for store/dialect.py and store/database.py: engine, schema and upserts."""

from __future__ import annotations

import pytest
from sqlalchemy import text
from sqlalchemy.ext.asyncio import create_async_engine
from sqlmodel import select

from tagscope.models import Tag
from tagscope.store.database import (
    DATABASE_URL_ENV,
    create_engine,
    open_store,
    resolve_database_url,
)
from tagscope.store.dialect import get_dialect, insert_or_ignore, require_sqlite, upsert_returning_id
from tagscope.store.exceptions import StorageError


class TestGetDialect:
    async def test_sqlite_async(self):
        engine = create_async_engine("sqlite+aiosqlite://", echo=False)
        assert get_dialect(engine) == "sqlite"
        await engine.dispose()

    def test_sqlite_sync(self):
        from sqlmodel import create_engine as create_sync_engine

        engine = create_sync_engine("sqlite://", echo=False)
        assert get_dialect(engine) == "sqlite"


class TestRequireSqlite:
    def test_accepts_sqlite(self):
        from sqlmodel import create_engine as create_sync_engine

        require_sqlite(create_sync_engine("sqlite://"))

    def test_rejects_other_dialects(self):
        from sqlalchemy import create_mock_engine

        engine = create_mock_engine("postgresql://", executor=lambda *a, **kw: None)
        with pytest.raises(StorageError):
            require_sqlite(engine)


class TestResolveDatabaseUrl:
    def test_explicit_wins(self, tmp_path, monkeypatch):
        monkeypatch.setenv(DATABASE_URL_ENV, "sqlite+aiosqlite:///env.db")
        assert resolve_database_url("sqlite+aiosqlite:///x.db", tmp_path) == "sqlite+aiosqlite:///x.db"

    def test_env_before_data_dir(self, tmp_path, monkeypatch):
        monkeypatch.setenv(DATABASE_URL_ENV, "sqlite+aiosqlite:///env.db")
        assert resolve_database_url(None, tmp_path) == "sqlite+aiosqlite:///env.db"

    def test_data_dir_is_created(self, tmp_path, monkeypatch):
        monkeypatch.delenv(DATABASE_URL_ENV, raising=False)
        target = tmp_path / "nested" / "data"
        url = resolve_database_url(None, target)
        assert target.is_dir()
        assert url == f"sqlite+aiosqlite:///{target / 'tagscope.db'}"


class TestSchema:
    async def test_pragmas_applied(self, database_url):
        engine = create_engine(database_url)
        async with engine.connect() as conn:
            fk = (await conn.execute(text("PRAGMA foreign_keys"))).scalar()
            mode = (await conn.execute(text("PRAGMA journal_mode"))).scalar()
        await engine.dispose()
        assert fk == 1
        assert mode == "wal"

    async def test_open_store_is_idempotent(self, database_url):
        engine, _ = await open_store(database_url)
        await engine.dispose()
        engine, factory = await open_store(database_url)
        async with factory() as session:
            result = await session.execute(
                text("SELECT name FROM sqlite_master WHERE name = 'tagscope_file_content'")
            )
            assert result.scalar() == "tagscope_file_content"
        await engine.dispose()


class TestUpsertReturningId:
    async def test_insert_then_update_keeps_id(self, async_session):
        values = {"user_id": 1, "name": "work", "color": "#111111", "is_editable": True}
        first = await upsert_returning_id(
            async_session, Tag, values, conflict_keys=["user_id", "name"], update_keys=["color"]
        )
        second = await upsert_returning_id(
            async_session,
            Tag,
            {**values, "color": "#222222"},
            conflict_keys=["user_id", "name"],
            update_keys=["color"],
        )
        assert first == second
        result = await async_session.execute(select(Tag.color).where(Tag.id == first))
        assert result.scalar_one() == "#222222"

    async def test_distinct_keys_get_distinct_ids(self, async_session):
        ids = [
            await upsert_returning_id(
                async_session,
                Tag,
                {"user_id": user_id, "name": "work", "is_editable": True},
                conflict_keys=["user_id", "name"],
                update_keys=["is_editable"],
            )
            for user_id in (1, 2)
        ]
        assert ids[0] != ids[1]


class TestInsertOrIgnore:
    async def test_duplicate_ignored(self, async_session):
        row = {"user_id": 1, "name": "work", "is_editable": True}
        assert await insert_or_ignore(async_session, Tag, row, ["user_id", "name"]) == 1
        assert await insert_or_ignore(async_session, Tag, row, ["user_id", "name"]) == 0

    async def test_many_rows(self, async_session):
        rows = [{"user_id": 1, "name": n, "is_editable": True} for n in ("a", "b", "c")]
        assert await insert_or_ignore(async_session, Tag, rows, ["user_id", "name"]) == 3

    async def test_empty_list(self, async_session):
        assert await insert_or_ignore(async_session, Tag, [], ["user_id", "name"]) == 0
