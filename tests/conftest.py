"""Shared fixtures for tagscope tests."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from tagscope import TagScopeAsync
from tagscope.models import FileRecord, FileTagLink, Scope, Tag, UserSettings
from tagscope.store.database import open_store
from tagscope.store.files import FileStore
from tagscope.store.scopes import ScopeRegistry
from tagscope.store.search import ContentIndexer, SearchEngine
from tagscope.store.settings import SettingsService
from tagscope.store.tags import TagGraph

if TYPE_CHECKING:
    from collections.abc import AsyncIterator
    from pathlib import Path

    from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker


@pytest.fixture
def database_url(tmp_path: Path) -> str:
    """File-backed SQLite URL; each test gets its own database."""
    return f"sqlite+aiosqlite:///{tmp_path / 'index.db'}"


@pytest.fixture
async def store(
    database_url: str,
) -> AsyncIterator[tuple[AsyncEngine, async_sessionmaker[AsyncSession]]]:
    """Engine and session factory with the full schema installed."""
    engine, factory = await open_store(database_url)
    yield engine, factory
    await engine.dispose()


@pytest.fixture
def session_factory(store) -> async_sessionmaker[AsyncSession]:
    return store[1]


@pytest.fixture
async def async_session(session_factory) -> AsyncIterator[AsyncSession]:
    """Async session, rolled back after each test."""
    async with session_factory() as session:
        yield session
        await session.rollback()


class Services:
    """The stateless services wired the same way ``TagScopeAsync`` wires them."""

    def __init__(self) -> None:
        self.scopes = ScopeRegistry(Scope, FileRecord)
        self.files = FileStore(FileRecord, Scope, Tag, FileTagLink)
        self.tags = TagGraph(Tag, FileTagLink, self.files)
        self.indexer = ContentIndexer()
        self.search = SearchEngine(self.files)
        self.settings = SettingsService(UserSettings)


@pytest.fixture
def services() -> Services:
    return Services()


@pytest.fixture
async def tagscope(tmp_path: Path) -> AsyncIterator[TagScopeAsync]:
    """Opened async facade on a throwaway database."""
    ts = TagScopeAsync(data_dir=tmp_path / "data")
    await ts.open()
    yield ts
    await ts.close()
