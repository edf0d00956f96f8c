"""TagScopeAsync: primary async class wiring store, tags, search and crawler."""

from __future__ import annotations

import asyncio
import logging
import os
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from tagscope.crawler.scanner import Scanner
from tagscope.models.files import FileRecord
from tagscope.models.scopes import Scope
from tagscope.models.settings import UserSettings
from tagscope.models.tags import FileTagLink, Tag
from tagscope.store.database import create_engine, install_schema, resolve_database_url
from tagscope.store.dialect import require_sqlite
from tagscope.store.exceptions import AccessDeniedError, NotFoundError, ValidationError
from tagscope.store.files import FileStore
from tagscope.store.scopes import ScopeRegistry
from tagscope.store.search import ContentIndexer, SearchEngine
from tagscope.store.settings import SettingsService
from tagscope.store.tags import TagGraph

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Iterable
    from pathlib import Path

    from sqlalchemy.ext.asyncio import AsyncEngine

    from tagscope.store.search import MatchMode, SearchMode
    from tagscope.store.types import (
        BulkTagResult,
        BulkUntagResult,
        FileInfo,
        ScanResult,
        SearchHit,
        TagInfo,
        TagSummary,
    )

logger = logging.getLogger(__name__)


class TagScopeAsync:
    """Async facade over scopes, file records, tags, search and scanning.

    Owns one engine and session factory; every public method runs in
    its own transaction.  Scans triggered by :meth:`add_scope`,
    :meth:`scan_scope` or :meth:`refresh_scope` run as detached tasks
    and are not awaited by the triggering call.

    Usage::

        async with TagScopeAsync(data_dir="~/.tagscope") as ts:
            scope = await ts.add_scope(user_id=1, path="/home/me/Documents")
            await ts.wait_for_scans()
            hits = await ts.search(1, "invoice", mode="content")
    """

    def __init__(
        self,
        *,
        database_url: str | None = None,
        data_dir: str | Path | None = None,
        engine: AsyncEngine | None = None,
        echo: bool = False,
    ) -> None:
        if engine is not None and database_url is not None:
            raise ValueError("Provide engine or database_url, not both")
        self._database_url = database_url
        self._data_dir = data_dir
        self._echo = echo
        self._engine = engine
        self._owns_engine = engine is None
        self._session_factory: async_sessionmaker[AsyncSession] | None = None
        self._open_lock = asyncio.Lock()
        self._closed = False

        self._scans: set[asyncio.Task[None]] = set()
        self._last_scan: dict[int, ScanResult] = {}

        # Stateless services
        self.scopes = ScopeRegistry(Scope, FileRecord)
        self.files = FileStore(FileRecord, Scope, Tag, FileTagLink)
        self.tags = TagGraph(Tag, FileTagLink, self.files)
        self.indexer = ContentIndexer()
        self.search_engine = SearchEngine(self.files)
        self.settings = SettingsService(UserSettings)
        self.scanner: Scanner | None = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def open(self) -> None:
        """Create the engine (unless injected) and install the schema. Idempotent."""
        async with self._open_lock:
            if self._session_factory is not None:
                return
            if self._closed:
                raise RuntimeError("TagScopeAsync is closed")
            if self._engine is None:
                url = resolve_database_url(self._database_url, self._data_dir)
                self._engine = create_engine(url, echo=self._echo)
            else:
                require_sqlite(self._engine)
            async with self._engine.begin() as conn:
                await install_schema(conn)
            self._session_factory = async_sessionmaker(
                self._engine, class_=AsyncSession, expire_on_commit=False
            )
            self.scanner = Scanner(
                self._session_factory,
                files=self.files,
                indexer=self.indexer,
                tags=self.tags,
                scopes=self.scopes,
            )

    async def close(self) -> None:
        """Wait for running scans, then release the engine if we created it."""
        if self._closed:
            return
        await self.wait_for_scans()
        self._closed = True
        if self._engine is not None and self._owns_engine:
            await self._engine.dispose()

    async def __aenter__(self) -> TagScopeAsync:
        await self.open()
        return self

    async def __aexit__(self, exc_type: object, exc_val: object, exc_tb: object) -> None:
        await self.close()

    @asynccontextmanager
    async def _transaction(self) -> AsyncIterator[AsyncSession]:
        """One session with one transaction; commits on success, rolls back on error."""
        if self._session_factory is None:
            await self.open()
        assert self._session_factory is not None
        async with self._session_factory() as session, session.begin():
            yield session

    # ------------------------------------------------------------------
    # Scopes
    # ------------------------------------------------------------------

    async def create_scope(self, user_id: int, path: str, name: str | None = None) -> Scope:
        """Register a scope without scanning it."""
        async with self._transaction() as session:
            return await self.scopes.create(session, user_id, path, name)  # type: ignore[return-value]

    async def list_scopes(self, user_id: int | None = None) -> list[Scope]:
        async with self._transaction() as session:
            return await self.scopes.get_all(session, user_id)  # type: ignore[return-value]

    async def get_scope(self, scope_id: int) -> Scope | None:
        async with self._transaction() as session:
            return await self.scopes.get_by_id(session, scope_id)  # type: ignore[return-value]

    async def delete_scope(self, user_id: int, scope_id: int) -> bool:
        """Delete a scope of *user_id* with all its records. False if not theirs."""
        async with self._transaction() as session:
            deleted = await self.scopes.delete(session, user_id, scope_id)
        if deleted:
            self._last_scan.pop(scope_id, None)
            logger.info("Scope %s deleted by user %s", scope_id, user_id)
        return deleted

    # ------------------------------------------------------------------
    # Crawling
    # ------------------------------------------------------------------

    async def add_scope(self, user_id: int, path: str, name: str | None = None) -> Scope:
        """Validate *path*, register it and start a background scan.

        Returns as soon as the scope row is committed.
        """
        if not path or not path.strip():
            raise ValidationError("Path is required")
        path = os.path.abspath(os.path.expanduser(path.strip()))
        if not os.path.exists(path):
            raise NotFoundError(f"Directory not found: {path}")
        if not os.path.isdir(path):
            raise ValidationError(f"Not a directory: {path}")

        async with self._transaction() as session:
            scope = await self.scopes.create(session, user_id, path, name)
            await self.tags.ensure_system_tags(session, user_id)
        logger.info("Scope %s registered for user %s: %s", scope.id, user_id, path)
        self._start_scan(scope.id, scope.path, user_id)  # type: ignore[arg-type]
        return scope  # type: ignore[return-value]

    async def scan_scope(self, scope_id: int, path: str | None = None) -> None:
        """Start a background rescan of *scope_id* (optionally at another *path*)."""
        scope = await self.get_scope(scope_id)
        if scope is None:
            raise NotFoundError(f"Scope not found: {scope_id}")
        self._start_scan(scope_id, path or scope.path, scope.user_id)

    async def refresh_scope(self, user_id: int, scope_id: int) -> None:
        """Ownership-checked :meth:`scan_scope` for request handlers."""
        async with self._transaction() as session:
            scope = await self.scopes.get_by_id(session, scope_id)
            if scope is None:
                raise NotFoundError(f"Scope not found: {scope_id}")
            if scope.user_id != user_id:
                raise AccessDeniedError(f"Scope access denied: {scope_id}")
            await self.tags.ensure_system_tags(session, user_id)
        self._start_scan(scope_id, scope.path, user_id)

    def _start_scan(self, scope_id: int, path: str, user_id: int) -> None:
        task = asyncio.create_task(self._run_scan(scope_id, path, user_id))
        self._scans.add(task)
        task.add_done_callback(self._scans.discard)

    async def _run_scan(self, scope_id: int, path: str, user_id: int) -> None:
        try:
            async with self._transaction() as session:
                allowed = await self.settings.get_allowed_extensions(session, user_id)
        except Exception:
            logger.error("Could not start scan of scope %s", scope_id, exc_info=True)
            return
        assert self.scanner is not None
        self._last_scan[scope_id] = await self.scanner.scan(scope_id, path, allowed)

    async def wait_for_scans(self) -> None:
        """Block until every running scan has finished, including ones started meanwhile."""
        while self._scans:
            await asyncio.gather(*list(self._scans), return_exceptions=True)

    @property
    def scans_running(self) -> int:
        return len(self._scans)

    def last_scan(self, scope_id: int) -> ScanResult | None:
        """Summary of the most recent finished scan of *scope_id*, if any."""
        return self._last_scan.get(scope_id)

    # ------------------------------------------------------------------
    # Files
    # ------------------------------------------------------------------

    async def list_files(
        self, user_id: int, allowed_tag_ids: Iterable[int] | None = None
    ) -> list[FileInfo]:
        async with self._transaction() as session:
            return await self.files.get_all(session, user_id, allowed_tag_ids)

    async def get_file(self, user_id: int, file_id: int) -> FileInfo:
        async with self._transaction() as session:
            return await self.files.get_owned_file(session, user_id, file_id)

    async def prune_files(self, scope_id: int, valid_ids: Iterable[int]) -> int:
        async with self._transaction() as session:
            return await self.files.prune_files(session, scope_id, valid_ids)

    # ------------------------------------------------------------------
    # Tags
    # ------------------------------------------------------------------

    async def add_tag_to_file(self, user_id: int, file_id: int, tag_name: str) -> FileInfo:
        async with self._transaction() as session:
            return await self.tags.add_tag_to_file(session, user_id, file_id, tag_name)

    async def add_tag_to_files(
        self, user_id: int, file_ids: list[int], tag_name: str
    ) -> BulkTagResult:
        async with self._transaction() as session:
            return await self.tags.add_tag_to_files(session, user_id, file_ids, tag_name)

    async def remove_tag_from_file(self, user_id: int, file_id: int, tag_id: int) -> FileInfo:
        async with self._transaction() as session:
            return await self.tags.remove_tag_from_file(session, user_id, file_id, tag_id)

    async def remove_tag_from_files(
        self, user_id: int, file_ids: list[int], tag_id: int
    ) -> BulkUntagResult:
        async with self._transaction() as session:
            return await self.tags.remove_tag_from_files(session, user_id, file_ids, tag_id)

    async def list_tags(self, user_id: int) -> list[TagSummary]:
        async with self._transaction() as session:
            return await self.tags.list_tags(session, user_id)

    async def create_tag(self, user_id: int, name: str, color: str | None = None) -> TagInfo:
        async with self._transaction() as session:
            return await self.tags.create_tag(session, user_id, name, color)

    async def update_tag(
        self,
        user_id: int,
        tag_id: int,
        *,
        name: str | None = None,
        color: str | None = None,
    ) -> TagInfo:
        async with self._transaction() as session:
            return await self.tags.update_tag(session, user_id, tag_id, name=name, color=color)

    async def delete_tag(self, user_id: int, tag_id: int) -> None:
        async with self._transaction() as session:
            await self.tags.delete_tag(session, user_id, tag_id)

    async def ensure_system_tags(self, user_id: int) -> int:
        async with self._transaction() as session:
            return await self.tags.ensure_system_tags(session, user_id)

    async def reconcile_system_tags(self) -> int:
        """Batch job: give every file its category tag, ``Rest`` for the rest."""
        async with self._transaction() as session:
            return await self.tags.reconcile_system_tags(session)

    # ------------------------------------------------------------------
    # Content index & search
    # ------------------------------------------------------------------

    async def index_content(self, file_id: int, content: str) -> None:
        async with self._transaction() as session:
            await self.indexer.index_content(session, file_id, content)

    async def search(
        self, user_id: int, query: str, mode: SearchMode = "filename"
    ) -> list[SearchHit]:
        async with self._transaction() as session:
            return await self.search_engine.search(session, user_id, query, mode)

    async def search_fields(
        self,
        user_id: int,
        *,
        filename: str | None = None,
        content: str | None = None,
        directory: str | None = None,
        match: MatchMode = "all",
        allowed_tag_ids: Iterable[int] | None = None,
    ) -> list[SearchHit]:
        async with self._transaction() as session:
            return await self.search_engine.search_fields(
                session,
                user_id,
                filename=filename,
                content=content,
                directory=directory,
                match=match,
                allowed_tag_ids=allowed_tag_ids,
            )

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------

    async def get_preferences(self, user_id: int) -> dict[str, Any]:
        async with self._transaction() as session:
            return await self.settings.get(session, user_id)

    async def set_preferences(self, user_id: int, value: dict[str, Any]) -> None:
        async with self._transaction() as session:
            await self.settings.set(session, user_id, value)

    async def get_allowed_extensions(self, user_id: int) -> list[str]:
        async with self._transaction() as session:
            return await self.settings.get_allowed_extensions(session, user_id)

    async def set_allowed_extensions(self, user_id: int, extensions: Iterable[str]) -> list[str]:
        async with self._transaction() as session:
            return await self.settings.set_allowed_extensions(session, user_id, extensions)
