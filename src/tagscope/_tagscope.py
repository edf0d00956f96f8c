"""Main TagScope class: sync wrappers over :class:`TagScopeAsync`."""

from __future__ import annotations

import asyncio
import logging
import threading
from typing import TYPE_CHECKING, Any

from tagscope._tagscope_async import TagScopeAsync

if TYPE_CHECKING:
    from collections.abc import Iterable
    from pathlib import Path

    from tagscope.models.scopes import Scope
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


class TagScope:
    """Synchronous facade over scopes, tags, search and scanning.

    Runs a private event loop in a daemon thread so callers can use the
    index from plain sync code.  Background scans live on that loop and
    keep running between calls; :meth:`wait_for_scans` blocks until
    they are done.

    Usage::

        with TagScope(data_dir="/tmp/tagscope") as ts:
            scope = ts.add_scope(1, "/home/me/Documents")
            ts.wait_for_scans()
            for hit in ts.search(1, "report"):
                print(hit.file.path)
    """

    def __init__(
        self,
        *,
        database_url: str | None = None,
        data_dir: str | Path | None = None,
        echo: bool = False,
    ) -> None:
        self._closed = False

        # Private event loop in a daemon thread
        self._loop = asyncio.new_event_loop()
        self._thread = threading.Thread(target=self._loop.run_forever, daemon=True)
        self._thread.start()

        self._async = TagScopeAsync(database_url=database_url, data_dir=data_dir, echo=echo)
        try:
            self._run(self._async.open())
        except BaseException:
            self._stop_loop()
            raise

    def _run(self, coro: Any) -> Any:
        """Submit *coro* to the private loop and block for the result."""
        future = asyncio.run_coroutine_threadsafe(coro, self._loop)
        return future.result()

    def _stop_loop(self) -> None:
        self._loop.call_soon_threadsafe(self._loop.stop)
        self._thread.join(timeout=5)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def close(self) -> None:
        """Wait for scans, dispose the engine, stop the loop and join the thread."""
        if self._closed:
            return
        self._closed = True
        try:
            self._run(self._async.close())
        finally:
            self._stop_loop()

    def __enter__(self) -> TagScope:
        return self

    def __exit__(self, exc_type: object, exc_val: object, exc_tb: object) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Scopes and scanning
    # ------------------------------------------------------------------

    def create_scope(self, user_id: int, path: str, name: str | None = None) -> Scope:
        """Register *path* without scanning it."""
        return self._run(self._async.create_scope(user_id, path, name))

    def add_scope(self, user_id: int, path: str, name: str | None = None) -> Scope:
        """Register *path* for *user_id* and start scanning it in the background."""
        return self._run(self._async.add_scope(user_id, path, name))

    def list_scopes(self, user_id: int | None = None) -> list[Scope]:
        return self._run(self._async.list_scopes(user_id))

    def get_scope(self, scope_id: int) -> Scope | None:
        return self._run(self._async.get_scope(scope_id))

    def delete_scope(self, user_id: int, scope_id: int) -> bool:
        return self._run(self._async.delete_scope(user_id, scope_id))

    def scan_scope(self, scope_id: int, path: str | None = None) -> None:
        self._run(self._async.scan_scope(scope_id, path))

    def refresh_scope(self, user_id: int, scope_id: int) -> None:
        self._run(self._async.refresh_scope(user_id, scope_id))

    def wait_for_scans(self) -> None:
        self._run(self._async.wait_for_scans())

    def last_scan(self, scope_id: int) -> ScanResult | None:
        return self._async.last_scan(scope_id)

    # ------------------------------------------------------------------
    # Files and tags
    # ------------------------------------------------------------------

    def list_files(self, user_id: int, allowed_tag_ids: Iterable[int] | None = None) -> list[FileInfo]:
        return self._run(self._async.list_files(user_id, allowed_tag_ids))

    def get_file(self, user_id: int, file_id: int) -> FileInfo:
        return self._run(self._async.get_file(user_id, file_id))

    def prune_files(self, scope_id: int, valid_ids: Iterable[int]) -> int:
        return self._run(self._async.prune_files(scope_id, valid_ids))

    def index_content(self, file_id: int, content: str) -> None:
        self._run(self._async.index_content(file_id, content))

    def add_tag_to_file(self, user_id: int, file_id: int, tag_name: str) -> FileInfo:
        return self._run(self._async.add_tag_to_file(user_id, file_id, tag_name))

    def add_tag_to_files(self, user_id: int, file_ids: list[int], tag_name: str) -> BulkTagResult:
        return self._run(self._async.add_tag_to_files(user_id, file_ids, tag_name))

    def remove_tag_from_file(self, user_id: int, file_id: int, tag_id: int) -> FileInfo:
        return self._run(self._async.remove_tag_from_file(user_id, file_id, tag_id))

    def remove_tag_from_files(
        self, user_id: int, file_ids: list[int], tag_id: int
    ) -> BulkUntagResult:
        return self._run(self._async.remove_tag_from_files(user_id, file_ids, tag_id))

    def list_tags(self, user_id: int) -> list[TagSummary]:
        return self._run(self._async.list_tags(user_id))

    def create_tag(self, user_id: int, name: str, color: str | None = None) -> TagInfo:
        return self._run(self._async.create_tag(user_id, name, color))

    def update_tag(
        self,
        user_id: int,
        tag_id: int,
        *,
        name: str | None = None,
        color: str | None = None,
    ) -> TagInfo:
        return self._run(self._async.update_tag(user_id, tag_id, name=name, color=color))

    def delete_tag(self, user_id: int, tag_id: int) -> None:
        self._run(self._async.delete_tag(user_id, tag_id))

    def ensure_system_tags(self, user_id: int) -> int:
        return self._run(self._async.ensure_system_tags(user_id))

    def reconcile_system_tags(self) -> int:
        return self._run(self._async.reconcile_system_tags())

    # ------------------------------------------------------------------
    # Search and settings
    # ------------------------------------------------------------------

    def search(self, user_id: int, query: str, mode: SearchMode = "filename") -> list[SearchHit]:
        """Filename (substring) or content (full-text prefix) search."""
        return self._run(self._async.search(user_id, query, mode))

    def search_fields(
        self,
        user_id: int,
        *,
        filename: str | None = None,
        content: str | None = None,
        directory: str | None = None,
        match: MatchMode = "all",
        allowed_tag_ids: Iterable[int] | None = None,
    ) -> list[SearchHit]:
        return self._run(
            self._async.search_fields(
                user_id,
                filename=filename,
                content=content,
                directory=directory,
                match=match,
                allowed_tag_ids=allowed_tag_ids,
            )
        )

    def get_preferences(self, user_id: int) -> dict[str, Any]:
        return self._run(self._async.get_preferences(user_id))

    def set_preferences(self, user_id: int, value: dict[str, Any]) -> None:
        self._run(self._async.set_preferences(user_id, value))

    def get_allowed_extensions(self, user_id: int) -> list[str]:
        return self._run(self._async.get_allowed_extensions(user_id))

    def set_allowed_extensions(self, user_id: int, extensions: Iterable[str]) -> list[str]:
        return self._run(self._async.set_allowed_extensions(user_id, extensions))
