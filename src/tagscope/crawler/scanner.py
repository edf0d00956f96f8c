"""Scanner: breadth-first crawl of one scope into the file store.

A scan is meant to run as a detached background task.  It never
raises: directory failures abandon that subtree, file failures skip
that file, and anything unexpected ends the scan with a logged error.
Control returns to the event loop after every directory so a long
scan does not starve other work.
"""

from __future__ import annotations

import asyncio
import logging
import os
from collections import deque
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from tagscope.store.classify import file_extension, normalize_extension
from tagscope.store.exceptions import ScanIOError
from tagscope.store.types import FileStats, ScanResult

from .extractors import extract_text

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    from sqlalchemy.ext.asyncio import AsyncSession

    from tagscope.store.files import FileStore
    from tagscope.store.scopes import ScopeRegistry
    from tagscope.store.search import ContentIndexer
    from tagscope.store.tags import TagGraph

logger = logging.getLogger(__name__)

MAX_DEPTH = 20
"""Deepest directory level traversed; the scope root is level 0."""

MAX_INDEX_BYTES = 5 * 1024 * 1024  # 5 MiB
"""Files at or above this size are recorded but their text is not indexed."""

IGNORED_NAMES = frozenset(
    {"node_modules", "dist", "build", "coverage", "target", "venv", "__pycache__"}
)
"""Entry names skipped wherever they appear. Dot-names are skipped too."""


@dataclass(frozen=True, slots=True)
class _Entry:
    name: str
    path: str
    is_dir: bool
    is_file: bool


def is_ignored(name: str) -> bool:
    """True for hidden entries and well-known build/dependency folders."""
    return name.startswith(".") or name in IGNORED_NAMES


def _list_dir(path: str) -> tuple[tuple[int, int], list[_Entry]]:
    """Identity ``(st_dev, st_ino)`` of *path* and its entries, sorted by name."""
    try:
        st = os.stat(path)
        entries: list[_Entry] = []
        with os.scandir(path) as it:
            for entry in it:
                try:
                    is_dir = entry.is_dir()
                    is_file = not is_dir and entry.is_file()
                except OSError:
                    is_dir = is_file = False
                entries.append(_Entry(entry.name, entry.path, is_dir, is_file))
    except OSError as e:
        raise ScanIOError(f"Cannot read directory {path}: {e}") from e
    entries.sort(key=lambda e: e.name)
    return (st.st_dev, st.st_ino), entries


def _stat_file(path: str) -> FileStats:
    try:
        st = os.stat(path)
    except OSError as e:
        raise ScanIOError(f"Cannot stat {path}: {e}") from e
    return FileStats(size=st.st_size, mtime=datetime.fromtimestamp(st.st_mtime, UTC))


class Scanner:
    """Walks a scope root and keeps the store in step with it.

    Each file is upserted (and its text indexed) in its own short
    transaction, so a scan shares the single writer with concurrent
    requests instead of holding it for the whole crawl.
    """

    def __init__(
        self,
        session_factory: Callable[..., AsyncSession],
        *,
        files: FileStore,
        indexer: ContentIndexer,
        tags: TagGraph,
        scopes: ScopeRegistry,
        max_depth: int = MAX_DEPTH,
        max_index_bytes: int = MAX_INDEX_BYTES,
    ) -> None:
        self._session_factory = session_factory
        self._files = files
        self._indexer = indexer
        self._tags = tags
        self._scopes = scopes
        self.max_depth = max_depth
        self.max_index_bytes = max_index_bytes

    async def scan(
        self,
        scope_id: int,
        root_path: str,
        allowed_extensions: Iterable[str],
    ) -> ScanResult:
        """Crawl *root_path* into *scope_id*. Never raises."""
        result = ScanResult(scope_id=scope_id)
        logger.info("Scan started for scope %s: %s", scope_id, root_path)
        try:
            await self._scan(scope_id, root_path, allowed_extensions, result)
        except Exception:
            logger.error("Scan of scope %s aborted", scope_id, exc_info=True)
            return result
        logger.info(
            "Scan finished for scope %s: %d files, %d ignored, %d indexed, %d pruned, %d errors",
            scope_id,
            result.files_processed,
            result.items_ignored,
            result.files_indexed,
            result.pruned,
            result.errors,
        )
        return result

    async def _scan(
        self,
        scope_id: int,
        root_path: str,
        allowed_extensions: Iterable[str],
        result: ScanResult,
    ) -> None:
        allowed = {normalize_extension(ext) for ext in allowed_extensions} - {""}
        root = os.path.abspath(root_path)
        queue: deque[tuple[str, int]] = deque([(root, 0)])
        visited: set[tuple[int, int]] = set()
        seen_ids: set[int] = set()
        dir_failures = 0

        while queue:
            current, depth = queue.popleft()
            try:
                identity, entries = await asyncio.to_thread(_list_dir, current)
            except ScanIOError as e:
                dir_failures += 1
                result.errors += 1
                logger.warning("%s; skipping subtree", e)
                continue

            if identity in visited:
                # Symlinked directory already crawled.
                result.items_ignored += 1
                continue
            visited.add(identity)

            for entry in entries:
                if is_ignored(entry.name):
                    result.items_ignored += 1
                    continue
                if entry.is_dir:
                    if depth + 1 > self.max_depth:
                        result.items_ignored += 1
                        logger.debug("Depth limit reached at %s", entry.path)
                        continue
                    queue.append((entry.path, depth + 1))
                elif entry.is_file:
                    file_id = await self._process_file(scope_id, entry.path, allowed, result)
                    if file_id is not None:
                        seen_ids.add(file_id)

            await asyncio.sleep(0)

        if dir_failures:
            logger.warning(
                "Skipping prune for scope %s: %d directories could not be read",
                scope_id,
                dir_failures,
            )
        else:
            async with self._session_factory() as session, session.begin():
                result.pruned = await self._files.prune_files(session, scope_id, seen_ids)

        async with self._session_factory() as session, session.begin():
            await self._tags.reconcile_system_tags(session)
            await self._scopes.touch(session, scope_id)
        result.completed = True

    async def _process_file(
        self,
        scope_id: int,
        path: str,
        allowed: set[str],
        result: ScanResult,
    ) -> int | None:
        """Upsert one file and index its text when eligible. Returns the record id.

        A file that is no longer eligible loses any content indexed by an
        earlier scan.
        """
        extension = file_extension(path)
        try:
            stats = await asyncio.to_thread(_stat_file, path)
            eligible = extension in allowed and stats.size < self.max_index_bytes
            async with self._session_factory() as session, session.begin():
                file_id = await self._files.upsert_file(session, scope_id, path, stats)
                if not eligible:
                    await self._indexer.remove_content(session, file_id)
        except Exception as e:
            result.errors += 1
            logger.warning("Could not record %s: %s", path, e)
            return None
        result.files_processed += 1

        if not eligible:
            return file_id

        try:
            text = await asyncio.to_thread(extract_text, path, extension)
            async with self._session_factory() as session, session.begin():
                await self._indexer.index_content(session, file_id, text)
        except Exception as e:
            result.errors += 1
            logger.debug("Could not index %s: %s", path, e)
            return file_id
        result.files_indexed += 1
        return file_id
