"""ContentIndexer and SearchEngine: FTS5 content index plus filename search.

Content queries go through raw SQL because ``snippet()`` and ``rank``
are FTS5 auxiliary functions with no expression-language equivalent.
"""

from __future__ import annotations

import logging
import os
from typing import TYPE_CHECKING, Any, Literal

from sqlalchemy import bindparam, delete, text
from sqlalchemy.dialects import sqlite as sqlite_dialect
from sqlmodel import select

from .database import CONTENT_TABLE, content_index
from .exceptions import ValidationError
from .types import SearchHit
from .utils import LIKE_ESCAPE, escape_like, fts_prefix_query

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from sqlalchemy.ext.asyncio import AsyncSession

    from .files import FileStore

logger = logging.getLogger(__name__)

SEARCH_LIMIT = 50
FIELD_SEARCH_LIMIT = 500

SNIPPET_OPEN = "<b>"
SNIPPET_CLOSE = "</b>"
SNIPPET_ELLIPSIS = "..."
SNIPPET_TOKENS = 64

SearchMode = Literal["filename", "content"]
MatchMode = Literal["all", "any"]

_SNIPPET_SQL = (
    f"snippet({CONTENT_TABLE}, 0, '{SNIPPET_OPEN}', '{SNIPPET_CLOSE}', "
    f"'{SNIPPET_ELLIPSIS}', {SNIPPET_TOKENS})"
)


class ContentIndexer:
    """Maintains the one full-text entry per file record."""

    async def index_content(self, session: AsyncSession, file_id: int, content: str) -> None:
        """Create or replace the content entry for *file_id*."""
        stmt = (
            sqlite_dialect.insert(content_index)
            .prefix_with("OR REPLACE")
            .values(rowid=file_id, content=content)
        )
        await session.execute(stmt)

    async def remove_content(self, session: AsyncSession, file_id: int) -> bool:
        result = await session.execute(
            delete(content_index).where(content_index.c.rowid == file_id)
        )
        return bool(result.rowcount)

    async def has_content(self, session: AsyncSession, file_id: int) -> bool:
        result = await session.execute(
            select(content_index.c.rowid).where(content_index.c.rowid == file_id)
        )
        return result.first() is not None


class SearchEngine:
    """Filename and content search restricted to one user's scopes."""

    def __init__(self, files: FileStore) -> None:
        self._files = files

    @property
    def _tables(self) -> tuple[str, str]:
        return (
            self._files.file_model.__tablename__,  # type: ignore[attr-defined]
            self._files.scope_model.__tablename__,  # type: ignore[attr-defined]
        )

    async def search(
        self,
        session: AsyncSession,
        user_id: int,
        query: str,
        mode: SearchMode = "filename",
    ) -> list[SearchHit]:
        """Search filenames (substring) or contents (full text). Capped at 50 hits."""
        if mode == "filename":
            return await self._search_filename(session, user_id, query)
        if mode == "content":
            return await self._search_content(session, user_id, query)
        raise ValidationError(f"Unknown search mode: {mode!r}")

    async def _search_filename(self, session: AsyncSession, user_id: int, query: str) -> list[SearchHit]:
        query = (query or "").strip()
        if not query:
            return []
        fm, sm = self._files.file_model, self._files.scope_model
        result = await session.execute(
            select(fm)
            .join(sm, fm.scope_id == sm.id)  # type: ignore[arg-type]
            .where(
                sm.user_id == user_id,
                fm.name.like(f"%{escape_like(query)}%", escape=LIKE_ESCAPE),  # type: ignore[attr-defined]
            )
            .order_by(fm.updated_at.desc(), fm.id.desc())  # type: ignore[attr-defined,union-attr]
            .limit(SEARCH_LIMIT)
        )
        infos = await self._files.to_infos(session, list(result.scalars().all()))
        return [SearchHit(file=info) for info in infos]

    async def _search_content(self, session: AsyncSession, user_id: int, query: str) -> list[SearchHit]:
        fts_query = fts_prefix_query(query or "")
        if fts_query is None:
            return []
        files, scopes = self._tables
        sql = text(
            f"SELECT f.id AS file_id, {_SNIPPET_SQL} AS snippet "
            f"FROM {CONTENT_TABLE} "
            f"JOIN {files} f ON f.id = {CONTENT_TABLE}.rowid "
            f"JOIN {scopes} s ON f.scope_id = s.id "
            f"WHERE s.user_id = :user_id AND {CONTENT_TABLE} MATCH :query "
            f"ORDER BY rank LIMIT :limit"
        )
        result = await session.execute(
            sql, {"user_id": user_id, "query": fts_query, "limit": SEARCH_LIMIT}
        )
        return await self._hits(session, [(row.file_id, row.snippet) for row in result])

    async def search_fields(
        self,
        session: AsyncSession,
        user_id: int,
        *,
        filename: str | None = None,
        content: str | None = None,
        directory: str | None = None,
        match: MatchMode = "all",
        allowed_tag_ids: Iterable[int] | None = None,
    ) -> list[SearchHit]:
        """Multi-field search over filename, content and directory.

        ``match="all"`` requires every given criterion, ``match="any"``
        at least one.  Blank criteria are ignored; with none left the
        result is empty.  *allowed_tag_ids* always applies on top.
        """
        if match not in ("all", "any"):
            raise ValidationError(f"Unknown match mode: {match!r}")

        files, scopes = self._tables
        criteria: list[str] = []
        params: dict[str, Any] = {"user_id": user_id, "limit": FIELD_SEARCH_LIMIT}
        joins = ""
        snippet_col = "NULL"
        order = "f.updated_at DESC, f.id DESC"

        fts_query = fts_prefix_query(content or "")
        if fts_query is not None:
            joins = (
                f"LEFT JOIN (SELECT rowid AS file_id, {_SNIPPET_SQL} AS snippet, rank "
                f"FROM {CONTENT_TABLE} WHERE {CONTENT_TABLE} MATCH :content) c "
                f"ON c.file_id = f.id "
            )
            params["content"] = fts_query
            criteria.append("c.file_id IS NOT NULL")
            snippet_col = "c.snippet"
            order = "c.rank IS NULL, c.rank, " + order

        if filename and filename.strip():
            criteria.append(f"f.name LIKE :filename ESCAPE '{LIKE_ESCAPE}'")
            params["filename"] = f"%{escape_like(filename.strip())}%"

        if directory and directory.strip():
            criteria.append(f"f.path LIKE :directory ESCAPE '{LIKE_ESCAPE}'")
            params["directory"] = self._directory_pattern(directory)

        if not criteria:
            return []

        joiner = " AND " if match == "all" else " OR "
        where = f"s.user_id = :user_id AND ({joiner.join(criteria)})"

        allowed = list(allowed_tag_ids or [])
        if allowed:
            links = self._files.link_model.__tablename__
            where += f" AND f.id IN (SELECT file_id FROM {links} WHERE tag_id IN :tag_ids)"
            params["tag_ids"] = allowed

        sql = text(
            f"SELECT f.id AS file_id, {snippet_col} AS snippet "
            f"FROM {files} f JOIN {scopes} s ON f.scope_id = s.id "
            f"{joins}"
            f"WHERE {where} "
            f"ORDER BY {order} LIMIT :limit"
        )
        if allowed:
            sql = sql.bindparams(bindparam("tag_ids", expanding=True))
        result = await session.execute(sql, params)
        return await self._hits(session, [(row.file_id, row.snippet) for row in result])

    @staticmethod
    def _directory_pattern(directory: str) -> str:
        """LIKE pattern for a directory criterion.

        An absolute directory matches its own subtree; a relative name
        matches that segment sequence anywhere in a path.
        """
        directory = directory.strip().replace("\\", "/").rstrip("/")
        if os.path.isabs(directory) or directory.startswith("/"):
            return escape_like(directory) + "/%"
        return "%/" + escape_like(directory.lstrip("/")) + "/%"

    async def _hits(
        self, session: AsyncSession, rows: Sequence[tuple[int, str | None]]
    ) -> list[SearchHit]:
        """Load records for ``(file_id, snippet)`` rows, keeping row order."""
        if not rows:
            return []
        fm = self._files.file_model
        ids = [file_id for file_id, _ in rows]
        result = await session.execute(select(fm).where(fm.id.in_(ids)))  # type: ignore[union-attr]
        infos = {info.id: info for info in await self._files.to_infos(session, list(result.scalars().all()))}
        return [
            SearchHit(file=infos[file_id], snippet=snippet)
            for file_id, snippet in rows
            if file_id in infos
        ]
