"""FileStore: one record per ``(scope, path)``, upsert, prune and listing."""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from sqlalchemy import delete
from sqlmodel import select

from .classify import category_for_mime, file_extension, guess_mime_type
from .database import content_index
from .dialect import insert_or_ignore, upsert_returning_id
from .exceptions import AccessDeniedError, NotFoundError
from .tags import find_or_create_tag, tag_to_info
from .types import FileInfo, TagInfo
from .utils import as_utc, basename

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from sqlalchemy.ext.asyncio import AsyncSession

    from tagscope.models.files import FileRecordBase
    from tagscope.models.scopes import ScopeBase
    from tagscope.models.tags import FileTagLink, TagBase

    from .types import FileStats

logger = logging.getLogger(__name__)

_CHUNK = 500
"""Max ids bound into a single ``IN (...)`` clause."""


def _chunks(ids: Sequence[int], size: int = _CHUNK) -> Iterable[Sequence[int]]:
    for start in range(0, len(ids), size):
        yield ids[start : start + size]


class FileStore:
    """Authoritative file records for every scope.

    Receives the concrete models at construction and a session per
    call; holds no other state.
    """

    def __init__(
        self,
        file_model: type[FileRecordBase],
        scope_model: type[ScopeBase],
        tag_model: type[TagBase],
        link_model: type[FileTagLink],
    ) -> None:
        self.file_model = file_model
        self.scope_model = scope_model
        self.tag_model = tag_model
        self.link_model = link_model

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def upsert_file(
        self,
        session: AsyncSession,
        scope_id: int,
        path: str,
        stats: FileStats,
    ) -> int:
        """Insert or refresh the record for ``(scope_id, path)`` and return its id.

        An existing record only gets ``size`` and ``updated_at`` rewritten.
        The record's category tag is linked in the same transaction, to
        this record alone.
        """
        extension = file_extension(path)
        mime_type = guess_mime_type(extension)
        updated_at = as_utc(stats.mtime)
        file_id = await upsert_returning_id(
            session,
            self.file_model,
            {
                "scope_id": scope_id,
                "path": path,
                "name": basename(path),
                "extension": extension,
                "size": stats.size,
                "mime_type": mime_type,
                "created_at": datetime.now(UTC),
                "updated_at": updated_at,
            },
            conflict_keys=["scope_id", "path"],
            update_keys=["size", "updated_at"],
        )

        sm = self.scope_model
        owner = await session.execute(select(sm.user_id).where(sm.id == scope_id))
        user_id = owner.scalar_one_or_none()
        if user_id is not None:
            tag = await find_or_create_tag(
                session, self.tag_model, user_id, category_for_mime(mime_type)
            )
            await insert_or_ignore(
                session,
                self.link_model,
                {"file_id": file_id, "tag_id": tag.id},
                conflict_keys=["file_id", "tag_id"],
            )
        return file_id

    async def remove_file(self, session: AsyncSession, scope_id: int, path: str) -> bool:
        """Delete the record for ``(scope_id, path)``. Returns True if one existed."""
        fm = self.file_model
        result = await session.execute(
            delete(fm).where(fm.scope_id == scope_id, fm.path == path)  # type: ignore[arg-type]
        )
        return bool(result.rowcount)

    async def prune_files(
        self, session: AsyncSession, scope_id: int, valid_ids: Iterable[int]
    ) -> int:
        """Delete every record under *scope_id* whose id is not in *valid_ids*.

        Tag links and content entries of removed records go with them.
        Returns the number of records deleted.
        """
        fm = self.file_model
        valid = set(valid_ids)
        result = await session.execute(select(fm.id).where(fm.scope_id == scope_id))
        stale = [fid for fid in result.scalars().all() if fid not in valid]
        if not stale:
            return 0

        link = self.link_model
        for chunk in _chunks(stale):
            await session.execute(delete(link).where(link.file_id.in_(chunk)))  # type: ignore[attr-defined]
            await session.execute(delete(content_index).where(content_index.c.rowid.in_(chunk)))
            await session.execute(delete(fm).where(fm.id.in_(chunk)))  # type: ignore[union-attr]
        logger.info("Pruned %d stale records from scope %s", len(stale), scope_id)
        return len(stale)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def load_tags(self, session: AsyncSession, file_ids: Sequence[int]) -> dict[int, list[TagInfo]]:
        """Tag lists for *file_ids*, grouped per file and ordered by name."""
        grouped: dict[int, list[TagInfo]] = {fid: [] for fid in file_ids}
        link, tag = self.link_model, self.tag_model
        for chunk in _chunks(list(file_ids)):
            result = await session.execute(
                select(link.file_id, tag)
                .join(tag, link.tag_id == tag.id)  # type: ignore[arg-type]
                .where(link.file_id.in_(chunk))  # type: ignore[attr-defined]
                .order_by(tag.name)
            )
            for file_id, row in result.all():
                grouped[file_id].append(tag_to_info(row))
        return grouped

    async def to_infos(self, session: AsyncSession, records: Sequence[FileRecordBase]) -> list[FileInfo]:
        """Convert records to FileInfo, attaching each record's tags."""
        tags = await self.load_tags(session, [r.id for r in records])  # type: ignore[misc]
        return [self.file_to_info(r, tags.get(r.id, [])) for r in records]  # type: ignore[arg-type]

    @staticmethod
    def file_to_info(f: FileRecordBase, tags: list[TagInfo] | None = None) -> FileInfo:
        """Convert a file record to FileInfo."""
        return FileInfo(
            id=f.id,  # type: ignore[arg-type]
            scope_id=f.scope_id,
            path=f.path,
            name=f.name,
            extension=f.extension,
            size=f.size,
            mime_type=f.mime_type,
            created_at=as_utc(f.created_at),
            updated_at=as_utc(f.updated_at),
            tags=tags or [],
        )

    async def get_all(
        self,
        session: AsyncSession,
        user_id: int,
        allowed_tag_ids: Iterable[int] | None = None,
    ) -> list[FileInfo]:
        """Every file of *user_id*, newest first.

        With a non-empty *allowed_tag_ids*, only files carrying at least
        one of those tags are returned.
        """
        fm, sm, link = self.file_model, self.scope_model, self.link_model
        query = (
            select(fm)
            .join(sm, fm.scope_id == sm.id)  # type: ignore[arg-type]
            .where(sm.user_id == user_id)
            .order_by(fm.updated_at.desc(), fm.id.desc())  # type: ignore[attr-defined,union-attr]
        )
        allowed = list(allowed_tag_ids or [])
        if allowed:
            query = query.where(
                fm.id.in_(select(link.file_id).where(link.tag_id.in_(allowed)))  # type: ignore[union-attr,attr-defined]
            )
        result = await session.execute(query)
        return await self.to_infos(session, list(result.scalars().all()))

    async def get_file(self, session: AsyncSession, file_id: int) -> FileInfo | None:
        """A single record with its tags, or None."""
        fm = self.file_model
        result = await session.execute(select(fm).where(fm.id == file_id))
        record = result.scalar_one_or_none()
        if record is None:
            return None
        return (await self.to_infos(session, [record]))[0]

    async def require_file(self, session: AsyncSession, file_id: int) -> FileInfo:
        info = await self.get_file(session, file_id)
        if info is None:
            raise NotFoundError(f"File not found: {file_id}")
        return info

    async def get_owned_file(self, session: AsyncSession, user_id: int, file_id: int) -> FileInfo:
        """A record of *user_id*; ``NotFoundError`` / ``AccessDeniedError`` otherwise."""
        owner = await self.resolve_owner(session, file_id)
        if owner is None:
            raise NotFoundError(f"File not found: {file_id}")
        if owner[1] != user_id:
            raise AccessDeniedError(f"File access denied: {file_id}")
        return await self.require_file(session, file_id)

    async def resolve_owner(self, session: AsyncSession, file_id: int) -> tuple[str, int] | None:
        """``(path, user_id)`` of a record, or None if it does not exist."""
        fm, sm = self.file_model, self.scope_model
        result = await session.execute(
            select(fm.path, sm.user_id)
            .join(sm, fm.scope_id == sm.id)  # type: ignore[arg-type]
            .where(fm.id == file_id)
        )
        row = result.first()
        return (row[0], row[1]) if row else None

    async def instances_of(self, session: AsyncSession, user_id: int, path: str) -> list[int]:
        """Ids of every record of *user_id* with exactly *path*, across scopes."""
        fm, sm = self.file_model, self.scope_model
        result = await session.execute(
            select(fm.id)
            .join(sm, fm.scope_id == sm.id)  # type: ignore[arg-type]
            .where(fm.path == path, sm.user_id == user_id)
            .order_by(fm.id)
        )
        return list(result.scalars().all())

    async def owner_ids(self, session: AsyncSession) -> list[int]:
        """Distinct user ids that own at least one scope."""
        sm = self.scope_model
        result = await session.execute(select(sm.user_id).distinct().order_by(sm.user_id))
        return list(result.scalars().all())
