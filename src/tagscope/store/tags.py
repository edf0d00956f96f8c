"""TagGraph: tag CRUD and path-propagated tag assignment.

A tag mutation on one file record applies to every record of the same
user with the same path, across all of that user's scopes.  Category
tagging done by ``FileStore.upsert_file`` does not go
through here and touches only the record it upserted.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sqlalchemy import and_, delete, func, literal
from sqlalchemy.dialects import sqlite as sqlite_dialect
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import aliased
from sqlmodel import select

from tagscope.models.tags import SYSTEM_TAG_COLORS, SYSTEM_TAG_NAMES

from .classify import CATEGORY_EXTENSIONS, REST_CATEGORY
from .dialect import insert_or_ignore
from .exceptions import (
    AccessDeniedError,
    ConflictError,
    ImmutableResourceError,
    NotFoundError,
    ValidationError,
)
from .types import BulkTagResult, BulkUntagResult, TagInfo, TagSummary

if TYPE_CHECKING:
    from collections.abc import Iterable

    from sqlalchemy.ext.asyncio import AsyncSession

    from tagscope.models.tags import FileTagLink, TagBase

    from .files import FileStore
    from .types import FileInfo

logger = logging.getLogger(__name__)


def tag_to_info(tag: TagBase) -> TagInfo:
    """Convert a tag row to TagInfo."""
    return TagInfo(id=tag.id, name=tag.name, color=tag.color, is_editable=tag.is_editable)  # type: ignore[arg-type]


async def find_or_create_tag(
    session: AsyncSession,
    tag_model: type[TagBase],
    user_id: int,
    name: str,
) -> TagBase:
    """Return the ``(user_id, name)`` tag, inserting it first if missing.

    Uses ``INSERT ... ON CONFLICT DO NOTHING`` so concurrent callers
    converge on one row.  Names of system categories are created as
    non-editable with their predefined colour.
    """
    is_system = name in SYSTEM_TAG_NAMES
    await insert_or_ignore(
        session,
        tag_model,
        {
            "user_id": user_id,
            "name": name,
            "color": SYSTEM_TAG_COLORS.get(name),
            "is_editable": not is_system,
        },
        conflict_keys=["user_id", "name"],
    )
    result = await session.execute(
        select(tag_model).where(tag_model.user_id == user_id, tag_model.name == name)
    )
    return result.scalar_one()


class TagGraph:
    """Many-to-many relation between file records and user tags.

    Stateless: receives models and the ``FileStore`` at construction and
    a session per call.  Every method runs inside the caller's
    transaction.
    """

    def __init__(
        self,
        tag_model: type[TagBase],
        link_model: type[FileTagLink],
        files: FileStore,
    ) -> None:
        self._tag_model = tag_model
        self._link_model = link_model
        self._files = files

    # ------------------------------------------------------------------
    # Lookup helpers
    # ------------------------------------------------------------------

    async def _owned_path(self, session: AsyncSession, user_id: int, file_id: int) -> str:
        owner = await self._files.resolve_owner(session, file_id)
        if owner is None:
            raise NotFoundError(f"File not found: {file_id}")
        path, owner_id = owner
        if owner_id != user_id:
            raise AccessDeniedError(f"File access denied: {file_id}")
        return path

    async def _get_user_tag(self, session: AsyncSession, user_id: int, tag_id: int) -> TagBase:
        model = self._tag_model
        result = await session.execute(
            select(model).where(model.id == tag_id, model.user_id == user_id)
        )
        tag = result.scalar_one_or_none()
        if tag is None:
            raise NotFoundError(f"Tag not found: {tag_id}")
        return tag

    async def _paths_for(
        self, session: AsyncSession, user_id: int, file_ids: Iterable[int]
    ) -> list[str]:
        """Distinct paths of the owned files among *file_ids*, in input order."""
        seen: set[str] = set()
        paths: list[str] = []
        for file_id in file_ids:
            owner = await self._files.resolve_owner(session, file_id)
            if owner is None or owner[1] != user_id:
                logger.debug("Skipping file %s: not found or not owned by %s", file_id, user_id)
                continue
            if owner[0] not in seen:
                seen.add(owner[0])
                paths.append(owner[0])
        return paths

    async def _link(self, session: AsyncSession, file_ids: list[int], tag_id: int) -> None:
        await insert_or_ignore(
            session,
            self._link_model,
            [{"file_id": fid, "tag_id": tag_id} for fid in file_ids],
            conflict_keys=["file_id", "tag_id"],
        )

    async def _unlink(self, session: AsyncSession, file_ids: list[int], tag_id: int) -> list[int]:
        """Remove the links that exist; return the file ids actually unlinked."""
        if not file_ids:
            return []
        link = self._link_model
        result = await session.execute(
            select(link.file_id).where(link.tag_id == tag_id, link.file_id.in_(file_ids))  # type: ignore[attr-defined]
        )
        linked = set(result.scalars().all())
        if linked:
            await session.execute(
                delete(link).where(link.tag_id == tag_id, link.file_id.in_(list(linked)))  # type: ignore[attr-defined]
            )
        return [fid for fid in file_ids if fid in linked]

    @staticmethod
    def _require_name(name: str) -> str:
        name = (name or "").strip()
        if not name:
            raise ValidationError("Tag name is required")
        return name

    @classmethod
    def _require_user_name(cls, name: str) -> str:
        name = cls._require_name(name)
        if name in SYSTEM_TAG_NAMES:
            raise ImmutableResourceError(f"Reserved tag name: {name}")
        return name

    # ------------------------------------------------------------------
    # Propagated assignment
    # ------------------------------------------------------------------

    async def add_tag_to_file(
        self, session: AsyncSession, user_id: int, file_id: int, tag_name: str
    ) -> FileInfo:
        """Tag *file_id* and every record of the user sharing its path."""
        tag_name = self._require_name(tag_name)
        path = await self._owned_path(session, user_id, file_id)
        tag = await find_or_create_tag(session, self._tag_model, user_id, tag_name)
        instances = await self._files.instances_of(session, user_id, path)
        await self._link(session, instances, tag.id)  # type: ignore[arg-type]
        return await self._files.require_file(session, file_id)

    async def add_tag_to_files(
        self, session: AsyncSession, user_id: int, file_ids: list[int], tag_name: str
    ) -> BulkTagResult:
        """Tag many files. Unknown or foreign ids are skipped."""
        tag_name = self._require_name(tag_name)
        tag = await find_or_create_tag(session, self._tag_model, user_id, tag_name)
        updated: list[int] = []
        for path in await self._paths_for(session, user_id, file_ids):
            instances = await self._files.instances_of(session, user_id, path)
            await self._link(session, instances, tag.id)  # type: ignore[arg-type]
            updated.extend(instances)
        return BulkTagResult(tag=tag_to_info(tag), updated_file_ids=updated)

    async def remove_tag_from_file(
        self, session: AsyncSession, user_id: int, file_id: int, tag_id: int
    ) -> FileInfo:
        """Untag *file_id* and every record of the user sharing its path."""
        path = await self._owned_path(session, user_id, file_id)
        await self._get_user_tag(session, user_id, tag_id)
        instances = await self._files.instances_of(session, user_id, path)
        await self._unlink(session, instances, tag_id)
        return await self._files.require_file(session, file_id)

    async def remove_tag_from_files(
        self, session: AsyncSession, user_id: int, file_ids: list[int], tag_id: int
    ) -> BulkUntagResult:
        """Untag many files. Only records whose link existed are reported."""
        await self._get_user_tag(session, user_id, tag_id)
        updated: list[int] = []
        for path in await self._paths_for(session, user_id, file_ids):
            instances = await self._files.instances_of(session, user_id, path)
            updated.extend(await self._unlink(session, instances, tag_id))
        return BulkUntagResult(tag_id=tag_id, updated_file_ids=updated)

    # ------------------------------------------------------------------
    # Tag CRUD
    # ------------------------------------------------------------------

    async def list_tags(self, session: AsyncSession, user_id: int) -> list[TagSummary]:
        """All tags of *user_id* by name, each with its linked file count."""
        model = self._tag_model
        link = self._link_model
        result = await session.execute(
            select(model, func.count(link.file_id))
            .outerjoin(link, link.tag_id == model.id)  # type: ignore[arg-type]
            .where(model.user_id == user_id)
            .group_by(model.id)
            .order_by(model.name)
        )
        return [
            TagSummary(
                id=tag.id,  # type: ignore[arg-type]
                user_id=tag.user_id,
                name=tag.name,
                color=tag.color,
                is_editable=tag.is_editable,
                file_count=count,
            )
            for tag, count in result.all()
        ]

    async def create_tag(
        self, session: AsyncSession, user_id: int, name: str, color: str | None = None
    ) -> TagInfo:
        """Create an editable tag. Raises ``ConflictError`` if the name is taken.

        System category names raise ``ImmutableResourceError``.
        """
        name = self._require_user_name(name)
        model = self._tag_model
        existing = await session.execute(
            select(model.id).where(model.user_id == user_id, model.name == name)
        )
        if existing.first() is not None:
            raise ConflictError(f"Tag already exists: {name}")
        tag = model(user_id=user_id, name=name, color=color, is_editable=True)
        session.add(tag)
        try:
            await session.flush()
        except IntegrityError as e:
            raise ConflictError(f"Tag already exists: {name}") from e
        return tag_to_info(tag)

    async def update_tag(
        self,
        session: AsyncSession,
        user_id: int,
        tag_id: int,
        *,
        name: str | None = None,
        color: str | None = None,
    ) -> TagInfo:
        """Rename and/or recolour a tag. System tags raise ``ImmutableResourceError``."""
        tag = await self._get_user_tag(session, user_id, tag_id)
        if not tag.is_editable:
            raise ImmutableResourceError(f"Cannot edit a predefined tag: {tag.name}")
        if name is None and color is None:
            raise ValidationError("Nothing to update")

        if name is not None:
            name = self._require_user_name(name)
            if name != tag.name:
                model = self._tag_model
                clash = await session.execute(
                    select(model.id).where(model.user_id == user_id, model.name == name)
                )
                if clash.first() is not None:
                    raise ConflictError(f"Tag already exists: {name}")
            tag.name = name
        if color is not None:
            tag.color = color
        try:
            await session.flush()
        except IntegrityError as e:
            raise ConflictError(f"Tag already exists: {name}") from e
        return tag_to_info(tag)

    async def delete_tag(self, session: AsyncSession, user_id: int, tag_id: int) -> None:
        """Delete a tag and its links. System tags raise ``ImmutableResourceError``."""
        tag = await self._get_user_tag(session, user_id, tag_id)
        if not tag.is_editable:
            raise ImmutableResourceError(f"Cannot delete a predefined tag: {tag.name}")
        link = self._link_model
        model = self._tag_model
        await session.execute(delete(link).where(link.tag_id == tag_id))  # type: ignore[arg-type]
        await session.execute(
            delete(model).where(model.id == tag_id, model.user_id == user_id)  # type: ignore[arg-type]
        )

    # ------------------------------------------------------------------
    # System tags
    # ------------------------------------------------------------------

    async def ensure_system_tags(self, session: AsyncSession, user_id: int) -> int:
        """Seed the predefined category tags for *user_id*. Returns rows inserted."""
        inserted = await insert_or_ignore(
            session,
            self._tag_model,
            [
                {"user_id": user_id, "name": name, "color": color, "is_editable": False}
                for name, color in SYSTEM_TAG_COLORS.items()
            ],
            conflict_keys=["user_id", "name"],
        )
        if inserted:
            logger.info("Seeded %d system tags for user %s", inserted, user_id)
        return inserted

    async def reconcile_system_tags(self, session: AsyncSession) -> int:
        """Apply extension categories to every stored file; ``Rest`` to the leftovers.

        Only inserts missing links, so re-running is harmless.  Returns the
        number of links created.
        """
        for user_id in await self._files.owner_ids(session):
            await self.ensure_system_tags(session, user_id)

        link = self._link_model
        tag = self._tag_model
        fm, sm = self._files.file_model, self._files.scope_model
        total = 0

        for tag_name, extensions in CATEGORY_EXTENSIONS.items():
            source = (
                select(fm.id, tag.id)
                .join(sm, fm.scope_id == sm.id)  # type: ignore[arg-type]
                .join(tag, and_(tag.user_id == sm.user_id, tag.name == tag_name))  # type: ignore[arg-type]
                .where(fm.extension.in_(sorted(extensions)))  # type: ignore[attr-defined]
            )
            total += await self._insert_links_from(session, source)

        category_tag = aliased(tag)
        categorized = (
            select(literal(1))
            .select_from(link)
            .join(category_tag, link.tag_id == category_tag.id)  # type: ignore[arg-type]
            .where(
                link.file_id == fm.id,
                category_tag.name.in_(sorted(CATEGORY_EXTENSIONS)),  # type: ignore[attr-defined]
            )
        )
        rest = (
            select(fm.id, tag.id)
            .join(sm, fm.scope_id == sm.id)  # type: ignore[arg-type]
            .join(tag, and_(tag.user_id == sm.user_id, tag.name == REST_CATEGORY))  # type: ignore[arg-type]
            .where(~categorized.exists())
        )
        total += await self._insert_links_from(session, rest)

        logger.info("System tags reconciled; new links created: %d", total)
        return total

    async def _insert_links_from(self, session: AsyncSession, source: object) -> int:
        stmt = (
            sqlite_dialect.insert(self._link_model)
            .from_select(["file_id", "tag_id"], source)  # type: ignore[arg-type]
            .on_conflict_do_nothing()
        )
        result = await session.execute(stmt)
        return result.rowcount  # type: ignore[return-value]
