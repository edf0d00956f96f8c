"""ScopeRegistry: CRUD over registered directory roots.

Stateless service that receives the scope model at construction and a
session at call time.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING

from sqlalchemy import delete
from sqlalchemy.exc import IntegrityError
from sqlmodel import select

from .database import content_index
from .exceptions import ConflictError, ValidationError
from .utils import basename, normalize_scope_path

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from tagscope.models.files import FileRecordBase
    from tagscope.models.scopes import ScopeBase


class ScopeRegistry:
    """Owns the set of directory roots each user has registered."""

    def __init__(self, scope_model: type[ScopeBase], file_model: type[FileRecordBase]) -> None:
        self._scope_model = scope_model
        self._file_model = file_model

    async def create(
        self,
        session: AsyncSession,
        user_id: int,
        path: str,
        name: str | None = None,
    ) -> ScopeBase:
        """Register *path* for *user_id*. Flushes but does not commit.

        *name* defaults to the final segment of *path*.
        """
        path = normalize_scope_path(path)
        if not path:
            raise ValidationError("Path is required")

        model = self._scope_model
        existing = await session.execute(
            select(model.id).where(model.user_id == user_id, model.path == path)
        )
        if existing.first() is not None:
            raise ConflictError(f"Scope already registered: {path}")

        scope = model(user_id=user_id, path=path, name=name or basename(path))
        session.add(scope)
        try:
            await session.flush()
        except IntegrityError as e:
            raise ConflictError(f"Scope already registered: {path}") from e
        return scope

    async def get_all(self, session: AsyncSession, user_id: int | None = None) -> list[ScopeBase]:
        """All scopes, or only those of *user_id* when given."""
        model = self._scope_model
        query = select(model).order_by(model.id)
        if user_id is not None:
            query = query.where(model.user_id == user_id)
        result = await session.execute(query)
        return list(result.scalars().all())

    async def get_by_id(self, session: AsyncSession, scope_id: int) -> ScopeBase | None:
        model = self._scope_model
        result = await session.execute(select(model).where(model.id == scope_id))
        return result.scalar_one_or_none()

    async def touch(self, session: AsyncSession, scope_id: int) -> None:
        """Bump ``updated_at`` after a completed scan."""
        scope = await self.get_by_id(session, scope_id)
        if scope is not None:
            scope.updated_at = datetime.now(UTC)
            await session.flush()

    async def delete(self, session: AsyncSession, user_id: int, scope_id: int) -> bool:
        """Delete a scope owned by *user_id*. Returns False if nothing matched.

        Ownership is part of the delete predicate.  File records, their
        tag links and content entries go with the scope.
        """
        model = self._scope_model
        fm = self._file_model
        owned_files = (
            select(fm.id)
            .join(model, fm.scope_id == model.id)  # type: ignore[arg-type]
            .where(model.id == scope_id, model.user_id == user_id)
        )
        await session.execute(
            delete(content_index).where(content_index.c.rowid.in_(owned_files))
        )
        result = await session.execute(
            delete(model).where(model.id == scope_id, model.user_id == user_id)  # type: ignore[arg-type]
        )
        return bool(result.rowcount)
