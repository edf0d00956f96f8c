"""Scope model: a directory root registered by a user.

Provides ``ScopeBase`` (non-table) and ``Scope`` (concrete table).
"""

from __future__ import annotations

from datetime import UTC, datetime

from sqlalchemy import DateTime, UniqueConstraint
from sqlmodel import Field, SQLModel


class ScopeBase(SQLModel):
    """Base fields for a registered directory root."""

    id: int | None = Field(default=None, primary_key=True)
    user_id: int = Field(index=True)
    path: str
    name: str = Field(default="")
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_type=DateTime(timezone=True),  # type: ignore[invalid-argument-type]
    )
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_type=DateTime(timezone=True),  # type: ignore[invalid-argument-type]
    )


class Scope(ScopeBase, table=True):
    """Default scope table: ``tagscope_scopes``. Unique per ``(user_id, path)``."""

    __tablename__ = "tagscope_scopes"
    __table_args__ = (UniqueConstraint("user_id", "path", name="uq_scope_user_path"),)
