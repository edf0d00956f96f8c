"""FileRecord model: one row per file discovered under a scope.

Storage identity is ``(scope_id, path)``.  The same physical file seen
through two overlapping scopes of one user yields two records; tagging
treats them as one logical file (see ``TagGraph``).

The full-text body of a record lives outside the ORM, in the FTS5 table
created by :func:`tagscope.store.database.install_schema`, keyed by the
record's integer id.
"""

from __future__ import annotations

from datetime import UTC, datetime

from sqlalchemy import DateTime, UniqueConstraint
from sqlmodel import Field, SQLModel


class FileRecordBase(SQLModel):
    """Base fields for an indexed file."""

    id: int | None = Field(default=None, primary_key=True)
    scope_id: int = Field(foreign_key="tagscope_scopes.id", ondelete="CASCADE", index=True)
    path: str = Field(index=True)
    name: str = Field(default="", index=True)
    extension: str = Field(default="")
    size: int = Field(default=0)
    mime_type: str = Field(default="application/octet-stream")
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_type=DateTime(timezone=True),  # type: ignore[invalid-argument-type]
    )
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_type=DateTime(timezone=True),  # type: ignore[invalid-argument-type]
    )


class FileRecord(FileRecordBase, table=True):
    """Default file table: ``tagscope_files``. Unique per ``(scope_id, path)``."""

    __tablename__ = "tagscope_files"
    __table_args__ = (UniqueConstraint("scope_id", "path", name="uq_file_scope_path"),)
