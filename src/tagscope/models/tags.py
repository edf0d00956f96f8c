"""Tag and FileTagLink models.

System category tags carry ``is_editable=False`` and can be neither
renamed nor deleted.
"""

from __future__ import annotations

from sqlalchemy import UniqueConstraint
from sqlmodel import Field, SQLModel

SYSTEM_TAG_COLORS: dict[str, str] = {
    "Bilder": "#4CAF50",
    "Musik": "#FFC107",
    "Text": "#2196F3",
    "Video": "#9C27B0",
    "Archive": "#795548",
    "Rest": "#607D8B",
}
"""Predefined category tags and their default colours."""

SYSTEM_TAG_NAMES: frozenset[str] = frozenset(SYSTEM_TAG_COLORS)


class TagBase(SQLModel):
    """Base fields for a user tag."""

    id: int | None = Field(default=None, primary_key=True)
    user_id: int = Field(index=True)
    name: str
    color: str | None = Field(default=None)
    is_editable: bool = Field(default=True)


class Tag(TagBase, table=True):
    """Default tag table: ``tagscope_tags``. Unique per ``(user_id, name)``."""

    __tablename__ = "tagscope_tags"
    __table_args__ = (UniqueConstraint("user_id", "name", name="uq_tag_user_name"),)


class FileTagLink(SQLModel, table=True):
    """Many-to-many link between a file record and a tag."""

    __tablename__ = "tagscope_file_tags"

    file_id: int = Field(
        foreign_key="tagscope_files.id", ondelete="CASCADE", primary_key=True
    )
    tag_id: int = Field(
        foreign_key="tagscope_tags.id", ondelete="CASCADE", primary_key=True, index=True
    )
