"""UserSettings model: per-user preference document."""

from __future__ import annotations

from typing import Any

from sqlalchemy import JSON, Column
from sqlmodel import Field, SQLModel


class UserSettings(SQLModel, table=True):
    """One JSON preference document per user: ``tagscope_user_settings``."""

    __tablename__ = "tagscope_user_settings"

    id: int | None = Field(default=None, primary_key=True)
    user_id: int = Field(unique=True, index=True)
    value: dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON, nullable=False))
