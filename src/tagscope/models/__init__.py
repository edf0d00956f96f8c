"""SQLModel database models for tagscope."""

from tagscope.models.files import FileRecord
from tagscope.models.scopes import Scope
from tagscope.models.settings import UserSettings
from tagscope.models.tags import SYSTEM_TAG_COLORS, SYSTEM_TAG_NAMES, FileTagLink, Tag

__all__ = [
    "SYSTEM_TAG_COLORS",
    "SYSTEM_TAG_NAMES",
    "FileRecord",
    "FileTagLink",
    "Scope",
    "Tag",
    "UserSettings",
]
