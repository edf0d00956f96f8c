"""SettingsService: per-user preferences, including the content-index allow-list."""

from __future__ import annotations

import copy
from typing import TYPE_CHECKING, Any

from sqlalchemy.dialects import sqlite as sqlite_dialect
from sqlmodel import select

from .classify import normalize_extension
from .exceptions import ValidationError

if TYPE_CHECKING:
    from collections.abc import Iterable

    from sqlalchemy.ext.asyncio import AsyncSession

    from tagscope.models.settings import UserSettings

DEFAULT_ALLOWED_EXTENSIONS: tuple[str, ...] = (".pdf", ".docx", ".txt", ".md", ".odt", ".rtf")
"""Extensions whose text is indexed when a user has not chosen their own."""

SEARCH_SETTINGS_KEY = "search_settings"
ALLOWED_EXTENSIONS_KEY = "allowed_extensions"


class SettingsService:
    """Reads and writes the JSON preference document of each user."""

    def __init__(self, settings_model: type[UserSettings]) -> None:
        self._settings_model = settings_model

    async def get(self, session: AsyncSession, user_id: int) -> dict[str, Any]:
        """The user's preference document (empty when never saved)."""
        model = self._settings_model
        result = await session.execute(select(model.value).where(model.user_id == user_id))
        value = result.scalar_one_or_none()
        return copy.deepcopy(value) if value else {}

    async def set(self, session: AsyncSession, user_id: int, value: dict[str, Any]) -> None:
        """Replace the user's preference document."""
        if not isinstance(value, dict):
            raise ValidationError("Preferences must be a JSON object")
        stmt = sqlite_dialect.insert(self._settings_model).values(user_id=user_id, value=value)
        stmt = stmt.on_conflict_do_update(
            index_elements=["user_id"],
            set_={"value": stmt.excluded.value},
        )
        await session.execute(stmt)

    async def get_allowed_extensions(self, session: AsyncSession, user_id: int) -> list[str]:
        """The user's allow-list, or ``DEFAULT_ALLOWED_EXTENSIONS`` when unset."""
        prefs = await self.get(session, user_id)
        allowed = (prefs.get(SEARCH_SETTINGS_KEY) or {}).get(ALLOWED_EXTENSIONS_KEY)
        if allowed is None:
            return list(DEFAULT_ALLOWED_EXTENSIONS)
        return [normalize_extension(ext) for ext in allowed if normalize_extension(ext)]

    async def set_allowed_extensions(
        self, session: AsyncSession, user_id: int, extensions: Iterable[str]
    ) -> list[str]:
        """Store a new allow-list for *user_id* and return it normalised."""
        if isinstance(extensions, str):
            raise ValidationError("allowed_extensions must be a list of strings")
        items = list(extensions)
        if not all(isinstance(e, str) for e in items):
            raise ValidationError("allowed_extensions must be a list of strings")
        normalized = sorted({normalize_extension(e) for e in items} - {""})
        prefs = await self.get(session, user_id)
        prefs[SEARCH_SETTINGS_KEY] = {ALLOWED_EXTENSIONS_KEY: normalized}
        await self.set(session, user_id, prefs)
        return normalized
