"""Tests for store/settings.py: preference documents and the index allow-list."""

from __future__ import annotations

import pytest

from tagscope.store.exceptions import ValidationError
from tagscope.store.settings import DEFAULT_ALLOWED_EXTENSIONS


class TestPreferences:
    async def test_empty_by_default(self, async_session, services):
        assert await services.settings.get(async_session, 1) == {}

    async def test_set_replaces(self, async_session, services):
        await services.settings.set(async_session, 1, {"theme": "dark"})
        await services.settings.set(async_session, 1, {"lang": "de"})
        assert await services.settings.get(async_session, 1) == {"lang": "de"}

    async def test_returned_copy_is_detached(self, async_session, services):
        await services.settings.set(async_session, 1, {"nested": {"a": 1}})
        prefs = await services.settings.get(async_session, 1)
        prefs["nested"]["a"] = 2
        assert await services.settings.get(async_session, 1) == {"nested": {"a": 1}}

    async def test_per_user(self, async_session, services):
        await services.settings.set(async_session, 1, {"theme": "dark"})
        assert await services.settings.get(async_session, 2) == {}

    async def test_rejects_non_object(self, async_session, services):
        with pytest.raises(ValidationError):
            await services.settings.set(async_session, 1, ["not", "a", "dict"])


class TestAllowedExtensions:
    async def test_default(self, async_session, services):
        allowed = await services.settings.get_allowed_extensions(async_session, 1)
        assert allowed == list(DEFAULT_ALLOWED_EXTENSIONS)

    async def test_set_normalizes(self, async_session, services):
        stored = await services.settings.set_allowed_extensions(
            async_session, 1, ["TXT", ".md", "md", " "]
        )
        assert stored == [".md", ".txt"]
        assert await services.settings.get_allowed_extensions(async_session, 1) == [".md", ".txt"]

    async def test_empty_list_disables_indexing(self, async_session, services):
        await services.settings.set_allowed_extensions(async_session, 1, [])
        assert await services.settings.get_allowed_extensions(async_session, 1) == []

    async def test_keeps_other_preferences(self, async_session, services):
        await services.settings.set(async_session, 1, {"theme": "dark"})
        await services.settings.set_allowed_extensions(async_session, 1, [".pdf"])
        prefs = await services.settings.get(async_session, 1)
        assert prefs["theme"] == "dark"
        assert prefs["search_settings"] == {"allowed_extensions": [".pdf"]}

    async def test_rejects_non_strings(self, async_session, services):
        with pytest.raises(ValidationError):
            await services.settings.set_allowed_extensions(async_session, 1, [".pdf", 3])
        with pytest.raises(ValidationError):
            await services.settings.set_allowed_extensions(async_session, 1, ".pdf")
