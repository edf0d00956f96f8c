"""Storage layer: scopes, file records, tags, content index and settings."""

from tagscope.store.exceptions import (
    AccessDeniedError,
    ConflictError,
    ImmutableResourceError,
    NotFoundError,
    ScanIOError,
    StorageError,
    TagScopeError,
    ValidationError,
)
from tagscope.store.files import FileStore
from tagscope.store.scopes import ScopeRegistry
from tagscope.store.search import ContentIndexer, SearchEngine
from tagscope.store.settings import DEFAULT_ALLOWED_EXTENSIONS, SettingsService
from tagscope.store.tags import TagGraph
from tagscope.store.types import (
    BulkTagResult,
    BulkUntagResult,
    FileInfo,
    FileStats,
    ScanResult,
    SearchHit,
    TagInfo,
    TagSummary,
)

__all__ = [
    "DEFAULT_ALLOWED_EXTENSIONS",
    "AccessDeniedError",
    "BulkTagResult",
    "BulkUntagResult",
    "ConflictError",
    "ContentIndexer",
    "FileInfo",
    "FileStats",
    "FileStore",
    "ImmutableResourceError",
    "NotFoundError",
    "ScanIOError",
    "ScanResult",
    "ScopeRegistry",
    "SearchEngine",
    "SearchHit",
    "SettingsService",
    "StorageError",
    "TagGraph",
    "TagInfo",
    "TagScopeError",
    "TagSummary",
    "ValidationError",
]
