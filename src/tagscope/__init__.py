"""TagScope: directory scopes, tags and full-text search over local files."""

__version__ = "0.1.0"

from tagscope._tagscope import TagScope
from tagscope._tagscope_async import TagScopeAsync
from tagscope.models import FileRecord, FileTagLink, Scope, Tag, UserSettings
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
from tagscope.store.settings import DEFAULT_ALLOWED_EXTENSIONS
from tagscope.store.types import (
    BulkTagResult,
    BulkUntagResult,
    FileInfo,
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
    "FileInfo",
    "FileRecord",
    "FileTagLink",
    "ImmutableResourceError",
    "NotFoundError",
    "ScanIOError",
    "ScanResult",
    "Scope",
    "SearchHit",
    "StorageError",
    "Tag",
    "TagInfo",
    "TagScope",
    "TagScopeAsync",
    "TagScopeError",
    "TagSummary",
    "UserSettings",
    "ValidationError",
    "__version__",
]
