"""Custom exception hierarchy for the tagscope storage layer."""


class TagScopeError(Exception):
    """Base exception for all tagscope errors."""


class ValidationError(TagScopeError):
    """Raised when input is missing or malformed. No mutation is attempted."""


class AccessDeniedError(TagScopeError):
    """Raised when a resource exists but is not owned by the calling user."""


class NotFoundError(TagScopeError):
    """Raised when a scope, file or tag does not exist."""


class ConflictError(TagScopeError):
    """Raised on unique-constraint violations (duplicate tag name, scope path)."""


class ImmutableResourceError(TagScopeError):
    """Raised when a mutation targets a predefined system tag."""


class ScanIOError(TagScopeError):
    """Raised inside a scan when a directory or file cannot be read.

    Never escapes the scanner: it is logged and the scan moves on.
    """


class StorageError(TagScopeError):
    """Raised on storage backend failures (unsupported dialect, missing FTS5)."""
