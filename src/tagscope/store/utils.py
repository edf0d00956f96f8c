"""Path, SQL LIKE and timestamp helpers shared by the store services."""

from __future__ import annotations

import os
import posixpath
from datetime import UTC, datetime

LIKE_ESCAPE = "\\"


def normalize_scope_path(path: str) -> str:
    """Normalize a host directory path for storage.

    - Strips surrounding whitespace
    - Resolves ``.`` and ``..`` segments
    - Removes a trailing separator (except for a filesystem root)

    Examples:
        normalize_scope_path("/data/docs/") -> "/data/docs"
        normalize_scope_path("/data/./docs/../music") -> "/data/music"
    """
    path = path.strip()
    if not path:
        return path
    return os.path.normpath(path)


def basename(path: str) -> str:
    """Final path segment, treating both separators alike.

    Examples:
        basename("/data/docs") -> "docs"
        basename("/data/docs/") -> "docs"
    """
    return posixpath.basename(path.replace("\\", "/").rstrip("/")) or path


def escape_like(value: str) -> str:
    """Escape LIKE wildcards in *value* so it matches literally with ``ESCAPE '\\'``."""
    return (
        value.replace(LIKE_ESCAPE, LIKE_ESCAPE * 2)
        .replace("%", LIKE_ESCAPE + "%")
        .replace("_", LIKE_ESCAPE + "_")
    )


def fts_prefix_query(text: str) -> str | None:
    """Build an FTS5 query requiring every whitespace-separated term as a prefix.

    Returns ``None`` when *text* holds no terms.

    Examples:
        fts_prefix_query("quarterly report") -> '"quarterly"* AND "report"*'
        fts_prefix_query('a"b') -> '"a""b"*'  (embedded quotes are doubled)
    """
    terms = text.split()
    if not terms:
        return None
    return " AND ".join('"' + term.replace('"', '""') + '"*' for term in terms)


def as_utc(value: datetime) -> datetime:
    """Attach UTC to a naive datetime; SQLite returns stored timestamps without tzinfo."""
    return value if value.tzinfo else value.replace(tzinfo=UTC)
