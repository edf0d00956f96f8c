"""Result types: FileInfo, TagInfo, SearchHit, bulk tagging results, etc."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from datetime import datetime


@dataclass(frozen=True, slots=True)
class FileStats:
    """Filesystem facts captured by the scanner for one file."""

    size: int
    mtime: datetime


@dataclass
class TagInfo:
    """Tag as attached to a file."""

    id: int
    name: str
    color: str | None = None
    is_editable: bool = True


@dataclass
class TagSummary:
    """Tag with the number of files linked to it."""

    id: int
    user_id: int
    name: str
    color: str | None
    is_editable: bool
    file_count: int = 0


@dataclass
class FileInfo:
    """File record metadata with its full tag list."""

    id: int
    scope_id: int
    path: str
    name: str
    extension: str
    size: int
    mime_type: str
    created_at: datetime | None = None
    updated_at: datetime | None = None
    tags: list[TagInfo] = field(default_factory=list)

    @property
    def tag_names(self) -> list[str]:
        return [t.name for t in self.tags]


@dataclass
class SearchHit:
    """A file matching a search, with an optional highlighted excerpt."""

    file: FileInfo
    snippet: str | None = None


@dataclass
class BulkTagResult:
    """Result of tagging many files at once."""

    tag: TagInfo
    updated_file_ids: list[int] = field(default_factory=list)


@dataclass
class BulkUntagResult:
    """Result of untagging many files at once."""

    tag_id: int
    updated_file_ids: list[int] = field(default_factory=list)


@dataclass
class ScanResult:
    """Summary of one completed scan."""

    scope_id: int
    files_processed: int = 0
    items_ignored: int = 0
    files_indexed: int = 0
    pruned: int = 0
    errors: int = 0
    completed: bool = False
