"""Extension → MIME type → system category classification.

Two consumers use these tables with different reach: ``FileStore``
links the category of a freshly upserted record to that record only,
while ``TagGraph.reconcile_system_tags`` applies ``CATEGORY_EXTENSIONS``
to every stored file in bulk.
"""

from __future__ import annotations

import posixpath

# =============================================================================
# Extension tables
# =============================================================================

TEXT_EXTENSIONS = {".txt", ".md", ".rtf", ".csv", ".json", ".xml", ".log"}
PDF_EXTENSIONS = {".pdf"}
DOCUMENT_EXTENSIONS = {".docx", ".doc", ".odt"}
ARCHIVE_EXTENSIONS = {".zip", ".7z", ".rar", ".tar", ".gz"}
IMAGE_EXTENSIONS = {".jpg", ".jpeg", ".png", ".avif", ".gif", ".webp", ".bmp", ".tiff", ".heic"}
VIDEO_EXTENSIONS = {".avi", ".mp4", ".mkv", ".mov", ".webm", ".wmv", ".flv", ".m4v", ".3gp"}
AUDIO_EXTENSIONS = {".mp3", ".wav", ".flac", ".aac", ".ogg", ".m4a", ".wma"}

_MIME_BY_EXTENSION: dict[str, str] = {
    ".txt": "text/plain",
    ".md": "text/markdown",
    ".rtf": "text/rtf",
    ".csv": "text/csv",
    ".json": "text/json",
    ".xml": "text/xml",
    ".log": "text/plain",
    ".pdf": "application/pdf",
    ".docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    ".doc": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    ".odt": "application/vnd.oasis.opendocument.text",
    ".zip": "application/zip",
    ".7z": "application/x-7z-compressed",
    ".rar": "application/vnd.rar",
    ".tar": "application/x-tar",
    ".gz": "application/gzip",
}

ARCHIVE_MIME_TYPES = frozenset(_MIME_BY_EXTENSION[ext] for ext in ARCHIVE_EXTENSIONS)

DEFAULT_MIME_TYPE = "application/octet-stream"

REST_CATEGORY = "Rest"

CATEGORY_EXTENSIONS: dict[str, frozenset[str]] = {
    "Text": frozenset(TEXT_EXTENSIONS | PDF_EXTENSIONS | DOCUMENT_EXTENSIONS),
    "Bilder": frozenset(IMAGE_EXTENSIONS),
    "Video": frozenset(VIDEO_EXTENSIONS),
    "Musik": frozenset(AUDIO_EXTENSIONS),
    "Archive": frozenset(ARCHIVE_EXTENSIONS),
}
"""Category tag name → extensions, applied by the bulk reconcile job."""


# =============================================================================
# Classification
# =============================================================================


def file_extension(path: str) -> str:
    """Lower-cased extension including the dot, or ``""``.

    Examples:
        file_extension("/a/Report.PDF") -> ".pdf"
        file_extension("/a/Makefile") -> ""
        file_extension("/a/.bashrc") -> ""
    """
    return posixpath.splitext(path.replace("\\", "/"))[1].lower()


def normalize_extension(ext: str) -> str:
    """Lower-case *ext* and ensure a leading dot (``"PDF"`` → ``".pdf"``)."""
    ext = ext.strip().lower()
    if ext and not ext.startswith("."):
        ext = "." + ext
    return ext


def guess_mime_type(extension: str) -> str:
    """MIME type for a lower-cased *extension*.

    Media types collapse to their class (``image``, ``video``, ``audio``);
    anything unknown is ``application/octet-stream``.
    """
    if extension in IMAGE_EXTENSIONS:
        return "image"
    if extension in VIDEO_EXTENSIONS:
        return "video"
    if extension in AUDIO_EXTENSIONS:
        return "audio"
    return _MIME_BY_EXTENSION.get(extension, DEFAULT_MIME_TYPE)


def category_for_mime(mime_type: str) -> str:
    """System category tag name for *mime_type*. Always returns a name."""
    if mime_type.startswith("image"):
        return "Bilder"
    if mime_type.startswith("audio"):
        return "Musik"
    if mime_type.startswith("video"):
        return "Video"
    if mime_type in ARCHIVE_MIME_TYPES:
        return "Archive"
    if mime_type.startswith("text") or mime_type == "application/pdf" or "document" in mime_type:
        return "Text"
    return REST_CATEGORY
