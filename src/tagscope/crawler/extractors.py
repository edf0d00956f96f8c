"""Text extraction: turns a file on disk into indexable text.

PDF goes through ``pypdf``, DOCX through ``python-docx``, ODT through
its ``content.xml``; everything else is read as UTF-8.  Errors are
raised to the caller; the scanner decides what to swallow.
"""

from __future__ import annotations

import re
import zipfile
from pathlib import Path

import docx
from pypdf import PdfReader

_ODT_REPLACEMENTS: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"<text:p[^>]*>"), "\n\n"),
    (re.compile(r'<text:h[^>]*text:outline-level="1"[^>]*>'), "\n\n# "),
    (re.compile(r'<text:h[^>]*text:outline-level="2"[^>]*>'), "\n\n## "),
    (re.compile(r'<text:h[^>]*text:outline-level="3"[^>]*>'), "\n\n### "),
    (re.compile(r"<text:h[^>]*>"), "\n\n# "),
    (re.compile(r"<text:tab/>"), "    "),
    (re.compile(r"<text:line-break/>"), "\n"),
)
_XML_TAG = re.compile(r"<[^>]+>")


def extract_text(path: str | Path, extension: str) -> str:
    """Extract the text of *path* according to its lower-cased *extension*."""
    p = Path(path)
    if extension == ".pdf":
        return extract_pdf(p)
    if extension == ".docx":
        return extract_docx(p)
    if extension == ".odt":
        return extract_odt(p)
    return p.read_text(encoding="utf-8", errors="replace")


def extract_pdf(path: Path) -> str:
    reader = PdfReader(str(path))
    return "\n".join(page.extract_text() or "" for page in reader.pages).strip()


def extract_docx(path: Path) -> str:
    document = docx.Document(str(path))
    return "\n".join(p.text for p in document.paragraphs if p.text).strip()


def extract_odt(path: Path) -> str:
    """Flatten an ODT's ``content.xml`` to text, keeping heading markers."""
    with zipfile.ZipFile(path) as archive:
        xml = archive.read("content.xml").decode("utf-8", errors="replace")
    for pattern, replacement in _ODT_REPLACEMENTS:
        xml = pattern.sub(replacement, xml)
    return _XML_TAG.sub("", xml).strip()
