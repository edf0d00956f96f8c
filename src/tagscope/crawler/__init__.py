"""Crawler: breadth-first scope scanning and text extraction."""

from tagscope.crawler.extractors import extract_text
from tagscope.crawler.scanner import IGNORED_NAMES, MAX_DEPTH, MAX_INDEX_BYTES, Scanner, is_ignored

__all__ = [
    "IGNORED_NAMES",
    "MAX_DEPTH",
    "MAX_INDEX_BYTES",
    "Scanner",
    "extract_text",
    "is_ignored",
]
