"""Utility functions for Postpress.

Key functions:
    slugify: Convert a post title to a URL slug.
    ensure_clean_dir: Ensure a directory exists and is empty.
    write_text: Write a text file, creating parent directories.
    write_bytes: Write a binary file, creating parent directories.
    xml_escape: Escape the five XML reserved characters.
    is_markdown: Check if a path is a Markdown file.
"""

from __future__ import annotations

import re
import shutil
from pathlib import Path
from xml.sax.saxutils import escape

from .errors import WriteError

_SLUG_STRIP_RE = re.compile(r"[^a-z0-9]+")

_XML_ENTITIES = {'"': "&quot;", "'": "&apos;"}


def slugify(title: str) -> str:
    """Convert a title to a URL slug.

    Lower-cases the text, collapses every run of non-alphanumeric
    characters into a single hyphen and trims hyphens from both ends.

    Args:
        title: Human-readable title.

    Returns:
        URL-friendly slug.

    Examples:
        >>> slugify("My  Great   Post!")
        'my-great-post'
    """
    return _SLUG_STRIP_RE.sub("-", title.lower()).strip("-")


def xml_escape(text: str) -> str:
    """Escape ``< > & " '`` for inclusion in XML text or attributes."""
    return escape(text, _XML_ENTITIES)


def ensure_clean_dir(path: Path) -> None:
    """Ensure a directory exists and is empty.

    Args:
        path: Directory path to clean or create.

    Raises:
        WriteError: If the directory cannot be removed or created.
    """
    try:
        if path.exists():
            shutil.rmtree(path)
        path.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise WriteError(f"cannot reset output directory: {exc}", path) from exc


def write_text(path: Path, content: str) -> None:
    """Write UTF-8 text to path, creating parent directories."""
    write_bytes(path, content.encode("utf-8"))


def write_bytes(path: Path, data: bytes) -> None:
    """Write bytes to path, creating parent directories.

    Raises:
        WriteError: If the file or its parent directory cannot be created.
    """
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
    except OSError as exc:
        raise WriteError(f"cannot write file: {exc}", path) from exc


def is_markdown(path: Path) -> bool:
    """Check if a path is a Markdown file.

    Args:
        path: Path to check.

    Returns:
        True if the file has .md extension (case-insensitive).
    """
    return path.suffix.lower() == ".md"
