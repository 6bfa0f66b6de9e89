"""Content processing for Postpress.

This module reads Markdown posts with YAML front matter, validates their
metadata and renders their bodies to HTML.

Front matter is the block between two ``---`` lines at the top of a file::

    ---
    title: "Hello World"
    date: 2026-01-15
    summary: "My first post."
    draft: false
    ---

    Body in **Markdown**.

Key objects:
- Post: Immutable dataclass for one parsed post.
- parse_post: Parse a single Markdown file into a Post.
- load_posts: Parse every post in a directory, newest first.
- format_front_matter: Serialize post metadata back to front matter.
- new_post: Scaffold a draft post file.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import date, datetime
from pathlib import Path
from typing import Any

import yaml

from .errors import ParseError, ReadError, WriteError
from .renderers import MarkdownRenderer
from .utils import is_markdown, slugify

logger = logging.getLogger(__name__)

FRONTMATTER_RE = re.compile(r"^---[ \t]*\n(.*?)\n---[ \t]*(?:\n|\Z)", re.DOTALL)
DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
DATE_FORMAT = "%Y-%m-%d"


@dataclass(frozen=True)
class Post:
    """A single published or draft article.

    Attributes:
        title: Post title.
        date: Publication date (no time of day).
        summary: Short description, may be empty.
        draft: Whether the post is excluded from production builds.
        slug: URL-safe identifier, the filename without extension.
        html: Rendered body HTML fragment.
        path: Source file path.
    """

    title: str
    date: date
    summary: str
    draft: bool
    slug: str
    html: str
    path: Path

    @property
    def url(self) -> str:
        """Site-relative URL of the post page."""
        return f"/posts/{self.slug}/"


def extract_frontmatter(text: str) -> tuple[str, str] | None:
    """Split raw file content into its front matter block and body.

    Args:
        text: Raw file content.

    Returns:
        Tuple of (front matter YAML source, body), or None when the file
        does not start with a front matter block.
    """
    text = text.lstrip("\ufeff").replace("\r\n", "\n")
    match = FRONTMATTER_RE.match(text)
    if not match:
        return None
    return match.group(1), text[match.end() :]


def parse_post(path: Path, renderer: MarkdownRenderer | None = None) -> Post:
    """Parse a Markdown file with front matter into a Post.

    Args:
        path: Path to the Markdown file.
        renderer: Optional Markdown renderer.

    Returns:
        Parsed Post.

    Raises:
        ReadError: If the file cannot be read.
        ParseError: If the front matter is absent or invalid.
    """
    path = Path(path)
    try:
        raw = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise ReadError(f"cannot read post: {exc}", path) from exc

    parts = extract_frontmatter(raw)
    if parts is None:
        raise ParseError("no front matter found", path)
    source, body = parts
    try:
        meta = yaml.safe_load(source) or {}
    # Out-of-range timestamps such as 2026-02-30 raise ValueError.
    except (yaml.YAMLError, ValueError) as exc:
        raise ParseError(f"invalid front matter: {exc}", path) from exc
    if not isinstance(meta, dict):
        raise ParseError("front matter must be a mapping", path)

    renderer = renderer or MarkdownRenderer()
    return Post(
        title=_parse_title(meta, path),
        date=_parse_date(meta.get("date"), path),
        summary=_parse_summary(meta, path),
        draft=_parse_draft(meta, path),
        slug=path.stem,
        html=renderer.render(body),
        path=path,
    )


def _parse_title(meta: dict[str, Any], path: Path) -> str:
    title = meta.get("title")
    if title is None or isinstance(title, (dict, list)) or not str(title).strip():
        raise ParseError("missing required field 'title'", path)
    return str(title)


def _parse_date(value: Any, path: Path) -> date:
    if value is None:
        raise ParseError("missing required field 'date'", path)
    # YAML turns unquoted timestamps into date/datetime objects.
    if isinstance(value, datetime):
        raise ParseError(f"date {value!s} must be YYYY-MM-DD without a time", path)
    if isinstance(value, date):
        return value
    text = str(value).strip()
    if not DATE_RE.match(text):
        raise ParseError(f"date {text!r} is not in YYYY-MM-DD form", path)
    try:
        return datetime.strptime(text, DATE_FORMAT).date()
    except ValueError as exc:
        raise ParseError(f"date {text!r} is not a valid date: {exc}", path) from exc


def _parse_summary(meta: dict[str, Any], path: Path) -> str:
    summary = meta.get("summary")
    if summary is None:
        return ""
    if isinstance(summary, (dict, list)):
        raise ParseError("'summary' must be text", path)
    return str(summary)


def _parse_draft(meta: dict[str, Any], path: Path) -> bool:
    draft = meta.get("draft", False)
    if draft is None:
        return False
    if not isinstance(draft, bool):
        raise ParseError(f"'draft' must be true or false, got {draft!r}", path)
    return draft


def load_posts(posts_dir: Path, include_drafts: bool = False) -> list[Post]:
    """Parse every Markdown post in a directory.

    Files are parsed in filename order; the first failure aborts the scan.

    Args:
        posts_dir: Directory containing ``*.md`` posts.
        include_drafts: Whether to keep posts marked as drafts.

    Returns:
        Posts sorted by date, newest first. Posts sharing a date keep
        filename order.

    Raises:
        ReadError: If the directory cannot be listed.
        ParseError: If any post fails to parse.
    """
    posts_dir = Path(posts_dir)
    try:
        entries = sorted(posts_dir.iterdir())
    except OSError as exc:
        raise ReadError(f"cannot read posts directory: {exc}", posts_dir) from exc

    renderer = MarkdownRenderer()
    posts: list[Post] = []
    for path in entries:
        if path.is_dir() or not is_markdown(path):
            continue
        post = parse_post(path, renderer)
        if post.draft and not include_drafts:
            logger.debug("Skipping draft %s", path.name)
            continue
        posts.append(post)
    return sort_posts(posts)


def sort_posts(posts: list[Post]) -> list[Post]:
    """Sort posts newest first, keeping input order for equal dates."""
    return sorted(posts, key=lambda p: p.date, reverse=True)


def format_front_matter(
    title: str, post_date: date, summary: str = "", draft: bool = False
) -> str:
    """Serialize post metadata as a front matter block.

    The output parses back to the same title, date, summary and draft flag.

    Args:
        title: Post title.
        post_date: Publication date.
        summary: Optional summary.
        draft: Draft flag.

    Returns:
        Front matter block including both ``---`` fences.
    """
    lines = [
        "---",
        f"title: {_quote(title)}",
        f"date: {post_date.strftime(DATE_FORMAT)}",
        f"summary: {_quote(summary)}",
        f"draft: {'true' if draft else 'false'}",
        "---",
    ]
    return "\n".join(lines) + "\n"


def _quote(text: str) -> str:
    # Double-quoted style escapes YAML line breaks and non-printable characters.
    dumped = yaml.safe_dump(
        text, default_style='"', allow_unicode=True, width=float("inf")
    )
    return dumped.rstrip("\n").removesuffix("\n...")


def new_post(posts_dir: Path, title: str, today: date | None = None) -> Path:
    """Create a draft post named ``<YYYY-MM-DD>-<slug>.md``.

    Args:
        posts_dir: Directory to create the post in.
        title: Post title.
        today: Date to stamp the post with; defaults to today.

    Returns:
        Path to the new file.

    Raises:
        ParseError: If the title produces an empty slug.
        WriteError: If the file already exists or cannot be written.
    """
    posts_dir = Path(posts_dir)
    today = today or date.today()
    slug = slugify(title)
    if not slug:
        raise ParseError(f"title {title!r} has no characters usable in a slug")
    path = posts_dir / f"{today.strftime(DATE_FORMAT)}-{slug}.md"
    if path.exists():
        raise WriteError("post already exists", path)

    text = format_front_matter(title, today, draft=True) + "\nWrite your post here.\n"
    try:
        posts_dir.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")
    except OSError as exc:
        raise WriteError(f"cannot create post: {exc}", path) from exc
    return path
