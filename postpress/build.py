"""Site building functionality for Postpress.

This module sequences a full site build:

    clean output -> parse posts -> load templates -> render home
    -> render posts -> static assets -> images -> SEO documents

Each step is fatal. The first failure is wrapped in a BuildError that names
the step and the offending file.

Key objects:
- build_site: Build the whole site once.
- SiteBuilder: Rebuildable build configuration, used by the CLI and the
  development server.
"""

from __future__ import annotations

import dataclasses
import logging
import os
import shutil
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path

from .assets import process_images, process_static
from .config import SiteConfig
from .content import Post, load_posts
from .errors import SiteError
from .seo import create_default_feed_registry
from .templates import TemplateRenderer
from .utils import ensure_clean_dir, write_text

logger = logging.getLogger(__name__)


class BuildError(Exception):
    """Error during site build with step and file context.

    Attributes:
        step: Build step that failed, e.g. "parse posts".
        source_path: Path to the file that caused the error, if known.
        message: Human-readable error message.
        original_error: The original exception that was caught.
    """

    def __init__(
        self,
        step: str,
        source_path: Path | None,
        message: str,
        original_error: Exception | None = None,
    ):
        self.step = step
        self.source_path = source_path
        self.message = message
        self.original_error = original_error
        location = f"{source_path}: " if source_path is not None else ""
        super().__init__(f"{step}: {location}{message}")


@dataclass
class BuildResult:
    """Result of a site build operation.

    Attributes:
        posts: Posts rendered into the site, newest first.
        output_dir: Directory where the site was built.
    """

    posts: list[Post]
    output_dir: Path


@contextmanager
def _build_step(name: str) -> Iterator[None]:
    """Wrap any failure inside the block into a BuildError for ``name``."""
    try:
        yield
    except SiteError as exc:
        raise BuildError(name, exc.path, exc.message, exc) from exc
    except OSError as exc:
        path = Path(exc.filename) if exc.filename else None
        raise BuildError(name, path, exc.strerror or str(exc), exc) from exc


def build_site(
    config: SiteConfig,
    include_drafts: bool = False,
    output_dir: Path | None = None,
) -> BuildResult:
    """Build the entire static site.

    The output directory is removed and recreated first.

    Args:
        config: Site configuration; ``config.dev_mode`` controls the
            live-reload client in rendered pages.
        include_drafts: Whether to include draft posts in pages.
        output_dir: Optional directory to write into instead of
            ``config.output_dir``.

    Returns:
        BuildResult with the rendered posts and output directory.

    Raises:
        BuildError: On the first failing step.
    """
    output_dir = Path(output_dir or config.output_dir)

    with _build_step("clean output"):
        ensure_clean_dir(output_dir)

    with _build_step("parse posts"):
        posts = load_posts(config.posts_dir, include_drafts=include_drafts)
    logger.debug("Parsed %d posts from %s", len(posts), config.posts_dir)

    with _build_step("load templates"):
        renderer = TemplateRenderer(config.templates_dir)

    with _build_step("render home"):
        write_text(output_dir / "index.html", renderer.render_home(config, posts))

    for post in posts:
        with _build_step(f"render post {post.slug}"):
            html = renderer.render_post(config, post)
            write_text(output_dir / "posts" / post.slug / "index.html", html)

    with _build_step("process static"):
        process_static(config.static_dir, output_dir)

    with _build_step("process images"):
        process_images(config.images_dir, output_dir)

    with _build_step("generate SEO"):
        create_default_feed_registry().generate_all(output_dir, posts, config)

    logger.info("Built %d posts into %s", len(posts), output_dir)
    return BuildResult(posts=posts, output_dir=output_dir)


class SiteBuilder:
    """Builds a site with fixed settings, on demand.

    With ``staged=True`` each build is written to a sibling staging
    directory and swapped into place only when it succeeds, so a failed
    rebuild leaves the previous output untouched.

    Attributes:
        config: Site configuration.
        include_drafts: Whether drafts are rendered.
        staged: Whether to build through a staging directory.
    """

    def __init__(self, config: SiteConfig, include_drafts: bool = False, staged: bool = False):
        self.config = config
        self.include_drafts = include_drafts
        self.staged = staged

    @property
    def output_dir(self) -> Path:
        return self.config.output_dir

    @property
    def staging_dir(self) -> Path:
        return self.output_dir.with_name(self.output_dir.name + ".staging")

    @property
    def backup_dir(self) -> Path:
        return self.output_dir.with_name(self.output_dir.name + ".old")

    def rebuild(self) -> BuildResult:
        """Run one full build.

        Raises:
            BuildError: If the build fails.
        """
        if not self.staged:
            return build_site(self.config, include_drafts=self.include_drafts)

        staging = self.staging_dir
        try:
            result = build_site(self.config, include_drafts=self.include_drafts, output_dir=staging)
        except BuildError:
            shutil.rmtree(staging, ignore_errors=True)
            raise
        with _build_step("activate output"):
            self._activate_staging(staging)
        return dataclasses.replace(result, output_dir=self.output_dir)

    def _activate_staging(self, staging: Path) -> None:
        target = self.output_dir
        backup = self.backup_dir
        if backup.exists():
            shutil.rmtree(backup)
        if target.exists():
            os.replace(target, backup)
        os.replace(staging, target)
        shutil.rmtree(backup, ignore_errors=True)
