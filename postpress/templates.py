"""Template rendering engine for Postpress.

This module uses Jinja2 to render the home page and post pages. Three
templates are expected in the templates directory:

- base.html: Shared layout.
- home.html: Home page listing, extends base.html.
- post.html: Single post page, extends base.html.

Rendering is a pure function of its inputs. Text fields are escaped by
Jinja2 autoescaping; the pre-rendered post body is passed as Markup and
inserted unescaped.

Key class:
- TemplateRenderer: Loads the templates and renders pages.
"""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path
from typing import Any

from jinja2 import (
    Environment,
    FileSystemLoader,
    StrictUndefined,
    Template,
    TemplateError,
    TemplateNotFound,
    TemplateSyntaxError,
    select_autoescape,
)
from markupsafe import Markup

from .config import SiteConfig
from .content import Post
from .errors import RenderError
from .renderers import pygments_css

BASE_TEMPLATE = "base.html"
HOME_TEMPLATE = "home.html"
POST_TEMPLATE = "post.html"

RELOAD_PATH = "/_reload"


class TemplateRenderer:
    """Template rendering engine using Jinja2.

    Attributes:
        templates_dir: Directory containing the templates.
        env: Jinja2 environment.
    """

    def __init__(self, templates_dir: Path):
        """Load and compile the base, home and post templates.

        Args:
            templates_dir: Directory with base.html, home.html and post.html.

        Raises:
            RenderError: If a template is missing or has a syntax error.
        """
        self.templates_dir = Path(templates_dir)
        self.env = Environment(
            loader=FileSystemLoader(str(self.templates_dir)),
            autoescape=select_autoescape(["html", "xml"]),
            undefined=StrictUndefined,
        )
        self.env.globals["pygments_css"] = pygments_css
        self._load(BASE_TEMPLATE)
        self._home = self._load(HOME_TEMPLATE)
        self._post = self._load(POST_TEMPLATE)

    def _load(self, name: str) -> Template:
        path = self.templates_dir / name
        try:
            return self.env.get_template(name)
        except TemplateNotFound as exc:
            raise RenderError(f"template not found: {exc.name}", path) from exc
        except TemplateSyntaxError as exc:
            raise RenderError(
                f"template syntax error on line {exc.lineno}: {exc.message}",
                Path(exc.filename) if exc.filename else path,
            ) from exc

    def render_home(self, site: SiteConfig, posts: Sequence[Post]) -> str:
        """Render the home page listing.

        Args:
            site: Site configuration.
            posts: Posts to list, already sorted.

        Returns:
            Rendered HTML.
        """
        return self._render(self._home, self._context(site, posts=list(posts)))

    def render_post(self, site: SiteConfig, post: Post) -> str:
        """Render a single post page.

        Args:
            site: Site configuration.
            post: Post to render.

        Returns:
            Rendered HTML.
        """
        if post is None:
            raise RenderError("no post given to render")
        context = self._context(site, post=post, content=Markup(post.html))
        return self._render(self._post, context, post.path)

    def _context(self, site: SiteConfig, **extra: Any) -> dict[str, Any]:
        if site is None:
            raise RenderError("no site configuration given to render")
        return {
            "site": site,
            "dev_mode": site.dev_mode,
            "reload_path": RELOAD_PATH,
            **extra,
        }

    def _render(
        self, template: Template, context: dict[str, Any], source: Path | None = None
    ) -> str:
        try:
            return template.render(**context)
        except (TemplateError, TypeError, ValueError) as exc:
            name = template.filename or template.name
            raise RenderError(
                f"{type(exc).__name__} in {Path(name).name}: {exc}", source
            ) from exc
