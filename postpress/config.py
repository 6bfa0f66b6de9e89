"""Site configuration for Postpress.

Configuration is read from ``postpress.yaml`` in the project root and merged
over DEFAULT_CONFIG. The project root is always passed in explicitly; every
directory setting is resolved against it.

Key objects:
- Social: A named social profile link.
- SiteConfig: Read-only configuration for one build.
- load_config: Build a SiteConfig from a project root.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import Any

import yaml

from .errors import ConfigError

CONFIG_FILENAME = "postpress.yaml"

DEFAULT_CONFIG: dict[str, Any] = {
    "title": "Postpress Blog",
    "base_url": "http://localhost:8080",
    "author": "",
    "year": None,
    "socials": [],
    "content_dir": "content",
    "templates_dir": "templates",
    "static_dir": "static",
    "output_dir": "dist",
    "host": "",
    "port": 8080,
}


@dataclass(frozen=True)
class Social:
    """A social profile link shown in the site header."""

    name: str
    url: str


@dataclass(frozen=True)
class SiteConfig:
    """Process-wide, read-only configuration for a build.

    Attributes:
        root: Project root directory.
        title: Site title.
        base_url: Absolute site URL without trailing slash.
        author: Author name for the footer and feed.
        year: Publication year shown in the footer.
        socials: Social profile links.
        dev_mode: Inject the live-reload client into rendered pages.
        content_dir: Directory with ``posts/`` and ``images/``.
        templates_dir: Directory with base/home/post templates.
        static_dir: Directory with static assets.
        output_dir: Build output directory.
        host: Dev server bind address.
        port: Dev server port.
    """

    root: Path
    title: str = DEFAULT_CONFIG["title"]
    base_url: str = DEFAULT_CONFIG["base_url"]
    author: str = ""
    year: int = field(default_factory=lambda: date.today().year)
    socials: tuple[Social, ...] = ()
    dev_mode: bool = False
    content_dir: Path | None = None
    templates_dir: Path | None = None
    static_dir: Path | None = None
    output_dir: Path | None = None
    host: str = ""
    port: int = 8080

    def __post_init__(self) -> None:
        root = Path(self.root)
        object.__setattr__(self, "root", root)
        object.__setattr__(self, "base_url", str(self.base_url).rstrip("/"))
        for name in ("content_dir", "templates_dir", "static_dir", "output_dir"):
            value = getattr(self, name)
            if value is None:
                value = DEFAULT_CONFIG[name]
            object.__setattr__(self, name, root / value)

    @property
    def posts_dir(self) -> Path:
        return self.content_dir / "posts"

    @property
    def images_dir(self) -> Path:
        return self.content_dir / "images"

    @property
    def watch_dirs(self) -> list[Path]:
        """Source directories the dev server watches for changes."""
        return [self.content_dir, self.templates_dir, self.static_dir]

    def with_overrides(self, **changes: Any) -> SiteConfig:
        """Return a copy with the given fields replaced."""
        return dataclasses.replace(self, **changes)


def load_config(project_root: Path) -> SiteConfig:
    """Load site configuration from postpress.yaml.

    Args:
        project_root: Root directory of the project.

    Returns:
        SiteConfig with defaults applied for missing keys.

    Raises:
        ConfigError: If the file is not valid YAML or has the wrong shape.
    """
    project_root = Path(project_root)
    config_path = project_root / CONFIG_FILENAME
    config = DEFAULT_CONFIG.copy()
    if config_path.exists():
        try:
            with open(config_path, encoding="utf-8") as f:
                loaded = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as exc:
            raise ConfigError(f"cannot load configuration: {exc}", config_path) from exc
        if not isinstance(loaded, dict):
            raise ConfigError("configuration must be a mapping", config_path)
        # An empty key (`title:` or `title: null`) keeps its default.
        config.update({key: value for key, value in loaded.items() if value is not None})

    socials = _parse_socials(config.get("socials") or [], config_path)
    year = config.get("year") or date.today().year
    try:
        return SiteConfig(
            root=project_root,
            title=str(config["title"]),
            base_url=str(config["base_url"]),
            author=str(config.get("author") or ""),
            year=int(year),
            socials=socials,
            content_dir=config["content_dir"],
            templates_dir=config["templates_dir"],
            static_dir=config["static_dir"],
            output_dir=config["output_dir"],
            host=str(config.get("host") or ""),
            port=int(config["port"]),
        )
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"invalid configuration value: {exc}", config_path) from exc


def _parse_socials(raw: Any, config_path: Path) -> tuple[Social, ...]:
    if not isinstance(raw, list):
        raise ConfigError("'socials' must be a list", config_path)
    socials = []
    for entry in raw:
        if not isinstance(entry, dict) or "name" not in entry or "url" not in entry:
            raise ConfigError(
                "each social link needs a 'name' and a 'url'", config_path
            )
        socials.append(Social(name=str(entry["name"]), url=str(entry["url"])))
    return tuple(socials)
