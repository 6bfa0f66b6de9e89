"""SEO document generation for Postpress.

Produces sitemap.xml, robots.txt and an RSS 2.0 feed.xml from the published
posts and the site configuration. Drafts never appear in these documents,
even in builds that include drafts.

Classes:
    FeedGenerator: Base class for generated documents.
    SitemapGenerator: Generates sitemap.xml.
    RobotsGenerator: Generates robots.txt.
    RSSGenerator: Generates feed.xml.
    FeedRegistry: Registry for managing generators.

Functions:
    create_default_feed_registry: Create a registry with default generators.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable, Sequence
from datetime import datetime, time, timezone
from email.utils import format_datetime
from pathlib import Path

from .config import SiteConfig
from .content import DATE_FORMAT, Post
from .utils import write_text, xml_escape


def published(posts: Iterable[Post]) -> list[Post]:
    """Return only non-draft posts, preserving order."""
    return [post for post in posts if not post.draft]


def rfc822_date(post: Post) -> str:
    """Format a post date as an RFC 822 timestamp at midnight UTC."""
    moment = datetime.combine(post.date, time.min, tzinfo=timezone.utc)
    return format_datetime(moment)


class FeedGenerator(ABC):
    """Abstract base class for generated SEO documents."""

    @property
    @abstractmethod
    def filename(self) -> str:
        """Return the output filename, such as 'sitemap.xml'."""
        ...

    @abstractmethod
    def generate(self, posts: Sequence[Post], site: SiteConfig) -> str:
        """Generate the document from published posts.

        Args:
            posts: Published posts, newest first.
            site: Site configuration with the base URL.

        Returns:
            Document content.
        """
        ...

    def write(self, output_dir: Path, posts: Sequence[Post], site: SiteConfig) -> Path:
        """Generate and write the document to the output directory.

        Returns:
            Path of the written file.
        """
        output_path = output_dir / self.filename
        write_text(output_path, self.generate(posts, site))
        return output_path


class SitemapGenerator(FeedGenerator):
    """Generates sitemap.xml following the sitemaps.org protocol."""

    @property
    def filename(self) -> str:
        return "sitemap.xml"

    def generate(self, posts: Sequence[Post], site: SiteConfig) -> str:
        base_url = xml_escape(site.base_url)
        lines = [
            '<?xml version="1.0" encoding="UTF-8"?>',
            '<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">',
            f"  <url><loc>{base_url}/</loc></url>",
        ]
        for post in published(posts):
            loc = xml_escape(f"{site.base_url}{post.url}")
            lastmod = post.date.strftime(DATE_FORMAT)
            lines.append(f"  <url><loc>{loc}</loc><lastmod>{lastmod}</lastmod></url>")
        lines.append("</urlset>")
        return "\n".join(lines) + "\n"


class RobotsGenerator(FeedGenerator):
    """Generates an allow-all robots.txt pointing at the sitemap."""

    @property
    def filename(self) -> str:
        return "robots.txt"

    def generate(self, posts: Sequence[Post], site: SiteConfig) -> str:
        return f"User-agent: *\nAllow: /\nSitemap: {site.base_url}/sitemap.xml\n"


class RSSGenerator(FeedGenerator):
    """Generates an RSS 2.0 feed with one item per published post."""

    @property
    def filename(self) -> str:
        return "feed.xml"

    def generate(self, posts: Sequence[Post], site: SiteConfig) -> str:
        base_url = xml_escape(site.base_url)
        title = xml_escape(site.title)
        rss = [
            '<?xml version="1.0" encoding="UTF-8"?>',
            '<rss version="2.0" xmlns:atom="http://www.w3.org/2005/Atom">',
            "<channel>",
            f"  <title>{title}</title>",
            f"  <link>{base_url}</link>",
            f"  <description>{title}</description>",
            f'  <atom:link href="{base_url}/feed.xml" rel="self" type="application/rss+xml"/>',
        ]
        for post in published(posts):
            link = xml_escape(f"{site.base_url}{post.url}")
            rss.append("  <item>")
            rss.append(f"    <title>{xml_escape(post.title)}</title>")
            rss.append(f"    <link>{link}</link>")
            rss.append(f"    <guid>{link}</guid>")
            rss.append(f"    <pubDate>{rfc822_date(post)}</pubDate>")
            if post.summary:
                rss.append(f"    <description>{xml_escape(post.summary)}</description>")
            rss.append("  </item>")
        rss.append("</channel>")
        rss.append("</rss>")
        return "\n".join(rss) + "\n"


class FeedRegistry:
    """Registry for managing SEO document generators."""

    def __init__(self) -> None:
        self._generators: list[FeedGenerator] = []

    def register(self, generator: FeedGenerator) -> None:
        self._generators.append(generator)

    def generate_all(
        self, output_dir: Path, posts: Iterable[Post], site: SiteConfig
    ) -> list[Path]:
        """Write every registered document.

        Args:
            output_dir: Directory to write files to.
            posts: Posts for this build; drafts are dropped.
            site: Site configuration.

        Returns:
            Paths of the written files.
        """
        posts_list = published(posts)
        return [g.write(output_dir, posts_list, site) for g in self._generators]


def create_default_feed_registry() -> FeedRegistry:
    """Create a registry with sitemap, robots and RSS generators."""
    registry = FeedRegistry()
    registry.register(SitemapGenerator())
    registry.register(RobotsGenerator())
    registry.register(RSSGenerator())
    return registry
