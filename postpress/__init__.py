"""Postpress static site generator.

Turns a directory of Markdown posts with YAML front matter into a static
blog: a home page, one page per post, minified stylesheets, resized images,
a sitemap, robots.txt and an RSS feed. A development server rebuilds on
change and live-reloads open browser tabs.

The main entry point is the CLI module, which provides commands for
building the site, running the development server and creating posts.
"""

__all__ = ["__version__"]
__version__ = "0.1.0"
