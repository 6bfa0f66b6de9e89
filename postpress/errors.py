"""Error types for Postpress.

Every failure raised by the content, template, asset and SEO modules is a
SiteError carrying the offending path (when there is one) and a
human-readable message. The build orchestrator wraps the first of these
into a BuildError with step context.

Classes:
    SiteError: Base class for all Postpress errors.
    ParseError: Malformed front matter or body.
    ReadError: Source file or directory missing/unreadable.
    RenderError: Template missing, malformed or failing at render time.
    ProcessError: CSS minification or image codec failure.
    WriteError: Output path could not be created or written.
    ConfigError: Invalid postpress.yaml.
"""

from __future__ import annotations

from pathlib import Path


class SiteError(Exception):
    """Base error with file context.

    Attributes:
        path: Path to the file that caused the error, if any.
        message: Human-readable error message.
    """

    def __init__(self, message: str, path: Path | None = None):
        self.path = path
        self.message = message
        super().__init__(f"{path}: {message}" if path is not None else message)


class ParseError(SiteError):
    """Raised when a post cannot be parsed."""


class ReadError(ParseError):
    """Raised when a source file or directory cannot be read."""


class RenderError(SiteError):
    """Raised when a template is missing or fails to render."""


class ProcessError(SiteError):
    """Raised when an asset cannot be minified, decoded or encoded."""


class WriteError(SiteError):
    """Raised when an output file cannot be written."""


class ConfigError(SiteError):
    """Raised when the site configuration is invalid."""
