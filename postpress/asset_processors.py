"""Asset processors for Postpress.

Each processor handles a single type of asset. A registry picks the
highest-priority processor that accepts a file.

Key classes:
- ImageProcessor: Downsamples and re-encodes JPEG and PNG images.
- CSSProcessor: Minifies stylesheets into ``<name>.min.css``.
- StaticAssetProcessor: Copies files byte-for-byte.
- AssetProcessorRegistry: Registry for managing asset processors.
"""

from __future__ import annotations

import io
import shutil
from abc import ABC, abstractmethod
from pathlib import Path

import rcssmin
from PIL import Image

from .errors import ProcessError, ReadError, WriteError
from .utils import write_bytes, write_text

MAX_IMAGE_WIDTH = 1200
JPEG_QUALITY = 85


class BaseAssetProcessor(ABC):
    """Base class for asset processors."""

    @property
    @abstractmethod
    def priority(self) -> int:
        """Return processor priority (higher = checked first)."""
        ...

    @abstractmethod
    def can_process(self, path: Path) -> bool:
        """Check if this processor can handle the given asset.

        Args:
            path: Path to the asset file.

        Returns:
            True if this processor can handle the asset.
        """
        ...

    @abstractmethod
    def process(self, source: Path, dest: Path) -> Path:
        """Process an asset file.

        Args:
            source: Source asset path.
            dest: Mirrored destination path for the asset.

        Returns:
            Path of the file actually written.
        """
        ...

    def read_source(self, source: Path) -> bytes:
        try:
            return source.read_bytes()
        except OSError as exc:
            raise ReadError(f"cannot read asset: {exc}", source) from exc


class ImageProcessor(BaseAssetProcessor):
    """Downsamples wide images and re-encodes them.

    Images wider than MAX_IMAGE_WIDTH are resized to that width with the
    height scaled proportionally. JPEGs are written at JPEG_QUALITY, PNGs
    losslessly. Narrower images are re-encoded at their original size.
    """

    FORMATS = {".jpg": "JPEG", ".jpeg": "JPEG", ".png": "PNG"}

    def __init__(self, max_width: int = MAX_IMAGE_WIDTH, quality: int = JPEG_QUALITY):
        self.max_width = max_width
        self.quality = quality

    @property
    def priority(self) -> int:
        return 100

    def can_process(self, path: Path) -> bool:
        return path.suffix.lower() in self.FORMATS

    def process(self, source: Path, dest: Path) -> Path:
        fmt = self.FORMATS[source.suffix.lower()]
        data = self.read_source(source)
        try:
            with Image.open(io.BytesIO(data)) as img:
                img.load()
                encoded = self._encode(self._resize(img), fmt)
        except (OSError, ValueError, Image.DecompressionBombError) as exc:
            raise ProcessError(f"cannot process image: {exc}", source) from exc
        write_bytes(dest, encoded)
        return dest

    def _resize(self, img: Image.Image) -> Image.Image:
        width, height = img.size
        if width <= self.max_width:
            return img
        new_height = max(1, int(height * self.max_width / width))
        # Pillow falls back to nearest-neighbour for palette and bilevel images.
        if img.mode in ("1", "P", "PA"):
            has_alpha = img.mode == "PA" or "transparency" in img.info
            img = img.convert("RGBA" if has_alpha else "RGB" if img.mode != "1" else "L")
        return img.resize((self.max_width, new_height), Image.Resampling.LANCZOS)

    def _encode(self, img: Image.Image, fmt: str) -> bytes:
        buf = io.BytesIO()
        if fmt == "JPEG":
            if img.mode not in ("RGB", "L", "CMYK"):
                img = img.convert("RGB")
            img.save(buf, format="JPEG", quality=self.quality)
        else:
            img.save(buf, format="PNG")
        return buf.getvalue()


class CSSProcessor(BaseAssetProcessor):
    """Minifies stylesheets and writes them with a ``.min`` suffix."""

    @property
    def priority(self) -> int:
        return 90

    def can_process(self, path: Path) -> bool:
        return path.suffix.lower() == ".css"

    def process(self, source: Path, dest: Path) -> Path:
        try:
            css = self.read_source(source).decode("utf-8-sig")
        except UnicodeDecodeError as exc:
            raise ProcessError(f"stylesheet is not valid UTF-8: {exc}", source) from exc
        problem = find_css_syntax_error(css)
        if problem:
            raise ProcessError(f"cannot minify stylesheet: {problem}", source)
        target = minified_name(dest)
        write_text(target, rcssmin.cssmin(css))
        return target


class StaticAssetProcessor(BaseAssetProcessor):
    """Copies static assets without modification.

    This is the fallback processor for assets that don't need special
    processing (fonts, scripts, SVGs, GIFs and so on).
    """

    @property
    def priority(self) -> int:
        return 0  # Lowest priority - fallback

    def can_process(self, path: Path) -> bool:
        return True

    def process(self, source: Path, dest: Path) -> Path:
        try:
            dest.parent.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(source, dest)
        except OSError as exc:
            raise WriteError(f"cannot copy {source}: {exc}", dest) from exc
        return dest


def minified_name(path: Path) -> Path:
    """Insert ``.min`` before the extension: ``theme.css`` -> ``theme.min.css``."""
    return path.with_name(f"{path.stem}.min{path.suffix}")


def find_css_syntax_error(css: str) -> str | None:
    """Look for structural problems that make a stylesheet unminifiable.

    Checks for unterminated comments and strings and for unbalanced braces.

    Args:
        css: Stylesheet source.

    Returns:
        A description of the first problem found, or None.
    """
    depth = 0
    line = 1
    i = 0
    length = len(css)
    while i < length:
        char = css[i]
        if char == "\n":
            line += 1
        elif css.startswith("/*", i):
            end = css.find("*/", i + 2)
            if end == -1:
                return f"unterminated comment starting on line {line}"
            line += css.count("\n", i, end)
            i = end + 2
            continue
        elif char in ("'", '"'):
            start_line = line
            i += 1
            while i < length and css[i] != char:
                if css[i] == "\\":
                    i += 1
                elif css[i] == "\n":
                    return f"unterminated string on line {start_line}"
                i += 1
            if i >= length:
                return f"unterminated string on line {start_line}"
        elif char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth < 0:
                return f"unexpected '}}' on line {line}"
        i += 1
    if depth > 0:
        return f"{depth} unclosed '{{' at end of file"
    return None


class AssetProcessorRegistry:
    """Registry for managing asset processors.

    New processors can be added without modifying existing code; the
    first registered processor (by priority) that accepts a file wins.
    """

    def __init__(self):
        self._processors: list[BaseAssetProcessor] = []

    def register(self, processor: BaseAssetProcessor) -> None:
        """Register a new processor.

        Processors are stored sorted by priority (highest first).

        Args:
            processor: Asset processor to register.
        """
        self._processors.append(processor)
        self._processors.sort(key=lambda p: p.priority, reverse=True)

    def get_processor(self, path: Path) -> BaseAssetProcessor | None:
        for processor in self._processors:
            if processor.can_process(path):
                return processor
        return None

    def process(self, source: Path, dest: Path) -> Path | None:
        """Process an asset using the appropriate processor.

        Args:
            source: Source asset path.
            dest: Destination path.

        Returns:
            Path written, or None if no processor accepts the file.
        """
        processor = self.get_processor(source)
        if processor:
            return processor.process(source, dest)
        return None


def create_static_registry() -> AssetProcessorRegistry:
    """Registry for static assets: minify CSS, copy the rest."""
    registry = AssetProcessorRegistry()
    registry.register(CSSProcessor())
    registry.register(StaticAssetProcessor())
    return registry


def create_image_registry() -> AssetProcessorRegistry:
    """Registry for content images: resize JPEG/PNG, copy the rest."""
    registry = AssetProcessorRegistry()
    registry.register(ImageProcessor())
    registry.register(StaticAssetProcessor())
    return registry
