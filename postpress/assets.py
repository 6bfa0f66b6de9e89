"""Asset processing pipeline for Postpress.

Both asset steps of a build are tree copies from a source directory into a
parallel directory under the output directory, with each file handed to
the processor registry:

- process_static: ``static/**`` -> ``<output>/static/**`` (CSS minified).
- process_images: ``content/images/**`` -> ``<output>/images/**`` (resized).

A missing source directory is skipped.
"""

from __future__ import annotations

import logging
from pathlib import Path

from .asset_processors import (
    AssetProcessorRegistry,
    create_image_registry,
    create_static_registry,
)

logger = logging.getLogger(__name__)


class AssetPipeline:
    """Mirrors a source directory into a target directory through processors.

    Attributes:
        source_dir: Directory containing source assets.
        target_dir: Directory where processed assets are written.
        processor_registry: Registry of asset processors.
    """

    def __init__(
        self,
        source_dir: Path,
        target_dir: Path,
        processor_registry: AssetProcessorRegistry,
    ):
        self.source_dir = Path(source_dir)
        self.target_dir = Path(target_dir)
        self.processor_registry = processor_registry

    def run(self) -> list[Path]:
        """Process every file under the source directory.

        Returns:
            Paths written, in source order. Empty if the source is missing.
        """
        if not self.source_dir.is_dir():
            logger.debug("No asset directory at %s; skipping", self.source_dir)
            return []

        written: list[Path] = []
        for item in sorted(self.source_dir.rglob("*")):
            if item.is_dir():
                continue
            rel = item.relative_to(self.source_dir)
            result = self.processor_registry.process(item, self.target_dir / rel)
            if result is not None:
                written.append(result)
        return written


def process_static(static_dir: Path, output_dir: Path) -> list[Path]:
    """Copy static assets into ``<output_dir>/static``, minifying CSS."""
    return AssetPipeline(static_dir, output_dir / "static", create_static_registry()).run()


def process_images(images_dir: Path, output_dir: Path) -> list[Path]:
    """Copy images into ``<output_dir>/images``, downsampling wide ones."""
    return AssetPipeline(images_dir, output_dir / "images", create_image_registry()).run()
