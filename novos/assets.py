"""Asset pipeline for novos.

This module copies static files into the output directory, optionally
converts raster images to WebP, and rewrites textual references to
converted images in rendered HTML and compiled CSS.

Key components:
- AssetPipeline: Copies theme and project static trees, then optimizes images.
- rewrite_image_references: Points png/jpg/jpeg references at the WebP files.
- rewrite_image_mime_types: Replaces png/jpeg MIME strings.

Static trees are merged before copying: a file present in both the theme
and the project is copied once, from the project.
"""

from __future__ import annotations

import logging
import re
from concurrent.futures import Executor
from pathlib import Path

from .asset_processors import (
    OPTIMIZED_EXTENSION,
    OPTIMIZED_MIME,
    AssetProcessorRegistry,
    ImageOptimizer,
    create_default_registry,
    is_raster_image,
    optimized_path,
)
from .themes import ThemeResolver

logger = logging.getLogger(__name__)

# <delim><path>.<png|jpg|jpeg><delim>; the path never contains quotes,
# parentheses, whitespace, "?" or "#", so query strings and fragments
# prevent a match. The closing delimiter is not consumed.
IMAGE_REFERENCE_RE = re.compile(
    r"""(?P<delim>["'(\s])(?P<path>[^"'()\s?#]+\.)(?:png|jpe?g)(?=["')\s])""",
    re.IGNORECASE,
)
IMAGE_MIME_RE = re.compile(r"image/(?:png|jpeg)", re.IGNORECASE)


def is_external_reference(path: str) -> bool:
    return "://" in path or path.startswith("//")


def matches_base_url(path: str, base_url: str) -> bool:
    """Check whether an absolute reference points into our own site.

    The base URL must match up to a path boundary, so ``https://ex.com``
    does not claim ``https://ex.com.evil.net/a.png``.
    """
    base = base_url.rstrip("/")
    if not base:
        return False
    return path == base or path.startswith(base + "/")


def rewrite_image_references(text: str, base_url: str = "") -> str:
    """Rewrite png/jpg/jpeg references to the optimized extension.

    Internal references are always rewritten. External references are
    rewritten only when they live under ``base_url``; all others are left
    byte-for-byte unchanged.

    Examples:
        >>> rewrite_image_references('<img src="photo.png">', "https://example.com")
        '<img src="photo.webp">'
        >>> rewrite_image_references('<img src="https://other.com/a.jpg">')
        '<img src="https://other.com/a.jpg">'
    """
    replacement_ext = OPTIMIZED_EXTENSION.lstrip(".")

    def repl(match: re.Match) -> str:
        path = match.group("path")
        if is_external_reference(path) and not matches_base_url(path, base_url):
            return match.group(0)
        return f"{match.group('delim')}{path}{replacement_ext}"

    return IMAGE_REFERENCE_RE.sub(repl, text)


def rewrite_image_mime_types(text: str) -> str:
    """Replace every image/png and image/jpeg MIME string, case-insensitively."""
    return IMAGE_MIME_RE.sub(OPTIMIZED_MIME, text)


def rewrite_to_optimized(text: str, base_url: str = "") -> str:
    return rewrite_image_mime_types(rewrite_image_references(text, base_url))


class AssetPipeline:
    """Copies static files and optimizes images for the site.

    Attributes:
        resolver: Theme resolver providing the static tree candidates.
        static_dir: Name of the static directory inside project and theme.
        output_dir: Directory where assets are written.
        optimize_images: Whether raster images are converted to WebP.
        processor_registry: Registry of per-file processors.
        optimizer: Image optimizer used when optimization is on.
    """

    def __init__(
        self,
        resolver: ThemeResolver,
        static_dir: str,
        output_dir: Path,
        minify: bool = False,
        optimize_images: bool = False,
        image_quality: int = 75,
        processor_registry: AssetProcessorRegistry | None = None,
    ):
        self.resolver = resolver
        self.static_dir = static_dir
        self.output_dir = output_dir
        self.optimize_images = optimize_images
        self.processor_registry = processor_registry or create_default_registry(minify)
        self.optimizer = ImageOptimizer(image_quality)

    def collect(self) -> dict[Path, Path]:
        """Map each relative static path to the source file that provides it.

        Theme files are entered first and project files overwrite them.
        """
        files: dict[Path, Path] = {}
        for root in reversed(self.resolver.candidates(self.static_dir)):
            if not root.is_dir():
                continue
            for item in root.rglob("*"):
                if item.is_file():
                    files[item.relative_to(root)] = item
        return files

    def _is_current(self, source: Path, dest: Path) -> bool:
        """Whether ``dest`` (or its optimized sibling) came from ``source``.

        Processors stamp every output with its source's modification time,
        so an output is current only when the stamps are identical. An older
        or newer stamp means the output came from another source (a theme
        file the project now overrides) or from an earlier edit.
        """
        source_mtime = source.stat().st_mtime_ns
        candidates = [dest]
        if self.optimize_images and is_raster_image(dest):
            candidates.append(optimized_path(dest))
        return any(
            candidate.exists() and candidate.stat().st_mtime_ns == source_mtime
            for candidate in candidates
        )

    def copy(self) -> list[Path]:
        """Copy the merged static tree into the output directory.

        Returns:
            Destination paths that were written.
        """
        written = []
        for rel, source in sorted(self.collect().items()):
            dest = self.output_dir / rel
            if self._is_current(source, dest):
                continue
            if self.processor_registry.process(source, dest):
                logger.debug("copied %s", rel.as_posix())
                written.append(dest)
        return written

    def find_images(self) -> list[Path]:
        if not self.output_dir.is_dir():
            return []
        return sorted(
            p for p in self.output_dir.rglob("*") if p.is_file() and is_raster_image(p)
        )

    def optimize(self, executor: Executor | None = None) -> list[Path]:
        """Convert every raster image under the output tree.

        Args:
            executor: Optional executor running one transcode per image.

        Returns:
            Paths of the optimized files that were written.
        """
        images = self.find_images()
        if executor is None:
            results = [self.optimizer.optimize(p) for p in images]
        else:
            results = list(executor.map(self.optimizer.optimize, images))
        return [path for path in results if path is not None]

    def run(self, executor: Executor | None = None) -> list[Path]:
        """Execute the asset pipeline.

        Returns:
            Every output path written by the pipeline.
        """
        written = self.copy()
        if self.optimize_images:
            written.extend(self.optimize(executor))
        return written
