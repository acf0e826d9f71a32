"""Asset processors for novos.

This module contains the per-file steps of the asset pipeline. Each
processor handles one kind of file; the registry picks the first processor
that accepts a path.

Key classes:
- ScriptProcessor: Minifies JavaScript files with rjsmin.
- StaticAssetProcessor: Copies files without modification.
- AssetProcessorRegistry: Picks the processor for each file.
- ImageOptimizer: Transcodes raster images to WebP with Pillow.
"""

from __future__ import annotations

import io
import logging
import shutil
from abc import ABC, abstractmethod
from operator import attrgetter
from pathlib import Path

from PIL import Image
from rjsmin import jsmin

logger = logging.getLogger(__name__)

RASTER_EXTENSIONS = {".png", ".jpg", ".jpeg"}
OPTIMIZED_EXTENSION = ".webp"
OPTIMIZED_MIME = "image/webp"


class BaseAssetProcessor(ABC):
    """One way of turning a static source file into its output file.

    Attributes:
        priority: Processors with a higher priority are asked first.
    """

    priority = 0

    @abstractmethod
    def can_process(self, path: Path) -> bool:
        ...

    @abstractmethod
    def transform(self, source: Path, dest: Path) -> None:
        """Write the output for ``source`` to ``dest``."""

    def process(self, source: Path, dest: Path) -> bool:
        dest.parent.mkdir(parents=True, exist_ok=True)
        self.transform(source, dest)
        # the source timestamp marks the output as current on later runs
        shutil.copystat(source, dest)
        return True


class ScriptProcessor(BaseAssetProcessor):
    """Minifies JavaScript with rjsmin; ``*.min.js`` files are left alone."""

    priority = 10

    def can_process(self, path: Path) -> bool:
        name = path.name.lower()
        return name.endswith(".js") and not name.endswith(".min.js")

    def transform(self, source: Path, dest: Path) -> None:
        dest.write_text(jsmin(source.read_text(encoding="utf-8")), encoding="utf-8")


class StaticAssetProcessor(BaseAssetProcessor):
    """Byte-for-byte copy, preserving timestamps. Accepts every file."""

    def can_process(self, path: Path) -> bool:
        return True

    def transform(self, source: Path, dest: Path) -> None:
        shutil.copy2(source, dest)


class AssetProcessorRegistry:
    """Ordered set of processors; the first one accepting a path wins."""

    def __init__(self):
        self._processors: list[BaseAssetProcessor] = []

    def register(self, processor: BaseAssetProcessor) -> None:
        self._processors = sorted(
            [*self._processors, processor], key=attrgetter("priority"), reverse=True
        )

    def get_processor(self, path: Path) -> BaseAssetProcessor | None:
        return next((p for p in self._processors if p.can_process(path)), None)

    def process(self, source: Path, dest: Path) -> bool:
        """Run the matching processor.

        Returns:
            False when no processor accepts ``source``.
        """
        processor = self.get_processor(source)
        if processor is None:
            logger.debug("no processor for %s", source.name)
            return False
        return processor.process(source, dest)


def create_default_registry(minify: bool = False) -> AssetProcessorRegistry:
    """Registry used by the asset pipeline; scripts are minified when ``minify``."""
    registry = AssetProcessorRegistry()
    registry.register(StaticAssetProcessor())
    if minify:
        registry.register(ScriptProcessor())
    return registry


def is_raster_image(path: Path) -> bool:
    return path.suffix.lower() in RASTER_EXTENSIONS


def optimized_path(path: Path) -> Path:
    return path.with_suffix(OPTIMIZED_EXTENSION)


class ImageOptimizer:
    """Transcodes raster images to WebP.

    Attributes:
        quality: Encoder quality (0-100).
    """

    def __init__(self, quality: int = 75):
        self.quality = quality

    def transcode(self, source: Path) -> bytes:
        """Encode ``source`` as WebP and return the encoded bytes."""
        with Image.open(source) as img:
            img.load()
            if img.mode not in ("RGB", "RGBA"):
                img = img.convert("RGBA")
            buffer = io.BytesIO()
            img.save(buffer, "WEBP", quality=self.quality, method=6)
        return buffer.getvalue()

    def optimize(self, source: Path) -> Path | None:
        """Write the WebP sibling of ``source`` and remove the original.

        The sibling takes over the original's timestamps. The original is
        deleted only once the sibling has been written. Any failure leaves
        the original in place.

        Returns:
            Path of the optimized file, or None when the image was kept.
        """
        target = optimized_path(source)
        try:
            data = self.transcode(source)
        except (OSError, ValueError, Image.DecompressionBombError) as exc:
            logger.debug("Keeping %s; transcode failed: %s", source.name, exc)
            return None
        try:
            target.write_bytes(data)
            shutil.copystat(source, target)
        except OSError as exc:
            logger.debug("Keeping %s; cannot write %s: %s", source.name, target.name, exc)
            target.unlink(missing_ok=True)
            return None
        source.unlink(missing_ok=True)
        logger.debug("optimized %s", source.name)
        return target
