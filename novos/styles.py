"""Stylesheet compilation for novos.

Sass sources are compiled with the Dart Sass command-line compiler, found
on PATH or in the project's node_modules. Files whose names start with an
underscore are partials: they are available to ``@use``/``@import`` but
never compiled on their own.

Key classes and functions:
- SassCompiler: Thin wrapper around the ``sass`` executable.
- compile_stylesheets: The stylesheet phase of a build.
"""

from __future__ import annotations

import logging
import shutil
import subprocess
from collections.abc import Iterable
from pathlib import Path

from .assets import rewrite_to_optimized
from .themes import ThemeResolver
from .utils import write_text_if_changed

logger = logging.getLogger(__name__)

SOURCE_EXTENSIONS = {".scss", ".sass"}
PARTIAL_PREFIX = "_"
CSS_DIR = "css"
SASS_EXECUTABLE = "sass"


def find_executable(name: str, project_root: Path | None = None) -> str | None:
    """Locate a command-line tool.

    A copy installed in the project's ``node_modules/.bin`` takes precedence
    over one on PATH.

    Returns:
        Path to the executable, or None when it is not installed.
    """
    if project_root is not None:
        local_bin = project_root / "node_modules" / ".bin"
        local = shutil.which(name, path=str(local_bin)) if local_bin.is_dir() else None
        if local:
            return local
    return shutil.which(name)


class StylesheetError(Exception):
    """Compilation of a stylesheet failed.

    Attributes:
        source: Stylesheet that failed to compile.
        message: Compiler output describing the failure.
    """

    def __init__(self, source: Path, message: str):
        self.source = source
        self.message = message
        super().__init__(f"{source}: {message}")


class SassCompiler:
    """Compiles one Sass file to CSS with the ``sass`` executable.

    Attributes:
        project_root: Root directory used to find a local compiler.
    """

    def __init__(self, project_root: Path, executable: str | None = None):
        self.project_root = project_root
        self._executable = executable

    @property
    def executable(self) -> str | None:
        if self._executable is None:
            self._executable = find_executable(SASS_EXECUTABLE, self.project_root)
        return self._executable

    def compile(
        self, path: Path, style: str = "expanded", load_paths: Iterable[Path] = ()
    ) -> str:
        """Compile a stylesheet.

        Args:
            path: Sass source file.
            style: Output style, "expanded" or "compressed".
            load_paths: Extra directories searched by ``@use``/``@import``.

        Returns:
            Compiled CSS.

        Raises:
            StylesheetError: If the compiler is missing or reports an error.
        """
        sass_bin = self.executable
        if not sass_bin:
            raise StylesheetError(
                path,
                "Sass compiler not found. Install it with `npm install -g sass` "
                "or `npm install -D sass` in the project.",
            )
        cmd = [sass_bin, "--no-source-map", f"--style={style}"]
        for load_path in load_paths:
            cmd.append(f"--load-path={load_path}")
        cmd.append(str(path))
        result = subprocess.run(cmd, capture_output=True, text=True)
        if result.returncode != 0:
            raise StylesheetError(path, result.stderr.strip() or "sass exited with an error")
        return result.stdout


def iter_sources(sass_dir: Path) -> list[Path]:
    """List the stylesheets of ``sass_dir`` that compile on their own."""
    if not sass_dir.is_dir():
        return []
    return sorted(
        p
        for p in sass_dir.iterdir()
        if p.is_file()
        and p.suffix.lower() in SOURCE_EXTENSIONS
        and not p.name.startswith(PARTIAL_PREFIX)
    )


def compile_stylesheets(
    resolver: ThemeResolver,
    sass_dir: str,
    output_dir: Path,
    compiler: SassCompiler,
    style: str = "expanded",
    rewrite_images: bool = False,
    base_url: str = "",
) -> list[Path]:
    """Compile every non-partial stylesheet into ``output_dir/css``.

    The sass directory is resolved through the theme overlay. When a theme
    is active its sass directory is added as a load path, so project
    stylesheets can import theme partials.

    Args:
        resolver: Theme resolver.
        sass_dir: Name of the sass directory in project and theme.
        output_dir: Build output directory.
        compiler: Stylesheet compiler.
        style: Output style passed to the compiler.
        rewrite_images: Whether to point image references at WebP files.
        base_url: Site base URL for the rewrite.

    Returns:
        CSS files whose content changed.

    Raises:
        StylesheetError: On the first failing stylesheet.
    """
    source_dir = resolver.resolve(sass_dir)
    sources = iter_sources(source_dir)
    if not sources:
        return []

    load_paths = []
    theme_sass = resolver.theme_path(sass_dir)
    if theme_sass is not None and theme_sass.is_dir():
        load_paths.append(theme_sass)

    css_dir = output_dir / CSS_DIR
    css_dir.mkdir(parents=True, exist_ok=True)
    written = []
    for source in sources:
        logger.debug("compiling %s", source.name)
        css = compiler.compile(source, style=style, load_paths=load_paths)
        if rewrite_images:
            css = rewrite_to_optimized(css, base_url)
        dest = css_dir / f"{source.stem}.css"
        if write_text_if_changed(dest, css):
            written.append(dest)
    return written
