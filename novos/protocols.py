"""Protocol definitions for novos.

The build depends on its external collaborators only through these
interfaces, so tests can substitute small fakes for the Markdown renderer,
the template engine and the stylesheet compiler.
"""

from __future__ import annotations

from abc import abstractmethod
from collections.abc import Iterable
from pathlib import Path
from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class MarkupRenderer(Protocol):
    """Renders a Markdown body to HTML."""

    @abstractmethod
    def render(self, text: str) -> str:
        ...


@runtime_checkable
class TemplateRenderer(Protocol):
    """Renders named templates against a context tree."""

    @abstractmethod
    def require(self, name: str) -> Any:
        """Load a template, raising when it is missing or malformed."""
        ...

    @abstractmethod
    def has_template(self, name: str) -> bool:
        ...

    @abstractmethod
    def render(self, name: str, context: dict[str, Any]) -> str:
        ...


@runtime_checkable
class StylesheetCompiler(Protocol):
    """Compiles one stylesheet source to CSS."""

    @abstractmethod
    def compile(
        self, path: Path, style: str = "expanded", load_paths: Iterable[Path] = ()
    ) -> str:
        """Compile ``path``.

        Args:
            path: Source stylesheet.
            style: Output style.
            load_paths: Extra import directories.

        Returns:
            Compiled CSS.
        """
        ...
