"""Template rendering engine for novos.

This module uses Jinja2 to render pages. Templates are looked up in the
project's template directory first and the theme's second, so a project
overrides any theme template by providing a file with the same name.

Key class:
- TemplateEngine: Loads, validates and renders templates.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from jinja2 import (
    Environment,
    FileSystemLoader,
    Template,
    TemplateNotFound,
    TemplateSyntaxError,
    select_autoescape,
)

from .themes import ThemeResolver

__all__ = ["TemplateEngine", "TemplateLoadError"]


class TemplateLoadError(Exception):
    """A template could not be found or parsed.

    Attributes:
        name: Template name that was requested.
        path: File that failed to parse, when known.
        message: Human-readable description.
    """

    def __init__(self, name: str, message: str, path: Path | None = None):
        self.name = name
        self.path = path
        self.message = message
        super().__init__(f"{name}: {message}")


class TemplateEngine:
    """Template rendering engine using Jinja2.

    The environment is shared by all render tasks of a build; Jinja2's
    template cache is safe to use from several threads.

    Attributes:
        search_path: Template directories in priority order.
        env: Jinja2 environment.
    """

    def __init__(self, search_path: list[Path]):
        """Initialize the template engine.

        Args:
            search_path: Template directories, highest priority first.
        """
        self.search_path = search_path
        self.env = Environment(
            loader=FileSystemLoader([str(p) for p in search_path]),
            autoescape=select_autoescape(["html", "xml"]),
            enable_async=False,
        )

    @classmethod
    def from_resolver(cls, resolver: ThemeResolver, templates_dir: str) -> TemplateEngine:
        return cls(resolver.candidates(templates_dir))

    def has_template(self, name: str) -> bool:
        try:
            self.env.get_template(name)
        except TemplateNotFound:
            return False
        except TemplateSyntaxError:
            return True
        return True

    def require(self, name: str) -> Template:
        """Load a template that the build cannot do without.

        Raises:
            TemplateLoadError: If the template is missing or does not parse.
        """
        try:
            return self.env.get_template(name)
        except TemplateNotFound as exc:
            searched = ", ".join(str(p) for p in self.search_path) or "(no template directory)"
            raise TemplateLoadError(name, f"Template not found. Searched: {searched}") from exc
        except TemplateSyntaxError as exc:
            path = Path(exc.filename) if exc.filename else None
            raise TemplateLoadError(
                name, f"Template syntax error on line {exc.lineno}: {exc.message}", path
            ) from exc

    def render(self, name: str, context: dict[str, Any]) -> str:
        """Render a named template.

        Args:
            name: Template name relative to the search path.
            context: Variables to make available in the template.

        Returns:
            Rendered string.
        """
        return self.env.get_template(name).render(**context)
