"""Theme overlay resolution for novos.

A project may name a theme in novos.yaml. The theme lives under
``themes/<name>/`` and supplies defaults for static files, stylesheets,
templates and data; anything the project provides at the same relative
path wins.

Key class:
- ThemeResolver: Ordered candidate roots, first existing path wins.
"""

from __future__ import annotations

import logging
from pathlib import Path

logger = logging.getLogger(__name__)


class ThemeResolver:
    """Resolves relative paths against the project root, then the theme root.

    Attributes:
        project_root: Root directory of the project.
        theme_root: Root directory of the active theme, or None.
    """

    def __init__(self, project_root: Path, theme_root: Path | None = None):
        """Initialize the resolver.

        Args:
            project_root: Root directory of the project.
            theme_root: Optional theme directory. A theme directory that does
                not exist is ignored with a warning.
        """
        self.project_root = project_root
        if theme_root is not None and not theme_root.is_dir():
            logger.warning("Theme directory %s not found; building without theme", theme_root)
            theme_root = None
        self.theme_root = theme_root

    @property
    def roots(self) -> list[Path]:
        """Candidate roots in priority order (project first)."""
        roots = [self.project_root]
        if self.theme_root is not None:
            roots.append(self.theme_root)
        return roots

    def resolve(self, relative: str | Path) -> Path:
        """Resolve a relative path, preferring the project over the theme.

        Args:
            relative: Path relative to a project or theme root.

        Returns:
            The first existing candidate, or the project path when neither
            exists. Callers check existence themselves.
        """
        for root in self.roots:
            candidate = root / relative
            if candidate.exists():
                return candidate
        return self.project_root / relative

    def candidates(self, relative: str | Path) -> list[Path]:
        """Return every existing path for ``relative`` in priority order."""
        return [root / relative for root in self.roots if (root / relative).exists()]

    def theme_path(self, relative: str | Path) -> Path | None:
        """Return the theme-side path for ``relative`` when it exists."""
        if self.theme_root is None:
            return None
        candidate = self.theme_root / relative
        return candidate if candidate.exists() else None
