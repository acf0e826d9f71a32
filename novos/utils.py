"""Utility functions for novos.

Small helpers shared across the build: slugs and date prefixes derived
from filenames, and output-tree manipulation.
"""

from __future__ import annotations

import re
import shutil
from datetime import datetime
from pathlib import Path

# 2024-01-15-hello-world: year, month, day, then the name proper
DATE_PREFIX_RE = re.compile(r"^(?P<year>\d{4})-(?P<month>\d{1,2})-(?P<day>\d{1,2})(?:-|$)")
_NON_SLUG_RE = re.compile(r"[\W_]+")


def slugify(name: str) -> str:
    """Turn a filename stem into a URL slug.

    A leading ``YYYY-MM-DD-`` prefix is dropped, runs of anything other
    than letters and digits (in any script) collapse to one hyphen, and
    the result is lowercased. A stem with nothing left becomes ``index``.

    Examples:
        >>> slugify("2024-01-15-Hello World")
        'hello-world'
        >>> slugify("Café Crème")
        'café-crème'
    """
    match = DATE_PREFIX_RE.match(name)
    if match and match.end() < len(name):
        name = name[match.end():]
    return _NON_SLUG_RE.sub("-", name).strip("-").lower() or "index"


def extract_date_from_name(name: str) -> datetime | None:
    """Return the date encoded in a ``YYYY-MM-DD`` filename prefix, if valid."""
    match = DATE_PREFIX_RE.match(name)
    if not match:
        return None
    try:
        return datetime(int(match["year"]), int(match["month"]), int(match["day"]))
    except ValueError:
        return None


def is_markdown(path: Path) -> bool:
    return path.suffix.lower() == ".md"


def ensure_clean_dir(path: Path) -> None:
    """Create ``path`` if needed and remove everything inside it.

    The directory itself is kept.

    Raises:
        OSError: If an entry cannot be removed.
    """
    path.mkdir(parents=True, exist_ok=True)
    for entry in path.iterdir():
        if entry.is_dir() and not entry.is_symlink():
            shutil.rmtree(entry)
        else:
            entry.unlink()


def write_text_if_changed(path: Path, text: str) -> bool:
    """Write ``text`` unless the file already holds exactly that text.

    Returns:
        True if the file was written.
    """
    try:
        if path.read_text(encoding="utf-8") == text:
            return False
    except (OSError, UnicodeDecodeError):
        # missing, unreadable or binary: overwrite
        pass
    path.write_text(text, encoding="utf-8")
    return True
