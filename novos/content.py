"""Content ingestion for novos.

This module reads Markdown (and, for pages, HTML) sources, extracts their
front matter and records the source modification time used for incremental
rebuilds.

Key classes:
- Post: Immutable content item (used for both posts and pages).
- ContentLoader: Discovers and parses the sources of one collection.
"""

from __future__ import annotations

from collections.abc import Iterable
from concurrent.futures import Executor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .extractors import extract_frontmatter, normalize_date, normalize_tags
from .utils import extract_date_from_name, is_markdown, slugify


class DuplicateSlugError(Exception):
    """Two sources of one collection map to the same slug.

    Attributes:
        slug: The conflicting slug.
        paths: The source files that produced it.
    """

    def __init__(self, slug: str, paths: list[Path]):
        self.slug = slug
        self.paths = paths
        names = ", ".join(p.name for p in paths)
        super().__init__(f"Duplicate slug '{slug}': {names}")


class ContentReadError(Exception):
    """A source file could not be read or is not valid UTF-8.

    Attributes:
        path: The offending source file.
    """

    def __init__(self, path: Path, message: str):
        self.path = path
        super().__init__(f"Cannot read {path.name}: {message}")


@dataclass(frozen=True)
class Post:
    """A content item.

    Created once per build by the loader and never mutated afterwards, so
    render tasks can share it across threads.

    Attributes:
        slug: URL-friendly name, unique within its collection.
        title: Title from front matter, defaulting to the slug.
        date: Sortable date string (ISO format when known, else empty).
        tags: Tags in declaration order.
        raw_content: Body text after front matter removal.
        mtime: Source modification time (seconds since the epoch).
        path: Source file.
        kind: "post" or "page".
        extra: Front matter keys other than title, date and tags.
    """

    slug: str
    title: str
    date: str
    tags: tuple[str, ...]
    raw_content: str
    mtime: float
    path: Path
    kind: str = "post"
    extra: dict[str, Any] = field(default_factory=dict, hash=False, compare=False)

    @property
    def is_markdown(self) -> bool:
        return is_markdown(self.path)


def parse_post(raw: str, path: Path, mtime: float, kind: str = "post") -> Post:
    """Build a Post from raw file content.

    Args:
        raw: Full file content including front matter.
        path: Source file path.
        mtime: Source modification time.
        kind: Collection the item belongs to.

    Returns:
        Post instance.
    """
    metadata, body = extract_frontmatter(raw)
    slug = slugify(path.stem)
    title = metadata.pop("title", None)
    date = normalize_date(metadata.pop("date", None))
    if not date:
        prefixed = extract_date_from_name(path.stem)
        date = prefixed.date().isoformat() if prefixed else ""
    tags = normalize_tags(metadata.pop("tags", None))
    return Post(
        slug=slug,
        title=str(title) if title else slug,
        date=date,
        tags=tags,
        raw_content=body,
        mtime=mtime,
        path=path,
        kind=kind,
        extra=metadata,
    )


class ContentLoader:
    """Loads the sources of one content collection.

    Attributes:
        source_dir: Directory holding the collection's files.
        kind: "post" or "page".
        suffixes: File suffixes that belong to the collection.
    """

    def __init__(self, source_dir: Path, kind: str, suffixes: Iterable[str] = (".md",)):
        self.source_dir = source_dir
        self.kind = kind
        self.suffixes = tuple(s.lower() for s in suffixes)

    def iter_files(self) -> list[Path]:
        """List source files, skipping hidden and underscore-prefixed names."""
        if not self.source_dir.is_dir():
            return []
        files = []
        for path in sorted(self.source_dir.iterdir()):
            if not path.is_file() or path.name.startswith((".", "_")):
                continue
            if path.suffix.lower() in self.suffixes:
                files.append(path)
        return files

    def load_file(self, path: Path) -> Post:
        try:
            mtime = path.stat().st_mtime
            raw = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise ContentReadError(path, str(exc)) from exc
        return parse_post(raw, path, mtime, kind=self.kind)

    def load(self, executor: Executor | None = None) -> list[Post]:
        """Load every source of the collection.

        Args:
            executor: Optional executor used to read and parse files in
                parallel. Result order follows ``iter_files``.

        Returns:
            List of Post objects.

        Raises:
            DuplicateSlugError: If two files share a slug.
            ContentReadError: If a file cannot be read or decoded.
        """
        files = self.iter_files()
        if executor is None:
            posts = [self.load_file(path) for path in files]
        else:
            posts = list(executor.map(self.load_file, files))
        seen: dict[str, Path] = {}
        for post in posts:
            if post.slug in seen:
                raise DuplicateSlugError(post.slug, [seen[post.slug], post.path])
            seen[post.slug] = post.path
        return posts


def sort_newest_first(posts: Iterable[Post]) -> list[Post]:
    """Sort by date descending; ties keep slug order for stable output."""
    ordered = sorted(posts, key=lambda p: p.slug)
    return sorted(ordered, key=lambda p: p.date, reverse=True)
