"""Tag grouping and pagination for novos.

Both helpers take the post list already sorted newest first and preserve
that order in everything they return.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import Any

from .content import Post
from .utils import slugify

TAGS_DIR = "tags"
PAGES_DIR = "page"


def build_taxonomy(posts: Iterable[Post]) -> dict[str, tuple[Post, ...]]:
    """Build an index mapping tags to the posts carrying them.

    Args:
        posts: Posts in display order.

    Tags that share a page (``Python`` and ``python`` both map to
    ``tags/python.html``) are merged under the first spelling seen, so every
    tagged post lands on exactly one tag page.

    Returns:
        Dictionary mapping each tag to its posts, in input order and without
        repeats. Callers must not rely on the order of the tags themselves.
    """
    names: dict[str, str] = {}
    tags: dict[str, list[Post]] = {}
    for post in posts:
        for tag in post.tags:
            name = names.setdefault(slugify(tag), tag)
            items = tags.setdefault(name, [])
            # a post tagged both "Python" and "python" appears once
            if not items or items[-1] is not post:
                items.append(post)
    return {tag: tuple(items) for tag, items in tags.items()}


def tag_path(tag: str) -> str:
    """Output path of a tag page, relative to the output directory."""
    return f"{TAGS_DIR}/{slugify(tag)}.html"


def page_path(number: int) -> str:
    """Output path of a listing page, relative to the output directory.

    Page 1 is the root index; later pages live in numbered sub-directories.
    """
    if number <= 1:
        return "index.html"
    return f"{PAGES_DIR}/{number}/index.html"


def page_url(base: str, number: int) -> str:
    prefix = "/" + base.strip("/") if base.strip("/") else ""
    if number <= 1:
        return f"{prefix}/"
    return f"{prefix}/{PAGES_DIR}/{number}/"


@dataclass(frozen=True)
class PaginationPage:
    """One chunk of the root listing.

    Attributes:
        number: 1-based page number.
        total_pages: Number of pages in the listing.
        items: Posts shown on this page.
        url: URL of this page.
        previous_url: URL of the previous page, if any.
        next_url: URL of the next page, if any.
    """

    number: int
    total_pages: int
    items: tuple[Post, ...]
    url: str = "/"
    previous_url: str | None = None
    next_url: str | None = None

    @property
    def has_previous(self) -> bool:
        return self.number > 1

    @property
    def has_next(self) -> bool:
        return self.number < self.total_pages

    @property
    def output_path(self) -> str:
        return page_path(self.number)

    def to_context(self) -> dict[str, Any]:
        return {
            "number": self.number,
            "total_pages": self.total_pages,
            "has_previous": self.has_previous,
            "has_next": self.has_next,
            "url": self.url,
            "previous_url": self.previous_url,
            "next_url": self.next_url,
        }


def paginate(posts: Sequence[Post], per_page: int, base: str = "") -> list[PaginationPage]:
    """Split the sorted post list into listing pages.

    With ``per_page > 0`` the list is cut into ``ceil(N / per_page)``
    consecutive, non-overlapping chunks. With pagination disabled, or with
    nothing to list, a single page holds the whole list.

    Args:
        posts: Posts sorted newest first.
        per_page: Page size; 0 disables pagination.
        base: Site sub-path used to build page URLs.

    Returns:
        Pages in order.
    """
    items = tuple(posts)
    if per_page <= 0 or not items:
        return [PaginationPage(number=1, total_pages=1, items=items, url=page_url(base, 1))]
    total = math.ceil(len(items) / per_page)
    pages = []
    for index in range(total):
        number = index + 1
        pages.append(
            PaginationPage(
                number=number,
                total_pages=total,
                items=items[index * per_page : number * per_page],
                url=page_url(base, number),
                previous_url=page_url(base, number - 1) if number > 1 else None,
                next_url=page_url(base, number + 1) if number < total else None,
            )
        )
    return pages
