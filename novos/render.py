"""Render stage for novos.

This module assembles the template context shared by every render task of
a build and renders individual outputs: posts and pages (subject to the
staleness check) and listing pages (root index, pagination pages, tag
pages), which are written only when their text changes.

Key classes:
- SiteContext: Read-only site-wide data handed to every render task.
- RenderStage: Renders one output per call; safe to call from many threads.
- RenderFailure: Record of an output skipped because its template failed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

from markupsafe import Markup

from .assets import rewrite_to_optimized
from .config import Config
from .content import Post
from .html_utils import escape_html, inject_script, minify, site_path
from .protocols import MarkupRenderer, TemplateRenderer
from .staleness import is_stale
from .taxonomy import TAGS_DIR, PaginationPage, tag_path
from .utils import slugify, write_text_if_changed

logger = logging.getLogger(__name__)

POST_TEMPLATE = "post.html"
PAGE_TEMPLATE = "page.html"
INDEX_TEMPLATE = "index.html"
TAG_TEMPLATE = "tag.html"


@dataclass(frozen=True)
class RenderFailure:
    """An output that was skipped because rendering failed.

    Attributes:
        source: Source file or listing the output belongs to.
        message: Human-readable error message.
    """

    source: str
    message: str


class RenderStatus(Enum):
    WRITTEN = "written"
    UNCHANGED = "unchanged"
    FAILED = "failed"


@dataclass(frozen=True)
class RenderOutcome:
    dest: Path
    status: RenderStatus
    failure: RenderFailure | None = None

    @property
    def written(self) -> bool:
        return self.status is RenderStatus.WRITTEN


def _format_error_message(exc: Exception) -> str:
    """Format a template exception into a user-friendly error message."""
    error_type = type(exc).__name__
    error_msg = str(exc)

    if error_type == "UndefinedError":
        return f"Undefined variable: {error_msg}"
    if error_type == "TemplateNotFound":
        return f"Template not found: {error_msg}"
    if error_type == "TemplateSyntaxError":
        lineno = getattr(exc, "lineno", "?")
        return f"Template syntax error on line {lineno}: {error_msg}"
    if error_type == "TypeError":
        return f"Type error: {error_msg}"

    return f"{error_type}: {error_msg}"


@dataclass(frozen=True)
class SiteContext:
    """Site-wide data for one build pass.

    Built once, after content collection, and only read by render tasks.

    Attributes:
        config: Resolved configuration.
        posts: Posts sorted newest first.
        pages: Standalone pages.
        data: Free-form data loaded from the data directory.
        taxonomy: Tag to posts carrying it, in post order.
        pagination: Pages of the root listing.
        is_dev: Whether the build serves the development server.
    """

    config: Config
    posts: tuple[Post, ...] = ()
    pages: tuple[Post, ...] = ()
    data: dict[str, Any] = field(default_factory=dict)
    taxonomy: dict[str, tuple[Post, ...]] = field(default_factory=dict)
    pagination: tuple[PaginationPage, ...] = ()
    is_dev: bool = False
    _items: dict[tuple[str, str], dict[str, Any]] = field(
        init=False, repr=False, compare=False, default_factory=dict
    )

    def __post_init__(self):
        for post in (*self.posts, *self.pages):
            self._items[(post.kind, post.slug)] = self._describe(post)

    def url_for(self, post: Post) -> str:
        """Root-relative URL of a post or page."""
        if post.kind == "page":
            return site_path(self.config.base, f"{post.slug}.html")
        return site_path(self.config.base, self.config.posts_outdir, f"{post.slug}.html")

    def tag_url(self, tag: str) -> str:
        return site_path(self.config.base, tag_path(tag))

    def _describe(self, post: Post) -> dict[str, Any]:
        return {
            "slug": post.slug,
            "title": post.title,
            "date": post.date,
            "tags": list(post.tags),
            "url": self.url_for(post),
            "kind": post.kind,
            "extra": post.extra,
        }

    def item(self, post: Post) -> dict[str, Any]:
        return self._items.get((post.kind, post.slug)) or self._describe(post)

    def items(self, posts) -> list[dict[str, Any]]:
        return [self.item(p) for p in posts]

    def posts_html(self, posts) -> Markup:
        """Pre-rendered list of links, for templates that just want a list."""
        lines = ["<ul class='post-list'>"]
        for post in posts:
            lines.append(
                f"  <li>{escape_html(post.date)} - <a href='{self.url_for(post)}'>"
                f"{escape_html(post.title)}</a></li>"
            )
        lines.append("</ul>")
        return Markup("\n".join(lines))

    def template_context(self, listing=None, **overrides: Any) -> dict[str, Any]:
        """Return the context tree handed to the template engine.

        Args:
            listing: Posts shown as ``posts``; defaults to all posts.
            **overrides: Extra or replacement top-level keys.
        """
        listing = self.posts if listing is None else listing
        config = self.config
        context: dict[str, Any] = {
            "site": {
                "title": config.site.title,
                "description": config.site.description,
                "base_url": config.base_url,
                "base": config.base,
            },
            "site_title": config.site.title,
            "base_url": config.base_url,
            "config": config.to_context(),
            "data": self.data,
            "posts": self.items(listing),
            "all_posts": self.items(self.posts),
            "pages": self.items(self.pages),
            "tags": {
                tag: {"name": tag, "url": self.tag_url(tag), "posts": self.items(posts)}
                for tag, posts in self.taxonomy.items()
            },
            "posts_html": self.posts_html(listing),
            "pagination": None,
            "post": None,
            "content": Markup(""),
            "tag": None,
            "is_dev": self.is_dev,
        }
        context.update(overrides)
        return context


class RenderStage:
    """Renders outputs for one build pass.

    Attributes:
        site: Site-wide context.
        engine: Template engine.
        markdown: Markdown renderer.
        last_build: End time of the previous build, read once per build.
        dev_script: Live-reload script injected in serve mode, or None.
    """

    def __init__(
        self,
        site: SiteContext,
        engine: TemplateRenderer,
        markdown: MarkupRenderer,
        last_build: float,
        dev_script: str | None = None,
    ):
        self.site = site
        self.engine = engine
        self.markdown = markdown
        self.last_build = last_build
        self.dev_script = dev_script

    def finalize_html(self, html: str) -> str:
        """Apply dev-script injection, image rewriting and minification."""
        build = self.site.config.build
        if self.dev_script:
            html = inject_script(html, self.dev_script)
        # rewrite first: the minifier drops attribute quotes the rewrite keys on
        if build.convert_to_webp:
            html = rewrite_to_optimized(html, self.site.config.base_url)
        if build.minify_html:
            html = minify(html)
        return html

    def tag_template(self, tag: str) -> str:
        """Template for a tag page: tag-specific, generic tag, or the index."""
        specific = f"{TAGS_DIR}/{slugify(tag)}.html"
        for name in (specific, TAG_TEMPLATE):
            if self.engine.has_template(name):
                return name
        return INDEX_TEMPLATE

    def _render(self, template: str, context: dict[str, Any], dest: Path, source: str):
        try:
            return self.engine.render(template, context), None
        except Exception as exc:
            message = _format_error_message(exc)
            logger.error("Skipping %s (%s): %s", dest.name, source, message)
            return None, RenderOutcome(dest, RenderStatus.FAILED, RenderFailure(source, message))

    def render_item(self, post: Post, template: str, dest: Path) -> RenderOutcome:
        """Render a post or page when it is stale.

        An item whose source is older than the previous build and whose
        output exists is left untouched.
        """
        if not is_stale(post.mtime, dest, self.last_build):
            return RenderOutcome(dest, RenderStatus.UNCHANGED)
        body = self.markdown.render(post.raw_content) if post.is_markdown else post.raw_content
        context = self.site.template_context(post=self.site.item(post), content=Markup(body))
        html, failed = self._render(template, context, dest, str(post.path))
        if failed:
            return failed
        dest.write_text(self.finalize_html(html), encoding="utf-8")
        logger.debug("rendered %s", dest.name)
        return RenderOutcome(dest, RenderStatus.WRITTEN)

    def render_listing(
        self, template: str, dest: Path, listing, source: str, **overrides: Any
    ) -> RenderOutcome:
        """Render an aggregate page, writing it only when its text changed."""
        context = self.site.template_context(listing, **overrides)
        html, failed = self._render(template, context, dest, source)
        if failed:
            return failed
        if write_text_if_changed(dest, self.finalize_html(html)):
            return RenderOutcome(dest, RenderStatus.WRITTEN)
        return RenderOutcome(dest, RenderStatus.UNCHANGED)
