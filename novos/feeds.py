"""Feed generation for novos.

This module writes the distribution files of a site (RSS, search index,
sitemap) from the assembled site context. Feed generation is separate from
build orchestration; a new format is added by registering another
generator.

Every generator writes its file only when the text changed, and none of
them embeds the current time, so rebuilding an unchanged site leaves the
feeds untouched.

Classes:
    FeedGenerator: Base class for feed generators.
    RSSGenerator: RSS 2.0 feed of the newest posts.
    SearchIndexGenerator: JSON index used by client-side search.
    SitemapGenerator: sitemap.xml for search engines.
    FeedRegistry: Registry for managing feed generators.

Functions:
    create_default_feed_registry: Create a registry with default generators.
"""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from email.utils import format_datetime
from pathlib import Path
from typing import TYPE_CHECKING

from .html_utils import escape_html, join_root_url
from .renderers import strip_markdown
from .utils import write_text_if_changed

if TYPE_CHECKING:
    from .content import Post
    from .render import SiteContext

logger = logging.getLogger(__name__)

RSS_ITEM_LIMIT = 15
RSS_DESCRIPTION_LENGTH = 500
SEARCH_SNIPPET_LENGTH = 140


def rfc2822_date(date: str) -> str | None:
    """Format an ISO date string for RSS, or None when it does not parse.

    Examples:
        >>> rfc2822_date("2024-01-15")
        'Mon, 15 Jan 2024 00:00:00 +0000'
    """
    try:
        parsed = datetime.fromisoformat(date)
    except (TypeError, ValueError):
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return format_datetime(parsed)


class FeedGenerator(ABC):
    """Abstract base class for feed generators.

    Subclasses name their output file, decide whether the configuration
    enables them, and produce the file's text.
    """

    @property
    @abstractmethod
    def filename(self) -> str:
        """Return the output filename, such as 'rss.xml'."""
        ...

    @abstractmethod
    def enabled(self, site: SiteContext) -> bool:
        ...

    @abstractmethod
    def generate(self, site: SiteContext) -> str | None:
        """Generate feed content.

        Args:
            site: Assembled site context.

        Returns:
            Feed content, or None if the feed cannot be generated
            (e.g., missing required configuration).
        """
        ...

    def write(self, output_dir: Path, site: SiteContext) -> Path | None:
        """Generate the feed and write it when its text changed.

        Returns:
            The written path, or None if skipped or unchanged.
        """
        if not self.enabled(site):
            return None
        content = self.generate(site)
        if content is None:
            return None
        output_path = output_dir / self.filename
        if write_text_if_changed(output_path, content):
            logger.debug("wrote %s", self.filename)
            return output_path
        return None


def _absolute_url(site: SiteContext, post: Post) -> str:
    return join_root_url(site.config.base_url, site.url_for(post))


class RSSGenerator(FeedGenerator):
    """Generates an RSS 2.0 feed of the newest posts.

    Requires ``base_url`` to build absolute links. Posts whose date does not
    parse are listed without a ``pubDate``.
    """

    def __init__(self, limit: int = RSS_ITEM_LIMIT):
        self.limit = limit

    @property
    def filename(self) -> str:
        return "rss.xml"

    def enabled(self, site: SiteContext) -> bool:
        return site.config.site.generate_rss

    def generate(self, site: SiteContext) -> str | None:
        config = site.config
        if not config.base_url:
            logger.warning("Skipping %s: base_url is not configured", self.filename)
            return None

        title = escape_html(config.site.title)
        description = escape_html(config.site.description or config.site.title)
        lines = [
            '<?xml version="1.0" encoding="UTF-8"?>',
            '<rss version="2.0">',
            "<channel>",
            f"<title>{title}</title>",
            f"<link>{escape_html(config.base_url)}</link>",
            f"<description>{description}</description>",
        ]
        for post in site.posts[: self.limit]:
            link = escape_html(_absolute_url(site, post))
            lines.append("<item>")
            lines.append(f"<title>{escape_html(post.title)}</title>")
            lines.append(f"<link>{link}</link>")
            lines.append(f"<guid>{link}</guid>")
            pub_date = rfc2822_date(post.date)
            if pub_date:
                lines.append(f"<pubDate>{pub_date}</pubDate>")
            body = post.raw_content[:RSS_DESCRIPTION_LENGTH]
            lines.append(f"<description>{escape_html(body)}</description>")
            lines.append("</item>")
        lines.append("</channel>")
        lines.append("</rss>")
        return "\n".join(lines) + "\n"


class SearchIndexGenerator(FeedGenerator):
    """Generates ``search.json`` with one entry per post.

    Each entry carries the title, slug, URL, date, tags and a plain-text
    snippet of the body.
    """

    @property
    def filename(self) -> str:
        return "search.json"

    def enabled(self, site: SiteContext) -> bool:
        return site.config.site.generate_search

    def generate(self, site: SiteContext) -> str | None:
        entries = []
        for post in site.posts:
            text = strip_markdown(post.raw_content) if post.is_markdown else post.raw_content
            entries.append(
                {
                    "title": post.title,
                    "slug": post.slug,
                    "url": site.url_for(post),
                    "date": post.date,
                    "tags": list(post.tags),
                    "snippet": text[:SEARCH_SNIPPET_LENGTH],
                }
            )
        return json.dumps(entries, ensure_ascii=False, indent=2) + "\n"


class SitemapGenerator(FeedGenerator):
    """Generates sitemap.xml for search engine indexing.

    Lists the root index, every post and every page. Requires ``base_url``.
    """

    @property
    def filename(self) -> str:
        return "sitemap.xml"

    def enabled(self, site: SiteContext) -> bool:
        return site.config.site.generate_sitemap

    def generate(self, site: SiteContext) -> str | None:
        base_url = site.config.base_url
        if not base_url:
            logger.warning("Skipping %s: base_url is not configured", self.filename)
            return None

        lines = [
            '<?xml version="1.0" encoding="UTF-8"?>',
            '<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">',
        ]
        root = join_root_url(base_url, site.pagination[0].url if site.pagination else "/")
        lines.append(f"  <url><loc>{escape_html(root)}</loc></url>")
        for post in (*site.posts, *site.pages):
            loc = escape_html(_absolute_url(site, post))
            if post.date:
                lines.append(
                    f"  <url><loc>{loc}</loc><lastmod>{post.date[:10]}</lastmod></url>"
                )
            else:
                lines.append(f"  <url><loc>{loc}</loc></url>")
        lines.append("</urlset>")
        return "\n".join(lines) + "\n"


class FeedRegistry:
    """Registry for managing feed generators.

    Attributes:
        _generators: List of registered feed generators.
    """

    def __init__(self) -> None:
        self._generators: list[FeedGenerator] = []

    def register(self, generator: FeedGenerator) -> None:
        self._generators.append(generator)

    @property
    def generators(self) -> list[FeedGenerator]:
        return list(self._generators)

    def generate_all(self, output_dir: Path, site: SiteContext) -> list[Path]:
        """Run every registered generator.

        Args:
            output_dir: Directory to write feed files to.
            site: Assembled site context.

        Returns:
            Paths of the feed files that were written.
        """
        written = []
        for generator in self._generators:
            path = generator.write(output_dir, site)
            if path is not None:
                written.append(path)
        return written


def create_default_feed_registry() -> FeedRegistry:
    """Create a registry with the RSS, search index and sitemap generators."""
    registry = FeedRegistry()
    registry.register(RSSGenerator())
    registry.register(SearchIndexGenerator())
    registry.register(SitemapGenerator())
    return registry
