"""HTML utility functions for novos.

This module provides HTML string manipulation used by the render stage:
escaping, URL joining, dev-script injection and minification.

Functions:
    escape_html: Escape special HTML characters in a string.
    join_root_url: Join a base URL with a path.
    site_path: Build a root-relative URL under the configured sub-path.
    inject_script: Insert a script before ``</body>``.
    minify: Minify an HTML document.
"""

from __future__ import annotations

import minify_html


def escape_html(text: str) -> str:
    """Escape special HTML characters in a string.

    Examples:
        >>> escape_html('Tom & Jerry')
        'Tom &amp; Jerry'
    """
    return (
        text.replace("&", "&amp;")
        .replace("<", "&lt;")
        .replace(">", "&gt;")
        .replace('"', "&quot;")
        .replace("'", "&#x27;")
    )


def join_root_url(root_url: str, path: str) -> str:
    """Safely join a root URL and a path, avoiding double slashes.

    Examples:
        >>> join_root_url('https://example.com/', 'about')
        'https://example.com/about'
    """
    if not root_url:
        return path
    base = root_url.rstrip("/")
    suffix = path if path.startswith("/") else f"/{path}"
    return f"{base}{suffix}"


def site_path(base: str, *parts: str) -> str:
    """Return a root-relative URL for ``parts`` under the site sub-path.

    Examples:
        >>> site_path("/blog/", "posts", "hello.html")
        '/blog/posts/hello.html'
        >>> site_path("", "", "about.html")
        '/about.html'
    """
    segments = [s.strip("/") for s in (base, *parts) if s and s.strip("/")]
    return "/" + "/".join(segments)


def inject_script(html: str, script: str) -> str:
    """Insert ``script`` before the closing body tag, or append it."""
    index = html.rfind("</body>")
    if index == -1:
        return html + script
    return html[:index] + script + html[index:]


def minify(html: str) -> str:
    """Minify an HTML document, including inline scripts and styles."""
    return minify_html.minify(html, minify_js=True, minify_css=True)
