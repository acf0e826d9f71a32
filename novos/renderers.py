"""Markdown rendering for novos.

Markdown is rendered with mistune. Fenced code blocks are highlighted with
Pygments using inline styles, so pages need no extra stylesheet; a language
Pygments does not know is rendered as plain text through the same path.

Key classes and functions:
- MarkdownRenderer: Markdown to HTML with optional highlighting.
- strip_markdown: Plain text of a Markdown document, for search snippets.
"""

from __future__ import annotations

from typing import Any

import mistune
from pygments import highlight
from pygments.formatters import HtmlFormatter
from pygments.lexers import TextLexer, get_lexer_by_name
from pygments.styles import get_style_by_name
from pygments.util import ClassNotFound

DEFAULT_STYLE = "monokai"
PLUGINS = ["strikethrough", "footnotes", "table", "url", "task_lists"]


def resolve_style(name: str | None) -> str:
    """Return ``name`` if Pygments knows the style, else the default style."""
    if name:
        try:
            get_style_by_name(name)
            return name
        except ClassNotFound:
            pass
    return DEFAULT_STYLE


class _HighlightRenderer(mistune.HTMLRenderer):
    """HTML renderer that highlights fenced code with Pygments.

    Attributes:
        style: Pygments style name.
    """

    def __init__(self, style: str):
        super().__init__(escape=False)
        self.style = style

    def block_code(self, code: str, info: str | None = None) -> str:
        """Render a code block with Pygments syntax highlighting.

        Args:
            code: The code content.
            info: Info string of the fence; its first word names the language.

        Returns:
            HTML string with highlighted code.
        """
        language = info.split()[0] if info and info.strip() else ""
        try:
            lexer = get_lexer_by_name(language, stripall=True) if language else TextLexer()
        except ClassNotFound:
            lexer = TextLexer()
        formatter = HtmlFormatter(style=self.style, noclasses=True, nowrap=False)
        return highlight(code, lexer, formatter)


class MarkdownRenderer:
    """Renders Markdown content to HTML.

    A fresh mistune parser is created per call, so one renderer can be shared
    by parallel render tasks.

    Attributes:
        highlight: Whether fenced code blocks are highlighted.
        style: Pygments style used for highlighting.
    """

    def __init__(self, highlight: bool = True, style: str | None = DEFAULT_STYLE):
        self.highlight = highlight
        self.style = resolve_style(style)

    def render(self, text: str) -> str:
        if self.highlight:
            renderer: mistune.HTMLRenderer = _HighlightRenderer(self.style)
        else:
            renderer = mistune.HTMLRenderer(escape=False)
        markdown = mistune.create_markdown(renderer=renderer, plugins=PLUGINS)
        return markdown(text)


_TEXT_TOKENS = {"text", "codespan", "block_code"}


def _collect_text(tokens: list[dict[str, Any]], out: list[str]) -> None:
    for token in tokens:
        kind = token.get("type")
        if kind in _TEXT_TOKENS and token.get("raw"):
            out.append(token["raw"])
        children = token.get("children")
        if isinstance(children, list):
            _collect_text(children, out)


def strip_markdown(text: str) -> str:
    """Strip Markdown syntax to produce clean plain text.

    Args:
        text: Markdown source.

    Returns:
        Text and code content joined by single spaces.
    """
    parse = mistune.create_markdown(renderer="ast", plugins=PLUGINS)
    pieces: list[str] = []
    _collect_text(parse(text), pieces)
    return " ".join(" ".join(piece.split()) for piece in pieces if piece.strip())
