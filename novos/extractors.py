"""Front matter extraction for novos.

Content files may start with a metadata block delimited by ``---`` (YAML)
or ``+++`` (TOML). The block yields the title, date and tags of the item;
any other keys are kept as extra metadata for templates.

Key functions:
- extract_frontmatter: Split a raw file into metadata and body.
- normalize_tags: Accept tag lists or comma-separated strings.
- normalize_date: Turn YAML/TOML dates into sortable strings.
"""

from __future__ import annotations

import logging
import re
import tomllib
from datetime import date, datetime
from typing import Any

import yaml

logger = logging.getLogger(__name__)

YAML_FRONTMATTER_RE = re.compile(r"\A---[ \t]*\r?\n(.*?)\r?\n---[ \t]*(?:\r?\n|\Z)", re.DOTALL)
TOML_FRONTMATTER_RE = re.compile(r"\A\+\+\+[ \t]*\r?\n(.*?)\r?\n\+\+\+[ \t]*(?:\r?\n|\Z)", re.DOTALL)


def extract_frontmatter(text: str) -> tuple[dict[str, Any], str]:
    """Extract YAML or TOML front matter from content.

    Args:
        text: Raw file content.

    Returns:
        Tuple of (front matter dict, remaining content). When the block is
        missing or cannot be parsed the dict is empty; an unparseable block
        is still removed from the body.
    """
    for pattern, parser in (
        (YAML_FRONTMATTER_RE, _parse_yaml),
        (TOML_FRONTMATTER_RE, _parse_toml),
    ):
        match = pattern.match(text)
        if not match:
            continue
        body = text[match.end() :].strip()
        data = parser(match.group(1))
        if data is None:
            return {}, body
        return data, body
    return {}, text.strip()


def _parse_yaml(block: str) -> dict[str, Any] | None:
    try:
        data = yaml.safe_load(block) or {}
    except yaml.YAMLError as exc:
        logger.warning("Ignoring unparseable YAML front matter: %s", exc)
        return None
    return data if isinstance(data, dict) else None


def _parse_toml(block: str) -> dict[str, Any] | None:
    try:
        return tomllib.loads(block)
    except tomllib.TOMLDecodeError as exc:
        logger.warning("Ignoring unparseable TOML front matter: %s", exc)
        return None


def normalize_tags(value: Any) -> tuple[str, ...]:
    """Normalise a front matter ``tags`` value.

    Examples:
        >>> normalize_tags("rust, web")
        ('rust', 'web')
        >>> normalize_tags(["a", "a", "b"])
        ('a', 'b')
    """
    if value is None:
        return ()
    if isinstance(value, str):
        raw = value.split(",")
    elif isinstance(value, (list, tuple, set)):
        raw = [str(v) for v in value]
    else:
        raw = [str(value)]
    tags: list[str] = []
    for tag in raw:
        cleaned = tag.strip().strip("\"'").strip()
        if cleaned and cleaned not in tags:
            tags.append(cleaned)
    return tuple(tags)


def normalize_date(value: Any) -> str:
    """Return a sortable date string for a front matter ``date`` value."""
    if value is None:
        return ""
    if isinstance(value, datetime):
        return value.isoformat(sep=" ") if value.time() != datetime.min.time() else value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    return str(value).strip()
