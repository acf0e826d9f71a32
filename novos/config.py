"""Project configuration for novos.

Configuration lives in ``novos.yaml`` at the project root. Missing keys fall
back to ``DEFAULT_CONFIG``; nested ``site`` and ``build`` sections are merged
key by key so a project only states what it changes.

Key functions:
- load_config: Load and validate configuration into a Config.
- load_data: Load free-form YAML data files for templates.
"""

from __future__ import annotations

import copy
import logging
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "novos.yaml"

DEFAULT_CONFIG: dict[str, Any] = {
    "posts_dir": "posts",
    "pages_dir": "pages",
    "output_dir": "output",
    "static_dir": "static",
    "sass_dir": "sass",
    "templates_dir": "templates",
    "data_dir": "data",
    "posts_outdir": "posts",
    "theme": None,
    "base_url": "",
    "base": "",
    "port": 8080,
    "site": {
        "title": "Novos",
        "description": "",
        "generate_rss": True,
        "generate_search": False,
        "generate_sitemap": False,
    },
    "build": {
        "clean_output": True,
        "minify_html": True,
        "use_syntax_highlighting": True,
        "syntax_theme": "monokai",
        "sass_style": "expanded",
        "convert_to_webp": False,
        "image_quality": 75,
        "posts_per_page": 0,
        "workers": None,
    },
}

SASS_STYLES = ("expanded", "compressed")


class ConfigError(Exception):
    """Raised when novos.yaml or a data file holds a value the build cannot use.

    Attributes:
        path: File the bad value came from, when known.
    """

    def __init__(self, message: str, path: Path | None = None):
        super().__init__(message)
        self.path = path


@dataclass(frozen=True)
class SiteSettings:
    title: str = "Novos"
    description: str = ""
    generate_rss: bool = True
    generate_search: bool = False
    generate_sitemap: bool = False


@dataclass(frozen=True)
class BuildSettings:
    clean_output: bool = True
    minify_html: bool = True
    use_syntax_highlighting: bool = True
    syntax_theme: str = "monokai"
    sass_style: str = "expanded"
    convert_to_webp: bool = False
    image_quality: int = 75
    posts_per_page: int = 0
    workers: int | None = None


@dataclass(frozen=True)
class Config:
    """Resolved project configuration.

    Source directories that take part in theme overlay (static, sass,
    templates, data) stay relative names; the theme resolver turns them
    into paths. Everything else is resolved against the project root.

    Attributes:
        project_root: Root directory of the project.
        posts_dir: Directory holding blog posts.
        pages_dir: Directory holding standalone pages.
        output_dir: Directory the site is built into.
        theme: Optional theme name, looked up under ``themes/``.
        base_url: Production URL, used for feeds and reference rewriting.
        base: Sub-path the site is served from, e.g. ``/blog``.
    """

    project_root: Path
    posts_dir: Path
    pages_dir: Path
    output_dir: Path
    static_dir: str = "static"
    sass_dir: str = "sass"
    templates_dir: str = "templates"
    data_dir: str = "data"
    posts_outdir: str = "posts"
    theme: str | None = None
    base_url: str = ""
    base: str = ""
    port: int = 8080
    site: SiteSettings = field(default_factory=SiteSettings)
    build: BuildSettings = field(default_factory=BuildSettings)

    @property
    def theme_root(self) -> Path | None:
        if not self.theme:
            return None
        return self.project_root / "themes" / self.theme

    def to_context(self) -> dict[str, Any]:
        """Return the configuration as plain values for templates."""
        values = asdict(self)
        for key in ("project_root", "posts_dir", "pages_dir", "output_dir"):
            values[key] = str(values[key])
        return values


def _merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _known(section: dict[str, Any], cls) -> dict[str, Any]:
    names = cls.__dataclass_fields__.keys()
    return {k: v for k, v in section.items() if k in names}


def config_from_mapping(project_root: Path, raw: dict[str, Any]) -> Config:
    """Build a validated Config from a raw mapping merged over defaults.

    Args:
        project_root: Root directory of the project.
        raw: Mapping as loaded from novos.yaml.

    Returns:
        Validated Config instance.

    Raises:
        ConfigError: If a value is out of range or of the wrong shape.
    """
    for section in ("site", "build"):
        if section in raw and not isinstance(raw[section], dict):
            raise ConfigError(f"'{section}' must be a mapping")
    values = _merge(DEFAULT_CONFIG, raw)
    site = SiteSettings(**_known(values.pop("site"), SiteSettings))
    build_values = _known(values.pop("build"), BuildSettings)

    try:
        build_values["posts_per_page"] = int(build_values["posts_per_page"] or 0)
        build_values["image_quality"] = int(build_values["image_quality"])
        if build_values["workers"] is not None:
            build_values["workers"] = int(build_values["workers"])
        port = int(values["port"])
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Expected an integer: {exc}") from exc

    if build_values["posts_per_page"] < 0:
        raise ConfigError("build.posts_per_page must be zero or positive")
    if not 0 <= build_values["image_quality"] <= 100:
        raise ConfigError("build.image_quality must be between 0 and 100")
    if build_values["workers"] is not None and build_values["workers"] < 1:
        raise ConfigError("build.workers must be at least 1")
    if build_values["sass_style"] not in SASS_STYLES:
        raise ConfigError(
            f"build.sass_style must be one of {', '.join(SASS_STYLES)}"
        )

    return Config(
        project_root=project_root,
        posts_dir=project_root / values["posts_dir"],
        pages_dir=project_root / values["pages_dir"],
        output_dir=project_root / values["output_dir"],
        static_dir=str(values["static_dir"]),
        sass_dir=str(values["sass_dir"]),
        templates_dir=str(values["templates_dir"]),
        data_dir=str(values["data_dir"]),
        posts_outdir=str(values["posts_outdir"] or "").strip("/"),
        theme=values["theme"] or None,
        base_url=str(values["base_url"] or ""),
        base=str(values["base"] or ""),
        port=port,
        site=site,
        build=BuildSettings(**build_values),
    )


def load_config(project_root: Path) -> Config:
    """Load site configuration from novos.yaml.

    Args:
        project_root: Root directory of the project.

    Returns:
        Config with defaults applied.

    Raises:
        ConfigError: If the file cannot be parsed or holds invalid values.
    """
    config_path = project_root / CONFIG_FILENAME
    raw: dict[str, Any] = {}
    if config_path.exists():
        try:
            with open(config_path, encoding="utf-8") as f:
                loaded = yaml.safe_load(f) or {}
        except yaml.YAMLError as exc:
            raise ConfigError(f"Cannot parse {config_path.name}: {exc}") from exc
        if not isinstance(loaded, dict):
            raise ConfigError(f"{config_path.name} must contain a mapping")
        raw = loaded
    else:
        logger.debug("No %s found; using defaults", CONFIG_FILENAME)
    return config_from_mapping(project_root, raw)


def load_data(data_dir: Path) -> dict[str, Any]:
    """Load site data from YAML files in the data directory.

    ``site.yaml`` merges into the root of the result; every other file is
    stored under its stem.

    Args:
        data_dir: Resolved data directory.

    Returns:
        Dictionary containing merged data from all YAML files.

    Raises:
        ConfigError: If a data file cannot be read or parsed.
    """
    data: dict[str, Any] = {}
    if not data_dir.is_dir():
        return data
    for path in sorted(data_dir.glob("*.yaml")):
        try:
            with open(path, encoding="utf-8") as f:
                payload = yaml.safe_load(f)
        except (OSError, UnicodeDecodeError, yaml.YAMLError) as exc:
            raise ConfigError(f"Cannot load data file {path.name}: {exc}", path) from exc
        if payload is None:
            continue
        if path.name == "site.yaml":
            if isinstance(payload, dict):
                data.update(payload)
            continue
        data[path.stem] = payload
    return data
