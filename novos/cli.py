"""Command-line interface for novos.

This module defines the CLI commands using the Click framework.

Commands:
- init: Scaffold the default site into a directory.
- build: Build the site into the output directory.
- serve: Run the development server with live reload.
- post: Create a new post interactively.
"""

from __future__ import annotations

import logging
import shutil
from datetime import datetime
from pathlib import Path

import click
import questionary
import yaml

from . import __version__
from .config import CONFIG_FILENAME, ConfigError, load_config
from .utils import slugify

# Path to the bundled default site
_SCAFFOLD_DIR = Path(__file__).parent / "scaffold" / "default"


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(message)s",
        force=True,
    )


@click.group()
@click.version_option(version=__version__, prog_name="novos")
@click.option("-v", "--verbose", is_flag=True, help="Show build phases and progress")
def cli(verbose: bool):
    """novos static site generator."""
    _configure_logging(verbose)


def _require_project(project_root: Path):
    if not (project_root / CONFIG_FILENAME).exists():
        raise click.ClickException(
            f"{CONFIG_FILENAME} not found. Run 'novos init' to begin."
        )
    try:
        return load_config(project_root)
    except ConfigError as exc:
        click.echo(click.style("Configuration error:", fg="red", bold=True), err=True)
        click.echo(click.style(f"  {exc}", fg="white"), err=True)
        raise SystemExit(1) from None


def _relative(path: Path, root: Path) -> Path:
    try:
        return path.relative_to(root)
    except ValueError:
        return path


@cli.command()
@click.argument("directory", required=False, default=".")
def init(directory: str):
    """Scaffold the default site, keeping files that already exist."""
    target = Path(directory).resolve()
    created, skipped = _scaffold(target)
    for path in skipped:
        click.echo(click.style(f"  exists  {_relative(path, target)}", fg="yellow"))
    click.echo(
        click.style("success", fg="cyan")
        + f" Project initialized at {target} ({len(created)} files created)"
    )


@cli.command()
def build():
    """Build the site into the output directory."""
    project_root = Path.cwd()
    config = _require_project(project_root)
    from .build import BuildError, build_site

    try:
        result = build_site(project_root, config=config)
    except BuildError as exc:
        rel_path = _relative(exc.source_path, project_root)
        click.echo(click.style("Build failed:", fg="red", bold=True), err=True)
        click.echo(click.style(f"  File: {rel_path}", fg="yellow"), err=True)
        click.echo(click.style(f"  Error: {exc.message}", fg="white"), err=True)
        raise SystemExit(1) from None

    for failure in result.failures:
        click.echo(
            click.style("  skipped ", fg="yellow") + f"{failure.source}: {failure.message}",
            err=True,
        )
    click.echo(
        click.style("success", fg="cyan")
        + f" Built {len(result.posts)} posts and {len(result.pages)} pages"
        f" into {_relative(result.output_dir, project_root)} in {result.duration:.2f}s"
    )


@cli.command()
@click.option(
    "--port",
    type=int,
    required=False,
    help=f"Port to run the dev server (overrides {CONFIG_FILENAME})",
)
def serve(port: int | None):
    """Run dev server with live reload."""
    project_root = Path.cwd()
    config = _require_project(project_root)
    from .build import BuildError
    from .server import DevServer

    server = DevServer(project_root, port=port, config=config)
    click.echo(f"novos serve v{__version__}")
    click.echo(f"Starting server on port {server.http_port}...")
    try:
        server.start()
    except BuildError as exc:
        click.echo(click.style("Build failed:", fg="red", bold=True), err=True)
        click.echo(click.style(f"  File: {_relative(exc.source_path, project_root)}", fg="yellow"), err=True)
        click.echo(click.style(f"  Error: {exc.message}", fg="white"), err=True)
        raise SystemExit(1) from None


@cli.command()
def post():
    """Create a new post interactively."""
    project_root = Path.cwd()
    config = _require_project(project_root)
    posts_dir = config.posts_dir

    title = questionary.text(
        "Title:",
        validate=lambda x: len(x.strip()) > 0 or "Title cannot be empty",
        style=_questionary_style(),
    ).ask()
    if title is None:
        raise click.Abort()
    title = title.strip()

    tags = questionary.text(
        "Tags (comma separated):",
        style=_questionary_style(),
    ).ask()
    if tags is None:
        raise click.Abort()

    add_date = questionary.confirm(
        "Prefix with today's date? (YYYY-MM-DD-)",
        default=True,
        style=_questionary_style(),
    ).ask()
    if add_date is None:
        raise click.Abort()

    today = datetime.now()
    slug = slugify(title)
    filename = f"{today:%Y-%m-%d}-{slug}.md" if add_date else f"{slug}.md"
    target_path = posts_dir / filename

    existing = [p for p in _iter_markdown(posts_dir) if slugify(p.stem) == slug]
    if existing:
        raise click.ClickException(
            f"A post with slug '{slug}' already exists: {existing[0].name}"
        )

    posts_dir.mkdir(parents=True, exist_ok=True)
    target_path.write_text(_post_template(title, today, tags), encoding="utf-8")
    click.echo(f"Created {_relative(target_path, project_root)}")


def _iter_markdown(folder: Path) -> list[Path]:
    if not folder.is_dir():
        return []
    return sorted(p for p in folder.iterdir() if p.is_file() and p.suffix == ".md")


def _post_template(title: str, date: datetime, tags: str) -> str:
    """Return the source of a new post with YAML front matter."""
    metadata = {
        "title": title,
        "date": date.strftime("%Y-%m-%d"),
        "tags": [t.strip() for t in tags.split(",") if t.strip()],
    }
    front = yaml.safe_dump(metadata, sort_keys=False, allow_unicode=True)
    return f"---\n{front}---\n\nWrite something.\n"


def _questionary_style():
    """Return consistent questionary style."""
    return questionary.Style(
        [
            ("qmark", "fg:cyan bold"),
            ("question", "bold"),
            ("answer", "fg:cyan"),
            ("pointer", "fg:cyan bold"),
            ("highlighted", "fg:cyan bold"),
            ("selected", "fg:cyan"),
        ]
    )


def main():
    """Entry point for the CLI application."""
    cli()


def _scaffold(root: Path) -> tuple[list[Path], list[Path]]:
    """Copy the bundled default site into ``root``.

    Existing files are never overwritten.

    Returns:
        Created and skipped destination paths.
    """
    created, skipped = [], []
    for src_path in sorted(_SCAFFOLD_DIR.rglob("*")):
        if src_path.is_dir():
            continue
        dest_path = root / src_path.relative_to(_SCAFFOLD_DIR)
        if dest_path.exists():
            skipped.append(dest_path)
            continue
        dest_path.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(src_path, dest_path)
        created.append(dest_path)
    return created, skipped
