"""Site building functionality for novos.

This module contains the build orchestrator. A build runs four phases, each
fanned out on a shared thread pool and separated by a barrier: every task
of a phase finishes before the next phase starts.

1. Clean the output directory, copy static assets, optimize images.
2. Compile stylesheets.
3. Load content, assemble tags and pagination, render every output.
4. Write distribution files (RSS, search index, sitemap).

Key classes and functions:
- SiteBuilder: Runs the phases for one configuration.
- build_site: Convenience entry point used by the CLI and the dev server.
- BuildError: Fatal build error carrying the offending path.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from concurrent.futures import Executor, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from functools import partial
from pathlib import Path
from typing import Any, TypeVar

from .assets import AssetPipeline
from .config import Config, ConfigError, load_config, load_data
from .content import (
    ContentLoader,
    ContentReadError,
    DuplicateSlugError,
    Post,
    sort_newest_first,
)
from .feeds import FeedRegistry, create_default_feed_registry
from .protocols import MarkupRenderer, StylesheetCompiler, TemplateRenderer
from .render import (
    INDEX_TEMPLATE,
    PAGE_TEMPLATE,
    POST_TEMPLATE,
    RenderFailure,
    RenderOutcome,
    RenderStage,
    SiteContext,
)
from .renderers import MarkdownRenderer
from .staleness import BuildClock
from .styles import SassCompiler, StylesheetError, compile_stylesheets
from .taxonomy import build_taxonomy, paginate, tag_path
from .templates import TemplateEngine, TemplateLoadError
from .themes import ThemeResolver
from .utils import ensure_clean_dir

logger = logging.getLogger(__name__)

T = TypeVar("T")


class BuildError(Exception):
    """Error during site build with file context.

    Attributes:
        source_path: Path to the source file that caused the error.
        message: Human-readable error message.
        original_error: The original exception that was caught.
    """

    def __init__(
        self,
        source_path: Path,
        message: str,
        original_error: Exception | None = None,
    ):
        self.source_path = source_path
        self.message = message
        self.original_error = original_error
        super().__init__(f"{source_path}: {message}")


@dataclass
class BuildResult:
    """Result of a site build operation.

    Attributes:
        posts: Posts, newest first.
        pages: Standalone pages.
        output_dir: Directory where the site was built.
        data: Global site data dictionary.
        written: Output files written by this build.
        failures: Outputs skipped because their template failed.
        duration: Wall-clock build time in seconds.
    """

    posts: list[Post]
    pages: list[Post]
    output_dir: Path
    data: dict[str, Any]
    written: list[Path] = field(default_factory=list)
    failures: list[RenderFailure] = field(default_factory=list)
    duration: float = 0.0

    @property
    def ok(self) -> bool:
        return not self.failures


def run_phase(executor: Executor, tasks: list[Callable[[], T]]) -> list[T]:
    """Run ``tasks`` on ``executor`` and wait for all of them.

    Every task completes, or fails, before this returns. The first failure
    in submission order is then re-raised.
    """
    futures = [executor.submit(task) for task in tasks]
    wait(futures)
    return [future.result() for future in futures]


class SiteBuilder:
    """Builds a site from a resolved configuration.

    Collaborators default to the real implementations and can be replaced,
    which is how the tests stub out the Sass compiler.

    Attributes:
        config: Resolved configuration.
        clock: Shared end-of-last-build timestamp.
        dev_script: Live-reload script injected into every page, or None.
    """

    def __init__(
        self,
        config: Config,
        clock: BuildClock | None = None,
        dev_script: str | None = None,
        markdown: MarkupRenderer | None = None,
        compiler: StylesheetCompiler | None = None,
        feeds: FeedRegistry | None = None,
    ):
        self.config = config
        self.clock = clock or BuildClock()
        self.dev_script = dev_script
        self.resolver = ThemeResolver(config.project_root, config.theme_root)
        self.markdown = markdown or MarkdownRenderer(
            config.build.use_syntax_highlighting, config.build.syntax_theme
        )
        self.compiler = compiler or SassCompiler(config.project_root)
        self.feeds = feeds or create_default_feed_registry()

    @property
    def output_dir(self) -> Path:
        return self.config.output_dir

    @property
    def posts_output_dir(self) -> Path:
        return self.output_dir / self.config.posts_outdir

    def build(self) -> BuildResult:
        """Run all four phases.

        Returns:
            BuildResult describing what was built.

        Raises:
            BuildError: If a phase hits a fatal error. The clock is then left
                untouched so the next build retries every stale item.
        """
        start = time.perf_counter()
        last_build = self.clock.read()
        written: list[Path] = []

        with ThreadPoolExecutor(max_workers=self.config.build.workers) as executor:
            logger.info("[1/4] Preparing output and copying assets...")
            self._prepare_output()
            written.extend(self._copy_assets(executor))

            logger.info("[2/4] Compiling stylesheets...")
            written.extend(self._compile_styles(executor))

            logger.info("[3/4] Rendering content...")
            site = self._collect(executor)
            outcomes = self._render(executor, site, last_build)

        written.extend(o.dest for o in outcomes if o.written)
        failures = [o.failure for o in outcomes if o.failure is not None]

        logger.info("[4/4] Writing feeds...")
        written.extend(self.feeds.generate_all(self.output_dir, site))

        self.clock.mark()
        duration = time.perf_counter() - start
        logger.info(
            "Build complete in %.2fs (%d written, %d failed)",
            duration,
            len(written),
            len(failures),
        )
        return BuildResult(
            posts=list(site.posts),
            pages=list(site.pages),
            output_dir=self.output_dir,
            data=site.data,
            written=written,
            failures=failures,
            duration=duration,
        )

    def _prepare_output(self) -> None:
        try:
            if self.config.build.clean_output:
                logger.debug("cleaning %s", self.output_dir)
                ensure_clean_dir(self.output_dir)
            else:
                self.output_dir.mkdir(parents=True, exist_ok=True)
            self.posts_output_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise BuildError(self.output_dir, f"Cannot prepare output directory: {exc}", exc) from exc

    def _copy_assets(self, executor: Executor) -> list[Path]:
        build = self.config.build
        pipeline = AssetPipeline(
            self.resolver,
            self.config.static_dir,
            self.output_dir,
            minify=build.minify_html,
            optimize_images=build.convert_to_webp,
            image_quality=build.image_quality,
        )
        try:
            return pipeline.run(executor)
        except OSError as exc:
            path = Path(exc.filename) if exc.filename else self.output_dir
            raise BuildError(path, f"Cannot copy static assets: {exc}", exc) from exc

    def _compile_styles(self, executor: Executor) -> list[Path]:
        build = self.config.build
        task = partial(
            compile_stylesheets,
            self.resolver,
            self.config.sass_dir,
            self.output_dir,
            self.compiler,
            style=build.sass_style,
            rewrite_images=build.convert_to_webp,
            base_url=self.config.base_url,
        )
        try:
            (written,) = run_phase(executor, [task])
        except StylesheetError as exc:
            raise BuildError(exc.source, exc.message, exc) from exc
        return written

    def _collect(self, executor: Executor) -> SiteContext:
        config = self.config
        posts_loader = ContentLoader(config.posts_dir, "post", (".md",))
        pages_loader = ContentLoader(config.pages_dir, "page", (".md", ".html"))
        try:
            posts = sort_newest_first(posts_loader.load(executor))
            pages = pages_loader.load(executor)
        except DuplicateSlugError as exc:
            raise BuildError(exc.paths[-1], str(exc), exc) from exc
        except ContentReadError as exc:
            raise BuildError(exc.path, str(exc), exc) from exc

        data_dir = self.resolver.resolve(config.data_dir)
        try:
            data = load_data(data_dir)
        except ConfigError as exc:
            raise BuildError(exc.path or data_dir, str(exc), exc) from exc

        logger.debug("loaded %d posts and %d pages", len(posts), len(pages))
        pagination = paginate(posts, config.build.posts_per_page, config.base)
        return SiteContext(
            config=config,
            posts=tuple(posts),
            pages=tuple(pages),
            data=data,
            taxonomy=build_taxonomy(posts),
            pagination=tuple(pagination),
            is_dev=self.dev_script is not None,
        )

    def _engine(self, site: SiteContext) -> TemplateRenderer:
        engine = TemplateEngine.from_resolver(self.resolver, self.config.templates_dir)
        required = [INDEX_TEMPLATE]
        if site.posts:
            required.append(POST_TEMPLATE)
        if site.pages:
            required.append(PAGE_TEMPLATE)
        for name in required:
            try:
                engine.require(name)
            except TemplateLoadError as exc:
                path = exc.path or self.resolver.resolve(self.config.templates_dir) / name
                raise BuildError(path, exc.message, exc) from exc
        return engine

    def _render(
        self, executor: Executor, site: SiteContext, last_build: float
    ) -> list[RenderOutcome]:
        stage = RenderStage(site, self._engine(site), self.markdown, last_build, self.dev_script)
        tasks: list[Callable[[], RenderOutcome]] = []
        claimed: dict[Path, str] = {}

        def claim(dest: Path, source: str) -> None:
            if dest in claimed:
                raise BuildError(
                    Path(source), f"Output {dest} is also produced by {claimed[dest]}"
                )
            claimed[dest] = source

        for post in site.posts:
            dest = self.posts_output_dir / f"{post.slug}.html"
            claim(dest, str(post.path))
            tasks.append(partial(stage.render_item, post, POST_TEMPLATE, dest))
        for page in site.pages:
            dest = self.output_dir / f"{page.slug}.html"
            claim(dest, str(page.path))
            tasks.append(partial(stage.render_item, page, PAGE_TEMPLATE, dest))
        for listing in site.pagination:
            dest = self.output_dir / listing.output_path
            claim(dest, f"listing page {listing.number}")
            tasks.append(
                partial(
                    stage.render_listing,
                    INDEX_TEMPLATE,
                    dest,
                    listing.items,
                    f"listing page {listing.number}",
                    pagination=listing.to_context(),
                )
            )
        for tag, tagged in site.taxonomy.items():
            dest = self.output_dir / tag_path(tag)
            claim(dest, f"tag '{tag}'")
            tasks.append(
                partial(
                    stage.render_listing,
                    stage.tag_template(tag),
                    dest,
                    tagged,
                    f"tag '{tag}'",
                    tag=tag,
                )
            )

        for directory in sorted({dest.parent for dest in claimed}):
            try:
                directory.mkdir(parents=True, exist_ok=True)
            except OSError as exc:
                raise BuildError(directory, f"Cannot create directory: {exc}", exc) from exc

        return run_phase(executor, tasks)


def build_site(
    project_root: Path,
    config: Config | None = None,
    clock: BuildClock | None = None,
    dev_script: str | None = None,
    **builder_options: Any,
) -> BuildResult:
    """Build the entire static site.

    Args:
        project_root: Root directory of the project.
        config: Resolved configuration; loaded from novos.yaml when omitted.
        clock: Shared build clock; a fresh one makes every item stale.
        dev_script: Live-reload script to inject, for serve mode.
        **builder_options: Collaborators passed to SiteBuilder.

    Returns:
        BuildResult containing posts, pages, written files and failures.
    """
    config = config or load_config(project_root)
    return SiteBuilder(config, clock=clock, dev_script=dev_script, **builder_options).build()
