"""novos static site generator.

This package turns a tree of Markdown content, Jinja2 templates and Sass
sources into a deployable website. In development mode it watches the
project, rebuilds on change and tells connected browsers to reload.

The main entry point is the CLI module, which provides commands for
scaffolding new projects, building sites, running the development server
and creating posts.

Build phases:
- Clean/Assets: copy theme and project static trees, optionally convert images to WebP.
- Styles: compile Sass through the external compiler.
- Content: ingest posts and pages, assemble tags and pagination, render in parallel.
- Distribution: RSS feed, search index and sitemap.
"""

__all__ = ["__version__"]
__version__ = "0.4.0"
