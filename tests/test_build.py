import os
import time
from pathlib import Path

import pytest
from PIL import Image

from novos.build import BuildError, build_site, run_phase
from novos.config import load_config
from novos.staleness import BuildClock
from novos.styles import StylesheetError


class DummyCompiler:
    def __init__(self, css="body{color:red}"):
        self.css = css
        self.calls = []

    def compile(self, path, style="expanded", load_paths=()):
        self.calls.append(path.name)
        return self.css


class FailingCompiler:
    def compile(self, path, style="expanded", load_paths=()):
        raise StylesheetError(path, "Error: expected '}'")


def create_project(tmp_path: Path, config: str = "") -> Path:
    project = tmp_path
    for folder in ("posts", "pages", "templates", "static/js", "sass", "data"):
        (project / folder).mkdir(parents=True)
    (project / "novos.yaml").write_text(
        "base_url: https://example.com\n"
        "site:\n  title: Test Site\n  generate_search: true\n"
        "build:\n  minify_html: false\n  clean_output: false\n" + config,
        encoding="utf-8",
    )
    templates = project / "templates"
    (templates / "index.html").write_text(
        "<html><body>{% if tag %}TAG {{ tag }}:{% endif %}"
        "{% for p in posts %}[{{ p.title }}]{% endfor %}"
        "{% if pagination %} page {{ pagination.number }}/{{ pagination.total_pages }}{% endif %}"
        "</body></html>",
        encoding="utf-8",
    )
    (templates / "post.html").write_text(
        "<html><body><h1>{{ post.title }}</h1>{{ content }} by {{ data.author }}</body></html>",
        encoding="utf-8",
    )
    (templates / "page.html").write_text(
        "<html><body>{{ content }}</body></html>", encoding="utf-8"
    )
    (project / "posts" / "2024-01-01-first.md").write_text(
        "---\ntitle: First\ntags: [python, notes]\n---\nHello **world**", encoding="utf-8"
    )
    (project / "posts" / "2024-02-01-second.md").write_text(
        "---\ntitle: Second\ntags: [python]\n---\n![pic](/img/pic.png)", encoding="utf-8"
    )
    (project / "posts" / "third.md").write_text(
        "---\ntitle: Third\ndate: 2024-03-01\n---\nThird body", encoding="utf-8"
    )
    (project / "pages" / "about.md").write_text("# About us", encoding="utf-8")
    (project / "pages" / "raw.html").write_text("<p>raw html</p>", encoding="utf-8")
    (project / "static" / "js" / "app.js").write_text("let x = 1;", encoding="utf-8")
    (project / "sass" / "main.scss").write_text("body { color: red; }", encoding="utf-8")
    (project / "data" / "site.yaml").write_text("author: Ada\n", encoding="utf-8")
    return project


def build(project, **kwargs):
    kwargs.setdefault("compiler", DummyCompiler())
    return build_site(project, config=load_config(project), **kwargs)


def read(path: Path) -> str:
    return path.read_text(encoding="utf-8")


def test_full_build(tmp_path):
    project = create_project(tmp_path)
    compiler = DummyCompiler()
    result = build(project, compiler=compiler)
    out = project / "output"

    assert result.ok
    assert [p.slug for p in result.posts] == ["third", "second", "first"]
    assert {p.slug for p in result.pages} == {"about", "raw"}
    assert result.data == {"author": "Ada"}

    assert read(out / "index.html") == "<html><body>[Third][Second][First] page 1/1</body></html>"
    post = read(out / "posts" / "first.html")
    assert "<h1>First</h1>" in post
    assert "<strong>world</strong>" in post
    assert "by Ada" in post
    assert "<h1>About us</h1>" in read(out / "about.html")
    assert read(out / "raw.html") == "<html><body><p>raw html</p></body></html>"
    assert read(out / "tags" / "python.html").startswith("<html><body>TAG python:[Second][First]")
    assert read(out / "tags" / "notes.html").startswith("<html><body>TAG notes:[First]")
    assert read(out / "css" / "main.css") == "body{color:red}"
    assert compiler.calls == ["main.scss"]
    assert read(out / "js" / "app.js") == "let x = 1;"
    assert "<link>https://example.com/posts/third.html</link>" in read(out / "rss.xml")
    assert (out / "search.json").exists()
    assert not (out / "sitemap.xml").exists()
    assert out / "posts" / "first.html" in result.written


def test_incremental_rebuild(tmp_path):
    project = create_project(tmp_path)
    clock = BuildClock()
    build(project, clock=clock)
    assert clock.read() > 0

    second = build(project, clock=clock)
    assert second.written == []

    source = project / "posts" / "2024-01-01-first.md"
    source.write_text("---\ntitle: First\ntags: [python, notes]\n---\nChanged body", encoding="utf-8")
    future = time.time() + 60
    os.utime(source, (future, future))
    third = build(project, clock=clock)
    out = project / "output"
    assert out / "posts" / "first.html" in third.written
    assert out / "posts" / "second.html" not in third.written
    assert out / "index.html" not in third.written
    assert "Changed body" in read(out / "posts" / "first.html")

    (out / "posts" / "second.html").unlink()
    fourth = build(project, clock=BuildClock(clock.read() + 3600))
    assert out / "posts" / "second.html" in fourth.written


def test_clean_output_removes_stale_files(tmp_path):
    project = create_project(tmp_path, config="")
    (project / "novos.yaml").write_text(
        read(project / "novos.yaml").replace("clean_output: false", "clean_output: true"),
        encoding="utf-8",
    )
    out = project / "output"
    out.mkdir()
    (out / "leftover.html").write_text("old", encoding="utf-8")
    build(project)
    assert not (out / "leftover.html").exists()
    assert (out / "index.html").exists()


def test_pagination(tmp_path):
    project = create_project(tmp_path, config="  posts_per_page: 2\n")
    build(project)
    out = project / "output"
    assert read(out / "index.html") == "<html><body>[Third][Second] page 1/2</body></html>"
    assert read(out / "page" / "2" / "index.html") == "<html><body>[First] page 2/2</body></html>"
    assert not (out / "page" / "3").exists()


def test_template_failure_is_not_fatal(tmp_path):
    project = create_project(tmp_path)
    (project / "templates" / "page.html").write_text("{{ post.missing.attr }}", encoding="utf-8")
    clock = BuildClock()
    result = build(project, clock=clock)
    assert not result.ok
    assert sorted(Path(f.source).name for f in result.failures) == ["about.md", "raw.html"]
    assert (project / "output" / "posts" / "first.html").exists()
    assert not (project / "output" / "about.html").exists()
    assert clock.read() > 0


def test_missing_index_template_is_fatal(tmp_path):
    project = create_project(tmp_path)
    (project / "templates" / "index.html").unlink()
    clock = BuildClock()
    with pytest.raises(BuildError) as excinfo:
        build(project, clock=clock)
    assert "not found" in excinfo.value.message
    assert excinfo.value.source_path.name == "index.html"
    assert clock.read() == 0.0


def test_template_syntax_error_is_fatal(tmp_path):
    project = create_project(tmp_path)
    (project / "templates" / "post.html").write_text("{% for %}", encoding="utf-8")
    with pytest.raises(BuildError) as excinfo:
        build(project)
    assert excinfo.value.source_path.name == "post.html"
    assert "syntax error" in excinfo.value.message


def test_stylesheet_failure_aborts_build(tmp_path):
    project = create_project(tmp_path)
    clock = BuildClock()
    with pytest.raises(BuildError) as excinfo:
        build(project, clock=clock, compiler=FailingCompiler())
    assert excinfo.value.source_path == project / "sass" / "main.scss"
    assert "expected" in excinfo.value.message
    assert clock.read() == 0.0
    assert not (project / "output" / "index.html").exists()


def test_duplicate_slugs_abort_build(tmp_path):
    project = create_project(tmp_path)
    (project / "posts" / "first.md").write_text("dup", encoding="utf-8")
    with pytest.raises(BuildError) as excinfo:
        build(project)
    assert "first" in excinfo.value.message


def test_page_colliding_with_index_aborts(tmp_path):
    project = create_project(tmp_path, config="")
    (project / "novos.yaml").write_text(
        read(project / "novos.yaml") + "posts_outdir: ''\n", encoding="utf-8"
    )
    (project / "pages" / "first.md").write_text("same slug as a post", encoding="utf-8")
    with pytest.raises(BuildError) as excinfo:
        build(project)
    assert "also produced by" in excinfo.value.message


def test_non_ascii_posts_and_tags_get_distinct_outputs(tmp_path):
    project = create_project(tmp_path)
    (project / "posts" / "日本語.md").write_text(
        "---\ntitle: Nihongo\ndate: 2023-01-01\ntags: [日本語]\n---\nA", encoding="utf-8"
    )
    (project / "posts" / "中文.md").write_text(
        "---\ntitle: Zhongwen\ndate: 2023-01-02\ntags: [中文]\n---\nB", encoding="utf-8"
    )
    build(project)
    out = project / "output"
    assert "Nihongo" in read(out / "posts" / "日本語.html")
    assert "Zhongwen" in read(out / "posts" / "中文.html")
    assert read(out / "tags" / "日本語.html").startswith("<html><body>TAG 日本語:[Nihongo]")
    assert read(out / "tags" / "中文.html").startswith("<html><body>TAG 中文:[Zhongwen]")
    assert not (out / "tags" / "index.html").exists()


def test_tags_differing_in_case_share_a_page(tmp_path):
    project = create_project(tmp_path)
    (project / "posts" / "third.md").write_text(
        "---\ntitle: Third\ndate: 2024-03-01\ntags: [Python]\n---\nThird body", encoding="utf-8"
    )
    build(project)
    page = read(project / "output" / "tags" / "python.html")
    assert page.startswith("<html><body>TAG Python:[Third][Second][First]")


def test_undecodable_post_aborts_build(tmp_path):
    project = create_project(tmp_path)
    bad = project / "posts" / "bad.md"
    bad.write_bytes(b"\xff\xfe caf\xe9")
    with pytest.raises(BuildError) as excinfo:
        build(project)
    assert excinfo.value.source_path == bad
    assert "bad.md" in excinfo.value.message


def test_malformed_data_file_aborts_build(tmp_path):
    project = create_project(tmp_path)
    menu = project / "data" / "menu.yaml"
    menu.write_text("a: [unclosed\n", encoding="utf-8")
    with pytest.raises(BuildError) as excinfo:
        build(project)
    assert excinfo.value.source_path == menu
    assert "menu.yaml" in excinfo.value.message


def test_output_directory_failure_names_the_directory(tmp_path):
    project = create_project(tmp_path, config="  posts_per_page: 1\n")
    out = project / "output"
    out.mkdir()
    (out / "page").write_text("not a directory", encoding="utf-8")
    with pytest.raises(BuildError) as excinfo:
        build(project)
    assert excinfo.value.source_path == out / "page" / "2"
    assert "Cannot create directory" in excinfo.value.message


def test_theme_overlay(tmp_path):
    project = create_project(tmp_path, config="")
    (project / "novos.yaml").write_text(read(project / "novos.yaml") + "theme: paper\n", encoding="utf-8")
    theme = project / "themes" / "paper"
    (theme / "templates").mkdir(parents=True)
    (theme / "static").mkdir()
    (theme / "templates" / "tag.html").write_text("theme tag {{ tag }}", encoding="utf-8")
    (theme / "templates" / "index.html").write_text("theme index", encoding="utf-8")
    (theme / "static" / "theme.txt").write_text("from theme", encoding="utf-8")
    build(project)
    out = project / "output"
    assert read(out / "tags" / "python.html") == "theme tag python"
    assert read(out / "index.html").startswith("<html><body>[Third]")
    assert read(out / "theme.txt") == "from theme"


def test_webp_conversion_rewrites_references(tmp_path):
    project = create_project(tmp_path, config="  convert_to_webp: true\n")
    (project / "static" / "img").mkdir()
    Image.new("RGB", (3, 3), color="blue").save(project / "static" / "img" / "pic.png")
    build(project, compiler=DummyCompiler("a{background:url(/img/pic.png)}"))
    out = project / "output"
    assert (out / "img" / "pic.webp").exists()
    assert not (out / "img" / "pic.png").exists()
    second = read(out / "posts" / "second.html")
    assert "/img/pic.webp" in second
    assert "pic.png" not in second
    assert read(out / "css" / "main.css") == "a{background:url(/img/pic.webp)}"


def test_dev_script_injected(tmp_path):
    project = create_project(tmp_path)
    build(project, dev_script="<script>reload()</script>")
    out = project / "output"
    for page in (out / "index.html", out / "posts" / "first.html", out / "raw.html"):
        assert read(page).endswith("<script>reload()</script></body></html>")


def test_run_phase_waits_for_every_task():
    from concurrent.futures import ThreadPoolExecutor

    finished = []

    def slow():
        time.sleep(0.05)
        finished.append("slow")

    def boom():
        raise ValueError("boom")

    with ThreadPoolExecutor(max_workers=2) as executor:
        with pytest.raises(ValueError):
            run_phase(executor, [boom, slow])
    assert finished == ["slow"]
