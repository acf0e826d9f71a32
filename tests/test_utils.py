import os
from datetime import datetime
from pathlib import Path

from novos.html_utils import escape_html, inject_script, join_root_url, minify, site_path
from novos.utils import (
    ensure_clean_dir,
    extract_date_from_name,
    is_markdown,
    slugify,
    write_text_if_changed,
)


def test_slugify_and_dates():
    assert slugify("2024-01-15-Hello World") == "hello-world"
    assert slugify("About_Us") == "about-us"
    assert slugify("---") == "index"


def test_slugify_keeps_non_ascii_letters():
    assert slugify("日本語") == "日本語"
    assert slugify("中文") == "中文"
    assert slugify("2024-03-01-Привет Мир") == "привет-мир"
    assert slugify("Über_Straße!") == "über-straße"
    assert slugify("C++") == "c"
    assert extract_date_from_name("2024-01-15-hello") == datetime(2024, 1, 15)
    assert extract_date_from_name("2024-13-40-bad") is None
    assert extract_date_from_name("hello") is None


def test_is_markdown():
    assert is_markdown(Path("post.md"))
    assert is_markdown(Path("POST.MD"))
    assert not is_markdown(Path("page.html"))


def test_ensure_clean_dir(tmp_path):
    target = tmp_path / "out"
    (target / "nested").mkdir(parents=True)
    (target / "nested" / "file.txt").write_text("x", encoding="utf-8")
    ensure_clean_dir(target)
    assert target.exists()
    assert list(target.iterdir()) == []

    fresh = tmp_path / "fresh"
    ensure_clean_dir(fresh)
    assert fresh.is_dir()


def test_write_text_if_changed(tmp_path):
    path = tmp_path / "feed.xml"
    assert write_text_if_changed(path, "one") is True
    stamp = path.stat().st_mtime
    os.utime(path, (stamp - 100, stamp - 100))
    assert write_text_if_changed(path, "one") is False
    assert abs(path.stat().st_mtime - (stamp - 100)) < 1
    assert write_text_if_changed(path, "two") is True
    assert path.read_text(encoding="utf-8") == "two"


def test_html_helpers():
    assert escape_html("<a href='x'>&</a>") == "&lt;a href=&#x27;x&#x27;&gt;&amp;&lt;/a&gt;"
    assert join_root_url("https://example.com/", "/about.html") == "https://example.com/about.html"
    assert join_root_url("", "/about.html") == "/about.html"
    assert site_path("", "posts", "a.html") == "/posts/a.html"
    assert site_path("/blog/", "", "a.html") == "/blog/a.html"


def test_inject_script_before_last_body():
    html = "<html><body>x</body></html>"
    assert inject_script(html, "<s>") == "<html><body>x<s></body></html>"
    assert inject_script("<p>x</p>", "<s>") == "<p>x</p><s>"
    nested = "<body>a</body><body>b</body>"
    assert inject_script(nested, "<s>") == "<body>a</body><body>b<s></body>"


def test_minify_shrinks_markup():
    html = "<html>\n  <body>\n    <p>  Hello   world  </p>\n  </body>\n</html>"
    result = minify(html)
    assert "Hello" in result
    assert len(result) < len(html)

