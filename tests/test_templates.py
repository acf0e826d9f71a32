import pytest
from markupsafe import Markup

from novos.templates import TemplateEngine, TemplateLoadError
from novos.themes import ThemeResolver


def write(path, text):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")


def test_renders_with_inheritance_and_autoescape(tmp_path):
    write(tmp_path / "templates" / "base.html", "<main>{% block body %}{% endblock %}</main>")
    write(
        tmp_path / "templates" / "post.html",
        "{% extends 'base.html' %}{% block body %}{{ title }}|{{ content }}{% endblock %}",
    )
    engine = TemplateEngine([tmp_path / "templates"])
    html = engine.render("post.html", {"title": "A & B", "content": Markup("<p>ok</p>")})
    assert html == "<main>A &amp; B|<p>ok</p></main>"


def test_project_templates_override_theme(tmp_path):
    theme = tmp_path / "themes" / "paper"
    write(theme / "templates" / "base.html", "theme base {% block body %}{% endblock %}")
    write(theme / "templates" / "index.html", "theme index")
    write(tmp_path / "templates" / "index.html", "{% extends 'base.html' %}{% block body %}mine{% endblock %}")

    engine = TemplateEngine.from_resolver(ThemeResolver(tmp_path, theme), "templates")
    assert engine.render("index.html", {}) == "theme base mine"
    assert engine.has_template("base.html")
    assert not engine.has_template("tag.html")


def test_require_missing_template(tmp_path):
    engine = TemplateEngine([tmp_path / "templates"])
    with pytest.raises(TemplateLoadError) as excinfo:
        engine.require("index.html")
    assert excinfo.value.name == "index.html"
    assert excinfo.value.path is None
    assert "not found" in excinfo.value.message


def test_require_reports_syntax_errors(tmp_path):
    write(tmp_path / "templates" / "post.html", "line one\n{% if %}")
    engine = TemplateEngine([tmp_path / "templates"])
    assert engine.has_template("post.html")
    with pytest.raises(TemplateLoadError) as excinfo:
        engine.require("post.html")
    assert excinfo.value.path.name == "post.html"
    assert "line 2" in excinfo.value.message
