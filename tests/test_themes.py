from novos.themes import ThemeResolver


def make_theme(tmp_path):
    theme = tmp_path / "themes" / "paper"
    (theme / "templates").mkdir(parents=True)
    (theme / "sass").mkdir()
    return theme


def test_project_path_wins(tmp_path):
    theme = make_theme(tmp_path)
    (tmp_path / "templates").mkdir()
    resolver = ThemeResolver(tmp_path, theme)
    assert resolver.roots == [tmp_path, theme]
    assert resolver.resolve("templates") == tmp_path / "templates"
    assert resolver.candidates("templates") == [tmp_path / "templates", theme / "templates"]


def test_theme_fallback(tmp_path):
    theme = make_theme(tmp_path)
    resolver = ThemeResolver(tmp_path, theme)
    assert resolver.resolve("sass") == theme / "sass"
    assert resolver.theme_path("sass") == theme / "sass"
    assert resolver.theme_path("static") is None
    assert resolver.candidates("static") == []


def test_missing_everywhere_returns_project_path(tmp_path):
    resolver = ThemeResolver(tmp_path)
    assert resolver.resolve("data") == tmp_path / "data"
    assert resolver.theme_path("data") is None


def test_missing_theme_is_ignored(tmp_path, caplog):
    resolver = ThemeResolver(tmp_path, tmp_path / "themes" / "ghost")
    assert resolver.theme_root is None
    assert resolver.roots == [tmp_path]
    assert "not found" in caplog.text
