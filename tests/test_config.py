from pathlib import Path

import pytest

from novos.config import ConfigError, config_from_mapping, load_config, load_data


def test_load_config_defaults(tmp_path):
    config = load_config(tmp_path)
    assert config.posts_dir == tmp_path / "posts"
    assert config.output_dir == tmp_path / "output"
    assert config.posts_outdir == "posts"
    assert config.port == 8080
    assert config.theme_root is None
    assert config.site.title == "Novos"
    assert config.site.generate_rss is True
    assert config.build.minify_html is True
    assert config.build.posts_per_page == 0
    assert config.build.workers is None


def test_load_config_merges_sections(tmp_path):
    (tmp_path / "novos.yaml").write_text(
        "theme: paper\n"
        "base_url: https://example.com\n"
        "posts_outdir: /blog/\n"
        "site:\n  title: Mine\n"
        "build:\n  posts_per_page: 5\n  sass_style: compressed\n",
        encoding="utf-8",
    )
    config = load_config(tmp_path)
    assert config.theme_root == tmp_path / "themes" / "paper"
    assert config.posts_outdir == "blog"
    assert config.site.title == "Mine"
    assert config.site.generate_rss is True
    assert config.build.posts_per_page == 5
    assert config.build.sass_style == "compressed"
    assert config.build.minify_html is True


def test_load_config_rejects_bad_yaml(tmp_path):
    (tmp_path / "novos.yaml").write_text("site: [unclosed\n", encoding="utf-8")
    with pytest.raises(ConfigError):
        load_config(tmp_path)

    (tmp_path / "novos.yaml").write_text("- a list\n", encoding="utf-8")
    with pytest.raises(ConfigError):
        load_config(tmp_path)


@pytest.mark.parametrize(
    "raw",
    [
        {"build": {"posts_per_page": -1}},
        {"build": {"image_quality": 101}},
        {"build": {"sass_style": "nested"}},
        {"build": {"workers": 0}},
        {"port": "http"},
        {"site": "not a mapping"},
    ],
)
def test_config_validation(raw):
    with pytest.raises(ConfigError):
        config_from_mapping(Path("/project"), raw)


def test_to_context_is_plain(tmp_path):
    context = config_from_mapping(tmp_path, {}).to_context()
    assert context["output_dir"] == str(tmp_path / "output")
    assert context["site"]["title"] == "Novos"
    assert context["build"]["sass_style"] == "expanded"


def test_load_data(tmp_path):
    data_dir = tmp_path / "data"
    data_dir.mkdir()
    (data_dir / "site.yaml").write_text("author: Ada\n", encoding="utf-8")
    (data_dir / "nav.yaml").write_text("- label: Home\n  url: /\n", encoding="utf-8")
    (data_dir / "empty.yaml").write_text("", encoding="utf-8")
    data = load_data(data_dir)
    assert data["author"] == "Ada"
    assert data["nav"] == [{"label": "Home", "url": "/"}]
    assert "empty" not in data
    assert load_data(tmp_path / "missing") == {}


def test_load_data_names_malformed_file(tmp_path):
    data_dir = tmp_path / "data"
    data_dir.mkdir()
    (data_dir / "menu.yaml").write_text("a: [unclosed\n", encoding="utf-8")
    with pytest.raises(ConfigError) as excinfo:
        load_data(data_dir)
    assert excinfo.value.path == data_dir / "menu.yaml"
    assert "menu.yaml" in str(excinfo.value)
