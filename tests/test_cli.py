import json

import pytest

from download_chart import (
    load_config,
    load_series,
    split_repo_slug,
    data_file_for,
    chart_file_for,
    generate_chart,
    main,
)

SERIES = [
    {"date": "2024-01-01", "total": 100},
    {"date": "2024-01-08", "total": 150},
]

@pytest.fixture
def workspace(tmp_path):
    data_dir = tmp_path / "data"
    data_dir.mkdir()
    (data_dir / "octo_widgets.json").write_text(json.dumps(SERIES), encoding="utf-8")
    config = tmp_path / "config.json"
    config.write_text(json.dumps({"repos": ["octo/widgets", "octo/empty"]}), encoding="utf-8")
    return tmp_path

def test_load_config_reads_repo_list(workspace):
    assert load_config(str(workspace / "config.json")) == ["octo/widgets", "octo/empty"]

def test_load_config_without_repos_raises(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"projects": []}), encoding="utf-8")
    with pytest.raises(ValueError):
        load_config(str(path))

def test_load_config_invalid_json_raises(tmp_path):
    path = tmp_path / "config.json"
    path.write_text("{not json", encoding="utf-8")
    with pytest.raises(json.JSONDecodeError):
        load_config(str(path))

def test_split_repo_slug():
    assert split_repo_slug("octo/widgets") == ("octo", "widgets")
    for bad in ("octo", "/widgets", "octo/", "a/b/c"):
        with pytest.raises(ValueError):
            split_repo_slug(bad)

def test_file_naming():
    assert data_file_for("data", "octo", "widgets").endswith("octo_widgets.json")
    assert chart_file_for("docs", "octo", "widgets").endswith("octo_widgets.svg")

def test_missing_series_is_empty(tmp_path):
    assert load_series(str(tmp_path / "nope.json")) == []

def test_series_must_be_a_list(tmp_path):
    path = tmp_path / "bad.json"
    path.write_text(json.dumps({"date": "2024-01-01"}), encoding="utf-8")
    with pytest.raises(ValueError):
        load_series(str(path))

def test_generate_chart_writes_svg_and_creates_docs_dir(workspace, capsys):
    docs = workspace / "out" / "docs"
    out = generate_chart("octo/widgets", str(workspace / "data"), str(docs))
    assert out == str(docs / "octo_widgets.svg")
    svg = (docs / "octo_widgets.svg").read_text(encoding="utf-8")
    assert "octo/widgets Downloads" in svg
    assert "✓ Generated chart for octo/widgets" in capsys.readouterr().out

def test_generate_chart_without_data_writes_placeholder(workspace):
    docs = workspace / "docs"
    generate_chart("octo/empty", str(workspace / "data"), str(docs))
    assert "octo/empty - No data yet" in (docs / "octo_empty.svg").read_text(encoding="utf-8")

def test_main_renders_every_configured_repo(workspace, capsys):
    main(["--config", str(workspace / "config.json"),
          "--data-dir", str(workspace / "data"),
          "--docs-dir", str(workspace / "docs")])
    assert (workspace / "docs" / "octo_widgets.svg").exists()
    assert (workspace / "docs" / "octo_empty.svg").exists()
    assert "✓ All charts generated" in capsys.readouterr().out

def test_main_repo_flag_skips_config(workspace):
    main(["--config", str(workspace / "missing.json"),
          "--repo", "octo/widgets",
          "--data-dir", str(workspace / "data"),
          "--docs-dir", str(workspace / "docs")])
    assert [p.name for p in (workspace / "docs").iterdir()] == ["octo_widgets.svg"]

def test_main_reads_paths_from_environment(workspace, monkeypatch):
    monkeypatch.setenv("DOWNLOAD_CHART_CONFIG", str(workspace / "config.json"))
    monkeypatch.setenv("DOWNLOAD_CHART_DATA_DIR", str(workspace / "data"))
    monkeypatch.setenv("DOWNLOAD_CHART_DOCS_DIR", str(workspace / "env-docs"))
    main([])
    assert (workspace / "env-docs" / "octo_widgets.svg").exists()

def test_main_exits_on_unreadable_config(tmp_path, capsys):
    with pytest.raises(SystemExit) as exc:
        main(["--config", str(tmp_path / "missing.json")])
    assert exc.value.code == 1
    assert "ERROR reading config" in capsys.readouterr().out

def test_main_exits_on_malformed_data(workspace, capsys):
    (workspace / "data" / "octo_widgets.json").write_text("[{", encoding="utf-8")
    with pytest.raises(SystemExit) as exc:
        main(["--repo", "octo/widgets",
              "--data-dir", str(workspace / "data"),
              "--docs-dir", str(workspace / "docs")])
    assert exc.value.code == 1
    assert "ERROR generating charts" in capsys.readouterr().out

def test_main_exits_on_malformed_date(workspace):
    (workspace / "data" / "octo_widgets.json").write_text(
        json.dumps([{"date": "someday", "total": 3}]), encoding="utf-8")
    with pytest.raises(SystemExit):
        main(["--repo", "octo/widgets",
              "--data-dir", str(workspace / "data"),
              "--docs-dir", str(workspace / "docs")])
    assert not (workspace / "docs" / "octo_widgets.svg").exists()
