from __future__ import annotations

import json

from playground_runtime.core.catalog import AppCatalog
from playground_runtime.core.config import RuntimeConfig


def test_config_created_with_defaults_next_to_file(tmp_path):
    config_path = tmp_path / "cfg" / "config.json"
    config = RuntimeConfig.load(config_path)
    assert config_path.exists()
    assert config.base_path == tmp_path / "cfg"
    assert config.meta_path == tmp_path / "cfg" / "meta.json"
    assert config.github_dir == tmp_path / "cfg" / "github"
    assert config.catalog_path == tmp_path / "cfg" / "apps"


def test_config_env_var_and_directory_hint(tmp_path, monkeypatch):
    monkeypatch.setenv("PLAYGROUNDS_CONFIG", str(tmp_path / "envdir") + "/")
    config = RuntimeConfig.load()
    assert (tmp_path / "envdir" / "config.json").exists()
    assert config.base_path == tmp_path / "envdir"


def test_corrupt_config_is_moved_aside(tmp_path):
    config_path = tmp_path / "config.json"
    config_path.write_text("{broken", encoding="utf-8")
    config = RuntimeConfig.load(config_path)
    assert config.port == 8485
    backups = list(tmp_path.glob("config.json.corrupt-*"))
    assert len(backups) == 1
    assert json.loads(config_path.read_text(encoding="utf-8"))["port"] == 8485


def test_invalid_config_is_moved_aside(tmp_path):
    config_path = tmp_path / "config.json"
    config_path.write_text(json.dumps({"port": "not-a-port"}), encoding="utf-8")
    RuntimeConfig.load(config_path)
    assert list(tmp_path.glob("config.json.invalid-*"))


def test_catalog_loads_valid_entries(catalog_dir, make_catalog_app):
    make_catalog_app(catalog_dir, "widget", defaultRunCommand="npm run dev", defaultPort=5173)
    make_catalog_app(catalog_dir, "gadget")
    catalog = AppCatalog(catalog_dir)
    ids = [entry.id for entry in catalog.entries()]
    assert ids == ["gadget", "widget"]
    widget = catalog.get("widget")
    assert widget.default_port == 5173
    assert widget.repo_url == "https://example.com/org/widget.git"
    assert catalog.get("unknown") is None


def test_catalog_skips_invalid_files_and_fixes_ids(catalog_dir, make_catalog_app):
    (catalog_dir / "broken.json").write_text("{", encoding="utf-8")
    (catalog_dir / "partial.json").write_text(json.dumps({"id": "partial", "name": "P"}), encoding="utf-8")
    (catalog_dir / "notes.txt").write_text("ignored", encoding="utf-8")
    path = make_catalog_app(catalog_dir, "renamed")
    data = json.loads(path.read_text(encoding="utf-8"))
    data["id"] = "something-else"
    path.write_text(json.dumps(data), encoding="utf-8")

    entries = AppCatalog(catalog_dir).entries()
    assert [entry.id for entry in entries] == ["renamed"]


def test_catalog_accepts_source_url_alias(catalog_dir):
    (catalog_dir / "alias.json").write_text(
        json.dumps({"id": "alias", "name": "A", "description": "d", "sourceUrl": "https://example.com/a.git"}),
        encoding="utf-8",
    )
    entry = AppCatalog(catalog_dir).get("alias")
    assert entry.repo_url == "https://example.com/a.git"
    assert entry.to_json_dict()["repoUrl"] == "https://example.com/a.git"


def test_catalog_is_cached_after_first_load(catalog_dir, tmp_path, make_catalog_app):
    catalog = AppCatalog(catalog_dir)
    assert catalog.entries() == []
    make_catalog_app(catalog_dir, "late")
    assert catalog.entries() == []
    assert AppCatalog(tmp_path / "missing").entries() == []
