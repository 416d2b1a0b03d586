from __future__ import annotations

import json

from playground_runtime.core.store import MetadataStore
from playground_runtime.records import DockerPlayground, GithubPlayground


def _sample_records() -> list:
    return [
        GithubPlayground(
            id="widget-2026-01-02T03-04-05-000000Z",
            repo_url="https://example.com/org/widget.git",
            path="/tmp/widget",
            created_at="2026-01-02T03:04:05.000Z",
            run_command="npm start",
            port=3000,
            app_store_id="widget",
        ),
        DockerPlayground(
            id="docker-nginx-latest-2026-01-01T00-00-00-000000Z",
            image="nginx:latest",
            container_id="abc123",
            created_at="2026-01-01T00:00:00.000Z",
        ),
        GithubPlayground(
            id="bare-2025-12-31T00-00-00-000000Z",
            repo_url="git@example.com:org/bare.git",
            path="/tmp/bare",
            created_at="2025-12-31T00:00:00.000Z",
        ),
    ]


def test_round_trip_preserves_records_and_order(store: MetadataStore):
    records = _sample_records()
    store.write_all(records)
    assert store.read_all() == records


def test_missing_file_is_created_empty(store: MetadataStore):
    assert not store.meta_path.exists()
    assert store.read_all() == []
    assert store.meta_path.read_text(encoding="utf-8") == "[]"
    assert store.github_dir.is_dir()


def test_file_format_is_camel_case_with_trailing_newline(store: MetadataStore):
    store.write_all(_sample_records()[:2])
    raw = store.meta_path.read_text(encoding="utf-8")
    assert raw.endswith("]\n")
    data = json.loads(raw)
    assert data[0]["type"] == "github"
    assert data[0]["repoUrl"] == "https://example.com/org/widget.git"
    assert data[0]["appStoreId"] == "widget"
    assert data[1] == {
        "type": "docker",
        "id": "docker-nginx-latest-2026-01-01T00-00-00-000000Z",
        "image": "nginx:latest",
        "containerId": "abc123",
        "createdAt": "2026-01-01T00:00:00.000Z",
    }


def test_corrupt_json_degrades_to_empty(store: MetadataStore):
    store.meta_path.parent.mkdir(parents=True, exist_ok=True)
    store.meta_path.write_text("{not json", encoding="utf-8")
    assert store.read_all() == []


def test_wrong_shape_degrades_to_empty(store: MetadataStore):
    store.meta_path.parent.mkdir(parents=True, exist_ok=True)
    store.meta_path.write_text('{"id": "x"}', encoding="utf-8")
    assert store.read_all() == []
    store.meta_path.write_text('[{"id": "x", "type": "ftp"}]', encoding="utf-8")
    assert store.read_all() == []


def test_invalid_entry_is_skipped_without_losing_the_rest(store: MetadataStore):
    records = _sample_records()
    store.write_all(records)
    data = json.loads(store.meta_path.read_text(encoding="utf-8"))
    data[1]["containerId"] = 42
    data.insert(0, {"type": "github", "id": "half-written"})
    store.meta_path.write_text(json.dumps(data), encoding="utf-8")

    assert store.read_all() == [records[0], records[2]]


def test_find_returns_matching_record(store: MetadataStore):
    records = _sample_records()
    store.write_all(records)
    assert store.find(records[1].id) == records[1]
    assert store.find("missing") is None


def test_interleaved_read_modify_write_loses_an_update(store: MetadataStore):
    first, second, third = _sample_records()
    store.write_all([first])

    # Two writers read the same snapshot before either writes.
    view_a = store.read_all()
    view_b = store.read_all()
    view_a.insert(0, second)
    view_b.insert(0, third)
    store.write_all(view_a)
    store.write_all(view_b)

    ids = [record.id for record in store.read_all()]
    assert ids == [third.id, first.id]
    assert second.id not in ids
