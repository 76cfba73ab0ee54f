import json

import pytest

import core.document_store as document_store
from core.document_store import AnyOf, DocumentStore, NotEqual
from core.exceptions import ConflictError, NotFoundError, StoreError


def test_create_assigns_prefixed_id_and_version(store):
    doc = store.create("weekly_goals", {"title": "Week 1"})
    assert doc["id"].startswith("wg_")
    assert doc["version"] == 1
    assert doc["created_at"] == doc["updated_at"]


def test_duplicate_explicit_id_conflicts(store):
    store.create("users", {"id": "user_1", "email": "a@b.c"})
    with pytest.raises(ConflictError):
        store.create("users", {"id": "user_1", "email": "x@y.z"})


def test_update_with_expected_is_compare_and_swap(store):
    doc = store.create("daily_tasks", {"status": "active"})

    updated = store.update("daily_tasks", doc["id"], {"status": "complete"}, expected={"status": "active"})
    assert updated["version"] == 2

    with pytest.raises(ConflictError) as exc:
        store.update("daily_tasks", doc["id"], {"status": "complete"}, expected={"status": "active"})
    assert exc.value.current["status"] == "complete"
    assert store.find_by_id("daily_tasks", doc["id"])["version"] == 2


def test_update_missing_document(store):
    with pytest.raises(NotFoundError):
        store.update("daily_tasks", "dt_nope", {"status": "complete"})


def test_filters_and_sorting(store):
    for day, status in [(3, "locked"), (1, "complete"), (2, "active")]:
        store.create("daily_tasks", {"weekly_goal_id": "wg_1", "day_number": day, "status": status})
    store.create("daily_tasks", {"weekly_goal_id": "wg_2", "day_number": 1, "status": "active"})

    docs = store.find("daily_tasks", {"weekly_goal_id": "wg_1"}, sort_key=lambda d: d["day_number"])
    assert [d["day_number"] for d in docs] == [1, 2, 3]
    assert store.count("daily_tasks", {"weekly_goal_id": AnyOf(["wg_1", "wg_2"])}) == 4
    assert store.count("daily_tasks", {"status": NotEqual("active")}) == 2


def test_returned_documents_are_copies(store):
    doc = store.create("example_posts", {"content": "original"})
    doc["content"] = "mutated"
    assert store.find_by_id("example_posts", doc["id"])["content"] == "original"


def test_delete_respects_filters(store):
    doc = store.create("example_posts", {"user_id": "u1", "content": "x"})
    assert store.delete("example_posts", doc["id"], filters={"user_id": "u2"}) is None
    assert store.delete("example_posts", doc["id"], filters={"user_id": "u1"})["id"] == doc["id"]
    assert store.find_by_id("example_posts", doc["id"]) is None


def test_persists_to_disk_and_reloads(tmp_path):
    path = tmp_path / "store.json"
    first = DocumentStore(path=path)
    doc = first.create("weekly_goals", {"title": "Persisted"})

    second = DocumentStore(path=path)
    assert second.find_by_id("weekly_goals", doc["id"])["title"] == "Persisted"
    assert not (tmp_path / "store.json.tmp").exists()


def test_default_path_follows_module_setting(isolated_runtime):
    store = DocumentStore()
    store.create("users", {"id": "u1", "email": "a@b.c"})
    payload = json.loads((isolated_runtime / "store.json").read_text(encoding="utf-8"))
    assert payload["collections"]["users"][0]["id"] == "u1"


def test_corrupt_file_raises_store_error(tmp_path):
    path = tmp_path / "store.json"
    path.write_text("{not json", encoding="utf-8")
    with pytest.raises(StoreError):
        DocumentStore(path=path)


def test_failed_save_leaves_memory_unchanged(tmp_path, monkeypatch):
    db = DocumentStore(path=tmp_path / "store.json")
    doc = db.create("daily_tasks", {"status": "active"})

    def refuse(src, dst):
        raise OSError("disk full")

    monkeypatch.setattr(document_store.os, "replace", refuse)

    with pytest.raises(StoreError):
        db.update("daily_tasks", doc["id"], {"status": "complete"})
    with pytest.raises(StoreError):
        db.create("daily_tasks", {"status": "locked"})
    with pytest.raises(StoreError):
        db.delete("daily_tasks", doc["id"])

    assert db.find_by_id("daily_tasks", doc["id"])["status"] == "active"
    assert db.count("daily_tasks") == 1
