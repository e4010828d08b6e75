"""Unit tests for studynotes.store.LocalStore."""

import json
from pathlib import Path

import pytest

from studynotes.collection import default_collection
from studynotes.exceptions import StorageError
from studynotes.store import STORE_KEY, LocalStore


def _put_raw(store: LocalStore, value: dict) -> None:
    store.conn.execute(
        "INSERT OR REPLACE INTO kv (key, value) VALUES (?, ?)",
        [STORE_KEY, json.dumps(value)],
    )


# ---------------------------------------------------------------------------
# load / save
# ---------------------------------------------------------------------------


class TestLoadSave:
    def test_empty_store_loads_none(self, store: LocalStore):
        assert store.load() is None

    def test_round_trip(self, store: LocalStore):
        coll = default_collection()
        coll.create_note("Gradient Descent")
        store.save(coll)
        assert store.load() == coll

    def test_save_replaces_whole_record(self, store: LocalStore):
        coll = default_collection()
        store.save(coll)
        coll.delete_section("foundations")
        store.save(coll)
        assert store.load().sections == []
        assert store.conn.execute("SELECT count(*) FROM kv").fetchone()[0] == 1

    def test_survives_reopen(self, tmp_path: Path):
        db_file = tmp_path / "nested" / "notes.duckdb"
        coll = default_collection()
        coll.rename_site_title("Persisted")
        with LocalStore(db_file) as s:
            s.save(coll)
        with LocalStore(db_file) as s:
            assert s.load().site_title == "Persisted"

    def test_in_memory(self):
        with LocalStore(":memory:") as s:
            s.save(default_collection())
            assert s.load() is not None

    def test_clear(self, store: LocalStore):
        store.save(default_collection())
        store.clear()
        assert store.load() is None


# ---------------------------------------------------------------------------
# Shape check / migration
# ---------------------------------------------------------------------------


class TestShapeCheck:
    def test_record_without_sections_ignored(self, store: LocalStore):
        _put_raw(store, {"notes": {}})
        assert store.load() is None

    def test_record_with_wrong_types_ignored(self, store: LocalStore):
        _put_raw(store, {"notes": [], "sections": {}})
        assert store.load() is None

    @pytest.mark.parametrize(
        "value",
        [
            {"notes": {"a": "string"}, "sections": []},
            {"notes": {}, "sections": [{"id": "s", "notes": "abc"}]},
        ],
    )
    def test_record_with_bad_entries_ignored(self, store: LocalStore, value: dict):
        _put_raw(store, value)
        assert store.load() is None

    def test_note_id_follows_key(self, store: LocalStore):
        _put_raw(store, {"notes": {"a": {"id": "b", "title": "A", "updatedAt": True}}, "sections": []})
        note = store.load().notes["a"]
        assert note.id == "a"
        assert isinstance(note.updated_at, int) and note.updated_at > 1

    def test_missing_remote_config_gets_defaults(self, store: LocalStore):
        _put_raw(store, {"notes": {}, "sections": [], "siteTitle": "Old"})
        coll = store.load()
        assert coll.site_title == "Old"
        assert coll.remote.branch == "gh-pages"
        assert coll.remote.path == "data/notes.json"


# ---------------------------------------------------------------------------
# Failures
# ---------------------------------------------------------------------------


class TestFailures:
    def test_save_on_closed_store_raises(self, store: LocalStore):
        store.close()
        with pytest.raises(StorageError) as exc:
            store.save(default_collection())
        assert exc.value.operation == "save"

    def test_load_on_closed_store_raises(self, store: LocalStore):
        store.close()
        with pytest.raises(StorageError):
            store.load()
