from __future__ import annotations

import json
import threading
import time

import pytest

from sismog.services.exceptions import StoreError
from sismog.store.base import Filter, eq, gt, gte, is_null, lt, lte, neq
from sismog.store.local import LocalStore


class TestCrud:
    def test_insert_assigns_id_and_persists(self, store):
        row = store.insert("t", {"nome": "a"})
        assert row["id"]
        data = json.loads(store.path.read_text())
        assert data["t"] == [row]

    def test_insert_keeps_given_id(self, store):
        assert store.insert("t", {"id": "x1"})["id"] == "x1"

    def test_get_returns_copy(self, store):
        row = store.insert("t", {"tags": ["a"]})
        fetched = store.get("t", row["id"])
        fetched["tags"].append("b")
        assert store.get("t", row["id"])["tags"] == ["a"]

    def test_get_missing(self, store):
        assert store.get("t", "nope") is None

    def test_update(self, store):
        row = store.insert("t", {"n": 1})
        updated = store.update("t", row["id"], {"n": 2, "id": "ignored"})
        assert updated == {"id": row["id"], "n": 2}

    def test_update_missing_raises(self, store):
        with pytest.raises(StoreError) as excinfo:
            store.update("t", "nope", {"n": 1})
        assert excinfo.value.status_code == 404

    def test_delete_and_delete_where(self, store):
        a = store.insert("t", {"k": "x"})
        store.insert_many("t", [{"k": "y"}, {"k": "y"}])
        store.delete("t", a["id"])
        assert store.delete_where("t", eq("k", "y")) == 2
        assert store.select("t") == []

    def test_missing_file_is_empty(self, tmp_path):
        assert LocalStore(tmp_path / "none.json").select("t") == []


class TestSelect:
    @pytest.fixture
    def rows(self, store):
        store.insert_many(
            "t",
            [
                {"id": "1", "n": 3, "d": "2024-02-01"},
                {"id": "2", "n": 1, "d": None},
                {"id": "3", "n": 2, "d": "2024-01-01"},
            ],
        )
        return store

    @pytest.mark.parametrize(
        ("flt", "expected"),
        [
            (eq("n", 1), ["2"]),
            (neq("n", 1), ["1", "3"]),
            (gt("n", 1), ["1", "3"]),
            (gte("n", 2), ["1", "3"]),
            (lt("n", 3), ["2", "3"]),
            (lte("n", 1), ["2"]),
            (is_null("d"), ["2"]),
        ],
    )
    def test_filters(self, rows, flt, expected):
        assert sorted(r["id"] for r in rows.select("t", flt)) == expected

    def test_range_filter_skips_nulls(self, rows):
        assert [r["id"] for r in rows.select("t", gte("d", "2024-01-01"), order_by="d")] == [
            "3",
            "1",
        ]

    def test_order_nulls_last(self, rows):
        assert [r["id"] for r in rows.select("t", order_by="d")] == ["3", "1", "2"]
        assert [r["id"] for r in rows.select("t", order_by="d", descending=True)] == [
            "1",
            "3",
            "2",
        ]

    def test_first(self, rows):
        assert rows.first("t", eq("n", 2))["id"] == "3"
        assert rows.first("t", eq("n", 9)) is None

    def test_unknown_operator(self):
        with pytest.raises(ValueError):
            Filter("n", "like", "x")


class TestAtomic:
    def test_commits_once_on_success(self, store):
        with store.atomic():
            store.insert("t", {"id": "a"})
            store.update("t", "a", {"n": 1})
            assert not store.path.exists()
        assert store.get("t", "a") == {"id": "a", "n": 1}

    def test_discards_on_exception(self, store):
        store.insert("t", {"id": "a", "n": 0})
        with pytest.raises(RuntimeError), store.atomic():
            store.update("t", "a", {"n": 1})
            store.insert("t", {"id": "b"})
            raise RuntimeError("boom")
        assert store.select("t") == [{"id": "a", "n": 0}]

    def test_nested_blocks_share_one_commit(self, store):
        with pytest.raises(RuntimeError), store.atomic():
            with store.atomic():
                store.insert("t", {"id": "a"})
            raise RuntimeError("boom")
        assert store.select("t") == []

    def test_other_thread_writes_survive_aborted_block(self, store):
        opened = threading.Event()
        created = {}

        def other_writer():
            opened.wait(timeout=5)
            created.update(store.insert("recebimentos", {"valor": "10.00"}))

        writer = threading.Thread(target=other_writer)
        writer.start()
        with pytest.raises(RuntimeError), store.atomic():
            store.insert("t", {"id": "a"})
            opened.set()
            time.sleep(0.2)
            raise RuntimeError("boom")
        writer.join(timeout=10)

        assert store.get("recebimentos", created["id"]) is not None
        assert store.select("t") == []


class TestCorruptFile:
    def test_corrupt_file_backed_up(self, store):
        store.path.parent.mkdir(parents=True, exist_ok=True)
        store.path.write_text("{not json")
        assert store.select("t") == []
        backups = list(store.path.parent.glob("store.json.corrupt.*"))
        assert len(backups) == 1
        assert backups[0].read_text() == "{not json"

    def test_non_object_backed_up(self, store):
        store.path.parent.mkdir(parents=True, exist_ok=True)
        store.path.write_text("[1, 2]")
        store.insert("t", {"id": "a"})
        assert store.select("t") == [{"id": "a"}]
        assert list(store.path.parent.glob("store.json.corrupt.*"))


class TestOpenStore:
    def test_local_by_default(self, tmp_path):
        from sismog.store import open_store

        opened = open_store()
        assert isinstance(opened, LocalStore)
        assert opened.path == tmp_path / "data" / "store.json"

    def test_rest_from_environment(self, monkeypatch):
        from sismog.store import open_store
        from sismog.store.rest import RestStore

        monkeypatch.setenv("SISMOG_STORE_URL", "https://x.supabase.co")
        monkeypatch.setenv("SISMOG_API_KEY", "k")
        opened = open_store("rest")
        assert isinstance(opened, RestStore)
        assert opened.base_url == "https://x.supabase.co"
