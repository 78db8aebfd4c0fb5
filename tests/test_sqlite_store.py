try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

import sqlite3

import pytest

from fittrack.clients.sqlite_store import SQLiteStore


@pytest.fixture()
def store(tmp_path) -> SQLiteStore:
    return SQLiteStore(str(tmp_path / "nested" / "records.db"))


def test_put_and_get_round_trip(store):
    store.put_item({"pk": "user#1", "sk": "profile", "name": "Ana"})
    store.put_item({"pk": "user#1", "sk": "profile", "name": "Ana Souza"})

    assert store.get_item(partition_key="user#1", sort_key="profile") == {
        "pk": "user#1",
        "sk": "profile",
        "name": "Ana Souza",
    }


def test_put_requires_keys(store):
    with pytest.raises(ValueError):
        store.put_item({"pk": "user#1"})


def test_claim_item_respects_live_records(store):
    item = {"pk": "exchange#1", "sk": "claim", "expires_at": "2026-10-19T12:00:30.000000+00:00"}

    assert store.claim_item(item, stale_before="2026-10-19T12:00:00.000000+00:00") is True
    assert store.claim_item(item, stale_before="2026-10-19T12:00:10.000000+00:00") is False
    assert store.claim_item(item, stale_before="2026-10-19T12:01:00.000000+00:00") is True


def test_list_items_with_prefix_filters_sort_keys(store):
    store.put_item({"pk": "notifications", "sk": "user#b"})
    store.put_item({"pk": "notifications", "sk": "user#a"})
    store.put_item({"pk": "notifications", "sk": "meta"})

    items = store.list_items_with_prefix(partition_key="notifications", sort_key_prefix="user#")

    assert [item["sk"] for item in items] == ["user#a", "user#b"]


def test_delete_item(store):
    store.put_item({"pk": "session#1", "sk": "supabase"})
    store.delete_item(partition_key="session#1", sort_key="supabase")

    assert store.get_item(partition_key="session#1", sort_key="supabase") is None


def test_every_operation_closes_its_connection(monkeypatch, tmp_path):
    opened = []
    real_connect = sqlite3.connect

    def tracking_connect(*args, **kwargs):
        conn = real_connect(*args, **kwargs)
        opened.append(conn)
        return conn

    monkeypatch.setattr(sqlite3, "connect", tracking_connect)
    store = SQLiteStore(str(tmp_path / "records.db"))
    store.put_item({"pk": "user#1", "sk": "profile", "name": "Ana"})
    store.claim_item(
        {"pk": "exchange#1", "sk": "claim", "expires_at": "2026-10-19T00:00:00"},
        stale_before="2026-10-18T00:00:00",
    )
    store.get_item(partition_key="user#1", sort_key="profile")
    store.delete_item(partition_key="user#1", sort_key="profile")

    assert len(opened) == 5
    for conn in opened:
        with pytest.raises(sqlite3.ProgrammingError):
            conn.execute("SELECT 1")
