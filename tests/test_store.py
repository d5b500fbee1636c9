"""Tests for the persistence adapters."""

import sqlite3

import pytest

from blockd.core.store import MemoryStore, SqliteStore
from blockd.errors import PersistenceFailure


@pytest.fixture(params=["memory", "sqlite"])
def any_store(request, tmp_path):
    if request.param == "memory":
        return MemoryStore()
    return SqliteStore(tmp_path / "store.db")


def test_missing_keys_are_absent(any_store):
    assert any_store.get(["blockedSites"]) == {}


def test_set_then_get(any_store):
    any_store.set({"blockedSites": ["reddit.com"], "tempAccess": {"x.com": 1.5}})
    assert any_store.get(["blockedSites", "tempAccess", "other"]) == {
        "blockedSites": ["reddit.com"],
        "tempAccess": {"x.com": 1.5},
    }


def test_set_overwrites(any_store):
    any_store.set({"blockedSites": ["a.com"]})
    any_store.set({"blockedSites": ["b.com"]})
    assert any_store.get(["blockedSites"]) == {"blockedSites": ["b.com"]}


def test_clear(any_store):
    any_store.set({"blockedSites": ["a.com"]})
    any_store.clear()
    assert any_store.get(["blockedSites"]) == {}


def test_returned_values_are_copies(any_store):
    any_store.set({"blockedSites": ["a.com"]})
    any_store.get(["blockedSites"])["blockedSites"].append("b.com")
    assert any_store.get(["blockedSites"]) == {"blockedSites": ["a.com"]}


def test_sqlite_survives_reopen(tmp_path):
    SqliteStore(tmp_path / "s.db").set({"focusModeStatus": {"active": True, "endTime": 5.0}})
    assert SqliteStore(tmp_path / "s.db").get(["focusModeStatus"]) == {
        "focusModeStatus": {"active": True, "endTime": 5.0},
    }


def test_sqlite_unserialisable_value(tmp_path):
    with pytest.raises(PersistenceFailure):
        SqliteStore(tmp_path / "s.db").set({"bad": object()})


def test_sqlite_corrupt_row(tmp_path):
    db = tmp_path / "s.db"
    store = SqliteStore(db)
    conn = sqlite3.connect(db)
    conn.execute("INSERT INTO records (key, value_json) VALUES ('timeData', '{broken')")
    conn.commit()
    conn.close()
    with pytest.raises(PersistenceFailure):
        store.get(["timeData"])


def test_sqlite_unopenable_path(tmp_path):
    with pytest.raises(PersistenceFailure):
        SqliteStore(tmp_path / "missing-dir" / "s.db")
