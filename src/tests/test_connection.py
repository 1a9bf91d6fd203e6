import json
import os

import pytest

from db.connection import ConnectionManager, MissingConnection
from navigator.objects import ConnectionKind


def test_add_and_reload_connections(tmp_path):
    cfg = tmp_path / "connections.json"
    mgr = ConnectionManager(config_path=cfg)
    pg = mgr.add_connection("warehouse", "postgresql", host="db.local", user="etl", password="s3cret", database="dw")
    lite = mgr.add_connection("", "sqlite", database=str(tmp_path / "app.db"))

    assert pg.port == 5432
    assert pg.username == "etl"
    assert lite.name == "app.db"
    assert lite.host == ""
    assert os.path.isabs(lite.database)

    reloaded = ConnectionManager(config_path=cfg)
    assert reloaded.get(pg.id) == pg
    assert [c.name for c in reloaded.list_connections()] == ["app.db", "warehouse"]


def test_password_is_not_stored_in_clear(tmp_path):
    cfg = tmp_path / "connections.json"
    mgr = ConnectionManager(config_path=cfg)
    desc = mgr.add_connection("m", "mysql", password="hunter2")
    stored = json.loads(cfg.read_text(encoding="utf-8"))[desc.id]
    assert stored["password"] != "hunter2"
    assert stored["type"] == "mysql"
    assert stored["port"] == 3306


def test_duplicate_names_get_suffix(registry):
    a = registry.add_connection("db", "sqlite", database=":memory:")
    b = registry.add_connection("db", "sqlite", database=":memory:")
    c = registry.add_connection("db", "sqlite", database=":memory:")
    assert (a.name, b.name, c.name) == ("db", "db (1)", "db (2)")
    assert a.database == ":memory:"


def test_unsupported_type(registry):
    with pytest.raises(ValueError, match="Unsupported connection type"):
        registry.add_connection("x", "oracle")


def test_missing_connection(registry):
    with pytest.raises(MissingConnection):
        registry.get("nope")
    assert registry.find("nope") is None
    # MissingConnection is a KeyError so callers may treat it as a lookup miss
    with pytest.raises(KeyError):
        registry.get("nope")


def test_remove_notifies_listeners(registry, conn):
    removed = []
    registry.add_removal_listener(removed.append)
    registry.remove_connection(conn.id)
    registry.remove_connection(conn.id)
    assert removed == [conn.id]
    assert registry.list_connections() == []


def test_failing_listener_does_not_block_others(registry, conn):
    seen = []

    def broken(conn_id):
        raise RuntimeError("boom")

    registry.add_removal_listener(broken)
    registry.add_removal_listener(seen.append)
    registry.remove_connection(conn.id)
    assert seen == [conn.id]


def test_update_connection(registry):
    desc = registry.add_connection("pg", "postgresql", host="a", database="one")
    updates = []
    registry.add_update_listener(updates.append)

    updated = registry.update_connection(desc.id, host="b", port=None)
    assert updated.host == "b"
    assert updated.port == 5432
    assert updated.kind is ConnectionKind.POSTGRESQL
    assert registry.get(desc.id) == updated
    assert updates == [desc.id]

    with pytest.raises(ValueError):
        registry.update_connection(desc.id, colour="red")
    with pytest.raises(MissingConnection):
        registry.update_connection("gone", host="x")


def test_unreadable_config_is_backed_up(tmp_path):
    cfg = tmp_path / "connections.json"
    cfg.write_text("{not json", encoding="utf-8")
    mgr = ConnectionManager(config_path=cfg)
    assert mgr.list_connections() == []
    assert (tmp_path / "connections.json.bak").read_text(encoding="utf-8") == "{not json"


def test_invalid_entries_are_skipped(tmp_path):
    cfg = tmp_path / "connections.json"
    cfg.write_text(json.dumps({
        "ok": {"name": "ok", "type": "sqlite", "database": ":memory:"},
        "bad": {"name": "bad", "type": "oracle"},
    }), encoding="utf-8")
    mgr = ConnectionManager(config_path=cfg)
    assert [c.id for c in mgr.list_connections()] == ["ok"]
