import time

import pytest
from PyQt6.QtCore import QCoreApplication
from sqlalchemy import create_engine

from navigator.objects import CacheStatus
from navigator.schema_cache import SchemaCache
from utils.worker import QtFetchLauncher


@pytest.fixture(scope="module")
def qapp():
    return QCoreApplication.instance() or QCoreApplication([])


def _settle(cache, connection_id, launcher, timeout=10.0):
    # worker signals are queued to this thread; deliver them until the entry leaves LOADING
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        launcher.wait_all(100)
        QCoreApplication.processEvents()
        if cache.get(connection_id).status is not CacheStatus.LOADING:
            return
        time.sleep(0.01)


def test_qt_launcher_loads_objects_on_worker_thread(qapp, registry, tmp_path):
    path = tmp_path / "inventory.db"
    engine = create_engine(f"sqlite:///{path}")
    with engine.begin() as c:
        c.exec_driver_sql("CREATE TABLE items (id INTEGER PRIMARY KEY, sku TEXT)")
        c.exec_driver_sql("INSERT INTO items (sku) VALUES ('a'), ('b')")
    engine.dispose()

    desc = registry.add_connection("inventory", "sqlite", database=str(path))
    launcher = QtFetchLauncher()
    cache = SchemaCache(registry, launcher)

    assert cache.request_load(desc.id) is True
    _settle(cache, desc.id, launcher)

    entry = cache.get(desc.id)
    assert entry.status is CacheStatus.LOADED
    assert [(o.name, o.row_count, o.kind) for o in entry.objects] == [("items", 2, "table")]


def test_qt_launcher_reports_backend_failure(qapp, registry, tmp_path):
    desc = registry.add_connection("missing", "sqlite", database=str(tmp_path / "nope.db"))
    launcher = QtFetchLauncher()
    cache = SchemaCache(registry, launcher)

    cache.request_load(desc.id)
    _settle(cache, desc.id, launcher)

    entry = cache.get(desc.id)
    assert entry.status is CacheStatus.ERROR
    assert "not found" in entry.error_message
