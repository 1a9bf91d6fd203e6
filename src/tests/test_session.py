from sqlalchemy import create_engine

from navigator.objects import CacheStatus, ObjectKind
from navigator.session import NavigatorSession
from utils.worker import run_inline


class Recorder:
    def __init__(self):
        self.navigations = []
        self.executions = []

    def navigate(self, view):
        self.navigations.append(view)

    def execute(self, request):
        self.executions.append(request)


def _session(registry, launcher, rec=None):
    rec = rec or Recorder()
    return NavigatorSession(registry, launcher, rec.navigate, rec.execute), rec


def test_expand_load_group_and_click(registry, launcher, conn):
    session, rec = _session(registry, launcher)

    session.tree.toggle_connection(conn.id)
    assert session.cache.get(conn.id).status is CacheStatus.LOADING
    assert session.grouped_view(conn.id) == []

    launcher.succeed({
        "success": True,
        "tables": [
            {"name": "users", "row_count": 3, "table_type": "table"},
            {"name": "v_active", "row_count": 0, "table_type": "view"},
        ],
        "message": "Found 2 database objects",
    })
    groups = session.grouped_view(conn.id)
    assert [(g.kind, [o.name for o in g.objects]) for g in groups] == [
        (ObjectKind.TABLE, ["users"]),
        (ObjectKind.VIEW, ["v_active"]),
    ]

    sql = session.dispatcher.dispatch_by_id(conn.id, "users", "table")
    assert sql == 'SELECT * FROM "users" LIMIT 50;'
    assert rec.navigations == ["query"]
    assert rec.executions == [{"connection": conn.to_payload(), "sql": sql}]
    assert session.selected_connection() == conn.id


def test_removal_evicts_and_forgets(registry, launcher, conn):
    session, _ = _session(registry, launcher)
    session.tree.toggle_connection(conn.id)
    session.dispatcher.dispatch(conn, "users", "table")

    registry.remove_connection(conn.id)
    # late response for the removed connection is discarded
    launcher.succeed({"success": True, "tables": [], "message": ""})

    assert session.cache.get(conn.id).status is CacheStatus.UNLOADED
    assert not session.tree.is_connection_expanded(conn.id)
    assert session.selected_connection() is None


def test_edit_refetches_expanded_connection(registry, launcher, conn):
    session, _ = _session(registry, launcher)
    session.tree.toggle_connection(conn.id)
    launcher.succeed({"success": True, "tables": [], "message": ""})

    registry.update_connection(conn.id, name="C1 renamed")
    assert len(launcher.calls) == 2
    assert launcher.calls[1][0]["name"] == "C1 renamed"
    assert session.cache.get(conn.id).status is CacheStatus.LOADING


def test_edit_of_collapsed_connection_waits_for_expand(registry, launcher, conn):
    session, _ = _session(registry, launcher)
    session.tree.toggle_connection(conn.id)
    launcher.succeed({"success": True, "tables": [], "message": ""})
    session.tree.toggle_connection(conn.id)

    session.refresh(conn.id)
    assert len(launcher.calls) == 1
    assert session.cache.get(conn.id).status is CacheStatus.UNLOADED
    session.tree.toggle_connection(conn.id)
    assert len(launcher.calls) == 2


def test_refresh_while_loading_keeps_single_fetch(registry, launcher, conn):
    session, _ = _session(registry, launcher)
    session.tree.toggle_connection(conn.id)
    session.refresh(conn.id)
    registry.update_connection(conn.id, name="C1 edited")
    assert len(launcher.calls) == 1
    assert session.cache.get(conn.id).status is CacheStatus.LOADING

    launcher.succeed({"success": True, "tables": [], "message": ""}, index=0)
    assert len(launcher.calls) == 2
    assert launcher.calls[1][0]["name"] == "C1 edited"

    launcher.succeed({"success": True, "tables": [{"name": "users", "row_count": 3, "table_type": "table"}],
                      "message": ""}, index=1)
    assert [g.kind for g in session.grouped_view(conn.id)] == [ObjectKind.TABLE]


def test_inline_launcher_against_sqlite_file(registry, tmp_path):
    path = tmp_path / "shop.db"
    engine = create_engine(f"sqlite:///{path}")
    with engine.begin() as c:
        c.exec_driver_sql("CREATE TABLE orders (id INTEGER PRIMARY KEY)")
        c.exec_driver_sql("CREATE INDEX idx_orders ON orders (id)")
    engine.dispose()

    desc = registry.add_connection("shop", "sqlite", database=str(path))
    session, _ = _session(registry, run_inline)
    session.tree.toggle_connection(desc.id)

    assert session.cache.get(desc.id).status is CacheStatus.LOADED
    groups = session.grouped_view(desc.id)
    assert [g.label for g in groups] == ["Tables", "Indexes"]
    assert groups[0].objects[0].name == "orders"


def test_inline_launcher_missing_file_sets_error(registry, tmp_path):
    desc = registry.add_connection("gone", "sqlite", database=str(tmp_path / "missing.db"))
    session, _ = _session(registry, run_inline)
    session.tree.toggle_connection(desc.id)
    entry = session.cache.get(desc.id)
    assert entry.status is CacheStatus.ERROR
    assert "not found" in entry.error_message
