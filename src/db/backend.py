"""Backend service used by the navigator: schema object listing and query execution.

Both entry points take and return plain dicts in the wire shapes the UI layer exchanges with
them, and report failures in-band (success=False plus a message) instead of raising:

    get_database_tables({name, db_type, host, port, database, username, password})
        -> {success, tables: [{name, row_count, table_type}], message}

    execute_query({connection: {...}, sql})
        -> {success, columns, rows, affected_rows, execution_time, message}

execution_time is reported in milliseconds. Engines are created per call and disposed
afterwards; nothing here keeps connections open between requests.
"""
import os
import time
import logging
import threading
from typing import Any, Dict, List, Optional

from sqlalchemy import create_engine, inspect, text
from sqlalchemy.engine import Engine, URL
from sqlalchemy.exc import SQLAlchemyError

from db.executor import execute_sql
from navigator.objects import ConnectionKind, DEFAULT_PORTS

logger = logging.getLogger(__name__)

_DRIVERS = {
    ConnectionKind.MYSQL: "mysql+pymysql",
    ConnectionKind.POSTGRESQL: "postgresql+psycopg2",
}

# SQLite internal tables that are still worth showing in the tree
_SQLITE_VISIBLE_SYSTEM_TABLES = ("sqlite_sequence", "sqlite_stat1", "sqlite_stat2", "sqlite_stat3", "sqlite_stat4")

_SQLITE_OBJECTS_SQL = (
    "SELECT name, type FROM sqlite_master "
    "WHERE type IN ('table', 'view', 'index', 'trigger') "
    "AND (name NOT LIKE 'sqlite_%' OR name IN ({})) "
    "ORDER BY type, name"
).format(", ".join(f"'{n}'" for n in _SQLITE_VISIBLE_SYSTEM_TABLES))

_TRIGGER_NAMES_SQL = {
    ConnectionKind.MYSQL: (
        "SELECT trigger_name FROM information_schema.triggers "
        "WHERE trigger_schema = DATABASE() ORDER BY trigger_name"
    ),
    ConnectionKind.POSTGRESQL: (
        "SELECT DISTINCT trigger_name FROM information_schema.triggers "
        "WHERE trigger_schema = current_schema() ORDER BY trigger_name"
    ),
}


class BackendError(RuntimeError):
    """Connection payload could not be turned into an engine."""


def _failure(message: str, **extra) -> Dict[str, Any]:
    out = {"success": False, "message": message}
    out.update(extra)
    return out


def build_engine(connection: Dict[str, Any]) -> Engine:
    """Create a SQLAlchemy engine from a wire connection payload.

    Raises BackendError for unsupported types, a missing SQLite file, or invalid parameters.
    """
    if not isinstance(connection, dict):
        raise BackendError("Connection payload must be an object")
    try:
        kind = ConnectionKind(connection.get("db_type"))
    except ValueError:
        raise BackendError(f"Unsupported database type: {connection.get('db_type')!r}") from None

    if kind is ConnectionKind.SQLITE:
        path = connection.get("database") or ":memory:"
        if path == ":memory:":
            return create_engine("sqlite://", future=True)
        # never create a new database file as a side effect of browsing
        if not os.path.exists(path):
            raise BackendError(f"SQLite file not found: {path}")
        return create_engine(f"sqlite:///{os.path.abspath(path)}", future=True)

    try:
        url_obj = URL.create(
            drivername=_DRIVERS[kind],
            username=connection.get("username") or None,
            password=connection.get("password") or None,
            host=connection.get("host") or "localhost",
            port=int(connection.get("port") or DEFAULT_PORTS[kind]),
            database=connection.get("database") or None,
        )
        engine = create_engine(url_obj, future=True)
    except Exception as e:
        raise BackendError(f"Invalid connection parameters: {e}") from e
    logger.debug("Engine for %s created: %s", connection.get("name"), engine.url.render_as_string(hide_password=True))
    return engine


def _count_rows(conn, preparer, name: str) -> int:
    try:
        value = conn.exec_driver_sql(f"SELECT COUNT(*) FROM {preparer.quote(name)}").scalar()
        return int(value or 0)
    except SQLAlchemyError:
        # views over missing tables and similar; row count is informational only
        logger.debug("Row count failed for %s", name, exc_info=True)
        conn.rollback()
        return 0


def _sqlite_objects(engine: Engine) -> List[Dict[str, Any]]:
    preparer = engine.dialect.identifier_preparer
    objects = []
    with engine.connect() as conn:
        rows = conn.exec_driver_sql(_SQLITE_OBJECTS_SQL).fetchall()
        for name, obj_type in rows:
            row_count = _count_rows(conn, preparer, name) if obj_type in ("table", "view") else 0
            objects.append({"name": name, "row_count": row_count, "table_type": obj_type})
    return objects


def _inspected_objects(engine: Engine, kind: ConnectionKind) -> List[Dict[str, Any]]:
    inspector = inspect(engine)
    preparer = engine.dialect.identifier_preparer
    tables = inspector.get_table_names()
    views = inspector.get_view_names()
    objects = []
    with engine.connect() as conn:
        for t in tables:
            objects.append({"name": t, "row_count": _count_rows(conn, preparer, t), "table_type": "table"})
            for idx in inspector.get_indexes(t):
                if idx.get("name"):
                    objects.append({"name": idx["name"], "row_count": 0, "table_type": "index"})
        for v in views:
            objects.append({"name": v, "row_count": _count_rows(conn, preparer, v), "table_type": "view"})
        for (trigger_name,) in conn.execute(text(_TRIGGER_NAMES_SQL[kind])).fetchall():
            objects.append({"name": trigger_name, "row_count": 0, "table_type": "trigger"})
    # same ordering as the SQLite listing: by type, then name
    objects.sort(key=lambda o: (o["table_type"], o["name"]))
    return objects


def get_database_tables(connection: Dict[str, Any]) -> Dict[str, Any]:
    """List the schema objects (tables, views, indexes, triggers) of a connection."""
    try:
        engine = build_engine(connection)
    except BackendError as e:
        return _failure(str(e), tables=[])

    kind = ConnectionKind(connection["db_type"])
    try:
        if kind is ConnectionKind.SQLITE:
            objects = _sqlite_objects(engine)
        else:
            objects = _inspected_objects(engine, kind)
    except Exception as e:
        # driver import errors and connection failures alike are reported in-band
        logger.exception("Listing objects failed for %s", connection.get("name"))
        return _failure(f"Failed to list database objects: {e}", tables=[])
    finally:
        engine.dispose()

    return {"success": True, "tables": objects, "message": f"Found {len(objects)} database objects"}


def execute_query(request: Dict[str, Any], row_limit: int = 1000, timeout: float = 30,
                  stop_event: Optional[threading.Event] = None) -> Dict[str, Any]:
    """Run the SQL of a query request and return the last statement's result."""
    start = time.perf_counter()

    def _elapsed_ms() -> int:
        return int((time.perf_counter() - start) * 1000)

    empty = {"columns": [], "rows": [], "affected_rows": None}
    if not isinstance(request, dict):
        return _failure("Query request must be an object", execution_time=_elapsed_ms(), **empty)
    sql = (request.get("sql") or "").strip()
    if not sql:
        return _failure("No SQL to execute", execution_time=_elapsed_ms(), **empty)

    try:
        engine = build_engine(request.get("connection"))
    except BackendError as e:
        return _failure(str(e), execution_time=_elapsed_ms(), **empty)

    try:
        results = execute_sql(engine, sql, stop_event=stop_event, row_limit=row_limit, timeout=timeout)
    except Exception as e:
        logger.debug("Query failed: %s", e)
        return _failure(f"Query error: {e}", execution_time=_elapsed_ms(), **empty)
    finally:
        engine.dispose()

    if not results:
        return {"success": True, "execution_time": _elapsed_ms(), "message": "Nothing to execute", **empty}

    # prefer the last statement that produced a result set
    with_rows = [r for r in results if r[0]]
    columns, rows, _, truncated, affected = with_rows[-1] if with_rows else results[-1]
    if columns:
        affected = len(rows)
        if not rows:
            message = "Query succeeded, no results"
        elif truncated:
            message = f"Query succeeded, showing first {len(rows)} rows"
        else:
            message = f"Query succeeded, {len(rows)} rows"
    else:
        message = f"Statement executed, {affected} rows affected"

    return {
        "success": True,
        "columns": list(columns),
        "rows": [list(r) for r in rows],
        "affected_rows": affected,
        "execution_time": _elapsed_ms(),
        "message": message,
    }
