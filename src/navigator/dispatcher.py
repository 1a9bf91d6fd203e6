"""Turn a clicked schema object into an inspection query and hand it to the query view.

Query text depends on the object kind and, for indexes and triggers, on the connection's
database type since those are looked up in the system catalog. Object names are placed
inside identifier quotes (or string quotes for catalog lookups) without escaping.
"""
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Set, Tuple

from PyQt6.QtCore import QObject, pyqtSignal

from db.connection import MissingConnection
from navigator.objects import ConnectionDescriptor, ConnectionKind, ObjectKind

logger = logging.getLogger(__name__)

PREVIEW_LIMIT = 50
SYSTEM_TABLE_PREFIX = "sqlite_"
QUERY_VIEW = "query"


def _quote_ident(name: str, dialect: ConnectionKind) -> str:
    if dialect is ConnectionKind.MYSQL:
        return f"`{name}`"
    return f'"{name}"'


def _select_rows(name: str, dialect: ConnectionKind) -> str:
    # SQLite catalogs are small; show them whole
    if name.startswith(SYSTEM_TABLE_PREFIX):
        return f"SELECT * FROM {_quote_ident(name, dialect)};"
    return f"SELECT * FROM {_quote_ident(name, dialect)} LIMIT {PREVIEW_LIMIT};"


def _index_info(name: str, dialect: ConnectionKind) -> str:
    if dialect is ConnectionKind.POSTGRESQL:
        return f"SELECT indexname, tablename, indexdef FROM pg_indexes WHERE indexname = '{name}';"
    if dialect is ConnectionKind.MYSQL:
        return ("SELECT table_name, index_name, seq_in_index, column_name, non_unique "
                f"FROM information_schema.statistics WHERE table_schema = DATABASE() AND index_name = '{name}';")
    return f'PRAGMA index_info("{name}");'


def _trigger_definition(name: str, dialect: ConnectionKind) -> str:
    if dialect is ConnectionKind.POSTGRESQL:
        return f"SELECT tgname, pg_get_triggerdef(oid) AS definition FROM pg_trigger WHERE tgname = '{name}';"
    if dialect is ConnectionKind.MYSQL:
        return ("SELECT trigger_name, action_statement FROM information_schema.triggers "
                f"WHERE trigger_schema = DATABASE() AND trigger_name = '{name}';")
    return f"SELECT sql FROM sqlite_master WHERE type = 'trigger' AND name = '{name}';"


_BUILDERS: Dict[ObjectKind, Callable[[str, ConnectionKind], str]] = {
    ObjectKind.TABLE: _select_rows,
    ObjectKind.VIEW: _select_rows,
    ObjectKind.INDEX: _index_info,
    ObjectKind.TRIGGER: _trigger_definition,
}

_missing = set(ObjectKind) - set(_BUILDERS)
if _missing:
    raise RuntimeError(f"No query builder for object kinds: {sorted(k.value for k in _missing)}")


def build_inspection_sql(object_name: str, kind, dialect=ConnectionKind.SQLITE) -> str:
    """Return the inspection query for an object; unknown kinds are treated like tables."""
    parsed = ObjectKind.parse(kind) or ObjectKind.TABLE
    return _BUILDERS[parsed](object_name, ConnectionKind(dialect))


@dataclass(frozen=True)
class AutoQuery:
    connection: ConnectionDescriptor
    object_name: str
    sql: str


class QueryState(QObject):
    """Selected connection and SQL text shared between the navigator and the query view."""

    changed = pyqtSignal()

    def __init__(self, parent=None):
        super().__init__(parent)
        self.selected_connection_id: Optional[str] = None
        self.current_sql: str = ""
        self.auto_query: Optional[AutoQuery] = None

    def set_selected_connection(self, connection_id: Optional[str]) -> None:
        self.selected_connection_id = connection_id
        self.changed.emit()

    def set_current_sql(self, sql: str) -> None:
        self.current_sql = sql
        self.changed.emit()

    def set_auto_query(self, connection: ConnectionDescriptor, object_name: str, sql: str) -> None:
        self.auto_query = AutoQuery(connection, object_name, sql)
        self.current_sql = sql
        self.selected_connection_id = connection.id
        self.changed.emit()

    def clear_auto_query(self) -> None:
        self.auto_query = None


class QueryDispatcher:
    """Generate the query for a clicked object and forward it for navigation and execution.

    navigate(view_name) switches the UI to the named view; execute(request) receives
    {"connection": <wire payload>, "sql": <text>}.
    """

    def __init__(self, registry, state: QueryState, navigate: Callable[[str], Any],
                 execute: Callable[[Dict[str, Any]], Any]):
        self._registry = registry
        self._state = state
        self._navigate = navigate
        self._execute = execute
        self._busy: Set[Tuple[str, str]] = set()

    def is_busy(self, connection_id: str, object_name: str) -> bool:
        return (connection_id, object_name) in self._busy

    def dispatch(self, connection: ConnectionDescriptor, object_name: str, kind, custom_sql: Optional[str] = None) -> str:
        if custom_sql is not None:
            sql = custom_sql
        else:
            sql = build_inspection_sql(object_name, kind, connection.kind)

        key = (connection.id, object_name)
        self._busy.add(key)
        try:
            self._state.set_auto_query(connection, object_name, sql)
            self._navigate(QUERY_VIEW)
            self._execute({"connection": connection.to_payload(), "sql": sql})
        finally:
            self._busy.discard(key)
        logger.debug("Dispatched %s %r on %r", kind, object_name, connection.name)
        return sql

    def dispatch_by_id(self, connection_id: str, object_name: str, kind, custom_sql: Optional[str] = None) -> Optional[str]:
        """Like dispatch(), but resolves the connection first; unknown ids are a logged no-op."""
        try:
            connection = self._registry.get(connection_id)
        except MissingConnection:
            logger.info("Ignoring click on %r: connection %s no longer exists", object_name, connection_id)
            return None
        return self.dispatch(connection, object_name, kind, custom_sql)
