import os
import json
import uuid
import codecs
import logging
from pathlib import Path
from typing import Callable, Dict, Any, List, Optional

from navigator.objects import ConnectionDescriptor, ConnectionKind, DEFAULT_PORTS

logger = logging.getLogger(__name__)


def _default_config_path() -> Path:
    # resolved lazily so SCHEMANAV_HOME set by tests/launchers is honoured
    from utils.settings import CONFIG_DIR
    return CONFIG_DIR / "connections.json"


class MissingConnection(KeyError):
    """Raised when a connection id is not (or no longer) present in the registry."""


class ConnectionManager:
    """Registry of saved connections, persisted as JSON.

    Connections are keyed by a generated id. Other components only read descriptors; they
    learn about removals and edits through listeners registered with
    add_removal_listener()/add_update_listener().
    """

    def __init__(self, config_path: Path | None = None):
        self._connections: Dict[str, ConnectionDescriptor] = {}
        self._removal_listeners: List[Callable[[str], None]] = []
        self._update_listeners: List[Callable[[str], None]] = []
        self.config_path = Path(config_path) if config_path else _default_config_path()
        self.config_path.parent.mkdir(parents=True, exist_ok=True)
        self._load_config()

    def _load_config(self) -> None:
        if not self.config_path.exists():
            return
        # Try multiple encodings because users may have edited the file with other tools on Windows
        data = None
        for enc in ("utf-8", "utf-8-sig", "cp936", "latin-1"):
            try:
                with open(self.config_path, "r", encoding=enc) as f:
                    data = json.loads(f.read())
                break
            except (UnicodeDecodeError, json.JSONDecodeError):
                continue
            except OSError:
                logger.exception("Failed to read connection config %s", self.config_path)
                break

        if not isinstance(data, dict):
            # keep a copy of the unreadable file and start with an empty registry
            bad_path = self.config_path.with_suffix(self.config_path.suffix + ".bak")
            try:
                bad_path.write_bytes(self.config_path.read_bytes())
                logger.warning("Unreadable connection config backed up to %s", bad_path)
            except OSError:
                logger.exception("Failed to back up unreadable connection config")
            return

        for conn_id, cfg in data.items():
            try:
                self._connections[conn_id] = self._descriptor_from_config(conn_id, cfg)
            except (TypeError, ValueError) as e:
                logger.warning("Skipping invalid connection config %r: %s", conn_id, e)

        logger.debug("Loaded connection configs: %r", [c.name for c in self._connections.values()])

    @staticmethod
    def _descriptor_from_config(conn_id: str, cfg: Dict[str, Any]) -> ConnectionDescriptor:
        if not isinstance(cfg, dict):
            raise TypeError("connection config must be an object")
        kind = ConnectionKind(cfg.get("type"))
        password = cfg.get("password") or ""
        if isinstance(password, str) and password:
            # passwords are stored rot13-encoded
            password = codecs.decode(password, "rot_13")
        return ConnectionDescriptor(
            id=conn_id,
            name=str(cfg.get("name") or conn_id),
            kind=kind,
            host=str(cfg.get("host") or ""),
            port=int(cfg.get("port") or DEFAULT_PORTS[kind]),
            database=str(cfg.get("database") or ""),
            username=str(cfg.get("username") or ""),
            password=password,
        )

    def _save_config(self) -> None:
        to_write: Dict[str, Any] = {}
        for conn_id, desc in self._connections.items():
            to_write[conn_id] = {
                "name": desc.name,
                "type": desc.kind.value,
                "host": desc.host,
                "port": desc.port,
                "database": desc.database,
                "username": desc.username,
                # simple obfuscation, not encryption
                "password": codecs.encode(desc.password, "rot_13") if desc.password else "",
            }
        try:
            with open(self.config_path, "w", encoding="utf-8") as f:
                json.dump(to_write, f, indent=2)
        except OSError:
            logger.exception("Failed to save connection config to %s", self.config_path)

    def _unique_name(self, name: str, exclude_id: Optional[str] = None) -> str:
        taken = {c.name for c in self._connections.values() if c.id != exclude_id}
        display_name = name
        idx = 1
        while display_name in taken:
            display_name = f"{name} ({idx})"
            idx += 1
        return display_name

    def add_connection(self, name: str, conn_type: str, **kwargs) -> ConnectionDescriptor:
        """Register a connection. conn_type: 'mysql'|'postgresql'|'sqlite'.

        kwargs: host, port, database, username (or user), password. For SQLite, `database`
        (or `path`) is the database file path. Returns the stored descriptor.
        """
        try:
            kind = ConnectionKind(conn_type)
        except ValueError:
            raise ValueError(f"Unsupported connection type: {conn_type}") from None

        if "user" in kwargs and "username" not in kwargs:
            kwargs["username"] = kwargs.pop("user")
        database = kwargs.get("database") or kwargs.get("path") or ""
        if kind is ConnectionKind.SQLITE and database and database != ":memory:":
            database = os.path.abspath(database)
        if not name:
            name = os.path.basename(database) if kind is ConnectionKind.SQLITE else f"{kind.value}@{kwargs.get('host') or 'localhost'}"

        port = kwargs.get("port")
        desc = ConnectionDescriptor(
            id=uuid.uuid4().hex,
            name=self._unique_name(name),
            kind=kind,
            host="" if kind is ConnectionKind.SQLITE else str(kwargs.get("host") or "localhost"),
            port=int(port) if port else DEFAULT_PORTS[kind],
            database=database,
            username=str(kwargs.get("username") or ""),
            password=str(kwargs.get("password") or ""),
        )
        self._connections[desc.id] = desc
        self._save_config()
        logger.info("Added %s connection %r (%s)", kind.value, desc.name, desc.id)
        return desc

    def update_connection(self, conn_id: str, **changes) -> ConnectionDescriptor:
        current = self.get(conn_id)
        values = {
            "name": current.name,
            "host": current.host,
            "port": current.port,
            "database": current.database,
            "username": current.username,
            "password": current.password,
        }
        for key, value in changes.items():
            if key not in values:
                raise ValueError(f"Unknown connection field: {key}")
            if value is not None:
                values[key] = value
        values["name"] = self._unique_name(str(values["name"]), exclude_id=conn_id)
        values["port"] = int(values["port"] or DEFAULT_PORTS[current.kind])
        updated = ConnectionDescriptor(id=conn_id, kind=current.kind, **values)
        self._connections[conn_id] = updated
        self._save_config()
        self._notify(self._update_listeners, conn_id)
        return updated

    def get(self, conn_id: str) -> ConnectionDescriptor:
        try:
            return self._connections[conn_id]
        except KeyError:
            raise MissingConnection(conn_id) from None

    def find(self, conn_id: str) -> Optional[ConnectionDescriptor]:
        return self._connections.get(conn_id)

    def list_connections(self) -> List[ConnectionDescriptor]:
        return sorted(self._connections.values(), key=lambda c: c.name.lower())

    def remove_connection(self, conn_id: str) -> None:
        if conn_id not in self._connections:
            return
        desc = self._connections.pop(conn_id)
        self._save_config()
        logger.info("Removed connection %r (%s)", desc.name, conn_id)
        self._notify(self._removal_listeners, conn_id)

    def add_removal_listener(self, callback: Callable[[str], None]) -> None:
        self._removal_listeners.append(callback)

    def add_update_listener(self, callback: Callable[[str], None]) -> None:
        self._update_listeners.append(callback)

    @staticmethod
    def _notify(listeners, conn_id: str) -> None:
        for cb in list(listeners):
            try:
                cb(conn_id)
            except Exception:
                # one failing listener must not prevent the others from cleaning up
                logger.exception("Connection listener %r failed for %s", cb, conn_id)
