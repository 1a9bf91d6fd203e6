"""Schema object data model shared by the navigation tree, the cache and the dispatcher.

Objects arrive from the backend as plain dicts ({name, row_count, table_type}); they are
converted once into immutable ObjectDescriptor instances and never mutated afterwards.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


class MalformedResponse(ValueError):
    """Raised when a backend response is missing fields or carries values of the wrong type."""


class ObjectKind(str, Enum):
    TABLE = "table"
    VIEW = "view"
    INDEX = "index"
    TRIGGER = "trigger"

    @classmethod
    def parse(cls, value: Any) -> Optional["ObjectKind"]:
        """Return the kind for an exact kind string, or None when it is not one of the four kinds."""
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return None
        try:
            return cls(value)
        except ValueError:
            return None


# Display order of the type groups in the tree
CANONICAL_KINDS: Tuple[ObjectKind, ...] = (
    ObjectKind.TABLE,
    ObjectKind.VIEW,
    ObjectKind.INDEX,
    ObjectKind.TRIGGER,
)


class ConnectionKind(str, Enum):
    MYSQL = "mysql"
    POSTGRESQL = "postgresql"
    SQLITE = "sqlite"


DEFAULT_PORTS = {
    ConnectionKind.MYSQL: 3306,
    ConnectionKind.POSTGRESQL: 5432,
    ConnectionKind.SQLITE: 0,
}


@dataclass(frozen=True)
class ConnectionDescriptor:
    """A saved connection as owned by the connection registry.

    For SQLite connections `database` holds the database file path and host/port are unused.
    """

    id: str
    name: str
    kind: ConnectionKind
    host: str = ""
    port: int = 0
    database: str = ""
    username: str = ""
    password: str = ""

    def to_payload(self) -> Dict[str, Any]:
        """Return the connection in the wire shape expected by the backend service."""
        return {
            "name": self.name,
            "db_type": self.kind.value,
            "host": self.host,
            "port": self.port,
            "database": self.database,
            "username": self.username,
            "password": self.password,
        }

    def __repr__(self) -> str:
        # never leak the password through logging of descriptors
        return (
            f"ConnectionDescriptor(id={self.id!r}, name={self.name!r}, kind={self.kind.value!r}, "
            f"host={self.host!r}, port={self.port!r}, database={self.database!r})"
        )


@dataclass(frozen=True)
class ObjectDescriptor:
    name: str
    row_count: int
    kind: str

    @property
    def object_kind(self) -> Optional[ObjectKind]:
        return ObjectKind.parse(self.kind)

    @classmethod
    def from_wire(cls, item: Any) -> "ObjectDescriptor":
        """Build a descriptor from one entry of the `tables` list of an introspection response."""
        if not isinstance(item, dict):
            raise MalformedResponse(f"expected an object entry, got {type(item).__name__}")
        name = item.get("name")
        kind = item.get("table_type")
        row_count = item.get("row_count")
        if not isinstance(name, str) or not name:
            raise MalformedResponse("object entry without a name")
        if not isinstance(kind, str):
            raise MalformedResponse(f"object {name!r} has no table_type")
        # bool is an int subclass; reject it explicitly
        if isinstance(row_count, bool) or not isinstance(row_count, int) or row_count < 0:
            raise MalformedResponse(f"object {name!r} has an invalid row_count: {row_count!r}")
        return cls(name=name, row_count=row_count, kind=kind)


class CacheStatus(str, Enum):
    UNLOADED = "unloaded"
    LOADING = "loading"
    LOADED = "loaded"
    ERROR = "error"


@dataclass(frozen=True)
class CacheEntry:
    status: CacheStatus = CacheStatus.UNLOADED
    objects: Tuple[ObjectDescriptor, ...] = ()
    error_message: Optional[str] = None

    @classmethod
    def unloaded(cls) -> "CacheEntry":
        return cls(CacheStatus.UNLOADED)

    @classmethod
    def loading(cls) -> "CacheEntry":
        return cls(CacheStatus.LOADING)

    @classmethod
    def loaded(cls, objects) -> "CacheEntry":
        return cls(CacheStatus.LOADED, objects=tuple(objects))

    @classmethod
    def error(cls, message: str) -> "CacheEntry":
        return cls(CacheStatus.ERROR, error_message=message or "Unknown error")

    @property
    def needs_fetch(self) -> bool:
        return self.status in (CacheStatus.UNLOADED, CacheStatus.ERROR)


@dataclass
class ObjectGroup:
    kind: ObjectKind
    objects: List[ObjectDescriptor] = field(default_factory=list)

    @property
    def flatten(self) -> bool:
        """Tables are listed directly under the connection node; other kinds get a group header."""
        return self.kind is ObjectKind.TABLE

    @property
    def label(self) -> str:
        return {
            ObjectKind.TABLE: "Tables",
            ObjectKind.VIEW: "Views",
            ObjectKind.INDEX: "Indexes",
            ObjectKind.TRIGGER: "Triggers",
        }[self.kind]


def group_objects(objects) -> List[ObjectGroup]:
    """Partition a flat object list into type groups.

    Groups come out in the order table, view, index, trigger; empty kinds are omitted and
    each group keeps the relative order of the input. Objects whose kind is not one of the
    four canonical kinds are left out of every group.
    """
    buckets: Dict[ObjectKind, List[ObjectDescriptor]] = {k: [] for k in CANONICAL_KINDS}
    for obj in objects:
        kind = obj.object_kind
        if kind is None:
            continue
        buckets[kind].append(obj)
    return [ObjectGroup(kind, buckets[kind]) for kind in CANONICAL_KINDS if buckets[kind]]
