import logging
from typing import Set, Tuple

from PyQt6.QtCore import QObject, pyqtSignal

from navigator.objects import ObjectKind

logger = logging.getLogger(__name__)


class TreeState(QObject):
    """Expanded/collapsed state of connection nodes and their type-group nodes.

    Expanding a connection whose cache entry is UNLOADED or ERROR asks the cache to load it;
    nothing else here depends on cache contents.
    """

    expansion_changed = pyqtSignal(str)

    def __init__(self, cache, parent=None):
        super().__init__(parent)
        self._cache = cache
        self._connections: Set[str] = set()
        self._groups: Set[Tuple[str, ObjectKind]] = set()

    def toggle_connection(self, connection_id: str) -> None:
        if connection_id in self._connections:
            self._connections.discard(connection_id)
        else:
            self._connections.add(connection_id)
            if self._cache.get(connection_id).needs_fetch:
                self._cache.request_load(connection_id)
        self.expansion_changed.emit(connection_id)

    def toggle_group(self, connection_id: str, kind) -> None:
        key = (connection_id, self._kind(kind))
        if key in self._groups:
            self._groups.discard(key)
        else:
            self._groups.add(key)
        self.expansion_changed.emit(connection_id)

    def is_connection_expanded(self, connection_id: str) -> bool:
        return connection_id in self._connections

    def is_group_expanded(self, connection_id: str, kind) -> bool:
        return (connection_id, self._kind(kind)) in self._groups

    def forget_connection(self, connection_id: str) -> None:
        """Drop all expansion state of a connection that was removed from the registry."""
        self._connections.discard(connection_id)
        self._groups = {key for key in self._groups if key[0] != connection_id}

    @staticmethod
    def _kind(kind) -> ObjectKind:
        parsed = ObjectKind.parse(kind)
        if parsed is None:
            raise ValueError(f"Unknown object kind: {kind!r}")
        return parsed
