import logging
from typing import Any, Callable, Dict, List, Optional

from navigator.dispatcher import QueryDispatcher, QueryState
from navigator.objects import CacheStatus, ObjectGroup, group_objects
from navigator.schema_cache import FetchLauncher, SchemaCache
from navigator.tree_state import TreeState

logger = logging.getLogger(__name__)


class NavigatorSession:
    """State of one navigation panel: schema cache, expansion state and shared query state.

    Created once by the main window and passed to the widgets that need it. Registers with
    the connection registry so that removing a connection evicts its cache entry and
    expansion state, and editing one invalidates its cached object list.
    """

    def __init__(self, registry, launcher: FetchLauncher, navigate: Callable[[str], Any],
                 execute: Callable[[Dict[str, Any]], Any], parent=None):
        self.registry = registry
        self.cache = SchemaCache(registry, launcher, parent)
        self.tree = TreeState(self.cache, parent)
        self.query_state = QueryState(parent)
        self.dispatcher = QueryDispatcher(registry, self.query_state, navigate, execute)
        registry.add_removal_listener(self._on_connection_removed)
        registry.add_update_listener(self._on_connection_updated)

    def grouped_view(self, connection_id: str) -> List[ObjectGroup]:
        entry = self.cache.get(connection_id)
        if entry.status is not CacheStatus.LOADED:
            return []
        return group_objects(entry.objects)

    def refresh(self, connection_id: str) -> None:
        """Drop the cached object list and, if the node is open, fetch it again."""
        self.cache.invalidate(connection_id)
        if self.tree.is_connection_expanded(connection_id):
            self.cache.request_load(connection_id)

    def _on_connection_removed(self, connection_id: str) -> None:
        self.cache.evict(connection_id)
        self.tree.forget_connection(connection_id)
        if self.query_state.selected_connection_id == connection_id:
            self.query_state.set_selected_connection(None)

    def _on_connection_updated(self, connection_id: str) -> None:
        logger.debug("Connection %s edited; invalidating cached objects", connection_id)
        self.refresh(connection_id)

    def selected_connection(self) -> Optional[str]:
        return self.query_state.selected_connection_id
