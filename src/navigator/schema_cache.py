import logging
from typing import Any, Callable, Dict, Set

from PyQt6.QtCore import QObject, pyqtSignal

from db.connection import MissingConnection
from navigator.objects import CacheEntry, CacheStatus, MalformedResponse, ObjectDescriptor

logger = logging.getLogger(__name__)

# launcher(payload, on_success(response_dict), on_failure(message))
FetchLauncher = Callable[[Dict[str, Any], Callable[[dict], None], Callable[[str], None]], None]

MALFORMED_MESSAGE = "Malformed introspection response"


def parse_tables_response(response: Any):
    """Validate an introspection response.

    Returns (True, [ObjectDescriptor, ...]) on success or (False, message) when the backend
    reported a failure. Raises MalformedResponse when required fields are missing.
    """
    if not isinstance(response, dict) or not isinstance(response.get("success"), bool):
        raise MalformedResponse("response has no boolean 'success' field")
    if not response["success"]:
        message = response.get("message")
        return False, message if isinstance(message, str) and message else "Failed to load database objects"
    tables = response.get("tables")
    if not isinstance(tables, list):
        raise MalformedResponse("response has no 'tables' list")
    return True, [ObjectDescriptor.from_wire(item) for item in tables]


class SchemaCache(QObject):
    """Per-connection cache of schema object lists.

    Each connection id has at most one CacheEntry. A fetch is only issued when the entry is
    not LOADING; its result is written back only if no eviction or invalidation happened in
    between (tracked with a per-connection generation counter).
    """

    entry_changed = pyqtSignal(str)

    def __init__(self, registry, launcher: FetchLauncher, parent=None):
        super().__init__(parent)
        self._registry = registry
        self._launcher = launcher
        self._entries: Dict[str, CacheEntry] = {}
        self._generations: Dict[str, int] = {}
        # ids invalidated while a fetch was running; refetched when that fetch completes
        self._reload_pending: Set[str] = set()

    def get(self, connection_id: str) -> CacheEntry:
        return self._entries.get(connection_id) or CacheEntry.unloaded()

    def request_load(self, connection_id: str) -> bool:
        """Start fetching the object list for a connection.

        Returns False without doing anything when a fetch is already in flight or the
        connection no longer exists in the registry.
        """
        if self.get(connection_id).status is CacheStatus.LOADING:
            logger.debug("Fetch for %s already in flight; ignoring request", connection_id)
            return False
        try:
            descriptor = self._registry.get(connection_id)
        except MissingConnection:
            logger.info("Ignoring load request for unknown connection %s", connection_id)
            return False

        generation = self._generations.get(connection_id, 0) + 1
        self._generations[connection_id] = generation
        self._set(connection_id, CacheEntry.loading())
        logger.debug("Fetching objects for %r (generation %d)", descriptor.name, generation)

        try:
            self._launcher(
                descriptor.to_payload(),
                lambda response: self._on_fetch_finished(connection_id, generation, response),
                lambda message: self._on_fetch_failed(connection_id, generation, message),
            )
        except Exception as e:
            # launching itself failed; the entry must not stay LOADING forever
            logger.exception("Failed to start fetch for %s", connection_id)
            self._on_fetch_failed(connection_id, generation, str(e) or e.__class__.__name__)
        return True

    def evict(self, connection_id: str) -> None:
        """Drop the entry of a removed connection; a response still in flight is discarded."""
        self._reload_pending.discard(connection_id)
        self._bump(connection_id)
        if self._entries.pop(connection_id, None) is not None:
            logger.debug("Evicted cache entry for %s", connection_id)
            self.entry_changed.emit(connection_id)

    def invalidate(self, connection_id: str) -> None:
        """Reset an entry to UNLOADED so the next expand fetches again.

        While a fetch is in flight the entry stays LOADING and a single new fetch is issued
        once the running one completes; its result is dropped.
        """
        if self.get(connection_id).status is CacheStatus.LOADING:
            self._reload_pending.add(connection_id)
            return
        self._bump(connection_id)
        if connection_id in self._entries:
            self._set(connection_id, CacheEntry.unloaded())

    def _bump(self, connection_id: str) -> None:
        if connection_id in self._generations:
            self._generations[connection_id] += 1

    def _is_current(self, connection_id: str, generation: int) -> bool:
        if connection_id not in self._entries or self._generations.get(connection_id) != generation:
            logger.debug("Discarding stale response for %s (generation %d)", connection_id, generation)
            return False
        return True

    def _on_fetch_finished(self, connection_id: str, generation: int, response: Any) -> None:
        if not self._is_current(connection_id, generation):
            return
        if self._reload_if_pending(connection_id):
            return
        try:
            ok, result = parse_tables_response(response)
        except MalformedResponse as e:
            logger.warning("Malformed introspection response for %s: %s", connection_id, e)
            self._set(connection_id, CacheEntry.error(f"{MALFORMED_MESSAGE}: {e}"))
            return
        if ok:
            logger.debug("Loaded %d objects for %s", len(result), connection_id)
            self._set(connection_id, CacheEntry.loaded(result))
        else:
            logger.info("Introspection failed for %s: %s", connection_id, result)
            self._set(connection_id, CacheEntry.error(result))

    def _on_fetch_failed(self, connection_id: str, generation: int, message: str) -> None:
        if not self._is_current(connection_id, generation):
            return
        if self._reload_if_pending(connection_id):
            return
        logger.info("Introspection call failed for %s: %s", connection_id, message)
        self._set(connection_id, CacheEntry.error(message or "Failed to load database objects"))

    def _reload_if_pending(self, connection_id: str) -> bool:
        if connection_id not in self._reload_pending:
            return False
        self._reload_pending.discard(connection_id)
        logger.debug("Dropping result fetched before invalidation of %s; fetching again", connection_id)
        self._set(connection_id, CacheEntry.unloaded())
        self.request_load(connection_id)
        return True

    def _set(self, connection_id: str, entry: CacheEntry) -> None:
        self._entries[connection_id] = entry
        self.entry_changed.emit(connection_id)
