from PyQt6.QtCore import QThread, pyqtSignal
from typing import Any, Callable, Dict
import logging
import threading

logger = logging.getLogger(__name__)


class IntrospectionWorker(QThread):
    """List a connection's schema objects in a background thread.

    Emits `finished_with_result(dict)` with the backend response or `failed(str)` when the call
    itself raised (transport-level failure).
    """

    finished_with_result = pyqtSignal(object)
    failed = pyqtSignal(str)

    def __init__(self, payload: Dict[str, Any], parent=None):
        super().__init__(parent)
        self.payload = payload

    def run(self):
        # delay import to avoid circular
        from db.backend import get_database_tables

        try:
            self.finished_with_result.emit(get_database_tables(self.payload))
        except Exception as e:
            logger.exception("Introspection worker failed")
            self.failed.emit(str(e) or e.__class__.__name__)


class QueryWorker(QThread):
    """Run a query request in a background thread and emit the backend response.

    Uses threading.Event to support cancellation between and during statements.
    """

    results_ready = pyqtSignal(object)
    error = pyqtSignal(str)

    def __init__(self, request: Dict[str, Any], row_limit: int = 1000, timeout: float = 30, parent=None):
        super().__init__(parent)
        self.request = request
        self.row_limit = row_limit
        self.timeout = timeout
        self._stop_event = threading.Event()

    def run(self):
        from db.backend import execute_query

        try:
            self.results_ready.emit(execute_query(self.request, row_limit=self.row_limit,
                                                  timeout=self.timeout, stop_event=self._stop_event))
        except Exception as e:
            self.error.emit(str(e))

    def stop(self):
        self._stop_event.set()


class QtFetchLauncher:
    """Fetch launcher for SchemaCache that runs each introspection on its own QThread.

    Workers are kept referenced until they finish so Qt does not destroy a running thread.
    """

    def __init__(self, parent=None):
        self._parent = parent
        self._workers = set()

    def __call__(self, payload: Dict[str, Any], on_success: Callable[[dict], None],
                 on_failure: Callable[[str], None]) -> None:
        worker = IntrospectionWorker(payload, self._parent)
        worker.finished_with_result.connect(on_success)
        worker.failed.connect(on_failure)
        self._workers.add(worker)

        def _cleanup():
            self._workers.discard(worker)
            worker.deleteLater()

        worker.finished.connect(_cleanup)
        worker.start()

    def wait_all(self, msecs: int = 5000) -> None:
        for worker in list(self._workers):
            worker.wait(msecs)


def run_inline(payload: Dict[str, Any], on_success: Callable[[dict], None],
               on_failure: Callable[[str], None]) -> None:
    """Fetch launcher that calls the backend synchronously on the caller's thread."""
    from db.backend import get_database_tables

    try:
        response = get_database_tables(payload)
    except Exception as e:
        on_failure(str(e) or e.__class__.__name__)
        return
    on_success(response)
