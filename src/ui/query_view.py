from PyQt6.QtWidgets import (
    QWidget, QVBoxLayout, QHBoxLayout, QPushButton, QComboBox, QTableView, QLabel, QMessageBox, QStyle,
)
import logging
from typing import Any, Dict

from editor.sql_editor import SqlEditor
from models.table_model import TableModel
from utils.settings import load_settings
from utils.worker import QueryWorker

logger = logging.getLogger(__name__)


class QueryView(QWidget):
    """SQL editor plus result grid bound to the session's shared QueryState.

    execute_request() is the execution hand-off used by the dispatcher; the Run button builds
    the same request from the selected connection and the editor text.
    """

    def __init__(self, session, parent=None):
        super().__init__(parent)
        self.session = session
        self._worker = None
        # superseded workers stay referenced until their thread ends
        self._running = set()
        self._settings = load_settings()

        vlayout = QVBoxLayout(self)
        toolbar = QHBoxLayout()
        self.conn_combo = QComboBox()
        self.conn_combo.setMinimumWidth(180)
        self.conn_combo.setToolTip("Connection the SQL is executed against")
        self.conn_combo.currentIndexChanged.connect(self._on_combo_changed)
        toolbar.addWidget(self.conn_combo)
        self.run_btn = QPushButton("Run")
        self.run_btn.setIcon(self.style().standardIcon(QStyle.StandardPixmap.SP_MediaPlay))
        self.run_btn.clicked.connect(self.run_current)
        toolbar.addWidget(self.run_btn)
        self.cancel_btn = QPushButton("Cancel")
        self.cancel_btn.setIcon(self.style().standardIcon(QStyle.StandardPixmap.SP_DialogCancelButton))
        self.cancel_btn.setEnabled(False)
        self.cancel_btn.clicked.connect(self.cancel)
        toolbar.addWidget(self.cancel_btn)
        toolbar.addStretch()
        vlayout.addLayout(toolbar)

        self.editor = SqlEditor()
        self.editor.execute_requested.connect(self.run_current)
        self.editor.text_changed.connect(self._on_editor_changed)
        vlayout.addWidget(self.editor, 1)

        self.results = QTableView()
        vlayout.addWidget(self.results, 2)
        self.status_label = QLabel("")
        vlayout.addWidget(self.status_label)

        session.query_state.changed.connect(self._on_state_changed)
        self.refresh_connections()
        self._on_state_changed()

    def refresh_connections(self) -> None:
        selected = self.session.query_state.selected_connection_id
        self.conn_combo.blockSignals(True)
        try:
            self.conn_combo.clear()
            self.conn_combo.addItem("", None)
            for desc in self.session.registry.list_connections():
                self.conn_combo.addItem(f"{desc.name} ({desc.kind.value})", desc.id)
            idx = self.conn_combo.findData(selected)
            self.conn_combo.setCurrentIndex(max(idx, 0))
        finally:
            self.conn_combo.blockSignals(False)

    def _on_state_changed(self) -> None:
        state = self.session.query_state
        self.editor.set_sql(state.current_sql)
        idx = self.conn_combo.findData(state.selected_connection_id)
        if idx >= 0 and idx != self.conn_combo.currentIndex():
            self.conn_combo.blockSignals(True)
            self.conn_combo.setCurrentIndex(idx)
            self.conn_combo.blockSignals(False)
        if state.auto_query is not None:
            self.status_label.setText(f"Querying {state.auto_query.object_name}...")
            state.clear_auto_query()

    def _on_combo_changed(self, _idx: int) -> None:
        self.session.query_state.set_selected_connection(self.conn_combo.currentData())

    def _on_editor_changed(self, text: str) -> None:
        state = self.session.query_state
        if text != state.current_sql:
            # plain attribute write; the editor is already showing this text
            state.current_sql = text

    def run_current(self) -> None:
        conn_id = self.conn_combo.currentData()
        desc = self.session.registry.find(conn_id) if conn_id else None
        if desc is None:
            QMessageBox.warning(self, "No connection", "Please select a connection and try again.")
            return
        sql = self.editor.get_sql()
        if not sql:
            QMessageBox.warning(self, "No SQL", "Please enter a SQL statement.")
            return
        self.execute_request({"connection": desc.to_payload(), "sql": sql})

    def execute_request(self, request: Dict[str, Any]) -> None:
        if self._worker is not None:
            # the newest request wins; the running one is asked to stop
            self._worker.stop()
        worker = QueryWorker(request, row_limit=self._settings["row_limit"],
                             timeout=self._settings["execution_timeout"])
        self._worker = worker
        self._running.add(worker)
        self.cancel_btn.setEnabled(True)
        self.status_label.setText(f"Running query on '{request['connection'].get('name')}'...")

        def on_results(result: dict) -> None:
            if worker is not self._worker:
                return
            self._show_result(result)

        def on_error(msg: str) -> None:
            if worker is self._worker:
                self.status_label.setText(f"Query failed: {msg}")

        def on_finished() -> None:
            if worker is self._worker:
                self._worker = None
                self.cancel_btn.setEnabled(False)
            self._running.discard(worker)
            worker.deleteLater()

        worker.results_ready.connect(on_results)
        worker.error.connect(on_error)
        worker.finished.connect(on_finished)
        worker.start()

    def _show_result(self, result: dict) -> None:
        self.results.setModel(TableModel(result.get("columns") or [], result.get("rows") or []))
        if result.get("success"):
            self.status_label.setText(f"{result.get('message')} ({result.get('execution_time')} ms)")
        else:
            self.status_label.setText(result.get("message") or "Query failed")
            logger.info("Query failed: %s", result.get("message"))

    def cancel(self) -> None:
        if self._worker is not None:
            self._worker.stop()
            self.status_label.setText("Canceling...")

    def shutdown(self) -> None:
        for worker in list(self._running):
            worker.stop()
            worker.wait(2000)
