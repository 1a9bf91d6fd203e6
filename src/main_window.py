from PyQt6.QtWidgets import (
    QMainWindow, QWidget, QHBoxLayout, QSplitter, QStackedWidget, QMessageBox, QDialog, QFileDialog, QStyle,
)
from PyQt6.QtGui import QAction, QDesktopServices
from PyQt6.QtCore import Qt, QUrl
import traceback
import logging

from db.connection import ConnectionManager
from navigator.dispatcher import QUERY_VIEW
from navigator.session import NavigatorSession
from ui.connection_dialog import ConnectionDialog
from ui.query_view import QueryView
from ui.schema_tree import SchemaTreePanel
from utils.settings import CONFIG_DIR, load_app_state, save_app_state
from utils.worker import QtFetchLauncher

logger = logging.getLogger(__name__)


class MainWindow(QMainWindow):
    def __init__(self, conn_mgr: ConnectionManager | None = None):
        super().__init__()
        self.setWindowTitle("SchemaNav")
        self.resize(1000, 700)

        self.conn_mgr = conn_mgr or ConnectionManager()
        self._launcher = QtFetchLauncher(self)
        # one session per window; widgets receive it explicitly
        self.session = NavigatorSession(
            self.conn_mgr,
            self._launcher,
            navigate=self.show_view,
            execute=lambda request: self.query_view.execute_request(request),
            parent=self,
        )
        self._views = {}

        self._init_actions()
        self._init_ui()
        self._restore_app_state()

    def _init_actions(self):
        menubar = self.menuBar()
        file_menu = menubar.addMenu("File")

        open_sqlite_action = QAction("Open SQLite Database", self)
        open_sqlite_action.setIcon(self.style().standardIcon(QStyle.StandardPixmap.SP_DialogOpenButton))
        open_sqlite_action.triggered.connect(self.open_sqlite_db)
        file_menu.addAction(open_sqlite_action)

        open_config_action = QAction("Open Config Folder", self)
        open_config_action.setIcon(self.style().standardIcon(QStyle.StandardPixmap.SP_DirOpenIcon))
        open_config_action.triggered.connect(self.open_config_folder)
        file_menu.addAction(open_config_action)

        exit_action = QAction("Exit", self)
        exit_action.setIcon(self.style().standardIcon(QStyle.StandardPixmap.SP_DialogCloseButton))
        exit_action.triggered.connect(self.close)
        file_menu.addAction(exit_action)

        conn_menu = menubar.addMenu("Connection")
        new_conn_action = QAction("New Connection...", self)
        new_conn_action.setIcon(self.style().standardIcon(QStyle.StandardPixmap.SP_DriveNetIcon))
        new_conn_action.triggered.connect(self.open_new_connection_dialog)
        conn_menu.addAction(new_conn_action)

    def _init_ui(self):
        central = QWidget()
        self.setCentralWidget(central)
        layout = QHBoxLayout(central)

        self.tree_panel = SchemaTreePanel(self.session)
        self.tree_panel.setMaximumWidth(340)
        self.tree_panel.edit_requested.connect(self.edit_connection)
        self.tree_panel.delete_requested.connect(self.delete_connection)

        self.stack = QStackedWidget()
        self.query_view = QueryView(self.session)
        self._views[QUERY_VIEW] = self.stack.addWidget(self.query_view)

        splitter = QSplitter(Qt.Orientation.Horizontal)
        splitter.addWidget(self.tree_panel)
        splitter.addWidget(self.stack)
        splitter.setStretchFactor(1, 1)
        layout.addWidget(splitter)

    def show_view(self, view_name: str) -> None:
        idx = self._views.get(view_name)
        if idx is None:
            logger.warning("Unknown view requested: %s", view_name)
            return
        self.stack.setCurrentIndex(idx)

    def _connections_changed(self) -> None:
        self.tree_panel.reload_connections()
        self.query_view.refresh_connections()

    def _show_error(self, title: str, e: Exception) -> None:
        dlg = QMessageBox(self)
        dlg.setIcon(QMessageBox.Icon.Critical)
        dlg.setWindowTitle(title)
        dlg.setText(str(e))
        dlg.setDetailedText(traceback.format_exc())
        dlg.exec()

    def open_sqlite_db(self):
        path, _ = QFileDialog.getOpenFileName(self, "Select SQLite database file", "", "SQLite Files (*.db *.sqlite *.sqlite3);;All Files (*)")
        if not path:
            return
        try:
            self.conn_mgr.add_connection("", "sqlite", database=path)
        except (ValueError, OSError) as e:
            self._show_error("Error", e)
            return
        self._connections_changed()

    def open_new_connection_dialog(self):
        dlg = ConnectionDialog(self)
        if dlg.exec() != QDialog.DialogCode.Accepted:
            return
        data = dlg.get_data()
        try:
            added = self.conn_mgr.add_connection(data.pop("name"), data.pop("type"), **data)
        except ValueError as e:
            self._show_error("Connection error", e)
            return
        self._connections_changed()
        self.statusBar().showMessage(f"Added connection: {added.name}", 5000)

    def edit_connection(self, connection_id: str):
        desc = self.conn_mgr.find(connection_id)
        if desc is None:
            return
        dlg = ConnectionDialog(self, descriptor=desc)
        if dlg.exec() != QDialog.DialogCode.Accepted:
            return
        data = dlg.get_data()
        data.pop("type", None)
        try:
            # the registry notifies the session, which invalidates the cached objects
            self.conn_mgr.update_connection(connection_id, **data)
        except ValueError as e:
            self._show_error("Connection error", e)
            return
        self._connections_changed()

    def delete_connection(self, connection_id: str):
        desc = self.conn_mgr.find(connection_id)
        if desc is None:
            return
        resp = QMessageBox.question(self, "Delete connection", f"Are you sure you want to delete connection '{desc.name}'?",
                                    QMessageBox.StandardButton.Yes | QMessageBox.StandardButton.No)
        if resp != QMessageBox.StandardButton.Yes:
            return
        self.conn_mgr.remove_connection(connection_id)
        self._connections_changed()

    def open_config_folder(self):
        """Open the user configuration directory in the OS file manager."""
        QDesktopServices.openUrl(QUrl.fromLocalFile(str(CONFIG_DIR)))

    def _restore_app_state(self):
        """Restore the last SQL text and selected connection from the previous session."""
        state = load_app_state()
        last_sql = state.get("last_sql")
        if isinstance(last_sql, str) and last_sql:
            self.session.query_state.set_current_sql(last_sql)
        conn_id = state.get("selected_connection")
        if conn_id and self.conn_mgr.find(conn_id) is not None:
            self.session.query_state.set_selected_connection(conn_id)

    def closeEvent(self, event):
        """Save the query view state and stop running workers on exit."""
        self.query_view.shutdown()
        self._launcher.wait_all(2000)
        state = {
            "last_sql": self.session.query_state.current_sql,
            "selected_connection": self.session.query_state.selected_connection_id,
        }
        try:
            save_app_state(state)
        except OSError:
            # do not block exit on a read-only config folder
            logger.exception("Failed to save app state")
        super().closeEvent(event)
