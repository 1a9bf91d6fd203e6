from PyQt6.QtWidgets import (
    QDialog, QVBoxLayout, QHBoxLayout, QFormLayout, QLineEdit, QComboBox, QDialogButtonBox, QPushButton,
    QMessageBox, QFileDialog, QStyle, QWidget,
)

from navigator.objects import ConnectionDescriptor, ConnectionKind


class ConnectionDialog(QDialog):
    """Dialog to enter or edit a connection (mysql, postgresql, or sqlite).

    When `descriptor` is given the fields are prefilled and the type cannot be changed.
    """

    def __init__(self, parent=None, descriptor: ConnectionDescriptor | None = None):
        super().__init__(parent)
        self.setWindowTitle("Edit Connection" if descriptor else "New Connection")
        self.resize(460, 220)

        layout = QVBoxLayout(self)
        form = QFormLayout()

        self.name_edit = QLineEdit()
        form.addRow("Connection name:", self.name_edit)

        self.type_combo = QComboBox()
        self.type_combo.addItems([k.value for k in ConnectionKind])
        self.type_combo.currentTextChanged.connect(self._on_type_changed)
        form.addRow("DB Type:", self.type_combo)

        self.host_edit = QLineEdit("localhost")
        form.addRow("Host:", self.host_edit)

        self.port_edit = QLineEdit()
        self.port_edit.setPlaceholderText("Leave blank for default port")
        form.addRow("Port:", self.port_edit)

        self.user_edit = QLineEdit()
        form.addRow("User:", self.user_edit)

        self.password_edit = QLineEdit()
        self.password_edit.setEchoMode(QLineEdit.EchoMode.Password)
        form.addRow("Password:", self.password_edit)

        # For sqlite the database field is a file path and can be browsed for
        self.db_edit = QLineEdit()
        db_row = QWidget()
        db_hbox = QHBoxLayout(db_row)
        db_hbox.setContentsMargins(0, 0, 0, 0)
        db_hbox.addWidget(self.db_edit)
        self._browse_db_btn = QPushButton("Browse")
        self._browse_db_btn.setIcon(self.style().standardIcon(QStyle.StandardPixmap.SP_DirOpenIcon))
        self._browse_db_btn.clicked.connect(self._on_browse_sqlite)
        db_hbox.addWidget(self._browse_db_btn)
        form.addRow("Database:", db_row)
        layout.addLayout(form)

        buttons = QDialogButtonBox(QDialogButtonBox.StandardButton.Ok | QDialogButtonBox.StandardButton.Cancel)
        buttons.accepted.connect(self.accept)
        buttons.rejected.connect(self.reject)
        layout.addWidget(buttons)

        if descriptor is not None:
            self.name_edit.setText(descriptor.name)
            self.type_combo.setCurrentText(descriptor.kind.value)
            self.type_combo.setEnabled(False)
            self.host_edit.setText(descriptor.host)
            self.port_edit.setText(str(descriptor.port) if descriptor.port else "")
            self.user_edit.setText(descriptor.username)
            self.password_edit.setText(descriptor.password)
            self.db_edit.setText(descriptor.database)
        self._on_type_changed(self.type_combo.currentText())

    def _on_browse_sqlite(self):
        path, _ = QFileDialog.getOpenFileName(self, "Select SQLite database file", "", "SQLite Files (*.db *.sqlite *.sqlite3);;All Files (*)")
        if path:
            self.db_edit.setText(path)

    def _on_type_changed(self, t: str):
        """Enable/disable fields according to the selected database type."""
        is_sqlite = t == ConnectionKind.SQLITE.value
        for w in (self.host_edit, self.port_edit, self.user_edit, self.password_edit):
            w.setEnabled(not is_sqlite)
        self._browse_db_btn.setEnabled(is_sqlite)
        self.db_edit.setPlaceholderText("Select sqlite database file" if is_sqlite else "Database name")

    def get_data(self) -> dict:
        """Return the dialog data as keyword arguments for ConnectionManager.add_connection.

        Raises ValueError for an invalid port or missing required fields.
        """
        t = self.type_combo.currentText()
        port_txt = self.port_edit.text().strip()
        port = None
        if port_txt:
            try:
                port = int(port_txt)
            except ValueError:
                raise ValueError(f"Port must be an integer, got: {port_txt}") from None
            if port <= 0 or port > 65535:
                raise ValueError(f"Port out of valid range: {port}")

        database = self.db_edit.text().strip()
        if t == ConnectionKind.SQLITE.value:
            if not database:
                raise ValueError("For sqlite, a database file path is required")
            return {"name": self.name_edit.text().strip(), "type": t, "database": database}

        host = self.host_edit.text().strip()
        if not host:
            raise ValueError("Host is required for non-sqlite connections")
        return {
            "name": self.name_edit.text().strip(),
            "type": t,
            "host": host,
            "port": port,
            "username": self.user_edit.text().strip(),
            "password": self.password_edit.text(),
            "database": database,
        }

    def accept(self) -> None:
        try:
            self.get_data()
        except ValueError as e:
            QMessageBox.warning(self, "Invalid connection", str(e))
            return
        super().accept()
