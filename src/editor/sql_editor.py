from PyQt6.QtWidgets import QWidget, QVBoxLayout, QHBoxLayout, QPlainTextEdit, QPushButton, QMessageBox
from PyQt6.QtGui import QFont, QKeySequence, QShortcut, QSyntaxHighlighter, QTextCharFormat, QPalette
from PyQt6.QtCore import pyqtSignal, QRegularExpression
import sys
import sqlparse

_KEYWORDS = (
    "SELECT|FROM|WHERE|INSERT|INTO|VALUES|UPDATE|SET|DELETE|CREATE|TABLE|DROP|ALTER|INDEX|VIEW|TRIGGER|"
    "PRIMARY|KEY|NOT|NULL|JOIN|LEFT|INNER|ON|GROUP|BY|ORDER|HAVING|LIMIT|OFFSET|DISTINCT|AS|AND|OR|IN|"
    "LIKE|CASE|WHEN|THEN|ELSE|END|PRAGMA|SHOW|DATABASE"
)


class SqlHighlighter(QSyntaxHighlighter):
    """Keyword, string, number and `--` comment highlighting, colored from the app palette."""

    def __init__(self, document):
        super().__init__(document)
        pal = QPalette()
        highlight = pal.color(QPalette.ColorRole.Highlight)

        keyword_format = QTextCharFormat()
        keyword_format.setForeground(highlight.lighter(125))
        keyword_format.setFontWeight(QFont.Weight.Bold)
        number_format = QTextCharFormat()
        number_format.setForeground(highlight.darker(120))
        string_format = QTextCharFormat()
        string_format.setForeground(pal.color(QPalette.ColorRole.Text).lighter(110))
        self.comment_format = QTextCharFormat()
        self.comment_format.setForeground(pal.color(QPalette.ColorRole.PlaceholderText))
        self.comment_format.setFontItalic(True)

        # inline (?i) avoids PyQt6 enum binding differences for case-insensitive matching
        self.rules = [
            (QRegularExpression(r"(?i)\b(" + _KEYWORDS + r")\b"), keyword_format),
            (QRegularExpression(r"\b\d+(?:\.\d+)?\b"), number_format),
            (QRegularExpression(r"'(?:''|[^'])*'|\"[^\"]*\"|`[^`]*`"), string_format),
        ]
        self.comment_pattern = QRegularExpression(r"--.*")

    def highlightBlock(self, text: str) -> None:
        for pattern, fmt in self.rules:
            it = pattern.globalMatch(text)
            while it.hasNext():
                match = it.next()
                self.setFormat(match.capturedStart(), match.capturedLength(), fmt)
        it = self.comment_pattern.globalMatch(text)
        while it.hasNext():
            match = it.next()
            self.setFormat(match.capturedStart(), match.capturedLength(), self.comment_format)


class SqlEditor(QWidget):
    """Plain-text SQL editor.

    Emits execute_requested when the user presses Ctrl+Enter.
    """

    execute_requested = pyqtSignal()
    text_changed = pyqtSignal(str)

    def __init__(self, parent=None):
        super().__init__(parent)
        layout = QVBoxLayout(self)
        layout.setContentsMargins(0, 0, 0, 0)

        toolbar = QHBoxLayout()
        self.format_btn = QPushButton("Format")
        self.format_btn.setToolTip("Reformat the SQL text")
        self.format_btn.clicked.connect(self._on_format_clicked)
        toolbar.addWidget(self.format_btn)
        toolbar.addStretch()
        layout.addLayout(toolbar)

        self.editor = QPlainTextEdit()
        self.editor.setLineWrapMode(QPlainTextEdit.LineWrapMode.WidgetWidth)
        # Choose a reasonable monospace font per platform
        if sys.platform.startswith("win"):
            family = "Consolas"
        elif sys.platform == "darwin":
            family = "Menlo"
        else:
            family = "Monospace"
        font = QFont(family)
        font.setPointSize(10)
        self.editor.setFont(font)
        self.editor.textChanged.connect(lambda: self.text_changed.emit(self.editor.toPlainText()))
        layout.addWidget(self.editor)

        self._highlighter = SqlHighlighter(self.editor.document())

        shortcut = QShortcut(QKeySequence("Ctrl+Return"), self.editor)
        shortcut.activated.connect(self.execute_requested)

    def _on_format_clicked(self) -> None:
        sql = self.editor.toPlainText()
        if not sql.strip():
            return
        try:
            self.editor.setPlainText(sqlparse.format(sql, reindent=True, keyword_case="upper"))
        except Exception as e:
            QMessageBox.critical(self, "Format Error", f"Failed to format SQL: {e}")

    def get_sql(self) -> str:
        """Return selected SQL if present, otherwise whole text."""
        selected = self.editor.textCursor().selectedText()
        if selected:
            # QPlainTextEdit returns newlines as U+2029 in selectedText
            return selected.replace("\u2029", "\n").strip()
        return self.editor.toPlainText().strip()

    def set_sql(self, sql: str):
        if sql != self.editor.toPlainText():
            self.editor.setPlainText(sql)
