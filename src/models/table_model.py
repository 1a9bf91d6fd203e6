from typing import List, Any, Sequence
from PyQt6.QtCore import QAbstractTableModel, Qt, QModelIndex


class TableModel(QAbstractTableModel):
    """Read-only table model for the rows of an execute_query response.

    columns: list of column names
    rows: list of row sequences (lists from the backend response)
    """

    def __init__(self, columns: List[str], rows: Sequence[Sequence[Any]]):
        super().__init__()
        self._columns = list(columns)
        self._rows = [list(r) for r in rows]

    def rowCount(self, parent: QModelIndex = QModelIndex()) -> int:
        return 0 if parent.isValid() else len(self._rows)

    def columnCount(self, parent: QModelIndex = QModelIndex()) -> int:
        return 0 if parent.isValid() else len(self._columns)

    def data(self, index: QModelIndex, role: int = Qt.ItemDataRole.DisplayRole):
        if not index.isValid():
            return None
        try:
            value = self._rows[index.row()][index.column()]
        except IndexError:
            return None
        if role == Qt.ItemDataRole.DisplayRole:
            if value is None:
                return "NULL"
            if isinstance(value, (bytes, bytearray, memoryview)):
                return f"<{len(bytes(value))} bytes>"
            return str(value)
        if role == Qt.ItemDataRole.ToolTipRole and value is not None:
            return str(value)
        return None

    def headerData(self, section: int, orientation: Qt.Orientation, role: int = Qt.ItemDataRole.DisplayRole):
        if role != Qt.ItemDataRole.DisplayRole:
            return None
        if orientation == Qt.Orientation.Horizontal:
            return self._columns[section] if 0 <= section < len(self._columns) else None
        return str(section + 1)

    def get_all_data(self):
        return list(self._columns), [tuple(r) for r in self._rows]
