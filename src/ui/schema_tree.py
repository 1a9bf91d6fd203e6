from PyQt6.QtWidgets import QWidget, QVBoxLayout, QTreeWidget, QTreeWidgetItem, QMenu, QStyle
from PyQt6.QtCore import Qt, QPoint, pyqtSignal
import logging

from navigator.objects import CacheStatus, ObjectKind

logger = logging.getLogger(__name__)

_ROLE = Qt.ItemDataRole.UserRole

_KIND_ICONS = {
    ObjectKind.TABLE: QStyle.StandardPixmap.SP_FileIcon,
    ObjectKind.VIEW: QStyle.StandardPixmap.SP_FileDialogContentsView,
    ObjectKind.INDEX: QStyle.StandardPixmap.SP_FileDialogListView,
    ObjectKind.TRIGGER: QStyle.StandardPixmap.SP_BrowserReload,
}


class SchemaTreePanel(QWidget):
    """Navigation panel: connections, their type groups and schema objects.

    The tree widget is a view of NavigatorSession state. Expanding or collapsing a node
    is forwarded to TreeState; cache and expansion changes rebuild the affected connection's
    children. Item data is a tuple whose first element names the node type:
    ("connection", id), ("group", id, kind), ("object", id, name, kind) or ("placeholder", id).
    """

    edit_requested = pyqtSignal(str)
    delete_requested = pyqtSignal(str)

    def __init__(self, session, parent=None):
        super().__init__(parent)
        self.session = session
        # set while the tree is rebuilt so programmatic expand/collapse is not fed back
        self._rendering = False

        layout = QVBoxLayout(self)
        layout.setContentsMargins(0, 0, 0, 0)
        self.tree = QTreeWidget()
        self.tree.setColumnCount(1)
        self.tree.setHeaderHidden(True)
        self.tree.setStyleSheet("QTreeWidget { font-size: 12px; }")
        self.tree.itemExpanded.connect(self._on_item_expanded)
        self.tree.itemCollapsed.connect(self._on_item_collapsed)
        self.tree.itemClicked.connect(self._on_item_clicked)
        self.tree.setContextMenuPolicy(Qt.ContextMenuPolicy.CustomContextMenu)
        self.tree.customContextMenuRequested.connect(self._show_context_menu)
        layout.addWidget(self.tree)

        session.cache.entry_changed.connect(self._render_connection)
        session.tree.expansion_changed.connect(self._render_connection)

        self.reload_connections()

    def reload_connections(self) -> None:
        """Rebuild the top-level connection nodes from the registry."""
        self._rendering = True
        try:
            self.tree.clear()
            for desc in self.session.registry.list_connections():
                item = QTreeWidgetItem(self.tree, [desc.name])
                item.setData(0, _ROLE, ("connection", desc.id))
                item.setToolTip(0, f"{desc.kind.value} • {desc.host or desc.database}")
                item.setIcon(0, self.style().standardIcon(QStyle.StandardPixmap.SP_DriveNetIcon))
                item.setChildIndicatorPolicy(QTreeWidgetItem.ChildIndicatorPolicy.ShowIndicator)
        finally:
            self._rendering = False
        for desc in self.session.registry.list_connections():
            self._render_connection(desc.id)

    def find_connection_item(self, connection_id: str) -> QTreeWidgetItem | None:
        for i in range(self.tree.topLevelItemCount()):
            it = self.tree.topLevelItem(i)
            data = it.data(0, _ROLE)
            if data and data[1] == connection_id:
                return it
        return None

    def _render_connection(self, connection_id: str) -> None:
        root = self.find_connection_item(connection_id)
        if root is None:
            return
        self._rendering = True
        try:
            root.takeChildren()
            entry = self.session.cache.get(connection_id)
            if entry.status is CacheStatus.LOADING:
                self._add_placeholder(root, connection_id, "Loading…")
            elif entry.status is CacheStatus.LOADED:
                groups = self.session.grouped_view(connection_id)
                if not groups:
                    self._add_placeholder(root, connection_id, "No objects")
                for group in groups:
                    if group.flatten:
                        parent = root
                    else:
                        parent = QTreeWidgetItem(root, [f"{group.label} ({len(group.objects)})"])
                        parent.setData(0, _ROLE, ("group", connection_id, group.kind))
                        parent.setIcon(0, self.style().standardIcon(QStyle.StandardPixmap.SP_DirIcon))
                    for obj in group.objects:
                        label = obj.name if group.kind not in (ObjectKind.TABLE, ObjectKind.VIEW) else f"{obj.name}  ({obj.row_count})"
                        child = QTreeWidgetItem(parent, [label])
                        child.setData(0, _ROLE, ("object", connection_id, obj.name, group.kind))
                        child.setIcon(0, self.style().standardIcon(_KIND_ICONS[group.kind]))
                    if parent is not root:
                        parent.setExpanded(self.session.tree.is_group_expanded(connection_id, group.kind))
            elif entry.status is CacheStatus.ERROR:
                err = self._add_placeholder(root, connection_id, "No objects")
                err.setToolTip(0, entry.error_message or "")
                err.setIcon(0, self.style().standardIcon(QStyle.StandardPixmap.SP_MessageBoxWarning))
            root.setExpanded(self.session.tree.is_connection_expanded(connection_id))
        finally:
            self._rendering = False

    @staticmethod
    def _add_placeholder(root: QTreeWidgetItem, connection_id: str, text: str) -> QTreeWidgetItem:
        item = QTreeWidgetItem(root, [text])
        item.setData(0, _ROLE, ("placeholder", connection_id))
        item.setFlags(Qt.ItemFlag.ItemIsEnabled)
        return item

    def _sync_expansion(self, item: QTreeWidgetItem, expanded: bool) -> None:
        if self._rendering:
            return
        data = item.data(0, _ROLE)
        if not data:
            return
        state = self.session.tree
        if data[0] == "connection" and state.is_connection_expanded(data[1]) != expanded:
            state.toggle_connection(data[1])
        elif data[0] == "group" and state.is_group_expanded(data[1], data[2]) != expanded:
            state.toggle_group(data[1], data[2])

    def _on_item_expanded(self, item: QTreeWidgetItem) -> None:
        self._sync_expansion(item, True)

    def _on_item_collapsed(self, item: QTreeWidgetItem) -> None:
        self._sync_expansion(item, False)

    def _on_item_clicked(self, item: QTreeWidgetItem, column: int) -> None:
        data = item.data(0, _ROLE)
        if not data or data[0] != "object":
            return
        _, connection_id, name, kind = data
        self.session.dispatcher.dispatch_by_id(connection_id, name, kind)

    def _show_context_menu(self, pos: QPoint) -> None:
        item = self.tree.itemAt(pos)
        if item is None:
            return
        data = item.data(0, _ROLE)
        if not data or data[0] != "connection":
            return
        connection_id = data[1]
        menu = QMenu(self)
        refresh_act = menu.addAction("Refresh")
        refresh_act.triggered.connect(lambda: self.session.refresh(connection_id))
        edit_act = menu.addAction("Edit...")
        edit_act.triggered.connect(lambda: self.edit_requested.emit(connection_id))
        delete_act = menu.addAction("Delete")
        delete_act.triggered.connect(lambda: self.delete_requested.emit(connection_id))
        menu.exec(self.tree.viewport().mapToGlobal(pos))
