from __future__ import annotations

import json
import logging
import math
import pathlib
import sys
from typing import Any, Dict, List, Optional, Set, Tuple

import networkx as nx
import numpy as np
import pandas as pd
import pyqtgraph as pg
from PyQt6 import QtCore, QtGui, QtWidgets

from hier_browser.graph_model import GraphModel, isolate_neighbourhood
from hier_browser.pipeline import GraphSnapshot, SnapshotStore, build_render_payload
from hier_browser.record_analysis import compute_overview, search_nodes, top_rows_for_node
from hier_browser.record_filters import FilterOptions
from hier_browser.record_loader import (
    RecordFormatError,
    RecordSetContainer,
    load_records_from_csv,
    read_csv_summary,
    try_auto_detect_columns,
)
from hier_browser.tree_projector import TreeEntry
from hier_browser.visual_mapping import (
    DEFAULT_BEST_COLOR,
    DEFAULT_EDGE_FONT_SIZE,
    DEFAULT_NODE_FONT_SIZE,
    DEFAULT_THICKNESS,
    DEFAULT_WORST_COLOR,
    GraphStyle,
    VisualOptions,
    default_domain,
    format_node_label,
)

SAMPLE_REPORT_PATH = pathlib.Path("data/sample_connectivity.csv")
LOG_NAME = "hier_browser"
LOG_FILE_PATH = pathlib.Path.cwd() / "hier_browser_app.log"

VIEW_MODE_LABELS = (("WNS", "wns"), ("TNS", "tns"), ("Conn", "connections"))
SEARCH_RESULT_LIMIT = 10

LEAF_HEIGHT = 44.0
LEAF_MIN_WIDTH = 110.0
CHAR_WIDTH = 7.2
NODE_PADDING = 16.0
HEADER_HEIGHT = 30.0
GRID_GAP = 34.0
PARALLEL_EDGE_SPACING = 22.0
HIGHLIGHT_COLOR = "#ffb300"


def configure_logging() -> logging.Logger:
    logger = logging.getLogger(LOG_NAME)
    if not logger.handlers:
        logger.setLevel(logging.INFO)
        file_handler = logging.FileHandler(LOG_FILE_PATH, encoding="utf-8")
        formatter = logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)
        logger.propagate = False
        logger.info("Logging initialised. Writing to %s", LOG_FILE_PATH)
    return logger


BASE_LOGGER = configure_logging()


class PandasTableModel(QtCore.QAbstractTableModel):
    def __init__(self, dataframe: Optional[pd.DataFrame] = None):
        super().__init__()
        self._dataframe = dataframe if dataframe is not None else pd.DataFrame()

    def set_dataframe(self, dataframe: pd.DataFrame):
        self.beginResetModel()
        self._dataframe = dataframe.copy()
        self.endResetModel()

    def rowCount(self, parent: QtCore.QModelIndex = QtCore.QModelIndex()) -> int:  # type: ignore[override]
        if parent.isValid():
            return 0
        return len(self._dataframe.index)

    def columnCount(self, parent: QtCore.QModelIndex = QtCore.QModelIndex()) -> int:  # type: ignore[override]
        if parent.isValid():
            return 0
        return len(self._dataframe.columns)

    def data(self, index: QtCore.QModelIndex, role: int = QtCore.Qt.ItemDataRole.DisplayRole):  # type: ignore[override]
        if not index.isValid() or role not in (QtCore.Qt.ItemDataRole.DisplayRole, QtCore.Qt.ItemDataRole.ToolTipRole):
            return None
        value = self._dataframe.iat[index.row(), index.column()]
        if value is None or pd.isna(value):
            return ""
        if isinstance(value, float):
            return f"{value:g}"
        return str(value)

    def headerData(  # type: ignore[override]
        self, section: int, orientation: QtCore.Qt.Orientation, role: int = QtCore.Qt.ItemDataRole.DisplayRole
    ):
        if role != QtCore.Qt.ItemDataRole.DisplayRole:
            return None
        if orientation == QtCore.Qt.Orientation.Horizontal:
            try:
                return str(self._dataframe.columns[section])
            except IndexError:
                return None
        return str(section + 1)


class StatsCard(QtWidgets.QFrame):
    def __init__(self, title: str, *, accent: str = "#6C83FF"):
        super().__init__()
        self.setObjectName("StatsCard")
        self.setFrameShape(QtWidgets.QFrame.Shape.StyledPanel)
        self.setMinimumWidth(130)
        self.setMaximumHeight(96)

        layout = QtWidgets.QVBoxLayout(self)
        layout.setContentsMargins(12, 10, 12, 10)
        layout.setSpacing(4)

        self.title_label = QtWidgets.QLabel(title.upper())
        self.title_label.setObjectName("StatsCardTitle")
        self.value_label = QtWidgets.QLabel("—")
        self.value_label.setObjectName("StatsCardValue")
        layout.addWidget(self.title_label)
        layout.addStretch(1)
        layout.addWidget(self.value_label)

        self.setStyleSheet(
            f"""
            QFrame#StatsCard {{
                border-radius: 12px;
                background-color: rgba(18, 21, 32, 0.9);
                border: 1px solid rgba(120, 130, 180, 0.12);
                border-left: 4px solid {accent};
            }}
            QLabel#StatsCardTitle {{
                color: #8a93c9;
                font-size: 10px;
                letter-spacing: 0.8px;
            }}
            QLabel#StatsCardValue {{
                color: #f4f6ff;
                font-size: 20px;
                font-weight: 600;
            }}
            """
        )

    def set_value(self, value: Any) -> None:
        if isinstance(value, float):
            value = f"{value:,.3f}"
        elif isinstance(value, int):
            value = f"{value:,}"
        self.value_label.setText(str(value))


# Graph canvas -------------------------------------------------------------
class _ModuleItem(QtWidgets.QGraphicsPathItem):
    def __init__(self, widget: "CompoundGraphWidget", key: str, path: QtGui.QPainterPath):
        super().__init__(path)
        self._widget = widget
        self._key = key
        self.setAcceptHoverEvents(True)

    def hoverEnterEvent(self, event: QtWidgets.QGraphicsSceneHoverEvent) -> None:  # type: ignore[override]
        self._widget._handle_node_hover(self._key)
        super().hoverEnterEvent(event)

    def hoverLeaveEvent(self, event: QtWidgets.QGraphicsSceneHoverEvent) -> None:  # type: ignore[override]
        self._widget._handle_node_hover(None)
        super().hoverLeaveEvent(event)

    def mousePressEvent(self, event: QtWidgets.QGraphicsSceneMouseEvent) -> None:  # type: ignore[override]
        if event.button() == QtCore.Qt.MouseButton.LeftButton:
            self._widget._handle_node_click(self._key)
            event.accept()
            return
        super().mousePressEvent(event)


class _ConnectionItem(QtWidgets.QGraphicsPathItem):
    def __init__(self, widget: "CompoundGraphWidget", key: str, path: QtGui.QPainterPath):
        super().__init__(path)
        self._widget = widget
        self._key = key
        self.setAcceptHoverEvents(True)

    def shape(self) -> QtGui.QPainterPath:  # type: ignore[override]
        # Widen the hit area so thin edges stay easy to hover.
        stroker = QtGui.QPainterPathStroker()
        stroker.setWidth(max(self.pen().widthF(), 8.0))
        return stroker.createStroke(self.path())

    def hoverEnterEvent(self, event: QtWidgets.QGraphicsSceneHoverEvent) -> None:  # type: ignore[override]
        self._widget._handle_edge_hover(self._key)
        super().hoverEnterEvent(event)

    def hoverLeaveEvent(self, event: QtWidgets.QGraphicsSceneHoverEvent) -> None:  # type: ignore[override]
        self._widget._handle_edge_hover(None)
        super().hoverLeaveEvent(event)

    def mousePressEvent(self, event: QtWidgets.QGraphicsSceneMouseEvent) -> None:  # type: ignore[override]
        if event.button() == QtCore.Qt.MouseButton.LeftButton:
            self._widget._handle_edge_click(self._key)
            event.accept()
            return
        super().mousePressEvent(event)


class CompoundGraphWidget(QtWidgets.QGraphicsView):
    """
    Draws modules as nested boxes and connections as directed curves.

    Children are packed into a square-ish grid inside their parent; siblings with more
    connections are placed first. Hover spotlights a module and its connections, click
    locks the spotlight and double-click on the background releases it.
    """

    node_selected = QtCore.pyqtSignal(str)
    edge_selected = QtCore.pyqtSignal(str)

    def __init__(self, parent: Optional[QtWidgets.QWidget] = None):
        super().__init__(parent)
        self.setRenderHints(QtGui.QPainter.RenderHint.Antialiasing | QtGui.QPainter.RenderHint.TextAntialiasing)
        self.setDragMode(QtWidgets.QGraphicsView.DragMode.ScrollHandDrag)
        self.setTransformationAnchor(QtWidgets.QGraphicsView.ViewportAnchor.AnchorUnderMouse)
        self.setViewportUpdateMode(QtWidgets.QGraphicsView.ViewportUpdateMode.BoundingRectViewportUpdate)
        self.setBackgroundBrush(QtGui.QBrush(QtGui.QColor("#f7f8fc")))

        self._scene = QtWidgets.QGraphicsScene(self)
        self.setScene(self._scene)

        self._model: Optional[GraphModel] = None
        self._style: Optional[GraphStyle] = None
        self._children: Dict[Optional[str], List[str]] = {}
        self._sizes: Dict[str, Tuple[float, float]] = {}
        self._depths: Dict[str, int] = {}
        self._node_items: Dict[str, Dict[str, Any]] = {}
        self._edge_items: Dict[str, Dict[str, Any]] = {}
        self._adjacency: Dict[str, Set[str]] = {}
        self._locked_nodes: Optional[Set[str]] = None
        self._locked_edges: Optional[Set[str]] = None
        self._visible_nodes: Optional[Set[str]] = None
        self._visible_edges: Optional[Set[str]] = None
        self._show_placeholder("Load a connectivity report to draw the module hierarchy.")

    # Public API ------------------------------------------------------------
    def clear(self) -> None:
        self._reset_state()
        self._model = None
        self._style = None
        self._show_placeholder("Load a connectivity report to draw the module hierarchy.")

    def set_graph(self, model: GraphModel, style: GraphStyle) -> None:
        self._reset_state()
        self._model = model
        self._style = style
        if model.is_empty:
            self._show_placeholder("No connections match the current filters.")
            return
        self._build_hierarchy(model)
        self._rebuild_scene()
        self.fit_all()

    def apply_style(self, style: GraphStyle) -> None:
        """Restyle existing items without laying the graph out again."""
        self._style = style
        for key, record in self._node_items.items():
            font = self._node_font(bool(self._children.get(key)))
            record["title"].setFont(font)
        for key, record in self._edge_items.items():
            visual = style.edges.get(key)
            if visual is None:
                continue
            pen = self._edge_pen(visual.color, visual.width)
            record["base_pen"] = pen
            record["base_color"] = QtGui.QColor(visual.color)
            record["base_label_color"] = QtGui.QColor(visual.label_color)
            record["arrow"].setPolygon(self._arrow_polygon(record["tip"], record["direction"], visual.width))
            label_item: QtWidgets.QGraphicsSimpleTextItem = record["label"]
            label_item.setText(_format_metric(visual.display_value, style.view_mode))
            label_item.setFont(self._edge_font())
        self._apply_highlight(None, None)

    def fit_all(self) -> None:
        rect = self._scene.itemsBoundingRect()
        if rect.isValid():
            self.fitInView(rect.adjusted(-30, -30, 30, 30), QtCore.Qt.AspectRatioMode.KeepAspectRatio)

    def zoom_to(self, node_id: str) -> bool:
        record = self._node_items.get(node_id)
        if not record:
            return False
        rect = record["item"].sceneBoundingRect()
        margin = max(rect.width(), rect.height()) * 0.35
        self.fitInView(rect.adjusted(-margin, -margin, margin, margin), QtCore.Qt.AspectRatioMode.KeepAspectRatio)
        return True

    def focus_node(self, node_id: str) -> None:
        if node_id not in self._node_items:
            return
        nodes, edges = self._spotlight(node_id)
        self._apply_highlight(nodes, edges, persist=True)

    def isolate(self, node_id: str) -> bool:
        if self._model is None:
            return False
        nodes, edges = isolate_neighbourhood(self._model, node_id)
        if not nodes:
            return False
        self._visible_nodes = nodes
        self._visible_edges = edges
        self._apply_visibility()
        rect = QtCore.QRectF()
        for key in nodes:
            record = self._node_items.get(key)
            if record:
                rect = rect.united(record["item"].sceneBoundingRect())
        if rect.isValid():
            self.fitInView(rect.adjusted(-30, -30, 30, 30), QtCore.Qt.AspectRatioMode.KeepAspectRatio)
        return True

    def show_all(self) -> None:
        self._visible_nodes = None
        self._visible_edges = None
        self._apply_visibility()
        self.fit_all()

    # Layout ----------------------------------------------------------------
    def _reset_state(self) -> None:
        self._scene.clear()
        self._children.clear()
        self._sizes.clear()
        self._depths.clear()
        self._node_items.clear()
        self._edge_items.clear()
        self._adjacency.clear()
        self._locked_nodes = None
        self._locked_edges = None
        self._visible_nodes = None
        self._visible_edges = None

    def _show_placeholder(self, text: str) -> None:
        placeholder = QtWidgets.QGraphicsTextItem(text)
        placeholder.setFont(QtGui.QFont("Segoe UI", 12))
        placeholder.setDefaultTextColor(QtGui.QColor("#6e7392"))
        self._scene.addItem(placeholder)
        placeholder.setPos(60, 40)

    def _build_hierarchy(self, model: GraphModel) -> None:
        tree = model.hierarchy_graph()
        degree = dict(model.to_networkx().degree())
        roots = [node.id for node in model.nodes if tree.in_degree(node.id) == 0]

        def ordered(ids: List[str]) -> List[str]:
            return sorted(ids, key=lambda key: -degree.get(key, 0))

        self._children[None] = ordered(roots)
        for root in roots:
            self._depths[root] = 0
            for parent, child in nx.bfs_edges(tree, root):
                self._depths[child] = self._depths[parent] + 1
        for node in model.nodes:
            children = list(tree.successors(node.id))
            if children:
                self._children[node.id] = ordered(children)
        for node in model.nodes:
            self._adjacency.setdefault(node.id, set())
        for edge in model.edges:
            self._adjacency[edge.source].add(edge.id)
            self._adjacency[edge.target].add(edge.id)

    def _measure(self, node_id: str, labels: Dict[str, str]) -> Tuple[float, float]:
        children = self._children.get(node_id, [])
        if not children:
            text = _display_label(labels[node_id])
            size = (max(LEAF_MIN_WIDTH, len(text) * CHAR_WIDTH + 2 * NODE_PADDING), LEAF_HEIGHT)
        else:
            inner_w, inner_h, _ = _grid_layout([self._measure(child, labels) for child in children])
            text_width = len(labels[node_id]) * CHAR_WIDTH + 2 * NODE_PADDING
            size = (max(inner_w + 2 * NODE_PADDING, text_width), inner_h + HEADER_HEIGHT + NODE_PADDING)
        self._sizes[node_id] = size
        return size

    def _place(self, node_ids: List[str], origin: QtCore.QPointF, rects: Dict[str, QtCore.QRectF]) -> None:
        _, _, offsets = _grid_layout([self._sizes[key] for key in node_ids])
        for key, (dx, dy) in zip(node_ids, offsets):
            width, height = self._sizes[key]
            rect = QtCore.QRectF(origin.x() + dx, origin.y() + dy, width, height)
            rects[key] = rect
            children = self._children.get(key)
            if children:
                self._place(children, QtCore.QPointF(rect.left() + NODE_PADDING, rect.top() + HEADER_HEIGHT), rects)

    def _rebuild_scene(self) -> None:
        assert self._model is not None and self._style is not None
        labels = {node.id: node.label for node in self._model.nodes}
        roots = self._children.get(None, [])
        for root in roots:
            self._measure(root, labels)
        rects: Dict[str, QtCore.QRectF] = {}
        self._place(roots, QtCore.QPointF(0, 0), rects)

        for node in self._model.nodes:
            compound = bool(self._children.get(node.id))
            item = self._create_node_item(node.id, node.label, rects[node.id], compound)
            self._scene.addItem(item["item"])

        pair_counts: Dict[frozenset, int] = {}
        for edge in self._model.edges:
            pair = frozenset((edge.source, edge.target))
            index = pair_counts.get(pair, 0)
            pair_counts[pair] = index + 1
            record = self._create_edge_items(edge.id, rects[edge.source], rects[edge.target], index)
            if record is None:
                continue
            for part in ("path", "arrow", "label"):
                self._scene.addItem(record[part])
            self._edge_items[edge.id] = record
            record["path"].setToolTip(
                f"{edge.source} → {edge.target}\nconnections: {edge.connections}\n"
                f"WNS: {edge.wns:g} ns\nTNS: {edge.tns:g} ns"
            )

        self._scene.setSceneRect(self._scene.itemsBoundingRect().adjusted(-80, -80, 80, 80))
        self._apply_highlight(None, None)

    def _node_font(self, compound: bool) -> QtGui.QFont:
        assert self._style is not None
        font = QtGui.QFont("Segoe UI")
        size = self._style.parent_font_size if compound else self._style.node_font_size
        font.setPointSizeF(max(float(size), 1.0))
        if compound:
            font.setWeight(QtGui.QFont.Weight.DemiBold)
        return font

    def _edge_font(self) -> QtGui.QFont:
        assert self._style is not None
        font = QtGui.QFont("Segoe UI")
        font.setPointSizeF(max(float(self._style.edge_font_size), 1.0))
        return font

    def _create_node_item(self, key: str, label: str, rect: QtCore.QRectF, compound: bool) -> Dict[str, Any]:
        path = QtGui.QPainterPath()
        path.addRoundedRect(QtCore.QRectF(0, 0, rect.width(), rect.height()), 10, 10)
        item = _ModuleItem(self, key, path)
        item.setPos(rect.topLeft())
        depth = self._depths.get(key, 0)
        if compound:
            shade = max(200, 236 - depth * 10)
            item.setBrush(QtGui.QBrush(QtGui.QColor(shade, shade + 4, 255, 150)))
            pen = QtGui.QPen(QtGui.QColor("#9aa5d9"), 1.4, QtCore.Qt.PenStyle.DashLine)
        else:
            item.setBrush(QtGui.QBrush(QtGui.QColor("#ffffff")))
            pen = QtGui.QPen(QtGui.QColor("#5a6ef5"), 1.6)
        item.setPen(pen)
        item.setZValue(depth * 2)

        title = QtWidgets.QGraphicsSimpleTextItem(_display_label(label), item)
        title.setFont(self._node_font(compound))
        title.setBrush(QtGui.QBrush(QtGui.QColor("#1c2032")))
        if compound:
            title.setPos(NODE_PADDING, 6)
        else:
            bounds = title.boundingRect()
            title.setPos((rect.width() - bounds.width()) / 2, (rect.height() - bounds.height()) / 2)
        item.setToolTip(key)

        record = {"item": item, "title": title, "default_pen": pen, "depth": depth}
        self._node_items[key] = record
        return record

    def _edge_pen(self, color: str, width: float) -> QtGui.QPen:
        pen = QtGui.QPen(QtGui.QColor(color), max(width, 0.5))
        pen.setCapStyle(QtCore.Qt.PenCapStyle.RoundCap)
        return pen

    def _arrow_polygon(self, tip: QtCore.QPointF, direction: QtCore.QPointF, width: float) -> QtGui.QPolygonF:
        normal = QtCore.QPointF(-direction.y(), direction.x())
        size = 9 + width * 1.5
        return QtGui.QPolygonF(
            [
                tip,
                tip - direction * size + normal * (size / 2),
                tip - direction * size - normal * (size / 2),
            ]
        )

    def _create_edge_items(
        self, key: str, src_rect: QtCore.QRectF, dst_rect: QtCore.QRectF, parallel_index: int
    ) -> Optional[Dict[str, Any]]:
        assert self._style is not None
        visual = self._style.edges.get(key)
        if visual is None:
            return None
        start = _rect_exit_point(src_rect, dst_rect.center())
        end = _rect_exit_point(dst_rect, src_rect.center())
        if start == end:
            # Self-connection; draw a small loop on the right-hand side.
            end = QtCore.QPointF(src_rect.right(), src_rect.center().y() + 8)
            start = QtCore.QPointF(src_rect.right(), src_rect.center().y() - 8)

        chord = end - start
        length = math.hypot(chord.x(), chord.y()) or 1.0
        normal = QtCore.QPointF(-chord.y() / length, chord.x() / length)
        bend = 0.0 if parallel_index == 0 else PARALLEL_EDGE_SPACING * ((parallel_index + 1) // 2)
        if parallel_index % 2 == 0 and parallel_index:
            bend = -bend
        if start.x() == src_rect.right() and end.x() == src_rect.right():
            bend = 36.0
            normal = QtCore.QPointF(1, 0)
        control = (start + end) / 2 + normal * bend

        path = QtGui.QPainterPath(start)
        path.quadTo(control, end)
        path_item = _ConnectionItem(self, key, path)
        pen = self._edge_pen(visual.color, visual.width)
        path_item.setPen(pen)

        direction = end - control
        dir_length = math.hypot(direction.x(), direction.y())
        direction = direction / dir_length if dir_length else QtCore.QPointF(1, 0)
        arrow_item = QtWidgets.QGraphicsPolygonItem(self._arrow_polygon(end, direction, visual.width))
        arrow_item.setBrush(QtGui.QBrush(QtGui.QColor(visual.color)))
        arrow_item.setPen(QtGui.QPen(QtGui.QColor(visual.color)))

        label_item = QtWidgets.QGraphicsSimpleTextItem(_format_metric(visual.display_value, self._style.view_mode))
        label_item.setFont(self._edge_font())
        label_item.setBrush(QtGui.QBrush(QtGui.QColor(visual.label_color)))
        label_item.setPos(path.pointAtPercent(0.5) + QtCore.QPointF(4, -16))

        return {
            "path": path_item,
            "arrow": arrow_item,
            "label": label_item,
            "tip": end,
            "direction": direction,
            "base_pen": pen,
            "base_color": QtGui.QColor(visual.color),
            "base_label_color": QtGui.QColor(visual.label_color),
        }

    # Interaction -----------------------------------------------------------
    def _spotlight(self, node_id: str) -> Tuple[Set[str], Set[str]]:
        edges = set(self._adjacency.get(node_id, set()))
        nodes = {node_id}
        if self._model is not None:
            index = self._model.edge_index()
            for edge_id in edges:
                edge = index[edge_id]
                nodes.update((edge.source, edge.target))
        return nodes, edges

    def _edge_endpoints(self, edge_id: str) -> Set[str]:
        if self._model is None:
            return set()
        edge = self._model.edge_index().get(edge_id)
        return {edge.source, edge.target} if edge else set()

    def _handle_node_hover(self, key: Optional[str]) -> None:
        if key is None:
            self._apply_highlight(None, None)
            return
        nodes, edges = self._spotlight(key)
        self._apply_highlight(nodes, edges)

    def _handle_node_click(self, key: str) -> None:
        nodes, edges = self._spotlight(key)
        self._apply_highlight(nodes, edges, persist=True)
        self.node_selected.emit(key)

    def _handle_edge_hover(self, key: Optional[str]) -> None:
        if key is None:
            self._apply_highlight(None, None)
            return
        self._apply_highlight(self._edge_endpoints(key), {key})

    def _handle_edge_click(self, key: str) -> None:
        self._apply_highlight(self._edge_endpoints(key), {key}, persist=True)
        self.edge_selected.emit(key)

    def _apply_highlight(
        self,
        active_nodes: Optional[Set[str]],
        active_edges: Optional[Set[str]],
        *,
        persist: bool = False,
    ) -> None:
        if persist:
            self._locked_nodes = set(active_nodes or set())
            self._locked_edges = set(active_edges or set())
        elif not active_nodes and not active_edges and self._locked_nodes is not None:
            active_nodes = set(self._locked_nodes)
            active_edges = set(self._locked_edges or set())

        highlight_nodes = set(active_nodes) if active_nodes else None
        highlight_edges = set(active_edges) if active_edges is not None and highlight_nodes else None

        for key, record in self._node_items.items():
            item: QtWidgets.QGraphicsPathItem = record["item"]
            base_pen: QtGui.QPen = record["default_pen"]
            if highlight_nodes and key in highlight_nodes:
                pen = QtGui.QPen(base_pen)
                pen.setWidthF(base_pen.widthF() + 1.6)
                pen.setColor(QtGui.QColor(HIGHLIGHT_COLOR))
                item.setPen(pen)
                item.setOpacity(1.0)
            else:
                item.setPen(QtGui.QPen(base_pen))
                item.setOpacity(1.0 if not highlight_nodes else 0.45)

        for key, record in self._edge_items.items():
            path_item: QtWidgets.QGraphicsPathItem = record["path"]
            arrow_item: QtWidgets.QGraphicsPolygonItem = record["arrow"]
            label_item: QtWidgets.QGraphicsSimpleTextItem = record["label"]
            base_pen: QtGui.QPen = record["base_pen"]
            base_color: QtGui.QColor = record["base_color"]
            focused = highlight_edges is not None and key in highlight_edges
            dimmed = highlight_edges is not None and not focused

            pen = QtGui.QPen(base_pen)
            if focused:
                pen.setWidthF(base_pen.widthF() + 2.0)
            path_item.setPen(pen)
            arrow_item.setBrush(QtGui.QBrush(base_color))
            arrow_item.setPen(QtGui.QPen(base_color))
            label_item.setBrush(QtGui.QBrush(record["base_label_color"]))
            opacity = 0.12 if dimmed else 1.0
            for part in (path_item, arrow_item, label_item):
                part.setOpacity(opacity)
                part.setZValue(1000 if focused else 500)

    def _apply_visibility(self) -> None:
        for key, record in self._node_items.items():
            record["item"].setVisible(self._visible_nodes is None or key in self._visible_nodes)
        for key, record in self._edge_items.items():
            visible = self._visible_edges is None or key in self._visible_edges
            for part in ("path", "arrow", "label"):
                record[part].setVisible(visible)

    def _clear_lock(self) -> None:
        if self._locked_nodes is None and self._locked_edges is None:
            return
        self._locked_nodes = None
        self._locked_edges = None
        self._apply_highlight(None, None)

    def wheelEvent(self, event: QtGui.QWheelEvent) -> None:  # type: ignore[override]
        if event.modifiers() & QtCore.Qt.KeyboardModifier.ControlModifier:
            factor = 1.15 if event.angleDelta().y() > 0 else 1 / 1.15
            self.scale(factor, factor)
            event.accept()
        else:
            super().wheelEvent(event)

    def mouseDoubleClickEvent(self, event: QtGui.QMouseEvent) -> None:  # type: ignore[override]
        if self.itemAt(event.position().toPoint()) is None:
            self._clear_lock()
        super().mouseDoubleClickEvent(event)


def _grid_layout(sizes: List[Tuple[float, float]]) -> Tuple[float, float, List[Tuple[float, float]]]:
    """Pack boxes row by row into ceil(sqrt(n)) columns; returns total size and per-box offsets."""
    if not sizes:
        return 0.0, 0.0, []
    columns = max(1, math.ceil(math.sqrt(len(sizes))))
    rows = math.ceil(len(sizes) / columns)
    col_widths = [0.0] * columns
    row_heights = [0.0] * rows
    for idx, (width, height) in enumerate(sizes):
        col_widths[idx % columns] = max(col_widths[idx % columns], width)
        row_heights[idx // columns] = max(row_heights[idx // columns], height)
    col_x = np.concatenate(([0.0], np.cumsum(np.array(col_widths) + GRID_GAP)[:-1]))
    row_y = np.concatenate(([0.0], np.cumsum(np.array(row_heights) + GRID_GAP)[:-1]))
    offsets = [(float(col_x[idx % columns]), float(row_y[idx // columns])) for idx in range(len(sizes))]
    total_w = sum(col_widths) + GRID_GAP * (columns - 1)
    total_h = sum(row_heights) + GRID_GAP * (rows - 1)
    return total_w, total_h, offsets


def _rect_exit_point(rect: QtCore.QRectF, towards: QtCore.QPointF) -> QtCore.QPointF:
    centre = rect.center()
    dx = towards.x() - centre.x()
    dy = towards.y() - centre.y()
    if rect.contains(towards) or (dx == 0 and dy == 0):
        return centre
    scale_x = (rect.width() / 2) / abs(dx) if dx else math.inf
    scale_y = (rect.height() / 2) / abs(dy) if dy else math.inf
    scale = min(scale_x, scale_y)
    return QtCore.QPointF(centre.x() + dx * scale, centre.y() + dy * scale)


def _display_label(label: str) -> str:
    # Simple text items never wrap, so the break hints only add width.
    return format_node_label(label).replace("\u200b", "")


def _format_metric(value: Any, view_mode: str) -> str:
    if view_mode == "connections":
        return f"{value:,}" if isinstance(value, int) else f"{value:g}"
    return f"{float(value):g} ns"


class ColumnMappingDialog(QtWidgets.QDialog):
    REQUIRED_FIELDS = (("hier", "Module path (hier)"), ("connecting_hier", "Connected module path"))
    OPTIONAL_FIELDS = (
        ("connections", "Connections"),
        ("wns", "WNS (ns)"),
        ("tns", "TNS (ns)"),
        ("direction", "Direction"),
    )

    def __init__(self, columns: list[str], preview: pd.DataFrame, parent: Optional[QtWidgets.QWidget] = None):
        super().__init__(parent)
        self.setWindowTitle("Map Report Columns")
        self.setModal(True)
        self.resize(460, 340)

        layout = QtWidgets.QVBoxLayout(self)
        form_layout = QtWidgets.QFormLayout()

        try:
            detected = try_auto_detect_columns(preview)
        except RecordFormatError:
            detected = {}

        self._combos: Dict[str, QtWidgets.QComboBox] = {}
        for name, caption in self.REQUIRED_FIELDS:
            combo = QtWidgets.QComboBox()
            combo.addItems(columns)
            if detected.get(name) in columns:
                combo.setCurrentText(detected[name])
            self._combos[name] = combo
            form_layout.addRow(caption, combo)
        for name, caption in self.OPTIONAL_FIELDS:
            combo = QtWidgets.QComboBox()
            combo.addItem("None")
            combo.addItems(columns)
            if detected.get(name) in columns:
                combo.setCurrentText(detected[name])
            self._combos[name] = combo
            form_layout.addRow(f"{caption} (optional)", combo)
        layout.addLayout(form_layout)

        preview_table = QtWidgets.QTableView()
        preview_table.setModel(PandasTableModel(preview.head(10)))
        preview_table.setEditTriggers(QtWidgets.QAbstractItemView.EditTrigger.NoEditTriggers)
        preview_table.resizeColumnsToContents()
        preview_table.setMaximumHeight(150)
        layout.addWidget(preview_table)

        buttons = QtWidgets.QDialogButtonBox(
            QtWidgets.QDialogButtonBox.StandardButton.Ok | QtWidgets.QDialogButtonBox.StandardButton.Cancel
        )
        buttons.accepted.connect(self.accept)
        buttons.rejected.connect(self.reject)
        layout.addWidget(buttons)

    def mapping(self) -> dict[str, Optional[str]]:
        result: dict[str, Optional[str]] = {}
        for name, combo in self._combos.items():
            value = combo.currentText()
            result[name] = None if value == "None" and name not in ("hier", "connecting_hier") else value
        return result


class HierarchyBrowserApp(QtWidgets.QMainWindow):
    def __init__(self):
        super().__init__()
        self.setWindowTitle("Hierarchy Connectivity Browser (PyQt)")
        self.resize(1560, 960)

        self.logger = BASE_LOGGER.getChild("ui")
        self.logger.info("HierarchyBrowserApp initialising.")

        self._color_palette = ["#6C83FF", "#7F5AF0", "#2CB1BC", "#F25F5C", "#FFAD17", "#60D394"]
        self._view_mode = "wns"
        self._worst_color = DEFAULT_WORST_COLOR
        self._best_color = DEFAULT_BEST_COLOR

        self.record_set: Optional[RecordSetContainer] = None
        self.store = SnapshotStore()
        self.store.subscribe(self._on_snapshot_published)
        self._tree_items: Dict[str, QtWidgets.QTreeWidgetItem] = {}

        self._setup_palette()
        self._apply_theme()

        pg.setConfigOption("background", "transparent")
        pg.setConfigOption("foreground", "#E7EBFF")
        pg.setConfigOption("antialias", True)

        self._build_ui()
        self.logger.info("User interface initialised. Awaiting report selection.")

    # UI construction -----------------------------------------------------
    def _setup_palette(self) -> None:
        palette = QtGui.QPalette()
        base = QtGui.QColor("#0f111a")
        text = QtGui.QColor("#f4f6ff")
        palette.setColor(QtGui.QPalette.ColorRole.Window, base)
        palette.setColor(QtGui.QPalette.ColorRole.Base, base)
        palette.setColor(QtGui.QPalette.ColorRole.AlternateBase, QtGui.QColor("#161a28"))
        palette.setColor(QtGui.QPalette.ColorRole.Button, QtGui.QColor("#1c2032"))
        palette.setColor(QtGui.QPalette.ColorRole.WindowText, text)
        palette.setColor(QtGui.QPalette.ColorRole.ButtonText, text)
        palette.setColor(QtGui.QPalette.ColorRole.Text, text)
        palette.setColor(QtGui.QPalette.ColorRole.Highlight, QtGui.QColor("#6C83FF"))
        palette.setColor(QtGui.QPalette.ColorRole.HighlightedText, QtGui.QColor("#ffffff"))
        palette.setColor(QtGui.QPalette.ColorGroup.Disabled, QtGui.QPalette.ColorRole.Text, QtGui.QColor("#6e7392"))
        self.setPalette(palette)

    def _apply_theme(self) -> None:
        self.setStyleSheet(
            """
            QWidget {
                background-color: #0f111a;
                color: #f4f6ff;
                font-family: "Segoe UI", "Helvetica Neue", Arial;
                font-size: 12px;
            }
            QGroupBox {
                border: 1px solid rgba(108, 131, 255, 0.25);
                border-radius: 12px;
                margin-top: 16px;
                padding: 14px;
                background-color: rgba(24, 27, 42, 0.75);
            }
            QGroupBox::title {
                subcontrol-origin: margin;
                left: 14px;
                padding: 0 6px;
                color: #9aa5d9;
                font-weight: 600;
            }
            QPushButton {
                background: qlineargradient(x1:0, y1:0, x2:1, y2:1, stop:0 #5a6ef5, stop:1 #7f5af0);
                border: none;
                border-radius: 8px;
                padding: 7px 12px;
                color: #ffffff;
                font-weight: 600;
            }
            QPushButton:checked {
                background: #2CB1BC;
            }
            QLineEdit, QListWidget, QTreeWidget, QTableView, QDoubleSpinBox {
                background-color: rgba(18, 21, 32, 0.85);
                border: 1px solid rgba(108, 131, 255, 0.2);
                border-radius: 8px;
                padding: 4px 6px;
            }
            QTabBar::tab {
                background-color: rgba(26, 30, 45, 0.65);
                color: #9aa5d9;
                padding: 8px 18px;
                font-weight: 600;
            }
            QTabBar::tab:selected {
                background-color: rgba(40, 45, 70, 0.95);
                color: #f4f6ff;
            }
            QHeaderView::section {
                background-color: rgba(24, 27, 40, 0.9);
                color: #9aa5d9;
                border: none;
                padding: 4px;
            }
            QLabel#HeaderTitle {
                font-size: 26px;
                font-weight: 700;
            }
            QLabel#HeaderSubtitle, QLabel#Hint {
                color: #8a93c9;
            }
            """
        )

    def _build_ui(self) -> None:
        central_widget = QtWidgets.QWidget()
        self.setCentralWidget(central_widget)
        root_layout = QtWidgets.QVBoxLayout(central_widget)
        root_layout.setContentsMargins(18, 18, 18, 18)
        root_layout.setSpacing(12)
        root_layout.addWidget(self._build_header())

        splitter = QtWidgets.QSplitter(QtCore.Qt.Orientation.Horizontal)
        splitter.setChildrenCollapsible(False)
        splitter.addWidget(self._build_controls_panel())
        splitter.addWidget(self._build_main_content())
        splitter.setStretchFactor(0, 0)
        splitter.setStretchFactor(1, 1)
        root_layout.addWidget(splitter, stretch=1)

        self.statusBar().showMessage(f"Load a connectivity report to begin. Logging to {LOG_FILE_PATH.name}.")

    def _build_header(self) -> QtWidgets.QWidget:
        frame = QtWidgets.QFrame()
        layout = QtWidgets.QHBoxLayout(frame)
        layout.setContentsMargins(0, 0, 0, 0)
        title = QtWidgets.QLabel("Hierarchy Connectivity Browser")
        title.setObjectName("HeaderTitle")
        subtitle = QtWidgets.QLabel("Module-to-module slack and connection counts as a compound graph")
        subtitle.setObjectName("HeaderSubtitle")
        layout.addWidget(title)
        layout.addStretch(1)
        layout.addWidget(subtitle)
        return frame

    def _build_controls_panel(self) -> QtWidgets.QWidget:
        scroll = QtWidgets.QScrollArea()
        scroll.setWidgetResizable(True)
        scroll.setMaximumWidth(340)
        container = QtWidgets.QWidget()
        scroll.setWidget(container)
        layout = QtWidgets.QVBoxLayout(container)
        layout.setAlignment(QtCore.Qt.AlignmentFlag.AlignTop)

        load_group = QtWidgets.QGroupBox("1. Load Connectivity Report")
        load_layout = QtWidgets.QVBoxLayout(load_group)
        self.sample_button = QtWidgets.QPushButton("Load Sample Report")
        self.sample_button.clicked.connect(self.load_sample_report)
        load_layout.addWidget(self.sample_button)
        self.csv_button = QtWidgets.QPushButton("Open CSV…")
        self.csv_button.clicked.connect(self.open_csv)
        load_layout.addWidget(self.csv_button)
        export_row = QtWidgets.QHBoxLayout()
        self.export_csv_button = QtWidgets.QPushButton("Export CSV…")
        self.export_csv_button.clicked.connect(self.export_filtered_csv)
        self.export_json_button = QtWidgets.QPushButton("Export JSON…")
        self.export_json_button.clicked.connect(self.export_payload_json)
        export_row.addWidget(self.export_csv_button)
        export_row.addWidget(self.export_json_button)
        load_layout.addLayout(export_row)
        layout.addWidget(load_group)

        filter_group = QtWidgets.QGroupBox("2. Filters")
        filter_layout = QtWidgets.QFormLayout(filter_group)
        self.min_connections_edit = QtWidgets.QLineEdit()
        self.max_wns_edit = QtWidgets.QLineEdit()
        self.max_tns_edit = QtWidgets.QLineEdit()
        for edit in (self.min_connections_edit, self.max_wns_edit, self.max_tns_edit):
            edit.setPlaceholderText("0")
            edit.returnPressed.connect(self.apply_filters)
        filter_layout.addRow("Min connections", self.min_connections_edit)
        filter_layout.addRow("Max WNS (ns)", self.max_wns_edit)
        filter_layout.addRow("Max TNS (ns)", self.max_tns_edit)
        self.show_internal_checkbox = QtWidgets.QCheckBox("Show internal paths")
        self.show_internal_checkbox.setChecked(True)
        filter_layout.addRow(self.show_internal_checkbox)
        self.bounds_hint = QtWidgets.QLabel("")
        self.bounds_hint.setObjectName("Hint")
        self.bounds_hint.setWordWrap(True)
        filter_layout.addRow(self.bounds_hint)
        self.apply_filters_button = QtWidgets.QPushButton("Render")
        self.apply_filters_button.clicked.connect(self.apply_filters)
        filter_layout.addRow(self.apply_filters_button)
        layout.addWidget(filter_group)

        layout.addWidget(self._build_visual_group())
        layout.addStretch(1)
        return scroll

    def _build_visual_group(self) -> QtWidgets.QGroupBox:
        visual_group = QtWidgets.QGroupBox("3. Visual Editing")
        visual_layout = QtWidgets.QFormLayout(visual_group)

        mode_row = QtWidgets.QHBoxLayout()
        self.view_mode_buttons = QtWidgets.QButtonGroup(self)
        self.view_mode_buttons.setExclusive(True)
        for idx, (text, mode) in enumerate(VIEW_MODE_LABELS):
            btn = QtWidgets.QPushButton(text)
            btn.setCheckable(True)
            btn.setProperty("mode", mode)
            btn.setChecked(mode == self._view_mode)
            self.view_mode_buttons.addButton(btn, idx)
            mode_row.addWidget(btn)
        self.view_mode_buttons.buttonClicked.connect(self._on_view_mode_changed)
        visual_layout.addRow("Colour by", mode_row)

        self.node_font_slider = QtWidgets.QSlider(QtCore.Qt.Orientation.Horizontal)
        self.node_font_slider.setRange(6, 32)
        self.node_font_slider.setValue(DEFAULT_NODE_FONT_SIZE)
        self.edge_font_slider = QtWidgets.QSlider(QtCore.Qt.Orientation.Horizontal)
        self.edge_font_slider.setRange(6, 32)
        self.edge_font_slider.setValue(DEFAULT_EDGE_FONT_SIZE)
        for slider in (self.node_font_slider, self.edge_font_slider):
            slider.valueChanged.connect(self._on_visual_changed)
        visual_layout.addRow("Node font", self.node_font_slider)
        visual_layout.addRow("Edge font", self.edge_font_slider)

        def spin(value: float = 0.0) -> QtWidgets.QDoubleSpinBox:
            box = QtWidgets.QDoubleSpinBox()
            box.setRange(-1e9, 1e9)
            box.setDecimals(3)
            box.setValue(value)
            box.valueChanged.connect(self._on_visual_changed)
            return box

        self.domain_worst_spin = spin()
        self.domain_best_spin = spin()
        self.width_worst_spin = spin()
        self.width_best_spin = spin()
        self.thickness_min_spin = spin(DEFAULT_THICKNESS[0])
        self.thickness_max_spin = spin(DEFAULT_THICKNESS[1])
        for box in (self.thickness_min_spin, self.thickness_max_spin):
            box.setRange(0.1, 40.0)
        visual_layout.addRow("Colour worst", self.domain_worst_spin)
        visual_layout.addRow("Colour best", self.domain_best_spin)
        visual_layout.addRow("Width worst", self.width_worst_spin)
        visual_layout.addRow("Width best", self.width_best_spin)
        visual_layout.addRow("Thickness min", self.thickness_min_spin)
        visual_layout.addRow("Thickness max", self.thickness_max_spin)

        colour_row = QtWidgets.QHBoxLayout()
        self.worst_colour_button = QtWidgets.QPushButton("Worst colour")
        self.worst_colour_button.clicked.connect(lambda: self._pick_colour("worst"))
        self.best_colour_button = QtWidgets.QPushButton("Best colour")
        self.best_colour_button.clicked.connect(lambda: self._pick_colour("best"))
        colour_row.addWidget(self.worst_colour_button)
        colour_row.addWidget(self.best_colour_button)
        visual_layout.addRow(colour_row)
        self._refresh_colour_buttons()

        self.reset_domain_button = QtWidgets.QPushButton("Reset to data range")
        self.reset_domain_button.clicked.connect(self._reset_domains)
        visual_layout.addRow(self.reset_domain_button)
        return visual_group

    def _build_main_content(self) -> QtWidgets.QWidget:
        self.tabs = QtWidgets.QTabWidget()
        self.tabs.setDocumentMode(True)
        self._build_graph_tab()
        self._build_overview_tab()
        return self.tabs

    def _build_graph_tab(self) -> None:
        widget = QtWidgets.QSplitter(QtCore.Qt.Orientation.Horizontal)

        navigation = QtWidgets.QWidget()
        nav_layout = QtWidgets.QVBoxLayout(navigation)
        nav_layout.setContentsMargins(0, 0, 0, 0)
        search_row = QtWidgets.QHBoxLayout()
        self.search_edit = QtWidgets.QLineEdit()
        self.search_edit.setPlaceholderText("Search modules…")
        self.search_edit.textChanged.connect(self._on_search_changed)
        self.regex_checkbox = QtWidgets.QCheckBox("Regex")
        self.regex_checkbox.toggled.connect(lambda _checked: self._on_search_changed(self.search_edit.text()))
        search_row.addWidget(self.search_edit, stretch=1)
        search_row.addWidget(self.regex_checkbox)
        nav_layout.addLayout(search_row)
        self.search_results = QtWidgets.QListWidget()
        self.search_results.setMaximumHeight(140)
        self.search_results.itemClicked.connect(self._on_search_result_clicked)
        nav_layout.addWidget(self.search_results)

        self.hierarchy_tree = QtWidgets.QTreeWidget()
        self.hierarchy_tree.setHeaderLabel("Hierarchy")
        self.hierarchy_tree.setContextMenuPolicy(QtCore.Qt.ContextMenuPolicy.CustomContextMenu)
        self.hierarchy_tree.customContextMenuRequested.connect(self._on_tree_context_menu)
        self.hierarchy_tree.itemClicked.connect(self._on_tree_item_clicked)
        nav_layout.addWidget(self.hierarchy_tree, stretch=1)
        self.show_all_button = QtWidgets.QPushButton("Show All")
        self.show_all_button.clicked.connect(self._show_all)
        nav_layout.addWidget(self.show_all_button)
        widget.addWidget(navigation)

        self.graph_widget = CompoundGraphWidget()
        self.graph_widget.setMinimumSize(520, 420)
        self.graph_widget.node_selected.connect(self._on_node_selected)
        self.graph_widget.edge_selected.connect(self._on_edge_selected)
        widget.addWidget(self.graph_widget)

        info = QtWidgets.QWidget()
        info_layout = QtWidgets.QVBoxLayout(info)
        info_layout.setContentsMargins(0, 0, 0, 0)
        self.info_title = QtWidgets.QLabel("<i>Select a module to see its worst connections.</i>")
        self.info_title.setWordWrap(True)
        info_layout.addWidget(self.info_title)
        self.info_models: Dict[str, PandasTableModel] = {}
        for metric, caption in (("tns", "Top TNS"), ("wns", "Top WNS"), ("connections", "Top connections")):
            info_layout.addWidget(QtWidgets.QLabel(caption))
            model = PandasTableModel()
            view = QtWidgets.QTableView()
            view.setModel(model)
            view.horizontalHeader().setStretchLastSection(True)
            view.setMaximumHeight(130)
            self.info_models[metric] = model
            info_layout.addWidget(view)
        info_layout.addStretch(1)
        widget.addWidget(info)

        widget.setStretchFactor(0, 0)
        widget.setStretchFactor(1, 1)
        widget.setStretchFactor(2, 0)
        self.tabs.addTab(widget, "Graph")

    def _build_overview_tab(self) -> None:
        widget = QtWidgets.QWidget()
        layout = QtWidgets.QVBoxLayout(widget)
        layout.setContentsMargins(20, 20, 20, 20)
        layout.setSpacing(12)

        metrics = [
            ("Records", "records"),
            ("Modules", "nodes"),
            ("Connections", "edges"),
            ("Violations", "violations"),
            ("Internal", "internal_edges"),
            ("Skipped rows", "skipped_records"),
        ]
        self.overview_cards: Dict[str, StatsCard] = {}
        cards_layout = QtWidgets.QHBoxLayout()
        for idx, (label_text, key) in enumerate(metrics):
            card = StatsCard(label_text, accent=self._color_for_index(idx))
            self.overview_cards[key] = card
            cards_layout.addWidget(card)
        cards_layout.addStretch(1)
        layout.addLayout(cards_layout)

        bounds_group = QtWidgets.QGroupBox("Bounds (all records / rendered records)")
        bounds_layout = QtWidgets.QVBoxLayout(bounds_group)
        self.bounds_label = QtWidgets.QLabel("<i>Load a report to see its bounds.</i>")
        self.bounds_label.setTextFormat(QtCore.Qt.TextFormat.RichText)
        bounds_layout.addWidget(self.bounds_label)
        layout.addWidget(bounds_group)

        self.distribution_plot = pg.PlotWidget()
        self.distribution_plot.setMenuEnabled(False)
        self.distribution_plot.setMouseEnabled(x=True, y=False)
        self.distribution_plot.getPlotItem().showGrid(x=True, y=True, alpha=0.12)
        layout.addWidget(self.distribution_plot, stretch=1)

        self.tabs.addTab(widget, "Overview")

    def _color_for_index(self, index: int) -> str:
        return self._color_palette[index % len(self._color_palette)]

    # Loading ----------------------------------------------------------------
    def load_sample_report(self) -> None:
        if not SAMPLE_REPORT_PATH.exists():
            self.logger.error("Sample report missing at %s", SAMPLE_REPORT_PATH)
            self._show_error(f"Sample report not found. Ensure '{SAMPLE_REPORT_PATH}' exists.")
            return
        self.logger.info("Loading bundled sample report from %s", SAMPLE_REPORT_PATH)
        try:
            container = load_records_from_csv(SAMPLE_REPORT_PATH.read_bytes())
            self._set_record_set(container)
            self.statusBar().showMessage("Loaded sample report.", 5000)
        except Exception as exc:  # pylint: disable=broad-except
            self.logger.exception("Failed to load sample report.")
            self._show_error(f"Failed to load sample report: {exc}")

    def open_csv(self) -> None:
        file_path, _ = QtWidgets.QFileDialog.getOpenFileName(
            self, "Open Connectivity Report", "", "Delimited text (*.csv *.tsv *.txt)"
        )
        if not file_path:
            return
        self.logger.info("Selected report file: %s", file_path)

        try:
            bytes_data = pathlib.Path(file_path).read_bytes()
            preview = read_csv_summary(bytes_data)
        except Exception as exc:  # pylint: disable=broad-except
            self.logger.exception("Unable to read report preview for %s", file_path)
            self._show_error(f"Unable to read report preview: {exc}")
            return

        dialog = ColumnMappingDialog([str(col) for col in preview.columns], preview, self)
        if dialog.exec() != QtWidgets.QDialog.DialogCode.Accepted:
            return

        try:
            container = load_records_from_csv(bytes_data, dialog.mapping())
            self._set_record_set(container)
            self.statusBar().showMessage(f"Loaded report: {file_path}", 5000)
            self.logger.info("Report loaded from %s (%d records).", file_path, len(container))
        except RecordFormatError as exc:
            self.logger.warning("Report column mapping error for %s: %s", file_path, exc)
            self._show_error(str(exc))
        except Exception as exc:  # pylint: disable=broad-except
            self.logger.exception("Failed to load report %s", file_path)
            self._show_error(f"Failed to load report: {exc}")

    def _set_record_set(self, container: RecordSetContainer) -> None:
        self.record_set = container
        if container.is_empty:
            self._show_warning("The report contains no rows.")
        for edit in (self.min_connections_edit, self.max_wns_edit, self.max_tns_edit):
            edit.setText("0")
        self.show_internal_checkbox.setChecked(True)
        self.apply_filters()

    # Filters ------------------------------------------------------------------
    def _filter_options(self) -> FilterOptions:
        return FilterOptions.from_inputs(
            min_connections=self.min_connections_edit.text(),
            max_wns=self.max_wns_edit.text(),
            max_tns=self.max_tns_edit.text(),
            exclude_internal=not self.show_internal_checkbox.isChecked(),
        )

    def apply_filters(self) -> None:
        if self.record_set is None:
            return
        options = self._filter_options()
        try:
            snapshot = self.store.recompute(self.record_set, options)
        except Exception as exc:  # pylint: disable=broad-except
            self.logger.exception("Failed to build the graph for filters %s", options)
            self._show_error(f"Failed to build the graph: {exc}")
            return
        if snapshot.is_empty:
            self.logger.warning("Filters result in an empty graph: %s", options)
            self.statusBar().showMessage("No connections match the current filters.", 5000)
        else:
            self.statusBar().showMessage(
                f"Rendering {len(snapshot.records):,} of {len(self.record_set):,} records.", 4000
            )

    def _on_snapshot_published(self, snapshot: GraphSnapshot) -> None:
        stats = snapshot.global_stats
        self.bounds_hint.setText(
            f"Data range: up to {stats.max_connections:,} connections, "
            f"WNS down to {stats.min_wns:g} ns, TNS down to {stats.min_tns:g} ns."
        )
        self._reset_domains(redraw=False)
        self.graph_widget.set_graph(snapshot.model, snapshot.style(self._visual_options()))
        self._populate_tree(snapshot.tree)
        self._on_search_changed(self.search_edit.text())
        self._clear_info_panel()
        self.update_overview()

    # Visual settings ----------------------------------------------------------
    def _visual_options(self) -> VisualOptions:
        return VisualOptions(
            view_mode=self._view_mode,
            domain=(self.domain_worst_spin.value(), self.domain_best_spin.value()),
            colors=(self._worst_color, self._best_color),
            thickness=(self.thickness_min_spin.value(), self.thickness_max_spin.value()),
            node_font_size=self.node_font_slider.value(),
            edge_font_size=self.edge_font_slider.value(),
            width_domain=(self.width_worst_spin.value(), self.width_best_spin.value()),
        )

    def _reset_domains(self, redraw: bool = True) -> None:
        snapshot = self.store.current
        if snapshot is None:
            return
        worst, best = default_domain(self._view_mode, snapshot.filtered_stats)
        spins = (self.domain_worst_spin, self.domain_best_spin, self.width_worst_spin, self.width_best_spin)
        for box, value in zip(spins, (worst, best, worst, best)):
            box.blockSignals(True)
            box.setValue(value)
            box.blockSignals(False)
        if redraw:
            self._on_visual_changed()

    def _on_view_mode_changed(self, button: QtWidgets.QAbstractButton) -> None:
        mode = button.property("mode")
        if mode == self._view_mode:
            return
        self._view_mode = mode
        self.logger.info("Edge styling switched to %s.", mode)
        self._reset_domains(redraw=False)
        self._on_visual_changed()
        self.update_overview()

    def _on_visual_changed(self, *_args) -> None:
        snapshot = self.store.current
        if snapshot is None or snapshot.is_empty:
            return
        try:
            self.graph_widget.apply_style(snapshot.style(self._visual_options()))
        except ValueError as exc:
            self._show_warning(str(exc))

    def _pick_colour(self, which: str) -> None:
        current = self._worst_color if which == "worst" else self._best_color
        colour = QtWidgets.QColorDialog.getColor(QtGui.QColor(current), self, f"Choose {which} colour")
        if not colour.isValid():
            return
        if which == "worst":
            self._worst_color = colour.name()
        else:
            self._best_color = colour.name()
        self._refresh_colour_buttons()
        self._on_visual_changed()

    def _refresh_colour_buttons(self) -> None:
        for button, colour in ((self.worst_colour_button, self._worst_color), (self.best_colour_button, self._best_color)):
            button.setStyleSheet(f"QPushButton {{ background: {colour}; color: #1c2032; }}")

    # Navigation -------------------------------------------------------------
    def _populate_tree(self, forest: Tuple[TreeEntry, ...]) -> None:
        self.hierarchy_tree.clear()
        self._tree_items.clear()

        def add(entry: TreeEntry, parent: Optional[QtWidgets.QTreeWidgetItem]) -> None:
            item = QtWidgets.QTreeWidgetItem([entry.title])
            item.setData(0, QtCore.Qt.ItemDataRole.UserRole, entry.key)
            item.setToolTip(0, entry.key)
            if parent is None:
                self.hierarchy_tree.addTopLevelItem(item)
            else:
                parent.addChild(item)
            self._tree_items[entry.key] = item
            for child in entry.children:
                add(child, item)

        for root in forest:
            add(root, None)
        if len(forest) == 1:
            self.hierarchy_tree.expandToDepth(0)

    def _on_tree_item_clicked(self, item: QtWidgets.QTreeWidgetItem, _column: int) -> None:
        key = item.data(0, QtCore.Qt.ItemDataRole.UserRole)
        if key:
            self.graph_widget.focus_node(key)
            self._update_info_panel(key)

    def _on_tree_context_menu(self, pos: QtCore.QPoint) -> None:
        item = self.hierarchy_tree.itemAt(pos)
        if item is None:
            return
        key = item.data(0, QtCore.Qt.ItemDataRole.UserRole)
        menu = QtWidgets.QMenu(self)
        zoom_action = menu.addAction("Zoom To")
        isolate_action = menu.addAction("Isolate")
        chosen = menu.exec(self.hierarchy_tree.viewport().mapToGlobal(pos))
        if chosen is zoom_action:
            self.graph_widget.zoom_to(key)
            self.graph_widget.focus_node(key)
        elif chosen is isolate_action:
            if self.graph_widget.isolate(key):
                self.statusBar().showMessage(f"Isolated {key}. Use 'Show All' to restore.", 5000)
                self.logger.info("Isolated neighbourhood of %s.", key)
        self._update_info_panel(key)

    def _show_all(self) -> None:
        self.graph_widget.show_all()

    def _on_search_changed(self, text: str) -> None:
        self.search_results.clear()
        snapshot = self.store.current
        if snapshot is None or not text:
            return
        matches = search_nodes(snapshot.model, text, regex=self.regex_checkbox.isChecked(), limit=SEARCH_RESULT_LIMIT)
        for node in matches:
            item = QtWidgets.QListWidgetItem(f"{node.label}  ({node.id})")
            item.setData(QtCore.Qt.ItemDataRole.UserRole, node.id)
            self.search_results.addItem(item)

    def _on_search_result_clicked(self, item: QtWidgets.QListWidgetItem) -> None:
        key = item.data(QtCore.Qt.ItemDataRole.UserRole)
        self._select_node(key, zoom=True)

    def _select_node(self, key: str, *, zoom: bool = False) -> None:
        if zoom:
            self.graph_widget.zoom_to(key)
        self.graph_widget.focus_node(key)
        tree_item = self._tree_items.get(key)
        if tree_item is not None:
            self.hierarchy_tree.setCurrentItem(tree_item)
            self.hierarchy_tree.scrollToItem(tree_item)
        self._update_info_panel(key)

    def _on_node_selected(self, key: str) -> None:
        self._select_node(key)

    def _on_edge_selected(self, key: str) -> None:
        snapshot = self.store.current
        if snapshot is None:
            return
        edge = snapshot.model.edge_index().get(key)
        if edge is None:
            return
        kind = "internal" if edge.internal else "external"
        self.statusBar().showMessage(
            f"{edge.source} → {edge.target}: {edge.connections} connections, "
            f"WNS {edge.wns:g} ns, TNS {edge.tns:g} ns ({kind})",
            8000,
        )

    # Info panel -----------------------------------------------------------
    def _clear_info_panel(self) -> None:
        self.info_title.setText("<i>Select a module to see its worst connections.</i>")
        for model in self.info_models.values():
            model.set_dataframe(pd.DataFrame())

    def _update_info_panel(self, key: str) -> None:
        if self.record_set is None or not key:
            return
        # Rankings cover every loaded row, not only the rows that pass the filters.
        tables = top_rows_for_node(self.record_set, key)
        self.info_title.setText(f"<b>{key}</b>")
        for metric, model in self.info_models.items():
            model.set_dataframe(tables[metric])

    # Overview -------------------------------------------------------------
    def update_overview(self) -> None:
        snapshot = self.store.current
        if snapshot is None:
            return
        overview = compute_overview(snapshot.records, snapshot.model)
        for key, card in self.overview_cards.items():
            card.set_value(overview.get(key, "—"))

        glob, filt = snapshot.global_stats, snapshot.filtered_stats
        self.bounds_label.setText(
            "<ul>"
            f"<li><b>Max connections:</b> {glob.max_connections:,} / {filt.max_connections:,}</li>"
            f"<li><b>Worst WNS:</b> {glob.min_wns:g} ns / {filt.min_wns:g} ns</li>"
            f"<li><b>Worst TNS:</b> {glob.min_tns:g} ns / {filt.min_tns:g} ns</li>"
            "</ul>"
        )
        self._plot_distribution(snapshot.records.df)

    def _plot_distribution(self, df: pd.DataFrame) -> None:
        plot = self.distribution_plot
        plot.clear()
        column = self._view_mode
        unit = "" if column == "connections" else " (ns)"
        item = plot.getPlotItem()
        item.setTitle(f"<span style='color:#e3e7ff;font-size:12pt;'>{column.upper()} distribution</span>")
        item.setLabel("bottom", f"{column}{unit}")
        item.setLabel("left", "Records")
        if df.empty:
            return
        values = df[column].astype(float).values
        bins = min(30, max(5, int(np.sqrt(len(values)))))
        hist, edges = np.histogram(values, bins=bins)
        centers = (edges[:-1] + edges[1:]) / 2
        width = float(edges[1] - edges[0]) * 0.9 if len(edges) > 1 and edges[1] != edges[0] else 0.5
        bar = pg.BarGraphItem(
            x=centers, height=hist, width=width, brush=pg.mkBrush(self._color_for_index(0)), pen=pg.mkPen("#1a1f33")
        )
        plot.addItem(bar)
        plot.setYRange(0, hist.max() * 1.2 if hist.max() > 0 else 1)

    # Exports --------------------------------------------------------------
    def export_filtered_csv(self) -> None:
        snapshot = self.store.current
        if snapshot is None:
            self.logger.warning("CSV export requested with no report loaded.")
            self._show_warning("Load a report before exporting.")
            return
        file_path, _ = QtWidgets.QFileDialog.getSaveFileName(self, "Save Filtered Report", "", "CSV files (*.csv)")
        if not file_path:
            return
        try:
            pathlib.Path(file_path).write_bytes(snapshot.records.to_csv_bytes())
            self.statusBar().showMessage(f"Saved CSV to {file_path}", 5000)
            self.logger.info("Filtered records exported to %s", file_path)
        except Exception as exc:  # pylint: disable=broad-except
            self.logger.exception("Failed to export CSV to %s", file_path)
            self._show_error(f"Failed to export CSV: {exc}")

    def export_payload_json(self) -> None:
        snapshot = self.store.current
        if snapshot is None:
            self.logger.warning("JSON export requested with no report loaded.")
            self._show_warning("Load a report before exporting.")
            return
        file_path, _ = QtWidgets.QFileDialog.getSaveFileName(self, "Save Graph Payload", "", "JSON files (*.json)")
        if not file_path:
            return
        try:
            payload = build_render_payload(snapshot, self._visual_options())
            pathlib.Path(file_path).write_text(json.dumps(payload, indent=2), encoding="utf-8")
            self.statusBar().showMessage(f"Saved graph payload to {file_path}", 5000)
            self.logger.info("Render payload exported to %s", file_path)
        except Exception as exc:  # pylint: disable=broad-except
            self.logger.exception("Failed to export JSON to %s", file_path)
            self._show_error(f"Failed to export JSON: {exc}")

    # Messaging ------------------------------------------------------------
    def _show_error(self, message: str) -> None:
        self.logger.error(message)
        QtWidgets.QMessageBox.critical(self, "Error", message)

    def _show_warning(self, message: str) -> None:
        self.logger.warning(message)
        QtWidgets.QMessageBox.warning(self, "Warning", message)


def main() -> None:
    logger = BASE_LOGGER.getChild("runtime")
    logger.info("Starting QApplication event loop.")
    app = QtWidgets.QApplication(sys.argv)
    window = HierarchyBrowserApp()
    window.show()
    exit_code = app.exec()
    logger.info("Application closed with exit code %s", exit_code)
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
