from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from .graph_model import GraphModel, build_graph_model
from .record_analysis import RecordStatistics, compute_overview, compute_statistics
from .record_filters import FilterOptions, filter_records
from .record_loader import RecordSetContainer
from .tree_projector import TreeEntry, build_hierarchy_tree
from .visual_mapping import GraphStyle, VisualOptions, build_graph_style, default_domain

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GraphSnapshot:
    """Everything derived from one record set and one filter configuration."""

    options: FilterOptions
    records: RecordSetContainer
    global_stats: RecordStatistics
    filtered_stats: RecordStatistics
    model: GraphModel
    tree: Tuple[TreeEntry, ...] = field(default_factory=tuple)

    @property
    def is_empty(self) -> bool:
        return self.model.is_empty

    def default_visual_options(self, view_mode: str = "wns", **overrides) -> VisualOptions:
        params = {"domain": default_domain(view_mode, self.filtered_stats)}
        params.update(overrides)
        return VisualOptions(view_mode=view_mode, **params)

    def style(self, options: VisualOptions) -> GraphStyle:
        return build_graph_style(self.model.edges, options)


def build_snapshot(record_set: RecordSetContainer, options: Optional[FilterOptions] = None) -> GraphSnapshot:
    """
    Run filter -> statistics -> model -> tree over `record_set`.

    Global statistics cover the unfiltered set and filtered statistics the rendered subset;
    the two are computed independently.
    """
    options = (options or FilterOptions()).normalised()
    global_stats = compute_statistics(record_set)
    filtered = filter_records(record_set, options)
    filtered_stats = compute_statistics(filtered)
    model = build_graph_model(filtered.records)
    tree = tuple(build_hierarchy_tree(model.elements()))
    logger.info(
        "Snapshot built: %d of %d records kept, %d nodes, %d edges.",
        len(filtered),
        len(record_set),
        len(model.nodes),
        len(model.edges),
    )
    return GraphSnapshot(
        options=options,
        records=filtered,
        global_stats=global_stats,
        filtered_stats=filtered_stats,
        model=model,
        tree=tree,
    )


class SnapshotStore:
    """
    Holds the published snapshot.

    Each recomputation takes a token from `begin()`; `publish()` only accepts the newest
    token, so a result that was overtaken by a later trigger is dropped.
    """

    def __init__(self) -> None:
        self._generation = 0
        self._current: Optional[GraphSnapshot] = None
        self._listeners: List = []

    @property
    def current(self) -> Optional[GraphSnapshot]:
        return self._current

    def subscribe(self, callback) -> None:
        self._listeners.append(callback)

    def begin(self) -> int:
        self._generation += 1
        return self._generation

    def publish(self, token: int, snapshot: GraphSnapshot) -> bool:
        if token != self._generation:
            logger.debug("Discarding superseded snapshot (token %d, latest %d).", token, self._generation)
            return False
        self._current = snapshot
        for callback in list(self._listeners):
            callback(snapshot)
        return True

    def recompute(self, record_set: RecordSetContainer, options: Optional[FilterOptions] = None) -> GraphSnapshot:
        token = self.begin()
        snapshot = build_snapshot(record_set, options)
        self.publish(token, snapshot)
        return snapshot

    def clear(self) -> None:
        self.begin()
        self._current = None


def build_render_payload(snapshot: GraphSnapshot, visual: VisualOptions) -> Dict[str, Any]:
    """JSON-ready bundle of elements, forest, styling and bounds for an external renderer."""
    style = snapshot.style(visual)
    return {
        "elements": snapshot.model.to_payload(),
        "tree": [entry.to_dict() for entry in snapshot.tree],
        "style": {
            "view_mode": style.view_mode,
            "node_font_size": style.node_font_size,
            "parent_font_size": style.parent_font_size,
            "edge_font_size": style.edge_font_size,
            "edges": {edge_id: asdict(visual_edge) for edge_id, visual_edge in style.edges.items()},
        },
        "stats": {
            "global": asdict(snapshot.global_stats),
            "filtered": asdict(snapshot.filtered_stats),
        },
        "filters": asdict(snapshot.options),
        "overview": compute_overview(snapshot.records, snapshot.model),
    }
