from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Union

import pandas as pd

from .graph_model import GraphModel, HierarchyNode
from .record_loader import Number, RawRecord, RecordSetContainer, coerce_number

RecordSource = Union[RecordSetContainer, Iterable[RawRecord]]


@dataclass(frozen=True)
class RecordStatistics:
    max_connections: Number = 0
    min_wns: float = 0.0
    min_tns: float = 0.0


def _as_container(records: RecordSource) -> RecordSetContainer:
    if isinstance(records, RecordSetContainer):
        return records
    return RecordSetContainer.from_records(records)


def compute_statistics(records: RecordSource) -> RecordStatistics:
    """
    Summary bounds over a record set.

    The connection maximum is floored at 0 and the slack minimums are capped at 0, so a
    set with no violations reports 0 rather than its smallest positive slack.
    """
    df = _as_container(records).df
    if df.empty:
        return RecordStatistics()
    return RecordStatistics(
        max_connections=coerce_number(max(df["connections"].max(), 0)),
        min_wns=float(min(df["wns"].min(), 0.0)),
        min_tns=float(min(df["tns"].min(), 0.0)),
    )


def compute_overview(record_set: RecordSetContainer, model: GraphModel) -> Dict[str, Any]:
    internal_edges = sum(1 for edge in model.edges if edge.internal)
    violations = sum(1 for edge in model.edges if edge.violation)
    roots = sum(1 for node in model.nodes if node.parent_id is None)
    return {
        "records": len(record_set),
        "nodes": len(model.nodes),
        "edges": len(model.edges),
        "top_level_modules": roots,
        "violations": violations,
        "internal_edges": internal_edges,
        "skipped_records": model.skipped,
    }


def top_rows_for_node(record_set: RecordSetContainer, node_id: str, limit: int = 3) -> Dict[str, pd.DataFrame]:
    """
    Worst rows touching `node_id` for each metric.

    Only rows whose endpoint equals the id exactly are considered; rows of child modules
    do not roll up into their parents.
    """
    df = record_set.df
    columns = ["hier", "connecting_hier"]
    subset = df[(df["hier"] == node_id) | (df["connecting_hier"] == node_id)]

    def ranked(metric: str, ascending: bool) -> pd.DataFrame:
        if subset.empty:
            return pd.DataFrame(columns=columns + [metric])
        ordered = subset.sort_values(metric, ascending=ascending, kind="stable")
        return ordered[columns + [metric]].head(limit).reset_index(drop=True)

    return {
        "tns": ranked("tns", ascending=True),
        "wns": ranked("wns", ascending=True),
        "connections": ranked("connections", ascending=False),
    }


def search_nodes(model: GraphModel, query: str, *, regex: bool = False, limit: int = 10) -> List[HierarchyNode]:
    """Case-insensitive label search. An invalid regular expression matches nothing."""
    if not query:
        return []
    if regex:
        try:
            pattern = re.compile(query, re.IGNORECASE)
        except re.error:
            return []
        matches = [node for node in model.nodes if pattern.search(node.label or node.id)]
    else:
        lowered = query.lower()
        matches = [node for node in model.nodes if lowered in (node.label or node.id).lower()]
    return matches[:limit]
