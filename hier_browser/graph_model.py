from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple, Union

import networkx as nx

from .hier_paths import decompose_path, is_internal_pair, split_segments
from .record_loader import Number, RawRecord

logger = logging.getLogger(__name__)

FORWARD_DIRECTION = "to"


@dataclass(frozen=True)
class HierarchyNode:
    id: str
    label: str
    parent_id: Optional[str] = None


@dataclass(frozen=True)
class GraphEdge:
    id: str
    source: str
    target: str
    connections: Number
    wns: float
    tns: float
    internal: bool

    @property
    def violation(self) -> bool:
        return self.wns < 0

    def metric(self, name: str) -> Number:
        if name not in ("connections", "wns", "tns"):
            raise ValueError(f"Unsupported edge metric: {name}")
        return getattr(self, name)


@dataclass(frozen=True)
class NodeEntry:
    node: HierarchyNode
    group: str = field(default="nodes", init=False)

    @property
    def id(self) -> str:
        return self.node.id

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"id": self.node.id, "label": self.node.label}
        if self.node.parent_id is not None:
            data["parent"] = self.node.parent_id
        return {"group": self.group, "data": data}


@dataclass(frozen=True)
class EdgeEntry:
    edge: GraphEdge
    group: str = field(default="edges", init=False)

    @property
    def id(self) -> str:
        return self.edge.id

    def to_dict(self) -> Dict[str, Any]:
        edge = self.edge
        return {
            "group": self.group,
            "data": {
                "id": edge.id,
                "source": edge.source,
                "target": edge.target,
                "connections": edge.connections,
                "wns": edge.wns,
                "tns": edge.tns,
                "violation": edge.violation,
                "internal": edge.internal,
            },
        }


GraphElement = Union[NodeEntry, EdgeEntry]


@dataclass(frozen=True)
class GraphModel:
    """Deduplicated hierarchy nodes (insertion order) and directed edges (record order)."""

    nodes: Tuple[HierarchyNode, ...] = ()
    edges: Tuple[GraphEdge, ...] = ()
    skipped: int = 0

    @property
    def is_empty(self) -> bool:
        return not self.nodes and not self.edges

    def node_index(self) -> Dict[str, HierarchyNode]:
        return {node.id: node for node in self.nodes}

    def edge_index(self) -> Dict[str, GraphEdge]:
        return {edge.id: edge for edge in self.edges}

    def elements(self) -> List[GraphElement]:
        elements: List[GraphElement] = [NodeEntry(node) for node in self.nodes]
        elements.extend(EdgeEntry(edge) for edge in self.edges)
        return elements

    def to_payload(self) -> List[Dict[str, Any]]:
        """Plain-dict elements for rendering collaborators and JSON export."""
        return [element.to_dict() for element in self.elements()]

    def hierarchy_graph(self) -> nx.DiGraph:
        """Parent -> child containment tree over the node set."""
        tree = nx.DiGraph()
        for node in self.nodes:
            tree.add_node(node.id, label=node.label)
        for node in self.nodes:
            if node.parent_id is not None and tree.has_node(node.parent_id):
                tree.add_edge(node.parent_id, node.id)
        return tree

    def to_networkx(self) -> nx.MultiDiGraph:
        """Connectivity graph keyed by edge id; parallel edges are kept."""
        graph = nx.MultiDiGraph()
        for node in self.nodes:
            graph.add_node(node.id, label=node.label, parent=node.parent_id)
        for edge in self.edges:
            graph.add_edge(
                edge.source,
                edge.target,
                key=edge.id,
                connections=edge.connections,
                wns=edge.wns,
                tns=edge.tns,
                internal=edge.internal,
            )
        return graph


def resolve_direction(record: RawRecord, hier_id: str, connecting_id: str) -> Tuple[str, str]:
    """Only the exact literal "to" keeps the row orientation; every other value reverses it."""
    if record.direction == FORWARD_DIRECTION:
        return hier_id, connecting_id
    return connecting_id, hier_id


def build_graph_model(records: Iterable[RawRecord]) -> GraphModel:
    """
    Turn connectivity records into hierarchy nodes and directed edges.

    Every ancestor of both endpoints is materialised as a node, so edge endpoints and
    parent references always resolve. Records missing either path are skipped.
    """
    nodes: Dict[str, HierarchyNode] = {}
    edges: List[GraphEdge] = []
    id_counts: Dict[str, int] = defaultdict(lambda: 1)
    issued_ids: Set[str] = set()
    skipped = 0

    def materialise(path: Optional[str]) -> Optional[str]:
        chain = decompose_path(path)
        if not chain:
            return None
        segments = split_segments(path)
        parent_id: Optional[str] = None
        for segment, node_id in zip(segments, chain):
            if node_id not in nodes:
                nodes[node_id] = HierarchyNode(id=node_id, label=segment, parent_id=parent_id)
            parent_id = node_id
        return chain[-1]

    for record in records:
        if not decompose_path(record.hier) or not decompose_path(record.connecting_hier):
            skipped += 1
            continue
        hier_id = materialise(record.hier)
        connecting_id = materialise(record.connecting_hier)
        source, target = resolve_direction(record, hier_id, connecting_id)

        base_id = f"{source}->{target}"
        edge_id = base_id
        while edge_id in issued_ids:
            id_counts[base_id] += 1
            edge_id = f"{base_id}#{id_counts[base_id]}"
        issued_ids.add(edge_id)

        edges.append(
            GraphEdge(
                id=edge_id,
                source=source,
                target=target,
                connections=record.connections,
                wns=record.wns,
                tns=record.tns,
                internal=is_internal_pair(source, target),
            )
        )

    if skipped:
        logger.debug("Skipped %d record(s) with a missing endpoint path.", skipped)
    logger.debug("Graph model built: %d nodes, %d edges.", len(nodes), len(edges))
    return GraphModel(nodes=tuple(nodes.values()), edges=tuple(edges), skipped=skipped)


def isolate_neighbourhood(model: GraphModel, node_id: str) -> Tuple[Set[str], Set[str]]:
    """
    Node and edge ids to keep visible when isolating `node_id`.

    Keeps the node, its descendants, its ancestors, every node sharing an edge with it and
    those edges, plus the ancestors of everything kept so compound containers stay drawn.
    """
    tree = model.hierarchy_graph()
    if not tree.has_node(node_id):
        return set(), set()

    connectivity = model.to_networkx()
    visible_nodes: Set[str] = {node_id}
    visible_edges: Set[str] = set()

    for src, dst, key in connectivity.out_edges(node_id, keys=True):
        visible_nodes.add(dst)
        visible_edges.add(key)
    for src, dst, key in connectivity.in_edges(node_id, keys=True):
        visible_nodes.add(src)
        visible_edges.add(key)

    visible_nodes |= nx.descendants(tree, node_id)
    for kept in list(visible_nodes):
        visible_nodes |= nx.ancestors(tree, kept)
    return visible_nodes, visible_edges
