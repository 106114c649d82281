from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Iterator, List, Optional, Tuple

from .graph_model import EdgeEntry, HierarchyNode, NodeEntry

logger = logging.getLogger(__name__)


@dataclass
class TreeEntry:
    key: str
    title: str
    children: List["TreeEntry"] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {"key": self.key, "title": self.title, "children": [child.to_dict() for child in self.children]}

    def walk(self) -> Iterator["TreeEntry"]:
        yield self
        for child in self.children:
            yield from child.walk()


def _is_node_payload(entry: Dict[str, Any]) -> bool:
    data = entry.get("data", entry)
    return "source" not in data and "target" not in data


def _as_node(entry: Any) -> Optional[HierarchyNode]:
    if isinstance(entry, NodeEntry):
        return entry.node
    if isinstance(entry, HierarchyNode):
        return entry
    if isinstance(entry, EdgeEntry):
        return None
    if isinstance(entry, dict):
        if not _is_node_payload(entry):
            return None
        data = entry.get("data", entry)
        node_id = data.get("id")
        if node_id is None:
            return None
        return HierarchyNode(id=node_id, label=data.get("label") or node_id, parent_id=data.get("parent"))
    return None


def build_hierarchy_tree(entries: Iterable[Any]) -> List[TreeEntry]:
    """
    Project hierarchy nodes into a forest.

    Accepts tagged node/edge entries, bare nodes or payload dicts; edges are ignored.
    A node whose parent is not in the collection becomes a root. Children keep the order
    in which nodes were supplied.
    """
    nodes: List[Tuple[HierarchyNode, TreeEntry]] = []
    index: Dict[str, TreeEntry] = {}
    for entry in entries:
        node = _as_node(entry)
        if node is None:
            continue
        tree_entry = TreeEntry(key=node.id, title=node.label or node.id)
        nodes.append((node, tree_entry))
        index[node.id] = tree_entry

    forest: List[TreeEntry] = []
    for node, tree_entry in nodes:
        parent = index.get(node.parent_id) if node.parent_id is not None else None
        if parent is not None:
            parent.children.append(tree_entry)
        else:
            if node.parent_id is not None:
                logger.debug("Parent %s not found for %s; placing it at the top level.", node.parent_id, node.id)
            forest.append(tree_entry)
    return forest
