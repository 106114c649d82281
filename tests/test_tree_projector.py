from hier_browser.graph_model import HierarchyNode, NodeEntry, build_graph_model
from hier_browser.tree_projector import TreeEntry, build_hierarchy_tree


def test_forest_from_model_elements(sample_records):
    model = build_graph_model(sample_records)
    forest = build_hierarchy_tree(model.elements())
    assert [root.key for root in forest] == ["top"]
    assert [child.key for child in forest[0].children] == ["top/a", "top/b", "top/c", "top/d"]
    assert [child.title for child in forest[0].children[0].children] == ["x"]


def test_every_node_appears_once(sample_records):
    model = build_graph_model(sample_records)
    forest = build_hierarchy_tree(model.elements())
    keys = [entry.key for root in forest for entry in root.walk()]
    assert sorted(keys) == sorted(node.id for node in model.nodes)


def test_missing_parent_becomes_root():
    nodes = [
        HierarchyNode("top/a/b", "b", parent_id="top/a"),
        HierarchyNode("other", "other"),
    ]
    forest = build_hierarchy_tree(nodes)
    assert [root.key for root in forest] == ["top/a/b", "other"]


def test_children_keep_supply_order():
    nodes = [
        NodeEntry(HierarchyNode("top", "top")),
        NodeEntry(HierarchyNode("top/z", "z", "top")),
        NodeEntry(HierarchyNode("top/a", "a", "top")),
    ]
    forest = build_hierarchy_tree(nodes)
    assert [child.title for child in forest[0].children] == ["z", "a"]


def test_plain_payload_dicts_skip_edges():
    payload = [
        {"group": "nodes", "data": {"id": "top", "label": "top"}},
        {"group": "nodes", "data": {"id": "top/a", "label": "a", "parent": "top"}},
        {"group": "edges", "data": {"id": "top->top/a", "source": "top", "target": "top/a"}},
    ]
    forest = build_hierarchy_tree(payload)
    assert [entry.to_dict() for entry in forest] == [
        {"key": "top", "title": "top", "children": [{"key": "top/a", "title": "a", "children": []}]}
    ]


def test_empty_input():
    assert build_hierarchy_tree([]) == []


def test_walk_is_depth_first():
    tree = TreeEntry("a", "a", [TreeEntry("a/b", "b", [TreeEntry("a/b/c", "c")]), TreeEntry("a/d", "d")])
    assert [entry.key for entry in tree.walk()] == ["a", "a/b", "a/b/c", "a/d"]
