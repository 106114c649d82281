from hier_browser.graph_model import build_graph_model
from hier_browser.record_analysis import (
    RecordStatistics,
    compute_overview,
    compute_statistics,
    search_nodes,
    top_rows_for_node,
)
from hier_browser.record_filters import FilterOptions, filter_records
from hier_browser.record_loader import RawRecord, RecordSetContainer


# -----------------------------------------------------------------------------
# Statistics
# -----------------------------------------------------------------------------
class TestComputeStatistics:

    def test_empty_input_is_all_zero(self):
        assert compute_statistics([]) == RecordStatistics(0, 0.0, 0.0)
        assert compute_statistics(RecordSetContainer.from_records([])) == RecordStatistics(0, 0.0, 0.0)

    def test_bounds(self, record_set):
        stats = compute_statistics(record_set)
        assert stats.max_connections == 40
        assert stats.min_wns == -4.0
        assert stats.min_tns == -30.0

    def test_positive_slack_is_capped_at_zero(self):
        stats = compute_statistics([RawRecord("a", "b", 3, 0.7, 2.0, "to")])
        assert stats.min_wns == 0.0
        assert stats.min_tns == 0.0

    def test_accepts_plain_iterables(self, sample_records):
        assert compute_statistics(iter(sample_records)) == compute_statistics(sample_records)

    def test_global_and_filtered_are_independent(self, record_set):
        filtered = filter_records(record_set, FilterOptions(max_wns=-1.0))
        assert compute_statistics(record_set).max_connections == 40
        assert compute_statistics(filtered).max_connections == 7
        assert compute_statistics(filtered).min_wns == -4.0


# -----------------------------------------------------------------------------
# Overview and per-node lookups
# -----------------------------------------------------------------------------
class TestOverview:

    def test_counts(self, record_set):
        model = build_graph_model(record_set.records)
        overview = compute_overview(record_set, model)
        assert overview["records"] == 5
        assert overview["edges"] == 5
        assert overview["nodes"] == 6
        assert overview["top_level_modules"] == 1
        assert overview["violations"] == 3
        assert overview["internal_edges"] == 1
        assert overview["skipped_records"] == 0


class TestTopRowsForNode:

    def test_worst_rows_per_metric(self, record_set):
        tables = top_rows_for_node(record_set, "top/a")
        assert list(tables["tns"]["tns"]) == [-10.0, 0.0]
        assert list(tables["wns"]["wns"]) == [-2.5, 0.0]
        assert list(tables["connections"]["connections"]) == [5, 1]

    def test_limit(self, record_set):
        tables = top_rows_for_node(record_set, "top/d", limit=1)
        assert list(tables["tns"]["hier"]) == ["top/a/x"]
        assert len(tables["connections"]) == 1
        assert tables["connections"]["connections"].iloc[0] == 40

    def test_children_do_not_roll_up(self, record_set):
        tables = top_rows_for_node(record_set, "top")
        assert all(table.empty for table in tables.values())

    def test_full_set_keeps_rows_hidden_by_filters(self, record_set):
        filtered = filter_records(record_set, FilterOptions())
        assert list(top_rows_for_node(filtered, "top/d")["connections"]["connections"]) == [7]
        assert list(top_rows_for_node(record_set, "top/d")["connections"]["connections"]) == [40, 7]


class TestSearchNodes:

    def test_substring_is_case_insensitive(self, record_set):
        model = build_graph_model(record_set.records)
        assert [node.id for node in search_nodes(model, "X")] == ["top/a/x"]

    def test_regex(self, record_set):
        model = build_graph_model(record_set.records)
        assert [node.id for node in search_nodes(model, "^[bc]$", regex=True)] == ["top/b", "top/c"]

    def test_invalid_regex_matches_nothing(self, record_set):
        model = build_graph_model(record_set.records)
        assert search_nodes(model, "(", regex=True) == []

    def test_limit_and_empty_query(self):
        records = [RawRecord(f"top/m{i}", "top/sink", 1, -1.0, -1.0, "to") for i in range(15)]
        model = build_graph_model(records)
        assert len(search_nodes(model, "m")) == 10
        assert search_nodes(model, "") == []
