import math

import pytest

from hier_browser.record_filters import FilterOptions, coerce_bound, filter_records, record_passes
from hier_browser.record_loader import RawRecord, RecordSetContainer


class TestCoerceBound:

    @pytest.mark.parametrize("value", [None, "", "  ", "abc", float("nan"), True, [1]])
    def test_non_numeric_falls_back_to_default(self, value):
        assert coerce_bound(value, 7.0) == 7.0

    @pytest.mark.parametrize("value, expected", [("3", 3.0), (" -0.5 ", -0.5), (2, 2.0), (1.5, 1.5)])
    def test_numeric_values_parse(self, value, expected):
        assert coerce_bound(value) == expected

    def test_from_inputs_uses_defaults(self):
        options = FilterOptions.from_inputs("nope", "", math.nan, exclude_internal=1)
        assert options == FilterOptions(0.0, 0.0, 0.0, True)


class TestFilterRecords:

    def test_default_options_drop_positive_slack(self, record_set):
        filtered = filter_records(record_set, FilterOptions())
        assert [record.hier for record in filtered] == ["top/a", "top/b", "top/a", "top/a/x"]

    def test_min_connections_is_inclusive(self, record_set):
        filtered = filter_records(record_set, FilterOptions(min_connections=7))
        assert [(r.hier, r.connecting_hier) for r in filtered] == [("top/b", "top/c"), ("top/a/x", "top/d")]

    def test_slack_bounds_are_inclusive(self, record_set):
        filtered = filter_records(record_set, FilterOptions(max_wns=-2.5, max_tns=-10))
        assert [record.wns for record in filtered] == [-2.5, -4.0]

    def test_exclude_internal(self, record_set):
        filtered = filter_records(record_set, FilterOptions(exclude_internal=True))
        assert all(record.connecting_hier != "top/a/x" for record in filtered)
        assert len(filtered) == 3

    def test_idempotent(self, record_set):
        options = FilterOptions(min_connections=2, max_wns=-0.1, exclude_internal=True)
        once = filter_records(record_set, options)
        twice = filter_records(once, options)
        assert twice.records == once.records

    def test_result_is_a_subsequence(self, record_set):
        filtered = filter_records(record_set, FilterOptions(max_wns=1.0, max_tns=1.0))
        positions = [record_set.records.index(record) for record in filtered]
        assert positions == sorted(positions)

    def test_non_numeric_bounds_behave_like_defaults(self, record_set):
        garbage = FilterOptions(min_connections="x", max_wns="", max_tns=None)  # type: ignore[arg-type]
        assert filter_records(record_set, garbage).records == filter_records(record_set, FilterOptions()).records

    def test_empty_input(self):
        empty = RecordSetContainer.from_records([])
        assert filter_records(empty, FilterOptions(exclude_internal=True)).is_empty

    def test_mask_agrees_with_record_predicate(self, record_set):
        options = FilterOptions(min_connections=2, max_wns=0.5, max_tns=0.5, exclude_internal=True)
        expected = [record for record in record_set if record_passes(record, options)]
        assert list(filter_records(record_set, options)) == expected

    def test_missing_paths_survive_filtering(self):
        records = RecordSetContainer.from_records([RawRecord(None, "top/a", 3, -1.0, -1.0, "to")])
        assert len(filter_records(records, FilterOptions(exclude_internal=True))) == 1
