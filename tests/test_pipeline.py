import json

from hier_browser.pipeline import SnapshotStore, build_render_payload, build_snapshot
from hier_browser.record_analysis import RecordStatistics
from hier_browser.record_filters import FilterOptions
from hier_browser.record_loader import RecordSetContainer


class TestBuildSnapshot:

    def test_stages_compose(self, record_set):
        snapshot = build_snapshot(record_set, FilterOptions(exclude_internal=True))
        assert len(snapshot.records) == 3
        assert snapshot.global_stats == RecordStatistics(40, -4.0, -30.0)
        assert snapshot.filtered_stats == RecordStatistics(12, -4.0, -30.0)
        assert len(snapshot.model.edges) == 3
        assert [root.key for root in snapshot.tree] == ["top"]

    def test_options_are_normalised(self, record_set):
        snapshot = build_snapshot(record_set, FilterOptions(min_connections="junk"))  # type: ignore[arg-type]
        assert snapshot.options == FilterOptions()

    def test_default_options(self, record_set):
        assert build_snapshot(record_set).options == FilterOptions()

    def test_empty_result(self, record_set):
        snapshot = build_snapshot(record_set, FilterOptions(min_connections=1000))
        assert snapshot.is_empty
        assert snapshot.tree == ()
        assert snapshot.filtered_stats == RecordStatistics()

    def test_default_visual_options_follow_filtered_stats(self, record_set):
        snapshot = build_snapshot(record_set)
        assert snapshot.default_visual_options("wns").domain == (-4.0, 0.0)
        assert snapshot.default_visual_options("connections").domain == (12.0, 0.0)
        assert snapshot.default_visual_options("tns", thickness=(2.0, 8.0)).thickness == (2.0, 8.0)


class TestSnapshotStore:

    def test_publish_latest(self, record_set):
        store = SnapshotStore()
        seen = []
        store.subscribe(seen.append)
        snapshot = store.recompute(record_set)
        assert store.current is snapshot
        assert seen == [snapshot]

    def test_superseded_results_are_discarded(self, record_set):
        store = SnapshotStore()
        seen = []
        store.subscribe(seen.append)
        stale_token = store.begin()
        fresh_token = store.begin()
        fresh = build_snapshot(record_set, FilterOptions(max_wns=-1.0))
        stale = build_snapshot(record_set)

        assert store.publish(fresh_token, fresh)
        assert not store.publish(stale_token, stale)
        assert store.current is fresh
        assert seen == [fresh]

    def test_clear_invalidates_pending_tokens(self, record_set):
        store = SnapshotStore()
        token = store.begin()
        store.clear()
        assert not store.publish(token, build_snapshot(record_set))
        assert store.current is None


class TestRenderPayload:

    def test_json_ready(self, record_set):
        snapshot = build_snapshot(record_set)
        payload = build_render_payload(snapshot, snapshot.default_visual_options("wns"))
        decoded = json.loads(json.dumps(payload))
        assert set(decoded) == {"elements", "tree", "style", "stats", "filters", "overview"}
        assert set(decoded["style"]["edges"]) == {edge.id for edge in snapshot.model.edges}
        assert decoded["stats"]["global"]["max_connections"] == 40
        assert decoded["overview"]["records"] == 4

    def test_empty_record_set(self):
        snapshot = build_snapshot(RecordSetContainer.from_records([]))
        payload = build_render_payload(snapshot, snapshot.default_visual_options())
        assert payload["elements"] == []
        assert payload["tree"] == []
        assert payload["style"]["edges"] == {}
