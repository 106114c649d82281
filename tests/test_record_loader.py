import pandas as pd
import pytest

from hier_browser.record_loader import (
    RawRecord,
    RecordFormatError,
    RecordSetContainer,
    coerce_number,
    load_records_from_csv,
    load_records_from_dataframe,
    read_csv_summary,
    try_auto_detect_columns,
)


# -----------------------------------------------------------------------------
# Parsing
# -----------------------------------------------------------------------------
class TestLoadRecordsFromCsv:

    def test_comma_separated(self, csv_bytes):
        container = load_records_from_csv(csv_bytes)
        assert len(container) == 3
        assert container.records[0] == RawRecord("top/a", "top/b", 5, -2.5, -10.0, "to")
        assert isinstance(container.records[0].connections, int)

    def test_row_order_is_preserved(self, csv_bytes):
        container = load_records_from_csv(csv_bytes)
        assert [record.connecting_hier for record in container] == ["top/b", "top/c", "top/a/x"]

    def test_semicolon_delimiter_is_sniffed(self):
        content = (
            b"hier;connnecting_hier;connections;wns;tns;direction\n"
            b"top/a;top/b;5;-2.5;-10;to\n"
            b"top/b;top/c;3;-1;-2;from\n"
        )
        container = load_records_from_csv(content)
        assert len(container) == 2
        assert container.records[1].direction == "from"
        assert container.records[1].wns == -1.0

    def test_semicolon_report_with_column_map(self):
        content = (
            b"hier;connnecting_hier;connections;wns;tns;direction\n"
            b"top/a;top/b;5;-2.5;-10;to\n"
        )
        preview = read_csv_summary(content)
        assert list(preview.columns) == ["hier", "connnecting_hier", "connections", "wns", "tns", "direction"]
        mapping = try_auto_detect_columns(preview)
        container = load_records_from_csv(content, mapping)
        assert container.records[0] == RawRecord("top/a", "top/b", 5, -2.5, -10.0, "to")

    def test_tab_report_preview(self):
        preview = read_csv_summary(b"hier\tconnnecting_hier\twns\ntop/a\ttop/b\t-1\n")
        assert list(preview.columns) == ["hier", "connnecting_hier", "wns"]

    def test_headers_match_case_insensitively_with_alias(self):
        content = b" Hier ,Connecting_Hier,WNS\ntop/a,top/b,-1.5\n"
        container = load_records_from_csv(content)
        record = container.records[0]
        assert (record.hier, record.connecting_hier, record.wns) == ("top/a", "top/b", -1.5)

    def test_missing_optional_columns_default(self):
        container = load_records_from_csv(b"hier,connnecting_hier\ntop/a,top/b\n")
        record = container.records[0]
        assert record.connections == 0
        assert record.wns == 0.0
        assert record.tns == 0.0
        assert record.direction is None

    def test_blank_paths_become_none(self):
        container = load_records_from_csv(b"hier,connnecting_hier,wns\n,top/b,-1\n   ,top/c,-2\n")
        assert [record.hier for record in container] == [None, None]

    def test_non_numeric_metrics_become_zero(self, caplog):
        content = b"hier,connnecting_hier,connections,wns,tns\ntop/a,top/b,many,n/a, -3 \n"
        with caplog.at_level("WARNING", logger="hier_browser.record_loader"):
            container = load_records_from_csv(content)
        record = container.records[0]
        assert record.connections == 0
        assert record.wns == 0.0
        assert record.tns == -3.0
        assert "non-numeric" in caplog.text

    def test_unexpected_direction_is_logged(self, caplog):
        content = b"hier,connnecting_hier,direction\ntop/a,top/b,TO\n"
        with caplog.at_level("WARNING", logger="hier_browser.record_loader"):
            container = load_records_from_csv(content)
        assert container.records[0].direction == "TO"
        assert "TO" in caplog.text

    def test_explicit_column_map(self):
        content = b"src,dst,slack\ntop/a,top/b,-0.25\n"
        container = load_records_from_csv(content, {"hier": "src", "connecting_hier": "dst", "wns": "slack"})
        assert container.records[0] == RawRecord("top/a", "top/b", 0, -0.25, 0.0, None)

    def test_missing_required_column_raises(self):
        with pytest.raises(RecordFormatError, match="connnecting_hier"):
            load_records_from_csv(b"hier,other\ntop/a,x\n")

    def test_empty_file_raises(self):
        with pytest.raises(RecordFormatError):
            load_records_from_csv(b"")

    def test_non_utf8_content_raises(self):
        with pytest.raises(RecordFormatError, match="UTF-8"):
            load_records_from_csv(b"hier,connnecting_hier\n\xff\xfe,top/b\n")

    def test_header_only_gives_empty_set(self):
        container = load_records_from_csv(b"hier,connnecting_hier,connections,wns,tns,direction\n")
        assert container.is_empty
        assert list(container.df.columns) == ["hier", "connecting_hier", "connections", "wns", "tns", "direction"]


# -----------------------------------------------------------------------------
# Helpers and container
# -----------------------------------------------------------------------------
class TestHelpers:

    def test_auto_detect_reports_missing_columns(self):
        with pytest.raises(RecordFormatError, match="hier"):
            try_auto_detect_columns(pd.DataFrame(columns=["foo", "bar"]))

    def test_auto_detect_optional_columns_are_none(self):
        mapping = try_auto_detect_columns(pd.DataFrame(columns=["hier", "connnecting_hier"]))
        assert mapping["hier"] == "hier"
        assert mapping["connecting_hier"] == "connnecting_hier"
        assert mapping["wns"] is None

    @pytest.mark.parametrize("value, expected", [("3", 3), (4.0, 4), (2.5, 2.5), ("-1.25", -1.25)])
    def test_coerce_number(self, value, expected):
        result = coerce_number(value)
        assert result == expected
        assert type(result) is type(expected)

    def test_load_from_dataframe(self):
        df = pd.DataFrame({"hier": ["top/a"], "connnecting_hier": ["top/b"], "connections": [2]})
        container = load_records_from_dataframe(df)
        assert container.records[0].connections == 2

    def test_csv_summary_keeps_raw_columns(self, csv_bytes):
        preview = read_csv_summary(csv_bytes)
        assert "connnecting_hier" in preview.columns
        assert len(preview) == 3


class TestRecordSetContainer:

    def test_from_records_matches_dataframe(self, sample_records):
        container = RecordSetContainer.from_records(sample_records)
        assert container.records == tuple(sample_records)
        assert list(container.df["hier"]) == [record.hier for record in sample_records]

    def test_csv_export_uses_upstream_header(self, record_set):
        exported = record_set.to_csv_bytes().decode("utf-8")
        assert exported.splitlines()[0] == "hier,connnecting_hier,connections,wns,tns,direction"

    def test_csv_export_reloads(self, record_set):
        reloaded = load_records_from_csv(record_set.to_csv_bytes())
        assert reloaded.records == record_set.records
