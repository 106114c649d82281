#!/usr/bin/env python
"""
Utility to export a connectivity report as a render payload (elements, hierarchy tree, edge styles).

Usage:
    python scripts/export_graph.py --input reports/top_connectivity.csv --output runtime/graph_payload.json
    python scripts/export_graph.py --input report.csv --output out.json --max-wns -0.1 --view-mode tns

The resulting JSON contains nodes, edges, the module forest, per-edge colours/widths and the
statistics used to derive the default colour domain.
"""

from __future__ import annotations

import argparse
import json
import pathlib
import sys

REPO_ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from hier_browser.pipeline import build_render_payload, build_snapshot  # noqa: E402  pylint: disable=wrong-import-position
from hier_browser.record_filters import FilterOptions  # noqa: E402  pylint: disable=wrong-import-position
from hier_browser.record_loader import RecordFormatError, load_records_from_csv  # noqa: E402  pylint: disable=wrong-import-position
from hier_browser.visual_mapping import VIEW_MODES  # noqa: E402  pylint: disable=wrong-import-position


def export_graph(
    input_path: pathlib.Path,
    output_path: pathlib.Path,
    filters: FilterOptions,
    view_mode: str = "wns",
) -> None:
    suffix = input_path.suffix.lower()
    if suffix not in {".csv", ".tsv", ".txt"}:
        raise ValueError(f"Unsupported input format: {suffix}. Use a delimited text report (.csv, .tsv, .txt)")
    try:
        records = load_records_from_csv(input_path.read_bytes())
    except RecordFormatError as exc:
        raise SystemExit(f"Failed to load report: {exc}") from exc

    snapshot = build_snapshot(records, filters)
    payload = build_render_payload(snapshot, snapshot.default_visual_options(view_mode))
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
    print(
        f"Wrote {len(snapshot.model.nodes)} nodes and {len(snapshot.model.edges)} edges "
        f"({len(snapshot.records)} of {len(records)} records) to {output_path}"
    )


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Export a connectivity report as a graph render payload.")
    parser.add_argument("--input", required=True, type=pathlib.Path, help="Path to the delimited report.")
    parser.add_argument("--output", required=True, type=pathlib.Path, help="Destination JSON file.")
    parser.add_argument("--min-connections", default="0", help="Keep rows with at least this many connections.")
    parser.add_argument("--max-wns", default="0", help="Keep rows whose WNS (ns) is at most this value.")
    parser.add_argument("--max-tns", default="0", help="Keep rows whose TNS (ns) is at most this value.")
    parser.add_argument(
        "--exclude-internal",
        action="store_true",
        help="Drop rows connecting a module to one of its own ancestors or descendants.",
    )
    parser.add_argument("--view-mode", choices=VIEW_MODES, default="wns", help="Metric used for edge styling.")
    return parser.parse_args(argv)


def main() -> None:
    args = parse_args()
    filters = FilterOptions.from_inputs(
        min_connections=args.min_connections,
        max_wns=args.max_wns,
        max_tns=args.max_tns,
        exclude_internal=args.exclude_internal,
    )
    export_graph(args.input, args.output, filters, view_mode=args.view_mode)


if __name__ == "__main__":
    main()
