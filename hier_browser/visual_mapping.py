from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, Optional, Tuple

import numpy as np

from .graph_model import GraphEdge
from .record_analysis import RecordStatistics
from .record_loader import Number

VIEW_MODES = ("wns", "tns", "connections")
SLACK_MODES = ("wns", "tns")

DEFAULT_WORST_COLOR = "#ff0000"
DEFAULT_BEST_COLOR = "#ffcccc"
GOOD_COLOR = "#2ecc71"
VIOLATION_LABEL_COLOR = "#d32f2f"
NEUTRAL_LABEL_COLOR = "#333333"

DEFAULT_DOMAIN = (-10.0, 0.0)
DEFAULT_THICKNESS = (1.0, 5.0)
DEFAULT_NODE_FONT_SIZE = 12
DEFAULT_EDGE_FONT_SIZE = 10
PARENT_FONT_SIZE_BOOST = 2
LABEL_MAX_LENGTH = 40

Rgb = Tuple[int, int, int]


@dataclass(frozen=True)
class VisualOptions:
    """
    Per-view styling configuration.

    `domain` and `width_domain` are (worst, best) metric values; `colors` is
    (worst colour, best colour); `thickness` is (min, max) line width in pixels.
    """

    view_mode: str = "wns"
    domain: Tuple[float, float] = DEFAULT_DOMAIN
    colors: Tuple[str, str] = (DEFAULT_WORST_COLOR, DEFAULT_BEST_COLOR)
    thickness: Tuple[float, float] = DEFAULT_THICKNESS
    node_font_size: float = DEFAULT_NODE_FONT_SIZE
    edge_font_size: float = DEFAULT_EDGE_FONT_SIZE
    width_domain: Optional[Tuple[float, float]] = None

    def __post_init__(self) -> None:
        if self.view_mode not in VIEW_MODES:
            raise ValueError(f"Unsupported view mode: {self.view_mode}")

    @property
    def effective_width_domain(self) -> Tuple[float, float]:
        return self.width_domain if self.width_domain is not None else self.domain


@dataclass(frozen=True)
class EdgeVisual:
    edge_id: str
    color: str
    width: float
    label_color: str
    display_value: Number


@dataclass(frozen=True)
class GraphStyle:
    view_mode: str
    node_font_size: float
    parent_font_size: float
    edge_font_size: float
    edges: Dict[str, EdgeVisual] = field(default_factory=dict)


def parse_hex_color(value: str) -> Rgb:
    text = value.strip().lstrip("#")
    if len(text) == 3:
        text = "".join(ch * 2 for ch in text)
    if len(text) != 6:
        raise ValueError(f"Expected a #rgb or #rrggbb colour, got {value!r}")
    try:
        return int(text[0:2], 16), int(text[2:4], 16), int(text[4:6], 16)
    except ValueError as exc:
        raise ValueError(f"Expected a #rgb or #rrggbb colour, got {value!r}") from exc


def format_hex_color(rgb: Rgb) -> str:
    return "#{:02x}{:02x}{:02x}".format(*rgb)


def _worst_ratio(value: float, domain: Tuple[float, float], *, lower_is_worse: bool) -> float:
    """
    Position of `value` between worst (0.0) and best (1.0), clamped to the domain.

    A degenerate domain collapses to a step: strictly worse than the point is 0.0, anything
    else 1.0.
    """
    worst, best = float(domain[0]), float(domain[1])
    if worst == best:
        worse = value < worst if lower_is_worse else value > worst
        return 0.0 if worse else 1.0
    if worst < best:
        return float(np.interp(value, [worst, best], [0.0, 1.0]))
    return float(np.interp(value, [best, worst], [1.0, 0.0]))


def interpolate_color(ratio: float, worst_color: str, best_color: str) -> str:
    ratio = max(0.0, min(1.0, ratio))
    start = parse_hex_color(worst_color)
    end = parse_hex_color(best_color)
    mixed = tuple(int(round(a + ratio * (b - a))) for a, b in zip(start, end))
    return format_hex_color(mixed)  # type: ignore[arg-type]


def interpolate_width(ratio: float, thickness: Tuple[float, float]) -> float:
    thickness_min, thickness_max = float(thickness[0]), float(thickness[1])
    ratio = max(0.0, min(1.0, ratio))
    return thickness_max + ratio * (thickness_min - thickness_max)


def map_edge_visual(edge: GraphEdge, options: VisualOptions) -> EdgeVisual:
    value = edge.metric(options.view_mode)
    worst_color, best_color = options.colors
    thickness_min = float(options.thickness[0])

    if options.view_mode in SLACK_MODES:
        if value >= 0:
            return EdgeVisual(edge.id, GOOD_COLOR, thickness_min, GOOD_COLOR, value)
        color_ratio = _worst_ratio(value, options.domain, lower_is_worse=True)
        width_ratio = _worst_ratio(value, options.effective_width_domain, lower_is_worse=True)
        return EdgeVisual(
            edge.id,
            interpolate_color(color_ratio, worst_color, best_color),
            interpolate_width(width_ratio, options.thickness),
            VIOLATION_LABEL_COLOR,
            value,
        )

    color_ratio = _worst_ratio(value, options.domain, lower_is_worse=False)
    width_ratio = _worst_ratio(value, options.effective_width_domain, lower_is_worse=False)
    return EdgeVisual(
        edge.id,
        interpolate_color(color_ratio, worst_color, best_color),
        interpolate_width(width_ratio, options.thickness),
        NEUTRAL_LABEL_COLOR,
        value,
    )


def map_edge_visuals(edges: Iterable[GraphEdge], options: VisualOptions) -> Dict[str, EdgeVisual]:
    return {edge.id: map_edge_visual(edge, options) for edge in edges}


def build_graph_style(edges: Iterable[GraphEdge], options: VisualOptions) -> GraphStyle:
    return GraphStyle(
        view_mode=options.view_mode,
        node_font_size=options.node_font_size,
        parent_font_size=options.node_font_size + PARENT_FONT_SIZE_BOOST,
        edge_font_size=options.edge_font_size,
        edges=map_edge_visuals(edges, options),
    )


def default_domain(view_mode: str, stats: RecordStatistics) -> Tuple[float, float]:
    """(worst, best) defaults derived from the statistics of the rendered records."""
    if view_mode == "wns":
        return float(stats.min_wns), 0.0
    if view_mode == "tns":
        return float(stats.min_tns), 0.0
    if view_mode == "connections":
        return float(stats.max_connections), 0.0
    raise ValueError(f"Unsupported view mode: {view_mode}")


def format_node_label(label: Optional[str]) -> str:
    """Truncate long module names and allow line breaks after underscores."""
    if not label:
        return ""
    text = label[:LABEL_MAX_LENGTH] + "..." if len(label) > LABEL_MAX_LENGTH else label
    return text.replace("_", "_\u200b")
