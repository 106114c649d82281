from __future__ import annotations

from typing import Any, List

PATH_SEPARATOR = "/"


def split_segments(path: Any) -> List[str]:
    """Split a hierarchical path into trimmed segments. Non-string or blank input gives []."""
    if not isinstance(path, str) or not path.strip():
        return []
    return [segment.strip() for segment in path.split(PATH_SEPARATOR)]


def decompose_path(path: Any) -> List[str]:
    """
    Return the cumulative ids from root to leaf.

    ``"top/a/b"`` becomes ``["top", "top/a", "top/a/b"]``. Empty segments are kept as-is.
    """
    ids: List[str] = []
    current = ""
    for index, segment in enumerate(split_segments(path)):
        current = segment if index == 0 else f"{current}{PATH_SEPARATOR}{segment}"
        ids.append(current)
    return ids


def is_ancestor(ancestor: Any, descendant: Any) -> bool:
    """True when `ancestor` is a strict prefix of `descendant` on segment boundaries."""
    upper = split_segments(ancestor)
    lower = split_segments(descendant)
    if not upper or len(upper) >= len(lower):
        return False
    return lower[: len(upper)] == upper


def is_internal_pair(first: Any, second: Any) -> bool:
    return is_ancestor(first, second) or is_ancestor(second, first)
