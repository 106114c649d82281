import pytest

from hier_browser.hier_paths import (
    PATH_SEPARATOR,
    decompose_path,
    is_ancestor,
    is_internal_pair,
    split_segments,
)


class TestDecomposePath:

    def test_cumulative_ids(self):
        assert decompose_path("top/a/b") == ["top", "top/a", "top/a/b"]

    def test_single_segment(self):
        assert decompose_path("top") == ["top"]

    @pytest.mark.parametrize("path", ["", "   ", None, 42])
    def test_blank_or_non_string_gives_empty_chain(self, path):
        assert decompose_path(path) == []

    def test_segments_are_trimmed(self):
        assert decompose_path(" top / a ") == ["top", "top/a"]

    @pytest.mark.parametrize("path", ["top", "top/a", "soc/cpu/alu/adder_0"])
    def test_last_id_rejoins_segments(self, path):
        chain = decompose_path(path)
        assert len(chain) == len(split_segments(path))
        assert chain[-1] == PATH_SEPARATOR.join(split_segments(path))

    def test_each_id_extends_the_previous_one(self):
        chain = decompose_path("a/b/c/d")
        for parent, child in zip(chain, chain[1:]):
            assert child.startswith(parent + PATH_SEPARATOR)


class TestInternalPair:

    def test_ancestor_and_descendant(self):
        assert is_ancestor("top/a", "top/a/child")
        assert not is_ancestor("top/a/child", "top/a")

    def test_node_is_not_its_own_ancestor(self):
        assert not is_ancestor("top/a", "top/a")
        assert not is_internal_pair("top/a", "top/a")

    @pytest.mark.parametrize(
        "first, second",
        [
            ("top/a", "top/a/child"),
            ("top", "top/a/b/c"),
            ("top/a", "top/b"),
            ("top/ab", "top/a"),
            (None, "top/a"),
        ],
    )
    def test_symmetric(self, first, second):
        assert is_internal_pair(first, second) == is_internal_pair(second, first)

    def test_shared_text_prefix_is_not_ancestry(self):
        assert not is_internal_pair("top/ab", "top/a")
        assert not is_internal_pair("top/a", "top/abc/d")

    def test_missing_path_is_never_internal(self):
        assert not is_internal_pair(None, "top")
        assert not is_internal_pair("", "top")
