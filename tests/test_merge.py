import pytest

from panelslicer.detector import Region, intersects, merge_regions


def r(rid, x, y, w, h):
    return Region(rid, x, y, w, h)


class TestIntersects:
    def test_overlap(self):
        assert intersects(r("a", 0, 0, 0.5, 0.5), r("b", 0.4, 0.4, 0.5, 0.5))

    def test_gap_within_buffer(self):
        assert intersects(r("a", 0, 0, 0.3, 0.3), r("b", 0.303, 0, 0.3, 0.3))

    def test_gap_beyond_buffer(self):
        assert not intersects(r("a", 0, 0, 0.3, 0.3), r("b", 0.31, 0, 0.3, 0.3))

    def test_zero_buffer_is_strict(self):
        assert not intersects(r("a", 0, 0, 0.3, 0.3), r("b", 0.3, 0, 0.3, 0.3), buffer=0.0)


class TestMergeRegions:
    def test_empty(self):
        assert merge_regions([]) == []

    def test_disjoint_unchanged(self):
        regions = [r("a", 0, 0, 0.2, 0.2), r("b", 0.5, 0.5, 0.2, 0.2)]
        assert merge_regions(regions) == regions

    def test_overlapping_pair_keeps_first_id(self):
        (merged,) = merge_regions([r("a", 0, 0, 0.5, 0.5), r("b", 0.4, 0.4, 0.5, 0.5)])
        assert merged.id == "a"
        assert (merged.x, merged.y) == (0, 0)
        assert merged.width == pytest.approx(0.9)
        assert merged.height == pytest.approx(0.9)

    def test_chain_reaches_fixed_point(self):
        # c only touches the union of a and b, found on a later pass
        regions = [r("a", 0, 0, 0.2, 0.2), r("c", 0.5, 0, 0.2, 0.2), r("b", 0.15, 0, 0.4, 0.2)]
        (merged,) = merge_regions(regions)
        assert merged.id == "a"
        assert merged.width == pytest.approx(0.7)

    def test_no_pair_intersects_after_merge(self):
        regions = [
            r("a", 0.0, 0.0, 0.3, 0.3),
            r("b", 0.25, 0.25, 0.3, 0.3),
            r("c", 0.7, 0.7, 0.2, 0.2),
            r("d", 0.5, 0.5, 0.21, 0.21),
            r("e", 0.0, 0.8, 0.1, 0.1),
        ]
        merged = merge_regions(regions)
        for i, first in enumerate(merged):
            for second in merged[i + 1:]:
                assert not intersects(first, second)

    def test_idempotent(self):
        regions = [r("a", 0, 0, 0.5, 0.5), r("b", 0.4, 0.4, 0.5, 0.5), r("c", 0.95, 0.0, 0.05, 0.05)]
        once = merge_regions(regions)
        assert merge_regions(once) == once

    def test_input_not_mutated(self):
        regions = [r("a", 0, 0, 0.5, 0.5), r("b", 0.4, 0.4, 0.5, 0.5)]
        merge_regions(regions)
        assert len(regions) == 2
