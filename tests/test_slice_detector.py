import numpy as np
import pytest

from panelslicer.config import ScanConfig
from panelslicer.detector import SliceDetector, generate_grid_slices
from panelslicer.detector.utils import PixelRect, Region, rect_to_region, region_to_rect

from conftest import blank, fill


class TestCoordinateConversion:
    def test_region_to_rect_floors_and_clamps(self):
        region = Region("a", 0.25, 0.5, 0.75, 0.5)
        assert region_to_rect(region, 200, 100) == PixelRect(50, 50, 199, 99)

    def test_round_trip_through_rect(self):
        rect = PixelRect(30, 20, 130, 80)
        region = rect_to_region(rect, 300, 200)
        assert region_to_rect(region, 300, 200) == rect

    def test_rect_to_region_prefix(self):
        assert rect_to_region(PixelRect(0, 0, 10, 10), 100, 100, prefix="scan").id.startswith("scan-")


class TestSliceDetector:
    def test_uniform_image(self, white_page):
        assert SliceDetector().detect_slices(white_page) == []

    def test_empty_buffer(self):
        assert SliceDetector().detect_slices(np.zeros((0, 0, 4), dtype=np.uint8)) == []

    def test_single_block(self, single_block):
        (region,) = SliceDetector().detect_slices(single_block)
        assert region.x == pytest.approx(0.25)
        assert region.y == pytest.approx(0.25)
        assert region.width == pytest.approx(0.5)
        assert region.height == pytest.approx(0.5)

    def test_separate_blocks(self):
        buf = fill(blank(400, 200), 20, 20, 150, 180)
        fill(buf, 250, 20, 380, 180)
        regions = SliceDetector().detect_slices(buf)
        assert len(regions) == 2
        assert regions[0].x < regions[1].x

    def test_overlapping_components_are_merged(self):
        # An L-shape and a block inside its bounding box
        buf = fill(blank(300, 300), 20, 20, 280, 60)
        fill(buf, 20, 20, 60, 280)
        fill(buf, 150, 150, 250, 250)
        assert len(SliceDetector().detect_slices(buf)) == 1

    def test_bridged_panels_are_split(self, bridged_panels):
        detector = SliceDetector()
        regions = detector.detect_slices(bridged_panels, threshold=50)

        assert len(regions) == 2
        left, right = regions
        assert left.right < 0.5 < right.x
        assert detector.last_debug.vertical_splits == [(140, 159)]

    def test_default_sensitivity_keeps_bridged_panels_together(self, bridged_panels):
        assert len(SliceDetector().detect_slices(bridged_panels)) == 1

    def test_regions_stay_in_unit_square(self, bridged_panels):
        for region in SliceDetector(ScanConfig(color_threshold=50)).detect_slices(bridged_panels):
            assert 0 <= region.x and region.right <= 1
            assert 0 <= region.y and region.bottom <= 1
            assert region.width > 0 and region.height > 0

    def test_fresh_ids_per_call(self, single_block):
        detector = SliceDetector()
        (first,) = detector.detect_slices(single_block)
        (second,) = detector.detect_slices(single_block)
        assert first.id != second.id


class TestGridSlices:
    def test_layout(self):
        slices = generate_grid_slices(2, 3)
        assert [s.id for s in slices] == [
            "grid-0-0", "grid-0-1", "grid-0-2", "grid-1-0", "grid-1-1", "grid-1-2",
        ]
        assert slices[4].x == pytest.approx(1 / 3)
        assert slices[4].y == pytest.approx(0.5)
        assert sum(s.area for s in slices) == pytest.approx(1.0)

    def test_stable_ids(self):
        assert generate_grid_slices(2, 2) == generate_grid_slices(2, 2)

    @pytest.mark.parametrize("rows, cols", [(0, 1), (1, 0), (-1, 2)])
    def test_invalid(self, rows, cols):
        with pytest.raises(ValueError):
            generate_grid_slices(rows, cols)
