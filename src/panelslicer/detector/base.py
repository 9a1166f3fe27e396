"""Core SliceDetector class with the local scan pipeline.

Coordinates:
- Connected component detection on the background-distance mask
- Fixed-point merging of overlapping components
- Gutter splitting of each merged region
"""

from __future__ import annotations

import logging
import time
from typing import List, Optional

from ..config import ScanConfig
from ..image_utils import PixelBuffer, buffer_size
from .components import ConnectedComponentDetector
from .gutter import GutterSplitter
from .merge import merge_regions
from .utils import Region, SplitDebug, region_to_rect

log = logging.getLogger("Slices")


class SliceDetector:
    """Local slice detector for comic pages, sprite sheets and assets.

    Pipeline:
    1. ConnectedComponentDetector: raw foreground components
    2. merge_regions: union of overlapping / near-touching components
    3. GutterSplitter: re-cut merged regions along flat gutters

    Detection is heuristic; boundaries are approximate.
    """

    def __init__(self, config: Optional[ScanConfig] = None):
        """Initialize detector with configuration.

        Args:
            config: Scan parameters. Uses defaults if None.
        """
        self.config = config or ScanConfig()
        self.components = ConnectedComponentDetector(self.config)
        self.splitter = GutterSplitter(self.config)
        self._last_debug = SplitDebug.empty()

    @property
    def last_debug(self) -> SplitDebug:
        """Gutters cut during the last detection pass."""
        return self._last_debug

    def detect_slices(self, buffer: PixelBuffer, threshold: Optional[int] = None) -> List[Region]:
        """Detect slices in a pixel buffer.

        Args:
            buffer: RGBA pixel buffer of shape (H, W, 4)
            threshold: Color threshold / split sensitivity (config value if None)

        Returns:
            Final regions in [0, 1] coordinates, empty for an empty buffer
        """
        width, height = buffer_size(buffer)
        if width == 0 or height == 0:
            return []

        start = time.perf_counter()
        if threshold is None:
            threshold = self.config.color_threshold
        effective = max(self.config.min_threshold, threshold)

        raw = self.components.detect_regions(buffer, effective)
        merged = merge_regions(raw, self.config.merge_buffer)

        debug = SplitDebug.empty()
        regions: List[Region] = []
        for region in merged:
            rect = region_to_rect(region, width, height)
            regions.extend(self.splitter.split(rect, buffer, effective))
            debug.horizontal_splits.extend(self.splitter.last_debug.horizontal_splits)
            debug.vertical_splits.extend(self.splitter.last_debug.vertical_splits)
        self._last_debug = debug

        elapsed_ms = (time.perf_counter() - start) * 1000
        log.info(
            f"Scan {width}x{height} threshold={effective}: raw={len(raw)} "
            f"merged={len(merged)} final={len(regions)} ({elapsed_ms:.0f} ms)"
        )
        return regions
