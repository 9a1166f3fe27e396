"""Color-based connected component detection.

Segments a pixel buffer into candidate regions:
1. Sample the background reference color at pixel (0, 0)
2. Mark foreground pixels (opaque and far enough from the background)
3. Group foreground pixels by 4-connected flood fill
4. Drop components smaller than the minimum dimension

The fill uses an explicit stack so memory stays proportional to the
component being filled, never to the recursion depth.
"""

from __future__ import annotations

import logging
from typing import List, Optional

import numpy as np
from numpy.typing import NDArray

from ..config import ScanConfig
from ..image_utils import PixelBuffer, buffer_size
from .utils import PixelRect, Region, new_region_id

log = logging.getLogger("Slices")


def foreground_mask(
    buffer: PixelBuffer,
    threshold: float,
    alpha_floor: int = 10,
) -> NDArray[np.bool_]:
    """Foreground pixels of a buffer.

    A pixel is foreground when its alpha is at least ``alpha_floor`` and its
    Euclidean RGB distance from pixel (0, 0) exceeds ``threshold``.

    Returns:
        Boolean array of shape (H, W)
    """
    rgb = buffer[:, :, :3].astype(np.int32)
    bg = rgb[0, 0]
    dist_sq = np.sum((rgb - bg) ** 2, axis=2)
    return (buffer[:, :, 3] >= alpha_floor) & (dist_sq > threshold * threshold)


class ConnectedComponentDetector:
    """Flood-fill segmentation of foreground pixels into bounding boxes."""

    def __init__(self, config: Optional[ScanConfig] = None):
        self.config = config or ScanConfig()

    def min_dimension(self, width: int, height: int) -> float:
        """Smallest accepted component side for a buffer of this size."""
        return max(
            self.config.min_dimension_px,
            self.config.min_dimension_frac * min(width, height),
        )

    def detect(self, buffer: PixelBuffer, color_threshold: Optional[int] = None) -> List[PixelRect]:
        """Find connected foreground components.

        Args:
            buffer: RGBA pixel buffer
            color_threshold: Background distance threshold (config value if None)

        Returns:
            Component bounding boxes in raster scan order of their first pixel
        """
        width, height = buffer_size(buffer)
        if width == 0 or height == 0:
            return []

        if color_threshold is None:
            color_threshold = self.config.color_threshold
        threshold = max(self.config.min_threshold, color_threshold)
        min_dim = self.min_dimension(width, height)

        mask = foreground_mask(buffer, threshold, self.config.alpha_floor)
        fg = bytearray(mask.astype(np.uint8).tobytes())
        visited = bytearray(width * height)
        total = width * height

        rects: List[PixelRect] = []
        dropped = 0

        for seed in np.flatnonzero(mask).tolist():
            if visited[seed]:
                continue

            visited[seed] = 1
            stack = [seed]
            min_y, min_x = divmod(seed, width)
            max_x, max_y = min_x, min_y

            while stack:
                curr = stack.pop()
                cy, cx = divmod(curr, width)

                if cx < min_x:
                    min_x = cx
                elif cx > max_x:
                    max_x = cx
                if cy < min_y:
                    min_y = cy
                elif cy > max_y:
                    max_y = cy

                for n in (curr - 1, curr + 1, curr - width, curr + width):
                    if n < 0 or n >= total or visited[n]:
                        continue
                    ny, nx = divmod(n, width)
                    # Reject wraparound between the end of one row and the next
                    if abs(nx - cx) > 1 or abs(ny - cy) > 1:
                        continue
                    if fg[n]:
                        visited[n] = 1
                        stack.append(n)

            w = max_x - min_x + 1
            h = max_y - min_y + 1
            if w >= min_dim and h >= min_dim:
                rects.append(PixelRect(min_x, min_y, max_x, max_y))
            else:
                dropped += 1

        if self.config.debug:
            log.debug(
                f"[components] threshold={threshold} min_dim={min_dim:.1f} "
                f"kept={len(rects)} dropped={dropped}"
            )
        return rects

    def detect_regions(self, buffer: PixelBuffer, color_threshold: Optional[int] = None) -> List[Region]:
        """Like :meth:`detect`, normalized to [0, 1] with fresh ids.

        Widths and heights cover the inclusive pixel extent of each component.
        """
        width, height = buffer_size(buffer)
        return [
            Region(
                id=new_region_id("scan"),
                x=r.min_x / width,
                y=r.min_y / height,
                width=(r.max_x - r.min_x + 1) / width,
                height=(r.max_y - r.min_y + 1) / height,
            )
            for r in self.detect(buffer, color_threshold)
        ]
