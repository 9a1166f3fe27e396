"""Gutter-based splitting of detected regions.

A single bounding box may straddle two textured sub-panels joined only by a
flat strip (a gutter). The splitter re-cuts such boxes using 1-D energy
projection profiles:

1. Energy profile: per row (or column), mean neighbour-to-neighbour color
   difference along that axis
2. Dilation: sliding-window maximum so short quiet stretches inside
   artwork do not read as gutters
3. Gutter search: first flat run long enough, leaving both sides thick
   enough, rows before columns
4. Repeat on both halves until no gutter remains or the rect is too small

Sensitivity (1-100) controls how aggressive the cuts are:
1 = heavy dilation, few splits; 100 = no dilation, many splits.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, replace
from typing import List, Optional, Tuple

import cv2
import numpy as np
from numpy.typing import NDArray

from ..config import ScanConfig
from ..image_utils import PixelBuffer, buffer_size
from .utils import PixelRect, Region, SplitDebug, rect_to_region

log = logging.getLogger("Slices")


@dataclass(frozen=True)
class SplitParams:
    """Parameters derived from the split sensitivity."""
    dilation_radius: int
    min_gap: int
    flat_energy: float


def split_params(threshold: float, flat_energy: float = 5.0) -> SplitParams:
    """Derive dilation radius and minimum gap from a 1-100 sensitivity.

    threshold=1 gives radius 39 (bridges ~80px gaps), threshold=100 gives 0.
    """
    return SplitParams(
        dilation_radius=max(0, int(math.floor(40 - threshold * 0.4))),
        min_gap=max(4, int(math.floor(16 - threshold * 0.15))),
        flat_energy=flat_energy,
    )


def _mean_pair_energy(a: NDArray, b: NDArray, axis: int, alpha_floor: int) -> NDArray[np.float32]:
    """Mean summed |RGB| difference of paired pixels, reduced along ``axis``.

    Pairs where both pixels are transparent are left out of the mean.
    """
    diff = np.abs(a[..., :3] - b[..., :3]).sum(axis=-1)
    counted = ~((a[..., 3] < alpha_floor) & (b[..., 3] < alpha_floor))
    total = np.where(counted, diff, 0).sum(axis=axis)
    count = counted.sum(axis=axis)

    energy = np.zeros(total.shape, dtype=np.float64)
    np.divide(total, count, out=energy, where=count > 0)
    return energy.astype(np.float32)


def row_energy(buffer: PixelBuffer, rect: PixelRect, alpha_floor: int = 10) -> NDArray[np.float32]:
    """Energy of each row of ``rect`` (horizontal neighbour differences).

    Returns:
        Array of length ``rect.height + 1``
    """
    sub = buffer[rect.min_y:rect.max_y + 1, rect.min_x:rect.max_x + 1].astype(np.int16)
    return _mean_pair_energy(sub[:, :-1], sub[:, 1:], axis=1, alpha_floor=alpha_floor)


def column_energy(buffer: PixelBuffer, rect: PixelRect, alpha_floor: int = 10) -> NDArray[np.float32]:
    """Energy of each column of ``rect`` (vertical neighbour differences).

    Returns:
        Array of length ``rect.width + 1``
    """
    sub = buffer[rect.min_y:rect.max_y + 1, rect.min_x:rect.max_x + 1].astype(np.int16)
    return _mean_pair_energy(sub[:-1, :], sub[1:, :], axis=0, alpha_floor=alpha_floor)


def dilate_profile(profile: NDArray, radius: int) -> NDArray[np.float32]:
    """1-D max filter of the given radius (window clipped at the ends)."""
    profile = np.asarray(profile, dtype=np.float32)
    if radius <= 0 or profile.size == 0:
        return profile
    kernel = np.ones((1, 2 * radius + 1), dtype=np.uint8)
    return cv2.dilate(profile.reshape(1, -1), kernel).ravel()


def find_gutter(
    profile: NDArray,
    lo: int,
    hi: int,
    min_gap: int,
    flat_energy: float,
    min_side: int = 30,
) -> Optional[Tuple[int, int]]:
    """Locate the first qualifying flat run in a profile.

    A run of values below ``flat_energy`` qualifies once it ends (a run
    reaching the end of the profile never does) if it is at least ``min_gap``
    long and leaves at least ``min_side`` pixels on both sides.

    Args:
        profile: Dilated energy profile, index 0 at pixel ``lo``
        lo, hi: Inclusive pixel bounds of the profile
        min_gap: Minimum run length
        flat_energy: Noise floor
        min_side: Minimum thickness of each side

    Returns:
        (gap_start, gap_end) in pixels, gap_end exclusive, or None
    """
    gap_start = -1
    for offset, energy in enumerate(profile.tolist()):
        pos = lo + offset
        if energy < flat_energy:
            if gap_start == -1:
                gap_start = pos
        elif gap_start != -1:
            if pos - gap_start >= min_gap and gap_start - lo >= min_side and hi - pos >= min_side:
                return gap_start, pos
            gap_start = -1
    return None


class GutterSplitter:
    """Recursive X-Y cut of a region along flat gutters.

    Recursion is carried out with an explicit work stack; output order is the
    depth-first order top/left part first.
    """

    def __init__(self, config: Optional[ScanConfig] = None):
        self.config = config or ScanConfig()
        self._last_debug = SplitDebug.empty()

    @property
    def last_debug(self) -> SplitDebug:
        """Gutters cut during the last :meth:`split` call."""
        return self._last_debug

    def split(
        self,
        rect: PixelRect,
        buffer: PixelBuffer,
        threshold: Optional[float] = None,
    ) -> List[Region]:
        """Split a pixel rect along gutters.

        Args:
            rect: Region to split, inside the buffer
            buffer: RGBA pixel buffer
            threshold: Sensitivity 1-100 (config effective threshold if None)

        Returns:
            Normalized regions, one per leaf
        """
        width, height = buffer_size(buffer)
        if width == 0 or height == 0:
            return []

        if threshold is None:
            threshold = self.config.effective_threshold
        params = split_params(threshold, self.config.flat_energy)
        debug = SplitDebug.empty()

        regions: List[Region] = []
        pending = [rect]
        while pending:
            current = pending.pop()
            parts = self._cut(current, buffer, params, debug)
            if parts is None:
                regions.append(rect_to_region(current, width, height))
            else:
                first, second = parts
                pending.append(second)
                pending.append(first)

        self._last_debug = debug
        if self.config.debug:
            log.debug(
                f"[gutter] rect={rect.as_tuple()} radius={params.dilation_radius} "
                f"min_gap={params.min_gap} -> {len(regions)} regions"
            )
        return regions

    def _cut(
        self,
        rect: PixelRect,
        buffer: PixelBuffer,
        params: SplitParams,
        debug: SplitDebug,
    ) -> Optional[Tuple[PixelRect, PixelRect]]:
        """Find one gutter in ``rect`` and return the two parts around it."""
        cfg = self.config
        if rect.width < cfg.leaf_size_px or rect.height < cfg.leaf_size_px:
            return None

        # Rows first: horizontal gutters
        rows = dilate_profile(row_energy(buffer, rect, cfg.alpha_floor), params.dilation_radius)
        gutter = find_gutter(
            rows, rect.min_y, rect.max_y,
            params.min_gap, params.flat_energy, cfg.min_side_px,
        )
        if gutter is not None:
            start, end = gutter
            debug.horizontal_splits.append((start, end - 1))
            return replace(rect, max_y=start - 1), replace(rect, min_y=end)

        cols = dilate_profile(column_energy(buffer, rect, cfg.alpha_floor), params.dilation_radius)
        gutter = find_gutter(
            cols, rect.min_x, rect.max_x,
            params.min_gap, params.flat_energy, cfg.min_side_px,
        )
        if gutter is not None:
            start, end = gutter
            debug.vertical_splits.append((start, end - 1))
            return replace(rect, max_x=start - 1), replace(rect, min_x=end)

        return None
