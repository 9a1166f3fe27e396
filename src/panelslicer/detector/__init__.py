"""Slice detection engine for panelslicer.

This package provides the local (offline) detection path:
- components.py: color-based connected component detection
- merge.py: fixed-point union of overlapping regions
- gutter.py: recursive gutter splitting with energy profiles
- base.py: SliceDetector, the full scan pipeline
- grid.py: uniform grid slices
- utils.py: Region / PixelRect data structures and conversions
"""

from __future__ import annotations

from .base import SliceDetector
from .components import ConnectedComponentDetector
from .grid import generate_grid_slices
from .gutter import GutterSplitter
from .merge import intersects, merge_regions
from .utils import PixelRect, Region, SplitDebug

__all__ = [
    "SliceDetector",
    "ConnectedComponentDetector",
    "GutterSplitter",
    "generate_grid_slices",
    "intersects",
    "merge_regions",
    "PixelRect",
    "Region",
    "SplitDebug",
]
