"""Shared utilities and data structures for slice detection.

Contains:
- Region: normalized output rectangle
- PixelRect: integer pixel rectangle used inside the detector/splitter
- SplitDebug: gutters found during the last split, for overlays
- Conversions between the two coordinate spaces
"""

from __future__ import annotations

import math
import uuid
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Mapping, Tuple


def new_region_id(prefix: str) -> str:
    """Return a fresh unique id such as ``scan-3f9a0c1b2d4e``."""
    return f"{prefix}-{uuid.uuid4().hex[:12]}"


@dataclass(frozen=True)
class Region:
    """A detected slice, in [0, 1] coordinates relative to the image."""
    id: str
    x: float
    y: float
    width: float
    height: float

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def bottom(self) -> float:
        return self.y + self.height

    @property
    def area(self) -> float:
        return self.width * self.height

    def with_id(self, region_id: str) -> "Region":
        return replace(self, id=region_id)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "x": self.x,
            "y": self.y,
            "width": self.width,
            "height": self.height,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Region":
        return cls(
            id=str(data["id"]),
            x=float(data["x"]),
            y=float(data["y"]),
            width=float(data["width"]),
            height=float(data["height"]),
        )


@dataclass(frozen=True)
class PixelRect:
    """Integer rectangle in pixel space with inclusive bounds."""
    min_x: int
    min_y: int
    max_x: int
    max_y: int

    @property
    def width(self) -> int:
        """Edge distance along x (``max_x - min_x``)."""
        return self.max_x - self.min_x

    @property
    def height(self) -> int:
        """Edge distance along y (``max_y - min_y``)."""
        return self.max_y - self.min_y

    def as_tuple(self) -> Tuple[int, int, int, int]:
        return (self.min_x, self.min_y, self.max_x, self.max_y)


@dataclass
class SplitDebug:
    """Gutters cut during a split pass, as (start, end) pixel bands.

    Horizontal gutters are row bands, vertical gutters are column bands.
    """
    horizontal_splits: List[Tuple[int, int]] = field(default_factory=list)
    vertical_splits: List[Tuple[int, int]] = field(default_factory=list)

    @classmethod
    def empty(cls) -> "SplitDebug":
        return cls()


def rect_to_region(rect: PixelRect, width: int, height: int, prefix: str = "split") -> Region:
    """Convert a pixel rect to a normalized region.

    The extent is the edge distance of the rect, so a rect produced by
    :func:`region_to_rect` converts back to the region it came from.
    """
    return Region(
        id=new_region_id(prefix),
        x=rect.min_x / width,
        y=rect.min_y / height,
        width=rect.width / width,
        height=rect.height / height,
    )


def region_to_rect(region: Region, width: int, height: int) -> PixelRect:
    """Convert a normalized region to a pixel rect clamped to the image."""
    # Tolerance for x * w landing just below an integer
    eps = 1e-9
    min_x = max(0, int(math.floor(region.x * width + eps)))
    min_y = max(0, int(math.floor(region.y * height + eps)))
    max_x = min(width - 1, int(math.floor(region.right * width + eps)))
    max_y = min(height - 1, int(math.floor(region.bottom * height + eps)))
    return PixelRect(min_x, min_y, max(min_x, max_x), max(min_y, max_y))


def union(a: Region, b: Region) -> Region:
    """Bounding box union, keeping the id of ``a``."""
    x = min(a.x, b.x)
    y = min(a.y, b.y)
    return Region(
        id=a.id,
        x=x,
        y=y,
        width=max(a.right, b.right) - x,
        height=max(a.bottom, b.bottom) - y,
    )


def clamp_unit(x: float, y: float, w: float, h: float) -> Tuple[float, float, float, float]:
    """Clamp a box into the unit square, shrinking its size as needed."""
    x = max(0.0, min(1.0, x))
    y = max(0.0, min(1.0, y))
    w = max(0.0, min(1.0 - x, w))
    h = max(0.0, min(1.0 - y, h))
    return x, y, w, h
