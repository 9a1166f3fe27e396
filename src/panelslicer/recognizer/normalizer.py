"""Normalization of externally recognized bounding boxes.

Recognizers disagree on coordinate conventions. Three scales are told apart
by the largest value in the response:
1. Normalized (0-1, with some rounding slack up to 1.5)
2. Thousandths (0-1000)
3. Absolute pixels of the downscaled image that was transmitted

and two axis orders per box: [ymin, xmin, ymax, xmax] by default, falling
back to min/max pairing when that reading is geometrically invalid
(which covers [x1, y1, x2, y2]).
"""

from __future__ import annotations

import logging
import math
from numbers import Real
from typing import Any, Iterable, List, Mapping, Optional, Sequence, Tuple

from ..config import RecognizerConfig
from ..detector.utils import Region, clamp_unit, new_region_id
from ..exceptions import UnparsableRecognizerResult
from ..image_utils import transmitted_size
from .parse import Unparsable, parse_boxes

log = logging.getLogger("Recognizer")

NORMALIZED_MAX = 1.5
THOUSANDTHS_MAX = 1000.0

_CORNER_KEYS = ("ymin", "xmin", "ymax", "xmax")
_POINT_KEYS = ("x1", "y1", "x2", "y2")

Box = Tuple[float, float, float, float]


def _is_number(value: Any) -> bool:
    return isinstance(value, Real) and not isinstance(value, bool) and math.isfinite(value)


def _box_values(box: Any) -> Iterable[float]:
    if isinstance(box, (list, tuple)):
        return [v for v in box if _is_number(v)]
    if isinstance(box, Mapping):
        return [box[k] for k in _CORNER_KEYS + _POINT_KEYS if k in box and _is_number(box[k])]
    return []


def max_abs_value(boxes: Sequence[Any]) -> float:
    """Largest absolute coordinate across all boxes (0 if none)."""
    return max((abs(v) for box in boxes for v in _box_values(box)), default=0.0)


def detect_scale(boxes: Sequence[Any], transmitted_max_dim: int) -> float:
    """Divisor that maps the boxes' coordinates to [0, 1].

    Args:
        boxes: Raw boxes
        transmitted_max_dim: Larger side of the image sent to the recognizer

    Returns:
        1 (normalized), 1000 (thousandths) or ``transmitted_max_dim`` (pixels)
    """
    max_val = max_abs_value(boxes)
    if max_val <= NORMALIZED_MAX:
        return 1.0
    if max_val <= THOUSANDTHS_MAX:
        return 1000.0
    return float(max(1, transmitted_max_dim))


def resolve_box(box: Any, scale: float = 1.0) -> Optional[Box]:
    """Resolve one raw box to (x, y, width, height) before clamping.

    Accepts 4-number arrays and objects with ymin/xmin/ymax/xmax or
    x1/y1/x2/y2 keys.

    Returns:
        Box tuple, or None when the box is malformed
    """
    if isinstance(box, (list, tuple)):
        if len(box) < 4 or not all(_is_number(v) for v in box[:4]):
            return None
        v0, v1, v2, v3 = (float(v) / scale for v in box[:4])

        ymin, xmin, ymax, xmax = v0, v1, v2, v3
        if ymin > ymax or xmin > xmax:
            xmin, ymin = min(v0, v2), min(v1, v3)
            xmax, ymax = max(v0, v2), max(v1, v3)

    elif isinstance(box, Mapping):
        if all(k in box for k in _CORNER_KEYS):
            ymin, xmin, ymax, xmax = (box[k] for k in _CORNER_KEYS)
        elif all(k in box for k in _POINT_KEYS):
            xmin, ymin, xmax, ymax = (box[k] for k in _POINT_KEYS)
        else:
            return None
        if not all(_is_number(v) for v in (ymin, xmin, ymax, xmax)):
            return None
        xmin, xmax = sorted((float(xmin) / scale, float(xmax) / scale))
        ymin, ymax = sorted((float(ymin) / scale, float(ymax) / scale))

    else:
        return None

    return xmin, ymin, xmax - xmin, ymax - ymin


def normalize(
    raw_boxes: Sequence[Any],
    original_w: int,
    original_h: int,
    transmitted_max_dim: int,
    min_size_px: int = 64,
) -> List[Region]:
    """Canonicalize recognizer boxes into regions.

    Args:
        raw_boxes: Boxes as parsed from the recognizer response
        original_w, original_h: Size of the original image
        transmitted_max_dim: Larger side of the image sent to the recognizer
        min_size_px: Boxes whose width or height is at or below this size
            in original pixels are dropped

    Returns:
        Regions in input order, with fresh ids
    """
    scale = detect_scale(raw_boxes, transmitted_max_dim)
    log.info(
        f"[Box Parse] scale={scale:g} max_val={max_abs_value(raw_boxes):g} "
        f"original={original_w}x{original_h} boxes={len(raw_boxes)}"
    )

    regions: List[Region] = []
    for index, box in enumerate(raw_boxes):
        resolved = resolve_box(box, scale)
        if resolved is None:
            log.debug(f"Box {index} malformed: {box!r}")
            continue

        x, y, w, h = clamp_unit(*resolved)
        if w * original_w <= min_size_px or h * original_h <= min_size_px:
            log.debug(f"Box {index} below {min_size_px}px: {w * original_w:.0f}x{h * original_h:.0f}")
            continue

        regions.append(Region(id=new_region_id("ai-slice"), x=x, y=y, width=w, height=h))

    return regions


def regions_from_text(
    text: str,
    original_w: int,
    original_h: int,
    config: Optional[RecognizerConfig] = None,
) -> List[Region]:
    """Parse recognizer text and normalize the boxes it contains.

    The transmitted size is recomputed from the original size with the same
    resize rule used before upload.

    Raises:
        UnparsableRecognizerResult: no strategy recovered any box
    """
    config = config or RecognizerConfig()
    result = parse_boxes(text)
    if isinstance(result, Unparsable):
        log.warning(f"Unparsable recognizer output: {result.reason}")
        raise UnparsableRecognizerResult(text)

    transmitted_max_dim = max(transmitted_size(original_w, original_h, config.max_upload_dim))
    return normalize(result.boxes, original_w, original_h, transmitted_max_dim, config.min_size_px)
