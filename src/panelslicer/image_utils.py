"""Image conversion utilities for panelslicer.

Detection works on a PixelBuffer: a contiguous NumPy array of shape
(height, width, 4), dtype uint8, RGBA channel order. This module builds such
buffers from arrays and image files, and prepares the downscaled copy that is
transmitted to an external recognizer.
"""

from __future__ import annotations

import base64
import logging
import math
from pathlib import Path
from typing import Tuple, Union

import cv2
import numpy as np
from numpy.typing import NDArray

from .exceptions import ImageLoadError

log = logging.getLogger("Slices")

PixelBuffer = NDArray[np.uint8]


def as_rgba(arr: NDArray) -> PixelBuffer:
    """Coerce a grayscale, RGB or RGBA array to a contiguous RGBA uint8 buffer.

    Args:
        arr: Array of shape (H, W), (H, W, 3) or (H, W, 4)

    Returns:
        Array of shape (H, W, 4)
    """
    arr = np.asarray(arr)
    if arr.dtype != np.uint8:
        arr = np.clip(arr, 0, 255).astype(np.uint8)

    if arr.ndim == 2:
        arr = np.stack([arr, arr, arr, np.full_like(arr, 255)], axis=-1)
    elif arr.ndim == 3 and arr.shape[2] == 3:
        alpha = np.full(arr.shape[:2] + (1,), 255, dtype=np.uint8)
        arr = np.concatenate([arr, alpha], axis=2)
    elif arr.ndim != 3 or arr.shape[2] != 4:
        raise ValueError(f"Unsupported pixel array shape {arr.shape}")

    return np.ascontiguousarray(arr)


def buffer_size(buffer: PixelBuffer) -> Tuple[int, int]:
    """Return (width, height) of a buffer."""
    return int(buffer.shape[1]), int(buffer.shape[0])


def load_image(path: Union[str, Path]) -> PixelBuffer:
    """Decode an image file to an RGBA buffer.

    Reads through np.fromfile + cv2.imdecode so non-ASCII paths work.

    Raises:
        ImageLoadError: the file is missing or cannot be decoded
    """
    path = Path(path)
    try:
        raw = np.fromfile(str(path), dtype=np.uint8)
    except OSError as e:
        raise ImageLoadError(f"Cannot read {path}: {e}") from e

    img = cv2.imdecode(raw, cv2.IMREAD_UNCHANGED) if raw.size else None
    if img is None:
        raise ImageLoadError(f"Cannot decode {path}")

    if img.dtype != np.uint8:
        # 16-bit PNG/TIFF
        img = (img / 257).astype(np.uint8)

    if img.ndim == 2:
        rgba = cv2.cvtColor(img, cv2.COLOR_GRAY2RGBA)
    elif img.shape[2] == 3:
        rgba = cv2.cvtColor(img, cv2.COLOR_BGR2RGBA)
    else:
        rgba = cv2.cvtColor(img, cv2.COLOR_BGRA2RGBA)

    log.debug(f"Loaded {path.name}: {rgba.shape[1]}x{rgba.shape[0]}")
    return np.ascontiguousarray(rgba)


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def transmitted_size(width: int, height: int, max_size: int = 768) -> Tuple[int, int]:
    """Size of the image actually sent to the recognizer.

    Images larger than ``max_size`` on either side are scaled down so the
    larger side equals ``max_size``, preserving aspect ratio.
    """
    if width > max_size or height > max_size:
        if width > height:
            return max_size, _round_half_up(height * max_size / width)
        return _round_half_up(width * max_size / height), max_size
    return width, height


def encode_for_upload(
    buffer: PixelBuffer,
    max_size: int = 768,
    quality: int = 65,
) -> Tuple[str, str, Tuple[int, int]]:
    """Downscale and JPEG-encode a buffer for transmission.

    Args:
        buffer: RGBA pixel buffer
        max_size: Larger side of the transmitted image
        quality: JPEG quality (0-100)

    Returns:
        Tuple of (base64 payload, mime type, (width, height) transmitted)
    """
    w, h = buffer_size(buffer)
    tw, th = transmitted_size(w, h, max_size)

    bgr = cv2.cvtColor(buffer, cv2.COLOR_RGBA2BGR)
    if (tw, th) != (w, h):
        bgr = cv2.resize(bgr, (tw, th), interpolation=cv2.INTER_AREA)

    ok, encoded = cv2.imencode(".jpg", bgr, [cv2.IMWRITE_JPEG_QUALITY, int(quality)])
    if not ok:
        raise ImageLoadError("JPEG encoding failed")

    payload = base64.b64encode(encoded.tobytes()).decode("ascii")
    log.debug(f"Upload image: {w}x{h} -> {tw}x{th}, ~{len(payload) // 1024}KB")
    return payload, "image/jpeg", (tw, th)
