"""Shared fixtures: synthetic RGBA buffers."""

from __future__ import annotations

import logging

import numpy as np
import pytest

WHITE = (255, 255, 255, 255)
BLACK = (0, 0, 0, 255)
GRAY = (128, 128, 128, 255)

logging.getLogger("Slices").setLevel(logging.DEBUG)


def blank(width, height, color=WHITE):
    buf = np.empty((height, width, 4), dtype=np.uint8)
    buf[:, :] = color
    return buf


def fill(buf, x0, y0, x1, y1, color=BLACK):
    """Fill [x0, x1) x [y0, y1)."""
    buf[y0:y1, x0:x1] = color
    return buf


def texture(buf, x0, y0, x1, y1, a=BLACK, b=GRAY):
    """Pixel checkerboard of two foreground colors over [x0, x1) x [y0, y1)."""
    ys, xs = np.mgrid[y0:y1, x0:x1]
    even = (xs + ys) % 2 == 0
    region = buf[y0:y1, x0:x1]
    region[even] = a
    region[~even] = b
    return buf


@pytest.fixture
def white_page():
    return blank(100, 100)


@pytest.fixture
def single_block():
    """200x200 white page with a 100x100 black block at (50, 50)."""
    return fill(blank(200, 200), 50, 50, 150, 150)


@pytest.fixture
def bridged_panels():
    """Two textured panels joined by a thin light-gray line across the gutter.

    300x200 page; panels cover x 20-119 and 180-279, y 20-179; the line sits
    on row 100 over x 120-179.
    """
    buf = blank(300, 200)
    texture(buf, 20, 20, 120, 180)
    texture(buf, 180, 20, 280, 180)
    fill(buf, 120, 100, 180, 101, (200, 200, 200, 255))
    return buf


@pytest.fixture
def gutter_strip():
    """200x100 buffer: texture in columns 0-89 and 150-199, flat white 90-149."""
    buf = blank(200, 100)
    texture(buf, 0, 0, 90, 100)
    texture(buf, 150, 0, 200, 100)
    return buf
