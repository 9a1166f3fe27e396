"""Uniform grid slicing."""

from __future__ import annotations

from typing import List

from .utils import Region


def generate_grid_slices(rows: int, cols: int) -> List[Region]:
    """Cut the unit square into ``rows`` x ``cols`` equal regions, row by row.

    Ids are stable (``grid-<row>-<col>``) so re-applying the same grid
    yields the same slices.
    """
    if rows < 1 or cols < 1:
        raise ValueError(f"Grid needs at least one row and column, got {rows}x{cols}")

    width = 1.0 / cols
    height = 1.0 / rows
    return [
        Region(id=f"grid-{r}-{c}", x=c * width, y=r * height, width=width, height=height)
        for r in range(rows)
        for c in range(cols)
    ]
