"""Fixed-point merging of overlapping or near-touching regions."""

from __future__ import annotations

from typing import List, Sequence

from .utils import Region, union


def intersects(a: Region, b: Region, buffer: float = 0.005) -> bool:
    """Axis-aligned overlap test, expanded by ``buffer`` normalized units."""
    return (
        a.x < b.right + buffer
        and a.right + buffer > b.x
        and a.y < b.bottom + buffer
        and a.bottom + buffer > b.y
    )


def merge_regions(regions: Sequence[Region], buffer: float = 0.005) -> List[Region]:
    """Greedily union intersecting regions until no pair intersects.

    Each pass scans pairs (i, j); an intersecting pair is replaced by its
    union at position i (keeping i's id) and j is removed. Passes repeat
    until one makes no merge. The outcome depends on input order when three
    or more regions chain-overlap.

    Args:
        regions: Input regions
        buffer: Expansion used by :func:`intersects`

    Returns:
        Merged regions; already-disjoint input is returned unchanged
    """
    merged = list(regions)
    has_merged = True

    while has_merged:
        has_merged = False
        i = 0
        while i < len(merged):
            j = i + 1
            while j < len(merged):
                if intersects(merged[i], merged[j], buffer):
                    merged[i] = union(merged[i], merged[j])
                    del merged[j]
                    has_merged = True
                    # j now points at the next remaining region
                    continue
                j += 1
            i += 1

    return merged
