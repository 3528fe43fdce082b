"""
UV Placement

Assigns each box a texture-atlas origin from its position in the model:

    u = clamp(round((origin.x - bounds.min.x) / bounds.width  * atlas), 0, atlas - 1)
    v = clamp(round((origin.y - bounds.min.y) / bounds.height * atlas), 0, atlas - 1)

This is a positional placeholder, not a UV unwrap. Boxes at similar X/Y share
atlas space and their textures overlap; that is a known limitation of the
output, kept as is.
"""

import math
from typing import List, Sequence, Tuple

from .geometry import Box
from .mesh import BoundingBox

DEFAULT_ATLAS_SIZE = 64


def _atlas_coordinate(value: float, lo: float, extent: float, atlas_size: int) -> int:
    if extent <= 0.0:
        return 0
    # Round half up so results do not depend on banker's rounding
    scaled = math.floor((value - lo) / extent * atlas_size + 0.5)
    return int(min(max(scaled, 0), atlas_size - 1))


def place_uv(
    origin: Sequence[float],
    bounds: BoundingBox,
    atlas_size: int = DEFAULT_ATLAS_SIZE
) -> Tuple[int, int]:
    """
    Map a box origin to an atlas coordinate.

    Args:
        origin: Box minimal corner (x, y, z)
        bounds: Bounds of the canonical mesh
        atlas_size: Atlas edge length in texels

    Returns:
        (u, v), each in [0, atlas_size - 1]; 0 on a degenerate axis
    """
    u = _atlas_coordinate(origin[0], bounds.min[0], bounds.width, atlas_size)
    v = _atlas_coordinate(origin[1], bounds.min[1], bounds.height, atlas_size)
    return u, v


class UVPlacer:
    """Applies place_uv to a list of boxes."""

    def __init__(self, atlas_size: int = DEFAULT_ATLAS_SIZE):
        if atlas_size <= 0:
            raise ValueError(f"Atlas size must be positive, got {atlas_size}")
        self.atlas_size = atlas_size

    def assign(self, boxes: Sequence[Box], bounds: BoundingBox) -> List[Box]:
        """Return new boxes with their uv set from position."""
        return [box.with_uv(*place_uv(box.origin, bounds, self.atlas_size)) for box in boxes]
