"""
Greedy Box Merging with Numba JIT Compilation

This module coalesces occupied voxels into axis-aligned boxes. Bedrock
geometry only knows cubes, so every box saved here is one less cube for the
game to load.

Algorithm Overview:
1. Visit cells in (y, z, x) order; the first unprocessed occupied cell seeds a box
2. Grow along X while the next cell is occupied and unprocessed
3. Grow along Y only if the whole X span at the next row qualifies
4. Grow along Z only if the whole X-Y footprint at the next layer qualifies
5. Mark the box as processed and emit it

The processed mask is private to each merge call. The result is a partition of
the input: every occupied cell lies in exactly one box. It is not a minimum
partition (that problem is NP-hard in 3D), but it is deterministic.
"""

from typing import List
import logging
import time
import numpy as np
from numba import njit

from .errors import InternalInvariantError
from .geometry import Box
from .voxelizer import VoxelSet

logger = logging.getLogger(__name__)

# One block, standing on the ground plane
DEFAULT_BOX = Box(origin=(-0.5, 0.0, -0.5), size=(1.0, 1.0, 1.0), uv=(0, 0))


@njit(cache=True)
def _greedy_merge(occupancy: np.ndarray, capacity: int) -> np.ndarray:
    """
    Partition an occupancy grid into boxes.

    Args:
        occupancy: Boolean grid (X, Y, Z)
        capacity: Upper bound on the number of boxes (the voxel count)

    Returns:
        (N, 6) int64 array of [x, y, z, dx, dy, dz] in array coordinates
    """
    sx, sy, sz = occupancy.shape
    processed = np.zeros((sx, sy, sz), dtype=np.bool_)
    boxes = np.zeros((capacity, 6), dtype=np.int64)
    count = 0

    for y in range(sy):
        for z in range(sz):
            for x in range(sx):
                if not occupancy[x, y, z] or processed[x, y, z]:
                    continue

                # Expand along X
                dx = 1
                while (x + dx < sx and occupancy[x + dx, y, z]
                       and not processed[x + dx, y, z]):
                    dx += 1

                # Expand along Y, one full row at a time
                dy = 1
                done = False
                while y + dy < sy and not done:
                    for i in range(dx):
                        if not occupancy[x + i, y + dy, z] or processed[x + i, y + dy, z]:
                            done = True
                            break
                    if not done:
                        dy += 1

                # Expand along Z, one full layer at a time
                dz = 1
                done = False
                while z + dz < sz and not done:
                    for j in range(dy):
                        for i in range(dx):
                            if (not occupancy[x + i, y + j, z + dz]
                                    or processed[x + i, y + j, z + dz]):
                                done = True
                                break
                        if done:
                            break
                    if not done:
                        dz += 1

                for k in range(dz):
                    for j in range(dy):
                        for i in range(dx):
                            processed[x + i, y + j, z + k] = True

                boxes[count, 0] = x
                boxes[count, 1] = y
                boxes[count, 2] = z
                boxes[count, 3] = dx
                boxes[count, 4] = dy
                boxes[count, 5] = dz
                count += 1

    return boxes[:count]


def cells_to_boxes(cell_boxes: np.ndarray, resolution: int) -> List[Box]:
    """
    Convert integer cell boxes to world-space boxes.

    Args:
        cell_boxes: (N, 6) array of [x, y, z, dx, dy, dz] in grid coordinates
        resolution: Grid cells per world unit

    Returns:
        List of Box with origin = cell / R and size = extent / R
    """
    boxes = []
    scale = float(resolution)
    for x, y, z, dx, dy, dz in np.asarray(cell_boxes, dtype=np.int64).tolist():
        boxes.append(Box(
            origin=(x / scale, y / scale, z / scale),
            size=(dx / scale, dy / scale, dz / scale),
        ))
    return boxes


def verify_partition(voxels: VoxelSet, cell_boxes: np.ndarray):
    """
    Check that cell boxes cover a voxel set exactly once.

    Args:
        voxels: The merged VoxelSet
        cell_boxes: (N, 6) grid-coordinate boxes from BoxMerger.merge_cells

    Raises:
        InternalInvariantError: On a non-positive extent, a box reaching
            outside the set, an overlap, or an uncovered cell
    """
    cell_boxes = np.asarray(cell_boxes, dtype=np.int64).reshape(-1, 6)
    coverage = np.zeros(voxels.shape, dtype=np.int32)
    origin = np.array(voxels.origin, dtype=np.int64)

    for row in cell_boxes:
        lo = row[:3] - origin
        extent = row[3:]
        if np.any(extent <= 0):
            raise InternalInvariantError(f"Box {row.tolist()} has non-positive extent")
        hi = lo + extent
        if np.any(lo < 0) or np.any(hi > np.array(voxels.shape)):
            raise InternalInvariantError(f"Box {row.tolist()} lies outside the voxel grid")
        coverage[lo[0]:hi[0], lo[1]:hi[1], lo[2]:hi[2]] += 1

    if np.any(coverage > 1):
        raise InternalInvariantError(
            f"{int(np.count_nonzero(coverage > 1))} cells are covered by more than one box"
        )
    outside = np.count_nonzero((coverage == 1) & ~voxels.occupancy)
    if outside:
        raise InternalInvariantError(f"{outside} covered cells are not occupied")
    missing = np.count_nonzero((coverage == 0) & voxels.occupancy)
    if missing:
        raise InternalInvariantError(f"{missing} occupied cells are not covered")


class BoxMerger:
    """
    Greedy box merging for voxel sets.

    This class wraps the Numba-accelerated merging kernel and converts its
    integer output into world-space boxes.
    """

    def __init__(self, verify: bool = False):
        """
        Initialize the merger.

        Args:
            verify: Re-check coverage and non-overlap after every merge
        """
        self.verify = verify

    def merge_cells(self, voxels: VoxelSet) -> np.ndarray:
        """
        Partition a voxel set into integer boxes.

        Args:
            voxels: Occupied cells

        Returns:
            (N, 6) int64 array of [x, y, z, dx, dy, dz] in grid coordinates,
            in seed visit order; empty for an empty set
        """
        if voxels.is_empty:
            return np.zeros((0, 6), dtype=np.int64)

        cells = _greedy_merge(voxels.occupancy, len(voxels))
        cells[:, :3] += np.array(voxels.origin, dtype=np.int64)

        if self.verify:
            verify_partition(voxels, cells)
        return cells

    def merge(self, voxels: VoxelSet) -> List[Box]:
        """
        Merge a voxel set into world-space boxes.

        Args:
            voxels: Occupied cells

        Returns:
            List of Box (UVs unset); a single DEFAULT_BOX for an empty set
        """
        if voxels.is_empty:
            logger.warning("No occupied voxels; emitting the default box")
            return [DEFAULT_BOX]

        start = time.perf_counter()
        boxes = cells_to_boxes(self.merge_cells(voxels), voxels.resolution)
        logger.debug(
            "Merged %d voxels into %d boxes in %.3fs",
            len(voxels), len(boxes), time.perf_counter() - start
        )
        return boxes


class NaiveMerger:
    """
    Naive merging for comparison/debugging.

    Emits one box per occupied voxel, in (y, z, x) order.
    """

    def merge_cells(self, voxels: VoxelSet) -> np.ndarray:
        cells = voxels.to_array()
        ones = np.ones_like(cells)
        return np.hstack([cells, ones]).astype(np.int64)

    def merge(self, voxels: VoxelSet) -> List[Box]:
        """Generate one box per voxel."""
        if voxels.is_empty:
            return [DEFAULT_BOX]
        return cells_to_boxes(self.merge_cells(voxels), voxels.resolution)


def compare_merge_stats(greedy_boxes: List[Box], naive_boxes: List[Box]) -> dict:
    """
    Compare statistics between greedy and naive merging.

    Args:
        greedy_boxes: Boxes from BoxMerger
        naive_boxes: Boxes from NaiveMerger

    Returns:
        Dictionary with comparison statistics
    """
    greedy = len(greedy_boxes)
    naive = len(naive_boxes)
    reduction = (1 - greedy / naive) * 100 if naive > 0 else 0

    return {
        "greedy_boxes": greedy,
        "naive_boxes": naive,
        "box_reduction_percent": reduction,
    }
