"""
Voxel Data Structures and Voxelization Engine

This module provides:
- VoxelCoordinate: integer (x, y, z) address of one grid cell
- VoxelSet: set of occupied cells, stored as a dense occupancy array
- Voxelizer: rasterizes a canonical triangle mesh into a VoxelSet

The grid has cell size 1 / resolution world units. Cell (x, y, z) spans
[x, x + 1) * cell_size along X (and likewise for Y and Z), so its center sits
at (x + 0.5) * cell_size.

Occupancy test (per triangle, per candidate cell in the triangle's cell
bounding box floor(min * R) .. ceil(max * R)):
- CENTROID: distance from cell center to the triangle centroid. This is the
  coarse heuristic of the reference converter; large triangles leave gaps.
- EXACT: distance from cell center to the closest point on the triangle.
Both mark the cell when the distance is strictly below proximity / R.

Memory consideration: the occupancy array is one byte per cell. A 256^3 grid
is 16 MB; max_grid_cells guards against runaway resolution/scale choices.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Iterator, NamedTuple, Set, Tuple
import logging
import time
import numpy as np
from numba import njit
from scipy import ndimage

from .errors import GridTooLargeError
from .mesh import BoundingBox, Mesh

logger = logging.getLogger(__name__)

DEFAULT_RESOLUTION = 16
DEFAULT_PROXIMITY = 1.5
DEFAULT_MAX_GRID_CELLS = 1 << 26


class DistanceMode(Enum):
    """How "near the triangle" is measured."""
    CENTROID = "centroid"
    EXACT = "exact"


class VoxelCoordinate(NamedTuple):
    """Integer address of a grid cell."""
    x: int
    y: int
    z: int


@dataclass
class VoxelSet:
    """
    Set of occupied grid cells.

    Backed by a dense boolean array covering the occupied region, with
    `origin` giving the grid coordinate of occupancy[0, 0, 0]. This keeps
    membership O(1) and lets the merger run over contiguous memory, while
    the public interface behaves like a set of VoxelCoordinate.

    Iteration order is (y, z, x) ascending, the merger's seed order.
    """

    occupancy: np.ndarray
    origin: Tuple[int, int, int] = (0, 0, 0)
    resolution: int = DEFAULT_RESOLUTION

    def __post_init__(self):
        """Normalize array dtype and origin."""
        self.occupancy = np.ascontiguousarray(self.occupancy, dtype=np.bool_)
        if self.occupancy.ndim != 3:
            raise ValueError("Occupancy must have shape (X, Y, Z)")
        self.origin = tuple(int(v) for v in self.origin)

    @classmethod
    def empty(cls, resolution: int = DEFAULT_RESOLUTION) -> "VoxelSet":
        """Create a set with no occupied cells."""
        return cls(np.zeros((0, 0, 0), dtype=np.bool_), (0, 0, 0), resolution)

    @classmethod
    def from_coordinates(
        cls,
        coords: Iterable[Tuple[int, int, int]],
        resolution: int = DEFAULT_RESOLUTION,
        max_grid_cells: int = DEFAULT_MAX_GRID_CELLS
    ) -> "VoxelSet":
        """
        Build a set from explicit cell coordinates.

        Args:
            coords: Iterable of (x, y, z) integer triples (duplicates allowed)
            resolution: Cells per world unit
            max_grid_cells: Largest dense array allowed

        Returns:
            VoxelSet tightly covering the given cells

        Raises:
            GridTooLargeError: If the cells span more than max_grid_cells
        """
        points = np.array(list(coords), dtype=np.int64).reshape(-1, 3)
        if len(points) == 0:
            return cls.empty(resolution)
        lo = points.min(axis=0)
        hi = points.max(axis=0)
        shape = tuple(int(v) for v in (hi - lo + 1))
        if shape[0] * shape[1] * shape[2] > max_grid_cells:
            raise GridTooLargeError(shape, max_grid_cells)
        occupancy = np.zeros(shape, dtype=np.bool_)
        rel = points - lo
        occupancy[rel[:, 0], rel[:, 1], rel[:, 2]] = True
        return cls(occupancy, tuple(lo), resolution)

    @property
    def shape(self) -> Tuple[int, int, int]:
        """Get array dimensions (x, y, z)."""
        return tuple(self.occupancy.shape)

    @property
    def cell_size(self) -> float:
        return 1.0 / self.resolution

    @property
    def is_empty(self) -> bool:
        return not self.occupancy.any()

    def __len__(self) -> int:
        return int(np.count_nonzero(self.occupancy))

    def __contains__(self, coord) -> bool:
        x, y, z = (int(c) - o for c, o in zip(coord, self.origin))
        sx, sy, sz = self.occupancy.shape
        if not (0 <= x < sx and 0 <= y < sy and 0 <= z < sz):
            return False
        return bool(self.occupancy[x, y, z])

    def __iter__(self) -> Iterator[VoxelCoordinate]:
        for x, y, z in self.to_array():
            yield VoxelCoordinate(int(x), int(y), int(z))

    def to_array(self) -> np.ndarray:
        """
        Get occupied cells as an (N, 3) array of grid coordinates.

        Rows are sorted by (y, z, x) ascending.
        """
        # argwhere on a (y, z, x) view yields lexicographic (y, z, x) order
        yzx = np.argwhere(self.occupancy.transpose(1, 2, 0))
        return yzx[:, [2, 0, 1]] + np.array(self.origin, dtype=np.int64)

    def coordinates(self) -> Set[VoxelCoordinate]:
        """Get occupied cells as a Python set."""
        return set(self)

    @property
    def bounds(self) -> BoundingBox:
        """World-space bounds of the occupied cells (degenerate when empty)."""
        if self.is_empty:
            return BoundingBox()
        cells = self.to_array()
        lo = cells.min(axis=0) / self.resolution
        hi = (cells.max(axis=0) + 1) / self.resolution
        return BoundingBox.from_points(np.vstack([lo, hi]))

    def cropped(self) -> "VoxelSet":
        """
        Create a new set whose array is cropped to the occupied region.

        Returns:
            Equivalent VoxelSet with a tight array
        """
        if self.is_empty:
            return VoxelSet.empty(self.resolution)
        occupied = np.argwhere(self.occupancy)
        lo = occupied.min(axis=0)
        hi = occupied.max(axis=0) + 1
        data = self.occupancy[lo[0]:hi[0], lo[1]:hi[1], lo[2]:hi[2]].copy()
        origin = tuple(int(o + l) for o, l in zip(self.origin, lo))
        return VoxelSet(data, origin, self.resolution)

    def copy(self) -> "VoxelSet":
        return VoxelSet(self.occupancy.copy(), self.origin, self.resolution)


@njit(cache=True)
def _dot3(u, v) -> float:
    return u[0] * v[0] + u[1] * v[1] + u[2] * v[2]


@njit(cache=True)
def _closest_point_on_segment(p, a, b):
    """Closest point to p on segment ab."""
    ab = b - a
    denom = _dot3(ab, ab)
    if denom <= 0.0:
        return a.copy()
    t = _dot3(p - a, ab) / denom
    if t < 0.0:
        t = 0.0
    elif t > 1.0:
        t = 1.0
    return a + t * ab


@njit(cache=True)
def _segment_distance(p, a, b, c) -> float:
    """Distance from p to the nearest edge of a zero-area triangle."""
    q0 = _closest_point_on_segment(p, a, b)
    q1 = _closest_point_on_segment(p, b, c)
    q2 = _closest_point_on_segment(p, c, a)
    return min(
        np.sqrt(_dot3(p - q0, p - q0)),
        np.sqrt(_dot3(p - q1, p - q1)),
        np.sqrt(_dot3(p - q2, p - q2)),
    )


@njit(cache=True)
def _point_triangle_distance(p, a, b, c) -> float:
    """
    Euclidean distance from point p to triangle abc.

    Uses the Voronoi-region walk from Ericson, "Real-Time Collision
    Detection" (5.1.5). Zero-area triangles fall back to the nearest edge.
    """
    ab = b - a
    ac = c - a
    nx = ab[1] * ac[2] - ab[2] * ac[1]
    ny = ab[2] * ac[0] - ab[0] * ac[2]
    nz = ab[0] * ac[1] - ab[1] * ac[0]
    if nx * nx + ny * ny + nz * nz <= 1e-24:
        return _segment_distance(p, a, b, c)

    ap = p - a
    d1 = _dot3(ab, ap)
    d2 = _dot3(ac, ap)
    if d1 <= 0.0 and d2 <= 0.0:
        return np.sqrt(_dot3(ap, ap))

    bp = p - b
    d3 = _dot3(ab, bp)
    d4 = _dot3(ac, bp)
    if d3 >= 0.0 and d4 <= d3:
        return np.sqrt(_dot3(bp, bp))

    vc = d1 * d4 - d3 * d2
    if vc <= 0.0 and d1 >= 0.0 and d3 <= 0.0:
        q = a + (d1 / (d1 - d3)) * ab
        return np.sqrt(_dot3(p - q, p - q))

    cp = p - c
    d5 = _dot3(ab, cp)
    d6 = _dot3(ac, cp)
    if d6 >= 0.0 and d5 <= d6:
        return np.sqrt(_dot3(cp, cp))

    vb = d5 * d2 - d1 * d6
    if vb <= 0.0 and d2 >= 0.0 and d6 <= 0.0:
        q = a + (d2 / (d2 - d6)) * ac
        return np.sqrt(_dot3(p - q, p - q))

    va = d3 * d6 - d5 * d4
    if va <= 0.0 and (d4 - d3) >= 0.0 and (d5 - d6) >= 0.0:
        q = b + ((d4 - d3) / ((d4 - d3) + (d5 - d6))) * (c - b)
        return np.sqrt(_dot3(p - q, p - q))

    total = va + vb + vc
    q = a + ab * (vb / total) + ac * (vc / total)
    return np.sqrt(_dot3(p - q, p - q))


@njit(cache=True)
def _rasterize_triangles(
    triangles: np.ndarray,
    sx: int, sy: int, sz: int,
    proximity: float,
    exact: bool
) -> np.ndarray:
    """
    Mark grid cells near each triangle.

    Args:
        triangles: (T, 3, 3) corners in grid units, relative to the grid origin
        sx, sy, sz: Grid dimensions
        proximity: Occupancy threshold in cells
        exact: Use true point-to-triangle distance instead of centroid distance

    Returns:
        Boolean occupancy array (sx, sy, sz)
    """
    occupancy = np.zeros((sx, sy, sz), dtype=np.bool_)
    center = np.empty(3, dtype=np.float64)

    for t in range(triangles.shape[0]):
        a = triangles[t, 0]
        b = triangles[t, 1]
        c = triangles[t, 2]

        x0 = max(int(np.floor(min(a[0], b[0], c[0]))), 0)
        x1 = min(int(np.ceil(max(a[0], b[0], c[0]))), sx - 1)
        y0 = max(int(np.floor(min(a[1], b[1], c[1]))), 0)
        y1 = min(int(np.ceil(max(a[1], b[1], c[1]))), sy - 1)
        z0 = max(int(np.floor(min(a[2], b[2], c[2]))), 0)
        z1 = min(int(np.ceil(max(a[2], b[2], c[2]))), sz - 1)

        gx = (a[0] + b[0] + c[0]) / 3.0
        gy = (a[1] + b[1] + c[1]) / 3.0
        gz = (a[2] + b[2] + c[2]) / 3.0

        for x in range(x0, x1 + 1):
            for y in range(y0, y1 + 1):
                for z in range(z0, z1 + 1):
                    if occupancy[x, y, z]:
                        continue
                    center[0] = x + 0.5
                    center[1] = y + 0.5
                    center[2] = z + 0.5
                    if exact:
                        d = _point_triangle_distance(center, a, b, c)
                    else:
                        dx = center[0] - gx
                        dy = center[1] - gy
                        dz = center[2] - gz
                        d = np.sqrt(dx * dx + dy * dy + dz * dz)
                    if d < proximity:
                        occupancy[x, y, z] = True

    return occupancy


class Voxelizer:
    """
    Engine for converting canonical triangle meshes to voxel sets.

    The voxelizer is deterministic: for a fixed mesh (including triangle
    order) and fixed settings the resulting VoxelSet is identical.
    """

    def __init__(
        self,
        resolution: int = DEFAULT_RESOLUTION,
        distance_mode: DistanceMode = DistanceMode.CENTROID,
        proximity: float = DEFAULT_PROXIMITY,
        fill_interior: bool = False,
        max_grid_cells: int = DEFAULT_MAX_GRID_CELLS
    ):
        """
        Initialize the voxelizer.

        Args:
            resolution: Grid cells per world unit (reference: 16 or 32)
            distance_mode: Occupancy distance measure
            proximity: Occupancy threshold, in cells
            fill_interior: Fill enclosed cavities to produce solid volumes
            max_grid_cells: Upper bound on dense grid size
        """
        if resolution <= 0:
            raise ValueError(f"Resolution must be positive, got {resolution}")
        self.resolution = int(resolution)
        self.distance_mode = DistanceMode(distance_mode)
        self.proximity = float(proximity)
        self.fill_interior = fill_interior
        self.max_grid_cells = max_grid_cells

    def grid_extent(self, mesh: Mesh) -> Tuple[np.ndarray, Tuple[int, int, int]]:
        """
        Compute the grid origin and shape needed to voxelize a mesh.

        Args:
            mesh: Canonical mesh

        Returns:
            (origin, shape) where origin is the lowest cell index per axis
        """
        scaled = mesh.positions * self.resolution
        lo = np.floor(scaled.min(axis=0)).astype(np.int64)
        hi = np.ceil(scaled.max(axis=0)).astype(np.int64)
        shape = tuple(int(v) for v in (hi - lo + 1))
        return lo, shape

    def voxelize(self, mesh: Mesh) -> VoxelSet:
        """
        Rasterize a mesh into occupied cells.

        Args:
            mesh: Canonical (normalized) mesh

        Returns:
            VoxelSet; empty when the mesh has no triangles
        """
        if mesh.is_empty:
            logger.debug("Mesh %s has no triangles; nothing to voxelize", mesh.name)
            return VoxelSet.empty(self.resolution)

        start = time.perf_counter()
        origin, shape = self.grid_extent(mesh)
        if shape[0] * shape[1] * shape[2] > self.max_grid_cells:
            raise GridTooLargeError(shape, self.max_grid_cells)

        triangles = mesh.triangles * self.resolution - origin.astype(np.float64)
        triangles = np.ascontiguousarray(triangles, dtype=np.float64)

        occupancy = _rasterize_triangles(
            triangles, shape[0], shape[1], shape[2],
            self.proximity, self.distance_mode == DistanceMode.EXACT
        )

        if self.fill_interior:
            occupancy = ndimage.binary_fill_holes(occupancy)

        voxels = VoxelSet(occupancy, tuple(origin), self.resolution)
        logger.debug(
            "Voxelized %d triangles into %d cells (grid %s, %s, fill=%s) in %.3fs",
            mesh.triangle_count, len(voxels), shape, self.distance_mode.value,
            self.fill_interior, time.perf_counter() - start
        )
        return voxels

