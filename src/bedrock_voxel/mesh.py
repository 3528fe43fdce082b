"""
Intermediate Mesh Model

This module provides the shared data structures every import path produces
and every pipeline stage consumes:
- BoundingBox: axis-aligned min/max corners derived from vertex positions
- Mesh: positions, triangle indices and optional normals/UVs

Meshes have value semantics. Buffers are copied on construction and marked
read-only, and every transform returns a new Mesh, so no two pipeline stages
ever alias the same array.
"""

from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Sequence, Tuple
import numpy as np

from .errors import MeshIntegrityError


def _frozen(array: np.ndarray) -> np.ndarray:
    """Return a read-only copy of an array."""
    out = np.array(array, copy=True)
    out.setflags(write=False)
    return out


@dataclass(frozen=True)
class BoundingBox:
    """
    Axis-aligned bounding box.

    An empty point set yields the degenerate box with min = max = (0, 0, 0).
    """

    min: Tuple[float, float, float] = (0.0, 0.0, 0.0)
    max: Tuple[float, float, float] = (0.0, 0.0, 0.0)

    @classmethod
    def from_points(cls, points: np.ndarray) -> "BoundingBox":
        """
        Compute the bounds of an (N, 3) point array.

        Args:
            points: Vertex positions

        Returns:
            BoundingBox enclosing all points
        """
        points = np.asarray(points, dtype=np.float64).reshape(-1, 3)
        if len(points) == 0:
            return cls()
        lo = points.min(axis=0)
        hi = points.max(axis=0)
        return cls(
            (float(lo[0]), float(lo[1]), float(lo[2])),
            (float(hi[0]), float(hi[1]), float(hi[2])),
        )

    @property
    def width(self) -> float:
        return self.max[0] - self.min[0]

    @property
    def height(self) -> float:
        return self.max[1] - self.min[1]

    @property
    def depth(self) -> float:
        return self.max[2] - self.min[2]

    @property
    def size(self) -> Tuple[float, float, float]:
        return (self.width, self.height, self.depth)

    @property
    def center(self) -> Tuple[float, float, float]:
        return (
            (self.min[0] + self.max[0]) / 2.0,
            (self.min[1] + self.max[1]) / 2.0,
            (self.min[2] + self.max[2]) / 2.0,
        )

    def scaled(self, scale: float) -> "BoundingBox":
        """Scale both corners about the origin."""
        lo = np.array(self.min) * scale
        hi = np.array(self.max) * scale
        return BoundingBox.from_points(np.vstack([lo, hi]))


@dataclass(frozen=True, eq=False)
class Mesh:
    """
    Triangle mesh in the common intermediate representation.

    Attributes:
        positions: (N, 3) float64 vertex positions
        indices: (M,) int64 triangle indices, M a multiple of 3
        normals: (N, 3) float64 vertex normals, or (0, 3) when absent
        uvs: (N, 2) float64 texture coordinates, or (0, 2) when absent
        name: Label carried through from the source file
    """

    positions: np.ndarray
    indices: np.ndarray
    normals: Optional[np.ndarray] = None
    uvs: Optional[np.ndarray] = None
    name: str = "mesh"
    _bounds: BoundingBox = field(init=False, repr=False)

    def __post_init__(self):
        """Copy, reshape and validate all buffers."""
        positions = np.asarray(self.positions, dtype=np.float64)
        if positions.size % 3 != 0:
            raise MeshIntegrityError(
                f"Position buffer length {positions.size} is not a multiple of 3"
            )
        positions = positions.reshape(-1, 3)
        count = len(positions)

        indices = np.asarray(self.indices, dtype=np.int64).reshape(-1)
        if indices.size % 3 != 0:
            raise MeshIntegrityError(
                f"Index buffer length {indices.size} is not a multiple of 3"
            )
        if indices.size and (indices.min() < 0 or indices.max() >= count):
            raise MeshIntegrityError(
                f"Triangle index out of range for {count} vertices "
                f"(min {int(indices.min())}, max {int(indices.max())})"
            )

        normals = self._attribute(self.normals, 3, count, "Normal")
        uvs = self._attribute(self.uvs, 2, count, "UV")

        object.__setattr__(self, "positions", _frozen(positions))
        object.__setattr__(self, "indices", _frozen(indices))
        object.__setattr__(self, "normals", _frozen(normals))
        object.__setattr__(self, "uvs", _frozen(uvs))
        object.__setattr__(self, "_bounds", BoundingBox.from_points(positions))

    @staticmethod
    def _attribute(values, width: int, count: int, label: str) -> np.ndarray:
        if values is None:
            return np.zeros((0, width), dtype=np.float64)
        values = np.asarray(values, dtype=np.float64)
        if values.size == 0:
            return np.zeros((0, width), dtype=np.float64)
        if values.size != count * width:
            raise MeshIntegrityError(
                f"{label} buffer length {values.size} does not match "
                f"{count} vertices x {width}"
            )
        return values.reshape(-1, width)

    @classmethod
    def from_buffers(
        cls,
        vertices: Sequence[float],
        indices: Sequence[int],
        normals: Sequence[float] = (),
        uvs: Sequence[float] = (),
        name: str = "mesh"
    ) -> "Mesh":
        """
        Build a mesh from flat buffers (x0, y0, z0, x1, ...).

        Args:
            vertices: Flat position buffer, length 3 * vertex count
            indices: Flat triangle index buffer
            normals: Flat normal buffer, empty or length 3 * vertex count
            uvs: Flat UV buffer, empty or length 2 * vertex count
            name: Mesh label

        Returns:
            New Mesh
        """
        return cls(
            positions=np.asarray(vertices, dtype=np.float64),
            indices=np.asarray(indices, dtype=np.int64),
            normals=np.asarray(normals, dtype=np.float64),
            uvs=np.asarray(uvs, dtype=np.float64),
            name=name,
        )

    @classmethod
    def empty(cls, name: str = "mesh") -> "Mesh":
        """Create a mesh with no vertices."""
        return cls(np.zeros((0, 3)), np.zeros(0, dtype=np.int64), name=name)

    @property
    def vertex_count(self) -> int:
        return len(self.positions)

    @property
    def triangle_count(self) -> int:
        return len(self.indices) // 3

    @property
    def has_normals(self) -> bool:
        return len(self.normals) > 0

    @property
    def has_uvs(self) -> bool:
        return len(self.uvs) > 0

    @property
    def is_empty(self) -> bool:
        """True when there is nothing to voxelize."""
        return self.vertex_count == 0 or self.triangle_count == 0

    @property
    def bounds(self) -> BoundingBox:
        return self._bounds

    @property
    def triangles(self) -> np.ndarray:
        """Get triangle corner positions as a (T, 3, 3) array."""
        return self.positions[self.indices.reshape(-1, 3)]

    def _replace(self, **changes) -> "Mesh":
        values = {
            "positions": self.positions,
            "indices": self.indices,
            "normals": self.normals,
            "uvs": self.uvs,
            "name": self.name,
        }
        values.update(changes)
        return Mesh(**values)

    def scaled(self, scale: float) -> "Mesh":
        """Return a copy with every position multiplied by scale."""
        return self._replace(positions=self.positions * scale)

    def translated(self, offset: Sequence[float]) -> "Mesh":
        """Return a copy moved by an (x, y, z) offset."""
        return self._replace(positions=self.positions + np.asarray(offset, dtype=np.float64))

    def transformed(self, matrix: np.ndarray) -> "Mesh":
        """
        Apply a 3x3 linear map to positions and normals.

        Normals are renormalized afterwards; zero-length normals stay zero.

        Args:
            matrix: 3x3 linear transform

        Returns:
            Transformed mesh (indices and UVs unchanged)
        """
        matrix = np.asarray(matrix, dtype=np.float64)
        positions = self.positions @ matrix.T
        normals = self.normals
        if self.has_normals:
            normals = normalize_vectors(self.normals @ matrix.T)
        return self._replace(positions=positions, normals=normals)

    def with_reversed_winding(self) -> "Mesh":
        """Swap the second and third index of every triangle."""
        tris = self.indices.reshape(-1, 3)[:, [0, 2, 1]]
        return self._replace(indices=tris.reshape(-1))

    def with_flipped_v(self) -> "Mesh":
        """Flip texture V (v' = 1 - v) between bottom-left and top-left origins."""
        if not self.has_uvs:
            return self._replace()
        uvs = self.uvs.copy()
        uvs[:, 1] = 1.0 - uvs[:, 1]
        return self._replace(uvs=uvs)

    def centered(self) -> "Mesh":
        """Move the bounding-box center to the origin."""
        if self.vertex_count == 0:
            return self._replace()
        return self.translated(-np.array(self.bounds.center))

    def grounded(self) -> "Mesh":
        """Move the mesh vertically so its lowest point sits at Y = 0."""
        if self.vertex_count == 0:
            return self._replace()
        return self.translated((0.0, -self.bounds.min[1], 0.0))


def normalize_vectors(vectors: np.ndarray) -> np.ndarray:
    """
    Normalize an (N, 3) array of vectors row by row.

    Rows with zero length are returned as zero instead of dividing by zero.
    """
    vectors = np.asarray(vectors, dtype=np.float64)
    lengths = np.linalg.norm(vectors, axis=1, keepdims=True)
    safe = np.where(lengths > 0.0, lengths, 1.0)
    return np.where(lengths > 0.0, vectors / safe, 0.0)


def combine_meshes(meshes: Iterable[Mesh], name: Optional[str] = None) -> Mesh:
    """
    Concatenate meshes into one, offsetting indices.

    Normals and UVs survive only when every part carries them, since a partial
    attribute buffer would break the one-entry-per-vertex invariant.

    Args:
        meshes: Parts to combine
        name: Name for the combined mesh (default: first part's name)

    Returns:
        Combined Mesh (empty if no parts)
    """
    parts: List[Mesh] = list(meshes)
    if not parts:
        return Mesh.empty(name or "mesh")
    if len(parts) == 1:
        return parts[0] if name is None else parts[0]._replace(name=name)

    positions = []
    indices = []
    offset = 0
    for part in parts:
        positions.append(part.positions)
        indices.append(part.indices + offset)
        offset += part.vertex_count

    if offset == 0:
        return Mesh.empty(name or parts[0].name)

    keep_normals = all(p.has_normals or p.vertex_count == 0 for p in parts)
    keep_uvs = all(p.has_uvs or p.vertex_count == 0 for p in parts)

    return Mesh(
        positions=np.vstack(positions),
        indices=np.concatenate(indices),
        normals=np.vstack([p.normals for p in parts if p.vertex_count]) if keep_normals else None,
        uvs=np.vstack([p.uvs for p in parts if p.vertex_count]) if keep_uvs else None,
        name=name or parts[0].name,
    )
