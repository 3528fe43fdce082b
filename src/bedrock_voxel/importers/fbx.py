"""
ASCII FBX Reader

Reads the geometry arrays of ASCII FBX 7.x files:

    Vertices: *24 { a: x0,y0,z0,x1,... }
    PolygonVertexIndex: *24 { a: 0,1,3,-3,... }

A negative entry closes a polygon and encodes its last index as ~i (-i - 1).
Polygons are triangulated as fans. Every Geometry object in the file becomes
one part of the combined mesh.

Binary FBX files are recognized by their header and rejected.
"""

from pathlib import Path
from typing import List
import re
import numpy as np

from ..coordinates import SourceConvention
from ..errors import ModelImportError
from ..mesh import Mesh, combine_meshes
from .base import MeshSource

BINARY_MAGIC = b"Kaydara FBX Binary"

_ARRAY_PATTERN = r"{name}:\s*\*\d+\s*\{{\s*a:\s*([^}}]*)\}}"
_VERTICES = re.compile(_ARRAY_PATTERN.format(name="Vertices"))
_POLYGONS = re.compile(_ARRAY_PATTERN.format(name="PolygonVertexIndex"))


def _parse_numbers(text: str, dtype) -> np.ndarray:
    values = [v for v in re.split(r"[,\s]+", text.strip()) if v]
    return np.array(values, dtype=np.float64).astype(dtype)


def triangulate_polygons(polygon_indices: np.ndarray) -> np.ndarray:
    """
    Fan-triangulate an FBX PolygonVertexIndex array.

    Args:
        polygon_indices: Indices where a negative value ~i ends a polygon

    Returns:
        Flat triangle index array
    """
    triangles: List[int] = []
    polygon: List[int] = []
    for idx in polygon_indices.tolist():
        if idx < 0:
            polygon.append(~idx)
            for i in range(1, len(polygon) - 1):
                triangles.extend((polygon[0], polygon[i], polygon[i + 1]))
            polygon = []
        else:
            polygon.append(idx)
    return np.array(triangles, dtype=np.int64)


class FbxMeshSource(MeshSource):
    """Reader for ASCII .fbx files."""

    extensions = (".fbx",)
    default_convention = SourceConvention.Z_UP_RIGHT_HANDED

    def _read(self, path: Path) -> Mesh:
        with open(path, "rb") as f:
            header = f.read(len(BINARY_MAGIC))
        if header == BINARY_MAGIC:
            raise ModelImportError(
                f"{path.name}: binary FBX is not supported; re-export as ASCII FBX, glTF or OBJ"
            )

        content = path.read_text(encoding="utf-8", errors="replace")
        vertex_blocks = _VERTICES.findall(content)
        polygon_blocks = _POLYGONS.findall(content)
        if not vertex_blocks:
            raise ModelImportError(f"{path.name}: no Vertices array found")

        parts = []
        for i, (vertex_text, polygon_text) in enumerate(zip(vertex_blocks, polygon_blocks)):
            positions = _parse_numbers(vertex_text, np.float64)
            indices = triangulate_polygons(_parse_numbers(polygon_text, np.int64))
            parts.append(Mesh(positions=positions, indices=indices, name=f"{path.stem}_{i}"))

        return combine_meshes(parts, name=path.stem)
