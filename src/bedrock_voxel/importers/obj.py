"""
Wavefront OBJ Reader

Parsing, polygon triangulation and material lookup are left to trimesh.
Files with several material groups load as a Scene whose geometries are
concatenated into one mesh.

trimesh keeps OBJ texture coordinates as written (bottom-left origin), so
the V flip still happens during normalization.
"""

from pathlib import Path
from typing import Optional
import numpy as np
import trimesh
from PIL import Image

from ..coordinates import SourceConvention
from ..mesh import Mesh
from .base import MeshSource, PathLike


def load_trimesh(path: Path) -> Optional[trimesh.Trimesh]:
    """
    Load a file with trimesh and collapse a Scene into a single Trimesh.

    Args:
        path: Model file path

    Returns:
        The merged mesh, or None when the file holds no faces
    """
    result = trimesh.load(str(path), process=False)

    if isinstance(result, trimesh.Scene):
        geometries = [
            geometry for geometry in result.geometry.values()
            if isinstance(geometry, trimesh.Trimesh)
        ]
        if not geometries:
            return None
        if len(geometries) == 1:
            result = geometries[0]
        else:
            # UVs may be dropped across the merge boundary
            result = trimesh.util.concatenate(geometries)

    if not isinstance(result, trimesh.Trimesh) or len(result.faces) == 0:
        return None
    return result


class ObjMeshSource(MeshSource):
    """Reader for .obj files."""

    extensions = (".obj",)
    default_convention = SourceConvention.Y_UP_RIGHT_HANDED

    def _read(self, path: Path) -> Mesh:
        loaded = load_trimesh(path)
        if loaded is None:
            return Mesh.empty(path.stem)

        uvs = getattr(loaded.visual, "uv", None)
        if uvs is not None and len(uvs) != len(loaded.vertices):
            uvs = None

        return Mesh(
            positions=np.asarray(loaded.vertices, dtype=np.float64),
            indices=np.asarray(loaded.faces, dtype=np.int64).reshape(-1),
            normals=np.asarray(loaded.vertex_normals, dtype=np.float64),
            uvs=None if uvs is None else np.asarray(uvs, dtype=np.float64),
            name=path.stem,
        )

    def load_texture(self, path: PathLike) -> Optional[Image.Image]:
        """Return the diffuse map (map_Kd) trimesh resolved from the model's MTL."""
        loaded = load_trimesh(Path(path))
        if loaded is None:
            return None

        material = getattr(loaded.visual, "material", None)
        image = getattr(material, "image", None)
        if image is None:
            # PBR materials keep the map under a different name
            image = getattr(material, "baseColorTexture", None)
        if image is None:
            return None
        return image.convert("RGBA")
