"""
Model importers for bedrock_voxel.

Supported formats:
- .glb / .gltf (glTF 2.0)
- .obj (Wavefront OBJ)
- .fbx (ASCII FBX)
"""

from pathlib import Path
from typing import Dict, Type

from ..errors import ModelImportError
from ..mesh import Mesh
from .base import MeshSource, PathLike
from .fbx import FbxMeshSource
from .gltf import GltfMeshSource
from .obj import ObjMeshSource

_REGISTRY: Dict[str, Type[MeshSource]] = {}


def register_source(source: Type[MeshSource]) -> Type[MeshSource]:
    """Register a MeshSource class for each of its extensions."""
    for extension in source.extensions:
        _REGISTRY[extension.lower()] = source
    return source


for _source in (GltfMeshSource, ObjMeshSource, FbxMeshSource):
    register_source(_source)


def supported_extensions():
    return sorted(_REGISTRY)


def get_source(path: PathLike) -> MeshSource:
    """
    Pick the reader for a file by its extension.

    Raises:
        ModelImportError: If no reader handles the extension
    """
    extension = Path(path).suffix.lower()
    try:
        return _REGISTRY[extension]()
    except KeyError:
        raise ModelImportError(
            f"Unsupported file type '{extension}' "
            f"(supported: {', '.join(supported_extensions())})"
        )


def load_mesh(path: PathLike) -> Mesh:
    """Load any supported model file as a Mesh."""
    return get_source(path).load(path)


__all__ = [
    "MeshSource",
    "GltfMeshSource",
    "ObjMeshSource",
    "FbxMeshSource",
    "register_source",
    "supported_extensions",
    "get_source",
    "load_mesh",
]
