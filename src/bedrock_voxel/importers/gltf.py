"""
glTF 2.0 Reader (.gltf / .glb)

Loads every triangle primitive reachable from the default scene, applies the
node transforms on the way down, and combines the parts into one Mesh.
Attributes read: POSITION, NORMAL, TEXCOORD_0 and indices; primitives
without indices get sequential ones.

Buffers may live in the GLB binary chunk, in data: URIs, or in files next
to the .gltf.
"""

from io import BytesIO
from pathlib import Path
from typing import List, Optional
from urllib.parse import unquote
import logging
import numpy as np
from PIL import Image
from pygltflib import GLTF2

from ..coordinates import SourceConvention
from ..mesh import Mesh, combine_meshes
from .base import MeshSource, PathLike

logger = logging.getLogger(__name__)

TRIANGLES = 4

_COMPONENT_DTYPES = {
    5120: np.int8,
    5121: np.uint8,
    5122: np.int16,
    5123: np.uint16,
    5125: np.uint32,
    5126: np.float32,
}

_TYPE_WIDTH = {
    "SCALAR": 1,
    "VEC2": 2,
    "VEC3": 3,
    "VEC4": 4,
    "MAT4": 16,
}


def _load_buffers(gltf: GLTF2, path: Path) -> List[bytes]:
    """Resolve every buffer of the file to raw bytes."""
    blobs = []
    for buffer in gltf.buffers:
        if buffer.uri is None:
            blobs.append(gltf.binary_blob() or b"")
        elif buffer.uri.startswith("data:"):
            blobs.append(gltf.get_data_from_buffer_uri(buffer.uri))
        else:
            blobs.append((path.parent / unquote(buffer.uri)).read_bytes())
    return blobs


def _read_accessor(gltf: GLTF2, blobs: List[bytes], accessor_index: int) -> np.ndarray:
    """
    Read an accessor as an (count, width) array.

    Handles interleaved views (byteStride) and normalized integer data.
    """
    accessor = gltf.accessors[accessor_index]
    dtype = np.dtype(_COMPONENT_DTYPES[accessor.componentType])
    width = _TYPE_WIDTH[accessor.type]
    if accessor.bufferView is None:
        return np.zeros((accessor.count, width), dtype=dtype)

    view = gltf.bufferViews[accessor.bufferView]
    blob = blobs[view.buffer]
    offset = (view.byteOffset or 0) + (accessor.byteOffset or 0)
    stride = view.byteStride or dtype.itemsize * width

    data = np.ndarray(
        (accessor.count, width),
        dtype=dtype,
        buffer=blob,
        offset=offset,
        strides=(stride, dtype.itemsize),
    ).copy()

    if accessor.normalized and dtype.kind in "iu":
        return data.astype(np.float64) / np.iinfo(dtype).max
    return data


def _node_matrix(node) -> np.ndarray:
    """Local 4x4 transform of a node (matrix, or T * R * S)."""
    if node.matrix is not None:
        # glTF stores matrices column-major
        return np.array(node.matrix, dtype=np.float64).reshape(4, 4).T

    matrix = np.eye(4)
    if node.scale is not None:
        matrix = np.diag(list(node.scale) + [1.0]) @ matrix
    if node.rotation is not None:
        x, y, z, w = node.rotation
        rotation = np.eye(4)
        rotation[:3, :3] = [
            [1 - 2 * (y * y + z * z), 2 * (x * y - z * w), 2 * (x * z + y * w)],
            [2 * (x * y + z * w), 1 - 2 * (x * x + z * z), 2 * (y * z - x * w)],
            [2 * (x * z - y * w), 2 * (y * z + x * w), 1 - 2 * (x * x + y * y)],
        ]
        matrix = rotation @ matrix
    if node.translation is not None:
        translation = np.eye(4)
        translation[:3, 3] = node.translation
        matrix = translation @ matrix
    return matrix


class GltfMeshSource(MeshSource):
    """Reader for .gltf and .glb files, built on pygltflib."""

    extensions = (".glb", ".gltf")
    default_convention = SourceConvention.Y_UP_RIGHT_HANDED
    # glTF texture coordinates already start at the top-left
    uv_origin_bottom_left = False

    def _read(self, path: Path) -> Mesh:
        gltf = GLTF2().load(str(path))
        if gltf is None:
            raise ValueError("not a glTF file")
        blobs = _load_buffers(gltf, path)

        parts: List[Mesh] = []
        if gltf.scenes:
            scene = gltf.scenes[gltf.scene or 0]
            for node_index in scene.nodes or []:
                self._collect_node(gltf, blobs, node_index, np.eye(4), parts)
        else:
            for mesh_index in range(len(gltf.meshes)):
                parts.extend(self._read_mesh(gltf, blobs, mesh_index))

        return combine_meshes(parts, name=path.stem)

    def _collect_node(self, gltf, blobs, node_index, parent, parts):
        node = gltf.nodes[node_index]
        world = parent @ _node_matrix(node)

        if node.mesh is not None:
            linear = world[:3, :3]
            offset = world[:3, 3]
            for part in self._read_mesh(gltf, blobs, node.mesh):
                parts.append(part.transformed(linear).translated(offset))

        for child in node.children or []:
            self._collect_node(gltf, blobs, child, world, parts)

    def _read_mesh(self, gltf, blobs, mesh_index) -> List[Mesh]:
        gltf_mesh = gltf.meshes[mesh_index]
        name = gltf_mesh.name or f"mesh_{mesh_index}"
        parts = []

        for prim_index, prim in enumerate(gltf_mesh.primitives or []):
            mode = TRIANGLES if prim.mode is None else prim.mode
            if mode != TRIANGLES:
                logger.debug("Skipping %s primitive %d with mode %d", name, prim_index, mode)
                continue
            position_index = getattr(prim.attributes, "POSITION", None)
            if position_index is None:
                continue

            positions = _read_accessor(gltf, blobs, position_index).astype(np.float64)
            if prim.indices is not None:
                indices = _read_accessor(gltf, blobs, prim.indices).reshape(-1).astype(np.int64)
            else:
                indices = np.arange(len(positions) - len(positions) % 3, dtype=np.int64)

            normal_index = getattr(prim.attributes, "NORMAL", None)
            uv_index = getattr(prim.attributes, "TEXCOORD_0", None)
            normals = None if normal_index is None else _read_accessor(gltf, blobs, normal_index)
            uvs = None if uv_index is None else _read_accessor(gltf, blobs, uv_index)

            parts.append(Mesh(
                positions=positions,
                indices=indices,
                normals=normals,
                uvs=uvs,
                name=f"{name}_{prim_index}",
            ))

        return parts

    def load_texture(self, path: PathLike) -> Optional[Image.Image]:
        """Load the base color texture of the first textured material."""
        path = Path(path)
        gltf = GLTF2().load(str(path))
        if gltf is None or not gltf.images:
            return None

        image_index = 0
        for material in gltf.materials or []:
            pbr = material.pbrMetallicRoughness
            if pbr is not None and pbr.baseColorTexture is not None:
                texture = gltf.textures[pbr.baseColorTexture.index]
                if texture.source is not None:
                    image_index = texture.source
                    break

        image = gltf.images[image_index]
        if image.bufferView is not None:
            view = gltf.bufferViews[image.bufferView]
            blob = _load_buffers(gltf, path)[view.buffer]
            start = view.byteOffset or 0
            return self._open_image(BytesIO(blob[start:start + view.byteLength]))
        if image.uri is None:
            return None
        if image.uri.startswith("data:"):
            return self._open_image(BytesIO(gltf.get_data_from_buffer_uri(image.uri)))
        return self._open_image(path.parent / unquote(image.uri))
