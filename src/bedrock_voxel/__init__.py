"""
Bedrock Voxel
=============

Converts arbitrary 3D models into Minecraft Bedrock Edition cube geometry.

A triangle mesh is normalized into the Bedrock coordinate convention,
rasterized onto a regular voxel grid and greedily merged into a small set of
axis-aligned boxes, which are written as a minecraft:geometry document.

Key Features:
- glTF 2.0 (.glb/.gltf), Wavefront OBJ and ASCII FBX import
- Y-up/Z-up and left/right-handed source conventions, with auto-detection
- Numba JIT voxelization (centroid heuristic or exact triangle distance)
- Greedy box merging with an exact-partition guarantee
- .geo.json output with plain decimal numbers, plus .mcpack/.mcaddon packaging

Example Usage:
    from bedrock_voxel import GeometryConverter, ConversionOptions

    converter = GeometryConverter(ConversionOptions.preset("fine", scale=2.0))
    converter.load_model("robot.glb")
    converter.build_document()
    converter.export_json("robot.geo.json")
"""

__version__ = "1.0.0"
__author__ = "Bedrock Voxel Team"

from .errors import (
    BedrockVoxelError,
    OptionsValidationError,
    MeshIntegrityError,
    InternalInvariantError,
    GridTooLargeError,
    ModelImportError,
    ExportError,
)
from .mesh import BoundingBox, Mesh
from .coordinates import SourceConvention, normalize_mesh, detect_convention
from .voxelizer import DistanceMode, Voxelizer, VoxelSet
from .box_merger import BoxMerger, NaiveMerger, compare_merge_stats
from .uv import UVPlacer, place_uv
from .geometry import Box, Bone, GeometryDescription, GeometryDocument
from .options import ConversionOptions, sanitize_name
from .converter import GeometryConverter, BatchConverter, convert_mesh
from .logging_config import setup_logging

__all__ = [
    "BedrockVoxelError",
    "OptionsValidationError",
    "MeshIntegrityError",
    "InternalInvariantError",
    "GridTooLargeError",
    "ModelImportError",
    "ExportError",
    "BoundingBox",
    "Mesh",
    "SourceConvention",
    "normalize_mesh",
    "detect_convention",
    "DistanceMode",
    "Voxelizer",
    "VoxelSet",
    "BoxMerger",
    "NaiveMerger",
    "compare_merge_stats",
    "UVPlacer",
    "place_uv",
    "Box",
    "Bone",
    "GeometryDescription",
    "GeometryDocument",
    "ConversionOptions",
    "sanitize_name",
    "GeometryConverter",
    "BatchConverter",
    "convert_mesh",
    "setup_logging",
]
