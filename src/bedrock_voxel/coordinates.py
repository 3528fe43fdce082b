"""
Coordinate and Unit Normalization

Maps meshes from their authoring convention onto the Bedrock geometry
convention before voxelization.

Coordinate Systems:
- Y_UP_RIGHT_HANDED: glTF, Blender exports (+X Right, +Y Up, +Z Front)
- Z_UP_RIGHT_HANDED: 3ds Max, most FBX files (+X Right, +Y Back, +Z Up)
- Y_UP_LEFT_HANDED: Unity
- Z_UP_LEFT_HANDED: some CAD packages
- Target: Y-up, right-handed, top-left texture origin, 16 pixels per block

Axis remap and handedness fix compose: Z-up to Y-up maps (x, y, z) to
(x, z, -y); left-handed to right-handed negates Z. A handedness change
mirrors the mesh, so triangle winding is reversed to keep normals outward.
"""

from enum import Enum
import logging
import numpy as np

from .mesh import BoundingBox, Mesh

logger = logging.getLogger(__name__)

# Bedrock uses 16 pixels per block
PIXELS_PER_BLOCK = 16.0


class SourceConvention(Enum):
    """Coordinate convention of an imported model."""
    Y_UP_RIGHT_HANDED = "y-up-rh"
    Z_UP_RIGHT_HANDED = "z-up-rh"
    Y_UP_LEFT_HANDED = "y-up-lh"
    Z_UP_LEFT_HANDED = "z-up-lh"

    @property
    def is_z_up(self) -> bool:
        return self in (SourceConvention.Z_UP_RIGHT_HANDED, SourceConvention.Z_UP_LEFT_HANDED)

    @property
    def is_left_handed(self) -> bool:
        return self in (SourceConvention.Y_UP_LEFT_HANDED, SourceConvention.Z_UP_LEFT_HANDED)


# Z-up to Y-up: x' = x, y' = z, z' = -y
Z_UP_TO_Y_UP = np.array([
    [1, 0, 0],
    [0, 0, 1],
    [0, -1, 0]
], dtype=np.float64)

# Left-handed to right-handed: negate Z
MIRROR_Z = np.array([
    [1, 0, 0],
    [0, 1, 0],
    [0, 0, -1]
], dtype=np.float64)


def get_convention_transform(convention: SourceConvention) -> np.ndarray:
    """
    Get the 3x3 matrix taking a source convention to the target convention.

    Args:
        convention: Source coordinate convention

    Returns:
        3x3 transformation matrix
    """
    matrix = np.eye(3, dtype=np.float64)
    if convention.is_left_handed:
        matrix = MIRROR_Z @ matrix
    if convention.is_z_up:
        matrix = Z_UP_TO_Y_UP @ matrix
    return matrix


def changes_handedness(convention: SourceConvention) -> bool:
    """Check whether converting from this convention mirrors the mesh."""
    return bool(np.linalg.det(get_convention_transform(convention)) < 0)


def transform_vertices(vertices: np.ndarray, convention: SourceConvention) -> np.ndarray:
    """
    Transform an array of vertices into the target convention.

    Args:
        vertices: Array of shape (N, 3) containing vertex positions
        convention: Source coordinate convention

    Returns:
        Transformed vertices array of shape (N, 3)
    """
    matrix = get_convention_transform(convention)
    return (matrix @ np.asarray(vertices, dtype=np.float64).T).T


def normalize_mesh(
    mesh: Mesh,
    scale: float = 1.0,
    convention: SourceConvention = SourceConvention.Y_UP_RIGHT_HANDED,
    flip_v: bool = True
) -> Mesh:
    """
    Produce the canonical mesh the voxelizer expects.

    Args:
        mesh: Imported mesh in its source convention
        scale: Uniform scale factor (validated by the caller)
        convention: Source coordinate convention
        flip_v: Flip V for sources with a bottom-left texture origin

    Returns:
        New Mesh: Y-up, right-handed, scaled, with consistent winding
    """
    matrix = get_convention_transform(convention) * float(scale)
    result = mesh.transformed(matrix)

    if changes_handedness(convention):
        result = result.with_reversed_winding()

    if flip_v:
        result = result.with_flipped_v()

    logger.debug(
        "Normalized %s from %s at scale %s: bounds %s -> %s",
        mesh.name, convention.value, scale, mesh.bounds.size, result.bounds.size
    )
    return result


def detect_convention(bounds: BoundingBox) -> SourceConvention:
    """
    Guess the up axis from a model's proportions.

    Heuristic: if the Z extent dominates Y and is at least half the X extent,
    the model was most likely authored Z-up.

    Args:
        bounds: Bounds of the imported (untransformed) mesh

    Returns:
        Best-guess SourceConvention (always right-handed)
    """
    if bounds.depth > bounds.height and bounds.depth > bounds.width * 0.5:
        return SourceConvention.Z_UP_RIGHT_HANDED
    return SourceConvention.Y_UP_RIGHT_HANDED


def world_to_pixels(value: float, scale: float = 1.0) -> float:
    """Convert world units (blocks) to Bedrock pixels."""
    return value * PIXELS_PER_BLOCK * scale


def pixels_to_world(pixels: float, scale: float = 1.0) -> float:
    """Convert Bedrock pixels to world units (blocks)."""
    return pixels / (PIXELS_PER_BLOCK * scale)


def convention_from_name(name: str) -> SourceConvention:
    """Parse a convention tag such as 'z-up-rh'."""
    try:
        return SourceConvention(name.lower())
    except ValueError:
        valid = ", ".join(c.value for c in SourceConvention)
        raise ValueError(f"Unknown coordinate convention '{name}' (expected one of: {valid})")

