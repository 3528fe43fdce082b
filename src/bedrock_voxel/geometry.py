"""
Bedrock Geometry Document

Output data model of the conversion core. A document holds one geometry
description and an ordered list of bones (parts); each bone holds an ordered
list of boxes. The structure mirrors the "minecraft:geometry" JSON schema:

    {"format_version": "1.12.0",
     "minecraft:geometry": [{
         "description": {...},
         "bones": [{"name", "pivot", "parent"?, "rotation"?,
                    "cubes": [{"origin", "size", "uv", "pivot"?, "rotation"?,
                               "inflate"?, "mirror"?}]}]}]}

Documents are immutable once built; serialization lives in exporters/.
"""

from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional, Tuple

from .errors import InternalInvariantError

Vector3 = Tuple[float, float, float]
ZERO: Vector3 = (0.0, 0.0, 0.0)

DEFAULT_FORMAT_VERSION = "1.12.0"


@dataclass(frozen=True)
class Box:
    """
    Axis-aligned cube of a bone.

    Attributes:
        origin: Minimal corner (x, y, z)
        size: Extent along each axis, all components > 0
        uv: Texture atlas origin (u, v)
        pivot, rotation, inflate, mirror: Optional per-cube settings,
            carried through unchanged and omitted from output when None
    """

    origin: Vector3
    size: Vector3
    uv: Tuple[int, int] = (0, 0)
    pivot: Optional[Vector3] = None
    rotation: Optional[Vector3] = None
    inflate: Optional[float] = None
    mirror: Optional[bool] = None

    def __post_init__(self):
        if any(not (s > 0.0) for s in self.size):
            raise InternalInvariantError(
                f"Box at {self.origin} has non-positive size {self.size}"
            )

    @property
    def max_corner(self) -> Vector3:
        return (
            self.origin[0] + self.size[0],
            self.origin[1] + self.size[1],
            self.origin[2] + self.size[2],
        )

    @property
    def volume(self) -> float:
        return self.size[0] * self.size[1] * self.size[2]

    def with_uv(self, u: int, v: int) -> "Box":
        return replace(self, uv=(int(u), int(v)))

    def to_dict(self) -> Dict[str, Any]:
        cube: Dict[str, Any] = {
            "origin": list(self.origin),
            "size": list(self.size),
            "uv": list(self.uv),
        }
        if self.pivot is not None:
            cube["pivot"] = list(self.pivot)
        if self.rotation is not None:
            cube["rotation"] = list(self.rotation)
        if self.inflate is not None:
            cube["inflate"] = self.inflate
        if self.mirror is not None:
            cube["mirror"] = self.mirror
        return cube


@dataclass(frozen=True)
class Bone:
    """Named part of the geometry; parent references another bone by name."""

    name: str
    pivot: Vector3 = ZERO
    parent: Optional[str] = None
    rotation: Vector3 = ZERO
    cubes: Tuple[Box, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        bone: Dict[str, Any] = {"name": self.name, "pivot": list(self.pivot)}
        if self.parent is not None:
            bone["parent"] = self.parent
        if tuple(self.rotation) != ZERO:
            bone["rotation"] = list(self.rotation)
        bone["cubes"] = [cube.to_dict() for cube in self.cubes]
        return bone


@dataclass(frozen=True)
class GeometryDescription:
    """Document-level metadata."""

    identifier: str
    texture_width: int = 64
    texture_height: int = 64
    visible_bounds_width: float = 1.0
    visible_bounds_height: float = 1.0
    visible_bounds_offset: Vector3 = ZERO

    def to_dict(self) -> Dict[str, Any]:
        return {
            "identifier": self.identifier,
            "texture_width": self.texture_width,
            "texture_height": self.texture_height,
            "visible_bounds_width": self.visible_bounds_width,
            "visible_bounds_height": self.visible_bounds_height,
            "visible_bounds_offset": list(self.visible_bounds_offset),
        }


@dataclass(frozen=True)
class GeometryDocument:
    """Complete geometry file: one description plus its bones."""

    description: GeometryDescription
    bones: Tuple[Bone, ...] = field(default_factory=tuple)
    format_version: str = DEFAULT_FORMAT_VERSION

    @property
    def identifier(self) -> str:
        return self.description.identifier

    @property
    def cubes(self) -> List[Box]:
        """All boxes of all bones, in document order."""
        return [cube for bone in self.bones for cube in bone.cubes]

    @property
    def cube_count(self) -> int:
        return sum(len(bone.cubes) for bone in self.bones)

    def bone(self, name: str) -> Optional[Bone]:
        for bone in self.bones:
            if bone.name == name:
                return bone
        return None

    def to_dict(self) -> Dict[str, Any]:
        """Build the JSON-ready dictionary in schema field order."""
        return {
            "format_version": self.format_version,
            "minecraft:geometry": [
                {
                    "description": self.description.to_dict(),
                    "bones": [bone.to_dict() for bone in self.bones],
                }
            ],
        }
