"""
Conversion Options

A single options object configures the whole pipeline. Options are checked
once, up front, by validate(); invalid values are reported, never clamped.

Example Usage:
    options = ConversionOptions.from_model_name("Robot Arm", scale=2.0)
    options.validate()
"""

from dataclasses import dataclass, replace
from typing import List, Optional
import numbers
import re

from .coordinates import SourceConvention
from .errors import OptionsValidationError
from .geometry import DEFAULT_FORMAT_VERSION
from .uv import DEFAULT_ATLAS_SIZE
from .voxelizer import (
    DEFAULT_MAX_GRID_CELLS,
    DEFAULT_PROXIMITY,
    DEFAULT_RESOLUTION,
    DistanceMode,
)

MAX_SCALE = 10.0
MAX_NAME_LENGTH = 32
DEFAULT_NAMESPACE = "custom"
DEFAULT_ENTITY_NAME = "custom_model"

# Consolidated resolution presets (cells per world unit)
PRESETS = {
    "standard": 16,
    "fine": 32,
}

_NAME_PATTERN = re.compile(r"^[a-z][a-z0-9_]*$")


def sanitize_name(name: str) -> str:
    """
    Turn an arbitrary model name into a valid entity name.

    Lower-cases, collapses runs of other characters to '_', trims leading
    and trailing underscores and truncates to 32 characters. Names starting
    with a digit get a "model_" prefix.
    """
    sanitized = re.sub(r"[^a-z0-9]+", "_", name.lower()).strip("_")
    if sanitized[:1].isdigit():
        sanitized = "model_" + sanitized
    sanitized = sanitized[:MAX_NAME_LENGTH].rstrip("_")
    return sanitized or DEFAULT_ENTITY_NAME


def geometry_identifier(entity_name: str, namespace: str = DEFAULT_NAMESPACE) -> str:
    return f"geometry.{namespace}.{entity_name}"


@dataclass(frozen=True)
class ConversionOptions:
    """
    Settings for one mesh-to-geometry conversion.

    Attributes:
        resolution: Voxel grid cells per world unit
        scale: Uniform model scale, in (0, MAX_SCALE]
        source_convention: Axis convention of the input; None to detect it
            from the model's proportions
        identifier: Geometry identifier, e.g. "geometry.custom.robot"
        texture_width, texture_height: Declared texture dimensions
        distance_mode: Voxel occupancy measure (centroid or exact)
        proximity: Occupancy threshold in cells
        fill_interior: Fill enclosed cavities so closed meshes become solid
        flip_v: Flip texture V; None follows the source format, flipping
            only bottom-left origin sources
        ground: Move the model so its lowest point sits at Y = 0
        center: Center the model's bounding box on the origin
        atlas_size: UV atlas edge length
        visible_bounds_padding: Added to the visible bounds hints
        format_version: Geometry file format version
        max_grid_cells: Largest dense voxel grid allowed
        verify: Re-check the box partition after merging
    """

    resolution: int = DEFAULT_RESOLUTION
    scale: float = 1.0
    source_convention: Optional[SourceConvention] = SourceConvention.Y_UP_RIGHT_HANDED
    identifier: str = geometry_identifier(DEFAULT_ENTITY_NAME)
    texture_width: int = 64
    texture_height: int = 64
    distance_mode: DistanceMode = DistanceMode.CENTROID
    proximity: float = DEFAULT_PROXIMITY
    fill_interior: bool = False
    flip_v: Optional[bool] = None
    ground: bool = False
    center: bool = False
    atlas_size: int = DEFAULT_ATLAS_SIZE
    visible_bounds_padding: float = 1.0
    format_version: str = DEFAULT_FORMAT_VERSION
    max_grid_cells: int = DEFAULT_MAX_GRID_CELLS
    verify: bool = False

    @classmethod
    def preset(cls, name: str, **overrides) -> "ConversionOptions":
        """
        Create options from a named resolution preset.

        Args:
            name: "standard" (16 cells per unit) or "fine" (32)
            **overrides: Any other option

        Returns:
            ConversionOptions
        """
        try:
            resolution = PRESETS[name.lower()]
        except KeyError:
            raise ValueError(
                f"Unknown preset '{name}' (expected one of: {', '.join(PRESETS)})"
            )
        return cls(resolution=resolution, **overrides)

    @classmethod
    def from_model_name(
        cls,
        model_name: str,
        namespace: str = DEFAULT_NAMESPACE,
        **overrides
    ) -> "ConversionOptions":
        """Create options whose identifier is derived from a model name."""
        identifier = geometry_identifier(sanitize_name(model_name), namespace)
        return cls(identifier=identifier, **overrides)

    @property
    def entity_name(self) -> str:
        """Last dotted component of the identifier."""
        return self.identifier.rsplit(".", 1)[-1]

    @property
    def namespace(self) -> str:
        parts = self.identifier.split(".")
        return parts[1] if len(parts) >= 3 else DEFAULT_NAMESPACE

    def with_changes(self, **changes) -> "ConversionOptions":
        return replace(self, **changes)

    def errors(self) -> List[str]:
        """Collect every validation problem (empty when valid)."""
        errors = []

        whole = (
            isinstance(self.resolution, numbers.Integral)
            and not isinstance(self.resolution, bool)
        )
        if not whole or self.resolution <= 0:
            errors.append(f"Resolution must be a positive integer, got {self.resolution!r}")

        if not self.scale > 0:
            errors.append(f"Scale must be greater than 0, got {self.scale}")
        elif self.scale > MAX_SCALE:
            errors.append(f"Scale cannot exceed {MAX_SCALE:g}, got {self.scale}")

        if self.texture_width <= 0 or self.texture_height <= 0:
            errors.append(
                f"Texture size must be positive, got {self.texture_width}x{self.texture_height}"
            )

        if self.atlas_size <= 0:
            errors.append(f"Atlas size must be positive, got {self.atlas_size}")

        if not self.identifier or not self.identifier.strip():
            errors.append("Identifier cannot be empty")
        elif not _NAME_PATTERN.match(self.entity_name):
            errors.append(
                "Entity name must start with a letter and contain only lowercase "
                f"letters, numbers, and underscores, got '{self.entity_name}'"
            )

        if not self.proximity > 0:
            errors.append(f"Proximity must be greater than 0, got {self.proximity}")

        if self.visible_bounds_padding < 0:
            errors.append(
                f"Visible bounds padding cannot be negative, got {self.visible_bounds_padding}"
            )

        if self.max_grid_cells <= 0:
            errors.append(f"Grid cell limit must be positive, got {self.max_grid_cells}")

        return errors

    def validate(self) -> "ConversionOptions":
        """
        Check all options.

        Returns:
            self, for chaining

        Raises:
            OptionsValidationError: Listing every invalid option
        """
        errors = self.errors()
        if errors:
            raise OptionsValidationError(errors)
        return self


STANDARD = ConversionOptions.preset("standard")
FINE = ConversionOptions.preset("fine")
