"""
Bedrock Add-on Packager

Builds an installable bundle around a geometry document.

Layout of a resource pack (.mcpack):
    manifest.json
    models/entity/<name>.geo.json
    textures/entity/<name>.png
    entity/<name>.entity.json
    render_controllers/<name>.render_controllers.json

An .mcaddon zips a resource_pack/ and a behavior_pack/ directory; the
behavior pack holds manifest.json and entities/<name>.json, a static
entity definition with a collision box sized from the model.

Pack UUIDs are derived from the geometry identifier with uuid5, so exporting
the same model twice produces identical manifests.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union
import logging
import shutil
import uuid
import zipfile
from PIL import Image

from ..errors import ExportError
from ..geometry import GeometryDocument
from ..mesh import BoundingBox
from .geometry_exporter import GeometryJSONExporter, encode_json

logger = logging.getLogger(__name__)

MANIFEST_FORMAT_VERSION = 2
MIN_ENGINE_VERSION = [1, 20, 0]
PACK_VERSION = [1, 0, 0]
CLIENT_ENTITY_FORMAT_VERSION = "1.10.0"
RENDER_CONTROLLER_FORMAT_VERSION = "1.10.0"
SERVER_ENTITY_FORMAT_VERSION = "1.20.0"

# Flat gray used when the model has no texture
PLACEHOLDER_COLOR = (160, 160, 160, 255)

# Largest texture edge the game loads without downscaling
MAX_TEXTURE_SIZE = 2048

_NAMESPACE = uuid.UUID("6f1c4f3e-2b7a-5d0e-9c41-b3d7a8e5f210")


def pack_uuid(identifier: str, role: str) -> str:
    """Deterministic UUID for one manifest field of one model."""
    return str(uuid.uuid5(_NAMESPACE, f"{identifier}/{role}"))


def is_power_of_two(value: int) -> bool:
    return value > 0 and (value & (value - 1)) == 0


def texture_warnings(width: int, height: int) -> List[str]:
    """Compatibility problems with a texture size; empty when it is fine."""
    warnings = []
    if width > MAX_TEXTURE_SIZE or height > MAX_TEXTURE_SIZE:
        warnings.append(f"Texture {width}x{height} exceeds {MAX_TEXTURE_SIZE}px")
    if not (is_power_of_two(width) and is_power_of_two(height)):
        warnings.append(f"Texture {width}x{height} is not a power of two in each dimension")
    return warnings


def make_atlas(texture: Optional[Image.Image], width: int, height: int) -> Image.Image:
    """
    Build the entity texture image.

    The image always matches the size declared in the geometry, so sizes
    the game handles poorly are reported as warnings rather than changed.

    Args:
        texture: Source texture, or None for a flat placeholder
        width, height: Declared texture size of the geometry

    Returns:
        RGBA image of exactly (width, height)
    """
    for warning in texture_warnings(width, height):
        logger.warning(warning)

    if texture is None:
        return Image.new("RGBA", (width, height), PLACEHOLDER_COLOR)
    atlas = texture.convert("RGBA")
    if atlas.size != (width, height):
        # Nearest neighbor keeps texels crisp
        atlas = atlas.resize((width, height), Image.Resampling.NEAREST)
    return atlas


def collision_size(bounds: Optional[BoundingBox]) -> Tuple[float, float]:
    """Collision box (width, height) in blocks, at least 0.1 each way."""
    if bounds is None:
        return 1.0, 1.0
    width = max(bounds.width, bounds.depth, 0.1)
    height = max(bounds.height, 0.1)
    return round(width, 4), round(height, 4)


@dataclass
class ArchiveReport:
    """Outcome of validate_archive."""
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors


def _check_resource_pack(names: List[str], prefix: str, report: ArchiveReport):
    if f"{prefix}manifest.json" not in names:
        report.errors.append(f"Resource pack is missing {prefix}manifest.json")
    if not any(n.startswith(f"{prefix}models/entity/") and n.endswith(".geo.json") for n in names):
        report.errors.append("Resource pack has no geometry file")
    if not any(n.startswith(f"{prefix}textures/entity/") and n.endswith(".png") for n in names):
        report.errors.append("Resource pack has no texture")
    if not any(n.startswith(f"{prefix}entity/") for n in names):
        report.warnings.append("Resource pack has no client entity definition")


def validate_archive(path: Union[str, Path]) -> ArchiveReport:
    """
    Check the structure of an .mcpack or .mcaddon file.

    An .mcpack must hold a manifest, a geometry file and a texture at its
    root. An .mcaddon must hold the same under resource_pack/, plus
    behavior_pack/manifest.json.

    Args:
        path: Archive to check

    Returns:
        ArchiveReport listing errors and warnings
    """
    path = Path(path)
    report = ArchiveReport()

    if not path.is_file():
        report.errors.append(f"{path} does not exist")
        return report
    if path.suffix not in (".mcpack", ".mcaddon"):
        report.errors.append(f"Unexpected extension '{path.suffix}'")
        return report

    try:
        with zipfile.ZipFile(path) as zf:
            names = zf.namelist()
    except zipfile.BadZipFile as e:
        report.errors.append(f"Invalid ZIP file: {e}")
        return report

    if path.suffix == ".mcpack":
        _check_resource_pack(names, "", report)
    else:
        _check_resource_pack(names, "resource_pack/", report)
        if "behavior_pack/manifest.json" not in names:
            report.errors.append("Behavior pack is missing behavior_pack/manifest.json")
    return report


class AddonExporter:
    """
    Export a geometry document as a .mcpack or .mcaddon bundle.
    """

    def __init__(
        self,
        pack_name: Optional[str] = None,
        description: Optional[str] = None,
        keep_directory: bool = False
    ):
        """
        Initialize the exporter.

        Args:
            pack_name: Display name (default: "<Entity> Addon")
            description: Pack description
            keep_directory: Leave the unzipped pack tree next to the archive
        """
        self.pack_name = pack_name
        self.description = description
        self.keep_directory = keep_directory
        self._geometry_exporter = GeometryJSONExporter()

    @staticmethod
    def _entity_name(document: GeometryDocument) -> str:
        return document.identifier.rsplit(".", 1)[-1]

    @staticmethod
    def _namespace(document: GeometryDocument) -> str:
        parts = document.identifier.split(".")
        return parts[1] if len(parts) >= 3 else "custom"

    def _names(self, document: GeometryDocument) -> Tuple[str, str]:
        entity = self._entity_name(document)
        name = self.pack_name or f"{entity.replace('_', ' ').title()} Addon"
        description = self.description or f"Custom entity addon for {entity}"
        return name, description

    def build_manifest(
        self,
        document: GeometryDocument,
        pack_type: str,
        dependency: Optional[str] = None
    ) -> Dict:
        """
        Build a pack manifest.

        Args:
            document: Geometry being packaged
            pack_type: "resources" or "data"
            dependency: Header UUID of a pack this one depends on

        Returns:
            manifest.json content
        """
        name, description = self._names(document)
        suffix = "Resources" if pack_type == "resources" else "Behaviors"
        manifest = {
            "format_version": MANIFEST_FORMAT_VERSION,
            "header": {
                "name": f"{name} {suffix}",
                "description": description,
                "uuid": pack_uuid(document.identifier, f"{pack_type}/header"),
                "version": PACK_VERSION,
                "min_engine_version": MIN_ENGINE_VERSION,
            },
            "modules": [
                {
                    "type": pack_type,
                    "uuid": pack_uuid(document.identifier, f"{pack_type}/module"),
                    "version": PACK_VERSION,
                }
            ],
        }
        if dependency is not None:
            manifest["dependencies"] = [{"uuid": dependency, "version": PACK_VERSION}]
        return manifest

    def build_client_entity(self, document: GeometryDocument) -> Dict:
        entity = self._entity_name(document)
        namespace = self._namespace(document)
        return {
            "format_version": CLIENT_ENTITY_FORMAT_VERSION,
            "minecraft:client_entity": {
                "description": {
                    "identifier": f"{namespace}:{entity}",
                    "materials": {"default": "entity_alphatest_one_sided"},
                    "textures": {"default": f"textures/entity/{entity}"},
                    "geometry": {"default": document.identifier},
                    "render_controllers": [f"controller.render.{namespace}.{entity}"],
                    "spawn_egg": {"base_color": "#4CAF50", "overlay_color": "#388E3C"},
                }
            },
        }

    def build_render_controller(self, document: GeometryDocument) -> Dict:
        entity = self._entity_name(document)
        namespace = self._namespace(document)
        return {
            "format_version": RENDER_CONTROLLER_FORMAT_VERSION,
            "render_controllers": {
                f"controller.render.{namespace}.{entity}": {
                    "geometry": "Geometry.default",
                    "materials": [{"*": "Material.default"}],
                    "textures": ["Texture.default"],
                }
            },
        }

    def build_server_entity(
        self,
        document: GeometryDocument,
        bounds: Optional[BoundingBox] = None
    ) -> Dict:
        """Static, invulnerable entity with a collision box sized to the model."""
        entity = self._entity_name(document)
        namespace = self._namespace(document)
        width, height = collision_size(bounds)
        return {
            "format_version": SERVER_ENTITY_FORMAT_VERSION,
            "minecraft:entity": {
                "description": {
                    "identifier": f"{namespace}:{entity}",
                    "is_spawnable": True,
                    "is_summonable": True,
                    "is_experimental": False,
                },
                "components": {
                    "minecraft:health": {"value": 20, "max": 20},
                    "minecraft:physics": {"has_collision": True, "has_gravity": True},
                    "minecraft:collision_box": {"width": width, "height": height},
                    "minecraft:pushable": {"is_pushable": False, "is_pushable_by_piston": True},
                    "minecraft:type_family": {"family": [namespace, "custom_model", "inanimate"]},
                    "minecraft:damage_sensor": {
                        "triggers": {"cause": "all", "deals_damage": False}
                    },
                    "minecraft:movement": {"value": 0},
                    "minecraft:knockback_resistance": {"value": 1},
                },
            },
        }

    def write_resource_pack(
        self,
        document: GeometryDocument,
        pack_dir: Path,
        texture: Optional[Image.Image] = None,
        dependency: Optional[str] = None
    ) -> List[Path]:
        """Write the resource pack tree; returns the files written."""
        entity = self._entity_name(document)
        description = document.description

        files = {
            pack_dir / "manifest.json": self.build_manifest(document, "resources", dependency),
            pack_dir / "entity" / f"{entity}.entity.json": self.build_client_entity(document),
            pack_dir / "render_controllers" / f"{entity}.render_controllers.json":
                self.build_render_controller(document),
        }
        written = [self._write_json(path, data) for path, data in files.items()]

        written.append(self._geometry_exporter.export(
            document, pack_dir / "models" / "entity" / f"{entity}.geo.json"
        ))

        texture_path = pack_dir / "textures" / "entity" / f"{entity}.png"
        atlas = make_atlas(texture, description.texture_width, description.texture_height)
        try:
            texture_path.parent.mkdir(parents=True, exist_ok=True)
            atlas.save(texture_path, format="PNG")
        except OSError as e:
            raise ExportError(f"{texture_path}: {e}") from e
        written.append(texture_path)
        return written

    def write_behavior_pack(
        self,
        document: GeometryDocument,
        pack_dir: Path,
        dependency: str,
        bounds: Optional[BoundingBox] = None
    ) -> List[Path]:
        """Write the behavior pack tree; returns the files written."""
        entity = self._entity_name(document)
        files = {
            pack_dir / "manifest.json": self.build_manifest(document, "data", dependency),
            pack_dir / "entities" / f"{entity}.json": self.build_server_entity(document, bounds),
        }
        return [self._write_json(path, data) for path, data in files.items()]

    def export(
        self,
        document: GeometryDocument,
        output_dir: Union[str, Path],
        texture: Optional[Image.Image] = None,
        bounds: Optional[BoundingBox] = None,
        addon: bool = False
    ) -> Path:
        """
        Package a document.

        Args:
            document: Geometry to package
            output_dir: Directory receiving the archive
            texture: Optional source texture
            bounds: Model bounds for the behavior pack's collision box
            addon: Write an .mcaddon (resource + behavior pack) instead of
                a resource-only .mcpack

        Returns:
            Path to the archive

        Raises:
            ExportError: If any file cannot be written or the archive fails
                validate_archive
        """
        output_dir = Path(output_dir)
        entity = self._entity_name(document)
        work_dir = output_dir / f"{entity}_pack"
        extension = ".mcaddon" if addon else ".mcpack"
        archive = output_dir / f"{entity}{extension}"

        try:
            if work_dir.exists():
                shutil.rmtree(work_dir)
            work_dir.mkdir(parents=True)

            if addon:
                rp_uuid = pack_uuid(document.identifier, "resources/header")
                bp_uuid = pack_uuid(document.identifier, "data/header")
                self.write_resource_pack(document, work_dir / "resource_pack", texture, bp_uuid)
                self.write_behavior_pack(document, work_dir / "behavior_pack", rp_uuid, bounds)
            else:
                self.write_resource_pack(document, work_dir, texture)

            self._zip_directory(work_dir, archive)
            if not self.keep_directory:
                shutil.rmtree(work_dir)
        except OSError as e:
            raise ExportError(f"{archive}: {e}") from e

        report = validate_archive(archive)
        if not report.is_valid:
            raise ExportError(f"{archive}: " + "; ".join(report.errors))
        for warning in report.warnings:
            logger.warning("%s: %s", archive.name, warning)

        logger.info("Packaged %s", archive)
        return archive

    @staticmethod
    def _write_json(path: Path, data: Dict) -> Path:
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(encode_json(data), encoding="utf-8")
        except OSError as e:
            raise ExportError(f"{path}: {e}") from e
        return path

    @staticmethod
    def _zip_directory(source_dir: Path, archive: Path):
        """Zip a tree with sorted entries and fixed timestamps."""
        with zipfile.ZipFile(archive, "w", compression=zipfile.ZIP_DEFLATED) as zf:
            for path in sorted(p for p in source_dir.rglob("*") if p.is_file()):
                info = zipfile.ZipInfo(path.relative_to(source_dir).as_posix(),
                                       date_time=(1980, 1, 1, 0, 0, 0))
                info.compress_type = zipfile.ZIP_DEFLATED
                zf.writestr(info, path.read_bytes())

