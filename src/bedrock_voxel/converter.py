"""
Main Conversion Pipeline

This is the primary interface for turning 3D models into Bedrock geometry.
It orchestrates:
1. Model import (glTF, OBJ, ASCII FBX)
2. Coordinate and unit normalization
3. Voxelization
4. Greedy box merging
5. UV placement
6. Export to .geo.json, .mcpack or .mcaddon

Example Usage:
    converter = GeometryConverter(ConversionOptions(scale=2.0))
    converter.load_model("robot.glb")
    converter.voxelize().merge().build_document()
    converter.export_json("robot.geo.json")

The core (convert_mesh) is a pure function of its inputs: no I/O, no shared
state, so separate conversions may run in parallel threads or processes.
"""

from pathlib import Path
from typing import List, Optional, Sequence, Union
import logging
import time

from PIL import Image

from .box_merger import DEFAULT_BOX, BoxMerger, NaiveMerger, compare_merge_stats
from .coordinates import SourceConvention, detect_convention, normalize_mesh
from .exporters import AddonExporter, GeometryJSONExporter
from .geometry import Bone, Box, GeometryDescription, GeometryDocument
from .importers import get_source, supported_extensions
from .mesh import BoundingBox, Mesh
from .options import ConversionOptions, geometry_identifier, sanitize_name
from .uv import UVPlacer
from .voxelizer import Voxelizer, VoxelSet

logger = logging.getLogger(__name__)

ROOT_BONE = "root"


def resolve_convention(mesh: Mesh, options: ConversionOptions) -> SourceConvention:
    """Use the configured convention, or guess one from the mesh proportions."""
    if options.source_convention is not None:
        return options.source_convention
    convention = detect_convention(mesh.bounds)
    logger.debug("Detected %s convention for %s", convention.value, mesh.name)
    return convention


def prepare_mesh(
    mesh: Mesh,
    options: ConversionOptions,
    uv_origin_bottom_left: bool = True
) -> Mesh:
    """
    Normalize a raw mesh and apply optional placement.

    Args:
        mesh: Imported mesh
        options: Validated options
        uv_origin_bottom_left: Whether the source format needs a V flip,
            used when options.flip_v is None

    Returns:
        Canonical mesh (Y-up, right-handed, scaled)
    """
    canonical = normalize_mesh(
        mesh,
        scale=options.scale,
        convention=resolve_convention(mesh, options),
        flip_v=uv_origin_bottom_left if options.flip_v is None else options.flip_v,
    )
    if options.center:
        canonical = canonical.centered()
    if options.ground:
        canonical = canonical.grounded()
    return canonical


def make_voxelizer(options: ConversionOptions) -> Voxelizer:
    return Voxelizer(
        resolution=options.resolution,
        distance_mode=options.distance_mode,
        proximity=options.proximity,
        fill_interior=options.fill_interior,
        max_grid_cells=options.max_grid_cells,
    )


def build_document(
    boxes: Sequence[Box],
    bounds: BoundingBox,
    options: ConversionOptions
) -> GeometryDocument:
    """
    Wrap boxes into a single-bone geometry document.

    Visible bounds cover the model plus padding: width is the larger of the
    X and Z extents, and the box is lifted by half the model height. Using
    the larger horizontal extent, rather than the X extent alone, keeps
    models that are deeper than they are wide from being culled early.

    Args:
        boxes: Boxes with UVs assigned
        bounds: Canonical mesh bounds
        options: Validated options

    Returns:
        GeometryDocument with one "root" bone
    """
    padding = options.visible_bounds_padding
    description = GeometryDescription(
        identifier=options.identifier,
        texture_width=options.texture_width,
        texture_height=options.texture_height,
        visible_bounds_width=max(bounds.width, bounds.depth) + padding,
        visible_bounds_height=bounds.height + padding,
        visible_bounds_offset=(0.0, bounds.height / 2.0, 0.0),
    )
    root = Bone(name=ROOT_BONE, cubes=tuple(boxes))
    return GeometryDocument(
        description=description,
        bones=(root,),
        format_version=options.format_version,
    )


def convert_mesh(mesh: Mesh, options: Optional[ConversionOptions] = None) -> GeometryDocument:
    """
    Convert a mesh to a geometry document.

    Args:
        mesh: Imported mesh in its source convention
        options: Conversion options (default: ConversionOptions())

    Returns:
        GeometryDocument

    Raises:
        OptionsValidationError: Before any geometry work, for bad options
        GridTooLargeError: If the voxel grid would exceed the cell limit
    """
    return GeometryConverter(options).load_mesh(mesh).build_document().document


class GeometryConverter:
    """
    High-level interface for model to Bedrock geometry conversion.

    Stages run lazily: calling a later stage runs any earlier stage that has
    not run yet, so `load_model(path).build_document()` is a complete
    conversion.

    Attributes:
        options: Validated conversion options
        mesh: The imported mesh
        canonical_mesh: The normalized mesh
        voxels: The occupied voxel set
        boxes: Merged boxes with UVs
        document: The finished geometry document
    """

    def __init__(self, options: Optional[ConversionOptions] = None):
        """
        Initialize the converter.

        Args:
            options: Conversion options; validated immediately
        """
        self.options = (options or ConversionOptions()).validate()

        self._source_path: Optional[Path] = None
        self._texture: Optional[Image.Image] = None
        self._uv_origin_bottom_left = True
        self._mesh: Optional[Mesh] = None
        self._canonical: Optional[Mesh] = None
        self._voxels: Optional[VoxelSet] = None
        self._boxes: Optional[List[Box]] = None
        self._document: Optional[GeometryDocument] = None
        self._timings = {}

    def load_model(
        self,
        model_path: Union[str, Path],
        derive_identifier: bool = True
    ) -> "GeometryConverter":
        """
        Load a model file.

        Args:
            model_path: Path to a .glb, .gltf, .obj or .fbx file
            derive_identifier: Name the geometry after the file when the
                options still carry the default identifier

        Returns:
            self for method chaining
        """
        model_path = Path(model_path)
        source = get_source(model_path)

        start = time.perf_counter()
        mesh = source.load(model_path)
        self._texture = source.load_texture(model_path)
        self._timings["import"] = time.perf_counter() - start

        if derive_identifier and self.options.identifier == ConversionOptions().identifier:
            identifier = geometry_identifier(sanitize_name(model_path.stem), self.options.namespace)
            self.options = self.options.with_changes(identifier=identifier)

        self._source_path = model_path
        return self.load_mesh(mesh, self._texture, source.uv_origin_bottom_left)

    def load_mesh(
        self,
        mesh: Mesh,
        texture: Optional[Image.Image] = None,
        uv_origin_bottom_left: bool = True
    ) -> "GeometryConverter":
        """
        Load an in-memory mesh.

        Args:
            mesh: Mesh in its source convention
            texture: Optional base color texture for add-on export
            uv_origin_bottom_left: Whether the mesh UVs start at the
                bottom-left corner (OBJ, FBX) rather than the top-left (glTF)

        Returns:
            self for method chaining
        """
        self._mesh = mesh
        self._texture = texture
        self._uv_origin_bottom_left = uv_origin_bottom_left
        self._canonical = None
        self._voxels = None
        self._boxes = None
        self._document = None
        return self

    def normalize(self) -> "GeometryConverter":
        """Map the mesh onto the Bedrock convention and scale."""
        if self._mesh is None:
            raise RuntimeError("No mesh loaded. Call load_model() first.")
        start = time.perf_counter()
        self._canonical = prepare_mesh(self._mesh, self.options, self._uv_origin_bottom_left)
        self._timings["normalize"] = time.perf_counter() - start
        return self

    def voxelize(self) -> "GeometryConverter":
        """Rasterize the canonical mesh into voxels."""
        if self._canonical is None:
            self.normalize()
        start = time.perf_counter()
        if self._canonical.is_empty:
            self._voxels = VoxelSet.empty(self.options.resolution)
        else:
            self._voxels = make_voxelizer(self.options).voxelize(self._canonical)
        self._timings["voxelize"] = time.perf_counter() - start
        return self

    def merge(self) -> "GeometryConverter":
        """Merge voxels into boxes and place their UVs."""
        if self._voxels is None:
            self.voxelize()
        start = time.perf_counter()
        if self._canonical.is_empty:
            logger.warning("Mesh %s is empty; using the default box", self._mesh.name)
            boxes = [DEFAULT_BOX]
        else:
            boxes = BoxMerger(verify=self.options.verify).merge(self._voxels)
        self._boxes = UVPlacer(self.options.atlas_size).assign(boxes, self._canonical.bounds)
        self._timings["merge"] = time.perf_counter() - start
        return self

    def build_document(self) -> "GeometryConverter":
        """Assemble the geometry document."""
        if self._boxes is None:
            self.merge()
        self._document = build_document(self._boxes, self._canonical.bounds, self.options)
        logger.info(
            "Converted %s: %d triangles -> %d voxels -> %d boxes (%s)",
            self._mesh.name, self._mesh.triangle_count, self.voxel_count,
            self.box_count, self.options.identifier
        )
        return self

    def export_json(self, output_path: Union[str, Path]) -> Path:
        """
        Write the geometry to a .geo.json file.

        Args:
            output_path: Output file path

        Returns:
            The written path
        """
        if self._document is None:
            self.build_document()
        return GeometryJSONExporter().export(self._document, output_path)

    def export_addon(
        self,
        output_dir: Union[str, Path],
        addon: bool = False,
        **exporter_kwargs
    ) -> Path:
        """
        Package the geometry as an .mcpack (or .mcaddon).

        Args:
            output_dir: Directory for the archive
            addon: Include a behavior pack and write .mcaddon
            **exporter_kwargs: Passed to AddonExporter

        Returns:
            Path to the archive
        """
        if self._document is None:
            self.build_document()
        exporter = AddonExporter(**exporter_kwargs)
        return exporter.export(
            self._document,
            output_dir,
            texture=self._texture,
            bounds=self._canonical.bounds,
            addon=addon,
        )

    @property
    def mesh(self) -> Optional[Mesh]:
        return self._mesh

    @property
    def canonical_mesh(self) -> Optional[Mesh]:
        return self._canonical

    @property
    def voxels(self) -> Optional[VoxelSet]:
        return self._voxels

    @property
    def boxes(self) -> Optional[List[Box]]:
        return self._boxes

    @property
    def document(self) -> Optional[GeometryDocument]:
        return self._document

    @property
    def voxel_count(self) -> int:
        """Get the number of occupied voxels."""
        if self._voxels is None:
            return 0
        return len(self._voxels)

    @property
    def box_count(self) -> int:
        """Get the number of emitted boxes."""
        if self._boxes is None:
            return 0
        return len(self._boxes)

    def get_stats(self) -> dict:
        """
        Get conversion statistics including greedy merging effectiveness.

        Returns:
            Dictionary with conversion statistics
        """
        if self._boxes is None:
            self.merge()

        stats = compare_merge_stats(self._boxes, NaiveMerger().merge(self._voxels))
        stats.update({
            "source": str(self._source_path) if self._source_path else self._mesh.name,
            "vertices": self._mesh.vertex_count,
            "triangles": self._mesh.triangle_count,
            "voxel_count": self.voxel_count,
            "grid_size": self._voxels.shape,
            "resolution": self.options.resolution,
            "bounds": self._canonical.bounds.size,
            "timings": dict(self._timings),
        })
        return stats


class BatchConverter:
    """
    Batch conversion for a directory of models with shared options.
    """

    def __init__(self, options: Optional[ConversionOptions] = None):
        """
        Initialize the batch converter.

        Args:
            options: Options applied to every model (identifiers are derived
                from file names)
        """
        self.options = (options or ConversionOptions()).validate()

    def process_directory(
        self,
        input_dir: Union[str, Path],
        output_dir: Union[str, Path],
        pattern: str = "*",
        formats: Sequence[str] = ("json",)
    ) -> List[Path]:
        """
        Convert all models in a directory.

        Args:
            input_dir: Input directory
            output_dir: Output directory
            pattern: Glob pattern for input files; files with unsupported
                extensions are skipped
            formats: Any of "json", "mcpack", "mcaddon"

        Returns:
            List of written file paths
        """
        input_dir = Path(input_dir)
        output_dir = Path(output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)
        extensions = set(supported_extensions())

        outputs = []
        converted = 0
        for model_path in sorted(input_dir.glob(pattern)):
            if not model_path.is_file() or model_path.suffix.lower() not in extensions:
                continue

            converter = GeometryConverter(self.options)
            converter.load_model(model_path).build_document()
            converted += 1
            entity = converter.options.entity_name

            if "json" in formats:
                outputs.append(converter.export_json(output_dir / f"{entity}.geo.json"))
            if "mcpack" in formats:
                outputs.append(converter.export_addon(output_dir))
            if "mcaddon" in formats:
                outputs.append(converter.export_addon(output_dir, addon=True))

        logger.info("Converted %d models from %s", converted, input_dir)
        return outputs
