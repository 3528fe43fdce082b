"""
Unit tests for geometry JSON output and add-on packaging.
"""

import json
import sys
import tempfile
import zipfile
from pathlib import Path
import unittest

from PIL import Image

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from bedrock_voxel.errors import ExportError
from bedrock_voxel.exporters import AddonExporter, GeometryJSONExporter, encode_json, format_number
from bedrock_voxel.exporters.addon_exporter import (
    collision_size,
    make_atlas,
    pack_uuid,
    texture_warnings,
    validate_archive,
)
from bedrock_voxel.geometry import Bone, Box, GeometryDescription, GeometryDocument
from bedrock_voxel.mesh import BoundingBox


def make_document(identifier="geometry.custom.crate"):
    boxes = (
        Box((0.0, 0.0, 0.0), (1.0, 0.5, 1.0), uv=(0, 0)),
        Box((0.25, 0.5, 0.25), (0.5, 0.00001, 0.5), uv=(16, 32)),
    )
    description = GeometryDescription(
        identifier=identifier,
        visible_bounds_width=2.0,
        visible_bounds_height=1.5,
        visible_bounds_offset=(0.0, 0.25, 0.0),
    )
    return GeometryDocument(description, (Bone("root", cubes=boxes),))


class TestFormatNumber(unittest.TestCase):
    """Tests for plain decimal number formatting."""

    def test_floats(self):
        assert format_number(16.0) == "16.0"
        assert format_number(0.0625) == "0.0625"
        assert format_number(1e-05) == "0.00001"
        assert format_number(-2.5) == "-2.5"
        assert format_number(1e20) == "100000000000000000000.0"

    def test_zero(self):
        assert format_number(0.0) == "0.0"
        assert format_number(-0.0) == "0.0"

    def test_ints_and_bools(self):
        assert format_number(64) == "64"
        assert format_number(True) == "true"

    def test_non_finite(self):
        with self.assertRaises(ExportError):
            format_number(float("nan"))
        with self.assertRaises(ExportError):
            format_number(float("inf"))


class TestGeometryJSONExporter(unittest.TestCase):
    """Tests for GeometryJSONExporter."""

    def test_schema(self):
        data = json.loads(GeometryJSONExporter().dumps(make_document()))
        assert data["format_version"] == "1.12.0"
        geometry = data["minecraft:geometry"]
        assert len(geometry) == 1

        description = geometry[0]["description"]
        assert description["identifier"] == "geometry.custom.crate"
        assert description["texture_width"] == 64
        assert description["visible_bounds_offset"] == [0.0, 0.25, 0.0]

        bones = geometry[0]["bones"]
        assert bones[0]["name"] == "root"
        assert bones[0]["pivot"] == [0.0, 0.0, 0.0]
        assert bones[0]["cubes"][1] == {
            "origin": [0.25, 0.5, 0.25],
            "size": [0.5, 0.00001, 0.5],
            "uv": [16, 32],
        }

    def test_no_exponent_notation(self):
        text = GeometryJSONExporter().dumps(make_document())
        assert "e-" not in text.lower()
        assert "0.00001" in text

    def test_inline_vectors(self):
        text = GeometryJSONExporter().dumps(make_document())
        assert '"origin": [0.0, 0.0, 0.0]' in text
        assert '"uv": [16, 32]' in text

    def test_optional_fields_omitted(self):
        cube = json.loads(GeometryJSONExporter().dumps(make_document()))[
            "minecraft:geometry"][0]["bones"][0]["cubes"][0]
        assert set(cube) == {"origin", "size", "uv"}

    def test_export_creates_parents(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "nested" / "crate.geo.json"
            written = GeometryJSONExporter().export(make_document(), path)
            assert written == path
            assert json.loads(path.read_text())["format_version"] == "1.12.0"

    def test_encode_rejects_unknown_types(self):
        with self.assertRaises(ExportError):
            encode_json({"value": object()})


class TestAddonExporter(unittest.TestCase):
    """Tests for .mcpack / .mcaddon packaging."""

    def test_mcpack_layout(self):
        with tempfile.TemporaryDirectory() as tmp:
            archive = AddonExporter().export(make_document(), tmp)
            assert archive.name == "crate.mcpack"
            assert not (Path(tmp) / "crate_pack").exists()

            with zipfile.ZipFile(archive) as zf:
                names = set(zf.namelist())
                manifest = json.loads(zf.read("manifest.json"))
                entity = json.loads(zf.read("entity/crate.entity.json"))

            assert names == {
                "manifest.json",
                "entity/crate.entity.json",
                "models/entity/crate.geo.json",
                "render_controllers/crate.render_controllers.json",
                "textures/entity/crate.png",
            }
            assert manifest["modules"][0]["type"] == "resources"
            assert "dependencies" not in manifest
            description = entity["minecraft:client_entity"]["description"]
            assert description["identifier"] == "custom:crate"
            assert description["geometry"] == {"default": "geometry.custom.crate"}

    def test_mcaddon_dependencies(self):
        with tempfile.TemporaryDirectory() as tmp:
            bounds = BoundingBox((0.0, 0.0, 0.0), (2.0, 3.0, 1.0))
            archive = AddonExporter().export(make_document(), tmp, bounds=bounds, addon=True)
            assert archive.suffix == ".mcaddon"

            with zipfile.ZipFile(archive) as zf:
                rp = json.loads(zf.read("resource_pack/manifest.json"))
                bp = json.loads(zf.read("behavior_pack/manifest.json"))
                server = json.loads(zf.read("behavior_pack/entities/crate.json"))

            assert rp["dependencies"][0]["uuid"] == bp["header"]["uuid"]
            assert bp["dependencies"][0]["uuid"] == rp["header"]["uuid"]
            collision = server["minecraft:entity"]["components"]["minecraft:collision_box"]
            assert collision == {"width": 2.0, "height": 3.0}

    def test_deterministic_archive(self):
        with tempfile.TemporaryDirectory() as a, tempfile.TemporaryDirectory() as b:
            first = AddonExporter().export(make_document(), a).read_bytes()
            second = AddonExporter().export(make_document(), b).read_bytes()
            assert first == second

    def test_keep_directory(self):
        with tempfile.TemporaryDirectory() as tmp:
            AddonExporter(keep_directory=True).export(make_document(), tmp)
            assert (Path(tmp) / "crate_pack" / "manifest.json").exists()

    def test_pack_uuid(self):
        assert pack_uuid("geometry.custom.a", "resources/header") == \
            pack_uuid("geometry.custom.a", "resources/header")
        assert pack_uuid("geometry.custom.a", "resources/header") != \
            pack_uuid("geometry.custom.b", "resources/header")

    def test_make_atlas(self):
        placeholder = make_atlas(None, 64, 32)
        assert placeholder.size == (64, 32)
        resized = make_atlas(Image.new("RGB", (8, 8), (255, 0, 0)), 64, 64)
        assert resized.mode == "RGBA"
        assert resized.getpixel((40, 40)) == (255, 0, 0, 255)

    def test_texture_warnings(self):
        assert texture_warnings(64, 32) == []
        assert len(texture_warnings(48, 64)) == 1
        assert len(texture_warnings(4096, 100)) == 2

        with self.assertLogs("bedrock_voxel.exporters.addon_exporter", level="WARNING") as logs:
            atlas = make_atlas(None, 48, 64)
        assert atlas.size == (48, 64)
        assert "power of two" in logs.output[0]

    def test_validate_exported_archives(self):
        with tempfile.TemporaryDirectory() as tmp:
            pack = AddonExporter().export(make_document(), tmp)
            addon = AddonExporter().export(make_document(), tmp, addon=True)
            for archive in (pack, addon):
                report = validate_archive(archive)
                assert report.is_valid, report.errors
                assert report.warnings == []

    def test_validate_incomplete_archive(self):
        with tempfile.TemporaryDirectory() as tmp:
            archive = Path(tmp) / "broken.mcpack"
            with zipfile.ZipFile(archive, "w") as zf:
                zf.writestr("manifest.json", "{}")
            report = validate_archive(archive)
            assert not report.is_valid
            assert len(report.errors) == 2

            not_zip = Path(tmp) / "fake.mcaddon"
            not_zip.write_text("plain text")
            assert not validate_archive(not_zip).is_valid
            assert not validate_archive(Path(tmp) / "missing.mcpack").is_valid
            assert not validate_archive(Path(tmp)).is_valid

    def test_collision_size(self):
        assert collision_size(None) == (1.0, 1.0)
        flat = BoundingBox((0.0, 0.0, 0.0), (0.5, 0.0, 0.25))
        assert collision_size(flat) == (0.5, 0.1)


if __name__ == "__main__":
    unittest.main(verbosity=2)
