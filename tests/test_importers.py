"""
Unit tests for the model importers.
"""

import sys
import tempfile
from pathlib import Path
import numpy as np
import unittest

import pygltflib
from PIL import Image

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from bedrock_voxel.coordinates import SourceConvention
from bedrock_voxel.errors import ModelImportError
from bedrock_voxel.importers import get_source, load_mesh, supported_extensions
from bedrock_voxel.importers.fbx import FbxMeshSource, triangulate_polygons
from bedrock_voxel.importers.gltf import GltfMeshSource
from bedrock_voxel.importers.obj import ObjMeshSource

QUAD_OBJ = """\
# unit quad
v 0 0 0
v 1 0 0
v 1 1 0
v 0 1 0
vt 0 0
vt 1 0
vt 1 1
vt 0 1
f 1/1 2/2 3/3 4/4
"""

QUAD_FBX = """\
; FBX 7.4.0 project file
Objects:  {
    Geometry: 1000, "Geometry::Quad", "Mesh" {
        Vertices: *12 {
            a: 0,0,0,1,0,0,1,1,0,0,1,0
        }
        PolygonVertexIndex: *4 {
            a: 0,1,2,-4
        }
    }
}
"""


def write_triangle_glb(path, translation=None):
    """Write a one-triangle GLB with an optional node translation."""
    points = np.array([[0, 0, 0], [1, 0, 0], [0, 1, 0]], dtype=np.float32)
    indices = np.array([0, 1, 2], dtype=np.uint16)
    blob = points.tobytes() + indices.tobytes()

    gltf = pygltflib.GLTF2(
        scene=0,
        scenes=[pygltflib.Scene(nodes=[0])],
        nodes=[pygltflib.Node(mesh=0, translation=translation)],
        meshes=[pygltflib.Mesh(primitives=[
            pygltflib.Primitive(attributes=pygltflib.Attributes(POSITION=0), indices=1)
        ])],
        accessors=[
            pygltflib.Accessor(
                bufferView=0, componentType=pygltflib.FLOAT, count=3,
                type=pygltflib.VEC3, min=[0.0, 0.0, 0.0], max=[1.0, 1.0, 0.0],
            ),
            pygltflib.Accessor(
                bufferView=1, componentType=pygltflib.UNSIGNED_SHORT, count=3,
                type=pygltflib.SCALAR,
            ),
        ],
        bufferViews=[
            pygltflib.BufferView(
                buffer=0, byteOffset=0, byteLength=points.nbytes,
                target=pygltflib.ARRAY_BUFFER,
            ),
            pygltflib.BufferView(
                buffer=0, byteOffset=points.nbytes, byteLength=indices.nbytes,
                target=pygltflib.ELEMENT_ARRAY_BUFFER,
            ),
        ],
        buffers=[pygltflib.Buffer(byteLength=len(blob))],
    )
    gltf.set_binary_blob(blob)
    gltf.save(str(path))
    return path


class ImporterTestCase(unittest.TestCase):
    """Provides a scratch directory."""

    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.tmp = Path(self._tmp.name)

    def tearDown(self):
        self._tmp.cleanup()

    def write(self, name, content):
        path = self.tmp / name
        if isinstance(content, bytes):
            path.write_bytes(content)
        else:
            path.write_text(content)
        return path


class TestRegistry(ImporterTestCase):
    """Tests for reader lookup."""

    def test_supported_extensions(self):
        assert supported_extensions() == [".fbx", ".glb", ".gltf", ".obj"]

    def test_get_source(self):
        assert isinstance(get_source("a.OBJ"), ObjMeshSource)
        assert isinstance(get_source("a.glb"), GltfMeshSource)
        assert isinstance(get_source("a.fbx"), FbxMeshSource)

    def test_unsupported(self):
        with self.assertRaises(ModelImportError):
            get_source("model.stl")

    def test_missing_file(self):
        with self.assertRaises(ModelImportError):
            load_mesh(self.tmp / "missing.obj")


class TestObjImporter(ImporterTestCase):
    """Tests for ObjMeshSource."""

    def test_quad(self):
        mesh = load_mesh(self.write("quad.obj", QUAD_OBJ))
        assert mesh.name == "quad"
        assert mesh.vertex_count == 4
        assert mesh.triangle_count == 2
        assert mesh.has_uvs
        assert mesh.has_normals
        np.testing.assert_allclose(mesh.bounds.max, [1.0, 1.0, 0.0])

    def test_uvs_kept_as_written(self):
        """V is not flipped on import; normalization does that."""
        mesh = load_mesh(self.write("quad.obj", QUAD_OBJ))
        for position, uv in zip(mesh.positions, mesh.uvs):
            np.testing.assert_allclose(uv, position[:2])

    def test_file_normals(self):
        text = "v 0 0 0\nv 1 0 0\nv 0 1 0\nvn 0 0 1\nf 1//1 2//1 3//1\n"
        mesh = load_mesh(self.write("tri.obj", text))
        for normal in mesh.normals:
            np.testing.assert_allclose(normal, [0.0, 0.0, 1.0])

    def test_shared_vertices(self):
        """Faces sharing corners keep a single vertex per corner."""
        text = "v 0 0 0\nv 1 0 0\nv 0 1 0\nv 1 1 0\nf 1 2 3\nf 2 4 3\n"
        mesh = load_mesh(self.write("pair.obj", text))
        assert mesh.vertex_count == 4
        assert mesh.triangle_count == 2

    def test_no_faces(self):
        mesh = load_mesh(self.write("points.obj", "v 0 0 0\nv 1 0 0\n"))
        assert mesh.is_empty

    def test_texture(self):
        Image.new("RGB", (4, 2), (0, 128, 255)).save(self.tmp / "wood.png")
        self.write("crate.mtl", "newmtl Wood\nmap_Kd wood.png\n")
        path = self.write("crate.obj", "mtllib crate.mtl\nusemtl Wood\n" + QUAD_OBJ)

        texture = ObjMeshSource().load_texture(path)
        assert texture is not None
        assert texture.size == (4, 2)
        assert texture.mode == "RGBA"

    def test_missing_texture(self):
        path = self.write("plain.obj", "mtllib nowhere.mtl\n" + QUAD_OBJ)
        assert ObjMeshSource().load_texture(path) is None


class TestFbxImporter(ImporterTestCase):
    """Tests for FbxMeshSource."""

    def test_triangulate(self):
        indices = triangulate_polygons(np.array([0, 1, 2, -4, 4, 5, -7]))
        assert list(indices) == [0, 1, 2, 0, 2, 3, 4, 5, 6]

    def test_ascii_quad(self):
        mesh = load_mesh(self.write("quad.fbx", QUAD_FBX))
        assert mesh.vertex_count == 4
        assert mesh.triangle_count == 2

    def test_default_convention(self):
        assert FbxMeshSource.default_convention == SourceConvention.Z_UP_RIGHT_HANDED

    def test_binary_rejected(self):
        path = self.write("model.fbx", b"Kaydara FBX Binary  \x00\x1a\x00" + b"\x00" * 32)
        with self.assertRaises(ModelImportError) as ctx:
            load_mesh(path)
        assert "binary" in str(ctx.exception).lower()

    def test_no_geometry(self):
        with self.assertRaises(ModelImportError):
            load_mesh(self.write("empty.fbx", "; FBX 7.4.0 project file\n"))


class TestGltfImporter(ImporterTestCase):
    """Tests for GltfMeshSource."""

    def test_triangle(self):
        mesh = load_mesh(write_triangle_glb(self.tmp / "tri.glb"))
        assert mesh.name == "tri"
        assert mesh.vertex_count == 3
        assert mesh.triangle_count == 1
        np.testing.assert_allclose(mesh.bounds.max, [1.0, 1.0, 0.0])

    def test_node_translation(self):
        mesh = load_mesh(write_triangle_glb(self.tmp / "moved.glb", translation=[0.0, 2.0, 0.0]))
        np.testing.assert_allclose(mesh.bounds.min, [0.0, 2.0, 0.0])
        np.testing.assert_allclose(mesh.bounds.max, [1.0, 3.0, 0.0])

    def test_no_texture(self):
        path = write_triangle_glb(self.tmp / "tri.glb")
        assert GltfMeshSource().load_texture(path) is None

    def test_corrupt_file(self):
        with self.assertRaises(ModelImportError):
            load_mesh(self.write("broken.gltf", "{not json"))


if __name__ == "__main__":
    unittest.main(verbosity=2)
