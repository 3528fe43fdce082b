"""
Unit tests for the mesh model and coordinate normalization.
"""

import sys
from pathlib import Path
import numpy as np
import unittest

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from bedrock_voxel.errors import MeshIntegrityError
from bedrock_voxel.mesh import BoundingBox, Mesh, combine_meshes
from bedrock_voxel.coordinates import (
    SourceConvention,
    changes_handedness,
    convention_from_name,
    detect_convention,
    normalize_mesh,
    transform_vertices,
    pixels_to_world,
    world_to_pixels,
)


def make_triangle(**kwargs):
    return Mesh.from_buffers(
        [0, 0, 0, 1, 0, 0, 0, 1, 0], [0, 1, 2], **kwargs
    )


class TestBoundingBox(unittest.TestCase):
    """Tests for BoundingBox."""

    def test_from_points(self):
        bounds = BoundingBox.from_points(np.array([[0, 1, 2], [3, -1, 5]]))
        assert bounds.min == (0.0, -1.0, 2.0)
        assert bounds.max == (3.0, 1.0, 5.0)
        assert bounds.size == (3.0, 2.0, 3.0)
        assert bounds.center == (1.5, 0.0, 3.5)

    def test_empty_points(self):
        """An empty point set gives the degenerate box at the origin."""
        bounds = BoundingBox.from_points(np.zeros((0, 3)))
        assert bounds.min == (0.0, 0.0, 0.0)
        assert bounds.max == (0.0, 0.0, 0.0)


class TestMesh(unittest.TestCase):
    """Tests for Mesh."""

    def test_from_buffers(self):
        mesh = make_triangle(uvs=[0, 0, 1, 0, 0, 1])
        assert mesh.vertex_count == 3
        assert mesh.triangle_count == 1
        assert mesh.has_uvs
        assert not mesh.has_normals
        assert mesh.triangles.shape == (1, 3, 3)

    def test_bad_position_length(self):
        with self.assertRaises(MeshIntegrityError):
            Mesh.from_buffers([0, 0, 0, 1], [])

    def test_bad_index_length(self):
        with self.assertRaises(MeshIntegrityError):
            Mesh.from_buffers([0, 0, 0, 1, 0, 0, 0, 1, 0], [0, 1])

    def test_index_out_of_range(self):
        with self.assertRaises(MeshIntegrityError):
            Mesh.from_buffers([0, 0, 0, 1, 0, 0, 0, 1, 0], [0, 1, 3])

    def test_uv_length_mismatch(self):
        with self.assertRaises(MeshIntegrityError):
            make_triangle(uvs=[0, 0, 1, 0])

    def test_buffers_are_copied(self):
        """Mutating the caller's array must not change the mesh."""
        positions = np.array([[0, 0, 0], [1, 0, 0], [0, 1, 0]], dtype=np.float64)
        mesh = Mesh(positions, [0, 1, 2])
        positions[0, 0] = 99.0
        assert mesh.positions[0, 0] == 0.0
        assert not mesh.positions.flags.writeable

    def test_empty(self):
        mesh = Mesh.empty("nothing")
        assert mesh.is_empty
        assert mesh.name == "nothing"
        assert mesh.bounds.size == (0.0, 0.0, 0.0)

    def test_transforms_return_new_mesh(self):
        mesh = make_triangle()
        moved = mesh.translated((1, 2, 3))
        assert moved is not mesh
        assert mesh.bounds.min == (0.0, 0.0, 0.0)
        assert moved.bounds.min == (1.0, 2.0, 3.0)
        assert mesh.scaled(2.0).bounds.max == (2.0, 2.0, 0.0)

    def test_centered_and_grounded(self):
        mesh = make_triangle().translated((4, 5, 6))
        assert mesh.centered().bounds.center == (0.0, 0.0, 0.0)
        assert mesh.grounded().bounds.min[1] == 0.0

    def test_reversed_winding(self):
        mesh = make_triangle().with_reversed_winding()
        assert list(mesh.indices) == [0, 2, 1]

    def test_flipped_v(self):
        mesh = make_triangle(uvs=[0, 0, 1, 0.25, 0, 1]).with_flipped_v()
        assert list(mesh.uvs[:, 1]) == [1.0, 0.75, 0.0]

    def test_combine_meshes(self):
        a = make_triangle(uvs=[0, 0, 1, 0, 0, 1])
        b = make_triangle().translated((0, 0, 1))
        combined = combine_meshes([a, b], name="both")
        assert combined.vertex_count == 6
        assert list(combined.indices) == [0, 1, 2, 3, 4, 5]
        # Only part of the inputs had UVs
        assert not combined.has_uvs


class TestCoordinates(unittest.TestCase):
    """Tests for convention normalization."""

    def test_y_up_right_handed_is_identity(self):
        points = np.array([[1.0, 2.0, 3.0]])
        result = transform_vertices(points, SourceConvention.Y_UP_RIGHT_HANDED)
        np.testing.assert_allclose(result, points)

    def test_z_up_to_y_up(self):
        """The source up axis (Z) becomes Bedrock's Y."""
        result = transform_vertices(np.array([[0.0, 0.0, 1.0]]), SourceConvention.Z_UP_RIGHT_HANDED)
        np.testing.assert_allclose(result, [[0.0, 1.0, 0.0]])

    def test_left_handed_mirrors_z(self):
        result = transform_vertices(np.array([[1.0, 2.0, 3.0]]), SourceConvention.Y_UP_LEFT_HANDED)
        np.testing.assert_allclose(result, [[1.0, 2.0, -3.0]])

    def test_handedness(self):
        assert not changes_handedness(SourceConvention.Y_UP_RIGHT_HANDED)
        assert not changes_handedness(SourceConvention.Z_UP_RIGHT_HANDED)
        assert changes_handedness(SourceConvention.Y_UP_LEFT_HANDED)
        assert changes_handedness(SourceConvention.Z_UP_LEFT_HANDED)

    def test_normalize_scales(self):
        mesh = normalize_mesh(make_triangle(), scale=2.0)
        assert mesh.bounds.max == (2.0, 2.0, 0.0)

    def test_normalize_left_handed_reverses_winding(self):
        mesh = normalize_mesh(make_triangle(), convention=SourceConvention.Y_UP_LEFT_HANDED)
        assert list(mesh.indices) == [0, 2, 1]

    def test_normalize_flips_v(self):
        source = make_triangle(uvs=[0, 0, 1, 0, 0, 1])
        flipped = normalize_mesh(source, flip_v=True)
        kept = normalize_mesh(source, flip_v=False)
        assert list(flipped.uvs[:, 1]) == [1.0, 1.0, 0.0]
        assert list(kept.uvs[:, 1]) == [0.0, 0.0, 1.0]

    def test_normalize_normals(self):
        """Normals follow the axis change and come back unit length."""
        source = make_triangle(normals=[0, 0, 2, 0, 0, 0, 0, 0, 1])
        mesh = normalize_mesh(source, scale=3.0, convention=SourceConvention.Z_UP_RIGHT_HANDED)
        np.testing.assert_allclose(mesh.normals, [[0, 1, 0], [0, 0, 0], [0, 1, 0]], atol=1e-12)

        mirrored = normalize_mesh(source, convention=SourceConvention.Y_UP_LEFT_HANDED)
        np.testing.assert_allclose(mirrored.normals, [[0, 0, -1], [0, 0, 0], [0, 0, -1]], atol=1e-12)

    def test_normalize_does_not_modify_input(self):
        source = make_triangle()
        normalize_mesh(source, scale=3.0, convention=SourceConvention.Z_UP_LEFT_HANDED)
        assert source.bounds.max == (1.0, 1.0, 0.0)

    def test_detect_convention(self):
        tall_in_z = BoundingBox((0, 0, 0), (1, 0.5, 2))
        tall_in_y = BoundingBox((0, 0, 0), (1, 2, 0.5))
        assert detect_convention(tall_in_z) == SourceConvention.Z_UP_RIGHT_HANDED
        assert detect_convention(tall_in_y) == SourceConvention.Y_UP_RIGHT_HANDED

    def test_pixel_units(self):
        """One block is 16 Bedrock pixels."""
        assert world_to_pixels(1.0) == 16.0
        assert world_to_pixels(0.5, scale=2.0) == 16.0
        assert pixels_to_world(8.0) == 0.5
        assert pixels_to_world(world_to_pixels(0.3125)) == 0.3125

    def test_convention_from_name(self):
        assert convention_from_name("Z-UP-RH") == SourceConvention.Z_UP_RIGHT_HANDED
        with self.assertRaises(ValueError):
            convention_from_name("x-up")


if __name__ == "__main__":
    unittest.main(verbosity=2)
