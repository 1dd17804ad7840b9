"""Tests for lathe mesh construction."""

import os
import shutil
import sys
import tempfile
import unittest
from pathlib import Path

import numpy as np

# Add parent directory to path
sys.path.append(str(Path(__file__).resolve().parent.parent))

from sherd3d import mesh


class TestLatheGeometry(unittest.TestCase):
    """Test surface-of-revolution vertex and index layout."""

    def setUp(self):
        self.profile = np.array([
            [1.0, 0.0],
            [1.5, 1.0],
            [2.0, 2.0],
            [1.2, 3.0],
        ])

    def test_counts(self):
        vertices, triangles = mesh.lathe_geometry(self.profile, segments=8)

        self.assertEqual(vertices.shape, (9 * 4, 3))
        self.assertEqual(triangles.shape, (2 * 8 * 3, 3))
        self.assertEqual(triangles.min(), 0)
        self.assertLess(triangles.max(), len(vertices))

    def test_vertices_lie_on_profile(self):
        """Every column reproduces the profile radius and height."""
        segments = 12
        vertices, _ = mesh.lathe_geometry(self.profile, segments=segments)
        columns = vertices.reshape(segments + 1, len(self.profile), 3)

        for column in columns:
            radii = np.sqrt(column[:, 0] ** 2 + column[:, 2] ** 2)
            np.testing.assert_allclose(radii, self.profile[:, 0], atol=1e-12)
            np.testing.assert_allclose(column[:, 1], self.profile[:, 1])

    def test_first_column_faces_positive_z(self):
        vertices, _ = mesh.lathe_geometry(self.profile, segments=4)
        np.testing.assert_allclose(vertices[0], [0.0, 0.0, 1.0], atol=1e-12)
        # Quarter turn
        np.testing.assert_allclose(vertices[4], [1.0, 0.0, 0.0], atol=1e-12)

    def test_seam_closed(self):
        """The last column duplicates the first."""
        segments = 16
        vertices, _ = mesh.lathe_geometry(self.profile, segments=segments)
        columns = vertices.reshape(segments + 1, len(self.profile), 3)
        np.testing.assert_allclose(columns[-1], columns[0], atol=1e-12)

    def test_first_quad_triangles(self):
        _, triangles = mesh.lathe_geometry(self.profile, segments=8)
        n = len(self.profile)
        np.testing.assert_array_equal(triangles[0], [0, n, 1])
        np.testing.assert_array_equal(triangles[1], [n + 1, 1, n])

    def test_too_few_segments(self):
        with self.assertRaises(ValueError):
            mesh.lathe_geometry(self.profile, segments=2)


class TestMeshBuilder(unittest.TestCase):
    """Test mesh building and the default vase fallback."""

    def test_default_profile(self):
        prof = mesh.default_profile()

        self.assertEqual(prof.shape, (11, 2))
        np.testing.assert_allclose(prof[:, 1], np.arange(11))
        self.assertAlmostEqual(prof[0, 0], 2.0)
        self.assertAlmostEqual(prof[5, 0], 2.5)
        self.assertAlmostEqual(prof[10, 0], 2.0)

    def test_build_from_profile(self):
        prof = np.column_stack((np.full(6, 2.0), np.linspace(0, 5, 6)))

        result = mesh.build_mesh_from_profile(prof, segments=32)

        self.assertFalse(result.is_default)
        self.assertEqual(result.n_vertices, 33 * 6)
        self.assertEqual(result.n_triangles, 2 * 32 * 5)
        self.assertEqual(result.vertex_normals.shape, (33 * 6, 3))
        self.assertTrue(result.material.double_sided)
        np.testing.assert_allclose(result.profile, prof)

    def test_material(self):
        material = mesh.SurfaceMaterial()

        self.assertEqual(material.color, 0xC2A070)
        self.assertAlmostEqual(material.metalness, 0.1)
        self.assertAlmostEqual(material.roughness, 0.8)
        np.testing.assert_allclose(material.rgb, (0xC2 / 255, 0xA0 / 255, 0x70 / 255))

    def test_short_profile_falls_back(self):
        """Fewer than three samples give the default vase."""
        default = mesh.build_default_pottery()

        for prof in (np.zeros((0, 2)), np.array([[1.0, 0.0]]), np.array([[1.0, 0.0], [1.0, 1.0]])):
            with self.subTest(n=len(prof)):
                result = mesh.build_mesh_from_profile(prof)
                self.assertTrue(result.is_default)
                self.assertEqual(result.n_vertices, 65 * 11)
                np.testing.assert_array_equal(result.vertices, default.vertices)

    def test_default_vase_material(self):
        default = mesh.build_default_pottery()
        self.assertFalse(default.material.double_sided)
        self.assertEqual(default.segments, 64)

    def test_save_mesh(self):
        output_dir = tempfile.mkdtemp()
        try:
            output_path = os.path.join(output_dir, "vase.obj")
            result = mesh.build_default_pottery()

            self.assertTrue(mesh.save_mesh(result, output_path, "obj"))
            self.assertTrue(os.path.exists(output_path))
            # Saving works on a copy
            self.assertEqual(result.n_vertices, 65 * 11)
        finally:
            shutil.rmtree(output_dir)


if __name__ == "__main__":
    unittest.main()
