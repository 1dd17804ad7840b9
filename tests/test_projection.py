"""Tests for pinhole back-projection."""

import sys
import unittest
from pathlib import Path

import numpy as np

# Add parent directory to path
sys.path.append(str(Path(__file__).resolve().parent.parent))

from sherd3d import projection
from sherd3d.errors import InputInvalidError


class TestProjection(unittest.TestCase):
    """Test depth map to point cloud conversion."""

    def test_default_intrinsics(self):
        intrinsics = projection.CameraIntrinsics.default_for(height=4, width=6)

        self.assertEqual(intrinsics.fx, 3.0)
        self.assertEqual(intrinsics.fy, 2.0)
        self.assertEqual(intrinsics.cx, 3.0)
        self.assertEqual(intrinsics.cy, 2.0)

        K = projection.intrinsics_matrix(intrinsics)
        np.testing.assert_array_equal(K, [[3, 0, 3], [0, 2, 2], [0, 0, 1]])

    def test_full_depth_back_projection(self):
        """Every pixel of a unit depth map becomes a point, in raster order."""
        depth = np.ones((4, 6))

        points = projection.depth_to_point_cloud(depth)

        self.assertEqual(points.shape, (24, 3))
        np.testing.assert_allclose(points[0], [-10.0, -10.0, 10.0])
        np.testing.assert_allclose(points[-1], [2 * 10.0 / 3.0, 5.0, 10.0])
        # Second point is the next pixel along the first row
        np.testing.assert_allclose(points[1], [-2 * 10.0 / 3.0, -10.0, 10.0])

    def test_background_rejected(self):
        """Points at or below the background threshold are dropped."""
        depth = np.array([[0.0, 0.005, 0.5]])

        points = projection.depth_to_point_cloud(depth)

        self.assertEqual(points.shape, (1, 3))
        self.assertAlmostEqual(points[0, 2], 5.0)

    def test_no_background_leaks(self):
        rng = np.random.default_rng(7)
        depth = rng.random((32, 24))
        depth[depth < 0.3] = 0.0

        points = projection.depth_to_point_cloud(depth, min_depth=0.1)

        self.assertGreater(len(points), 0)
        self.assertTrue(np.all(points[:, 2] > 0.1))
        self.assertEqual(len(points), int(np.sum(depth * 10.0 > 0.1)))

    def test_empty_depth(self):
        points = projection.depth_to_point_cloud(np.zeros((5, 5)))
        self.assertEqual(points.shape, (0, 3))

    def test_partial_intrinsics(self):
        """Missing intrinsics fields fall back to the image-size defaults."""
        depth = np.zeros((4, 6))
        depth[0, 0] = 1.0

        points = projection.depth_to_point_cloud(
            depth, projection.CameraIntrinsics(fx=1.0)
        )

        np.testing.assert_allclose(points, [[-30.0, -10.0, 10.0]])

    def test_depth_scale(self):
        depth = np.full((2, 2), 0.5)
        points = projection.depth_to_point_cloud(depth, depth_scale=2.0)
        np.testing.assert_allclose(points[:, 2], 1.0)

    def test_channel_dimension_accepted(self):
        depth = np.ones((3, 3, 1))
        points = projection.depth_to_point_cloud(depth)
        self.assertEqual(points.shape, (9, 3))

    def test_invalid_depth_shape(self):
        with self.assertRaises(InputInvalidError):
            projection.depth_to_point_cloud(np.ones(5))
        with self.assertRaises(InputInvalidError):
            projection.depth_to_point_cloud(np.ones((3, 3, 3)))

    def test_zero_focal_length(self):
        with self.assertRaises(InputInvalidError):
            projection.depth_to_point_cloud(
                np.ones((2, 2)), projection.CameraIntrinsics(fx=0.0)
            )


if __name__ == "__main__":
    unittest.main()
