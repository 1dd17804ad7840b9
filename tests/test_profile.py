"""Tests for profile extraction and merging.

Fragments are synthesized as points on known surfaces of revolution so
the expected radius of every profile sample is known exactly.
"""

import sys
import unittest
from pathlib import Path

import numpy as np

# Add parent directory to path
sys.path.append(str(Path(__file__).resolve().parent.parent))

from sherd3d import profile


def cylinder_points(radius, y_min, y_max, n=41, seed=0):
    """Points on a vertical cylinder around the y axis at random angles."""
    rng = np.random.default_rng(seed)
    y = np.linspace(y_min, y_max, n)
    theta = rng.uniform(0, 2 * np.pi, n)
    return np.column_stack((radius * np.cos(theta), y, radius * np.sin(theta)))


class TestSmoothing(unittest.TestCase):
    """Test moving-average smoothing."""

    def test_boundary_window_shrinks(self):
        """Windows are clipped at both ends instead of padded."""
        values = np.arange(7, dtype=float)
        prof = np.column_stack((values, values))

        smoothed = profile.smooth_profile(prof, window_size=5)

        expected = [1.0, 1.5, 2.0, 3.0, 4.0, 4.5, 5.0]
        np.testing.assert_allclose(smoothed[:, 0], expected)
        np.testing.assert_allclose(smoothed[:, 1], expected)

    def test_short_profile_unchanged(self):
        prof = np.array([[1.0, 0.0], [5.0, 1.0], [2.0, 2.0]])
        smoothed = profile.smooth_profile(prof, window_size=5)
        np.testing.assert_array_equal(smoothed, prof)

    def test_window_of_one_is_identity(self):
        prof = np.array([[1.0, 0.0], [5.0, 1.0], [2.0, 2.0]])
        np.testing.assert_allclose(profile.smooth_profile(prof, 1), prof)

    def test_invalid_window(self):
        prof = np.zeros((10, 2))
        for window in (0, 2, -3):
            with self.subTest(window=window):
                with self.assertRaises(ValueError):
                    profile.smooth_profile(prof, window)


class TestExtractProfile(unittest.TestCase):
    """Test per-fragment profile extraction."""

    def test_rim_on_circle(self):
        """Points on a circle of radius 2 give r = 2 after smoothing."""
        points = cylinder_points(2.0, 0.0, 1.0, n=50)

        prof = profile.extract_profile(points)

        self.assertEqual(prof.shape, (50, 2))
        np.testing.assert_allclose(prof[:, 0], 2.0, rtol=1e-12)

    def test_sorted_by_height(self):
        points = cylinder_points(1.5, -2.0, 3.0, n=30)
        shuffled = points[np.random.default_rng(3).permutation(len(points))]

        prof = profile.extract_profile(shuffled)

        self.assertTrue(np.all(np.diff(prof[:, 1]) >= 0))

    def test_radius_ignores_height(self):
        points = np.array([[3.0, 7.0, 4.0]])
        prof = profile.extract_profile(points)
        np.testing.assert_allclose(prof, [[5.0, 7.0]])

    def test_empty_points(self):
        prof = profile.extract_profile(np.zeros((0, 3)))
        self.assertEqual(prof.shape, (0, 2))


class TestMergeProfiles(unittest.TestCase):
    """Test bucketed merging of profiles."""

    def test_bucket_rounding(self):
        """Heights round to the nearest bucket, halves toward +inf."""
        y = np.array([0.0, 0.24, 0.25, 0.74, 0.75, -0.25, -0.26])
        keys = profile.bucket_keys(y, 0.5)
        np.testing.assert_array_equal(keys, [0, 0, 1, 1, 2, 0, -1])

    def test_bucket_height_must_be_positive(self):
        with self.assertRaises(ValueError):
            profile.bucket_keys(np.zeros(3), 0.0)

    def test_disjoint_height_bands(self):
        """Two fragments at r = 3 leave an empty bucket between their bands."""
        lower = profile.extract_profile(cylinder_points(3.0, 0.0, 2.0, seed=1))
        upper = profile.extract_profile(cylinder_points(3.0, 3.0, 5.0, seed=2))

        raw = profile.merge_profiles([lower, upper], window_size=1)

        np.testing.assert_allclose(raw[:, 0], 3.0)
        np.testing.assert_allclose(
            raw[:, 1], [0.0, 0.5, 1.0, 1.5, 2.0, 3.0, 3.5, 4.0, 4.5, 5.0]
        )
        self.assertNotIn(2.5, raw[:, 1].tolist())

        merged = profile.merge_profiles([lower, upper])
        self.assertEqual(merged.shape, (10, 2))
        np.testing.assert_allclose(merged[:, 0], 3.0)
        self.assertTrue(np.all(np.diff(merged[:, 1]) >= 0))

    def test_bucket_average(self):
        """Radii in the same bucket are averaged across fragments."""
        first = np.array([[1.0, 0.1]])
        second = np.array([[3.0, -0.1], [5.0, 1.0]])

        merged = profile.merge_profiles([first, second], window_size=1)

        np.testing.assert_allclose(merged, [[2.0, 0.0], [5.0, 1.0]])

    def test_order_invariance(self):
        rng = np.random.default_rng(11)
        profiles = [
            np.column_stack((rng.uniform(1, 4, n), np.sort(rng.uniform(-3, 6, n))))
            for n in (25, 40, 13)
        ]

        forward = profile.merge_profiles(profiles)
        backward = profile.merge_profiles(profiles[::-1])
        shuffled = profile.merge_profiles([profiles[1], profiles[2], profiles[0]])

        np.testing.assert_allclose(forward, backward, rtol=1e-12, atol=1e-12)
        np.testing.assert_allclose(forward, shuffled, rtol=1e-12, atol=1e-12)

    def test_empty_inputs(self):
        self.assertEqual(profile.merge_profiles([]).shape, (0, 2))
        self.assertEqual(profile.merge_profiles([np.zeros((0, 2))]).shape, (0, 2))

    def test_empty_profile_contributes_nothing(self):
        prof = np.array([[2.0, 0.0], [2.0, 1.0], [2.0, 2.0]])
        with_empty = profile.merge_profiles([prof, np.zeros((0, 2))])
        without = profile.merge_profiles([prof])
        np.testing.assert_allclose(with_empty, without)


if __name__ == "__main__":
    unittest.main()
