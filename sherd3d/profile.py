"""Radius-vs-height profiles under a vertical symmetry axis.

A profile is an Mx2 array of (r, y) rows sorted by y. Each fragment's point
cloud is reduced to a profile by measuring the distance of every point from
the y axis; the per-fragment profiles are then merged into one consensus
silhouette by averaging radii in fixed-height buckets.

All fragments are assumed to share the same axis and origin. No alignment
between fragments is attempted.
"""

from __future__ import annotations

import logging
from typing import Sequence

import numpy as np

logger = logging.getLogger(__name__)

DEFAULT_WINDOW_SIZE = 5
DEFAULT_MERGE_WINDOW_SIZE = 7
DEFAULT_BUCKET_HEIGHT = 0.5


def empty_profile() -> np.ndarray:
    return np.zeros((0, 2))


def smooth_profile(profile: np.ndarray, window_size: int = DEFAULT_WINDOW_SIZE) -> np.ndarray:
    """Moving-average smoothing of both r and y.

    The window shrinks at the ends of the profile instead of padding or
    wrapping. Profiles shorter than the window are returned unchanged.

    Args:
        profile: Mx2 array of (r, y) rows
        window_size: Odd window length

    Returns:
        Smoothed Mx2 profile
    """
    if window_size < 1 or window_size % 2 == 0:
        raise ValueError(f"Window size must be a positive odd integer, got {window_size}")

    profile = np.asarray(profile, dtype=np.float64).reshape(-1, 2)
    n = profile.shape[0]
    if n < window_size:
        return profile.copy()

    half = window_size // 2
    idx = np.arange(n)
    start = np.maximum(0, idx - half)
    end = np.minimum(n, idx + half + 1)

    # Window sums from a zero-prefixed cumulative sum
    cumsum = np.vstack((np.zeros((1, 2)), np.cumsum(profile, axis=0)))
    sums = cumsum[end] - cumsum[start]
    counts = (end - start).reshape(-1, 1)

    return sums / counts


def extract_profile(points: np.ndarray, window_size: int = DEFAULT_WINDOW_SIZE) -> np.ndarray:
    """Reduce a point cloud to a smoothed radius profile.

    Args:
        points: Nx3 array of points
        window_size: Smoothing window

    Returns:
        Mx2 array of (r, y) rows sorted by y, M == N
    """
    points = np.asarray(points, dtype=np.float64).reshape(-1, 3)
    if points.shape[0] == 0:
        return empty_profile()

    r = np.sqrt(points[:, 0] ** 2 + points[:, 2] ** 2)
    y = points[:, 1]

    order = np.argsort(y, kind="stable")
    profile = np.column_stack((r[order], y[order]))

    return smooth_profile(profile, window_size)


def bucket_keys(y: np.ndarray, bucket_height: float = DEFAULT_BUCKET_HEIGHT) -> np.ndarray:
    """Quantize heights to bucket indices; halves round toward +inf."""
    if bucket_height <= 0:
        raise ValueError(f"Bucket height must be positive, got {bucket_height}")
    return np.floor(np.asarray(y, dtype=np.float64) / bucket_height + 0.5).astype(np.int64)


def merge_profiles(
    profiles: Sequence[np.ndarray],
    bucket_height: float = DEFAULT_BUCKET_HEIGHT,
    window_size: int = DEFAULT_MERGE_WINDOW_SIZE
) -> np.ndarray:
    """Merge per-fragment profiles into one consensus profile.

    Rows of all profiles are pooled, their heights quantized into buckets of
    ``bucket_height``, and the radii averaged per bucket. The bucketed profile
    is re-smoothed with a wider window.

    Args:
        profiles: Sequence of Mx2 (r, y) profiles
        bucket_height: Height of one bucket
        window_size: Smoothing window for the merged profile

    Returns:
        Kx2 merged profile, one row per non-empty bucket, sorted by y
    """
    stacked = [np.asarray(p, dtype=np.float64).reshape(-1, 2) for p in profiles]
    all_rows = np.vstack(stacked) if stacked else empty_profile()

    if all_rows.shape[0] == 0:
        logger.debug("No profile samples to merge")
        return empty_profile()

    keys = bucket_keys(all_rows[:, 1], bucket_height)
    unique_keys, inverse = np.unique(keys, return_inverse=True)

    radius_sums = np.bincount(inverse, weights=all_rows[:, 0], minlength=len(unique_keys))
    counts = np.bincount(inverse, minlength=len(unique_keys))

    merged = np.column_stack((radius_sums / counts, unique_keys * bucket_height))

    logger.debug(
        f"Merged {all_rows.shape[0]} samples from {len(stacked)} profiles "
        f"into {merged.shape[0]} buckets"
    )
    return smooth_profile(merged, window_size)
