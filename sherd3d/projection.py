"""Pinhole back-projection of depth maps into point clouds."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

import numpy as np

from sherd3d.errors import InputInvalidError

logger = logging.getLogger(__name__)

DEFAULT_DEPTH_SCALE = 10.0
DEFAULT_MIN_DEPTH = 0.1


@dataclass(frozen=True)
class CameraIntrinsics:
    """Pinhole intrinsics in pixels. None fields fall back to the defaults."""

    fx: Optional[float] = None
    fy: Optional[float] = None
    cx: Optional[float] = None
    cy: Optional[float] = None

    @classmethod
    def default_for(cls, height: int, width: int) -> "CameraIntrinsics":
        return cls(fx=width / 2, fy=height / 2, cx=width / 2, cy=height / 2)

    def resolve(self, height: int, width: int) -> "CameraIntrinsics":
        """Fill missing fields from the image-size defaults."""
        default = CameraIntrinsics.default_for(height, width)
        return CameraIntrinsics(
            fx=self.fx if self.fx is not None else default.fx,
            fy=self.fy if self.fy is not None else default.fy,
            cx=self.cx if self.cx is not None else default.cx,
            cy=self.cy if self.cy is not None else default.cy,
        )


def intrinsics_matrix(intrinsics: CameraIntrinsics) -> np.ndarray:
    """Return the 3x3 camera matrix K for fully resolved intrinsics."""
    return np.array([
        [intrinsics.fx, 0, intrinsics.cx],
        [0, intrinsics.fy, intrinsics.cy],
        [0, 0, 1]
    ], dtype=np.float64)


def depth_to_point_cloud(
    depth: np.ndarray,
    intrinsics: Optional[CameraIntrinsics] = None,
    depth_scale: float = DEFAULT_DEPTH_SCALE,
    min_depth: float = DEFAULT_MIN_DEPTH
) -> np.ndarray:
    """Convert a normalized depth map to 3D points.

    Each pixel (u, v) with z = depth[v, u] * depth_scale above ``min_depth``
    is back-projected through the pinhole model. Points are emitted in
    row-major (raster scan) order.

    Args:
        depth: HxW depth map (HxWx1 is accepted)
        intrinsics: Camera intrinsics; defaults derive from the map size
        depth_scale: Factor converting normalized depth to world units
        min_depth: Background threshold; points with z <= min_depth are dropped

    Returns:
        Nx3 array of points
    """
    depth = np.asarray(depth, dtype=np.float64)
    if depth.ndim == 3 and depth.shape[2] == 1:
        depth = depth[:, :, 0]
    if depth.ndim != 2:
        raise InputInvalidError(f"Expected HxW depth map, got shape {depth.shape}")

    h, w = depth.shape
    if intrinsics is None:
        intrinsics = CameraIntrinsics.default_for(h, w)
    else:
        intrinsics = intrinsics.resolve(h, w)

    if intrinsics.fx == 0 or intrinsics.fy == 0:
        raise InputInvalidError(
            f"Focal lengths must be non-zero, got fx={intrinsics.fx}, fy={intrinsics.fy}"
        )

    # Pixel grid in raster order
    v, u = np.mgrid[0:h, 0:w]
    z = depth * depth_scale

    valid_mask = z > min_depth
    z_valid = z[valid_mask]
    x = (u[valid_mask] - intrinsics.cx) * z_valid / intrinsics.fx
    y = (v[valid_mask] - intrinsics.cy) * z_valid / intrinsics.fy

    points = np.column_stack((x, y, z_valid)) if z_valid.size else np.zeros((0, 3))

    logger.debug(
        f"Back-projected {points.shape[0]}/{h * w} pixels "
        f"(depth_scale={depth_scale}, min_depth={min_depth})"
    )
    return points
