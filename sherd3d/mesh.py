"""Lathe mesh construction.

This module revolves a radius profile around the vertical axis to build a
surface-of-revolution mesh, and provides the default vase used whenever
there is not enough profile data.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Tuple

import numpy as np
import open3d as o3d

logger = logging.getLogger(__name__)

DEFAULT_SEGMENTS = 64
MIN_PROFILE_SAMPLES = 3
POTTERY_COLOR = 0xC2A070


@dataclass(frozen=True)
class SurfaceMaterial:
    """Matte material descriptor handed to the viewer."""

    color: int = POTTERY_COLOR
    metalness: float = 0.1
    roughness: float = 0.8
    double_sided: bool = True

    @property
    def rgb(self) -> Tuple[float, float, float]:
        """Color as floats in [0, 1]."""
        return (
            ((self.color >> 16) & 0xFF) / 255.0,
            ((self.color >> 8) & 0xFF) / 255.0,
            (self.color & 0xFF) / 255.0,
        )


@dataclass(eq=False)
class PotteryMesh:
    """A revolved mesh plus the material and profile it came from."""

    geometry: o3d.geometry.TriangleMesh
    material: SurfaceMaterial
    profile: np.ndarray
    segments: int
    is_default: bool = False

    @property
    def vertices(self) -> np.ndarray:
        return np.asarray(self.geometry.vertices)

    @property
    def triangles(self) -> np.ndarray:
        return np.asarray(self.geometry.triangles)

    @property
    def vertex_normals(self) -> np.ndarray:
        return np.asarray(self.geometry.vertex_normals)

    @property
    def n_vertices(self) -> int:
        return len(self.geometry.vertices)

    @property
    def n_triangles(self) -> int:
        return len(self.geometry.triangles)


def lathe_geometry(
    profile: np.ndarray,
    segments: int = DEFAULT_SEGMENTS
) -> Tuple[np.ndarray, np.ndarray]:
    """Revolve a 2D (r, y) profile fully around the y axis.

    Vertices are laid out column by column: ``segments + 1`` angular columns
    of ``len(profile)`` vertices each, so the last column duplicates the
    first and closes the seam. Vertex (i, j) is
    ``(r_j sin(phi_i), y_j, r_j cos(phi_i))`` with ``phi_i = 2 pi i / segments``.

    Args:
        profile: Mx2 array of (r, y) rows
        segments: Number of angular steps

    Returns:
        Tuple of ((segments+1)*M x 3 vertices, 2*segments*(M-1) x 3 triangles)
    """
    if segments < 3:
        raise ValueError(f"At least 3 segments required, got {segments}")

    profile = np.asarray(profile, dtype=np.float64).reshape(-1, 2)
    n_points = profile.shape[0]

    phi = np.arange(segments + 1) * (2 * np.pi / segments)
    sin_phi = np.sin(phi)[:, None]
    cos_phi = np.cos(phi)[:, None]

    r = profile[:, 0][None, :]
    y = profile[:, 1][None, :]

    vertices = np.stack((
        r * sin_phi,
        np.broadcast_to(y, (segments + 1, n_points)),
        r * cos_phi,
    ), axis=-1).reshape(-1, 3)

    # Two triangles per quad between neighbouring columns
    i, j = np.meshgrid(np.arange(segments), np.arange(max(n_points - 1, 0)), indexing="ij")
    a = (j + i * n_points).ravel()
    b = a + n_points
    c = a + n_points + 1
    d = a + 1

    triangles = np.empty((2 * a.size, 3), dtype=np.int32)
    triangles[0::2] = np.column_stack((a, b, d))
    triangles[1::2] = np.column_stack((c, d, b))

    return vertices, triangles


def _to_mesh(
    profile: np.ndarray,
    segments: int,
    material: SurfaceMaterial,
    is_default: bool
) -> PotteryMesh:
    vertices, triangles = lathe_geometry(profile, segments)

    geometry = o3d.geometry.TriangleMesh()
    geometry.vertices = o3d.utility.Vector3dVector(vertices)
    geometry.triangles = o3d.utility.Vector3iVector(triangles)
    geometry.compute_vertex_normals()
    geometry.paint_uniform_color(material.rgb)

    return PotteryMesh(
        geometry=geometry,
        material=material,
        profile=np.array(profile, dtype=np.float64).reshape(-1, 2),
        segments=segments,
        is_default=is_default,
    )


def default_profile() -> np.ndarray:
    """Canonical vase silhouette: r = 2 + 0.5 sin(pi t), y = 0..10."""
    i = np.arange(11, dtype=np.float64)
    t = i / 10
    return np.column_stack((2 + np.sin(t * np.pi) * 0.5, i))


def build_default_pottery() -> PotteryMesh:
    """Build the fallback vase mesh so the viewer always has something to show."""
    return _to_mesh(
        default_profile(),
        DEFAULT_SEGMENTS,
        SurfaceMaterial(double_sided=False),
        is_default=True,
    )


def build_mesh_from_profile(
    profile: np.ndarray,
    segments: int = DEFAULT_SEGMENTS
) -> PotteryMesh:
    """Build a lathe mesh from a merged profile.

    Args:
        profile: Mx2 array of (r, y) rows sorted by y
        segments: Number of angular steps

    Returns:
        Pottery mesh; the default vase if the profile has fewer than 3 rows
    """
    profile = np.asarray(profile, dtype=np.float64).reshape(-1, 2)

    if profile.shape[0] < MIN_PROFILE_SAMPLES:
        logger.warning(
            f"Profile too short ({profile.shape[0]} samples), using default vase shape"
        )
        return build_default_pottery()

    start_time = time.perf_counter()
    mesh = _to_mesh(profile, segments, SurfaceMaterial(), is_default=False)

    elapsed_time = time.perf_counter() - start_time
    logger.debug(
        f"Lathe mesh: {mesh.n_vertices} vertices, {mesh.n_triangles} triangles "
        f"(elapsed time: {elapsed_time:.3f}s)"
    )
    return mesh


def save_mesh(
    mesh: PotteryMesh,
    output_path: str,
    file_format: str = "obj"
) -> bool:
    """Save mesh to file.

    Args:
        mesh: Pottery mesh to save
        output_path: Output file path
        file_format: Output file format (obj, ply, etc.)

    Returns:
        True if successful, False otherwise
    """
    # Clean a copy; the returned mesh keeps its lathe vertex layout
    geometry = o3d.geometry.TriangleMesh(mesh.geometry)
    geometry.remove_degenerate_triangles()
    geometry.remove_duplicated_vertices()
    geometry.compute_vertex_normals()

    try:
        if file_format.lower() == "obj":
            success = o3d.io.write_triangle_mesh(output_path, geometry, write_vertex_colors=True)
        else:
            success = o3d.io.write_triangle_mesh(output_path, geometry)
    except Exception as e:
        logger.error(f"Failed to save mesh: {e}")
        return False

    if success:
        logger.info(f"Mesh saved to {output_path}")
    else:
        logger.error(f"Open3D could not write mesh to {output_path}")
    return bool(success)
