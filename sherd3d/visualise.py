"""Debug visualisation for depth maps, profiles and reconstructed vessels.

Nothing here feeds back into reconstruction; these helpers write PNG
figures or open an interactive Open3D window.
"""

from __future__ import annotations

import logging
from typing import Optional, Sequence, Tuple

import matplotlib.pyplot as plt
import numpy as np
import open3d as o3d

from sherd3d.mesh import PotteryMesh

logger = logging.getLogger(__name__)


def array_to_pcd(
    points: np.ndarray,
    colors: Optional[np.ndarray] = None
) -> o3d.geometry.PointCloud:
    """Convert numpy arrays to Open3D point cloud.

    Args:
        points: Nx3 array of point coordinates
        colors: Nx3 array of RGB colors (optional)

    Returns:
        Open3D PointCloud object
    """
    pcd = o3d.geometry.PointCloud()
    pcd.points = o3d.utility.Vector3dVector(points)

    if colors is not None:
        if np.max(colors) > 1.0:
            colors = colors / 255.0
        pcd.colors = o3d.utility.Vector3dVector(colors)

    return pcd


def create_depth_map_visualization(
    image: np.ndarray,
    depth: np.ndarray,
    output_path: str,
    colormap: str = 'turbo'
) -> None:
    """Create side-by-side visualization of a photo and its depth map.

    Args:
        image: RGB image
        depth: Depth map in [0, 1] (same size as image)
        output_path: Path to save the visualization
        colormap: Colormap to use for depth visualization
    """
    fig, axs = plt.subplots(1, 2, figsize=(16, 8))

    axs[0].imshow(image)
    axs[0].set_title("Fragment Photo")
    axs[0].axis('off')

    depth_img = axs[1].imshow(depth, cmap=colormap, vmin=0.0, vmax=1.0)
    axs[1].set_title(f"Estimated Depth (min: {np.min(depth):.2f}, max: {np.max(depth):.2f})")
    axs[1].axis('off')

    cbar = plt.colorbar(depth_img, ax=axs[1], fraction=0.046, pad=0.04)
    cbar.set_label("Relative depth")

    plt.tight_layout()
    plt.savefig(output_path, dpi=150, bbox_inches='tight')
    plt.close(fig)

    logger.info(f"Depth map visualization saved to {output_path}")


def save_profile_plot(
    fragment_profiles: Sequence[np.ndarray],
    merged_profile: np.ndarray,
    output_path: str,
    labels: Optional[Sequence[str]] = None
) -> None:
    """Plot per-fragment profiles against the merged consensus profile.

    Args:
        fragment_profiles: Mx2 (r, y) profile per fragment
        merged_profile: Kx2 merged profile
        output_path: Path to save the figure
        labels: Fragment labels for the legend (optional)
    """
    fig, ax = plt.subplots(figsize=(6, 8))

    for i, profile in enumerate(fragment_profiles):
        if len(profile) == 0:
            continue
        label = labels[i] if labels is not None else f"fragment {i}"
        ax.plot(profile[:, 0], profile[:, 1], '.', markersize=1, alpha=0.4, label=label)

    if len(merged_profile) > 0:
        ax.plot(merged_profile[:, 0], merged_profile[:, 1], 'k-', linewidth=2, label="merged")

    ax.set_xlabel("Radius r")
    ax.set_ylabel("Height y")
    ax.set_title("Radius Profiles")
    ax.legend(loc='best', fontsize='small')
    ax.grid(True, alpha=0.3)

    plt.tight_layout()
    plt.savefig(output_path, dpi=150, bbox_inches='tight')
    plt.close(fig)

    logger.info(f"Profile plot saved to {output_path}")


def show(
    mesh: PotteryMesh,
    point_cloud: Optional[np.ndarray] = None,
    save_path: Optional[str] = None,
    window_size: Tuple[int, int] = (1280, 720)
) -> None:
    """Display the reconstructed vessel, optionally with the latest raw points.

    Args:
        mesh: Reconstructed pottery mesh
        point_cloud: Nx3 debug point cloud (optional)
        save_path: Path to save screenshot (optional)
        window_size: Visualization window size
    """
    vis = o3d.visualization.Visualizer()
    vis.create_window(width=window_size[0], height=window_size[1])

    vis.add_geometry(o3d.geometry.TriangleMesh.create_coordinate_frame(size=1.0))
    vis.add_geometry(mesh.geometry)

    if point_cloud is not None and len(point_cloud) > 0:
        pcd = array_to_pcd(point_cloud)
        pcd.paint_uniform_color([0.2, 0.6, 1.0])
        vis.add_geometry(pcd)

    opt = vis.get_render_option()
    opt.background_color = np.array([0.1, 0.1, 0.1])
    opt.point_size = 2.0
    opt.mesh_show_back_face = mesh.material.double_sided

    vis.poll_events()
    vis.update_renderer()

    if save_path is not None:
        vis.capture_screen_image(save_path)
        logger.info(f"Screenshot saved to {save_path}")

    vis.run()
    vis.destroy_window()
