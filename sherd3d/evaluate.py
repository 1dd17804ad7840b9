"""Metrics and timing for pottery reconstruction.

This module measures how well the revolved mesh fits the fragment points it
was built from, and collects per-stage timings for a run.
"""

from __future__ import annotations

import copy
import logging
import time
from typing import Dict, Optional, Sequence, Union

import numpy as np
from scipy import spatial

logger = logging.getLogger(__name__)


def profile_fit_error(points: np.ndarray, mesh_vertices: np.ndarray) -> float:
    """Mean distance from fragment points to their nearest mesh vertex.

    Args:
        points: Nx3 fused fragment points
        mesh_vertices: Mx3 mesh vertices

    Returns:
        Mean nearest-vertex distance, inf when either set is empty
    """
    if points.shape[0] == 0 or mesh_vertices.shape[0] == 0:
        return float('inf')

    tree = spatial.cKDTree(mesh_vertices)
    distances, _ = tree.query(points, k=1)
    return float(np.mean(distances))


class Timer:
    """Utility class for timing operations with context manager support."""

    def __init__(self, name: str = "Timer", logger: Optional[logging.Logger] = None):
        """Initialize timer.

        Args:
            name: Timer name for logging
            logger: Logger to use (if None, uses module logger)
        """
        self.name = name
        self.logger = logger or logging.getLogger(__name__)
        self.start_time = None
        self.end_time = None
        self._timings = {}

    def start(self) -> None:
        self.start_time = time.perf_counter()
        self.end_time = None

    def stop(self) -> float:
        """Stop the timer and return elapsed time in seconds."""
        if self.start_time is None:
            self.logger.warning(f"{self.name}: Timer stopped without being started")
            return 0.0

        self.end_time = time.perf_counter()
        elapsed = self.end_time - self.start_time
        self.logger.debug(f"{self.name}: {elapsed:.4f}s")
        return elapsed

    def __enter__(self) -> "Timer":
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.stop()

    def lap(self, name: str) -> float:
        """Record a lap time with a given name.

        Args:
            name: Lap name

        Returns:
            Time since the previous lap (or start) in seconds
        """
        current_time = time.perf_counter()
        if self.start_time is None:
            self.start_time = current_time

        last_time = self._timings.get("__last", self.start_time)
        lap_time = current_time - last_time

        self._timings["__last"] = current_time
        self._timings[name] = lap_time

        self.logger.debug(f"{self.name} - {name}: {lap_time:.4f}s")
        return lap_time

    @property
    def timings(self) -> Dict[str, float]:
        return {k: v for k, v in self._timings.items() if k != "__last"}

    @property
    def elapsed(self) -> float:
        """Elapsed time, up to the stop time once the timer is stopped."""
        if self.start_time is None:
            return 0.0

        end = self.end_time if self.end_time is not None else time.perf_counter()
        return end - self.start_time


class ReconstructionMetrics:
    """Class for calculating and storing reconstruction metrics."""

    def __init__(self):
        self.metrics = {
            "n_images": 0,
            "n_failed_images": 0,
            "n_fragments": 0,
            "total_points": 0,
            "fragment_types": [],
            "profile_samples": 0,
            "mesh_vertices": 0,
            "mesh_triangles": 0,
            "used_default_mesh": False,
            "fit_error": None,
            "runtime_s": 0.0,
            "stage_timings": {},
        }

    def update(self, metric_name: str, value: Union[int, float, Dict]) -> None:
        self.metrics[metric_name] = value

    def update_stage_timing(self, stage_name: str, time_s: float) -> None:
        # Repeated stages (one per image) accumulate
        timings = self.metrics["stage_timings"]
        timings[stage_name] = timings.get(stage_name, 0.0) + time_s

    def compute_store_metrics(self, stats: Dict) -> None:
        """Record fragment store diagnostics from ``get_stats()``."""
        self.metrics["n_fragments"] = stats["fragment_count"]
        self.metrics["total_points"] = stats["total_points"]
        self.metrics["fragment_types"] = list(stats["fragment_types"])

    def compute_mesh_metrics(self, mesh, fragment_points: Sequence[np.ndarray] = ()) -> None:
        """Record mesh size and, when points are given, the fit error.

        Args:
            mesh: Reconstructed pottery mesh
            fragment_points: Point clouds of the fragments the mesh was built from
        """
        self.metrics["profile_samples"] = int(mesh.profile.shape[0])
        self.metrics["mesh_vertices"] = mesh.n_vertices
        self.metrics["mesh_triangles"] = mesh.n_triangles
        self.metrics["used_default_mesh"] = bool(mesh.is_default)

        clouds = [p for p in fragment_points if len(p) > 0]
        if clouds and not mesh.is_default:
            self.metrics["fit_error"] = profile_fit_error(np.vstack(clouds), mesh.vertices)

    def to_dict(self) -> Dict:
        return copy.deepcopy(self.metrics)

    def summary(self) -> str:
        """Generate a human-readable summary of metrics."""
        lines = [
            "Reconstruction Metrics:",
            f"  Images: {self.metrics['n_images']} ({self.metrics['n_failed_images']} failed)",
            f"  Fragments: {self.metrics['n_fragments']} "
            f"({', '.join(self.metrics['fragment_types']) or 'none'})",
            f"  Total points: {self.metrics['total_points']}",
            f"  Profile samples: {self.metrics['profile_samples']}",
            f"  Mesh: {self.metrics['mesh_vertices']} vertices, "
            f"{self.metrics['mesh_triangles']} triangles",
        ]

        if self.metrics["used_default_mesh"]:
            lines.append("  Default vase used (insufficient data)")

        if self.metrics["fit_error"] is not None:
            lines.append(f"  Fit error: {self.metrics['fit_error']:.4f}")

        lines.append(f"  Total runtime: {self.metrics['runtime_s']:.2f}s")

        if self.metrics["stage_timings"]:
            lines.append("  Stage timings:")
            for stage, time_s in self.metrics["stage_timings"].items():
                lines.append(f"    {stage}: {time_s:.2f}s")

        return "\n".join(lines)
