"""3D Pottery Reconstruction from Fragment Photos.

A Python project that turns photos of pottery fragments into a single
radially symmetric vessel mesh, using a monocular depth heuristic,
pinhole back-projection and a lathe (surface of revolution) model.
"""

from __future__ import annotations

__version__ = "0.1.0"
