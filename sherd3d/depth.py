"""Monocular depth estimation for pottery fragments.

This module implements an edge/gradient heuristic that approximates a
relative depth map from a single RGB photo. Sharp edges are read as steep
curvature (low relative depth), smooth shading gradients as surface
orientation. The result is blurred and min-max normalized to [0, 1].

No learned parameters are involved: the same image always yields the same
depth field.
"""

from __future__ import annotations

import enum
import logging
import time
from dataclasses import dataclass
from typing import Optional

import cv2
import numpy as np

from sherd3d.config import DepthConfig
from sherd3d.errors import InputInvalidError, NotInitializedError

logger = logging.getLogger(__name__)

SOBEL_X = np.array([
    [-1, 0, 1],
    [-2, 0, 2],
    [-1, 0, 1]
], dtype=np.float64)

SOBEL_Y = np.array([
    [-1, -2, -1],
    [0, 0, 0],
    [1, 2, 1]
], dtype=np.float64)

CENTRAL_DIFF_X = np.array([[-1, 0, 1]], dtype=np.float64)
CENTRAL_DIFF_Y = CENTRAL_DIFF_X.T.copy()


class ReadinessState(enum.Enum):
    LOADING = "loading"
    READY = "ready"
    FAILED = "failed"


@dataclass(frozen=True)
class Readiness:
    """Readiness of a service object, with a reason when it failed."""

    state: ReadinessState
    reason: Optional[str] = None

    @property
    def ready(self) -> bool:
        return self.state is ReadinessState.READY


def _correlate(field: np.ndarray, kernel: np.ndarray) -> np.ndarray:
    """Same-size 2D correlation with zero padding outside the field."""
    return cv2.filter2D(
        field, cv2.CV_64F, kernel, borderType=cv2.BORDER_CONSTANT
    )


def validate_image(image: np.ndarray) -> np.ndarray:
    """Check that ``image`` is a non-empty HxWx3 numeric raster.

    Args:
        image: Candidate RGB image

    Returns:
        The image as a float64 array
    """
    if not isinstance(image, np.ndarray):
        raise InputInvalidError(
            f"Expected image as numpy array, got {type(image).__name__}"
        )
    if image.ndim != 3 or image.shape[2] != 3:
        raise InputInvalidError(f"Expected HxWx3 RGB image, got shape {image.shape}")
    if image.shape[0] == 0 or image.shape[1] == 0:
        raise InputInvalidError(f"Image has zero dimension: {image.shape}")
    if not (np.issubdtype(image.dtype, np.number) or image.dtype == np.bool_):
        raise InputInvalidError(f"Image dtype {image.dtype} is not numeric")

    pixels = image.astype(np.float64)
    if not np.all(np.isfinite(pixels)):
        raise InputInvalidError("Image contains non-finite samples")
    return pixels


def to_grayscale(image: np.ndarray) -> np.ndarray:
    """Reduce an RGB image to grayscale by channel-wise mean, scaled to [0, 1]."""
    return image.astype(np.float64).mean(axis=2) / 255.0


def sobel_edges(gray: np.ndarray) -> np.ndarray:
    """Edge magnitude sqrt(gx^2 + gy^2) from the 3x3 Sobel kernels."""
    gx = _correlate(gray, SOBEL_X)
    gy = _correlate(gray, SOBEL_Y)
    return np.sqrt(gx ** 2 + gy ** 2)


def gradient_depth(gray: np.ndarray) -> np.ndarray:
    """Shading cue: central-difference gradient magnitude."""
    dx = _correlate(gray, CENTRAL_DIFF_X)
    dy = _correlate(gray, CENTRAL_DIFF_Y)
    return np.sqrt(dx ** 2 + dy ** 2)


def gaussian_kernel(kernel_size: int = 5) -> np.ndarray:
    """Build a normalized isotropic Gaussian kernel with sigma = size / 3.

    Args:
        kernel_size: Kernel width and height (must be odd)

    Returns:
        kernel_size x kernel_size kernel summing to 1
    """
    if kernel_size < 1 or kernel_size % 2 == 0:
        raise ValueError(f"Kernel size must be a positive odd integer, got {kernel_size}")

    sigma = kernel_size / 3
    kernel_1d = cv2.getGaussianKernel(kernel_size, sigma, cv2.CV_64F)
    kernel = kernel_1d @ kernel_1d.T
    return kernel / kernel.sum()


def gaussian_blur(field: np.ndarray, kernel_size: int = 5) -> np.ndarray:
    """Smooth a 2D field with a Gaussian kernel, same-size output."""
    return _correlate(field, gaussian_kernel(kernel_size))


def normalize_depth(field: np.ndarray, epsilon: float = 1e-7) -> np.ndarray:
    """Min-max normalize to [0, 1]; epsilon keeps a flat field finite."""
    min_val = np.min(field)
    max_val = np.max(field)
    return (field - min_val) / (max_val - min_val + epsilon)


class DepthEstimator:
    """Edge-based depth estimation for pottery fragments.

    The estimator is created once and handed to whoever needs it. It must be
    initialized before use; ``status`` reports whether it is ready.
    """

    def __init__(self, config: Optional[DepthConfig] = None):
        self.config = config or DepthConfig()
        self._status = Readiness(ReadinessState.LOADING)

    @property
    def status(self) -> Readiness:
        return self._status

    @property
    def initialized(self) -> bool:
        return self._status.ready

    def initialize(self) -> "DepthEstimator":
        """Run the one-time readiness step.

        Validates the configured weights and blur kernel so that a bad
        configuration fails here rather than on the first capture.
        """
        try:
            gaussian_kernel(self.config.blur_kernel_size)
            if self.config.epsilon <= 0:
                raise ValueError(f"Epsilon must be positive, got {self.config.epsilon}")
        except ValueError as e:
            self._status = Readiness(ReadinessState.FAILED, str(e))
            logger.error(f"DepthEstimator failed to initialize: {e}")
            raise

        self._status = Readiness(ReadinessState.READY)
        logger.info("DepthEstimator initialized")
        return self

    def dispose(self) -> None:
        self._status = Readiness(ReadinessState.LOADING)

    def estimate_depth(self, image: np.ndarray) -> np.ndarray:
        """Estimate a relative depth map from an RGB image.

        Args:
            image: HxWx3 RGB image (8-bit samples)

        Returns:
            HxW depth map normalized to [0, 1]
        """
        if not self.initialized:
            raise NotInitializedError("DepthEstimator not initialized")

        start_time = time.perf_counter()
        pixels = validate_image(image)

        gray = to_grayscale(pixels)

        # Strong edges = steep curvature = low relative depth
        edges = sobel_edges(gray)
        depth_from_edges = 1.0 - edges

        shading = gradient_depth(gray)

        combined = (
            self.config.edge_weight * depth_from_edges
            + self.config.gradient_weight * shading
        )

        smoothed = gaussian_blur(combined, self.config.blur_kernel_size)
        depth = normalize_depth(smoothed, self.config.epsilon)

        elapsed_time = time.perf_counter() - start_time
        logger.debug(
            f"Depth map computed: shape={depth.shape}, "
            f"min={depth.min():.4f}, max={depth.max():.4f} "
            f"(elapsed time: {elapsed_time:.3f}s)"
        )
        return depth
