"""Capture pipeline: photo -> classification -> depth -> points -> mesh.

The depth estimator, classifier and reconstructor are created once by the
caller and injected here. A capture that fails leaves previously stored
fragments untouched.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Dict, Mapping, Optional, Union

import numpy as np

from sherd3d.config import PipelineConfig
from sherd3d.depth import DepthEstimator
from sherd3d.errors import NotInitializedError
from sherd3d.evaluate import Timer
from sherd3d.fragments import Classification, Fragment
from sherd3d.mesh import PotteryMesh
from sherd3d.projection import CameraIntrinsics, depth_to_point_cloud
from sherd3d.reconstruct import PotteryReconstructor

logger = logging.getLogger(__name__)

# Opaque classifier: image -> Classification or {fragmentType, confidence}
FragmentClassifier = Callable[[np.ndarray], Union[Classification, Mapping]]


@dataclass
class CaptureResult:
    """Everything produced by one processed photo."""

    classification: Classification
    depth: np.ndarray
    point_cloud: np.ndarray
    fragment: Fragment
    mesh: PotteryMesh
    stats: Dict
    timings: Dict[str, float]


class FragmentPipeline:
    """Runs captured images through depth estimation into the reconstructor."""

    def __init__(
        self,
        estimator: DepthEstimator,
        reconstructor: PotteryReconstructor,
        classifier: Optional[FragmentClassifier] = None,
        config: Optional[PipelineConfig] = None
    ):
        self.estimator = estimator
        self.reconstructor = reconstructor
        self.classifier = classifier
        self.config = config or PipelineConfig()
        self.last_point_cloud = np.zeros((0, 3))

    @classmethod
    def from_config(
        cls,
        config: PipelineConfig,
        classifier: Optional[FragmentClassifier] = None
    ) -> "FragmentPipeline":
        """Create and initialize all services from one configuration."""
        estimator = DepthEstimator(config.depth).initialize()
        reconstructor = PotteryReconstructor(config.profile, config.mesh)
        return cls(estimator, reconstructor, classifier, config)

    def _intrinsics(self) -> CameraIntrinsics:
        projection = self.config.projection
        return CameraIntrinsics(projection.fx, projection.fy, projection.cx, projection.cy)

    def classify(self, image: np.ndarray) -> Classification:
        if self.classifier is None:
            return Classification()
        return Classification.from_mapping(self.classifier(image))

    def process_image(
        self,
        image: np.ndarray,
        classification: Union[Classification, Mapping, None] = None
    ) -> CaptureResult:
        """Process one capture and return the updated reconstruction.

        Args:
            image: HxWx3 RGB image
            classification: Label for the fragment; the injected classifier
                is used when omitted

        Returns:
            Capture result with depth map, points, new fragment and mesh
        """
        if not self.estimator.initialized:
            raise NotInitializedError("Depth estimator must be initialized before processing")

        timer = Timer("Capture")
        timer.start()

        if classification is None:
            label = self.classify(image)
        else:
            label = Classification.from_mapping(classification)
        timer.lap("classify")

        depth = self.estimator.estimate_depth(image)
        timer.lap("estimate_depth")

        projection = self.config.projection
        point_cloud = depth_to_point_cloud(
            depth,
            self._intrinsics(),
            depth_scale=projection.depth_scale,
            min_depth=projection.min_depth,
        )
        timer.lap("depth_to_point_cloud")

        # Only a fully processed capture reaches the store
        fragment = self.reconstructor.add_classified(point_cloud, label)
        self.last_point_cloud = point_cloud

        mesh = self.reconstructor.reconstruct()
        timer.lap("reconstruct")

        logger.info(
            f"Processed {label.fragment_type} capture ({label.confidence:.2f}): "
            f"{point_cloud.shape[0]} points (elapsed time: {timer.elapsed:.2f}s)"
        )

        return CaptureResult(
            classification=label,
            depth=depth,
            point_cloud=point_cloud,
            fragment=fragment,
            mesh=mesh,
            stats=self.reconstructor.get_stats(),
            timings=timer.timings,
        )
