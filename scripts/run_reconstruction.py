#!/usr/bin/env python3
"""
Pottery Reconstruction Pipeline

This script runs a folder of fragment photos through depth estimation,
point cloud projection and profile merging, and writes the resulting
lathe mesh of the vessel.
"""

from __future__ import annotations

import argparse
import datetime
import json
import logging
import os
import sys
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import cv2
import numpy as np
from tqdm import tqdm

# Add parent directory to path
sys.path.append(str(Path(__file__).resolve().parent.parent))

from sherd3d import evaluate, mesh, visualise
from sherd3d.config import PipelineConfig, load_config
from sherd3d.errors import InputInvalidError
from sherd3d.pipeline import FragmentPipeline


# Set up logging
logging.basicConfig(
    level=logging.INFO,
    format="[%(asctime)s] [%(levelname)s] [%(name)s] %(message)s",
    handlers=[
        logging.StreamHandler(),
    ],
)
logger = logging.getLogger("pipeline")

IMAGE_EXTENSIONS = ["*.jpg", "*.jpeg", "*.png", "*.bmp"]


def list_images(image_dir: str) -> List[Path]:
    """List image files in a directory, sorted by name."""
    image_files = set()
    for ext in IMAGE_EXTENSIONS:
        image_files.update(Path(image_dir).glob(ext))
        image_files.update(Path(image_dir).glob(ext.upper()))
    return sorted(image_files)


def read_image(image_file: Path) -> Optional[np.ndarray]:
    """Read an image as RGB, or None if OpenCV cannot decode it."""
    image = cv2.imread(str(image_file), cv2.IMREAD_COLOR)
    if image is None:
        return None
    return cv2.cvtColor(image, cv2.COLOR_BGR2RGB)


def load_labels(labels_path: Optional[str]) -> Dict[str, Dict]:
    """Load ``{file name: {fragmentType, confidence}}`` classification labels.

    Args:
        labels_path: Path to a JSON file, or None

    Returns:
        Mapping from image file name to classification
    """
    if labels_path is None:
        return {}

    with open(labels_path, "r") as f:
        labels = json.load(f)

    if not isinstance(labels, dict):
        raise ValueError(f"Labels file {labels_path} must contain a JSON object")

    logger.info(f"Loaded {len(labels)} fragment labels from {labels_path}")
    return labels


def save_results(
    output_dir: str,
    point_clouds: List[Tuple[str, np.ndarray]],
    profile: np.ndarray,
    mesh_obj: mesh.PotteryMesh,
    file_format: str = "obj"
) -> None:
    """Save reconstruction results to output directory.

    Args:
        output_dir: Path to output directory
        point_clouds: (image name, Nx3 points) per stored fragment
        profile: Merged radius profile
        mesh_obj: Reconstructed pottery mesh
        file_format: Mesh file format
    """
    logger.info(f"Saving results to {output_dir}")
    os.makedirs(output_dir, exist_ok=True)

    for i, (name, points) in enumerate(point_clouds):
        points_file = os.path.join(output_dir, f"points_{i:03d}.npy")
        with open(points_file, "wb") as f:
            np.save(f, points)
        logger.debug(f"Saved {points.shape[0]} points of {name} to {points_file}")

    profile_file = os.path.join(output_dir, "profile.npy")
    with open(profile_file, "wb") as f:
        np.save(f, profile)

    mesh_file = os.path.join(output_dir, f"mesh.{file_format}")
    mesh.save_mesh(mesh_obj, mesh_file, file_format)

    logger.info("Results saved successfully")


def save_report(output_dir: str, metrics: Dict) -> str:
    """Write the metrics report as report.json and return its path."""
    metrics_file = os.path.join(output_dir, "report.json")
    with open(metrics_file, "w") as f:
        json.dump(metrics, f, indent=2)
    return metrics_file


def run_reconstruction(
    image_dir: str,
    output_dir: str,
    labels_path: Optional[str] = None,
    visualise_results: bool = False,
    config_path: Optional[str] = None
) -> Dict:
    """Run the fragment photos in ``image_dir`` through the reconstruction.

    Args:
        image_dir: Path to directory containing fragment photos
        output_dir: Path to output directory
        labels_path: JSON file with per-image classifications (optional)
        visualise_results: Whether to write figures and open the viewer
        config_path: Path to configuration file

    Returns:
        Dictionary of reconstruction metrics
    """
    pipeline_timer = evaluate.Timer("Pipeline")
    pipeline_timer.start()

    os.makedirs(output_dir, exist_ok=True)

    file_handler = logging.FileHandler(os.path.join(output_dir, "log.txt"))
    file_handler.setFormatter(logging.Formatter("[%(asctime)s] [%(levelname)s] [%(name)s] %(message)s"))
    logging.getLogger().addHandler(file_handler)

    try:
        config = PipelineConfig.from_dict(load_config(config_path))
        labels = load_labels(labels_path)

        pipeline = FragmentPipeline.from_config(config)
        metrics = evaluate.ReconstructionMetrics()

        image_files = list_images(image_dir)
        if not image_files:
            raise FileNotFoundError(f"No images found in {image_dir}")
        metrics.update("n_images", len(image_files))

        point_clouds: List[Tuple[str, np.ndarray]] = []
        n_failed = 0
        result = None

        for image_file in tqdm(image_files, desc="Processing fragments"):
            image = read_image(image_file)
            if image is None:
                logger.warning(f"Failed to read {image_file}")
                n_failed += 1
                continue

            try:
                result = pipeline.process_image(image, labels.get(image_file.name))
            except InputInvalidError as e:
                logger.warning(f"Skipping {image_file.name}: {e}")
                n_failed += 1
                continue

            for stage, time_s in result.timings.items():
                metrics.update_stage_timing(stage, time_s)
            point_clouds.append((image_file.name, result.point_cloud))

            if visualise_results:
                depth_path = os.path.join(output_dir, f"depth_{len(point_clouds) - 1:03d}.png")
                visualise.create_depth_map_visualization(image, result.depth, depth_path)

        metrics.update("n_failed_images", n_failed)

        # Final mesh (the default vase when nothing could be processed)
        final_mesh = result.mesh if result is not None else pipeline.reconstructor.reconstruct()
        profile = pipeline.reconstructor.last_profile

        metrics.compute_store_metrics(pipeline.reconstructor.get_stats())
        metrics.compute_mesh_metrics(final_mesh, [points for _, points in point_clouds])

        if visualise_results:
            fragments = pipeline.reconstructor.fragments
            visualise.save_profile_plot(
                pipeline.reconstructor.extract_profiles(fragments),
                profile,
                os.path.join(output_dir, "profile.png"),
                labels=[f.fragment_type for f in fragments],
            )

        with evaluate.Timer("Save Results") as timer:
            save_results(
                output_dir, point_clouds, profile, final_mesh, config.mesh.file_format
            )
        metrics.update_stage_timing("save_results", timer.elapsed)
        metrics.update("runtime_s", pipeline_timer.elapsed)

        metrics_dict = metrics.to_dict()
        metrics_dict["datetime"] = datetime.datetime.now().isoformat()
        save_report(output_dir, metrics_dict)

        logger.info("\n" + metrics.summary())

        if visualise_results:
            visualise.show(
                final_mesh, pipeline.last_point_cloud,
                save_path=os.path.join(output_dir, "reconstruction.png")
            )

        return metrics.to_dict()
    finally:
        logging.getLogger().removeHandler(file_handler)
        file_handler.close()


def main():
    """Main function to parse arguments and run the reconstruction."""
    parser = argparse.ArgumentParser(description="Pottery Reconstruction Pipeline")
    parser.add_argument(
        "--images", "-i", dest="image_dir", required=True,
        help="Path to directory containing fragment photos"
    )
    parser.add_argument(
        "--output", "-o", dest="output_dir", default="results/run1",
        help="Path to output directory"
    )
    parser.add_argument(
        "--labels", "-l", dest="labels_path", default=None,
        help="JSON file mapping image names to {fragmentType, confidence}"
    )
    parser.add_argument(
        "--visualise", "-v", dest="visualise", action="store_true",
        help="Write debug figures and open the 3D viewer"
    )
    parser.add_argument(
        "--config", "-c", dest="config_path", default=None,
        help="Path to configuration file"
    )

    args = parser.parse_args()

    try:
        run_reconstruction(
            args.image_dir,
            args.output_dir,
            args.labels_path,
            args.visualise,
            args.config_path
        )
    except Exception as e:
        logger.exception(f"Error running reconstruction: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
