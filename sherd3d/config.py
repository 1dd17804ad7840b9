"""Configuration loading for the reconstruction pipeline.

Tunables live in ``config.yaml`` at the repository root. Every section is
optional: values missing from the file fall back to the defaults below.
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Dict, Optional

import yaml

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path(__file__).resolve().parent.parent / "config.yaml"

DEFAULT_CONFIG: Dict = {
    "depth": {
        "edge_weight": 0.6,
        "gradient_weight": 0.4,
        "blur_kernel_size": 3,
        "epsilon": 1e-7,
    },
    "projection": {
        "depth_scale": 10.0,
        "min_depth": 0.1,
        "fx": None,
        "fy": None,
        "cx": None,
        "cy": None,
    },
    "profile": {
        "window_size": 5,
        "merge_window_size": 7,
        "bucket_height": 0.5,
    },
    "mesh": {
        "segments": 64,
        "file_format": "obj",
    },
}


@dataclass(frozen=True)
class DepthConfig:
    edge_weight: float = 0.6
    gradient_weight: float = 0.4
    blur_kernel_size: int = 3
    epsilon: float = 1e-7


@dataclass(frozen=True)
class ProjectionConfig:
    depth_scale: float = 10.0
    min_depth: float = 0.1
    fx: Optional[float] = None
    fy: Optional[float] = None
    cx: Optional[float] = None
    cy: Optional[float] = None


@dataclass(frozen=True)
class ProfileConfig:
    window_size: int = 5
    merge_window_size: int = 7
    bucket_height: float = 0.5


@dataclass(frozen=True)
class MeshConfig:
    segments: int = 64
    file_format: str = "obj"


@dataclass(frozen=True)
class PipelineConfig:
    """Typed view over the configuration dictionary."""

    depth: DepthConfig = DepthConfig()
    projection: ProjectionConfig = ProjectionConfig()
    profile: ProfileConfig = ProfileConfig()
    mesh: MeshConfig = MeshConfig()

    @classmethod
    def from_dict(cls, config: Dict) -> "PipelineConfig":
        merged = _merge(DEFAULT_CONFIG, config or {})
        return cls(
            depth=_section(DepthConfig, merged["depth"]),
            projection=_section(ProjectionConfig, merged["projection"]),
            profile=_section(ProfileConfig, merged["profile"]),
            mesh=_section(MeshConfig, merged["mesh"]),
        )


def _section(section_cls, values: Dict):
    # Unknown keys are kept in the raw dict but ignored here
    known = {f.name for f in fields(section_cls)}
    return section_cls(**{k: v for k, v in values.items() if k in known})


def _merge(defaults: Dict, overrides: Dict) -> Dict:
    """Recursively merge ``overrides`` into a copy of ``defaults``."""
    result = copy.deepcopy(defaults)
    for key, value in overrides.items():
        # An empty YAML section parses to None and keeps its defaults
        if value is None and isinstance(result.get(key), dict):
            continue
        if isinstance(value, dict) and isinstance(result.get(key), dict):
            result[key] = _merge(result[key], value)
        else:
            result[key] = value
    return result


def load_config(config_path: Optional[str] = None) -> Dict:
    """Load configuration from YAML file.

    Args:
        config_path: Path to configuration file. If None, the repository
            ``config.yaml`` is used when present.

    Returns:
        Configuration dictionary with defaults filled in
    """
    if config_path is None:
        if not DEFAULT_CONFIG_PATH.exists():
            logger.debug("No config.yaml found, using built-in defaults")
            return copy.deepcopy(DEFAULT_CONFIG)
        config_path = DEFAULT_CONFIG_PATH

    with open(config_path, "r") as f:
        config = yaml.safe_load(f) or {}

    if not isinstance(config, dict):
        raise ValueError(f"Configuration file {config_path} must contain a mapping")

    logger.info(f"Loaded configuration from {config_path}")
    return _merge(DEFAULT_CONFIG, config)
