"""In-memory store of captured pottery fragments."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Dict, Iterator, List, Mapping, Optional, Tuple, Union

import numpy as np

from sherd3d.errors import InputInvalidError

logger = logging.getLogger(__name__)

FRAGMENT_TYPES = ("rim", "body", "base", "unknown")
DEFAULT_FRAGMENT_TYPE = "unknown"
DEFAULT_CONFIDENCE = 0.5


@dataclass(frozen=True)
class Classification:
    """Label attached to a fragment by the external classifier."""

    fragment_type: str = DEFAULT_FRAGMENT_TYPE
    confidence: float = DEFAULT_CONFIDENCE

    @classmethod
    def from_mapping(cls, data: Optional[Mapping]) -> "Classification":
        """Build from ``{fragmentType, confidence}`` (camelCase or snake_case)."""
        if data is None:
            return cls()
        if isinstance(data, Classification):
            return data

        fragment_type = data.get("fragmentType", data.get("fragment_type"))
        confidence = data.get("confidence")
        return cls(
            fragment_type=fragment_type or DEFAULT_FRAGMENT_TYPE,
            confidence=float(confidence) if confidence else DEFAULT_CONFIDENCE,
        )


@dataclass(frozen=True, eq=False)
class Fragment:
    """One captured sherd: its point cloud plus classification tag."""

    points: np.ndarray
    fragment_type: str
    confidence: float
    index: int
    timestamp: float

    @property
    def n_points(self) -> int:
        return int(self.points.shape[0])


def as_point_array(points) -> np.ndarray:
    """Coerce ``points`` to an Nx3 float array.

    Accepts arrays, sequences of (x, y, z) triples and sequences of
    ``{x, y, z}`` mappings.
    """
    if isinstance(points, np.ndarray):
        array = points.astype(np.float64)
    else:
        points = list(points)
        if points and isinstance(points[0], Mapping):
            try:
                array = np.array(
                    [[p["x"], p["y"], p["z"]] for p in points], dtype=np.float64
                )
            except KeyError as e:
                raise InputInvalidError(f"Point mapping missing coordinate {e}") from e
        else:
            array = np.array(points, dtype=np.float64)

    if array.size == 0:
        return np.zeros((0, 3))
    if array.ndim != 2 or array.shape[1] != 3:
        raise InputInvalidError(f"Expected Nx3 points array, got shape {array.shape}")
    return array


class FragmentStore:
    """Ordered collection of fragments contributed so far.

    The store owns every fragment exclusively; callers get read-only views.
    """

    def __init__(self):
        self._fragments: List[Fragment] = []
        self._next_index = 0

    def add_fragment(
        self,
        points,
        fragment_type: Optional[str] = None,
        confidence: Optional[float] = None
    ) -> Fragment:
        """Append a new fragment.

        Args:
            points: Nx3 points (may be empty)
            fragment_type: Free-form label, "unknown" when missing
            confidence: Classifier confidence, 0.5 when missing

        Returns:
            The stored fragment
        """
        array = as_point_array(points)
        array.setflags(write=False)

        fragment = Fragment(
            points=array,
            fragment_type=fragment_type or DEFAULT_FRAGMENT_TYPE,
            confidence=float(confidence) if confidence else DEFAULT_CONFIDENCE,
            index=self._next_index,
            timestamp=time.time(),
        )
        self._fragments.append(fragment)
        self._next_index += 1

        if fragment.fragment_type not in FRAGMENT_TYPES:
            logger.debug(f"Storing fragment with custom label '{fragment.fragment_type}'")

        logger.info(
            f"Added {fragment.fragment_type} fragment with {fragment.n_points} points"
        )
        return fragment

    def add_classified(
        self,
        points,
        classification: Union[Classification, Mapping, None] = None
    ) -> Fragment:
        label = Classification.from_mapping(classification)
        return self.add_fragment(points, label.fragment_type, label.confidence)

    def clear(self) -> None:
        self._fragments = []
        self._next_index = 0
        logger.info("Cleared fragment store")

    @property
    def fragments(self) -> Tuple[Fragment, ...]:
        return tuple(self._fragments)

    def get_stats(self) -> Dict:
        """Diagnostics: counts and labels in insertion order."""
        return {
            "fragment_count": len(self._fragments),
            "total_points": sum(f.n_points for f in self._fragments),
            "fragment_types": [f.fragment_type for f in self._fragments],
        }

    def __len__(self) -> int:
        return len(self._fragments)

    def __iter__(self) -> Iterator[Fragment]:
        return iter(tuple(self._fragments))
