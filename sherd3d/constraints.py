"""Fragment-type constraints applied after the mesh is built.

Rim and base constraints are extension points: they detect whether a rim or
base fragment is present and currently leave the mesh untouched.
"""

from __future__ import annotations

import logging
from typing import List, Sequence

from sherd3d.fragments import Fragment
from sherd3d.mesh import PotteryMesh

logger = logging.getLogger(__name__)


class FragmentConstraint:
    """Base class for constraints driven by fragment classifications."""

    name = "constraint"

    def applies(self, fragments: Sequence[Fragment]) -> bool:
        raise NotImplementedError

    def apply(self, mesh: PotteryMesh, fragments: Sequence[Fragment]) -> PotteryMesh:
        raise NotImplementedError


class _TypePresenceConstraint(FragmentConstraint):
    fragment_type = ""

    def applies(self, fragments: Sequence[Fragment]) -> bool:
        return any(f.fragment_type == self.fragment_type for f in fragments)

    def apply(self, mesh: PotteryMesh, fragments: Sequence[Fragment]) -> PotteryMesh:
        logger.info(f"Applying {self.name} constraints")
        return mesh


class RimConstraint(_TypePresenceConstraint):
    name = "rim"
    fragment_type = "rim"


class BaseConstraint(_TypePresenceConstraint):
    name = "base"
    fragment_type = "base"


def default_constraints() -> List[FragmentConstraint]:
    return [RimConstraint(), BaseConstraint()]


def apply_constraints(
    mesh: PotteryMesh,
    fragments: Sequence[Fragment],
    constraints: Sequence[FragmentConstraint]
) -> PotteryMesh:
    """Run every applicable constraint over the mesh in order."""
    for constraint in constraints:
        if constraint.applies(fragments):
            mesh = constraint.apply(mesh, fragments)
    return mesh
