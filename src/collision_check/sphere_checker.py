"""Sphere-proxy collision checker for switchable kinematic structures.

Every frame with a positive radius carries a collision sphere centered at
its origin. Distances are signed: positive when the spheres are apart,
negative when they interpenetrate. Penetration is the negated distance, so
that a constraint ``penetration <= -margin`` keeps a pair at least
``margin`` apart.

The following queries are provided:
1. Pairwise distances/penetrations for an explicit frame-pair list,
   with Jacobians w.r.t. the joint state.
2. Broad phase: all shape pairs closer than a cutoff (proxies).
3. Total penetration and accumulated collision cost over all proxies.
"""

import logging
from dataclasses import dataclass
from typing import Sequence

import numpy as np

from kinematics import Configuration

logger = logging.getLogger(__name__)

FramePair = tuple[str, str]


@dataclass
class CollisionConfig:
    """Configuration for sphere-based collision checking.

    Attributes:
        cutoff: Broad-phase distance below which a pair becomes a proxy [m].
        exclude_adjacent: Skip pairs where one frame is the direct parent
            of the other (links sharing a joint always touch).
    """

    cutoff: float = 0.1
    exclude_adjacent: bool = True


@dataclass
class Proxy:
    """A pair of collision shapes found by the broad phase."""

    frame_a: str
    frame_b: str
    distance: float

    @property
    def penetration(self) -> float:
        return max(0.0, -self.distance)


class SphereCollisionChecker:
    """Sphere-based collision queries on a Configuration.

    Usage:
        checker = SphereCollisionChecker(C)
        d = checker.pair_distances([("ball_a", "ball_b")])
        p = checker.total_penetration()
    """

    def __init__(
        self,
        configuration: Configuration,
        config: CollisionConfig | None = None,
    ):
        self.configuration = configuration
        self.config = config or CollisionConfig()

    def _sphere(self, name: str) -> float:
        radius = self.configuration.frame(name).radius
        if radius <= 0.0:
            raise ValueError(f"Frame '{name}' has no collision shape")
        return radius

    def shape_frames(self) -> list[str]:
        """Names of all frames carrying a collision sphere."""
        return [f.name for f in self.configuration if f.radius > 0.0]

    def candidate_pairs(self) -> list[FramePair]:
        """All shape pairs considered by the broad phase."""
        names = self.shape_frames()
        pairs = []
        for i, a in enumerate(names):
            for b in names[i + 1:]:
                if self.config.exclude_adjacent and self._adjacent(a, b):
                    continue
                pairs.append((a, b))
        return pairs

    def _adjacent(self, a: str, b: str) -> bool:
        C = self.configuration
        return C.frame(a).parent == b or C.frame(b).parent == a

    def _distance(self, a: str, b: str) -> tuple[float, np.ndarray]:
        """Signed distance and unit normal from b towards a."""
        C = self.configuration
        diff = C.position(a) - C.position(b)
        center_dist = float(np.linalg.norm(diff))
        if center_dist < 1e-12:
            normal = np.array([0.0, 0.0, 1.0])
        else:
            normal = diff / center_dist
        return center_dist - self._sphere(a) - self._sphere(b), normal

    def pair_distances(self, pairs: Sequence[FramePair]) -> np.ndarray:
        """Signed distances for each pair (positive = separated)."""
        return np.array([self._distance(a, b)[0] for a, b in pairs])

    def pair_penetrations(
        self,
        pairs: Sequence[FramePair],
    ) -> tuple[np.ndarray, np.ndarray]:
        """Penetration (negated distance) per pair and its Jacobian.

        Args:
            pairs: Frame-name pairs, both frames with a collision sphere.

        Returns:
            Tuple of (y (m,), J (m, n)) with n the joint-state dimension.
        """
        C = self.configuration
        y = np.zeros(len(pairs))
        J = np.zeros((len(pairs), C.joint_state_dim))
        for i, (a, b) in enumerate(pairs):
            dist, normal = self._distance(a, b)
            y[i] = -dist
            J[i] = -normal @ (C.position_jacobian(a) - C.position_jacobian(b))
        return y, J

    def proxies(self, cutoff: float | None = None) -> list[Proxy]:
        """Broad phase: all candidate pairs closer than ``cutoff``."""
        if cutoff is None:
            cutoff = self.config.cutoff
        found = []
        for a, b in self.candidate_pairs():
            dist, _ = self._distance(a, b)
            if dist < cutoff:
                found.append(Proxy(a, b, dist))
        return found

    def total_penetration(self) -> float:
        """Sum of penetration depths over all proxies."""
        return float(sum(p.penetration for p in self.proxies(cutoff=0.0)))

    def accumulated_collisions(
        self,
        margin: float = 0.0,
    ) -> tuple[float, np.ndarray]:
        """Hinge cost sum(max(0, margin - d)) over all pairs, with Jacobian.

        Args:
            margin: Distance below which a pair starts to contribute [m].

        Returns:
            Tuple of (cost, J (n,)).
        """
        C = self.configuration
        cost = 0.0
        J = np.zeros(C.joint_state_dim)
        for a, b in self.candidate_pairs():
            dist, normal = self._distance(a, b)
            if dist < margin:
                cost += margin - dist
                J -= normal @ (C.position_jacobian(a) - C.position_jacobian(b))
        return cost, J

    def report_proxies(self, cutoff: float | None = None) -> list[Proxy]:
        """Log and return the current proxies."""
        found = self.proxies(cutoff)
        for p in found:
            logger.info(
                "proxy %s-%s: distance = %.4f m", p.frame_a, p.frame_b,
                p.distance,
            )
        if not found:
            logger.info("no proxies")
        return found
