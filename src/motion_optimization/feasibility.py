"""Feasibility checks and local repair of a single configuration.

PoseTool checks a configuration against joint limits and collisions. With
``solve=True`` it repairs the configuration in place: limit violations are
clipped, collisions are resolved by a one-step motion problem (k_order = 1,
T = 1) that stays close to the current joint state:

    min  precision_c * |q - q_current|^2
    s.t. penetration(q) <= -margin  (explicit pairs, or every proxy pair)
         lower <= q <= upper        (when limits are in play)
"""

import logging
from dataclasses import dataclass, field
from typing import Optional, Sequence

import numpy as np

from collision_check import CollisionConfig, FramePair, SphereCollisionChecker
from kinematics import Configuration

from .errors import FeasibilityError, StructureError
from .features import JointLimits, JointState, PairCollision
from .objectives import ObjectiveType
from .problem import MotionProblem, ProblemConfig
from .reporting import format_report
from .solver import SolverConfig

logger = logging.getLogger(__name__)


@dataclass
class RepairConfig:
    """Configuration for collision repair.

    Attributes:
        control_precision: Weight of the stay-close cost.
        constraint_precision: Scale of the collision/limit inequalities.
        margin: Distance every repaired pair keeps [m].
        violation_tolerance: Largest remaining inequality violation for
            the repair to count as successful.
        bounds_tolerance: Largest limit excess after repair that is clipped
            silently; anything above is a StructureError.
        simultaneous: Repair limits and collisions in one solve instead of
            clipping first.
        collision: Broad-phase settings; without explicit pairs the repair
            constrains every proxy pair within the cutoff.
        solver: Solver settings for the repair problem.
    """

    control_precision: float = 1e-1
    constraint_precision: float = 1e2
    margin: float = 1e-3
    violation_tolerance: float = 1e-1
    bounds_tolerance: float = 1e-6
    simultaneous: bool = False
    collision: CollisionConfig = field(default_factory=CollisionConfig)
    solver: SolverConfig = field(
        default_factory=lambda: SolverConfig(stop_tolerance=1e-3),
    )


@dataclass
class FeasibilityReport:
    """Outcome of a feasibility check.

    Truthy when the configuration is (or has been made) feasible.

    Attributes:
        feasible: Final verdict.
        repaired: Whether the configuration was modified.
        collisions: (frame_a, frame_b, penetration) per colliding pair found
            before any repair.
        limit_violations: (joint name, value, lower, upper) per violated
            joint found before any repair.
        message: Short human-readable summary.
    """

    feasible: bool
    repaired: bool = False
    collisions: list[tuple[str, str, float]] = field(default_factory=list)
    limit_violations: list[tuple[str, float, float, float]] = field(
        default_factory=list,
    )
    message: str = ""

    def __bool__(self) -> bool:
        return self.feasible

    def merge(self, other: "FeasibilityReport") -> "FeasibilityReport":
        return FeasibilityReport(
            feasible=self.feasible and other.feasible,
            repaired=self.repaired or other.repaired,
            collisions=self.collisions + other.collisions,
            limit_violations=self.limit_violations + other.limit_violations,
            message="; ".join(m for m in (self.message, other.message) if m),
        )


class PoseTool:
    """Limit and collision checks with in-place repair.

    Usage:
        tool = PoseTool(C)
        report = tool.check_limits_and_collisions(solve=True)
        if not report:
            ...
    """

    def __init__(
        self,
        configuration: Configuration,
        config: RepairConfig | None = None,
    ):
        self.configuration = configuration
        self.config = config or RepairConfig()

    def _bounds(self, limits: Optional[np.ndarray]) -> np.ndarray:
        if limits is None:
            return self.configuration.get_limits()
        return np.asarray(limits, dtype=np.float64).reshape(-1, 2)

    def _limits_in_play(self, limits: Optional[np.ndarray]) -> bool:
        return bool(np.any(np.isfinite(self._bounds(limits))))

    def limit_violations(
        self,
        limits: Optional[np.ndarray] = None,
    ) -> list[tuple[str, float, float, float]]:
        """Joints whose value lies outside [lower, upper]."""
        B = self._bounds(limits)
        q = self.configuration.get_joint_state()
        names = self.configuration.joint_names
        return [
            (names[i], float(q[i]), float(B[i, 0]), float(B[i, 1]))
            for i in range(len(q))
            if q[i] < B[i, 0] or q[i] > B[i, 1]
        ]

    def collisions(
        self,
        pairs: Optional[Sequence[FramePair]] = None,
    ) -> list[tuple[str, str, float]]:
        """Colliding pairs with their penetration depth."""
        checker = SphereCollisionChecker(self.configuration, self.config.collision)
        if pairs:
            y, _ = checker.pair_penetrations(pairs)
            return [
                (a, b, float(p)) for (a, b), p in zip(pairs, y) if p > 0.0
            ]
        return [
            (p.frame_a, p.frame_b, p.penetration)
            for p in checker.proxies(cutoff=0.0)
        ]

    def check_limits(
        self,
        limits: Optional[np.ndarray] = None,
        solve: bool = False,
        strict: bool = False,
    ) -> FeasibilityReport:
        """Check joint limits; with ``solve`` clip the state into them.

        Args:
            limits: Bounds (n, 2); defaults to the configuration's limits.
            solve: Clip violating joints in place.
            strict: Raise FeasibilityError instead of returning a failure.

        Returns:
            FeasibilityReport listing the violations found.
        """
        violations = self.limit_violations(limits)
        if not violations:
            return FeasibilityReport(True)

        if not solve:
            logger.warning("limit check failed for %d joints", len(violations))
            for name, value, lo, hi in violations:
                logger.debug("  %s = %.4f outside [%.4f, %.4f]", name, value, lo, hi)
            if strict:
                raise FeasibilityError("limit check failed")
            return FeasibilityReport(
                False, limit_violations=violations, message="limit check failed",
            )

        B = self._bounds(limits)
        q = self.configuration.get_joint_state()
        self.configuration.set_joint_state(np.clip(q, B[:, 0], B[:, 1]))
        logger.info("clipped %d joints into their limits", len(violations))
        return FeasibilityReport(
            True, repaired=True, limit_violations=violations,
            message="limits clipped",
        )

    def check_collisions(
        self,
        pairs: Optional[Sequence[FramePair]] = None,
        solve: bool = False,
        strict: bool = False,
        limits: Optional[np.ndarray] = None,
    ) -> FeasibilityReport:
        """Check collisions; with ``solve`` push the configuration out.

        Args:
            pairs: Explicit frame pairs; None checks all shape pairs.
            solve: Repair the configuration in place.
            strict: Raise FeasibilityError instead of returning a failure.
            limits: Bounds respected by the repair; defaults to the
                configuration's limits.

        Returns:
            FeasibilityReport listing the collisions found.
        """
        found = self.collisions(pairs)
        if not found:
            return FeasibilityReport(True)

        for a, b, depth in found:
            logger.debug("in collision: %s-%s %.4f", a, b, depth)

        if not solve:
            logger.warning("collision check failed for %d pairs", len(found))
            if not pairs:
                SphereCollisionChecker(
                    self.configuration, self.config.collision,
                ).report_proxies(cutoff=0.0)
            if strict:
                raise FeasibilityError("collision check failed")
            return FeasibilityReport(
                False, collisions=found, message="collision check failed",
            )

        report = self._repair(pairs, limits, self._limits_in_play(limits), strict)
        report.collisions = found
        return report

    def check_limits_and_collisions(
        self,
        limits: Optional[np.ndarray] = None,
        pairs: Optional[Sequence[FramePair]] = None,
        solve: bool = False,
        strict: bool = False,
    ) -> FeasibilityReport:
        """Limits first, then collisions; stops at the first failure.

        With ``RepairConfig.simultaneous`` and ``solve`` a single repair
        problem handles both.
        """
        if solve and self.config.simultaneous:
            violations = self.limit_violations(limits)
            found = self.collisions(pairs)
            if not violations and not found:
                return FeasibilityReport(True)
            report = self._repair(pairs, limits, True, strict)
            report.collisions = found
            report.limit_violations = violations
            return report

        report = self.check_limits(limits, solve, strict)
        if not report:
            return report
        return report.merge(self.check_collisions(pairs, solve, strict, limits))

    def _repair(
        self,
        pairs: Optional[Sequence[FramePair]],
        limits: Optional[np.ndarray],
        include_limits: bool,
        strict: bool,
    ) -> FeasibilityReport:
        cfg = self.config
        problem = MotionProblem(
            self.configuration,
            ProblemConfig(steps=1, duration=1.0, k_order=1, init_noise=0.0),
        )
        problem.add_objective(
            "stay_close", JointState(order=1), ObjectiveType.SOS,
            precision=cfg.control_precision,
        )
        if not pairs:
            checker = SphereCollisionChecker(self.configuration, cfg.collision)
            pairs = [(p.frame_a, p.frame_b) for p in checker.proxies()]
        problem.add_objective(
            "collisions", PairCollision(list(pairs)), ObjectiveType.INEQ,
            target=-cfg.margin, precision=cfg.constraint_precision,
        )
        if include_limits:
            problem.add_objective(
                "limits", JointLimits(bounds=self._bounds(limits)),
                ObjectiveType.INEQ, precision=cfg.constraint_precision,
            )

        result = problem.optimize(cfg.solver)
        if result.ineq_violation > cfg.violation_tolerance:
            logger.warning(
                "collision repair failed (ineq = %.4g)\n%s",
                result.ineq_violation, format_report(problem.get_report()),
            )
            if strict:
                raise FeasibilityError("collision resolution failed")
            return FeasibilityReport(False, message="collision resolution failed")

        q = problem.trajectory.horizon(0).get_joint_state()
        if include_limits:
            q = self._enforce_bounds(q, limits)
        self.configuration.set_joint_state(q)
        logger.info("collisions resolved")
        return FeasibilityReport(True, repaired=True, message="collisions resolved")

    def _enforce_bounds(
        self,
        q: np.ndarray,
        limits: Optional[np.ndarray],
    ) -> np.ndarray:
        """Clip solver round-off; a real violation is a StructureError."""
        B = self._bounds(limits)
        excess = np.maximum(B[:, 0] - q, q - B[:, 1])
        worst = float(np.max(excess, initial=0.0))
        if worst > self.config.bounds_tolerance:
            raise StructureError(
                f"repaired configuration violates its limits by {worst:.3g}"
            )
        return np.clip(q, B[:, 0], B[:, 1])
