"""Trajectory problem assembler.

A MotionProblem discretizes a motion into T steps of duration tau. The
decision vector x concatenates the joint states of the T horizon
configurations; their dimensions may differ from step to step when
kinematic switches add or remove joints. Every active (objective, step)
pair contributes one residual block, laid out with the outer loop over
time and the inner loop over objectives in declaration order:

    for t in 0..T-1:
        for objective in objectives:
            if objective.precision[t] != 0: emit block (t, objective)

Each block is evaluated on the window of configurations t-order .. t.
Window entries before step 0 belong to the fixed prefix; their Jacobian
columns are dropped, since prefix joint states are not decision variables.

Usage:
    problem = MotionProblem(C, ProblemConfig(steps=20, duration=2.0))
    problem.add_control_cost(order=2)
    problem.set_position(-1, -1, "tip", ObjectiveType.EQ, target=[0.5, 0.2, 0])
    result = problem.optimize()
    q = problem.get_path()
"""

import dataclasses
import logging
from dataclasses import dataclass
from typing import Optional, Sequence

import numpy as np
from scipy import sparse
from scipy.interpolate import BSpline

from kinematics import Configuration, JointType, make_transform

from .errors import StructureError
from .features import (
    AccumulatedCollisions,
    Feature,
    JointLimits,
    JointState,
    PairCollision,
    Position,
    PositionDiff,
    VectorAlign,
)
from .objectives import Objective, ObjectiveType
from .reporting import build_report
from .solver import SolverConfig, measure, solve
from .switches import KinematicSwitch, SwitchType, Trajectory
from .timing import SolveTimer

logger = logging.getLogger(__name__)


@dataclass
class ProblemConfig:
    """Discretization and initialization settings.

    Attributes:
        steps: Number of horizon steps T.
        duration: Total motion duration [s].
        k_order: Highest finite-difference order (prefix length).
        init_noise: Standard deviation of the initial-guess jitter.
        seed: Random seed for the jitter.
        warn_threshold: Residual magnitude above which a warning is logged.
    """

    steps: int = 20
    duration: float = 5.0
    k_order: int = 2
    init_noise: float = 0.01
    seed: int = 42
    warn_threshold: float = 1e10

    @property
    def tau(self) -> float:
        return self.duration / self.steps


@dataclass(frozen=True)
class FeatureBlock:
    """One residual block of the stacked residual vector."""

    time: int
    dim: int
    type: ObjectiveType
    objective: str
    index: int = 0


@dataclass
class ProblemStructure:
    """Decision-variable dimensions and the ordered residual blocks."""

    variable_dims: list[int]
    blocks: list[FeatureBlock]

    @property
    def dim_x(self) -> int:
        return int(sum(self.variable_dims))

    @property
    def dim_phi(self) -> int:
        return int(sum(b.dim for b in self.blocks))

    @property
    def feature_types(self) -> np.ndarray:
        """Per-row residual types (dim_phi,)."""
        types = np.empty(self.dim_phi, dtype=object)
        i = 0
        for b in self.blocks:
            types[i:i + b.dim] = b.type
            i += b.dim
        return types


@dataclass
class Evaluation:
    """Residuals and Jacobian at one decision vector.

    Attributes:
        phi: Stacked residuals (dim_phi,).
        jacobian: Sparse Jacobian (dim_phi, dim_x), CSR format.
        types: Per-row ObjectiveType (dim_phi,), object array.
    """

    phi: np.ndarray
    jacobian: sparse.csr_matrix
    types: np.ndarray

    def indices(self, kind: ObjectiveType) -> np.ndarray:
        """Row indices of residuals of the given type."""
        return np.flatnonzero([t == kind for t in self.types]).astype(int)


@dataclass
class OptimizationResult:
    """Result of MotionProblem.optimize.

    Attributes:
        x_opt: Optimized decision vector (horizon joint states).
        cost: Sum of squared SOS residuals.
        eq_violation: Sum of absolute equality residuals.
        ineq_violation: Sum of positive inequality residuals.
        success: Whether the solver reported convergence.
        message: Solver status message.
        n_iterations: Solver iterations.
        n_evaluations: Problem evaluations.
        wall_time: Time measured by the solve timer [s].
    """

    x_opt: np.ndarray
    cost: float
    eq_violation: float
    ineq_violation: float
    success: bool
    message: str = ""
    n_iterations: int = 0
    n_evaluations: int = 0
    wall_time: float = 0.0


class SplineReparameterization:
    """The problem oracle expressed over B-spline coefficients z.

    x = B z, with B = (B_t ⊗ I_n) a fixed linear basis, so residuals are
    unchanged and the Jacobian is J_x B.
    """

    def __init__(self, problem: "MotionProblem", basis: np.ndarray):
        self.problem = problem
        self.basis = sparse.csr_matrix(basis)

    @property
    def num_coefficients(self) -> int:
        return self.basis.shape[1]

    def to_x(self, z: np.ndarray) -> np.ndarray:
        return self.basis @ np.asarray(z, dtype=np.float64)

    def from_x(self, x: np.ndarray) -> np.ndarray:
        """Least-squares coefficients reproducing x."""
        return np.linalg.pinv(self.basis.toarray()) @ x

    def get_structure(self) -> ProblemStructure:
        structure = self.problem.get_structure()
        n = structure.variable_dims[0]
        return ProblemStructure(
            variable_dims=[n] * (self.num_coefficients // n),
            blocks=structure.blocks,
        )

    def evaluate(self, z: np.ndarray) -> Evaluation:
        ev = self.problem.evaluate(self.to_x(z))
        return Evaluation(
            phi=ev.phi,
            jacobian=sparse.csr_matrix(ev.jacobian @ self.basis),
            types=ev.types,
        )


class MotionProblem:
    """Trajectory optimization problem over a switchable configuration.

    Objectives and switches are declared first; ``setup()`` then builds the
    configuration array and the initial guess. ``get_structure()`` and
    ``evaluate(x)`` form the oracle consumed by the solver.
    """

    def __init__(
        self,
        base: Configuration,
        config: ProblemConfig | None = None,
    ):
        """Initialize problem.

        Args:
            base: Configuration at the start of the motion. It is copied;
                later edits of ``base`` do not affect the problem.
            config: Discretization settings.
        """
        self.config = config or ProblemConfig()
        if self.config.steps < 1:
            raise StructureError("problem needs at least one step")
        self.base = base.copy()
        self.objectives: list[Objective] = []
        self.switches: list[KinematicSwitch] = []
        self.trajectory: Optional[Trajectory] = None
        self._x: Optional[np.ndarray] = None
        self.spline: Optional[SplineReparameterization] = None
        self._structure: Optional[ProblemStructure] = None
        self._rng = np.random.default_rng(self.config.seed)

    @property
    def x(self) -> np.ndarray:
        """Current decision vector; sets the problem up on first access."""
        self._require_setup()
        return self._x

    @x.setter
    def x(self, value: np.ndarray) -> None:
        self._x = value

    @property
    def steps(self) -> int:
        return self.config.steps

    @property
    def tau(self) -> float:
        return self.config.tau

    @property
    def k_order(self) -> int:
        return self.config.k_order

    # ------------------------------------------------------------------
    # declaration

    def add_objective(
        self,
        name: str | None,
        feature: Feature,
        type: ObjectiveType | str = ObjectiveType.SOS,
        start: int = 0,
        end: int = -1,
        target: Sequence[float] | float | np.ndarray | None = None,
        precision: float = 1.0,
        order: int | None = None,
    ) -> Objective:
        """Declare an objective active on steps [start, end].

        Args:
            name: Objective name; defaults to the feature tag.
            feature: Feature to evaluate.
            type: SOS cost, EQ or INEQ constraint.
            start: First active step.
            end: Last active step; negative counts from the end.
            target: Optional scalar, vector or per-step matrix target.
            precision: Residual weight (squared-cost scale).
            order: Overrides the feature's finite-difference order.

        Returns:
            The created Objective.
        """
        if order is not None:
            feature = dataclasses.replace(feature, order=order)
        if feature.order > self.k_order:
            raise StructureError(
                f"{feature.tag}: order {feature.order} exceeds "
                f"k_order = {self.k_order}"
            )
        if isinstance(type, str):
            type = ObjectiveType.from_string(type)
        objective = Objective(name or feature.tag, feature, type)
        objective.set_cost_specs(start, end, self.steps, target, precision)
        self.objectives.append(objective)
        self._structure = None
        return objective

    def add_switch(
        self,
        time: int,
        kind: SwitchType | str,
        frame: str,
        parent: str | None = None,
        joint: JointType | str = JointType.RIGID,
        rel: np.ndarray | None = None,
    ) -> KinematicSwitch:
        """Declare a structural edit taking effect at step ``time``."""
        if self.trajectory is not None:
            raise StructureError("switches must be declared before setup()")
        switch = KinematicSwitch(kind, frame, parent, joint, rel, time)
        self.switches.append(switch)
        return switch

    # ------------------------------------------------------------------
    # recipes

    def add_control_cost(
        self,
        order: int | None = None,
        precision: float = 1.0,
        start: int = 0,
        end: int = -1,
    ) -> Objective:
        """Sum of squared joint velocities/accelerations (default k_order)."""
        order = self.k_order if order is None else order
        return self.add_objective(
            f"control_{order}", JointState(order=order), ObjectiveType.SOS,
            start, end, precision=precision,
        )

    def set_homing(
        self,
        start: int = 0,
        end: int = -1,
        precision: float = 1e-1,
        frames: Sequence[str] | None = None,
    ) -> Objective:
        """Pull the selected dofs towards their values in the base."""
        feature = JointState(frames=frames)
        target = feature.phi(self.base)[0]
        return self.add_objective(
            "homing", feature, ObjectiveType.SOS, start, end,
            target=target, precision=precision,
        )

    def set_position(
        self,
        start: int,
        end: int,
        frame: str,
        type: ObjectiveType | str = ObjectiveType.SOS,
        target: Sequence[float] | np.ndarray | None = None,
        precision: float = 1.0,
        other: str | None = None,
        order: int = 0,
    ) -> Objective:
        """Position of ``frame`` (relative to ``other`` if given)."""
        if other is None:
            feature = Position(frame, order=order)
        else:
            feature = PositionDiff(frame, other, order=order)
        return self.add_objective(
            None, feature, type, start, end, target=target, precision=precision,
        )

    def set_velocity(
        self,
        start: int,
        end: int,
        frame: str,
        type: ObjectiveType | str = ObjectiveType.SOS,
        target: Sequence[float] | np.ndarray | None = None,
        precision: float = 1.0,
    ) -> Objective:
        return self.set_position(
            start, end, frame, type, target, precision, order=1,
        )

    def set_align(
        self,
        start: int,
        end: int,
        frame: str,
        axis: Sequence[float] = (1.0, 0.0, 0.0),
        other: str | None = None,
        other_axis: Sequence[float] = (1.0, 0.0, 0.0),
        type: ObjectiveType | str = ObjectiveType.SOS,
        target: float | None = None,
        precision: float = 1.0,
    ) -> Objective:
        """Scalar product of two axes, e.g. target 1 for parallel axes."""
        feature = VectorAlign(frame, axis, other, other_axis)
        return self.add_objective(
            None, feature, type, start, end, target=target, precision=precision,
        )

    def set_collisions(
        self,
        hard: bool = True,
        margin: float = 0.0,
        precision: float = 1.0,
        pairs: Sequence[tuple[str, str]] | None = None,
        start: int = 0,
        end: int = -1,
    ) -> Objective:
        """Collision avoidance for all shape pairs or an explicit pair list.

        Hard constraints are inequalities; soft ones are SOS costs on the
        accumulated margin violation.
        """
        kind = ObjectiveType.INEQ if hard else ObjectiveType.SOS
        if pairs is not None:
            return self.add_objective(
                "collisions", PairCollision(list(pairs)), kind, start, end,
                target=-margin, precision=precision,
            )
        return self.add_objective(
            "collisions", AccumulatedCollisions(margin), kind, start, end,
            precision=precision,
        )

    def set_limits(
        self,
        margin: float = 0.0,
        precision: float = 1.0,
        start: int = 0,
        end: int = -1,
    ) -> Objective:
        """Joint limits as hard inequalities."""
        return self.add_objective(
            "limits", JointLimits(margin), ObjectiveType.INEQ, start, end,
            precision=precision,
        )

    def set_slow_around(
        self,
        step: int,
        delta: int,
        precision: float = 1e1,
    ) -> Objective:
        """Penalize joint velocities on [step - delta, step + delta]."""
        return self.add_objective(
            "slow_around", JointState(order=1), ObjectiveType.SOS,
            max(0, step - delta), step + delta, precision=precision,
        )

    def set_grasp(
        self,
        step: int,
        endeff: str,
        obj: str,
        precision: float = 1e1,
    ) -> None:
        """Rigidly attach ``obj`` to ``endeff`` at ``step``.

        The object snaps to the end effector frame; an equality on its
        velocity at ``step`` forces the end effector to be at the object
        when the switch happens.
        """
        self.add_switch(step, SwitchType.DELETE, obj)
        self.add_switch(step, SwitchType.RIGID, obj, endeff, rel=np.eye(4))
        self.add_objective(
            f"grasp_{obj}", Position(obj, order=1), ObjectiveType.EQ,
            step, step, precision=precision,
        )

    def set_place(
        self,
        step: int,
        endeff: str,
        obj: str,
        place_ref: str,
        rel: np.ndarray | None = None,
        precision: float = 1e1,
    ) -> None:
        """Release ``obj`` onto ``place_ref`` through a planar joint.

        The object keeps its pose relative to ``place_ref`` at setup time
        unless ``rel`` is given; the planar dofs become decision variables.
        ``endeff`` names the frame the object is released from.
        """
        logger.debug("place %s from %s onto %s at step %d", obj, endeff, place_ref, step)
        self.add_switch(step, SwitchType.DELETE, obj)
        self.add_switch(
            step, SwitchType.JOINT, obj, place_ref, JointType.TRANS_XY_PHI, rel,
        )
        self.add_objective(
            f"place_{obj}", Position(obj, order=1), ObjectiveType.EQ,
            step, step, precision=precision,
        )

    def set_attach(
        self,
        step: int,
        parent: str,
        obj: str,
        rel: np.ndarray | None = None,
    ) -> None:
        """Rigidly attach ``obj`` below ``parent`` at ``step``."""
        self.add_switch(step, SwitchType.DELETE, obj)
        self.add_switch(
            step, SwitchType.RIGID, obj, parent,
            rel=make_transform() if rel is None else rel,
        )

    def set_hold_still(
        self,
        start: int,
        end: int,
        frame: str,
        precision: float = 1e1,
    ) -> Objective:
        """Penalize the velocity of the dofs of ``frame``'s joint."""
        return self.add_objective(
            f"hold_still_{frame}", JointState(frames=[frame], order=1),
            ObjectiveType.SOS, start, end, precision=precision,
        )

    def set_touch(
        self,
        start: int,
        end: int,
        frame_a: str,
        frame_b: str,
        type: ObjectiveType | str = ObjectiveType.EQ,
        target: float = 0.0,
        precision: float = 1e1,
    ) -> Objective:
        """Contact between two collision spheres (zero penetration)."""
        return self.add_objective(
            f"touch_{frame_a}_{frame_b}", PairCollision([(frame_a, frame_b)]),
            type, start, end, target=target, precision=precision,
        )

    def set_handover(
        self,
        step: int,
        old_holder: str,
        obj: str,
        new_holder: str,
        precision: float = 1e3,
    ) -> None:
        """Pass ``obj`` from ``old_holder`` to ``new_holder`` at ``step``.

        The object is detached from ``old_holder`` (a StructureError at setup
        if it hangs elsewhere) and rigidly attached to ``new_holder``. An
        equality on the object velocity at ``step`` brings the new holder to
        the object; around the handover the object moves slowly.
        """
        self.add_switch(step, SwitchType.DELETE, obj, old_holder)
        self.add_switch(step, SwitchType.RIGID, obj, new_holder, rel=np.eye(4))
        self.add_objective(
            f"handover_{obj}", Position(obj, order=1), ObjectiveType.EQ,
            step, step, precision=precision,
        )
        if self.steps > 2:
            self.add_objective(
                f"handover_{obj}_slow", Position(obj, order=1), ObjectiveType.SOS,
                max(0, step - 1), step + 1, target=[0.0, 0.0, 0.0], precision=1e1,
            )

    # ------------------------------------------------------------------
    # setup and oracle

    def setup(self) -> None:
        """Build the configuration array and a jittered initial guess."""
        self._build_trajectory()
        self.reset()
        logger.debug(
            "problem set up: %d steps, %d variables, %d objectives, %d switches",
            self.steps, self.get_structure().dim_x, len(self.objectives),
            len(self.switches),
        )

    def _build_trajectory(self) -> None:
        self.trajectory = Trajectory(
            self.base, self.switches, self.k_order, self.steps, self.tau,
        )
        self._structure = None
        self.spline = None

    def _require_setup(self) -> Trajectory:
        if self.trajectory is None:
            self.setup()
        return self.trajectory

    def get_initialization(self) -> np.ndarray:
        """Joint states the configurations were built with."""
        return self._require_setup().get_x()

    def reset(self, init_noise: float | None = None) -> None:
        """Re-initialize x from the configurations plus gaussian jitter.

        The jitter avoids exactly singular starts (e.g. stretched arms).
        Before setup() only the configuration array is built, so the jitter
        is drawn once.
        """
        if self.trajectory is None:
            self._build_trajectory()
        trajectory = self.trajectory
        noise = self.config.init_noise if init_noise is None else init_noise
        x = trajectory.get_x()
        if noise > 0.0:
            x = x + self._rng.normal(0.0, noise, size=x.shape)
        self.x = x
        trajectory.set_x(x)

    def get_structure(self) -> ProblemStructure:
        """Variable dimensions and the ordered residual blocks."""
        trajectory = self._require_setup()
        if self._structure is not None:
            return self._structure

        blocks = []
        for t in range(self.steps):
            for i, objective in enumerate(self.objectives):
                if not objective.is_active(t):
                    continue
                window = trajectory.window(t, objective.order)
                blocks.append(FeatureBlock(
                    time=t,
                    dim=objective.feature.dim(window),
                    type=objective.type,
                    objective=objective.name,
                    index=i,
                ))
        self._structure = ProblemStructure(trajectory.variable_dims(), blocks)
        return self._structure

    def evaluate(self, x: np.ndarray) -> Evaluation:
        """Residuals and sparse Jacobian at decision vector x.

        Raises:
            StructureError: If x has the wrong length or a feature produces
                a residual of a different size than declared.
        """
        structure = self.get_structure()
        trajectory = self.trajectory
        trajectory.set_x(x)

        offsets = np.concatenate([[0], np.cumsum(structure.variable_dims)])
        phi = np.zeros(structure.dim_phi)
        types = np.empty(structure.dim_phi, dtype=object)
        rows, cols, vals = [], [], []

        M = 0
        for block in structure.blocks:
            objective = self.objectives[block.index]
            t = block.time
            window = trajectory.window(t, objective.order)
            y, J = objective.residual(window, self.tau, t)
            y = np.asarray(y, dtype=np.float64).ravel()
            if y.size != block.dim:
                raise StructureError(
                    f"{objective.name} at step {t}: declared dimension "
                    f"{block.dim}, produced {y.size}"
                )
            width = sum(c.joint_state_dim for c in window)
            if J.shape != (y.size, width):
                raise StructureError(
                    f"{objective.name} at step {t}: Jacobian shape {J.shape}, "
                    f"expected {(y.size, width)}"
                )
            if y.size and np.max(np.abs(y)) > self.config.warn_threshold:
                logger.warning(
                    "%s at step %d: residual magnitude %.3g is suspiciously large",
                    objective.name, t, np.max(np.abs(y)),
                )

            phi[M:M + y.size] = y
            types[M:M + y.size] = objective.type

            col = 0
            for k, configuration in enumerate(window):
                step = t - objective.order + k
                n = configuration.joint_state_dim
                if step >= 0 and n:
                    r, c = np.nonzero(J[:, col:col + n])
                    rows.append(r + M)
                    cols.append(c + offsets[step])
                    vals.append(J[r, c + col])
                col += n
            M += y.size

        if M != structure.dim_phi:
            raise StructureError(
                f"produced {M} residuals, structure declares {structure.dim_phi}"
            )

        if rows:
            rows, cols, vals = (np.concatenate(a) for a in (rows, cols, vals))
        jacobian = sparse.csr_matrix(
            (vals, (rows, cols)), shape=(structure.dim_phi, structure.dim_x),
        )
        return Evaluation(phi, jacobian, types)

    def check_gradients(
        self,
        x: np.ndarray | None = None,
        eps: float = 1e-6,
    ) -> float:
        """Largest deviation between the Jacobian and central differences."""
        x = np.array(self.x if x is None else x, dtype=np.float64)
        J = self.evaluate(x).jacobian.toarray()
        J_fd = np.zeros_like(J)
        for i in range(x.size):
            x_p = x.copy()
            x_m = x.copy()
            x_p[i] += eps
            x_m[i] -= eps
            J_fd[:, i] = (self.evaluate(x_p).phi - self.evaluate(x_m).phi) / (2 * eps)
        self.evaluate(x)
        return float(np.max(np.abs(J - J_fd))) if J.size else 0.0

    # ------------------------------------------------------------------
    # spline reparameterization

    def set_spline(self, num_knots: int, degree: int = 2) -> SplineReparameterization:
        """Optimize over clamped B-spline coefficients instead of x.

        Requires a constant joint-state dimension over the horizon.

        Args:
            num_knots: Number of spline coefficients per dof.
            degree: Spline degree.

        Returns:
            The active reparameterization.
        """
        dims = self.get_structure().variable_dims
        if len(set(dims)) != 1:
            raise StructureError(
                "spline reparameterization needs a constant joint-state "
                f"dimension, got {sorted(set(dims))}"
            )
        k = min(degree, num_knots - 1)
        inner = np.linspace(0.0, 1.0, num_knots - k + 1)
        knots = np.concatenate([np.zeros(k), inner, np.ones(k)])
        samples = np.linspace(0.0, 1.0, self.steps)
        B_t = BSpline.design_matrix(samples, knots, k).toarray()
        basis = np.kron(B_t, np.eye(dims[0]))
        self.spline = SplineReparameterization(self, basis)
        return self.spline

    # ------------------------------------------------------------------
    # optimization and results

    def optimize(
        self,
        solver_config: SolverConfig | None = None,
        timer: SolveTimer | None = None,
    ) -> OptimizationResult:
        """Solve the problem from the current x and write the result back.

        Args:
            solver_config: Solver settings.
            timer: Optional timer accumulating the solve time.

        Returns:
            OptimizationResult at the solution.
        """
        self._require_setup()
        timer = timer or SolveTimer()
        timer.resume()
        try:
            if self.spline is None:
                result = solve(self, self.x, solver_config)
                x = result.x
            else:
                z0 = self.spline.from_x(self.x)
                result = solve(self.spline, z0, solver_config)
                x = self.spline.to_x(result.x)
        finally:
            timer.pause()

        self.x = x
        cost, eq, ineq = measure(self.evaluate(x))
        wall_time = timer.read()

        logger.info(
            "optimization %s after %d iterations (%.3fs): cost = %.4g, "
            "eq = %.4g, ineq = %.4g",
            "converged" if result.success else "stopped",
            result.n_iterations, wall_time, cost, eq, ineq,
        )
        return OptimizationResult(
            x_opt=x.copy(),
            cost=cost,
            eq_violation=eq,
            ineq_violation=ineq,
            success=result.success,
            message=result.message,
            n_iterations=result.n_iterations,
            n_evaluations=result.n_evaluations,
            wall_time=wall_time,
        )

    def get_path(self) -> np.ndarray | list[np.ndarray]:
        """Horizon joint states; an array (T, n) when n is constant."""
        trajectory = self._require_setup()
        path = [trajectory.horizon(t).get_joint_state() for t in range(self.steps)]
        if len({len(q) for q in path}) == 1:
            return np.vstack(path)
        return path

    def get_path_times(self) -> np.ndarray:
        """Time stamps of the horizon steps, (t + 1) * tau."""
        return self.tau * np.arange(1, self.steps + 1)

    def get_report(self) -> dict:
        return build_report(self)

    def __repr__(self) -> str:
        return (
            f"MotionProblem(steps={self.steps}, tau={self.tau:.4g}, "
            f"k_order={self.k_order}, objectives={len(self.objectives)}, "
            f"switches={len(self.switches)})"
        )
