"""Feature functions mapping configuration windows to residuals.

A feature evaluates a window of ``order + 1`` consecutive configurations.
Position-level features implement ``phi(configuration)``; velocity,
acceleration and jerk variants are obtained by finite differences of
``phi`` over the window:

    order 1:  (phi_t - phi_{t-1}) / tau
    order 2:  (phi_t - 2 phi_{t-1} + phi_{t-2}) / tau^2
    order 3:  (phi_t - 3 phi_{t-1} + 3 phi_{t-2} - phi_{t-3}) / tau^3

The Jacobian returned by ``evaluate`` is w.r.t. the concatenated joint
states of the window, oldest configuration first.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from math import comb
from typing import Optional, Sequence

import numpy as np

from collision_check import FramePair, SphereCollisionChecker
from kinematics import Configuration

from .errors import StructureError


def difference_coefficients(order: int) -> np.ndarray:
    """Backward finite-difference weights, oldest sample first."""
    return np.array([
        (-1) ** (order - i) * comb(order, i) for i in range(order + 1)
    ], dtype=np.float64)


class Feature(ABC):
    """A residual function of a configuration window.

    Subclasses are small dataclasses carrying their parameters and an
    ``order`` field (0 = position level).
    """

    order: int = 0

    @abstractmethod
    def phi(self, configuration: Configuration) -> tuple[np.ndarray, np.ndarray]:
        """Position-level value (d,) and Jacobian (d, n) of one configuration."""

    @property
    def tag(self) -> str:
        return f"{type(self).__name__}-{self.order}"

    def _window(self, window: Sequence[Configuration]) -> list[Configuration]:
        if len(window) < self.order + 1:
            raise StructureError(
                f"{self.tag}: window of {len(window)} configurations is shorter "
                f"than order + 1 = {self.order + 1}"
            )
        return list(window[len(window) - self.order - 1:])

    def dim(self, window: Sequence[Configuration]) -> int:
        """Residual dimension for this window."""
        return len(self.phi(self._window(window)[-1])[0])

    def evaluate(
        self,
        window: Sequence[Configuration],
        tau: float,
    ) -> tuple[np.ndarray, np.ndarray]:
        """Residual and Jacobian w.r.t. the window's joint states.

        Args:
            window: Configurations, the last one being the current step.
                Only the last ``order + 1`` are used.
            tau: Time step [s].

        Returns:
            Tuple of (y (d,), J (d, sum of window joint-state dims)).
        """
        window = self._window(window)
        if self.order == 0:
            return self.phi(window[0])

        coeffs = difference_coefficients(self.order) / tau ** self.order
        values = [self.phi(c) for c in window]
        d = len(values[-1][0])
        if any(len(y) != d for y, _ in values):
            raise StructureError(
                f"{self.tag}: feature dimension changes inside the window"
            )
        y = sum(c * y_i for c, (y_i, _) in zip(coeffs, values))
        J = np.hstack([c * J_i for c, (_, J_i) in zip(coeffs, values)])
        return y, J


@dataclass
class JointState(Feature):
    """The joint state itself, optionally restricted to some frames' dofs.

    Higher orders match dofs by joint name, so differences remain defined
    across switches that add or remove joints: a dof missing from an
    earlier configuration contributes its current value (zero motion).
    """

    frames: Optional[Sequence[str]] = None
    order: int = 0

    def _selection(self, configuration: Configuration) -> list[int]:
        names = configuration.joint_names
        if self.frames is None:
            return list(range(len(names)))
        wanted = set(self.frames)
        return [i for i, n in enumerate(names) if n.split(":")[0] in wanted]

    def phi(self, configuration: Configuration) -> tuple[np.ndarray, np.ndarray]:
        idx = self._selection(configuration)
        q = configuration.get_joint_state()
        J = np.zeros((len(idx), configuration.joint_state_dim))
        J[np.arange(len(idx)), idx] = 1.0
        return q[idx], J

    def dim(self, window: Sequence[Configuration]) -> int:
        return len(self._selection(self._window(window)[-1]))

    def evaluate(
        self,
        window: Sequence[Configuration],
        tau: float,
    ) -> tuple[np.ndarray, np.ndarray]:
        window = self._window(window)
        current = window[-1]
        idx = self._selection(current)
        names = [current.joint_names[i] for i in idx]
        q_current = current.get_joint_state()[idx]

        coeffs = difference_coefficients(self.order) / tau ** self.order
        y = np.zeros(len(names))
        missing = np.zeros(len(names))
        blocks = []
        for coeff, configuration in zip(coeffs, window):
            index = {n: i for i, n in enumerate(configuration.joint_names)}
            q = configuration.get_joint_state()
            J = np.zeros((len(names), configuration.joint_state_dim))
            for row, name in enumerate(names):
                i = index.get(name)
                if i is None:
                    y[row] += coeff * q_current[row]
                    missing[row] += coeff
                else:
                    y[row] += coeff * q[i]
                    J[row, i] = coeff
            blocks.append(J)
        blocks[-1][np.arange(len(names)), idx] += missing
        return y, np.hstack(blocks)


@dataclass
class Position(Feature):
    """World position of a frame origin."""

    frame: str
    order: int = 0

    @property
    def tag(self) -> str:
        return f"Position-{self.frame}-{self.order}"

    def phi(self, configuration: Configuration) -> tuple[np.ndarray, np.ndarray]:
        return (
            configuration.position(self.frame),
            configuration.position_jacobian(self.frame),
        )


@dataclass
class PositionDiff(Feature):
    """World position of ``frame`` minus that of ``other``."""

    frame: str
    other: str
    order: int = 0

    @property
    def tag(self) -> str:
        return f"PositionDiff-{self.frame}-{self.other}-{self.order}"

    def phi(self, configuration: Configuration) -> tuple[np.ndarray, np.ndarray]:
        C = configuration
        y = C.position(self.frame) - C.position(self.other)
        J = C.position_jacobian(self.frame) - C.position_jacobian(self.other)
        return y, J


@dataclass
class Vector(Feature):
    """A frame-fixed axis expressed in world coordinates."""

    frame: str
    axis: Sequence[float] = (0.0, 0.0, 1.0)
    order: int = 0

    @property
    def tag(self) -> str:
        return f"Vector-{self.frame}-{self.order}"

    def phi(self, configuration: Configuration) -> tuple[np.ndarray, np.ndarray]:
        return (
            configuration.vector(self.frame, self.axis),
            configuration.vector_jacobian(self.frame, self.axis),
        )


@dataclass
class VectorAlign(Feature):
    """Scalar product of two axes; ``other=None`` uses a fixed world axis."""

    frame: str
    axis: Sequence[float] = (1.0, 0.0, 0.0)
    other: Optional[str] = None
    other_axis: Sequence[float] = (1.0, 0.0, 0.0)
    order: int = 0

    @property
    def tag(self) -> str:
        return f"VectorAlign-{self.frame}-{self.other}-{self.order}"

    def phi(self, configuration: Configuration) -> tuple[np.ndarray, np.ndarray]:
        C = configuration
        u = C.vector(self.frame, self.axis)
        Ju = C.vector_jacobian(self.frame, self.axis)
        if self.other is None:
            v = np.asarray(self.other_axis, dtype=np.float64)
            Jv = np.zeros_like(Ju)
        else:
            v = C.vector(self.other, self.other_axis)
            Jv = C.vector_jacobian(self.other, self.other_axis)
        return np.array([u @ v]), (v @ Ju + u @ Jv)[None, :]


@dataclass
class PairCollision(Feature):
    """Penetration depth (negated signed distance) of each frame pair."""

    pairs: Sequence[FramePair]
    order: int = 0

    @property
    def tag(self) -> str:
        return f"PairCollision-{len(self.pairs)}-{self.order}"

    def phi(self, configuration: Configuration) -> tuple[np.ndarray, np.ndarray]:
        return SphereCollisionChecker(configuration).pair_penetrations(self.pairs)

    def dim(self, window: Sequence[Configuration]) -> int:
        self._window(window)
        return len(self.pairs)


@dataclass
class AccumulatedCollisions(Feature):
    """Sum of margin violations over all broad-phase shape pairs (scalar)."""

    margin: float = 0.0
    order: int = 0

    def phi(self, configuration: Configuration) -> tuple[np.ndarray, np.ndarray]:
        cost, J = SphereCollisionChecker(configuration).accumulated_collisions(
            self.margin,
        )
        return np.array([cost]), J[None, :]

    def dim(self, window: Sequence[Configuration]) -> int:
        self._window(window)
        return 1


@dataclass
class JointLimits(Feature):
    """Limit margins, feasible where <= 0.

    One entry ``lower + margin - q`` per finite lower bound followed by one
    entry ``q - upper + margin`` per finite upper bound. ``bounds`` (n, 2)
    overrides the limits stored in the configuration.
    """

    margin: float = 0.0
    bounds: Optional[np.ndarray] = None
    order: int = 0

    def phi(self, configuration: Configuration) -> tuple[np.ndarray, np.ndarray]:
        q = configuration.get_joint_state()
        if self.bounds is None:
            limits = configuration.get_limits()
        else:
            limits = np.asarray(self.bounds, dtype=np.float64).reshape(len(q), 2)
        n = len(q)
        lo = np.flatnonzero(np.isfinite(limits[:, 0]))
        hi = np.flatnonzero(np.isfinite(limits[:, 1]))

        y = np.concatenate([
            limits[lo, 0] + self.margin - q[lo],
            q[hi] - limits[hi, 1] + self.margin,
        ])
        J = np.zeros((len(lo) + len(hi), n))
        J[np.arange(len(lo)), lo] = -1.0
        J[len(lo) + np.arange(len(hi)), hi] = 1.0
        return y, J


@dataclass
class Energy(Feature):
    """Kinetic plus potential energy of point masses; higher order only.

    Frame origins carry the masses: ``masses`` maps frame names to [kg],
    None puts unit mass on every frame with a collision sphere. Velocities
    are the backward differences of the frame positions. Order 1 returns
    the energy at the current step, order >= 2 its change from the
    previous step; older window entries get zero Jacobian columns.
    """

    masses: Optional[dict[str, float]] = None
    gravity: float = 9.81
    order: int = 1

    def phi(self, configuration: Configuration) -> tuple[np.ndarray, np.ndarray]:
        raise StructureError(f"{self.tag}: energy is only defined for order >= 1")

    def dim(self, window: Sequence[Configuration]) -> int:
        if self.order < 1:
            raise StructureError(f"{self.tag}: energy is only defined for order >= 1")
        self._window(window)
        return 1

    def _masses(self, configuration: Configuration) -> dict[str, float]:
        if self.masses is not None:
            return dict(self.masses)
        return {f.name: 1.0 for f in configuration if f.radius > 0.0}

    def _energy(
        self,
        previous: Configuration,
        current: Configuration,
        tau: float,
        masses: dict[str, float],
    ) -> tuple[float, np.ndarray, np.ndarray]:
        """Energy at ``current`` and its Jacobians w.r.t. both states."""
        E = 0.0
        J_prev = np.zeros(previous.joint_state_dim)
        J_cur = np.zeros(current.joint_state_dim)
        for name, m in masses.items():
            v = (current.position(name) - previous.position(name)) / tau
            Jp_cur = current.position_jacobian(name)
            E += 0.5 * m * (v @ v) + m * self.gravity * current.position(name)[2]
            J_cur += m * (v @ Jp_cur) / tau + m * self.gravity * Jp_cur[2]
            J_prev -= m * (v @ previous.position_jacobian(name)) / tau
        return E, J_prev, J_cur

    def evaluate(
        self,
        window: Sequence[Configuration],
        tau: float,
    ) -> tuple[np.ndarray, np.ndarray]:
        if self.order < 1:
            raise StructureError(f"{self.tag}: energy is only defined for order >= 1")
        window = self._window(window)
        masses = self._masses(window[-1])
        blocks = [np.zeros(c.joint_state_dim) for c in window]

        E, J_prev, J_cur = self._energy(window[-2], window[-1], tau, masses)
        blocks[-2] += J_prev
        blocks[-1] += J_cur
        if self.order >= 2:
            E_old, J_old, J_mid = self._energy(window[-3], window[-2], tau, masses)
            E -= E_old
            blocks[-3] -= J_old
            blocks[-2] -= J_mid
        return np.array([E]), np.concatenate(blocks)[None, :]
