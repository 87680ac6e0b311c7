"""Objectives: a feature plus type, activation window, target and precision."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Sequence

import numpy as np

from kinematics import Configuration

from .features import Feature


class ObjectiveType(Enum):
    """How a residual enters the nonlinear program."""

    SOS = "sos"  # minimize sum of squares
    EQ = "eq"  # residual == 0
    INEQ = "ineq"  # residual <= 0

    @classmethod
    def from_string(cls, name: str) -> "ObjectiveType":
        return cls(name.lower())


@dataclass
class Objective:
    """A declarative task on the trajectory.

    Attributes:
        name: Objective name used in reports.
        feature: Feature evaluated on configuration windows.
        type: Cost or constraint type.
        precision: Per-step precision (steps,); zero means inactive.
        target: Optional target: scalar (1,), vector (d,) or per-step
            matrix (steps, d).
    """

    name: str
    feature: Feature
    type: ObjectiveType = ObjectiveType.SOS
    precision: np.ndarray = field(default_factory=lambda: np.zeros(0))
    target: Optional[np.ndarray] = None

    @property
    def order(self) -> int:
        return self.feature.order

    def set_cost_specs(
        self,
        start: int,
        end: int,
        steps: int,
        target: Sequence[float] | float | None = None,
        precision: float = 1.0,
    ) -> None:
        """Activate the objective on steps [start, end] (inclusive).

        Negative ``start`` and ``end`` count from the horizon end
        (-1 = last step).
        """
        if start < 0:
            start = steps + start
        if end < 0:
            end = steps + end
        start = max(0, start)
        end = min(end, steps - 1)
        self.precision = np.zeros(steps)
        if start <= end:
            self.precision[start:end + 1] = precision
        self.target = None if target is None else np.atleast_1d(
            np.asarray(target, dtype=np.float64)
        )

    def is_active(self, t: int) -> bool:
        return t < len(self.precision) and self.precision[t] != 0.0

    @property
    def active_steps(self) -> np.ndarray:
        return np.flatnonzero(self.precision)

    def residual(
        self,
        window: Sequence[Configuration],
        tau: float,
        t: int,
    ) -> tuple[np.ndarray, np.ndarray]:
        """Target-shifted, precision-scaled residual and Jacobian at step t."""
        y, J = self.feature.evaluate(window, tau)
        if self.target is not None:
            if self.target.size == 1:
                y = y - self.target.item()
            elif self.target.ndim == 1:
                y = y - self.target
            else:
                y = y - self.target[t]
        scale = np.sqrt(self.precision[t])
        return y * scale, J * scale
