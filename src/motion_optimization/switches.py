"""Kinematic switches and the time-indexed configuration array.

Configuration slot s of a Trajectory corresponds to time s - k_order: the
first k_order slots are prefix configurations (history for finite
differences), the remaining T slots form the planning horizon. Each slot
owns an independent copy of the structure. Slot s is built by copying slot
s - 1 and applying every switch whose time + k_order == s.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Sequence

import numpy as np

from kinematics import Configuration, JointType

from .errors import StructureError

logger = logging.getLogger(__name__)


class SwitchType(Enum):
    """Structural edit performed by a switch."""

    DELETE = "delete"  # remove the joint above a frame
    RIGID = "rigid"  # rigidly attach a frame to a parent
    JOINT = "joint"  # attach a frame through an articulated joint


@dataclass
class KinematicSwitch:
    """A time-stamped structural edit.

    Attributes:
        kind: Edit kind.
        frame: Frame whose attachment changes.
        parent: New parent (RIGID/JOINT). For DELETE, the expected current
            parent, checked when the switch is applied; None skips the check.
        joint: Joint type for JOINT switches.
        rel: Parent-to-frame transform (4, 4). None keeps the current
            relative pose.
        time: Step index at which the edit takes effect.
    """

    kind: SwitchType
    frame: str
    parent: Optional[str] = None
    joint: JointType = JointType.RIGID
    rel: Optional[np.ndarray] = None
    time: int = 0

    def __post_init__(self) -> None:
        if isinstance(self.kind, str):
            self.kind = SwitchType(self.kind.lower())
        if isinstance(self.joint, str):
            self.joint = JointType.from_string(self.joint)
        if self.kind != SwitchType.DELETE and self.parent is None:
            raise ValueError(f"{self.kind.value} switch on '{self.frame}' needs a parent")
        if self.kind == SwitchType.JOINT and self.joint == JointType.RIGID:
            raise ValueError("joint switch needs an articulated joint type")

    def apply(self, configuration: Configuration) -> None:
        """Perform the edit in place on ``configuration``."""
        if self.kind == SwitchType.DELETE:
            current = configuration.frame(self.frame).parent
            if self.parent is not None and current != self.parent:
                raise StructureError(
                    f"{self}: '{self.frame}' hangs below '{current}', "
                    f"not '{self.parent}'"
                )
            configuration.detach(self.frame)
        elif self.kind == SwitchType.RIGID:
            configuration.attach(
                self.parent, self.frame, JointType.RIGID, rel=self.rel,
            )
        else:
            configuration.attach(
                self.parent, self.frame, self.joint, rel=self.rel,
            )

    def __str__(self) -> str:
        target = "" if self.parent is None else f" -> {self.parent}"
        return f"{self.kind.value}({self.frame}{target}) @ {self.time}"


class Trajectory:
    """Arena of k_order + T independent configuration snapshots.

    Usage:
        traj = Trajectory(C, switches, k_order=2, steps=20, tau=0.1)
        traj.horizon(3).get_joint_state()
    """

    def __init__(
        self,
        base: Configuration,
        switches: Sequence[KinematicSwitch],
        k_order: int,
        steps: int,
        tau: float,
    ):
        if steps < 1:
            raise StructureError("trajectory needs at least one step")
        self.k_order = k_order
        self.steps = steps
        self.tau = tau
        self.switches = list(switches)
        self.configurations: list[Configuration] = []
        self._build(base)

    def _build(self, base: Configuration) -> None:
        for sw in self.switches:
            if not 1 - self.k_order <= sw.time < self.steps:
                raise StructureError(
                    f"switch {sw} lies outside the applicable range "
                    f"[{1 - self.k_order}, {self.steps - 1}]"
                )

        applied = 0
        self.configurations.append(base.copy())
        for s in range(1, self.k_order + self.steps):
            configuration = self.configurations[s - 1].copy()
            for sw in self.switches:
                if sw.time + self.k_order != s:
                    continue
                sw.apply(configuration)
                applied += 1
                logger.debug("applied %s in slot %d", sw, s)
            self.configurations.append(configuration)

        if applied != len(self.switches):
            raise StructureError(
                f"{len(self.switches) - applied} switches were never applied"
            )

    def __len__(self) -> int:
        return len(self.configurations)

    def horizon(self, t: int) -> Configuration:
        """Configuration of horizon step t (t = -k_order .. T-1)."""
        return self.configurations[t + self.k_order]

    def window(self, t: int, order: int) -> list[Configuration]:
        """The ``order + 1`` configurations ending at horizon step t."""
        s = t + self.k_order
        if s - order < 0:
            raise StructureError(
                f"order {order} at step {t} reaches before the prefix "
                f"(k_order = {self.k_order})"
            )
        return self.configurations[s - order:s + 1]

    def variable_dims(self) -> list[int]:
        return [self.horizon(t).joint_state_dim for t in range(self.steps)]

    def get_x(self) -> np.ndarray:
        parts = [self.horizon(t).get_joint_state() for t in range(self.steps)]
        return np.concatenate(parts) if parts else np.zeros(0)

    def set_x(self, x: np.ndarray) -> None:
        """Write concatenated horizon joint states into the configurations."""
        x = np.asarray(x, dtype=np.float64).ravel()
        dims = self.variable_dims()
        if x.size != sum(dims):
            raise StructureError(
                f"optimization vector has {x.size} entries, trajectory "
                f"expects {sum(dims)}"
            )
        i = 0
        for t, n in enumerate(dims):
            if n:
                self.horizon(t).set_joint_state(x[i:i + n])
                i += n

