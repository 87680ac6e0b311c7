"""Planar three-link arm model.

All joints rotate about the world z-axis, so the arm moves in the z = 0
plane. Joint i sits at the end of link i - 1; the gripper frame sits at
the end of the last link.
"""

from dataclasses import dataclass, field
from typing import Tuple

import numpy as np

from kinematics import Configuration, JointType, make_transform

JOINT_FRAMES = ["joint1", "joint2", "joint3"]
GRIPPER_FRAME = "gripper"


@dataclass
class PlanarArm:
    """Planar arm specification.

    Attributes:
        link_lengths: Length of each link [m].
        base_position: Position of the first joint in world [m].
        joint_limit: Symmetric hinge limit [rad].
        q0: Initial joint angles [rad].
    """

    link_lengths: Tuple[float, ...] = (0.4, 0.3, 0.2)
    base_position: Tuple[float, float, float] = (0.0, 0.0, 0.0)
    joint_limit: float = 2.6
    q0: np.ndarray = field(default_factory=lambda: np.array([0.3, 0.6, 0.4]))

    @property
    def reach(self) -> float:
        """Maximal distance of the gripper from the base [m]."""
        return float(sum(self.link_lengths))

    def add_to(self, C: Configuration, parent: str | None = None) -> None:
        """Add the arm frames to an existing configuration."""
        C.add_frame(
            "arm_base", parent, rel=make_transform(self.base_position),
        )
        previous = "arm_base"
        offset = 0.0
        for name, q, length in zip(JOINT_FRAMES, self.q0, self.link_lengths):
            C.add_frame(
                name, previous, JointType.HINGE_Z,
                rel=make_transform((offset, 0.0, 0.0)), q=[q],
                limits=[[-self.joint_limit, self.joint_limit]],
            )
            previous = name
            offset = length
        C.add_frame(GRIPPER_FRAME, previous, rel=make_transform((offset, 0.0, 0.0)))

    def build(self) -> Configuration:
        """Configuration containing only the arm."""
        C = Configuration()
        self.add_to(C)
        return C

    def forward(self, q: np.ndarray) -> np.ndarray:
        """Closed-form gripper position (3,) for joint angles q."""
        angles = np.cumsum(q)
        x = np.sum(np.array(self.link_lengths) * np.cos(angles))
        y = np.sum(np.array(self.link_lengths) * np.sin(angles))
        return np.array(self.base_position) + np.array([x, y, 0.0])
