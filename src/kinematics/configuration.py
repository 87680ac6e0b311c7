"""Switchable kinematic structure backed by Pinocchio.

A Configuration is a tree of named frames. Each frame hangs off its parent
through a relative transform followed by a joint (possibly rigid). The tree
is compiled lazily into a pinocchio.Model, which provides forward kinematics
and frame Jacobians. Structural edits (detach, attach) only touch the frame
description and invalidate the compiled model.

Multi-dof joints are expanded into chains of single-axis Pinocchio joints,
so that every velocity coordinate equals the time derivative of the
corresponding position coordinate (nq == nv).
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterator, Optional, Sequence

import numpy as np
import pinocchio as pin


class JointType(Enum):
    """Joint kinds connecting a frame to its parent.

    The value lists the elementary axes in state-vector order.
    """

    RIGID = ()
    HINGE_X = ("rx",)
    HINGE_Y = ("ry",)
    HINGE_Z = ("rz",)
    TRANS_X = ("px",)
    TRANS_Y = ("py",)
    TRANS_Z = ("pz",)
    TRANS_XY_PHI = ("px", "py", "rz")
    FREE = ("px", "py", "pz", "rz", "ry", "rx")

    @property
    def axes(self) -> tuple[str, ...]:
        return self.value

    @property
    def dof(self) -> int:
        return len(self.value)

    @classmethod
    def from_string(cls, name: str) -> JointType:
        """Convert string to JointType, case-insensitive."""
        return cls[name.upper()]


_AXIS_JOINT_MODELS = {
    "px": pin.JointModelPX,
    "py": pin.JointModelPY,
    "pz": pin.JointModelPZ,
    "rx": pin.JointModelRX,
    "ry": pin.JointModelRY,
    "rz": pin.JointModelRZ,
}


def make_transform(
    translation: Sequence[float] = (0.0, 0.0, 0.0),
    rpy: Sequence[float] | None = None,
) -> np.ndarray:
    """Build a 4x4 homogeneous transform.

    Args:
        translation: Translation (3,) [m].
        rpy: Optional roll, pitch, yaw [rad].

    Returns:
        Homogeneous transform (4, 4).
    """
    T = np.eye(4)
    if rpy is not None:
        T[:3, :3] = pin.rpy.rpyToMatrix(*[float(a) for a in rpy])
    T[:3, 3] = np.asarray(translation, dtype=np.float64)
    return T


def _to_se3(T: np.ndarray) -> pin.SE3:
    return pin.SE3(np.array(T[:3, :3]), np.array(T[:3, 3]))


@dataclass
class Frame:
    """A named frame of the kinematic tree.

    Attributes:
        name: Unique frame name.
        parent: Parent frame name, or None for a root frame.
        joint: Joint connecting the frame to its parent.
        rel: Transform from parent to the joint origin (4, 4).
        q: Joint state (joint.dof,).
        limits: Per-dof [lower, upper] bounds (joint.dof, 2), or None.
        radius: Collision sphere radius centered at the frame origin.
            Zero means the frame carries no collision shape.
    """

    name: str
    parent: Optional[str] = None
    joint: JointType = JointType.RIGID
    rel: np.ndarray = field(default_factory=lambda: np.eye(4))
    q: np.ndarray = field(default_factory=lambda: np.zeros(0))
    limits: Optional[np.ndarray] = None
    radius: float = 0.0

    def __post_init__(self) -> None:
        self.rel = np.array(self.rel, dtype=np.float64)
        q = np.asarray(self.q, dtype=np.float64).ravel()
        if q.size == 0:
            q = np.zeros(self.joint.dof)
        if q.size != self.joint.dof:
            raise ValueError(
                f"Frame '{self.name}': joint {self.joint.name} expects "
                f"{self.joint.dof} state entries, got {q.size}"
            )
        self.q = q
        if self.limits is not None:
            self.limits = np.asarray(self.limits, dtype=np.float64).reshape(
                self.joint.dof, 2,
            )


class _KinematicsCache:
    """Compiled Pinocchio model plus the data of the last joint state.

    Forward kinematics and Jacobians are recomputed only when the joint
    state changes.
    """

    def __init__(self, model: pin.Model, frame_ids: dict[str, int]) -> None:
        self.model = model
        self.data = model.createData()
        self.frame_ids = frame_ids
        self._last_q_hash: int | None = None

    def update(self, q: np.ndarray) -> None:
        q_hash = hash(q.tobytes())
        if q_hash == self._last_q_hash:
            return
        pin.framesForwardKinematics(self.model, self.data, q)
        pin.computeJointJacobians(self.model, self.data, q)
        self._last_q_hash = q_hash


class Configuration:
    """Kinematic structure plus its joint state.

    Usage:
        C = Configuration()
        C.add_frame("base")
        C.add_frame("link1", parent="base", joint=JointType.HINGE_Z)
        C.add_frame("tip", parent="link1", rel=make_transform((0.5, 0, 0)))
        C.set_joint_state([0.3])
        p = C.position("tip")
    """

    def __init__(self) -> None:
        self._frames: dict[str, Frame] = {}
        self._cache: _KinematicsCache | None = None

    # ------------------------------------------------------------------
    # structure

    def add_frame(
        self,
        name: str,
        parent: str | None = None,
        joint: JointType | str = JointType.RIGID,
        rel: np.ndarray | None = None,
        q: Sequence[float] | None = None,
        limits: Sequence[Sequence[float]] | None = None,
        radius: float = 0.0,
    ) -> Frame:
        """Add a frame below ``parent`` (or as a root)."""
        if name in self._frames:
            raise ValueError(f"Frame '{name}' already exists")
        if parent is not None and parent not in self._frames:
            raise KeyError(f"Parent frame '{parent}' not found")
        if isinstance(joint, str):
            joint = JointType.from_string(joint)
        frame = Frame(
            name=name,
            parent=parent,
            joint=joint,
            rel=np.eye(4) if rel is None else rel,
            q=np.zeros(0) if q is None else q,
            limits=limits,
            radius=radius,
        )
        self._frames[name] = frame
        self._structure_changed()
        return frame

    def frame(self, name: str) -> Frame:
        try:
            return self._frames[name]
        except KeyError:
            raise KeyError(f"Frame '{name}' not found in configuration") from None

    def __contains__(self, name: str) -> bool:
        return name in self._frames

    def __iter__(self) -> Iterator[Frame]:
        return iter(self._frames.values())

    @property
    def frame_names(self) -> list[str]:
        return list(self._frames)

    def children(self, name: str) -> list[str]:
        return [f.name for f in self._frames.values() if f.parent == name]

    def is_ancestor(self, ancestor: str, name: str) -> bool:
        """Whether ``ancestor`` lies on the parent chain of ``name``."""
        parent = self.frame(name).parent
        while parent is not None:
            if parent == ancestor:
                return True
            parent = self._frames[parent].parent
        return False

    def copy(self) -> Configuration:
        """Deep copy sharing nothing with this configuration."""
        other = Configuration()
        other._frames = {
            name: copy.deepcopy(frame) for name, frame in self._frames.items()
        }
        return other

    # ------------------------------------------------------------------
    # structural edits

    def detach(self, name: str) -> None:
        """Remove the joint above ``name``; the frame keeps its world pose."""
        frame = self.frame(name)
        world = self.frame_pose(name).homogeneous
        frame.parent = None
        frame.joint = JointType.RIGID
        frame.rel = np.array(world)
        frame.q = np.zeros(0)
        frame.limits = None
        self._structure_changed()

    def attach(
        self,
        parent: str,
        child: str,
        joint: JointType | str = JointType.RIGID,
        rel: np.ndarray | None = None,
        limits: Sequence[Sequence[float]] | None = None,
    ) -> None:
        """Connect ``child`` below ``parent`` through a new joint.

        Any previous joint above ``child`` is replaced. With ``rel`` None the
        child keeps its current pose relative to the parent; otherwise the
        child is placed at ``rel`` with a zero joint state.
        """
        if isinstance(joint, str):
            joint = JointType.from_string(joint)
        self.frame(parent)
        frame = self.frame(child)
        if parent == child or self.is_ancestor(child, parent):
            raise ValueError(
                f"Attaching '{child}' below '{parent}' would create a cycle"
            )
        if rel is None:
            rel = (
                self.frame_pose(parent).inverse() * self.frame_pose(child)
            ).homogeneous
        frame.parent = parent
        frame.joint = joint
        frame.rel = np.array(rel, dtype=np.float64)
        frame.q = np.zeros(joint.dof)
        frame.limits = (
            None if limits is None
            else np.asarray(limits, dtype=np.float64).reshape(joint.dof, 2)
        )
        self._structure_changed()

    def _structure_changed(self) -> None:
        self._sort_frames()
        self._cache = None

    def _sort_frames(self) -> None:
        """Order frames so that every parent precedes its children.

        The order defines the layout of the joint-state vector; frames keep
        their relative insertion order wherever the tree allows it.
        """
        ordered: dict[str, Frame] = {}

        def visit(frame: Frame) -> None:
            if frame.name in ordered:
                return
            if frame.parent is not None:
                visit(self._frames[frame.parent])
            ordered[frame.name] = frame

        for frame in list(self._frames.values()):
            visit(frame)
        self._frames = ordered

    # ------------------------------------------------------------------
    # joint state

    @property
    def joint_state_dim(self) -> int:
        return sum(f.joint.dof for f in self._frames.values())

    @property
    def joint_names(self) -> list[str]:
        """Per-dof names ``"<frame>:<axis>"`` in state-vector order."""
        return [
            f"{f.name}:{axis}"
            for f in self._frames.values()
            for axis in f.joint.axes
        ]

    def get_joint_state(self) -> np.ndarray:
        parts = [f.q for f in self._frames.values() if f.joint.dof]
        if not parts:
            return np.zeros(0)
        return np.concatenate(parts)

    def set_joint_state(self, q: Sequence[float]) -> None:
        q = np.asarray(q, dtype=np.float64).ravel()
        if q.size != self.joint_state_dim:
            raise ValueError(
                f"Joint state has {q.size} entries, configuration expects "
                f"{self.joint_state_dim}"
            )
        i = 0
        for frame in self._frames.values():
            n = frame.joint.dof
            if n:
                frame.q = q[i:i + n].copy()
                i += n

    def get_limits(self) -> np.ndarray:
        """Joint limits (n, 2); unbounded dofs get -inf/+inf."""
        limits = np.tile([-np.inf, np.inf], (self.joint_state_dim, 1))
        i = 0
        for frame in self._frames.values():
            n = frame.joint.dof
            if n and frame.limits is not None:
                limits[i:i + n] = frame.limits
            i += n
        return limits

    # ------------------------------------------------------------------
    # kinematics

    def _compile(self) -> _KinematicsCache:
        model = pin.Model()
        frame_ids: dict[str, int] = {}
        # frame name -> (pinocchio joint id, frame placement in that joint)
        anchors: dict[str, tuple[int, pin.SE3]] = {}

        for frame in self._frames.values():
            if frame.parent is None:
                joint_id, placement = 0, pin.SE3.Identity()
                parent_frame_id = 0
            else:
                joint_id, placement = anchors[frame.parent]
                parent_frame_id = frame_ids[frame.parent]
            placement = placement * _to_se3(frame.rel)
            for axis in frame.joint.axes:
                joint_id = model.addJoint(
                    joint_id,
                    _AXIS_JOINT_MODELS[axis](),
                    placement,
                    f"{frame.name}:{axis}",
                )
                placement = pin.SE3.Identity()
            frame_ids[frame.name] = model.addFrame(pin.Frame(
                frame.name,
                joint_id,
                parent_frame_id,
                placement,
                pin.FrameType.OP_FRAME,
            ))
            anchors[frame.name] = (joint_id, placement)

        return _KinematicsCache(model, frame_ids)

    def _kinematics(self) -> _KinematicsCache:
        if self._cache is None:
            self._cache = self._compile()
        self._cache.update(self.get_joint_state())
        return self._cache

    def frame_pose(self, name: str) -> pin.SE3:
        """World pose of a frame."""
        self.frame(name)
        cache = self._kinematics()
        return cache.data.oMf[cache.frame_ids[name]].copy()

    def position(self, name: str) -> np.ndarray:
        return self.frame_pose(name).translation.copy()

    def frame_jacobian(self, name: str) -> np.ndarray:
        """World-aligned frame Jacobian (6, n): linear rows, then angular."""
        self.frame(name)
        cache = self._kinematics()
        return pin.getFrameJacobian(
            cache.model,
            cache.data,
            cache.frame_ids[name],
            pin.ReferenceFrame.LOCAL_WORLD_ALIGNED,
        ).copy()

    def position_jacobian(self, name: str) -> np.ndarray:
        return self.frame_jacobian(name)[:3]

    def vector(self, name: str, axis: Sequence[float]) -> np.ndarray:
        """A frame-fixed direction expressed in world coordinates."""
        R = self.frame_pose(name).rotation
        return R @ np.asarray(axis, dtype=np.float64)

    def vector_jacobian(self, name: str, axis: Sequence[float]) -> np.ndarray:
        """Jacobian (3, n) of ``vector(name, axis)``.

        A world vector u rotating with angular velocity w changes as
        w x u = -[u]x w.
        """
        u = self.vector(name, axis)
        J_ang = self.frame_jacobian(name)[3:]
        return -pin.skew(u) @ J_ang

    def __repr__(self) -> str:
        return (
            f"Configuration(frames={len(self._frames)}, "
            f"joint_state_dim={self.joint_state_dim})"
        )
