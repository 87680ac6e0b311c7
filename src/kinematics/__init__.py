"""Pinocchio-based kinematic structures with structural edit primitives."""

from .configuration import Configuration, Frame, JointType, make_transform

__all__ = [
    "Configuration",
    "Frame",
    "JointType",
    "make_transform",
]
