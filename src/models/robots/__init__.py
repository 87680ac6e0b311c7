"""Robot model definitions."""

from models.robots.planar_arm import GRIPPER_FRAME, JOINT_FRAMES, PlanarArm

__all__ = ["GRIPPER_FRAME", "JOINT_FRAMES", "PlanarArm"]
