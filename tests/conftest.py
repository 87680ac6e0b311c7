"""Shared pytest fixtures."""

import numpy as np
import pytest

from kinematics import Configuration, JointType, make_transform
from models.robots import PlanarArm
from models.scenes import TabletopScene, build_sphere_pair


@pytest.fixture
def planar_arm() -> PlanarArm:
    """Default three-link planar arm specification."""
    return PlanarArm()


@pytest.fixture
def arm_config(planar_arm) -> Configuration:
    """Configuration containing only the planar arm."""
    return planar_arm.build()


@pytest.fixture
def tabletop() -> Configuration:
    """Planar arm, table and box without obstacles."""
    return TabletopScene().build()


@pytest.fixture
def sphere_pair() -> Configuration:
    """Two spheres of radius 0.1 overlapping by 1 cm."""
    return build_sphere_pair(gap=-0.01)


@pytest.fixture
def free_body() -> Configuration:
    """A rotated free-floating body with a hinge child and a marker."""
    C = Configuration()
    C.add_frame("world")
    C.add_frame(
        "body", "world", JointType.FREE,
        rel=make_transform((0.1, -0.2, 0.3), rpy=(0.2, -0.1, 0.4)),
        q=[0.05, 0.1, -0.05, 0.3, -0.2, 0.1],
    )
    C.add_frame(
        "arm", "body", JointType.HINGE_Y,
        rel=make_transform((0.2, 0.0, 0.0)), q=[0.4],
    )
    C.add_frame("marker", "arm", rel=make_transform((0.0, 0.1, 0.3)))
    return C


@pytest.fixture
def numerical_jacobian():
    """Central-difference Jacobian of f(q) -> (y, J) w.r.t. a configuration."""

    def _jacobian(configuration: Configuration, f, eps: float = 1e-6) -> np.ndarray:
        q0 = configuration.get_joint_state()
        columns = []
        for i in range(len(q0)):
            q = q0.copy()
            q[i] += eps
            configuration.set_joint_state(q)
            y_plus = np.array(f(configuration)[0], dtype=np.float64)
            q[i] -= 2 * eps
            configuration.set_joint_state(q)
            y_minus = np.array(f(configuration)[0], dtype=np.float64)
            columns.append((y_plus - y_minus) / (2 * eps))
        configuration.set_joint_state(q0)
        return np.column_stack(columns)

    return _jacobian
