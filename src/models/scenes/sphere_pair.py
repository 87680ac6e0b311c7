"""Two spheres, one sliding along x, used for collision checks."""

from kinematics import Configuration, JointType, make_transform


def build_sphere_pair(
    gap: float = -0.01,
    radius: float = 0.1,
    q: float = 0.0,
    limit: float = 1.0,
) -> Configuration:
    """Sphere ``ball_a`` on a prismatic x-joint next to a fixed ``ball_b``.

    Args:
        gap: Surface distance at q = 0; negative means overlapping [m].
        radius: Radius of both spheres [m].
        q: Initial slider position [m].
        limit: Symmetric slider limit [m].

    Returns:
        Configuration with frames world, ball_a, ball_b.
    """
    C = Configuration()
    C.add_frame("world")
    C.add_frame(
        "ball_a", "world", JointType.TRANS_X, q=[q],
        limits=[[-limit, limit]], radius=radius,
    )
    C.add_frame(
        "ball_b", "world", rel=make_transform((2.0 * radius + gap, 0.0, 0.0)),
        radius=radius,
    )
    return C
