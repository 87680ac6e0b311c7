"""FK-based collision checking for switchable kinematic structures."""

from .sphere_checker import (
    CollisionConfig,
    FramePair,
    Proxy,
    SphereCollisionChecker,
)

__all__ = [
    "CollisionConfig",
    "FramePair",
    "Proxy",
    "SphereCollisionChecker",
]
