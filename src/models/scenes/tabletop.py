"""Tabletop pick-and-place scene around a planar arm."""

from dataclasses import dataclass, field
from typing import Optional, Tuple

from kinematics import Configuration, make_transform
from models.robots.planar_arm import PlanarArm


@dataclass
class TabletopScene:
    """Table, a graspable box and an optional obstacle.

    The table frame coincides with the world plane z = 0; objects are
    spheres resting on it.

    Attributes:
        arm: Arm placed at the table origin.
        box_position: Initial box position on the table [m].
        box_radius: Box collision radius [m].
        place_position: Where the box should be put down [m].
        obstacle_position: Obstacle position, or None for no obstacle [m].
        obstacle_radius: Obstacle collision radius [m].
    """

    arm: PlanarArm = field(default_factory=PlanarArm)
    box_position: Tuple[float, float, float] = (0.5, 0.3, 0.0)
    box_radius: float = 0.04
    place_position: Tuple[float, float, float] = (0.3, -0.5, 0.0)
    obstacle_position: Optional[Tuple[float, float, float]] = None
    obstacle_radius: float = 0.08

    def build(self) -> Configuration:
        C = Configuration()
        C.add_frame("world")
        C.add_frame("table", "world")
        self.arm.add_to(C, parent="world")
        C.add_frame(
            "box", "table", rel=make_transform(self.box_position),
            radius=self.box_radius,
        )
        if self.obstacle_position is not None:
            C.add_frame(
                "obstacle", "table", rel=make_transform(self.obstacle_position),
                radius=self.obstacle_radius,
            )
        return C
