"""Scene definitions."""

from models.scenes.sphere_pair import build_sphere_pair
from models.scenes.tabletop import TabletopScene

__all__ = ["TabletopScene", "build_sphere_pair"]
