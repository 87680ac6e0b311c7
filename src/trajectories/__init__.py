"""Trajectories package - path math utilities."""

from .path_tools import (
    central_difference_acceleration,
    central_difference_velocity,
    get_spline,
    mirror_duplicate,
    natural_duration,
    resample,
    reverse_path,
    sine_profile,
    validate_path,
)

__all__ = [
    "central_difference_acceleration",
    "central_difference_velocity",
    "get_spline",
    "mirror_duplicate",
    "natural_duration",
    "resample",
    "reverse_path",
    "sine_profile",
    "validate_path",
]
