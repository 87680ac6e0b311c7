"""Error types for trajectory optimization."""


class StructureError(RuntimeError):
    """A misconfigured problem: dimension mismatches, windows shorter than
    an objective's order, switches that cannot be applied in time order.

    These indicate programmer errors and abort the current call.
    """


class FeasibilityError(RuntimeError):
    """A strict feasibility check failed and could not be repaired."""
