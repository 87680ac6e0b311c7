"""Trajectory optimization over switchable kinematic structures."""

from .errors import FeasibilityError, StructureError
from .feasibility import FeasibilityReport, PoseTool, RepairConfig
from .features import (
    AccumulatedCollisions,
    Energy,
    Feature,
    JointLimits,
    JointState,
    PairCollision,
    Position,
    PositionDiff,
    Vector,
    VectorAlign,
    difference_coefficients,
)
from .objectives import Objective, ObjectiveType
from .paths import plan_start_goal_path
from .problem import (
    Evaluation,
    FeatureBlock,
    MotionProblem,
    OptimizationResult,
    ProblemConfig,
    ProblemStructure,
    SplineReparameterization,
)
from .reporting import build_report, format_report
from .solver import NonlinearProgram, SolverConfig, SolverResult, solve
from .switches import KinematicSwitch, SwitchType, Trajectory
from .timing import SolveTimer

__all__ = [
    "AccumulatedCollisions",
    "Energy",
    "Evaluation",
    "FeasibilityError",
    "FeasibilityReport",
    "Feature",
    "FeatureBlock",
    "JointLimits",
    "JointState",
    "KinematicSwitch",
    "MotionProblem",
    "NonlinearProgram",
    "Objective",
    "ObjectiveType",
    "OptimizationResult",
    "PairCollision",
    "PoseTool",
    "Position",
    "PositionDiff",
    "ProblemConfig",
    "ProblemStructure",
    "RepairConfig",
    "SolveTimer",
    "SolverConfig",
    "SolverResult",
    "SplineReparameterization",
    "StructureError",
    "SwitchType",
    "Trajectory",
    "Vector",
    "VectorAlign",
    "build_report",
    "difference_coefficients",
    "format_report",
    "plan_start_goal_path",
    "solve",
]
