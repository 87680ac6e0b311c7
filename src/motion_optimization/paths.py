"""Point-to-point path recipe: smooth motion from the current state to a goal."""

import logging
from typing import Optional, Sequence

import numpy as np

from kinematics import Configuration
from trajectories import validate_path

from .features import JointState, Position
from .objectives import ObjectiveType
from .problem import MotionProblem, ProblemConfig
from .solver import SolverConfig

logger = logging.getLogger(__name__)


def plan_start_goal_path(
    configuration: Configuration,
    target_q: Sequence[float],
    endeff: Optional[str] = None,
    up: float = 0.0,
    down: float = 0.0,
    lift: Sequence[float] = (0.0, 0.0, 0.05),
    steps: int = 20,
    duration: float = 3.0,
    solver_config: Optional[SolverConfig] = None,
) -> tuple[np.ndarray, np.ndarray]:
    """Plan a smooth joint-space path ending exactly at ``target_q``.

    Optionally the end effector accelerates along ``lift`` during the first
    ``up`` fraction of the motion and against it from ``down`` onwards, to
    leave and approach a surface. The path starts and ends at rest.

    Args:
        configuration: Start configuration (not modified).
        target_q: Goal joint state (n,).
        endeff: End effector frame for the lift/approach phases.
        up: Fraction of the motion with a lift-off acceleration (0 = none).
        down: Fraction after which the approach phase starts (0 = none).
        lift: End effector acceleration target during lift-off.
        steps: Number of path steps.
        duration: Motion duration [s].
        solver_config: Solver settings.

    Returns:
        Tuple of (path (steps, n), times (steps,)).
    """
    target_q = np.asarray(target_q, dtype=np.float64)
    problem = MotionProblem(
        configuration, ProblemConfig(steps=steps, duration=duration, k_order=2),
    )
    problem.add_control_cost(order=2, precision=1.0)

    if endeff is not None:
        lift = np.asarray(lift, dtype=np.float64)
        if up > 0.0:
            problem.add_objective(
                "lift_off", Position(endeff, order=2), ObjectiveType.SOS,
                0, int(round(up * (steps - 1))), target=lift, precision=1e2,
            )
        if down > 0.0:
            problem.add_objective(
                "approach", Position(endeff, order=2), ObjectiveType.SOS,
                int(round(down * (steps - 1))), -1, target=-lift, precision=1e2,
            )

    problem.add_objective(
        "goal", JointState(), ObjectiveType.EQ, -1, -1,
        target=target_q, precision=1e1,
    )
    problem.add_objective(
        "rest_start", JointState(order=1), ObjectiveType.EQ, 0, 0, precision=1e2,
    )
    problem.add_objective(
        "rest_end", JointState(order=1), ObjectiveType.EQ, -1, -1, precision=1e2,
    )

    problem.optimize(solver_config)

    path = np.array(problem.get_path())
    path[-1] = target_q
    times = problem.get_path_times()
    logger.info(
        "%s", validate_path(
            configuration.get_joint_state(), path, times,
            configuration.joint_names,
        ),
    )
    return path, times
