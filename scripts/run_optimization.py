#!/usr/bin/env python3
"""Run a pick-and-place trajectory optimization on the planar arm scene.

The arm grasps the box at --grasp-step, carries it and puts it down on the
table at --place-step; the box must end at the place position. The path
(joint states per step, whose dimension grows once the box rests on its
planar joint) is written as JSON.

Usage:
    python3 run_optimization.py [--steps 30] [--duration 3.0] [--obstacle 0.45 -0.1]
"""

import argparse
import logging
from pathlib import Path

import numpy as np

from models.robots import GRIPPER_FRAME
from models.scenes import TabletopScene


def main() -> None:
    """Run pick-and-place optimization."""
    parser = argparse.ArgumentParser(
        description="Optimize a pick-and-place trajectory with kinematic switches",
    )
    parser.add_argument(
        "--steps", type=int, default=30,
        help="Number of time steps (default: 30)",
    )
    parser.add_argument(
        "--duration", type=float, default=3.0,
        help="Motion duration in seconds (default: 3.0)",
    )
    parser.add_argument(
        "--grasp-step", type=int, default=10,
        help="Step at which the box is grasped (default: 10)",
    )
    parser.add_argument(
        "--place-step", type=int, default=20,
        help="Step at which the box is put down (default: 20)",
    )
    parser.add_argument(
        "--box", type=float, nargs=2, default=[0.5, 0.3],
        metavar=("X", "Y"),
        help="Initial box position on the table [m]",
    )
    parser.add_argument(
        "--place", type=float, nargs=2, default=[0.3, -0.5],
        metavar=("X", "Y"),
        help="Place position on the table [m]",
    )
    parser.add_argument(
        "--obstacle", type=float, nargs=2, default=None,
        metavar=("X", "Y"),
        help="Obstacle position on the table [m] (default: none)",
    )
    parser.add_argument(
        "--margin", type=float, default=0.01,
        help="Collision margin [m] (default: 0.01)",
    )
    parser.add_argument(
        "--max-iter", type=int, default=300,
        help="Max solver iterations (default: 300)",
    )
    parser.add_argument(
        "--seed", type=int, default=42,
        help="Random seed for the initial jitter (default: 42)",
    )
    parser.add_argument(
        "--output", type=str, default=None,
        help="Output JSON path (default: data/pick_and_place.json)",
    )
    args = parser.parse_args()

    if args.output is None:
        args.output = str(
            Path(__file__).parent.parent / "data" / "pick_and_place.json"
        )

    logging.basicConfig(
        level=logging.INFO,
        format="%(message)s",
    )
    logger = logging.getLogger(__name__)

    from motion_optimization import (
        MotionProblem,
        ObjectiveType,
        ProblemConfig,
        SolverConfig,
        SolveTimer,
        format_report,
    )
    from motion_optimization.utils import save_path

    logger.info("=" * 60)
    logger.info("Pick-and-Place Trajectory Optimization")
    logger.info("=" * 60)

    scene = TabletopScene(
        box_position=(args.box[0], args.box[1], 0.0),
        place_position=(args.place[0], args.place[1], 0.0),
        obstacle_position=(
            None if args.obstacle is None
            else (args.obstacle[0], args.obstacle[1], 0.0)
        ),
    )
    C = scene.build()

    config = ProblemConfig(
        steps=args.steps, duration=args.duration, k_order=2, seed=args.seed,
    )
    logger.info("  Steps: %d (tau = %.3f s)", config.steps, config.tau)
    logger.info("  Grasp at step %d, place at step %d", args.grasp_step, args.place_step)
    logger.info("  Box: %s -> %s", list(args.box), list(args.place))
    if args.obstacle is not None:
        logger.info("  Obstacle: %s (margin %.3f m)", list(args.obstacle), args.margin)
    logger.info("")

    problem = MotionProblem(C, config)
    problem.add_control_cost(order=2, precision=1.0)
    problem.set_limits()
    problem.set_grasp(args.grasp_step, GRIPPER_FRAME, "box")
    problem.set_place(args.place_step, GRIPPER_FRAME, "box", "table")
    problem.set_position(
        -1, -1, "box", ObjectiveType.EQ, target=scene.place_position,
        precision=1e1,
    )
    problem.set_slow_around(args.grasp_step, 1)
    problem.set_slow_around(args.place_step, 1)
    if args.obstacle is not None:
        problem.set_collisions(
            hard=True, margin=args.margin, pairs=[("box", "obstacle")],
        )

    timer = SolveTimer()
    result = problem.optimize(SolverConfig(max_iter=args.max_iter), timer=timer)

    logger.info("")
    logger.info(format_report(problem.get_report()))
    logger.info("  Success: %s (%s)", result.success, result.message)
    logger.info("  Evaluations: %d", result.n_evaluations)
    logger.info("  Wall time: %.2fs", result.wall_time)

    output_path = Path(args.output)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    save_path(
        str(output_path),
        problem.get_path(),
        problem.get_path_times(),
        metadata={
            "joint_names": [
                problem.trajectory.horizon(t).joint_names
                for t in range(config.steps)
            ],
            "switches": [str(sw) for sw in problem.switches],
            "cost": result.cost,
            "eq_violation": result.eq_violation,
            "ineq_violation": result.ineq_violation,
            "final_box_position": np.asarray(
                problem.trajectory.horizon(config.steps - 1).position("box"),
            ).tolist(),
        },
    )

    logger.info("")
    logger.info("Saved to %s", output_path)


if __name__ == "__main__":
    main()
