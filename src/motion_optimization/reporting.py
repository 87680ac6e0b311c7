"""Per-objective cost and constraint reporting for motion problems."""

import numpy as np

from .objectives import ObjectiveType


def _block_error(kind: ObjectiveType, y: np.ndarray) -> float:
    if kind == ObjectiveType.SOS:
        return float(y @ y)
    if kind == ObjectiveType.INEQ:
        return float(np.sum(np.maximum(y, 0.0)))
    return float(np.sum(np.abs(y)))


def build_report(problem) -> dict:
    """Summarize residuals of a problem at its current decision vector.

    SOS objectives report the sum of squared residuals, INEQ objectives the
    summed positive part and EQ objectives the summed absolute value.

    Args:
        problem: A set-up MotionProblem.

    Returns:
        Dictionary with one entry per objective name plus ``"total"``; the
        per-step errors are in ``"errors"`` (T, num_objectives).
    """
    structure = problem.get_structure()
    evaluation = problem.evaluate(problem.x)

    errors = np.zeros((problem.steps, len(problem.objectives)))
    i = 0
    for block in structure.blocks:
        y = evaluation.phi[i:i + block.dim]
        errors[block.time, block.index] += _block_error(block.type, y)
        i += block.dim

    report = {"objectives": {}}
    totals = {"sqr_costs": 0.0, "eq": 0.0, "ineq": 0.0}
    for j, objective in enumerate(problem.objectives):
        value = float(np.sum(errors[:, j]))
        entry = {
            "order": objective.order,
            "type": objective.type.value,
            "active_steps": int(len(objective.active_steps)),
        }
        if objective.type == ObjectiveType.SOS:
            entry["sqr_costs"] = value
            totals["sqr_costs"] += value
        else:
            entry["constraints"] = value
            totals[objective.type.value] += value
        report["objectives"][objective.name] = entry

    report["total"] = totals
    report["errors"] = errors
    return report


def format_report(report: dict) -> str:
    """Render a report as a text table."""
    lines = ["=" * 70, "  Motion Problem Report", "=" * 70]
    lines.append(
        f"  {'Objective':<28} | {'Order':>5} | {'Type':>5} | {'Value':>12}"
    )
    lines.append(f"  {'-'*28}-+-{'-'*5}-+-{'-'*5}-+-{'-'*12}")
    for name, entry in report["objectives"].items():
        value = entry.get("sqr_costs", entry.get("constraints", 0.0))
        lines.append(
            f"  {name:<28} | {entry['order']:5d} | {entry['type']:>5} | "
            f"{value:12.6g}"
        )
    total = report["total"]
    lines.append(
        f"  total: sqr_costs = {total['sqr_costs']:.6g}, "
        f"eq = {total['eq']:.6g}, ineq = {total['ineq']:.6g}"
    )
    lines.append("=" * 70)
    return "\n".join(lines)
