"""Constrained nonlinear solver adapter.

Drives scipy.optimize.minimize on any program exposing ``get_structure()``
and ``evaluate(x)``. The program's residual vector is split by type:

    cost:         f(x) = sum(phi_sos^2),  grad = 2 J_sos^T phi_sos
    equalities:   phi_eq(x) = 0
    inequalities: phi_ineq(x) <= 0  (scipy expects >= 0, so the sign flips)
"""

import logging
from dataclasses import dataclass
from typing import Protocol

import numpy as np
from scipy.optimize import minimize

from .objectives import ObjectiveType

logger = logging.getLogger(__name__)


class NonlinearProgram(Protocol):
    """Oracle interface consumed by ``solve``."""

    def get_structure(self): ...

    def evaluate(self, x: np.ndarray): ...


@dataclass
class SolverConfig:
    """Configuration for the nonlinear solver.

    Attributes:
        method: scipy.optimize method name (must support constraints).
        max_iter: Maximum number of iterations.
        stop_tolerance: Function tolerance for convergence.
        disp: Forward scipy's convergence messages.
    """

    method: str = "SLSQP"
    max_iter: int = 200
    stop_tolerance: float = 1e-6
    disp: bool = False


@dataclass
class SolverResult:
    """Outcome of a single solve.

    Attributes:
        x: Final decision vector.
        success: Whether the solver reported convergence.
        message: Solver status message.
        n_iterations: Iterations performed.
        n_evaluations: Distinct program evaluations.
        cost: Sum of squared SOS residuals at x.
        eq: Sum of absolute equality residuals at x.
        ineq: Sum of positive inequality residuals at x.
    """

    x: np.ndarray
    success: bool
    message: str
    n_iterations: int = 0
    n_evaluations: int = 0
    cost: float = 0.0
    eq: float = 0.0
    ineq: float = 0.0


def measure(evaluation) -> tuple[float, float, float]:
    """Total cost, equality and inequality violation of an evaluation."""
    phi = evaluation.phi
    sos = phi[evaluation.indices(ObjectiveType.SOS)]
    eq = phi[evaluation.indices(ObjectiveType.EQ)]
    ineq = phi[evaluation.indices(ObjectiveType.INEQ)]
    return (
        float(sos @ sos),
        float(np.sum(np.abs(eq))),
        float(np.sum(np.maximum(ineq, 0.0))),
    )


class _EvaluationCache:
    """Cache the last evaluation so cost and constraints share one call."""

    def __init__(self, program: NonlinearProgram) -> None:
        self.program = program
        self.n_evaluations = 0
        self._last_x_hash: int | None = None
        self._last = None

    def get(self, x: np.ndarray):
        x_hash = hash(x.tobytes())
        if x_hash != self._last_x_hash:
            self._last = self.program.evaluate(x)
            self._last_x_hash = x_hash
            self.n_evaluations += 1
        return self._last


def _rows(evaluation, kind: ObjectiveType):
    idx = evaluation.indices(kind)
    return evaluation.phi[idx], evaluation.jacobian[idx]


def build_scipy_constraints(
    cache: _EvaluationCache,
    evaluation,
) -> list[dict]:
    """Build the scipy constraint list for the residual types present."""
    constraints = []
    if len(evaluation.indices(ObjectiveType.EQ)):
        constraints.append({
            "type": "eq",
            "fun": lambda x: _rows(cache.get(x), ObjectiveType.EQ)[0],
            "jac": lambda x: _rows(cache.get(x), ObjectiveType.EQ)[1].toarray(),
        })
    if len(evaluation.indices(ObjectiveType.INEQ)):
        constraints.append({
            "type": "ineq",
            "fun": lambda x: -_rows(cache.get(x), ObjectiveType.INEQ)[0],
            "jac": lambda x: -_rows(cache.get(x), ObjectiveType.INEQ)[1].toarray(),
        })
    return constraints


def solve(
    program: NonlinearProgram,
    x0: np.ndarray,
    config: SolverConfig | None = None,
) -> SolverResult:
    """Minimize the program's SOS cost subject to its constraints.

    Args:
        program: Object with ``get_structure()`` and ``evaluate(x)``.
        x0: Initial decision vector.
        config: Solver configuration.

    Returns:
        SolverResult at the final iterate.
    """
    config = config or SolverConfig()
    x0 = np.asarray(x0, dtype=np.float64).ravel()
    cache = _EvaluationCache(program)

    def cost(x: np.ndarray) -> float:
        phi, _ = _rows(cache.get(x), ObjectiveType.SOS)
        return float(phi @ phi)

    def gradient(x: np.ndarray) -> np.ndarray:
        phi, J = _rows(cache.get(x), ObjectiveType.SOS)
        return 2.0 * (J.T @ phi)

    initial = cache.get(x0)
    constraints = build_scipy_constraints(cache, initial)

    result = minimize(
        cost,
        x0,
        jac=gradient,
        method=config.method,
        constraints=constraints,
        options={
            "maxiter": config.max_iter,
            "ftol": config.stop_tolerance,
            "disp": config.disp,
        },
    )

    x = np.asarray(result.x, dtype=np.float64)
    f, eq, ineq = measure(cache.get(x))
    logger.debug(
        "%s finished after %d iterations: %s", config.method,
        int(getattr(result, "nit", 0)), result.message,
    )
    return SolverResult(
        x=x,
        success=bool(result.success),
        message=str(result.message),
        n_iterations=int(getattr(result, "nit", 0)),
        n_evaluations=cache.n_evaluations,
        cost=f,
        eq=eq,
        ineq=ineq,
    )
