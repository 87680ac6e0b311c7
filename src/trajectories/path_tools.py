"""Path math utilities over sampled joint-space paths.

All functions operate on arrays of shape (N, n): N time samples of an
n-dimensional configuration. They are pure and do not validate their
input; callers are expected to pass well-formed paths.
"""

import numpy as np
from scipy.interpolate import BSpline


def central_difference_velocity(q: np.ndarray, tau: float) -> np.ndarray:
    """Estimate velocities by central differences.

    Boundary samples use one-sided differences.

    Args:
        q: Path (N, n), N >= 2.
        tau: Time step [s].

    Returns:
        Velocities (N, n).
    """
    q = np.asarray(q, dtype=np.float64)
    v = np.empty_like(q)
    v[1:-1] = (q[2:] - q[:-2]) / (2.0 * tau)
    v[0] = (q[1] - q[0]) / tau
    v[-1] = (q[-1] - q[-2]) / tau
    return v


def central_difference_acceleration(q: np.ndarray, tau: float) -> np.ndarray:
    """Estimate accelerations by central second differences.

    The boundary samples are set to half the adjacent interior value. This
    is an approximation, not the physical boundary acceleration; it is kept
    because natural_duration relies on this exact convention.

    Args:
        q: Path (N, n), N >= 3.
        tau: Time step [s].

    Returns:
        Accelerations (N, n).
    """
    q = np.asarray(q, dtype=np.float64)
    a = np.zeros_like(q)
    a[1:-1] = (q[2:] + q[:-2] - 2.0 * q[1:-1]) / (tau * tau)
    a[0] = a[1] / 2.0
    a[-1] = a[-2] / 2.0
    return a


def natural_duration(q: np.ndarray, max_vel: float, max_acc: float) -> float:
    """Duration at which a path respects velocity and acceleration bounds.

    Velocities and accelerations are evaluated with unit time steps, so the
    duration is N / max(v_scale, a_scale). A quantity that is zero
    everywhere imposes no bound and is left out; a motionless path yields 0.

    Args:
        q: Path (N, n), N >= 2.
        max_vel: Velocity bound.
        max_acc: Acceleration bound.

    Returns:
        Duration [s].
    """
    q = np.asarray(q, dtype=np.float64)
    v_max = float(np.max(np.abs(central_difference_velocity(q, 1.0))))
    if len(q) > 2:
        a_max = float(np.max(np.abs(central_difference_acceleration(q, 1.0))))
    else:
        a_max = 0.0

    scales = []
    if v_max > 0.0:
        scales.append(max_vel / v_max)
    if a_max > 0.0:
        scales.append(np.sqrt(max_acc / a_max))
    if not scales:
        return 0.0
    return float(len(q) / max(scales))


def sine_profile(q0: np.ndarray, qT: np.ndarray, steps: int) -> np.ndarray:
    """Raised-cosine interpolation from q0 to qT.

    Args:
        q0: Start configuration (n,).
        qT: End configuration (n,).
        steps: Number of intervals (>= 1).

    Returns:
        Path (steps + 1, n) with exact endpoints.
    """
    q0 = np.asarray(q0, dtype=np.float64)
    qT = np.asarray(qT, dtype=np.float64)
    s = 0.5 * (1.0 - np.cos(np.pi * np.arange(steps + 1) / steps))
    q = q0 + s[:, None] * (qT - q0)
    q[-1] = qT
    return q


def reverse_path(q: np.ndarray) -> np.ndarray:
    """Return a new path with the sample order reversed."""
    return np.array(np.asarray(q)[::-1])


def mirror_duplicate(
    q: np.ndarray,
    times: np.ndarray,
) -> tuple[np.ndarray, np.ndarray]:
    """Append a time-mirrored copy so that the path returns to its start.

    Args:
        q: Path (T + 1, n), non-empty.
        times: Sample times (T + 1,).

    Returns:
        Tuple of (path (2T + 1, n), times (2T + 1,)); the final time is
        twice the original one.
    """
    q = np.asarray(q, dtype=np.float64)
    times = np.asarray(times, dtype=np.float64)
    T = len(q) - 1
    D = 2.0 * times[-1]

    q_out = np.concatenate([q, q[T - 1::-1]]) if T > 0 else q.copy()
    t_out = np.concatenate([times, D - times[T - 1::-1]]) if T > 0 else times.copy()
    return q_out, t_out


def get_spline(
    q: np.ndarray,
    duration: float = 1.0,
    degree: int = 2,
) -> BSpline:
    """Clamped uniform B-spline using the path samples as control points.

    Args:
        q: Control points (N, n).
        duration: Parameter range [0, duration].
        degree: Spline degree (reduced if there are too few points).

    Returns:
        scipy BSpline evaluating to (n,) vectors.
    """
    q = np.asarray(q, dtype=np.float64)
    n_ctrl = len(q)
    k = min(degree, n_ctrl - 1)
    inner = np.linspace(0.0, duration, n_ctrl - k + 1)
    knots = np.concatenate([np.zeros(k), inner, np.full(k, duration)])
    return BSpline(knots, q, k)


def resample(q: np.ndarray, duration_scale: float) -> np.ndarray:
    """Resample a path through its B-spline.

    The spline interpolates only the first and last samples, so interior
    waypoints are smoothed rather than reproduced.

    Args:
        q: Path (N, n).
        duration_scale: Ratio of new to old sample count.

    Returns:
        Path (round(duration_scale * N), n).
    """
    q = np.asarray(q, dtype=np.float64)
    n_samples = int(round(duration_scale * len(q)))
    spline = get_spline(q)
    if n_samples == 1:
        return spline(np.array([0.0]))
    return spline(np.linspace(0.0, 1.0, n_samples))


def validate_path(
    q_now: np.ndarray,
    q: np.ndarray,
    times: np.ndarray,
    joint_names: list[str] | None = None,
) -> str:
    """Summarize the velocities implied by a timed path.

    Args:
        q_now: Current configuration the path starts from (n,).
        q: Path (N, n).
        times: Sample times (N,), times[0] > 0 being the time of q[0].
        joint_names: Optional dof names, listed when there are few.

    Returns:
        Multi-line text summary.
    """
    q = np.asarray(q, dtype=np.float64)
    times = np.asarray(times, dtype=np.float64)
    if len(q_now) != q.shape[1]:
        raise ValueError(
            f"q_now has {len(q_now)} entries, path has {q.shape[1]} columns"
        )

    lines = ["VALIDATE"]
    if len(q) > 1:
        start_vel = np.linalg.norm(q[0] - q_now) / times[0]
        end_vel = np.linalg.norm(q[-1] - q[-2]) / (times[-1] - times[-2])
        seg_vel = np.linalg.norm(np.diff(q, axis=0), axis=1) / np.diff(times)
        lines.append(
            f"v0={start_vel:.4g} vT={end_vel:.4g} vMax={np.max(seg_vel):.4g}"
        )
    if joint_names is not None and len(joint_names) <= 3:
        lines.append(" ".join(joint_names))
    return "\n".join(lines)
