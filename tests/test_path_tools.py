"""Unit tests for path math utilities."""

import numpy as np
import pytest

from trajectories import (
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


def _quadratic_path(n: int = 5) -> np.ndarray:
    """q(t) = t^2 sampled at t = 0..n-1."""
    return (np.arange(n, dtype=np.float64) ** 2)[:, None]


# ============================================================
# TestFiniteDifferences
# ============================================================

class TestFiniteDifferences:
    """Tests for central-difference velocity and acceleration."""

    def test_linear_path_has_constant_velocity(self):
        """Interior and one-sided boundary differences agree on lines."""
        q = np.outer(np.arange(5), [1.0, 2.0])
        v = central_difference_velocity(q, tau=0.5)
        np.testing.assert_allclose(v, np.tile([2.0, 4.0], (5, 1)))

    def test_boundary_velocity_is_one_sided(self):
        """First and last samples use forward/backward differences."""
        q = _quadratic_path()
        v = central_difference_velocity(q, tau=1.0)
        np.testing.assert_allclose(v[:, 0], [1.0, 2.0, 4.0, 6.0, 7.0])

    def test_quadratic_path_acceleration(self):
        """Interior acceleration of t^2 is 2."""
        a = central_difference_acceleration(_quadratic_path(), tau=1.0)
        np.testing.assert_allclose(a[1:-1, 0], 2.0)

    def test_boundary_acceleration_is_half_neighbor(self):
        """Boundary samples copy half the adjacent interior value."""
        a = central_difference_acceleration(_quadratic_path(), tau=1.0)
        assert a[0, 0] == pytest.approx(1.0)
        assert a[-1, 0] == pytest.approx(1.0)

    def test_time_step_scaling(self):
        """Halving tau doubles velocity and quadruples acceleration."""
        q = _quadratic_path()
        np.testing.assert_allclose(
            central_difference_velocity(q, 0.5), 2 * central_difference_velocity(q, 1.0),
        )
        np.testing.assert_allclose(
            central_difference_acceleration(q, 0.5),
            4 * central_difference_acceleration(q, 1.0),
        )

    def test_constant_path_is_at_rest(self):
        """A path that never moves has zero velocity everywhere."""
        q = np.tile([0.3, -1.2, 2.0], (6, 1))
        np.testing.assert_array_equal(central_difference_velocity(q, 0.1), 0.0)
        np.testing.assert_array_equal(central_difference_acceleration(q, 0.1), 0.0)

    def test_two_sample_acceleration(self):
        """Two samples have no interior point; accelerations are zero."""
        q = np.array([[0.0, 1.0], [0.5, -1.0]])
        np.testing.assert_array_equal(central_difference_acceleration(q, 0.1), 0.0)


# ============================================================
# TestNaturalDuration
# ============================================================

class TestNaturalDuration:
    """Tests for the velocity/acceleration based duration estimate."""

    def test_quadratic_path(self):
        """Both scales equal 1, so the duration is the sample count."""
        q = _quadratic_path()
        assert natural_duration(q, max_vel=7.0, max_acc=2.0) == pytest.approx(5.0)

    def test_looser_bounds_shorten_duration(self):
        """Doubling both scales halves the duration."""
        q = _quadratic_path()
        assert natural_duration(q, max_vel=14.0, max_acc=8.0) == pytest.approx(2.5)

    def test_linear_path_uses_velocity_only(self):
        """A path without acceleration is bounded by velocity alone."""
        q = np.arange(4.0)[:, None]
        duration = natural_duration(q, max_vel=0.5, max_acc=1.0)
        assert duration == pytest.approx(8.0)
        assert duration > 0.0

    def test_motionless_path(self):
        """A constant path needs no time."""
        q = np.ones((6, 2))
        assert natural_duration(q, max_vel=1.0, max_acc=1.0) == 0.0


# ============================================================
# TestSineProfile
# ============================================================

class TestSineProfile:
    """Tests for raised-cosine interpolation."""

    def test_shape_and_endpoints(self):
        """steps + 1 samples with exact endpoints."""
        q0 = np.array([0.0, 1.0, -0.5])
        qT = np.array([1.0, -1.0, 0.5])
        q = sine_profile(q0, qT, steps=10)
        assert q.shape == (11, 3)
        np.testing.assert_array_equal(q[0], q0)
        np.testing.assert_array_equal(q[-1], qT)

    def test_monotone(self):
        """Each coordinate moves monotonically towards the goal."""
        q = sine_profile(np.zeros(2), np.array([1.0, -2.0]), steps=15)
        assert np.all(np.diff(q[:, 0]) >= 0.0)
        assert np.all(np.diff(q[:, 1]) <= 0.0)

    def test_midpoint(self):
        """Halfway through, the profile is halfway between the ends."""
        q = sine_profile(np.zeros(1), np.array([2.0]), steps=8)
        assert q[4, 0] == pytest.approx(1.0)

    def test_starts_and_ends_slowly(self):
        """First and last steps are shorter than the middle step."""
        q = sine_profile(np.zeros(1), np.ones(1), steps=10)
        steps = np.diff(q[:, 0])
        assert steps[0] < steps[5]
        assert steps[-1] < steps[5]


# ============================================================
# TestReverseAndMirror
# ============================================================

class TestReverseAndMirror:
    """Tests for path reversal and mirrored duplication."""

    def test_reverse_twice_is_identity(self):
        """Double reversal restores the path."""
        q = np.random.default_rng(0).normal(size=(7, 3))
        np.testing.assert_array_equal(reverse_path(reverse_path(q)), q)

    def test_reverse_returns_new_array(self):
        """The input is not modified through the result."""
        q = np.arange(6.0).reshape(3, 2)
        r = reverse_path(q)
        r[0, 0] = 100.0
        assert q[2, 0] == 4.0

    def test_mirror_duplicate(self):
        """The path returns to its start at twice the duration."""
        q = np.array([[0.0], [1.0], [2.0]])
        times = np.array([0.0, 1.0, 2.0])
        q_out, t_out = mirror_duplicate(q, times)
        np.testing.assert_array_equal(q_out[:, 0], [0.0, 1.0, 2.0, 1.0, 0.0])
        np.testing.assert_allclose(t_out, [0.0, 1.0, 2.0, 3.0, 4.0])

    def test_mirror_single_sample(self):
        """A one-sample path stays unchanged."""
        q_out, t_out = mirror_duplicate(np.array([[1.0, 2.0]]), np.array([0.5]))
        assert q_out.shape == (1, 2)
        assert len(t_out) == 1


# ============================================================
# TestSplineResampling
# ============================================================

class TestSplineResampling:
    """Tests for B-spline construction and resampling."""

    def test_spline_interpolates_endpoints(self):
        """A clamped spline passes through the first and last samples."""
        q = np.array([[0.0, 0.0], [1.0, 2.0], [3.0, 1.0], [4.0, 4.0]])
        spline = get_spline(q, duration=2.0)
        np.testing.assert_allclose(spline(0.0), q[0], atol=1e-12)
        np.testing.assert_allclose(spline(2.0), q[-1], atol=1e-12)

    def test_resample_count(self):
        """The sample count is round(scale * N)."""
        q = np.linspace(0.0, 1.0, 4)[:, None]
        assert resample(q, 1.5).shape == (6, 1)
        assert resample(q, 0.6).shape == (2, 1)

    def test_resample_endpoints(self):
        """Resampling keeps the start and end of the path."""
        q = np.array([[0.0], [0.5], [2.0], [1.0], [3.0]])
        r = resample(q, 2.0)
        assert r[0, 0] == pytest.approx(0.0)
        assert r[-1, 0] == pytest.approx(3.0)

    def test_resample_smooths_waypoints(self):
        """Interior waypoints are not reproduced exactly."""
        q = np.array([[0.0], [1.0], [0.0], [1.0], [0.0]])
        r = resample(q, 1.0)
        assert r[1, 0] < 1.0 - 1e-3

    def test_constant_path(self):
        """A constant path resamples to the same constant."""
        q = np.tile([0.3, -0.7], (5, 1))
        np.testing.assert_allclose(resample(q, 2.0), np.tile([0.3, -0.7], (10, 1)))


# ============================================================
# TestValidatePath
# ============================================================

class TestValidatePath:
    """Tests for the textual path summary."""

    def test_summary(self):
        """The summary reports start, end and peak velocity."""
        q = sine_profile(np.zeros(2), np.ones(2), steps=10)
        times = 0.1 * np.arange(1, 12)
        text = validate_path(np.zeros(2), q, times, ["a", "b"])
        assert text.startswith("VALIDATE")
        assert "vMax=" in text
        assert "a b" in text

    def test_dimension_mismatch(self):
        """A start state of the wrong size is rejected."""
        with pytest.raises(ValueError):
            validate_path(np.zeros(3), np.zeros((4, 2)), np.arange(1.0, 5.0))
