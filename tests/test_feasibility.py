"""Tests for limit and collision checks with local repair."""

import numpy as np
import pytest

from collision_check import SphereCollisionChecker
from kinematics import Configuration, JointType
from models.scenes import build_sphere_pair
from motion_optimization import (
    FeasibilityError,
    FeasibilityReport,
    PoseTool,
    RepairConfig,
    StructureError,
)

PAIR = [("ball_a", "ball_b")]
MARGIN = 1e-3


def _penetration(configuration: Configuration) -> float:
    y, _ = SphereCollisionChecker(configuration).pair_penetrations(PAIR)
    return float(y[0])


@pytest.fixture
def single_hinge() -> Configuration:
    """One hinge at 1.1 rad with limits [-1, 1]."""
    C = Configuration()
    C.add_frame("world")
    C.add_frame("j", "world", JointType.HINGE_Z, q=[1.1], limits=[[-1.0, 1.0]])
    return C


@pytest.fixture
def clipped_collision() -> Configuration:
    """Slider outside its limits that still collides after clipping."""
    return build_sphere_pair(gap=-0.01, q=0.06, limit=0.05)


# ============================================================
# TestLimits
# ============================================================

class TestLimits:
    """Tests for joint-limit checks."""

    def test_report_only(self, single_hinge):
        """Without solve the state is reported and left alone."""
        report = PoseTool(single_hinge).check_limits()
        assert not report
        assert report.limit_violations == [("j:rz", 1.1, -1.0, 1.0)]
        np.testing.assert_allclose(single_hinge.get_joint_state(), [1.1])

    def test_strict(self, single_hinge):
        """Strict checks raise instead of returning a failure."""
        with pytest.raises(FeasibilityError):
            PoseTool(single_hinge).check_limits(strict=True)

    def test_clip(self, single_hinge):
        """Solving clips the joint onto its bound."""
        report = PoseTool(single_hinge).check_limits(solve=True)
        assert report
        assert report.repaired
        assert single_hinge.get_joint_state()[0] == 1.0

    def test_explicit_limits(self, single_hinge):
        """Explicit bounds replace the configured limits."""
        tool = PoseTool(single_hinge)
        assert tool.check_limits(limits=[[-2.0, 2.0]])
        assert not tool.check_limits(limits=[[-0.5, 0.5]])

    def test_enforce_bounds(self, single_hinge):
        """Round-off is clipped, real violations are structural errors."""
        tool = PoseTool(single_hinge)
        np.testing.assert_array_equal(
            tool._enforce_bounds(np.array([1.0 + 1e-9]), None), [1.0],
        )
        with pytest.raises(StructureError):
            tool._enforce_bounds(np.array([1.01]), None)


# ============================================================
# TestCollisions
# ============================================================

class TestCollisions:
    """Tests for collision checks and repair."""

    def test_report_only(self, sphere_pair):
        """Without solve the overlapping pair is reported."""
        report = PoseTool(sphere_pair).check_collisions(PAIR)
        assert not report
        assert report.collisions[0][:2] == ("ball_a", "ball_b")
        assert report.collisions[0][2] == pytest.approx(0.01)
        np.testing.assert_allclose(sphere_pair.get_joint_state(), [0.0])

    def test_strict(self, sphere_pair):
        """Strict checks raise instead of returning a failure."""
        with pytest.raises(FeasibilityError):
            PoseTool(sphere_pair).check_collisions(strict=True)

    def test_free(self, sphere_pair):
        """Separated shapes pass without modification."""
        sphere_pair.set_joint_state([-0.2])
        report = PoseTool(sphere_pair).check_collisions(solve=True)
        assert report
        assert not report.repaired
        np.testing.assert_allclose(sphere_pair.get_joint_state(), [-0.2])

    def test_repair_explicit_pairs(self, sphere_pair):
        """The slider moves just far enough to keep the margin."""
        report = PoseTool(sphere_pair).check_collisions(PAIR, solve=True)
        assert report
        assert report.repaired
        assert _penetration(sphere_pair) <= -MARGIN + 1e-5
        assert sphere_pair.get_joint_state()[0] == pytest.approx(-0.011, abs=1e-3)

    def test_repair_broad_phase(self, sphere_pair):
        """Without explicit pairs every nearby shape pair is constrained."""
        report = PoseTool(sphere_pair).check_collisions(solve=True)
        assert report
        assert _penetration(sphere_pair) <= -MARGIN + 1e-5


# ============================================================
# TestCombinedRepair
# ============================================================

class TestCombinedRepair:
    """Tests for limits and collisions handled together."""

    def test_sequential(self, clipped_collision):
        """Limits are clipped first, then the collision is resolved."""
        report = PoseTool(clipped_collision).check_limits_and_collisions(solve=True)
        assert report
        assert report.repaired
        assert len(report.limit_violations) == 1
        assert len(report.collisions) == 1
        q = clipped_collision.get_joint_state()[0]
        assert -0.05 <= q <= 0.05
        assert _penetration(clipped_collision) <= -MARGIN + 1e-5

    def test_simultaneous(self, clipped_collision):
        """One repair problem handles both violations."""
        tool = PoseTool(clipped_collision, RepairConfig(simultaneous=True))
        report = tool.check_limits_and_collisions(solve=True)
        assert report
        assert len(report.limit_violations) == 1
        q = clipped_collision.get_joint_state()[0]
        assert -0.05 <= q <= 0.05
        assert _penetration(clipped_collision) <= -MARGIN + 1e-5

    def test_first_failure_stops(self, clipped_collision):
        """Without solve the collision check is not reached."""
        report = PoseTool(clipped_collision).check_limits_and_collisions()
        assert not report
        assert report.collisions == []

    def test_infeasible(self):
        """Limits that forbid leaving the collision make repair fail."""
        C = build_sphere_pair(gap=-0.05, limit=0.005)
        tool = PoseTool(C, RepairConfig(simultaneous=True))
        report = tool.check_limits_and_collisions(solve=True)
        assert not report
        np.testing.assert_allclose(C.get_joint_state(), [0.0])
        with pytest.raises(FeasibilityError):
            tool.check_limits_and_collisions(solve=True, strict=True)


# ============================================================
# TestFeasibilityReport
# ============================================================

class TestFeasibilityReport:
    """Tests for report truthiness and merging."""

    def test_merge(self):
        """Merged reports fail if either fails and keep all findings."""
        a = FeasibilityReport(True, repaired=True, message="limits clipped")
        b = FeasibilityReport(False, collisions=[("a", "b", 0.1)], message="failed")
        merged = a.merge(b)
        assert not merged
        assert merged.repaired
        assert merged.collisions == [("a", "b", 0.1)]
        assert merged.message == "limits clipped; failed"
        assert a.merge(FeasibilityReport(True))
