"""Unit tests for kinematic switches and the configuration arena."""

import numpy as np
import pytest

from kinematics import JointType
from motion_optimization import KinematicSwitch, StructureError, SwitchType, Trajectory


def _attach_detach(time_attach: int = 2, time_detach: int = 5):
    return [
        KinematicSwitch(SwitchType.RIGID, "box", "gripper", time=time_attach),
        KinematicSwitch(SwitchType.DELETE, "box", time=time_detach),
    ]


# ============================================================
# TestKinematicSwitch
# ============================================================

class TestKinematicSwitch:
    """Tests for switch construction and application."""

    def test_string_arguments(self):
        """Kind and joint type can be given by name."""
        sw = KinematicSwitch("joint", "box", "table", "trans_xy_phi", time=3)
        assert sw.kind == SwitchType.JOINT
        assert sw.joint == JointType.TRANS_XY_PHI
        assert str(sw) == "joint(box -> table) @ 3"

    def test_attach_needs_parent(self):
        """Rigid and joint switches require a parent frame."""
        with pytest.raises(ValueError):
            KinematicSwitch(SwitchType.RIGID, "box")

    def test_joint_needs_dofs(self):
        """A joint switch with a rigid joint is rejected."""
        with pytest.raises(ValueError):
            KinematicSwitch(SwitchType.JOINT, "box", "table", JointType.RIGID)

    def test_apply(self, tabletop):
        """Applying a switch edits the structure in place."""
        KinematicSwitch(SwitchType.JOINT, "box", "table", JointType.TRANS_XY_PHI).apply(tabletop)
        assert tabletop.frame("box").joint == JointType.TRANS_XY_PHI
        assert tabletop.joint_state_dim == 6


# ============================================================
# TestTrajectory
# ============================================================

class TestTrajectory:
    """Tests for the time-indexed configuration array."""

    def test_length(self, tabletop):
        """The arena holds k_order + T configurations."""
        traj = Trajectory(tabletop, _attach_detach(), k_order=2, steps=8, tau=0.1)
        assert len(traj) == 10
        assert len(traj.configurations) == 10

    def test_switch_ordering(self, tabletop):
        """Attach at step 2 and detach at step 5 show up in time order."""
        traj = Trajectory(tabletop, _attach_detach(), k_order=2, steps=8, tau=0.1)

        before = traj.horizon(1)
        assert before.frame_names == tabletop.frame_names
        assert before.frame("box").parent == "table"

        assert traj.horizon(2).frame("box").parent == "gripper"
        assert traj.horizon(3).frame("box").parent == "gripper"
        assert traj.horizon(4).frame("box").parent == "gripper"
        assert traj.horizon(6).frame("box").parent is None
        assert traj.horizon(7).frame("box").parent is None

    def test_prefix_equals_base(self, tabletop):
        """Prefix configurations copy the base structure and state."""
        traj = Trajectory(tabletop, _attach_detach(), k_order=2, steps=8, tau=0.1)
        for t in (-2, -1):
            C = traj.horizon(t)
            assert C.frame("box").parent == "table"
            np.testing.assert_array_equal(C.get_joint_state(), tabletop.get_joint_state())

    def test_switch_in_prefix(self, tabletop):
        """A switch at time 1 - k_order edits the last prefix slots."""
        switches = [KinematicSwitch(SwitchType.RIGID, "box", "gripper", time=-1)]
        traj = Trajectory(tabletop, switches, k_order=2, steps=4, tau=0.1)
        assert traj.horizon(-2).frame("box").parent == "table"
        assert traj.horizon(-1).frame("box").parent == "gripper"

    def test_detach_keeps_pose(self, tabletop):
        """The box is released where it was carried to."""
        traj = Trajectory(tabletop, _attach_detach(), k_order=2, steps=8, tau=0.1)
        np.testing.assert_allclose(
            traj.horizon(5).position("box"), traj.horizon(4).position("box"), atol=1e-12,
        )

    def test_snapshots_are_independent(self, tabletop):
        """Changing one step's state leaves its neighbours untouched."""
        traj = Trajectory(tabletop, _attach_detach(), k_order=2, steps=8, tau=0.1)
        q_next = traj.horizon(4).get_joint_state()
        traj.horizon(3).set_joint_state([1.0, 1.0, 1.0])
        np.testing.assert_array_equal(traj.horizon(4).get_joint_state(), q_next)
        assert traj.horizon(2).get_joint_state()[0] != 1.0

    def test_base_is_copied(self, tabletop):
        """Later edits of the base do not reach the trajectory."""
        traj = Trajectory(tabletop, [], k_order=1, steps=3, tau=0.1)
        tabletop.detach("joint2")
        assert traj.horizon(0).joint_state_dim == 3

    @pytest.mark.parametrize("time", [-2, 8])
    def test_switch_out_of_range(self, tabletop, time):
        """Switches that can never be applied are structural errors."""
        switches = [KinematicSwitch(SwitchType.DELETE, "box", time=time)]
        with pytest.raises(StructureError):
            Trajectory(tabletop, switches, k_order=2, steps=8, tau=0.1)

    def test_variable_dims(self, tabletop):
        """An articulated attachment changes the dimension from its step on."""
        switches = [
            KinematicSwitch(SwitchType.JOINT, "box", "table", JointType.TRANS_XY_PHI, time=4),
        ]
        traj = Trajectory(tabletop, switches, k_order=2, steps=6, tau=0.1)
        assert traj.variable_dims() == [3, 3, 3, 3, 6, 6]
        assert traj.get_x().shape == (24,)

    def test_set_x(self, tabletop):
        """The decision vector is split over the horizon steps."""
        traj = Trajectory(tabletop, [], k_order=2, steps=3, tau=0.1)
        x = np.arange(9.0)
        traj.set_x(x)
        np.testing.assert_array_equal(traj.horizon(1).get_joint_state(), [3.0, 4.0, 5.0])
        np.testing.assert_array_equal(traj.get_x(), x)
        np.testing.assert_array_equal(traj.horizon(-1).get_joint_state(), tabletop.get_joint_state())

    def test_set_x_length(self, tabletop):
        """A decision vector of the wrong size is a structural error."""
        traj = Trajectory(tabletop, [], k_order=2, steps=3, tau=0.1)
        with pytest.raises(StructureError):
            traj.set_x(np.zeros(8))

    def test_window(self, tabletop):
        """Windows end at the requested step; too long ones are errors."""
        traj = Trajectory(tabletop, [], k_order=2, steps=3, tau=0.1)
        window = traj.window(0, 2)
        assert len(window) == 3
        assert window[-1] is traj.horizon(0)
        with pytest.raises(StructureError):
            traj.window(0, 3)
