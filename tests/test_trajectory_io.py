"""Tests for saving and loading optimized paths."""

import numpy as np

from motion_optimization.utils import load_path, save_path


class TestTrajectoryIO:
    """Tests for the JSON path format."""

    def test_uniform_dims(self, tmp_path):
        """Constant-dimension paths load back as a 2D array."""
        q = np.linspace(0.0, 1.0, 12).reshape(4, 3)
        times = np.array([0.1, 0.2, 0.3, 0.4])
        json_path = tmp_path / "path.json"
        save_path(str(json_path), q, times, {"joint_names": ["a", "b", "c"]})

        path, loaded_times, metadata = load_path(str(json_path))
        assert isinstance(path, np.ndarray)
        np.testing.assert_allclose(path, q)
        np.testing.assert_allclose(loaded_times, times)
        assert metadata == {"joint_names": ["a", "b", "c"]}

    def test_varying_dims(self, tmp_path):
        """Paths across switches load back as a list of states."""
        q = [np.zeros(3), np.ones(3), np.arange(6.0)]
        json_path = tmp_path / "switched.json"
        save_path(str(json_path), q, np.array([0.5, 1.0, 1.5]))

        path, _, metadata = load_path(str(json_path))
        assert isinstance(path, list)
        assert [len(q_t) for q_t in path] == [3, 3, 6]
        np.testing.assert_allclose(path[2], np.arange(6.0))
        assert metadata == {}
