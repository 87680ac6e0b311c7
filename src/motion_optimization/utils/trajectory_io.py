"""Trajectory I/O utilities for optimized paths."""

import json
from typing import Any, Optional, Sequence, Tuple

import numpy as np


def save_path(
    json_path: str,
    q: np.ndarray | Sequence[np.ndarray],
    times: np.ndarray,
    metadata: Optional[dict[str, Any]] = None,
) -> None:
    """Write a path to JSON.

    Args:
        json_path: Output file path.
        q: Path (T, n), or a list of per-step joint states when the
            dimension changes along the path.
        times: Sample times (T,).
        metadata: Extra JSON-serializable entries (e.g. joint names).
    """
    data = {
        "times": np.asarray(times, dtype=np.float64).tolist(),
        "path": [np.asarray(q_t, dtype=np.float64).tolist() for q_t in q],
        "metadata": metadata or {},
    }
    with open(json_path, "w") as f:
        json.dump(data, f, indent=2)


def load_path(
    json_path: str,
) -> Tuple[np.ndarray | list[np.ndarray], np.ndarray, dict[str, Any]]:
    """Load a path written by save_path.

    Returns:
        (path, times, metadata); path is an array (T, n) when every step
        has the same dimension, otherwise a list of arrays.
    """
    with open(json_path) as f:
        data = json.load(f)

    path = [np.asarray(q_t, dtype=np.float64) for q_t in data["path"]]
    if path and len({len(q_t) for q_t in path}) == 1:
        path = np.vstack(path)
    return path, np.asarray(data["times"], dtype=np.float64), data["metadata"]
