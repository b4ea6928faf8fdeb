"""Utilities for thinning long convergence tables before display."""

from __future__ import annotations

import numpy as np


def log_spaced_indices(rows: int, target_rows: int = 20) -> np.ndarray:
    """
    Row positions spaced evenly on a log scale.

    Early rows, where the estimate moves the most, get more coverage than a
    linear spacing would give; the first and last rows are always included.
    """
    if target_rows < 1:
        raise ValueError("target_rows must be at least 1")
    if rows <= 0:
        return np.array([], dtype=int)
    if rows <= target_rows:
        return np.arange(rows)
    positions = np.geomspace(1, rows, target_rows).astype(int) - 1
    positions[0] = 0
    positions[-1] = rows - 1
    return np.unique(positions)


__all__ = ["log_spaced_indices"]
