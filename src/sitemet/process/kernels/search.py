"""Nearest-valid-cell search on a longitude ring."""

from __future__ import annotations

import numpy as np
from numba import njit
from numpy.typing import NDArray

__all__ = ["nearest_index", "ring_search"]


@njit(cache=True)
def nearest_index(axis: NDArray[np.float64], value: float) -> int:
    """Index of the axis coordinate with the smallest absolute difference to value."""
    best = 0
    best_dist = np.abs(axis[0] - value)
    for i in range(1, axis.shape[0]):
        dist = np.abs(axis[i] - value)
        if dist < best_dist:
            best = i
            best_dist = dist
    return best


@njit(cache=True)
def ring_search(valid: NDArray[np.bool_], i0: int) -> int:
    """
    Nearest valid index to i0 on a ring.

    Offsets are visited as +1, -1, +2, -2, ... with wraparound at both ends,
    so at equal distance the +1 direction wins. The search stops after one
    full traversal.

    Parameters
    ----------
    valid : (n,)
        Validity of each cell along the ring
    i0 : int
        Start index

    Returns
    -------
    int
        Index of the nearest valid cell, or -1 if none on the whole ring
    """
    n = valid.shape[0]
    if valid[i0]:
        return i0
    for step in range(1, 2 * n):
        magnitude = (step + 1) // 2
        offset = magnitude if step % 2 == 1 else -magnitude
        idx = (i0 + offset) % n
        if idx < 0:
            idx += n
        if valid[idx]:
            return idx
    return -1
