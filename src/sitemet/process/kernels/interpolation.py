"""Mean-preserving monthly to daily interpolation.

Pure kernels turning a year of monthly means into a continuous daily curve
whose average over every calendar month reproduces the monthly input.
"""

from __future__ import annotations

import numpy as np
from numba import njit
from numpy.typing import NDArray

__all__ = ["month_starts", "solve_tridiagonal", "mean_preserving_daily"]

# Boundary knots sit at the mid-points of the neighbouring December (before
# the year) and January (after it); both months have 31 days.
BOUNDARY_HALF_WIDTH = 15.5


@njit(cache=True)
def month_starts(ndays: NDArray[np.int64]) -> NDArray[np.int64]:
    """Zero-based day-of-year index of the first day of each month."""
    starts = np.zeros(ndays.shape[0], dtype=np.int64)
    for k in range(1, ndays.shape[0]):
        starts[k] = starts[k - 1] + ndays[k - 1]
    return starts


@njit(cache=True)
def solve_tridiagonal(
    a: NDArray[np.float64],
    b: NDArray[np.float64],
    c: NDArray[np.float64],
    d: NDArray[np.float64],
) -> NDArray[np.float64]:
    """
    Thomas algorithm for a tridiagonal system.

    Parameters
    ----------
    a : (n,)
        Sub-diagonal, a[0] unused
    b : (n,)
        Diagonal
    c : (n,)
        Super-diagonal, c[n-1] unused
    d : (n,)
        Right-hand side

    Returns
    -------
    x : (n,)

    Notes
    -----
    Stable without pivoting for diagonally dominant systems, which the
    month-mean system always is (b ~ 0.75, a, c ~ 0.125).
    """
    n = d.shape[0]
    cp = np.empty(n, dtype=np.float64)
    dp = np.empty(n, dtype=np.float64)
    x = np.empty(n, dtype=np.float64)

    cp[0] = c[0] / b[0]
    dp[0] = d[0] / b[0]
    for i in range(1, n):
        den = b[i] - a[i] * cp[i - 1]
        cp[i] = c[i] / den
        dp[i] = (d[i] - a[i] * dp[i - 1]) / den

    x[n - 1] = dp[n - 1]
    for i in range(n - 2, -1, -1):
        x[i] = dp[i] - cp[i] * x[i + 1]
    return x


@njit(cache=True)
def _run_coefficients(starts, ndays, xs, s, e):
    m = e - s
    a = np.zeros(m, dtype=np.float64)
    b = np.zeros(m, dtype=np.float64)
    c = np.zeros(m, dtype=np.float64)
    for r in range(m):
        k = s + r
        xm = xs[r + 1]
        for d in range(ndays[k]):
            t = starts[k] + d + 0.5
            if t <= xm:
                w = (t - xs[r]) / (xm - xs[r])
                a[r] += 1.0 - w
                b[r] += w
            else:
                w = (t - xm) / (xs[r + 2] - xm)
                b[r] += 1.0 - w
                c[r] += w
        a[r] /= ndays[k]
        b[r] /= ndays[k]
        c[r] /= ndays[k]
    return a, b, c


@njit(cache=True)
def _evaluate_run(out, starts, ndays, xs, ys, s, e):
    for r in range(e - s):
        k = s + r
        xm = xs[r + 1]
        for d in range(ndays[k]):
            t = starts[k] + d + 0.5
            if t <= xm:
                w = (t - xs[r]) / (xm - xs[r])
                out[starts[k] + d] = (1.0 - w) * ys[r] + w * ys[r + 1]
            else:
                w = (t - xm) / (xs[r + 2] - xm)
                out[starts[k] + d] = (1.0 - w) * ys[r + 1] + w * ys[r + 2]


@njit(cache=True)
def mean_preserving_daily(
    monthly: NDArray[np.float64],
    ndays: NDArray[np.int64],
    prev_value: float,
    next_value: float,
) -> NDArray[np.float64]:
    """
    Expand twelve monthly means to a continuous daily curve.

    The curve is piecewise linear between knots at month mid-points. Knot
    values are solved so that the mean of the daily values of each month
    equals that month's input exactly.

    Physical constraints:
        - mean(out[month k]) == monthly[k] for every non-missing month
        - months with NaN input produce NaN days; they are never filled

    Parameters
    ----------
    monthly : (12,)
        Monthly means, NaN where missing
    ndays : (12,)
        Days in each month under the active calendar policy
    prev_value : float
        Knot value at the previous December's mid-point (NaN: flat)
    next_value : float
        Knot value at the following January's mid-point (NaN: flat)

    Returns
    -------
    daily : (sum(ndays),)

    Notes
    -----
    Each contiguous run of valid months is solved on its own. Where a run
    borders a missing month (or a NaN boundary value) the outer knot takes
    the run's own edge value, i.e. flat extrapolation.
    """
    n_months = monthly.shape[0]
    starts = month_starts(ndays)
    n_days = starts[n_months - 1] + ndays[n_months - 1]
    mids = starts + ndays * 0.5
    out = np.full(n_days, np.nan)

    k = 0
    while k < n_months:
        if np.isnan(monthly[k]):
            k += 1
            continue
        s = k
        while k < n_months and not np.isnan(monthly[k]):
            k += 1
        e = k
        m = e - s

        xs = np.empty(m + 2, dtype=np.float64)
        ys = np.empty(m + 2, dtype=np.float64)
        for r in range(m):
            xs[r + 1] = mids[s + r]

        if s == 0:
            xs[0] = -BOUNDARY_HALF_WIDTH
            ys[0] = monthly[s] if np.isnan(prev_value) else prev_value
        else:
            xs[0] = mids[s - 1]
            ys[0] = monthly[s]

        if e == n_months:
            xs[m + 1] = n_days + BOUNDARY_HALF_WIDTH
            ys[m + 1] = monthly[e - 1] if np.isnan(next_value) else next_value
        else:
            xs[m + 1] = mids[e]
            ys[m + 1] = monthly[e - 1]

        a, b, c = _run_coefficients(starts, ndays, xs, s, e)
        rhs = monthly[s:e].copy()
        rhs[0] -= a[0] * ys[0]
        rhs[m - 1] -= c[m - 1] * ys[m + 1]
        knots = solve_tridiagonal(a, b, c, rhs)
        for r in range(m):
            ys[r + 1] = knots[r]

        _evaluate_run(out, starts, ndays, xs, ys, s, e)

    return out
