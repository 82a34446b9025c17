"""Unit tests for the mean-preserving interpolation kernels.

Tests verify:
1. Every valid month's daily mean reproduces its monthly input
2. Missing months stay missing
3. Boundary values shape the curve without breaking mean preservation
"""

import numpy as np
import pytest
from numpy.testing import assert_allclose, assert_array_almost_equal

from sitemet.process.kernels.interpolation import (
    mean_preserving_daily,
    month_starts,
    solve_tridiagonal,
)

SEASONAL = np.array([-2.0, 0.5, 4.0, 8.5, 13.0, 16.5, 18.5, 18.0, 14.0, 9.0, 3.5, -0.5])


def month_means(daily, ndays):
    starts = month_starts(ndays)
    return np.array([daily[s:s + n].mean() for s, n in zip(starts, ndays)])


class TestMonthStarts:
    """Tests for month_starts."""

    def test_noleap(self, noleap_ndays):
        starts = month_starts(noleap_ndays)
        assert starts[0] == 0
        assert starts[2] == 59
        assert starts[11] == 334


class TestSolveTridiagonal:
    """Tests for the Thomas algorithm."""

    def test_matches_dense_solve(self):
        """Solution agrees with numpy's dense solver."""
        n = 12
        a = np.full(n, 0.125)
        b = np.full(n, 0.75)
        c = np.full(n, 0.125)
        d = np.linspace(-3.0, 7.0, n)
        dense = np.diag(b) + np.diag(a[1:], -1) + np.diag(c[:-1], 1)
        assert_array_almost_equal(solve_tridiagonal(a, b, c, d), np.linalg.solve(dense, d))

    def test_single_equation(self):
        x = solve_tridiagonal(np.zeros(1), np.array([2.0]), np.zeros(1), np.array([3.0]))
        assert_allclose(x, [1.5])


class TestMeanPreservingDaily:
    """Tests for mean_preserving_daily."""

    def test_output_length(self, noleap_ndays):
        daily = mean_preserving_daily(SEASONAL, noleap_ndays, SEASONAL[11], SEASONAL[0])
        assert daily.shape == (365,)

    def test_preserves_monthly_means(self, noleap_ndays):
        """Mean of the daily values of each month equals that month's input."""
        daily = mean_preserving_daily(SEASONAL, noleap_ndays, 1.0, -4.0)
        assert_allclose(month_means(daily, noleap_ndays), SEASONAL, atol=1e-9)

    def test_preserves_means_leap_year(self):
        """Mean preservation holds with a 29-day February."""
        ndays = np.array([31, 29, 31, 30, 31, 30, 31, 31, 30, 31, 30, 31], dtype=np.int64)
        daily = mean_preserving_daily(SEASONAL, ndays, SEASONAL[11], SEASONAL[0])
        assert daily.shape == (366,)
        assert_allclose(month_means(daily, ndays), SEASONAL, atol=1e-9)

    def test_constant_input_gives_constant_output(self, noleap_ndays):
        """A flat year with matching boundaries stays flat."""
        daily = mean_preserving_daily(np.full(12, 10.0), noleap_ndays, 10.0, 10.0)
        assert_allclose(daily, 10.0)

    def test_curve_is_smooth(self, noleap_ndays):
        """Daily steps stay small relative to month-to-month changes."""
        daily = mean_preserving_daily(SEASONAL, noleap_ndays, SEASONAL[11], SEASONAL[0])
        assert np.abs(np.diff(daily)).max() < 1.0

    def test_previous_december_shapes_january(self, noleap_ndays):
        """A warmer previous December raises early January but not January's mean."""
        monthly = np.full(12, 10.0)
        daily = mean_preserving_daily(monthly, noleap_ndays, 20.0, 10.0)
        assert daily[0] > 10.0
        assert daily[:31].mean() == pytest.approx(10.0)

    def test_nan_boundaries_extrapolate_flat(self, noleap_ndays):
        """NaN boundary values behave like the edge months themselves."""
        with_nan = mean_preserving_daily(SEASONAL, noleap_ndays, np.nan, np.nan)
        explicit = mean_preserving_daily(SEASONAL, noleap_ndays, SEASONAL[0], SEASONAL[11])
        assert_allclose(with_nan, explicit)

    def test_missing_month_stays_missing(self, noleap_ndays):
        """Days of a NaN month are NaN; other months keep their means."""
        monthly = SEASONAL.copy()
        monthly[2] = np.nan
        daily = mean_preserving_daily(monthly, noleap_ndays, SEASONAL[11], SEASONAL[0])

        assert np.isnan(daily[59:90]).all()
        assert not np.isnan(daily[:59]).any()
        assert not np.isnan(daily[90:]).any()

        means = month_means(daily, noleap_ndays)
        valid = ~np.isnan(monthly)
        assert_allclose(means[valid], monthly[valid], atol=1e-9)

    def test_all_missing(self, noleap_ndays):
        daily = mean_preserving_daily(np.full(12, np.nan), noleap_ndays, 1.0, 1.0)
        assert np.isnan(daily).all()

    def test_single_valid_month_is_flat(self, noleap_ndays):
        """An isolated month between gaps is its own mean on every day."""
        monthly = np.full(12, np.nan)
        monthly[5] = 7.0
        daily = mean_preserving_daily(monthly, noleap_ndays, np.nan, np.nan)
        june = daily[151:181]
        assert_allclose(june, 7.0)
