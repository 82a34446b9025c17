"""Wet-day-count driven precipitation generator.

Distributes monthly precipitation totals over days so that, for every month:

- the daily values sum to the monthly total,
- exactly ``wetd`` days carry rain (wetd rounded half up to whole days and clipped
  to the month length),
- the remaining days are zero.

Which days are wet, and how the total is split among them, is drawn from a
seeded numpy Generator so runs are reproducible for a given seed.
"""

from __future__ import annotations

from typing import Optional

import numpy as np
from numpy.typing import NDArray


class WeatherGenerator:
    """Stochastic daily precipitation from monthly totals and wet-day counts.

    Args:
        seed: Seed for ``numpy.random.default_rng``; None draws fresh entropy.
        gamma_shape: Shape of the gamma distribution wet-day amounts are
            drawn from before normalisation (1.0 is exponential).
    """

    def __init__(self, seed: Optional[int] = None, gamma_shape: float = 1.0):
        if gamma_shape <= 0:
            raise ValueError("gamma_shape must be positive")
        self.seed = seed
        self.gamma_shape = float(gamma_shape)
        self._rng = np.random.default_rng(seed)

    def wet_day_count(self, wetd: float, ndays: int) -> int:
        # half days round up: 6.5 -> 7, 7.5 -> 8
        return int(min(max(np.floor(float(wetd) + 0.5), 0), int(ndays)))

    def month(self, total: float, wetd: float, ndays: int) -> NDArray[np.float64]:
        """Daily values for one month; all NaN if either input is missing."""
        if np.isnan(total) or np.isnan(wetd):
            return np.full(ndays, np.nan)

        daily = np.zeros(ndays, dtype=np.float64)
        n_wet = self.wet_day_count(wetd, ndays)
        if n_wet == 0 or total <= 0.0:
            return daily

        wet_days = self._rng.choice(ndays, size=n_wet, replace=False)
        weights = self._rng.gamma(self.gamma_shape, 1.0, size=n_wet)
        weights = np.maximum(weights, np.finfo(np.float64).tiny)
        daily[wet_days] = total * weights / weights.sum()
        return daily

    def daily_precipitation(
        self,
        mprec: NDArray[np.float64],
        mwetd: NDArray[np.float64],
        ndays: NDArray[np.int64],
    ) -> NDArray[np.float64]:
        """
        Daily precipitation for one year.

        Parameters
        - mprec: (12,) monthly totals [mm], NaN where missing.
        - mwetd: (12,) wet-day counts, NaN where missing.
        - ndays: (12,) month lengths under the active calendar policy.

        Returns
        - (sum(ndays),) daily precipitation [mm/day].
        """
        mprec = np.asarray(mprec, dtype=np.float64)
        mwetd = np.asarray(mwetd, dtype=np.float64)
        return np.concatenate(
            [self.month(p, w, int(n)) for p, w, n in zip(mprec, mwetd, ndays)]
        )

    def __repr__(self) -> str:
        return f"WeatherGenerator(seed={self.seed!r}, gamma_shape={self.gamma_shape})"
