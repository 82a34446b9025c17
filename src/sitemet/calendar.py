"""Daily calendars for sites.

A site's calendar covers every day of the full years spanned by its
``[date_start, date_end]`` range. Two policies are supported:

- ``noleap``: 365 days per year, Feb 29 never present.
- ``gregorian``: the real calendar, 366 days in leap years.
"""

from __future__ import annotations

import calendar as _stdlib_calendar
from typing import Dict, Iterable, Tuple

import numpy as np
import pandas as pd

CALENDAR_POLICIES = ("noleap", "gregorian")

_NOLEAP_MONTH_DAYS = np.array([31, 28, 31, 30, 31, 30, 31, 31, 30, 31, 30, 31], dtype=np.int64)


def _check_policy(policy: str) -> None:
    if policy not in CALENDAR_POLICIES:
        raise ValueError(f"Unknown calendar policy {policy!r}; expected one of {CALENDAR_POLICIES}")


def is_leap_year(year: int) -> bool:
    return _stdlib_calendar.isleap(int(year))


def days_in_month(year: int, policy: str = "noleap") -> np.ndarray:
    """Length of each month of ``year`` under ``policy`` as an int64 array of 12."""
    _check_policy(policy)
    ndays = _NOLEAP_MONTH_DAYS.copy()
    if policy == "gregorian" and is_leap_year(year):
        ndays[1] = 29
    return ndays


def days_in_year(year: int, policy: str = "noleap") -> int:
    return int(days_in_month(year, policy).sum())


def build_calendar(year_start: int, year_end: int, calendar_policy: str = "noleap") -> pd.DatetimeIndex:
    """Ordered daily dates from Jan 1 of year_start to Dec 31 of year_end.

    Parameters
    - year_start, year_end: inclusive year range, year_start <= year_end.
    - calendar_policy: 'noleap' drops every Feb 29; 'gregorian' keeps them.

    Returns
    - pandas.DatetimeIndex named 'date'.
    """
    _check_policy(calendar_policy)
    if year_end < year_start:
        raise ValueError(f"year_end ({year_end}) precedes year_start ({year_start})")

    dates = pd.date_range(f"{int(year_start)}-01-01", f"{int(year_end)}-12-31", freq="D", name="date")
    if calendar_policy == "noleap":
        dates = dates[~((dates.month == 2) & (dates.day == 29))]
    return dates


class CalendarBuilder:
    """Build (and cache) daily calendars under one policy.

    Many sites share a year range, so calendars are cached per
    ``(year_start, year_end)``.
    """

    def __init__(self, policy: str = "noleap"):
        _check_policy(policy)
        self.policy = policy
        self._cache: Dict[Tuple[int, int], pd.DatetimeIndex] = {}

    def build(self, year_start: int, year_end: int) -> pd.DatetimeIndex:
        key = (int(year_start), int(year_end))
        if key not in self._cache:
            self._cache[key] = build_calendar(key[0], key[1], self.policy)
        return self._cache[key]

    def year(self, year: int) -> pd.DatetimeIndex:
        return self.build(year, year)

    def days_in_month(self, year: int) -> np.ndarray:
        return days_in_month(year, self.policy)

    def for_sites(self, sites: Iterable) -> pd.DataFrame:
        """Long calendar table with one row per (sitename, date)."""
        frames = []
        for site in sites:
            dates = self.build(site.year_start, site.year_end)
            frames.append(pd.DataFrame({"sitename": site.sitename, "date": dates}))
        if not frames:
            return pd.DataFrame({"sitename": pd.Series(dtype=object), "date": pd.Series(dtype="datetime64[ns]")})
        return pd.concat(frames, ignore_index=True)

    def __repr__(self) -> str:
        return f"CalendarBuilder(policy={self.policy!r})"
