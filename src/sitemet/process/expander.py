"""
Monthly to daily expansion.

Provides:
- ExpansionMethod: algorithm selector per variable
- MonthlyToDailyExpander: expands one year of monthly values, or a whole
  site's monthly table, onto the daily calendar
"""

from __future__ import annotations

from enum import Enum
from typing import Dict, Iterable, Mapping, Optional

import numpy as np
import pandas as pd
from numpy.typing import NDArray

from sitemet.calendar import CalendarBuilder
from sitemet.logging import get_logger
from sitemet.process.generator import WeatherGenerator
from sitemet.process.kernels.interpolation import mean_preserving_daily

CCOV_UPPER_BOUND = 100.0


class ExpansionMethod(str, Enum):
    """How a monthly variable becomes daily."""

    MEAN_PRESERVING = "polynom"
    MEAN_PRESERVING_CAPPED = "polynom_capped"
    WEATHER_GENERATOR = "weathergen"


DEFAULT_METHODS: Dict[str, ExpansionMethod] = {
    "temp": ExpansionMethod.MEAN_PRESERVING,
    "vpd": ExpansionMethod.MEAN_PRESERVING,
    "ccov": ExpansionMethod.MEAN_PRESERVING_CAPPED,
    "prec": ExpansionMethod.WEATHER_GENERATOR,
}


class MonthlyToDailyExpander:
    """
    Expand monthly values to daily values, year by year.

    Neighbouring years supply the boundary months (December of year-1,
    January of year+1) so curves stay continuous across year boundaries.
    When a neighbouring year is absent the current year's own December /
    January stands in for it.

    Example:
        expander = MonthlyToDailyExpander(CalendarBuilder("noleap"), WeatherGenerator(seed=1))
        temp = expander.expand({2010: t2010, 2011: t2011}, ExpansionMethod.MEAN_PRESERVING, 2010)
    """

    def __init__(
        self,
        calendar: Optional[CalendarBuilder] = None,
        generator: Optional[WeatherGenerator] = None,
        upper_bound: float = CCOV_UPPER_BOUND,
    ):
        self.calendar = calendar or CalendarBuilder("noleap")
        self.generator = generator or WeatherGenerator()
        self.upper_bound = upper_bound
        self.log = get_logger("expander")

    def expand(
        self,
        monthly_values_by_year: Mapping[int, NDArray[np.float64]],
        variable_kind: ExpansionMethod,
        year: int,
        wetdays_by_year: Optional[Mapping[int, NDArray[np.float64]]] = None,
    ) -> NDArray[np.float64]:
        """
        Daily values for one year.

        Args:
            monthly_values_by_year: year -> 12 monthly values (NaN = missing)
            variable_kind: ExpansionMethod to apply
            year: Year to expand
            wetdays_by_year: year -> 12 wet-day counts, required for
                WEATHER_GENERATOR

        Returns:
            365 values (366 in leap years under the gregorian policy); all
            NaN when the year is absent from monthly_values_by_year.
        """
        variable_kind = ExpansionMethod(variable_kind)
        ndays = self.calendar.days_in_month(year)

        current = self._year_values(monthly_values_by_year, year)
        if current is None:
            self.log.debug("monthly_year_missing", year=year, method=variable_kind.value)
            return np.full(int(ndays.sum()), np.nan)

        if variable_kind is ExpansionMethod.WEATHER_GENERATOR:
            if wetdays_by_year is None:
                raise ValueError("wetdays_by_year is required for the weather generator")
            wetd = self._year_values(wetdays_by_year, year)
            if wetd is None:
                wetd = np.full(12, np.nan)
            return self.generator.daily_precipitation(current, wetd, ndays)

        prev_year = self._year_values(monthly_values_by_year, year - 1)
        next_year = self._year_values(monthly_values_by_year, year + 1)
        prev_value = current[11] if prev_year is None else prev_year[11]
        next_value = current[0] if next_year is None else next_year[0]

        daily = mean_preserving_daily(current, ndays, float(prev_value), float(next_value))
        if variable_kind is ExpansionMethod.MEAN_PRESERVING_CAPPED:
            daily = np.minimum(daily, self.upper_bound)
        return daily

    def expand_site(
        self,
        monthly: pd.DataFrame,
        years: Iterable[int],
        methods: Mapping[str, ExpansionMethod],
        wetd_column: str = "wetd",
    ) -> pd.DataFrame:
        """
        Expand one site's monthly table to a daily table.

        Args:
            monthly: Columns year, moy and one column per variable; may include
                the neighbouring years used as boundary conditions
            years: Years to produce daily values for
            methods: variable -> ExpansionMethod
            wetd_column: Wet-day count column used by the weather generator

        Returns:
            DataFrame with a date column and one column per variable
        """
        years = list(years)
        dates = self.calendar.build(min(years), max(years))
        daily = pd.DataFrame({"date": dates})

        for var, method in methods.items():
            if var not in monthly.columns:
                daily[var] = np.nan
                continue
            by_year = self.monthly_by_year(monthly, var)
            wetdays = None
            if ExpansionMethod(method) is ExpansionMethod.WEATHER_GENERATOR:
                wetdays = self.monthly_by_year(monthly, wetd_column) if wetd_column in monthly.columns else {}
            daily[var] = np.concatenate(
                [self.expand(by_year, method, yr, wetdays_by_year=wetdays) for yr in years]
            )
        return daily

    @staticmethod
    def monthly_by_year(monthly: pd.DataFrame, var: str) -> Dict[int, NDArray[np.float64]]:
        """year -> (12,) array for one variable; absent months become NaN."""
        if monthly.empty:
            return {}
        # a year only counts as present if it has rows, even all-NaN ones
        wide = (
            monthly.groupby(["year", "moy"])[var]
            .mean()
            .unstack("moy")
            .reindex(columns=range(1, 13))
        )
        return {int(yr): row.to_numpy(dtype=np.float64) for yr, row in wide.iterrows()}

    @staticmethod
    def _year_values(by_year, year):
        values = by_year.get(year)
        if values is None:
            return None
        values = np.asarray(values, dtype=np.float64)
        if values.shape != (12,):
            raise ValueError(f"expected 12 monthly values for {year}, got shape {values.shape}")
        return values
