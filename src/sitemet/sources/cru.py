"""CRU TS monthly grids.

Each variable lives in one file (or a series of decade files) carrying the
full monthly time axis, e.g. ``cru_ts4.01.1901.2016.tmp.dat.nc``. Monthly
values are expanded to daily values per site and year.
"""

from __future__ import annotations

import glob
from typing import List, Mapping, Sequence

import numpy as np
import pandas as pd

from sitemet.extraction.batch import GridJob
from sitemet.process.expander import DEFAULT_METHODS, MonthlyToDailyExpander
from sitemet.process.generator import WeatherGenerator
from sitemet.sites import Site
from sitemet.sources.base import SourceAdapter
from sitemet.units import calc_vpd, hpa_to_pa

MONTHLY_KEYS = ["sitename", "year", "moy"]


class CruMonthlyAdapter(SourceAdapter):
    """Monthly CRU TS archive expanded to daily values.

    Output variables:
        temp: mean-preserving interpolation of monthly mean temperature [C]
        prec: monthly totals distributed over wet days [mm/day], needs wetd
        ccov: mean-preserving interpolation capped at 100 [%]
        vpd: mean-preserving interpolation of monthly vpd from vap and temp [Pa]
    """

    name = "cru"
    frequency = "monthly"
    default_tokens = {
        "temp": ("tmp",),
        "prec": ("pre",),
        "vap": ("vap",),
        "ccov": ("cld",),
        "wetd": ("wet",),
    }
    default_template = "*{token}.dat.nc"
    # land-only grids: coastal sites often snap to ocean cells
    default_nearest_valid_cell = True
    output_variables = ("temp", "prec", "ccov", "vpd")
    dependencies = {"prec": ("wetd",), "vpd": ("temp", "vap")}
    derived = {"vpd": ("vap", "temp")}

    def file_plan(self, token: str, years: Sequence[int]) -> List[GridJob]:
        """All files matching the token's pattern; the literal pattern if none exist."""
        pattern = self.path_for(token)
        paths = sorted(glob.glob(pattern)) or [pattern]
        return [GridJob(path=p, variable=token, get_time=True) for p in paths]

    def _monthly(self, variable: str, sites: Sequence[Site]) -> pd.DataFrame:
        """[sitename, year, moy, variable] from the variable's token(s); tokens are summed."""
        if self._years:
            first, last = self._years[0] - 1, self._years[-1] + 1
        else:
            first, last = 0, -1

        table = None
        for token in self.tokens(variable):
            series = self.extract_token(token, sites).series
            series = series[series["time"].notna()]
            monthly = pd.DataFrame(
                {
                    "sitename": series["sitename"].to_numpy(),
                    "year": series["time"].dt.year.to_numpy(dtype=np.int64),
                    "moy": series["time"].dt.month.to_numpy(dtype=np.int64),
                    token: series["value"].to_numpy(dtype=np.float64),
                }
            )
            monthly = monthly[monthly["year"].between(first, last)]
            monthly = monthly.groupby(MONTHLY_KEYS, as_index=False)[token].mean()
            monthly = monthly.astype({"year": np.int64, "moy": np.int64})
            table = monthly if table is None else table.merge(monthly, on=MONTHLY_KEYS, how="outer")

        tokens = [c for c in table.columns if c not in MONTHLY_KEYS]
        table[variable] = table[tokens].sum(axis=1, skipna=False)
        return table[MONTHLY_KEYS + [variable]].reset_index(drop=True)

    def extract(self, variable: str, sites: Sequence[Site]) -> pd.DataFrame:
        if variable != "vpd":
            return self._monthly(variable, sites)

        inputs = self._monthly("vap", sites).merge(self._monthly("temp", sites), on=MONTHLY_KEYS, how="outer")
        inputs["vpd"] = calc_vpd(hpa_to_pa(inputs["vap"].to_numpy()), inputs["temp"].to_numpy())
        table = inputs[MONTHLY_KEYS + ["vpd"]].reset_index(drop=True)
        self.record_missing_inputs("vpd", ("vap", "temp"), table, sites)
        return table

    def postprocess(self, raw: Mapping[str, pd.DataFrame], sites: Sequence[Site]) -> pd.DataFrame:
        """Expand each site's monthly table to daily values for the site's years."""
        monthly = None
        for table in raw.values():
            monthly = table if monthly is None else monthly.merge(table, on=MONTHLY_KEYS, how="outer")
        if monthly is None:
            return pd.DataFrame(columns=["sitename", "date"])

        methods = {var: DEFAULT_METHODS[var] for var in self.output_columns}
        expander = MonthlyToDailyExpander(
            calendar=self.calendar,
            generator=WeatherGenerator(
                seed=self.config.generator.seed, gamma_shape=self.config.generator.gamma_shape
            ),
        )

        by_site = {name: group for name, group in monthly.groupby("sitename")}
        frames = []
        for site in sites:
            years = list(site.years)
            skeleton = pd.DataFrame(
                {
                    "year": np.repeat(np.array(years, dtype=np.int64), 12),
                    "moy": np.tile(np.arange(1, 13, dtype=np.int64), len(years)),
                }
            )
            group = by_site.get(site.sitename, monthly.iloc[0:0])
            # neighbouring years are boundary conditions for the interpolation
            group = group[group["year"].between(site.year_start - 1, site.year_end + 1)]
            site_monthly = skeleton.merge(group.drop(columns="sitename"), on=["year", "moy"], how="outer")

            daily = expander.expand_site(site_monthly, years, methods)
            daily.insert(0, "sitename", site.sitename)
            frames.append(daily)

        if not frames:
            return pd.DataFrame(columns=["sitename", "date"])
        return pd.concat(frames, ignore_index=True)
