"""WATCH-WFDEI daily grids.

One file per variable and month, each holding one time step per day of the
month: ``Tair_daily/Tair_daily_WFDEI_201001.nc``. The step index within a
file is the day of month minus one.
"""

from __future__ import annotations

from typing import Callable, Dict, List, Mapping, Sequence

import numpy as np
import pandas as pd

from sitemet.extraction.batch import GridJob
from sitemet.sites import Site
from sitemet.sources.base import DAILY_KEYS, SourceAdapter
from sitemet.units import (
    actual_vapor_pressure,
    air_pressure,
    calc_vpd,
    flux_to_mm_per_day,
    kelvin_to_celsius,
    shortwave_to_ppfd,
)

CONVERSIONS: Dict[str, Callable] = {
    "temp": kelvin_to_celsius,
    "prec": flux_to_mm_per_day,
    "ppfd": shortwave_to_ppfd,
}


class WatchDailyAdapter(SourceAdapter):
    """Daily WATCH-WFDEI archive.

    Output variables:
        temp: daily mean air temperature [C]
        prec: rainfall + snowfall [mm/day]
        qair: specific humidity [kg/kg]
        vpd: from qair, temp and the air pressure at site elevation [Pa]
        ppfd: photosynthetic photon flux density from SWdown [mol/m^2/day]

    Only daily output is supported; monthly aggregation (timescale "m") is
    rejected at configuration time.
    """

    name = "watch_wfdei"
    frequency = "daily"
    default_tokens = {
        "temp": ("Tair_daily",),
        "prec": ("Rainf_daily", "Snowf_daily"),
        "qair": ("Qair_daily",),
        "ppfd": ("SWdown_daily",),
    }
    default_template = "{token}/{token}_WFDEI_{year:04d}{month:02d}.nc"
    default_nearest_valid_cell = False
    output_variables = ("temp", "prec", "qair", "vpd", "ppfd")
    derived = {"vpd": ("qair", "temp")}
    supported_timescales = ("d",)

    def file_plan(self, token: str, years: Sequence[int]) -> List[GridJob]:
        return [
            GridJob(path=self.path_for(token, year, month), variable=token, year=year, month=month)
            for year in years
            for month in range(1, 13)
        ]

    def _token_daily(self, token: str, sites: Sequence[Site]) -> pd.DataFrame:
        series = self.extract_token(token, sites).series
        series = series[series["year"].notna() & series["month"].notna()]
        parts = pd.DataFrame(
            {
                "year": series["year"].to_numpy(dtype=np.int64),
                "month": series["month"].to_numpy(dtype=np.int64),
                "day": series["step"].to_numpy(dtype=np.int64) + 1,
            }
        )
        dates = pd.to_datetime(parts, errors="coerce") if len(parts) else pd.Series([], dtype="datetime64[ns]")
        daily = pd.DataFrame(
            {
                "sitename": series["sitename"].to_numpy(),
                "date": np.asarray(dates, dtype="datetime64[ns]"),
                token: series["value"].to_numpy(dtype=np.float64),
            }
        )
        return daily[daily["date"].notna()].reset_index(drop=True)

    def _daily(self, variable: str, sites: Sequence[Site]) -> pd.DataFrame:
        """[sitename, date, variable] in native units; multiple tokens are summed."""
        table = None
        for token in self.tokens(variable):
            daily = self._token_daily(token, sites)
            table = daily if table is None else table.merge(daily, on=DAILY_KEYS, how="outer")
        tokens = [c for c in table.columns if c not in DAILY_KEYS]
        table[variable] = table[tokens].sum(axis=1, skipna=False)
        return table[DAILY_KEYS + [variable]]

    def extract(self, variable: str, sites: Sequence[Site]) -> pd.DataFrame:
        if variable == "vpd":
            return self._vpd(sites)
        table = self._daily(variable, sites)
        convert = CONVERSIONS.get(variable)
        if convert is not None:
            table[variable] = convert(table[variable].to_numpy())
        return table

    def _vpd(self, sites: Sequence[Site]) -> pd.DataFrame:
        inputs = self._daily("qair", sites).merge(self._daily("temp", sites), on=DAILY_KEYS, how="outer")
        elv = inputs["sitename"].map({s.sitename: s.elv for s in sites}).to_numpy(dtype=np.float64)
        # air_pressure is in kPa
        pair = air_pressure(elv) * 1.0e3
        eact = actual_vapor_pressure(inputs["qair"].to_numpy(), pair)
        inputs["vpd"] = calc_vpd(eact, kelvin_to_celsius(inputs["temp"].to_numpy()))
        table = inputs[DAILY_KEYS + ["vpd"]].reset_index(drop=True)
        self.record_missing_inputs("vpd", ("qair", "temp"), table, sites)
        return table

    def postprocess(self, raw: Mapping[str, pd.DataFrame], sites: Sequence[Site]) -> pd.DataFrame:
        """Join the per-variable daily tables; values are already daily."""
        daily = None
        for var in self.output_columns:
            table = raw.get(var)
            if table is None:
                continue
            daily = table if daily is None else daily.merge(table, on=DAILY_KEYS, how="outer")
        if daily is None:
            return pd.DataFrame(columns=DAILY_KEYS)
        return daily
