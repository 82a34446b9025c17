"""Centralized unit documentation and conversions for sitemet.

One place to see which units the daily output uses, which units each archive
delivers, and how we convert between them. Adapters call the helpers below so
conversions stay auditable.

Missing values are NaN and propagate through every helper.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np


@dataclass(frozen=True, slots=True)
class UnitSpec:
    """Document a variable's units and conversion."""

    native_units: str
    canonical_units: str
    conversion: str
    notes: str = ""
    reference: str = ""


SECONDS_PER_DAY = 86400.0
KELVIN_OFFSET = 273.15
# Conversion from shortwave energy to photon flux (umol J-1)
PPFD_PER_WATT = 2.04

# -----------------------------------------------------------------------------
# Canonical units of the daily output table
# -----------------------------------------------------------------------------

CANONICAL_UNITS: dict[str, str] = {
    "temp": "C",  # daily mean air temperature
    "prec": "mm/day",  # daily total, rain + snow
    "vpd": "Pa",
    "qair": "kg/kg",
    "ppfd": "mol/m^2/day",
    "ccov": "%",
}

# -----------------------------------------------------------------------------
# CRU TS monthly grids
# -----------------------------------------------------------------------------

CRU_TS_INFO_PAGE = "https://crudata.uea.ac.uk/cru/data/hrg/"

CRU_TS_UNITS: dict[str, UnitSpec] = {
    "tmp": UnitSpec(
        native_units="C, monthly mean",
        canonical_units="C (temp)",
        conversion="none; expanded with mean-preserving interpolation",
        reference=CRU_TS_INFO_PAGE,
    ),
    "pre": UnitSpec(
        native_units="mm/month",
        canonical_units="mm/day (prec)",
        conversion="monthly total distributed over wet days",
        notes="Requires the wet-day count ('wet').",
        reference=CRU_TS_INFO_PAGE,
    ),
    "wet": UnitSpec(
        native_units="days",
        canonical_units="days",
        conversion="rounded to whole days, clipped to [0, days in month]",
        reference=CRU_TS_INFO_PAGE,
    ),
    "vap": UnitSpec(
        native_units="hPa",
        canonical_units="Pa",
        conversion="Pa = hPa * 100; vpd = esat(tmp) - vap",
        reference=CRU_TS_INFO_PAGE,
    ),
    "cld": UnitSpec(
        native_units="%",
        canonical_units="% (ccov)",
        conversion="none; daily values capped at 100",
        reference=CRU_TS_INFO_PAGE,
    ),
}

# -----------------------------------------------------------------------------
# WATCH-WFDEI daily grids (one file per variable and month)
# -----------------------------------------------------------------------------

WFDEI_INFO_PAGE = "https://doi.org/10.1002/2014WR015638"

WATCH_WFDEI_UNITS: dict[str, UnitSpec] = {
    "Tair_daily": UnitSpec(
        native_units="K",
        canonical_units="C (temp)",
        conversion="C = K - 273.15",
        reference=WFDEI_INFO_PAGE,
    ),
    "Rainf_daily": UnitSpec(
        native_units="kg/m^2/s",
        canonical_units="mm/day (prec)",
        conversion="mm/day = (Rainf + Snowf) * 86400",
        reference=WFDEI_INFO_PAGE,
    ),
    "Snowf_daily": UnitSpec(
        native_units="kg/m^2/s",
        canonical_units="mm/day (prec)",
        conversion="mm/day = (Rainf + Snowf) * 86400",
        reference=WFDEI_INFO_PAGE,
    ),
    "Qair_daily": UnitSpec(
        native_units="kg/kg",
        canonical_units="kg/kg (qair); Pa (vpd)",
        conversion="vpd = esat(temp) - ea(qair, patm(elv))",
        reference=WFDEI_INFO_PAGE,
    ),
    "SWdown_daily": UnitSpec(
        native_units="W/m^2",
        canonical_units="mol/m^2/day (ppfd)",
        conversion="ppfd = SWdown * 2.04e-6 * 86400",
        reference=WFDEI_INFO_PAGE,
    ),
}


def kelvin_to_celsius(t):
    return t - KELVIN_OFFSET


def flux_to_mm_per_day(flux):
    """kg m-2 s-1 -> mm day-1."""
    return flux * SECONDS_PER_DAY


def shortwave_to_ppfd(swdown):
    """W m-2 -> mol m-2 day-1."""
    return swdown * PPFD_PER_WATT * 1.0e-6 * SECONDS_PER_DAY


def hpa_to_pa(value):
    return value * 1.0e2


def saturation_vapor_pressure(tc):
    """Saturation vapour pressure [Pa] over water at air temperature tc [C]."""
    tc = np.asarray(tc, dtype=np.float64)
    return 611.0 * np.exp((17.27 * tc) / (tc + 237.3))


def calc_vpd(eact, tc):
    """Vapour pressure deficit [Pa] from actual vapour pressure [Pa] and tc [C].

    Negative deficits (supersaturation in the inputs) are floored at zero.
    """
    eact = np.asarray(eact, dtype=np.float64)
    vpd = saturation_vapor_pressure(tc) - eact
    return np.maximum(vpd, 0.0)


# after RefET (github.com/WSWUP/RefET), ASCE-EWRI 2005 Eq. 3
def air_pressure(elev):
    """Mean atmospheric pressure [kPa] at elevation elev [m]."""
    pair = np.array(elev, copy=True, ndmin=1).astype(np.float64)
    return 101.3 * np.power((293.0 - 0.0065 * pair) / 293.0, 5.26)


# after RefET (github.com/WSWUP/RefET)
def actual_vapor_pressure(q, pair):
    """Actual vapour pressure from specific humidity q [kg/kg].

    Returned in the units of pair: ea = q * pair / (0.622 + 0.378 * q)
    """
    q = np.asarray(q, dtype=np.float64)
    return q * pair / (0.622 + 0.378 * q)
