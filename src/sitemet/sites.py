"""Site metadata: reading and validating the site table."""

from __future__ import annotations

import datetime
import math
import os
from dataclasses import dataclass
from typing import Any, Iterable, List, Mapping, Tuple, Union

import pandas as pd

from sitemet.exceptions import ConfigurationError, InvalidSiteError

REQUIRED_COLUMNS = ("sitename", "lon", "lat", "date_start", "date_end")


@dataclass(frozen=True)
class Site:
    """A named point location with the date range it needs data for.

    Coordinates are degrees; ``lon`` may be given in [-180, 180] or [0, 360]
    and is normalised to the grid's convention at extraction time.
    ``elv`` (m) is only used to derive humidity quantities.
    """

    sitename: str
    lon: float
    lat: float
    date_start: datetime.date
    date_end: datetime.date
    elv: float = 0.0

    def __post_init__(self):
        if not isinstance(self.lon, (int, float)) or math.isnan(self.lon) or not -180.0 <= self.lon <= 360.0:
            raise InvalidSiteError(self.sitename, f"longitude {self.lon!r} outside [-180, 360]")
        if not isinstance(self.lat, (int, float)) or math.isnan(self.lat) or not -90.0 <= self.lat <= 90.0:
            raise InvalidSiteError(self.sitename, f"latitude {self.lat!r} outside [-90, 90]")
        if self.date_end < self.date_start:
            raise InvalidSiteError(
                self.sitename, f"date_end {self.date_end} precedes date_start {self.date_start}"
            )

    @property
    def year_start(self) -> int:
        return self.date_start.year

    @property
    def year_end(self) -> int:
        return self.date_end.year

    @property
    def years(self) -> range:
        return range(self.year_start, self.year_end + 1)

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "Site":
        """Build a site from a row-like mapping, raising InvalidSiteError on bad values."""
        sitename = record.get("sitename")
        if sitename is None or (isinstance(sitename, float) and math.isnan(sitename)):
            raise InvalidSiteError(sitename, "missing sitename")
        sitename = str(sitename)

        dates = []
        for key in ("date_start", "date_end"):
            value = pd.to_datetime(record.get(key), errors="coerce")
            if pd.isna(value):
                raise InvalidSiteError(sitename, f"unparseable {key} {record.get(key)!r}")
            dates.append(value.date())

        try:
            lon = float(record.get("lon"))
            lat = float(record.get("lat"))
        except (TypeError, ValueError) as exc:
            raise InvalidSiteError(sitename, f"non-numeric coordinates: {exc}") from exc

        elv = record.get("elv", 0.0)
        elv = 0.0 if elv is None or pd.isna(elv) else float(elv)

        return cls(sitename=sitename, lon=lon, lat=lat, date_start=dates[0], date_end=dates[1], elv=elv)


def read_sites(path: Union[str, os.PathLike]) -> pd.DataFrame:
    """Load the site metadata table from CSV.

    Raises ConfigurationError when the file cannot be read or lacks a required
    column; row-level problems are left to validate_sites.
    """
    try:
        table = pd.read_csv(path)
    except (OSError, pd.errors.ParserError, pd.errors.EmptyDataError) as exc:
        raise ConfigurationError(f"Cannot read site table {path}: {exc}") from exc
    _check_columns(table)
    return table


def _check_columns(table: pd.DataFrame) -> None:
    missing = [c for c in REQUIRED_COLUMNS if c not in table.columns]
    if missing:
        raise ConfigurationError(f"Site table missing required column(s): {', '.join(missing)}")


def validate_sites(
    sites: Union[pd.DataFrame, Iterable[Union[Site, Mapping[str, Any]]]],
) -> Tuple[List[Site], List[InvalidSiteError]]:
    """Split site records into usable Sites and per-site errors.

    Duplicate sitenames keep their first occurrence; later ones are errors.

    Returns:
        (valid sites in input order, InvalidSiteError for each rejected record)
    """
    if isinstance(sites, pd.DataFrame):
        _check_columns(sites)
        records = sites.to_dict(orient="records")
    else:
        records = list(sites)

    valid, errors, seen = [], [], set()
    for record in records:
        try:
            site = record if isinstance(record, Site) else Site.from_record(record)
        except InvalidSiteError as exc:
            errors.append(exc)
            continue
        if site.sitename in seen:
            errors.append(InvalidSiteError(site.sitename, "duplicate sitename"))
            continue
        seen.add(site.sitename)
        valid.append(site)
    return valid, errors
