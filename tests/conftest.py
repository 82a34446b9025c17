"""
Shared pytest fixtures and helpers for sitemet tests.

This module provides:
- FakeArchive: in-memory xarray Datasets served through a monkeypatched
  ``open_dataset``, with the planned files touched on disk so presence checks
  behave as they would against a real archive
- Builders for CRU-style monthly and WATCH-style daily datasets
- Configuration and site helpers
"""

import calendar
import datetime
from pathlib import Path
from typing import Dict, List, Optional

import numpy as np
import pandas as pd
import pytest
import xarray as xr

from sitemet.config import IngestConfig
from sitemet.extraction import reader as reader_module
from sitemet.sites import Site

# Coarse global grid: 36 x 18 cells of 10 degrees
GRID_LONS = np.arange(-175.0, 180.0, 10.0)
GRID_LATS = np.arange(-85.0, 90.0, 10.0)


# =============================================================================
# Fake archive
# =============================================================================


class FakeArchive:
    """Datasets keyed by file path, opened through a fake open_dataset."""

    def __init__(self, root: Path):
        self.root = Path(root)
        self.datasets: Dict[str, xr.Dataset] = {}
        self.opened: List[str] = []

    def add(self, relpath: str, dataset: xr.Dataset) -> str:
        path = self.root / relpath
        path.parent.mkdir(parents=True, exist_ok=True)
        path.touch()
        self.datasets[str(path)] = dataset
        return str(path)

    def path(self, relpath: str) -> str:
        return str(self.root / relpath)

    def open_dataset(self, path, *args, **kwargs):
        self.opened.append(str(path))
        return self.datasets[str(path)]


@pytest.fixture
def grid_archive(tmp_path, monkeypatch) -> FakeArchive:
    """FakeArchive rooted in tmp_path, patched into the grid reader."""
    archive = FakeArchive(tmp_path / "archive")
    archive.root.mkdir(parents=True, exist_ok=True)
    monkeypatch.setattr(reader_module, "open_dataset", archive.open_dataset)
    return archive


# =============================================================================
# Dataset builders
# =============================================================================


def _broadcast(values, lons, lats) -> np.ndarray:
    """(n_time,) series repeated over every cell -> (n_time, n_lat, n_lon)."""
    values = np.asarray(values, dtype=np.float64)
    return np.broadcast_to(values[:, None, None], (len(values), len(lats), len(lons))).copy()


def monthly_dataset(
    token: str,
    year_start: int,
    monthly_values,
    lons=GRID_LONS,
    lats=GRID_LATS,
    invalid_cells: Optional[List[tuple]] = None,
) -> xr.Dataset:
    """CRU-style file: dims (time, lat, lon), mid-month time stamps.

    Args:
        monthly_values: One value per month from January of year_start,
            applied to every grid cell
        invalid_cells: (lon index, lat index) pairs set to NaN at every step
    """
    data = _broadcast(monthly_values, lons, lats)
    for ilon, ilat in invalid_cells or []:
        data[:, ilat, ilon] = np.nan
    times = pd.date_range(f"{year_start}-01-01", periods=data.shape[0], freq="MS") + pd.Timedelta(days=15)
    return xr.Dataset(
        {token: (("time", "lat", "lon"), data)},
        coords={"time": times, "lat": np.asarray(lats), "lon": np.asarray(lons)},
    )


def daily_dataset(token: str, year: int, month: int, value, lons=GRID_LONS, lats=GRID_LATS) -> xr.Dataset:
    """WATCH-style file: one step per real calendar day, no time coordinate."""
    ndays = calendar.monthrange(year, month)[1]
    values = np.full(ndays, value, dtype=np.float64) if np.isscalar(value) else np.asarray(value)
    data = _broadcast(values, lons, lats)
    return xr.Dataset(
        {token: (("tstep", "lat", "lon"), data)},
        coords={"lat": np.asarray(lats), "lon": np.asarray(lons)},
    )


# =============================================================================
# Configuration and sites
# =============================================================================


def make_config(source_name: str, source_dir, variables: dict, **sections) -> IngestConfig:
    """IngestConfig from a dict with the TOML file's layout.

    A ``source`` section updates the [source] table instead of replacing it.
    """
    raw = {"project": "test", "source": {"name": source_name, "dir": str(source_dir)}, "variables": variables}
    for section, values in sections.items():
        if section == "source":
            raw["source"].update(values)
        else:
            raw[section] = values
    return IngestConfig.from_dict(raw)


def make_site(sitename="CH-Lae", lon=8.4, lat=47.2, start="2010-01-01", end="2010-12-31", elv=0.0) -> Site:
    return Site(
        sitename=sitename,
        lon=lon,
        lat=lat,
        date_start=datetime.date.fromisoformat(start),
        date_end=datetime.date.fromisoformat(end),
        elv=elv,
    )


@pytest.fixture
def site() -> Site:
    return make_site()


@pytest.fixture
def noleap_ndays() -> np.ndarray:
    return np.array([31, 28, 31, 30, 31, 30, 31, 31, 30, 31, 30, 31], dtype=np.int64)
