"""Grid file access: point values out of gridded NetCDF files.

GridPointReader opens a file with xarray and hands back a GridFile. A
GridFile answers every question the extractor asks about that file (values
at many points, the native time axis, a 2-D validity field) without being
reopened.
"""

from __future__ import annotations

import os
from typing import Optional, Sequence, Tuple

import numpy as np
import pandas as pd
import xarray as xr
from xarray import open_dataset

from sitemet.logging import get_logger
from sitemet.process.kernels.search import nearest_index

LON_NAMES = ("lon", "longitude", "LON", "Longitude", "x")
LAT_NAMES = ("lat", "latitude", "LAT", "Latitude", "y")


def normalize_longitude(lon, grid_lons):
    """Map longitudes onto the grid's convention.

    Grids whose longitude axis exceeds 180 use [0, 360); all others use
    [-180, 180).
    """
    lon = np.asarray(lon, dtype=np.float64)
    if np.nanmax(grid_lons) > 180.0:
        return np.mod(lon, 360.0)
    return np.mod(lon + 180.0, 360.0) - 180.0


def _find_name(names, candidates):
    for name in candidates:
        if name in names:
            return name
    return None


class GridFile:
    """One opened grid file.

    Args:
        dataset: Decoded xarray Dataset
        path: File path, for messages
        variable: Data variable to read; when absent from the file the first
            data variable on the lon/lat grid is used
        invalid_sentinel: Numeric value marking invalid cells in addition to
            NaN (e.g. -9999)
    """

    def __init__(
        self,
        dataset: xr.Dataset,
        path: str,
        variable: Optional[str] = None,
        invalid_sentinel: Optional[float] = None,
    ):
        self.path = str(path)
        self.invalid_sentinel = invalid_sentinel
        self._ds = dataset
        self.variable = self._select_variable(variable)

        da = self._ds[self.variable]
        self.lon_dim = _find_name(da.dims, LON_NAMES)
        self.lat_dim = _find_name(da.dims, LAT_NAMES)
        if self.lon_dim is None or self.lat_dim is None:
            raise ValueError(f"{self.path}: variable {self.variable!r} has no lon/lat dimensions {da.dims}")
        others = [d for d in da.dims if d not in (self.lon_dim, self.lat_dim)]
        self.time_dim = others[0] if others else None

        self.lons = np.asarray(self._ds[self.lon_dim].values, dtype=np.float64)
        self.lats = np.asarray(self._ds[self.lat_dim].values, dtype=np.float64)

    def _select_variable(self, variable):
        data_vars = list(self._ds.data_vars)
        if variable is not None and variable in data_vars:
            return variable
        for name in data_vars:
            dims = self._ds[name].dims
            if _find_name(dims, LON_NAMES) and _find_name(dims, LAT_NAMES):
                if variable is not None:
                    get_logger("reader").debug(
                        "variable_fallback", file=self.path, requested=variable, used=name
                    )
                return name
        raise ValueError(f"{self.path}: no gridded data variable found")

    @property
    def n_steps(self) -> int:
        return int(self._ds[self.variable].sizes[self.time_dim]) if self.time_dim else 1

    def snap(self, lons, lats) -> Tuple[np.ndarray, np.ndarray]:
        """Nearest (lon index, lat index) for each point, by absolute difference."""
        lons = normalize_longitude(np.atleast_1d(lons), self.lons)
        lats = np.atleast_1d(np.asarray(lats, dtype=np.float64))
        ilon = np.array([nearest_index(self.lons, float(x)) for x in lons], dtype=np.int64)
        ilat = np.array([nearest_index(self.lats, float(y)) for y in lats], dtype=np.int64)
        return ilon, ilat

    def _mask(self, values: np.ndarray) -> np.ndarray:
        values = np.asarray(values, dtype=np.float64)
        if self.invalid_sentinel is not None:
            values = np.where(values == self.invalid_sentinel, np.nan, values)
        return values

    def extract(self, lons: Sequence[float], lats: Sequence[float]) -> np.ndarray:
        """Values at every point for every time step, shape (n_points, n_steps)."""
        ilon, ilat = self.snap(lons, lats)
        da = self._ds[self.variable]
        sel = da.isel(
            {
                self.lon_dim: xr.DataArray(ilon, dims="site"),
                self.lat_dim: xr.DataArray(ilat, dims="site"),
            }
        )
        sel = sel.transpose("site", ...)
        values = self._mask(sel.values)
        return values.reshape(len(ilon), -1)

    def time_axis(self) -> Optional[pd.DatetimeIndex]:
        """Native time axis of the file, or None if it has none."""
        if self.time_dim is None or self.time_dim not in self._ds.coords:
            return None
        values = self._ds[self.time_dim].values
        if np.issubdtype(values.dtype, np.datetime64):
            return pd.DatetimeIndex(values)
        # cftime objects from non-standard calendars
        return pd.DatetimeIndex([pd.Timestamp(v.isoformat()) for v in values])

    def field(self, step: int = 0) -> np.ndarray:
        """2-D values at one time step laid out (n_lon, n_lat), invalid cells NaN."""
        da = self._ds[self.variable]
        if self.time_dim is not None:
            da = da.isel({self.time_dim: step})
        da = da.transpose(self.lon_dim, self.lat_dim, ...)
        values = self._mask(da.values)
        return values.reshape(len(self.lons), len(self.lats))

    def close(self) -> None:
        self._ds.close()

    def __enter__(self) -> "GridFile":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        self.close()
        return False

    def __repr__(self) -> str:
        return f"GridFile({self.path!r}, variable={self.variable!r}, steps={self.n_steps})"


class GridPointReader:
    """
    Open grid files and read point values from them.

    Every successful ``open`` is counted in ``files_opened``; absent files
    raise FileNotFoundError immediately without retrying.

    Example:
        reader = GridPointReader(invalid_sentinel=-9999.0)
        values, time = reader.read("cru_ts4.01.1901.2016.tmp.dat.nc",
                                   [(8.4, 47.2), (-105.1, 48.3)], get_time=True)
    """

    def __init__(self, invalid_sentinel: Optional[float] = None, **open_kwargs):
        self.invalid_sentinel = invalid_sentinel
        self.open_kwargs = open_kwargs
        self.files_opened = 0

    def open(self, path, variable: Optional[str] = None) -> GridFile:
        path = str(path)
        if not os.path.exists(path):
            raise FileNotFoundError(2, "Grid file not found", path)
        ds = open_dataset(path, **self.open_kwargs)
        self.files_opened += 1
        return GridFile(ds, path, variable=variable, invalid_sentinel=self.invalid_sentinel)

    def read(
        self,
        path,
        points: Sequence[Tuple[float, float]],
        variable: Optional[str] = None,
        get_time: bool = False,
    ) -> Tuple[np.ndarray, Optional[pd.DatetimeIndex]]:
        """One value sequence per (lon, lat) point, plus the time axis if requested."""
        lons = [p[0] for p in points]
        lats = [p[1] for p in points]
        with self.open(path, variable=variable) as grid:
            values = grid.extract(lons, lats)
            time = grid.time_axis() if get_time else None
        return values, time
