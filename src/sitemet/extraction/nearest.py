"""Nearest valid grid cell resolution.

Sites on coastlines or small islands often snap to an ocean (invalid) cell.
The finder keeps the snapped latitude and walks the longitude ring outward
from the snapped cell, alternating sides, until it meets a cell with data.
"""

from __future__ import annotations

from typing import Optional, Tuple

import numpy as np
from numpy.typing import NDArray

from sitemet.exceptions import NoValidCellError
from sitemet.extraction.reader import GridFile, normalize_longitude
from sitemet.process.kernels.search import nearest_index, ring_search


def valid_mask(field: NDArray[np.float64], invalid_sentinel: Optional[float] = None) -> NDArray[np.bool_]:
    """True where a cell carries data: not NaN and not equal to the sentinel."""
    field = np.asarray(field, dtype=np.float64)
    mask = ~np.isnan(field)
    if invalid_sentinel is not None:
        mask &= field != invalid_sentinel
    return mask


class NearestValidCellFinder:
    """Resolve site coordinates to the nearest cell that holds data.

    Args:
        lons: (n_lon,) longitude axis of the grid
        lats: (n_lat,) latitude axis of the grid
        field: (n_lon, n_lat) values used to decide validity
        invalid_sentinel: Extra invalid marker besides NaN
    """

    def __init__(self, lons, lats, field, invalid_sentinel: Optional[float] = None):
        self.lons = np.asarray(lons, dtype=np.float64)
        self.lats = np.asarray(lats, dtype=np.float64)
        self.valid = valid_mask(field, invalid_sentinel)
        if self.valid.shape != (len(self.lons), len(self.lats)):
            raise ValueError(
                f"field shape {self.valid.shape} does not match grid ({len(self.lons)}, {len(self.lats)})"
            )

    @classmethod
    def from_grid(cls, grid: GridFile, step: int = 0) -> "NearestValidCellFinder":
        return cls(grid.lons, grid.lats, grid.field(step), invalid_sentinel=grid.invalid_sentinel)

    def snap(self, lon: float, lat: float) -> Tuple[int, int]:
        lon = float(normalize_longitude(lon, self.lons))
        return nearest_index(self.lons, lon), nearest_index(self.lats, float(lat))

    def find_index(self, lon: float, lat: float) -> Tuple[int, int]:
        """(lon index, lat index) of the nearest valid cell on the snapped latitude.

        Raises:
            NoValidCellError: Every cell on the longitude ring is invalid.
        """
        ilon, ilat = self.snap(lon, lat)
        row = np.ascontiguousarray(self.valid[:, ilat])
        i = ring_search(row, ilon)
        if i < 0:
            raise NoValidCellError(lon, lat)
        return i, ilat

    def find(self, lon: float, lat: float) -> Tuple[float, float]:
        """Coordinates of the nearest valid cell.

        A point whose own cell is valid comes back unchanged; otherwise the
        centre of the resolved cell is returned.
        """
        ilon, ilat = self.snap(lon, lat)
        if self.valid[ilon, ilat]:
            return float(lon), float(lat)
        i, j = self.find_index(lon, lat)
        return float(self.lons[i]), float(self.lats[j])


def find_nearest_valid_cell(lon, lat, lons, lats, field, invalid_sentinel=None) -> Tuple[float, float]:
    """One-shot version of NearestValidCellFinder.find."""
    return NearestValidCellFinder(lons, lats, field, invalid_sentinel=invalid_sentinel).find(lon, lat)
