"""Batch point extraction across a file plan.

For one variable, every planned grid file is opened once and sampled at all
sites together, so the number of decodes equals the length of the plan no
matter how many sites are requested.
"""

from __future__ import annotations

import errno
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
from tqdm import tqdm

from sitemet.exceptions import NoValidCellError
from sitemet.extraction.nearest import NearestValidCellFinder
from sitemet.extraction.reader import GridFile, GridPointReader
from sitemet.logging import get_logger
from sitemet.sites import Site

SERIES_COLUMNS = ["sitename", "year", "month", "step", "time", "value"]


@dataclass(frozen=True)
class GridJob:
    """One planned decode.

    Attributes:
        path: Grid file location
        variable: Data variable inside the file (None: first gridded variable)
        year, month: Position of the file in the plan for archives chunked by
            month; None for files carrying their own full time axis
        get_time: Read the file's native time axis
    """

    path: str
    variable: Optional[str] = None
    year: Optional[int] = None
    month: Optional[int] = None
    get_time: bool = False


@dataclass
class ExtractionResult:
    """Per-site, per-step values for one variable plus what went wrong.

    ``series`` has the columns of SERIES_COLUMNS: ``step`` is the index
    within the file, ``time`` the native timestamp (NaT when the file has no
    time axis or it was not requested), ``value`` NaN where missing.
    """

    variable: str
    series: pd.DataFrame
    failures: List[BaseException] = field(default_factory=list)
    files_planned: int = 0
    files_opened: int = 0
    resolved: Dict[str, Tuple[float, float]] = field(default_factory=dict)

    @property
    def missing_files(self) -> List[str]:
        return [str(f.filename) for f in self.failures if isinstance(f, FileNotFoundError)]


def _empty_series() -> pd.DataFrame:
    return pd.DataFrame(
        {
            "sitename": pd.Series(dtype=object),
            "year": pd.Series(dtype="Int64"),
            "month": pd.Series(dtype="Int64"),
            "step": pd.Series(dtype=np.int64),
            "time": pd.Series(dtype="datetime64[ns]"),
            "value": pd.Series(dtype=np.float64),
        }
    )


class BatchGridExtractor:
    """
    Extract one variable at many sites from a list of grid files.

    Args:
        reader: GridPointReader used to open files (a fresh one by default)
        nearest_valid_cell: Move sites that snap to an invalid cell to the
            nearest valid cell on their latitude ring. Resolution is done once
            per call, on the first file of the plan that opens.
        progress: Show a tqdm progress bar over the file plan

    Example:
        extractor = BatchGridExtractor(nearest_valid_cell=True)
        plan = [GridJob("cru_ts4.01.1901.2016.tmp.dat.nc", "tmp", get_time=True)]
        result = extractor.extract("temp", plan, sites)
    """

    def __init__(
        self,
        reader: Optional[GridPointReader] = None,
        nearest_valid_cell: bool = False,
        progress: bool = False,
    ):
        self.reader = reader or GridPointReader()
        self.nearest_valid_cell = nearest_valid_cell
        self.progress = progress
        self.log = get_logger("extractor")

    def extract(self, variable: str, file_plan: Sequence[GridJob], sites: Sequence[Site]) -> ExtractionResult:
        """
        Decode each planned file once and sample it at every site.

        An absent file is recorded as a FileNotFoundError and contributes no
        rows; the remaining files are still processed. Sites whose latitude
        ring holds no valid cell are recorded as NoValidCellError and get NaN
        values.
        """
        log = self.log.bind(variable=variable)
        result = ExtractionResult(variable=variable, series=_empty_series(), files_planned=len(file_plan))
        if not sites:
            return result

        names = np.array([s.sitename for s in sites], dtype=object)
        lons = np.array([s.lon for s in sites], dtype=np.float64)
        lats = np.array([s.lat for s in sites], dtype=np.float64)
        invalid = np.zeros(len(sites), dtype=bool)
        resolved_once = False

        log.info("extraction_started", n_files=len(file_plan), n_sites=len(sites))
        frames = []
        opened_before = self.reader.files_opened
        for job in tqdm(file_plan, total=len(file_plan), desc=f"Extracting {variable}", disable=not self.progress):
            try:
                grid = self.reader.open(job.path, variable=job.variable)
            except FileNotFoundError as exc:
                if exc.filename is None:
                    exc = FileNotFoundError(errno.ENOENT, "Grid file not found", job.path)
                log.warning("grid_file_missing", file=job.path, year=job.year, month=job.month)
                result.failures.append(exc)
                continue

            with grid:
                if self.nearest_valid_cell and not resolved_once:
                    lons, lats, invalid = self._resolve(grid, sites, lons, lats, variable, result)
                    resolved_once = True
                frames.append(self._sample(grid, job, names, lons, lats, invalid))

        result.files_opened = self.reader.files_opened - opened_before
        if frames:
            result.series = pd.concat(frames, ignore_index=True)
        log.info(
            "extraction_complete",
            files_opened=result.files_opened,
            n_missing_files=len(result.missing_files),
            n_rows=len(result.series),
        )
        return result

    def _resolve(self, grid: GridFile, sites, lons, lats, variable, result):
        finder = NearestValidCellFinder.from_grid(grid)
        new_lons = lons.copy()
        new_lats = lats.copy()
        invalid = np.zeros(len(sites), dtype=bool)
        for k, site in enumerate(sites):
            try:
                rlon, rlat = finder.find(site.lon, site.lat)
            except NoValidCellError:
                invalid[k] = True
                result.failures.append(
                    NoValidCellError(site.lon, site.lat, sitename=site.sitename, variable=variable)
                )
                self.log.warning("no_valid_cell", sitename=site.sitename, variable=variable)
                continue
            if (rlon, rlat) != (float(site.lon), float(site.lat)):
                self.log.debug("nearest_cell_resolved", sitename=site.sitename, variable=variable, lon=rlon, lat=rlat)
            new_lons[k], new_lats[k] = rlon, rlat
            result.resolved[site.sitename] = (rlon, rlat)
        return new_lons, new_lats, invalid

    def _sample(self, grid: GridFile, job: GridJob, names, lons, lats, invalid) -> pd.DataFrame:
        values = grid.extract(lons, lats)
        values = np.where(invalid[:, None], np.nan, values)
        n_sites, n_steps = values.shape

        time = grid.time_axis() if job.get_time else None
        if time is None or len(time) != n_steps:
            times = np.full(n_sites * n_steps, np.datetime64("NaT"), dtype="datetime64[ns]")
        else:
            times = np.tile(time.values.astype("datetime64[ns]"), n_sites)

        return pd.DataFrame(
            {
                "sitename": np.repeat(names, n_steps),
                "year": pd.array([job.year] * (n_sites * n_steps), dtype="Int64"),
                "month": pd.array([job.month] * (n_sites * n_steps), dtype="Int64"),
                "step": np.tile(np.arange(n_steps, dtype=np.int64), n_sites),
                "time": times,
                "value": values.reshape(-1),
            }
        )
