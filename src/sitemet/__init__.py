"""
sitemet: daily site forcing from gridded global climate archives.

Extracts point time series from global NetCDF stacks (monthly CRU TS grids,
monthly-chunked daily WATCH-WFDEI grids) for any number of sites at once, and
turns them into complete, gap-free daily series on a per-site calendar.

Subpackages:
    extraction: Grid file reading, nearest-valid-cell search and batch
        point extraction (one decode per file regardless of site count).
    process: Monthly-to-daily expansion (mean-preserving interpolation and
        the wet-day precipitation generator) and their numerical kernels.
    sources: Archive adapters selected by configuration.

Example:
    >>> from sitemet import IngestConfig, ingest_globalfields, read_sites
    >>>
    >>> config = IngestConfig.from_toml("cru.toml")
    >>> sites = read_sites("siteinfo.csv")
    >>> result = ingest_globalfields(sites, config)
    >>> print(result.report.summary())
    >>> daily = result.to_long()
"""

from sitemet.calendar import CalendarBuilder, build_calendar
from sitemet.config import IngestConfig
from sitemet.exceptions import (
    AggregationMissingInputError,
    ConfigurationError,
    IngestError,
    InvalidSiteError,
    NoValidCellError,
)
from sitemet.pipeline import IngestResult, ingest_globalfields
from sitemet.report import IngestReport
from sitemet.sites import Site, read_sites, validate_sites

__version__ = "0.1.0"

__all__ = [
    "AggregationMissingInputError",
    "CalendarBuilder",
    "ConfigurationError",
    "IngestConfig",
    "IngestError",
    "IngestReport",
    "IngestResult",
    "InvalidSiteError",
    "NoValidCellError",
    "Site",
    "build_calendar",
    "ingest_globalfields",
    "read_sites",
    "validate_sites",
]
