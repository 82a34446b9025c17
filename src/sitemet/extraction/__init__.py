"""
Grid-to-site extraction.

Provides:
- GridPointReader / GridFile: open a grid file and sample it at points
- NearestValidCellFinder: move points off invalid (e.g. ocean) cells
- BatchGridExtractor: one decode per planned file for any number of sites
"""

from sitemet.extraction.batch import (
    SERIES_COLUMNS,
    BatchGridExtractor,
    ExtractionResult,
    GridJob,
)
from sitemet.extraction.nearest import (
    NearestValidCellFinder,
    find_nearest_valid_cell,
    valid_mask,
)
from sitemet.extraction.reader import GridFile, GridPointReader, normalize_longitude

__all__ = [
    "BatchGridExtractor",
    "ExtractionResult",
    "GridFile",
    "GridJob",
    "GridPointReader",
    "NearestValidCellFinder",
    "SERIES_COLUMNS",
    "find_nearest_valid_cell",
    "normalize_longitude",
    "valid_mask",
]
