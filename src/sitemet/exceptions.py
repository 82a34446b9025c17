"""Error taxonomy for sitemet runs.

Per-site and per-file problems are isolated: they are collected on the
run's IngestReport and the batch continues. Configuration problems abort the
run immediately. Absent grid files are reported with the builtin
FileNotFoundError.
"""

from __future__ import annotations

from typing import Iterable, Optional, Sequence


class SiteMetError(Exception):
    """Base class for sitemet errors."""


class ConfigurationError(SiteMetError, ValueError):
    """Raised when the run configuration or site table cannot be used at all."""


class InvalidSiteError(SiteMetError, ValueError):
    """A site record with an unusable date range or coordinates."""

    def __init__(self, sitename, reason: str):
        self.sitename = sitename
        self.reason = reason
        super().__init__(f"Invalid site {sitename!r}: {reason}")


class NoValidCellError(SiteMetError, LookupError):
    """Every cell on the longitude ring at the query latitude is invalid."""

    def __init__(
        self,
        lon: float,
        lat: float,
        sitename: Optional[str] = None,
        variable: Optional[str] = None,
    ):
        self.lon = lon
        self.lat = lat
        self.sitename = sitename
        self.variable = variable
        where = f" for site {sitename!r}" if sitename is not None else ""
        what = f" ({variable})" if variable else ""
        super().__init__(f"No valid grid cell at lat={lat:.4f} near lon={lon:.4f}{where}{what}")


class AggregationMissingInputError(SiteMetError):
    """A derived quantity lacks one of its inputs; the derived value is missing.

    Instances are recorded on the report, never raised through a run.
    """

    def __init__(
        self,
        quantity: str,
        inputs: Sequence[str],
        sitename: Optional[str] = None,
        n_missing: int = 0,
    ):
        self.quantity = quantity
        self.inputs = tuple(inputs)
        self.sitename = sitename
        self.n_missing = int(n_missing)
        where = f" for site {sitename!r}" if sitename is not None else ""
        super().__init__(
            f"{quantity} missing in {self.n_missing} record(s){where}: "
            f"requires {', '.join(self.inputs)}"
        )


class IngestError(SiteMetError):
    """Raised in strict mode listing every site, file and variable that failed."""

    def __init__(self, failures: Iterable[BaseException]):
        self.failures = list(failures)
        lines = [f"{len(self.failures)} ingest failure(s):"]
        lines.extend(f"  - {type(f).__name__}: {f}" for f in self.failures)
        super().__init__("\n".join(lines))
