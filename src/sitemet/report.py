"""
Run coverage reporting.

Provides:
- IngestReport: what was planned, what was opened, and everything that
  degraded the output (absent files, invalid sites, unresolvable cells,
  derived quantities with missing inputs).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, Iterable, List

import pandas as pd

from sitemet.exceptions import IngestError

if TYPE_CHECKING:
    from sitemet.extraction.batch import ExtractionResult


@dataclass
class IngestReport:
    """
    Coverage summary for one ingest run.

    Attributes:
        source: Archive adapter name
        files_planned: Grid files in all file plans
        files_opened: Grid files actually decoded
        sites_processed: Valid sites handed to the adapter
        failures: Exceptions describing every degraded site/file/variable
        missing_values: NaN count per output variable in the final table
    """

    source: str = ""
    files_planned: int = 0
    files_opened: int = 0
    sites_processed: int = 0
    failures: List[BaseException] = field(default_factory=list)
    missing_values: Dict[str, int] = field(default_factory=dict)

    def add_failure(self, exc: BaseException) -> None:
        self.failures.append(exc)

    def record_extraction(self, result: "ExtractionResult") -> None:
        self.files_planned += result.files_planned
        self.files_opened += result.files_opened
        self.failures.extend(result.failures)

    def count_missing(self, daily: pd.DataFrame, variables: Iterable[str]) -> None:
        for var in variables:
            if var in daily.columns:
                self.missing_values[var] = int(daily[var].isna().sum())

    def failures_of(self, kind: type) -> List[BaseException]:
        return [f for f in self.failures if isinstance(f, kind)]

    @property
    def missing_files(self) -> List[str]:
        return sorted({str(f.filename) for f in self.failures_of(FileNotFoundError)})

    @property
    def failed_sites(self) -> List[str]:
        names = {getattr(f, "sitename", None) for f in self.failures}
        return sorted(str(n) for n in names if n is not None)

    @property
    def ok(self) -> bool:
        return not self.failures

    def raise_for_failures(self) -> None:
        """Raise IngestError listing every failure, if there were any."""
        if self.failures:
            raise IngestError(self.failures)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "source": self.source,
            "files_planned": self.files_planned,
            "files_opened": self.files_opened,
            "sites_processed": self.sites_processed,
            "missing_files": self.missing_files,
            "failed_sites": self.failed_sites,
            "failures": [f"{type(f).__name__}: {f}" for f in self.failures],
            "missing_values": dict(self.missing_values),
            "ok": self.ok,
        }

    def summary(self) -> str:
        """Human-readable summary."""
        lines = [
            f"Source: {self.source}",
            f"Sites: {self.sites_processed} processed",
            f"Files: {self.files_opened} of {self.files_planned} opened",
        ]
        if self.missing_files:
            lines.append(f"       {len(self.missing_files)} missing")
        for var, n in self.missing_values.items():
            if n:
                lines.append(f"Missing {var}: {n} day(s)")
        if self.failures:
            lines.append(f"Failures: {len(self.failures)}")
            lines.extend(f"  {type(f).__name__}: {f}" for f in self.failures)
        return "\n".join(lines)
