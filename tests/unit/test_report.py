"""Tests for sitemet.report."""

import errno

import numpy as np
import pandas as pd
import pytest

from sitemet.exceptions import (
    AggregationMissingInputError,
    IngestError,
    InvalidSiteError,
    NoValidCellError,
)
from sitemet.extraction.batch import ExtractionResult
from sitemet.report import IngestReport


def missing_file(path):
    return FileNotFoundError(errno.ENOENT, "Grid file not found", path)


class TestIngestReport:
    """Tests for IngestReport."""

    def test_ok_when_empty(self):
        report = IngestReport(source="cru")
        assert report.ok
        report.raise_for_failures()

    def test_record_extraction(self):
        report = IngestReport(source="watch_wfdei")
        result = ExtractionResult(
            variable="Tair_daily",
            series=pd.DataFrame(),
            failures=[missing_file("/a/Tair_daily_WFDEI_201002.nc")],
            files_planned=12,
            files_opened=11,
        )
        report.record_extraction(result)
        report.record_extraction(result)
        assert report.files_planned == 24
        assert report.files_opened == 22
        assert report.missing_files == ["/a/Tair_daily_WFDEI_201002.nc"]

    def test_failed_sites(self):
        report = IngestReport()
        report.add_failure(InvalidSiteError("B", "bad dates"))
        report.add_failure(NoValidCellError(1.0, 2.0, sitename="A", variable="tmp"))
        report.add_failure(missing_file("/x.nc"))
        assert report.failed_sites == ["A", "B"]
        assert len(report.failures_of(InvalidSiteError)) == 1

    def test_count_missing(self):
        report = IngestReport()
        daily = pd.DataFrame({"temp": [1.0, np.nan, np.nan], "prec": [0.0, 1.0, 2.0]})
        report.count_missing(daily, ["temp", "prec", "vpd"])
        assert report.missing_values == {"temp": 2, "prec": 0}

    def test_raise_lists_every_failure(self):
        report = IngestReport()
        report.add_failure(missing_file("/x.nc"))
        report.add_failure(AggregationMissingInputError("vpd", ["vap", "temp"], sitename="A", n_missing=3))
        with pytest.raises(IngestError) as excinfo:
            report.raise_for_failures()
        message = str(excinfo.value)
        assert "2 ingest failure(s)" in message
        assert "FileNotFoundError" in message
        assert "AggregationMissingInputError" in message
        assert len(excinfo.value.failures) == 2

    def test_summary_and_dict(self):
        report = IngestReport(source="cru", files_planned=3, files_opened=2, sites_processed=5)
        report.add_failure(missing_file("/x.nc"))
        report.missing_values = {"temp": 365}
        summary = report.summary()
        assert "Source: cru" in summary
        assert "2 of 3 opened" in summary
        assert "Missing temp: 365" in summary

        as_dict = report.to_dict()
        assert as_dict["missing_files"] == ["/x.nc"]
        assert as_dict["ok"] is False
