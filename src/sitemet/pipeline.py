"""
Run entry point: site table + configuration -> nested daily output.

Example:
    from sitemet import ingest_globalfields

    result = ingest_globalfields("siteinfo.csv", "cru.toml")
    result.table           # one row per site, daily data nested in "data"
    result.site("CH-Lae")  # daily DataFrame for one site
    result.report.summary()
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Optional, Union

import pandas as pd

from sitemet.config import IngestConfig
from sitemet.exceptions import ConfigurationError
from sitemet.extraction.reader import GridPointReader
from sitemet.logging import get_logger
from sitemet.report import IngestReport
from sitemet.sites import Site, read_sites, validate_sites
from sitemet.sources import create_adapter

SITE_COLUMNS = ["sitename", "lon", "lat", "elv", "date_start", "date_end"]


@dataclass
class IngestResult:
    """
    Output of one run.

    Attributes:
        table: One row per site: SITE_COLUMNS plus ``data``, a DataFrame
            [date, <variables>] covering the site's full calendar
        report: Coverage and failures of the run
    """

    table: pd.DataFrame
    report: IngestReport

    def site(self, sitename: str) -> pd.DataFrame:
        rows = self.table.loc[self.table["sitename"] == sitename, "data"]
        if rows.empty:
            raise KeyError(sitename)
        return rows.iloc[0]

    def to_long(self) -> pd.DataFrame:
        """Flatten to [sitename, date, <variables>]."""
        frames = [
            data.assign(sitename=name)[["sitename"] + list(data.columns)]
            for name, data in zip(self.table["sitename"], self.table["data"])
        ]
        if not frames:
            return pd.DataFrame(columns=["sitename", "date"])
        return pd.concat(frames, ignore_index=True)


def _load_sites(sites, config: IngestConfig):
    if sites is None:
        if not config.sites_path:
            raise ConfigurationError("No sites given and no [paths] sites entry in the configuration")
        return read_sites(config.sites_path)
    if isinstance(sites, (str, os.PathLike)):
        return read_sites(sites)
    return sites


def ingest_globalfields(
    sites: Union[str, os.PathLike, pd.DataFrame, Iterable[Union[Site, Mapping[str, Any]]], None],
    config: Union[str, os.PathLike, IngestConfig],
    reader: Optional[GridPointReader] = None,
) -> IngestResult:
    """
    Produce daily series for every site from a gridded archive.

    Invalid site records are reported and skipped; absent files and
    unresolvable cells leave NaN in the output and are reported. In strict
    mode any such failure raises IngestError once the table is built.

    Args:
        sites: Site table path, DataFrame, or iterable of Site / row mappings;
            None reads ``[paths] sites`` from the configuration
        config: IngestConfig or path to its TOML file
        reader: GridPointReader to open files with

    Returns:
        IngestResult

    Raises:
        ConfigurationError: Unusable configuration or site table
        IngestError: Strict mode and at least one failure
    """
    if not isinstance(config, IngestConfig):
        config = IngestConfig.from_toml(config)

    log = get_logger("pipeline").bind(source=config.source.name)
    valid, invalid = validate_sites(_load_sites(sites, config))
    for exc in invalid:
        log.warning("invalid_site", sitename=exc.sitename, reason=exc.reason)

    report = IngestReport(source=config.source.name)
    for exc in invalid:
        report.add_failure(exc)

    adapter = create_adapter(config, reader=reader, report=report)
    daily = adapter.ingest(valid)
    report.count_missing(daily, adapter.output_columns)

    by_site = {name: group for name, group in daily.groupby("sitename", sort=False)}
    rows = []
    for site in sorted(valid, key=lambda s: s.sitename):
        data = by_site.get(site.sitename, daily.iloc[0:0])
        rows.append(
            {
                "sitename": site.sitename,
                "lon": site.lon,
                "lat": site.lat,
                "elv": site.elv,
                "date_start": site.date_start,
                "date_end": site.date_end,
                "data": data.drop(columns="sitename").reset_index(drop=True),
            }
        )
    table = pd.DataFrame(rows, columns=SITE_COLUMNS + ["data"])

    log.info(
        "ingest_summary",
        n_sites=len(valid),
        n_invalid=len(invalid),
        files_opened=report.files_opened,
        files_planned=report.files_planned,
        n_failures=len(report.failures),
    )
    if config.run.strict:
        report.raise_for_failures()
    return IngestResult(table=table, report=report)
