"""
Abstract base class for archive adapters.

An adapter knows one archive family: which files hold a variable, how raw
values convert to output units, and whether values need expanding from
monthly to daily. Every adapter offers the same three capabilities:

- list_required_files: the file plan for one variable
- extract: the variable's values per site, in output units
- postprocess: daily values per site from the extracted tables

``ingest`` chains them and merges the result onto the site calendars.
"""

from __future__ import annotations

import os
from abc import ABC, abstractmethod
from typing import ClassVar, Dict, List, Mapping, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from sitemet.calendar import CalendarBuilder
from sitemet.exceptions import AggregationMissingInputError, ConfigurationError
from sitemet.extraction.batch import BatchGridExtractor, ExtractionResult, GridJob
from sitemet.extraction.reader import GridPointReader
from sitemet.logging import get_logger
from sitemet.report import IngestReport
from sitemet.sites import Site

DAILY_KEYS = ["sitename", "date"]


class SourceAdapter(ABC):
    """
    Base class for one archive family.

    Subclasses declare their archive through class attributes and implement
    the file plan, extraction and postprocessing.

    Class attributes:
        name: Source name used in configuration
        frequency: "monthly" or "daily", the archive's native resolution
        default_tokens: variable -> archive token(s) when not configured
        default_template: Path template relative to the source directory
        default_nearest_valid_cell: Whether the nearest-valid-cell search is
            on unless configured otherwise
        output_variables: Variables that appear in the daily output
        dependencies: variable -> variables that must be requested with it
        derived: variable -> input variables it is computed from
        supported_timescales: Accepted values of source.timescale
    """

    name: ClassVar[str] = ""
    frequency: ClassVar[str] = "daily"
    default_tokens: ClassVar[Dict[str, Tuple[str, ...]]] = {}
    default_template: ClassVar[str] = "{token}"
    default_nearest_valid_cell: ClassVar[bool] = False
    output_variables: ClassVar[Tuple[str, ...]] = ()
    dependencies: ClassVar[Dict[str, Tuple[str, ...]]] = {}
    derived: ClassVar[Dict[str, Tuple[str, ...]]] = {}
    supported_timescales: ClassVar[Tuple[str, ...]] = ("d",)

    def __init__(self, config, reader: Optional[GridPointReader] = None, report: Optional[IngestReport] = None):
        """
        Args:
            config: Validated IngestConfig
            reader: GridPointReader to open files with
            report: IngestReport collecting coverage and failures
        """
        self.config = config
        self.report = report or IngestReport(source=self.name)
        self.reader = reader or GridPointReader(invalid_sentinel=config.source.invalid_sentinel)

        nearest = config.source.nearest_valid_cell
        self.nearest_valid_cell = self.default_nearest_valid_cell if nearest is None else bool(nearest)
        self.extractor = BatchGridExtractor(
            reader=self.reader,
            nearest_valid_cell=self.nearest_valid_cell,
            progress=config.run.progress,
        )
        self.calendar = CalendarBuilder(config.calendar_policy)
        self.template = config.source.template or self.default_template
        self.log = get_logger("adapter").bind(source=self.name)

        self._years: List[int] = []
        self._token_cache: Dict[str, ExtractionResult] = {}

    # ------------------------------------------------------------------
    # configuration
    # ------------------------------------------------------------------

    @classmethod
    def known_variables(cls) -> List[str]:
        return sorted(set(cls.default_tokens) | set(cls.derived))

    @classmethod
    def usable_variables(cls) -> List[str]:
        """Output variables plus the inputs other outputs are built from."""
        usable = set(cls.output_variables)
        for inputs in list(cls.dependencies.values()) + list(cls.derived.values()):
            usable.update(inputs)
        return sorted(usable)

    @classmethod
    def validate_config(cls, config) -> None:
        """Reject configurations this archive cannot serve.

        Raises:
            ConfigurationError: unsupported timescale, unknown variable, or a
                variable requested without the variables it depends on.
        """
        if config.source.timescale not in cls.supported_timescales:
            raise ConfigurationError(
                f"Source {cls.name!r} does not support timescale {config.source.timescale!r}; "
                f"supported: {', '.join(cls.supported_timescales)}"
            )
        known = cls.known_variables()
        for var, tokens in config.variables.items():
            if var in cls.derived and tokens is not None:
                raise ConfigurationError(f"variables.{var}: derived by {cls.name!r}, set it to true")
            if var not in known and tokens is None:
                raise ConfigurationError(
                    f"variables.{var}: no default token in source {cls.name!r}; known: {', '.join(known)}"
                )
        usable = cls.usable_variables()
        for var in config.variables:
            if var not in usable:
                raise ConfigurationError(
                    f"variables.{var}: source {cls.name!r} cannot produce it; "
                    f"usable: {', '.join(usable)}"
                )
        for var in config.variables:
            missing = [dep for dep in cls.dependencies.get(var, ()) if dep not in config.variables]
            if missing:
                raise ConfigurationError(
                    f"variables.{var} requires {', '.join(missing)} for source {cls.name!r}"
                )

    def tokens(self, variable: str) -> List[str]:
        """Archive tokens configured (or defaulted) for a variable."""
        configured = self.config.variables.get(variable)
        if configured:
            return list(configured)
        if variable in self.default_tokens:
            return list(self.default_tokens[variable])
        raise ConfigurationError(f"No archive token for variable {variable!r} in source {self.name!r}")

    def source_tokens(self, variable: str) -> List[str]:
        """Tokens whose files must be read to produce a variable."""
        if variable in self.derived:
            tokens = []
            for dep in self.derived[variable]:
                tokens.extend(t for t in self.tokens(dep) if t not in tokens)
            return tokens
        return self.tokens(variable)

    def path_for(self, token: str, year: Optional[int] = None, month: Optional[int] = None) -> str:
        fields = {"token": token}
        if year is not None:
            fields["year"] = int(year)
        if month is not None:
            fields["month"] = int(month)
        return os.path.join(self.config.source.dir, self.template.format(**fields))

    @property
    def output_columns(self) -> List[str]:
        return [v for v in self.output_variables if v in self.config.variables]

    # ------------------------------------------------------------------
    # capabilities
    # ------------------------------------------------------------------

    @abstractmethod
    def file_plan(self, token: str, years: Sequence[int]) -> List[GridJob]:
        """Files that hold one archive token over the given years."""

    def list_required_files(self, variable: str, years: Sequence[int]) -> List[GridJob]:
        """Every file needed for a variable over the given years, in read order."""
        plan = []
        for token in self.source_tokens(variable):
            plan.extend(self.file_plan(token, years))
        return plan

    @abstractmethod
    def extract(self, variable: str, sites: Sequence[Site]) -> pd.DataFrame:
        """Values of one variable for all sites, converted to output units."""

    @abstractmethod
    def postprocess(self, raw: Mapping[str, pd.DataFrame], sites: Sequence[Site]) -> pd.DataFrame:
        """Daily table [sitename, date, outputs...] from the extracted tables."""

    # ------------------------------------------------------------------
    # driver
    # ------------------------------------------------------------------

    def record_missing_inputs(
        self, quantity: str, inputs: Sequence[str], table: pd.DataFrame, sites: Sequence[Site]
    ) -> None:
        """Record an AggregationMissingInputError for each site with missing derived values."""
        if table.empty:
            return
        years = table["year"] if "year" in table.columns else table["date"].dt.year
        by_site = {name: idx for name, idx in table.groupby("sitename").groups.items()}
        for site in sites:
            idx = by_site.get(site.sitename)
            if idx is None:
                continue
            in_range = years.loc[idx].between(site.year_start, site.year_end)
            n_missing = int(table.loc[idx[in_range.to_numpy()], quantity].isna().sum())
            if n_missing:
                self.report.add_failure(
                    AggregationMissingInputError(quantity, inputs, sitename=site.sitename, n_missing=n_missing)
                )
                self.log.warning("derived_value_missing", sitename=site.sitename, variable=quantity, n_missing=n_missing)

    def extract_token(self, token: str, sites: Sequence[Site]) -> ExtractionResult:
        """Extract one archive token; each token is read once per run."""
        if token not in self._token_cache:
            plan = self.file_plan(token, self._years)
            result = self.extractor.extract(token, plan, sites)
            self.report.record_extraction(result)
            self._token_cache[token] = result
        return self._token_cache[token]

    def ingest(self, sites: Sequence[Site]) -> pd.DataFrame:
        """
        Daily values for every site, one row per calendar date.

        Returns:
            DataFrame [sitename, date, <output variables>] sorted by
            sitename and date; dates without a value hold NaN.
        """
        sites = sorted(sites, key=lambda s: s.sitename)
        self._years = sorted({yr for s in sites for yr in s.years})
        self._token_cache = {}
        self.report.sites_processed += len(sites)

        log = self.log.bind(n_sites=len(sites))
        log.info("ingest_started", variables=list(self.config.variables), years=len(self._years))

        raw = {}
        for var in self.config.variables:
            raw[var] = self.extract(var, sites)

        daily = self.postprocess(raw, sites)
        calendar = self.calendar.for_sites(sites)
        out = calendar.merge(daily, on=DAILY_KEYS, how="left") if not daily.empty else calendar
        for var in self.output_columns:
            if var not in out.columns:
                out[var] = np.nan
        out = out[DAILY_KEYS + self.output_columns]
        out = out.sort_values(DAILY_KEYS, kind="mergesort").reset_index(drop=True)

        log.info("ingest_complete", n_rows=len(out), n_failures=len(self.report.failures))
        return out

    def __repr__(self) -> str:
        return f"{type(self).__name__}(dir={self.config.source.dir!r}, template={self.template!r})"
