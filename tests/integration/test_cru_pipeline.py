"""End-to-end CRU TS monthly -> daily runs against an in-memory archive."""

import numpy as np
import pandas as pd
import pytest
from numpy.testing import assert_allclose

from conftest import GRID_LATS, GRID_LONS, make_config, make_site, monthly_dataset
from sitemet import IngestError, ingest_globalfields, units
from sitemet.exceptions import AggregationMissingInputError, InvalidSiteError, NoValidCellError

SEASONAL = np.array([-2.0, 0.5, 4.0, 8.5, 13.0, 16.5, 18.5, 18.0, 14.0, 9.0, 3.5, -0.5])
FIRST_YEAR = 2009
N_YEARS = 4  # 2009-2012


def add_cru(archive, token, values, **kwargs):
    return archive.add(
        f"cru_ts4.01.1901.2016.{token}.dat.nc",
        monthly_dataset(token, FIRST_YEAR, values, **kwargs),
    )


@pytest.fixture
def cru_archive(grid_archive):
    """Four years of constant precipitation / wet days and a seasonal temperature cycle."""
    add_cru(grid_archive, "pre", np.full(12 * N_YEARS, 30.0))
    add_cru(grid_archive, "wet", np.full(12 * N_YEARS, 10.0))
    add_cru(grid_archive, "tmp", np.tile(SEASONAL, N_YEARS))
    return grid_archive


def month_means(daily, column):
    return daily.groupby(daily["date"].dt.month)[column].mean().to_numpy()


class TestCruPrecipitation:
    """Monthly totals on wet days."""

    def test_one_year_totals(self, cru_archive):
        """30 mm on 10 wet days every month -> 365 rows, 360 mm, 120 wet days."""
        config = make_config(
            "cru", cru_archive.root, {"temp": True, "prec": True, "wetd": True}, generator={"seed": 42}
        )
        result = ingest_globalfields([make_site()], config)

        daily = result.site("CH-Lae")
        assert len(daily) == 365
        assert daily["prec"].sum() == pytest.approx(360.0)
        assert (daily["prec"] > 0).sum() == 120
        assert result.report.ok

    def test_reproducible_with_seed(self, cru_archive):
        config = make_config("cru", cru_archive.root, {"prec": True, "wetd": True}, generator={"seed": 7})
        first = ingest_globalfields([make_site()], config).site("CH-Lae")["prec"]
        second = ingest_globalfields([make_site()], config).site("CH-Lae")["prec"]
        assert_allclose(first, second)


class TestCruTemperature:
    """Mean-preserving expansion of monthly temperature."""

    def test_monthly_means_preserved(self, cru_archive):
        config = make_config("cru", cru_archive.root, {"temp": True})
        result = ingest_globalfields([make_site(start="2010-01-01", end="2011-12-31")], config)
        daily = result.site("CH-Lae")
        assert len(daily) == 730
        for year in (2010, 2011):
            year_rows = daily[daily["date"].dt.year == year]
            assert_allclose(month_means(year_rows, "temp"), SEASONAL, atol=1e-9)

    def test_missing_month_stays_missing(self, grid_archive):
        """A missing March 2011 is not interpolated from the neighbouring Marches."""
        temp = np.tile(SEASONAL, N_YEARS)
        temp[(2011 - FIRST_YEAR) * 12 + 2] = np.nan
        add_cru(grid_archive, "tmp", temp)
        config = make_config("cru", grid_archive.root, {"temp": True})

        result = ingest_globalfields([make_site(start="2011-01-01", end="2011-12-31")], config)

        daily = result.site("CH-Lae")
        march = daily["date"].dt.month == 3
        assert daily.loc[march, "temp"].isna().all()
        assert daily.loc[~march, "temp"].notna().all()
        assert result.report.missing_values["temp"] == 31

    def test_uses_archive_neighbour_years(self, grid_archive):
        """December 2009 from the archive shapes early January 2010."""
        temp = np.full(12 * N_YEARS, 10.0)
        temp[11] = 25.0  # December 2009
        add_cru(grid_archive, "tmp", temp)
        config = make_config("cru", grid_archive.root, {"temp": True})

        daily = ingest_globalfields([make_site()], config).site("CH-Lae")
        assert daily["temp"].iloc[0] > 10.0
        assert daily["temp"].iloc[:31].mean() == pytest.approx(10.0)


class TestCruDerived:
    """Cloud cover and vapour pressure deficit."""

    def test_cloud_cover_capped(self, cru_archive):
        cld = np.tile([50.0, 100.0, 50.0, 60, 70, 80, 90, 95, 90, 80, 70, 60], N_YEARS)
        add_cru(cru_archive, "cld", cld)
        config = make_config("cru", cru_archive.root, {"ccov": True})

        daily = ingest_globalfields([make_site()], config).site("CH-Lae")
        assert daily["ccov"].max() <= 100.0
        assert daily["ccov"].max() == pytest.approx(100.0)

    def test_vpd_from_vapour_pressure(self, cru_archive):
        add_cru(cru_archive, "vap", np.full(12 * N_YEARS, 8.0))
        config = make_config("cru", cru_archive.root, {"temp": True, "vap": True, "vpd": True})

        result = ingest_globalfields([make_site()], config)
        daily = result.site("CH-Lae")
        assert list(daily.columns) == ["date", "temp", "vpd"]
        expected = units.calc_vpd(800.0, SEASONAL)
        assert_allclose(month_means(daily, "vpd"), expected, atol=1e-6)
        # July is warm enough to open a deficit against 8 hPa
        assert expected[6] > 0

    def test_vpd_missing_input_recorded(self, cru_archive):
        """Missing vapour pressure leaves vpd missing and is reported, not raised."""
        vap = np.full(12 * N_YEARS, 8.0)
        vap[(2010 - FIRST_YEAR) * 12 + 5] = np.nan  # June 2010
        add_cru(cru_archive, "vap", vap)
        config = make_config("cru", cru_archive.root, {"temp": True, "vap": True, "vpd": True})

        result = ingest_globalfields([make_site()], config)

        daily = result.site("CH-Lae")
        assert daily.loc[daily["date"].dt.month == 6, "vpd"].isna().all()
        failures = result.report.failures_of(AggregationMissingInputError)
        assert len(failures) == 1
        assert failures[0].sitename == "CH-Lae"
        assert failures[0].n_missing == 1


class TestCruFailures:
    """Degraded runs complete with a report; strict runs raise."""

    def test_missing_archive_file(self, grid_archive):
        add_cru(grid_archive, "pre", np.full(12 * N_YEARS, 30.0))
        add_cru(grid_archive, "wet", np.full(12 * N_YEARS, 10.0))
        config = make_config("cru", grid_archive.root, {"temp": True, "prec": True, "wetd": True})

        result = ingest_globalfields([make_site()], config)

        daily = result.site("CH-Lae")
        assert daily["temp"].isna().all()
        assert daily["prec"].notna().all()
        assert result.report.missing_files == [grid_archive.path("*tmp.dat.nc")]

    def test_strict_mode_raises(self, grid_archive):
        config = make_config("cru", grid_archive.root, {"temp": True}, run={"strict": True})
        with pytest.raises(IngestError, match="FileNotFoundError"):
            ingest_globalfields([make_site()], config)

    def test_invalid_site_isolated(self, cru_archive):
        config = make_config("cru", cru_archive.root, {"temp": True})
        sites = pd.DataFrame(
            [
                {"sitename": "ok", "lon": 8.4, "lat": 47.2, "date_start": "2010-01-01", "date_end": "2010-12-31"},
                {"sitename": "bad", "lon": 8.4, "lat": 47.2, "date_start": "2010-01-01", "date_end": "2009-12-31"},
            ]
        )
        result = ingest_globalfields(sites, config)
        assert list(result.table["sitename"]) == ["ok"]
        assert [f.sitename for f in result.report.failures_of(InvalidSiteError)] == ["bad"]

    def test_ocean_site_moved_to_land(self, grid_archive):
        ilon = int(np.argmin(np.abs(GRID_LONS - 5.0)))
        ilat = int(np.argmin(np.abs(GRID_LATS - 45.0)))
        add_cru(grid_archive, "tmp", np.tile(SEASONAL, N_YEARS), invalid_cells=[(ilon, ilat)])
        config = make_config("cru", grid_archive.root, {"temp": True})

        result = ingest_globalfields([make_site(lon=5.0, lat=45.0)], config)
        assert result.site("CH-Lae")["temp"].notna().all()
        assert result.report.failures_of(NoValidCellError) == []

    def test_ocean_site_stays_missing_without_search(self, grid_archive):
        ilon = int(np.argmin(np.abs(GRID_LONS - 5.0)))
        ilat = int(np.argmin(np.abs(GRID_LATS - 45.0)))
        add_cru(grid_archive, "tmp", np.tile(SEASONAL, N_YEARS), invalid_cells=[(ilon, ilat)])
        config = make_config("cru", grid_archive.root, {"temp": True}, source={"nearest_valid_cell": False})

        result = ingest_globalfields([make_site(lon=5.0, lat=45.0)], config)
        assert result.site("CH-Lae")["temp"].isna().all()


class TestCruOutputTable:
    """Nested per-site output."""

    def test_files_opened_once_for_many_sites(self, cru_archive):
        config = make_config("cru", cru_archive.root, {"temp": True, "prec": True, "wetd": True})
        sites = [make_site(f"S{i:03d}", lon=-170.0 + i, lat=-60.0 + i) for i in range(120)]

        result = ingest_globalfields(sites, config)

        assert len(cru_archive.opened) == 3
        assert result.report.files_opened == 3
        assert len(result.table) == 120
        assert len(result.to_long()) == 120 * 365

    def test_table_layout(self, cru_archive):
        config = make_config("cru", cru_archive.root, {"temp": True})
        sites = [make_site("B", start="2010-05-01", end="2011-02-01"), make_site("A")]
        result = ingest_globalfields(sites, config)

        assert list(result.table.columns) == ["sitename", "lon", "lat", "elv", "date_start", "date_end", "data"]
        assert list(result.table["sitename"]) == ["A", "B"]
        assert len(result.site("B")) == 730
        long = result.to_long()
        assert list(long.columns) == ["sitename", "date", "temp"]
        assert long.equals(long.sort_values(["sitename", "date"]).reset_index(drop=True))

    def test_unknown_site_lookup(self, cru_archive):
        config = make_config("cru", cru_archive.root, {"temp": True})
        result = ingest_globalfields([make_site()], config)
        with pytest.raises(KeyError):
            result.site("nowhere")
