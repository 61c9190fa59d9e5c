"""Tests for WattTime grid stress adapter."""

import re

import pytest

from hazardwatch.adapters.watttime import (
    GRID_REGIONS,
    GridRegion,
    WattTimeAdapter,
    describe_grid_stress,
    grid_stress_to_outage,
)
from hazardwatch.cache import CacheManager, cache_key
from hazardwatch.config import Settings
from hazardwatch.models import (
    GridStressLevel,
    GridStressReading,
    OutageSeverity,
    OutageType,
    ResultStatus,
)

CAISO = GridRegion("CAISO", 36.7783, -119.4179, "United States", "US", 380_000)
GERMANY = GridRegion("Germany", 51.1657, 10.4515, "Germany", "DE", 357_000)

LOGIN_URL = re.compile(r"https://api\.watttime\.org/login.*")


def _mock_watttime(
    httpx_mock,
    germany_status: int = 200,
    germany_value: float | None = 50.0,
    germany_meta: object = None,
) -> None:
    httpx_mock.add_response(url=LOGIN_URL, json={"token": "tok123"})
    httpx_mock.add_response(
        url=re.compile(r".*/v3/region-from-loc\?latitude=36\.7783.*"),
        json={"region": "CAISO_NORTH", "region_full_name": "California ISO Northern"},
    )
    httpx_mock.add_response(
        url=re.compile(r".*/v3/signal-index\?region=CAISO_NORTH.*"),
        json={
            "data": [{"point_time": "2026-10-17T12:00:00+00:00", "value": 99.0}],
            "meta": {"signal_type": "co2_moer"},
        },
    )
    httpx_mock.add_response(
        url=re.compile(r".*/v3/region-from-loc\?latitude=51\.1657.*"),
        status_code=germany_status,
        json={"region": "DE"},
    )
    if germany_status == 200:
        httpx_mock.add_response(
            url=re.compile(r".*/v3/signal-index\?region=DE.*"),
            json={
                "data": [{"point_time": "2026-10-17T12:00:00+00:00", "value": germany_value}],
                "meta": germany_meta,
            },
        )


def _reading(level: GridStressLevel, percent: float) -> GridStressReading:
    return GridStressReading(
        id="watttime-US-caiso",
        region="CAISO",
        country="United States",
        country_code="US",
        lat=36.7783,
        lon=-119.4179,
        percent=percent,
        stress_level=level,
        description=describe_grid_stress(level, percent),
        timestamp="2026-10-17T12:00:00+00:00",
        area_km2=380_000,
    )


class TestGridRegions:
    def test_fixed_region_table(self) -> None:
        assert len(GRID_REGIONS) == 12
        assert GRID_REGIONS[0].name == "CAISO"
        assert {r.country_code for r in GRID_REGIONS} == {"US", "DE", "GB", "FR", "JP", "AU"}


class TestGridStressToOutage:
    def test_normal_is_not_an_outage(self) -> None:
        assert grid_stress_to_outage(_reading(GridStressLevel.NORMAL, 40.0)) is None

    def test_critical_maps_to_total_power_outage(self) -> None:
        outage = grid_stress_to_outage(_reading(GridStressLevel.CRITICAL, 99.0))

        assert outage is not None
        assert outage.type == OutageType.POWER
        assert outage.severity == OutageSeverity.TOTAL
        assert outage.area_km2 == 380_000
        assert outage.source == "WattTime"
        assert "not a reliability signal" in outage.description

    def test_description_bands(self) -> None:
        assert describe_grid_stress(GridStressLevel.HIGH, 96.4) == (
            "96th percentile - Very high fossil fuel reliance"
        )


class TestWattTimeAdapter:
    def test_source_name(self) -> None:
        assert WattTimeAdapter().source_name == "watttime"

    async def test_missing_credentials_skipped(self, settings: Settings) -> None:
        """Without credentials the adapter is skipped without any request."""
        adapter = WattTimeAdapter(settings=settings)
        result = await adapter.fetch_result()
        await adapter.close()

        assert result.status == ResultStatus.UNCONFIGURED
        assert result.records == []
        assert await adapter.fetch_readings() == []

    async def test_fetch_readings(self, httpx_mock, watttime_settings: Settings) -> None:
        """Readings are built per region and sorted most stressed first."""
        _mock_watttime(httpx_mock)

        adapter = WattTimeAdapter(settings=watttime_settings, regions=(GERMANY, CAISO))
        readings = await adapter.fetch_readings()
        await adapter.close()

        assert [r.region for r in readings] == ["CAISO", "Germany"]
        caiso = readings[0]
        assert caiso.id == "watttime-US-caiso"
        assert caiso.stress_level == GridStressLevel.CRITICAL
        assert caiso.percent == 99.0
        assert caiso.description == "99th percentile - Extreme fossil fuel reliance"
        assert readings[1].stress_level == GridStressLevel.NORMAL

    async def test_bearer_token_sent(self, httpx_mock, watttime_settings: Settings) -> None:
        _mock_watttime(httpx_mock)

        adapter = WattTimeAdapter(settings=watttime_settings, regions=(CAISO, GERMANY))
        await adapter.fetch_readings()
        await adapter.close()

        login = httpx_mock.get_request(url=LOGIN_URL)
        assert login.headers["Authorization"].startswith("Basic ")
        signal = httpx_mock.get_request(url=re.compile(r".*signal-index\?region=CAISO_NORTH.*"))
        assert signal.headers["Authorization"] == "Bearer tok123"

    async def test_missing_value_defaults_to_median(
        self, httpx_mock, watttime_settings: Settings
    ) -> None:
        _mock_watttime(httpx_mock, germany_value=None)

        adapter = WattTimeAdapter(settings=watttime_settings, regions=(CAISO, GERMANY))
        readings = await adapter.fetch_readings()
        await adapter.close()

        assert readings[1].percent == 50.0

    async def test_failed_region_is_skipped(self, httpx_mock, watttime_settings: Settings) -> None:
        """One region failing does not drop the others."""
        _mock_watttime(httpx_mock, germany_status=500)

        adapter = WattTimeAdapter(settings=watttime_settings, regions=(CAISO, GERMANY))
        result = await adapter.fetch_result()
        await adapter.close()

        assert result.status == ResultStatus.SUCCESS
        assert result.skipped == 1
        assert [o.id for o in result.records] == ["watttime-US-caiso"]

    async def test_outages_exclude_normal_regions(
        self, httpx_mock, watttime_settings: Settings
    ) -> None:
        _mock_watttime(httpx_mock)

        adapter = WattTimeAdapter(settings=watttime_settings, regions=(CAISO, GERMANY))
        outages = await adapter.fetch()
        await adapter.close()

        assert len(outages) == 1
        assert outages[0].severity == OutageSeverity.TOTAL

    async def test_login_failure_is_unavailable(
        self, httpx_mock, watttime_settings: Settings
    ) -> None:
        httpx_mock.add_response(url=LOGIN_URL, status_code=401)

        adapter = WattTimeAdapter(settings=watttime_settings, regions=(CAISO,))
        result = await adapter.fetch_result()
        await adapter.close()

        assert result.status == ResultStatus.UNAVAILABLE

    @pytest.mark.httpx_mock(can_send_already_matched_responses=True)
    async def test_token_reused_from_cache(
        self, httpx_mock, watttime_settings: Settings, cache_manager: CacheManager
    ) -> None:
        """A cached token is reused across fetches and never written to disk."""
        _mock_watttime(httpx_mock)

        adapter = WattTimeAdapter(
            cache=cache_manager, settings=watttime_settings, regions=(CAISO, GERMANY)
        )
        await adapter.fetch_readings()
        await adapter.fetch_readings()
        await adapter.close()

        assert len(httpx_mock.get_requests(url=LOGIN_URL)) == 1
        assert await cache_manager._l2.get(cache_key("watttime", "token")) is None

    async def test_rejected_token_is_dropped(
        self, httpx_mock, watttime_settings: Settings, cache_manager: CacheManager
    ) -> None:
        """A 401 on a data call discards the cached token."""
        httpx_mock.add_response(url=LOGIN_URL, json={"token": "expired"})
        httpx_mock.add_response(
            url=re.compile(r".*/v3/region-from-loc\?latitude=36\.7783.*"), status_code=401
        )

        adapter = WattTimeAdapter(cache=cache_manager, settings=watttime_settings, regions=(CAISO,))
        readings = await adapter.fetch_readings()
        await adapter.close()

        assert readings == []
        assert await cache_manager._l1.get(cache_key("watttime", "token")) is None

    async def test_malformed_meta_keeps_every_region(
        self, httpx_mock, watttime_settings: Settings
    ) -> None:
        """A non-object ``meta`` in one region's response does not drop the others."""
        _mock_watttime(httpx_mock, germany_meta="oops")

        adapter = WattTimeAdapter(settings=watttime_settings, regions=(CAISO, GERMANY))
        readings = await adapter.fetch_readings()
        await adapter.close()

        assert [r.region for r in readings] == ["CAISO", "Germany"]
        assert readings[0].percent == 99.0
        assert readings[1].signal_type == "co2_moer"

    async def test_unexpected_region_error_is_skipped(
        self, httpx_mock, watttime_settings: Settings, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """An unexpected error in one region is counted as skipped."""
        _mock_watttime(httpx_mock)

        adapter = WattTimeAdapter(settings=watttime_settings, regions=(CAISO, GERMANY))
        fetch_region = adapter._fetch_region

        async def flaky_fetch_region(region, token):
            reading = await fetch_region(region, token)
            if region.name == "Germany":
                raise AttributeError("'str' object has no attribute 'get'")
            return reading

        monkeypatch.setattr(adapter, "_fetch_region", flaky_fetch_region)
        result = await adapter.fetch_result()
        await adapter.close()

        assert result.status == ResultStatus.SUCCESS
        assert result.skipped == 1
        assert [o.id for o in result.records] == ["watttime-US-caiso"]

    async def test_fetch_readings_never_raises(
        self, watttime_settings: Settings, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        adapter = WattTimeAdapter(settings=watttime_settings, regions=(CAISO,))

        async def broken_token():
            raise RuntimeError("unexpected")

        monkeypatch.setattr(adapter, "_get_token", broken_token)

        assert await adapter.fetch_readings() == []
        await adapter.close()
