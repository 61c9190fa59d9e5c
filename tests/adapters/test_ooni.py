"""Tests for OONI adapter."""

import json
import re
from pathlib import Path

from hazardwatch.adapters.ooni import OONIAdapter
from hazardwatch.models import OutageSeverity, ResultStatus


def load_fixture(name: str) -> dict:
    """Load JSON fixture file."""
    fixture_path = Path(__file__).parent.parent / "fixtures" / name
    return json.loads(fixture_path.read_text())


class TestOONIAdapter:
    def test_source_name(self) -> None:
        assert OONIAdapter().source_name == "ooni"

    async def test_fetch_success(self, httpx_mock) -> None:
        """Incidents without ASNs are dropped; non-object entries are skipped."""
        httpx_mock.add_response(
            url=re.compile(r".*api\.ooni\.io/api/v1/incidents/search.*"),
            json=load_fixture("ooni_incidents.json"),
        )

        adapter = OONIAdapter()
        result = await adapter.fetch_result()
        await adapter.close()

        assert result.status == ResultStatus.SUCCESS
        assert result.skipped == 1
        assert [o.country_code for o in result.records] == ["IR", "RU"]

        iran, russia = result.records
        assert iran.id == "ooni-ooni-inc-001"
        assert iran.country == "Iran"
        assert iran.severity == OutageSeverity.TOTAL
        assert iran.description == "Mobile networks blocked across Iran"
        assert iran.active is True
        assert russia.severity == OutageSeverity.MAJOR
        assert russia.active is False
        # Falls back to the title without a short description
        assert russia.description == "Russia - Social media throttling"

    async def test_request_params(self, httpx_mock) -> None:
        httpx_mock.add_response(url=re.compile(r".*api\.ooni\.io.*"), json={"incidents": []})

        adapter = OONIAdapter()
        result = await adapter.fetch_result()
        await adapter.close()

        request = httpx_mock.get_request()
        assert request.url.params["only_mine"] == "false"
        assert request.url.params["limit"] == "20"
        assert result.status == ResultStatus.NO_DATA

    async def test_wrong_shape_is_malformed(self, httpx_mock) -> None:
        httpx_mock.add_response(url=re.compile(r".*api\.ooni\.io.*"), json=[{"incident_id": "x"}])

        adapter = OONIAdapter()
        result = await adapter.fetch_result()
        await adapter.close()

        assert result.status == ResultStatus.MALFORMED
