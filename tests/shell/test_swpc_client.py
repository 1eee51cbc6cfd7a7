"""Tests for the SWPC client and source fetchers.

Uses the responses library to mock HTTP requests.
"""

import pytest
import requests
import responses
from datetime import datetime, timezone

from spaceweather.core.config import SourceEndpoints
from spaceweather.core.sample import SourceKind
from spaceweather.core.schedule import FetchErrorKind
from spaceweather.shell.swpc_client import (
    AlertFeedFetcher,
    KpForecastFetcher,
    SolarWindFetcher,
    SWPCClient,
    build_fetchers,
)


NOW = datetime(2024, 5, 10, 13, 0, 0, tzinfo=timezone.utc)

MAG_URL = "https://swpc.test/json/rtsw/rtsw_mag_1m.json"
WIND_URL = "https://swpc.test/json/rtsw/rtsw_wind_1m.json"
ALERTS_URL = "https://swpc.test/products/alerts.json"
KP_URL = "https://swpc.test/products/noaa-planetary-k-index-forecast.json"

MAG_PAYLOAD = [
    {"time_tag": "2024-05-10T12:58:00", "active": True, "source": "DSCOVR", "bz_gsm": -11.2},
    {"time_tag": "2024-05-10T12:59:00", "active": True, "source": "DSCOVR", "bz_gsm": -12.0},
]

WIND_PAYLOAD = [
    {"time_tag": "2024-05-10T12:59:00", "active": True, "source": "DSCOVR", "proton_speed": 712.5},
]

KP_PAYLOAD = [
    ["time_tag", "kp", "observed", "noaa_scale"],
    ["2024-05-10 12:00:00", "6.33", "estimated", "G2"],
    ["2024-05-10 15:00:00", "7.67", "predicted", "G3"],
]

ALERTS_PAYLOAD = [
    {
        "product_id": "K07A",
        "issue_datetime": "2024-05-10 12:30:00.000",
        "message": "Space Weather Message Code: ALTK07\r\n\r\nALERT: Geomagnetic K-index of 7\r\nNOAA Scale: G3 - Strong\r\n",
    },
]


@pytest.fixture
def client():
    return SWPCClient(timeout=5)


def fixed_clock():
    return NOW


class TestSWPCClient:
    """Tests for SWPCClient.get_json()."""

    @responses.activate
    def test_returns_decoded_json(self, client):
        responses.add(responses.GET, KP_URL, json=KP_PAYLOAD, status=200)

        assert client.get_json(KP_URL) == KP_PAYLOAD

    @responses.activate
    def test_sends_user_agent(self, client):
        responses.add(responses.GET, KP_URL, json=[], status=200)

        client.get_json(KP_URL)

        assert responses.calls[0].request.headers["User-Agent"].startswith("spaceweather-watcher")

    @responses.activate
    def test_raises_on_http_error(self, client):
        responses.add(responses.GET, KP_URL, status=503)

        with pytest.raises(requests.HTTPError):
            client.get_json(KP_URL)


class TestSolarWindFetcher:
    """Tests for SolarWindFetcher.fetch()."""

    @pytest.fixture
    def fetcher(self, client):
        return SolarWindFetcher(client, MAG_URL, WIND_URL, clock=fixed_clock)

    @responses.activate
    def test_success(self, fetcher):
        responses.add(responses.GET, MAG_URL, json=MAG_PAYLOAD, status=200)
        responses.add(responses.GET, WIND_URL, json=WIND_PAYLOAD, status=200)

        result = fetcher.fetch()

        assert result.success is True
        assert result.source_kind == SourceKind.REALTIME_SOLAR_WIND
        assert result.sample.bz_nt == -12.0
        assert result.sample.speed_kms == 712.5
        assert result.sample.fetched_at == NOW

    @responses.activate
    def test_http_error_is_protocol(self, fetcher):
        responses.add(responses.GET, MAG_URL, status=500)

        result = fetcher.fetch()

        assert result.success is False
        assert result.error.kind == FetchErrorKind.PROTOCOL
        assert "500" in result.error.message

    @responses.activate
    def test_connection_error_is_network(self, fetcher):
        responses.add(responses.GET, MAG_URL, body=requests.ConnectionError("refused"))

        result = fetcher.fetch()

        assert result.error.kind == FetchErrorKind.NETWORK

    @responses.activate
    def test_timeout_is_network(self, fetcher):
        responses.add(responses.GET, MAG_URL, body=requests.Timeout("slow"))

        result = fetcher.fetch()

        assert result.error.kind == FetchErrorKind.NETWORK
        assert result.error.message == "Request timed out"

    @responses.activate
    def test_invalid_json_is_malformed(self, fetcher):
        responses.add(responses.GET, MAG_URL, body="<html>maintenance</html>", status=200)

        result = fetcher.fetch()

        assert result.error.kind == FetchErrorKind.MALFORMED

    @responses.activate
    def test_unexpected_shape_is_malformed(self, fetcher):
        responses.add(responses.GET, MAG_URL, json={"status": "ok"}, status=200)
        responses.add(responses.GET, WIND_URL, json=WIND_PAYLOAD, status=200)

        result = fetcher.fetch()

        assert result.error.kind == FetchErrorKind.MALFORMED


class TestAlertFeedFetcher:
    """Tests for AlertFeedFetcher.fetch()."""

    @responses.activate
    def test_success(self, client):
        responses.add(responses.GET, ALERTS_URL, json=ALERTS_PAYLOAD, status=200)

        result = AlertFeedFetcher(client, ALERTS_URL, clock=fixed_clock).fetch()

        assert result.success is True
        assert result.sample.notices[0].product_id == "K07A"
        assert result.sample.notices[0].g_scale == 3

    @responses.activate
    def test_schema_change_is_malformed(self, client):
        responses.add(responses.GET, ALERTS_URL, json={"alerts": ALERTS_PAYLOAD}, status=200)

        result = AlertFeedFetcher(client, ALERTS_URL, clock=fixed_clock).fetch()

        assert result.error.kind == FetchErrorKind.MALFORMED


class TestKpForecastFetcher:
    """Tests for KpForecastFetcher.fetch()."""

    @responses.activate
    def test_success(self, client):
        responses.add(responses.GET, KP_URL, json=KP_PAYLOAD, status=200)

        result = KpForecastFetcher(client, KP_URL, clock=fixed_clock).fetch()

        assert result.success is True
        assert result.sample.kp_max == pytest.approx(7.67)

    @responses.activate
    def test_not_found_is_protocol(self, client):
        responses.add(responses.GET, KP_URL, status=404)

        result = KpForecastFetcher(client, KP_URL, clock=fixed_clock).fetch()

        assert result.error.kind == FetchErrorKind.PROTOCOL


class TestBuildFetchers:
    """Tests for build_fetchers()."""

    def test_one_per_source_with_cadences(self, client):
        endpoints = SourceEndpoints(kp_url=KP_URL, alerts_url=ALERTS_URL, bz_url=MAG_URL, speed_url=WIND_URL)

        fetchers = build_fetchers(client, endpoints)

        assert [f.kind for f in fetchers] == [
            SourceKind.REALTIME_SOLAR_WIND,
            SourceKind.ALERT_FEED,
            SourceKind.KP_FORECAST,
        ]
        assert [f.cadence.total_seconds() for f in fetchers] == [60, 300, 1800]
