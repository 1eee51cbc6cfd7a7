"""NOAA SWPC Client and Source Fetchers - Imperative Shell.

This module handles HTTP communication with the NOAA Space Weather
Prediction Center JSON products. All I/O is contained here; payload
parsing is in the core module.

Each fetcher turns "fetch now" into a FetchResult and never raises, so a
broken source cannot take down the scheduler.
"""

import logging
from datetime import datetime, timedelta
from typing import Any, Callable

import requests

from spaceweather.clock import utc_now
from spaceweather.core.config import SourceEndpoints
from spaceweather.core.parsing import (
    PayloadError,
    parse_alert_feed,
    parse_kp_forecast,
    parse_solar_wind,
)
from spaceweather.core.sample import CADENCES, SourceKind
from spaceweather.core.schedule import FetchErrorKind, FetchResult


logger = logging.getLogger(__name__)


# Default timeout for API requests (seconds)
DEFAULT_TIMEOUT = 10

USER_AGENT = "spaceweather-watcher/0.3"


class SWPCClient:
    """Client for fetching JSON products from NOAA SWPC.

    This is part of the imperative shell - it handles HTTP I/O.
    """

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT,
        session: requests.Session | None = None,
    ) -> None:
        """Initialize SWPC client.

        Args:
            timeout: Request timeout in seconds
            session: HTTP session (created if not provided)
        """
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers["User-Agent"] = USER_AGENT

    def get_json(self, url: str) -> Any:
        """Fetch and decode one JSON product.

        This method performs HTTP I/O.

        Args:
            url: Product URL

        Returns:
            Decoded JSON

        Raises:
            requests.RequestException: If the request fails or returns non-2xx
            ValueError: If the body is not valid JSON
        """
        logger.debug("Fetching SWPC product", extra={"url": url})

        response = self.session.get(url, timeout=self.timeout)
        response.raise_for_status()

        return response.json()


class SourceFetcher:
    """Base fetcher: knows how to retrieve and parse one source.

    Subclasses implement `_fetch(now)`, which may raise request or
    payload errors; `fetch()` classifies them into a FetchResult.
    """

    kind: SourceKind

    def __init__(
        self,
        client: SWPCClient,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.client = client
        self.clock = clock

    @property
    def cadence(self) -> timedelta:
        return CADENCES[self.kind]

    def _fetch(self, now: datetime):
        raise NotImplementedError

    def fetch(self) -> FetchResult:
        """Fetch and parse the source now.

        Returns:
            FetchResult with a sample, or a classified error
        """
        try:
            sample = self._fetch(self.clock())
        except PayloadError as e:
            return FetchResult.failed(self.kind, FetchErrorKind.MALFORMED, str(e))
        except requests.exceptions.JSONDecodeError as e:
            # Subclasses RequestException, so must precede it
            return FetchResult.failed(self.kind, FetchErrorKind.MALFORMED, f"Invalid JSON: {e}")
        except requests.HTTPError as e:
            status = e.response.status_code if e.response is not None else "?"
            return FetchResult.failed(self.kind, FetchErrorKind.PROTOCOL, f"HTTP {status}: {e}")
        except requests.Timeout:
            return FetchResult.failed(self.kind, FetchErrorKind.NETWORK, "Request timed out")
        except requests.RequestException as e:
            return FetchResult.failed(self.kind, FetchErrorKind.NETWORK, str(e))
        except ValueError as e:
            return FetchResult.failed(self.kind, FetchErrorKind.MALFORMED, str(e))

        return FetchResult.ok(sample)


class SolarWindFetcher(SourceFetcher):
    """Real-time L1 solar wind: magnetometer Bz plus plasma speed."""

    kind = SourceKind.REALTIME_SOLAR_WIND

    def __init__(
        self,
        client: SWPCClient,
        bz_url: str,
        speed_url: str,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        super().__init__(client, clock)
        self.bz_url = bz_url
        self.speed_url = speed_url

    def _fetch(self, now: datetime):
        mag = self.client.get_json(self.bz_url)
        speed = self.client.get_json(self.speed_url)
        return parse_solar_wind(mag, speed, fetched_at=now)


class AlertFeedFetcher(SourceFetcher):
    """SWPC watches, warnings and alerts."""

    kind = SourceKind.ALERT_FEED

    def __init__(
        self,
        client: SWPCClient,
        url: str,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        super().__init__(client, clock)
        self.url = url

    def _fetch(self, now: datetime):
        return parse_alert_feed(self.client.get_json(self.url), fetched_at=now)


class KpForecastFetcher(SourceFetcher):
    """Planetary Kp index forecast."""

    kind = SourceKind.KP_FORECAST

    def __init__(
        self,
        client: SWPCClient,
        url: str,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        super().__init__(client, clock)
        self.url = url

    def _fetch(self, now: datetime):
        return parse_kp_forecast(self.client.get_json(self.url), fetched_at=now)


def build_fetchers(
    client: SWPCClient,
    endpoints: SourceEndpoints,
    clock: Callable[[], datetime] = utc_now,
) -> list[SourceFetcher]:
    """Create one fetcher per source kind."""
    return [
        SolarWindFetcher(client, endpoints.bz_url, endpoints.speed_url, clock),
        AlertFeedFetcher(client, endpoints.alerts_url, clock),
        KpForecastFetcher(client, endpoints.kp_url, clock),
    ]
