"""Telemetry sample models - Pure data structures.

Each SWPC source is normalized into one immutable Sample. Samples are
created by the fetchers in the shell layer and owned by the score engine
until a newer sample of the same kind replaces them.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum


class SourceKind(str, Enum):
    """The telemetry sources the monitor polls."""
    REALTIME_SOLAR_WIND = "realtime_solar_wind"
    ALERT_FEED = "alert_feed"
    KP_FORECAST = "kp_forecast"


# Fixed polling interval per source
CADENCES: dict[SourceKind, timedelta] = {
    SourceKind.REALTIME_SOLAR_WIND: timedelta(seconds=60),
    SourceKind.ALERT_FEED: timedelta(minutes=5),
    SourceKind.KP_FORECAST: timedelta(minutes=30),
}


class AlertSeverity(Enum):
    """Severity of an SWPC alert-feed notice, valued by its score rank."""
    NONE = 0
    WATCH = 40
    WARNING = 70
    EXTREME = 100

    @property
    def rank(self) -> int:
        return self.value


@dataclass(frozen=True)
class AlertNotice:
    """One product from the SWPC alerts feed.

    Attributes:
        product_id: SWPC product code (e.g. 'K05W')
        severity: Classified severity
        issued_at: Issue time (UTC)
        valid_until: End of validity if the message states one
        g_scale: Highest geomagnetic storm level mentioned (0-5)
        r_scale: Highest radio blackout level mentioned (0-5)
        s_scale: Highest radiation storm level mentioned (0-5)
    """
    product_id: str
    severity: AlertSeverity
    issued_at: datetime
    valid_until: datetime | None = None
    g_scale: int = 0
    r_scale: int = 0
    s_scale: int = 0

    def is_active(self, now: datetime, max_age: timedelta) -> bool:
        """Check whether the notice is still in force at `now`.

        Notices without a stated validity expire `max_age` after issue.
        """
        if self.valid_until is not None:
            return now <= self.valid_until
        return now <= self.issued_at + max_age


@dataclass(frozen=True)
class Sample:
    """Base class for a normalized reading from one source.

    `fetched_at >= observed_at` is not guaranteed; clock skew between
    the provider and this host is tolerated.
    """
    source_kind: SourceKind
    observed_at: datetime
    fetched_at: datetime

    @property
    def cadence(self) -> timedelta:
        return CADENCES[self.source_kind]


@dataclass(frozen=True)
class SolarWindSample(Sample):
    """Real-time L1 solar wind reading.

    Attributes:
        bz_nt: Bz (GSM) in nanotesla, negative is southward
        speed_kms: Bulk speed in km/s
    """
    bz_nt: float | None = None
    speed_kms: float | None = None


@dataclass(frozen=True)
class AlertFeedSample(Sample):
    """Snapshot of the SWPC alerts feed."""
    notices: tuple[AlertNotice, ...] = field(default_factory=tuple)

    def active_notices(self, now: datetime, max_age: timedelta) -> list[AlertNotice]:
        return [n for n in self.notices if n.is_active(now, max_age)]

    def max_scales(self, now: datetime, max_age: timedelta) -> tuple[int, int, int]:
        """Highest (G, R, S) levels among active notices."""
        active = self.active_notices(now, max_age)
        return (
            max((n.g_scale for n in active), default=0),
            max((n.r_scale for n in active), default=0),
            max((n.s_scale for n in active), default=0),
        )


@dataclass(frozen=True)
class KpForecastSample(Sample):
    """Planetary Kp forecast reduced to its 24 hour maximum."""
    kp_max: float = 0.0
