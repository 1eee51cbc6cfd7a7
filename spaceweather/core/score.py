"""Local Impact Score model - Pure functions plus the single-writer engine.

The Local Impact Score (LIS) is a 0-100 composite of three sub-scores:

    kp_component    forecast Kp / 9 * 100, scaled by latitude    weight 0.4
    alert_component most severe unexpired SWPC notice            weight 0.3
    wind_component  L1 reconnection electric field, scaled       weight 0.3

A source whose latest sample is missing or stale contributes 0. The
short-fuse flag is computed separately from the latest fresh solar-wind
sample alone. Staleness of the Kp forecast or alert feed never blocks it,
since a shock at L1 can be locally severe before either reflects it.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta

from spaceweather.core.sample import (
    AlertFeedSample,
    AlertSeverity,
    KpForecastSample,
    Sample,
    SolarWindSample,
    SourceKind,
)


KP_WEIGHT = 0.4
ALERT_WEIGHT = 0.3
WIND_WEIGHT = 0.3

# A sample is stale once older than this many of its own cadences
STALENESS_CADENCES = 3

# Reconnection electric field (mV/m) at which the wind component saturates
WIND_EFIELD_SATURATION_MV_M = 10.0

DEFAULT_ALERT_MAX_AGE = timedelta(hours=24)

LEVELS = (
    (80, "Severe"),
    (60, "High"),
    (40, "Moderate"),
    (20, "Elevated"),
    (0, "Low"),
)


@dataclass(frozen=True)
class ScoreSettings:
    """Tunables for the score model.

    Attributes:
        sensitivity: Latitude multiplier applied to the Kp and wind components
        short_bz_nt: Short-fuse Bz threshold (trips at or below)
        short_spd_kms: Short-fuse speed threshold (trips at or above)
        alert_max_age: Lifetime of alert notices that state no validity
    """
    sensitivity: float = 1.0
    short_bz_nt: float = -10.0
    short_spd_kms: float = 600.0
    alert_max_age: timedelta = DEFAULT_ALERT_MAX_AGE


@dataclass(frozen=True)
class ScoreComponents:
    """Normalized sub-scores, each in [0, 100]."""
    kp: float = 0.0
    alert: float = 0.0
    wind: float = 0.0


@dataclass(frozen=True)
class EngineState:
    """Immutable snapshot of everything the engine knows.

    Attributes:
        samples: Latest sample per source kind (stale ones included)
        stale_sources: Kinds excluded from the score for staleness
        components: Sub-scores used for the composite
        current_lis: Local Impact Score in [0, 100]
        level: Human-readable level for current_lis
        short_fuse_active: Short-fuse trip-wire state
        computed_at: When this snapshot was computed
        previous_lis: LIS of the preceding snapshot, None for the first
    """
    samples: dict[SourceKind, Sample] = field(default_factory=dict)
    stale_sources: frozenset[SourceKind] = frozenset()
    components: ScoreComponents = field(default_factory=ScoreComponents)
    current_lis: int = 0
    level: str = "Low"
    short_fuse_active: bool = False
    computed_at: datetime | None = None
    previous_lis: int | None = None

    @property
    def solar_wind(self) -> SolarWindSample | None:
        return self.samples.get(SourceKind.REALTIME_SOLAR_WIND)

    @property
    def alert_feed(self) -> AlertFeedSample | None:
        return self.samples.get(SourceKind.ALERT_FEED)

    @property
    def kp_forecast(self) -> KpForecastSample | None:
        return self.samples.get(SourceKind.KP_FORECAST)

    @property
    def has_all_sources(self) -> bool:
        return all(kind in self.samples for kind in SourceKind)

    @property
    def trend(self) -> str:
        """Direction of the LIS versus the previous snapshot."""
        if self.previous_lis is None or self.current_lis == self.previous_lis:
            return "steady"
        return "rising" if self.current_lis > self.previous_lis else "falling"


def _clamp(value: float, low: float = 0.0, high: float = 100.0) -> float:
    return max(low, min(high, value))


def latitude_sensitivity(latitude: float) -> float:
    """Latitude multiplier for geomagnetic effects.

    Pure function. Floors at 0.2 below ~34 degrees and reaches 1.0 at
    50 degrees; geomagnetic effects grow poleward.
    """
    return _clamp((abs(latitude) - 30.0) / 20.0, 0.2, 1.0)


def is_stale(sample: Sample, now: datetime) -> bool:
    """Check if a sample is older than its freshness bound.

    Age is measured from the local fetch time so provider clock skew
    does not matter.
    """
    return now - sample.fetched_at > sample.cadence * STALENESS_CADENCES


def kp_component(kp: float, sensitivity: float = 1.0) -> float:
    """Kp sub-score. Pure function."""
    return _clamp(_clamp(kp, 0.0, 9.0) / 9.0 * 100.0 * sensitivity)


def alert_component(severity: AlertSeverity) -> float:
    """Alert-feed sub-score. Pure function."""
    return float(severity.rank)


def wind_component(
    bz_nt: float | None,
    speed_kms: float | None,
    sensitivity: float = 1.0,
) -> float:
    """Solar-wind sub-score from the reconnection electric field.

    Pure function. E = v * Bs (mV/m) with Bs the southward part of Bz;
    the score grows as Bz becomes more negative and speed increases and
    saturates at WIND_EFIELD_SATURATION_MV_M.
    """
    if bz_nt is None or speed_kms is None:
        return 0.0

    southward = max(0.0, -bz_nt)
    efield = max(0.0, speed_kms) * southward / 1000.0
    return _clamp(efield / WIND_EFIELD_SATURATION_MV_M * 100.0 * sensitivity)


def most_severe_active(
    feed: AlertFeedSample,
    now: datetime,
    max_age: timedelta = DEFAULT_ALERT_MAX_AGE,
) -> AlertSeverity:
    """Most severe notice still in force at `now`."""
    active = feed.active_notices(now, max_age)
    return max((n.severity for n in active), key=lambda s: s.rank, default=AlertSeverity.NONE)


def composite_lis(components: ScoreComponents) -> int:
    """Weighted composite, rounded and clamped to [0, 100]. Pure function."""
    total = (
        KP_WEIGHT * components.kp
        + ALERT_WEIGHT * components.alert
        + WIND_WEIGHT * components.wind
    )
    return int(_clamp(round(total)))


def level_for(lis: int) -> str:
    """Human-readable level for a LIS value."""
    for floor, label in LEVELS:
        if lis >= floor:
            return label
    return "Low"


def is_short_fuse(
    sample: SolarWindSample | None,
    short_bz_nt: float,
    short_spd_kms: float,
) -> bool:
    """Short-fuse trip-wire on the latest solar-wind sample.

    Pure function. Callers pass None when the solar-wind sample is stale.
    """
    if sample is None or sample.bz_nt is None or sample.speed_kms is None:
        return False
    return sample.bz_nt <= short_bz_nt and sample.speed_kms >= short_spd_kms


def compute_components(
    samples: dict[SourceKind, Sample],
    stale: frozenset[SourceKind],
    settings: ScoreSettings,
    now: datetime,
) -> ScoreComponents:
    """Compute sub-scores from the fresh samples. Pure function."""
    def fresh(kind: SourceKind) -> Sample | None:
        if kind in stale:
            return None
        return samples.get(kind)

    kp = 0.0
    kp_sample = fresh(SourceKind.KP_FORECAST)
    if isinstance(kp_sample, KpForecastSample):
        kp = kp_component(kp_sample.kp_max, settings.sensitivity)

    alert = 0.0
    feed = fresh(SourceKind.ALERT_FEED)
    if isinstance(feed, AlertFeedSample):
        alert = alert_component(most_severe_active(feed, now, settings.alert_max_age))

    wind = 0.0
    wind_sample = fresh(SourceKind.REALTIME_SOLAR_WIND)
    if isinstance(wind_sample, SolarWindSample):
        wind = wind_component(wind_sample.bz_nt, wind_sample.speed_kms, settings.sensitivity)

    return ScoreComponents(kp=kp, alert=alert, wind=wind)


def compute_state(
    samples: dict[SourceKind, Sample],
    settings: ScoreSettings,
    now: datetime,
    previous_lis: int | None = None,
) -> EngineState:
    """Build a full EngineState snapshot from the latest samples.

    Pure function.
    """
    stale = frozenset(kind for kind, s in samples.items() if is_stale(s, now))
    components = compute_components(samples, stale, settings, now)
    lis = composite_lis(components)

    wind_sample = samples.get(SourceKind.REALTIME_SOLAR_WIND)
    if SourceKind.REALTIME_SOLAR_WIND in stale or not isinstance(wind_sample, SolarWindSample):
        wind_sample = None
    short_fuse = is_short_fuse(
        wind_sample,
        settings.short_bz_nt,
        settings.short_spd_kms,
    )

    return EngineState(
        samples=dict(samples),
        stale_sources=stale,
        components=components,
        current_lis=lis,
        level=level_for(lis),
        short_fuse_active=short_fuse,
        computed_at=now,
        previous_lis=previous_lis,
    )


class ImpactScoreEngine:
    """Holds the latest sample per source and recomputes the LIS.

    Single writer: only the monitor's evaluation thread calls ingest()
    and refresh(). Readers on other threads use `state`, which is always
    a complete immutable snapshot.
    """

    def __init__(self, settings: ScoreSettings | None = None) -> None:
        self.settings = settings or ScoreSettings()
        self._samples: dict[SourceKind, Sample] = {}
        self._state = EngineState()

    @property
    def state(self) -> EngineState:
        return self._state

    def ingest(self, sample: Sample, now: datetime) -> EngineState:
        """Replace the sample for its kind and recompute.

        Args:
            sample: New sample from a fetcher
            now: Evaluation time

        Returns:
            The new EngineState snapshot
        """
        self._samples[sample.source_kind] = sample
        return self.refresh(now)

    def refresh(self, now: datetime) -> EngineState:
        """Recompute without new input, re-applying staleness."""
        previous = self._state.current_lis if self._state.computed_at is not None else None
        self._state = compute_state(self._samples, self.settings, now, previous)
        return self._state
