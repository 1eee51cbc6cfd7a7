"""Message formatting - Pure functions.

This module renders alert decisions and engine snapshots into
notification text. All functions are pure with no side effects.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta

import pytz

from spaceweather.core.alerts import AlertKind, AlertRecord, Trigger
from spaceweather.core.sample import SourceKind
from spaceweather.core.score import DEFAULT_ALERT_MAX_AGE, EngineState, most_severe_active


# Twilio concatenates up to 1600 characters
SMS_MAX_LENGTH = 1600

TREND_ARROWS = {
    "rising": "↑",
    "falling": "↓",
    "steady": "→",
}

SOURCE_LABELS = {
    SourceKind.REALTIME_SOLAR_WIND: "L1 solar wind",
    SourceKind.ALERT_FEED: "SWPC alerts",
    SourceKind.KP_FORECAST: "Kp forecast",
}


@dataclass(frozen=True)
class ReportContext:
    """Settings the report text refers to.

    Attributes:
        tz_name: Timezone used for timestamps
        lis_threshold: Warning threshold shown in the guidance
        short_bz_nt: Short-fuse Bz threshold shown in the guidance
        short_spd_kms: Short-fuse speed threshold shown in the guidance
        alert_max_age: Lifetime of notices without a validity line
    """
    tz_name: str = "America/New_York"
    lis_threshold: int = 40
    short_bz_nt: float = -10.0
    short_spd_kms: float = 600.0
    alert_max_age: timedelta = DEFAULT_ALERT_MAX_AGE


@dataclass(frozen=True)
class RenderedMessage:
    """A notification ready for any channel."""
    subject: str
    body: str
    sms_text: str


def format_local_time(moment: datetime, tz_name: str, fmt: str = "%Y-%m-%d %H:%M %Z") -> str:
    """Format a UTC datetime in the local timezone. Pure function."""
    return moment.astimezone(pytz.timezone(tz_name)).strftime(fmt)


# Local hours treated as daylight, [start, end)
DAYLIGHT_START_HOUR = 7
DAYLIGHT_END_HOUR = 19


def is_daylight_local(moment: datetime, tz_name: str) -> bool:
    """Check if a UTC datetime falls within local daylight hours. Pure function."""
    hour = moment.astimezone(pytz.timezone(tz_name)).hour
    return DAYLIGHT_START_HOUR <= hour < DAYLIGHT_END_HOUR


def format_reading(value: float | None, unit: str, precision: int = 1) -> str:
    """Format an optional reading, 'n/a' when missing."""
    if value is None:
        return "n/a"
    return f"{value:.{precision}f} {unit}"


def format_subject(record: AlertRecord, state: EngineState, ctx: ReportContext) -> str:
    """Build the notification subject line.

    Pure function.
    """
    lis_part = f"{state.level} (LIS {state.current_lis})"

    if record.kind == AlertKind.STARTUP:
        return f"Space Weather Startup Baseline: {lis_part}"
    if record.kind == AlertKind.DAILY_REPORT:
        day = format_local_time(record.created_at, ctx.tz_name, "%Y-%m-%d")
        return f"Daily Space Weather Outlook - {day}: {lis_part}"
    if record.triggered_by == Trigger.SHORT_FUSE:
        return f"Space Weather SHORT-FUSE Warning: {lis_part}"
    return f"Space Weather Warning: {lis_part}"


def format_trend(state: EngineState) -> str:
    """Describe the LIS trend, e.g. 'rising ↑ (was 31)'."""
    arrow = TREND_ARROWS[state.trend]
    if state.previous_lis is None:
        return f"{state.trend} {arrow}"
    return f"{state.trend} {arrow} (was {state.previous_lis})"


def format_alert_status(state: EngineState, ctx: ReportContext) -> str:
    """Summarize the alert feed: worst active severity and G/R/S levels."""
    feed = state.alert_feed
    if feed is None:
        return "no data"

    now = state.computed_at or feed.fetched_at
    severity = most_severe_active(feed, now, ctx.alert_max_age)
    g, r, s = feed.max_scales(now, ctx.alert_max_age)
    active = len(feed.active_notices(now, ctx.alert_max_age))

    return f"{severity.name.title()} ({active} active) - G:{g}  R:{r}  S:{s}"


def format_email_body(record: AlertRecord, state: EngineState, ctx: ReportContext) -> str:
    """Render the full plain-text report.

    Pure function.

    Args:
        record: The alert decision being sent
        state: Engine snapshot at decision time
        ctx: Report settings

    Returns:
        Multi-line report text
    """
    wind = state.solar_wind
    kp = state.kp_forecast
    lines = [
        f"Space Weather Status - {format_local_time(record.created_at, ctx.tz_name)}",
        "",
        f"Local Impact Score: {state.current_lis} ({state.level}), {format_trend(state)}",
    ]

    if record.kind == AlertKind.WARNING:
        if record.triggered_by == Trigger.SHORT_FUSE:
            lines.append("SHORT-FUSE: strong southward Bz with fast solar wind at L1 (~15-60 min lead).")
        else:
            lines.append(f"LIS has reached the warning threshold of {ctx.lis_threshold}.")

    lines.extend([
        "",
        "Inputs:",
        f"  • Kp (max next 24h): {f'{kp.kp_max:.1f}' if kp else 'n/a'}",
        f"  • L1 Bz: {format_reading(wind.bz_nt if wind else None, 'nT')}",
        f"  • L1 Speed: {format_reading(wind.speed_kms if wind else None, 'km/s', 0)}",
        f"  • Alerts: {format_alert_status(state, ctx)}",
        f"  • Short-fuse: {'ACTIVE' if state.short_fuse_active else 'inactive'}",
        f"  • Daylight now: {'yes' if is_daylight_local(record.created_at, ctx.tz_name) else 'no'}",
        "",
        "Components:",
        f"  • Kp {state.components.kp:.0f}  Alerts {state.components.alert:.0f}  Wind {state.components.wind:.0f}",
    ])

    missing = [SOURCE_LABELS[k] for k in SourceKind if k not in state.samples]
    stale = [SOURCE_LABELS[k] for k in SourceKind if k in state.stale_sources]
    if missing:
        lines.append(f"  • Awaiting data: {', '.join(missing)}")
    if stale:
        lines.append(f"  • Stale (excluded): {', '.join(stale)}")

    lines.extend([
        "",
        "Guidance:",
        f"  • LIS ≥ {ctx.lis_threshold} triggers warnings (configurable).",
        f"  • Short-fuse trigger: Bz ≤ {ctx.short_bz_nt:g} nT & Speed ≥ {ctx.short_spd_kms:g} km/s (≈15–60 min lead).",
    ])

    return "\n".join(lines) + "\n"


def format_sms_text(record: AlertRecord, state: EngineState, ctx: ReportContext) -> str:
    """Render a compact SMS. Pure function."""
    wind = state.solar_wind
    parts = [
        format_subject(record, state, ctx),
        f"Trend: {format_trend(state)}",
    ]
    if wind is not None:
        parts.append(
            f"Bz {format_reading(wind.bz_nt, 'nT')}, "
            f"speed {format_reading(wind.speed_kms, 'km/s', 0)}"
        )
    if state.kp_forecast is not None:
        parts.append(f"Kp max 24h {state.kp_forecast.kp_max:.1f}")
    parts.append(format_local_time(record.created_at, ctx.tz_name))

    text = "\n".join(parts)
    return text[:SMS_MAX_LENGTH]


def render_message(record: AlertRecord, state: EngineState, ctx: ReportContext) -> RenderedMessage:
    """Render subject, email body and SMS text for a decision."""
    return RenderedMessage(
        subject=format_subject(record, state, ctx),
        body=format_email_body(record, state, ctx),
        sms_text=format_sms_text(record, state, ctx),
    )
