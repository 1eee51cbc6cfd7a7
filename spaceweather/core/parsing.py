"""SWPC payload parsing - Pure functions.

Turns the raw JSON returned by the NOAA SWPC products into typed Samples.
Every function here is deterministic and performs no I/O. A payload that
does not have the expected shape raises PayloadError, which the shell
reports as a Malformed fetch.
"""

import math
import re
from datetime import datetime, timedelta, timezone
from typing import Any

from spaceweather.core.sample import (
    AlertFeedSample,
    AlertNotice,
    AlertSeverity,
    KpForecastSample,
    SolarWindSample,
    SourceKind,
)


# Kp forecast rows are 3-hour blocks
KP_BLOCK = timedelta(hours=3)

KP_FORECAST_HORIZON = timedelta(hours=24)

_TIME_FORMATS = (
    "%Y-%m-%d %H:%M:%S.%f",
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%d %H:%M",
)

_SCALE_PATTERNS = {
    "g": re.compile(r"\bG([1-5])\b"),
    "r": re.compile(r"\bR([1-5])\b"),
    "s": re.compile(r"\bS([1-5])\b"),
}

_HEADING_RE = re.compile(
    r"^\s*(CANCEL\w*|EXTENDED WARNING|WARNING|ALERT|WATCH|SUMMARY)\b",
    re.MULTILINE,
)

_VALIDITY_RE = re.compile(
    r"(?:NOW VALID UNTIL|VALID UNTIL|VALID TO|EXTENDED TO):\s*"
    r"(\d{4}\s+[A-Z]{3}\s+\d{1,2}\s+\d{4})\s*UTC"
)

_WARNING_HEADINGS = {"WARNING", "EXTENDED WARNING", "ALERT"}


class PayloadError(ValueError):
    """Raised when an SWPC payload does not match the expected shape."""


def parse_time_tag(value: Any) -> datetime:
    """Parse an SWPC time tag into a UTC datetime.

    Accepts 'YYYY-MM-DD HH:MM:SS[.fff]' with either a space or 'T'
    separator and an optional trailing 'Z'.

    Raises:
        PayloadError: If the value is not a recognizable timestamp
    """
    if not isinstance(value, str):
        raise PayloadError(f"Time tag must be a string, got {value!r}")

    text = value.strip().replace("T", " ").rstrip("Z")
    for fmt in _TIME_FORMATS:
        try:
            return datetime.strptime(text, fmt).replace(tzinfo=timezone.utc)
        except ValueError:
            continue

    raise PayloadError(f"Unrecognized time tag: {value!r}")


def _to_float(value: Any) -> float | None:
    """Coerce a JSON number or numeric string, None if not numeric."""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number):
        return None
    return number


def _iter_records(payload: Any, source: str) -> list[dict[str, Any]]:
    """Normalize an SWPC table into a list of dicts.

    SWPC serves both arrays of objects and arrays of arrays whose first
    row is a header.
    """
    if not isinstance(payload, list):
        raise PayloadError(
            f"{source}: expected a JSON array, got {type(payload).__name__}"
        )
    if not payload:
        return []

    first = payload[0]
    if isinstance(first, list):
        header = [str(h) for h in first]
        return [dict(zip(header, row)) for row in payload[1:] if isinstance(row, list)]

    return [row for row in payload if isinstance(row, dict)]


def _latest_value(
    records: list[dict[str, Any]],
    keys: tuple[str, ...],
) -> tuple[datetime, float] | None:
    """Find the newest record holding a numeric value under any of `keys`."""
    best: tuple[datetime, float] | None = None

    for record in records:
        # Inactive spacecraft rows are published alongside the active one
        if record.get("active") is False:
            continue

        value = None
        for key in keys:
            value = _to_float(record.get(key))
            if value is not None:
                break
        if value is None:
            continue

        try:
            tag = parse_time_tag(record.get("time_tag"))
        except PayloadError:
            continue

        if best is None or tag > best[0]:
            best = (tag, value)

    return best


def parse_solar_wind(
    mag_payload: Any,
    speed_payload: Any,
    fetched_at: datetime,
) -> SolarWindSample:
    """Parse the RTSW magnetometer and plasma payloads into one sample.

    Pure function.

    Args:
        mag_payload: Decoded rtsw_mag_1m JSON
        speed_payload: Decoded rtsw speed/wind JSON
        fetched_at: Local fetch time

    Returns:
        SolarWindSample with the newest Bz and speed

    Raises:
        PayloadError: If neither payload yields a usable value
    """
    bz = _latest_value(_iter_records(mag_payload, "magnetometer"), ("bz_gsm",))
    speed = _latest_value(
        _iter_records(speed_payload, "plasma"),
        ("speed", "proton_speed"),
    )

    if bz is None and speed is None:
        raise PayloadError("Solar wind payloads contain no usable Bz or speed values")

    observed_at = max(reading[0] for reading in (bz, speed) if reading is not None)

    return SolarWindSample(
        source_kind=SourceKind.REALTIME_SOLAR_WIND,
        observed_at=observed_at,
        fetched_at=fetched_at,
        bz_nt=bz[1] if bz else None,
        speed_kms=speed[1] if speed else None,
    )


def parse_kp_forecast(
    payload: Any,
    fetched_at: datetime,
    horizon: timedelta = KP_FORECAST_HORIZON,
) -> KpForecastSample:
    """Reduce the planetary Kp forecast table to its near-term maximum.

    Pure function.

    The maximum is taken over the 3-hour blocks overlapping
    [fetched_at, fetched_at + horizon]. If no block overlaps (a stale
    table), the newest block's Kp is used.

    Raises:
        PayloadError: If the table has no parseable rows
    """
    rows: list[tuple[datetime, float]] = []
    for record in _iter_records(payload, "kp forecast"):
        kp = _to_float(record.get("kp"))
        if kp is None:
            continue
        try:
            tag = parse_time_tag(record.get("time_tag"))
        except PayloadError:
            continue
        rows.append((tag, min(max(kp, 0.0), 9.0)))

    if not rows:
        raise PayloadError("Kp forecast contains no parseable rows")

    end = fetched_at + horizon
    window = [kp for tag, kp in rows if tag + KP_BLOCK > fetched_at and tag <= end]
    if window:
        kp_max = max(window)
    else:
        kp_max = max(rows, key=lambda r: r[0])[1]

    past = [tag for tag, _ in rows if tag <= fetched_at]
    observed_at = max(past) if past else fetched_at

    return KpForecastSample(
        source_kind=SourceKind.KP_FORECAST,
        observed_at=observed_at,
        fetched_at=fetched_at,
        kp_max=kp_max,
    )


def extract_scales(message: str) -> tuple[int, int, int]:
    """Extract the highest NOAA G, R and S scale levels mentioned.

    Pure function.
    """
    text = message.upper()
    levels = []
    for key in ("g", "r", "s"):
        found = [int(m) for m in _SCALE_PATTERNS[key].findall(text)]
        levels.append(max(found, default=0))
    return levels[0], levels[1], levels[2]


def classify_severity(message: str) -> AlertSeverity:
    """Classify an alert-feed message into a severity tier.

    Pure function.

    Warning-class products (WARNING, EXTENDED WARNING, ALERT) mentioning
    a G4/G5, R4/R5 or S4/S5 level are EXTREME. Watches stay WATCH even
    when they predict high levels. Summaries and cancellations are NONE.
    """
    text = message.upper()
    match = _HEADING_RE.search(text)
    if match is None:
        return AlertSeverity.NONE

    heading = match.group(1)
    if heading in _WARNING_HEADINGS:
        if max(extract_scales(text)) >= 4:
            return AlertSeverity.EXTREME
        return AlertSeverity.WARNING
    if heading == "WATCH":
        return AlertSeverity.WATCH

    return AlertSeverity.NONE


def parse_validity(message: str) -> datetime | None:
    """Read the end of validity from an alert message, if stated."""
    match = _VALIDITY_RE.search(message.upper())
    if match is None:
        return None

    text = " ".join(match.group(1).split())
    try:
        return datetime.strptime(text, "%Y %b %d %H%M").replace(tzinfo=timezone.utc)
    except ValueError:
        return None


def parse_alert_notice(item: dict[str, Any]) -> AlertNotice | None:
    """Parse one alerts.json entry, None if it lacks required fields.

    Pure function.
    """
    message = item.get("message")
    if not isinstance(message, str):
        return None

    try:
        issued_at = parse_time_tag(item.get("issue_datetime"))
    except PayloadError:
        return None

    g, r, s = extract_scales(message)

    return AlertNotice(
        product_id=str(item.get("product_id", "")),
        severity=classify_severity(message),
        issued_at=issued_at,
        valid_until=parse_validity(message),
        g_scale=g,
        r_scale=r,
        s_scale=s,
    )


def parse_alert_feed(payload: Any, fetched_at: datetime) -> AlertFeedSample:
    """Parse the SWPC alerts feed.

    Pure function. An empty feed is valid and means no notices.

    Raises:
        PayloadError: If the payload is not an array of objects
    """
    if not isinstance(payload, list):
        raise PayloadError(
            f"alert feed: expected a JSON array, got {type(payload).__name__}"
        )

    items = [item for item in payload if isinstance(item, dict)]
    if payload and not items:
        raise PayloadError("alert feed: array contains no objects")

    notices = []
    for item in items:
        notice = parse_alert_notice(item)
        if notice is not None:
            notices.append(notice)

    notices.sort(key=lambda n: n.issued_at, reverse=True)
    observed_at = notices[0].issued_at if notices else fetched_at

    return AlertFeedSample(
        source_kind=SourceKind.ALERT_FEED,
        observed_at=observed_at,
        fetched_at=fetched_at,
        notices=tuple(notices),
    )
