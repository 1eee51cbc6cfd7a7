"""Functional Core - Pure functions with no side effects.

This module contains all business logic as pure functions:
- Telemetry sample models and SWPC payload parsing
- Local Impact Score computation
- Alert decisions (startup, daily report, warnings with cooldown)
- Polling backoff arithmetic
- Message formatting

All functions here are deterministic and have no I/O.
"""

from spaceweather.core.sample import SourceKind, Sample, SolarWindSample, AlertFeedSample, KpForecastSample
from spaceweather.core.parsing import PayloadError, parse_solar_wind, parse_alert_feed, parse_kp_forecast
from spaceweather.core.score import EngineState, ImpactScoreEngine, ScoreSettings
from spaceweather.core.alerts import AlertKind, AlertRecord, AlertStateMachine, Trigger
from spaceweather.core.schedule import FetchErrorKind, FetchResult, ScheduleTask
from spaceweather.core.formatter import render_message

__all__ = [
    # Samples
    "SourceKind",
    "Sample",
    "SolarWindSample",
    "AlertFeedSample",
    "KpForecastSample",
    # Parsing
    "PayloadError",
    "parse_solar_wind",
    "parse_alert_feed",
    "parse_kp_forecast",
    # Score
    "EngineState",
    "ImpactScoreEngine",
    "ScoreSettings",
    # Alerts
    "AlertKind",
    "AlertRecord",
    "AlertStateMachine",
    "Trigger",
    # Schedule
    "FetchErrorKind",
    "FetchResult",
    "ScheduleTask",
    # Formatter
    "render_message",
]
