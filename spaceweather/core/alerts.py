"""Alert state machine - Notification decisions without I/O.

Three notification kinds are decided independently:

- STARTUP: once per process, as a baseline report.
- DAILY_REPORT: once per local calendar day when the wall clock crosses
  the configured report hour.
- WARNING: on every engine update, when the LIS reaches the threshold or
  the short fuse trips. A sent warning opens a cooldown window during
  which further warnings are suppressed, except that a short-fuse warning
  always gets through a window opened by a threshold-only warning.

The machine only returns AlertRecords; dispatching them is the caller's
job.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from enum import Enum

import pytz

from spaceweather.core.score import EngineState


logger = logging.getLogger(__name__)


class AlertKind(str, Enum):
    STARTUP = "startup"
    DAILY_REPORT = "daily_report"
    WARNING = "warning"


class Trigger(str, Enum):
    THRESHOLD_CROSSING = "threshold_crossing"
    SHORT_FUSE = "short_fuse"
    SCHEDULED = "scheduled"


@dataclass(frozen=True)
class AlertRecord:
    """One notification decision.

    Attributes:
        kind: What kind of notification to send
        score_at_decision: LIS when the decision was made
        triggered_by: What caused the decision
        created_at: Decision time (UTC)
    """
    kind: AlertKind
    score_at_decision: int
    triggered_by: Trigger
    created_at: datetime


@dataclass
class CooldownWindow:
    """Suppression state for one notification kind.

    Lives for the process lifetime; a restart starts from scratch.
    """
    last_sent_at: datetime | None = None
    last_score_sent: int | None = None
    last_trigger: Trigger | None = None

    def is_cooling(self, now: datetime, window: timedelta) -> bool:
        return self.last_sent_at is not None and now < self.last_sent_at + window

    def record(self, record: AlertRecord) -> None:
        self.last_sent_at = record.created_at
        self.last_score_sent = record.score_at_decision
        self.last_trigger = record.triggered_by

    def reset(self) -> None:
        self.last_sent_at = None
        self.last_trigger = None


@dataclass(frozen=True)
class AlertSettings:
    """Alert policy configuration.

    Attributes:
        lis_threshold: LIS at or above which a warning triggers
        rearm_margin: LIS must fall below threshold - margin to end a cooling episode early
        cooldown: Minimum spacing between warnings of the same tier
        daily_report_hour: Local hour for the daily report
        local_tz: IANA timezone name for the daily report
        startup_grace: How long the startup report may wait for all sources
    """
    lis_threshold: int = 40
    rearm_margin: int = 10
    cooldown: timedelta = timedelta(minutes=15)
    daily_report_hour: int = 7
    local_tz: str = "America/New_York"
    startup_grace: timedelta = timedelta(0)


def warning_trigger(state: EngineState, lis_threshold: int) -> Trigger | None:
    """Determine what, if anything, triggers a warning for this snapshot.

    Pure function. The short fuse takes precedence over the threshold.
    """
    if state.short_fuse_active:
        return Trigger.SHORT_FUSE
    if state.current_lis >= lis_threshold:
        return Trigger.THRESHOLD_CROSSING
    return None


def should_send_warning(
    trigger: Trigger | None,
    window: CooldownWindow,
    now: datetime,
    cooldown: timedelta,
) -> bool:
    """Apply the cooldown policy to a trigger.

    Pure function. While cooling, only a short-fuse trigger following a
    threshold-only warning is let through.
    """
    if trigger is None:
        return False
    if not window.is_cooling(now, cooldown):
        return True
    return trigger == Trigger.SHORT_FUSE and window.last_trigger != Trigger.SHORT_FUSE


def is_rearmed(state: EngineState, settings: AlertSettings) -> bool:
    """Check if conditions have cleared enough to end a cooling episode."""
    return (
        not state.short_fuse_active
        and state.current_lis < settings.lis_threshold - settings.rearm_margin
    )


def daily_report_due(
    previous_check: datetime,
    now: datetime,
    hour: int,
    tz: pytz.BaseTzInfo,
    last_report_date: date | None,
) -> date | None:
    """Find the local date whose report hour was crossed since the last check.

    Pure function.

    Args:
        previous_check: Time of the previous calendar check
        now: Current time
        hour: Local report hour
        tz: Local timezone
        last_report_date: Local date of the last report sent

    Returns:
        The local date to report for, or None if nothing is due
    """
    today = now.astimezone(tz).date()
    if last_report_date == today:
        return None

    target = tz.localize(datetime.combine(today, time(hour=hour)))
    if previous_check < target <= now:
        return today
    return None


class AlertStateMachine:
    """Decides when to notify, one independent state per kind.

    Not thread-safe: the monitor drives it from its single evaluation
    thread.
    """

    def __init__(self, settings: AlertSettings, started_at: datetime) -> None:
        """Initialize the state machine.

        Args:
            settings: Alert policy
            started_at: Process start time; the daily check counts from here
        """
        self.settings = settings
        self.started_at = started_at
        self.tz = pytz.timezone(settings.local_tz)
        self.cooldowns: dict[AlertKind, CooldownWindow] = {
            kind: CooldownWindow() for kind in AlertKind
        }
        self.latest: dict[AlertKind, AlertRecord] = {}
        self.suppressed = 0
        self._startup_sent = False
        self._last_calendar_check = started_at
        self._last_report_date: date | None = None

    def warning_phase(self, now: datetime) -> str:
        """'cooling' while a warning window is open at `now`, else 'idle'."""
        window = self.cooldowns[AlertKind.WARNING]
        return "cooling" if window.is_cooling(now, self.settings.cooldown) else "idle"

    def _emit(self, kind: AlertKind, state: EngineState, trigger: Trigger, now: datetime) -> AlertRecord:
        record = AlertRecord(
            kind=kind,
            score_at_decision=state.current_lis,
            triggered_by=trigger,
            created_at=now,
        )
        self.cooldowns[kind].record(record)
        self.latest[kind] = record
        logger.info(
            "Alert decision: %s (LIS %d, %s)",
            kind.value,
            record.score_at_decision,
            trigger.value,
        )
        return record

    def check_startup(self, state: EngineState, now: datetime) -> AlertRecord | None:
        """Return the startup baseline record, exactly once per instance.

        Fires as soon as every source has reported or the grace period
        has elapsed, whichever comes first.
        """
        if self._startup_sent:
            return None
        if not state.has_all_sources and now - self.started_at < self.settings.startup_grace:
            return None

        self._startup_sent = True
        return self._emit(AlertKind.STARTUP, state, Trigger.SCHEDULED, now)

    def check_daily_report(self, state: EngineState, now: datetime) -> AlertRecord | None:
        """Return a daily report record if the report hour was just crossed."""
        previous = self._last_calendar_check
        self._last_calendar_check = max(previous, now)

        due = daily_report_due(
            previous,
            now,
            self.settings.daily_report_hour,
            self.tz,
            self._last_report_date,
        )
        if due is None:
            return None

        self._last_report_date = due
        return self._emit(AlertKind.DAILY_REPORT, state, Trigger.SCHEDULED, now)

    def evaluate(self, state: EngineState) -> AlertRecord | None:
        """Evaluate a new engine snapshot for a warning.

        Args:
            state: Snapshot produced by the score engine

        Returns:
            A WARNING record if one should be sent, else None
        """
        now = state.computed_at
        if now is None:
            return None

        window = self.cooldowns[AlertKind.WARNING]
        trigger = warning_trigger(state, self.settings.lis_threshold)

        if trigger is None:
            if window.is_cooling(now, self.settings.cooldown) and is_rearmed(state, self.settings):
                logger.info("Warning conditions cleared (LIS %d), re-armed", state.current_lis)
                window.reset()
            return None

        if not should_send_warning(trigger, window, now, self.settings.cooldown):
            self.suppressed += 1
            logger.debug(
                "Warning suppressed by cooldown (LIS %d, %s)",
                state.current_lis,
                trigger.value,
            )
            return None

        return self._emit(AlertKind.WARNING, state, trigger, now)
