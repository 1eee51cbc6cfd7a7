"""Orchestrator - Wires Functional Core and Imperative Shell.

This module coordinates the flow of data between the pure functional
core and the I/O-performing shell components:

    fetchers -> scheduler -> score engine -> alert state machine -> dispatcher

Scheduler threads only enqueue events. A single evaluation thread owns
the score engine and the alert state machine and applies events one at
a time, so every snapshot is computed from a consistent state. Alert
decisions go onto a second queue served by one dispatch thread, so a
slow mail server never stalls ingestion.
"""

import logging
import queue
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable

from spaceweather.clock import utc_now
from spaceweather.core.alerts import AlertRecord, AlertStateMachine
from spaceweather.core.config import Config
from spaceweather.core.delivery import DispatchOutcome
from spaceweather.core.formatter import ReportContext
from spaceweather.core.sample import Sample
from spaceweather.core.schedule import FetchResult
from spaceweather.core.score import EngineState, ImpactScoreEngine
from spaceweather.dispatcher import NotificationChannel, NotificationDispatcher, build_channels
from spaceweather.scheduler import CadenceScheduler
from spaceweather.shell.email_client import EmailClient
from spaceweather.shell.sms_client import SmsClient
from spaceweather.shell.swpc_client import SourceFetcher, SWPCClient, build_fetchers


logger = logging.getLogger(__name__)


# Slowest fetcher issues this many sequential requests per poll
REQUESTS_PER_FETCH = 2

# Slack on top of an in-flight fetch when joining at shutdown
SHUTDOWN_MARGIN_SEC = 5.0


@dataclass(frozen=True)
class SampleEvent:
    sample: Sample


@dataclass(frozen=True)
class CalendarTick:
    at: datetime


@dataclass(frozen=True)
class StartupCheck:
    at: datetime


@dataclass(frozen=True)
class PendingNotification:
    """An alert decision with the snapshot it was made on."""
    record: AlertRecord
    state: EngineState


@dataclass
class MonitorStats:
    """Running counters for observability.

    Attributes:
        fetches_ok: Successful fetches per source
        fetches_failed: Failed fetches per source
        warnings_suppressed: Warnings held back by cooldown
        notifications_sent: Decisions delivered on at least one channel
        notifications_failed: Decisions no channel delivered
    """
    fetches_ok: dict[str, int] = field(default_factory=dict)
    fetches_failed: dict[str, int] = field(default_factory=dict)
    warnings_suppressed: int = 0
    notifications_sent: int = 0
    notifications_failed: int = 0

    @property
    def summary(self) -> str:
        """Human-readable summary of the counters."""
        return (
            f"{sum(self.fetches_ok.values())} fetches ok, "
            f"{sum(self.fetches_failed.values())} failed, "
            f"{self.notifications_sent} notifications sent, "
            f"{self.notifications_failed} failed, "
            f"{self.warnings_suppressed} warnings suppressed"
        )


class Monitor:
    """Coordinates space weather monitoring and alerting.

    This class wires together:
    - SWPC fetchers, driven by the cadence scheduler
    - Impact score engine and alert state machine (core)
    - Notification dispatcher (email and SMS clients)
    """

    def __init__(
        self,
        config: Config,
        swpc_client: SWPCClient | None = None,
        email_client: EmailClient | None = None,
        sms_client: SmsClient | None = None,
        fetchers: list[SourceFetcher] | None = None,
        channels: list[NotificationChannel] | None = None,
        clock: Callable[[], datetime] = utc_now,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """Initialize monitor with configuration.

        Args:
            config: Application configuration
            swpc_client: SWPC client (created if not provided)
            email_client: Email client (created if not provided)
            sms_client: SMS client (created if not provided)
            fetchers: Source fetchers (built from config if not provided)
            channels: Notification channels (built from config if not provided)
            clock: Source of the current UTC time
            sleep: Sleep function for dispatch backoff
        """
        self.config = config
        self.clock = clock
        self.stop_event = threading.Event()
        self.stats = MonitorStats()
        self._stats_lock = threading.Lock()

        self.engine = ImpactScoreEngine(config.score_settings())
        self.state_machine = AlertStateMachine(config.alert_settings(), started_at=clock())

        if fetchers is None:
            client = swpc_client or SWPCClient(timeout=config.fetch_timeout_seconds)
            fetchers = build_fetchers(client, config.endpoints, clock)
        self.fetchers = fetchers

        if channels is None:
            channels = build_channels(config, email_client, sms_client)
        self.dispatcher = NotificationDispatcher(
            channels,
            context=ReportContext(
                tz_name=config.local_tz,
                lis_threshold=config.lis_threshold,
                short_bz_nt=config.short_bz_nt,
                short_spd_kms=config.short_spd_kms,
                alert_max_age=config.score_settings().alert_max_age,
            ),
            max_attempts=config.dispatch_max_attempts,
            backoff_seconds=config.dispatch_backoff_seconds,
            sleep=sleep,
        )

        self.scheduler = CadenceScheduler(
            self.fetchers,
            on_sample=self.submit_sample,
            on_tick=self.submit_tick,
            on_result=self._record_fetch_result,
            stop_event=self.stop_event,
            clock=clock,
            calendar_interval=config.calendar_interval_seconds,
        )

        self._events: queue.Queue = queue.Queue()
        self._notifications: queue.Queue = queue.Queue()
        self._threads: list[threading.Thread] = []

    @property
    def state(self) -> EngineState:
        """Latest engine snapshot (safe to read from any thread)."""
        return self.engine.state

    def submit_sample(self, sample: Sample) -> None:
        """Queue a sample for the evaluation thread."""
        self._events.put(SampleEvent(sample))

    def submit_tick(self, at: datetime) -> None:
        """Queue a calendar tick for the evaluation thread."""
        self._events.put(CalendarTick(at))

    def _record_fetch_result(self, result: FetchResult) -> None:
        key = result.source_kind.value
        with self._stats_lock:
            counts = self.stats.fetches_ok if result.success else self.stats.fetches_failed
            counts[key] = counts.get(key, 0) + 1

    def process_event(self, event: SampleEvent | CalendarTick | StartupCheck) -> list[PendingNotification]:
        """Apply one event to the engine and state machine.

        This is the single-writer step; only one thread may call it.

        Args:
            event: Sample, calendar tick or startup check

        Returns:
            Notifications to dispatch, in order
        """
        now = self.clock()

        if isinstance(event, SampleEvent):
            state = self.engine.ingest(event.sample, now)
            logger.debug(
                "Ingested %s: LIS %d%s",
                event.sample.source_kind.value,
                state.current_lis,
                " (short fuse)" if state.short_fuse_active else "",
            )
        else:
            state = self.engine.refresh(now)

        decisions: list[AlertRecord | None] = [self.state_machine.check_startup(state, now)]
        if isinstance(event, CalendarTick):
            decisions.append(self.state_machine.check_daily_report(state, now))
        decisions.append(self.state_machine.evaluate(state))

        with self._stats_lock:
            self.stats.warnings_suppressed = self.state_machine.suppressed

        return [PendingNotification(record, state) for record in decisions if record is not None]

    def deliver(self, pending: PendingNotification) -> DispatchOutcome:
        """Dispatch one notification and count the outcome."""
        outcome = self.dispatcher.dispatch(pending.record, pending.state)

        with self._stats_lock:
            if outcome.delivered:
                self.stats.notifications_sent += 1
            else:
                self.stats.notifications_failed += 1

        logger.info("Dispatch result: %s", outcome.summary)
        return outcome

    def _run_events(self) -> None:
        while True:
            event = self._events.get()
            if event is None:
                break
            try:
                pending = self.process_event(event)
            except Exception:
                logger.exception("Failed to process %s", type(event).__name__)
                continue
            for item in pending:
                self._notifications.put(item)

    def _run_notifications(self) -> None:
        while True:
            item = self._notifications.get()
            if item is None:
                break
            try:
                self.deliver(item)
            except Exception:
                logger.exception("Failed to dispatch %s notification", item.record.kind.value)

    def start(self) -> None:
        """Start the evaluation, dispatch and polling threads.

        The startup baseline is queued before any fetch is issued.
        """
        logger.info(
            "Starting monitor: channels %s, sensitivity %.2f",
            ", ".join(self.config.enabled_channels) or "none",
            self.config.sensitivity,
        )

        self._threads = [
            threading.Thread(target=self._run_events, name="evaluate", daemon=True),
            threading.Thread(target=self._run_notifications, name="dispatch", daemon=True),
        ]
        for thread in self._threads:
            thread.start()

        self._events.put(StartupCheck(self.clock()))
        self.scheduler.start()

    @property
    def shutdown_timeout(self) -> float:
        """Join timeout long enough for an in-flight fetch to finish."""
        return REQUESTS_PER_FETCH * self.config.fetch_timeout_seconds + SHUTDOWN_MARGIN_SEC

    def stop(self, timeout: float | None = None) -> None:
        """Stop polling, then drain queued events and notifications.

        Args:
            timeout: Per-stage join timeout; defaults to shutdown_timeout
        """
        logger.info("Stopping monitor")
        if timeout is None:
            timeout = self.shutdown_timeout

        self.scheduler.stop()
        self.scheduler.join(timeout=timeout)

        self._events.put(None)
        self._join_threads(self._threads[:1], timeout)

        self._notifications.put(None)
        self._join_threads(self._threads[1:], timeout)

        logger.info("Monitor stopped: %s", self.stats.summary)

    @staticmethod
    def _join_threads(threads: list[threading.Thread], timeout: float) -> None:
        for thread in threads:
            thread.join(timeout=timeout)
            if thread.is_alive():
                logger.warning("Thread %s did not stop within %ss", thread.name, timeout)

    def run_forever(self) -> None:
        """Run until the stop event is set, then shut down cleanly."""
        self.start()
        try:
            while not self.stop_event.wait(1.0):
                pass
        finally:
            self.stop()
