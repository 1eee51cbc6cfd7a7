"""Cadence Scheduler - Drives the fetchers on independent timers.

One daemon thread per source polls on that source's cadence, and a
calendar thread ticks at a fixed interval for the daily-report check.
All threads wait on a shared stop event, so shutdown interrupts sleeps
immediately while an in-flight fetch finishes or times out.

A failing source backs off on its own schedule and never delays the
others.
"""

import logging
import threading
from datetime import datetime
from typing import Callable

from spaceweather.clock import utc_now
from spaceweather.core.sample import Sample, SourceKind
from spaceweather.core.schedule import FetchErrorKind, FetchResult, ScheduleTask, record_fetch
from spaceweather.shell.swpc_client import SourceFetcher


logger = logging.getLogger(__name__)


DEFAULT_CALENDAR_INTERVAL = 30.0


class CadenceScheduler:
    """Polls each source on its cadence and forwards successful samples."""

    def __init__(
        self,
        fetchers: list[SourceFetcher],
        on_sample: Callable[[Sample], None],
        on_tick: Callable[[datetime], None] | None = None,
        on_result: Callable[[FetchResult], None] | None = None,
        stop_event: threading.Event | None = None,
        clock: Callable[[], datetime] = utc_now,
        calendar_interval: float = DEFAULT_CALENDAR_INTERVAL,
    ) -> None:
        """Initialize scheduler.

        Args:
            fetchers: One fetcher per source
            on_sample: Receives each successful sample exactly once
            on_tick: Receives calendar ticks (None disables the calendar thread)
            on_result: Observes every fetch result, for statistics
            stop_event: Shared shutdown signal (created if not provided)
            clock: Source of the current UTC time
            calendar_interval: Seconds between calendar ticks
        """
        self.fetchers = fetchers
        self.on_sample = on_sample
        self.on_tick = on_tick
        self.on_result = on_result
        self.stop_event = stop_event or threading.Event()
        self.clock = clock
        self.calendar_interval = calendar_interval
        self.tasks: dict[SourceKind, ScheduleTask] = {
            f.kind: ScheduleTask(kind=f.kind, cadence=f.cadence) for f in fetchers
        }
        self._threads: list[threading.Thread] = []

    def _log_failure(self, task: ScheduleTask, result: FetchResult) -> None:
        error = result.error
        logger.warning(
            "Fetch of %s failed (%s: %s); %d consecutive, next attempt at %s",
            task.kind.value,
            error.kind.value,
            error.message,
            task.consecutive_failures,
            task.next_due_at.isoformat(),
            extra={
                "source": task.kind.value,
                "error_kind": error.kind.value,
                "consecutive_failures": task.consecutive_failures,
            },
        )

        if error.kind == FetchErrorKind.MALFORMED:
            logger.warning(
                "Payload from %s did not match the expected shape; "
                "the upstream schema may have changed",
                task.kind.value,
                extra={"source": task.kind.value},
            )

    def poll_once(self, fetcher: SourceFetcher) -> FetchResult:
        """Run one fetch for a source and update its schedule.

        Never raises: an unexpected exception from the fetcher counts as
        a network failure.
        """
        try:
            result = fetcher.fetch()
        except Exception as e:
            logger.exception("Fetcher for %s raised unexpectedly", fetcher.kind.value)
            result = FetchResult.failed(fetcher.kind, FetchErrorKind.NETWORK, str(e))

        task = record_fetch(self.tasks[fetcher.kind], result, self.clock())

        if result.success:
            logger.debug("Fetched %s", task.kind.value)
            self.on_sample(result.sample)
        else:
            self._log_failure(task, result)

        if self.on_result is not None:
            self.on_result(result)

        return result

    def _run_source(self, fetcher: SourceFetcher) -> None:
        task = self.tasks[fetcher.kind]
        logger.info("Polling %s every %s", task.kind.value, task.cadence)

        while not self.stop_event.is_set():
            delay = task.seconds_until_due(self.clock())
            if delay > 0 and self.stop_event.wait(delay):
                break
            self.poll_once(fetcher)

        logger.info("Stopped polling %s", task.kind.value)

    def _run_calendar(self) -> None:
        while not self.stop_event.wait(self.calendar_interval):
            try:
                self.on_tick(self.clock())
            except Exception:
                logger.exception("Calendar tick handler failed")

    def start(self) -> None:
        """Start one thread per source plus the calendar thread."""
        for fetcher in self.fetchers:
            thread = threading.Thread(
                target=self._run_source,
                args=(fetcher,),
                name=f"poll-{fetcher.kind.value}",
                daemon=True,
            )
            self._threads.append(thread)

        if self.on_tick is not None:
            self._threads.append(threading.Thread(
                target=self._run_calendar,
                name="calendar",
                daemon=True,
            ))

        for thread in self._threads:
            thread.start()

    def stop(self) -> None:
        """Signal every thread to stop issuing new fetches."""
        self.stop_event.set()

    def join(self, timeout: float | None = None) -> bool:
        """Wait for the threads to exit.

        Returns:
            True if every thread exited within the timeout
        """
        for thread in self._threads:
            thread.join(timeout=timeout)
            if thread.is_alive():
                logger.warning("Thread %s did not stop within %ss", thread.name, timeout)
        return not any(t.is_alive() for t in self._threads)
