"""Fetch outcomes and polling schedule arithmetic - Pure logic.

The scheduler threads in the shell own the clock and the sleeping; this
module decides what happens to a source's schedule after each fetch.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum

from spaceweather.core.sample import Sample, SourceKind


# Failure backoff never exceeds this many base cadences
MAX_BACKOFF_FACTOR = 10


class FetchErrorKind(str, Enum):
    NETWORK = "network"      # connectivity or timeout
    PROTOCOL = "protocol"    # unexpected HTTP status
    MALFORMED = "malformed"  # payload does not parse into the expected shape


@dataclass(frozen=True)
class FetchError:
    kind: FetchErrorKind
    message: str


@dataclass(frozen=True)
class FetchResult:
    """Outcome of one fetch attempt.

    Attributes:
        source_kind: Source that was fetched
        sample: Parsed sample if successful
        error: What went wrong if not
    """
    source_kind: SourceKind
    sample: Sample | None = None
    error: FetchError | None = None

    @property
    def success(self) -> bool:
        return self.sample is not None and self.error is None

    @classmethod
    def ok(cls, sample: Sample) -> "FetchResult":
        return cls(source_kind=sample.source_kind, sample=sample)

    @classmethod
    def failed(cls, source_kind: SourceKind, kind: FetchErrorKind, message: str) -> "FetchResult":
        return cls(source_kind=source_kind, error=FetchError(kind=kind, message=message))


@dataclass
class ScheduleTask:
    """Polling state for one source. Mutated only by the scheduler.

    Attributes:
        kind: Source this task polls
        cadence: Fixed interval between successful fetches
        next_due_at: Earliest time of the next attempt (None = due now)
        consecutive_failures: Failures since the last success
        last_success_at: Time of the last successful fetch
        last_error: Most recent fetch error
    """
    kind: SourceKind
    cadence: timedelta
    next_due_at: datetime | None = None
    consecutive_failures: int = 0
    last_success_at: datetime | None = None
    last_error: FetchError | None = None

    def is_due(self, now: datetime) -> bool:
        return self.next_due_at is None or now >= self.next_due_at

    def seconds_until_due(self, now: datetime) -> float:
        if self.next_due_at is None:
            return 0.0
        return max(0.0, (self.next_due_at - now).total_seconds())


def backoff_delay(
    cadence: timedelta,
    consecutive_failures: int,
    max_factor: int = MAX_BACKOFF_FACTOR,
) -> timedelta:
    """Delay before the next attempt after `consecutive_failures` failures.

    Pure function. The first failure retries on the normal cadence, each
    further failure doubles the delay, capped at max_factor cadences.
    """
    if consecutive_failures <= 0:
        return cadence
    factor = min(2 ** (consecutive_failures - 1), max_factor)
    return cadence * factor


def record_fetch(task: ScheduleTask, result: FetchResult, now: datetime) -> ScheduleTask:
    """Update a task after a fetch attempt and return it.

    Success resets the failure count and schedules the next fetch one
    cadence out; failure increments it and applies backoff.
    """
    if result.success:
        task.consecutive_failures = 0
        task.last_success_at = now
        task.last_error = None
        task.next_due_at = now + task.cadence
    else:
        task.consecutive_failures += 1
        task.last_error = result.error
        task.next_due_at = now + backoff_delay(task.cadence, task.consecutive_failures)
    return task
