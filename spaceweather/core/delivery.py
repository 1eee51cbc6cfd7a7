"""Notification delivery results - Pure data structures.

Channel clients report failures as values, classified so the dispatcher
can decide whether another attempt is worthwhile.
"""

from dataclasses import dataclass, field
from enum import Enum

from spaceweather.core.alerts import AlertRecord


class DispatchErrorKind(str, Enum):
    CHANNEL_UNAVAILABLE = "channel_unavailable"
    REJECTED = "rejected"
    TIMEOUT = "timeout"

    @property
    def retryable(self) -> bool:
        return self != DispatchErrorKind.REJECTED


@dataclass(frozen=True)
class ChannelResult:
    """Final result of delivering one notification on one channel.

    Attributes:
        channel: Channel name ('email', 'sms')
        success: Whether any attempt succeeded
        attempts: Number of attempts made
        error: Last error message if all attempts failed
        error_kind: Classification of the last error
    """
    channel: str
    success: bool
    attempts: int
    error: str | None = None
    error_kind: DispatchErrorKind | None = None


@dataclass
class DispatchOutcome:
    """Result of dispatching one AlertRecord to every channel."""
    record: AlertRecord
    results: list[ChannelResult] = field(default_factory=list)

    @property
    def delivered(self) -> bool:
        """True if at least one channel delivered the notification."""
        return any(r.success for r in self.results)

    @property
    def failed_channels(self) -> list[str]:
        return [r.channel for r in self.results if not r.success]

    @property
    def summary(self) -> str:
        sent = [r.channel for r in self.results if r.success]
        return (
            f"{self.record.kind.value}: "
            f"sent via {', '.join(sent) or 'none'}"
            + (f", failed via {', '.join(self.failed_channels)}" if self.failed_channels else "")
        )
