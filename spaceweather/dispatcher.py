"""Notification Dispatcher - Renders decisions and sends them with retry.

Each configured channel is attempted independently: a failure on SMS
never prevents the email attempt and vice versa. Transient failures are
retried a bounded number of times. Failures are reported in the
dispatch outcome and never raised.
"""

import logging
import time
from typing import Callable, Protocol

from spaceweather.core.alerts import AlertRecord
from spaceweather.core.config import Config, EmailSettings, SmsSettings
from spaceweather.core.delivery import ChannelResult, DispatchErrorKind, DispatchOutcome
from spaceweather.core.formatter import RenderedMessage, ReportContext, render_message
from spaceweather.core.score import EngineState
from spaceweather.shell.email_client import EmailClient
from spaceweather.shell.sms_client import SmsClient


logger = logging.getLogger(__name__)


class SendResponse(Protocol):
    """What channel clients return."""

    success: bool
    error: str | None
    error_kind: DispatchErrorKind | None


class NotificationChannel(Protocol):
    """A destination for rendered notifications."""

    name: str

    def send(self, message: RenderedMessage) -> SendResponse:
        ...


class EmailChannel:
    """Delivers the full report by email."""

    name = "email"

    def __init__(self, settings: EmailSettings, client: EmailClient | None = None) -> None:
        self.settings = settings
        self.client = client or EmailClient()

    def send(self, message: RenderedMessage) -> SendResponse:
        return self.client.send_message(message.subject, message.body, self.settings)


class SmsChannel:
    """Delivers the compact text by SMS."""

    name = "sms"

    def __init__(self, settings: SmsSettings, client: SmsClient | None = None) -> None:
        self.settings = settings
        self.client = client or SmsClient()

    def send(self, message: RenderedMessage) -> SendResponse:
        return self.client.send_message(message.sms_text, self.settings)


def build_channels(
    config: Config,
    email_client: EmailClient | None = None,
    sms_client: SmsClient | None = None,
) -> list[NotificationChannel]:
    """Create a channel for each configured group."""
    channels: list[NotificationChannel] = []
    if config.email is not None:
        channels.append(EmailChannel(config.email, email_client))
    if config.sms is not None:
        channels.append(SmsChannel(config.sms, sms_client))
    return channels


class NotificationDispatcher:
    """Renders AlertRecords and delivers them on every channel."""

    def __init__(
        self,
        channels: list[NotificationChannel],
        context: ReportContext,
        max_attempts: int = 3,
        backoff_seconds: float = 2.0,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """Initialize dispatcher.

        Args:
            channels: Channels to deliver on
            context: Report settings for rendering
            max_attempts: Attempts per channel per notification
            backoff_seconds: Base delay; attempt n waits n * backoff_seconds
            sleep: Sleep function (injectable for tests)
        """
        self.channels = channels
        self.context = context
        self.max_attempts = max(1, max_attempts)
        self.backoff_seconds = backoff_seconds
        self.sleep = sleep

    def _deliver(self, channel: NotificationChannel, message: RenderedMessage) -> ChannelResult:
        """Send on one channel, retrying transient failures."""
        error = None
        kind = DispatchErrorKind.CHANNEL_UNAVAILABLE
        attempt = 0

        while attempt < self.max_attempts:
            attempt += 1
            try:
                response = channel.send(message)
            except Exception as e:
                logger.exception("Channel %s raised while sending", channel.name)
                error = str(e)
                kind = DispatchErrorKind.CHANNEL_UNAVAILABLE
            else:
                if response.success:
                    return ChannelResult(channel=channel.name, success=True, attempts=attempt)
                error = response.error
                kind = response.error_kind or DispatchErrorKind.CHANNEL_UNAVAILABLE

            if not kind.retryable:
                break

            if attempt < self.max_attempts:
                delay = self.backoff_seconds * attempt
                logger.warning(
                    "Send via %s failed (%s), retrying in %.1fs (attempt %d/%d)",
                    channel.name,
                    error,
                    delay,
                    attempt,
                    self.max_attempts,
                )
                self.sleep(delay)

        return ChannelResult(
            channel=channel.name,
            success=False,
            attempts=attempt,
            error=error,
            error_kind=kind,
        )

    def dispatch(self, record: AlertRecord, state: EngineState) -> DispatchOutcome:
        """Render a decision and deliver it on every channel.

        Args:
            record: The alert decision
            state: Engine snapshot to report

        Returns:
            DispatchOutcome with one result per channel
        """
        message = render_message(record, state, self.context)
        outcome = DispatchOutcome(record=record)

        for channel in self.channels:
            result = self._deliver(channel, message)
            outcome.results.append(result)

            if result.success:
                logger.info(
                    "Sent %s notification via %s: %s",
                    record.kind.value,
                    channel.name,
                    message.subject,
                )
            else:
                logger.error(
                    "Failed to send %s notification via %s after %d attempt(s): %s",
                    record.kind.value,
                    channel.name,
                    result.attempts,
                    result.error,
                    extra={"error_kind": result.error_kind.value if result.error_kind else None},
                )

        return outcome
