"""SMS Client via Twilio - Imperative Shell.

This module handles sending SMS messages via Twilio's REST API.
All I/O is contained here; message formatting is in the core module.
"""

import logging
from dataclasses import dataclass

import requests
from twilio.base.exceptions import TwilioRestException
from twilio.http.http_client import TwilioHttpClient
from twilio.rest import Client

from spaceweather.core.config import SmsSettings
from spaceweather.core.delivery import DispatchErrorKind


logger = logging.getLogger(__name__)


# Default timeout for API requests (seconds)
DEFAULT_TIMEOUT = 10


@dataclass
class SmsResponse:
    """Response from an SMS send attempt.

    Attributes:
        success: Whether the message was accepted by Twilio
        message_sid: Twilio message SID if successful
        error: Error message if failed
        error_kind: Failure classification if failed
    """
    success: bool
    message_sid: str | None = None
    error: str | None = None
    error_kind: DispatchErrorKind | None = None


def classify_twilio_error(e: TwilioRestException) -> DispatchErrorKind:
    """Map a Twilio API error to a dispatch error kind.

    4xx responses (bad number, auth failure) are rejections, except 429
    which means try again later.
    """
    status = e.status or 0
    if status == 429 or status >= 500:
        return DispatchErrorKind.CHANNEL_UNAVAILABLE
    return DispatchErrorKind.REJECTED


class SmsClient:
    """Client for sending SMS via Twilio.

    This is part of the imperative shell - it handles I/O.
    """

    def __init__(self, timeout: float = DEFAULT_TIMEOUT) -> None:
        """Initialize SMS client.

        Args:
            timeout: Request timeout in seconds
        """
        self.timeout = timeout

    def send_message(self, text: str, settings: SmsSettings) -> SmsResponse:
        """Send an SMS via Twilio.

        This method performs HTTP I/O.

        Args:
            text: Message text
            settings: Twilio credentials and numbers

        Returns:
            SmsResponse indicating success or failure
        """
        logger.info("Sending SMS via Twilio")

        try:
            client = Client(
                settings.account_sid,
                settings.auth_token,
                http_client=TwilioHttpClient(timeout=self.timeout),
            )

            message = client.messages.create(
                body=text,
                from_=settings.from_number,
                to=settings.to_number,
            )

            logger.info("SMS sent: %s", message.sid)
            return SmsResponse(
                success=True,
                message_sid=message.sid,
            )

        except TwilioRestException as e:
            logger.error("Twilio API error: %s", str(e))
            return SmsResponse(
                success=False,
                error=f"Twilio error: {e.msg}",
                error_kind=classify_twilio_error(e),
            )
        except requests.Timeout:
            logger.error("Twilio request timed out")
            return SmsResponse(
                success=False,
                error="Request timed out",
                error_kind=DispatchErrorKind.TIMEOUT,
            )
        except Exception as e:
            logger.error("SMS send failed: %s", str(e))
            return SmsResponse(
                success=False,
                error=str(e),
                error_kind=DispatchErrorKind.CHANNEL_UNAVAILABLE,
            )
