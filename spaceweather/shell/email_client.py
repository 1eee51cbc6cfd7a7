"""Email Client via SMTP - Imperative Shell.

This module handles sending plain-text email over SMTP with STARTTLS or
implicit TLS. All I/O is contained here; message formatting is in the
core module.
"""

import logging
import smtplib
import ssl
from dataclasses import dataclass
from email.message import EmailMessage

from spaceweather.core.config import EmailSettings
from spaceweather.core.delivery import DispatchErrorKind


logger = logging.getLogger(__name__)


# Default timeout for SMTP connections (seconds)
DEFAULT_TIMEOUT = 10


@dataclass
class EmailResponse:
    """Response from an email send attempt.

    Attributes:
        success: Whether the server accepted the message
        error: Error message if failed
        error_kind: Failure classification if failed
    """
    success: bool
    error: str | None = None
    error_kind: DispatchErrorKind | None = None


def build_message(subject: str, body: str, settings: EmailSettings) -> EmailMessage:
    """Build a plain-text email message."""
    message = EmailMessage()
    message["From"] = settings.email_from
    message["To"] = settings.email_to
    message["Subject"] = subject
    message.set_content(body)
    return message


def classify_smtp_error(e: smtplib.SMTPException) -> DispatchErrorKind:
    """Map an SMTP refusal to a dispatch error kind.

    4xx reply codes (greylisting, mailbox busy) mean try again later;
    5xx codes are permanent rejections.
    """
    if isinstance(e, smtplib.SMTPRecipientsRefused):
        codes = [code for code, _ in e.recipients.values()]
    else:
        codes = [getattr(e, "smtp_code", 0)]

    if codes and all(400 <= code < 500 for code in codes):
        return DispatchErrorKind.CHANNEL_UNAVAILABLE
    return DispatchErrorKind.REJECTED


class EmailClient:
    """Client for sending email over SMTP.

    This is part of the imperative shell - it handles network I/O.
    """

    def __init__(self, timeout: float = DEFAULT_TIMEOUT) -> None:
        """Initialize email client.

        Args:
            timeout: Connection and command timeout in seconds
        """
        self.timeout = timeout

    def _connect(self, settings: EmailSettings) -> smtplib.SMTP:
        context = ssl.create_default_context()
        if settings.smtp_tls == "implicit":
            return smtplib.SMTP_SSL(
                settings.smtp_server,
                settings.port,
                timeout=self.timeout,
                context=context,
            )

        smtp = smtplib.SMTP(settings.smtp_server, settings.port, timeout=self.timeout)
        smtp.starttls(context=context)
        return smtp

    def send_message(self, subject: str, body: str, settings: EmailSettings) -> EmailResponse:
        """Send an email.

        This method performs network I/O.

        Args:
            subject: Subject line
            body: Plain-text body
            settings: SMTP server, credentials and addresses

        Returns:
            EmailResponse indicating success or failure
        """
        logger.info("Sending email via %s:%d", settings.smtp_server, settings.port)

        message = build_message(subject, body, settings)

        try:
            with self._connect(settings) as smtp:
                smtp.login(settings.username, settings.password)
                smtp.send_message(message)

            logger.info("Email sent to %s", settings.email_to)
            return EmailResponse(success=True)

        except (
            smtplib.SMTPAuthenticationError,
            smtplib.SMTPRecipientsRefused,
            smtplib.SMTPSenderRefused,
            smtplib.SMTPDataError,
        ) as e:
            kind = classify_smtp_error(e)
            logger.error("SMTP server refused message (%s): %s", kind.value, str(e))
            return EmailResponse(
                success=False,
                error=f"Refused: {e}",
                error_kind=kind,
            )
        except TimeoutError:
            logger.error("SMTP connection timed out")
            return EmailResponse(
                success=False,
                error="Connection timed out",
                error_kind=DispatchErrorKind.TIMEOUT,
            )
        except (smtplib.SMTPException, OSError) as e:
            logger.error("SMTP send failed: %s", str(e))
            return EmailResponse(
                success=False,
                error=str(e),
                error_kind=DispatchErrorKind.CHANNEL_UNAVAILABLE,
            )
