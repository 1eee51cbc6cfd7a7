"""Tests for the SMTP email client.

Uses unittest.mock to replace smtplib connections.
"""

import smtplib
import pytest
from unittest.mock import MagicMock, patch

from spaceweather.core.config import EmailSettings
from spaceweather.core.delivery import DispatchErrorKind
from spaceweather.shell.email_client import EmailClient, build_message, classify_smtp_error


@pytest.fixture
def settings():
    return EmailSettings(
        smtp_server="smtp.example.com",
        username="monitor",
        password="secret",
        email_from="monitor@example.com",
        email_to="me@example.com",
    )


def connection(mock_class):
    """Make the mocked connection usable as its own context manager."""
    smtp = mock_class.return_value
    smtp.__enter__.return_value = smtp
    return smtp


class TestBuildMessage:
    """Tests for build_message()."""

    def test_headers_and_body(self, settings):
        message = build_message("Space Weather Warning", "Body text\n", settings)

        assert message["From"] == "monitor@example.com"
        assert message["To"] == "me@example.com"
        assert message["Subject"] == "Space Weather Warning"
        assert message.get_content() == "Body text\n"


class TestEmailClientSendMessage:
    """Tests for EmailClient.send_message()."""

    @patch("spaceweather.shell.email_client.smtplib.SMTP")
    def test_starttls_send(self, mock_smtp, settings):
        smtp = connection(mock_smtp)

        result = EmailClient(timeout=7).send_message("Subject", "Body", settings)

        assert result.success is True
        assert result.error is None
        mock_smtp.assert_called_once_with("smtp.example.com", 587, timeout=7)
        smtp.starttls.assert_called_once()
        smtp.login.assert_called_once_with("monitor", "secret")
        sent = smtp.send_message.call_args[0][0]
        assert sent["Subject"] == "Subject"

    @patch("spaceweather.shell.email_client.smtplib.SMTP_SSL")
    def test_implicit_tls_send(self, mock_smtp_ssl, settings):
        settings.smtp_tls = "implicit"
        smtp = connection(mock_smtp_ssl)

        result = EmailClient().send_message("Subject", "Body", settings)

        assert result.success is True
        assert mock_smtp_ssl.call_args[0] == ("smtp.example.com", 465)
        smtp.starttls.assert_not_called()

    @patch("spaceweather.shell.email_client.smtplib.SMTP")
    def test_auth_failure_is_rejected(self, mock_smtp, settings):
        smtp = connection(mock_smtp)
        smtp.login.side_effect = smtplib.SMTPAuthenticationError(535, b"Authentication failed")

        result = EmailClient().send_message("Subject", "Body", settings)

        assert result.success is False
        assert result.error_kind == DispatchErrorKind.REJECTED
        assert "Refused" in result.error

    @patch("spaceweather.shell.email_client.smtplib.SMTP")
    def test_recipient_refused_is_rejected(self, mock_smtp, settings):
        smtp = connection(mock_smtp)
        smtp.send_message.side_effect = smtplib.SMTPRecipientsRefused(
            {"me@example.com": (550, b"No such user")}
        )

        result = EmailClient().send_message("Subject", "Body", settings)

        assert result.error_kind == DispatchErrorKind.REJECTED

    @patch("spaceweather.shell.email_client.smtplib.SMTP")
    def test_greylisted_data_is_unavailable(self, mock_smtp, settings):
        smtp = connection(mock_smtp)
        smtp.send_message.side_effect = smtplib.SMTPDataError(451, b"4.7.1 Greylisted, try again later")

        result = EmailClient().send_message("Subject", "Body", settings)

        assert result.success is False
        assert result.error_kind == DispatchErrorKind.CHANNEL_UNAVAILABLE
        assert result.error_kind.retryable is True

    @patch("spaceweather.shell.email_client.smtplib.SMTP")
    def test_timeout(self, mock_smtp, settings):
        mock_smtp.side_effect = TimeoutError("timed out")

        result = EmailClient().send_message("Subject", "Body", settings)

        assert result.success is False
        assert result.error_kind == DispatchErrorKind.TIMEOUT

    @patch("spaceweather.shell.email_client.smtplib.SMTP")
    def test_connection_refused_is_unavailable(self, mock_smtp, settings):
        mock_smtp.side_effect = ConnectionRefusedError("refused")

        result = EmailClient().send_message("Subject", "Body", settings)

        assert result.error_kind == DispatchErrorKind.CHANNEL_UNAVAILABLE

    @patch("spaceweather.shell.email_client.smtplib.SMTP")
    def test_server_disconnect_is_unavailable(self, mock_smtp, settings):
        smtp = connection(mock_smtp)
        smtp.send_message.side_effect = smtplib.SMTPServerDisconnected("lost")

        result = EmailClient().send_message("Subject", "Body", settings)

        assert result.error_kind == DispatchErrorKind.CHANNEL_UNAVAILABLE
        assert result.error == "lost"


class TestClassifySmtpError:
    """Tests for classify_smtp_error()."""

    @pytest.mark.parametrize("code", [421, 450, 451, 452])
    def test_transient_codes_are_unavailable(self, code):
        error = smtplib.SMTPDataError(code, b"try again later")
        assert classify_smtp_error(error) == DispatchErrorKind.CHANNEL_UNAVAILABLE

    @pytest.mark.parametrize("code", [550, 553, 554])
    def test_permanent_codes_are_rejected(self, code):
        error = smtplib.SMTPSenderRefused(code, b"denied", "monitor@example.com")
        assert classify_smtp_error(error) == DispatchErrorKind.REJECTED

    def test_temporary_auth_failure_is_unavailable(self):
        error = smtplib.SMTPAuthenticationError(454, b"Temporary authentication failure")
        assert classify_smtp_error(error) == DispatchErrorKind.CHANNEL_UNAVAILABLE

    def test_recipients_all_deferred(self):
        error = smtplib.SMTPRecipientsRefused({"me@example.com": (450, b"Mailbox busy")})
        assert classify_smtp_error(error) == DispatchErrorKind.CHANNEL_UNAVAILABLE

    def test_recipients_with_permanent_refusal(self):
        error = smtplib.SMTPRecipientsRefused({
            "me@example.com": (450, b"Mailbox busy"),
            "you@example.com": (550, b"No such user"),
        })
        assert classify_smtp_error(error) == DispatchErrorKind.REJECTED
