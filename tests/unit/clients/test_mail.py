"""Unit tests for SmtpMailer with smtplib patched out."""

import smtplib
from unittest.mock import MagicMock, patch

import pytest

from converge.clients import SmtpMailer
from converge.errors import ClientError


def _patched_smtp(starttls: bool = True):
    smtp_cls = MagicMock()
    smtp = MagicMock()
    smtp.has_extn.return_value = starttls
    smtp_cls.return_value.__enter__.return_value = smtp
    return smtp_cls, smtp


def test_build_message_headers():
    mailer = SmtpMailer("smtp.example", 587, "bot@example.com", "pw")
    message = mailer.build_message("alice@example.com", "Hello", "body text")

    assert message["From"] == "bot@example.com"
    assert message["To"] == "alice@example.com"
    assert message["Subject"] == "Hello"
    assert "body text" in message.get_content()


@pytest.mark.asyncio
async def test_send_uses_starttls_and_login():
    smtp_cls, smtp = _patched_smtp(starttls=True)
    mailer = SmtpMailer("smtp.example", "587", "bot@example.com", "pw", timeout=5)

    with patch("converge.clients.mail.smtplib.SMTP", smtp_cls):
        await mailer.send("alice@example.com", "Hello", "body")

    smtp_cls.assert_called_once_with("smtp.example", 587, timeout=5)
    smtp.starttls.assert_called_once()
    smtp.login.assert_called_once_with("bot@example.com", "pw")
    sent = smtp.send_message.call_args.args[0]
    assert sent["To"] == "alice@example.com"


@pytest.mark.asyncio
async def test_send_without_starttls_or_credentials():
    smtp_cls, smtp = _patched_smtp(starttls=False)
    mailer = SmtpMailer("localhost", 25, "", "", sender="bot@example.com")

    with patch("converge.clients.mail.smtplib.SMTP", smtp_cls):
        await mailer.send("alice@example.com", "Hello", "body")

    smtp.starttls.assert_not_called()
    smtp.login.assert_not_called()
    smtp.send_message.assert_called_once()


@pytest.mark.parametrize(
    "error",
    [smtplib.SMTPAuthenticationError(535, b"bad credentials"), ConnectionRefusedError("refused")],
)
@pytest.mark.asyncio
async def test_send_failure_raises_client_error(error):
    smtp_cls, smtp = _patched_smtp()
    smtp.send_message.side_effect = error
    mailer = SmtpMailer("smtp.example", 587, "bot@example.com", "pw")

    with patch("converge.clients.mail.smtplib.SMTP", smtp_cls):
        with pytest.raises(ClientError, match="alice@example.com"):
            await mailer.send("alice@example.com", "Hello", "body")
