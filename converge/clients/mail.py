"""SMTP mailer.

smtplib is blocking; send() runs it in a worker thread.
"""

import asyncio
import smtplib
from email.message import EmailMessage
from typing import Optional

from converge.errors import ClientError
from converge.logging import get_component_logger
from converge.protocols import LoggerProtocol


class SmtpMailer:
    """MailerProtocol implementation sending plain text mail."""

    def __init__(
        self,
        server: str,
        port: int,
        username: str,
        password: str,
        sender: Optional[str] = None,
        timeout: float = 60.0,
        logger: Optional[LoggerProtocol] = None,
    ):
        self.server = server
        self.port = int(port)
        self.username = username
        self._password = password
        self.sender = sender or username
        self.timeout = timeout
        self._logger = get_component_logger("smtp_mailer", logger)

    def build_message(self, recipient: str, subject: str, body: str) -> EmailMessage:
        message = EmailMessage()
        message["From"] = self.sender
        message["To"] = recipient
        message["Subject"] = subject
        message.set_content(body)
        return message

    def _send_sync(self, message: EmailMessage) -> None:
        with smtplib.SMTP(self.server, self.port, timeout=self.timeout) as smtp:
            smtp.ehlo()
            if smtp.has_extn("starttls"):
                smtp.starttls()
                smtp.ehlo()
            if self.username:
                smtp.login(self.username, self._password)
            smtp.send_message(message)

    async def send(self, recipient: str, subject: str, body: str) -> None:
        self._logger.debug("mail_sending", recipient=recipient, subject=subject)
        message = self.build_message(recipient, subject, body)
        try:
            await asyncio.to_thread(self._send_sync, message)
        except (smtplib.SMTPException, OSError) as e:
            raise ClientError(f"error sending mail to {recipient}: {e}") from e
        self._logger.info("mail_sent", recipient=recipient, subject=subject)


__all__ = ["SmtpMailer"]
