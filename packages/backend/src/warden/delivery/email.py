"""Outbound email.

EmailSender is the seam the confirmation engine talks to. SmtpEmailSender
is the production implementation: smtplib in a worker thread so the event
loop is never blocked by the SMTP dialogue.

Connection modes:
- SSL (commonly port 465): WARDEN_SMTP_USE_SSL=true, WARDEN_SMTP_USE_TLS=false
- STARTTLS (commonly port 587): WARDEN_SMTP_USE_TLS=true
"""

import asyncio
import smtplib
from abc import ABC, abstractmethod
from email.message import EmailMessage

from warden.config import Settings
from warden.errors import DeliveryError


class EmailSender(ABC):
    @abstractmethod
    async def send(self, recipient: str, subject: str, body: str) -> None:
        """Deliver one message. Raises DeliveryError on any failure."""


class SmtpEmailSender(EmailSender):
    """Send mail through an SMTP relay configured in Settings."""

    def __init__(self, settings: Settings):
        self.host = settings.smtp_host
        self.port = settings.smtp_port
        self.username = settings.smtp_username
        self.password = settings.smtp_password
        self.from_email = settings.smtp_from_email or settings.smtp_username
        self.use_ssl = settings.smtp_use_ssl
        self.use_tls = settings.smtp_use_tls
        self.timeout = settings.smtp_timeout_seconds

    async def send(self, recipient: str, subject: str, body: str) -> None:
        if not self.host:
            raise DeliveryError("SMTP is not configured (WARDEN_SMTP_HOST is empty)")

        msg = EmailMessage()
        msg["From"] = self.from_email
        msg["To"] = recipient
        msg["Subject"] = subject
        msg.set_content(body)

        try:
            await asyncio.to_thread(self._send_blocking, msg)
        except (smtplib.SMTPException, OSError) as e:
            # Server replies can echo recipient addresses; keep them out of logs.
            raise DeliveryError(f"smtp: {type(e).__name__}") from e

    def _connect(self) -> smtplib.SMTP:
        if self.use_ssl:
            return smtplib.SMTP_SSL(self.host, self.port, timeout=self.timeout)
        server = smtplib.SMTP(self.host, self.port, timeout=self.timeout)
        if self.use_tls:
            try:
                server.starttls()
            except (smtplib.SMTPException, OSError):
                server.close()
                raise
        return server

    def _send_blocking(self, msg: EmailMessage) -> None:
        with self._connect() as server:
            if self.username:
                server.login(self.username, self.password)
            server.send_message(msg)
