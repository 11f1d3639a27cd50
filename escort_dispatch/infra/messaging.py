# escort_dispatch/infra/messaging.py
"""
Messaging gateway for rider notifications.

Both channels end up here as ``send(address, subject, body)``:
- SMS goes to the carrier's email-to-SMS relay (``5045551234@vtext.com``)
- Email goes straight to the rider's address

Usage:
    gateway = get_messaging_gateway(settings)
    await gateway.send(address, subject, body)
"""
from __future__ import annotations

import asyncio
import smtplib
from email.mime.text import MIMEText
from typing import Protocol

from escort_dispatch.config import Settings
from escort_dispatch.infra.logging_config import get_logger, mask_email

logger = get_logger(__name__)


class MessagingGateway(Protocol):
    @property
    def name(self) -> str: ...

    async def send(self, address: str, subject: str, body: str) -> None:
        """Deliver one message; raises on transport failure."""
        ...


class SmtpGateway:
    """Deliver through an SMTP relay (blocking smtplib in the default executor)."""

    def __init__(self, settings: Settings):
        self._settings = settings

    @property
    def name(self) -> str:
        return "smtp"

    def is_configured(self) -> bool:
        return self._settings.smtp_configured

    async def send(self, address: str, subject: str, body: str) -> None:
        if not self.is_configured():
            raise RuntimeError("SMTP gateway not configured")

        msg = MIMEText(body, "plain", "utf-8")
        msg["From"] = self._settings.smtp_sender or self._settings.smtp_user
        msg["To"] = address
        msg["Subject"] = subject

        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, self._send_smtp, msg)

        logger.info(f"Message sent via SMTP to {mask_email(address)}")

    def _send_smtp(self, msg: MIMEText) -> None:
        """Send via SMTP (blocking)"""
        s = self._settings
        with smtplib.SMTP(s.smtp_host, s.smtp_port, timeout=s.smtp_timeout_seconds) as server:
            if s.smtp_use_tls:
                server.starttls()
            if s.smtp_user and s.smtp_password:
                server.login(s.smtp_user, s.smtp_password)
            server.send_message(msg)


class DisabledGateway:
    """Log and drop; used when messaging is switched off"""

    @property
    def name(self) -> str:
        return "disabled"

    def is_configured(self) -> bool:
        return True

    async def send(self, address: str, subject: str, body: str) -> None:
        logger.info(
            f"Messaging disabled, dropping message to {mask_email(address)}: {subject}"
        )


def get_messaging_gateway(settings: Settings) -> MessagingGateway:
    """Build the configured gateway. Unknown backends fall back to disabled."""
    if settings.messaging_backend == "smtp":
        gateway = SmtpGateway(settings)
        if not gateway.is_configured():
            logger.warning("SMTP backend selected but not configured, sends will fail")
        return gateway

    if settings.messaging_backend != "disabled":
        logger.error(f"Unknown messaging backend: {settings.messaging_backend}")
    return DisabledGateway()
