# src/taskminder/notifiers/smtp_notifier.py

from __future__ import annotations

import asyncio
import logging
import re
import smtplib
import ssl
from dataclasses import dataclass
from email.message import EmailMessage

from ..reminders.reminder_models import DeliveryResult, Reminder, RenderedMessage

logger = logging.getLogger(__name__)

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def is_valid_email(address: str) -> bool:
    return bool(_EMAIL_RE.match((address or "").strip()))


@dataclass(frozen=True, slots=True)
class SmtpConfig:
    host: str
    port: int = 587
    username: str | None = None
    password: str | None = None
    from_address: str | None = None
    starttls: bool = True
    timeout_seconds: float = 30.0

    @classmethod
    def from_settings(cls, settings) -> SmtpConfig:
        return cls(
            host=settings.smtp_host,
            port=int(settings.smtp_port),
            username=settings.smtp_username or None,
            password=settings.smtp_password or None,
            from_address=settings.smtp_from or settings.smtp_username or None,
            starttls=bool(settings.smtp_starttls),
            timeout_seconds=float(settings.smtp_timeout_seconds),
        )


class SmtpNotifier:
    """
    E-mail transport over SMTP.

    smtplib is blocking, so each send runs in a worker thread. One SMTP session
    per message keeps the notifier stateless and safe under concurrent sends.
    """

    def __init__(self, config: SmtpConfig) -> None:
        if not config.host:
            raise ValueError("SMTP host is required")
        self._config = config

    def build_message(self, contact: str, message: RenderedMessage) -> EmailMessage:
        msg = EmailMessage()
        msg["Subject"] = message.subject
        msg["From"] = self._config.from_address or ""
        msg["To"] = contact
        msg.set_content(message.body)
        return msg

    def _send_blocking(self, msg: EmailMessage) -> None:
        cfg = self._config
        with smtplib.SMTP(cfg.host, cfg.port, timeout=cfg.timeout_seconds) as smtp:
            if cfg.starttls:
                smtp.starttls(context=ssl.create_default_context())
            if cfg.username and cfg.password:
                smtp.login(cfg.username, cfg.password)
            smtp.send_message(msg)

    async def send(self, reminder: Reminder, contact: str, message: RenderedMessage) -> DeliveryResult:
        if not is_valid_email(contact):
            return DeliveryResult.failure(f"invalid email address: {contact!r}")

        msg = self.build_message(contact.strip(), message)
        try:
            await asyncio.to_thread(self._send_blocking, msg)
        except (smtplib.SMTPException, OSError) as e:
            logger.warning("SMTP send failed reminder=%s: %r", reminder.id, e)
            return DeliveryResult.failure(f"smtp error: {e!r}")

        logger.debug("Email sent reminder=%s", reminder.id)
        return DeliveryResult.success()

    async def close(self) -> None:
        return None
