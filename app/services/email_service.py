"""SMTP email delivery for high-priority notifications."""

import asyncio
import logging
import smtplib
from email.message import EmailMessage
from typing import Optional, Set

from app.config import Settings, settings as default_settings

logger = logging.getLogger(__name__)


class EmailService:
    """Sends plain-text mail through the configured SMTP relay.

    Disabled when EMAIL_ENABLED is false or no SMTP user is configured.
    Delivery failures are logged and reported as False, never raised.
    """

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or default_settings

    @property
    def enabled(self) -> bool:
        return bool(
            self.settings.EMAIL_ENABLED
            and self.settings.SMTP_HOST
            and self.settings.SMTP_USER
        )

    def _build_message(self, to: str, subject: str, body: str) -> EmailMessage:
        message = EmailMessage()
        message["From"] = self.settings.EMAIL_FROM
        message["To"] = to
        message["Subject"] = subject
        message.set_content(body)
        return message

    def _send_sync(self, message: EmailMessage) -> None:
        with smtplib.SMTP(
            self.settings.SMTP_HOST,
            self.settings.SMTP_PORT,
            timeout=self.settings.SMTP_TIMEOUT,
        ) as smtp:
            smtp.starttls()
            smtp.login(self.settings.SMTP_USER, self.settings.SMTP_PASSWORD)
            smtp.send_message(message)

    async def send(self, to: str, subject: str, body: str) -> bool:
        if not self.enabled:
            logger.debug(f"Email disabled, skipping '{subject}' to {to}")
            return False
        if not to:
            return False

        message = self._build_message(to, subject, body)
        try:
            # smtplib blocks; keep it off the event loop
            await asyncio.to_thread(self._send_sync, message)
            logger.info(f"Email sent to {to}: {subject}")
            return True
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"Failed to send email to {to}: {e}")
            return False

    async def send_notification(self, to: str, title: str, message: str, action_url: Optional[str] = None) -> bool:
        body = message
        if action_url:
            body += f"\n\nOpen: {self.settings.APP_URL.rstrip('/')}{action_url}"
        return await self.send(to, title, body)

    def send_notification_later(self, to: str, title: str, message: str, action_url: Optional[str] = None) -> None:
        """Schedule ``send_notification`` on the running loop without awaiting it."""
        task = asyncio.get_running_loop().create_task(self.send_notification(to, title, message, action_url))
        _pending.add(task)
        task.add_done_callback(_pending.discard)


# Strong references to in-flight sends; the loop keeps only weak ones
_pending: Set["asyncio.Task[bool]"] = set()
