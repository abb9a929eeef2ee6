"""
SMTP mail collaborator used by billing notifications.

smtplib is blocking, so sends run in a worker thread.
"""

import asyncio
import smtplib
from email.message import EmailMessage
from html import escape

from blox_pipeline.config import settings
from blox_pipeline.infrastructure.observability.logging import get_logger
from blox_pipeline.jobs.errors import TransientExternalError

logger = get_logger(__name__)


def render_billing_email(title: str, body: str, full_name: str | None) -> str:
    """HTML body for billing notices."""
    settings_url = f"{settings.APP_BASE_URL.rstrip('/')}/settings"
    return f"""
<div style="font-family:sans-serif;max-width:600px;margin:0 auto;">
  <h2>{escape(title)}</h2>
  <p>Hi {escape(full_name or "there")},</p>
  <p>{escape(body)}</p>
  <p><a href="{escape(settings_url)}"
    style="background:#6366f1;color:#fff;padding:12px 24px;border-radius:6px;text-decoration:none;">
    Manage Subscription
  </a></p>
  <hr/><p style="color:#999;font-size:12px;">Blox - Your professional portfolio platform</p>
</div>
"""


class MailService:
    def __init__(self, host: str | None = None, port: int | None = None):
        self.host = host or settings.MAIL_HOST
        self.port = port or settings.MAIL_PORT

    def _send_blocking(self, message: EmailMessage) -> None:
        with smtplib.SMTP(self.host, self.port, timeout=settings.MAIL_TIMEOUT_SECONDS) as smtp:
            if settings.MAIL_USER:
                smtp.login(settings.MAIL_USER, settings.MAIL_PASS or "")
            smtp.send_message(message)

    async def send(self, to: str, subject: str, html: str) -> None:
        """
        Send one HTML email.

        Raises:
            TransientExternalError: when the SMTP exchange fails
        """
        message = EmailMessage()
        message["From"] = settings.MAIL_FROM
        message["To"] = to
        message["Subject"] = subject
        message.set_content(subject)
        message.add_alternative(html, subtype="html")

        try:
            await asyncio.to_thread(self._send_blocking, message)
        except (OSError, smtplib.SMTPException) as e:
            raise TransientExternalError(f"Mail delivery failed: {e}", service="mail") from e

        logger.info("Email sent", subject=subject)


mail_service = MailService()
