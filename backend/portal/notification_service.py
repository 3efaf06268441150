"""Operator email notification for new applications.

Sends a plain-text summary of each accepted application to a fixed operator
address over SMTP.  Delivery is best-effort: the submission is already
committed when this runs, and failures are reported as
:class:`NotificationFailed` for the caller to log, never retried.

Configure via environment variables:
- SMTP_HOST, SMTP_PORT (default 587), SMTP_USER, SMTP_PASSWORD
- SMTP_FROM_EMAIL (defaults to SMTP_USER)
- OPERATOR_EMAIL: recipient of new-application notices
"""

import asyncio
import logging
import os
import smtplib
from dataclasses import dataclass
from email.mime.text import MIMEText
from typing import Optional

from dotenv import load_dotenv

from portal.exceptions import NotificationFailed

load_dotenv()

logger = logging.getLogger(__name__)


@dataclass
class SmtpSettings:
    host: Optional[str]
    port: int
    user: Optional[str]
    password: Optional[str]
    from_email: Optional[str]
    operator_email: Optional[str]

    @classmethod
    def from_env(cls) -> "SmtpSettings":
        user = os.getenv("SMTP_USER")
        return cls(
            host=os.getenv("SMTP_HOST"),
            port=int(os.getenv("SMTP_PORT", "587")),
            user=user,
            password=os.getenv("SMTP_PASSWORD"),
            from_email=os.getenv("SMTP_FROM_EMAIL", user),
            operator_email=os.getenv("OPERATOR_EMAIL"),
        )

    @property
    def configured(self) -> bool:
        return bool(
            self.host and self.user and self.password and self.operator_email
        )


def build_application_notice(
    full_name: str, grant_id: str, signature: str, reference_id: str
) -> tuple[str, str]:
    """Return (subject, body) for a new-application notice."""
    subject = f"New Grant Application: {full_name}"
    body = (
        "New Application Received.\n"
        f"Name: {full_name}\n"
        f"ID: {grant_id}\n"
        f"Signed: {signature}\n"
        f"Reference: {reference_id}"
    )
    return subject, body


class EmailNotifier:
    """SMTP notifier for new-application notices."""

    def __init__(self, settings: Optional[SmtpSettings] = None):
        self.settings = settings or SmtpSettings.from_env()

    def _send(self, subject: str, body: str) -> None:
        s = self.settings
        msg = MIMEText(body, "plain")
        msg["Subject"] = subject
        msg["From"] = s.from_email
        msg["To"] = s.operator_email

        with smtplib.SMTP(s.host, s.port, timeout=30) as server:
            server.starttls()
            server.login(s.user, s.password)
            server.sendmail(s.from_email, [s.operator_email], msg.as_string())

    async def notify_application(
        self, full_name: str, grant_id: str, signature: str, reference_id: str
    ) -> bool:
        """Email the operator about a new application.

        Returns:
            True if sent, False if SMTP is not configured.

        Raises:
            NotificationFailed: If the SMTP exchange fails.
        """
        if not self.settings.configured:
            logger.warning(
                "Notification skipped for %s: configure SMTP_HOST, SMTP_USER, "
                "SMTP_PASSWORD and OPERATOR_EMAIL to enable sending",
                reference_id,
            )
            return False

        subject, body = build_application_notice(
            full_name, grant_id, signature, reference_id
        )
        try:
            # smtplib is blocking; keep it off the event loop
            await asyncio.to_thread(self._send, subject, body)
        except (smtplib.SMTPException, OSError) as e:
            raise NotificationFailed(str(e)) from e

        logger.info("Notification sent for application %s", reference_id)
        return True


_notifier: Optional[EmailNotifier] = None


def get_notifier() -> EmailNotifier:
    """FastAPI dependency: the process-wide notifier."""
    global _notifier
    if _notifier is None:
        _notifier = EmailNotifier()
    return _notifier
