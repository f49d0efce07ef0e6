"""
Email Service for InternManage
==============================
Plain-text notification mail over SMTP.
"""

from email.mime.text import MIMEText
from typing import Optional

import aiosmtplib

from internmanage.config import settings
from internmanage.logging_config import get_logger

logger = get_logger(__name__)


class EmailService:
    """Async SMTP email service"""

    def __init__(
        self,
        smtp_host: Optional[str] = None,
        smtp_port: Optional[int] = None,
        smtp_user: Optional[str] = None,
        smtp_password: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        self.smtp_host = smtp_host or settings.SMTP_HOST
        self.smtp_port = smtp_port or settings.SMTP_PORT
        self.smtp_user = smtp_user if smtp_user is not None else settings.SMTP_USER
        self.smtp_password = smtp_password if smtp_password is not None else settings.SMTP_PASSWORD
        self.from_email = settings.SMTP_FROM_EMAIL
        self.from_name = settings.SMTP_FROM_NAME
        self.timeout = timeout or settings.MAIL_TIMEOUT_SECONDS

    @property
    def is_configured(self) -> bool:
        return bool(self.smtp_user and self.smtp_password)

    async def send_email(self, to_email: str, subject: str, body: str) -> bool:
        """
        Send a plain-text email.

        Returns True if the SMTP server accepted it, False otherwise.
        """
        if not self.is_configured:
            logger.warning("[Email] SMTP not configured, skipping email to %s", to_email)
            return False

        message = MIMEText(body, "plain", "utf-8")
        message["From"] = f"{self.from_name} <{self.from_email}>"
        message["To"] = to_email
        message["Subject"] = subject

        try:
            await aiosmtplib.send(
                message,
                hostname=self.smtp_host,
                port=self.smtp_port,
                username=self.smtp_user,
                password=self.smtp_password,
                start_tls=True,
                timeout=self.timeout,
            )
        except aiosmtplib.SMTPException as exc:
            logger.error("[Email/SMTP] Failed to send email to %s: %s", to_email, exc)
            return False

        logger.info("[Email/SMTP] Sent email to %s: %s", to_email, subject)
        return True


email_service = EmailService()
