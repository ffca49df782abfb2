"""
SMTP delivery for report emails.

Sends one HTML message with an optional .xlsx attachment.
"""

import smtplib
from email.message import EmailMessage
from typing import Optional

import structlog

from config.settings import Settings, settings as app_settings
from exceptions import NotifyError

logger = structlog.get_logger(__name__)

XLSX_MAINTYPE = "application"
XLSX_SUBTYPE = "vnd.openxmlformats-officedocument.spreadsheetml.sheet"


class Mailer:
    """Thin SMTP client configured from process settings."""

    def __init__(self, config: Optional[Settings] = None):
        self.config = config or app_settings

    @property
    def configured(self) -> bool:
        return self.config.smtp_configured

    def send(
        self,
        recipients: list[str],
        subject: str,
        html: str,
        attachment: Optional[bytes] = None,
        attachment_name: Optional[str] = None,
    ) -> None:
        """
        Send an HTML email.

        Args:
            recipients: To addresses
            subject: Subject line
            html: HTML body
            attachment: Optional .xlsx payload
            attachment_name: Filename for the attachment

        Raises:
            NotifyError: SMTP not configured or delivery failed
        """
        if not self.configured:
            raise NotifyError("email", "SMTP is not configured")
        if not recipients:
            raise NotifyError("email", "No recipients")

        message = EmailMessage()
        message["Subject"] = subject
        message["From"] = self.config.smtp_from or self.config.smtp_user
        message["To"] = ", ".join(recipients)
        message.set_content("This report requires an HTML capable email client.")
        message.add_alternative(html, subtype="html")

        if attachment is not None:
            message.add_attachment(
                attachment,
                maintype=XLSX_MAINTYPE,
                subtype=XLSX_SUBTYPE,
                filename=attachment_name or "report.xlsx",
            )

        try:
            logger.info(
                "sending_email",
                recipients=len(recipients),
                subject=subject,
                has_attachment=attachment is not None
            )
            with smtplib.SMTP(
                self.config.smtp_host,
                self.config.smtp_port,
                timeout=30,
            ) as smtp:
                if self.config.smtp_use_tls:
                    smtp.starttls()
                if self.config.smtp_user and self.config.smtp_password:
                    smtp.login(self.config.smtp_user, self.config.smtp_password)
                smtp.send_message(message)
        except (smtplib.SMTPException, OSError) as e:
            logger.error("email_send_failed", error=str(e))
            raise NotifyError("email", f"Failed to send email: {e}") from e

        logger.info("email_sent", recipients=len(recipients))
