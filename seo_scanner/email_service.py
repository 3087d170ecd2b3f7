"""
SMTP email delivery for scheduled reports.
"""
import logging
import smtplib
import ssl
from dataclasses import dataclass
from email.mime.application import MIMEApplication
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Optional, Sequence

from seo_scanner.config import REPORT_FROM_EMAIL, SMTP_HOST, SMTP_PASSWORD, SMTP_PORT, SMTP_USER

logger = logging.getLogger(__name__)


class EmailDeliveryError(Exception):
    """Raised when an email cannot be sent."""
    pass


@dataclass
class Attachment:
    filename: str
    content: bytes
    subtype: str = 'pdf'


class EmailService:
    """
    Email service using SMTP with STARTTLS.

    Configuration via environment variables:
        SMTP_HOST: SMTP server hostname (default: smtp.gmail.com)
        SMTP_PORT: SMTP server port (default: 587)
        SMTP_USER: SMTP username/email
        SMTP_PASSWORD: SMTP password (use app password for Gmail)
        REPORT_FROM_EMAIL: Sender address (default: SMTP_USER)
    """

    def __init__(
        self,
        smtp_host: str = SMTP_HOST,
        smtp_port: int = SMTP_PORT,
        smtp_user: Optional[str] = SMTP_USER,
        smtp_password: Optional[str] = SMTP_PASSWORD,
        from_email: str = REPORT_FROM_EMAIL
    ):
        self.smtp_host = smtp_host
        self.smtp_port = smtp_port
        self.smtp_user = smtp_user
        self.smtp_password = smtp_password
        self.from_email = from_email
        self.enabled = all([self.smtp_user, self.smtp_password])

        if not self.enabled:
            logger.warning("EmailService: Disabled (missing SMTP_USER or SMTP_PASSWORD)")

    def send_email(self, to: str, subject: str, html: str, attachments: Sequence[Attachment] = ()):
        """
        Send one HTML email.

        Raises:
            EmailDeliveryError: If SMTP is not configured or delivery fails
        """
        if not self.enabled:
            raise EmailDeliveryError("Email delivery is not configured")

        msg = MIMEMultipart()
        msg['From'] = self.from_email
        msg['To'] = to
        msg['Subject'] = subject
        msg.attach(MIMEText(html, 'html'))
        for attachment in attachments:
            part = MIMEApplication(attachment.content, _subtype=attachment.subtype)
            part.add_header('Content-Disposition', 'attachment', filename=attachment.filename)
            msg.attach(part)

        try:
            context = ssl.create_default_context()
            with smtplib.SMTP(self.smtp_host, self.smtp_port) as server:
                server.starttls(context=context)
                server.login(self.smtp_user, self.smtp_password)
                server.sendmail(self.from_email, [to], msg.as_string())
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"EmailService: Failed to send '{subject}' to {to} - {e}")
            raise EmailDeliveryError(f"Failed to send email to {to}: {e}")

        logger.info(f"EmailService: Sent '{subject}' to {to}")
