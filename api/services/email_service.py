import smtplib
import ssl
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from typing import Optional
import logging

from db.repositories.settings_repository import SettingsRepository, SMTP_REQUIRED_KEYS

logger = logging.getLogger(__name__)


class EmailService:
    """
    Sends ProSoft Hub account emails (expiry reminders, test messages)
    over any SMTP server.
    """

    def __init__(self, config: dict):
        """
        Args:
            config (dict): SMTP_HOST, SMTP_PORT, SMTP_USER, SMTP_PASSWORD,
                           SENDER_EMAIL and SENDER_NAME are required;
                           SMTP_USE_TLS defaults to "true".
        """
        required_keys = SMTP_REQUIRED_KEYS + ["SENDER_NAME"]
        if not all(config.get(k) for k in required_keys):
            raise ValueError(f"Config must contain: {', '.join(required_keys)}")

        self.smtp_host = config["SMTP_HOST"]
        self.smtp_port = int(config["SMTP_PORT"])
        self.smtp_user = config["SMTP_USER"]
        self.smtp_password = config["SMTP_PASSWORD"]
        self.sender_email = config["SENDER_EMAIL"]
        self.sender_name = config["SENDER_NAME"]
        self.use_tls = (config.get("SMTP_USE_TLS") or "true").lower() == "true"

    @classmethod
    def from_settings(cls, settings_repo: SettingsRepository) -> Optional["EmailService"]:
        """Build from env/database settings, or None when SMTP is not configured"""
        if not settings_repo.is_smtp_configured():
            logger.info("SMTP not configured, emails disabled")
            return None
        try:
            return cls(settings_repo.smtp_config())
        except ValueError as e:
            logger.warning(f"Failed to initialize email service: {e}")
            return None

    def build_message(self, to_email: str, subject: str, html_content: str) -> MIMEMultipart:
        message = MIMEMultipart("alternative")
        message["Subject"] = subject
        message["From"] = f"{self.sender_name} <{self.sender_email}>"
        message["To"] = to_email
        message.attach(MIMEText(html_content, "html"))
        return message

    def send_email(self, to_email: str, subject: str, html_content: str) -> tuple[bool, str]:
        """
        Returns:
            tuple[bool, str]: success flag and "sent" or the error message.
        """
        message = self.build_message(to_email, subject, html_content)
        try:
            context = ssl.create_default_context()
            if self.smtp_port == 465:
                with smtplib.SMTP_SSL(self.smtp_host, self.smtp_port, context=context) as server:
                    server.login(self.smtp_user, self.smtp_password)
                    server.send_message(message)
            else:
                with smtplib.SMTP(self.smtp_host, self.smtp_port) as server:
                    if self.use_tls:
                        server.starttls(context=context)
                    server.login(self.smtp_user, self.smtp_password)
                    server.send_message(message)

            logger.info(f"Email sent successfully to {to_email}")
            return True, "sent"

        except smtplib.SMTPAuthenticationError as e:
            error_message = f"SMTP authentication failed: {str(e)}"
            logger.error(error_message)
            return False, error_message
        except (smtplib.SMTPException, OSError) as e:
            error_message = f"SMTP error: {str(e)}"
            logger.exception(error_message)
            return False, error_message
