import smtplib
from email.message import EmailMessage

from app.config.settings import Settings, settings as default_settings
from app.utils.logging import get_logger

logger = get_logger()


class Mailer:
    """SMTP delivery for transactional email"""

    def __init__(self, config: Settings = default_settings):
        self.config = config

    @property
    def is_configured(self) -> bool:
        return bool(self.config.SMTP_HOST and self.config.SMTP_FROM)

    def build_message(self, to: str, subject: str, text: str) -> EmailMessage:
        message = EmailMessage()
        message["From"] = self.config.SMTP_FROM
        message["To"] = to
        message["Subject"] = subject
        message.set_content(text)
        return message

    def send(self, to: str, subject: str, text: str) -> bool:
        """Send one plain-text email. Returns False instead of raising on failure."""
        if not self.is_configured:
            logger.warning(f"SMTP is not configured, skipping email '{subject}'")
            return False

        message = self.build_message(to, subject, text)

        try:
            with smtplib.SMTP(
                self.config.SMTP_HOST,
                self.config.SMTP_PORT,
                timeout=self.config.SMTP_TIMEOUT,
            ) as smtp:
                if self.config.SMTP_USE_TLS:
                    smtp.starttls()
                if self.config.SMTP_USER:
                    smtp.login(self.config.SMTP_USER, self.config.SMTP_PASSWORD)
                smtp.send_message(message)
        except (smtplib.SMTPException, OSError) as e:
            logger.warning(f"Failed to send email '{subject}': {str(e)}")
            return False

        logger.info(f"Sent email '{subject}'")
        return True
