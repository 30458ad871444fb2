import logging
import smtplib
from email.message import EmailMessage

from .config import Settings, settings
from .models import Registrant

logger = logging.getLogger(__name__)


class Notifier:
    """Delivers the welcome message to a freshly registered person."""

    def send_welcome(self, registrant: Registrant) -> None:
        raise NotImplementedError


class LoggingNotifier(Notifier):
    """Used when no SMTP server is configured."""

    def send_welcome(self, registrant: Registrant) -> None:
        logger.info("Email service not configured - skipping welcome email for %s", registrant.email)


class SmtpNotifier(Notifier):
    def __init__(self, config: Settings):
        self.config = config

    def build_message(self, registrant: Registrant) -> EmailMessage:
        message = EmailMessage()
        message["From"] = self.config.from_email
        message["To"] = registrant.email
        message["Subject"] = "Welcome to ClinicalGoTo - Your Clinical Trial Journey Begins"
        lines = [
            f"Hello {registrant.full_name},",
            "",
            "Thank you for registering with ClinicalGoTo.",
            "",
            "Your registration details:",
            f"  Name: {registrant.full_name}",
            f"  Email: {registrant.email}",
            f"  Phone: {registrant.phone}",
            f"  Condition: {registrant.condition}",
            f"  Location: {registrant.location}",
            "",
            "Always consult with your healthcare provider before considering "
            "participation in any clinical trial.",
        ]
        message.set_content("\n".join(lines))
        return message

    def send_welcome(self, registrant: Registrant) -> None:
        message = self.build_message(registrant)
        with smtplib.SMTP(self.config.smtp_host, self.config.smtp_port, timeout=10) as smtp:
            if self.config.smtp_use_tls:
                smtp.starttls()
            smtp.login(self.config.smtp_user, self.config.smtp_password)
            smtp.send_message(message)
        logger.info("Welcome email sent to %s", registrant.email)


def get_notifier() -> Notifier:
    if settings.smtp_configured:
        return SmtpNotifier(settings)
    return LoggingNotifier()
