"""
Email Service - plain-text confirmation emails over SMTP
"""

import smtplib
import ssl
from email.mime.text import MIMEText

from verification_service.errors import NotificationError
from verification_service.log_config import get_logger

logger = get_logger(__name__)

SMTP_TIMEOUT_SECONDS = 10


class SmtpMailer:
    def __init__(self, settings):
        self.settings = settings

    def send(self, to, subject, text):
        """Send a plain-text message. Raises NotificationError on any failure."""
        if not self.settings.enabled:
            raise NotificationError("SMTP is not configured")

        msg = MIMEText(text, "plain", "utf-8")
        msg["Subject"] = subject
        msg["From"] = self.settings.from_address
        msg["To"] = to

        try:
            with smtplib.SMTP(self.settings.host, self.settings.port, timeout=SMTP_TIMEOUT_SECONDS) as server:
                if self.settings.use_tls:
                    server.starttls(context=ssl.create_default_context())
                if self.settings.username and self.settings.password:
                    server.login(self.settings.username, self.settings.password)
                server.sendmail(self.settings.from_address, [to], msg.as_string())
        except (smtplib.SMTPException, OSError) as e:
            logger.error("smtp_send_failed", to=to, subject=subject, error=str(e))
            raise NotificationError(str(e)) from e

        logger.info("smtp_sent", to=to, subject=subject)


def compose_confirmation(appointment, signature="M-Care Team"):
    """Subject and body of the booking confirmation for a verified appointment."""
    subject = f"Booking Confirmation - {appointment.booking_id}"
    body = f"""Dear {appointment.user_name},

Your appointment has been confirmed!

📌 Booking ID: {appointment.booking_id}
📅 Date: {appointment.slot_date}
⏰ Time: {appointment.slot_time}
💵 Amount Paid: {appointment.amount} THB

Thank you for booking with us.

Regards,
{signature}.
"""
    return subject, body
