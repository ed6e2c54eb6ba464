import smtplib
import unittest
from unittest.mock import MagicMock, patch

from tests.support import make_app, seed_appointment
from verification_service.config import MailSettings
from verification_service.errors import NotificationError
from verification_service.extensions import db
from verification_service.models import NotificationOutbox
from verification_service.services import notification_service
from verification_service.services.email_service import SmtpMailer, compose_confirmation


class TestComposeConfirmation(unittest.TestCase):
    def test_contains_booking_details(self):
        appointment = MagicMock(
            booking_id="BK-77",
            user_name="Anong Srisuk",
            slot_date="2026-11-02",
            slot_time="14:00",
            amount="1200.00",
        )

        subject, body = compose_confirmation(appointment, signature="Clinic Team")

        self.assertEqual(subject, "Booking Confirmation - BK-77")
        self.assertIn("Dear Anong Srisuk,", body)
        self.assertIn("Booking ID: BK-77", body)
        self.assertIn("Date: 2026-11-02", body)
        self.assertIn("Time: 14:00", body)
        self.assertIn("Amount Paid: 1200.00 THB", body)
        self.assertIn("Clinic Team.", body)


class TestSmtpMailer(unittest.TestCase):
    def test_disabled_mailer_raises(self):
        with self.assertRaises(NotificationError):
            SmtpMailer(MailSettings()).send("a@example.com", "Hi", "Body")

    @patch("verification_service.services.email_service.smtplib.SMTP")
    def test_sends_with_tls_and_login(self, smtp_cls):
        server = smtp_cls.return_value.__enter__.return_value
        settings = MailSettings(host="smtp.example.com", port=587, username="bot", password="pw")

        SmtpMailer(settings).send("a@example.com", "Hi", "Body")

        smtp_cls.assert_called_once_with("smtp.example.com", 587, timeout=10)
        server.starttls.assert_called_once()
        server.login.assert_called_once_with("bot", "pw")
        from_addr, to_addrs, message = server.sendmail.call_args[0]
        self.assertEqual(from_addr, settings.from_address)
        self.assertEqual(to_addrs, ["a@example.com"])
        self.assertIn("Subject: Hi", message)

    @patch("verification_service.services.email_service.smtplib.SMTP")
    def test_plain_smtp_without_credentials(self, smtp_cls):
        server = smtp_cls.return_value.__enter__.return_value

        SmtpMailer(MailSettings(host="localhost", port=25, use_tls=False)).send("a@example.com", "Hi", "Body")

        server.starttls.assert_not_called()
        server.login.assert_not_called()
        server.sendmail.assert_called_once()

    @patch("verification_service.services.email_service.smtplib.SMTP")
    def test_smtp_errors_become_notification_errors(self, smtp_cls):
        smtp_cls.return_value.__enter__.return_value.sendmail.side_effect = smtplib.SMTPRecipientsRefused({})

        with self.assertRaises(NotificationError):
            SmtpMailer(MailSettings(host="localhost")).send("a@example.com", "Hi", "Body")

    @patch("verification_service.services.email_service.smtplib.SMTP", side_effect=ConnectionRefusedError("refused"))
    def test_connection_errors_become_notification_errors(self, _smtp_cls):
        with self.assertRaises(NotificationError):
            SmtpMailer(MailSettings(host="localhost")).send("a@example.com", "Hi", "Body")


class TestOutbox(unittest.TestCase):
    def setUp(self):
        self.app = make_app()
        self.ctx = self.app.app_context()
        self.ctx.push()
        self.appointment = seed_appointment()

    def tearDown(self):
        db.session.remove()
        db.drop_all()
        self.ctx.pop()

    def enqueue(self):
        entry = notification_service.enqueue_confirmation(self.appointment)
        db.session.commit()
        return entry

    def test_enqueue_creates_pending_entry(self):
        entry = self.enqueue()

        self.assertEqual(entry.status, "PENDING")
        self.assertEqual(entry.recipient, "anong@example.com")
        self.assertEqual(entry.subject, "Booking Confirmation - BK-1001")
        self.assertEqual(entry.attempts, 0)

    def test_dispatch_success(self):
        entry = self.enqueue()
        mailer = MagicMock()

        self.assertTrue(notification_service.dispatch(entry, mailer))

        mailer.send.assert_called_once_with(entry.recipient, entry.subject, entry.body)
        self.assertEqual(entry.status, "SENT")
        self.assertIsNotNone(entry.sent_at)

    def test_dispatch_failure_is_recorded_not_raised(self):
        entry = self.enqueue()
        mailer = MagicMock()
        mailer.send.side_effect = NotificationError("mailbox full")

        self.assertFalse(notification_service.dispatch(entry, mailer))

        db.session.expire_all()
        stored = db.session.get(NotificationOutbox, entry.id)
        self.assertEqual(stored.status, "FAILED")
        self.assertEqual(stored.attempts, 1)
        self.assertEqual(stored.last_error, "mailbox full")

    def test_dispatch_pending_retries_failed_entries(self):
        first = self.enqueue()
        second = self.enqueue()
        third = self.enqueue()
        third.status = "SENT"
        first.status = "FAILED"
        first.attempts = 1
        db.session.commit()

        mailer = MagicMock()
        mailer.send.side_effect = [None, NotificationError("try later")]

        sent, failed = notification_service.dispatch_pending(mailer)

        self.assertEqual((sent, failed), (1, 1))
        self.assertEqual(mailer.send.call_count, 2)
        self.assertEqual(first.status, "SENT")
        self.assertEqual(first.attempts, 2)
        self.assertEqual(second.status, "FAILED")

    def test_dispatch_pending_respects_limit(self):
        for _ in range(3):
            self.enqueue()
        mailer = MagicMock()

        sent, failed = notification_service.dispatch_pending(mailer, limit=2)

        self.assertEqual((sent, failed), (2, 0))


class TestCli(unittest.TestCase):
    def test_dispatch_notifications_command(self):
        mailer = MagicMock()
        app = make_app(mailer=mailer)
        with app.app_context():
            appointment = seed_appointment()
            notification_service.enqueue_confirmation(appointment)
            db.session.commit()

        result = app.test_cli_runner().invoke(args=["dispatch-notifications", "--limit", "10"])

        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn("Sent 1, failed 0.", result.output)
        mailer.send.assert_called_once()


if __name__ == "__main__":
    unittest.main()
