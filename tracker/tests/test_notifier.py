from smtplib import SMTPException
from unittest.mock import patch

from django.core import mail
from django.test import SimpleTestCase

from tracker.exceptions import DeliveryFailure
from tracker.services.notifier import REMINDER_SUBJECT, EmailReminderNotifier


class EmailReminderNotifierTests(SimpleTestCase):
    def test_sends_reminder_with_name_and_rating(self):
        EmailReminderNotifier(threshold_days=7).send("alice@example.com", "Alice", 1480)

        self.assertEqual(len(mail.outbox), 1)
        message = mail.outbox[0]
        self.assertEqual(message.subject, REMINDER_SUBJECT)
        self.assertEqual(message.to, ["alice@example.com"])
        self.assertIn("Hello Alice", message.body)
        self.assertIn("1480", message.body)
        self.assertIn("last 7 days", message.body)
        html, mimetype = message.alternatives[0]
        self.assertEqual(mimetype, "text/html")
        self.assertIn("1480", html)

    def test_html_body_escapes_name(self):
        EmailReminderNotifier(threshold_days=7).send("x@example.com", "<b>Eve</b>", 0)

        html, _ = mail.outbox[0].alternatives[0]
        self.assertIn("&lt;b&gt;Eve&lt;/b&gt;", html)

    def test_missing_address_fails(self):
        with self.assertRaises(DeliveryFailure):
            EmailReminderNotifier(threshold_days=7).send("", "Alice", 1480)

        self.assertEqual(len(mail.outbox), 0)

    def test_smtp_error_becomes_delivery_failure(self):
        with patch(
            "tracker.services.notifier.EmailMultiAlternatives.send",
            side_effect=SMTPException("connection refused"),
        ):
            with self.assertRaises(DeliveryFailure):
                EmailReminderNotifier(threshold_days=7).send("alice@example.com", "Alice", 1480)
