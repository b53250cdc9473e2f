import logging
from smtplib import SMTPException

from django.conf import settings
from django.core.mail import EmailMultiAlternatives
from django.utils.html import format_html

from tracker.exceptions import DeliveryFailure

logger = logging.getLogger(__name__)

REMINDER_SUBJECT = "Codeforces activity reminder"


def render_reminder(name: str, current_rating: int, threshold_days: int) -> tuple[str, str]:
    """Plain-text and HTML bodies of the inactivity reminder."""
    text = (
        f"Hello {name},\n\n"
        f"We noticed that you haven't made any submissions on Codeforces "
        f"in the last {threshold_days} days.\n"
        f"Keep solving problems to improve your skills!\n\n"
        f"Your current rating: {current_rating}\n"
    )
    html = format_html(
        "<h2>Hello {},</h2>"
        "<p>We noticed that you haven't made any submissions on Codeforces in the last {} days.</p>"
        "<p>Keep solving problems to improve your skills!</p>"
        "<p>Your current rating: {}</p>",
        name,
        threshold_days,
        current_rating,
    )
    return text, html


class EmailReminderNotifier:
    """Sends inactivity reminders through Django's configured email backend."""

    def __init__(self, threshold_days: int, from_email: str | None = None):
        self.threshold_days = threshold_days
        self.from_email = from_email or getattr(settings, "DEFAULT_FROM_EMAIL", None)

    def send(self, address: str, name: str, current_rating: int) -> None:
        if not address:
            raise DeliveryFailure(f"No email address for {name}")

        text, html = render_reminder(name, current_rating, self.threshold_days)
        message = EmailMultiAlternatives(
            subject=REMINDER_SUBJECT,
            body=text,
            from_email=self.from_email,
            to=[address],
        )
        message.attach_alternative(html, "text/html")
        try:
            sent = message.send(fail_silently=False)
        except (SMTPException, OSError) as exc:
            raise DeliveryFailure(f"Reminder to {address} failed: {exc}") from exc

        if not sent:
            raise DeliveryFailure(f"Reminder to {address} was not accepted by the mail backend")
        logger.info("Inactivity reminder sent to=%s", address)
