from dataclasses import dataclass, replace
from datetime import datetime

from tracker.services.snapshots import InactivityState


@dataclass(frozen=True)
class InactivityDecision:
    should_remind: bool
    days_inactive: int | None


def days_since(last_submission: datetime | None, now: datetime) -> int | None:
    if last_submission is None:
        return None
    return (now - last_submission).days


def evaluate_inactivity(state: InactivityState, now: datetime, threshold_days: int) -> InactivityDecision:
    """
    Decide whether a reminder is due.

    Students with no submission history at all, or with reminders switched
    off, are never reminded. The orchestrator calls this once per student per
    pass, so a student gets at most one reminder per pass however stale.
    """
    days_inactive = days_since(state.last_submission_date, now)
    should_remind = (
        days_inactive is not None
        and days_inactive >= threshold_days
        and state.email_reminders_enabled
    )
    return InactivityDecision(should_remind=should_remind, days_inactive=days_inactive)


def record_reminder(state: InactivityState, sent_at: datetime) -> InactivityState:
    """State after a delivered reminder. Only call once delivery is confirmed."""
    return replace(
        state,
        reminder_emails_sent=state.reminder_emails_sent + 1,
        last_reminder_sent=sent_at,
    )
