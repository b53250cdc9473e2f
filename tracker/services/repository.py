import logging

from django.db import DatabaseError, transaction
from django.utils import timezone

from tracker.exceptions import PersistenceError, StudentConflict, StudentNotFound
from tracker.models import Student
from tracker.services.snapshots import (
    ContestRecord,
    InactivityState,
    SolveStats,
    SubjectSnapshot,
)

logger = logging.getLogger(__name__)


def to_snapshot(student: Student) -> SubjectSnapshot:
    return SubjectSnapshot(
        handle=student.codeforces_handle,
        name=student.name,
        email=student.email,
        current_rating=student.current_rating,
        max_rating=student.max_rating,
        contest_history=tuple(
            ContestRecord.from_dict(row) for row in student.contest_history or ()
        ),
        solve_stats=SolveStats.from_dict(student.solve_stats),
        inactivity=InactivityState(
            last_submission_date=student.last_submission_date,
            email_reminders_enabled=student.email_reminders_enabled,
            reminder_emails_sent=student.reminder_emails_sent,
            last_reminder_sent=student.last_reminder_sent,
        ),
    )


class StudentRepository:
    """
    Key-based access to stored students, keyed by Codeforces handle.

    ``replace`` overwrites every engine-owned column in one UPDATE; the
    student's name, email and reminder opt-in are owned by the student and
    are never written from a snapshot.
    """

    def load(self, handle: str) -> SubjectSnapshot:
        try:
            student = Student.objects.get(codeforces_handle=handle)
        except Student.DoesNotExist as exc:
            raise StudentNotFound(f"No student with handle {handle}") from exc
        except DatabaseError as exc:
            raise PersistenceError(f"Failed to load student {handle}: {exc}") from exc
        return to_snapshot(student)

    def load_by_id(self, student_id: int) -> SubjectSnapshot:
        try:
            student = Student.objects.get(pk=student_id)
        except Student.DoesNotExist as exc:
            raise StudentNotFound(f"No student with id {student_id}") from exc
        except DatabaseError as exc:
            raise PersistenceError(f"Failed to load student {student_id}: {exc}") from exc
        return to_snapshot(student)

    def list_all(self) -> list[SubjectSnapshot]:
        try:
            return [to_snapshot(student) for student in Student.objects.order_by('codeforces_handle')]
        except DatabaseError as exc:
            raise PersistenceError(f"Failed to list students: {exc}") from exc

    def replace(self, handle: str, snapshot: SubjectSnapshot) -> None:
        now = timezone.now()
        fields = {
            'current_rating': snapshot.current_rating,
            'max_rating': snapshot.max_rating,
            'contest_history': [record.to_dict() for record in snapshot.contest_history],
            'solve_stats': snapshot.solve_stats.to_dict(),
            'last_submission_date': snapshot.inactivity.last_submission_date,
            'reminder_emails_sent': snapshot.inactivity.reminder_emails_sent,
            'last_reminder_sent': snapshot.inactivity.last_reminder_sent,
            'last_synced_at': now,
            'updated_at': now,
        }
        try:
            with transaction.atomic():
                updated = Student.objects.filter(codeforces_handle=handle).update(**fields)
        except DatabaseError as exc:
            raise PersistenceError(f"Failed to store student {handle}: {exc}") from exc

        if updated == 0:
            raise StudentConflict(f"Student {handle} was removed or renamed during sync")
        logger.debug("Stored snapshot handle=%s contests=%s", handle, len(snapshot.contest_history))
