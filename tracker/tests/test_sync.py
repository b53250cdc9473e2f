import threading
import time
from datetime import timedelta

from django.test import TestCase

from tracker.exceptions import FetchError, PersistenceError, StudentConflict
from tracker.models import Student
from tracker.services.contest_enricher import StandingsContestEnricher
from tracker.services.repository import StudentRepository
from tracker.services.sync import StudentSyncService, SyncStage

from .fakes import BASE_TIME, FakeCodeforcesClient, FakeNotifier, rating_event, submission

DAY = 24 * 3600
NOW = BASE_TIME + timedelta(days=60)


def _active_feed():
    # Last submission 5 days before NOW.
    return [
        submission(1850, "B", "WRONG_ANSWER", seconds=55 * DAY, rating=1100, name="Two"),
        submission(1850, "A", "OK", seconds=50 * DAY, rating=800, name="One"),
        submission(1850, "A", "OK", seconds=40 * DAY, rating=800, name="One"),
        submission(1900, "C", "OK", seconds=30 * DAY, rating=0, name="Three"),
    ]


class StudentSyncServiceTests(TestCase):
    def setUp(self):
        self.alice = Student.objects.create(name="Alice", email="alice@example.com", codeforces_handle="alice")
        self.client = FakeCodeforcesClient(
            ratings={
                "alice": [
                    rating_event(1850, 1400, 1520, day=10),
                    rating_event(1900, 1520, 1480, day=31),
                ],
            },
            submissions={"alice": _active_feed()},
            standings={1850: ["A", "B", "C"], 1900: ["A", "B", "C", "D"]},
        )
        self.notifier = FakeNotifier()
        self.repository = StudentRepository()

    def _service(self, **overrides):
        options = {
            "client": self.client,
            "repository": self.repository,
            "notifier": self.notifier,
            "enricher": StandingsContestEnricher(self.client, max_workers=2),
            "threshold_days": 7,
            "max_workers": 3,
            "clock": lambda: NOW,
        }
        options.update(overrides)
        return StudentSyncService(**options)

    def test_sync_subject_stores_reconciled_snapshot(self):
        result = self._service().sync_subject("alice")

        self.assertTrue(result.ok)
        self.assertIs(result.stage, SyncStage.DONE)
        self.assertFalse(result.reminder_sent)

        snapshot = self.repository.load("alice")
        self.assertEqual(snapshot.current_rating, 1480)
        self.assertEqual(snapshot.max_rating, 1520)
        self.assertEqual([record.contest_id for record in snapshot.contest_history], [1850, 1900])
        self.assertEqual(snapshot.contest_history[0].unsolved_problems, ("B", "C"))
        self.assertEqual(snapshot.contest_history[1].unsolved_problems, ("A", "B", "D"))
        self.assertEqual(snapshot.contest_history[1].rating_change, -40)
        self.assertEqual(snapshot.solve_stats.total_solved, 2)
        self.assertEqual(snapshot.solve_stats.problems_by_rating, ((800, 1),))
        self.assertEqual(snapshot.solve_stats.average_rating, 800)
        self.assertEqual(snapshot.solve_stats.problems_per_day, 0.08)
        self.assertEqual(snapshot.inactivity.last_submission_date, BASE_TIME + timedelta(seconds=55 * DAY))

    def test_running_twice_stores_identical_records(self):
        service = self._service()

        service.sync_subject("alice")
        first = self.repository.load("alice")
        first_row = Student.objects.values("contest_history", "solve_stats").get(pk=self.alice.pk)

        service.sync_subject("alice")
        second = self.repository.load("alice")
        second_row = Student.objects.values("contest_history", "solve_stats").get(pk=self.alice.pk)

        self.assertEqual(first, second)
        self.assertEqual(first_row, second_row)
        self.assertEqual(len(second.contest_history), 2)

    def test_standings_failure_degrades_one_contest_only(self):
        self.client.standings[1850] = FetchError("contest.standings unavailable")

        with self.assertLogs("tracker.services.contest_enricher", level="WARNING"):
            result = self._service().sync_subject("alice")

        self.assertTrue(result.ok)
        self.assertEqual(result.failed_contests, [1850])
        history = self.repository.load("alice").contest_history
        self.assertEqual([record.contest_id for record in history], [1850, 1900])
        self.assertEqual(history[0].unsolved_problems, ())
        self.assertEqual(history[1].unsolved_problems, ("A", "B", "D"))

    def test_unavailable_feeds_degrade_to_empty(self):
        self.client.errors["alice"] = FetchError("user.status timed out")

        with self.assertLogs("tracker.services.sync", level="WARNING"):
            result = self._service().sync_subject("alice")

        self.assertTrue(result.ok)
        snapshot = self.repository.load("alice")
        self.assertEqual(snapshot.current_rating, 0)
        self.assertEqual(snapshot.contest_history, ())
        self.assertEqual(snapshot.solve_stats.total_solved, 0)
        self.assertIsNone(snapshot.inactivity.last_submission_date)
        self.assertEqual(self.notifier.sent, [])

    def test_unknown_handle_reports_failure(self):
        result = self._service().sync_subject("nobody")

        self.assertFalse(result.ok)
        self.assertIs(result.stage, SyncStage.FAILED)
        self.assertIn("No student", result.error)

    def test_persistence_conflict_fails_the_student(self):
        class ConflictingRepository(StudentRepository):
            def replace(self, handle, snapshot):
                raise StudentConflict(f"Student {handle} was removed or renamed during sync")

        service = self._service(repository=ConflictingRepository())
        result = service.sync_subject("alice")

        self.assertFalse(result.ok)
        self.assertTrue(result.error.startswith("persisting"))
        self.assertEqual(Student.objects.get(pk=self.alice.pk).contest_history, [])

    def test_batch_isolates_a_failing_student(self):
        Student.objects.create(name="Bob", email="bob@example.com", codeforces_handle="bob")
        Student.objects.create(name="Carol", email="carol@example.com", codeforces_handle="carol")
        self.client.ratings["carol"] = [rating_event(1900, 1200, 1350, day=31)]
        self.client.errors["bob"] = RuntimeError("socket exploded")

        batch = self._service().sync_all()

        self.assertEqual([result.handle for result in batch.results], ["alice", "bob", "carol"])
        self.assertEqual([result.handle for result in batch.succeeded], ["alice", "carol"])
        self.assertEqual([result.handle for result in batch.failed], ["bob"])
        self.assertIs(batch.failed[0].stage, SyncStage.FAILED)
        self.assertEqual(Student.objects.get(codeforces_handle="alice").current_rating, 1480)
        self.assertEqual(Student.objects.get(codeforces_handle="carol").current_rating, 1350)
        bob = Student.objects.get(codeforces_handle="bob")
        self.assertIsNone(bob.last_synced_at)
        self.assertEqual(bob.solve_stats, {})


class InactivityReminderTests(TestCase):
    def setUp(self):
        self.student = Student.objects.create(name="Dan", email="dan@example.com", codeforces_handle="dan")
        stale_feed = [submission(1850, "A", "OK", seconds=20 * DAY, rating=800)]  # 40 days before NOW
        self.client = FakeCodeforcesClient(
            ratings={"dan": [rating_event(1850, 1400, 1430, day=19)]},
            submissions={"dan": stale_feed},
            standings={1850: ["A", "B"]},
        )
        self.repository = StudentRepository()

    def _service(self, notifier):
        return StudentSyncService(
            client=self.client,
            repository=self.repository,
            notifier=notifier,
            enricher=StandingsContestEnricher(self.client),
            threshold_days=7,
            clock=lambda: NOW,
        )

    def test_one_reminder_per_pass(self):
        notifier = FakeNotifier()
        service = self._service(notifier)

        first = service.sync_subject("dan")
        self.assertTrue(first.reminder_sent)
        self.assertEqual(notifier.sent, [("dan@example.com", "Dan", 1430)])
        self.assertEqual(self.repository.load("dan").inactivity.reminder_emails_sent, 1)

        service.sync_all()
        self.assertEqual(len(notifier.sent), 2)
        inactivity = self.repository.load("dan").inactivity
        self.assertEqual(inactivity.reminder_emails_sent, 2)
        self.assertEqual(inactivity.last_reminder_sent, NOW)

    def test_disabled_reminders_are_not_sent(self):
        Student.objects.filter(pk=self.student.pk).update(email_reminders_enabled=False)
        notifier = FakeNotifier()

        result = self._service(notifier).sync_subject("dan")

        self.assertTrue(result.ok)
        self.assertFalse(result.reminder_sent)
        self.assertEqual(notifier.sent, [])
        self.assertEqual(self.repository.load("dan").inactivity.reminder_emails_sent, 0)

    def test_failed_delivery_keeps_counter(self):
        with self.assertLogs("tracker.services.sync", level="WARNING"):
            result = self._service(FakeNotifier(fail=True)).sync_subject("dan")

        self.assertTrue(result.ok)
        self.assertFalse(result.reminder_sent)
        inactivity = self.repository.load("dan").inactivity
        self.assertEqual(inactivity.reminder_emails_sent, 0)
        self.assertIsNone(inactivity.last_reminder_sent)

    def test_student_without_history_is_not_reminded(self):
        self.client.submissions["dan"] = []
        notifier = FakeNotifier()

        self._service(notifier).sync_subject("dan")

        self.assertEqual(notifier.sent, [])

    def test_reminder_counter_write_failure_keeps_student_synced(self):
        class CounterWriteFails(StudentRepository):
            def __init__(self):
                self.writes = 0

            def replace(self, handle, snapshot):
                self.writes += 1
                if self.writes > 1:
                    raise PersistenceError("database went away")
                super().replace(handle, snapshot)

        notifier = FakeNotifier()
        service = self._service(notifier)
        service.repository = CounterWriteFails()

        with self.assertLogs("tracker.services.sync", level="WARNING") as logs:
            result = service.sync_subject("dan")

        self.assertTrue(result.ok)
        self.assertIs(result.stage, SyncStage.DONE)
        self.assertTrue(result.reminder_sent)
        self.assertEqual(len(notifier.sent), 1)
        self.assertIn("delivered but not recorded", logs.output[0])
        stored = self.repository.load("dan")
        self.assertEqual(stored.solve_stats.total_solved, 1)
        self.assertEqual(stored.inactivity.reminder_emails_sent, 0)


class SyncConcurrencyTests(TestCase):
    def test_students_are_built_on_a_bounded_pool(self):
        active = 0
        peak = 0
        lock = threading.Lock()

        class SlowClient(FakeCodeforcesClient):
            def get_rating_history(self, handle):
                nonlocal active, peak
                with lock:
                    active += 1
                    peak = max(peak, active)
                time.sleep(0.02)
                with lock:
                    active -= 1
                return []

        handles = [f"student{number}" for number in range(6)]
        for handle in handles:
            Student.objects.create(name=handle, codeforces_handle=handle)
        client = SlowClient()
        service = StudentSyncService(
            client=client,
            repository=StudentRepository(),
            notifier=FakeNotifier(),
            enricher=StandingsContestEnricher(client),
            threshold_days=7,
            max_workers=2,
            clock=lambda: NOW,
        )

        batch = service.sync_all()

        self.assertEqual([result.handle for result in batch.succeeded], handles)
        self.assertLessEqual(peak, 2)

    def test_feeds_of_one_student_are_fetched_together(self):
        # Both feed calls must be in flight at once to get past the barrier.
        barrier = threading.Barrier(2, timeout=2)

        class RendezvousClient(FakeCodeforcesClient):
            def get_rating_history(self, handle):
                barrier.wait()
                return super().get_rating_history(handle)

            def get_submissions(self, handle):
                barrier.wait()
                return super().get_submissions(handle)

        Student.objects.create(name="Alice", codeforces_handle="alice")
        client = RendezvousClient(submissions={"alice": [submission(1850, "A", "OK", seconds=59 * DAY)]})
        service = StudentSyncService(
            client=client,
            repository=StudentRepository(),
            notifier=FakeNotifier(),
            enricher=StandingsContestEnricher(client),
            threshold_days=7,
            clock=lambda: NOW,
        )

        result = service.sync_subject("alice")

        self.assertTrue(result.ok, result.error)
        self.assertEqual(StudentRepository().load("alice").solve_stats.total_solved, 1)
