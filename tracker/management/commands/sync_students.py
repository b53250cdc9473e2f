from django.core.management.base import BaseCommand, CommandError
from django.utils import timezone

from tracker.services.repository import StudentRepository
from tracker.services.sync import build_sync_service
from tracker.services.windows import contests_since, recent_solve_stats


class Command(BaseCommand):
    help = "Synchronizes students with Codeforces right away (all of them, or one handle)."

    def add_arguments(self, parser):
        parser.add_argument(
            "--handle",
            help="Only sync the student with this Codeforces handle.",
        )
        parser.add_argument(
            "--threshold-days",
            type=int,
            help="Overrides INACTIVITY_THRESHOLD_DAYS for this run.",
        )
        parser.add_argument(
            "--window-days",
            type=int,
            help="After syncing, print contests and accepted submissions from the last N days.",
        )

    def _report_window(self, handles, days):
        repository = StudentRepository()
        now = timezone.now()
        for handle in handles:
            snapshot = repository.load(handle)
            contests = contests_since(snapshot, days, now)
            solved = recent_solve_stats(snapshot, days, now)
            self.stdout.write(
                f"{handle}: last {days} day(s): {len(contests)} contest(s), "
                f"{solved.total_solved} accepted submission(s)"
            )

    def handle(self, *args, **options):
        handle = options.get("handle")
        window_days = options.get("window_days")
        if window_days is not None and window_days < 0:
            raise CommandError("--window-days must be zero or more.")
        service = build_sync_service(threshold_days=options.get("threshold_days"))

        if handle:
            result = service.sync_subject(handle)
            if not result.ok:
                raise CommandError(f"Sync failed for {handle}: {result.error}")
            for contest_id in result.failed_contests:
                self.stdout.write(
                    self.style.WARNING(f"Standings unavailable for contest {contest_id}.")
                )
            self.stdout.write(self.style.SUCCESS(f"Synced {handle}."))
            if window_days is not None:
                self._report_window([handle], window_days)
            return

        batch = service.sync_all()
        for result in batch.failed:
            self.stdout.write(self.style.ERROR(f"{result.handle}: {result.error}"))
        self.stdout.write(
            self.style.SUCCESS(
                f"Sync finished: {len(batch.succeeded)} ok, {len(batch.failed)} failed, "
                f"{batch.reminders_sent} reminder(s) sent."
            )
        )
        if window_days is not None:
            self._report_window([result.handle for result in batch.succeeded], window_days)
