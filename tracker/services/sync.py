"""
Synchronization pipeline for the student roster.

Each student goes through FETCHING -> RECONCILING -> ENRICHING -> PERSISTING
-> EVALUATING -> DONE. Any exception moves the student to FAILED and the pass
carries on with the next one; nothing raised while syncing one student can
abort a batch.

In a batch pass the fetch/reconcile/enrich work (network bound, no database
access) runs on a bounded thread pool, while the commit and the reminder
decision run on the calling thread as builds complete. A snapshot is only
written once it is fully built, so a student is either replaced completely
or left untouched.
"""
import enum
import logging
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field, replace

from django.conf import settings
from django.utils import timezone

from tracker.exceptions import DeliveryFailure, FetchError, PersistenceError
from tracker.services.codeforces_client import CodeforcesClient
from tracker.services.contest_enricher import build_contest_enricher, ratings_summary
from tracker.services.inactivity import evaluate_inactivity, record_reminder
from tracker.services.notifier import EmailReminderNotifier
from tracker.services.reconciler import (
    DEFAULT_RECENT_LIMIT,
    last_submission_date,
    reconcile_submissions,
    solved_problem_keys,
)
from tracker.services.repository import StudentRepository
from tracker.services.snapshots import SubjectSnapshot

logger = logging.getLogger(__name__)


class SyncStage(enum.Enum):
    IDLE = "idle"
    FETCHING = "fetching"
    RECONCILING = "reconciling"
    ENRICHING = "enriching"
    PERSISTING = "persisting"
    EVALUATING = "evaluating"
    DONE = "done"
    FAILED = "failed"


@dataclass
class SubjectSyncResult:
    handle: str
    stage: SyncStage = SyncStage.IDLE
    error: str | None = None
    reminder_sent: bool = False
    failed_contests: list[int] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.stage is SyncStage.DONE


@dataclass
class BatchSyncResult:
    results: list[SubjectSyncResult]
    duration_ms: int = 0

    @property
    def succeeded(self) -> list[SubjectSyncResult]:
        return [result for result in self.results if result.ok]

    @property
    def failed(self) -> list[SubjectSyncResult]:
        return [result for result in self.results if not result.ok]

    @property
    def reminders_sent(self) -> int:
        return sum(1 for result in self.results if result.reminder_sent)


class StudentSyncService:
    def __init__(
        self,
        client,
        repository,
        notifier,
        enricher,
        threshold_days: int,
        max_workers: int = 4,
        recent_limit: int = DEFAULT_RECENT_LIMIT,
        clock=timezone.now,
    ):
        self.client = client
        self.repository = repository
        self.notifier = notifier
        self.enricher = enricher
        self.threshold_days = threshold_days
        self.max_workers = max(1, int(max_workers))
        self.recent_limit = recent_limit
        self.clock = clock

    def _fetch_feed(self, fetch, handle, feed_name):
        try:
            return fetch(handle)
        except FetchError as exc:
            logger.warning("Feed unavailable handle=%s feed=%s: %s", handle, feed_name, exc)
            return []

    def build_snapshot(self, snapshot: SubjectSnapshot, result: SubjectSyncResult) -> SubjectSnapshot:
        """Fetch, reconcile and enrich; returns the replacement snapshot without storing it."""
        handle = snapshot.handle

        result.stage = SyncStage.FETCHING
        with ThreadPoolExecutor(max_workers=2, thread_name_prefix="cf-feeds") as executor:
            ratings_future = executor.submit(
                self._fetch_feed, self.client.get_rating_history, handle, "rating"
            )
            submissions_future = executor.submit(
                self._fetch_feed, self.client.get_submissions, handle, "submissions"
            )
            rating_events = ratings_future.result()
            submissions = submissions_future.result()

        result.stage = SyncStage.RECONCILING
        solve_stats = reconcile_submissions(submissions, recent_limit=self.recent_limit)
        solved_keys = solved_problem_keys(submissions)

        result.stage = SyncStage.ENRICHING
        enrichment = self.enricher.enrich(handle, rating_events, solved_keys)
        result.failed_contests = list(enrichment.failed_contest_ids)
        current_rating, max_rating = ratings_summary(rating_events)

        return replace(
            snapshot,
            current_rating=current_rating,
            max_rating=max_rating,
            contest_history=tuple(enrichment.records),
            solve_stats=solve_stats,
            inactivity=replace(
                snapshot.inactivity,
                last_submission_date=last_submission_date(submissions),
            ),
        )

    def _remind_if_inactive(self, snapshot: SubjectSnapshot) -> bool:
        now = self.clock()
        decision = evaluate_inactivity(snapshot.inactivity, now, self.threshold_days)
        if not decision.should_remind:
            return False

        try:
            self.notifier.send(snapshot.email, snapshot.name or snapshot.handle, snapshot.current_rating)
        except DeliveryFailure as exc:
            logger.warning(
                "Inactivity reminder not delivered handle=%s days_inactive=%s: %s",
                snapshot.handle,
                decision.days_inactive,
                exc,
            )
            return False

        reminded = replace(snapshot, inactivity=record_reminder(snapshot.inactivity, now))
        try:
            self.repository.replace(snapshot.handle, reminded)
        except PersistenceError as exc:
            # The email is already out; the stored counter lags by one.
            logger.warning(
                "Inactivity reminder delivered but not recorded handle=%s days_inactive=%s: %s",
                snapshot.handle,
                decision.days_inactive,
                exc,
            )
            return True
        logger.info(
            "Inactivity reminder recorded handle=%s days_inactive=%s total_sent=%s",
            snapshot.handle,
            decision.days_inactive,
            reminded.inactivity.reminder_emails_sent,
        )
        return True

    def commit(self, snapshot: SubjectSnapshot, result: SubjectSyncResult) -> None:
        result.stage = SyncStage.PERSISTING
        self.repository.replace(snapshot.handle, snapshot)

        result.stage = SyncStage.EVALUATING
        result.reminder_sent = self._remind_if_inactive(snapshot)

        result.stage = SyncStage.DONE

    def _fail(self, result: SubjectSyncResult, exc: Exception) -> None:
        failed_stage = result.stage
        logger.exception("Sync failed handle=%s stage=%s", result.handle, failed_stage.value)
        result.error = f"{failed_stage.value}: {exc}"
        result.stage = SyncStage.FAILED

    def sync_subject(self, handle: str) -> SubjectSyncResult:
        """Run the whole pipeline for one student, synchronously."""
        result = SubjectSyncResult(handle=handle)
        try:
            snapshot = self.repository.load(handle)
            built = self.build_snapshot(snapshot, result)
            self.commit(built, result)
        except Exception as exc:
            self._fail(result, exc)
        return result

    def sync_all(self) -> BatchSyncResult:
        started = time.monotonic()
        snapshots = self.repository.list_all()

        results = []
        with ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="cf-sync") as executor:
            pending = {}
            for snapshot in snapshots:
                result = SubjectSyncResult(handle=snapshot.handle)
                pending[executor.submit(self.build_snapshot, snapshot, result)] = result

            for future in as_completed(pending):
                result = pending[future]
                try:
                    self.commit(future.result(), result)
                except Exception as exc:
                    self._fail(result, exc)
                results.append(result)

        results.sort(key=lambda item: item.handle)
        batch = BatchSyncResult(
            results=results,
            duration_ms=int((time.monotonic() - started) * 1000),
        )
        logger.info(
            "sync_all students=%s ok=%s failed=%s reminders=%s duration_ms=%s",
            len(results),
            len(batch.succeeded),
            len(batch.failed),
            batch.reminders_sent,
            batch.duration_ms,
        )
        return batch


def build_sync_service(**overrides) -> StudentSyncService:
    threshold_days = overrides.pop("threshold_days", None)
    if threshold_days is None:
        threshold_days = getattr(settings, "INACTIVITY_THRESHOLD_DAYS", 7)
    client = overrides.pop("client", CodeforcesClient)

    options = {
        "client": client,
        "repository": StudentRepository(),
        "notifier": EmailReminderNotifier(threshold_days=threshold_days),
        "enricher": build_contest_enricher(client),
        "threshold_days": threshold_days,
        "max_workers": getattr(settings, "SYNC_MAX_WORKERS", 4),
        "recent_limit": getattr(settings, "RECENT_SUBMISSIONS_LIMIT", DEFAULT_RECENT_LIMIT),
    }
    options.update(overrides)
    return StudentSyncService(**options)
