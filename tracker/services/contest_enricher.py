import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Iterable, Sequence

from django.conf import settings

from tracker.exceptions import EnrichmentPartialFailure, FetchError
from tracker.services.snapshots import ContestRecord, ProblemKey, RatingEvent

logger = logging.getLogger(__name__)

STRATEGY_STANDINGS = "standings"
STRATEGY_BASIC = "basic"


@dataclass
class EnrichmentResult:
    records: list[ContestRecord]
    failed_contest_ids: list[int] = field(default_factory=list)


def ratings_summary(events: Sequence[RatingEvent]) -> tuple[int, int]:
    """(current_rating, max_rating) from the rating history, (0, 0) when empty."""
    if not events:
        return 0, 0
    latest = max(events, key=lambda event: event.updated_at)
    return latest.new_rating, max(event.new_rating for event in events)


def solved_indices_by_contest(solved_keys: Iterable[ProblemKey]) -> dict[int, set[str]]:
    indices: dict[int, set[str]] = {}
    for key in solved_keys:
        indices.setdefault(key.contest_id, set()).add(key.index)
    return indices


def _unique_by_contest(events: Sequence[RatingEvent]) -> list[RatingEvent]:
    seen = set()
    unique = []
    for event in events:
        if event.contest_id in seen:
            continue
        seen.add(event.contest_id)
        unique.append(event)
    return unique


def _build_record(event: RatingEvent, unsolved: Sequence[str] = ()) -> ContestRecord:
    return ContestRecord(
        contest_id=event.contest_id,
        contest_name=event.contest_name,
        rank=event.rank,
        old_rating=event.old_rating,
        new_rating=event.new_rating,
        date=event.updated_at,
        unsolved_problems=tuple(unsolved),
    )


class ContestEnricher:
    """Turns rating-change events into finalized contest records."""

    def enrich(
        self,
        handle: str,
        rating_events: Sequence[RatingEvent],
        solved_keys: Iterable[ProblemKey],
    ) -> EnrichmentResult:
        raise NotImplementedError


class BasicContestEnricher(ContestEnricher):
    """Contest records without standings lookups; unsolved lists stay empty."""

    def enrich(self, handle, rating_events, solved_keys):
        return EnrichmentResult(
            records=[_build_record(event) for event in _unique_by_contest(rating_events)],
        )


class StandingsContestEnricher(ContestEnricher):
    """
    Cross-references each contest's standings with the solved set.

    Standings are fetched on a pool of at most ``max_workers`` threads. A
    contest whose standings cannot be fetched keeps its record with an empty
    unsolved list; the rest of the history is unaffected.
    """

    def __init__(self, client, max_workers: int = 4):
        self.client = client
        self.max_workers = max(1, int(max_workers))

    def _unsolved_for(self, handle, event: RatingEvent, solved_indices: set[str]) -> tuple[str, ...]:
        try:
            indices = self.client.get_contest_problem_indices(event.contest_id, handle)
        except FetchError as exc:
            raise EnrichmentPartialFailure(event.contest_id, str(exc)) from exc
        return tuple(index for index in indices if index not in solved_indices)

    def _enrich_one(self, handle, event, solved_indices) -> tuple[ContestRecord, bool]:
        try:
            unsolved = self._unsolved_for(handle, event, solved_indices)
        except EnrichmentPartialFailure as exc:
            logger.warning(
                "Contest enrichment degraded handle=%s contest_id=%s: %s",
                handle,
                exc.contest_id,
                exc,
            )
            return _build_record(event), False
        return _build_record(event, unsolved), True

    def enrich(self, handle, rating_events, solved_keys):
        events = _unique_by_contest(rating_events)
        if not events:
            return EnrichmentResult(records=[])

        by_contest = solved_indices_by_contest(solved_keys)
        workers = min(self.max_workers, len(events))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="cf-standings") as executor:
            outcomes = list(
                executor.map(
                    lambda event: self._enrich_one(handle, event, by_contest.get(event.contest_id, set())),
                    events,
                )
            )

        return EnrichmentResult(
            records=[record for record, _ in outcomes],
            failed_contest_ids=[
                record.contest_id for record, enriched in outcomes if not enriched
            ],
        )


def build_contest_enricher(client, strategy=None, max_workers=None) -> ContestEnricher:
    strategy = (strategy or getattr(settings, "CONTEST_ENRICHMENT_STRATEGY", STRATEGY_STANDINGS)).lower()
    if strategy == STRATEGY_BASIC:
        return BasicContestEnricher()
    if strategy != STRATEGY_STANDINGS:
        raise ValueError(f"Unknown contest enrichment strategy: {strategy}")
    if max_workers is None:
        max_workers = getattr(settings, "CONTEST_STANDINGS_MAX_WORKERS", 4)
    return StandingsContestEnricher(client, max_workers=max_workers)
