from collections import Counter
from datetime import datetime
from typing import Iterable, Sequence

from tracker.services.snapshots import ProblemKey, RecentSubmission, SolveStats, SubmissionEvent

DEFAULT_RECENT_LIMIT = 20


def _chronological(feed: Sequence[SubmissionEvent]) -> list[SubmissionEvent]:
    # The feed arrives newest first; reversing before the stable sort keeps
    # same-second submissions in upload order.
    return sorted(reversed(feed), key=lambda event: event.submitted_at)


def first_accepted(feed: Sequence[SubmissionEvent]) -> dict[ProblemKey, SubmissionEvent]:
    """The earliest accepted submission of every solved problem."""
    solved: dict[ProblemKey, SubmissionEvent] = {}
    for event in _chronological(feed):
        if event.accepted and event.key not in solved:
            solved[event.key] = event
    return solved


def solved_problem_keys(feed: Sequence[SubmissionEvent]) -> set[ProblemKey]:
    return set(first_accepted(feed))


def last_submission_date(feed: Iterable[SubmissionEvent]) -> datetime | None:
    """Latest submission of any verdict; rejected attempts still count as activity."""
    return max((event.submitted_at for event in feed), default=None)


def activity_window_days(feed: Sequence[SubmissionEvent]) -> int:
    if len(feed) < 2:
        return 0
    times = [event.submitted_at for event in feed]
    return (max(times) - min(times)).days


def reconcile_submissions(
    feed: Sequence[SubmissionEvent],
    recent_limit: int = DEFAULT_RECENT_LIMIT,
) -> SolveStats:
    """
    Rebuild a student's solve statistics from the raw submission feed.

    A problem counts once, at its first accepted submission. Problems without
    a rating (rating 0) count toward ``total_solved`` but stay out of the
    rating histogram and the average.
    """
    if not feed:
        return SolveStats()

    solved = first_accepted(feed)

    by_rating: Counter = Counter()
    rating_sum = 0
    for event in solved.values():
        if event.problem_rating > 0:
            by_rating[event.problem_rating] += 1
            rating_sum += event.problem_rating

    rated_count = sum(by_rating.values())
    average_rating = rating_sum / rated_count if rated_count else 0.0

    total_solved = len(solved)
    window = activity_window_days(feed)
    problems_per_day = total_solved / window if window > 0 else 0.0

    return SolveStats(
        total_solved=total_solved,
        problems_by_rating=tuple(sorted(by_rating.items())),
        average_rating=average_rating,
        problems_per_day=problems_per_day,
        recent_submissions=tuple(
            RecentSubmission.from_event(event) for event in feed[:recent_limit]
        ),
    )
