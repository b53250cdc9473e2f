from dataclasses import dataclass
from datetime import datetime, timedelta

from tracker.services.snapshots import ACCEPTED_VERDICT, ContestRecord, RecentSubmission, SubjectSnapshot


@dataclass(frozen=True)
class WindowSolveStats:
    days: int
    total_solved: int
    problems_by_rating: tuple[tuple[int, int], ...]
    submissions: tuple[RecentSubmission, ...]


def window_start(days: int, now: datetime) -> datetime:
    if days < 0:
        raise ValueError(f"days must be non-negative, got {days}")
    return now - timedelta(days=days)


def contests_since(snapshot: SubjectSnapshot, days: int, now: datetime) -> tuple[ContestRecord, ...]:
    """Contest history entries dated within the last ``days`` days, in stored order."""
    start = window_start(days, now)
    return tuple(
        record for record in snapshot.contest_history
        if record.date is not None and record.date >= start
    )


def recent_solve_stats(snapshot: SubjectSnapshot, days: int, now: datetime) -> WindowSolveStats:
    """
    Solve figures for the last ``days`` days.

    Only the stored recent submissions can be windowed, so ``total_solved``
    counts accepted submissions among those. The rating histogram is the
    all-time one.
    """
    start = window_start(days, now)
    submissions = tuple(
        item for item in snapshot.solve_stats.recent_submissions
        if item.submitted_at and datetime.fromisoformat(item.submitted_at) >= start
    )
    return WindowSolveStats(
        days=days,
        total_solved=sum(1 for item in submissions if item.verdict == ACCEPTED_VERDICT),
        problems_by_rating=snapshot.solve_stats.problems_by_rating,
        submissions=submissions,
    )
