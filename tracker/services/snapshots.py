"""
Value types passed between the sync stages.

Everything here is immutable; a sync pass builds a fresh ``SubjectSnapshot``
and hands it to the repository instead of patching stored rows field by field.
The ``to_dict`` / ``from_dict`` pairs produce the JSON stored in the
``Student`` JSON columns, and are deterministic so re-running a sync over the
same upstream data stores identical values.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

ACCEPTED_VERDICT = "OK"


def _dt_to_str(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def _dt_from_str(value) -> datetime | None:
    if not value:
        return None
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(value)


@dataclass(frozen=True)
class ProblemKey:
    contest_id: int
    index: str

    @property
    def problem_id(self) -> str:
        return f"{self.contest_id}{self.index}"


@dataclass(frozen=True)
class SubmissionEvent:
    submission_id: int
    contest_id: int
    problem_index: str
    problem_name: str
    problem_rating: int
    verdict: str
    submitted_at: datetime

    @property
    def key(self) -> ProblemKey:
        return ProblemKey(self.contest_id, self.problem_index)

    @property
    def accepted(self) -> bool:
        return self.verdict == ACCEPTED_VERDICT


@dataclass(frozen=True)
class RatingEvent:
    contest_id: int
    contest_name: str
    rank: int
    old_rating: int
    new_rating: int
    updated_at: datetime


@dataclass(frozen=True)
class ContestRecord:
    contest_id: int
    contest_name: str
    rank: int
    old_rating: int
    new_rating: int
    date: datetime
    unsolved_problems: tuple[str, ...] = ()

    @property
    def rating_change(self) -> int:
        return self.new_rating - self.old_rating

    def to_dict(self) -> dict:
        return {
            "contest_id": self.contest_id,
            "contest_name": self.contest_name,
            "rank": self.rank,
            "old_rating": self.old_rating,
            "new_rating": self.new_rating,
            "rating_change": self.rating_change,
            "date": _dt_to_str(self.date),
            "unsolved_problems": list(self.unsolved_problems),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ContestRecord":
        # rating_change is derived, never read back
        return cls(
            contest_id=int(data["contest_id"]),
            contest_name=data.get("contest_name") or "",
            rank=int(data.get("rank") or 0),
            old_rating=int(data.get("old_rating") or 0),
            new_rating=int(data.get("new_rating") or 0),
            date=_dt_from_str(data.get("date")),
            unsolved_problems=tuple(data.get("unsolved_problems") or ()),
        )


@dataclass(frozen=True)
class RecentSubmission:
    problem_id: str
    label: str
    rating: int
    verdict: str
    submitted_at: str

    @classmethod
    def from_event(cls, event: SubmissionEvent) -> "RecentSubmission":
        problem_id = event.key.problem_id
        return cls(
            problem_id=problem_id,
            label=f"{problem_id} - {event.problem_name}" if event.problem_name else problem_id,
            rating=event.problem_rating,
            verdict=event.verdict,
            submitted_at=event.submitted_at.isoformat(),
        )

    def to_dict(self) -> dict:
        return {
            "problem_id": self.problem_id,
            "label": self.label,
            "rating": self.rating,
            "verdict": self.verdict,
            "submitted_at": self.submitted_at,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "RecentSubmission":
        return cls(
            problem_id=data.get("problem_id") or "",
            label=data.get("label") or "",
            rating=int(data.get("rating") or 0),
            verdict=data.get("verdict") or "",
            submitted_at=data.get("submitted_at") or "",
        )


@dataclass(frozen=True)
class SolveStats:
    total_solved: int = 0
    problems_by_rating: tuple[tuple[int, int], ...] = ()
    average_rating: float = 0.0
    problems_per_day: float = 0.0
    recent_submissions: tuple[RecentSubmission, ...] = ()

    def to_dict(self) -> dict:
        return {
            "total_solved": self.total_solved,
            "problems_by_rating": [
                {"rating": rating, "count": count}
                for rating, count in self.problems_by_rating
            ],
            "average_rating": self.average_rating,
            "problems_per_day": self.problems_per_day,
            "recent_submissions": [item.to_dict() for item in self.recent_submissions],
        }

    @classmethod
    def from_dict(cls, data: dict | None) -> "SolveStats":
        if not data:
            return cls()
        return cls(
            total_solved=int(data.get("total_solved") or 0),
            problems_by_rating=tuple(
                (int(row["rating"]), int(row["count"]))
                for row in data.get("problems_by_rating") or ()
            ),
            average_rating=float(data.get("average_rating") or 0),
            problems_per_day=float(data.get("problems_per_day") or 0),
            recent_submissions=tuple(
                RecentSubmission.from_dict(row)
                for row in data.get("recent_submissions") or ()
            ),
        )


@dataclass(frozen=True)
class InactivityState:
    last_submission_date: datetime | None = None
    email_reminders_enabled: bool = True
    reminder_emails_sent: int = 0
    last_reminder_sent: datetime | None = None


@dataclass(frozen=True)
class SubjectSnapshot:
    handle: str
    name: str = ""
    email: str = ""
    current_rating: int = 0
    max_rating: int = 0
    contest_history: tuple[ContestRecord, ...] = ()
    solve_stats: SolveStats = field(default_factory=SolveStats)
    inactivity: InactivityState = field(default_factory=InactivityState)
