import logging
from datetime import datetime, timezone

import requests
from django.conf import settings

from tracker.exceptions import FetchError
from tracker.services.snapshots import RatingEvent, SubmissionEvent

logger = logging.getLogger(__name__)


def _from_epoch(seconds) -> datetime:
    return datetime.fromtimestamp(int(seconds), tz=timezone.utc)


class CodeforcesClient:
    """
    Read-only access to the Codeforces public API.

    Every public method raises FetchError on any failure (transport, timeout,
    HTTP status, non-OK payload, malformed rows). There are no retries here;
    callers decide what an unavailable feed means for them.
    """

    DEFAULT_BASE_URL = "https://codeforces.com/api"

    @classmethod
    def _request(cls, method: str, params: dict):
        base_url = getattr(settings, "CODEFORCES_API_URL", cls.DEFAULT_BASE_URL).rstrip("/")
        url = f"{base_url}/{method}"
        timeout = getattr(settings, "CODEFORCES_TIMEOUT_SECONDS", 10)
        logger.debug("Codeforces request method=%s params=%s", method, params)
        try:
            response = requests.get(url, params=params, timeout=timeout)
            response.raise_for_status()
            data = response.json()
        except requests.RequestException as exc:
            raise FetchError(f"Codeforces {method} failed: {exc}") from exc
        except ValueError as exc:
            raise FetchError(f"Codeforces {method} returned invalid JSON") from exc

        if not isinstance(data, dict):
            raise FetchError(f"Codeforces {method} returned an unexpected payload")
        if data.get("status") != "OK":
            comment = data.get("comment", "")
            raise FetchError(f"Codeforces {method} error: {comment}")
        return data.get("result")

    @staticmethod
    def _require_handle(handle):
        if not handle:
            raise FetchError("empty Codeforces handle")

    @classmethod
    def get_rating_history(cls, handle) -> list[RatingEvent]:
        """Rating changes for ``handle``, oldest first."""
        cls._require_handle(handle)
        result = cls._request("user.rating", {"handle": handle})

        try:
            events = [
                RatingEvent(
                    contest_id=int(row["contestId"]),
                    contest_name=row.get("contestName", ""),
                    rank=int(row.get("rank") or 0),
                    old_rating=int(row["oldRating"]),
                    new_rating=int(row["newRating"]),
                    updated_at=_from_epoch(row["ratingUpdateTimeSeconds"]),
                )
                for row in result or []
            ]
        except (KeyError, TypeError, ValueError) as exc:
            raise FetchError(f"Malformed user.rating row for {handle}: {exc}") from exc

        events.sort(key=lambda event: event.updated_at)
        return events

    @classmethod
    def get_submissions(cls, handle, count=None) -> list[SubmissionEvent]:
        """Most recent submissions for ``handle``, newest first, as delivered."""
        cls._require_handle(handle)
        if count is None:
            count = getattr(settings, "CODEFORCES_SUBMISSIONS_PAGE_SIZE", 1000)
        result = cls._request("user.status", {"handle": handle, "from": 1, "count": count})

        submissions = []
        try:
            for row in result or []:
                problem = row.get("problem", {})
                if "contestId" not in problem or "index" not in problem:
                    continue
                submissions.append(
                    SubmissionEvent(
                        submission_id=int(row["id"]),
                        contest_id=int(problem["contestId"]),
                        problem_index=problem["index"],
                        problem_name=problem.get("name", ""),
                        problem_rating=int(problem.get("rating") or 0),
                        verdict=row.get("verdict") or "UNKNOWN",
                        submitted_at=_from_epoch(row["creationTimeSeconds"]),
                    )
                )
        except (AttributeError, KeyError, TypeError, ValueError) as exc:
            raise FetchError(f"Malformed user.status row for {handle}: {exc}") from exc

        return submissions

    @classmethod
    def get_contest_problem_indices(cls, contest_id, handle) -> list[str]:
        """Problem indices of ``contest_id`` in contest order."""
        cls._require_handle(handle)
        result = cls._request(
            "contest.standings",
            {"contestId": contest_id, "handles": handle},
        )
        try:
            return [problem["index"] for problem in result["problems"]]
        except (KeyError, TypeError) as exc:
            raise FetchError(f"Malformed contest.standings payload for contest {contest_id}") from exc
