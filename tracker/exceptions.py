class TrackerError(Exception):
    """Base class for errors raised by the sync engine."""


class FetchError(TrackerError):
    """A Codeforces API call failed (transport, HTTP status, payload or parse)."""


class EnrichmentPartialFailure(TrackerError):
    """Standings for one contest could not be fetched; the contest keeps an empty unsolved list."""

    def __init__(self, contest_id, message=""):
        self.contest_id = contest_id
        super().__init__(message or f"standings unavailable for contest {contest_id}")


class PersistenceError(TrackerError):
    """Storage read or write failed for a student."""


class StudentNotFound(PersistenceError):
    pass


class StudentConflict(PersistenceError):
    """The stored row no longer matches the handle the snapshot was built for."""


class DeliveryFailure(TrackerError):
    """The inactivity reminder was not delivered."""
