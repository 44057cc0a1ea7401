"""Exception taxonomy for ``spend_tracker``.

Every failure path raises before the single store mutation a call performs.
Store errors (``sqlalchemy.exc.SQLAlchemyError``) are never wrapped here; they
propagate to the caller unchanged.
"""

from __future__ import annotations


class SpendTrackerError(Exception):
    """Base class for errors raised by the ``spend_tracker`` services."""


class InvalidInputError(SpendTrackerError, ValueError):
    """Rejected input: non-positive amount, bad coordinate, malformed window."""


class NotFoundError(SpendTrackerError, LookupError):
    """A referenced record is missing or owned by someone else.

    Ownership mismatches are reported exactly like missing rows so callers
    cannot probe for identifiers that belong to other owners.
    """

    def __init__(self, kind: str, record_id: str) -> None:
        self.kind = kind
        self.record_id = record_id
        super().__init__(f"{kind} not found: {record_id!r}")


class ConcurrentMergeError(SpendTrackerError):
    """A remembered location changed between read and compare-and-swap patch.

    Raised when another writer merged into the same location first. Nothing was
    written; the caller may re-run the merge against fresh state.
    """

    def __init__(self, location_id: str, expected_count: int) -> None:
        self.location_id = location_id
        self.expected_count = expected_count
        super().__init__(
            f"remembered location {location_id!r} no longer has visit_count "
            f"{expected_count}; another merge won the race"
        )


__all__ = [
    "SpendTrackerError",
    "InvalidInputError",
    "NotFoundError",
    "ConcurrentMergeError",
]
