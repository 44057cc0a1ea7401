"""Public API surface and orchestration for the ``spend_tracker`` package.

The location-memory and aggregation operations live in their own modules and
are re-exported here. :func:`record_transaction` is the one composite flow:
it stores a transaction and, when the entry carries a coordinate, folds that
visit into the owner's location memory within the same session so both writes
commit or roll back together.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from sqlalchemy.orm import Session

from .aggregation import (
    aggregate_by_category,
    aggregate_by_category_for_month,
    aggregate_by_month,
)
from .config import LocationMemoryConfig
from .errors import InvalidInputError
from .locations import find_all_within, find_nearest, merge_or_create
from .models import Coordinate, Transaction, TransactionKind, TransactionOrigin, validate_input
from .transactions import create_transaction


@dataclass(frozen=True, slots=True)
class RecordedSpend:
    """Outcome of :func:`record_transaction`.

    ``location_id`` is ``None`` when the entry had no coordinate.
    """

    transaction: Transaction
    location_id: str | None


def record_transaction(
    session: Session,
    owner_id: str,
    amount: Decimal | float | int | str,
    *,
    name: str | None = None,
    category_id: str | None = None,
    kind: TransactionKind = "expense",
    origin: TransactionOrigin = "web",
    latitude: float | None = None,
    longitude: float | None = None,
    location_id: str | None = None,
    config: LocationMemoryConfig | None = None,
) -> RecordedSpend:
    """Create a transaction and remember where it happened.

    ``location_id`` selects a previously suggested place to merge into;
    otherwise the nearest place within the merge radius is used. Income is
    never folded into location memory.
    """

    if (latitude is None) != (longitude is None):
        raise InvalidInputError("latitude and longitude must be given together")
    if location_id is not None and latitude is None:
        raise InvalidInputError("location_id requires a coordinate for the visit")
    if latitude is not None:
        # Reject a bad coordinate before the transaction row is written
        validate_input(Coordinate, latitude=latitude, longitude=longitude)

    tx = create_transaction(
        session,
        owner_id,
        amount,
        name=name,
        category_id=category_id,
        kind=kind,
        origin=origin,
    )
    if latitude is None or longitude is None or kind != "expense":
        return RecordedSpend(tx, None)

    loc_id = merge_or_create(
        session,
        owner_id,
        latitude,
        longitude,
        tx.amount,
        tx.category_id,
        location_id,
        config=config,
    )
    return RecordedSpend(tx, loc_id)


__all__ = [
    "RecordedSpend",
    "aggregate_by_category",
    "aggregate_by_category_for_month",
    "aggregate_by_month",
    "find_all_within",
    "find_nearest",
    "merge_or_create",
    "record_transaction",
]
