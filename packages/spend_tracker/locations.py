"""Location memory: recognize places the owner has spent at before.

A remembered location holds a drifting centroid of every visit folded into it
plus the amount/category of the most recent visit. Lookups scan the owner's
locations through the bounding-box prefilter and then confirm with the exact
haversine distance. Merges fold a new visit into the centroid with the online
mean update and patch the row with a compare-and-swap on ``visit_count`` so two
concurrent merges cannot both claim the same count.

All functions take a caller-owned ``Session``; the caller commits (see
``db.client.session_scope``).
"""

from __future__ import annotations

import math
from collections.abc import Sequence
from decimal import Decimal
from typing import Any

from db.models.spending import StRememberedLocation
from sqlalchemy import select, update
from sqlalchemy.orm import Session

from .categories import ensure_owned_category
from .config import LocationMemoryConfig
from .errors import ConcurrentMergeError, InvalidInputError, NotFoundError
from .geo import distance_meters, prefilter, wrap_longitude
from .logging_setup import get_logger
from .models import (
    Coordinate,
    NearbyLocation,
    RememberedLocation,
    SpendObservation,
    new_id,
    now_ms,
    to_amount,
    validate_input,
)

logger = get_logger(__name__)


# ----------------------------------------------------------------------------
# Lookup
# ----------------------------------------------------------------------------


def _resolve_radius(radius_m: float | None, default: float) -> float:
    if radius_m is None:
        return default
    if not math.isfinite(radius_m) or radius_m <= 0:
        raise InvalidInputError(f"radius_m must be a positive number, got {radius_m!r}")
    return float(radius_m)


def _owner_rows(session: Session, owner_id: str) -> Sequence[StRememberedLocation]:
    # Deterministic scan order so distance ties resolve the same way every call
    stmt = (
        select(StRememberedLocation)
        .where(StRememberedLocation.owner_id == owner_id)
        .order_by(StRememberedLocation.created_at, StRememberedLocation.id)
    )
    return session.execute(stmt).scalars().all()


def _within(
    rows: Sequence[StRememberedLocation], lat: float, lon: float, radius_m: float
) -> list[tuple[StRememberedLocation, float]]:
    """Rows inside ``radius_m`` paired with their distance, in scan order."""

    hits: list[tuple[StRememberedLocation, float]] = []
    for row in prefilter(rows, lat, lon, radius_m):
        d = distance_meters(lat, lon, row.latitude, row.longitude)
        # The box admits its corners; only the exact distance decides
        if d <= radius_m:
            hits.append((row, d))
    return hits


def _nearest_row(
    session: Session, owner_id: str, lat: float, lon: float, radius_m: float
) -> StRememberedLocation | None:
    hits = _within(_owner_rows(session, owner_id), lat, lon, radius_m)
    if not hits:
        return None
    # min() keeps the first of equal keys, so ties go to the earliest scanned row
    return min(hits, key=lambda h: h[1])[0]


def find_all_within(
    session: Session,
    owner_id: str,
    latitude: float,
    longitude: float,
    radius_m: float | None = None,
    *,
    config: LocationMemoryConfig | None = None,
) -> list[NearbyLocation]:
    """Return every remembered location within the radius, nearest first.

    ``radius_m`` defaults to the suggestion radius from ``config`` (200 m unless
    overridden). Each result carries its exact distance in meters.
    """

    cfg = config or LocationMemoryConfig.from_env()
    radius = _resolve_radius(radius_m, cfg.suggest_radius_m)
    point = validate_input(Coordinate, latitude=latitude, longitude=longitude)

    hits = _within(_owner_rows(session, owner_id), point.latitude, point.longitude, radius)
    hits.sort(key=lambda h: h[1])  # stable: ties keep scan order
    return [NearbyLocation(RememberedLocation.from_row(row), d) for row, d in hits]


def find_nearest(
    session: Session,
    owner_id: str,
    latitude: float,
    longitude: float,
    radius_m: float | None = None,
    *,
    config: LocationMemoryConfig | None = None,
) -> RememberedLocation | None:
    """Return the single closest remembered location within the radius, if any.

    ``radius_m`` defaults to the merge radius from ``config`` (100 m unless
    overridden), since this is the lookup used to pick a silent merge target.
    """

    cfg = config or LocationMemoryConfig.from_env()
    radius = _resolve_radius(radius_m, cfg.merge_radius_m)
    point = validate_input(Coordinate, latitude=latitude, longitude=longitude)

    row = _nearest_row(session, owner_id, point.latitude, point.longitude, radius)
    return RememberedLocation.from_row(row) if row is not None else None


# ----------------------------------------------------------------------------
# Merge
# ----------------------------------------------------------------------------


def merged_coordinate(
    latitude: float,
    longitude: float,
    visit_count: int,
    incoming_latitude: float,
    incoming_longitude: float,
) -> tuple[float, float]:
    """Fold one more visit into a centroid built from ``visit_count`` visits.

    Online mean update: ``c' = c + (x - c) / (n + 1)``. Equivalent to the mean
    of every visit seen so far without keeping the visits themselves. The
    longitude step takes the short way round, so visits on both sides of the
    antimeridian average to a point between them.
    """

    if visit_count < 1:
        raise InvalidInputError(f"visit_count must be >= 1, got {visit_count}")
    new_count = visit_count + 1
    return (
        latitude + (incoming_latitude - latitude) / new_count,
        wrap_longitude(longitude + wrap_longitude(incoming_longitude - longitude) / new_count),
    )


def _owned_location(session: Session, owner_id: str, location_id: str) -> StRememberedLocation:
    row = session.get(StRememberedLocation, location_id)
    if row is None or row.owner_id != owner_id:
        raise NotFoundError("remembered location", location_id)
    return row


def _apply_merge(
    session: Session, row: StRememberedLocation, obs: SpendObservation
) -> None:
    """Patch ``row`` with one more visit, guarded by its current ``visit_count``."""

    n = row.visit_count
    lat, lon = merged_coordinate(row.latitude, row.longitude, n, obs.latitude, obs.longitude)
    values: dict[str, Any] = {
        "latitude": lat,
        "longitude": lon,
        # Last visit wins for the hints; only the coordinate is averaged
        "amount": obs.amount,
        "category_id": obs.category_id,
        "visit_count": n + 1,
    }
    if obs.name is not None:
        values["name"] = obs.name

    result = session.execute(
        update(StRememberedLocation)
        .where(StRememberedLocation.id == row.id)
        .where(StRememberedLocation.visit_count == n)
        .values(**values)
    )
    if result.rowcount != 1:
        raise ConcurrentMergeError(row.id, n)


def merge_or_create(
    session: Session,
    owner_id: str,
    latitude: float,
    longitude: float,
    amount: Decimal | float | int | str,
    category_id: str | None = None,
    target_id: str | None = None,
    *,
    name: str | None = None,
    config: LocationMemoryConfig | None = None,
) -> str:
    """Fold a visit into a remembered location, or remember a new one.

    With ``target_id`` the visit merges into that location (typically one the
    user picked from :func:`find_all_within`), which must belong to
    ``owner_id``. Without it, the nearest location within the merge radius is
    used, and a new location with ``visit_count=1`` is created when none is in
    range. Returns the id of the merged or created location.

    Raises
    ------
    InvalidInputError
        Non-positive amount or out-of-range coordinate.
    NotFoundError
        ``target_id`` or ``category_id`` is missing or not owned by the caller.
    ConcurrentMergeError
        Another merge updated the target between read and write.
    """

    obs = validate_input(
        SpendObservation,
        latitude=latitude,
        longitude=longitude,
        amount=amount,
        category_id=category_id,
        name=name,
    )

    if target_id is not None:
        target = _owned_location(session, owner_id, target_id)
    else:
        cfg = config or LocationMemoryConfig.from_env()
        target = _nearest_row(session, owner_id, obs.latitude, obs.longitude, cfg.merge_radius_m)
    ensure_owned_category(session, owner_id, obs.category_id)

    if target is not None:
        _apply_merge(session, target, obs)
        logger.info(
            "merged visit into location %s (owner=%s, visits=%d)",
            target.id,
            owner_id,
            target.visit_count,
        )
        return target.id

    row = StRememberedLocation(
        id=new_id(),
        owner_id=owner_id,
        latitude=obs.latitude,
        longitude=obs.longitude,
        amount=obs.amount,
        category_id=obs.category_id,
        name=obs.name,
        visit_count=1,
        created_at=now_ms(),
    )
    session.add(row)
    session.flush()
    logger.info("remembered new location %s (owner=%s)", row.id, owner_id)
    return row.id


# ----------------------------------------------------------------------------
# Management
# ----------------------------------------------------------------------------


def list_locations(session: Session, owner_id: str) -> list[RememberedLocation]:
    """Return the owner's remembered locations, newest first."""

    stmt = (
        select(StRememberedLocation)
        .where(StRememberedLocation.owner_id == owner_id)
        .order_by(StRememberedLocation.created_at.desc(), StRememberedLocation.id.desc())
    )
    return [RememberedLocation.from_row(r) for r in session.execute(stmt).scalars()]


def get_location(session: Session, owner_id: str, location_id: str) -> RememberedLocation:
    return RememberedLocation.from_row(_owned_location(session, owner_id, location_id))


def update_location(
    session: Session,
    owner_id: str,
    location_id: str,
    *,
    name: str | None = None,
    amount: Decimal | float | int | str | None = None,
    category_id: str | None = None,
    clear_category: bool = False,
) -> RememberedLocation:
    """Edit the remembered hints of a location without counting a visit.

    ``None`` leaves a field unchanged; an empty ``name`` clears it and
    ``clear_category=True`` detaches the category. Coordinates and
    ``visit_count`` are only ever changed by merges.
    """

    if clear_category and category_id is not None:
        raise InvalidInputError("pass either category_id or clear_category, not both")
    try:
        new_amount = to_amount(amount) if amount is not None else None
    except ValueError as e:
        raise InvalidInputError(str(e)) from e

    row = _owned_location(session, owner_id, location_id)
    ensure_owned_category(session, owner_id, category_id)

    if name is not None:
        row.name = name.strip() or None
    if new_amount is not None:
        row.amount = new_amount
    if clear_category:
        row.category_id = None
    elif category_id is not None:
        row.category_id = category_id
    session.flush()
    return RememberedLocation.from_row(row)


def remove_location(session: Session, owner_id: str, location_id: str) -> str:
    row = _owned_location(session, owner_id, location_id)
    session.delete(row)
    session.flush()
    logger.info("removed location %s (owner=%s)", location_id, owner_id)
    return location_id


__all__ = [
    "find_all_within",
    "find_nearest",
    "get_location",
    "list_locations",
    "merge_or_create",
    "merged_coordinate",
    "remove_location",
    "update_location",
]
