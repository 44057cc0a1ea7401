"""Spend rollups for charting: totals per category and per calendar month.

Both rollups are read-only projections of the owner's transactions at call
time. Month boundaries and month keys are computed on a calendar: the zone
configured via ``SPEND_TRACKER_REPORT_TZ`` (or passed explicitly), otherwise
the process-local calendar. Changing the zone changes which month a
transaction near midnight lands in, so reports should pin one.
"""

from __future__ import annotations

from collections import defaultdict
from datetime import datetime, tzinfo
from decimal import Decimal

from db.models.spending import StCategory, StTransaction
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from .config import LocationMemoryConfig
from .errors import InvalidInputError
from .models import UNCATEGORIZED, CategoryTotal, MonthTotal

_CENT = Decimal("0.01")


def _zone(tz: tzinfo | None, config: LocationMemoryConfig | None) -> tzinfo | None:
    if tz is not None:
        return tz
    return (config or LocationMemoryConfig.from_env()).zone()


def _to_ms(dt: datetime) -> int:
    # Naive datetimes are read on the local calendar by .timestamp()
    return round(dt.timestamp() * 1000)


def _month_start(year: int, month: int, tz: tzinfo | None) -> datetime:
    return datetime(year, month, 1, tzinfo=tz)


def _shift_month(year: int, month: int, delta: int) -> tuple[int, int]:
    y, m0 = divmod(year * 12 + (month - 1) + delta, 12)
    return y, m0 + 1


def month_key(created_at_ms: int, tz: tzinfo | None = None) -> str:
    """``"YYYY-MM"`` of an epoch-ms instant on the given (or local) calendar."""

    dt = datetime.fromtimestamp(created_at_ms / 1000, tz)
    return f"{dt.year:04d}-{dt.month:02d}"


def month_bounds(year: int, month: int, tz: tzinfo | None = None) -> tuple[int, int]:
    """Inclusive epoch-ms range covering one calendar month."""

    if not 1 <= month <= 12:
        raise InvalidInputError(f"month must be 1..12, got {month}")
    ny, nm = _shift_month(year, month, 1)
    start = _to_ms(_month_start(year, month, tz))
    end = _to_ms(_month_start(ny, nm, tz)) - 1
    return start, end


def window_start(months_back: int, *, now: datetime | None = None, tz: tzinfo | None = None) -> int:
    """First instant of the month ``months_back - 1`` months before ``now``'s month.

    ``months_back=1`` is the current month only; ``3`` adds the two before it.
    """

    if isinstance(months_back, bool) or not isinstance(months_back, int) or months_back < 1:
        raise InvalidInputError(f"months_back must be a positive integer, got {months_back!r}")
    current = now or datetime.now(tz)
    if current.tzinfo is not None:
        current = current.astimezone(tz) if tz is not None else current.astimezone()
    y, m = _shift_month(current.year, current.month, -(months_back - 1))
    return _to_ms(_month_start(y, m, tz))


def aggregate_by_category(
    session: Session, owner_id: str, start_ms: int, end_ms: int
) -> list[CategoryTotal]:
    """Sum and count the owner's transactions per category within a window.

    The window ``[start_ms, end_ms]`` is inclusive at both ends. Transactions
    without a category are grouped under :data:`UNCATEGORIZED`. Output order is
    unspecified.
    """

    if start_ms > end_ms:
        raise InvalidInputError("start_ms must not be after end_ms")

    stmt = (
        select(
            StTransaction.category_id,
            func.sum(StTransaction.amount),
            func.count(StTransaction.id),
        )
        .where(StTransaction.owner_id == owner_id)
        .where(StTransaction.created_at >= start_ms)
        .where(StTransaction.created_at <= end_ms)
        .group_by(StTransaction.category_id)
    )
    return [
        CategoryTotal(
            category=cat_id if cat_id is not None else UNCATEGORIZED,
            # SQLite sums NUMERIC as binary floats
            total=Decimal(str(total)).quantize(_CENT),
            count=int(count),
        )
        for cat_id, total, count in session.execute(stmt).all()
    ]


def aggregate_by_category_for_month(
    session: Session,
    owner_id: str,
    year: int,
    month: int,
    *,
    tz: tzinfo | None = None,
    config: LocationMemoryConfig | None = None,
) -> list[CategoryTotal]:
    """Category rollup over one calendar month, with category display fields.

    Groups whose category row no longer exists are returned without display
    fields, like the uncategorized bucket.
    """

    start, end = month_bounds(year, month, _zone(tz, config))
    totals = aggregate_by_category(session, owner_id, start, end)

    ids = [t.category_id for t in totals if t.category_id is not None]
    cats: dict[str, StCategory] = {}
    if ids:
        rows = session.execute(select(StCategory).where(StCategory.id.in_(ids))).scalars()
        cats = {r.id: r for r in rows}

    enriched: list[CategoryTotal] = []
    for t in totals:
        cat = cats.get(t.category_id) if t.category_id is not None else None
        if cat is None:
            enriched.append(t)
            continue
        enriched.append(
            CategoryTotal(
                category=t.category,
                total=t.total,
                count=t.count,
                emoji=cat.emoji,
                en_name=cat.en_name,
                zh_name=cat.zh_name,
            )
        )
    return enriched


def aggregate_by_month(
    session: Session,
    owner_id: str,
    months_back: int,
    category_id: str | None = None,
    *,
    now: datetime | None = None,
    tz: tzinfo | None = None,
    config: LocationMemoryConfig | None = None,
) -> list[MonthTotal]:
    """Sum and count the owner's transactions per calendar month, oldest first.

    Covers every transaction at or after :func:`window_start`, optionally only
    those in ``category_id``.
    """

    zone = _zone(tz, config)
    start = window_start(months_back, now=now, tz=zone)

    stmt = (
        select(StTransaction.created_at, StTransaction.amount)
        .where(StTransaction.owner_id == owner_id)
        .where(StTransaction.created_at >= start)
    )
    if category_id is not None:
        stmt = stmt.where(StTransaction.category_id == category_id)

    totals: dict[str, Decimal] = defaultdict(Decimal)
    counts: dict[str, int] = defaultdict(int)
    for created_at, amount in session.execute(stmt).all():
        key = month_key(created_at, zone)
        totals[key] += amount
        counts[key] += 1

    return [MonthTotal(month=k, total=totals[k], count=counts[k]) for k in sorted(totals)]


__all__ = [
    "aggregate_by_category",
    "aggregate_by_category_for_month",
    "aggregate_by_month",
    "month_bounds",
    "month_key",
    "window_start",
]
