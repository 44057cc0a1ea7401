"""Category domain helpers and service operations.

Categories are owned by a user and label both transactions and remembered
locations. The core only cares about their identity (for rollup grouping) and
ownership (a caller may only attach their own categories); the remaining
fields are display data.

Exports
-------
- ``create_category(...)``: append a category at the end of the owner's order.
- ``list_categories(...)``: active first, then by ``sort_order``.
- ``get_owned_category(...)``: ownership-checked lookup used by the other
  services before they reference a category.
- ``set_category_active(...)`` and ``reorder_categories(...)``.
- ``normalize_name(...)`` and ``validate_name(...)``.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from db.models.spending import StCategory
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from .errors import InvalidInputError, NotFoundError
from .logging_setup import get_logger
from .models import Category, new_id, now_ms

logger = get_logger(__name__)

# ---------------------------
# Name normalization/validation
# ---------------------------


def normalize_name(name: str) -> str:
    """Return a trimmed, single-spaced representation of ``name``."""

    return " ".join(name.strip().split())


@dataclass(frozen=True, slots=True)
class NameValidation:
    ok: bool
    reason: str | None = None


def validate_name(name: str, *, min_len: int = 1, max_len: int = 64) -> NameValidation:
    """Length check on the normalized name.

    Unlike merchant-style codes, category labels are free text in any script,
    so no character class is enforced.
    """

    n = normalize_name(name)
    if len(n) < min_len:
        return NameValidation(False, "Name cannot be empty")
    if len(n) > max_len:
        return NameValidation(False, f"Name must be at most {max_len} characters")
    return NameValidation(True, None)


# ---------------------------
# Service operations
# ---------------------------


def _owned_row(session: Session, owner_id: str, category_id: str) -> StCategory:
    row = session.get(StCategory, category_id)
    if row is None or row.owner_id != owner_id:
        raise NotFoundError("category", category_id)
    return row


def get_owned_category(session: Session, owner_id: str, category_id: str) -> Category:
    """Return the category if it exists and belongs to ``owner_id``."""

    return Category.from_row(_owned_row(session, owner_id, category_id))


def ensure_owned_category(session: Session, owner_id: str, category_id: str | None) -> None:
    """Raise ``NotFoundError`` unless ``category_id`` is ``None`` or owned."""

    if category_id is not None:
        _owned_row(session, owner_id, category_id)


def create_category(session: Session, owner_id: str, *, emoji: str, name: str) -> Category:
    """Create a category at the end of the owner's ordering.

    The label is stored in both locale slots; later renames may diverge them.
    """

    check = validate_name(name)
    if not check.ok:
        raise InvalidInputError(check.reason or "invalid name")
    emoji = emoji.strip()
    if not emoji:
        raise InvalidInputError("emoji cannot be empty")

    max_order = session.execute(
        select(func.max(StCategory.sort_order)).where(StCategory.owner_id == owner_id)
    ).scalar_one()
    label = normalize_name(name)
    row = StCategory(
        id=new_id(),
        owner_id=owner_id,
        emoji=emoji,
        en_name=label,
        zh_name=label,
        is_active=True,
        sort_order=(-1 if max_order is None else max_order) + 1,
        created_at=now_ms(),
    )
    session.add(row)
    session.flush()
    logger.debug("created category %s for owner %s", row.id, owner_id)
    return Category.from_row(row)


def list_categories(
    session: Session, owner_id: str, *, active_only: bool = False
) -> list[Category]:
    """Return the owner's categories: active ones first, each group by order."""

    stmt = select(StCategory).where(StCategory.owner_id == owner_id)
    if active_only:
        stmt = stmt.where(StCategory.is_active.is_(True))
    rows = session.execute(stmt).scalars().all()
    ordered = sorted(rows, key=lambda r: (not r.is_active, r.sort_order))
    return [Category.from_row(r) for r in ordered]


def set_category_active(
    session: Session, owner_id: str, category_id: str, *, active: bool
) -> Category:
    """Activate or deactivate a category; history keeps referencing it either way."""

    row = _owned_row(session, owner_id, category_id)
    row.is_active = active
    session.flush()
    return Category.from_row(row)


def reorder_categories(session: Session, owner_id: str, ordered_ids: Sequence[str]) -> None:
    """Assign ``sort_order`` 0..n-1 following ``ordered_ids``.

    Every id must belong to the owner; nothing is written otherwise.
    """

    if len(set(ordered_ids)) != len(ordered_ids):
        raise InvalidInputError("ordered_ids contains duplicates")
    rows = [_owned_row(session, owner_id, cid) for cid in ordered_ids]
    for order, row in enumerate(rows):
        row.sort_order = order
    session.flush()


__all__ = [
    "NameValidation",
    "create_category",
    "ensure_owned_category",
    "get_owned_category",
    "list_categories",
    "normalize_name",
    "reorder_categories",
    "set_category_active",
    "validate_name",
]
