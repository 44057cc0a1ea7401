"""Data models for ``spend_tracker``.

Two families live here:

- Input payloads (pydantic) that validate caller-supplied values before any
  store access. :func:`validate_input` converts ``pydantic.ValidationError``
  into :class:`~spend_tracker.errors.InvalidInputError`.
- Plain, immutable result values (dataclasses) returned by the services so
  callers never hold live ORM rows outside a session.
"""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Literal

from db.models.spending import StCategory, StRememberedLocation, StTransaction
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .errors import InvalidInputError

UNCATEGORIZED = "Uncategorized"
"""Group key for transactions without a category in the category rollup."""

_CENT = Decimal("0.01")
# Largest value a Numeric(18, 2) amount column can hold.
MAX_AMOUNT = Decimal("9999999999999999.99")

type TransactionKind = Literal["expense", "income"]
type TransactionOrigin = Literal["web", "api"]


def new_id() -> str:
    return uuid.uuid4().hex


def now_ms() -> int:
    return time.time_ns() // 1_000_000


def to_amount(raw: Any) -> Decimal:
    """Coerce ``raw`` into a positive ``Decimal`` in whole cents or raise ``ValueError``.

    Values are never rounded: anything finer than a cent is rejected so the
    stored amount is exactly what was entered.
    """

    if isinstance(raw, bool) or raw is None:
        raise ValueError("amount must be a number")
    try:
        d = Decimal(str(raw).strip())
    except (InvalidOperation, ValueError) as e:
        raise ValueError(f"amount is not a number: {raw!r}") from e
    if not d.is_finite():
        raise ValueError("amount must be finite")
    if d <= 0:
        raise ValueError("amount must be a positive number")
    if d > MAX_AMOUNT:
        raise ValueError(f"amount must be at most {MAX_AMOUNT}")
    cents = d.quantize(_CENT)
    if cents != d:
        raise ValueError(f"amount has more than two decimal places: {raw!r}")
    return cents


# ---------------------------------------------------------------------------
# Input payloads
# ---------------------------------------------------------------------------


class _Strict(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")


class Coordinate(_Strict):
    latitude: float = Field(ge=-90.0, le=90.0, allow_inf_nan=False)
    longitude: float = Field(ge=-180.0, le=180.0, allow_inf_nan=False)


class SpendObservation(Coordinate):
    """One visit: where the user spent and what they spent there."""

    amount: Decimal
    category_id: str | None = None
    name: str | None = None

    @field_validator("amount", mode="before")
    @classmethod
    def _amount(cls, v: Any) -> Decimal:
        return to_amount(v)

    @field_validator("name")
    @classmethod
    def _name(cls, v: str | None) -> str | None:
        if v is None:
            return None
        v = v.strip()
        return v or None


class TransactionInput(_Strict):
    amount: Decimal
    name: str | None = None
    category_id: str | None = None
    kind: TransactionKind = "expense"
    origin: TransactionOrigin = "web"
    created_at: int | None = Field(default=None, ge=0)

    @field_validator("amount", mode="before")
    @classmethod
    def _amount(cls, v: Any) -> Decimal:
        return to_amount(v)


def validate_input[M: BaseModel](model: type[M], **data: Any) -> M:
    """Build ``model`` from ``data``, surfacing failures as ``InvalidInputError``."""

    try:
        return model(**data)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or 'input'}: {err['msg']}"
            for err in e.errors()
        )
        raise InvalidInputError(problems) from e


# ---------------------------------------------------------------------------
# Result values
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class RememberedLocation:
    """Snapshot of a place the owner has spent at before."""

    id: str
    owner_id: str
    latitude: float
    longitude: float
    amount: Decimal
    category_id: str | None
    name: str | None
    visit_count: int
    created_at: int

    @classmethod
    def from_row(cls, row: StRememberedLocation) -> RememberedLocation:
        return cls(
            id=row.id,
            owner_id=row.owner_id,
            latitude=row.latitude,
            longitude=row.longitude,
            amount=row.amount,
            category_id=row.category_id,
            name=row.name,
            visit_count=row.visit_count,
            created_at=row.created_at,
        )


@dataclass(frozen=True, slots=True)
class NearbyLocation:
    """A remembered location annotated with its distance from the query point."""

    location: RememberedLocation
    distance_m: float


@dataclass(frozen=True, slots=True)
class Transaction:
    id: str
    owner_id: str
    amount: Decimal
    name: str | None
    category_id: str | None
    kind: str
    origin: str
    created_at: int

    @classmethod
    def from_row(cls, row: StTransaction) -> Transaction:
        return cls(
            id=row.id,
            owner_id=row.owner_id,
            amount=row.amount,
            name=row.name,
            category_id=row.category_id,
            kind=row.kind,
            origin=row.origin,
            created_at=row.created_at,
        )


@dataclass(frozen=True, slots=True)
class Category:
    id: str
    owner_id: str
    emoji: str
    en_name: str | None
    zh_name: str | None
    is_active: bool
    sort_order: int
    created_at: int

    @classmethod
    def from_row(cls, row: StCategory) -> Category:
        return cls(
            id=row.id,
            owner_id=row.owner_id,
            emoji=row.emoji,
            en_name=row.en_name,
            zh_name=row.zh_name,
            is_active=bool(row.is_active),
            sort_order=row.sort_order,
            created_at=row.created_at,
        )


@dataclass(frozen=True, slots=True)
class CategoryTotal:
    """One group of the category rollup.

    ``category`` is the category id, or :data:`UNCATEGORIZED`. The display
    fields are only filled by the month-navigation variant.
    """

    category: str
    total: Decimal
    count: int
    emoji: str | None = None
    en_name: str | None = None
    zh_name: str | None = None

    @property
    def category_id(self) -> str | None:
        return None if self.category == UNCATEGORIZED else self.category


@dataclass(frozen=True, slots=True)
class MonthTotal:
    """One calendar month of the monthly rollup; ``month`` is ``"YYYY-MM"``."""

    month: str
    total: Decimal
    count: int


__all__ = [
    "UNCATEGORIZED",
    "MAX_AMOUNT",
    "Category",
    "CategoryTotal",
    "Coordinate",
    "MonthTotal",
    "NearbyLocation",
    "RememberedLocation",
    "SpendObservation",
    "Transaction",
    "TransactionInput",
    "TransactionKind",
    "TransactionOrigin",
    "new_id",
    "now_ms",
    "to_amount",
    "validate_input",
]
