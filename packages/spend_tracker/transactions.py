"""Transaction persistence for ``spend_tracker``.

Transactions are created from two origins: the web form (``origin="web"``) and
the token-authenticated external API (``origin="api"``). API submissions must
name a category that belongs to the owner; web entries may be uncategorized.
Amounts are stored as whole-cent ``Decimal`` values and are always positive; ``kind``
distinguishes expenses from income.
"""

from __future__ import annotations

from decimal import Decimal

from db.models.spending import StTransaction
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from .categories import ensure_owned_category
from .errors import InvalidInputError, NotFoundError
from .logging_setup import get_logger
from .models import (
    Transaction,
    TransactionInput,
    TransactionKind,
    TransactionOrigin,
    new_id,
    now_ms,
    to_amount,
    validate_input,
)

logger = get_logger(__name__)


def _owned_tx(session: Session, owner_id: str, transaction_id: str) -> StTransaction:
    row = session.get(StTransaction, transaction_id)
    if row is None or row.owner_id != owner_id:
        raise NotFoundError("transaction", transaction_id)
    return row


def create_transaction(
    session: Session,
    owner_id: str,
    amount: Decimal | float | int | str,
    *,
    name: str | None = None,
    category_id: str | None = None,
    kind: TransactionKind = "expense",
    origin: TransactionOrigin = "web",
    created_at: int | None = None,
) -> Transaction:
    """Insert one transaction after validating amount and category ownership."""

    data = validate_input(
        TransactionInput,
        amount=amount,
        name=name,
        category_id=category_id,
        kind=kind,
        origin=origin,
        created_at=created_at,
    )
    if data.origin == "api" and data.category_id is None:
        raise InvalidInputError("category is required for API submissions")
    ensure_owned_category(session, owner_id, data.category_id)

    row = StTransaction(
        id=new_id(),
        owner_id=owner_id,
        name=(data.name or "").strip() or None,
        category_id=data.category_id,
        amount=data.amount,
        kind=data.kind,
        origin=data.origin,
        created_at=data.created_at if data.created_at is not None else now_ms(),
    )
    session.add(row)
    session.flush()
    logger.debug("created %s transaction %s (owner=%s)", row.origin, row.id, owner_id)
    return Transaction.from_row(row)


def get_transaction(session: Session, owner_id: str, transaction_id: str) -> Transaction:
    return Transaction.from_row(_owned_tx(session, owner_id, transaction_id))


def list_transactions(
    session: Session,
    owner_id: str,
    *,
    category_id: str | None = None,
    start_ms: int | None = None,
    end_ms: int | None = None,
    min_amount: Decimal | float | None = None,
    max_amount: Decimal | float | None = None,
    limit: int | None = None,
) -> list[Transaction]:
    """Return the owner's transactions, newest first, with optional filters.

    ``start_ms``/``end_ms`` bound ``created_at`` inclusively.
    """

    if start_ms is not None and end_ms is not None and start_ms > end_ms:
        raise InvalidInputError("start_ms must not be after end_ms")
    if limit is not None and limit < 1:
        raise InvalidInputError("limit must be positive")

    stmt = select(StTransaction).where(StTransaction.owner_id == owner_id)
    if category_id is not None:
        stmt = stmt.where(StTransaction.category_id == category_id)
    if start_ms is not None:
        stmt = stmt.where(StTransaction.created_at >= start_ms)
    if end_ms is not None:
        stmt = stmt.where(StTransaction.created_at <= end_ms)
    if min_amount is not None:
        stmt = stmt.where(StTransaction.amount >= Decimal(str(min_amount)))
    if max_amount is not None:
        stmt = stmt.where(StTransaction.amount <= Decimal(str(max_amount)))
    stmt = stmt.order_by(StTransaction.created_at.desc(), StTransaction.id.desc())
    if limit is not None:
        stmt = stmt.limit(limit)
    return [Transaction.from_row(r) for r in session.execute(stmt).scalars()]


def update_transaction(
    session: Session,
    owner_id: str,
    transaction_id: str,
    *,
    amount: Decimal | float | int | str | None = None,
    name: str | None = None,
    category_id: str | None = None,
    kind: TransactionKind | None = None,
    created_at: int | None = None,
) -> Transaction:
    """Patch the given fields of a transaction; ``None`` leaves a field as is."""

    try:
        new_amount = to_amount(amount) if amount is not None else None
    except ValueError as e:
        raise InvalidInputError(str(e)) from e
    if kind is not None and kind not in ("expense", "income"):
        raise InvalidInputError(f"unsupported kind: {kind!r}")
    if created_at is not None and created_at < 0:
        raise InvalidInputError("created_at must be a non-negative epoch millisecond value")

    row = _owned_tx(session, owner_id, transaction_id)
    ensure_owned_category(session, owner_id, category_id)

    if new_amount is not None:
        row.amount = new_amount
    if name is not None:
        row.name = name.strip() or None
    if category_id is not None:
        row.category_id = category_id
    if kind is not None:
        row.kind = kind
    if created_at is not None:
        row.created_at = created_at
    session.flush()
    return Transaction.from_row(row)


def remove_transaction(session: Session, owner_id: str, transaction_id: str) -> str:
    row = _owned_tx(session, owner_id, transaction_id)
    session.delete(row)
    session.flush()
    return transaction_id


def earliest_transaction_at(session: Session, owner_id: str) -> int | None:
    """Epoch ms of the owner's first transaction (bounds month navigation)."""

    return session.execute(
        select(func.min(StTransaction.created_at)).where(StTransaction.owner_id == owner_id)
    ).scalar_one()


__all__ = [
    "create_transaction",
    "earliest_transaction_at",
    "get_transaction",
    "list_transactions",
    "remove_transaction",
    "update_transaction",
]
