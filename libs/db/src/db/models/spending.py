from __future__ import annotations

from decimal import Decimal

from sqlalchemy import (
    BigInteger,
    Boolean,
    CheckConstraint,
    Float,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


# All ``created_at`` columns hold epoch milliseconds. Identifiers are opaque
# strings minted by the application (uuid4 hex), never by the database.


# ---------------------------
# Reference: st_categories
# ---------------------------


class StCategory(Base):
    __tablename__ = "st_categories"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    owner_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
    emoji: Mapped[str] = mapped_column(String, nullable=False)
    # Two locale slots; new categories start with the same label in both.
    en_name: Mapped[str | None] = mapped_column(Text, nullable=True)
    zh_name: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default=text("true"))
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, server_default=text("0"))
    created_at: Mapped[int] = mapped_column(BigInteger, nullable=False)


# ---------------------------
# Core: st_transactions
# ---------------------------


class StTransaction(Base):
    __tablename__ = "st_transactions"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    owner_id: Mapped[str] = mapped_column(String, nullable=False)
    name: Mapped[str | None] = mapped_column(Text, nullable=True)
    category_id: Mapped[str | None] = mapped_column(
        String,
        ForeignKey("st_categories.id", ondelete="SET NULL"),
        nullable=True,
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False)
    kind: Mapped[str] = mapped_column(String, nullable=False, server_default=text("'expense'"))
    # Where the row was entered: the web form or the token-authenticated API.
    origin: Mapped[str] = mapped_column(String, nullable=False, server_default=text("'web'"))
    created_at: Mapped[int] = mapped_column(BigInteger, nullable=False)

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_st_tx_amount_positive"),
        CheckConstraint("kind in ('expense','income')", name="ck_st_tx_kind"),
        CheckConstraint("origin in ('web','api')", name="ck_st_tx_origin"),
        Index("ix_st_transactions_owner_created", "owner_id", "created_at"),
        Index("ix_st_transactions_owner_category", "owner_id", "category_id"),
    )


# ---------------------------
# Core: st_remembered_locations
# ---------------------------


class StRememberedLocation(Base):
    __tablename__ = "st_remembered_locations"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    owner_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
    # Running centroid of every visit folded into this record.
    latitude: Mapped[float] = mapped_column(Float(precision=53), nullable=False)
    longitude: Mapped[float] = mapped_column(Float(precision=53), nullable=False)
    # Last-write-wins hints from the most recent visit.
    amount: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False)
    category_id: Mapped[str | None] = mapped_column(
        String,
        ForeignKey("st_categories.id", ondelete="SET NULL"),
        nullable=True,
    )
    name: Mapped[str | None] = mapped_column(Text, nullable=True)
    visit_count: Mapped[int] = mapped_column(Integer, nullable=False, server_default=text("1"))
    created_at: Mapped[int] = mapped_column(BigInteger, nullable=False)

    __table_args__ = (
        CheckConstraint("latitude >= -90 AND latitude <= 90", name="ck_st_loc_latitude"),
        CheckConstraint("longitude >= -180 AND longitude <= 180", name="ck_st_loc_longitude"),
        CheckConstraint("visit_count >= 1", name="ck_st_loc_visit_count"),
        CheckConstraint("amount > 0", name="ck_st_loc_amount_positive"),
    )


__all__ = [
    "Base",
    "StCategory",
    "StTransaction",
    "StRememberedLocation",
]
