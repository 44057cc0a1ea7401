from __future__ import annotations

import random
import time
from datetime import UTC, datetime
from decimal import Decimal
from zoneinfo import ZoneInfo

import pytest
from db.client import session_scope
from spend_tracker.aggregation import (
    aggregate_by_category,
    aggregate_by_category_for_month,
    aggregate_by_month,
    month_bounds,
    month_key,
    window_start,
)
from spend_tracker.config import LocationMemoryConfig
from spend_tracker.errors import InvalidInputError
from spend_tracker.models import UNCATEGORIZED

from tests.helpers.db import seed_category, seed_transaction

HK = ZoneInfo("Asia/Hong_Kong")
NOW = datetime(2024, 3, 15, 12, 0, tzinfo=UTC)


def _ms(*args: int, tz=UTC) -> int:
    return int(datetime(*args, tzinfo=tz).timestamp() * 1000)


# ---- calendar helpers -------------------------------------------------------------


def test_month_key_follows_the_zone():
    # 2024-01-31T20:00Z is already February in Hong Kong
    ts = _ms(2024, 1, 31, 20)
    assert month_key(ts, UTC) == "2024-01"
    assert month_key(ts, HK) == "2024-02"


def test_month_bounds_cover_the_month_inclusively():
    start, end = month_bounds(2024, 2, UTC)
    assert start == _ms(2024, 2, 1)
    assert end == _ms(2024, 3, 1) - 1
    # December rolls into the next year
    assert month_bounds(2023, 12, UTC)[1] == _ms(2024, 1, 1) - 1


def test_month_bounds_in_a_pinned_zone():
    start, _ = month_bounds(2024, 2, HK)
    assert start == _ms(2024, 1, 31, 16)


def test_month_bounds_rejects_bad_month():
    with pytest.raises(InvalidInputError):
        month_bounds(2024, 13, UTC)


def test_window_start_counts_the_current_month():
    assert window_start(1, now=NOW, tz=UTC) == _ms(2024, 3, 1)
    assert window_start(3, now=NOW, tz=UTC) == _ms(2024, 1, 1)
    assert window_start(4, now=NOW, tz=UTC) == _ms(2023, 12, 1)


@pytest.mark.parametrize("months_back", [0, -2, 1.5, True])
def test_window_start_rejects_invalid_months_back(months_back):
    with pytest.raises(InvalidInputError):
        window_start(months_back, now=NOW, tz=UTC)


# ---- aggregate_by_category --------------------------------------------------------


def test_category_rollup_groups_uncategorized(db_url: str):
    seed_category(database_url=db_url, owner_id="U", category_id="A")
    seed_transaction(database_url=db_url, tx_id="t1", owner_id="U", amount=10, created_at=100, category_id="A")
    seed_transaction(database_url=db_url, tx_id="t2", owner_id="U", amount=20, created_at=200, category_id="A")
    seed_transaction(database_url=db_url, tx_id="t3", owner_id="U", amount=5, created_at=300)

    with session_scope() as s:
        totals = aggregate_by_category(s, "U", 0, 1_000)

    by_cat = {t.category: (t.total, t.count) for t in totals}
    assert by_cat == {"A": (Decimal("30"), 2), UNCATEGORIZED: (Decimal("5"), 1)}
    assert {t.category_id for t in totals} == {"A", None}


def test_category_rollup_window_is_inclusive_and_scoped(db_url: str):
    seed_transaction(database_url=db_url, tx_id="before", owner_id="U", amount=1, created_at=99)
    seed_transaction(database_url=db_url, tx_id="start", owner_id="U", amount=2, created_at=100)
    seed_transaction(database_url=db_url, tx_id="end", owner_id="U", amount=4, created_at=200)
    seed_transaction(database_url=db_url, tx_id="after", owner_id="U", amount=8, created_at=201)
    seed_transaction(database_url=db_url, tx_id="other", owner_id="V", amount=16, created_at=150)

    with session_scope() as s:
        totals = aggregate_by_category(s, "U", 100, 200)
    assert sum(t.total for t in totals) == Decimal("6")
    assert sum(t.count for t in totals) == 2


def test_category_rollup_keeps_cents(db_url: str):
    seed_transaction(database_url=db_url, tx_id="a", owner_id="U", amount="10.10", created_at=1)
    seed_transaction(database_url=db_url, tx_id="b", owner_id="U", amount="20.20", created_at=2)
    with session_scope() as s:
        (total,) = aggregate_by_category(s, "U", 0, 10)
    assert total.total == Decimal("30.30")


def test_category_rollup_empty_window(db_url: str):
    with session_scope() as s:
        assert aggregate_by_category(s, "U", 0, 10) == []


def test_category_rollup_rejects_inverted_window(db_url: str):
    with session_scope() as s:
        with pytest.raises(InvalidInputError):
            aggregate_by_category(s, "U", 10, 9)


def test_category_rollup_for_month_adds_display_fields(db_url: str):
    seed_category(database_url=db_url, owner_id="U", category_id="A", emoji="☕", name="Coffee")
    seed_transaction(
        database_url=db_url, tx_id="t1", owner_id="U", amount=4, created_at=_ms(2024, 2, 3), category_id="A"
    )
    seed_transaction(database_url=db_url, tx_id="t2", owner_id="U", amount=6, created_at=_ms(2024, 2, 29, 23))
    seed_transaction(
        database_url=db_url, tx_id="t3", owner_id="U", amount=9, created_at=_ms(2024, 3, 1), category_id="A"
    )

    with session_scope() as s:
        totals = aggregate_by_category_for_month(s, "U", 2024, 2, tz=UTC)

    by_cat = {t.category: t for t in totals}
    assert set(by_cat) == {"A", UNCATEGORIZED}
    assert by_cat["A"].total == Decimal("4")
    assert (by_cat["A"].emoji, by_cat["A"].en_name) == ("☕", "Coffee")
    assert by_cat[UNCATEGORIZED].emoji is None


# ---- aggregate_by_month -----------------------------------------------------------


def _seed_months(db_url: str) -> None:
    seed_category(database_url=db_url, owner_id="U", category_id="A")
    rows = [
        ("dec", 100, _ms(2023, 12, 31, 23, 59), None),
        ("jan", 10, _ms(2024, 1, 5), "A"),
        ("feb1", 20, _ms(2024, 2, 10), None),
        ("feb2", 30, _ms(2024, 2, 20), "A"),
        ("mar", 40, _ms(2024, 3, 1), "A"),
    ]
    for tx_id, amount, ts, cat in rows:
        seed_transaction(
            database_url=db_url, tx_id=tx_id, owner_id="U", amount=amount, created_at=ts, category_id=cat
        )


def test_month_rollup_buckets_and_orders(db_url: str):
    _seed_months(db_url)
    with session_scope() as s:
        months = aggregate_by_month(s, "U", 3, now=NOW, tz=UTC)

    assert [(m.month, m.total, m.count) for m in months] == [
        ("2024-01", Decimal("10"), 1),
        ("2024-02", Decimal("50"), 2),
        ("2024-03", Decimal("40"), 1),
    ]


def test_month_rollup_single_month(db_url: str):
    _seed_months(db_url)
    with session_scope() as s:
        months = aggregate_by_month(s, "U", 1, now=NOW, tz=UTC)
    assert [m.month for m in months] == ["2024-03"]


def test_month_rollup_category_filter(db_url: str):
    _seed_months(db_url)
    with session_scope() as s:
        months = aggregate_by_month(s, "U", 12, "A", now=NOW, tz=UTC)
    assert [(m.month, m.total) for m in months] == [
        ("2024-01", Decimal("10")),
        ("2024-02", Decimal("30")),
        ("2024-03", Decimal("40")),
    ]


def test_month_rollup_uses_configured_zone(db_url: str):
    # Late on Jan 31 UTC is February in Hong Kong
    seed_transaction(database_url=db_url, tx_id="t", owner_id="U", amount=7, created_at=_ms(2024, 1, 31, 20))
    cfg = LocationMemoryConfig(report_tz="Asia/Hong_Kong")
    with session_scope() as s:
        months = aggregate_by_month(s, "U", 3, now=NOW, config=cfg)
    assert [m.month for m in months] == ["2024-02"]


def test_month_rollup_rejects_bad_months_back(db_url: str):
    with session_scope() as s:
        with pytest.raises(InvalidInputError):
            aggregate_by_month(s, "U", 0, now=NOW, tz=UTC)


# ---- process-local calendar -------------------------------------------------------


@pytest.fixture
def local_time_hk():
    """Run with the process-local zone set to UTC+8 (POSIX TZ, no zone database)."""

    if not hasattr(time, "tzset"):
        pytest.skip("time.tzset is unavailable on this platform")
    with pytest.MonkeyPatch.context() as mp:
        mp.setenv("TZ", "HKT-8")
        time.tzset()
        yield
    time.tzset()


def test_local_calendar_is_the_default(db_url: str, local_time_hk):
    ts = _ms(2024, 1, 31, 20)  # 04:00 on Feb 1 at UTC+8
    assert month_key(ts) == "2024-02"
    assert month_bounds(2024, 2)[0] == _ms(2024, 1, 31, 16)
    assert window_start(1, now=NOW) == _ms(2024, 2, 29, 16)

    seed_transaction(database_url=db_url, tx_id="t", owner_id="U", amount=7, created_at=ts)
    with session_scope() as s:
        months = aggregate_by_month(s, "U", 3, now=NOW)
        totals = aggregate_by_category_for_month(s, "U", 2024, 2)
    assert [(m.month, m.count) for m in months] == [("2024-02", 1)]
    assert [(t.category, t.total) for t in totals] == [(UNCATEGORIZED, Decimal("7"))]


# ---- rollup partition -------------------------------------------------------------


def test_category_totals_partition_the_window(db_url: str):
    rng = random.Random(2024)
    for cid in ("A", "B", "C"):
        seed_category(database_url=db_url, owner_id="U", category_id=cid)
    rows = []
    for i in range(120):
        amount = Decimal(rng.randint(1, 50_000)) / 100
        created_at = rng.randint(0, 10_000)
        cat = rng.choice(["A", "B", "C", None])
        seed_transaction(
            database_url=db_url, tx_id=f"t{i}", owner_id="U", amount=amount, created_at=created_at, category_id=cat
        )
        rows.append((amount, created_at, cat))

    with session_scope() as s:
        for _ in range(25):
            start = rng.randint(0, 10_000)
            end = rng.randint(start, 10_000)
            totals = aggregate_by_category(s, "U", start, end)

            inside = [(a, c) for a, ts, c in rows if start <= ts <= end]
            assert sum((t.total for t in totals), Decimal(0)) == sum((a for a, _ in inside), Decimal(0))
            assert sum(t.count for t in totals) == len(inside)
            # Each transaction lands in exactly one group
            assert len({t.category for t in totals}) == len(totals)
            for t in totals:
                group = [a for a, c in inside if (c or UNCATEGORIZED) == t.category]
                assert (t.total, t.count) == (sum(group, Decimal(0)), len(group))
