"""Typer console interface for ``spend_tracker``.

Environment variables (``DATABASE_URL``, ``SPEND_TRACKER_*``) are loaded from a
local ``.env`` via ``python-dotenv`` without overriding values already set.
Each command opens one ``session_scope`` and delegates to the service
modules; output is tab-separated, one record per line.
"""

from __future__ import annotations

import sys
from collections.abc import Callable
from enum import Enum
from pathlib import Path
from typing import Annotated, Any

import typer
from db.client import session_scope
from dotenv import load_dotenv
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .aggregation import aggregate_by_category, aggregate_by_category_for_month, aggregate_by_month
from .api import record_transaction
from .config import LocationMemoryConfig
from .errors import SpendTrackerError
from .locations import find_all_within, list_locations, merge_or_create
from .logging_setup import configure_logging, get_logger
from .models import TransactionKind

app = typer.Typer(add_completion=False, help="Personal spending tracker with location memory.")
logger = get_logger(__name__)

OwnerOpt = Annotated[str, typer.Option("--owner", help="Owner (user) identifier.")]
LatOpt = Annotated[float, typer.Option("--lat", help="Latitude in degrees.")]
LonOpt = Annotated[float, typer.Option("--lon", help="Longitude in degrees.")]


class Kind(str, Enum):
    expense = "expense"
    income = "income"


_KINDS: dict[Kind, TransactionKind] = {Kind.expense: "expense", Kind.income: "income"}


def _run[T](ctx: typer.Context, work: Callable[[Session], T]) -> T:
    """Execute ``work`` in one transactional scope; map failures to exit code 1."""

    database_url: str | None = (ctx.obj or {}).get("database_url")
    try:
        with session_scope(database_url=database_url) as session:
            return work(session)
    except SpendTrackerError as e:
        print(f"Error: {e}", file=sys.stderr)
        raise typer.Exit(1) from e
    except SQLAlchemyError as e:
        logger.error("database operation failed: %s", e)
        print(f"Error: database operation failed: {e}", file=sys.stderr)
        raise typer.Exit(1) from e
    except RuntimeError as e:
        # Raised by db.client when DATABASE_URL is missing
        print(f"Error: {e}", file=sys.stderr)
        raise typer.Exit(1) from e


def _config() -> LocationMemoryConfig:
    try:
        return LocationMemoryConfig.from_env()
    except SpendTrackerError as e:
        print(f"Error: {e}", file=sys.stderr)
        raise typer.Exit(1) from e


def _row(*cells: Any) -> str:
    return "\t".join("" if c is None else str(c) for c in cells)


@app.command("nearby")
def nearby_cmd(
    ctx: typer.Context,
    owner: OwnerOpt,
    lat: LatOpt,
    lon: LonOpt,
    radius: Annotated[
        float | None,
        typer.Option(help="Search radius in meters (defaults to the suggestion radius)."),
    ] = None,
) -> None:
    """List remembered places near a coordinate, closest first."""

    cfg = _config()
    hits = _run(ctx, lambda s: find_all_within(s, owner, lat, lon, radius, config=cfg))
    for hit in hits:
        loc = hit.location
        typer.echo(
            _row(loc.id, f"{hit.distance_m:.1f}", loc.amount, loc.category_id, loc.name, loc.visit_count)
        )


@app.command("remember")
def remember_cmd(
    ctx: typer.Context,
    owner: OwnerOpt,
    lat: LatOpt,
    lon: LonOpt,
    amount: Annotated[str, typer.Option(help="Amount spent (positive).")],
    category: Annotated[str | None, typer.Option(help="Category id.")] = None,
    target: Annotated[
        str | None, typer.Option(help="Merge into this remembered location id.")
    ] = None,
    name: Annotated[str | None, typer.Option(help="Display name for the place.")] = None,
) -> None:
    """Fold a visit into location memory and print the location id."""

    cfg = _config()
    loc_id = _run(
        ctx,
        lambda s: merge_or_create(s, owner, lat, lon, amount, category, target, name=name, config=cfg),
    )
    typer.echo(loc_id)


@app.command("locations")
def locations_cmd(ctx: typer.Context, owner: OwnerOpt) -> None:
    """List every remembered location for an owner, newest first."""

    for loc in _run(ctx, lambda s: list_locations(s, owner)):
        typer.echo(
            _row(
                loc.id,
                f"{loc.latitude:.6f}",
                f"{loc.longitude:.6f}",
                loc.amount,
                loc.category_id,
                loc.name,
                loc.visit_count,
            )
        )


@app.command("record")
def record_cmd(
    ctx: typer.Context,
    owner: OwnerOpt,
    amount: Annotated[str, typer.Option(help="Amount (positive).")],
    name: Annotated[str | None, typer.Option(help="Free-text label.")] = None,
    category: Annotated[str | None, typer.Option(help="Category id.")] = None,
    kind: Annotated[Kind, typer.Option(help="Transaction kind.")] = Kind.expense,
    lat: Annotated[float | None, typer.Option("--lat", help="Latitude of the spend.")] = None,
    lon: Annotated[float | None, typer.Option("--lon", help="Longitude of the spend.")] = None,
    location_id: Annotated[
        str | None, typer.Option(help="Remembered location picked from `nearby`.")
    ] = None,
) -> None:
    """Record a transaction; with --lat/--lon also update location memory."""

    cfg = _config()
    result = _run(
        ctx,
        lambda s: record_transaction(
            s,
            owner,
            amount,
            name=name,
            category_id=category,
            kind=_KINDS[kind],
            latitude=lat,
            longitude=lon,
            location_id=location_id,
            config=cfg,
        ),
    )
    typer.echo(_row(result.transaction.id, result.location_id))


@app.command("report-categories")
def report_categories_cmd(
    ctx: typer.Context,
    owner: OwnerOpt,
    start_ms: Annotated[int | None, typer.Option(help="Window start (epoch ms).")] = None,
    end_ms: Annotated[int | None, typer.Option(help="Window end (epoch ms, inclusive).")] = None,
    month: Annotated[
        str | None, typer.Option(help="Calendar month YYYY-MM instead of a window.")
    ] = None,
) -> None:
    """Print total and count per category, largest total first."""

    if month is not None:
        try:
            year_s, month_s = month.split("-", 1)
            year_i, month_i = int(year_s), int(month_s)
        except ValueError as e:
            print(f"Error: --month must look like YYYY-MM, got {month!r}", file=sys.stderr)
            raise typer.Exit(1) from e
        cfg = _config()
        totals = _run(
            ctx, lambda s: aggregate_by_category_for_month(s, owner, year_i, month_i, config=cfg)
        )
    elif start_ms is not None and end_ms is not None:
        totals = _run(ctx, lambda s: aggregate_by_category(s, owner, start_ms, end_ms))
    else:
        print("Error: provide --month or both --start-ms and --end-ms", file=sys.stderr)
        raise typer.Exit(1)

    for t in sorted(totals, key=lambda t: t.total, reverse=True):
        label = " ".join(p for p in (t.emoji, t.en_name) if p) or t.category
        typer.echo(_row(label, t.total, t.count))


@app.command("report-months")
def report_months_cmd(
    ctx: typer.Context,
    owner: OwnerOpt,
    months_back: Annotated[int, typer.Option(help="Months to include, current month counts as 1.")] = 6,
    category: Annotated[str | None, typer.Option(help="Only this category id.")] = None,
) -> None:
    """Print total and count per calendar month, oldest first."""

    cfg = _config()
    for m in _run(ctx, lambda s: aggregate_by_month(s, owner, months_back, category, config=cfg)):
        typer.echo(_row(m.month, m.total, m.count))


@app.callback()
def _root(
    ctx: typer.Context,
    database_url: Annotated[
        str | None, typer.Option(help="Override DATABASE_URL (falls back to env var).")
    ] = None,
) -> None:
    """Load ``.env``, configure logging, and stash shared options."""

    load_dotenv(dotenv_path=Path.cwd() / ".env", override=False)
    configure_logging()
    ctx.obj = {"database_url": database_url}


def main() -> None:  # pragma: no cover - console-script shim
    app()


if __name__ == "__main__":  # pragma: no cover
    main()
