"""Engine and session plumbing for the spending database.

The process holds one binding: an engine plus its session factory, created on
first use from ``DATABASE_URL`` (or an explicit URL). SQLite connections get
foreign-key enforcement switched on so ``ON DELETE SET NULL`` on category
references behaves the same as on Postgres.

Services never open sessions themselves; entrypoints wrap each unit of work in
:func:`session_scope` and pass the session down::

    with session_scope() as s:
        merge_or_create(s, owner_id, lat, lon, amount)
"""

from __future__ import annotations

import os
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker


@dataclass(frozen=True, slots=True)
class _Binding:
    url: str
    engine: Engine
    sessions: sessionmaker[Session]


_binding: _Binding | None = None


def _resolve_url(override: str | None) -> str:
    url = override or os.getenv("DATABASE_URL")
    if not url:
        raise RuntimeError("DATABASE_URL is not set; cannot open the spending database")
    return url


def _enforce_sqlite_foreign_keys(engine: Engine) -> None:
    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_conn, _record) -> None:  # pragma: no cover - driver hook
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys = ON")
        cursor.close()


def _bind(database_url: str | None) -> _Binding:
    global _binding
    url = _resolve_url(database_url)
    if _binding is None:
        engine = create_engine(url, pool_pre_ping=True)
        if engine.dialect.name == "sqlite":
            _enforce_sqlite_foreign_keys(engine)
        _binding = _Binding(url, engine, sessionmaker(bind=engine, expire_on_commit=False))
    elif _binding.url != url:
        raise RuntimeError(
            "database client is already bound to another URL; call reset_engine() first"
        )
    return _binding


def get_engine(*, database_url: str | None = None) -> Engine:
    """Engine of the process binding; used for schema bootstrap and migrations."""

    return _bind(database_url).engine


def reset_engine() -> None:
    """Dispose the current binding so the next call can bind a different URL."""

    global _binding
    if _binding is not None:
        _binding.engine.dispose()
    _binding = None


@contextmanager
def session_scope(*, database_url: str | None = None) -> Iterator[Session]:
    """One unit of work: commit on clean exit, roll back and re-raise otherwise."""

    session = _bind(database_url).sessions()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


__all__ = [
    "get_engine",
    "reset_engine",
    "session_scope",
]
