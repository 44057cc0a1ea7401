"""Logging for ``spend_tracker``.

Library modules log through ``get_logger(__name__)`` and never install
handlers; until an entrypoint opts in, the package logger only carries a
``NullHandler``. The CLI calls :func:`configure_logging` once at startup. The
level comes from ``SPEND_TRACKER_LOG_LEVEL`` (a level name such as ``DEBUG``)
and defaults to ``INFO``.
"""

from __future__ import annotations

import logging
import os
import sys

PACKAGE_LOGGER = "spend_tracker"
LEVEL_ENV = "SPEND_TRACKER_LOG_LEVEL"

_HANDLER_NAME = "spend_tracker.stderr"
_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

logging.getLogger(PACKAGE_LOGGER).addHandler(logging.NullHandler())


def level_from_env() -> int:
    """Level named by ``SPEND_TRACKER_LOG_LEVEL``; unknown names fall back to INFO."""

    name = (os.getenv(LEVEL_ENV) or "").strip().upper()
    return logging.getLevelNamesMapping().get(name, logging.INFO)


def configure_logging(level: int | None = None) -> None:
    """Send package records to stderr. Calling again only changes the level."""

    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.setLevel(level if level is not None else level_from_env())
    if any(h.get_name() == _HANDLER_NAME for h in logger.handlers):
        return

    # The process stderr, not whatever sys.stderr is swapped to at call time
    handler = logging.StreamHandler(sys.__stderr__)
    handler.set_name(_HANDLER_NAME)
    handler.setFormatter(logging.Formatter(_FORMAT))
    logger.addHandler(handler)
    logger.propagate = False


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


__all__ = ["LEVEL_ENV", "configure_logging", "get_logger", "level_from_env"]
