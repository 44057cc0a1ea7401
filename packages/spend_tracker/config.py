"""Runtime configuration for the location memory and reporting engines.

Values come from environment variables (the CLI loads a local ``.env`` first):

- ``SPEND_TRACKER_SUGGEST_RADIUS_M``: radius for "places near you" suggestions.
- ``SPEND_TRACKER_MERGE_RADIUS_M``: radius for picking a silent merge target.
- ``SPEND_TRACKER_REPORT_TZ``: IANA zone used to bucket transactions into
  calendar months. Unset means the process-local calendar.
"""

from __future__ import annotations

import math
import os
from dataclasses import dataclass
from datetime import tzinfo
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from .errors import InvalidInputError

# Suggestions cast a wider net than automatic merging: a nearby-but-distinct
# shop should be offered to the user, never silently folded into another.
DEFAULT_SUGGEST_RADIUS_M = 200.0
DEFAULT_MERGE_RADIUS_M = 100.0

SUGGEST_RADIUS_ENV = "SPEND_TRACKER_SUGGEST_RADIUS_M"
MERGE_RADIUS_ENV = "SPEND_TRACKER_MERGE_RADIUS_M"
REPORT_TZ_ENV = "SPEND_TRACKER_REPORT_TZ"


def _positive_radius(value: float, *, source: str) -> float:
    if not math.isfinite(value) or value <= 0:
        raise InvalidInputError(f"{source} must be a positive number of meters, got {value!r}")
    return float(value)


def _radius_from_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = float(raw)
    except ValueError as e:
        raise InvalidInputError(f"{name} must be a number, got {raw!r}") from e
    return _positive_radius(value, source=name)


def resolve_zone(name: str | None) -> tzinfo | None:
    """Return the named zone, or ``None`` for the process-local calendar."""

    if name is None or not name.strip():
        return None
    try:
        return ZoneInfo(name.strip())
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise InvalidInputError(f"unknown time zone: {name!r}") from e


@dataclass(frozen=True, slots=True)
class LocationMemoryConfig:
    """Radii and calendar settings shared by the services."""

    suggest_radius_m: float = DEFAULT_SUGGEST_RADIUS_M
    merge_radius_m: float = DEFAULT_MERGE_RADIUS_M
    report_tz: str | None = None

    def __post_init__(self) -> None:
        _positive_radius(self.suggest_radius_m, source="suggest_radius_m")
        _positive_radius(self.merge_radius_m, source="merge_radius_m")
        # Fail at construction rather than at the first report
        resolve_zone(self.report_tz)

    @classmethod
    def from_env(cls) -> LocationMemoryConfig:
        return cls(
            suggest_radius_m=_radius_from_env(SUGGEST_RADIUS_ENV, DEFAULT_SUGGEST_RADIUS_M),
            merge_radius_m=_radius_from_env(MERGE_RADIUS_ENV, DEFAULT_MERGE_RADIUS_M),
            report_tz=os.getenv(REPORT_TZ_ENV) or None,
        )

    def zone(self) -> tzinfo | None:
        return resolve_zone(self.report_tz)


__all__ = [
    "DEFAULT_MERGE_RADIUS_M",
    "DEFAULT_SUGGEST_RADIUS_M",
    "LocationMemoryConfig",
    "resolve_zone",
]
