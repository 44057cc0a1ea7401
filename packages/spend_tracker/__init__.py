"""Public interface for the ``spend_tracker`` package.

This module exposes the package's API functions and public models/types as the
stable import surface. There is no runtime logic here, only symbol re-exports.
"""

from .api import (
    RecordedSpend,
    aggregate_by_category,
    aggregate_by_category_for_month,
    aggregate_by_month,
    find_all_within,
    find_nearest,
    merge_or_create,
    record_transaction,
)
from .config import LocationMemoryConfig
from .errors import (
    ConcurrentMergeError,
    InvalidInputError,
    NotFoundError,
    SpendTrackerError,
)
from .geo import bounding_box, distance_meters
from .locations import merged_coordinate
from .models import (
    UNCATEGORIZED,
    Category,
    CategoryTotal,
    MonthTotal,
    NearbyLocation,
    RememberedLocation,
    Transaction,
)

__all__ = [
    # API
    "aggregate_by_category",
    "aggregate_by_category_for_month",
    "aggregate_by_month",
    "bounding_box",
    "distance_meters",
    "find_all_within",
    "find_nearest",
    "merge_or_create",
    "merged_coordinate",
    "record_transaction",
    # Config / errors
    "LocationMemoryConfig",
    "SpendTrackerError",
    "InvalidInputError",
    "NotFoundError",
    "ConcurrentMergeError",
    # Models / types
    "UNCATEGORIZED",
    "Category",
    "CategoryTotal",
    "MonthTotal",
    "NearbyLocation",
    "RecordedSpend",
    "RememberedLocation",
    "Transaction",
]
