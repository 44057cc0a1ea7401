"""Shared SQLAlchemy models registry for the workspace database.

Currently includes the spending domain models used by ``spend_tracker``.
"""

from .spending import Base, StCategory, StRememberedLocation, StTransaction

__all__ = [
    "Base",
    "StCategory",
    "StRememberedLocation",
    "StTransaction",
]
