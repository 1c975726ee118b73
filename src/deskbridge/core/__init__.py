"""核心业务逻辑."""

from deskbridge.core.category_mapper import CategoryMapper
from deskbridge.core.hashing import content_hash
from deskbridge.core.job import InvalidJobTransition, JobTracker
from deskbridge.core.store import SQLModelStore, Store
from deskbridge.core.sync import (
    SyncCancelledError,
    SyncConfigurationError,
    SyncError,
    SyncOrchestrator,
)

__all__ = [
    "CategoryMapper",
    "InvalidJobTransition",
    "JobTracker",
    "SQLModelStore",
    "Store",
    "SyncCancelledError",
    "SyncConfigurationError",
    "SyncError",
    "SyncOrchestrator",
    "content_hash",
]
