"""ipo_sentinel.storage — Persistence of latest snapshots and history."""

from ipo_sentinel.storage.store import (
    SERIES_PREMIUM,
    SERIES_SUBSCRIPTION_TOTAL,
    SqliteStore,
    StorageProtocol,
    create_store,
)

__all__ = [
    "StorageProtocol",
    "SqliteStore",
    "create_store",
    "SERIES_PREMIUM",
    "SERIES_SUBSCRIPTION_TOTAL",
]
