"""Storage backend: Protocol definition, SQLite implementation, factory."""

from __future__ import annotations

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import ClassVar, Protocol, runtime_checkable

import aiosqlite

from ipo_sentinel.core.config import StorageConfig
from ipo_sentinel.core.exceptions import StorageError
from ipo_sentinel.core.models import (
    Confidence,
    OfferingKey,
    OperationKind,
    ReconciledRecord,
    TimeSeriesPoint,
    Trend,
)

logger = logging.getLogger(__name__)

SERIES_SUBSCRIPTION_TOTAL = "subscription_total"
SERIES_PREMIUM = "premium"


@runtime_checkable
class StorageProtocol(Protocol):
    """Persistence verbs the scheduler and API depend on."""

    async def upsert_by_symbol(self, record: ReconciledRecord) -> None: ...
    async def append_time_series(
        self, key: OfferingKey, series: str, value: float, timestamp: datetime
    ) -> None: ...
    async def read_latest_by_key(self, key: OfferingKey) -> list[ReconciledRecord]: ...
    async def read_time_series(
        self, key: OfferingKey, series: str, limit: int | None = None
    ) -> list[TimeSeriesPoint]: ...
    async def initialize(self) -> None: ...
    async def close(self) -> None: ...
    async def health_check(self) -> bool: ...


class SqliteStore:
    """SQLite implementation of the storage protocol.

    Uses aiosqlite for async access, WAL mode for concurrent reads,
    and a version-tracked migration system.
    """

    _MIGRATIONS: ClassVar[dict[int, tuple[str, list[str]]]] = {
        1: (
            "Initial schema",
            [
                """CREATE TABLE IF NOT EXISTS schema_version (
                    version INTEGER PRIMARY KEY,
                    applied_at TEXT DEFAULT (datetime('now'))
                )""",
                """CREATE TABLE IF NOT EXISTS offerings_latest (
                    key TEXT NOT NULL,
                    kind TEXT NOT NULL,
                    company_name TEXT NOT NULL,
                    values_json TEXT NOT NULL,
                    sources_json TEXT NOT NULL,
                    confidence TEXT NOT NULL,
                    trend TEXT,
                    last_updated TEXT NOT NULL,
                    PRIMARY KEY(key, kind)
                )""",
                """CREATE TABLE IF NOT EXISTS time_series (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    key TEXT NOT NULL,
                    series TEXT NOT NULL,
                    value REAL NOT NULL,
                    recorded_at TEXT NOT NULL
                )""",
                "CREATE INDEX IF NOT EXISTS idx_series_key ON time_series(key, series, recorded_at)",
            ],
        ),
    }

    def __init__(self, config: StorageConfig) -> None:
        self._path = config.sqlite_path
        self._db: aiosqlite.Connection | None = None

    async def initialize(self) -> None:
        """Open connection, enable WAL, run migrations."""
        try:
            if self._path != ":memory:":
                Path(self._path).parent.mkdir(parents=True, exist_ok=True)
            self._db = await aiosqlite.connect(self._path)
            self._db.row_factory = aiosqlite.Row
            await self._db.execute("PRAGMA journal_mode=WAL")
            current = await self._get_schema_version()
            await self._apply_migrations(current)
            await self._db.commit()
        except Exception as e:
            raise StorageError(
                f"Failed to initialize SQLite store: {e}",
                context={"operation": "initialize", "path": self._path},
            ) from e

    async def close(self) -> None:
        if self._db is not None:
            await self._db.close()
            self._db = None

    async def health_check(self) -> bool:
        if self._db is None:
            return False
        try:
            async with self._db.execute("SELECT 1") as cursor:
                row = await cursor.fetchone()
            return row is not None
        except Exception:
            return False

    def _conn(self) -> aiosqlite.Connection:
        if self._db is None:
            raise StorageError(
                "Store is not initialized", context={"operation": "connect", "path": self._path}
            )
        return self._db

    # --- Schema Migration ---

    async def _get_schema_version(self) -> int:
        try:
            async with self._conn().execute("SELECT MAX(version) FROM schema_version") as cursor:
                row = await cursor.fetchone()
            return row[0] if row[0] is not None else 0
        except aiosqlite.OperationalError:
            return 0

    async def _apply_migrations(self, current_version: int) -> None:
        db = self._conn()
        for version in sorted(self._MIGRATIONS.keys()):
            if version <= current_version:
                continue
            desc, statements = self._MIGRATIONS[version]
            logger.info("Applying migration %d: %s", version, desc)
            for sql in statements:
                await db.execute(sql)
            await db.execute("INSERT INTO schema_version (version) VALUES (?)", (version,))

    # --- Latest Snapshot ---

    async def upsert_by_symbol(self, record: ReconciledRecord) -> None:
        """Replace the latest snapshot for (key, kind)."""
        try:
            db = self._conn()
            await db.execute(
                """INSERT OR REPLACE INTO offerings_latest
                   (key, kind, company_name, values_json, sources_json,
                    confidence, trend, last_updated)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    record.key,
                    str(record.kind),
                    record.company_name,
                    json.dumps(record.values),
                    json.dumps(record.sources),
                    str(record.confidence),
                    str(record.trend) if record.trend else None,
                    record.last_updated.isoformat(),
                ),
            )
            await db.commit()
        except Exception as e:
            if isinstance(e, StorageError):
                raise
            raise StorageError(
                f"Failed to upsert offering: {e}",
                context={"operation": "upsert", "table": "offerings_latest", "key": record.key},
            ) from e

    async def read_latest_by_key(self, key: OfferingKey) -> list[ReconciledRecord]:
        """Latest snapshot of every kind stored for ``key``."""
        try:
            async with self._conn().execute(
                "SELECT * FROM offerings_latest WHERE key = ? ORDER BY kind",
                (key,),
            ) as cursor:
                rows = await cursor.fetchall()
            return [self._row_to_record(row) for row in rows]
        except Exception as e:
            if isinstance(e, StorageError):
                raise
            raise StorageError(
                f"Failed to read offering: {e}",
                context={"operation": "query", "table": "offerings_latest", "key": key},
            ) from e

    # --- Time Series ---

    async def append_time_series(
        self,
        key: OfferingKey,
        series: str,
        value: float,
        timestamp: datetime,
    ) -> None:
        try:
            db = self._conn()
            await db.execute(
                "INSERT INTO time_series (key, series, value, recorded_at) VALUES (?, ?, ?, ?)",
                (key, series, float(value), timestamp.isoformat()),
            )
            await db.commit()
        except Exception as e:
            if isinstance(e, StorageError):
                raise
            raise StorageError(
                f"Failed to append time series: {e}",
                context={"operation": "insert", "table": "time_series", "key": key, "series": series},
            ) from e

    async def read_time_series(
        self,
        key: OfferingKey,
        series: str,
        limit: int | None = None,
    ) -> list[TimeSeriesPoint]:
        """Points for (key, series), oldest first. ``limit`` keeps the newest N."""
        try:
            query = "SELECT * FROM time_series WHERE key = ? AND series = ? ORDER BY recorded_at DESC, id DESC"
            params: list = [key, series]
            if limit is not None:
                query += " LIMIT ?"
                params.append(limit)
            async with self._conn().execute(query, params) as cursor:
                rows = await cursor.fetchall()
            return [
                TimeSeriesPoint(
                    key=row["key"],
                    series=row["series"],
                    value=row["value"],
                    recorded_at=datetime.fromisoformat(row["recorded_at"]),
                )
                for row in reversed(rows)
            ]
        except Exception as e:
            if isinstance(e, StorageError):
                raise
            raise StorageError(
                f"Failed to read time series: {e}",
                context={"operation": "query", "table": "time_series", "key": key, "series": series},
            ) from e

    # --- Row Converters ---

    @staticmethod
    def _row_to_record(row: aiosqlite.Row) -> ReconciledRecord:
        return ReconciledRecord(
            key=row["key"],
            kind=OperationKind(row["kind"]),
            company_name=row["company_name"],
            values=json.loads(row["values_json"]),
            sources=json.loads(row["sources_json"]),
            confidence=Confidence(row["confidence"]),
            trend=Trend(row["trend"]) if row["trend"] else None,
            last_updated=datetime.fromisoformat(row["last_updated"]),
        )


async def create_store(config: StorageConfig) -> SqliteStore:
    """Create and initialize the SQLite store."""
    store = SqliteStore(config)
    await store.initialize()
    return store
