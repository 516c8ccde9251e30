"""Shared pytest fixtures for ipo-sentinel."""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime

import pytest

from ipo_sentinel.core.models import (
    AlertEvent,
    AlertType,
    FetchResult,
    OperationKind,
    RawRecord,
    Severity,
)
from ipo_sentinel.sources.normalize import normalize_key


class FakeAdapter:
    """In-memory SourceAdapter returning canned records per operation kind.

    ``records`` maps a kind to the records to return. ``fail`` turns every
    call into a failed FetchResult; ``raises`` makes ``fetch`` raise past the
    adapter boundary, which real adapters never do.
    """

    probe_kind = OperationKind.LISTINGS

    def __init__(
        self,
        name: str,
        records: dict[OperationKind, list[RawRecord]] | None = None,
        fail: str | None = None,
        raises: BaseException | None = None,
        delay: float = 0.0,
    ) -> None:
        self.name = name
        self.records = records or {}
        self.fail = fail
        self.raises = raises
        self.delay = delay
        self.calls: list[OperationKind] = []
        self.closed = False

    async def fetch(self, kind: OperationKind) -> FetchResult:
        self.calls.append(kind)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.raises is not None:
            raise self.raises
        now = datetime.now(UTC)
        if self.fail:
            return FetchResult(
                success=False,
                source=self.name,
                kind=kind,
                timestamp=now,
                error=self.fail,
                error_category="network",
            )
        return FetchResult(
            success=True,
            data=list(self.records.get(kind, [])),
            source=self.name,
            kind=kind,
            timestamp=now,
            elapsed_ms=5,
        )

    async def fetch_listings(self) -> FetchResult:
        return await self.fetch(OperationKind.LISTINGS)

    async def fetch_subscription_levels(self) -> FetchResult:
        return await self.fetch(OperationKind.SUBSCRIPTIONS)

    async def fetch_premium_quotes(self) -> FetchResult:
        return await self.fetch(OperationKind.PREMIUMS)

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def make_raw():
    """Factory for RawRecord keyed by the normalized company name."""

    def _make(source: str, kind: OperationKind, company_name: str, **values) -> RawRecord:
        return RawRecord(
            key=normalize_key(company_name),
            source=source,
            kind=kind,
            company_name=company_name,
            values=values,
            fetched_at=datetime(2025, 1, 6, 10, 0, tzinfo=UTC),
        )

    return _make


@pytest.fixture
def fake_adapter():
    """Factory for FakeAdapter instances."""
    return FakeAdapter


@pytest.fixture
def make_alert():
    def _make(key: str = "ACME", message: str = "HIGH DEMAND") -> AlertEvent:
        return AlertEvent(
            type=AlertType.THRESHOLD,
            severity=Severity.WARNING,
            key=key,
            company_name=key.title(),
            message=message,
            created_at=datetime(2025, 1, 6, 10, 0, tzinfo=UTC),
        )

    return _make
