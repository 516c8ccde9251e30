"""Multi-source reconciliation: fan out to adapters, merge by normalized key.

One pass per call. Nothing survives between passes; reconciled records are
rebuilt from scratch every time.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime

from ipo_sentinel.core.exceptions import ConfigError
from ipo_sentinel.core.models import (
    AggregationResult,
    Confidence,
    ConnectionTest,
    FetchResult,
    FieldValue,
    OperationKind,
    RawRecord,
    ReconciledRecord,
    SourceName,
    SourceOutcome,
    Trend,
)
from ipo_sentinel.sources.base import SourceAdapter

logger = logging.getLogger(__name__)

DEFAULT_SOURCES: dict[OperationKind, tuple[str, ...]] = {
    OperationKind.LISTINGS: (
        SourceName.INVESTORGAIN,
        SourceName.NSE,
        SourceName.GROWW,
        SourceName.CHITTORGARH,
    ),
    OperationKind.SUBSCRIPTIONS: (
        SourceName.NSE,
        SourceName.CHITTORGARH,
        SourceName.GROWW,
        SourceName.INVESTORGAIN,
    ),
    OperationKind.PREMIUMS: (SourceName.CHITTORGARH, SourceName.INVESTORGAIN),
}

TREND_THRESHOLD = 5.0

# String placeholders sources use for "not known yet"
_EMPTY_STRINGS = {"", "tba", "-", "n/a"}


def is_empty(value: FieldValue) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip().lower() in _EMPTY_STRINGS
    return False


def classify_confidence(attributed: int, total_queried: int) -> Confidence:
    """Confidence from corroboration: ≥2 sources high, 1 of ≥2 medium, else low."""
    if attributed >= 2:
        return Confidence.HIGH
    if attributed == 1 and total_queried >= 2:
        return Confidence.MEDIUM
    return Confidence.LOW


def classify_trend(first: float | None, last: float | None) -> Trend:
    if first is None or last is None:
        return Trend.STABLE
    delta = last - first
    if delta > TREND_THRESHOLD:
        return Trend.RISING
    if delta < -TREND_THRESHOLD:
        return Trend.FALLING
    return Trend.STABLE


@dataclass
class _Accumulator:
    """Mutable merge state for one key during a single pass."""

    key: str
    company_name: str
    values: dict[str, FieldValue]
    sources: list[str] = field(default_factory=list)
    premiums: list[float] = field(default_factory=list)

    def merge(self, record: RawRecord) -> None:
        if not self.company_name and record.company_name:
            self.company_name = record.company_name
        for name, value in record.values.items():
            if is_empty(self.values.get(name)) and not is_empty(value):
                self.values[name] = value
            elif name not in self.values:
                self.values[name] = value
        self.attribute(record)

    def attribute(self, record: RawRecord) -> None:
        if record.source not in self.sources:
            self.sources.append(record.source)
        premium = record.get("premium")
        if isinstance(premium, (int, float)) and not isinstance(premium, bool):
            self.premiums.append(float(premium))


def reconcile(
    kind: OperationKind,
    results: Iterable[FetchResult],
    total_queried: int,
    now: datetime | None = None,
) -> list[ReconciledRecord]:
    """Fold fetch results (in request order) into reconciled records.

    The first record for a key seeds it; later records only fill fields
    that are still empty. Failed results contribute nothing.
    """
    now = now or datetime.now(UTC)
    merged: dict[str, _Accumulator] = {}

    for result in results:
        if not result.success:
            continue
        for record in result.data:
            acc = merged.get(record.key)
            if acc is None:
                acc = _Accumulator(
                    key=record.key,
                    company_name=record.company_name,
                    values=dict(record.values),
                )
                acc.attribute(record)
                merged[record.key] = acc
            else:
                acc.merge(record)

    reconciled = []
    for acc in merged.values():
        trend = None
        if kind == OperationKind.PREMIUMS:
            trend = classify_trend(
                acc.premiums[0] if acc.premiums else None,
                acc.premiums[-1] if acc.premiums else None,
            )
        reconciled.append(
            ReconciledRecord(
                key=acc.key,
                kind=kind,
                company_name=acc.company_name,
                values=acc.values,
                sources=acc.sources,
                confidence=classify_confidence(len(acc.sources), total_queried),
                trend=trend,
                last_updated=now,
            )
        )
    return reconciled


class Aggregator:
    """Query a selectable subset of adapters concurrently and reconcile.

    Usage:
        aggregator = Aggregator(build_adapters(config.sources, observer=monitor))
        result = await aggregator.aggregate(OperationKind.SUBSCRIPTIONS)
    """

    def __init__(self, adapters: Mapping[str, SourceAdapter]) -> None:
        self._adapters = dict(adapters)

    @property
    def source_names(self) -> list[str]:
        return list(self._adapters)

    def resolve(self, kind: OperationKind, sources: Iterable[str] | None = None) -> list[str]:
        """Map requested names onto configured adapters, preserving order.

        Raises:
            ConfigError: If nothing resolves to a configured adapter.
        """
        requested = list(DEFAULT_SOURCES[kind] if sources is None else sources)
        resolved: list[str] = []
        for raw in requested:
            name = str(raw).strip().lower()
            if name in resolved:
                continue
            if name not in self._adapters:
                logger.warning("Unknown or disabled source %r requested for %s", raw, kind)
                continue
            resolved.append(name)

        if not resolved:
            raise ConfigError(
                f"No configured source matches the requested selection for {kind}",
                context={"field": "sources", "value": requested},
            )
        return resolved

    async def aggregate(
        self,
        kind: OperationKind,
        sources: Iterable[str] | None = None,
    ) -> AggregationResult:
        """Run one reconciliation pass.

        Every selected adapter is awaited to completion before any merging
        happens. Individual source failures only show up in the outcomes.
        """
        names = self.resolve(kind, sources)
        started = time.monotonic()

        settled = await asyncio.gather(
            *(self._adapters[name].fetch(kind) for name in names),
            return_exceptions=True,
        )

        results: list[FetchResult] = []
        for name, outcome in zip(names, settled):
            if isinstance(outcome, FetchResult):
                results.append(outcome)
                continue
            if not isinstance(outcome, Exception):
                raise outcome
            logger.error("[%s] adapter raised past its boundary: %r", name, outcome)
            results.append(
                FetchResult(
                    success=False,
                    source=name,
                    kind=kind,
                    timestamp=datetime.now(UTC),
                    error=str(outcome) or type(outcome).__name__,
                    error_category="network",
                )
            )

        data = reconcile(kind, results, total_queried=len(names))
        successful = sum(1 for r in results if r.success)
        logger.info(
            "Aggregated %d %s records from %d/%d sources in %dms",
            len(data), kind, successful, len(names), int((time.monotonic() - started) * 1000),
        )
        return AggregationResult(
            kind=kind,
            data=data,
            source_outcomes=[
                SourceOutcome(
                    source=r.source,
                    success=r.success,
                    count=r.count,
                    elapsed_ms=r.elapsed_ms,
                    error=r.error,
                )
                for r in results
            ],
            total_sources_queried=len(names),
            successful_sources=successful,
            timestamp=datetime.now(UTC),
        )

    async def test_connection(self, source: str) -> ConnectionTest:
        """Run one cheap operation against ``source`` and report the outcome."""
        name = source.strip().lower()
        adapter = self._adapters.get(name)
        if adapter is None:
            return ConnectionTest(source=source, success=False, elapsed_ms=0, error="Unknown source")

        started = time.monotonic()
        kind = getattr(adapter, "probe_kind", OperationKind.LISTINGS)
        result = await adapter.fetch(kind)
        return ConnectionTest(
            source=name,
            success=result.success,
            elapsed_ms=int((time.monotonic() - started) * 1000),
            error=result.error,
        )

    async def test_all_connections(self) -> list[ConnectionTest]:
        return list(await asyncio.gather(*(self.test_connection(n) for n in self._adapters)))

    async def close(self) -> None:
        for adapter in self._adapters.values():
            await adapter.close()
