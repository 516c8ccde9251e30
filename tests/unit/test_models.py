"""Tests for core data models."""

from __future__ import annotations

from datetime import UTC, datetime

import pytest
from pydantic import ValidationError

from ipo_sentinel.core.models import (
    AggregationResult,
    Confidence,
    FetchResult,
    OperationKind,
    PremiumQuote,
    RawRecord,
    ReconciledRecord,
    SubscriptionLevel,
    Trend,
)

NOW = datetime(2025, 1, 6, 10, 0, tzinfo=UTC)


def _reconciled(kind: OperationKind, **values) -> ReconciledRecord:
    return ReconciledRecord(
        key="ACME",
        kind=kind,
        company_name="Acme Ltd",
        values=values,
        sources=["nse", "groww"],
        confidence=Confidence.HIGH,
        last_updated=NOW,
    )


class TestRawRecord:
    def test_empty_key_rejected(self):
        with pytest.raises(ValidationError):
            RawRecord(
                key="",
                source="nse",
                kind=OperationKind.LISTINGS,
                company_name="x",
                fetched_at=NOW,
            )

    def test_frozen(self, make_raw):
        record = make_raw("nse", OperationKind.LISTINGS, "Acme Ltd", price_max=100.0)
        with pytest.raises(ValidationError):
            record.key = "OTHER"

    def test_get(self, make_raw):
        record = make_raw("nse", OperationKind.LISTINGS, "Acme Ltd", price_max=100.0)
        assert record.get("price_max") == 100.0
        assert record.get("missing") is None


def test_fetch_result_count(make_raw):
    result = FetchResult(
        success=True,
        data=[make_raw("nse", OperationKind.LISTINGS, "Acme Ltd")],
        source="nse",
        kind=OperationKind.LISTINGS,
        timestamp=NOW,
    )
    assert result.count == 1


class TestReconciledRecord:
    def test_get_float(self):
        record = _reconciled(OperationKind.SUBSCRIPTIONS, total="12.5", qib=3, nii=None, retail="n/a")
        assert record.get_float("total") == 12.5
        assert record.get_float("qib") == 3.0
        assert record.get_float("nii") is None
        assert record.get_float("retail") is None
        assert record.get_float("missing") is None


class TestSubscriptionLevel:
    def test_from_record_and_delta(self):
        record = _reconciled(OperationKind.SUBSCRIPTIONS, total=15.0, qib=20.0, nii=10.0, retail=5.0)
        level = SubscriptionLevel.from_record(record, previous_total=10.0)
        assert level.total == 15.0
        assert level.retail == 5.0
        assert level.delta == 5.0
        assert level.sources == ["nse", "groww"]

    def test_delta_without_previous(self):
        record = _reconciled(OperationKind.SUBSCRIPTIONS, total=15.0)
        assert SubscriptionLevel.from_record(record).delta is None


class TestPremiumQuote:
    def test_from_record(self):
        record = _reconciled(OperationKind.PREMIUMS, premium=45.0, expected_listing=145.0)
        record = record.model_copy(update={"trend": Trend.RISING})
        quote = PremiumQuote.from_record(record)
        assert quote is not None
        assert quote.premium == 45.0
        assert quote.expected_listing == 145.0
        assert quote.trend == Trend.RISING

    def test_no_premium_yields_none(self):
        record = _reconciled(OperationKind.PREMIUMS, premium=None)
        assert PremiumQuote.from_record(record) is None


def test_aggregation_by_key():
    record = _reconciled(OperationKind.LISTINGS)
    result = AggregationResult(
        kind=OperationKind.LISTINGS,
        data=[record],
        source_outcomes=[],
        total_sources_queried=2,
        successful_sources=2,
        timestamp=NOW,
    )
    assert result.by_key() == {"ACME": record}


def test_enum_serialization():
    assert OperationKind("premiums") == OperationKind.PREMIUMS
    assert str(Confidence.MEDIUM) == "medium"
