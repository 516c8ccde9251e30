"""Pydantic data models — the system's type contracts."""

from __future__ import annotations

from datetime import date, datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

# --- Type Aliases ---

OfferingKey = str
FieldValue = float | int | str | None

# --- Enumerations ---


class OperationKind(StrEnum):
    """The three kinds of observation a source can provide."""

    LISTINGS = "listings"
    SUBSCRIPTIONS = "subscriptions"
    PREMIUMS = "premiums"


class SourceName(StrEnum):
    """External providers with a built-in adapter."""

    CHITTORGARH = "chittorgarh"
    GROWW = "groww"
    INVESTORGAIN = "investorgain"
    NSE = "nse"


class Confidence(StrEnum):
    """Qualitative trust label derived from source corroboration."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class Trend(StrEnum):
    """Direction of a premium quote within one reconciliation pass."""

    RISING = "rising"
    FALLING = "falling"
    STABLE = "stable"


class AlertType(StrEnum):
    THRESHOLD = "threshold"
    MOMENTUM = "momentum"
    PREMIUM_SPIKE = "premium_spike"
    PREMIUM_DROP = "premium_drop"


class Severity(StrEnum):
    INFO = "info"
    WARNING = "warning"
    CRITICAL = "critical"


class InvocationStatus(StrEnum):
    SUCCESS = "success"
    ERROR = "error"
    TIMEOUT = "timeout"


class HealthStatus(StrEnum):
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    DOWN = "down"


class Tier(StrEnum):
    """Service level controlling a credential's daily call ceiling."""

    FREE = "free"
    BASIC = "basic"
    PRO = "pro"
    ENTERPRISE = "enterprise"


class OfferingStatus(StrEnum):
    UPCOMING = "upcoming"
    OPEN = "open"
    CLOSED = "closed"
    LISTED = "listed"


# --- Source Models ---


class RawRecord(BaseModel):
    """One observation from one source for one operation kind."""

    model_config = ConfigDict(frozen=True)

    key: OfferingKey
    source: str
    kind: OperationKind
    company_name: str
    values: dict[str, FieldValue] = {}
    fetched_at: datetime
    elapsed_ms: int = 0

    @field_validator("key")
    @classmethod
    def key_not_empty(cls, v: str) -> str:
        if not v:
            raise ValueError("key must not be empty")
        return v

    def get(self, name: str) -> FieldValue:
        return self.values.get(name)


class FetchResult(BaseModel):
    """Outcome of one adapter operation. Failed results carry no data."""

    model_config = ConfigDict(frozen=True)

    success: bool
    data: list[RawRecord] = []
    source: str
    kind: OperationKind
    timestamp: datetime
    error: str | None = None
    error_category: str | None = None
    elapsed_ms: int = 0

    @property
    def count(self) -> int:
        return len(self.data)


# --- Reconciliation Models ---


class ReconciledRecord(BaseModel):
    """Merged view of one logical offering for one operation kind."""

    model_config = ConfigDict(frozen=True)

    key: OfferingKey
    kind: OperationKind
    company_name: str
    values: dict[str, FieldValue] = {}
    sources: list[str]
    confidence: Confidence
    trend: Trend | None = None
    last_updated: datetime

    def get(self, name: str) -> FieldValue:
        return self.values.get(name)

    def get_float(self, name: str) -> float | None:
        """Return a numeric field as float, or None when missing or non-numeric."""
        value = self.values.get(name)
        if isinstance(value, bool) or value is None:
            return None
        if isinstance(value, (int, float)):
            return float(value)
        try:
            return float(value)
        except ValueError:
            return None


class SourceOutcome(BaseModel):
    """Per-source summary attached to an aggregation result."""

    model_config = ConfigDict(frozen=True)

    source: str
    success: bool
    count: int
    elapsed_ms: int
    error: str | None = None


class AggregationResult(BaseModel):
    """Envelope returned by one reconciliation pass."""

    model_config = ConfigDict(frozen=True)

    kind: OperationKind
    data: list[ReconciledRecord]
    source_outcomes: list[SourceOutcome]
    total_sources_queried: int
    successful_sources: int
    timestamp: datetime

    def by_key(self) -> dict[OfferingKey, ReconciledRecord]:
        return {r.key: r for r in self.data}


class ConnectionTest(BaseModel):
    model_config = ConfigDict(frozen=True)

    source: str
    success: bool
    elapsed_ms: int
    error: str | None = None


# --- Alert Inputs ---


class SubscriptionLevel(BaseModel):
    """Reconciled subscription totals annotated with the previous poll's total."""

    model_config = ConfigDict(frozen=True)

    key: OfferingKey
    company_name: str
    total: float | None = None
    qib: float | None = None
    nii: float | None = None
    retail: float | None = None
    previous_total: float | None = None
    sources: list[str] = []
    confidence: Confidence = Confidence.LOW

    @property
    def delta(self) -> float | None:
        if self.total is None or self.previous_total is None:
            return None
        return self.total - self.previous_total

    @classmethod
    def from_record(
        cls, record: ReconciledRecord, previous_total: float | None = None
    ) -> SubscriptionLevel:
        return cls(
            key=record.key,
            company_name=record.company_name,
            total=record.get_float("total"),
            qib=record.get_float("qib"),
            nii=record.get_float("nii"),
            retail=record.get_float("retail"),
            previous_total=previous_total,
            sources=record.sources,
            confidence=record.confidence,
        )


class PremiumQuote(BaseModel):
    """Reconciled grey-market premium for one offering."""

    model_config = ConfigDict(frozen=True)

    key: OfferingKey
    company_name: str
    premium: float
    expected_listing: float | None = None
    premium_percent: float | None = None
    trend: Trend = Trend.STABLE
    sources: list[str] = []

    @classmethod
    def from_record(cls, record: ReconciledRecord) -> PremiumQuote | None:
        premium = record.get_float("premium")
        if premium is None:
            return None
        return cls(
            key=record.key,
            company_name=record.company_name,
            premium=premium,
            expected_listing=record.get_float("expected_listing"),
            premium_percent=record.get_float("premium_percent"),
            trend=record.trend or Trend.STABLE,
            sources=record.sources,
        )


class AlertEvent(BaseModel):
    """An alert raised by the alert engine. Never mutated after creation."""

    model_config = ConfigDict(frozen=True)

    type: AlertType
    severity: Severity
    key: OfferingKey
    company_name: str
    message: str
    payload: dict[str, Any] = {}
    created_at: datetime


# --- Health Models ---


class InvocationRecord(BaseModel):
    """One adapter invocation as seen by the health monitor."""

    model_config = ConfigDict(frozen=True)

    source: str
    kind: OperationKind
    status: InvocationStatus
    records: int = 0
    elapsed_ms: int = 0
    error: str | None = None
    recorded_at: datetime


class SourceStats(BaseModel):
    model_config = ConfigDict(frozen=True)

    source: str
    calls: int
    successes: int
    errors: int
    avg_latency_ms: int
    last_success: datetime | None = None
    last_error: datetime | None = None
    success_rate: int


class SourceHealth(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    status: HealthStatus
    last_check: datetime | None = None


class HealthReport(BaseModel):
    model_config = ConfigDict(frozen=True)

    sources: list[SourceHealth]
    overall: HealthStatus
    generated_at: datetime


# --- Quota Models ---


class UsageQuota(BaseModel):
    """Per-credential call counter scoped to one local calendar day."""

    credential: str
    tier: Tier
    calls_today: int = 0
    day: date


class QuotaDecision(BaseModel):
    model_config = ConfigDict(frozen=True)

    allowed: bool
    remaining: int
    limit: int
    reset_at: datetime


class PollSummary(BaseModel):
    """What one poll cycle produced."""

    model_config = ConfigDict(frozen=True)

    cycle: int
    trigger: str
    subscriptions: list[SubscriptionLevel] = Field(default_factory=list)
    premiums: list[PremiumQuote] = Field(default_factory=list)
    alerts: list[AlertEvent] = Field(default_factory=list)
    subscription_sources: int = 0
    premium_sources: int = 0
    persisted: int = 0
    started_at: datetime
    finished_at: datetime


class TimeSeriesPoint(BaseModel):
    """One persisted observation of a numeric series for an offering."""

    model_config = ConfigDict(frozen=True)

    key: OfferingKey
    series: str
    value: float
    recorded_at: datetime
