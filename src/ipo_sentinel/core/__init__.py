"""ipo_sentinel.core — Foundation types, config, and exceptions."""

from ipo_sentinel.core.config import (
    AlertsConfig,
    APIConfig,
    HealthConfig,
    QuotaConfig,
    SchedulerConfig,
    SentinelConfig,
    SourcesConfig,
    StorageConfig,
    TradingWindowConfig,
    load_config,
)
from ipo_sentinel.core.exceptions import (
    ConfigError,
    HttpStatusError,
    IpoSentinelError,
    NetworkError,
    QuotaExceededError,
    SourceError,
    SourceFetchError,
    SourceParseError,
    StorageError,
    TimeoutFetchError,
)
from ipo_sentinel.core.models import (
    AggregationResult,
    AlertEvent,
    AlertType,
    Confidence,
    ConnectionTest,
    FetchResult,
    HealthReport,
    HealthStatus,
    InvocationRecord,
    InvocationStatus,
    OfferingKey,
    OfferingStatus,
    OperationKind,
    PollSummary,
    PremiumQuote,
    QuotaDecision,
    RawRecord,
    ReconciledRecord,
    Severity,
    SourceHealth,
    SourceName,
    SourceOutcome,
    SourceStats,
    SubscriptionLevel,
    Tier,
    TimeSeriesPoint,
    Trend,
    UsageQuota,
)

__all__ = [
    # Type aliases
    "OfferingKey",
    # Enums
    "OperationKind",
    "SourceName",
    "Confidence",
    "Trend",
    "AlertType",
    "Severity",
    "InvocationStatus",
    "HealthStatus",
    "Tier",
    "OfferingStatus",
    # Source models
    "RawRecord",
    "FetchResult",
    # Reconciliation models
    "ReconciledRecord",
    "SourceOutcome",
    "AggregationResult",
    "ConnectionTest",
    # Alert models
    "SubscriptionLevel",
    "PremiumQuote",
    "AlertEvent",
    "PollSummary",
    "TimeSeriesPoint",
    # Health models
    "InvocationRecord",
    "SourceStats",
    "SourceHealth",
    "HealthReport",
    # Quota models
    "UsageQuota",
    "QuotaDecision",
    # Config
    "SentinelConfig",
    "SourcesConfig",
    "TradingWindowConfig",
    "SchedulerConfig",
    "AlertsConfig",
    "HealthConfig",
    "QuotaConfig",
    "StorageConfig",
    "APIConfig",
    "load_config",
    # Exceptions
    "IpoSentinelError",
    "ConfigError",
    "SourceError",
    "SourceFetchError",
    "TimeoutFetchError",
    "HttpStatusError",
    "NetworkError",
    "SourceParseError",
    "StorageError",
    "QuotaExceededError",
]
