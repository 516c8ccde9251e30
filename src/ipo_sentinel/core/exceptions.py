"""Custom exception hierarchy for ipo-sentinel."""

from typing import Any


class IpoSentinelError(Exception):
    """Base exception for all ipo-sentinel errors.

    All exceptions carry an optional `context` dict for structured error
    metadata that can be logged or serialized without parsing the message.
    """

    def __init__(self, message: str, context: dict[str, Any] | None = None):
        super().__init__(message)
        self.context = context or {}


class ConfigError(IpoSentinelError):
    """Invalid or missing configuration.

    Raised by load_config() during startup and by the aggregator when a
    requested source selection resolves to no adapter at all. Should be
    treated as fatal.

    Context keys:
        field: str — the config field that failed validation
        value: Any — the invalid value
    """


class SourceError(IpoSentinelError):
    """Failed to fetch or parse data from an external source.

    Policy: never escapes an adapter operation. The adapter converts it into
    a failed FetchResult and the aggregator proceeds with other sources.

    Context keys:
        source: str — the provider name
        url: str — the URL that was being fetched
    """

    category = "network"


class SourceFetchError(SourceError):
    """Transport-level failure after all attempts were exhausted."""


class TimeoutFetchError(SourceFetchError):
    """Every attempt timed out."""

    category = "timeout"


class HttpStatusError(SourceFetchError):
    """Source answered with a non-2xx status.

    Context keys:
        status_code: int
    """

    category = "http_status"


class NetworkError(SourceFetchError):
    """Connection refused, DNS failure, reset, etc."""

    category = "network"


class SourceParseError(SourceError):
    """Payload could not be decoded or had an unexpected shape."""

    category = "parse"


class StorageError(IpoSentinelError):
    """Database operation failed.

    Policy: raised by the store. Inside a poll cycle it is logged and the
    affected record is skipped; elsewhere it propagates.

    Context keys:
        operation: str — "upsert", "append", "query", "migrate", etc.
        table: str — the table involved
    """


class QuotaExceededError(IpoSentinelError):
    """A credential has used up its daily call ceiling.

    Context keys:
        credential: str — redacted credential prefix
        tier: str
        reset_at: str — ISO-8601 timestamp of next local midnight
    """
