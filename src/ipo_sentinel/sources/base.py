"""Source adapter contract and the shared fetch/retry/wrap machinery.

Every provider exposes the same three operations. Each operation returns a
``FetchResult`` and never raises: transport failures, bad payloads and parser
bugs all end up as ``success=False`` with empty data.

    HTTP payload → provider parser → list[RawRecord] → FetchResult → Aggregator
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from typing import Any, ClassVar, Protocol, runtime_checkable

import httpx
from aiolimiter import AsyncLimiter

from ipo_sentinel.core.config import SourcesConfig
from ipo_sentinel.core.exceptions import (
    HttpStatusError,
    NetworkError,
    SourceFetchError,
    SourceParseError,
    TimeoutFetchError,
)
from ipo_sentinel.core.models import (
    FetchResult,
    FieldValue,
    InvocationRecord,
    InvocationStatus,
    OperationKind,
    RawRecord,
)
from ipo_sentinel.sources.normalize import normalize_key

logger = logging.getLogger(__name__)

DEFAULT_HEADERS = {
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.5",
    "Cache-Control": "no-cache",
}

# Keys shorter than this are table headers or junk rows
_MIN_KEY_LENGTH = 3


@runtime_checkable
class InvocationObserver(Protocol):
    """Receives one record per adapter invocation (success or failure)."""

    def record(self, invocation: InvocationRecord) -> None: ...


@runtime_checkable
class SourceAdapter(Protocol):
    """Uniform capability set implemented by every provider."""

    name: str

    async def fetch_listings(self) -> FetchResult: ...
    async def fetch_subscription_levels(self) -> FetchResult: ...
    async def fetch_premium_quotes(self) -> FetchResult: ...
    async def fetch(self, kind: OperationKind) -> FetchResult: ...
    async def close(self) -> None: ...


class BaseSourceAdapter:
    """Shared behaviour for HTTP-backed providers.

    Subclasses implement ``_listings``, ``_subscriptions`` and ``_premiums``
    returning raw records; they may raise freely. The public ``fetch_*``
    methods wrap them with timing, error capture and observer notification.

    Use via ``async with Adapter(config) as adapter:`` or call ``close()``.
    """

    name: ClassVar[str] = "base"
    probe_kind: ClassVar[OperationKind] = OperationKind.LISTINGS

    def __init__(
        self,
        config: SourcesConfig,
        observer: InvocationObserver | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._config = config
        self._observer = observer
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            headers={"User-Agent": config.user_agent, **DEFAULT_HEADERS},
            timeout=httpx.Timeout(config.timeout_seconds),
            follow_redirects=True,
        )
        self._limiter = AsyncLimiter(max_rate=config.rate_limit, time_period=1.0)

    async def __aenter__(self) -> BaseSourceAdapter:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the underlying HTTP client if this adapter created it."""
        if self._owns_client:
            await self._client.aclose()

    # --- Public operations ---

    async def fetch_listings(self) -> FetchResult:
        return await self._run(OperationKind.LISTINGS, self._listings)

    async def fetch_subscription_levels(self) -> FetchResult:
        return await self._run(OperationKind.SUBSCRIPTIONS, self._subscriptions)

    async def fetch_premium_quotes(self) -> FetchResult:
        return await self._run(OperationKind.PREMIUMS, self._premiums)

    async def fetch(self, kind: OperationKind) -> FetchResult:
        """Dispatch to the operation for ``kind``."""
        if kind == OperationKind.LISTINGS:
            return await self.fetch_listings()
        if kind == OperationKind.SUBSCRIPTIONS:
            return await self.fetch_subscription_levels()
        return await self.fetch_premium_quotes()

    # --- Provider hooks ---

    async def _listings(self) -> list[RawRecord]:
        raise NotImplementedError

    async def _subscriptions(self) -> list[RawRecord]:
        raise NotImplementedError

    async def _premiums(self) -> list[RawRecord]:
        raise NotImplementedError

    # --- Wrapping ---

    async def _run(
        self,
        kind: OperationKind,
        operation: Callable[[], Awaitable[list[RawRecord]]],
    ) -> FetchResult:
        """Execute one operation and fold every outcome into a FetchResult."""
        started = time.monotonic()
        try:
            records = await operation()
        except Exception as e:
            elapsed_ms = _elapsed_ms(started)
            category = getattr(e, "category", None) or _categorize(e)
            message = str(e) or type(e).__name__
            logger.warning(
                "[%s] %s failed after %dms (%s): %s",
                self.name, kind, elapsed_ms, category, message,
            )
            result = FetchResult(
                success=False,
                data=[],
                source=self.name,
                kind=kind,
                timestamp=datetime.now(UTC),
                error=message,
                error_category=category,
                elapsed_ms=elapsed_ms,
            )
        else:
            elapsed_ms = _elapsed_ms(started)
            logger.info(
                "[%s] %s: %d records in %dms", self.name, kind, len(records), elapsed_ms
            )
            result = FetchResult(
                success=True,
                data=[r.model_copy(update={"elapsed_ms": elapsed_ms}) for r in records],
                source=self.name,
                kind=kind,
                timestamp=datetime.now(UTC),
                elapsed_ms=elapsed_ms,
            )
        self._notify(result)
        return result

    def _notify(self, result: FetchResult) -> None:
        if self._observer is None:
            return
        if result.success:
            status = InvocationStatus.SUCCESS
        elif result.error_category == "timeout":
            status = InvocationStatus.TIMEOUT
        else:
            status = InvocationStatus.ERROR
        try:
            self._observer.record(
                InvocationRecord(
                    source=self.name,
                    kind=result.kind,
                    status=status,
                    records=result.count,
                    elapsed_ms=result.elapsed_ms,
                    error=result.error,
                    recorded_at=result.timestamp,
                )
            )
        except Exception:
            logger.exception("[%s] invocation observer failed", self.name)

    def _make_record(
        self,
        kind: OperationKind,
        company_name: str,
        values: dict[str, FieldValue],
    ) -> RawRecord | None:
        """Build a RawRecord, or None when the name yields no usable key."""
        key = normalize_key(company_name)
        if len(key) < _MIN_KEY_LENGTH:
            return None
        return RawRecord(
            key=key,
            source=self.name,
            kind=kind,
            company_name=company_name.strip(),
            values=values,
            fetched_at=datetime.now(UTC),
        )

    # --- HTTP with retry ---

    async def _request(
        self,
        url: str,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        """GET ``url`` with bounded attempts and a linearly growing delay.

        Retry policy:
            - up to ``retries + 1`` attempts, each with its own timeout;
            - delay before attempt n is ``retry_delay_seconds * n``;
            - timeouts, connection errors and non-2xx statuses are all retried.
            - every attempt first takes a token from the per-adapter limiter.

        Raises:
            TimeoutFetchError, HttpStatusError, NetworkError: describing the
            last failed attempt once attempts are exhausted.
        """
        attempts = self._config.retries + 1
        last_exc: SourceFetchError | None = None

        for attempt in range(attempts):
            if attempt > 0:
                delay = self._config.retry_delay_seconds * attempt
                logger.warning(
                    "[%s] retrying %s in %.1fs (attempt %d/%d)",
                    self.name, url, delay, attempt + 1, attempts,
                )
                await asyncio.sleep(delay)

            try:
                await self._limiter.acquire()
                response = await self._client.get(url, headers=headers)
            except httpx.TimeoutException as e:
                last_exc = TimeoutFetchError(
                    f"Timed out fetching {url}",
                    context={"source": self.name, "url": url, "error": str(e)},
                )
                continue
            except httpx.RequestError as e:
                last_exc = NetworkError(
                    f"Network error fetching {url}: {e}",
                    context={"source": self.name, "url": url, "error": str(e)},
                )
                continue

            if response.is_success:
                return response

            last_exc = HttpStatusError(
                f"HTTP {response.status_code} from {url}",
                context={"source": self.name, "url": url, "status_code": response.status_code},
            )

        assert last_exc is not None
        raise last_exc

    async def _fetch_text(self, url: str, headers: dict[str, str] | None = None) -> str:
        response = await self._request(url, headers=headers)
        return response.text

    async def _fetch_json(self, url: str, headers: dict[str, str] | None = None) -> Any:
        merged = {"Accept": "application/json, text/plain, */*", **(headers or {})}
        response = await self._request(url, headers=merged)
        try:
            return response.json()
        except ValueError as e:
            raise SourceParseError(
                f"Invalid JSON from {url}",
                context={"source": self.name, "url": url},
            ) from e


def _elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)


def _categorize(exc: Exception) -> str:
    if isinstance(exc, (KeyError, TypeError, ValueError, AttributeError, IndexError)):
        return "parse"
    return "network"
