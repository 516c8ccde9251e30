"""NSE adapter: exchange JSON API behind a cookie-priming home page request."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, ClassVar

from ipo_sentinel.core.exceptions import SourceError, SourceParseError
from ipo_sentinel.core.models import FieldValue, OfferingStatus, OperationKind, RawRecord, SourceName
from ipo_sentinel.sources.base import BaseSourceAdapter
from ipo_sentinel.sources.normalize import (
    parse_date,
    parse_issue_size,
    parse_number,
    parse_price_range,
)

logger = logging.getLogger(__name__)

HOME_URL = "https://www.nseindia.com"
URLS = {
    "current": "https://www.nseindia.com/api/ipo-current-issue",
    "upcoming": "https://www.nseindia.com/api/ipo-upcoming",
}
NSE_HEADERS = {
    "Referer": "https://www.nseindia.com/market-data/all-upcoming-issues-ipo",
    "Origin": "https://www.nseindia.com",
}


class NseAdapter(BaseSourceAdapter):
    """Current and upcoming issues from nseindia.com. No GMP.

    The API rejects requests without the session cookies set by the home
    page, so every operation primes the shared client's cookie jar first.
    """

    name: ClassVar[str] = SourceName.NSE

    async def _prime_session(self) -> None:
        try:
            await self._request(HOME_URL, headers=NSE_HEADERS)
        except SourceError as e:
            # The API call that follows reports the real failure
            logger.warning("[%s] session priming failed: %s", self.name, e)
        else:
            logger.debug("[%s] session initialized", self.name)

    async def _issues(self, which: str) -> list[dict[str, Any]]:
        payload = await self._fetch_json(URLS[which], headers=NSE_HEADERS)
        if payload is None:
            return []
        if not isinstance(payload, list):
            raise SourceParseError(
                f"Expected a list from NSE {which} issues",
                context={"source": self.name, "url": URLS[which]},
            )
        return [item for item in payload if isinstance(item, dict)]

    async def _listings(self) -> list[RawRecord]:
        await self._prime_session()
        current, upcoming = await asyncio.gather(
            self._issues("current"), self._issues("upcoming"), return_exceptions=True
        )

        records: list[RawRecord] = []
        failures: list[BaseException] = []
        for which, issues, status in (
            ("current", current, OfferingStatus.OPEN),
            ("upcoming", upcoming, OfferingStatus.UPCOMING),
        ):
            if isinstance(issues, BaseException):
                logger.warning("[%s] %s issues failed: %s", self.name, which, issues)
                failures.append(issues)
                continue
            for item in issues:
                record = self._listing_record(item, status)
                if record is not None:
                    records.append(record)

        if len(failures) == 2:
            raise failures[0]
        return records

    def _listing_record(self, item: dict[str, Any], status: OfferingStatus) -> RawRecord | None:
        name = str(item.get("companyName") or "").strip()
        if not name:
            return None
        price_text = str(item.get("issuePrice") or "") or None
        price_min, price_max = parse_price_range(price_text)
        open_date = parse_date(item.get("issueStartDate"))
        close_date = parse_date(item.get("issueEndDate"))
        listing_date = parse_date(item.get("listingDate"))

        values: dict[str, FieldValue] = {
            "symbol": str(item["symbol"]).upper() if item.get("symbol") else None,
            "open_date": open_date.isoformat() if open_date else None,
            "close_date": close_date.isoformat() if close_date else None,
            "listing_date": listing_date.isoformat() if listing_date else None,
            "price_range": price_text,
            "price_min": price_min,
            "price_max": price_max,
            "lot_size": None,
            "issue_size_crore": parse_issue_size(str(item.get("issueSizeAmount") or "") or None),
            "status": status.value,
            "offering_type": "mainboard",
        }
        return self._make_record(OperationKind.LISTINGS, name, values)

    async def _subscriptions(self) -> list[RawRecord]:
        await self._prime_session()
        records: list[RawRecord] = []
        for item in await self._issues("current"):
            name = str(item.get("companyName") or "").strip()
            total = parse_number(item.get("totalSubscription"))
            if not name or not total:
                continue
            record = self._make_record(
                OperationKind.SUBSCRIPTIONS,
                name,
                {
                    "total": total,
                    "qib": parse_number(item.get("qibSubscription")) or None,
                    "nii": parse_number(item.get("niiSubscription")) or None,
                    "retail": parse_number(item.get("retailSubscription")) or None,
                    "symbol": str(item["symbol"]).upper() if item.get("symbol") else None,
                },
            )
            if record is not None:
                records.append(record)
        return records

    async def _premiums(self) -> list[RawRecord]:
        logger.debug("[%s] premium quotes not offered by this source", self.name)
        return []
