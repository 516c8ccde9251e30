"""Groww adapter: one JSON endpoint listing open, upcoming and closed offerings."""

from __future__ import annotations

import logging
from typing import Any, ClassVar

from ipo_sentinel.core.exceptions import SourceParseError
from ipo_sentinel.core.models import FieldValue, OfferingStatus, OperationKind, RawRecord, SourceName
from ipo_sentinel.sources.base import BaseSourceAdapter
from ipo_sentinel.sources.normalize import parse_date, parse_number

logger = logging.getLogger(__name__)

IPO_API_URL = "https://groww.in/v1/api/stocks_ipo/v1/ipo"

_RUPEES_PER_CRORE = 10_000_000

_LISTS = (
    ("openIpos", OfferingStatus.OPEN),
    ("upcomingIpos", OfferingStatus.UPCOMING),
    ("closedIpos", OfferingStatus.CLOSED),
)


class GrowwAdapter(BaseSourceAdapter):
    """Listings and subscription totals from the Groww IPO API. No GMP."""

    name: ClassVar[str] = SourceName.GROWW

    async def _load(self) -> dict[str, Any]:
        payload = await self._fetch_json(IPO_API_URL)
        if not isinstance(payload, dict):
            raise SourceParseError(
                "Unexpected Groww payload", context={"source": self.name, "url": IPO_API_URL}
            )
        return payload

    async def _listings(self) -> list[RawRecord]:
        payload = await self._load()
        records: list[RawRecord] = []
        for list_name, default_status in _LISTS:
            for item in payload.get(list_name) or []:
                record = self._listing_record(item, default_status)
                if record is not None:
                    records.append(record)
        return records

    def _listing_record(self, item: Any, default_status: OfferingStatus) -> RawRecord | None:
        if not isinstance(item, dict) or not item.get("companyName"):
            return None

        price = item.get("issuePrice") or {}
        price_min = parse_number(price.get("minIssuePrice")) or None
        price_max = parse_number(price.get("maxIssuePrice")) or None
        total_size = parse_number(item.get("totalIssueSize"))
        status = default_status
        if item.get("ipoStatus") == "LISTED":
            status = OfferingStatus.LISTED

        values: dict[str, FieldValue] = {
            "open_date": _iso(item.get("bidStartDate")),
            "close_date": _iso(item.get("bidEndDate")),
            "listing_date": _iso(item.get("listingDate")),
            "price_min": price_min,
            "price_max": price_max,
            "lot_size": int(item["lotSize"]) if item.get("lotSize") else None,
            "issue_size_crore": round(total_size / _RUPEES_PER_CRORE, 2) if total_size else None,
            "status": status.value,
            "offering_type": "sme" if str(item.get("ipoType", "")).lower() == "sme" else "mainboard",
        }
        return self._make_record(OperationKind.LISTINGS, str(item["companyName"]), values)

    async def _subscriptions(self) -> list[RawRecord]:
        payload = await self._load()
        records: list[RawRecord] = []
        for list_name in ("openIpos", "closedIpos"):
            for item in payload.get(list_name) or []:
                if not isinstance(item, dict) or not item.get("companyName"):
                    continue
                details = item.get("subscriptionDetails")
                if not isinstance(details, dict):
                    continue
                total = parse_number(details.get("totalSubscription"))
                if not total or total <= 0:
                    continue
                record = self._make_record(
                    OperationKind.SUBSCRIPTIONS,
                    str(item["companyName"]),
                    {
                        "total": total,
                        "qib": parse_number(details.get("qibSubscription")) or None,
                        "nii": parse_number(details.get("niiSubscription")) or None,
                        "retail": parse_number(details.get("retailSubscription")) or None,
                    },
                )
                if record is not None:
                    records.append(record)
        return records

    async def _premiums(self) -> list[RawRecord]:
        logger.debug("[%s] premium quotes not offered by this source", self.name)
        return []


def _iso(value: Any) -> str | None:
    if not value:
        return None
    parsed = parse_date(str(value))
    return parsed.isoformat() if parsed else None
