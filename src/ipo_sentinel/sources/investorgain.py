"""InvestorGain adapter: JSON report table plus per-offering subscription detail."""

from __future__ import annotations

import asyncio
import logging
from datetime import date
from typing import Any, ClassVar

from ipo_sentinel.core.exceptions import SourceError, SourceParseError
from ipo_sentinel.core.models import FieldValue, OfferingStatus, OperationKind, RawRecord, SourceName
from ipo_sentinel.sources.base import BaseSourceAdapter
from ipo_sentinel.sources.normalize import (
    clean_company_name,
    parse_date,
    parse_issue_size,
    parse_lot_size,
    parse_number,
    parse_signed_amount,
)

logger = logging.getLogger(__name__)

MASTER_URL = "https://webnodejs.investorgain.com/cloud/report/data-read/331/1/6/2025/2025-26/0/all"
SUBSCRIPTION_URL = "https://webnodejs.investorgain.com/cloud/ipo/ipo-subscription-read/{ipo_id}"

# Status badges embedded in the Name column's HTML, checked in order
_BADGES = (
    (("badge-success", "open"), OfferingStatus.OPEN),
    (("badge-info", "upcoming"), OfferingStatus.UPCOMING),
    (("badge-warning", "pending"), OfferingStatus.CLOSED),
    (("badge-secondary", "listed"), OfferingStatus.LISTED),
)


class InvestorGainAdapter(BaseSourceAdapter):
    """Listings and GMP from the report table; subscription from a detail endpoint.

    The subscription pass reads the report table first and then queries the
    detail endpoint for the first ``subscription_detail_limit`` offerings that
    carry an id. A failing detail request drops only that offering.
    """

    name: ClassVar[str] = SourceName.INVESTORGAIN

    async def _rows(self) -> list[dict[str, Any]]:
        payload = await self._fetch_json(MASTER_URL)
        rows = payload.get("reportTableData") if isinstance(payload, dict) else None
        if not isinstance(rows, list):
            raise SourceParseError(
                "Missing reportTableData in InvestorGain response",
                context={"source": self.name, "url": MASTER_URL},
            )
        return [row for row in rows if isinstance(row, dict)]

    async def _listings(self) -> list[RawRecord]:
        records = []
        for row in await self._rows():
            record = self._listing_record(row)
            if record is not None:
                records.append(record)
        return records

    def _listing_record(self, row: dict[str, Any]) -> RawRecord | None:
        name = clean_company_name(str(row.get("~ipo_name") or row.get("Name") or ""))
        if not name:
            return None

        price = parse_number(row.get("Price (₹)"))
        open_date = parse_date(_str(row.get("~Srt_Open")))
        close_date = parse_date(_str(row.get("~Srt_Close")))
        listing_date = parse_date(_str(row.get("~Str_Listing")))
        category = str(row.get("~IPO_Category") or "").lower()
        ipo_id = row.get("~id")

        values: dict[str, FieldValue] = {
            "open_date": open_date.isoformat() if open_date else None,
            "close_date": close_date.isoformat() if close_date else None,
            "listing_date": listing_date.isoformat() if listing_date else None,
            "price_range": _str(row.get("Price (₹)")),
            "price_min": price,
            "price_max": price,
            "lot_size": parse_lot_size(_str(row.get("Lot"))),
            "issue_size_crore": parse_issue_size(_str(row.get("IPO Size (₹ in cr)"))),
            "status": _status(str(row.get("Name") or ""), open_date, close_date, listing_date).value,
            "offering_type": "sme" if "sme" in category else "mainboard",
            "premium": parse_signed_amount(_str(row.get("GMP"))),
            "premium_percent": parse_number(row.get("~gmp_percent_calc")),
            "subscription_total": parse_number(row.get("Sub")),
            "investorgain_id": int(ipo_id) if isinstance(ipo_id, (int, float)) and ipo_id else None,
        }
        return self._make_record(OperationKind.LISTINGS, name, values)

    async def _subscriptions(self) -> list[RawRecord]:
        listings = await self._listings()
        candidates = [r for r in listings if r.get("investorgain_id")]
        candidates = candidates[: self._config.subscription_detail_limit]

        details = await asyncio.gather(
            *(self._subscription_detail(int(r.get("investorgain_id"))) for r in candidates),
            return_exceptions=True,
        )

        records: list[RawRecord] = []
        for listing, detail in zip(candidates, details):
            if isinstance(detail, SourceError):
                logger.warning(
                    "[%s] subscription detail for %s failed: %s", self.name, listing.key, detail
                )
                continue
            if isinstance(detail, BaseException):
                raise detail
            if detail is None:
                continue
            record = self._make_record(OperationKind.SUBSCRIPTIONS, listing.company_name, detail)
            if record is not None:
                records.append(record)
        return records

    async def _subscription_detail(self, ipo_id: int) -> dict[str, FieldValue] | None:
        url = SUBSCRIPTION_URL.format(ipo_id=ipo_id)
        payload = await self._fetch_json(url)
        if not isinstance(payload, dict) or payload.get("msg") != 1:
            return None
        data = payload.get("data")
        if not isinstance(data, dict):
            return None
        bidding = data.get("ipoBiddingData")
        if not isinstance(bidding, list) or not bidding:
            return None
        latest = bidding[-1]
        if not isinstance(latest, dict):
            return None
        return {
            "qib": parse_number(latest.get("qib")) or 0.0,
            "nii": parse_number(latest.get("nii")) or 0.0,
            "retail": parse_number(latest.get("rii")) or 0.0,
            "total": parse_number(latest.get("total")) or 0.0,
            "bid_date": _str(latest.get("bid_date")),
        }

    async def _premiums(self) -> list[RawRecord]:
        records: list[RawRecord] = []
        for listing in await self._listings():
            premium = listing.get("premium")
            if premium is None:
                continue
            price_max = listing.get("price_max")
            expected = price_max + premium if isinstance(price_max, float) else None
            record = self._make_record(
                OperationKind.PREMIUMS,
                listing.company_name,
                {
                    "premium": premium,
                    "expected_listing": expected,
                    "premium_percent": listing.get("premium_percent"),
                },
            )
            if record is not None:
                records.append(record)
        return records


def _str(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _status(
    name_html: str,
    open_date: date | None,
    close_date: date | None,
    listing_date: date | None,
) -> OfferingStatus:
    lowered = name_html.lower()
    for markers, status in _BADGES:
        if any(marker in lowered for marker in markers):
            return status

    today = date.today()
    if listing_date and today >= listing_date:
        return OfferingStatus.LISTED
    if close_date and today > close_date:
        return OfferingStatus.CLOSED
    if open_date and close_date and open_date <= today <= close_date:
        return OfferingStatus.OPEN
    return OfferingStatus.UPCOMING
