"""Chittorgarh adapter: HTML report tables for listings, live subscription and GMP."""

from __future__ import annotations

import asyncio
import logging
import re
from typing import ClassVar

from bs4 import BeautifulSoup, Tag

from ipo_sentinel.core.exceptions import SourceFetchError
from ipo_sentinel.core.models import FieldValue, OperationKind, RawRecord, SourceName
from ipo_sentinel.sources.base import BaseSourceAdapter
from ipo_sentinel.sources.normalize import (
    clean_company_name,
    determine_status,
    parse_date,
    parse_issue_size,
    parse_number,
    parse_percent_in_parens,
    parse_price_range,
    parse_signed_amount,
)

logger = logging.getLogger(__name__)

URLS = {
    "ipo_list": "https://www.chittorgarh.com/ipo/ipo_list.asp",
    "mainboard": "https://www.chittorgarh.com/report/mainboard-ipo-list-in-india-702/",
    "sme": "https://www.chittorgarh.com/report/sme-ipo-list-in-india/702/",
    "subscription": "https://www.chittorgarh.com/report/ipo-subscription-status-live-mainboard-sme/21/",
    "gmp": "https://www.chittorgarh.com/report/ipo-grey-market-premium-latest-grey-market-premium-702/",
}

_DATE_CELL_RE = re.compile(r"\d{1,2}\s*[a-zA-Z]+\s*,?\s*\d{4}")
_RANGE_CELL_RE = re.compile(r"\d+\s*to\s*\d+|\d+-\d+")
_HEADER_WORDS = ("company", "ipo name")

# Listing pages fetched concurrently, in merge order
_LISTING_PAGES = (("mainboard", "mainboard"), ("sme", "sme"), ("ipo_list", "mainboard"))


class ChittorgarhAdapter(BaseSourceAdapter):
    """Scrapes chittorgarh.com report tables.

    Columns are located heuristically by content (dates, rupee amounts,
    crore sizes) rather than by position, since the report layouts drift.
    """

    name: ClassVar[str] = SourceName.CHITTORGARH

    async def _listings(self) -> list[RawRecord]:
        pages = await asyncio.gather(
            *(self._fetch_text(URLS[page]) for page, _ in _LISTING_PAGES),
            return_exceptions=True,
        )

        by_key: dict[str, RawRecord] = {}
        failures: list[BaseException] = []
        for (page, offering_type), html in zip(_LISTING_PAGES, pages):
            if isinstance(html, BaseException):
                logger.warning("[%s] %s page failed: %s", self.name, page, html)
                failures.append(html)
                continue
            for record in self._parse_listing_table(html, offering_type):
                existing = by_key.get(record.key)
                if existing is None or _completeness(record) > _completeness(existing):
                    by_key[record.key] = record

        if len(failures) == len(_LISTING_PAGES):
            first = failures[0]
            if isinstance(first, SourceFetchError):
                raise first
            raise SourceFetchError(
                "All chittorgarh listing pages failed",
                context={"source": self.name, "error": str(first)},
            )
        return list(by_key.values())

    def _parse_listing_table(self, html: str, offering_type: str) -> list[RawRecord]:
        records: list[RawRecord] = []
        for cells in _table_rows(html, min_cells=4):
            name = clean_company_name(cells[0])
            if not _is_company(name):
                continue

            open_date = close_date = None
            price_text = issue_text = ""
            lot_size: int | None = None
            for text in cells[1:]:
                if _DATE_CELL_RE.search(text):
                    if open_date is None:
                        open_date = parse_date(text)
                    elif close_date is None:
                        close_date = parse_date(text)
                lowered = text.lower()
                if "cr" in lowered or "lakh" in lowered:
                    issue_text = text
                elif "₹" in text or _RANGE_CELL_RE.search(text):
                    price_text = text
                if text.isdigit() and int(text) < 500:
                    lot_size = int(text)

            price_min, price_max = parse_price_range(price_text)
            values: dict[str, FieldValue] = {
                "open_date": open_date.isoformat() if open_date else None,
                "close_date": close_date.isoformat() if close_date else None,
                "listing_date": None,
                "price_range": price_text or None,
                "price_min": price_min,
                "price_max": price_max,
                "lot_size": lot_size,
                "issue_size_crore": parse_issue_size(issue_text),
                "status": determine_status(open_date, close_date).value,
                "offering_type": offering_type,
            }
            record = self._make_record(OperationKind.LISTINGS, name, values)
            if record is not None:
                records.append(record)
        return records

    async def _subscriptions(self) -> list[RawRecord]:
        html = await self._fetch_text(URLS["subscription"])
        records: list[RawRecord] = []
        for cells in _table_rows(html, min_cells=5):
            name = clean_company_name(cells[0])
            if not _is_company(name):
                continue
            record = self._make_record(
                OperationKind.SUBSCRIPTIONS,
                name,
                {
                    "qib": parse_number(cells[1]),
                    "nii": parse_number(cells[2]),
                    "retail": parse_number(cells[3]),
                    "total": parse_number(cells[4]),
                },
            )
            if record is not None:
                records.append(record)
        return records

    async def _premiums(self) -> list[RawRecord]:
        html = await self._fetch_text(URLS["gmp"])
        records: list[RawRecord] = []
        for cells in _table_rows(html, min_cells=3):
            name = clean_company_name(cells[0])
            if not _is_company(name):
                continue
            premium = parse_signed_amount(cells[1])
            record = self._make_record(
                OperationKind.PREMIUMS,
                name,
                {
                    "premium": premium if premium is not None else 0.0,
                    "expected_listing": parse_number(cells[2]),
                    "premium_percent": parse_percent_in_parens(cells[1]),
                },
            )
            if record is not None:
                records.append(record)
        return records


def _table_rows(html: str, min_cells: int) -> list[list[str]]:
    """Text of every <td> row across all tables with at least ``min_cells`` cells."""
    soup = BeautifulSoup(html, "lxml")
    rows: list[list[str]] = []
    for table in soup.find_all("table"):
        if not isinstance(table, Tag):
            continue
        for tr in table.find_all("tr"):
            cells = [td.get_text(" ", strip=True) for td in tr.find_all("td")]
            if len(cells) >= min_cells:
                rows.append(cells)
    return rows


def _is_company(name: str) -> bool:
    if len(name) < 3:
        return False
    lowered = name.lower()
    return not any(word in lowered for word in _HEADER_WORDS)


def _completeness(record: RawRecord) -> int:
    return sum(1 for field in ("open_date", "price_min", "lot_size") if record.get(field))
