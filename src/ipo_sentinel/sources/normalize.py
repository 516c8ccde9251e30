"""Canonical key derivation and null-tolerant value parsers shared by adapters."""

from __future__ import annotations

import re
from datetime import date

from ipo_sentinel.core.models import OfferingStatus

KEY_MAX_LENGTH = 15

_SUFFIX_RE = re.compile(
    r"\s+(Ltd|Limited|IPO|India|Private|Pvt|Technologies|Tech|Industries|Infra"
    r"|Services|Solutions|Corporation|Corp)\.?",
    re.IGNORECASE,
)
_NON_ALNUM_RE = re.compile(r"[^a-zA-Z0-9]")
_TAG_RE = re.compile(r"<[^>]*>")
_NUMBER_RE = re.compile(r"-?[\d,]*\.?\d+")

_NULL_TOKENS = {"", "-", "--", "tba", "n/a", "na", "nil"}

_MONTHS: dict[str, int] = {
    "jan": 1, "january": 1,
    "feb": 2, "february": 2,
    "mar": 3, "march": 3,
    "apr": 4, "april": 4,
    "may": 5,
    "jun": 6, "june": 6,
    "jul": 7, "july": 7,
    "aug": 8, "august": 8,
    "sep": 9, "sept": 9, "september": 9,
    "oct": 10, "october": 10,
    "nov": 11, "november": 11,
    "dec": 12, "december": 12,
}

_DAY_MONTH_YEAR_RE = re.compile(r"(\d{1,2})[\s\-]*([a-zA-Z]+)[\s,\-]*(\d{4})")
_ISO_RE = re.compile(r"(\d{4})-(\d{2})-(\d{2})")
_NUMERIC_DATE_RE = re.compile(r"(\d{1,2})[/\-](\d{1,2})[/\-](\d{4})")
_ISSUE_SIZE_RE = re.compile(r"([\d,]+\.?\d*)\s*(cr|crore|crores|lakh|lakhs)?", re.IGNORECASE)


def normalize_key(name: str) -> str:
    """Derive the cross-source join key from a free-text company name.

    Corporate suffixes are dropped, then every non-alphanumeric character,
    and the result is upper-cased and truncated. Distinct companies can
    collide on the same key.

    >>> normalize_key("Tata Technologies Ltd.")
    'TATA'
    """
    if not name:
        return ""
    stripped = _SUFFIX_RE.sub("", name)
    stripped = _NON_ALNUM_RE.sub("", stripped)
    return stripped.upper()[:KEY_MAX_LENGTH]


def is_null_token(text: str | None) -> bool:
    return text is None or text.strip().lower() in _NULL_TOKENS


def clean_company_name(raw: str) -> str:
    """Strip HTML tags, a trailing 'IPO' and collapse whitespace."""
    text = _TAG_RE.sub("", raw or "")
    text = re.sub(r"\s+", " ", text).strip()
    return re.sub(r"\s+IPO$", "", text, flags=re.IGNORECASE).strip()


def parse_number(value: object) -> float | None:
    """Extract the first number from a cell value ('12.5x', '₹1,234', 7)."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    text = str(value)
    if is_null_token(text):
        return None
    match = _NUMBER_RE.search(text)
    if not match:
        return None
    try:
        return float(match.group(0).replace(",", ""))
    except ValueError:
        return None


def parse_signed_amount(text: str | None) -> float | None:
    """Parse a premium like '+₹45', '-₹12 (3.5%)' or '₹0' keeping the sign."""
    if is_null_token(text):
        return None
    match = re.search(r"([+-]?)\s*₹?\s*([\d,]+(?:\.\d+)?)", text)
    if not match:
        return None
    amount = float(match.group(2).replace(",", ""))
    return -amount if match.group(1) == "-" else amount


def parse_percent_in_parens(text: str | None) -> float | None:
    if not text:
        return None
    match = re.search(r"\(([+-]?\d+\.?\d*)%\)", text)
    return float(match.group(1)) if match else None


def parse_date(text: str | None) -> date | None:
    """Parse '12 Jan 2025', '12-Jan-2025', '2025-01-12' or '12/01/2025'. Unknown → None."""
    if is_null_token(text):
        return None
    cleaned = re.sub(r"\s+", " ", text.strip())

    match = _DAY_MONTH_YEAR_RE.search(cleaned)
    if match:
        month = _MONTHS.get(match.group(2).lower())
        if month:
            try:
                return date(int(match.group(3)), month, int(match.group(1)))
            except ValueError:
                return None

    match = _ISO_RE.search(cleaned)
    if match:
        try:
            return date(int(match.group(1)), int(match.group(2)), int(match.group(3)))
        except ValueError:
            return None

    match = _NUMERIC_DATE_RE.search(cleaned)
    if match:
        try:
            return date(int(match.group(3)), int(match.group(2)), int(match.group(1)))
        except ValueError:
            return None

    return None


def parse_price_range(text: str | None) -> tuple[float | None, float | None]:
    """'₹95 to ₹100' → (95.0, 100.0); single value → (v, v)."""
    if is_null_token(text):
        return None, None
    numbers = [
        float(n.replace(",", ""))
        for n in re.findall(r"\d[\d,]*\.?\d*", text)
        if n.replace(",", "").replace(".", "").isdigit()
    ]
    if not numbers:
        return None, None
    return min(numbers), max(numbers)


def parse_issue_size(text: str | None) -> float | None:
    """Issue size in crore. Values quoted in lakh are divided by 100."""
    if is_null_token(text):
        return None
    match = _ISSUE_SIZE_RE.search(text)
    if not match:
        return None
    try:
        value = float(match.group(1).replace(",", ""))
    except ValueError:
        return None
    unit = (match.group(2) or "").lower()
    if unit in ("lakh", "lakhs"):
        value /= 100
    return value


def parse_lot_size(text: str | None) -> int | None:
    if is_null_token(text):
        return None
    match = re.search(r"(\d+)", text)
    return int(match.group(1)) if match else None


def determine_status(
    open_date: date | None,
    close_date: date | None,
    today: date | None = None,
) -> OfferingStatus:
    """Infer an offering's bidding status from its open/close dates."""
    today = today or date.today()
    if open_date and open_date > today:
        return OfferingStatus.UPCOMING
    if close_date and close_date < today:
        return OfferingStatus.CLOSED
    if open_date and close_date and open_date <= today <= close_date:
        return OfferingStatus.OPEN
    return OfferingStatus.UPCOMING
