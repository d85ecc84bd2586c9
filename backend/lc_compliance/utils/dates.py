"""
Date helpers — lenient parsing of document dates and a naive-UTC clock.
"""
from datetime import date, datetime, timezone
from typing import Any, Optional

# Formats seen on invoices, B/Ls and certificates, tried in order.
DATE_FORMATS = (
    "%Y-%m-%d",
    "%Y/%m/%d",
    "%d/%m/%Y",
    "%d-%m-%Y",
    "%d.%m.%Y",
    "%d %b %Y",
    "%d %B %Y",
    "%d-%b-%Y",
    "%d-%B-%Y",
    "%b %d, %Y",
    "%B %d, %Y",
    "%b %d %Y",
    "%B %d %Y",
    "%Y%m%d",
)


def utcnow() -> datetime:
    """Current UTC time as a naive datetime (how timestamps are stored)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def parse_date(value: Any) -> Optional[date]:
    """Parse a document date; returns None when the value is blank or unrecognized."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value

    text = " ".join(str(value).strip().split())
    if not text:
        return None

    # ISO timestamps: keep the date part only
    if len(text) > 10 and text[4] == "-" and text[10] in ("T", " "):
        text = text[:10]

    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    return None
