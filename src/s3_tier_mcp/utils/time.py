"""Time helpers."""

from __future__ import annotations

from datetime import datetime, timezone
from email.utils import parsedate_to_datetime


def utc_now() -> datetime:
    return datetime.now(tz=timezone.utc)


def parse_http_date(value: str) -> datetime | None:
    """Parse an RFC 1123 date as used in S3 headers; ``None`` if malformed."""
    try:
        parsed = parsedate_to_datetime(value)
    except (TypeError, ValueError, IndexError):
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)
