"""Timestamp parsing and UTC normalisation.

Accepted text layouts, tried in order:

- RFC3339 / RFC3339Nano: ``2024-01-02T03:04:05Z``, ``2024-01-02T03:04:05.000000000Z``
- offset date-time: ``2024-01-02T03:04:05+09:00`` (optional fraction)
- ``YYYY-MM-DD HH:MM:SS`` (UTC)
- ``YYYY-MM-DD`` (midnight UTC)

Fractions beyond microseconds are truncated.
"""

from __future__ import annotations

import re
from datetime import UTC, datetime, timedelta, timezone

_RFC3339 = re.compile(
    r"^(?P<date>\d{4}-\d{2}-\d{2})[Tt](?P<time>\d{2}:\d{2}:\d{2})"
    r"(?:\.(?P<frac>\d{1,9}))?(?P<tz>[Zz]|[+-]\d{2}:\d{2})$"
)
_DATETIME_SPACE = re.compile(r"^(?P<date>\d{4}-\d{2}-\d{2}) (?P<time>\d{2}:\d{2}:\d{2})$")
_DATE_ONLY = re.compile(r"^(?P<date>\d{4}-\d{2}-\d{2})$")


def to_utc(value: datetime) -> datetime:
    """Return value as an aware UTC datetime. Naive values are taken as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def _offset(tz: str) -> timezone:
    if tz in ("Z", "z"):
        return UTC
    sign = -1 if tz[0] == "-" else 1
    hours, minutes = int(tz[1:3]), int(tz[4:6])
    if hours > 23 or minutes > 59:
        raise ValueError(f"invalid UTC offset: {tz}")
    return timezone(sign * timedelta(hours=hours, minutes=minutes))


def _build(date: str, time: str = "00:00:00", frac: str | None = None, tz: timezone = UTC) -> datetime:
    year, month, day = (int(p) for p in date.split("-"))
    hour, minute, second = (int(p) for p in time.split(":"))
    micro = int((frac or "0")[:6].ljust(6, "0"))
    return datetime(year, month, day, hour, minute, second, micro, tzinfo=tz).astimezone(UTC)


def parse_timestamp(text: str) -> datetime:
    """Parse text into an aware UTC datetime.

    Raises:
        ValueError: If text matches none of the accepted layouts or names an impossible date.
    """
    s = (text or "").strip()
    m = _RFC3339.match(s)
    if m:
        return _build(m["date"], m["time"], m["frac"], _offset(m["tz"]))
    m = _DATETIME_SPACE.match(s)
    if m:
        return _build(m["date"], m["time"])
    m = _DATE_ONLY.match(s)
    if m:
        return _build(m["date"])
    raise ValueError(f"unrecognized timestamp: {text!r}")


def format_timestamp(value: datetime) -> str:
    """Format as RFC3339 in UTC with a trailing Z."""
    return to_utc(value).isoformat().replace("+00:00", "Z")
