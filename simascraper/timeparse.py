"""
Date and time helpers for the Spanish-language portal.

Conventions:
- ISO dates are "YYYY-MM-DD" strings
- a requested date maps to the epoch of its UTC midnight (that is what the
  calendar `time=` query parameter gets)
- day comparisons use whole UTC days (epoch // 86400), because timeline
  sections only carry a day-granular timestamp
"""

from __future__ import annotations

import re
from datetime import date, datetime, timedelta, timezone, tzinfo
from typing import Optional, Tuple


SECONDS_PER_DAY = 86400

SPANISH_MONTHS = {
    "enero": 1,
    "febrero": 2,
    "marzo": 3,
    "abril": 4,
    "mayo": 5,
    "junio": 6,
    "julio": 7,
    "agosto": 8,
    "septiembre": 9,
    "setiembre": 9,
    "octubre": 10,
    "noviembre": 11,
    "diciembre": 12,
}

# "sábado, 11 de octubre de 2025"
SPANISH_DATE_RE = re.compile(r"(\d{1,2})\s+de\s+([a-záéíóúñ]+)\s+de\s+(\d{4})", re.IGNORECASE)
ISO_DATE_RE = re.compile(r"^\s*(\d{4})-(\d{2})-(\d{2})\s*$")

# "14:30", "2:05 PM", "11:59 p. m."
TIME_RE = re.compile(r"(\d{1,2}):(\d{2})(?:\s*([ap])\.?\s*m\.?)?", re.IGNORECASE)


def parse_iso_date(value: str) -> date:
    """Strict YYYY-MM-DD parsing; raises ValueError otherwise."""
    m = ISO_DATE_RE.match(value or "")
    if not m:
        raise ValueError(f"Invalid date (expected YYYY-MM-DD): {value!r}")
    return date(int(m.group(1)), int(m.group(2)), int(m.group(3)))


def day_timestamp(iso_date: str) -> int:
    """Epoch seconds of UTC midnight for an ISO date."""
    d = parse_iso_date(iso_date)
    return int(datetime(d.year, d.month, d.day, tzinfo=timezone.utc).timestamp())


def utc_day(timestamp: int) -> int:
    return int(timestamp) // SECONDS_PER_DAY


def same_day(iso_date: str, timestamp: int) -> bool:
    return utc_day(day_timestamp(iso_date)) == utc_day(timestamp)


def add_days(iso_date: str, days: int) -> str:
    return (parse_iso_date(iso_date) + timedelta(days=days)).isoformat()


def today(tz: Optional[tzinfo] = None) -> str:
    return datetime.now(tz or timezone.utc).date().isoformat()


def parse_time_of_day(text: Optional[str]) -> Optional[Tuple[int, int]]:
    """
    Extract (hour, minute) from free text. Handles 12h "a. m./p. m." suffixes.

    >>> parse_time_of_day("23:59")
    (23, 59)
    >>> parse_time_of_day("11:59 p. m.")
    (23, 59)
    """
    m = TIME_RE.search(text or "")
    if not m:
        return None
    hour, minute = int(m.group(1)), int(m.group(2))
    meridiem = (m.group(3) or "").lower()
    if meridiem == "p" and hour < 12:
        hour += 12
    elif meridiem == "a" and hour == 12:
        hour = 0
    if not (0 <= hour <= 23 and 0 <= minute <= 59):
        return None
    return hour, minute


def format_hhmm(hour: int, minute: int) -> str:
    return f"{hour:02d}:{minute:02d}"


def normalize_time(text: Optional[str]) -> Optional[str]:
    """Zero-padded HH:MM for a time text, or None when it has no time."""
    parsed = parse_time_of_day(text)
    if parsed is None:
        return None
    return format_hhmm(*parsed)


def parse_spanish_date(text: Optional[str]) -> Optional[str]:
    """
    Spanish long date -> ISO date. ISO input passes through.

    >>> parse_spanish_date("sábado, 11 de octubre de 2025")
    '2025-10-11'
    """
    if not text:
        return None
    if ISO_DATE_RE.match(text):
        try:
            return parse_iso_date(text).isoformat()
        except ValueError:
            return None

    m = SPANISH_DATE_RE.search(text)
    if not m:
        return None
    month = SPANISH_MONTHS.get(m.group(2).lower())
    if month is None:
        return None
    try:
        return date(int(m.group(3)), month, int(m.group(1))).isoformat()
    except ValueError:
        return None


def local_datetime(timestamp: int, tz: tzinfo) -> datetime:
    return datetime.fromtimestamp(int(timestamp), tz=tz)
