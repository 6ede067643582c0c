"""Fuzzy field parsers for spoken reservation answers.

Each parser takes raw utterance text (as produced by the browser's speech
recogniser) and returns a typed value, or ``None`` when nothing usable was
found. Malformed input is an expected case here and never raises.

Examples::

    parse_guest_count("we are 4 tonight")        # 4
    parse_booking_date("December 20th")          # date(<this year>, 12, 20)
    parse_booking_time("7:30 p.m.")              # "19:30"
    detect_intent("yes please")                  # Intent.AFFIRMATIVE

Known limitation: spelled-out numbers ("four") are not interpreted.
"""

from __future__ import annotations

import re
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Optional

from reservations.config import settings

AFFIRMATIVE_KEYWORDS = ("yes", "yeah", "confirm", "sure", "do it", "please", "absolutely")
NEGATIVE_KEYWORDS = ("no", "not yet", "hold", "wait", "stop", "cancel")

MONTHS = {
    "january": 1, "jan": 1,
    "february": 2, "feb": 2,
    "march": 3, "mar": 3,
    "april": 4, "apr": 4,
    "may": 5,
    "june": 6, "jun": 6,
    "july": 7, "jul": 7,
    "august": 8, "aug": 8,
    "september": 9, "sept": 9, "sep": 9,
    "october": 10, "oct": 10,
    "november": 11, "nov": 11,
    "december": 12, "dec": 12,
}

WEEKDAYS = {
    "monday": 0, "tuesday": 1, "wednesday": 2, "thursday": 3,
    "friday": 4, "saturday": 5, "sunday": 6,
}

# Longest phrase first so "day after tomorrow" wins over "tomorrow"
RELATIVE_DAYS = (
    ("day after tomorrow", 2),
    ("tomorrow", 1),
    ("today", 0),
    ("tonight", 0),
    ("yesterday", -1),
)

_MONTH_NAMES = "|".join(sorted(MONTHS, key=len, reverse=True))

_ORDINAL_RE = re.compile(r"(\d+)(st|nd|rd|th)", re.IGNORECASE)
_DIGITS_RE = re.compile(r"\d+")
_ISO_RE = re.compile(r"\b(\d{4})-(\d{1,2})-(\d{1,2})\b")
_NUMERIC_RE = re.compile(r"\b(\d{1,2})/(\d{1,2})(?:/(\d{2}|\d{4}))?\b")
_MONTH_FIRST_RE = re.compile(
    rf"\b({_MONTH_NAMES})\.?\s+(\d{{1,2}})\b(?:,?\s+(\d{{4}}))?", re.IGNORECASE,
)
_DAY_FIRST_RE = re.compile(
    rf"\b(\d{{1,2}})\s+(?:of\s+)?({_MONTH_NAMES})\b\.?(?:,?\s+(\d{{4}}))?", re.IGNORECASE,
)
_TIME_RE = re.compile(
    r"(?<!\d)(\d{1,2})(?::(\d{2}))?(?!\d)\s*(?:([ap])\.?\s?m\b\.?)?", re.IGNORECASE,
)


class Intent(str, Enum):
    AFFIRMATIVE = "affirmative"
    NEGATIVE = "negative"
    AMBIGUOUS = "ambiguous"
    UNKNOWN = "unknown"


def local_today() -> date:
    """Current calendar day in the restaurant's time zone."""
    return datetime.now(settings.tz).date()


# ── Guests ────────────────────────────────────────────────────────


def parse_guest_count(text: str) -> Optional[int]:
    """Return the first run of digits as a positive integer."""
    match = _DIGITS_RE.search(text or "")
    if not match:
        return None
    guests = int(match.group(0))
    return guests if guests > 0 else None


# ── Dates ─────────────────────────────────────────────────────────


def strip_ordinals(text: str) -> str:
    """'December 20th' -> 'December 20'."""
    return _ORDINAL_RE.sub(r"\1", text)


def _safe_date(year: int, month: int, day: int) -> Optional[date]:
    try:
        return date(year, month, day)
    except ValueError:
        return None


def _expand_year(raw: Optional[str], default: int) -> int:
    if not raw:
        return default
    year = int(raw)
    return year + 2000 if year < 100 else year


def resolve_date(text: str, today: Optional[date] = None) -> Optional[date]:
    """Resolve spoken date text to a calendar date, past or future.

    Dates without a year fall in the current year.
    """
    today = today or local_today()
    value = strip_ordinals((text or "").strip()).lower()
    if not value:
        return None

    for phrase, offset in RELATIVE_DAYS:
        if phrase in value:
            return today + timedelta(days=offset)

    match = _ISO_RE.search(value)
    if match:
        year, month, day = (int(g) for g in match.groups())
        return _safe_date(year, month, day)

    match = _MONTH_FIRST_RE.search(value)
    if match:
        month = MONTHS[match.group(1).lower()]
        year = _expand_year(match.group(3), today.year)
        return _safe_date(year, month, int(match.group(2)))

    match = _DAY_FIRST_RE.search(value)
    if match:
        month = MONTHS[match.group(2).lower()]
        year = _expand_year(match.group(3), today.year)
        return _safe_date(year, month, int(match.group(1)))

    match = _NUMERIC_RE.search(value)
    if match:
        month, day = int(match.group(1)), int(match.group(2))
        year = _expand_year(match.group(3), today.year)
        return _safe_date(year, month, day)

    for name, weekday in WEEKDAYS.items():
        if re.search(rf"\b{name}\b", value):
            days_ahead = (weekday - today.weekday()) % 7 or 7
            return today + timedelta(days=days_ahead)

    return None


def is_future_date(value: date, today: Optional[date] = None) -> bool:
    """True when ``value`` is strictly after today (calendar-day comparison)."""
    return value > (today or local_today())


def parse_booking_date(text: str, today: Optional[date] = None) -> Optional[date]:
    """Parse a booking date; same-day and past dates are rejected."""
    today = today or local_today()
    resolved = resolve_date(text, today=today)
    if resolved is None or not is_future_date(resolved, today=today):
        return None
    return resolved


# ── Times ─────────────────────────────────────────────────────────


def parse_booking_time(text: str) -> Optional[str]:
    """Convert a fuzzy time ("7 pm", "7:30", "19:00") into ``HH:MM``.

    A candidate with minutes or an am/pm marker is preferred over a bare
    number, so "table for 4 at 7pm" yields 19:00.
    """
    candidates = [m for m in _TIME_RE.finditer(text or "") if m.group(1)]
    if not candidates:
        return None
    match = next(
        (m for m in candidates if m.group(2) or m.group(3)),
        candidates[0],
    )

    hour = int(match.group(1))
    minute = int(match.group(2)) if match.group(2) else 0
    meridiem = match.group(3).lower() if match.group(3) else None

    if meridiem:
        if not 1 <= hour <= 12:
            return None
        if meridiem == "p" and hour < 12:
            hour += 12
        elif meridiem == "a" and hour == 12:
            hour = 0

    if hour > 23 or minute > 59:
        return None
    return f"{hour:02d}:{minute:02d}"


# ── Yes / no ──────────────────────────────────────────────────────


def is_affirmative(text: str) -> bool:
    lowered = (text or "").lower()
    return any(word in lowered for word in AFFIRMATIVE_KEYWORDS)


def is_negative(text: str) -> bool:
    lowered = (text or "").lower()
    return any(word in lowered for word in NEGATIVE_KEYWORDS)


def detect_intent(text: str) -> Intent:
    """Classify a confirmation answer.

    Both vocabularies are checked independently; a phrase that hits both
    ("yes, but wait") is AMBIGUOUS and gets a clarification prompt.
    """
    yes, no = is_affirmative(text), is_negative(text)
    if yes and no:
        return Intent.AMBIGUOUS
    if yes:
        return Intent.AFFIRMATIVE
    if no:
        return Intent.NEGATIVE
    return Intent.UNKNOWN
