"""Natural-language due date and priority parsing for task lines."""

from __future__ import annotations

import calendar
import re
from datetime import date, datetime, timedelta
from zoneinfo import ZoneInfo

from src.extraction.models import Priority
from src.inference.keywords import (
    HIGH_PRIORITY_KEYWORDS,
    LOW_PRIORITY_KEYWORDS,
    STRONG_HIGH_PRIORITY_KEYWORDS,
)
from src.inference.matching import contains_keyword, count_keywords

_ISO_DATE_RE = re.compile(r"\b(\d{4})-(\d{2})-(\d{2})\b")
_SHORT_DATE_RE = re.compile(r"\b(\d{1,2})[/-](\d{1,2})\b")
_WEEKDAY_RE = re.compile(
    r"\b(?:by|this|next)?\s*(monday|tuesday|wednesday|thursday|friday|saturday|sunday)\b"
)

_WEEKDAYS = ["monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"]


def today_in(timezone: str) -> date:
    """Current calendar date in the given IANA timezone."""
    return datetime.now(ZoneInfo(timezone)).date()


def next_weekday(today: date, weekday: int) -> date:
    """The next date falling on ``weekday`` (Monday=0), never ``today`` itself."""
    days_ahead = weekday - today.weekday()
    if days_ahead <= 0:
        days_ahead += 7
    return today + timedelta(days=days_ahead)


def _safe_date(year: int, month: int, day: int) -> date | None:
    try:
        return date(year, month, day)
    except ValueError:
        return None


def parse_due_date(text: str, today: date) -> date | None:
    """Resolve a due date mentioned in ``text`` relative to ``today``.

    Understands ``YYYY-MM-DD``, ``MM/DD`` (current year), ``tomorrow``,
    ``next week``, weekday names (``by Friday``, ``next Monday``),
    ``end of month``/``eom`` and ``end of week``/``eow``.

    Returns:
        The resolved date, or None if the text mentions no date.
    """
    lowered = text.casefold()

    iso = _ISO_DATE_RE.search(text)
    if iso:
        parsed = _safe_date(int(iso.group(1)), int(iso.group(2)), int(iso.group(3)))
        if parsed:
            return parsed

    short = _SHORT_DATE_RE.search(text)
    if short:
        parsed = _safe_date(today.year, int(short.group(1)), int(short.group(2)))
        if parsed:
            return parsed

    if contains_keyword(lowered, "tomorrow"):
        return today + timedelta(days=1)

    if contains_keyword(lowered, "next week"):
        return today + timedelta(days=7)

    weekday = _WEEKDAY_RE.search(lowered)
    if weekday:
        day_name = weekday.group(1)
        due = next_weekday(today, _WEEKDAYS.index(day_name))
        if f"next {day_name}" in lowered:
            due += timedelta(days=7)
        return due

    if contains_keyword(lowered, "end of month") or contains_keyword(lowered, "eom"):
        last_day = calendar.monthrange(today.year, today.month)[1]
        return today.replace(day=last_day)

    if contains_keyword(lowered, "end of week") or contains_keyword(lowered, "eow"):
        return next_weekday(today, _WEEKDAYS.index("friday"))

    return None


def parse_priority(text: str) -> Priority:
    """Infer a priority from urgency keywords; Medium when nothing stands out."""
    high_count = count_keywords(text, HIGH_PRIORITY_KEYWORDS)
    low_count = count_keywords(text, LOW_PRIORITY_KEYWORDS)

    if high_count >= 2 or any(contains_keyword(text, kw) for kw in STRONG_HIGH_PRIORITY_KEYWORDS):
        return Priority.HIGH
    if low_count >= 1:
        return Priority.LOW
    return Priority.MEDIUM
