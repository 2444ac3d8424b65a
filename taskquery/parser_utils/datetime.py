"""Resolve relative and absolute date expressions into ``DateFilter`` windows."""

from __future__ import annotations

import logging
import math
import re
from datetime import date, datetime, time, timedelta
from typing import Callable, Dict, Optional

import dateparser
from dateutil.relativedelta import relativedelta

from taskquery.models import DateFilter

logger = logging.getLogger(__name__)

_UNIT = r"(?:days?|d|weeks?|wks?|wk|w|months?|mos?|m|years?|yrs?|y)"
_PHRASE_UNIT = r"(days?|weeks?|months?|years?)"
_DURATION_SEGMENT = re.compile(rf"(\d+)\s*({_UNIT})(?![a-z])")
_DURATION_FULL = re.compile(rf"^(?:\d+\s*{_UNIT}(?![a-z])\s*)+$")
_SIGNED_DAYS = re.compile(r"^([+-])?(\d+)\s*(days?|d|weeks?|w)$")
_PLUS_HOURS = re.compile(r"^\+(\d+)\s*(hours?|hrs?|h)$")
_AGO = re.compile(rf"^(\d+)\s+{_PHRASE_UNIT}\s+ago$")
_WITHIN = re.compile(rf"^(?:within|next)\s+(\d+)\s+{_PHRASE_UNIT}$")
_LAST = re.compile(rf"^(?:last|past)\s+(\d+)\s+{_PHRASE_UNIT}$")
_FROM_NOW = re.compile(rf"^(?:(\d+)\s+{_PHRASE_UNIT}\s+from\s+now|in\s+(\d+)\s+{_PHRASE_UNIT})$")
_SUB_DAY = re.compile(r"\d+\s*(?:seconds?|secs?|s|minutes?|mins?|hours?|hrs?|h)\b")
_ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_RELATIVE_SHORTHAND = re.compile(r"^([+-])(\d+)([dwmy])$")

_WEEKDAYS = {
    "monday": 0,
    "tuesday": 1,
    "wednesday": 2,
    "thursday": 3,
    "friday": 4,
    "saturday": 5,
    "sunday": 6,
}


def _iso(value: date) -> str:
    return value.isoformat()


def _day(value: date) -> DateFilter:
    return DateFilter.range(_iso(value), _iso(value))


def _window(start: date, end: date) -> DateFilter:
    return DateFilter.range(_iso(start), _iso(end))


def _month_window(today: date, offset: int) -> DateFilter:
    first = today.replace(day=1) + relativedelta(months=offset)
    last = first + relativedelta(months=1) - timedelta(days=1)
    return _window(first, last)


_KEYWORDS: Dict[str, Callable[[date], DateFilter]] = {
    "any": lambda today: DateFilter.has_any(),
    "all": lambda today: DateFilter.has_any(),
    "today": _day,
    "tomorrow": lambda today: _day(today + timedelta(days=1)),
    "yesterday": lambda today: _day(today - timedelta(days=1)),
    "overdue": lambda today: DateFilter.range(end=_iso(today - timedelta(days=1))),
    "future": lambda today: DateFilter.range(start=_iso(today + timedelta(days=1))),
    "week": lambda today: _window(today, today + timedelta(days=7)),
    "next-week": lambda today: _window(today + timedelta(days=7), today + timedelta(days=14)),
    "last-week": lambda today: _window(today - timedelta(days=7), today - timedelta(days=1)),
    "month": lambda today: _month_window(today, 0),
    "next-month": lambda today: _month_window(today, 1),
    "last-month": lambda today: _month_window(today, -1),
    "year": lambda today: _window(today.replace(month=1, day=1), today.replace(month=12, day=31)),
}

_NAMED_PHRASES: Dict[str, str] = {
    "this week": "week",
    "next week": "next-week",
    "last week": "last-week",
    "this month": "month",
    "next month": "next-month",
    "last month": "last-month",
    "this year": "year",
}


def _unit_delta(amount: int, unit: str) -> relativedelta:
    """Translate ``<amount><unit>`` into a calendar-aware delta."""

    unit = unit.lower()
    if unit.startswith("w"):
        return relativedelta(weeks=amount)
    if unit.startswith("m"):
        return relativedelta(months=amount)
    if unit.startswith("y"):
        return relativedelta(years=amount)
    return relativedelta(days=amount)


def _normalize(token: str) -> str:
    return re.sub(r"\s+", " ", token.strip().lower())


# WHAT: "2w", "1 year 2 months", "1y2mo" as a window starting today.
# HOW: every segment adds onto the end date in the order written.
def _resolve_duration(token: str, today: date) -> Optional[DateFilter]:
    if not _DURATION_FULL.match(token):
        return None
    end = today
    for amount, unit in _DURATION_SEGMENT.findall(token):
        end = end + _unit_delta(int(amount), unit)
    return _window(today, end)


# WHAT: Todoist-style "+3 days", "-2 weeks" and "+5 hours".
# HOW: hours are rounded up to whole days because filters are date-only.
def _resolve_signed(token: str, today: date) -> Optional[DateFilter]:
    hours = _PLUS_HOURS.match(token)
    if hours:
        days = math.ceil(int(hours.group(1)) / 24)
        return _window(today, today + timedelta(days=days))

    match = _SIGNED_DAYS.match(token)
    if not match:
        return None
    sign, amount, unit = match.groups()
    delta = _unit_delta(int(amount), unit)
    if sign == "-":
        return _window(today - delta, today)
    return _window(today, today + delta)


def _resolve_phrase(token: str, today: date) -> Optional[DateFilter]:
    match = _AGO.match(token)
    if match:
        return _day(today - _unit_delta(int(match.group(1)), match.group(2)))

    match = _WITHIN.match(token)
    if match:
        return _window(today, today + _unit_delta(int(match.group(1)), match.group(2)))

    match = _LAST.match(token)
    if match:
        return _window(today - _unit_delta(int(match.group(1)), match.group(2)), today)

    match = _FROM_NOW.match(token)
    if match:
        amount = match.group(1) or match.group(3)
        unit = match.group(2) or match.group(4)
        return _day(today + _unit_delta(int(amount), unit))

    if token in _NAMED_PHRASES:
        return _KEYWORDS[_NAMED_PHRASES[token]](today)
    if token == "first day":
        return _day(today.replace(day=1))

    weekday = _WEEKDAYS.get(token.replace("next ", "", 1))
    if weekday is not None:
        ahead = (weekday - today.weekday()) % 7 or 7
        return _day(today + timedelta(days=ahead))
    return None


def _resolve_natural_language(token: str, today: date) -> Optional[DateFilter]:
    if _SUB_DAY.search(token):
        return None
    settings = {
        "RELATIVE_BASE": datetime.combine(today, time()),
        "PREFER_DATES_FROM": "future",
    }
    try:
        parsed = dateparser.parse(token, settings=settings)
    except (ValueError, OverflowError, TypeError) as exc:
        logger.debug("dateparser rejected %r: %s", token, exc)
        return None
    if parsed is None:
        return None
    return _day(parsed.date())


def _resolve_literal(token: str) -> Optional[DateFilter]:
    if not _ISO_DATE.match(token):
        return None
    try:
        return _day(date.fromisoformat(token))
    except ValueError:
        return None


def resolve_date_expression(token: Optional[str], today: Optional[date] = None) -> Optional[DateFilter]:
    """Turn a date keyword or phrase into a ``DateFilter``; ``None`` when unrecognized.

    The stages run in a fixed order and the first hit wins: keyword table,
    duration grammar, signed shorthand, relative phrases, natural language,
    then a strict ``YYYY-MM-DD`` literal.
    """

    if not token or not str(token).strip():
        return None
    today = today or date.today()
    normalized = _normalize(str(token))

    keyword = _KEYWORDS.get(normalized) or _KEYWORDS.get(normalized.replace("_", "-"))
    try:
        if keyword is not None:
            return keyword(today)
        for stage in (_resolve_duration, _resolve_signed, _resolve_phrase, _resolve_natural_language):
            resolved = stage(normalized, today)
            if resolved is not None:
                return resolved
    except (ValueError, OverflowError) as exc:
        # Amounts that push the window past the supported calendar range.
        logger.debug("Date expression %r is out of range: %s", token, exc)
        return None

    resolved = _resolve_literal(normalized)
    if resolved is None:
        logger.debug("Unrecognized date expression: %r", token)
    return resolved


def parse_relative_date(value: str, today: Optional[date] = None) -> Optional[str]:
    """Resolve ``+2w``/``-3d`` shorthand to a single ISO date."""

    match = _RELATIVE_SHORTHAND.match((value or "").strip().lower())
    if not match:
        return None
    sign, amount, unit = match.groups()
    today = today or date.today()
    try:
        delta = _unit_delta(int(amount), unit)
        target = today - delta if sign == "-" else today + delta
    except (ValueError, OverflowError):
        logger.debug("Relative date %r is out of range", value)
        return None
    return _iso(target)


def to_date(value: Optional[str]) -> Optional[date]:
    """Parse the date part of an ISO date or datetime string."""

    if not value:
        return None
    try:
        return date.fromisoformat(str(value).strip()[:10])
    except ValueError:
        return None


def matches_date_filter(due_date: Optional[str], date_filter: Optional[DateFilter]) -> bool:
    """Check a task's due date against a filter, comparing whole days only."""

    if date_filter is None or not date_filter.is_active:
        return True
    due = to_date(due_date)
    if due is None:
        return False
    if date_filter.kind == DateFilter.HAS_ANY:
        return True
    if date_filter.start and due < date.fromisoformat(date_filter.start):
        return False
    if date_filter.end and due > date.fromisoformat(date_filter.end):
        return False
    return True


__all__ = [
    "matches_date_filter",
    "parse_relative_date",
    "resolve_date_expression",
    "to_date",
]
