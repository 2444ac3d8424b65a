"""Deterministic parsing for queries made only of property syntax.

``parse`` claims a query only when every token is consumed by a template, so
anything with free text is left to the model path. ``extract_explicit_syntax``
pulls the same syntax out of a longer query; those values win over whatever
the model returns.
"""

from __future__ import annotations

import re
from datetime import date
from typing import List, Optional, Tuple

from taskquery.parser_utils.datetime import resolve_date_expression
from taskquery.parsers.types import PropertyMatch
from taskquery.query_config import QueryConfig
from taskquery.term_registry import resolve_status_value

_END = r"(?=\s|$)"
_PRIORITY_PATTERN = re.compile(rf"(?:priority\s+|p:?)([1-4](?:,[1-4])*){_END}", re.IGNORECASE)
_DUE_PATTERN = re.compile(rf"due\s+(today|tomorrow|this\s+week|next\s+week){_END}", re.IGNORECASE)
_BARE_DATE_PATTERN = re.compile(rf"(overdue|today|tomorrow){_END}", re.IGNORECASE)
_NO_DATE_PATTERN = re.compile(rf"no\s+(?:due\s+)?date{_END}", re.IGNORECASE)
_STATUS_PATTERN = re.compile(rf"(?:status\s+|s:)(\S+){_END}", re.IGNORECASE)
_TAG_PATTERN = re.compile(rf"#([^\s#]+){_END}")

_EXPLICIT_PRIORITY = re.compile(r"(?<![\w:])p:?([1-4])\b")
_EXPLICIT_STATUS = re.compile(r"(?<![\w])s:(\S+)")
_EXPLICIT_OVERDUE = re.compile(r"\boverdue\b")
_EXPLICIT_TAG = re.compile(r"#([^\s#]+)")

_DUE_TOKENS = {
    "today": "today",
    "tomorrow": "tomorrow",
    "this week": "week",
    "next week": "next-week",
    "overdue": "overdue",
}

NO_DUE_DATE = "none"


def matches(message: str) -> bool:
    """Cheap pre-check: the query is short and starts with something syntax-like."""

    stripped = (message or "").strip()
    if not stripped or len(stripped) > 120:
        return False
    return bool(
        _PRIORITY_PATTERN.match(stripped)
        or _DUE_PATTERN.match(stripped)
        or _BARE_DATE_PATTERN.match(stripped)
        or _NO_DATE_PATTERN.match(stripped)
        or _STATUS_PATTERN.match(stripped)
        or _TAG_PATTERN.match(stripped)
    )


def _priority_value(raw: str) -> object:
    levels = [int(part) for part in raw.split(",")]
    unique = sorted(set(levels))
    return unique[0] if len(unique) == 1 else unique


def _status_value(raw: str, config: QueryConfig) -> Optional[object]:
    resolved: List[str] = []
    for part in filter(None, raw.split(",")):
        key = resolve_status_value(part, config)
        if key is None:
            return None
        if key not in resolved:
            resolved.append(key)
    if not resolved:
        return None
    return resolved[0] if len(resolved) == 1 else resolved


def _set_due(result: PropertyMatch, phrase: str, today: Optional[date]) -> bool:
    token = _DUE_TOKENS[re.sub(r"\s+", " ", phrase.lower())]
    if result.due_date is not None and result.due_date != token:
        return False
    result.due_date = token
    result.due_date_range = resolve_date_expression(token, today)
    return True


def _consume(text: str, position: int, result: PropertyMatch, config: QueryConfig, today: Optional[date]) -> Tuple[int, bool]:
    match = _PRIORITY_PATTERN.match(text, position)
    if match:
        if result.priority is not None:
            return position, False
        result.priority = _priority_value(match.group(1))
        return match.end(), True

    match = _DUE_PATTERN.match(text, position) or _BARE_DATE_PATTERN.match(text, position)
    if match:
        return match.end(), _set_due(result, match.group(1), today)

    match = _NO_DATE_PATTERN.match(text, position)
    if match:
        if result.due_date is not None:
            return position, False
        result.due_date = NO_DUE_DATE
        return match.end(), True

    match = _STATUS_PATTERN.match(text, position)
    if match:
        status = _status_value(match.group(1), config)
        if status is None or result.status is not None:
            return position, False
        result.status = status
        return match.end(), True

    match = _TAG_PATTERN.match(text, position)
    if match:
        if match.group(1) not in result.tags:
            result.tags.append(match.group(1))
        return match.end(), True

    return position, False


def parse(message: str, config: QueryConfig, today: Optional[date] = None) -> Optional[PropertyMatch]:
    """Return the structured properties when the whole query is template syntax."""

    text = (message or "").strip()
    if not text:
        return None
    result = PropertyMatch()
    position = 0
    while position < len(text):
        if text[position].isspace():
            position += 1
            continue
        position, ok = _consume(text, position, result, config, today)
        if not ok:
            return None
    return None if result.is_empty() else result


def extract_explicit_syntax(message: str, config: QueryConfig, today: Optional[date] = None) -> PropertyMatch:
    """Collect ``p1``, ``s:open``, ``overdue`` and ``#tag`` wherever they appear."""

    lowered = message.lower()
    result = PropertyMatch()

    priorities = sorted({int(level) for level in _EXPLICIT_PRIORITY.findall(lowered)})
    if priorities:
        result.priority = priorities[0] if len(priorities) == 1 else priorities

    statuses: List[str] = []
    for raw in _EXPLICIT_STATUS.findall(lowered):
        for part in filter(None, raw.split(",")):
            key = resolve_status_value(part, config)
            if key is not None and key not in statuses:
                statuses.append(key)
    if statuses:
        result.status = statuses[0] if len(statuses) == 1 else statuses

    if _EXPLICIT_OVERDUE.search(lowered):
        result.due_date = "overdue"
        result.due_date_range = resolve_date_expression("overdue", today)

    for tag in _EXPLICIT_TAG.findall(message):
        if tag not in result.tags:
            result.tags.append(tag)
    return result


__all__ = ["NO_DUE_DATE", "extract_explicit_syntax", "matches", "parse"]
