"""Three-layer property vocabulary: user terms, built-in terms and model expansions.

Every lookup takes the ``QueryConfig`` explicitly and returns fresh containers,
so the built-in tables below are never mutated by a query.
"""

from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional, Sequence

from taskquery.models import STATUS_OPEN, STATUS_OTHER
from taskquery.query_config import QueryConfig, StatusCategoryConfig, iter_status_terms

logger = logging.getLogger(__name__)

PropertyTermSet = Dict[str, List[str]]

PROPERTY_PRIORITY = "priority"
PROPERTY_DUE_DATE = "dueDate"
PROPERTY_STATUS = "status"
PROPERTIES = (PROPERTY_PRIORITY, PROPERTY_DUE_DATE, PROPERTY_STATUS)

_BUILTIN_PRIORITY_TERMS: Dict[str, Sequence[str]] = {
    "general": ("priority", "important", "urgent", "优先级", "优先", "重要", "紧急", "prioritet", "viktig", "brådskande"),
    "high": ("high", "highest", "critical", "top", "高", "最高", "关键", "首要", "hög", "högst", "kritisk"),
    "medium": ("medium", "normal", "中", "中等", "普通", "medel"),
    "low": ("low", "minor", "低", "次要", "不重要", "låg", "mindre"),
}

_BUILTIN_DUE_DATE_TERMS: Dict[str, Sequence[str]] = {
    "general": ("due", "deadline", "scheduled", "截止日期", "到期", "期限", "计划", "förfallodatum", "schemalagd"),
    "today": ("today", "今天", "今日", "idag"),
    "tomorrow": ("tomorrow", "明天", "imorgon"),
    "overdue": ("overdue", "late", "past due", "过期", "逾期", "延迟", "försenad", "sen"),
    "thisWeek": ("this week", "本周", "这周", "denna vecka"),
    "nextWeek": ("next week", "下周", "nästa vecka"),
    "thisMonth": ("this month", "本月", "这个月", "denna månad"),
    "nextMonth": ("next month", "下个月", "下月", "nästa månad"),
    "future": ("future", "upcoming", "later", "未来", "将来", "以后", "framtida", "kommande"),
}

_BUILTIN_STATUS_TERMS: Dict[str, Sequence[str]] = {
    "general": ("status", "state", "progress", "状态", "进度", "情况", "tillstånd"),
    "open": (
        "open", "pending", "todo", "incomplete", "new", "unstarted",
        "未完成", "待办", "待处理", "新建", "öppen", "väntande", "att göra",
    ),
    "inProgress": (
        "in progress", "working", "ongoing", "active", "doing",
        "进行中", "正在做", "处理中", "进行", "pågående", "arbetar på", "aktiv",
    ),
    "completed": (
        "done", "completed", "finished", "closed", "resolved",
        "完成", "已完成", "结束", "已结束", "klar", "färdig", "slutförd", "stängd",
    ),
    "cancelled": (
        "cancelled", "canceled", "abandoned", "dropped", "discarded",
        "取消", "已取消", "放弃", "废弃", "avbruten", "inställd",
    ),
}

# Category order used when the configuration does not give one.
_DEFAULT_STATUS_ORDER = {"open": 1, "inProgress": 2, "completed": 6, "cancelled": 7}
_DEFAULT_STATUS_SYMBOLS = {
    "open": (" ", ""),
    "completed": ("x", "X"),
    "inProgress": ("/", "~"),
    "cancelled": ("-",),
}
_UNKNOWN_STATUS_ORDER = 999
_MISSING_PRIORITY_RANK = 5


def merge_term_sources(*sources: Iterable[str]) -> List[str]:
    """Merge ordered term sources, earliest source first.

    Callers pass sources in precedence order (user, built-in, model-expanded).
    The result keeps first-seen order and drops case-insensitive duplicates.
    """

    merged: List[str] = []
    seen = set()
    for source in sources:
        for term in source or ():
            cleaned = str(term).strip()
            key = cleaned.lower()
            if not cleaned or key in seen:
                continue
            seen.add(key)
            merged.append(cleaned)
    return merged


def merged_terms(
    property_name: str,
    config: QueryConfig,
    expanded: Optional[Dict[str, Iterable[str]]] = None,
) -> PropertyTermSet:
    """Return bucket -> terms for ``property_name``; user terms extend ``general`` only."""

    expanded = expanded or {}
    if property_name == PROPERTY_PRIORITY:
        builtin, user = _BUILTIN_PRIORITY_TERMS, config.user_terms.priority
    elif property_name == PROPERTY_DUE_DATE:
        builtin, user = _BUILTIN_DUE_DATE_TERMS, config.user_terms.due_date
    elif property_name == PROPERTY_STATUS:
        builtin, user = _status_builtin_terms(config), config.user_terms.status
    else:
        raise ValueError(f"Unknown property: {property_name}")

    result: PropertyTermSet = {}
    for bucket, terms in builtin.items():
        user_terms = user if bucket == "general" else ()
        result[bucket] = merge_term_sources(user_terms, terms, expanded.get(bucket, ()))
    for bucket, terms in expanded.items():
        if bucket not in result:
            result[bucket] = merge_term_sources(terms)
    return result


def _status_builtin_terms(config: QueryConfig) -> Dict[str, Sequence[str]]:
    buckets: Dict[str, Sequence[str]] = {key: tuple(terms) for key, terms in _BUILTIN_STATUS_TERMS.items()}
    for category in config.status_categories:
        existing = buckets.get(category.key, ())
        buckets[category.key] = tuple(merge_term_sources(existing, category.terms, [category.display_name.lower(), category.key.lower()]))
    return buckets


def all_property_trigger_words(config: QueryConfig) -> List[str]:
    """Every term of every property, lowercased; used to strip property words from keywords."""

    words: List[str] = []
    for property_name in PROPERTIES:
        for terms in merged_terms(property_name, config).values():
            words.extend(term.lower() for term in terms)
    return merge_term_sources(words)


def detect_properties(query: str, config: QueryConfig) -> Dict[str, bool]:
    """Report which properties the raw query mentions by term lookup alone."""

    lowered = (query or "").lower()
    found: Dict[str, bool] = {}
    for property_name in PROPERTIES:
        buckets = merged_terms(property_name, config)
        found[property_name] = any(term.lower() in lowered for terms in buckets.values() for term in terms)
    return found


def resolve_status_value(token: Optional[str], config: QueryConfig) -> Optional[str]:
    """Map a user-typed status word, alias or symbol to a category key."""

    if token is None:
        return None
    raw = str(token)
    lowered = raw.strip().lower()

    for category in config.status_categories:
        if category.key.lower() == lowered:
            return category.key
    for category in config.status_categories:
        if lowered and lowered in category.aliases:
            return category.key
    for category in config.status_categories:
        if raw in category.symbols or (lowered and lowered in category.symbols):
            return category.key

    for key, terms in _BUILTIN_STATUS_TERMS.items():
        if key == "general":
            continue
        if lowered == key.lower() or lowered in (term.lower() for term in terms):
            return key

    logger.warning("Unrecognized status value: %r", token)
    return None


def map_status_to_category(symbol: Optional[str], config: QueryConfig) -> str:
    """Category for a raw checkbox symbol; blank means open, unknown means other."""

    if symbol is None or not str(symbol).strip():
        return STATUS_OPEN
    for category in config.status_categories:
        if symbol in category.symbols:
            return category.key
    for key, symbols in _DEFAULT_STATUS_SYMBOLS.items():
        if symbol in symbols:
            return key
    return STATUS_OTHER


def map_priority(value: object, config: QueryConfig) -> Optional[int]:
    """Translate a priority word or number into 1-4 using the configured mapping."""

    if value is None:
        return None
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if 1 <= value <= 4 else None
    lowered = str(value).strip().lower()
    if not lowered:
        return None
    for level, values in sorted(config.priority_mapping.items()):
        if lowered in values:
            return level
    for level, bucket in ((1, "high"), (2, "medium"), (3, "low")):
        if lowered in (term.lower() for term in _BUILTIN_PRIORITY_TERMS[bucket]):
            return level
    return None


def compare_priority(a: Optional[int], b: Optional[int]) -> int:
    """Order priorities 1 (highest) to 4; missing priorities sort after all numbers."""

    left = a if a is not None else _MISSING_PRIORITY_RANK
    right = b if b is not None else _MISSING_PRIORITY_RANK
    return (left > right) - (left < right)


def compare_dates(a: Optional[str], b: Optional[str]) -> int:
    """Compare ISO dates by day; missing dates sort last."""

    if a is None and b is None:
        return 0
    if a is None:
        return 1
    if b is None:
        return -1
    left, right = a[:10], b[:10]
    return (left > right) - (left < right)


def get_status_order(category_key: str, config: QueryConfig) -> int:
    """Sort position of a status category; lower sorts first."""

    category: Optional[StatusCategoryConfig] = config.status_category(category_key)
    if category is not None and category.order is not None:
        return category.order
    if category_key in _DEFAULT_STATUS_ORDER:
        return _DEFAULT_STATUS_ORDER[category_key]
    keys = config.status_keys()
    if category_key in keys:
        return (keys.index(category_key) + 1) * 10
    return _UNKNOWN_STATUS_ORDER


def status_terms_for(category_key: str, config: QueryConfig) -> List[str]:
    """All words that name ``category_key`` (configured and built-in)."""

    category = config.status_category(category_key)
    configured = list(iter_status_terms(category)) if category else []
    return merge_term_sources(configured, _BUILTIN_STATUS_TERMS.get(category_key, ()))


__all__ = [
    "PROPERTIES",
    "PROPERTY_DUE_DATE",
    "PROPERTY_PRIORITY",
    "PROPERTY_STATUS",
    "PropertyTermSet",
    "all_property_trigger_words",
    "compare_dates",
    "compare_priority",
    "detect_properties",
    "get_status_order",
    "map_priority",
    "map_status_to_category",
    "merge_term_sources",
    "merged_terms",
    "resolve_status_value",
    "status_terms_for",
]
