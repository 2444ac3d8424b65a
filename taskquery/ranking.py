"""Weighted ranking of candidate tasks against a parsed query.

Each task gets four component scores (keyword relevance, due-date urgency,
priority and status). The final score is the sum of every component times its
coefficient, counting a component only when it is active for this query:
relevance needs keywords, the other three need the property in the query or
in the caller's sort order.
"""

from __future__ import annotations

import logging
from datetime import date
from functools import cmp_to_key
from typing import Callable, Iterable, List, Mapping, Optional, Sequence

from taskquery.models import STATUS_OPEN, STATUS_OTHER, ParsedQuery, ScoreBreakdown, Task
from taskquery.parser_utils.datetime import to_date
from taskquery.parser_utils.text import deduplicate_keywords
from taskquery.query_config import QueryConfig, ScoringConfig
from taskquery.term_registry import compare_dates, compare_priority, get_status_order

logger = logging.getLogger(__name__)


def relevance_score(text: str, core_keywords: Sequence[str], keywords: Sequence[str], core_weight: float) -> float:
    """``core_ratio * core_weight + all_ratio``, both ratios over the core keyword count."""

    haystack = (text or "").lower()
    core_matched = sum(1 for keyword in core_keywords if keyword.lower() in haystack)
    all_matched = sum(1 for keyword in keywords if keyword.lower() in haystack)
    total_core = max(len(core_keywords), 1)
    return (core_matched / total_core) * core_weight + (all_matched / total_core) * 1.0


def due_date_score(due_date: Optional[str], scoring: ScoringConfig, today: Optional[date] = None) -> float:
    due = to_date(due_date)
    if due is None:
        return scoring.due_date_none
    offset = (due - (today or date.today())).days
    if offset < 0:
        return scoring.due_date_overdue
    if offset <= 7:
        return scoring.due_date_within_7_days
    if offset <= 30:
        return scoring.due_date_within_1_month
    return scoring.due_date_later


def priority_score(priority: Optional[int], scoring: ScoringConfig) -> float:
    return {
        1: scoring.priority_p1,
        2: scoring.priority_p2,
        3: scoring.priority_p3,
        4: scoring.priority_p4,
    }.get(priority, scoring.priority_none)


def status_score(category_key: Optional[str], config: QueryConfig) -> float:
    """Configured score for the category; unknown keys use the ``other`` score."""

    if not category_key:
        category = config.status_category(STATUS_OPEN)
        return category.score if category else 1.0
    category = config.status_category(category_key)
    if category is None:
        normalized = category_key.lower().replace("-", "")
        for candidate in config.status_categories:
            if candidate.key.lower().replace("-", "") == normalized:
                category = candidate
                break
    if category is not None:
        return category.score
    other = config.status_category(STATUS_OTHER)
    return other.score if other else 0.5


def rank_tasks(
    tasks: Iterable[Task],
    parsed: ParsedQuery,
    config: Optional[QueryConfig] = None,
    sort_order: Sequence[str] = (),
    *,
    today: Optional[date] = None,
) -> List[ScoreBreakdown]:
    """Score every task and return breakdowns, highest score first (stable on ties)."""

    config = config or QueryConfig()
    scoring = config.scoring
    today = today or date.today()

    keywords = deduplicate_keywords(parsed.keywords)
    core_keywords = deduplicate_keywords(parsed.core_keywords)

    relevance_active = 1.0 if parsed.has_keywords else 0.0
    due_active = 1.0 if parsed.has_due_date or "dueDate" in sort_order else 0.0
    priority_active = 1.0 if parsed.has_priority or "priority" in sort_order else 0.0
    status_active = 1.0 if parsed.has_status or "status" in sort_order else 0.0
    logger.debug(
        "Active coefficients: relevance=%s dueDate=%s priority=%s status=%s",
        scoring.relevance_coefficient * relevance_active,
        scoring.due_date_coefficient * due_active,
        scoring.priority_coefficient * priority_active,
        scoring.status_coefficient * status_active,
    )

    breakdowns: List[ScoreBreakdown] = []
    for task in tasks:
        relevance = relevance_score(task.text, core_keywords, keywords, scoring.relevance_core_weight)
        due = due_date_score(task.due_date, scoring, today)
        priority = priority_score(task.priority, scoring)
        status = status_score(task.status_category, config)
        score = (
            relevance * scoring.relevance_coefficient * relevance_active
            + due * scoring.due_date_coefficient * due_active
            + priority * scoring.priority_coefficient * priority_active
            + status * scoring.status_coefficient * status_active
        )
        breakdowns.append(ScoreBreakdown(task, relevance, due, priority, status, score))

    # sorted() is stable, so equal scores keep input order.
    ranked = sorted(breakdowns, key=lambda item: item.score, reverse=True)
    for position, item in enumerate(ranked[:5], start=1):
        logger.debug("#%d %.2f %s", position, item.score, item.task.text[:50])
    return ranked


def filter_by_relevance(breakdowns: Sequence[ScoreBreakdown], min_ratio: float) -> List[ScoreBreakdown]:
    """Keep results whose relevance is at least ``min_ratio`` of the best one."""

    if not breakdowns or min_ratio <= 0:
        return list(breakdowns)
    best = max(item.relevance for item in breakdowns)
    if best <= 0:
        return list(breakdowns)
    threshold = best * min_ratio
    return [item for item in breakdowns if item.relevance >= threshold]


def _criterion_comparator(criterion: str, config: QueryConfig, relevance: Mapping[str, float]) -> Callable[[Task, Task], int]:
    if criterion == "relevance":
        return lambda a, b: _sign(relevance.get(b.id, 0.0) - relevance.get(a.id, 0.0))
    if criterion == "dueDate":
        return lambda a, b: compare_dates(a.due_date, b.due_date)
    if criterion == "priority":
        return lambda a, b: compare_priority(a.priority, b.priority)
    if criterion == "status":
        return lambda a, b: get_status_order(a.status_category, config) - get_status_order(b.status_category, config)
    if criterion == "created":
        return _compare_created
    if criterion == "alphabetical":
        return lambda a, b: (a.text.lower() > b.text.lower()) - (a.text.lower() < b.text.lower())
    raise ValueError(f"Unknown sort criterion: {criterion}")


def _sign(value: float) -> int:
    return (value > 0) - (value < 0)


def _compare_created(a: Task, b: Task) -> int:
    """Newest first; tasks without a created date go last."""

    if a.created_date is None or b.created_date is None:
        return compare_dates(a.created_date, b.created_date)
    return -compare_dates(a.created_date, b.created_date)


def sort_tasks(
    tasks: Iterable[Task],
    sort_order: Sequence[str],
    config: Optional[QueryConfig] = None,
    relevance: Optional[Mapping[str, float]] = None,
) -> List[Task]:
    """Multi-criteria sort; later criteria only break ties of earlier ones."""

    items = list(tasks)
    if not sort_order:
        return items
    config = config or QueryConfig()
    comparators = [_criterion_comparator(criterion, config, relevance or {}) for criterion in sort_order]

    def compare(a: Task, b: Task) -> int:
        for comparator in comparators:
            result = comparator(a, b)
            if result:
                return result
        return 0

    return sorted(items, key=cmp_to_key(compare))


def order_ranked(
    breakdowns: Iterable[ScoreBreakdown],
    sort_order: Sequence[str],
    config: Optional[QueryConfig] = None,
) -> List[ScoreBreakdown]:
    """Score first; ``sort_order`` only orders results with equal scores."""

    config = config or QueryConfig()
    comparators = [
        (criterion, None if criterion == "relevance" else _criterion_comparator(criterion, config, {}))
        for criterion in sort_order
    ]

    def compare(a: ScoreBreakdown, b: ScoreBreakdown) -> int:
        result = _sign(b.score - a.score)
        for criterion, comparator in comparators:
            if result:
                return result
            result = _sign(b.relevance - a.relevance) if comparator is None else comparator(a.task, b.task)
        return result

    return sorted(breakdowns, key=cmp_to_key(compare))


__all__ = [
    "due_date_score",
    "filter_by_relevance",
    "order_ranked",
    "priority_score",
    "rank_tasks",
    "relevance_score",
    "sort_tasks",
    "status_score",
]
