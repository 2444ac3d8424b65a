"""Compound property filter applied to the candidate set before ranking."""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import date
from typing import AbstractSet, Any, Iterable, List, Mapping, Optional, Set

from taskquery.models import ParsedQuery, Task
from taskquery.parser_utils.datetime import matches_date_filter, resolve_date_expression
from taskquery.parsers.fast_path import NO_DUE_DATE
from taskquery.query_config import QueryConfig
from taskquery.term_registry import map_priority, map_status_to_category, resolve_status_value

logger = logging.getLogger(__name__)

PRIORITY_ANY = "any"
PRIORITY_NONE = "none"


def tasks_from_records(records: Iterable[Mapping[str, Any]], config: Optional[QueryConfig] = None) -> List[Task]:
    """Build ``Task`` objects from raw records.

    Missing ids become ``task-<n>``; a missing status category is derived from
    the checkbox symbol.
    """

    config = config or QueryConfig()
    tasks: List[Task] = []
    for index, record in enumerate(records):
        task = Task.from_dict(record)
        if not task.id:
            task = replace(task, id=f"task-{index + 1}")
        if not (record.get("statusCategory") or record.get("status_category")):
            task = replace(task, status_category=map_status_to_category(task.status_symbol, config))
        if task.priority is None and record.get("priority") not in (None, ""):
            task = replace(task, priority=map_priority(record.get("priority"), config))
        tasks.append(task)
    return tasks


def _normalize_tag(tag: str) -> str:
    return tag.lstrip("#").lower()


def matches_priority(task: Task, wanted: Any) -> bool:
    if wanted is None or wanted == []:
        return True
    if wanted == PRIORITY_ANY:
        return task.priority is not None
    if wanted == PRIORITY_NONE:
        return task.priority is None
    levels = wanted if isinstance(wanted, list) else [wanted]
    return task.priority in levels


def resolve_status_keys(wanted: Any, config: QueryConfig) -> Optional[Set[str]]:
    """Status category keys named by a query value; ``None`` when unconstrained."""

    if wanted is None or wanted == []:
        return None
    values = wanted if isinstance(wanted, list) else [wanted]
    return {resolve_status_value(str(value), config) or str(value) for value in values}


def matches_status(task: Task, keys: Optional[AbstractSet[str]]) -> bool:
    return keys is None or task.status_category in keys


def matches_due_date(task: Task, parsed: ParsedQuery, today: Optional[date] = None) -> bool:
    if parsed.due_date == NO_DUE_DATE:
        return not task.due_date
    if parsed.due_date_range is not None:
        return matches_date_filter(task.due_date, parsed.due_date_range)
    if parsed.due_date:
        date_filter = resolve_date_expression(parsed.due_date, today)
        return matches_date_filter(task.due_date, date_filter)
    return True


def matches_folder(task: Task, folder: Optional[str]) -> bool:
    if not folder:
        return True
    return folder.lower() in task.folder.lower()


def matches_tags(task: Task, tags: Iterable[str]) -> bool:
    wanted = {_normalize_tag(tag) for tag in tags if tag}
    if not wanted:
        return True
    return any(_normalize_tag(tag) in wanted for tag in task.tags)


def filter_tasks(
    tasks: Iterable[Task],
    parsed: ParsedQuery,
    config: Optional[QueryConfig] = None,
    *,
    today: Optional[date] = None,
) -> List[Task]:
    """Keep tasks that satisfy every property the query constrains."""

    config = config or QueryConfig()
    candidates = list(tasks)
    status_keys = resolve_status_keys(parsed.status, config)
    filtered = [
        task
        for task in candidates
        if matches_priority(task, parsed.priority)
        and matches_due_date(task, parsed, today)
        and matches_status(task, status_keys)
        and matches_folder(task, parsed.folder)
        and matches_tags(task, parsed.tags)
    ]
    logger.debug("Property filter kept %d of %d tasks", len(filtered), len(candidates))
    return filtered


__all__ = [
    "PRIORITY_ANY",
    "PRIORITY_NONE",
    "filter_tasks",
    "matches_due_date",
    "matches_folder",
    "matches_priority",
    "matches_status",
    "matches_tags",
    "resolve_status_keys",
    "tasks_from_records",
]
