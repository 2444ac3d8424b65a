"""Value types shared by the parser, the filters and the ranking engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, List, Mapping, Optional, Union

STATUS_OPEN = "open"
STATUS_IN_PROGRESS = "inProgress"
STATUS_COMPLETED = "completed"
STATUS_CANCELLED = "cancelled"
STATUS_OTHER = "other"

PriorityFilter = Union[int, List[int], str]
StatusFilter = Union[str, List[str]]


@dataclass(frozen=True)
class Task:
    """A single work item as supplied by the task source."""

    id: str
    text: str
    status_symbol: str = " "
    status_category: str = STATUS_OPEN
    priority: Optional[int] = None
    due_date: Optional[str] = None
    created_date: Optional[str] = None
    completed_date: Optional[str] = None
    tags: FrozenSet[str] = frozenset()
    folder: str = ""
    line: int = 0

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Task":
        """Build a task from either the camelCase or the snake_case shape."""

        def pick(*keys: str) -> Any:
            for key in keys:
                value = data.get(key)
                if value not in (None, ""):
                    return value
            return None

        priority = pick("priority")
        try:
            priority_value = int(priority) if priority is not None else None
        except (TypeError, ValueError):
            priority_value = None
        if priority_value is not None and not 1 <= priority_value <= 4:
            priority_value = None

        raw_tags = data.get("tags") or []
        if isinstance(raw_tags, str):
            raw_tags = [raw_tags]
        tags = frozenset(str(tag).lstrip("#") for tag in raw_tags if str(tag).strip())

        line = pick("line", "lineNumber", "line_number")
        return cls(
            id=str(pick("id") or ""),
            text=str(data.get("text") or ""),
            status_symbol=str(data.get("status") if data.get("status") is not None else data.get("status_symbol", " ")),
            status_category=str(pick("statusCategory", "status_category") or STATUS_OPEN),
            priority=priority_value,
            due_date=pick("dueDate", "due_date"),
            created_date=pick("createdDate", "created_date"),
            completed_date=pick("completedDate", "completed_date"),
            tags=tags,
            folder=str(pick("folder", "sourcePath", "source_path", "path") or ""),
            line=int(line) if line is not None else 0,
        )


@dataclass(frozen=True)
class DateFilter:
    """Three-state due date filter.

    ``none`` means the caller asked for no date constraint, ``any`` means the
    task must carry some due date, ``range`` carries optional ISO bounds.
    """

    kind: str
    start: Optional[str] = None
    end: Optional[str] = None

    NO_FILTER = "none"
    HAS_ANY = "any"
    RANGE = "range"

    def __post_init__(self) -> None:
        if self.kind not in {self.NO_FILTER, self.HAS_ANY, self.RANGE}:
            raise ValueError(f"Unknown date filter kind: {self.kind!r}")
        if self.start and self.end and self.start > self.end:
            raise ValueError(f"Date range start {self.start} is after end {self.end}")

    @classmethod
    def no_filter(cls) -> "DateFilter":
        return cls(cls.NO_FILTER)

    @classmethod
    def has_any(cls) -> "DateFilter":
        return cls(cls.HAS_ANY)

    @classmethod
    def range(cls, start: Optional[str] = None, end: Optional[str] = None) -> "DateFilter":
        return cls(cls.RANGE, start=start, end=end)

    @property
    def is_active(self) -> bool:
        return self.kind != self.NO_FILTER

    def to_dict(self) -> Dict[str, str]:
        data: Dict[str, str] = {"kind": self.kind}
        if self.start:
            data["start"] = self.start
        if self.end:
            data["end"] = self.end
        return data


@dataclass(frozen=True)
class ExpansionMetadata:
    enabled: bool
    languages: List[str]
    expansions_per_language: int
    core_keywords_count: int
    total_keywords: int

    @property
    def target_per_core(self) -> int:
        if not self.enabled:
            return len(self.languages)
        return self.expansions_per_language * len(self.languages)

    @property
    def expansion_ratio(self) -> float:
        """Keywords produced per core keyword."""

        if self.core_keywords_count == 0:
            return 0.0
        return self.total_keywords / self.core_keywords_count


@dataclass
class ParsedQuery:
    """Structured view of a natural-language query."""

    core_keywords: List[str] = field(default_factory=list)
    keywords: List[str] = field(default_factory=list)
    priority: Optional[PriorityFilter] = None
    due_date: Optional[str] = None
    due_date_range: Optional[DateFilter] = None
    status: Optional[StatusFilter] = None
    folder: Optional[str] = None
    tags: List[str] = field(default_factory=list)
    original_query: str = ""
    source: str = "fallback"
    expansion: Optional[ExpansionMetadata] = None
    parser_error: Optional[str] = None

    @property
    def has_keywords(self) -> bool:
        return bool(self.keywords or self.core_keywords)

    @property
    def has_due_date(self) -> bool:
        return bool(self.due_date) or (self.due_date_range is not None and self.due_date_range.is_active)

    @property
    def has_priority(self) -> bool:
        return self.priority is not None and self.priority != []

    @property
    def has_status(self) -> bool:
        return self.status is not None and self.status != []

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "coreKeywords": list(self.core_keywords),
            "keywords": list(self.keywords),
            "tags": list(self.tags),
            "source": self.source,
        }
        if self.priority is not None:
            data["priority"] = self.priority
        if self.due_date:
            data["dueDate"] = self.due_date
        if self.due_date_range is not None:
            data["dueDateRange"] = self.due_date_range.to_dict()
        if self.status is not None:
            data["status"] = self.status
        if self.folder:
            data["folder"] = self.folder
        if self.expansion is not None:
            data["expansion"] = {
                "enabled": self.expansion.enabled,
                "languages": list(self.expansion.languages),
                "expansionsPerLanguage": self.expansion.expansions_per_language,
                "coreKeywordsCount": self.expansion.core_keywords_count,
                "totalKeywords": self.expansion.total_keywords,
                "expansionRatio": round(self.expansion.expansion_ratio, 2),
            }
        if self.parser_error:
            data["parserError"] = self.parser_error
        return data


@dataclass(frozen=True)
class ScoreBreakdown:
    task: Task
    relevance: float
    due_date: float
    priority: float
    status: float
    score: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.task.id,
            "text": self.task.text,
            "score": round(self.score, 4),
            "relevance": round(self.relevance, 4),
            "dueDate": round(self.due_date, 4),
            "priority": round(self.priority, 4),
            "status": round(self.status, 4),
        }


__all__ = [
    "DateFilter",
    "ExpansionMetadata",
    "ParsedQuery",
    "PriorityFilter",
    "STATUS_CANCELLED",
    "STATUS_COMPLETED",
    "STATUS_IN_PROGRESS",
    "STATUS_OPEN",
    "STATUS_OTHER",
    "ScoreBreakdown",
    "StatusFilter",
    "Task",
]
