"""Read-only query configuration: terms, status categories, scoring and languages.

The configuration is a frozen value that every parser/ranking function takes
explicitly. ``load_query_config`` reads it from YAML and falls back to the
built-in defaults for anything the file leaves out.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple

import yaml

DEFAULT_QUERY_CONFIG = Path("config/query.yml")
DEFAULT_QUERY_LANGUAGES: Tuple[str, ...] = ("English", "中文")
DEFAULT_EXPANSIONS_PER_LANGUAGE = 5
DEFAULT_SORT_ORDER: Tuple[str, ...] = ("relevance", "dueDate", "priority")
VALID_SORT_CRITERIA = {"relevance", "dueDate", "priority", "status", "created", "alphabetical"}


class QueryConfigError(RuntimeError):
    """Raised when the query configuration file is missing required shape."""


@dataclass(frozen=True)
class StatusCategoryConfig:
    """One status bucket (e.g. ``open``) and the symbols that map to it."""

    key: str
    display_name: str
    symbols: Tuple[str, ...] = ()
    score: float = 0.5
    aliases: Tuple[str, ...] = ()
    order: Optional[int] = None
    description: Optional[str] = None
    terms: Tuple[str, ...] = ()


@dataclass(frozen=True)
class UserPropertyTerms:
    priority: Tuple[str, ...] = ()
    due_date: Tuple[str, ...] = ()
    status: Tuple[str, ...] = ()


@dataclass(frozen=True)
class ScoringConfig:
    relevance_coefficient: float = 20.0
    due_date_coefficient: float = 4.0
    priority_coefficient: float = 1.0
    status_coefficient: float = 1.0
    relevance_core_weight: float = 0.2
    due_date_overdue: float = 1.5
    due_date_within_7_days: float = 1.0
    due_date_within_1_month: float = 0.5
    due_date_later: float = 0.2
    due_date_none: float = 0.1
    priority_p1: float = 1.0
    priority_p2: float = 0.75
    priority_p3: float = 0.5
    priority_p4: float = 0.2
    priority_none: float = 0.1


_DEFAULT_STATUS_CATEGORIES: Tuple[StatusCategoryConfig, ...] = (
    StatusCategoryConfig(
        key="open",
        display_name="Open",
        symbols=(" ", ""),
        score=1.0,
        aliases=("open", "o", "todo", "undone", "incomplete"),
    ),
    StatusCategoryConfig(
        key="inProgress",
        display_name="In progress",
        symbols=("/", "~"),
        score=0.75,
        aliases=("inprogress", "in-progress", "wip", "doing", "ip"),
    ),
    StatusCategoryConfig(
        key="completed",
        display_name="Completed",
        symbols=("x", "X"),
        score=0.2,
        aliases=("completed", "done", "finished", "closed"),
    ),
    StatusCategoryConfig(
        key="cancelled",
        display_name="Cancelled",
        symbols=("-",),
        score=0.1,
        aliases=("cancelled", "canceled", "dropped", "abandoned"),
    ),
    StatusCategoryConfig(
        key="other",
        display_name="Other",
        symbols=(),
        score=0.5,
        aliases=("other",),
    ),
)

_DEFAULT_PRIORITY_MAPPING: Dict[int, Tuple[str, ...]] = {
    1: ("1", "p1", "highest", "high", "urgent"),
    2: ("2", "p2", "medium"),
    3: ("3", "p3", "low"),
    4: ("4", "p4", "lowest", "none"),
}


@dataclass(frozen=True)
class QueryConfig:
    """Everything the engine reads while answering one query."""

    status_categories: Tuple[StatusCategoryConfig, ...] = _DEFAULT_STATUS_CATEGORIES
    priority_mapping: Mapping[int, Tuple[str, ...]] = field(default_factory=lambda: dict(_DEFAULT_PRIORITY_MAPPING))
    user_terms: UserPropertyTerms = UserPropertyTerms()
    scoring: ScoringConfig = ScoringConfig()
    query_languages: Tuple[str, ...] = DEFAULT_QUERY_LANGUAGES
    expansions_per_language: int = DEFAULT_EXPANSIONS_PER_LANGUAGE
    semantic_expansion: bool = True
    user_stop_words: Tuple[str, ...] = ()
    sort_order: Tuple[str, ...] = DEFAULT_SORT_ORDER

    def status_category(self, key: str) -> Optional[StatusCategoryConfig]:
        for category in self.status_categories:
            if category.key == key:
                return category
        return None

    def status_keys(self) -> Tuple[str, ...]:
        return tuple(category.key for category in self.status_categories)

    @property
    def languages(self) -> Tuple[str, ...]:
        """Configured query languages, never empty."""

        return self.query_languages or ("English",)

    @property
    def keywords_per_core(self) -> int:
        """Target number of expanded keywords per core keyword."""

        if not self.semantic_expansion:
            return len(self.languages)
        return self.expansions_per_language * len(self.languages)

    def with_overrides(self, **changes: Any) -> "QueryConfig":
        """Return a copy with selected fields replaced (``None`` values are ignored)."""

        effective = {key: value for key, value in changes.items() if value is not None}
        if not effective:
            return self
        return replace(self, **effective)


def load_query_config(path: Path | str | None = None) -> QueryConfig:
    """Load ``QueryConfig`` from YAML; a missing default file yields the defaults."""

    target = Path(path) if path else DEFAULT_QUERY_CONFIG
    if not target.exists():
        if path:
            raise QueryConfigError(f"Query config not found: {target}")
        return QueryConfig()

    try:
        data = yaml.safe_load(target.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        raise QueryConfigError(f"Unable to parse query config {target}: {exc}") from exc
    if not isinstance(data, dict):
        raise QueryConfigError(f"Query config {target} must be a mapping at the top level.")
    return query_config_from_dict(data)


def query_config_from_dict(data: Mapping[str, Any]) -> QueryConfig:
    """Build a configuration from a plain mapping (YAML document or test fixture)."""

    defaults = QueryConfig()
    changes: Dict[str, Any] = {}

    if "query_languages" in data:
        changes["query_languages"] = _string_tuple(data["query_languages"], "query_languages")
    if "expansions_per_language" in data:
        changes["expansions_per_language"] = _positive_int(data["expansions_per_language"], "expansions_per_language")
    if "semantic_expansion" in data:
        changes["semantic_expansion"] = bool(data["semantic_expansion"])
    if "stop_words" in data:
        changes["user_stop_words"] = tuple(word.lower() for word in _string_tuple(data["stop_words"], "stop_words"))
    if "sort_order" in data:
        sort_order = _string_tuple(data["sort_order"], "sort_order")
        unknown = [criterion for criterion in sort_order if criterion not in VALID_SORT_CRITERIA]
        if unknown:
            raise QueryConfigError(f"Unknown sort criteria: {', '.join(unknown)}")
        changes["sort_order"] = sort_order
    if "user_terms" in data:
        changes["user_terms"] = _user_terms(data["user_terms"])
    if "priority_mapping" in data:
        changes["priority_mapping"] = _priority_mapping(data["priority_mapping"])
    if "status_categories" in data:
        changes["status_categories"] = _status_categories(data["status_categories"])
    if "scoring" in data:
        changes["scoring"] = _scoring(data["scoring"], defaults.scoring)

    return replace(defaults, **changes) if changes else defaults


def _string_tuple(value: Any, label: str) -> Tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        value = [part for part in value.split(",")]
    if not isinstance(value, (list, tuple)):
        raise QueryConfigError(f"'{label}' must be a list of strings.")
    return tuple(str(item).strip() for item in value if str(item).strip())


def _positive_int(value: Any, label: str) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError) as exc:
        raise QueryConfigError(f"'{label}' must be an integer.") from exc
    if number < 1:
        raise QueryConfigError(f"'{label}' must be at least 1.")
    return number


def _user_terms(value: Any) -> UserPropertyTerms:
    if not isinstance(value, dict):
        raise QueryConfigError("'user_terms' must be a mapping.")
    return UserPropertyTerms(
        priority=_string_tuple(value.get("priority"), "user_terms.priority"),
        due_date=_string_tuple(value.get("dueDate", value.get("due_date")), "user_terms.dueDate"),
        status=_string_tuple(value.get("status"), "user_terms.status"),
    )


def _priority_mapping(value: Any) -> Dict[int, Tuple[str, ...]]:
    if not isinstance(value, dict):
        raise QueryConfigError("'priority_mapping' must be a mapping of 1-4 to value lists.")
    mapping: Dict[int, Tuple[str, ...]] = {}
    for raw_level, raw_values in value.items():
        try:
            level = int(raw_level)
        except (TypeError, ValueError) as exc:
            raise QueryConfigError(f"Priority level {raw_level!r} is not a number.") from exc
        if not 1 <= level <= 4:
            raise QueryConfigError(f"Priority level {level} is outside 1-4.")
        mapping[level] = tuple(item.lower() for item in _string_tuple(raw_values, f"priority_mapping.{level}"))
    return mapping


def _status_categories(value: Any) -> Tuple[StatusCategoryConfig, ...]:
    if not isinstance(value, dict) or not value:
        raise QueryConfigError("'status_categories' must be a non-empty mapping.")
    categories = []
    for key, entry in value.items():
        if not isinstance(entry, dict):
            raise QueryConfigError(f"Status category '{key}' must be a mapping.")
        symbols = entry.get("symbols") or []
        if not isinstance(symbols, list):
            raise QueryConfigError(f"Status category '{key}' symbols must be a list.")
        order = entry.get("order")
        categories.append(
            StatusCategoryConfig(
                key=str(key),
                display_name=str(entry.get("display_name") or key),
                symbols=tuple(str(symbol) for symbol in symbols),
                score=float(entry.get("score", 0.5)),
                aliases=tuple(alias.lower() for alias in _string_tuple(entry.get("aliases"), f"{key}.aliases")),
                order=int(order) if order is not None else None,
                description=entry.get("description"),
                terms=_string_tuple(entry.get("terms"), f"{key}.terms"),
            )
        )
    return tuple(categories)


def _scoring(value: Any, defaults: ScoringConfig) -> ScoringConfig:
    if not isinstance(value, dict):
        raise QueryConfigError("'scoring' must be a mapping.")
    known = set(ScoringConfig.__dataclass_fields__)
    unknown = sorted(set(value) - known)
    if unknown:
        raise QueryConfigError(f"Unknown scoring keys: {', '.join(unknown)}")
    try:
        return replace(defaults, **{key: float(number) for key, number in value.items()})
    except (TypeError, ValueError) as exc:
        raise QueryConfigError("Scoring values must be numbers.") from exc


def iter_status_terms(category: StatusCategoryConfig) -> Iterable[str]:
    """Yield every lowercase word a user might type for ``category``."""

    yield category.key.lower()
    yield category.display_name.lower()
    for alias in category.aliases:
        yield alias
    for term in category.terms:
        yield term.lower()


__all__ = [
    "DEFAULT_QUERY_CONFIG",
    "DEFAULT_QUERY_LANGUAGES",
    "QueryConfig",
    "QueryConfigError",
    "ScoringConfig",
    "StatusCategoryConfig",
    "UserPropertyTerms",
    "iter_status_terms",
    "load_query_config",
    "query_config_from_dict",
]
