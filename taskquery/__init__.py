"""Query understanding and ranking for task lists."""

from taskquery.models import DateFilter, ParsedQuery, ScoreBreakdown, Task
from taskquery.parser_utils.datetime import resolve_date_expression
from taskquery.query_config import QueryConfig, QueryConfigError, load_query_config
from taskquery.query_parser import QueryParser, parse_query
from taskquery.ranking import rank_tasks

__all__ = [
    "DateFilter",
    "ParsedQuery",
    "QueryConfig",
    "QueryConfigError",
    "QueryParser",
    "ScoreBreakdown",
    "Task",
    "load_query_config",
    "parse_query",
    "rank_tasks",
    "resolve_date_expression",
]
