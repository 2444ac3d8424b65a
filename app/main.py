"""Command-line entry point: search a task export or resolve a date expression."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from app.config import get_backend_settings, get_log_level, get_query_config, is_model_configured
from taskquery.json_storage import load_task_records
from taskquery.llm_client import ChatBackend, build_chat_backend
from taskquery.models import ScoreBreakdown
from taskquery.parser_utils.datetime import resolve_date_expression
from taskquery.query_config import VALID_SORT_CRITERIA, QueryConfig, QueryConfigError
from taskquery.query_parser import parse_query
from taskquery.ranking import filter_by_relevance, order_ranked, rank_tasks
from taskquery.task_filter import filter_tasks, tasks_from_records

logger = logging.getLogger(__name__)


def build_backend(use_model: bool) -> Optional[ChatBackend]:
    """Return a chat backend when the model path is enabled and configured."""

    if not use_model:
        return None
    if not is_model_configured():
        logger.info("No model credentials configured; using keyword-only parsing.")
        return None
    return build_chat_backend(get_backend_settings())


def search(
    query: str,
    tasks_path: Path,
    config: QueryConfig,
    backend: Optional[ChatBackend],
    sort_order: Sequence[str] = (),
    limit: Optional[int] = None,
    min_relevance: float = 0.0,
) -> Dict[str, object]:
    """Parse ``query``, filter and rank the exported tasks, and return a JSON-ready dict."""

    parsed = parse_query(query, config, backend)
    tasks = tasks_from_records(load_task_records(tasks_path), config)
    candidates = filter_tasks(tasks, parsed, config)
    ranked: List[ScoreBreakdown] = rank_tasks(candidates, parsed, config, sort_order)
    if parsed.has_keywords and min_relevance > 0:
        ranked = filter_by_relevance(ranked, min_relevance)
    if sort_order:
        ranked = order_ranked(ranked, sort_order, config)
    if limit is not None:
        ranked = ranked[:limit]
    return {
        "query": parsed.to_dict(),
        "total": len(tasks),
        "matched": len(candidates),
        "results": [item.to_dict() for item in ranked],
    }


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Task query understanding and ranking")
    sub = parser.add_subparsers(dest="command", required=True)

    search_parser = sub.add_parser("search", help="Parse a query and rank tasks from a JSON export.")
    search_parser.add_argument("query")
    search_parser.add_argument("--tasks", type=Path, required=True, help="JSON list of task records.")
    search_parser.add_argument("--sort", nargs="+", choices=sorted(VALID_SORT_CRITERIA), default=None)
    search_parser.add_argument("--limit", type=int, default=None)
    search_parser.add_argument("--min-relevance", type=float, default=0.0, help="Keep results within this ratio of the best relevance.")
    search_parser.add_argument("--no-model", action="store_true", help="Skip the model call and parse deterministically.")

    date_parser = sub.add_parser("resolve-date", help="Resolve a date expression to a range.")
    date_parser.add_argument("expression")
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = _build_parser().parse_args(argv)
    logging.basicConfig(level=get_log_level(), format="%(levelname)s %(name)s: %(message)s")

    if args.command == "resolve-date":
        resolved = resolve_date_expression(args.expression)
        print(json.dumps(resolved.to_dict() if resolved else None, ensure_ascii=False))
        return 0 if resolved else 1

    try:
        config = get_query_config()
    except QueryConfigError as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return 2

    sort_order = args.sort if args.sort is not None else list(config.sort_order)
    try:
        result = search(
            args.query,
            args.tasks,
            config,
            build_backend(not args.no_model),
            sort_order=sort_order,
            limit=args.limit,
            min_relevance=args.min_relevance,
        )
    except (OSError, ValueError) as exc:
        print(f"Could not read tasks from {args.tasks}: {exc}", file=sys.stderr)
        return 2
    print(json.dumps(result, ensure_ascii=False, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
