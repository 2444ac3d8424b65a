"""Turn a natural-language task query into a ``ParsedQuery``.

Queries made only of property syntax (``p1 overdue #work``) are resolved by
the deterministic fast path. Everything else goes to the configured chat
backend once; when the backend is missing, fails or returns nothing usable,
the parser falls back to keyword-only search over the original query.
``QueryParser.parse`` never raises.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Iterable, List, Optional

from taskquery.json_recovery import ModelQueryPayload, recover_payload
from taskquery.llm_client import ChatBackend, ModelBackendError
from taskquery.models import ExpansionMetadata, ParsedQuery
from taskquery.parser_utils.datetime import resolve_date_expression
from taskquery.parser_utils.text import deduplicate_keywords, extract_folder, extract_keywords, extract_tags
from taskquery.parsers import fast_path
from taskquery.parsers.types import PropertyMatch
from taskquery.prompt_builder import build_parser_messages
from taskquery.query_config import QueryConfig
from taskquery.stop_words import filter_stop_words
from taskquery.term_registry import all_property_trigger_words, resolve_status_value

logger = logging.getLogger(__name__)

SOURCE_FAST_PATH = "fast_path"
SOURCE_MODEL = "model"
SOURCE_FALLBACK = "fallback"

# Below this share of the expected keyword count the expansion is reported as short.
EXPANSION_SHORTFALL_RATIO = 0.3


def merge_keywords(core: Iterable[str], expanded: Iterable[str]) -> List[str]:
    """Core keywords first, then deduplicated expansions not already present."""

    merged: List[str] = []
    seen = set()
    for keyword in core:
        if keyword.lower() not in seen:
            seen.add(keyword.lower())
            merged.append(keyword)
    for keyword in deduplicate_keywords(expanded):
        if keyword.lower() not in seen:
            seen.add(keyword.lower())
            merged.append(keyword)
    return merged


def _apply_explicit(parsed: ParsedQuery, explicit: PropertyMatch) -> None:
    """Explicit syntax in the query beats anything the model inferred."""

    if explicit.priority is not None:
        parsed.priority = explicit.priority
    if explicit.status is not None:
        parsed.status = explicit.status
    if explicit.due_date is not None:
        parsed.due_date = explicit.due_date
        parsed.due_date_range = explicit.due_date_range
    for tag in explicit.tags:
        if tag not in parsed.tags:
            parsed.tags.append(tag)


class QueryParser:
    """Hybrid parser: fast path, then one model call, then keyword fallback."""

    def __init__(
        self,
        config: Optional[QueryConfig] = None,
        backend: Optional[ChatBackend] = None,
        *,
        today: Optional[date] = None,
    ) -> None:
        self._config = config or QueryConfig()
        self._backend = backend
        self._today = today

    @property
    def config(self) -> QueryConfig:
        return self._config

    def parse(self, text: str) -> ParsedQuery:
        original = text or ""
        if not original.strip():
            return ParsedQuery(original_query=original, source=SOURCE_FALLBACK)

        if fast_path.matches(original):
            matched = fast_path.parse(original, self._config, self._today)
            if matched is not None:
                logger.debug("Fast path resolved query %r", original)
                return ParsedQuery(
                    priority=matched.priority,
                    due_date=matched.due_date,
                    due_date_range=matched.due_date_range,
                    status=matched.status,
                    tags=list(matched.tags),
                    original_query=original,
                    source=SOURCE_FAST_PATH,
                )

        if self._backend is None:
            return self._fallback(original, "No model backend configured.")

        try:
            raw = self._backend.complete_chat(build_parser_messages(original, self._config, self._today))
        except ModelBackendError as exc:
            logger.warning("Model backend %s/%s failed: %s", exc.provider, exc.model, exc)
            return self._fallback(original, str(exc))
        except Exception as exc:
            logger.exception("Model backend raised unexpectedly")
            return self._fallback(original, f"Model backend error: {exc}")

        try:
            payload = recover_payload(raw)
            if payload is None:
                return self._fallback(original, "Model response did not contain usable JSON.")
            return self._from_payload(original, payload)
        except Exception as exc:
            logger.exception("Could not interpret model response")
            return self._fallback(original, f"Model response error: {exc}")

    # WHAT: keyword-only result built from the raw query.
    # HOW: stop-word-filtered tokens become both core and expanded keywords; explicit syntax still applies.
    def _fallback(self, original: str, error: str) -> ParsedQuery:
        keywords = extract_keywords(original, self._config)
        parsed = ParsedQuery(
            core_keywords=list(keywords),
            keywords=list(keywords),
            folder=extract_folder(original),
            tags=extract_tags(original),
            original_query=original,
            source=SOURCE_FALLBACK,
            parser_error=error,
        )
        _apply_explicit(parsed, fast_path.extract_explicit_syntax(original, self._config, self._today))
        return parsed

    def _from_payload(self, original: str, payload: ModelQueryPayload) -> ParsedQuery:
        config = self._config
        stop_words = config.user_stop_words

        core = filter_stop_words(payload.core_keywords, stop_words)
        # Words that only name a property are filters, not search terms.
        triggers = set(all_property_trigger_words(config))
        content = [keyword for keyword in core if keyword.lower() not in triggers]
        core = content or core
        if not core:
            core = extract_keywords(original, config)
        core = deduplicate_keywords(core)

        if config.semantic_expansion:
            keywords = merge_keywords(core, filter_stop_words(payload.keywords, stop_words))
        else:
            keywords = list(core)

        parsed = ParsedQuery(
            core_keywords=core,
            keywords=keywords,
            priority=payload.priority,
            status=self._resolve_status(payload.status),
            folder=payload.folder or extract_folder(original),
            tags=list(dict.fromkeys(payload.tags + extract_tags(original))),
            original_query=original,
            source=SOURCE_MODEL,
        )
        self._resolve_due_date(parsed, payload.due_date)
        _apply_explicit(parsed, fast_path.extract_explicit_syntax(original, config, self._today))
        parsed.expansion = self._expansion_metadata(parsed)
        return parsed

    def _resolve_status(self, value: object) -> object:
        if value is None:
            return None
        values = value if isinstance(value, list) else [value]
        resolved: List[str] = []
        for item in values:
            key = resolve_status_value(str(item), self._config)
            if key is not None and key not in resolved:
                resolved.append(key)
        if not resolved:
            return None
        return resolved[0] if len(resolved) == 1 else resolved

    def _resolve_due_date(self, parsed: ParsedQuery, token: Optional[str]) -> None:
        if not token:
            return
        if token.lower() == fast_path.NO_DUE_DATE:
            parsed.due_date = fast_path.NO_DUE_DATE
            return
        date_filter = resolve_date_expression(token, self._today)
        if date_filter is None:
            logger.debug("Ignoring unresolved due date %r from model", token)
            return
        parsed.due_date = token
        parsed.due_date_range = date_filter

    # WHAT: compare produced keywords with the configured expansion target.
    # HOW: target = core count x keywords per core; a total under 30% of it is logged, never raised.
    def _expansion_metadata(self, parsed: ParsedQuery) -> ExpansionMetadata:
        config = self._config
        metadata = ExpansionMetadata(
            enabled=config.semantic_expansion,
            languages=list(config.languages),
            expansions_per_language=config.expansions_per_language,
            core_keywords_count=len(parsed.core_keywords),
            total_keywords=len(parsed.keywords),
        )
        target = metadata.core_keywords_count * metadata.target_per_core
        if config.semantic_expansion and target and metadata.total_keywords < target * EXPANSION_SHORTFALL_RATIO:
            logger.warning(
                "Keyword expansion short: %d keywords for %d core (expected about %d)",
                metadata.total_keywords,
                metadata.core_keywords_count,
                target,
            )
        return metadata


def parse_query(
    text: str,
    config: Optional[QueryConfig] = None,
    backend: Optional[ChatBackend] = None,
    *,
    today: Optional[date] = None,
) -> ParsedQuery:
    """Convenience wrapper around ``QueryParser(config, backend).parse(text)``."""

    return QueryParser(config, backend, today=today).parse(text)


__all__ = [
    "EXPANSION_SHORTFALL_RATIO",
    "QueryParser",
    "SOURCE_FALLBACK",
    "SOURCE_FAST_PATH",
    "SOURCE_MODEL",
    "merge_keywords",
    "parse_query",
]
