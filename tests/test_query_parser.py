from datetime import date
from typing import List, Optional

import pytest

from taskquery.llm_client import ModelBackendError
from taskquery.prompt_builder import build_parser_messages
from taskquery.query_config import QueryConfig, UserPropertyTerms
from taskquery.query_parser import (
    SOURCE_FALLBACK,
    SOURCE_FAST_PATH,
    SOURCE_MODEL,
    QueryParser,
    merge_keywords,
    parse_query,
)

TODAY = date(2025, 1, 1)


class _StubBackend:
    provider = "stub"
    model = "stub-model"

    def __init__(self, reply: Optional[str] = None, error: Optional[Exception] = None) -> None:
        self.reply = reply
        self.error = error
        self.calls: List[list] = []

    def complete_chat(self, messages):
        self.calls.append(messages)
        if self.error is not None:
            raise self.error
        return self.reply


MODEL_REPLY = (
    "<think>They want the report.</think>\n```json\n"
    '{"coreKeywords": ["report"], "keywords": ["report", "summary", "报告"], '
    '"priority": "high", "dueDate": "tomorrow", "status": "open"}\n```'
)


def _parser(backend=None, config: Optional[QueryConfig] = None) -> QueryParser:
    return QueryParser(config or QueryConfig(), backend, today=TODAY)


def test_fast_path_never_calls_the_model():
    backend = _StubBackend(error=AssertionError("model should not be called"))
    result = _parser(backend).parse("p1 overdue #work")

    assert backend.calls == []
    assert result.source == SOURCE_FAST_PATH
    assert result.priority == 1
    assert result.due_date == "overdue"
    assert result.tags == ["work"]
    assert result.keywords == []


def test_model_reply_is_normalized():
    backend = _StubBackend(MODEL_REPLY)
    result = _parser(backend).parse("urgent report due tomorrow")

    assert len(backend.calls) == 1
    assert result.source == SOURCE_MODEL
    assert result.core_keywords == ["report"]
    assert result.keywords[0] == "report"
    assert set(result.keywords) == {"report", "summary", "报告"}
    assert result.priority == 1
    assert result.status == "open"
    assert result.due_date == "tomorrow"
    assert result.due_date_range.start == "2025-01-02"
    assert result.parser_error is None


def test_keywords_always_contain_core_keywords():
    reply = '{"coreKeywords": ["budget", "the"], "keywords": ["finance"]}'
    result = _parser(_StubBackend(reply)).parse("the budget review")

    assert result.core_keywords == ["budget"]
    assert set(result.core_keywords) <= set(result.keywords)


def test_property_words_are_not_core_keywords():
    reply = '{"coreKeywords": ["urgent", "invoice", "overdue"], "priority": 1}'
    result = _parser(_StubBackend(reply)).parse("urgent invoice that is late")

    assert result.core_keywords == ["invoice"]
    assert result.priority == 1


def test_missing_core_keywords_fall_back_to_query_tokens():
    result = _parser(_StubBackend('{"keywords": [], "priority": 2}')).parse("meeting notes")

    assert set(result.core_keywords) == {"meeting", "notes"}
    assert result.priority == 2


def test_expansion_disabled_keeps_only_core_keywords():
    config = QueryConfig(semantic_expansion=False)
    result = _parser(_StubBackend(MODEL_REPLY), config).parse("urgent report due tomorrow")

    assert result.keywords == ["report"]
    assert result.expansion is not None
    assert not result.expansion.enabled


def test_expansion_metadata_reports_ratio(caplog):
    config = QueryConfig(query_languages=("English", "中文", "Svenska"), expansions_per_language=5)
    with caplog.at_level("WARNING"):
        result = _parser(_StubBackend(MODEL_REPLY), config).parse("urgent report due tomorrow")

    assert result.expansion.core_keywords_count == 1
    assert result.expansion.total_keywords == 3
    assert result.expansion.target_per_core == 15
    assert result.expansion.expansion_ratio == 3.0
    assert "expansion short" in caplog.text


def test_explicit_syntax_overrides_model_values():
    reply = '{"coreKeywords": ["report"], "priority": 1, "dueDate": "tomorrow", "status": "done"}'
    result = _parser(_StubBackend(reply)).parse("find report p2 s:open overdue")

    assert result.priority == 2
    assert result.status == "open"
    assert result.due_date == "overdue"
    assert result.due_date_range.end == "2024-12-31"


def test_unresolvable_model_date_is_dropped():
    reply = '{"coreKeywords": ["report"], "dueDate": "asdf qwerty"}'
    result = _parser(_StubBackend(reply)).parse("report sometime")

    assert result.due_date is None
    assert result.due_date_range is None


def test_model_may_ask_for_tasks_without_due_date():
    reply = '{"coreKeywords": ["report"], "dueDate": "none"}'
    result = _parser(_StubBackend(reply)).parse("reports without a deadline")

    assert result.due_date == "none"


@pytest.mark.parametrize(
    "backend",
    [
        _StubBackend(error=ModelBackendError("boom", "stub", "stub-model", 503)),
        _StubBackend("I cannot help with that."),
        _StubBackend(error=RuntimeError("socket closed")),
    ],
)
def test_failures_fall_back_to_keyword_search(backend):
    result = _parser(backend).parse("what are the meeting notes for the budget")

    assert result.source == SOURCE_FALLBACK
    assert result.parser_error
    assert set(result.core_keywords) == {"meeting", "notes", "budget"}
    assert result.keywords == result.core_keywords


def test_no_backend_falls_back_with_explicit_syntax():
    result = _parser().parse("taxes #home p3 in folder Finance")

    assert result.source == SOURCE_FALLBACK
    assert result.parser_error == "No model backend configured."
    assert result.priority == 3
    assert result.tags == ["home"]
    assert result.folder == "Finance"
    assert "taxes" in result.keywords


def test_empty_query_has_no_error():
    result = parse_query("   ", today=TODAY)

    assert result.source == SOURCE_FALLBACK
    assert result.parser_error is None
    assert not result.has_keywords


def test_merge_keywords_keeps_core_first():
    assert merge_keywords(["task"], ["tasks", "Task", "任务"]) == ["task", "tasks", "任务"]


def test_prompt_lists_terms_languages_and_date():
    config = QueryConfig(user_terms=UserPropertyTerms(priority=("asap",)), query_languages=("English", "Svenska"))
    system, user = build_parser_messages("asap invoices", config, TODAY)

    assert system["role"] == "system"
    assert "2025-01-01" in system["content"]
    assert "asap" in system["content"]
    assert "English, Svenska" in system["content"]
    assert '"none"' in system["content"]
    assert user == {"role": "user", "content": "Query: asap invoices"}


def test_non_finite_priority_from_model_is_ignored():
    reply = '{"coreKeywords": ["fix"], "keywords": ["fix"], "priority": Infinity}'
    result = _parser(_StubBackend(reply)).parse("fix the build")

    assert result.source == SOURCE_MODEL
    assert result.priority is None
    assert result.core_keywords == ["fix"]


def test_out_of_range_model_date_is_dropped():
    reply = '{"coreKeywords": ["report"], "dueDate": "99999999 days"}'
    result = _parser(_StubBackend(reply)).parse("report far away")

    assert result.source == SOURCE_MODEL
    assert result.due_date is None
    assert result.due_date_range is None


def test_unexpected_recovery_error_falls_back(monkeypatch):
    def _explode(raw):
        raise OverflowError("cannot convert float infinity to integer")

    monkeypatch.setattr("taskquery.query_parser.recover_payload", _explode)
    result = _parser(_StubBackend(MODEL_REPLY)).parse("urgent report due tomorrow")

    assert result.source == SOURCE_FALLBACK
    assert "infinity" in result.parser_error
    assert "report" in result.core_keywords
