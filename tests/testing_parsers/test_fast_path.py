from datetime import date

from taskquery.parsers import fast_path
from taskquery.query_config import QueryConfig

TODAY = date(2025, 1, 1)
CONFIG = QueryConfig()


def test_priority_due_and_tag_are_consumed():
    result = fast_path.parse("p1 overdue #work", CONFIG, TODAY)
    assert result is not None
    assert result.priority == 1
    assert result.due_date == "overdue"
    assert result.due_date_range.end == "2024-12-31"
    assert result.tags == ["work"]


def test_multi_value_priority_and_status():
    result = fast_path.parse("priority 2,1 s:open,wip", CONFIG, TODAY)
    assert result is not None
    assert result.priority == [1, 2]
    assert result.status == ["open", "inProgress"]


def test_status_words_resolve_through_aliases():
    result = fast_path.parse("Status done", CONFIG, TODAY)
    assert result is not None
    assert result.status == "completed"


def test_due_phrases_map_to_keywords():
    result = fast_path.parse("due next week", CONFIG, TODAY)
    assert result is not None
    assert result.due_date == "next-week"
    assert result.due_date_range.start == "2025-01-08"


def test_no_date_marker():
    result = fast_path.parse("no due date p3", CONFIG, TODAY)
    assert result is not None
    assert result.due_date == fast_path.NO_DUE_DATE
    assert result.priority == 3


def test_free_text_is_left_to_the_model_path():
    assert fast_path.parse("p1 quarterly report", CONFIG, TODAY) is None
    assert fast_path.parse("status maybe", CONFIG, TODAY) is None
    assert not fast_path.matches("quarterly report p1")


def test_conflicting_dates_are_not_claimed():
    assert fast_path.parse("today tomorrow", CONFIG, TODAY) is None


def test_explicit_syntax_anywhere_in_query():
    explicit = fast_path.extract_explicit_syntax("Finish the #Taxes report p2 s:done, it is overdue", CONFIG, TODAY)
    assert explicit.priority == 2
    assert explicit.status == "completed"
    assert explicit.due_date == "overdue"
    assert explicit.tags == ["Taxes"]


def test_explicit_syntax_ignores_words_that_merely_contain_p():
    explicit = fast_path.extract_explicit_syntax("upgrade mp3 player", CONFIG, TODAY)
    assert explicit.is_empty()
