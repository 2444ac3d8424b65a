from datetime import date

import pytest

from taskquery.models import ParsedQuery, Task
from taskquery.query_config import QueryConfig, ScoringConfig
from taskquery.ranking import (
    due_date_score,
    filter_by_relevance,
    priority_score,
    order_ranked,
    rank_tasks,
    relevance_score,
    sort_tasks,
    status_score,
)

TODAY = date(2025, 1, 1)


def _task(task_id: str, text: str = "", **fields) -> Task:
    return Task(id=task_id, text=text or f"task {task_id}", **fields)


def _ids(items):
    return [item.task.id for item in items]


def test_priority_only_query_ranks_by_priority():
    tasks = [_task("a", priority=3), _task("b", priority=1), _task("c")]
    ranked = rank_tasks(tasks, ParsedQuery(priority=[1, 3]), today=TODAY)

    assert _ids(ranked) == ["b", "a", "c"]
    assert [item.score for item in ranked] == [1.0, 0.5, 0.1]


def test_ranking_is_deterministic():
    tasks = [_task(str(n), priority=(n % 4) + 1, due_date=f"2025-01-{n + 1:02d}") for n in range(12)]
    parsed = ParsedQuery(priority=1, due_date="week")
    first = _ids(rank_tasks(tasks, parsed, today=TODAY))
    second = _ids(rank_tasks(list(tasks), parsed, today=TODAY))
    assert first == second


def test_relevance_counts_core_and_expanded_matches():
    parsed = ParsedQuery(core_keywords=["report"], keywords=["report", "报告"])
    tasks = [_task("1", "Groceries"), _task("2", "报告 draft"), _task("3", "Write REPORT")]
    ranked = rank_tasks(tasks, parsed, today=TODAY)

    assert _ids(ranked) == ["3", "2", "1"]
    assert ranked[0].relevance == pytest.approx(1.2)
    assert ranked[0].score == pytest.approx(24.0)
    assert ranked[1].score == pytest.approx(20.0)
    assert ranked[2].score == 0.0


def test_inactive_components_contribute_nothing():
    tasks = [_task("a", priority=1, due_date="2024-12-01", status_category="completed")]
    ranked = rank_tasks(tasks, ParsedQuery(), today=TODAY)

    assert ranked[0].score == 0.0
    assert ranked[0].priority == 1.0
    assert ranked[0].due_date == 1.5


def test_sort_order_activates_due_date_component():
    tasks = [_task("none"), _task("late", due_date="2024-12-20")]
    ranked = rank_tasks(tasks, ParsedQuery(), sort_order=["dueDate"], today=TODAY)

    assert _ids(ranked) == ["late", "none"]
    assert ranked[0].score == pytest.approx(6.0)
    assert ranked[1].score == pytest.approx(0.4)


def test_equal_scores_keep_input_order():
    tasks = [_task("x", priority=2), _task("y", priority=2), _task("z", priority=2)]
    ranked = rank_tasks(tasks, ParsedQuery(priority=2), today=TODAY)
    assert _ids(ranked) == ["x", "y", "z"]


def test_status_component_uses_category_scores():
    tasks = [_task("done", status_category="completed"), _task("open"), _task("wip", status_category="inProgress")]
    ranked = rank_tasks(tasks, ParsedQuery(status=["open", "completed", "inProgress"]), today=TODAY)
    assert _ids(ranked) == ["open", "wip", "done"]


def test_component_scores():
    scoring = ScoringConfig()
    assert due_date_score("2024-12-31", scoring, TODAY) == 1.5
    assert due_date_score("2025-01-08", scoring, TODAY) == 1.0
    assert due_date_score("2025-01-31", scoring, TODAY) == 0.5
    assert due_date_score("2025-06-01", scoring, TODAY) == 0.2
    assert due_date_score(None, scoring, TODAY) == 0.1
    assert priority_score(2, scoring) == 0.75
    assert priority_score(None, scoring) == 0.1

    config = QueryConfig()
    assert status_score("in-progress", config) == 0.75
    assert status_score("mystery", config) == 0.5
    assert status_score(None, config) == 1.0


def test_relevance_without_core_keywords_does_not_divide_by_zero():
    assert relevance_score("anything", [], ["any"], 0.2) == 1.0


def test_filter_by_relevance_ratio():
    parsed = ParsedQuery(core_keywords=["budget", "review"], keywords=["budget", "review"])
    tasks = [_task("both", "budget review"), _task("one", "budget"), _task("none", "lunch")]
    ranked = rank_tasks(tasks, parsed, today=TODAY)

    assert _ids(filter_by_relevance(ranked, 0.4)) == ["both", "one"]
    assert _ids(filter_by_relevance(ranked, 0.0)) == ["both", "one", "none"]


def test_sort_tasks_multi_criteria():
    tasks = [
        _task("b", "Beta", priority=2, due_date="2025-01-05"),
        _task("a", "Alpha", priority=2, due_date="2025-01-05"),
        _task("c", "Gamma", priority=1),
        _task("d", "Delta", due_date="2025-01-02"),
    ]
    assert [task.id for task in sort_tasks(tasks, ["priority", "alphabetical"])] == ["c", "a", "b", "d"]
    assert [task.id for task in sort_tasks(tasks, ["dueDate", "alphabetical"])] == ["d", "a", "b", "c"]


def test_sort_by_created_puts_newest_first():
    tasks = [
        _task("old", created_date="2024-01-01"),
        _task("none"),
        _task("new", created_date="2024-06-01"),
    ]
    assert [task.id for task in sort_tasks(tasks, ["created"])] == ["new", "old", "none"]


def test_sort_by_relevance_and_status():
    tasks = [_task("1", status_category="completed"), _task("2"), _task("3", status_category="inProgress")]
    relevance = {"1": 1.0, "2": 1.0, "3": 0.5}
    assert [task.id for task in sort_tasks(tasks, ["relevance", "status"], relevance=relevance)] == ["2", "1", "3"]


def test_sort_rejects_unknown_criterion():
    with pytest.raises(ValueError):
        sort_tasks([_task("a")], ["colour"])


def test_order_ranked_breaks_score_ties_with_sort_order():
    tasks = [
        _task("1", "budget beta", due_date="2025-01-09"),
        _task("1", "budget alpha", due_date="2025-01-03"),
        _task("2", "lunch"),
    ]
    parsed = ParsedQuery(core_keywords=["budget"], keywords=["budget"])
    ranked = rank_tasks(tasks, parsed, today=TODAY)
    ordered = order_ranked(ranked, ["relevance", "alphabetical"])

    assert [item.task.text for item in ordered] == ["budget alpha", "budget beta", "lunch"]
    assert {id(item) for item in ordered} == {id(item) for item in ranked}
