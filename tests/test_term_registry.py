from functools import cmp_to_key

import pytest

from taskquery.query_config import QueryConfig, UserPropertyTerms, query_config_from_dict
from taskquery.term_registry import (
    all_property_trigger_words,
    compare_dates,
    compare_priority,
    detect_properties,
    get_status_order,
    map_priority,
    map_status_to_category,
    merge_term_sources,
    merged_terms,
    resolve_status_value,
    status_terms_for,
)


def test_merge_keeps_first_source_spelling():
    assert merge_term_sources(["Urgent"], ["urgent", "high"], ["high", "asap"]) == ["Urgent", "high", "asap"]


def test_user_terms_only_extend_general_bucket():
    config = QueryConfig(user_terms=UserPropertyTerms(priority=("asap",)))
    terms = merged_terms("priority", config)
    assert terms["general"][0] == "asap"
    assert "asap" not in terms["high"]
    assert "high" in terms["high"]


def test_expanded_terms_come_last():
    terms = merged_terms("dueDate", QueryConfig(), expanded={"today": ["heute"], "someday": ["eventually"]})
    assert terms["today"][-1] == "heute"
    assert terms["someday"] == ["eventually"]


def test_merged_terms_does_not_mutate_builtins():
    merged_terms("status", QueryConfig(), expanded={"open": ["offen"]})
    assert "offen" not in merged_terms("status", QueryConfig())["open"]


def test_unknown_property_is_rejected():
    with pytest.raises(ValueError):
        merged_terms("colour", QueryConfig())


def test_detect_properties():
    found = detect_properties("urgent tasks due tomorrow", QueryConfig())
    assert found == {"priority": True, "dueDate": True, "status": False}


def test_trigger_words_cover_every_property():
    config = QueryConfig(user_terms=UserPropertyTerms(status=("Blocked",)))
    words = all_property_trigger_words(config)
    assert {"urgent", "overdue", "done", "blocked"} <= set(words)
    assert len(words) == len(set(words))


def test_compare_priority_puts_missing_last():
    ordered = sorted([None, 3, 1, None, 2], key=cmp_to_key(compare_priority))
    assert ordered == [1, 2, 3, None, None]
    assert compare_priority(None, None) == 0
    assert compare_priority(1, None) == -1
    assert compare_priority(4, 2) == 1


def test_compare_dates_by_day_with_missing_last():
    assert compare_dates("2025-01-01T09:00", "2025-01-01") == 0
    assert compare_dates(None, "2025-01-01") == 1
    assert compare_dates("2025-01-02", None) == -1
    assert compare_dates("2025-01-01", "2025-02-01") == -1


def test_resolve_status_value_lookup_order():
    config = QueryConfig()
    assert resolve_status_value("inProgress", config) == "inProgress"
    assert resolve_status_value("wip", config) == "inProgress"
    assert resolve_status_value("x", config) == "completed"
    assert resolve_status_value("进行中", config) == "inProgress"
    assert resolve_status_value("whatever", config) is None


def test_map_status_to_category():
    config = QueryConfig()
    assert map_status_to_category(" ", config) == "open"
    assert map_status_to_category("", config) == "open"
    assert map_status_to_category("X", config) == "completed"
    assert map_status_to_category("?", config) == "other"


def test_map_priority_uses_configured_words():
    config = query_config_from_dict({"priority_mapping": {1: ["blocker"], 2: ["soon"]}})
    assert map_priority("Blocker", config) == 1
    assert map_priority("soon", config) == 2
    assert map_priority("low", config) == 3
    assert map_priority(7, config) is None
    assert map_priority(True, config) is None


def test_status_order_precedence():
    config = query_config_from_dict(
        {
            "status_categories": {
                "open": {"symbols": [" "], "order": 3},
                "inProgress": {"symbols": ["/"]},
                "completed": {"symbols": ["x"]},
                "cancelled": {"symbols": ["-"]},
                "other": {},
                "waiting": {"symbols": ["?"]},
            }
        }
    )
    assert get_status_order("open", config) == 3
    assert get_status_order("inProgress", config) == 2
    assert get_status_order("waiting", config) == 60
    assert get_status_order("archived", config) == 999


def test_status_terms_include_configured_aliases():
    terms = status_terms_for("completed", QueryConfig())
    assert "done" in terms
    assert "已完成" in terms
