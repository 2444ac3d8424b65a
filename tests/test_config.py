from pathlib import Path

import pytest

from app.config import (
    get_backend_settings,
    get_expansions_per_language,
    get_llm_api_key,
    get_llm_model,
    get_llm_provider,
    get_llm_timeout,
    get_log_level,
    get_query_config,
    get_query_languages,
    is_model_configured,
    is_semantic_expansion_enabled,
)
from taskquery.query_config import QueryConfigError, load_query_config, query_config_from_dict


def test_provider_defaults_and_unknown_values():
    assert get_llm_provider({}) == "openai"
    assert get_llm_provider({"TASKQUERY_LLM_PROVIDER": " Anthropic "}) == "anthropic"
    assert get_llm_provider({"TASKQUERY_LLM_PROVIDER": "bogus"}) == "openai"


def test_model_defaults_per_provider():
    assert get_llm_model({}) == "gpt-4o-mini"
    assert get_llm_model({"TASKQUERY_LLM_PROVIDER": "ollama"}) == "llama3.1"
    assert get_llm_model({"TASKQUERY_LLM_MODEL": "custom-model"}) == "custom-model"


def test_api_key_follows_provider():
    env = {"TASKQUERY_LLM_PROVIDER": "openrouter", "OPENROUTER_API_KEY": "or-key", "OPENAI_API_KEY": "oa-key"}
    assert get_llm_api_key(env) == "or-key"
    assert get_llm_api_key({"TASKQUERY_LLM_PROVIDER": "ollama"}) is None


def test_model_configured_needs_key_except_ollama():
    assert not is_model_configured({})
    assert is_model_configured({"OPENAI_API_KEY": "k"})
    assert is_model_configured({"TASKQUERY_LLM_PROVIDER": "ollama"})


def test_numeric_settings_fall_back_on_bad_values():
    assert get_llm_timeout({"TASKQUERY_LLM_TIMEOUT": "abc"}) == 30.0
    assert get_llm_timeout({"TASKQUERY_LLM_TIMEOUT": "0.2"}) == 1.0
    settings = get_backend_settings({"TASKQUERY_LLM_MAX_TOKENS": "500", "TASKQUERY_LLM_TEMPERATURE": "9"})
    assert settings.max_tokens == 500
    assert settings.temperature == 2.0


def test_expansion_overrides():
    assert get_query_languages({"TASKQUERY_QUERY_LANGUAGES": "English, Svenska ,"}) == ["English", "Svenska"]
    assert get_query_languages({}) is None
    assert get_expansions_per_language({"TASKQUERY_EXPANSIONS_PER_LANGUAGE": "0"}) is None
    assert get_expansions_per_language({"TASKQUERY_EXPANSIONS_PER_LANGUAGE": "3"}) == 3
    assert is_semantic_expansion_enabled({"TASKQUERY_SEMANTIC_EXPANSION": "off"}) is False
    assert is_semantic_expansion_enabled({"TASKQUERY_SEMANTIC_EXPANSION": "maybe"}) is None


def test_log_level():
    assert get_log_level({}) == "WARNING"
    assert get_log_level({"TASKQUERY_LOG_LEVEL": "debug"}) == "DEBUG"
    assert get_log_level({"TASKQUERY_LOG_LEVEL": "loud"}) == "WARNING"


def test_query_config_from_yaml_with_env_overrides(tmp_path):
    path = tmp_path / "query.yml"
    path.write_text(
        "query_languages: [English]\n"
        "expansions_per_language: 2\n"
        "stop_words: [Misc]\n"
        "scoring:\n  relevance_coefficient: 10\n",
        encoding="utf-8",
    )
    env = {"TASKQUERY_CONFIG_PATH": str(path), "TASKQUERY_EXPANSIONS_PER_LANGUAGE": "4"}
    config = get_query_config(env)

    assert config.query_languages == ("English",)
    assert config.expansions_per_language == 4
    assert config.user_stop_words == ("misc",)
    assert config.scoring.relevance_coefficient == 10.0
    assert config.scoring.due_date_coefficient == 4.0
    assert config.keywords_per_core == 4


def test_explicit_config_path_must_exist(tmp_path):
    with pytest.raises(QueryConfigError):
        get_query_config({"TASKQUERY_CONFIG_PATH": str(tmp_path / "missing.yml")})


def test_missing_default_config_uses_builtins(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    config = load_query_config()
    assert config.status_keys() == ("open", "inProgress", "completed", "cancelled", "other")


@pytest.mark.parametrize("content", ["a: [", "- just\n- a list\n"])
def test_malformed_yaml_is_reported(tmp_path, content):
    path = tmp_path / "query.yml"
    path.write_text(content, encoding="utf-8")
    with pytest.raises(QueryConfigError):
        load_query_config(path)


@pytest.mark.parametrize(
    "data",
    [
        {"scoring": {"relevance_weight": 1}},
        {"sort_order": ["relevance", "colour"]},
        {"priority_mapping": {7: ["later"]}},
        {"expansions_per_language": 0},
        {"status_categories": {}},
    ],
)
def test_invalid_sections_are_rejected(data):
    with pytest.raises(QueryConfigError):
        query_config_from_dict(data)


def test_shipped_config_matches_builtin_defaults():
    config = load_query_config(Path(__file__).resolve().parents[1] / "config" / "query.yml")
    assert config.status_keys() == ("open", "inProgress", "completed", "cancelled", "other")
    assert config.status_category("completed").symbols == ("x", "X")
    assert config.sort_order == ("relevance", "dueDate", "priority")
