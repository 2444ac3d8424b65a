"""Centralize defaults and environment lookups for the query engine CLI."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Dict, List, Mapping, Optional

from dotenv import load_dotenv

from taskquery.llm_client import PROVIDER_ANTHROPIC, PROVIDER_OLLAMA, PROVIDER_OPENAI, PROVIDER_OPENROUTER, PROVIDERS, BackendSettings
from taskquery.query_config import DEFAULT_QUERY_CONFIG, QueryConfig, load_query_config

load_dotenv()

# ---------------------------------------------------------------------------
# Default configuration values
# ---------------------------------------------------------------------------
_DEFAULT_LLM_PROVIDER = PROVIDER_OPENAI
_DEFAULT_LLM_MODELS: Dict[str, str] = {
    PROVIDER_OPENAI: "gpt-4o-mini",
    PROVIDER_OPENROUTER: "openai/gpt-4o-mini",
    PROVIDER_ANTHROPIC: "claude-3-5-haiku-latest",
    PROVIDER_OLLAMA: "llama3.1",
}
_API_KEY_VARIABLES: Dict[str, Optional[str]] = {
    PROVIDER_OPENAI: "OPENAI_API_KEY",
    PROVIDER_OPENROUTER: "OPENROUTER_API_KEY",
    PROVIDER_ANTHROPIC: "ANTHROPIC_API_KEY",
    PROVIDER_OLLAMA: None,
}
_DEFAULT_LLM_TIMEOUT = 30.0
_DEFAULT_LLM_TEMPERATURE = 0.1
_DEFAULT_LLM_MAX_TOKENS = 2000
_DEFAULT_LOG_LEVEL = "WARNING"
_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


def _source(env: Dict[str, str] | None) -> Mapping[str, str]:
    return env if env is not None else os.environ


def _float(raw: str | None, default: float, minimum: float = 0.0) -> float:
    if raw is None:
        return default
    try:
        value = float(raw)
    except ValueError:
        return default
    return max(value, minimum)


def _int(raw: str | None, default: int, minimum: int = 1) -> int:
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError:
        return default
    return max(value, minimum)


# ---------------------------------------------------------------------------
# Model backend
# ---------------------------------------------------------------------------
def get_llm_provider(env: Dict[str, str] | None = None) -> str:
    """Return the configured provider; unknown values fall back to OpenAI."""

    raw = _source(env).get("TASKQUERY_LLM_PROVIDER", _DEFAULT_LLM_PROVIDER).strip().lower()
    return raw if raw in PROVIDERS else _DEFAULT_LLM_PROVIDER


def get_llm_model(env: Dict[str, str] | None = None) -> str:
    """Return the model identifier, defaulting per provider."""

    override = _source(env).get("TASKQUERY_LLM_MODEL")
    if override and override.strip():
        return override.strip()
    return _DEFAULT_LLM_MODELS[get_llm_provider(env)]


def get_llm_api_key(env: Dict[str, str] | None = None) -> str | None:
    """Return the API key for the configured provider.

    Args:
        env: Optional mapping used instead of ``os.environ`` to simplify testing.

    Returns:
        The API key string if present, otherwise ``None`` (always ``None`` for Ollama).
    """

    variable = _API_KEY_VARIABLES[get_llm_provider(env)]
    if variable is None:
        return None
    return _source(env).get(variable) or None


def get_llm_endpoint(env: Dict[str, str] | None = None) -> str | None:
    return _source(env).get("TASKQUERY_LLM_ENDPOINT") or None


def get_llm_timeout(env: Dict[str, str] | None = None) -> float:
    return _float(_source(env).get("TASKQUERY_LLM_TIMEOUT"), _DEFAULT_LLM_TIMEOUT, minimum=1.0)


def get_llm_temperature(env: Dict[str, str] | None = None) -> float:
    return min(_float(_source(env).get("TASKQUERY_LLM_TEMPERATURE"), _DEFAULT_LLM_TEMPERATURE), 2.0)


def get_llm_max_tokens(env: Dict[str, str] | None = None) -> int:
    return _int(_source(env).get("TASKQUERY_LLM_MAX_TOKENS"), _DEFAULT_LLM_MAX_TOKENS)


def get_backend_settings(env: Dict[str, str] | None = None) -> BackendSettings:
    """Bundle every model-backend setting into one value."""

    return BackendSettings(
        provider=get_llm_provider(env),
        model=get_llm_model(env),
        api_key=get_llm_api_key(env),
        endpoint=get_llm_endpoint(env),
        timeout=get_llm_timeout(env),
        temperature=get_llm_temperature(env),
        max_tokens=get_llm_max_tokens(env),
    )


def is_model_configured(env: Dict[str, str] | None = None) -> bool:
    """Ollama needs no key; every other provider does."""

    return get_llm_provider(env) == PROVIDER_OLLAMA or get_llm_api_key(env) is not None


# ---------------------------------------------------------------------------
# Query configuration
# ---------------------------------------------------------------------------
def get_query_config_path(env: Dict[str, str] | None = None) -> Path:
    override = _source(env).get("TASKQUERY_CONFIG_PATH")
    return Path(override) if override else DEFAULT_QUERY_CONFIG


def get_query_languages(env: Dict[str, str] | None = None) -> List[str] | None:
    raw = _source(env).get("TASKQUERY_QUERY_LANGUAGES")
    if raw is None:
        return None
    languages = [segment.strip() for segment in raw.split(",") if segment.strip()]
    return languages or None


def get_expansions_per_language(env: Dict[str, str] | None = None) -> int | None:
    raw = _source(env).get("TASKQUERY_EXPANSIONS_PER_LANGUAGE")
    if raw is None:
        return None
    try:
        value = int(raw)
    except ValueError:
        return None
    return value if value >= 1 else None


def is_semantic_expansion_enabled(env: Dict[str, str] | None = None) -> bool | None:
    raw = _source(env).get("TASKQUERY_SEMANTIC_EXPANSION")
    if raw is None:
        return None
    normalized = raw.strip().lower()
    if normalized in _FALSE_VALUES:
        return False
    if normalized in _TRUE_VALUES:
        return True
    return None


def get_query_config(env: Dict[str, str] | None = None) -> QueryConfig:
    """Load the YAML query config, then apply environment overrides.

    An explicit ``TASKQUERY_CONFIG_PATH`` must exist; the default path may be absent.
    """

    source = _source(env)
    path = get_query_config_path(env) if source.get("TASKQUERY_CONFIG_PATH") else None
    config = load_query_config(path)
    languages = get_query_languages(env)
    return config.with_overrides(
        query_languages=tuple(languages) if languages else None,
        expansions_per_language=get_expansions_per_language(env),
        semantic_expansion=is_semantic_expansion_enabled(env),
    )


def get_log_level(env: Dict[str, str] | None = None) -> str:
    raw = _source(env).get("TASKQUERY_LOG_LEVEL", _DEFAULT_LOG_LEVEL).strip().upper()
    return raw if raw in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"} else _DEFAULT_LOG_LEVEL


__all__ = [
    "get_backend_settings",
    "get_expansions_per_language",
    "get_llm_api_key",
    "get_llm_endpoint",
    "get_llm_max_tokens",
    "get_llm_model",
    "get_llm_provider",
    "get_llm_temperature",
    "get_llm_timeout",
    "get_log_level",
    "get_query_config",
    "get_query_config_path",
    "get_query_languages",
    "is_model_configured",
    "is_semantic_expansion_enabled",
]
