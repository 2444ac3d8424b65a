"""Chat backends for the model-assisted parse.

Every adapter sends exactly one request and either returns the reply text or
raises ``ModelBackendError``; the query parser turns that error into the
keyword-only fallback.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Protocol

import requests
from openai import OpenAI, OpenAIError

logger = logging.getLogger(__name__)

ChatMessages = List[Dict[str, str]]

PROVIDER_OPENAI = "openai"
PROVIDER_OPENROUTER = "openrouter"
PROVIDER_ANTHROPIC = "anthropic"
PROVIDER_OLLAMA = "ollama"
PROVIDERS = (PROVIDER_OPENAI, PROVIDER_OPENROUTER, PROVIDER_ANTHROPIC, PROVIDER_OLLAMA)

OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"
ANTHROPIC_MESSAGES_URL = "https://api.anthropic.com/v1/messages"
ANTHROPIC_VERSION = "2023-06-01"
OLLAMA_CHAT_URL = "http://localhost:11434/api/chat"
OLLAMA_CONTEXT_WINDOW = 8192


class ModelBackendError(RuntimeError):
    """The model request failed (credentials, network, timeout or bad status)."""

    def __init__(self, message: str, provider: str, model: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.provider = provider
        self.model = model
        self.status_code = status_code


class ChatBackend(Protocol):
    provider: str
    model: str

    def complete_chat(self, messages: ChatMessages) -> str:
        ...


@dataclass(frozen=True)
class BackendSettings:
    provider: str
    model: str
    api_key: Optional[str] = None
    endpoint: Optional[str] = None
    timeout: float = 30.0
    temperature: float = 0.1
    max_tokens: int = 2000


class OpenAIChatBackend:
    """OpenAI-compatible chat completions (OpenAI itself or OpenRouter via ``base_url``)."""

    def __init__(self, settings: BackendSettings, client: Optional[OpenAI] = None):
        self.provider = settings.provider
        self.model = settings.model
        self._settings = settings
        self._client = client

    def _get_client(self) -> OpenAI:
        if self._client is None:
            if not self._settings.api_key:
                raise ModelBackendError(f"{self.provider} API key is not configured.", self.provider, self.model)
            base_url = self._settings.endpoint
            if base_url is None and self.provider == PROVIDER_OPENROUTER:
                base_url = OPENROUTER_BASE_URL
            self._client = OpenAI(
                api_key=self._settings.api_key,
                base_url=base_url,
                timeout=self._settings.timeout,
                max_retries=0,
            )
        return self._client

    def complete_chat(self, messages: ChatMessages) -> str:
        client = self._get_client()
        try:
            response = client.chat.completions.create(
                model=self.model,
                messages=messages,
                temperature=self._settings.temperature,
                max_tokens=self._settings.max_tokens,
            )
        except OpenAIError as exc:
            status_code = getattr(exc, "status_code", None)
            raise ModelBackendError(f"{self.provider} request failed: {exc}", self.provider, self.model, status_code) from exc

        if not response.choices:
            raise ModelBackendError(f"{self.provider} returned no choices.", self.provider, self.model)
        content = getattr(response.choices[0].message, "content", None)
        if not content:
            raise ModelBackendError(f"{self.provider} returned an empty message.", self.provider, self.model)
        return content


def _post_json(url: str, payload: Dict[str, object], headers: Dict[str, str], timeout: float, provider: str, model: str) -> Dict[str, object]:
    try:
        response = requests.post(url, json=payload, headers=headers, timeout=timeout)
    except requests.RequestException as exc:
        raise ModelBackendError(f"{provider} request failed: {exc}", provider, model) from exc
    if response.status_code != 200:
        raise ModelBackendError(
            f"{provider} returned HTTP {response.status_code}: {response.text[:200]}",
            provider,
            model,
            response.status_code,
        )
    try:
        data = response.json()
    except ValueError as exc:
        raise ModelBackendError(f"{provider} returned a non-JSON body.", provider, model, response.status_code) from exc
    if not isinstance(data, dict):
        raise ModelBackendError(f"{provider} returned an unexpected body.", provider, model, response.status_code)
    return data


class AnthropicChatBackend:
    """Anthropic Messages API: system prompt travels in its own field."""

    def __init__(self, settings: BackendSettings):
        self.provider = settings.provider
        self.model = settings.model
        self._settings = settings

    def complete_chat(self, messages: ChatMessages) -> str:
        if not self._settings.api_key:
            raise ModelBackendError("anthropic API key is not configured.", self.provider, self.model)
        system = "\n\n".join(message["content"] for message in messages if message["role"] == "system")
        conversation = [message for message in messages if message["role"] != "system"]
        payload: Dict[str, object] = {
            "model": self.model,
            "max_tokens": self._settings.max_tokens,
            "temperature": self._settings.temperature,
            "messages": conversation,
        }
        if system:
            payload["system"] = system
        headers = {
            "x-api-key": self._settings.api_key,
            "anthropic-version": ANTHROPIC_VERSION,
            "content-type": "application/json",
        }
        data = _post_json(
            self._settings.endpoint or ANTHROPIC_MESSAGES_URL,
            payload,
            headers,
            self._settings.timeout,
            self.provider,
            self.model,
        )
        content = data.get("content")
        if isinstance(content, list) and content and isinstance(content[0], dict):
            text = content[0].get("text")
            if text:
                return str(text)
        raise ModelBackendError("anthropic response had no text content.", self.provider, self.model, 200)


class OllamaChatBackend:
    """Local Ollama ``/api/chat``; no authentication."""

    def __init__(self, settings: BackendSettings):
        self.provider = settings.provider
        self.model = settings.model
        self._settings = settings

    def complete_chat(self, messages: ChatMessages) -> str:
        payload: Dict[str, object] = {
            "model": self.model,
            "messages": messages,
            "stream": False,
            "options": {
                "temperature": self._settings.temperature,
                "num_predict": self._settings.max_tokens,
                "num_ctx": OLLAMA_CONTEXT_WINDOW,
            },
        }
        data = _post_json(
            self._settings.endpoint or OLLAMA_CHAT_URL,
            payload,
            {"content-type": "application/json"},
            self._settings.timeout,
            self.provider,
            self.model,
        )
        message = data.get("message")
        if isinstance(message, dict) and message.get("content"):
            return str(message["content"])
        raise ModelBackendError("ollama response had no message content.", self.provider, self.model, 200)


def build_chat_backend(settings: BackendSettings) -> ChatBackend:
    """Pick the adapter for ``settings.provider``."""

    if settings.provider in (PROVIDER_OPENAI, PROVIDER_OPENROUTER):
        return OpenAIChatBackend(settings)
    if settings.provider == PROVIDER_ANTHROPIC:
        return AnthropicChatBackend(settings)
    if settings.provider == PROVIDER_OLLAMA:
        return OllamaChatBackend(settings)
    raise ValueError(f"Unknown model provider: {settings.provider}")


__all__ = [
    "AnthropicChatBackend",
    "BackendSettings",
    "ChatBackend",
    "ChatMessages",
    "ModelBackendError",
    "OllamaChatBackend",
    "OpenAIChatBackend",
    "PROVIDERS",
    "build_chat_backend",
]
