"""Recover the structured parse from noisy model output.

Models wrap JSON in reasoning tags, markdown fences or prose. Each strategy
below takes the raw text and returns a validated ``ModelQueryPayload`` or
``None``; ``recover_payload`` runs them in order and the first success wins.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Callable, Iterator, List, Optional, Tuple, Union

from pydantic import BaseModel, Field, ValidationError, ValidationInfo, field_validator

logger = logging.getLogger(__name__)

SCHEMA_KEYS = frozenset({"keywords", "coreKeywords", "priority", "dueDate", "status", "folder", "tags"})

_REASONING_TAGS = re.compile(r"<(think|reasoning|thought)>.*?</\1>", re.IGNORECASE | re.DOTALL)
_UNCLOSED_REASONING = re.compile(r"<(?:think|reasoning|thought)>.*?(?=\{)", re.IGNORECASE | re.DOTALL)
_FENCED_BLOCK = re.compile(r"```(?:json|JSON)?\s*\n?(.*?)```", re.DOTALL)


class ModelQueryPayload(BaseModel):
    """Shape the model is asked to return; lenient about types it often gets wrong."""

    core_keywords: List[str] = Field(default_factory=list, alias="coreKeywords")
    keywords: List[str] = Field(default_factory=list)
    priority: Optional[Union[int, List[int]]] = None
    due_date: Optional[str] = Field(default=None, alias="dueDate")
    status: Optional[Union[str, List[str]]] = None
    folder: Optional[str] = None
    tags: List[str] = Field(default_factory=list)

    model_config = {"populate_by_name": True, "extra": "ignore"}

    @field_validator("core_keywords", "keywords", "tags", mode="before")
    @classmethod
    def _coerce_string_list(cls, value: Any) -> List[str]:
        if value is None:
            return []
        if isinstance(value, str):
            value = [part for part in re.split(r"[,\s]+", value)]
        if not isinstance(value, (list, tuple)):
            return []
        return [str(item).strip().lstrip("#") for item in value if item is not None and str(item).strip()]

    @field_validator("priority", mode="before")
    @classmethod
    def _coerce_priority(cls, value: Any) -> Any:
        if value is None or value == "" or value == []:
            return None
        if isinstance(value, (list, tuple)):
            levels = [level for level in (_priority_level(item) for item in value) if level is not None]
            if not levels:
                return None
            unique = sorted(set(levels))
            return unique[0] if len(unique) == 1 else unique
        return _priority_level(value)

    @field_validator("due_date", "folder", mode="before")
    @classmethod
    def _coerce_optional_text(cls, value: Any, info: ValidationInfo) -> Optional[str]:
        if value is None:
            return None
        text = str(value).strip()
        empty = {"null"} if info.field_name == "due_date" else {"null", "none"}
        if not text or text.lower() in empty:
            return None
        return text

    @field_validator("status", mode="before")
    @classmethod
    def _coerce_status(cls, value: Any) -> Any:
        if value is None or value == "" or value == []:
            return None
        if isinstance(value, (list, tuple)):
            items = [str(item).strip() for item in value if str(item).strip()]
            if not items:
                return None
            return items[0] if len(items) == 1 else items
        text = str(value).strip()
        return text or None


_PRIORITY_WORDS = {"highest": 1, "high": 1, "urgent": 1, "medium": 2, "normal": 2, "low": 3, "lowest": 4}


def _priority_level(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    text = str(value).strip().lower()
    if text in _PRIORITY_WORDS:
        return _PRIORITY_WORDS[text]
    text = text.lstrip("p")
    try:
        level = int(float(text))
    except (ValueError, OverflowError):
        return None
    return level if 1 <= level <= 4 else None


def strip_reasoning_tags(text: str) -> str:
    """Remove ``<think>``/``<reasoning>``/``<thought>`` blocks, closed or not."""

    cleaned = _REASONING_TAGS.sub("", text or "")
    cleaned = _UNCLOSED_REASONING.sub("", cleaned)
    return cleaned.strip()


def _validate(candidate: str) -> Optional[Tuple[dict, ModelQueryPayload]]:
    try:
        data = json.loads(candidate)
    except (json.JSONDecodeError, ValueError):
        return None
    if not isinstance(data, dict):
        return None
    try:
        return data, ModelQueryPayload.model_validate(data)
    except ValidationError as exc:
        logger.debug("Model JSON failed validation: %s", exc)
        return None


def iter_balanced_braces(text: str) -> Iterator[str]:
    """Yield every top-level ``{...}`` substring, skipping braces inside strings."""

    depth = 0
    start = -1
    in_string = False
    escaped = False
    for index, char in enumerate(text):
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char == '"' and depth > 0:
            in_string = True
        elif char == "{":
            if depth == 0:
                start = index
            depth += 1
        elif char == "}" and depth > 0:
            depth -= 1
            if depth == 0:
                yield text[start : index + 1]


def fenced_code_block(text: str) -> Optional[ModelQueryPayload]:
    for block in _FENCED_BLOCK.findall(text):
        validated = _validate(block.strip())
        if validated:
            return validated[1]
    return None


def balanced_brace_schema_match(text: str) -> Optional[ModelQueryPayload]:
    for candidate in iter_balanced_braces(text):
        validated = _validate(candidate)
        if validated and SCHEMA_KEYS & set(validated[0]):
            return validated[1]
    return None


def balanced_brace_any_json(text: str) -> Optional[ModelQueryPayload]:
    for candidate in iter_balanced_braces(text):
        validated = _validate(candidate)
        if validated:
            return validated[1]
    return None


def outer_brace_span(text: str) -> Optional[ModelQueryPayload]:
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end <= start:
        return None
    validated = _validate(text[start : end + 1])
    return validated[1] if validated else None


Strategy = Callable[[str], Optional[ModelQueryPayload]]

RECOVERY_STRATEGIES: Tuple[Tuple[str, Strategy], ...] = (
    ("fenced_code_block", fenced_code_block),
    ("balanced_brace_schema_match", balanced_brace_schema_match),
    ("balanced_brace_any_json", balanced_brace_any_json),
    ("outer_brace_span", outer_brace_span),
)


def recover_payload(raw: Optional[str]) -> Optional[ModelQueryPayload]:
    """Run the recovery strategies in order; ``None`` when nothing parses."""

    if not raw or not raw.strip():
        return None
    text = strip_reasoning_tags(raw)
    for name, strategy in RECOVERY_STRATEGIES:
        payload = strategy(text)
        if payload is not None:
            logger.debug("Recovered model JSON via %s", name)
            return payload
    logger.warning("Could not recover JSON from model response (%d chars)", len(raw))
    return None


__all__ = [
    "ModelQueryPayload",
    "RECOVERY_STRATEGIES",
    "SCHEMA_KEYS",
    "balanced_brace_any_json",
    "balanced_brace_schema_match",
    "fenced_code_block",
    "iter_balanced_braces",
    "outer_brace_span",
    "recover_payload",
    "strip_reasoning_tags",
]
