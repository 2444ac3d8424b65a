"""Keyword normalization shared by the fast path, the model path and the fallback."""

from __future__ import annotations

import logging
import re
from typing import Iterable, List, Optional

from taskquery.query_config import QueryConfig
from taskquery.stop_words import filter_stop_words

logger = logging.getLogger(__name__)

_HASHTAG_PATTERN = re.compile(r"#([^\s#]+)")
_WORD_SEPARATORS = re.compile(r"[\s,;:!?.()\[\]{}\"'“”‘’<>/\\|~`@#$%^&*+=，。；：！？、（）【】《》]+")
_FOLDER_PATTERNS = (
    re.compile(r"\b(?:in|under)\s+folder\s+[\"']?([^\s\"',]+)", re.IGNORECASE),
    re.compile(r"\bfolder:\s*[\"']?([^\s\"',]+)", re.IGNORECASE),
    re.compile(r"(?:文件夹|目录)\s*[:：]?\s*([^\s，,]+)"),
)
_CHINESE_TAG_PATTERN = re.compile(r"标签\s*[:：]?\s*([^\s，,#]+)")

# Script classes used as segmentation boundaries inside a chunk.
_IDEOGRAPH = "ideograph"
_KANA = "kana"
_HANGUL = "hangul"
_WORD = "word"


def _script_class(char: str) -> Optional[str]:
    code = ord(char)
    if 0x4E00 <= code <= 0x9FFF or 0x3400 <= code <= 0x4DBF or 0xF900 <= code <= 0xFAFF or 0x20000 <= code <= 0x2A6DF:
        return _IDEOGRAPH
    if 0x3040 <= code <= 0x30FF:
        return _KANA
    if 0xAC00 <= code <= 0xD7AF or 0x1100 <= code <= 0x11FF:
        return _HANGUL
    if char.isalnum() or char in "_-":
        return _WORD
    return None


def _script_runs(chunk: str) -> List[tuple]:
    runs: List[tuple] = []
    current_class: Optional[str] = None
    buffer = ""
    for char in chunk:
        char_class = _script_class(char)
        if char_class != current_class and buffer:
            runs.append((current_class, buffer))
            buffer = ""
        current_class = char_class
        if char_class is not None:
            buffer += char
    if buffer:
        runs.append((current_class, buffer))
    return runs


def _split_logographic(run: str) -> List[str]:
    """Two-character grams plus their single characters, stepping by two."""

    pieces: List[str] = []
    index = 0
    while index < len(run):
        if index + 1 < len(run):
            pieces.extend([run[index : index + 2], run[index], run[index + 1]])
            index += 2
        else:
            pieces.append(run[index])
            index += 1
    return pieces


def split_into_words(text: str) -> List[str]:
    """Split mixed-script text into words; hashtags become words without ``#``."""

    if not text or not text.strip():
        return []

    hashtags = _HASHTAG_PATTERN.findall(text)
    remainder = _HASHTAG_PATTERN.sub(" ", text)

    words: List[str] = []
    for chunk in _WORD_SEPARATORS.split(remainder):
        for script, run in _script_runs(chunk):
            if script in (_IDEOGRAPH, _KANA):
                words.extend(_split_logographic(run))
            else:
                cleaned = run.strip("-_")
                if cleaned:
                    words.append(cleaned)
    words.extend(hashtags)

    seen = set()
    unique: List[str] = []
    for word in words:
        if word not in seen:
            seen.add(word)
            unique.append(word)
    return unique


def deduplicate_keywords(words: Iterable[str]) -> List[str]:
    """Keep the longest member of each overlapping token family.

    Tokens are ordered longest first (stable for equal lengths) and any token
    contained in an already kept token is dropped. Applying the function to its
    own output returns the same list.
    """

    ordered = sorted((word for word in words if word), key=len, reverse=True)
    kept: List[str] = []
    for word in ordered:
        lowered = word.lower()
        if any(lowered in existing.lower() for existing in kept):
            continue
        kept.append(word)
    return kept


def extract_keywords(text: str, config: Optional[QueryConfig] = None) -> List[str]:
    """Split, deduplicate, then drop stop words (internal plus configured)."""

    words = split_into_words(text)
    deduplicated = deduplicate_keywords(words)
    extra = config.user_stop_words if config is not None else ()
    keywords = filter_stop_words(deduplicated, extra)
    if len(keywords) != len(words):
        logger.debug("Keywords normalized: %d -> %d", len(words), len(keywords))
    return keywords


def extract_tags(text: str) -> List[str]:
    """Return ``#tag`` and ``标签X`` tags in order of appearance."""

    tags: List[str] = []
    for tag in _HASHTAG_PATTERN.findall(text or "") + _CHINESE_TAG_PATTERN.findall(text or ""):
        cleaned = tag.strip().strip(".,;")
        if cleaned and cleaned not in tags:
            tags.append(cleaned)
    return tags


def extract_folder(text: str) -> Optional[str]:
    """Return the folder named by ``in folder X``, ``folder:X`` or ``文件夹X``."""

    for pattern in _FOLDER_PATTERNS:
        match = pattern.search(text or "")
        if match:
            return match.group(1).strip()
    return None


__all__ = [
    "deduplicate_keywords",
    "extract_folder",
    "extract_keywords",
    "extract_tags",
    "filter_stop_words",
    "split_into_words",
]
