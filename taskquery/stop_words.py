"""Multilingual stop words and CJK detection used by the keyword normalizer."""

from __future__ import annotations

import re
from typing import FrozenSet, Iterable, List

INTERNAL_STOP_WORDS: FrozenSet[str] = frozenset(
    {
        # English articles, prepositions and question words
        "the", "a", "an", "but", "for", "of", "with", "by", "from", "as",
        "is", "was", "are", "were", "me", "my", "all", "how", "what", "when",
        "where", "why", "which", "who", "whom", "whose", "do", "does", "did",
        "can", "could", "should", "would", "will", "have", "has", "had",
        # Chinese particles and question words
        "我", "的", "了", "吗", "呢", "啊", "如何", "怎么", "怎样", "什么",
        "哪些", "哪个", "哪里", "为什么",
    }
)

_CJK_PATTERN = re.compile(
    "[\u4e00-\u9fff\u3400-\u4dbf\uf900-\ufaff\u3040-\u309f\u30a0-\u30ff\U00020000-\U0002a6df]"
)


def is_cjk(text: str) -> bool:
    """Return True when ``text`` contains any CJK ideograph or kana."""

    return bool(_CJK_PATTERN.search(text or ""))


def is_stop_word(word: str, extra: Iterable[str] = ()) -> bool:
    lowered = word.lower()
    return lowered in INTERNAL_STOP_WORDS or lowered in {item.lower() for item in extra}


def filter_stop_words(words: Iterable[str], extra: Iterable[str] = ()) -> List[str]:
    """Drop stop words and single non-CJK characters, keeping order."""

    user_words = {item.lower() for item in extra}
    kept: List[str] = []
    for word in words:
        if not word:
            continue
        if len(word) == 1 and not is_cjk(word):
            continue
        lowered = word.lower()
        if lowered in INTERNAL_STOP_WORDS or lowered in user_words:
            continue
        kept.append(word)
    return kept


__all__ = ["INTERNAL_STOP_WORDS", "filter_stop_words", "is_cjk", "is_stop_word"]
