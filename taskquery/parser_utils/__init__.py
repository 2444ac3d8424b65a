"""Shared helper utilities for query parsing."""

from .text import deduplicate_keywords, extract_folder, extract_keywords, extract_tags, split_into_words
from .datetime import matches_date_filter, parse_relative_date, resolve_date_expression

__all__ = [
    "deduplicate_keywords",
    "extract_folder",
    "extract_keywords",
    "extract_tags",
    "matches_date_filter",
    "parse_relative_date",
    "resolve_date_expression",
    "split_into_words",
]
