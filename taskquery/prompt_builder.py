"""Assemble the system/user messages sent to the model for query parsing."""

from __future__ import annotations

from datetime import date
from typing import Dict, List, Optional

from taskquery.query_config import QueryConfig
from taskquery.term_registry import (
    PROPERTY_DUE_DATE,
    PROPERTY_PRIORITY,
    PROPERTY_STATUS,
    PropertyTermSet,
    merged_terms,
)

_MAX_TERMS_PER_BUCKET = 10

OUTPUT_SCHEMA = """{
  "coreKeywords": ["original content words from the query"],
  "keywords": ["core keywords followed by their expansions"],
  "priority": 1 | [1, 2] | null,
  "dueDate": "today" | "tomorrow" | "overdue" | "week" | "next-week" | "future" | "any" | "none" | "<relative expression>" | "YYYY-MM-DD" | null,
  "status": "<status category key>" | ["<key>", "<key>"] | null,
  "folder": "<folder name>" | null,
  "tags": ["tag without #"]
}"""


def _format_terms(label: str, terms: PropertyTermSet) -> str:
    lines = [f"{label} terms:"]
    for bucket, values in terms.items():
        shown = values[:_MAX_TERMS_PER_BUCKET]
        suffix = ", ..." if len(values) > _MAX_TERMS_PER_BUCKET else ""
        lines.append(f"- {bucket}: {', '.join(shown)}{suffix}")
    return "\n".join(lines)


def build_term_section(config: QueryConfig) -> str:
    """Describe the merged user + built-in vocabulary for each property."""

    sections = [
        _format_terms("Priority", merged_terms(PROPERTY_PRIORITY, config)),
        _format_terms("Due date", merged_terms(PROPERTY_DUE_DATE, config)),
        _format_terms("Status", merged_terms(PROPERTY_STATUS, config)),
    ]
    categories = ", ".join(f"{category.key} ({category.display_name})" for category in config.status_categories)
    sections.append(f"Valid status category keys: {categories}")
    return "\n\n".join(sections)


def build_expansion_section(config: QueryConfig) -> str:
    languages = ", ".join(config.languages)
    if not config.semantic_expansion:
        return (
            f"Semantic expansion is disabled. Translate each core keyword once into every configured "
            f"language ({languages}) and return those as keywords ({config.keywords_per_core} per core keyword)."
        )
    return (
        f"Configured languages ({len(config.languages)}): {languages}.\n"
        f"For every core keyword, produce {config.expansions_per_language} semantic equivalents in EACH "
        f"language, i.e. about {config.keywords_per_core} keywords per core keyword.\n"
        "Generate equivalents directly in each language instead of translating from English."
    )


def build_system_prompt(config: QueryConfig, today: Optional[date] = None) -> str:
    today = today or date.today()
    return (
        "You convert task search queries into structured JSON filters.\n"
        "Respond with a single JSON object and nothing else.\n"
        f"Today is {today.isoformat()}.\n\n"
        "Property recognition uses three layers: user-configured terms first, then the built-in terms "
        "below, then your own semantic expansion across languages.\n\n"
        f"{build_term_section(config)}\n\n"
        f"{build_expansion_section(config)}\n\n"
        "Rules:\n"
        "- Priority 1 is highest and 4 is lowest.\n"
        "- Words that only express a property (e.g. 'urgent', 'overdue', 'done') are not keywords.\n"
        "- Use dueDate \"none\" for tasks that have no due date.\n"
        "- Leave a property null when the query does not mention it.\n\n"
        f"Output schema:\n{OUTPUT_SCHEMA}"
    )


def build_parser_messages(query: str, config: QueryConfig, today: Optional[date] = None) -> List[Dict[str, str]]:
    """Return the two-message chat payload (system + user) for ``query``."""

    return [
        {"role": "system", "content": build_system_prompt(config, today)},
        {"role": "user", "content": f"Query: {query}"},
    ]


__all__ = ["OUTPUT_SCHEMA", "build_expansion_section", "build_parser_messages", "build_system_prompt", "build_term_section"]
