"""Read task exports from JSON files.

The engine never persists anything; the CLI only needs to read a task list
that some other tool exported, either a bare list or ``{"tasks": [...]}``.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List, TypeVar

T = TypeVar("T")


def read_json(path: Path, default: T) -> T:
    """Return JSON content from ``path`` or ``default`` when the file is absent."""

    if not path.exists():
        return default
    try:
        raw = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return default
    if not raw.strip():
        return default
    return json.loads(raw)


def load_task_records(path: Path) -> List[Dict[str, Any]]:
    """Return the task dicts stored in ``path``; raises ``ValueError`` on other shapes."""

    data = read_json(path, [])
    if isinstance(data, dict):
        data = data.get("tasks", [])
    if not isinstance(data, list):
        raise ValueError(f"{path} must contain a list of tasks or an object with a 'tasks' list.")
    return [record for record in data if isinstance(record, dict)]


__all__ = ["load_task_records", "read_json"]
