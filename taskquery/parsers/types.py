"""Shared dataclasses for parser outputs."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional

from taskquery.models import DateFilter, PriorityFilter, StatusFilter


@dataclass
class PropertyMatch:
    """Properties recognised deterministically from query syntax."""

    priority: Optional[PriorityFilter] = None
    due_date: Optional[str] = None
    due_date_range: Optional[DateFilter] = None
    status: Optional[StatusFilter] = None
    tags: List[str] = field(default_factory=list)

    def is_empty(self) -> bool:
        return (
            self.priority is None
            and self.due_date is None
            and self.due_date_range is None
            and self.status is None
            and not self.tags
        )


__all__ = ["PropertyMatch"]
